"""CLI integration tests run against a temporary HOME and scripted providers."""

from __future__ import annotations

import json
import os
import signal
from pathlib import Path

import pytest
from click.testing import CliRunner

from dotbrain import cli as cli_module
from dotbrain.classification.errors import ProviderError, ProviderErrorKind
from dotbrain.classification.providers import AIProvider
from dotbrain.cli import cli
from dotbrain.credentials import MemoryCredentialStore
from dotbrain.stats.store import StatisticsStore
from dotbrain.vault.layout import VaultLayout
from dotbrain.vault.models import PARACategory
from dotbrain.vault.storage import read_note

from fakes import FakeProviderClient, classification_reply


class _Env:
    """Temporary HOME with a vault, in-memory credentials, and fake providers."""

    def __init__(self, home: Path) -> None:
        self.home = home
        self.layout = VaultLayout(root=home / "DotBrain")
        self.credentials = MemoryCredentialStore({AIProvider.GEMINI.account: "AIza-test"})
        self.gemini = FakeProviderClient(AIProvider.GEMINI)
        self.claude = FakeProviderClient(AIProvider.CLAUDE)
        self.runner = CliRunner()

    @property
    def stats(self) -> StatisticsStore:
        return StatisticsStore(self.home / ".dotbrain" / "stats.json")

    def invoke(self, *args: str, input: str | None = None):
        return self.runner.invoke(cli, list(args), input=input, catch_exceptions=False)


@pytest.fixture()
def env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> _Env:
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    for name in list(os.environ):
        if name.startswith("DOTBRAIN__"):
            monkeypatch.delenv(name)
    state = _Env(home)
    monkeypatch.setattr(cli_module, "_credential_store", lambda: state.credentials)
    monkeypatch.setattr(
        cli_module,
        "_provider_clients",
        lambda config: {AIProvider.GEMINI: state.gemini, AIProvider.CLAUDE: state.claude},
    )
    return state


def test_cli_help_displays_commands() -> None:
    result = CliRunner().invoke(cli, ["--help"])

    assert result.exit_code == 0
    assert "PARA vault" in result.output
    for command in ("inbox", "reorganize", "folders", "move", "stats", "provider", "watch"):
        assert command in result.output


def test_init_creates_vault_structure(env: _Env) -> None:
    result = env.invoke("init")

    assert result.exit_code == 0
    assert env.layout.inbox_path.is_dir()
    assert all(env.layout.para_path(c).is_dir() for c in PARACategory)
    assert "already initialized" in env.invoke("init").output


def test_inbox_json_reports_pending_confirmations(env: _Env) -> None:
    env.layout.ensure_structure()
    (env.layout.inbox_path / "soup.md").write_text("Lentil soup recipe", encoding="utf-8")
    env.gemini.replies.append(
        classification_reply({"para": "resource", "targetFolder": "Recipes", "confidence": 0.9})
    )

    result = env.invoke("inbox", "--json")

    assert result.exit_code == 0, result.output
    payload = json.loads(result.output)
    assert payload["target"] == "inbox"
    assert payload["counts"]["pending"] == 1
    [pending] = payload["needs_confirmation"]
    assert pending["reason"] == "unfiled"
    assert pending["options"][0]["target_folder"] == "Recipes"
    assert len(pending["options"]) == 4
    assert (env.layout.inbox_path / "soup.md").exists()


def test_inbox_accept_files_items_under_top_suggestion(env: _Env) -> None:
    env.layout.ensure_structure()
    (env.layout.inbox_path / "soup.md").write_text("Lentil soup recipe", encoding="utf-8")
    env.gemini.replies.append(
        classification_reply(
            {"para": "resource", "targetFolder": "Recipes", "tags": ["food"], "confidence": 0.9}
        )
    )

    result = env.invoke("inbox", "--accept", "--summary")

    assert result.exit_code == 0, result.output
    filed = env.layout.folder_path(PARACategory.RESOURCE, "Recipes") / "soup.md"
    assert filed.exists()
    assert read_note(filed)[0].tags == ["food"]
    assert "inbox summary" in result.output
    assert "filed=1" in result.output


def test_inbox_interactive_choice_and_skip(env: _Env) -> None:
    env.layout.ensure_structure()
    (env.layout.inbox_path / "a.md").write_text("alpha", encoding="utf-8")
    (env.layout.inbox_path / "b.md").write_text("beta", encoding="utf-8")
    env.gemini.replies.append(
        classification_reply(
            {"para": "resource", "targetFolder": "Notes", "confidence": 0.9},
            {"para": "area", "targetFolder": "Home", "confidence": 0.9},
        )
    )

    result = env.invoke("inbox", "--interactive", input="2\n0\n")

    assert result.exit_code == 0, result.output
    assert (env.layout.folder_path(PARACategory.PROJECT, "Notes") / "a.md").exists()
    assert (env.layout.inbox_path / "b.md").exists()


def test_inbox_provider_failure_maps_to_json_error(env: _Env) -> None:
    env.layout.ensure_structure()
    (env.layout.inbox_path / "a.md").write_text("alpha", encoding="utf-8")
    env.gemini.replies.append(
        ProviderError(ProviderErrorKind.HTTP_STATUS, "gemini", "denied", status=403)
    )

    result = env.invoke("inbox", "--json")

    assert result.exit_code == 1
    payload = json.loads(result.output)
    assert payload["error"]["code"] == "classification_error"


def test_json_and_quiet_are_mutually_exclusive(env: _Env) -> None:
    env.layout.ensure_structure()

    result = env.runner.invoke(cli, ["inbox", "--json", "--quiet"])

    assert result.exit_code != 0
    assert "--json cannot be combined with --quiet" in result.output


def test_reorganize_missing_folder_fails(env: _Env) -> None:
    env.layout.ensure_structure()

    result = env.runner.invoke(cli, ["reorganize", "area", "Nope"])

    assert result.exit_code == 1
    assert "not found" in result.output


def test_reorganize_rejects_unknown_category(env: _Env) -> None:
    result = env.runner.invoke(cli, ["reorganize", "inbox", "X"])

    assert result.exit_code == 2
    assert "not a PARA category" in result.output


def test_folders_and_move(env: _Env) -> None:
    env.layout.ensure_structure()
    folder = env.layout.folder_path(PARACategory.PROJECT, "Website")
    folder.mkdir()
    (folder / "todo.md").write_text("See [[Website]]", encoding="utf-8")

    listing = json.loads(env.invoke("folders", "project", "--json").output)
    assert listing["folders"] == [{"name": "Website", "file_count": 1, "summary": ""}]

    moved = env.invoke("move", "Website", "project", "4_Archive")
    assert moved.exit_code == 0, moved.output
    archived = env.layout.folder_path(PARACategory.ARCHIVE, "Website") / "todo.md"
    assert "[[Website]] (completed)" in archived.read_text(encoding="utf-8")
    assert env.stats.read().activity[0].action == "moved"


def test_move_missing_folder_json_error(env: _Env) -> None:
    env.layout.ensure_structure()

    result = env.invoke("move", "Ghost", "area", "archive", "--json")

    assert result.exit_code == 1
    assert json.loads(result.output)["error"]["code"] == "folder_error"


def test_stats_json(env: _Env) -> None:
    env.layout.ensure_structure()
    (env.layout.para_path(PARACategory.AREA) / "a.md").write_text("a", encoding="utf-8")
    env.stats.record_activity("a.md", "area", "classified")

    payload = json.loads(env.invoke("stats", "--json").output)

    assert payload["total_files"] == 1
    assert payload["by_category"]["area"] == 1
    assert payload["recent_activity"][0]["file_name"] == "a.md"


def test_key_and_provider_commands(env: _Env) -> None:
    bad = env.runner.invoke(cli, ["key", "set", "claude", "--value", "AIza-nope"])
    assert bad.exit_code == 1
    assert "sk-ant-" in bad.output

    assert env.invoke("key", "set", "claude", "--value", "sk-ant-123").exit_code == 0
    assert env.credentials.get("claude-api-key") == "sk-ant-123"

    switched = env.invoke("provider", "claude")
    assert "Using Claude" in switched.output
    assert env.stats.selected_provider() == "claude"

    listing = env.invoke("provider").output
    assert "* claude" in listing

    assert "Deleted Claude" in env.invoke("key", "delete", "claude").output
    assert "No stored Claude" in env.invoke("key", "delete", "claude").output


def test_watch_once_processes_inbox(env: _Env) -> None:
    env.layout.ensure_structure()
    (env.layout.inbox_path / "a.md").write_text("alpha", encoding="utf-8")
    env.gemini.replies.append(
        classification_reply({"para": "area", "targetFolder": "Home", "confidence": 0.9})
    )

    result = env.invoke("watch", "--once")

    assert result.exit_code == 0, result.output
    assert "awaiting confirmation" in result.output
    assert "watch summary" in result.output
    assert len(env.gemini.calls) == 1


def test_config_set_and_view(env: _Env) -> None:
    result = env.invoke("config", "set", "ai.batch_size", "--value", "4")

    assert result.exit_code == 0, result.output
    assert "Updated ai.batch_size" in result.output
    assert "No changes applied" in env.invoke("config", "set", "ai.batch_size", "--value", "4").output
    assert "batch_size: 4" in env.invoke("config", "view").output

    invalid = env.runner.invoke(cli, ["config", "set", "ai.batch_size", "--value", "zero"])
    assert invalid.exit_code == 1


def test_interrupt_stops_run_and_reports_partial_results(env: _Env) -> None:
    env.layout.ensure_structure()
    inbox = env.layout.inbox_path
    (inbox / "a.md").write_text("Same body", encoding="utf-8")
    (inbox / "b.md").write_text("Same body", encoding="utf-8")
    (inbox / "c.md").write_text("Other body", encoding="utf-8")

    def _reply_after_ctrl_c(prompt: str) -> str:
        os.kill(os.getpid(), signal.SIGINT)
        return classification_reply(
            {"para": "area", "targetFolder": "Home", "confidence": 0.9},
            {"para": "area", "targetFolder": "Home", "confidence": 0.9},
        )

    env.gemini.replies.append(_reply_after_ctrl_c)
    previous = signal.getsignal(signal.SIGINT)

    result = env.invoke("inbox", "--json", "--accept")

    assert result.exit_code == 0, result.output
    payload = json.loads(result.output)
    assert payload["cancelled"] is True
    assert payload["counts"]["deduplicated"] == 1
    assert payload["needs_confirmation"] == []
    assert payload["resolved"] == []
    assert (inbox / "a.md").exists() and (inbox / "c.md").exists()
    assert signal.getsignal(signal.SIGINT) is previous
