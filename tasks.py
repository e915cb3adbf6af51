"""Invoke tasks for developing DotBrain.

Every task shells out to ``uv`` so the virtual environment, test run, and
static checks use the same resolved dependency set.
"""

from __future__ import annotations

import shlex
import shutil
from collections.abc import Sequence
from pathlib import Path

from invoke import Collection, Context, task

PROJECT_ROOT = Path(__file__).parent
DIST_DIR = PROJECT_ROOT / "dist"
PACKAGE_DIR = PROJECT_ROOT / "src" / "dotbrain"
SANDBOX_VAULT = PROJECT_ROOT / ".sandbox" / "vault"


def _uv(ctx: Context, args: Sequence[str], *, dry_run: bool = False) -> None:
    """Run ``uv`` with ``args``, or only print the command when ``dry_run`` is set."""
    command = shlex.join(("uv", *args))
    if dry_run:
        print(f"[dry-run] {command}")
        return
    ctx.run(command, echo=True, pty=True)


@task
def sync(ctx: Context, dev: bool = True) -> None:
    """Install the project, with the ``dev`` extra unless disabled."""
    args = ["sync"]
    if dev:
        args.extend(["--extra", "dev"])
    _uv(ctx, args)


@task(help={"clean": "Empty dist/ first."})
def build(ctx: Context, clean: bool = False) -> None:
    """Build the sdist and wheel into ``dist/``."""
    if clean and DIST_DIR.exists():
        shutil.rmtree(DIST_DIR)
    _uv(ctx, ["build"])


@task(help={"part": "major, minor or patch.", "dry_run": "Print the new version only."})
def bump(ctx: Context, part: str = "patch", dry_run: bool = False) -> None:
    """Bump the version in pyproject.toml."""
    args = ["version", "--bump", part]
    if dry_run:
        args.append("--dry-run")
    _uv(ctx, args)


@task(
    help={
        "k": "pytest -k expression.",
        "path": "Test path (defaults to tests/).",
        "options": "Extra pytest flags.",
    }
)
def tests(ctx: Context, k: str = "", path: str = "tests", options: str = "") -> None:
    """Run the pytest suite."""
    args: list[str] = ["run", "pytest"]
    if k:
        args.extend(["-k", k])
    if options:
        args.extend(shlex.split(options))
    args.append(path)
    _uv(ctx, args)


@task(help={"fix": "Apply ruff fixes.", "check_format": "Also run ruff format --check."})
def lint(ctx: Context, fix: bool = False, check_format: bool = False) -> None:
    """Lint ``src`` and ``tests`` with ruff."""
    if check_format:
        _uv(ctx, ["run", "ruff", "format", "--check", "src", "tests"])
    args = ["run", "ruff", "check", "src", "tests"]
    if fix:
        args.append("--fix")
    _uv(ctx, args)


@task
def mypy(ctx: Context) -> None:
    """Type-check the package."""
    _uv(ctx, ["run", "mypy", str(PACKAGE_DIR.relative_to(PROJECT_ROOT))])


@task(help={"reset": "Delete the sandbox vault before recreating it."})
def sandbox(ctx: Context, reset: bool = False) -> None:
    """Create a throwaway vault under ``.sandbox/`` with a few inbox files.

    Point ``DOTBRAIN__VAULT__ROOT`` at the printed path to try the CLI
    without touching a real vault.
    """
    if reset and SANDBOX_VAULT.exists():
        shutil.rmtree(SANDBOX_VAULT)
    inbox = SANDBOX_VAULT / "_Inbox"
    inbox.mkdir(parents=True, exist_ok=True)
    for folder in ("1_Project/Website", "2_Area/Health", "3_Resource", "4_Archive"):
        (SANDBOX_VAULT / folder).mkdir(parents=True, exist_ok=True)
    samples = {
        "meeting-notes.md": "# Website sync\n\nLaunch checklist and next steps.\n",
        "recipe.md": "# Lentil soup\n\nOnion, lentils, stock.\n",
        "duplicate.md": "# Lentil soup\n\nOnion, lentils, stock.\n",
    }
    for name, body in samples.items():
        (inbox / name).write_text(body, encoding="utf-8")
    print(f"export DOTBRAIN__VAULT__ROOT={SANDBOX_VAULT}")


@task
def ci(ctx: Context) -> None:
    """Run lint, type checks, and tests in CI order."""
    ctx.invoke(lint, check_format=True)
    ctx.invoke(mypy)
    ctx.invoke(tests)


namespace = Collection(sync, build, bump, tests, lint, mypy, sandbox, ci)
