"""Tests for reconciliation, confirmation handling, and PARA folder moves."""

from __future__ import annotations

from datetime import date
from pathlib import Path

import pytest

from dotbrain.classification.models import (
    Candidate,
    ClassificationResult,
    ConfirmationReason,
    PendingConfirmation,
    ProcessingStatus,
)
from dotbrain.organization.mover import (
    FolderExistsError,
    FolderNotFoundError,
    PARAMover,
    sanitize_name,
)
from dotbrain.organization.reconciler import (
    Commit,
    ConfirmationResolver,
    FolderLocation,
    ReconciliationEngine,
    generate_options,
)
from dotbrain.stats.store import StatisticsStore
from dotbrain.vault.layout import VaultLayout
from dotbrain.vault.models import Frontmatter, NoteSource, NoteStatus, PARACategory
from dotbrain.vault.storage import read_note, write_note


def _result(para: PARACategory, folder: str, **extra) -> ClassificationResult:
    return ClassificationResult(para=para, target_folder=folder, confidence=0.9, **extra)


# ---------------------------------------------------------------------- #
# Reconciliation                                                         #
# ---------------------------------------------------------------------- #


def test_matching_location_commits_frontmatter_in_place(vault: VaultLayout) -> None:
    folder = vault.folder_path(PARACategory.AREA, "Health")
    folder.mkdir()
    note = folder / "sleep.md"
    write_note(note, Frontmatter(created=date(2023, 5, 1), tags=["old"]), "Sleep log\n")
    result = _result(PARACategory.AREA, "Health", tags=["sleep", "habits"], summary="Sleep log")

    decision = ReconciliationEngine().reconcile(
        Candidate.for_path(note), FolderLocation(PARACategory.AREA, "Health"), result
    )

    assert isinstance(decision, Commit)
    assert decision.result.status is ProcessingStatus.CLASSIFIED
    frontmatter, body = read_note(note)
    assert body == "Sleep log\n"
    assert frontmatter.para is PARACategory.AREA
    assert frontmatter.tags == ["habits", "sleep"]
    assert frontmatter.created == date(2023, 5, 1)
    assert frontmatter.status is NoteStatus.ACTIVE
    assert frontmatter.source is NoteSource.IMPORT
    assert frontmatter.summary == "Sleep log"


def test_mismatch_defers_with_primary_and_three_alternatives(vault: VaultLayout) -> None:
    note = vault.folder_path(PARACategory.AREA, "Health") / "plan.md"
    result = _result(PARACategory.RESOURCE, "Guides", tags=["x"])

    decision = ReconciliationEngine().reconcile(
        Candidate.for_path(note),
        FolderLocation(PARACategory.AREA, "Health"),
        result,
        ["Website", "Garden"],
    )

    assert isinstance(decision, PendingConfirmation)
    assert decision.reason is ConfirmationReason.MISCLASSIFIED
    assert decision.primary == result
    assert [option.para for option in decision.alternatives] == [
        PARACategory.PROJECT,
        PARACategory.AREA,
        PARACategory.ARCHIVE,
    ]
    assert all(option.confidence == 0.5 for option in decision.alternatives)
    assert decision.alternatives[0].project == "Website"
    assert decision.alternatives[1].project is None


def test_folder_mismatch_alone_defers() -> None:
    decision = ReconciliationEngine().reconcile(
        Candidate.for_path(Path("/v/2_Area/Health/x.md")),
        FolderLocation(PARACategory.AREA, "Health"),
        _result(PARACategory.AREA, "Fitness"),
    )

    assert isinstance(decision, PendingConfirmation)


def test_inbox_candidates_are_always_deferred() -> None:
    decision = ReconciliationEngine().reconcile(
        Candidate.for_path(Path("/v/_Inbox/x.md")), None, _result(PARACategory.AREA, "Health")
    )

    assert isinstance(decision, PendingConfirmation)
    assert decision.reason is ConfirmationReason.UNFILED


def test_generate_options_without_projects() -> None:
    options = generate_options(_result(PARACategory.PROJECT, "Site", project="Site"), [])

    assert [o.para for o in options] == list(PARACategory)
    assert options[0].project == "Site"
    assert all(o.project is None for o in options[1:])


def test_commit_leaves_non_note_files_untouched(vault: VaultLayout) -> None:
    pdf = vault.para_path(PARACategory.RESOURCE) / "Manuals" / "guide.pdf"
    pdf.parent.mkdir()
    pdf.write_bytes(b"%PDF-1.4")

    decision = ReconciliationEngine().commit(
        Candidate.for_path(pdf), _result(PARACategory.RESOURCE, "Manuals")
    )

    assert decision.result.is_success
    assert decision.frontmatter is None
    assert pdf.read_bytes() == b"%PDF-1.4"


# ---------------------------------------------------------------------- #
# Confirmation                                                           #
# ---------------------------------------------------------------------- #


def _pending(path: Path, result: ClassificationResult) -> PendingConfirmation:
    return PendingConfirmation(
        candidate=Candidate.for_path(path),
        options=generate_options(result, ["Website"]),
        reason=ConfirmationReason.UNFILED,
    )


def test_apply_moves_inbox_note_and_writes_metadata(vault: VaultLayout, tmp_path: Path) -> None:
    source = vault.inbox_path / "soup.md"
    source.write_text("Lentils\n", encoding="utf-8")
    stats = StatisticsStore(tmp_path / "stats.json")
    pending = _pending(source, _result(PARACategory.RESOURCE, "Recipes", tags=["food"]))

    outcome = ConfirmationResolver(vault, statistics=stats).apply(pending)

    destination = vault.folder_path(PARACategory.RESOURCE, "Recipes") / "soup.md"
    assert outcome.target_path == destination
    assert not source.exists()
    frontmatter, body = read_note(destination)
    assert frontmatter.para is PARACategory.RESOURCE
    assert frontmatter.tags == ["food"]
    assert frontmatter.file == "soup.md"
    assert body == "Lentils\n"
    assert stats.read().activity[0].action == "moved"


def test_apply_alternative_and_avoid_overwrite(vault: VaultLayout) -> None:
    existing = vault.para_path(PARACategory.PROJECT) / "Recipes" / "soup.md"
    existing.parent.mkdir()
    existing.write_text("other\n", encoding="utf-8")
    source = vault.inbox_path / "soup.md"
    source.write_text("mine\n", encoding="utf-8")
    pending = _pending(source, _result(PARACategory.RESOURCE, "Recipes"))

    outcome = ConfirmationResolver(vault).apply(pending, 1)

    assert outcome.para is PARACategory.PROJECT
    assert outcome.target_path != existing
    assert outcome.target_path.name.startswith("soup_")
    assert existing.read_text(encoding="utf-8") == "other\n"
    assert read_note(outcome.target_path)[0].project == "Website"


def test_apply_reports_vanished_file(vault: VaultLayout) -> None:
    pending = _pending(vault.inbox_path / "ghost.md", _result(PARACategory.AREA, "Home"))

    outcome = ConfirmationResolver(vault).apply(pending)

    assert outcome.status is ProcessingStatus.ERROR


def test_discard_leaves_file_in_place(vault: VaultLayout) -> None:
    source = vault.inbox_path / "keep.md"
    source.write_text("x", encoding="utf-8")

    ConfirmationResolver(vault).discard(_pending(source, _result(PARACategory.AREA, "Home")))

    assert source.exists()


# ---------------------------------------------------------------------- #
# Folder moves                                                           #
# ---------------------------------------------------------------------- #


def _project_with_notes(vault: VaultLayout, name: str = "Website") -> Path:
    folder = vault.folder_path(PARACategory.PROJECT, name)
    (folder / "drafts").mkdir(parents=True)
    write_note(folder / f"{name}.md", Frontmatter(para=PARACategory.PROJECT), "index\n")
    write_note(folder / "drafts" / "copy.md", Frontmatter(status=NoteStatus.ACTIVE), "copy\n")
    (folder / "logo.png").write_bytes(b"\x89PNG")
    return folder


def test_move_to_archive_updates_notes_and_marks_references(vault: VaultLayout) -> None:
    _project_with_notes(vault)
    log = vault.folder_path(PARACategory.AREA, "Journal") / "log.md"
    log.parent.mkdir()
    log.write_text("Worked on [[Website]] today.\n", encoding="utf-8")

    updated = PARAMover(vault).move_folder("Website", PARACategory.PROJECT, PARACategory.ARCHIVE)

    moved = vault.folder_path(PARACategory.ARCHIVE, "Website")
    assert updated == 2
    assert moved.is_dir()
    assert not vault.folder_path(PARACategory.PROJECT, "Website").exists()
    frontmatter, _ = read_note(moved / "drafts" / "copy.md")
    assert frontmatter.para is PARACategory.ARCHIVE
    assert frontmatter.status is NoteStatus.COMPLETED
    assert log.read_text(encoding="utf-8") == "Worked on [[Website]] (completed) today.\n"


def test_marking_is_idempotent_and_reversible(vault: VaultLayout) -> None:
    note = vault.para_path(PARACategory.AREA) / "refs.md"
    note.write_text("[[Garden]] and [[Garden Shed]]\n", encoding="utf-8")
    mover = PARAMover(vault)

    mover.mark_references("Garden", completed=True)
    mover.mark_references("Garden", completed=True)
    assert note.read_text(encoding="utf-8") == "[[Garden]] (completed) and [[Garden Shed]]\n"

    mover.mark_references("Garden", completed=False)
    assert note.read_text(encoding="utf-8") == "[[Garden]] and [[Garden Shed]]\n"


def test_move_out_of_archive_reactivates(vault: VaultLayout) -> None:
    folder = vault.folder_path(PARACategory.ARCHIVE, "Garden")
    folder.mkdir()
    write_note(folder / "plan.md", Frontmatter(status=NoteStatus.COMPLETED), "plan\n")
    ref = vault.para_path(PARACategory.RESOURCE) / "ref.md"
    ref.write_text("See [[Garden]] (completed)\n", encoding="utf-8")

    PARAMover(vault).move_folder("Garden", PARACategory.ARCHIVE, PARACategory.AREA)

    frontmatter, _ = read_note(vault.folder_path(PARACategory.AREA, "Garden") / "plan.md")
    assert frontmatter.status is NoteStatus.ACTIVE
    assert frontmatter.para is PARACategory.AREA
    assert ref.read_text(encoding="utf-8") == "See [[Garden]]\n"


def test_move_collision_adds_timestamp_suffix(vault: VaultLayout) -> None:
    _project_with_notes(vault)
    vault.folder_path(PARACategory.AREA, "Website").mkdir()

    PARAMover(vault).move_folder("Website", PARACategory.PROJECT, PARACategory.AREA)

    names = sorted(p.name for p in vault.para_path(PARACategory.AREA).iterdir())
    assert names[0] == "Website"
    assert names[1].startswith("Website_") and names[1][len("Website_") :].isdigit()


def test_move_collision_can_fail_instead(vault: VaultLayout) -> None:
    _project_with_notes(vault)
    vault.folder_path(PARACategory.AREA, "Website").mkdir()

    with pytest.raises(FolderExistsError):
        PARAMover(vault, on_conflict="error").move_folder(
            "Website", PARACategory.PROJECT, PARACategory.AREA
        )

    assert vault.folder_path(PARACategory.PROJECT, "Website").is_dir()


def test_move_missing_folder_raises(vault: VaultLayout) -> None:
    with pytest.raises(FolderNotFoundError) as info:
        PARAMover(vault).move_folder("Nope", PARACategory.AREA, PARACategory.ARCHIVE)

    assert "Nope" in str(info.value)
    assert info.value.category is PARACategory.AREA


def test_list_folders_counts_entries_and_reads_summary(vault: VaultLayout) -> None:
    folder = _project_with_notes(vault)
    write_note(folder / "Website.md", Frontmatter(summary="Relaunch"), "")
    vault.folder_path(PARACategory.PROJECT, ".cache").mkdir()

    [summary] = PARAMover(vault).list_folders(PARACategory.PROJECT)

    assert summary.name == "Website"
    assert summary.file_count == 2
    assert summary.summary == "Relaunch"


def test_sanitize_name() -> None:
    assert sanitize_name("../a/./b/c/d") == "a/b/c"
    assert sanitize_name(" bad\x00name ") == "badname"
    assert sanitize_name("x" * 300) == "x" * 255
    assert sanitize_name("..") == ""


def test_archiving_into_existing_name_suffixes_and_completes(vault: VaultLayout) -> None:
    alpha = vault.folder_path(PARACategory.AREA, "Alpha")
    alpha.mkdir()
    write_note(alpha / "a.md", Frontmatter(status=NoteStatus.ACTIVE), "a\n")
    existing = vault.folder_path(PARACategory.ARCHIVE, "Alpha")
    existing.mkdir()
    write_note(existing / "old.md", Frontmatter(status=NoteStatus.COMPLETED), "old\n")

    PARAMover(vault).move_folder("Alpha", PARACategory.AREA, PARACategory.ARCHIVE)

    [suffixed] = [
        p for p in vault.para_path(PARACategory.ARCHIVE).iterdir() if p.name != "Alpha"
    ]
    assert suffixed.name.startswith("Alpha_")
    assert read_note(suffixed / "a.md")[0].status is NoteStatus.COMPLETED
    assert read_note(existing / "old.md")[1] == "old\n"
