"""Tests for inbox discovery, content extraction, and deduplication."""

from pathlib import Path

import pytest
from PIL import Image

from dotbrain.classification.models import ProcessingStatus
from dotbrain.ingestion import dedup as dedup_module
from dotbrain.ingestion.dedup import ContentDeduplicator, HashComputer
from dotbrain.ingestion.discovery import InboxScanner, scan_folder, should_include
from dotbrain.ingestion.extractors import ContentExtractor
from dotbrain.stats.store import StatisticsStore
from dotbrain.vault.layout import VaultLayout
from dotbrain.vault.models import PARACategory
from dotbrain.vault.storage import read_note


def test_should_include_filters_system_and_temp_files() -> None:
    assert should_include("notes.md")
    assert should_include("archive.tar.gz")
    for name in (".DS_Store", "Thumbs.db", ".hidden", "_draft.md", "upload.part", "x.SWP"):
        assert not should_include(name), name


def test_inbox_scanner_lists_sorted_visible_entries(vault: VaultLayout) -> None:
    inbox = vault.inbox_path
    (inbox / "b.md").write_text("b", encoding="utf-8")
    (inbox / "a.txt").write_text("a", encoding="utf-8")
    (inbox / "folder").mkdir()
    (inbox / ".DS_Store").write_text("", encoding="utf-8")
    (inbox / "download.tmp").write_text("", encoding="utf-8")

    names = [path.name for path in InboxScanner(vault).scan()]

    assert names == ["a.txt", "b.md", "folder"]


def test_inbox_scanner_skips_symlinks_leaving_the_vault(vault: VaultLayout, tmp_path: Path) -> None:
    outside = tmp_path / "outside.md"
    outside.write_text("x", encoding="utf-8")
    inside = vault.para_path(PARACategory.RESOURCE) / "inside.md"
    inside.write_text("y", encoding="utf-8")
    (vault.inbox_path / "escape.md").symlink_to(outside)
    (vault.inbox_path / "local.md").symlink_to(inside)

    names = [path.name for path in InboxScanner(vault).scan()]

    assert names == ["local.md"]


def test_scan_folder_excludes_index_note_and_nested_dirs(vault: VaultLayout) -> None:
    folder = vault.folder_path(PARACategory.AREA, "Health")
    (folder / "nested").mkdir(parents=True)
    (folder / "Health.md").write_text("index", encoding="utf-8")
    (folder / "sleep.md").write_text("zzz", encoding="utf-8")
    (folder / "_private.md").write_text("no", encoding="utf-8")

    assert [p.name for p in scan_folder(folder)] == ["sleep.md"]
    assert scan_folder(folder / "missing") == []


def test_extractor_truncates_text(tmp_path: Path) -> None:
    path = tmp_path / "long.txt"
    path.write_text("x" * 50, encoding="utf-8")

    assert ContentExtractor(max_chars=10).extract(path) == "x" * 10


def test_extractor_describes_images_with_dimensions(tmp_path: Path) -> None:
    path = tmp_path / "photo.png"
    Image.new("RGB", (12, 8)).save(path)

    description = ContentExtractor().extract(path)

    assert description.startswith("[binary file: photo.png (image/png")
    assert "12x8" in description


def test_extractor_detects_nul_bytes_and_missing_files(tmp_path: Path) -> None:
    blob = tmp_path / "blob.dat"
    blob.write_bytes(b"abc\0def")

    extractor = ContentExtractor()

    assert extractor.extract(blob).startswith("[binary file: blob.dat")
    assert extractor.extract(tmp_path / "gone.txt") == "[unreadable: gone.txt]"


def test_hash_ignores_frontmatter_for_notes(tmp_path: Path) -> None:
    first = tmp_path / "a.md"
    second = tmp_path / "b.md"
    first.write_text("---\ntags: [x]\n---\nSame body\n", encoding="utf-8")
    second.write_text("Same body", encoding="utf-8")

    hasher = HashComputer()

    assert hasher.compute(first) == hasher.compute(second)


def test_hash_of_unreadable_file_is_unique(tmp_path: Path) -> None:
    hasher = HashComputer()
    missing = tmp_path / "missing.bin"

    assert hasher.compute(missing) != hasher.compute(missing)


def test_deduplicate_merges_tags_and_deletes_later_copy(tmp_path: Path) -> None:
    first = tmp_path / "a.md"
    second = tmp_path / "b.md"
    first.write_text("---\ntags: [x]\n---\nHello\n", encoding="utf-8")
    second.write_text("---\ntags: [y]\n---\nHello\n", encoding="utf-8")
    stats = StatisticsStore(tmp_path / "stats.json")

    outcome = ContentDeduplicator(statistics=stats).deduplicate([first, second])

    assert outcome.unique == [first]
    assert not second.exists()
    frontmatter, body = read_note(first)
    assert frontmatter.tags == ["x", "y"]
    assert body == "Hello\n"
    [record] = outcome.results
    assert record.status is ProcessingStatus.DEDUPLICATED
    assert record.file_name == "b.md"
    assert record.target_path == first
    snapshot = stats.read()
    assert snapshot.duplicates_found == 1
    assert snapshot.activity[0].action == "deduplicated"


def test_merge_tags_skips_write_when_nothing_changes(tmp_path: Path) -> None:
    source = tmp_path / "s.md"
    target = tmp_path / "t.md"
    source.write_text("---\ntags: [x]\n---\nbody\n", encoding="utf-8")
    original = "---\ntags: [x, z]\n---\nbody\n"
    target.write_text(original, encoding="utf-8")

    changed = ContentDeduplicator().merge_tags(source=source, target=target)

    assert changed is False
    assert target.read_text(encoding="utf-8") == original


def test_binary_duplicates_are_removed_without_tag_merge(tmp_path: Path) -> None:
    first = tmp_path / "one.bin"
    second = tmp_path / "two.bin"
    first.write_bytes(b"\x00\x01")
    second.write_bytes(b"\x00\x01")

    outcome = ContentDeduplicator().deduplicate([first, second], category=PARACategory.RESOURCE)

    assert outcome.unique == [first]
    assert outcome.results[0].para is PARACategory.RESOURCE
    assert not second.exists()


def test_second_deduplication_pass_is_a_no_op(tmp_path: Path) -> None:
    first = tmp_path / "a.md"
    second = tmp_path / "b.md"
    first.write_text("---\ntags: [x]\n---\nSame\n", encoding="utf-8")
    second.write_text("---\ntags: [y]\n---\nSame\n", encoding="utf-8")
    deduplicator = ContentDeduplicator()
    deduplicator.deduplicate([first, second])
    after_first = first.read_text(encoding="utf-8")

    outcome = deduplicator.deduplicate([first])

    assert outcome.unique == [first]
    assert outcome.results == []
    assert first.read_text(encoding="utf-8") == after_first


def test_failed_tag_merge_keeps_duplicate(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    first = tmp_path / "a.md"
    second = tmp_path / "b.md"
    first.write_text("---\ntags: [x]\n---\nSame\n", encoding="utf-8")
    second.write_text("---\ntags: [y]\n---\nSame\n", encoding="utf-8")
    stats = StatisticsStore(tmp_path / "stats.json")

    def _disk_full(*_args: object, **_kwargs: object) -> None:
        raise OSError("disk full")

    monkeypatch.setattr(dedup_module, "write_note", _disk_full)

    outcome = ContentDeduplicator(statistics=stats).deduplicate([first, second])

    assert second.exists()
    assert read_note(second)[0].tags == ["y"]
    assert outcome.unique == [first]
    [record] = outcome.results
    assert record.status is ProcessingStatus.ERROR
    assert "disk full" in record.message
    assert stats.read().duplicates_found == 0


def test_deduplication_stops_before_the_next_file(tmp_path: Path) -> None:
    files = []
    for name in ("a.md", "b.md", "c.md"):
        path = tmp_path / name
        path.write_text("Same", encoding="utf-8")
        files.append(path)
    checks = iter([False, True, True])

    outcome = ContentDeduplicator().deduplicate(files, should_stop=lambda: next(checks))

    assert outcome.stopped
    assert outcome.unique == files[:1]
    assert outcome.results == []
    assert all(path.exists() for path in files)
