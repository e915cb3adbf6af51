"""Shared fixtures for DotBrain tests."""

from __future__ import annotations

from pathlib import Path

import pytest

from dotbrain.vault.layout import VaultLayout
from fakes import RecordingSleep


@pytest.fixture()
def vault(tmp_path: Path) -> VaultLayout:
    layout = VaultLayout(root=tmp_path / "vault")
    layout.ensure_structure()
    return layout


@pytest.fixture()
def sleeper() -> RecordingSleep:
    return RecordingSleep()
