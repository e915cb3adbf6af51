"""Configuration management for DotBrain."""

from __future__ import annotations

import os
import textwrap
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Mapping

import yaml

from dotbrain.vault.storage import atomic_write_text

from .exceptions import ConfigError
from .models import DotBrainConfig
from .resolver import (
    decode_env,
    expand_dotted,
    flatten_for_env,
    merge_nested,
    resolve_with_precedence,
)

DEFAULT_STATE_DIR = Path("~/.dotbrain")
DEFAULT_CONFIG_PATH = DEFAULT_STATE_DIR / "config.yaml"
_CONFIG_HEADER = textwrap.dedent(
    """\
    # DotBrain configuration file
    # Generated automatically; manage via `dotbrain config set` or edit by hand.
    """
)


class ConfigManager:
    """Load and persist configuration data, applying precedence rules."""

    def __init__(
        self,
        config_path: Path | None = None,
        *,
        env: Mapping[str, str] | None = None,
    ) -> None:
        self._config_path = (config_path or DEFAULT_CONFIG_PATH).expanduser()
        self._env = env if env is not None else os.environ

    @property
    def config_path(self) -> Path:
        """Return the resolved configuration path."""
        return self._config_path

    @property
    def state_dir(self) -> Path:
        """Directory holding the config file, logs, and statistics."""
        return self._config_path.parent

    def load(
        self,
        *,
        cli_overrides: Mapping[str, Any] | None = None,
        include_env: bool = True,
        ensure_file: bool = True,
    ) -> DotBrainConfig:
        """Load configuration from disk and the environment.

        Args:
            cli_overrides: Highest-precedence overrides, dotted keys allowed.
            include_env: Whether ``DOTBRAIN__`` environment variables apply.
            ensure_file: Create a default file first when none exists.

        Returns:
            DotBrainConfig: The resolved configuration.

        Raises:
            ConfigError: If the file or the merged values are invalid.
        """
        if ensure_file:
            self.ensure_exists()

        env_data = decode_env(self._env) if include_env else None
        return resolve_with_precedence(
            defaults=DotBrainConfig(),
            file_overrides=self._read_file(),
            env_overrides=env_data or None,
            cli_overrides=cli_overrides,
        )

    def save(self, config: DotBrainConfig | Mapping[str, Any]) -> None:
        """Persist configuration data to disk."""
        if isinstance(config, DotBrainConfig):
            data = config.model_dump(mode="python")
        else:
            data = dict(config)
        self._write_file(data)

    def set_value(self, dotted_key: str, raw_value: str) -> DotBrainConfig:
        """Update one setting in the configuration file.

        Args:
            dotted_key: Setting path such as ``ai.provider``.
            raw_value: YAML scalar text to assign.

        Returns:
            DotBrainConfig: Configuration resolved from the updated file.

        Raises:
            ConfigError: If the value does not validate.
        """
        try:
            value = yaml.safe_load(raw_value)
        except yaml.YAMLError:
            value = raw_value
        updated = merge_nested(
            self._read_file(), expand_dotted({dotted_key: value}, source_name="cli")
        )
        config = resolve_with_precedence(defaults=DotBrainConfig(), file_overrides=updated)
        self._write_file(updated)
        return config

    def ensure_exists(self) -> Path:
        """Create a configuration file with defaults if one does not exist."""
        if not self._config_path.exists():
            self._write_file(DotBrainConfig().model_dump(mode="python"))
        return self._config_path

    def read_text(self) -> str:
        """Return the current configuration file contents."""
        if not self._config_path.exists():
            return ""
        return self._config_path.read_text(encoding="utf-8")

    # Internal helpers -------------------------------------------------

    def _read_file(self) -> dict[str, Any]:
        if not self._config_path.exists():
            return {}

        try:
            raw = yaml.safe_load(self._config_path.read_text(encoding="utf-8")) or {}
        except yaml.YAMLError as exc:
            raise ConfigError(f"Failed to parse configuration file: {exc}") from exc

        if not isinstance(raw, dict):
            raise ConfigError("Configuration file must contain a mapping at the top level.")
        return raw

    def _write_file(self, data: Mapping[str, Any]) -> None:
        stamp = datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")
        serialized = yaml.safe_dump(dict(data), sort_keys=False)
        atomic_write_text(
            self._config_path, f"{_CONFIG_HEADER}# Last updated: {stamp}\n{serialized}"
        )


__all__ = [
    "ConfigManager",
    "DEFAULT_CONFIG_PATH",
    "DEFAULT_STATE_DIR",
    "DotBrainConfig",
    "resolve_with_precedence",
    "flatten_for_env",
    "ConfigError",
]
