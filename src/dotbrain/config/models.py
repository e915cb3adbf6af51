"""Configuration models describing DotBrain settings."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class DotBrainBaseModel(BaseModel):
    """Shared configuration for DotBrain Pydantic models."""

    model_config = ConfigDict(extra="forbid")


class VaultSettings(DotBrainBaseModel):
    """Location of the PARA vault.

    Attributes:
        root: Vault root directory containing the inbox and category folders.
        inbox_dirname: Name of the inbox directory under the root.
    """

    root: str = "~/DotBrain"
    inbox_dirname: str = "_Inbox"


class AISettings(DotBrainBaseModel):
    """Classification provider options.

    Attributes:
        provider: Default provider when none was selected at runtime.
        max_retries: Attempts made against the primary provider per request.
        backoff_base_seconds: Delay before the second attempt; doubles afterwards.
        timeout_seconds: HTTP timeout for a single provider call.
        fast_max_tokens: Output budget for fast-tier requests.
        precise_max_tokens: Output budget for precise-tier requests.
        batch_size: Files classified per fast-tier request.
        confidence_threshold: Fast results below this are re-checked with the precise tier.
    """

    provider: Literal["gemini", "claude"] = "gemini"
    max_retries: int = Field(default=3, ge=1)
    backoff_base_seconds: float = Field(default=1.0, ge=0)
    timeout_seconds: float = Field(default=60.0, gt=0)
    fast_max_tokens: int = 4_096
    precise_max_tokens: int = 2_048
    batch_size: int = Field(default=10, ge=1)
    confidence_threshold: float = Field(default=0.8, ge=0, le=1)


class ProcessingOptions(DotBrainBaseModel):
    """Options governing scanning and content extraction.

    Attributes:
        extract_max_chars: Maximum characters of content sent for classification.
        large_file_mb: Size above which inbox files are logged as large.
    """

    extract_max_chars: int = Field(default=5_000, ge=1)
    large_file_mb: int = 100


class WatchSettings(DotBrainBaseModel):
    """Inbox watch behaviour.

    Attributes:
        debounce_seconds: Quiet period before the change callback fires.
    """

    debounce_seconds: float = Field(default=2.0, gt=0)


class LoggingSettings(DotBrainBaseModel):
    """Runtime logging configuration.

    Attributes:
        level: Logging verbosity level.
        max_size_mb: Maximum log size before rotation.
        backup_count: Number of historical log files to retain.
    """

    level: str = "WARNING"
    max_size_mb: int = 10
    backup_count: int = 5


class CLIOptions(DotBrainBaseModel):
    """CLI behavior defaults and presentation preferences.

    Attributes:
        quiet_default: Whether commands suppress non-error output by default.
        summary_default: Whether commands only print summary lines by default.
    """

    quiet_default: bool = False
    summary_default: bool = False


class DotBrainConfig(DotBrainBaseModel):
    """Top-level configuration struct for DotBrain."""

    vault: VaultSettings = Field(default_factory=VaultSettings)
    ai: AISettings = Field(default_factory=AISettings)
    processing: ProcessingOptions = Field(default_factory=ProcessingOptions)
    watch: WatchSettings = Field(default_factory=WatchSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    cli: CLIOptions = Field(default_factory=CLIOptions)


__all__ = [
    "DotBrainBaseModel",
    "VaultSettings",
    "AISettings",
    "ProcessingOptions",
    "WatchSettings",
    "LoggingSettings",
    "CLIOptions",
    "DotBrainConfig",
]
