"""Layered configuration resolution."""

from __future__ import annotations

from collections.abc import Mapping as MappingABC
from copy import deepcopy
from typing import Any, Dict, Mapping

import yaml
from pydantic import ValidationError

from .exceptions import ConfigError
from .models import DotBrainConfig

ENV_PREFIX = "DOTBRAIN__"


def resolve_with_precedence(
    *,
    defaults: DotBrainConfig,
    file_overrides: Mapping[str, Any] | None = None,
    env_overrides: Mapping[str, Any] | None = None,
    cli_overrides: Mapping[str, Any] | None = None,
) -> DotBrainConfig:
    """Merge configuration layers (defaults < file < environment < CLI) and validate.

    Args:
        defaults: Baseline configuration.
        file_overrides: Values read from the YAML configuration file.
        env_overrides: Nested values decoded from ``DOTBRAIN__`` variables.
        cli_overrides: Dotted-key or nested values supplied on the command line.

    Returns:
        DotBrainConfig: Validated configuration.

    Raises:
        ConfigError: If a layer is malformed or the merged values fail validation.
    """
    merged = defaults.model_dump(mode="python")
    layers = (("file", file_overrides), ("environment", env_overrides), ("cli", cli_overrides))
    for layer_name, layer in layers:
        if layer is None:
            continue
        merged = merge_nested(merged, expand_dotted(layer, source_name=layer_name))

    try:
        return DotBrainConfig.model_validate(merged)
    except ValidationError as exc:
        raise ConfigError(f"Invalid configuration values: {exc}") from exc


def flatten_for_env(config: DotBrainConfig) -> Dict[str, str]:
    """Render the config as ``DOTBRAIN__SECTION__KEY`` environment assignments."""
    flat: Dict[str, str] = {}
    for section, values in config.model_dump(mode="python").items():
        for key, value in values.items():
            env_key = f"{ENV_PREFIX}{section.upper()}__{key.upper()}"
            if isinstance(value, (dict, list)):
                flat[env_key] = yaml.safe_dump(value, default_flow_style=True).strip()
            else:
                flat[env_key] = "null" if value is None else str(value)
    return flat


def decode_env(env: Mapping[str, str]) -> dict[str, Any]:
    """Decode ``DOTBRAIN__`` variables into a nested override mapping."""
    overrides: dict[str, Any] = {}
    for key, raw_value in env.items():
        if not key.startswith(ENV_PREFIX):
            continue
        segments = [segment.lower() for segment in key[len(ENV_PREFIX) :].split("__") if segment]
        if not segments:
            continue
        try:
            value: Any = yaml.safe_load(raw_value)
        except yaml.YAMLError:
            value = raw_value
        _assign(overrides, segments, value, source_name="environment")
    return overrides


def expand_dotted(source: Mapping[str, Any], *, source_name: str) -> dict[str, Any]:
    """Expand ``{"ai.provider": "claude"}`` style keys into nested mappings."""
    if not isinstance(source, MappingABC):
        raise ConfigError(f"{source_name.capitalize()} overrides must be a mapping.")

    result: dict[str, Any] = {}
    for key, value in source.items():
        if not isinstance(key, str):
            raise ConfigError(f"{source_name.capitalize()} override keys must be strings.")
        if isinstance(value, MappingABC):
            value = expand_dotted(value, source_name=source_name)
        _assign(result, key.split("."), value, source_name=source_name)
    return result


def merge_nested(base: Mapping[str, Any], overrides: Mapping[str, Any]) -> dict[str, Any]:
    """Return a deep copy of ``base`` with ``overrides`` merged in."""
    merged = {key: deepcopy(value) for key, value in base.items()}
    for key, value in overrides.items():
        current = merged.get(key)
        if isinstance(value, MappingABC) and isinstance(current, MappingABC):
            merged[key] = merge_nested(current, value)
        else:
            merged[key] = deepcopy(value)
    return merged


def _assign(target: dict[str, Any], path: list[str], value: Any, *, source_name: str) -> None:
    node = target
    for segment in path[:-1]:
        child = node.setdefault(segment, {})
        if not isinstance(child, dict):
            raise ConfigError(
                f"{source_name.capitalize()} override for {'.'.join(path)} "
                "conflicts with existing value."
            )
        node = child
    leaf = path[-1]
    existing = node.get(leaf)
    if isinstance(value, MappingABC) and isinstance(existing, MappingABC):
        node[leaf] = merge_nested(existing, value)
    else:
        node[leaf] = value


__all__ = [
    "ENV_PREFIX",
    "resolve_with_precedence",
    "flatten_for_env",
    "decode_env",
    "expand_dotted",
    "merge_nested",
]
