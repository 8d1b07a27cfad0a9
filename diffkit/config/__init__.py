"""Option handling for the diff engine.

Options are immutable and passed into every call; nothing here is global.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field

DEFAULT_PRESETS_PATH = Path(__file__).with_name("presets.yaml")

_BOOL_TRUE = {"1", "true", "yes", "on"}
_BOOL_FALSE = {"0", "false", "no", "off"}


class DiffOptions(BaseModel):
    """Matching and diff-primitive settings for a single call."""

    model_config = ConfigDict(frozen=True)

    # Matching
    fuzzy: int | None = Field(None, ge=0, le=100)  # radius in lines and % similarity
    ignore_whitespace: bool = False
    ignore_case: bool = False
    stop_on_error: bool = False

    # Diff creation
    context_lines: int = Field(3, ge=0)

    # diff-match-patch tunables
    diff_timeout: float = Field(1.0, ge=0.0)  # seconds, 0 = unlimited
    diff_edit_cost: int = Field(4, ge=0)
    match_threshold: float = Field(0.5, ge=0.0, le=1.0)
    match_distance: int = Field(1000, ge=0)
    patch_delete_threshold: float = Field(0.5, ge=0.0, le=1.0)
    patch_margin: int = Field(4, ge=0)

    @property
    def fuzzy_enabled(self) -> bool:
        return bool(self.fuzzy)


def _read_presets_file(path: str | Path | None) -> dict[str, Any]:
    config_path = Path(path) if path else DEFAULT_PRESETS_PATH
    if not config_path.exists():
        raise FileNotFoundError(f"Preset config not found: {config_path}")
    return yaml.safe_load(config_path.read_text()) or {}


def _env_bool(name: str) -> bool | None:
    value = os.environ.get(name)
    if value is None:
        return None
    value = value.strip().lower()
    if value in _BOOL_TRUE:
        return True
    if value in _BOOL_FALSE:
        return False
    return None


def get_fuzzy_override() -> int | None:
    """Get fuzzy tolerance from DIFFKIT_FUZZY if set."""
    env_val = os.environ.get("DIFFKIT_FUZZY")
    if env_val:
        try:
            return int(env_val)
        except ValueError:
            return None
    return None


def env_overrides() -> dict[str, Any]:
    """Collect option overrides from the environment.

    Supports:
        DIFFKIT_FUZZY - fuzzy tolerance (0-100)
        DIFFKIT_IGNORE_WHITESPACE - true/false
        DIFFKIT_IGNORE_CASE - true/false
    """
    overrides: dict[str, Any] = {}
    fuzzy = get_fuzzy_override()
    if fuzzy is not None:
        overrides["fuzzy"] = fuzzy
    ignore_ws = _env_bool("DIFFKIT_IGNORE_WHITESPACE")
    if ignore_ws is not None:
        overrides["ignore_whitespace"] = ignore_ws
    ignore_case = _env_bool("DIFFKIT_IGNORE_CASE")
    if ignore_case is not None:
        overrides["ignore_case"] = ignore_case
    return overrides


def load_options(
    path: str | Path | None = None,
    preset: str | None = None,
    **overrides: Any,
) -> DiffOptions:
    """Build DiffOptions from a YAML preset file.

    Priority:
        1. Keyword overrides
        2. Environment variables (see ``env_overrides``)
        3. Preset values (DIFFKIT_PRESET > ``preset`` > file default)
        4. DiffOptions defaults

    Args:
        path: Optional override path. Defaults to `diffkit/config/presets.yaml`.
        preset: Optional preset name (strict, tolerant, fuzzy, loose).

    Returns:
        Validated, immutable DiffOptions.
    """
    data = _read_presets_file(path)

    env_preset = os.environ.get("DIFFKIT_PRESET")
    active_preset = env_preset or preset or data.get("preset")

    presets = data.get("presets", {})
    values: dict[str, Any] = {}
    if active_preset:
        if active_preset not in presets:
            available = ", ".join(sorted(presets)) or "none"
            raise ValueError(f"Unknown preset '{active_preset}'. Available: {available}")
        values.update(presets[active_preset] or {})

    values.update(env_overrides())
    values.update({k: v for k, v in overrides.items() if v is not None})
    return DiffOptions(**values)


def available_presets(path: str | Path | None = None) -> list[str]:
    """List available preset names."""
    try:
        data = _read_presets_file(path)
    except FileNotFoundError:
        return []
    return list(data.get("presets", {}).keys())


def resolve_options(options: DiffOptions | None) -> DiffOptions:
    """Return ``options`` or the defaults when None."""
    return options if options is not None else DiffOptions()


__all__ = [
    "DEFAULT_PRESETS_PATH",
    "DiffOptions",
    "available_presets",
    "env_overrides",
    "get_fuzzy_override",
    "load_options",
    "resolve_options",
]
