"""
Configuration values and YAML-backed tool settings.
"""

from __future__ import annotations

from copy import deepcopy
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any

try:
    import yaml
except ModuleNotFoundError:  # pragma: no cover - dependency availability
    yaml = None  # type: ignore[assignment]

from .utils import UserError, ensure_file_exists


PAGE_BACKENDS = {"pdftk", "pymupdf"}

DEFAULT_CONFIG: dict[str, Any] = {
    "lilypond": "lilypond",
    "pdftk": "pdftk",
    "pdftops": "pdftops",
    "ps2eps": "ps2eps",
    "epstopdf": "epstopdf",
    "page_backend": "pdftk",
}

CONFIG_KEYS = set(DEFAULT_CONFIG.keys())


class OutputFormat(str, Enum):
    """Final artifact format; the value doubles as the file extension."""

    EPS = "eps"
    PDF = "pdf"

    @property
    def extension(self) -> str:
        return self.value


@dataclass(frozen=True)
class CropSettings:
    """Run mode, built once from the command line and passed explicitly."""

    output_format: OutputFormat = OutputFormat.PDF
    log_enabled: bool = False


@dataclass(frozen=True)
class ToolConfig:
    """Executables for each external stage plus the page count/burst backend."""

    lilypond: str = "lilypond"
    pdftk: str = "pdftk"
    pdftops: str = "pdftops"
    ps2eps: str = "ps2eps"
    epstopdf: str = "epstopdf"
    page_backend: str = "pdftk"


def _require_yaml() -> Any:
    """Return yaml module or raise a user-facing install hint."""

    if yaml is None:
        raise UserError(
            "YAML support requires PyYAML. Install it with 'pip install PyYAML'."
        )
    return yaml


def load_yaml(path: Path) -> dict[str, Any]:
    """Load a YAML file into a dictionary."""

    ensure_file_exists(path, "Config file")
    yaml_mod = _require_yaml()
    try:
        with path.open("r", encoding="utf-8") as handle:
            loaded = yaml_mod.safe_load(handle)
    except yaml_mod.YAMLError as exc:
        raise UserError(f"Failed to parse YAML config {path}: {exc}") from exc
    except OSError as exc:
        raise UserError(f"Failed to read config {path}: {exc}") from exc

    if loaded is None:
        return {}
    if not isinstance(loaded, dict):
        raise UserError(f"Config {path} must contain a YAML mapping/object at top level.")
    return loaded


def deep_merge(base: dict[str, Any], overlay: dict[str, Any]) -> dict[str, Any]:
    """
    Recursively merge dictionaries where overlay values win.
    """

    merged = deepcopy(base)
    for key, value in overlay.items():
        if (
            key in merged
            and isinstance(merged[key], dict)
            and isinstance(value, dict)
        ):
            merged[key] = deep_merge(merged[key], value)
        else:
            merged[key] = deepcopy(value)
    return merged


def validate_keys(cfg: dict[str, Any], allowed: set[str], ctx: str) -> None:
    """
    Validate dictionary keys and fail fast on unknown entries.
    """

    unknown = sorted(key for key in cfg.keys() if key not in allowed)
    if unknown:
        allowed_list = ", ".join(sorted(allowed))
        unknown_list = ", ".join(unknown)
        raise UserError(
            f"Unknown keys in {ctx}: {unknown_list}. Allowed keys: {allowed_list}."
        )


def extract_section(loaded: dict[str, Any]) -> dict[str, Any]:
    """Support either root config keys or a lilycrop wrapper."""

    if "lilycrop" in loaded:
        section = loaded["lilycrop"]
        if not isinstance(section, dict):
            raise UserError("config.lilycrop must be a mapping/object.")
        validate_keys(section, CONFIG_KEYS, "config.lilycrop")
        return section

    validate_keys(loaded, CONFIG_KEYS, "config")
    return loaded


def build_tool_config(config_path: Path | None = None) -> ToolConfig:
    """Resolve defaults < YAML config into an immutable ToolConfig."""

    effective = deep_merge(DEFAULT_CONFIG, {})
    if config_path is not None:
        effective = deep_merge(effective, extract_section(load_yaml(config_path)))

    for key, value in effective.items():
        if not isinstance(value, str) or not value.strip():
            raise UserError(f"config.{key} must be a non-empty string.")

    if effective["page_backend"] not in PAGE_BACKENDS:
        allowed = ", ".join(sorted(PAGE_BACKENDS))
        raise UserError(f"config.page_backend must be one of: {allowed}.")

    return ToolConfig(**effective)


def dump_default_config_yaml() -> str:
    """Serialize wrapped defaults as YAML."""

    yaml_mod = _require_yaml()
    return yaml_mod.safe_dump({"lilycrop": DEFAULT_CONFIG}, sort_keys=False).rstrip()
