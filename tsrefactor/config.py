"""Configuration loading for tsrefactor (.tsrefactor.yml)."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import yaml

CONFIG_FILENAME = ".tsrefactor.yml"

DEFAULT_EXTENSIONS = (".ts", ".tsx")
DEFAULT_SKIP_DIRS = ("node_modules", "dist", ".next", "coverage")
DEFAULT_MAX_FILES = 5000
DEFAULT_MAX_FILE_SIZE = 1024 * 1024
DEFAULT_BATCH_SIZE = 50


class ConfigError(RuntimeError):
    """Raised when the configuration file cannot be parsed."""


@dataclass
class AnalysisConfig:
    """Which files are analyzed and which detectors run."""

    extensions: List[str] = field(default_factory=lambda: list(DEFAULT_EXTENSIONS))
    skip_dirs: List[str] = field(default_factory=lambda: list(DEFAULT_SKIP_DIRS))
    ignore_tests: bool = True
    include_types: bool = True


@dataclass
class LimitsConfig:
    """Resource guards applied while extracting signatures."""

    max_files: int = DEFAULT_MAX_FILES
    max_file_size: int = DEFAULT_MAX_FILE_SIZE
    batch_size: int = DEFAULT_BATCH_SIZE


@dataclass
class RefactorConfig:
    """Represents the settings defined in .tsrefactor.yml."""

    root: Path
    lib_path: Optional[str] = None
    analysis: AnalysisConfig = field(default_factory=AnalysisConfig)
    limits: LimitsConfig = field(default_factory=LimitsConfig)
    exclude_paths: List[str] = field(default_factory=list)


def load_config(config_path: Path) -> RefactorConfig:
    """Load configuration from disk, falling back to defaults when absent."""
    config_file = _resolve_config_path(config_path)
    root = config_file.parent.resolve()

    if not config_file.exists():
        return RefactorConfig(root=root)

    data = _read_config(config_file)
    if not isinstance(data, dict):
        raise ConfigError(f"{CONFIG_FILENAME} must contain a mapping at the root")

    analysis_data = _as_dict(data.get("analysis"))
    analysis = AnalysisConfig()
    if analysis_data:
        extensions = _as_str_list(analysis_data.get("extensions"))
        if extensions:
            analysis.extensions = [_normalise_extension(ext) for ext in extensions]
        skip_dirs = _as_str_list(analysis_data.get("skip_dirs"))
        if skip_dirs:
            analysis.skip_dirs = skip_dirs
        ignore_tests = _as_bool(analysis_data.get("ignore_tests"))
        if ignore_tests is not None:
            analysis.ignore_tests = ignore_tests
        include_types = _as_bool(analysis_data.get("include_types"))
        if include_types is not None:
            analysis.include_types = include_types

    limits_data = _as_dict(data.get("limits"))
    limits = LimitsConfig()
    if limits_data:
        limits.max_files = _as_positive_int(limits_data.get("max_files"), "max_files") or limits.max_files
        limits.max_file_size = (
            _as_positive_int(limits_data.get("max_file_size"), "max_file_size") or limits.max_file_size
        )
        limits.batch_size = _as_positive_int(limits_data.get("batch_size"), "batch_size") or limits.batch_size

    return RefactorConfig(
        root=root,
        lib_path=_as_str(data.get("lib_path")),
        analysis=analysis,
        limits=limits,
        exclude_paths=_as_str_list(data.get("exclude_paths")),
    )


def _resolve_config_path(config_path: Path) -> Path:
    config_path = config_path.expanduser()
    if config_path.is_dir():
        return (config_path / CONFIG_FILENAME).resolve()
    if config_path.name != CONFIG_FILENAME:
        return (config_path.parent / CONFIG_FILENAME).resolve()
    return config_path.resolve()


def _read_config(path: Path) -> Any:
    text = path.read_text(encoding="utf-8")
    if not text.strip():
        return {}
    try:
        loaded = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Failed to parse {path.name}: {exc}") from exc
    return {} if loaded is None else loaded


def _normalise_extension(value: str) -> str:
    value = value.strip().lower()
    return value if value.startswith(".") else f".{value}"


def _as_dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _as_str(value: Any) -> Optional[str]:
    return str(value) if isinstance(value, (str, int, float)) and not isinstance(value, bool) else None


def _as_positive_int(value: Any, key: str) -> Optional[int]:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, str)):
        raise ConfigError(f"limits.{key} must be a positive integer")
    try:
        number = int(value)
    except ValueError as exc:
        raise ConfigError(f"limits.{key} must be a positive integer") from exc
    if number <= 0:
        raise ConfigError(f"limits.{key} must be a positive integer")
    return number


def _as_bool(value: Any) -> Optional[bool]:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in {"true", "yes", "1"}:
            return True
        if lowered in {"false", "no", "0"}:
            return False
    return None


def _as_str_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if isinstance(value, Sequence):
        return [str(item) for item in value if isinstance(item, (str, int, float)) and not isinstance(item, bool)]
    return []


__all__ = [
    "AnalysisConfig",
    "CONFIG_FILENAME",
    "ConfigError",
    "LimitsConfig",
    "RefactorConfig",
    "load_config",
]
