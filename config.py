"""
config.py

Typed configuration loading and validation for Beatmap Marathon.

Design goals
- Load at most one UTF-8 JSON config file
- Validate with pydantic (defaults included)
- Support environment variable overrides
- No other I/O beyond reading the config file (no directory creation)

Config file location
- If MARATHON_CONFIG_PATH is set, that file is used.
- Otherwise these paths are searched in order and the first one that exists is used:
  1) ./marathon_config.json (current working directory)
  2) <user config dir>/BeatmapMarathon/marathon_config.json
  3) <user config dir>/BeatmapMarathon/config.json
- When none exists, defaults are used.

Example config file (marathon_config.json)
{
  "merge": {
    "default_gap_ms": 2000.0,
    "mode": "gap"
  },
  "output": {
    "directory": "./marathons",
    "file_name_suffix": " Marathon"
  },
  "logging": {
    "level": "INFO"
  }
}
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Callable, Dict, List, Literal, Optional, Tuple

from platformdirs import user_config_dir
from pydantic import BaseModel, Field, ValidationError, field_validator


class MergeConfig(BaseModel):
    default_gap_ms: float = Field(default=0.0, ge=0.0, description="Gap inserted between consecutive beatmaps.")
    mode: Literal["gap", "transitions"] = Field(
        default="gap",
        description="gap: one uniform gap. transitions: explicit per-pair gaps from the command line.",
    )

    @field_validator("mode", mode="before")
    @classmethod
    def normalize_mode(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().lower()
        return value


class OutputConfig(BaseModel):
    directory: Optional[str] = Field(default=None, description="Directory for merged beatmaps. Defaults to the first input's directory.")
    file_name_suffix: str = Field(default=" Marathon", description="Appended to the first input's file stem.")

    @field_validator("directory")
    @classmethod
    def normalize_directory(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        trimmed = value.strip()
        return trimmed or None


class LoggingConfig(BaseModel):
    level: str = Field(default="WARNING", description="DEBUG, INFO, WARNING, ERROR or CRITICAL")
    format: str = Field(default="%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    @field_validator("level")
    @classmethod
    def validate_level(cls, value: str) -> str:
        normalized = (value or "").strip().upper()
        allowed = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if normalized not in allowed:
            raise ValueError("level must be one of: DEBUG, INFO, WARNING, ERROR, CRITICAL")
        return normalized


class AppConfig(BaseModel):
    merge: MergeConfig = Field(default_factory=MergeConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


def _default_config_candidates() -> List[Path]:
    config_directory = Path(user_config_dir("BeatmapMarathon", "BeatmapMarathon"))
    return [
        Path.cwd() / "marathon_config.json",
        config_directory / "marathon_config.json",
        config_directory / "config.json",
    ]


def _resolve_config_path() -> Optional[Path]:
    env_path = os.environ.get("MARATHON_CONFIG_PATH", "").strip()
    if env_path:
        return Path(env_path)
    return next((path for path in _default_config_candidates() if path.exists()), None)


def _load_config_document(config_path: Path) -> Dict[str, Any]:
    """Read a config file into a dict. A missing file propagates FileNotFoundError."""
    try:
        document = json.loads(config_path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exception:
        raise ValueError(f"Config file is not valid JSON: {config_path} ({exception})") from exception
    except UnicodeDecodeError as exception:
        raise ValueError(f"Config file is not UTF-8: {config_path}") from exception

    if not isinstance(document, dict):
        raise ValueError(f"Config file must hold a JSON object at the top level: {config_path}")
    return document


# (environment variable, config section, field, converter)
_ENVIRONMENT_OVERRIDES: Tuple[Tuple[str, str, str, Callable[[str], Any]], ...] = (
    ("MARATHON_DEFAULT_GAP_MS", "merge", "default_gap_ms", float),
    ("MARATHON_MODE", "merge", "mode", str),
    ("MARATHON_OUTPUT_DIR", "output", "directory", str),
    ("MARATHON_LOG_LEVEL", "logging", "level", str),
)


def _apply_environment_overrides(document: Dict[str, Any]) -> Dict[str, Any]:
    """
    Return a copy of the config document with MARATHON_* variables laid over it.

    Blank variables are skipped. A gap that does not parse as a number is skipped too,
    so a stray shell variable cannot stop the tool from starting.
    """
    merged = {name: dict(section) if isinstance(section, dict) else section for name, section in document.items()}

    for env_name, section_name, field_name, convert in _ENVIRONMENT_OVERRIDES:
        raw_value = os.environ.get(env_name, "").strip()
        if not raw_value:
            continue
        try:
            value = convert(raw_value)
        except ValueError:
            continue
        section = merged.get(section_name)
        if not isinstance(section, dict):
            section = merged[section_name] = {}
        section[field_name] = value

    return merged


def load_config(config_path: Optional[Path] = None) -> Tuple[AppConfig, Optional[Path]]:
    """
    Build the effective AppConfig.

    Returns the config and the file it came from (None when only defaults and
    environment variables were used). Raises ValueError when validation fails.
    """
    source_path = config_path if config_path is not None else _resolve_config_path()
    document = _load_config_document(source_path) if source_path is not None else {}

    try:
        app_config = AppConfig.model_validate(_apply_environment_overrides(document))
    except ValidationError as exception:
        source = source_path if source_path is not None else "defaults and environment"
        raise ValueError(f"Config validation failed for {source}:\n{exception}") from exception

    return app_config, source_path


def to_json(config: AppConfig) -> str:
    return json.dumps(config.model_dump(), ensure_ascii=False, indent=2)


def main() -> int:
    """Print the effective configuration as JSON. Exit code 2 when it cannot be loaded."""
    try:
        app_config, source_path = load_config()
    except (OSError, ValueError) as exception:
        payload: Dict[str, Any] = {"ok": False, "error": str(exception)}
        exit_code = 2
    else:
        payload = {
            "ok": True,
            "config_path": None if source_path is None else str(source_path),
            "config": app_config.model_dump(),
        }
        exit_code = 0

    print(json.dumps(payload, ensure_ascii=False, indent=2))
    return exit_code


if __name__ == "__main__":
    raise SystemExit(main())
