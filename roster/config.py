"""Configuration management for the roster registry."""
from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional, Tuple

import yaml

from .database import resolve_database_path
from .view import DEFAULT_PAGE_SIZE, PAGE_SIZE_OPTIONS


def env_flag(value: Optional[str], default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _positive_int(value: object, key: str) -> int:
    if isinstance(value, bool):
        raise ValueError(f"'{key}' must be a positive integer")
    try:
        number = int(value)  # type: ignore[arg-type]
    except (TypeError, ValueError) as exc:
        raise ValueError(f"'{key}' must be a positive integer") from exc
    if number < 1:
        raise ValueError(f"'{key}' must be a positive integer")
    return number


@dataclass(frozen=True)
class RosterConfig:
    """Runtime settings for the registry."""

    database_path: Path
    page_size: int = DEFAULT_PAGE_SIZE
    page_size_options: Tuple[int, ...] = PAGE_SIZE_OPTIONS

    @staticmethod
    def from_dict(
        data: Dict[str, object],
        *,
        base_path: Path | None = None,
        env_database_path: Optional[str] = None,
    ) -> "RosterConfig":
        """Create a :class:`RosterConfig` from raw dictionary data.

        ``env_database_path`` takes priority over the ``database.path`` key.
        Relative database paths are resolved against ``base_path``.
        """

        database_section = data.get("database") or {}
        view_section = data.get("view") or {}
        if not isinstance(database_section, dict):
            raise ValueError("'database' must be a mapping")
        if not isinstance(view_section, dict):
            raise ValueError("'view' must be a mapping")

        raw_path = database_section.get("path")
        if env_database_path:
            database_path = resolve_database_path(env_database_path)
        elif raw_path:
            candidate = Path(str(raw_path)).expanduser()
            if not candidate.is_absolute() and base_path is not None:
                candidate = base_path / candidate
            database_path = candidate.resolve(strict=False)
        else:
            database_path = resolve_database_path(None)

        raw_options = view_section.get("page_size_options", PAGE_SIZE_OPTIONS)
        if not isinstance(raw_options, (list, tuple)) or not raw_options:
            raise ValueError("'view.page_size_options' must be a non-empty list")
        options = tuple(_positive_int(item, "view.page_size_options") for item in raw_options)

        page_size = _positive_int(view_section.get("page_size", options[0]), "view.page_size")

        return RosterConfig(
            database_path=database_path,
            page_size=page_size,
            page_size_options=options,
        )


def resolve_config_path(env_value: Optional[str]) -> Path:
    """Resolve the path to the optional YAML configuration file."""
    if env_value:
        return Path(env_value).expanduser().resolve(strict=False)
    return (Path(__file__).resolve().parent.parent / "config" / "roster.yaml").resolve(strict=False)


def load_config(config_path: Path | None = None) -> RosterConfig:
    """Load settings from YAML, falling back to defaults when the file is absent."""

    path = config_path or resolve_config_path(os.getenv("ROSTER_CONFIG"))
    env_database_path = os.getenv("ROSTER_DB_PATH")

    if not path.exists():
        return RosterConfig.from_dict({}, env_database_path=env_database_path)

    with path.open("r", encoding="utf-8") as handle:
        raw = yaml.safe_load(handle) or {}
    if not isinstance(raw, dict):
        raise ValueError("Configuration file must contain a mapping at the top level")

    return RosterConfig.from_dict(raw, base_path=path.parent, env_database_path=env_database_path)


__all__ = ["RosterConfig", "env_flag", "load_config", "resolve_config_path"]
