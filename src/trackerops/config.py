from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, cast

import yaml

from .errors import FatalSetupError
from .github_rest import DEFAULT_API_URL, DEFAULT_PER_PAGE

CONFIG_DEFAULT = "trackerops.config.yaml"
MILESTONE_STATES = ("open", "closed", "all")


class ConfigError(FatalSetupError):
    pass


@dataclass
class TrackerConfig:
    source_file: Path | None
    github_repo: str | None
    api_url: str
    milestone_state: str
    milestone_per_page: int
    label_catalog_file: Path | None
    # Logging configuration
    logging_json_enabled: bool
    logging_level: str
    # Environment authentication configuration
    env_auth_load_dotenv: bool
    env_auth_dotenv_path: str | None


def default_config() -> TrackerConfig:
    return _build(cast(dict[str, Any], {}), None)


def load_config(path: str | Path, *, required: bool = True) -> TrackerConfig:
    """Load a YAML config file.

    With ``required=False`` a missing file yields the built-in defaults;
    the CLI uses that for the implicit default path only.
    """
    p = Path(path)
    if not p.exists():
        if required:
            raise ConfigError(f"Configuration file not found: {p}")
        return default_config()
    try:
        raw = yaml.safe_load(p.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as exc:
        raise ConfigError(f"Invalid YAML in {p}: {exc}") from exc
    if not isinstance(raw, dict):
        raise ConfigError(f"Configuration root must be a mapping: {p}")
    return _build(cast(dict[str, Any], raw), p)


def _section(raw: dict[str, Any], key: str) -> dict[str, Any]:
    value = raw.get(key, {}) or {}
    if not isinstance(value, dict):
        raise ConfigError(f"Config section '{key}' must be a mapping")
    return cast(dict[str, Any], value)


def _build(raw: dict[str, Any], source: Path | None) -> TrackerConfig:
    gh = _section(raw, "github")
    milestones = _section(raw, "milestones")
    labels = _section(raw, "labels")
    logging_config = _section(raw, "logging")
    env_auth = _section(raw, "environment")

    state = str(milestones.get("state", "all")).lower()
    if state not in MILESTONE_STATES:
        raise ConfigError(
            f"milestones.state must be one of {', '.join(MILESTONE_STATES)} (got {state!r})"
        )
    try:
        per_page = int(milestones.get("per_page", DEFAULT_PER_PAGE))
    except (TypeError, ValueError) as exc:
        raise ConfigError("milestones.per_page must be an integer") from exc
    if not 1 <= per_page <= DEFAULT_PER_PAGE:
        raise ConfigError(f"milestones.per_page must be between 1 and {DEFAULT_PER_PAGE}")

    catalog = labels.get("catalog_file")
    base_dir = source.parent if source is not None else Path.cwd()

    return TrackerConfig(
        source_file=source,
        github_repo=gh.get("repo"),
        api_url=str(gh.get("api_url") or DEFAULT_API_URL),
        milestone_state=state,
        milestone_per_page=per_page,
        label_catalog_file=(base_dir / str(catalog)) if catalog else None,
        logging_json_enabled=bool(logging_config.get("json_enabled", False)),
        logging_level=str(logging_config.get("level", "WARNING")),
        env_auth_load_dotenv=bool(env_auth.get("load_dotenv", True)),
        env_auth_dotenv_path=env_auth.get("dotenv_path"),
    )


__all__ = ["CONFIG_DEFAULT", "ConfigError", "TrackerConfig", "default_config", "load_config"]
