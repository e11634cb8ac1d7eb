from pathlib import Path

import pytest

from trackerops.config import ConfigError, default_config, load_config
from trackerops.errors import FatalSetupError


def _write(tmp_path: Path, text: str) -> Path:
    path = tmp_path / "trackerops.config.yaml"
    path.write_text(text)
    return path


def test_defaults_when_optional_file_missing(tmp_path: Path):
    cfg = load_config(tmp_path / "missing.yaml", required=False)

    assert cfg == default_config()
    assert cfg.milestone_state == "all"
    assert cfg.milestone_per_page == 100
    assert cfg.api_url == "https://api.github.com"
    assert cfg.logging_level == "WARNING"
    assert cfg.env_auth_load_dotenv is True


def test_missing_required_file_is_fatal(tmp_path: Path):
    with pytest.raises(ConfigError) as excinfo:
        load_config(tmp_path / "missing.yaml")

    assert isinstance(excinfo.value, FatalSetupError)


def test_full_config(tmp_path: Path):
    path = _write(
        tmp_path,
        """
github:
  repo: acme/widgets
  api_url: https://ghe.example.com/api/v3
milestones:
  state: open
  per_page: 50
labels:
  catalog_file: labels.yaml
logging:
  json_enabled: true
  level: DEBUG
environment:
  load_dotenv: false
""",
    )

    cfg = load_config(path)

    assert cfg.source_file == path
    assert cfg.github_repo == "acme/widgets"
    assert cfg.api_url == "https://ghe.example.com/api/v3"
    assert cfg.milestone_state == "open"
    assert cfg.milestone_per_page == 50
    assert cfg.label_catalog_file == tmp_path / "labels.yaml"
    assert cfg.logging_json_enabled is True
    assert cfg.logging_level == "DEBUG"
    assert cfg.env_auth_load_dotenv is False


@pytest.mark.parametrize(
    ("text", "message"),
    [
        ("milestones:\n  state: pending\n", "milestones.state"),
        ("milestones:\n  per_page: 500\n", "between 1 and 100"),
        ("milestones:\n  per_page: many\n", "must be an integer"),
        ("github: [1, 2]\n", "must be a mapping"),
        ("- just\n- a list\n", "root must be a mapping"),
        ("github: {repo: [unclosed\n", "Invalid YAML"),
    ],
)
def test_invalid_config(tmp_path: Path, text: str, message: str):
    with pytest.raises(ConfigError, match=message):
        load_config(_write(tmp_path, text))
