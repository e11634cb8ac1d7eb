import os
from pathlib import Path

import pytest

from trackerops import env_auth
from trackerops.env_auth import (
    EnvAuthConfig,
    EnvironmentAuthManager,
    create_env_auth_manager,
    parse_remote_url,
    resolve_repo,
)
from trackerops.errors import FatalSetupError


def test_env_auth_config_defaults():
    """Test EnvAuthConfig with defaults."""
    config = EnvAuthConfig()

    assert config.load_dotenv is True
    assert config.dotenv_path is None
    assert config.gh_cli_fallback is True


def test_token_precedence(monkeypatch):
    monkeypatch.setenv("GH_TOKEN", "from_gh")
    monkeypatch.setenv("GITHUB_TOKEN", "from_github")
    manager = EnvironmentAuthManager(EnvAuthConfig(load_dotenv=False))

    assert manager.get_github_token() == "from_github"

    monkeypatch.setenv("TRACKEROPS_GITHUB_TOKEN", "  from_tool  ")
    assert manager.get_github_token() == "from_tool"


def test_no_token_without_gh_cli(monkeypatch):
    monkeypatch.setattr(env_auth.shutil, "which", lambda name: None)
    manager = EnvironmentAuthManager(EnvAuthConfig(load_dotenv=False))

    assert manager.get_github_token() is None
    with pytest.raises(FatalSetupError, match="No GitHub token found"):
        manager.require_github_token()


def test_gh_cli_fallback(monkeypatch):
    class _Done:
        returncode = 0
        stdout = "gho_fromcli\n"

    monkeypatch.setattr(env_auth.shutil, "which", lambda name: "/usr/bin/gh")
    monkeypatch.setattr(env_auth.subprocess, "run", lambda *a, **k: _Done())
    manager = EnvironmentAuthManager(EnvAuthConfig(load_dotenv=False))

    assert manager.get_github_token() == "gho_fromcli"

    manager = EnvironmentAuthManager(EnvAuthConfig(load_dotenv=False, gh_cli_fallback=False))
    assert manager.get_github_token() is None


def test_dotenv_loading(tmp_path: Path, monkeypatch):
    env_file = tmp_path / ".env.test"
    env_file.write_text("GITHUB_TOKEN=dotenv_token\n")
    monkeypatch.setattr(env_auth.shutil, "which", lambda name: None)

    manager = create_env_auth_manager(EnvAuthConfig(dotenv_path=str(env_file)))
    try:
        assert manager.dotenv_loaded is True
        assert manager.get_github_token() == "dotenv_token"
    finally:
        os.environ.pop("GITHUB_TOKEN", None)


@pytest.mark.parametrize(
    ("url", "expected"),
    [
        ("git@github.com:acme/widgets.git", "acme/widgets"),
        ("https://github.com/acme/widgets", "acme/widgets"),
        ("https://github.com/acme/widgets.git/", "acme/widgets"),
        ("ssh://git@github.com/acme/widgets.git", "acme/widgets"),
        ("https://gitlab.com/acme/widgets", None),
    ],
)
def test_parse_remote_url(url, expected):
    assert parse_remote_url(url) == expected


def test_resolve_repo_precedence(monkeypatch):
    monkeypatch.setenv("GH_REPO", "env/repo")
    monkeypatch.setattr(env_auth, "_origin_remote", lambda: "git@github.com:origin/repo.git")

    assert resolve_repo("cli/repo", "cfg/repo") == "cli/repo"
    assert resolve_repo(None, "cfg/repo") == "cfg/repo"
    assert resolve_repo(None) == "env/repo"
    monkeypatch.delenv("GH_REPO")
    assert resolve_repo(None) == "origin/repo"


def test_resolve_repo_failures(monkeypatch):
    monkeypatch.setattr(env_auth, "_origin_remote", lambda: None)

    with pytest.raises(FatalSetupError, match="Use -R owner/repo"):
        resolve_repo(None)
    with pytest.raises(FatalSetupError, match="owner/name"):
        resolve_repo("not-a-repo")
