"""Token and repository discovery.

Tokens come from environment variables (optionally populated from a .env
file) and, failing that, from ``gh auth token`` when the GitHub CLI is
installed. The target repository comes from the command line, the config
file, ``GH_REPO`` or the ``origin`` remote, in that order.
"""

from __future__ import annotations

import os
import re
import shutil
import subprocess  # nosec B404 - gh/git are queried read-only
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

from .errors import FatalSetupError
from .logging import get_logger

TOKEN_VARS = ("TRACKEROPS_GITHUB_TOKEN", "GITHUB_TOKEN", "GH_TOKEN")
REPO_PATTERN = re.compile(r"^[A-Za-z0-9_.-]+/[A-Za-z0-9_.-]+$")
REMOTE_PATTERN = re.compile(r"github\.com[:/]+([^/]+)/([^/]+?)(?:\.git)?/?$")


@dataclass
class EnvAuthConfig:
    """Configuration for environment-based authentication."""

    load_dotenv: bool = True
    dotenv_path: str | None = None
    gh_cli_fallback: bool = True


class EnvironmentAuthManager:
    """Finds a GitHub token for the REST client."""

    def __init__(self, config: EnvAuthConfig):
        self.config = config
        self.logger = get_logger()
        self._dotenv_loaded = False
        if config.load_dotenv:
            self._load_dotenv()

    def _load_dotenv(self) -> None:
        candidates = [self.config.dotenv_path] if self.config.dotenv_path else [".env", ".env.local"]
        for location in candidates:
            env_path = Path(location)
            if env_path.exists():
                load_dotenv(str(env_path))
                self._dotenv_loaded = True
                self.logger.debug(f"Loaded environment variables from {env_path}")
                break

    @property
    def dotenv_loaded(self) -> bool:
        return self._dotenv_loaded

    def get_github_token(self) -> str | None:
        for name in TOKEN_VARS:
            raw = os.environ.get(name)
            if raw and raw.strip():
                self.logger.debug(f"Found GitHub token in {name}")
                return raw.strip()
        if self.config.gh_cli_fallback:
            return self._token_from_gh_cli()
        return None

    def _token_from_gh_cli(self) -> str | None:
        gh = shutil.which("gh")
        if not gh:
            return None
        try:
            out = subprocess.run(  # nosec B603 - fixed argument list
                [gh, "auth", "token"],
                capture_output=True,
                text=True,
                timeout=10,
                check=False,
            )
        except (OSError, subprocess.TimeoutExpired) as exc:
            self.logger.debug(f"gh auth token unavailable: {exc}")
            return None
        token = out.stdout.strip()
        if out.returncode != 0 or not token:
            return None
        self.logger.debug("Using token from gh auth token")
        return token

    def require_github_token(self) -> str:
        token = self.get_github_token()
        if not token:
            raise FatalSetupError(
                "No GitHub token found. Set GITHUB_TOKEN (or GH_TOKEN), add it to .env, "
                "or run 'gh auth login'."
            )
        return token


def create_env_auth_manager(config: EnvAuthConfig | None = None) -> EnvironmentAuthManager:
    """Factory function to create environment authentication manager."""
    return EnvironmentAuthManager(config or EnvAuthConfig())


def parse_remote_url(url: str) -> str | None:
    match = REMOTE_PATTERN.search(url.strip())
    if not match:
        return None
    return f"{match.group(1)}/{match.group(2)}"


def _origin_remote() -> str | None:
    git = shutil.which("git")
    if not git:
        return None
    try:
        out = subprocess.run(  # nosec B603 - fixed argument list
            [git, "config", "--get", "remote.origin.url"],
            capture_output=True,
            text=True,
            timeout=10,
            check=False,
        )
    except (OSError, subprocess.TimeoutExpired):
        return None
    return out.stdout.strip() or None


def resolve_repo(explicit: str | None, configured: str | None = None) -> str:
    """Pick the target ``owner/name`` or raise ``FatalSetupError``."""
    for candidate in (explicit, configured, os.environ.get("GH_REPO")):
        if candidate and candidate.strip():
            repo = candidate.strip()
            if not REPO_PATTERN.match(repo):
                raise FatalSetupError(f"Repository must look like owner/name (got {repo!r})")
            return repo
    origin = _origin_remote()
    if origin:
        parsed = parse_remote_url(origin)
        if parsed:
            return parsed
        raise FatalSetupError(f"Could not parse owner/repo from remote: {origin}")
    raise FatalSetupError("Could not determine repo. Use -R owner/repo.")


__all__ = [
    "EnvAuthConfig",
    "EnvironmentAuthManager",
    "create_env_auth_manager",
    "parse_remote_url",
    "resolve_repo",
]
