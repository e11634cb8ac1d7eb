"""Runtime helpers for trackerops CLI orchestration."""

from __future__ import annotations

import os
import time
from collections.abc import Callable
from typing import Any, Protocol

from .config import CONFIG_DEFAULT, TrackerConfig, load_config
from .env_auth import EnvAuthConfig, create_env_auth_manager, resolve_repo
from .errors import FatalSetupError, FetchError, TrackerOpsError, classify_error, redact
from .github_rest import GitHubAPIError, GitHubRestClient
from .logging import configure_logging, get_logger
from .ux import print_error

EXIT_OK = 0
EXIT_FATAL = 1
EXIT_INTERRUPTED = 130


class _HandlerCallable(Protocol):
    def __call__(self) -> Any: ...


def prepare_config(
    args: Any, *, loader: Callable[..., TrackerConfig] = load_config
) -> TrackerConfig:
    """Load config for the parsed namespace and fold in command-line overrides."""
    if not hasattr(args, "config"):
        raise AttributeError("Command namespace is missing 'config' attribute")
    explicit = args.config is not None
    cfg = loader(args.config if explicit else CONFIG_DEFAULT, required=explicit)
    repo_override = getattr(args, "repo", None)
    if repo_override:
        cfg.github_repo = repo_override
    state_override = getattr(args, "state", None)
    if state_override:
        cfg.milestone_state = state_override
    if getattr(args, "json_logs", False):
        cfg.logging_json_enabled = True
    if getattr(args, "debug", False):
        cfg.logging_level = "DEBUG"
    elif getattr(args, "quiet", False):
        cfg.logging_level = "ERROR"
    configure_logging(json_logging=cfg.logging_json_enabled, level=cfg.logging_level)
    return cfg


def build_client(cfg: TrackerConfig) -> GitHubRestClient:
    """Resolve credentials and repository, then confirm both are usable.

    Raises ``FatalSetupError`` before any command output when the token is
    missing or rejected, or the repository cannot be reached.
    """
    auth = create_env_auth_manager(
        EnvAuthConfig(
            load_dotenv=cfg.env_auth_load_dotenv,
            dotenv_path=cfg.env_auth_dotenv_path,
        )
    )
    token = auth.require_github_token()
    repo = resolve_repo(cfg.github_repo)
    base_url = os.environ.get("TRACKEROPS_GITHUB_API", "").strip() or cfg.api_url
    client = GitHubRestClient(token=token, repo=repo, base_url=base_url)
    try:
        client.get_authenticated_user()
    except GitHubAPIError as exc:
        client.close()
        if exc.status in (401, 403):
            raise FatalSetupError(
                "GitHub rejected the token. Run 'gh auth login' or refresh GITHUB_TOKEN."
            ) from exc
        raise FatalSetupError(f"Could not reach GitHub: {redact(str(exc))}") from exc
    try:
        client.get_repository()
    except GitHubAPIError as exc:
        client.close()
        raise FatalSetupError(
            f"Could not resolve repository {repo}: {redact(str(exc))}"
        ) from exc
    get_logger().log_operation("client_ready", repo=repo)
    return client


def execute_command(
    handler: _HandlerCallable, args: Any, cfg: TrackerConfig | None, command: str
) -> int:
    """Run a command handler, turning fatal errors into exit codes and timing it."""
    logger = get_logger()
    start = time.monotonic()
    try:
        result = handler()
        exit_code = int(result) if result is not None else EXIT_OK
    except (FatalSetupError, FetchError) as exc:
        info = classify_error(exc)
        logger.log_error(
            f"{command} aborted", error=info.message, category=info.category
        )
        print_error(redact(str(exc)))
        exit_code = EXIT_FATAL
    except TrackerOpsError as exc:
        print_error(redact(str(exc)))
        exit_code = EXIT_FATAL
    except KeyboardInterrupt:
        print_error("Interrupted.")
        exit_code = EXIT_INTERRUPTED
    duration = max(0.0, time.monotonic() - start)
    logger.log_performance(
        f"command_{command}",
        duration * 1000,
        exit_code=exit_code,
        repo=cfg.github_repo if cfg else None,
    )
    return exit_code


__all__ = ["build_client", "execute_command", "prepare_config"]
