from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from types import TracebackType
from typing import Any
from urllib.parse import quote

import requests

from .logging import get_logger

DEFAULT_API_URL = "https://api.github.com"
USER_AGENT = "trackerops-rest/0.3.0"
HTTP_ERROR_STATUS = 400
DEFAULT_PER_PAGE = 100
REQUEST_TIMEOUT = 30


class GitHubAPIError(RuntimeError):
    """Raised when the GitHub REST API returns an error or is unreachable."""

    def __init__(
        self,
        message: str,
        *,
        status: int | None = None,
        response_text: str | None = None,
    ):
        super().__init__(message)
        self.status = status
        self.response_text = response_text


@dataclass
class GitHubRestClient:
    """Lightweight REST client for the tracker endpoints trackerops touches.

    Every call is issued once; failures surface as ``GitHubAPIError`` and
    callers decide whether that aborts the run or is counted and skipped.
    """

    token: str
    repo: str
    base_url: str = DEFAULT_API_URL
    session: requests.Session | None = None
    _session: requests.Session = field(init=False, repr=False)

    def __post_init__(self) -> None:  # pragma: no cover - simple wiring
        self._session = self.session or requests.Session()
        self._session.headers.setdefault("Authorization", f"Bearer {self.token}")
        self._session.headers.setdefault("Accept", "application/vnd.github+json")
        self._session.headers.setdefault("X-GitHub-Api-Version", "2022-11-28")
        self._session.headers.setdefault("User-Agent", USER_AGENT)

    def __enter__(self) -> GitHubRestClient:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.close()

    def close(self) -> None:
        closer = getattr(self._session, "close", None)
        if callable(closer):
            closer()

    # ---- REST helpers -------------------------------------------------
    def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json_body: Any | None = None,
    ) -> Any:
        url = (
            path
            if path.startswith("http")
            else f"{self.base_url.rstrip('/')}/{path.lstrip('/')}"
        )
        get_logger().debug(f"{method} {url}", params=params)
        try:
            response = self._session.request(
                method,
                url,
                params=params,
                json=json_body,
                headers=self._session.headers,
                timeout=REQUEST_TIMEOUT,
            )
        except requests.RequestException as exc:
            raise GitHubAPIError(f"GitHub API {method} {url} failed: {exc}") from exc
        if response.status_code >= HTTP_ERROR_STATUS:
            raise GitHubAPIError(
                f"GitHub API {method} {url} failed with {response.status_code}",
                status=response.status_code,
                response_text=response.text,
            )
        if response.text:
            try:
                return response.json()
            except ValueError:
                return response.text
        return None

    def _paginate(
        self, path: str, *, params: dict[str, Any] | None = None
    ) -> list[Any]:
        params = dict(params or {})
        per_page = params.setdefault("per_page", DEFAULT_PER_PAGE)
        params.setdefault("page", 1)
        results: list[Any] = []
        while True:
            data = self._request("GET", path, params=params)
            if not isinstance(data, list):
                break
            results.extend(data)
            if len(data) < per_page:
                break
            params["page"] = params.get("page", 1) + 1
        return results

    @property
    def _repo_path(self) -> str:
        return f"/repos/{self.repo}"

    # ---- Identity ------------------------------------------------------
    def get_authenticated_user(self) -> dict[str, Any]:
        data = self._request("GET", "/user")
        return data if isinstance(data, dict) else {}

    def get_repository(self) -> dict[str, Any]:
        data = self._request("GET", self._repo_path)
        return data if isinstance(data, dict) else {}

    # ---- Milestones ----------------------------------------------------
    def list_milestones(
        self, *, state: str = "all", page: int = 1, per_page: int = DEFAULT_PER_PAGE
    ) -> list[dict[str, Any]]:
        """Fetch a single page; pagination belongs to the caller."""
        data = self._request(
            "GET",
            f"{self._repo_path}/milestones",
            params={"state": state, "page": page, "per_page": per_page},
        )
        if not isinstance(data, list):
            return []
        return [entry for entry in data if isinstance(entry, dict)]

    def update_milestone(
        self, *, number: int, title: str | None = None, description: str | None = None
    ) -> None:
        payload: dict[str, Any] = {}
        if title is not None:
            payload["title"] = title
        if description is not None:
            payload["description"] = description
        if payload:
            self._request(
                "PATCH", f"{self._repo_path}/milestones/{number}", json_body=payload
            )

    def create_milestone(self, *, title: str, description: str = "") -> int | None:
        data = self._request(
            "POST",
            f"{self._repo_path}/milestones",
            json_body={"title": title, "description": description},
        )
        if isinstance(data, dict) and isinstance(data.get("number"), int):
            return int(data["number"])
        return None

    # ---- Labels ----------------------------------------------------------
    def list_labels(self) -> list[dict[str, Any]]:
        data = self._paginate(f"{self._repo_path}/labels")
        return [entry for entry in data if isinstance(entry, dict)]

    def create_label(self, *, name: str, color: str, description: str = "") -> None:
        self._request(
            "POST",
            f"{self._repo_path}/labels",
            json_body={"name": name, "color": color, "description": description},
        )

    def update_label(
        self,
        *,
        name: str,
        new_name: str | None = None,
        color: str | None = None,
        description: str | None = None,
    ) -> None:
        payload: dict[str, Any] = {}
        if new_name is not None:
            payload["new_name"] = new_name
        if color is not None:
            payload["color"] = color
        if description is not None:
            payload["description"] = description
        self._request(
            "PATCH", f"{self._repo_path}/labels/{quote(name, safe='')}", json_body=payload
        )

    def delete_label(self, *, name: str) -> None:
        self._request("DELETE", f"{self._repo_path}/labels/{quote(name, safe='')}")

    # ---- Issues ----------------------------------------------------------
    def list_issues(
        self,
        *,
        state: str = "open",
        milestone: int | str | None = None,
        labels: Iterable[str] | None = None,
        include_pull_requests: bool = False,
    ) -> list[dict[str, Any]]:
        params: dict[str, Any] = {"state": state, "per_page": DEFAULT_PER_PAGE, "page": 1}
        if milestone is not None:
            params["milestone"] = milestone
        label_list = list(labels or [])
        if label_list:
            params["labels"] = ",".join(label_list)
        data = self._paginate(f"{self._repo_path}/issues", params=params)
        out: list[dict[str, Any]] = []
        for entry in data:
            if not isinstance(entry, dict):
                continue
            if not include_pull_requests and "pull_request" in entry:
                continue
            out.append(entry)
        return out

    def create_issue(
        self,
        *,
        title: str,
        body: str,
        labels: Iterable[str] | None = None,
        milestone: int | None = None,
    ) -> int | None:
        payload: dict[str, Any] = {"title": title, "body": body}
        label_list = list(labels or [])
        if label_list:
            payload["labels"] = label_list
        if milestone is not None:
            payload["milestone"] = milestone
        data = self._request("POST", f"{self._repo_path}/issues", json_body=payload)
        if isinstance(data, dict):
            number = data.get("number")
            if isinstance(number, int):
                return number
        return None

    def replace_issue_label(self, *, number: int, old: str, new: str) -> None:
        self._request(
            "POST", f"{self._repo_path}/issues/{number}/labels", json_body={"labels": [new]}
        )
        self._request(
            "DELETE", f"{self._repo_path}/issues/{number}/labels/{quote(old, safe='')}"
        )

    def add_assignees(self, *, number: int, assignees: Iterable[str]) -> None:
        self._request(
            "POST",
            f"{self._repo_path}/issues/{number}/assignees",
            json_body={"assignees": list(assignees)},
        )


__all__ = [
    "DEFAULT_API_URL",
    "DEFAULT_PER_PAGE",
    "GitHubAPIError",
    "GitHubRestClient",
]
