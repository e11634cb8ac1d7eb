"""Pytest configuration for trackerops tests.

Ensures the in-repo `src` directory is on `sys.path` so the package can be
imported without an editable install (`pip install -e .`), and provides an
in-memory GitHub double shared by the command tests.
"""

from __future__ import annotations

import sys
from collections.abc import Iterable
from pathlib import Path
from typing import Any

import pytest

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from trackerops.github_rest import GitHubAPIError  # noqa: E402
from trackerops.logging import configure_logging  # noqa: E402


class FakeGitHub:
    """In-memory stand-in for GitHubRestClient.

    ``fail_updates`` holds milestone numbers whose PATCH is rejected,
    ``fail_pages`` the milestone pages that error out, and ``fail_assign``
    issue numbers whose assignment fails.
    """

    def __init__(
        self,
        milestones: Iterable[dict[str, Any]] = (),
        labels: Iterable[dict[str, Any]] = (),
        issues: Iterable[dict[str, Any]] = (),
        *,
        login: str = "octocat",
    ) -> None:
        self.milestones = [dict(m) for m in milestones]
        self.labels = [dict(label) for label in labels]
        self.issues = [dict(i) for i in issues]
        self.login = login
        self.fail_updates: set[int] = set()
        self.fail_pages: set[int] = set()
        self.fail_assign: set[int] = set()
        self.page_requests: list[tuple[str, int, int]] = []
        self.updates: list[tuple[int, str | None, str | None]] = []
        self.calls: list[tuple[str, dict[str, Any]]] = []
        self.closed = False

    def __enter__(self) -> FakeGitHub:
        return self

    def __exit__(self, *exc: object) -> None:
        self.closed = True

    def close(self) -> None:
        self.closed = True

    # identity
    def get_authenticated_user(self) -> dict[str, Any]:
        return {"login": self.login}

    def get_repository(self) -> dict[str, Any]:
        return {"full_name": "acme/widgets"}

    # milestones
    def list_milestones(
        self, *, state: str = "all", page: int = 1, per_page: int = 100
    ) -> list[dict[str, Any]]:
        self.page_requests.append((state, page, per_page))
        if page in self.fail_pages:
            raise GitHubAPIError(
                "GitHub API GET milestones failed with 502",
                status=502,
                response_text="Bad gateway",
            )
        pool = [m for m in self.milestones if state == "all" or m.get("state", "open") == state]
        start = (page - 1) * per_page
        return [dict(m) for m in pool[start : start + per_page]]

    def update_milestone(
        self, *, number: int, title: str | None = None, description: str | None = None
    ) -> None:
        if number in self.fail_updates:
            raise GitHubAPIError(
                "GitHub API PATCH failed with 422", status=422, response_text="Validation Failed"
            )
        self.updates.append((number, title, description))
        for m in self.milestones:
            if m["number"] == number:
                if title is not None:
                    m["title"] = title
                if description is not None:
                    m["description"] = description

    def create_milestone(self, *, title: str, description: str = "") -> int | None:
        number = max((m["number"] for m in self.milestones), default=0) + 1
        self.milestones.append(
            {"number": number, "title": title, "description": description, "state": "open"}
        )
        self.calls.append(("create_milestone", {"title": title}))
        return number

    # labels
    def list_labels(self) -> list[dict[str, Any]]:
        return [dict(label) for label in self.labels]

    def create_label(self, *, name: str, color: str, description: str = "") -> None:
        self.calls.append(("create_label", {"name": name, "color": color}))
        self.labels.append({"name": name, "color": color, "description": description})

    def update_label(
        self,
        *,
        name: str,
        new_name: str | None = None,
        color: str | None = None,
        description: str | None = None,
    ) -> None:
        self.calls.append(("update_label", {"name": name, "new_name": new_name}))
        for label in self.labels:
            if label["name"] == name:
                if new_name is not None:
                    label["name"] = new_name
                if color is not None:
                    label["color"] = color
                if description is not None:
                    label["description"] = description

    def delete_label(self, *, name: str) -> None:
        self.calls.append(("delete_label", {"name": name}))
        self.labels = [label for label in self.labels if label["name"] != name]

    # issues
    def list_issues(
        self,
        *,
        state: str = "open",
        milestone: int | str | None = None,
        labels: Iterable[str] | None = None,
        include_pull_requests: bool = False,
    ) -> list[dict[str, Any]]:
        wanted = set(labels or [])
        out = []
        for issue in self.issues:
            if state != "all" and issue.get("state", "open") != state:
                continue
            if milestone is not None and issue.get("milestone") != milestone:
                continue
            if wanted and not wanted.issubset(set(issue.get("labels", []))):
                continue
            if not include_pull_requests and "pull_request" in issue:
                continue
            out.append(dict(issue))
        return out

    def create_issue(
        self,
        *,
        title: str,
        body: str,
        labels: Iterable[str] | None = None,
        milestone: int | None = None,
    ) -> int | None:
        number = max((i["number"] for i in self.issues), default=0) + 1
        self.issues.append(
            {
                "number": number,
                "title": title,
                "body": body,
                "labels": list(labels or []),
                "milestone": milestone,
                "state": "open",
            }
        )
        self.calls.append(("create_issue", {"title": title, "milestone": milestone}))
        return number

    def replace_issue_label(self, *, number: int, old: str, new: str) -> None:
        self.calls.append(("replace_issue_label", {"number": number, "old": old, "new": new}))
        for issue in self.issues:
            if issue["number"] == number:
                issue["labels"] = [new if name == old else name for name in issue["labels"]]

    def add_assignees(self, *, number: int, assignees: Iterable[str]) -> None:
        if number in self.fail_assign:
            raise GitHubAPIError("GitHub API POST failed with 403", status=403)
        self.calls.append(("add_assignees", {"number": number, "assignees": list(assignees)}))


def milestone(number: int, title: str, description: str = "", state: str = "open") -> dict[str, Any]:
    return {"number": number, "title": title, "description": description, "state": state}


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for var in (
        "TRACKEROPS_QUIET",
        "TRACKEROPS_GITHUB_TOKEN",
        "TRACKEROPS_GITHUB_API",
        "GITHUB_TOKEN",
        "GH_TOKEN",
        "GH_REPO",
        "NO_COLOR",
    ):
        monkeypatch.delenv(var, raising=False)
    configure_logging()


@pytest.fixture
def fake_github() -> FakeGitHub:
    return FakeGitHub()
