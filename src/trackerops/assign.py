"""Assign open issues to one person, optionally only those in given milestones."""

from __future__ import annotations

import sys
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from typing import Any, Protocol, TextIO

from .errors import ApplyError, FatalSetupError, FetchError, redact
from .github_rest import GitHubAPIError
from .logging import StructuredLogger, get_logger
from .milestones import MilestoneAPI, fetch_snapshot
from .models import ApplyResult
from .ux import print_log, print_success, print_warning


class AssignAPI(MilestoneAPI, Protocol):
    def list_issues(
        self,
        *,
        state: str = ...,
        milestone: int | str | None = ...,
        labels: Iterable[str] | None = ...,
        include_pull_requests: bool = ...,
    ) -> list[dict[str, Any]]: ...

    def add_assignees(self, *, number: int, assignees: Iterable[str]) -> None: ...

    def get_authenticated_user(self) -> dict[str, Any]: ...


@dataclass
class AssignmentSelection:
    issue_numbers: list[int] = field(default_factory=list)
    unknown_milestones: list[str] = field(default_factory=list)


def resolve_milestones(
    client: MilestoneAPI, wanted: Sequence[str]
) -> tuple[dict[str, int], list[str]]:
    """Map milestone titles (case-insensitive) or numbers to milestone numbers."""
    snapshot = fetch_snapshot(client, state="all")
    by_title = {record.title.lower(): record.number for record in snapshot}
    known_numbers = {record.number for record in snapshot}
    resolved: dict[str, int] = {}
    unknown: list[str] = []
    for name in wanted:
        key = name.strip()
        if key.isdigit() and int(key) in known_numbers:
            resolved[name] = int(key)
        elif key.lower() in by_title:
            resolved[name] = by_title[key.lower()]
        else:
            unknown.append(name)
    return resolved, unknown


def select_issues(client: AssignAPI, milestones: Sequence[str] = ()) -> AssignmentSelection:
    """Collect open issue numbers (no pull requests), de-duplicated and sorted."""
    selection = AssignmentSelection()
    numbers: set[int] = set()
    try:
        if not milestones:
            issues = client.list_issues(state="open")
            numbers.update(int(issue["number"]) for issue in issues)
        else:
            resolved, selection.unknown_milestones = resolve_milestones(client, milestones)
            for number in resolved.values():
                issues = client.list_issues(state="open", milestone=number)
                numbers.update(int(issue["number"]) for issue in issues)
    except GitHubAPIError as exc:
        raise FetchError(f"Failed to list issues: {redact(str(exc))}", status=exc.status) from exc
    selection.issue_numbers = sorted(numbers)
    return selection


class IssueAssigner:
    def __init__(
        self,
        client: AssignAPI,
        *,
        dry_run: bool = False,
        quiet: bool = False,
        stream: TextIO | None = None,
        logger: StructuredLogger | None = None,
    ) -> None:
        self.client = client
        self.dry_run = dry_run
        self.quiet = quiet
        self.stream = stream or sys.stdout
        self.logger = logger or get_logger()

    def _say(self, message: str) -> None:
        if not self.quiet:
            print_log(message, stream=self.stream)

    def resolve_assignee(self, assignee: str | None) -> str:
        if assignee and assignee not in ("@me", "me"):
            return assignee.lstrip("@")
        try:
            login = self.client.get_authenticated_user().get("login")
        except GitHubAPIError as exc:
            raise FatalSetupError(
                f"Could not resolve the authenticated user: {redact(str(exc))}"
            ) from exc
        if not isinstance(login, str) or not login:
            raise FatalSetupError("Could not resolve the authenticated user")
        return login

    def assign_one(self, number: int, login: str) -> None:
        try:
            self.client.add_assignees(number=number, assignees=[login])
        except GitHubAPIError as exc:
            raise ApplyError(
                f"Assign failed for #{number}: {redact(str(exc))}", target=number
            ) from exc

    def assign(self, numbers: Sequence[int], login: str) -> ApplyResult:
        result = ApplyResult()
        for number in numbers:
            if self.dry_run:
                print(f"[DRY_RUN] assign #{number} to {login}", file=self.stream)
                result.record_success()
                continue
            self._say(f"assigning issue #{number}")
            try:
                self.assign_one(number, login)
            except ApplyError as exc:
                result.record_failure(f"#{number}", str(exc))
                self.logger.log_error("issue assign failed", error=str(exc), issue_number=number)
                if not self.quiet:
                    print_warning(str(exc), stream=self.stream)
                continue
            result.record_success()
            self.logger.log_operation("issue_assign", issue_number=number, assignee=login)
        return result

    def run(self, milestones: Sequence[str] = (), assignee: str | None = None) -> ApplyResult:
        login = self.resolve_assignee(assignee)
        self._say(f"Assigning issues to @{login}...")
        if milestones:
            self._say("Filtering by milestones:")
            for name in milestones:
                self._say(f"• {name}")
        else:
            self._say("No milestones specified → selecting ALL open issues")
        selection = select_issues(self.client, milestones)
        for name in selection.unknown_milestones:
            if not self.quiet:
                print_warning(f"Unknown milestone skipped: {name}", stream=self.stream)
        if not selection.issue_numbers:
            if not self.quiet:
                print_success("Nothing to assign — zero matching open issues.", stream=self.stream)
            return ApplyResult()
        result = self.assign(selection.issue_numbers, login)
        if not self.quiet:
            print_success(
                f"All done. Assigned: {result.updated}, Failed: {result.failed}",
                stream=self.stream,
            )
        return result


__all__ = ["AssignmentSelection", "IssueAssigner", "resolve_milestones", "select_issues"]
