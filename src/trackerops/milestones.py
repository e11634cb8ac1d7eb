"""Milestone title normalization.

Titles are brought to the canonical ``M<n>`` form:

* ``exact``        ``M<digits>`` and nothing else: left alone, number reserved
* ``with_suffix``  ``M<digits> <sep> text``: renamed to ``M<digits>``, the
                   text moves into the description's Focus section
* ``other``        anything else: gets the lowest free number and the whole
                   old title becomes the Focus text

Em and en dashes count as plain hyphens when matching. The run goes
snapshot -> plan -> preview and, only with ``apply=True``, updates each
milestone from the plan computed earlier; nothing is re-fetched between
preview and apply.
"""

from __future__ import annotations

import json
import re
import sys
from collections.abc import Callable, Iterable, Iterator, Sequence
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Protocol, TextIO, TypeVar

from .errors import ApplyError, FetchError, redact
from .github_rest import DEFAULT_PER_PAGE, GitHubAPIError
from .logging import StructuredLogger, get_logger
from .models import (
    ApplyResult,
    ChangePlan,
    ChangePlanEntry,
    Classification,
    MilestoneRecord,
)
from .ux import (
    print_header,
    print_log,
    print_success,
    print_table,
    print_warning,
    run_with_spinner,
)

T = TypeVar("T")

_DASHES = str.maketrans({"—": "-", "–": "-"})
_EXACT = re.compile(r"^M([0-9]+)\Z")
_WITH_SUFFIX = re.compile(r"^M([0-9]+)\s*[-:]+\s+(.+)\Z", re.DOTALL)
_LEADING_NUMBER = re.compile(r"^M([0-9]+)")
_SEPARATOR_REMNANT = re.compile(r"^[-: ]+\s*")

TITLE_PREVIEW_WIDTH = 40


class MilestoneAPI(Protocol):
    def list_milestones(
        self, *, state: str = ..., page: int = ..., per_page: int = ...
    ) -> list[dict[str, Any]]: ...

    def update_milestone(
        self, *, number: int, title: str | None = ..., description: str | None = ...
    ) -> None: ...


Caller = Callable[[Callable[[], T], str], T]


def _direct_call(fn: Callable[[], T], message: str) -> T:
    return fn()


# ---- classification & planning ------------------------------------------


def normalize_dashes(title: str) -> str:
    return title.translate(_DASHES)


@dataclass(frozen=True)
class TitleMatch:
    classification: Classification
    digits: str | None
    focus_text: str

    @property
    def number(self) -> int | None:
        return int(self.digits) if self.digits is not None else None


def classify_title(title: str) -> TitleMatch:
    norm = normalize_dashes(title)
    exact = _EXACT.match(norm)
    if exact:
        return TitleMatch(Classification.EXACT, exact.group(1), "")
    suffix = _WITH_SUFFIX.match(norm)
    if suffix:
        rest = _SEPARATOR_REMNANT.sub("", suffix.group(2), count=1)
        return TitleMatch(Classification.WITH_SUFFIX, suffix.group(1), rest)
    return TitleMatch(Classification.OTHER, None, title)


def leading_number(title: str) -> int | None:
    """Number of a title that starts with ``M<digits>``, whatever follows."""
    match = _LEADING_NUMBER.match(normalize_dashes(title))
    return int(match.group(1)) if match else None


class ReservedNumberSet:
    """Milestone numbers in use or claimed by the plan being built.

    Only grows. Because nothing is ever released, every number below the
    cursor stays taken, so ``next_free`` resumes from the cursor instead of
    rescanning from zero.
    """

    def __init__(self, numbers: Iterable[int] = ()) -> None:
        self._taken: set[int] = set(numbers)
        self._cursor = 0

    def __contains__(self, number: object) -> bool:
        return number in self._taken

    def __len__(self) -> int:
        return len(self._taken)

    def __iter__(self) -> Iterator[int]:
        return iter(sorted(self._taken))

    def reserve(self, number: int) -> None:
        if number < 0:
            raise ValueError(f"milestone numbers are non-negative (got {number})")
        self._taken.add(number)

    def next_free(self) -> int:
        while self._cursor in self._taken:
            self._cursor += 1
        return self._cursor

    def allocate(self) -> int:
        number = self.next_free()
        self.reserve(number)
        return number


def compose_description(focus_text: str, details: str) -> str:
    """Build the ``## Focus`` / ``## Details`` description.

    A section is left out when its text is blank.
    """
    parts: list[str] = []
    if focus_text.strip():
        parts.append(f"## Focus\n{focus_text}\n\n")
    trimmed = details.strip()
    if trimmed:
        parts.append(f"## Details\n{trimmed}\n")
    return "".join(parts)


def plan_changes(records: Sequence[MilestoneRecord]) -> ChangePlan:
    """Compute the rename plan for a snapshot. Pure; order follows the snapshot.

    All explicit numbers are reserved before any ``other`` title claims a
    free one, so two milestones can never be handed the same number.
    """
    reserved = ReservedNumberSet()
    for record in records:
        number = leading_number(record.title)
        if number is not None:
            reserved.reserve(number)

    entries: list[ChangePlanEntry] = []
    for record in records:
        match = classify_title(record.title)
        if match.classification is Classification.EXACT:
            continue
        if match.classification is Classification.WITH_SUFFIX:
            short = f"M{match.digits}"
        else:
            short = f"M{reserved.allocate()}"
        entries.append(
            ChangePlanEntry(
                source_number=record.number,
                old_title=record.title,
                classification=match.classification,
                target_short_title=short,
                focus_text=match.focus_text,
                preserved_description=compose_description(match.focus_text, record.description),
            )
        )
    return ChangePlan(entries=tuple(entries), snapshot_size=len(records))


# ---- snapshot ---------------------------------------------------------------


def iter_milestones(
    client: MilestoneAPI,
    *,
    state: str = "all",
    per_page: int = DEFAULT_PER_PAGE,
    call: Caller[list[dict[str, Any]]] = _direct_call,
    on_page: Callable[[int, int], None] | None = None,
) -> Iterator[MilestoneRecord]:
    """Yield milestones page by page; a short page ends the sequence."""
    page = 1
    while True:
        current = page
        try:
            batch = call(
                lambda: client.list_milestones(state=state, page=current, per_page=per_page),
                f"Fetching page {current}...",
            )
        except GitHubAPIError as exc:
            detail = redact(exc.response_text or str(exc))
            raise FetchError(
                f"Failed to fetch page {current}: {detail}", page=current, status=exc.status
            ) from exc
        if on_page is not None:
            on_page(current, len(batch))
        for item in batch:
            try:
                record = MilestoneRecord.from_api(item)
            except (KeyError, TypeError, ValueError) as exc:
                raise FetchError(
                    f"Malformed milestone on page {current}: {redact(repr(item))}", page=current
                ) from exc
            yield record
        if len(batch) < per_page:
            return
        page += 1


def fetch_snapshot(
    client: MilestoneAPI,
    *,
    state: str = "all",
    per_page: int = DEFAULT_PER_PAGE,
    call: Caller[list[dict[str, Any]]] = _direct_call,
    on_page: Callable[[int, int], None] | None = None,
) -> tuple[MilestoneRecord, ...]:
    return tuple(
        iter_milestones(client, state=state, per_page=per_page, call=call, on_page=on_page)
    )


# ---- run ------------------------------------------------------------------


class RunState(str, Enum):
    FETCHING = "fetching"
    PLANNING = "planning"
    PREVIEWING = "previewing"
    APPLYING = "applying"
    DONE = "done"


@dataclass
class NormalizeOptions:
    state: str = "all"
    apply: bool = False
    per_page: int = DEFAULT_PER_PAGE
    quiet: bool = False
    spinner: bool = True
    plan_json: Path | None = None


@dataclass
class NormalizeOutcome:
    snapshot: tuple[MilestoneRecord, ...] = ()
    plan: ChangePlan | None = None
    result: ApplyResult | None = None
    states: list[RunState] = field(default_factory=list)

    @property
    def applied(self) -> bool:
        return self.result is not None

    @property
    def exit_code(self) -> int:
        if self.result is not None and self.result.failed:
            return 3
        return 0


class MilestoneNormalizer:
    def __init__(
        self,
        client: MilestoneAPI,
        options: NormalizeOptions,
        *,
        stream: TextIO | None = None,
        logger: StructuredLogger | None = None,
    ) -> None:
        self.client = client
        self.options = options
        self.stream = stream or sys.stdout
        self.logger = logger or get_logger()

    # -- output helpers
    def _log(self, message: str) -> None:
        if not self.options.quiet:
            print_log(message, stream=self.stream)

    def _ok(self, message: str) -> None:
        if not self.options.quiet:
            print_success(message, stream=self.stream)

    def _warn(self, message: str) -> None:
        if not self.options.quiet:
            print_warning(message, stream=self.stream)

    def _call(self, fn: Callable[[], T], message: str) -> T:
        return run_with_spinner(fn, message, enabled=self.options.spinner, stream=self.stream)

    # -- phases
    def fetch(self) -> tuple[MilestoneRecord, ...]:
        self._log(f"Fetching milestones (per_page={self.options.per_page})...")
        with self.logger.timed_operation("milestones_fetch", state=self.options.state):
            snapshot = fetch_snapshot(
                self.client,
                state=self.options.state,
                per_page=self.options.per_page,
                call=self._call,
                on_page=lambda page, count: self._log(f"Page {page}: {count} item(s)"),
            )
        self.logger.log_operation("milestones_fetched", milestone_count=len(snapshot))
        return snapshot

    def preview_snapshot(self, snapshot: Sequence[MilestoneRecord]) -> None:
        print_header("All milestones (snapshot):", stream=self.stream)
        rows = [
            (
                record.number,
                record.state.value,
                record.title,
                record.due_on_raw or "—",
            )
            for record in snapshot
        ]
        print_table(
            ("Number", "State", "Title", "Due"),
            rows,
            (6, 8, TITLE_PREVIEW_WIDTH),
            stream=self.stream,
            clip=(2,),
        )

    def preview_plan(self, plan: ChangePlan) -> None:
        print_header("Planned changes:", stream=self.stream)
        rows = [
            (entry.source_number, entry.old_title, entry.target_short_title, entry.focus_text)
            for entry in plan
        ]
        print_table(
            ("Number", "Old Title", "->New", "Focus"),
            rows,
            (8, TITLE_PREVIEW_WIDTH, 6),
            stream=self.stream,
            clip=(1,),
        )
        print("", file=self.stream)

    def write_plan_json(self, plan: ChangePlan) -> None:
        if self.options.plan_json is None:
            return
        path = self.options.plan_json
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(plan.to_dict(), indent=2) + "\n", encoding="utf-8")
        self._log(f"Plan written to {path}")

    def apply_entry(self, entry: ChangePlanEntry) -> None:
        try:
            self._call(
                lambda: self.client.update_milestone(
                    number=entry.source_number,
                    title=entry.target_short_title,
                    description=entry.preserved_description,
                ),
                f"Updating #{entry.source_number}",
            )
        except GitHubAPIError as exc:
            raise ApplyError(
                f"Update failed for #{entry.source_number}: {redact(str(exc))}",
                target=entry.source_number,
            ) from exc

    def apply(self, plan: ChangePlan) -> ApplyResult:
        self._log("Applying updates...")
        result = ApplyResult()
        for entry in plan:
            try:
                self.apply_entry(entry)
            except ApplyError as exc:
                result.record_failure(f"#{entry.source_number}", str(exc))
                self.logger.log_error(
                    "milestone update failed",
                    error=str(exc),
                    milestone_number=entry.source_number,
                )
                self._warn(f"Update failed for #{entry.source_number}")
                continue
            result.record_success()
            self.logger.log_milestone_action(
                "update", entry.source_number, target=entry.target_short_title
            )
            self._ok(f"Updated #{entry.source_number} -> {entry.target_short_title}")
        self._ok(f"Done. Updated: {result.updated}, Failed: {result.failed}")
        return result

    def run(self) -> NormalizeOutcome:
        outcome = NormalizeOutcome()

        outcome.states.append(RunState.FETCHING)
        snapshot = self.fetch()
        outcome.snapshot = snapshot
        if not snapshot:
            self._warn("No milestones found.")
            outcome.states.append(RunState.DONE)
            return outcome
        self._ok(f"Fetched {len(snapshot)} milestone(s).")
        self.preview_snapshot(snapshot)

        outcome.states.append(RunState.PLANNING)
        plan = plan_changes(snapshot)
        outcome.plan = plan
        self.logger.log_operation("milestones_plan", change_count=len(plan))
        if plan.is_empty:
            self._ok("Nothing to change (all titles are exact M#).")
            outcome.states.append(RunState.DONE)
            return outcome
        self._ok(f"Planned {len(plan)} change(s).")

        outcome.states.append(RunState.PREVIEWING)
        self.preview_plan(plan)
        self.write_plan_json(plan)
        if not self.options.apply:
            self._warn("Dry-run only. Re-run with --apply to make these changes.")
            outcome.states.append(RunState.DONE)
            return outcome

        outcome.states.append(RunState.APPLYING)
        outcome.result = self.apply(plan)
        outcome.states.append(RunState.DONE)
        return outcome


__all__ = [
    "MilestoneNormalizer",
    "NormalizeOptions",
    "NormalizeOutcome",
    "ReservedNumberSet",
    "RunState",
    "TitleMatch",
    "classify_title",
    "compose_description",
    "fetch_snapshot",
    "iter_milestones",
    "leading_number",
    "normalize_dashes",
    "plan_changes",
]
