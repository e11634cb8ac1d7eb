"""Seed a tracker from a YAML roadmap (milestones, labels and issues).

Roadmap format::

    labels:                      # optional color map for labels issues use
      build: {color: "0366d6", description: "Build tooling & pipeline"}
    milestones:
      - title: "M0 — Project Baseline"
        description: "Verify src→dist pipeline works"
        issues:
          - title: "Verify build pipeline"
            body: "Run the build and check dist/."
            labels: [build]

Re-running is safe: milestones whose exact title exists are skipped, as are
open issues with the exact same title.
"""

from __future__ import annotations

import sys
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Protocol, TextIO, TypeVar, cast

import yaml

from .config import ConfigError
from .errors import ApplyError, FetchError, redact
from .github_rest import GitHubAPIError
from .logging import StructuredLogger, get_logger
from .milestones import MilestoneAPI, fetch_snapshot
from .models import ApplyResult, LabelSpec
from .ux import print_header, print_log, print_success, print_warning

T = TypeVar("T")

AD_HOC_COLOR = "cccccc"
AD_HOC_DESCRIPTION = "Ad-hoc label"

DEFAULT_LABEL_COLORS: dict[str, LabelSpec] = {
    spec.name: spec
    for spec in (
        LabelSpec("build", "0366d6", "Build tooling & pipeline"),
        LabelSpec("infra", "6f42c1", "Repo/infra/config tasks"),
        LabelSpec("dev", "0969da", "Local dev workflow tasks"),
        LabelSpec("templating", "0e8a16", "Handlebars layouts/partials"),
        LabelSpec("html", "1a7f37", "Semantic HTML work"),
        LabelSpec("data", "d4c5f9", "site.json and data plumbing"),
        LabelSpec("scss", "fbca04", "SCSS architecture/styles"),
        LabelSpec("a11y", "b60205", "Accessibility (WCAG)"),
        LabelSpec("design", "f66a0a", "Design tokens/visual tweaks"),
        LabelSpec("forms", "a2eeef", "Forms & validation"),
        LabelSpec("qa", "ededed", "Testing & quality checks"),
        LabelSpec("perf", "5319e7", "Performance improvements"),
        LabelSpec("images", "0cf478", "Images & media"),
        LabelSpec("js", "7057ff", "JavaScript enhancements"),
        LabelSpec("ci", "ffab70", "CI/CD & workflows"),
        LabelSpec("ux", "c5def5", "Interaction & UX polish"),
        LabelSpec("seo", "ffd866", "SEO/meta/sitemap"),
        LabelSpec("release", "bf8700", "Release prep & tagging"),
        LabelSpec("docs", "008672", "Documentation & templates"),
    )
}


@dataclass(frozen=True)
class RoadmapIssue:
    title: str
    body: str = ""
    labels: tuple[str, ...] = ()


@dataclass(frozen=True)
class RoadmapMilestone:
    title: str
    description: str = ""
    issues: tuple[RoadmapIssue, ...] = ()


@dataclass(frozen=True)
class Roadmap:
    milestones: tuple[RoadmapMilestone, ...]
    label_colors: dict[str, LabelSpec] = field(default_factory=dict)

    def label_spec(self, name: str) -> LabelSpec:
        if name in self.label_colors:
            return self.label_colors[name]
        if name in DEFAULT_LABEL_COLORS:
            return DEFAULT_LABEL_COLORS[name]
        return LabelSpec(name, AD_HOC_COLOR, AD_HOC_DESCRIPTION)


def _labels_field(raw: Any) -> tuple[str, ...]:
    if raw is None:
        return ()
    if isinstance(raw, str):
        items = raw.split(",")
    elif isinstance(raw, list):
        items = [str(item) for item in raw]
    else:
        raise ConfigError(f"Issue labels must be a list or comma-separated string: {raw!r}")
    return tuple(item.strip() for item in items if item.strip())


def parse_roadmap(raw: Any) -> Roadmap:
    if not isinstance(raw, dict):
        raise ConfigError("Roadmap root must be a mapping")
    colors: dict[str, LabelSpec] = {}
    for name, entry in cast(dict[str, Any], raw.get("labels") or {}).items():
        entry = entry or {}
        if not isinstance(entry, dict):
            raise ConfigError(f"Roadmap label '{name}' must be a mapping: {entry!r}")
        colors[str(name)] = LabelSpec(
            name=str(name),
            color=str(entry.get("color") or AD_HOC_COLOR).lstrip("#").lower(),
            description=str(entry.get("description") or ""),
        )
    milestones: list[RoadmapMilestone] = []
    for entry in cast(list[Any], raw.get("milestones") or []):
        if not isinstance(entry, dict) or not entry.get("title"):
            raise ConfigError(f"Roadmap milestones need a title: {entry!r}")
        issues = []
        for issue in cast(list[Any], entry.get("issues") or []):
            if not isinstance(issue, dict) or not issue.get("title"):
                raise ConfigError(f"Roadmap issues need a title: {issue!r}")
            issues.append(
                RoadmapIssue(
                    title=str(issue["title"]),
                    body=str(issue.get("body") or ""),
                    labels=_labels_field(issue.get("labels")),
                )
            )
        milestones.append(
            RoadmapMilestone(
                title=str(entry["title"]),
                description=str(entry.get("description") or ""),
                issues=tuple(issues),
            )
        )
    return Roadmap(milestones=tuple(milestones), label_colors=colors)


def load_roadmap(path: str | Path) -> Roadmap:
    p = Path(path)
    if not p.exists():
        raise ConfigError(f"Roadmap file not found: {p}")
    try:
        raw = yaml.safe_load(p.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as exc:
        raise ConfigError(f"Invalid YAML in {p}: {exc}") from exc
    return parse_roadmap(raw)


class SeedAPI(MilestoneAPI, Protocol):
    def create_milestone(self, *, title: str, description: str = ...) -> int | None: ...

    def list_labels(self) -> list[dict[str, Any]]: ...

    def create_label(self, *, name: str, color: str, description: str = ...) -> None: ...

    def list_issues(
        self,
        *,
        state: str = ...,
        milestone: int | str | None = ...,
        labels: Iterable[str] | None = ...,
        include_pull_requests: bool = ...,
    ) -> list[dict[str, Any]]: ...

    def create_issue(
        self,
        *,
        title: str,
        body: str,
        labels: Iterable[str] | None = ...,
        milestone: int | None = ...,
    ) -> int | None: ...


@dataclass
class SeedResult:
    milestones: ApplyResult = field(default_factory=ApplyResult)
    labels: ApplyResult = field(default_factory=ApplyResult)
    issues: ApplyResult = field(default_factory=ApplyResult)
    skipped: int = 0

    @property
    def failed(self) -> int:
        return self.milestones.failed + self.labels.failed + self.issues.failed


class TrackerSeeder:
    def __init__(
        self,
        client: SeedAPI,
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
        self._milestones: dict[str, int] = {}
        self._labels: set[str] = set()
        self._open_issue_titles: set[str] = set()

    def _note(self, message: str) -> None:
        if not self.quiet:
            print_log(message, stream=self.stream)

    def load_existing(self) -> None:
        try:
            snapshot = fetch_snapshot(self.client, state="all")
            labels = self.client.list_labels()
            issues = self.client.list_issues(state="open")
        except GitHubAPIError as exc:
            raise FetchError(f"Failed to read tracker state: {redact(str(exc))}") from exc
        self._milestones = {record.title: record.number for record in snapshot}
        self._labels = {str(entry.get("name")) for entry in labels}
        self._open_issue_titles = {str(entry.get("title")) for entry in issues}

    @staticmethod
    def _mutate(target: str, fn: Callable[[], T]) -> T:
        try:
            return fn()
        except GitHubAPIError as exc:
            raise ApplyError(f"{target}: {redact(str(exc))}", target=target) from exc

    def _attempt(self, bucket: ApplyResult, target: str, fn: Callable[[], T]) -> T | None:
        try:
            value = self._mutate(target, fn)
        except ApplyError as exc:
            bucket.record_failure(target, str(exc))
            self.logger.log_error("seed step failed", error=str(exc), target=target)
            if not self.quiet:
                print_warning(str(exc), stream=self.stream)
            return None
        bucket.record_success()
        return value

    def ensure_milestone(self, milestone: RoadmapMilestone, result: SeedResult) -> None:
        if milestone.title in self._milestones:
            self._note(f"Milestone already exists: {milestone.title}")
            result.skipped += 1
            return
        if self.dry_run:
            print(f"[DRY_RUN] create milestone '{milestone.title}'", file=self.stream)
            return
        self._note(f"Creating milestone: {milestone.title}")
        number = self._attempt(
            result.milestones,
            f"milestone '{milestone.title}'",
            lambda: self.client.create_milestone(
                title=milestone.title, description=milestone.description
            ),
        )
        if isinstance(number, int):
            self._milestones[milestone.title] = number
            self.logger.log_operation("seed_milestone", title=milestone.title, number=number)

    def ensure_label(self, spec: LabelSpec, result: SeedResult) -> None:
        if spec.name in self._labels:
            return
        if self.dry_run:
            print(f"[DRY_RUN] create label '{spec.name}' ({spec.color})", file=self.stream)
            self._labels.add(spec.name)
            return
        self._note(f"Creating label: {spec.name}")
        self._attempt(
            result.labels,
            f"label '{spec.name}'",
            lambda: self.client.create_label(
                name=spec.name, color=spec.color, description=spec.description
            ),
        )
        self._labels.add(spec.name)

    def ensure_issue(
        self, roadmap: Roadmap, milestone: RoadmapMilestone, issue: RoadmapIssue, result: SeedResult
    ) -> None:
        for name in issue.labels:
            self.ensure_label(roadmap.label_spec(name), result)
        if issue.title in self._open_issue_titles:
            self._note(f"Issue already exists: {issue.title}")
            result.skipped += 1
            return
        if self.dry_run:
            print(
                f"[DRY_RUN] create issue '{issue.title}' in '{milestone.title}'", file=self.stream
            )
            return
        self._note(f"Creating issue: {issue.title}")
        number = self._attempt(
            result.issues,
            f"issue '{issue.title}'",
            lambda: self.client.create_issue(
                title=issue.title,
                body=issue.body,
                labels=issue.labels,
                milestone=self._milestones.get(milestone.title),
            ),
        )
        self._open_issue_titles.add(issue.title)
        if isinstance(number, int):
            self.logger.log_operation("seed_issue", title=issue.title, issue_number=number)

    def run(self, roadmap: Roadmap) -> SeedResult:
        result = SeedResult()
        with self.logger.timed_operation("tracker_seed", dry_run=self.dry_run):
            self.load_existing()
            if not self.quiet:
                print_header("Creating milestones…", stream=self.stream)
            for milestone in roadmap.milestones:
                self.ensure_milestone(milestone, result)
            for milestone in roadmap.milestones:
                if not milestone.issues:
                    continue
                if not self.quiet:
                    print_header(f"Creating issues for {milestone.title}…", stream=self.stream)
                for issue in milestone.issues:
                    self.ensure_issue(roadmap, milestone, issue, result)
        if not self.quiet:
            print_success(
                f"Seed complete. Milestones: {result.milestones.updated}, "
                f"Issues: {result.issues.updated}, Skipped: {result.skipped}, "
                f"Failed: {result.failed}",
                stream=self.stream,
            )
        return result


__all__ = [
    "Roadmap",
    "RoadmapIssue",
    "RoadmapMilestone",
    "SeedResult",
    "TrackerSeeder",
    "load_roadmap",
    "parse_roadmap",
]
