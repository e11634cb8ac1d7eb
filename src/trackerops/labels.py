"""Label sync: bring the repository's labels to a canonical catalog.

Steps, planned against one label snapshot and applied in order:

1. legacy names are renamed to their canonical counterpart, or merged
   into it when the canonical label already exists (issues and pull
   requests carrying the old label are relabelled, then the old label is
   deleted);
2. every catalog label is created if missing or has its color and
   description aligned;
3. labels that are neither canonical nor legacy are reported as
   artifacts and only deleted on request.
"""

from __future__ import annotations

import sys
from collections.abc import Iterable
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Protocol, TextIO, cast

import yaml

from .config import ConfigError
from .errors import ApplyError, FetchError, redact
from .github_rest import GitHubAPIError
from .logging import StructuredLogger, get_logger
from .models import ApplyResult, LabelSpec
from .ux import print_log, print_success, print_warning

FALLBACK_COLOR = "cccccc"
FALLBACK_DESCRIPTION = "Standardized label."


def _spec(name: str, color: str, description: str) -> LabelSpec:
    return LabelSpec(name=name, color=color, description=description)


DEFAULT_CATALOG: tuple[LabelSpec, ...] = (
    _spec("type:bug", "d73a4a", "A defect that breaks expected behavior."),
    _spec("type:feature", "a2eeef", "New user-facing capability or improvement."),
    _spec("type:docs", "0366d6", "Documentation changes: guides, READMEs, comments."),
    _spec("type:chore", "cccccc", "Maintenance/infra: refactors, deps, config, housekeeping."),
    _spec("type:question", "d4c5f9", "Needs clarification or a decision."),
    _spec("type:release", "bfdadc", "Release/versioning prep and tasks."),
    _spec("pri:high", "b60205", "Urgent: blocks release or critical path."),
    _spec("pri:medium", "fbca04", "Important: should be scheduled soon."),
    _spec("pri:low", "0e8a16", "Nice-to-have: when time permits."),
    _spec("area:html", "7057ff", "Semantic HTML, landmarks, headings, DOM."),
    _spec("area:scss", "7057ff", "Styling/SCSS, tokens, layout, components."),
    _spec("area:js", "7057ff", "JavaScript modules, progressive enhancement."),
    _spec("area:templating", "7057ff", "Handlebars templates, layouts, partials."),
    _spec("area:data", "7057ff", "Content data files (e.g., src/data/site.json)."),
    _spec("area:forms", "7057ff", "Forms, validation, ARIA live regions."),
    _spec("area:seo", "7057ff", "Meta tags, canonical, social cards, sitemaps."),
    _spec("area:images", "7057ff", "Images/icons, dimensions, lazyload, assets."),
    _spec("area:design", "7057ff", "Visual design, layout system, typography."),
    _spec("area:build", "7057ff", "Build scripts, tooling, bundling."),
    _spec("area:ci", "7057ff", "CI workflows, Pages deployment, checks."),
    _spec("area:infra", "7057ff", "Repo config, automations, policies."),
    _spec("a11y", "0e8a16", "Accessibility: WCAG, focus, keyboard, screen readers."),
    _spec("perf", "1f883d", "Performance: CLS, LCP, bundle size, image budgets."),
    _spec("help wanted", "0e8a16", "Open to external contributors; assistance appreciated."),
    _spec("good first issue", "7057ff", "Starter-friendly task with clear scope/steps."),
    _spec("status:declined", "cccccc", "Considered but not pursued."),
    _spec("status:duplicate", "cccccc", "Duplicate of another tracked item."),
    _spec("status:invalid", "cccccc", "Not reproducible, not applicable, or incorrect."),
    _spec("status:blocked", "cccccc", "Blocked by dependency or awaiting prerequisite."),
    _spec("status:needs review", "cccccc", "Awaiting code/content review."),
    _spec("status:needs design", "cccccc", "Requires design input before proceeding."),
    _spec("status:needs testing", "cccccc", "Awaiting manual test/verification."),
)

DEFAULT_LEGACY_MAP: tuple[tuple[str, str], ...] = (
    ("bug", "type:bug"),
    ("enhancement", "type:feature"),
    ("docs", "type:docs"),
    ("documentation", "type:docs"),
    ("question", "type:question"),
    ("release", "type:release"),
    ("wontfix", "status:declined"),
    ("duplicate", "status:duplicate"),
    ("invalid", "status:invalid"),
    ("html", "area:html"),
    ("scss", "area:scss"),
    ("js", "area:js"),
    ("templating", "area:templating"),
    ("data", "area:data"),
    ("forms", "area:forms"),
    ("seo", "area:seo"),
    ("images", "area:images"),
    ("design", "area:design"),
    ("build", "area:build"),
    ("ci", "area:ci"),
    ("infra", "area:infra"),
    ("dev", "area:infra"),
    ("ux", "area:design"),
    ("qa", "status:needs testing"),
)


@dataclass(frozen=True)
class LabelCatalog:
    labels: tuple[LabelSpec, ...] = DEFAULT_CATALOG
    legacy: tuple[tuple[str, str], ...] = DEFAULT_LEGACY_MAP

    def get(self, name: str) -> LabelSpec | None:
        for spec in self.labels:
            if spec.name == name:
                return spec
        return None

    @property
    def names(self) -> set[str]:
        return {spec.name for spec in self.labels}

    @property
    def legacy_names(self) -> set[str]:
        return {old for old, _ in self.legacy}


def load_catalog(path: str | Path) -> LabelCatalog:
    """Read a catalog YAML file with ``catalog`` and optional ``legacy`` lists."""
    p = Path(path)
    if not p.exists():
        raise ConfigError(f"Label catalog not found: {p}")
    try:
        raw = yaml.safe_load(p.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as exc:
        raise ConfigError(f"Invalid YAML in {p}: {exc}") from exc
    if not isinstance(raw, dict):
        raise ConfigError(f"Label catalog root must be a mapping: {p}")
    entries = cast(list[Any], raw.get("catalog") or [])
    labels: list[LabelSpec] = []
    for entry in entries:
        if not isinstance(entry, dict) or not entry.get("name"):
            raise ConfigError(f"Catalog entries need at least a name: {entry!r}")
        labels.append(
            LabelSpec(
                name=str(entry["name"]),
                color=str(entry.get("color") or FALLBACK_COLOR).lstrip("#").lower(),
                description=str(entry.get("description") or entry.get("desc") or ""),
            )
        )
    legacy: list[tuple[str, str]] = []
    for entry in cast(list[Any], raw.get("legacy") or []):
        if not isinstance(entry, dict) or not entry.get("old") or not entry.get("new"):
            raise ConfigError(f"Legacy entries need 'old' and 'new': {entry!r}")
        legacy.append((str(entry["old"]), str(entry["new"])))
    return LabelCatalog(labels=tuple(labels), legacy=tuple(legacy))


class LabelActionKind(str, Enum):
    RENAME = "rename"
    MERGE = "merge"
    UPDATE = "update"
    CREATE = "create"
    DELETE = "delete"


@dataclass(frozen=True)
class LabelAction:
    kind: LabelActionKind
    name: str
    new_name: str | None = None
    color: str | None = None
    description: str | None = None

    def describe(self) -> str:
        if self.kind is LabelActionKind.RENAME:
            return f"Renaming '{self.name}' → '{self.new_name}'"
        if self.kind is LabelActionKind.MERGE:
            return f"Merging '{self.name}' → '{self.new_name}'"
        if self.kind is LabelActionKind.UPDATE:
            return f"Updating '{self.name}' (color {self.color})"
        if self.kind is LabelActionKind.CREATE:
            return f"Creating '{self.name}' (color {self.color})"
        return f"Deleting '{self.name}'"


@dataclass
class LabelSyncPlan:
    actions: list[LabelAction] = field(default_factory=list)
    artifacts: list[str] = field(default_factory=list)


def plan_label_sync(
    existing: Iterable[LabelSpec],
    catalog: LabelCatalog,
    *,
    force: bool = False,
    delete_unknown: bool = False,
) -> LabelSyncPlan:
    """Plan every label change from one snapshot.

    The label set is simulated as actions are planned, so a second legacy
    name pointing at the same canonical label is merged rather than renamed.
    """
    current: dict[str, LabelSpec] = {label.name: label for label in existing}
    plan = LabelSyncPlan()

    for old, new in catalog.legacy:
        if old not in current:
            continue
        target = catalog.get(new)
        color = target.color if target else FALLBACK_COLOR
        description = target.description if target and target.description else FALLBACK_DESCRIPTION
        if new in current:
            plan.actions.append(LabelAction(LabelActionKind.MERGE, old, new_name=new))
            plan.actions.append(
                LabelAction(LabelActionKind.UPDATE, new, color=color, description=description)
            )
        else:
            plan.actions.append(
                LabelAction(
                    LabelActionKind.RENAME, old, new_name=new, color=color, description=description
                )
            )
        del current[old]
        current[new] = LabelSpec(name=new, color=color, description=description)

    for spec in catalog.labels:
        have = current.get(spec.name)
        if have is None:
            plan.actions.append(
                LabelAction(
                    LabelActionKind.CREATE, spec.name, color=spec.color, description=spec.description
                )
            )
        elif force or have.color.lower() != spec.color.lower() or have.description != spec.description:
            plan.actions.append(
                LabelAction(
                    LabelActionKind.UPDATE, spec.name, color=spec.color, description=spec.description
                )
            )
        current[spec.name] = spec

    plan.artifacts = sorted(set(current) - catalog.names - catalog.legacy_names)
    if delete_unknown:
        plan.actions.extend(LabelAction(LabelActionKind.DELETE, name) for name in plan.artifacts)
    return plan


class LabelAPI(Protocol):
    def list_labels(self) -> list[dict[str, Any]]: ...

    def create_label(self, *, name: str, color: str, description: str = ...) -> None: ...

    def update_label(
        self,
        *,
        name: str,
        new_name: str | None = ...,
        color: str | None = ...,
        description: str | None = ...,
    ) -> None: ...

    def delete_label(self, *, name: str) -> None: ...

    def list_issues(
        self,
        *,
        state: str = ...,
        milestone: int | str | None = ...,
        labels: Iterable[str] | None = ...,
        include_pull_requests: bool = ...,
    ) -> list[dict[str, Any]]: ...

    def replace_issue_label(self, *, number: int, old: str, new: str) -> None: ...


class LabelSynchronizer:
    def __init__(
        self,
        client: LabelAPI,
        catalog: LabelCatalog | None = None,
        *,
        dry_run: bool = False,
        quiet: bool = False,
        stream: TextIO | None = None,
        logger: StructuredLogger | None = None,
    ) -> None:
        self.client = client
        self.catalog = catalog or LabelCatalog()
        self.dry_run = dry_run
        self.quiet = quiet
        self.stream = stream or sys.stdout
        self.logger = logger or get_logger()

    def _say(self, message: str) -> None:
        if not self.quiet:
            print_log(message, stream=self.stream)

    def snapshot(self) -> list[LabelSpec]:
        try:
            raw = self.client.list_labels()
        except GitHubAPIError as exc:
            raise FetchError(f"Failed to list labels: {redact(str(exc))}", status=exc.status) from exc
        return [LabelSpec.from_api(entry) for entry in raw]

    def plan(self, *, force: bool = False, delete_unknown: bool = False) -> LabelSyncPlan:
        existing = self.snapshot()
        self._say(f"Found {len(existing)} existing labels.")
        return plan_label_sync(existing, self.catalog, force=force, delete_unknown=delete_unknown)

    def _merge(self, old: str, new: str) -> None:
        items = self.client.list_issues(state="all", labels=[old], include_pull_requests=True)
        for item in items:
            number = int(item["number"])
            if self.dry_run:
                print(f"DRY: relabel #{number} {old} → {new}", file=self.stream)
                continue
            self.client.replace_issue_label(number=number, old=old, new=new)
        if not self.dry_run:
            self.client.delete_label(name=old)

    def execute(self, action: LabelAction) -> None:
        try:
            if action.kind is LabelActionKind.MERGE:
                self._merge(action.name, cast(str, action.new_name))
                return
            if self.dry_run:
                return
            if action.kind is LabelActionKind.RENAME:
                self.client.update_label(
                    name=action.name,
                    new_name=action.new_name,
                    color=action.color,
                    description=action.description,
                )
            elif action.kind is LabelActionKind.UPDATE:
                self.client.update_label(
                    name=action.name, color=action.color, description=action.description
                )
            elif action.kind is LabelActionKind.CREATE:
                self.client.create_label(
                    name=action.name,
                    color=cast(str, action.color),
                    description=action.description or "",
                )
            else:
                self.client.delete_label(name=action.name)
        except GitHubAPIError as exc:
            raise ApplyError(
                f"{action.describe()} failed: {redact(str(exc))}", target=action.name
            ) from exc

    def apply(self, plan: LabelSyncPlan) -> ApplyResult:
        result = ApplyResult()
        for action in plan.actions:
            prefix = "DRY: " if self.dry_run else ""
            self._say(f"{prefix}{action.describe()}")
            try:
                self.execute(action)
            except ApplyError as exc:
                result.record_failure(action.name, str(exc))
                self.logger.log_error("label action failed", error=str(exc), label=action.name)
                if not self.quiet:
                    print_warning(str(exc), stream=self.stream)
                continue
            result.record_success()
            self.logger.log_operation(
                f"label_{action.kind.value}", label=action.name, dry_run=self.dry_run
            )
        return result

    def report_artifacts(self, plan: LabelSyncPlan, delete_unknown: bool) -> None:
        if self.quiet:
            return
        if not plan.artifacts:
            self._say("No artifact labels detected.")
            return
        self._say("Artifact labels (not in catalog or legacy map):")
        for name in plan.artifacts:
            print(f"   - {name}", file=self.stream)
        if not delete_unknown:
            self._say("Skipping deletion of unknown artifacts (use --delete-unknown to remove them).")

    def run(self, *, force: bool = False, delete_unknown: bool = False) -> ApplyResult:
        if self.dry_run and not self.quiet:
            print_warning("DRY RUN: no changes will be made", stream=self.stream)
        with self.logger.timed_operation("labels_sync", dry_run=self.dry_run):
            plan = self.plan(force=force, delete_unknown=delete_unknown)
            result = self.apply(plan)
        self.report_artifacts(plan, delete_unknown)
        if not self.quiet:
            print_success(
                f"Label sync complete. Applied: {result.updated}, Failed: {result.failed}",
                stream=self.stream,
            )
        return result


__all__ = [
    "DEFAULT_CATALOG",
    "DEFAULT_LEGACY_MAP",
    "LabelAction",
    "LabelActionKind",
    "LabelCatalog",
    "LabelSyncPlan",
    "LabelSynchronizer",
    "load_catalog",
    "plan_label_sync",
]
