from __future__ import annotations

from collections.abc import Iterator, Mapping
from dataclasses import asdict, dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


class MilestoneState(str, Enum):
    OPEN = "open"
    CLOSED = "closed"


class Classification(str, Enum):
    EXACT = "exact"
    WITH_SUFFIX = "with_suffix"
    OTHER = "other"


def _parse_due(raw: Any) -> datetime | None:
    if not isinstance(raw, str) or not raw.strip():
        return None
    try:
        return datetime.fromisoformat(raw.strip().replace("Z", "+00:00"))
    except ValueError:
        return None


@dataclass(frozen=True)
class MilestoneRecord:
    """Snapshot copy of one milestone taken at fetch time.

    The live tracker may diverge afterwards; nothing downstream re-reads it.
    """

    number: int
    title: str
    description: str = ""
    state: MilestoneState = MilestoneState.OPEN
    due_on: datetime | None = None
    due_on_raw: str = field(default="", compare=False)

    @classmethod
    def from_api(cls, payload: Mapping[str, Any]) -> MilestoneRecord:
        state_raw = str(payload.get("state") or "open").lower()
        state = MilestoneState.CLOSED if state_raw == "closed" else MilestoneState.OPEN
        return cls(
            number=int(payload["number"]),
            title=str(payload.get("title") or ""),
            description=str(payload.get("description") or ""),
            state=state,
            due_on=_parse_due(payload.get("due_on")),
            due_on_raw=str(payload.get("due_on") or ""),
        )


@dataclass(frozen=True)
class ChangePlanEntry:
    source_number: int
    old_title: str
    classification: Classification
    target_short_title: str
    focus_text: str
    preserved_description: str

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["classification"] = self.classification.value
        return data


@dataclass(frozen=True)
class ChangePlan:
    """Ordered renames computed from one snapshot, consumed as-is by apply."""

    entries: tuple[ChangePlanEntry, ...]
    snapshot_size: int

    def __len__(self) -> int:
        return len(self.entries)

    def __iter__(self) -> Iterator[ChangePlanEntry]:
        return iter(self.entries)

    @property
    def is_empty(self) -> bool:
        return not self.entries

    def to_dict(self) -> dict[str, Any]:
        return {
            "snapshot_size": self.snapshot_size,
            "change_count": len(self.entries),
            "changes": [entry.to_dict() for entry in self.entries],
        }


@dataclass
class ApplyResult:
    updated: int = 0
    failed: int = 0
    failures: list[tuple[str, str]] = field(default_factory=list)

    def record_success(self) -> None:
        self.updated += 1

    def record_failure(self, target: str, message: str) -> None:
        self.failed += 1
        self.failures.append((target, message))

    def as_tuple(self) -> tuple[int, int]:
        return self.updated, self.failed


@dataclass(frozen=True)
class LabelSpec:
    name: str
    color: str
    description: str = ""

    @classmethod
    def from_api(cls, payload: Mapping[str, Any]) -> LabelSpec:
        return cls(
            name=str(payload.get("name") or ""),
            color=str(payload.get("color") or "").lower(),
            description=str(payload.get("description") or ""),
        )


__all__ = [
    "ApplyResult",
    "ChangePlan",
    "ChangePlanEntry",
    "Classification",
    "LabelSpec",
    "MilestoneRecord",
    "MilestoneState",
]
