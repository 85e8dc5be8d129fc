"""
Shared data types for track import.

TrackRecord is produced by the text parsers and consumed once by the
import engine. ImportResult is built incrementally, one per batch.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any

# Prefix shared by every native (storage-format) payload
NATIVE_PAYLOAD_PREFIX = "PolyTrack"

# Synthesized name for records without one
GENERATED_NAME_TEMPLATE = "Imported Track {n}"


class CollisionPolicy(Enum):
    """What to do when an imported track name already exists in the store."""

    SKIP = "skip"
    OVERWRITE = "overwrite"
    RENAME = "rename"

    @classmethod
    def parse(cls, value: CollisionPolicy | str) -> CollisionPolicy:
        """Accept an enum member or its (case-insensitive) string value."""
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls(value.strip().lower())
            except ValueError:
                pass
        valid = ", ".join(p.value for p in cls)
        raise ValueError(f"Invalid collision policy {value!r} (expected one of: {valid})")


class ImportStatus(Enum):
    """Per-record outcome reported to the progress sink."""

    IMPORTED = "imported"
    SKIPPED = "skipped"
    RENAMED = "renamed"
    OVERWRITTEN = "overwritten"
    ERROR = "error"


# (current, total, name, status)
ProgressSink = Callable[[int, int, str, ImportStatus], None]


@dataclass
class TrackRecord:
    """A single track parsed from input text."""

    display_name: str | None = None
    raw_payload: str | None = None
    share_code: str | None = None

    def __post_init__(self) -> None:
        if not self.raw_payload and not self.share_code:
            raise ValueError("TrackRecord needs a raw payload or a share code")

    @property
    def is_native(self) -> bool:
        return bool(self.raw_payload) and self.raw_payload.startswith(NATIVE_PAYLOAD_PREFIX)

    @property
    def source_data(self) -> str:
        """The text this record was built from, for reports."""
        return self.raw_payload or self.share_code or ""


@dataclass
class FailedTrack:
    name: str
    data: str
    reason: str


@dataclass
class TrackOutcome:
    index: int
    name: str
    final_name: str
    status: ImportStatus


@dataclass
class ImportResult:
    """Aggregate outcome of one import batch."""

    imported: int = 0
    skipped: int = 0
    renamed: int = 0
    overwritten: int = 0
    errored: int = 0
    total: int = 0
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    failed_tracks: list[FailedTrack] = field(default_factory=list)
    outcomes: list[TrackOutcome] = field(default_factory=list)
    success: bool = True
    cancelled: bool = False

    @property
    def written(self) -> int:
        """Records that ended up in the store."""
        return self.imported + self.renamed + self.overwritten

    @property
    def processed(self) -> int:
        return self.written + self.skipped + self.errored

    def record(self, outcome: TrackOutcome) -> None:
        self.outcomes.append(outcome)
        if outcome.status is ImportStatus.IMPORTED:
            self.imported += 1
        elif outcome.status is ImportStatus.SKIPPED:
            self.skipped += 1
        elif outcome.status is ImportStatus.RENAMED:
            self.renamed += 1
        elif outcome.status is ImportStatus.OVERWRITTEN:
            self.overwritten += 1
        else:
            self.errored += 1

    def fail(self, name: str, data: str, reason: str) -> None:
        self.errors.append(f'{reason} for track "{name}"')
        self.failed_tracks.append(FailedTrack(name=name, data=data, reason=reason))

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["outcomes"] = [
            {**asdict(o), "status": o.status.value} for o in self.outcomes
        ]
        return data
