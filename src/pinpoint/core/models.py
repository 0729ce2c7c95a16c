"""Domain models shared across all Pinpoint modules.

These Pydantic models define the contract between services.  Every module
communicates through these types — never raw dicts.  Diff and review models
are frozen: once a diff is indexed or a draft is built it never changes.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, StrictInt

_FROZEN = ConfigDict(frozen=True)


# ── Enums ────────────────────────────────────────────────────────────────────


class LineKind(StrEnum):
    ADDED = "added"
    REMOVED = "removed"
    CONTEXT = "context"
    BLANK = "blank"


class ReviewEvent(StrEnum):
    APPROVE = "APPROVE"
    REQUEST_CHANGES = "REQUEST_CHANGES"
    COMMENT = "COMMENT"


class ReviewState(StrEnum):
    DRAFTED = "drafted"
    PENDING = "pending"
    SUBMITTED = "submitted"


class Severity(StrEnum):
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class PositionStatus(StrEnum):
    OK = "ok"
    OUT_OF_RANGE = "out_of_range"
    FILE_NOT_FOUND = "file_not_found"


class IssueCode(StrEnum):
    EMPTY_FIELD = "empty_field"
    INVALID_POSITION = "invalid_position"
    UNKNOWN_FILE = "unknown_file"
    POSITION_OUT_OF_RANGE = "position_out_of_range"
    MISSING_COMMIT = "missing_commit"
    MISSING_SUMMARY = "missing_summary"
    MALFORMED_PAYLOAD = "malformed_payload"


class SubmissionMode(StrEnum):
    ATOMIC = "atomic"
    DEGRADED = "degraded"


# ── Diff Models ──────────────────────────────────────────────────────────────


class DiffLine(BaseModel):
    """One physical line inside a hunk.

    ``position`` is None until the position indexer has run.
    """

    model_config = _FROZEN

    kind: LineKind
    text: str = ""
    position: int | None = None

    @property
    def marker(self) -> str:
        return {
            LineKind.ADDED: "+",
            LineKind.REMOVED: "-",
            LineKind.CONTEXT: " ",
            LineKind.BLANK: "",
        }[self.kind]

    def render(self) -> str:
        """The line as it appears in the diff."""
        return f"{self.marker}{self.text}"


class HunkHeader(BaseModel):
    """The ``@@ -a,b +c,d @@ section`` marker of a hunk."""

    model_config = _FROZEN

    old_start: int
    old_count: int = 1
    new_start: int
    new_count: int = 1
    section: str = ""

    def render(self) -> str:
        return f"@@ -{self.old_start},{self.old_count} +{self.new_start},{self.new_count} @@"


class Hunk(BaseModel):
    """A contiguous change region within one file's diff."""

    model_config = _FROZEN

    header: HunkHeader
    lines: tuple[DiffLine, ...] = ()

    @property
    def position_range(self) -> tuple[int, int] | None:
        """Inclusive (first, last) positions, or None before indexing."""
        if not self.lines or self.lines[0].position is None or self.lines[-1].position is None:
            return None
        return self.lines[0].position, self.lines[-1].position


class FileDiff(BaseModel):
    """All hunks for one file path, in diff order."""

    model_config = _FROZEN

    path: str = Field(min_length=1)
    hunks: tuple[Hunk, ...] = ()

    @property
    def lines(self) -> list[DiffLine]:
        return [line for hunk in self.hunks for line in hunk.lines]

    @property
    def max_position(self) -> int:
        positions = [line.position for line in self.lines if line.position is not None]
        return max(positions, default=0)

    @property
    def valid_position_range(self) -> tuple[int, int] | None:
        """(1, max) once indexed; None when the file has no positioned lines."""
        highest = self.max_position
        return (1, highest) if highest else None

    def hunk_for(self, position: int) -> Hunk | None:
        for hunk in self.hunks:
            span = hunk.position_range
            if span and span[0] <= position <= span[1]:
                return hunk
        return None

    def line_at(self, position: int) -> DiffLine | None:
        hunk = self.hunk_for(position)
        if hunk is None:
            return None
        return next((line for line in hunk.lines if line.position == position), None)


class HunkSpan(BaseModel):
    """Diagnostic rendering of one hunk's position range."""

    model_config = _FROZEN

    header: str
    first_position: int | None = None
    last_position: int | None = None

    def render(self) -> str:
        if self.first_position is None:
            return f"{self.header} → no positions"
        return f"{self.header} → positions {self.first_position}-{self.last_position}"


class PositionCheck(BaseModel):
    """Result of validating one candidate position."""

    model_config = _FROZEN

    status: PositionStatus
    path: str
    position: int
    min_position: int | None = None
    max_position: int | None = None
    hunks: tuple[HunkSpan, ...] = ()
    line: DiffLine | None = None
    available_files: tuple[str, ...] = ()

    @property
    def ok(self) -> bool:
        return self.status == PositionStatus.OK


# ── Review Models ────────────────────────────────────────────────────────────


class Comment(BaseModel):
    """A single inline review annotation addressed by diff position."""

    model_config = _FROZEN

    path: str = Field(min_length=1)
    position: StrictInt = Field(gt=0)
    body: str = Field(min_length=1)


class AutoSubmit(BaseModel):
    """Create and submit the review in one call."""

    model_config = _FROZEN

    kind: Literal["auto_submit"] = "auto_submit"
    event: ReviewEvent
    body: str = Field(min_length=1)


class PendingThenSubmit(BaseModel):
    """Create a pending review; a separate submit call closes it."""

    model_config = _FROZEN

    kind: Literal["pending"] = "pending"
    body: str | None = None


SubmissionIntent = Annotated[AutoSubmit | PendingThenSubmit, Field(discriminator="kind")]


class ReviewDraft(BaseModel):
    """The full, validated batch ready for submission."""

    model_config = _FROZEN

    commit_id: str = Field(min_length=1)
    comments: tuple[Comment, ...] = ()
    intent: SubmissionIntent = Field(default_factory=PendingThenSubmit)

    @property
    def event(self) -> ReviewEvent | None:
        return self.intent.event if isinstance(self.intent, AutoSubmit) else None

    @property
    def summary_body(self) -> str | None:
        return self.intent.body

    @property
    def auto_submits(self) -> bool:
        return isinstance(self.intent, AutoSubmit)


class ValidationIssue(BaseModel):
    """One client-side problem with a review batch."""

    model_config = _FROZEN

    code: IssueCode
    message: str
    index: int | None = None  # Comment index within the batch
    field: str | None = None
    path: str | None = None
    position: int | None = None
    min_position: int | None = None
    max_position: int | None = None


class ReviewSubmissionResult(BaseModel):
    """Outcome of creating or submitting a review."""

    model_config = _FROZEN

    id: int
    state: ReviewState
    api_state: str = ""
    html_url: str = ""


class StandaloneCommentResult(BaseModel):
    """Per-comment outcome of the degraded posting path."""

    model_config = _FROZEN

    index: int
    path: str
    position: int
    ok: bool
    comment_id: int | None = None
    error: str | None = None


class SubmissionReport(BaseModel):
    """What happened when a draft was sent, atomic or degraded."""

    model_config = _FROZEN

    mode: SubmissionMode = SubmissionMode.ATOMIC
    review: ReviewSubmissionResult
    comment_results: tuple[StandaloneCommentResult, ...] = ()
    atomic_error: str | None = None

    @property
    def degraded(self) -> bool:
        return self.mode == SubmissionMode.DEGRADED

    @property
    def failed_comments(self) -> list[StandaloneCommentResult]:
        return [r for r in self.comment_results if not r.ok]


# ── Consolidation Models ─────────────────────────────────────────────────────


class Finding(BaseModel):
    """A candidate comment produced by one analysis pass."""

    model_config = _FROZEN

    severity: Severity
    source_tag: str
    comment: Comment
    title: str = ""


class AnalysisOutcome(BaseModel):
    """Telemetry and output from a single analysis pass."""

    source_tag: str
    findings: list[Finding] = Field(default_factory=list)
    duration_ms: int = 0
    error: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.error is None


class ConsolidatedReview(BaseModel):
    """Merged findings plus the event and summary derived from them."""

    findings: list[Finding] = Field(default_factory=list)
    event: ReviewEvent = ReviewEvent.APPROVE
    summary_body: str = ""
    sources: list[str] = Field(default_factory=list)
    failed_sources: list[str] = Field(default_factory=list)

    @property
    def stats(self) -> dict[str, Any]:
        """Quick stats for logging / CLI output."""
        return {
            "total_findings": len(self.findings),
            "by_severity": {s.value: sum(1 for f in self.findings if f.severity == s) for s in Severity},
            "recommended_event": self.event.value,
            "failed_sources": list(self.failed_sources),
        }
