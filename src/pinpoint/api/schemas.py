"""API request/response schemas."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

from pinpoint.core.models import (
    FileDiff,
    PositionCheck,
    ReviewDraft,
    ReviewEvent,
    ReviewSubmissionResult,
    SubmissionReport,
    ValidationIssue,
)
from pinpoint.diff.positions import build_newline_to_position
from pinpoint.diff.validator import render_check


# ── Positions ────────────────────────────────────────────────────────────────


class PositionsRequest(BaseModel):
    """List the commentable positions of one file."""

    diff_text: str = Field(..., min_length=1, description="Unified diff (multi-file or a bare patch)")
    path: str = Field(..., min_length=1, examples=["src/app.py"])


class ValidatePositionRequest(PositionsRequest):
    """Check one position of one file."""

    position: int = Field(..., description="Diff position to check")


class PositionLineResponse(BaseModel):
    position: int
    kind: str
    text: str
    new_line: int | None = None


class HunkResponse(BaseModel):
    header: str
    first_position: int
    last_position: int
    lines: list[PositionLineResponse] = []


class PositionsResponse(BaseModel):
    path: str
    max_position: int
    hunks: list[HunkResponse] = []

    @classmethod
    def from_file_diff(cls, file_diff: FileDiff) -> PositionsResponse:
        new_lines = {p: n for n, p in build_newline_to_position(file_diff).items()}
        hunks = []
        for hunk in file_diff.hunks:
            span = hunk.position_range
            if span is None:
                continue
            first, last = span
            hunks.append(
                HunkResponse(
                    header=hunk.header.render(),
                    first_position=first,
                    last_position=last,
                    lines=[
                        PositionLineResponse(
                            position=line.position,
                            kind=line.kind.value,
                            text=line.text,
                            new_line=new_lines.get(line.position),
                        )
                        for line in hunk.lines
                    ],
                )
            )
        return cls(path=file_diff.path, max_position=file_diff.max_position, hunks=hunks)


class PositionCheckResponse(BaseModel):
    valid: bool
    status: str
    path: str
    position: int
    min_position: int | None = None
    max_position: int | None = None
    hunks: list[str] = []
    available_files: list[str] = []
    messages: list[str] = []

    @classmethod
    def from_check(cls, check: PositionCheck) -> PositionCheckResponse:
        return cls(
            valid=check.ok,
            status=check.status.value,
            path=check.path,
            position=check.position,
            min_position=check.min_position,
            max_position=check.max_position,
            hunks=[span.render() for span in check.hunks],
            available_files=list(check.available_files),
            messages=render_check(check),
        )


# ── Reviews ──────────────────────────────────────────────────────────────────


class ReviewValidateRequest(BaseModel):
    """Validate a review document against a diff without posting it."""

    diff_text: str = Field(..., min_length=1)
    review: Any = Field(..., description="Review JSON document: commit_id, event?, body?, comments")
    commit_id: str | None = Field(default=None, description="Used when the document has no commit_id")


class CommentResponse(BaseModel):
    path: str
    position: int
    body: str


class DraftResponse(BaseModel):
    """A validated review draft."""

    commit_id: str
    event: str | None = None
    body: str | None = None
    comments: list[CommentResponse] = []

    @classmethod
    def from_draft(cls, draft: ReviewDraft) -> DraftResponse:
        return cls(
            commit_id=draft.commit_id,
            event=draft.event.value if draft.event else None,
            body=draft.summary_body,
            comments=[CommentResponse(path=c.path, position=c.position, body=c.body) for c in draft.comments],
        )


class CreateReviewRequest(BaseModel):
    """Build and post a review on a pull request."""

    repository: str = Field(..., examples=["octocat/hello-world"])
    pr_number: int = Field(..., gt=0)
    comments: list[Any] = Field(default_factory=list, description="Entries with path, position and body")
    commit_id: str | None = Field(default=None, description="Defaults to the PR head commit")
    event: ReviewEvent | None = Field(default=None, description="Submit on creation; omit to leave PENDING")
    body: str | None = None
    fallback: bool = Field(default=True, description="Post comments individually if the batch is rejected")


class SubmitReviewRequest(BaseModel):
    """Submit a PENDING review."""

    repository: str
    pr_number: int = Field(..., gt=0)
    event: ReviewEvent
    body: str = Field(..., min_length=1)


class ReviewResultResponse(BaseModel):
    review_id: int
    state: str
    api_state: str = ""
    html_url: str = ""

    @classmethod
    def from_result(cls, result: ReviewSubmissionResult) -> ReviewResultResponse:
        return cls(
            review_id=result.id,
            state=result.state.value,
            api_state=result.api_state,
            html_url=result.html_url,
        )


class CommentOutcomeResponse(BaseModel):
    index: int
    path: str
    position: int
    ok: bool
    comment_id: int | None = None
    error: str | None = None


class SubmissionResponse(BaseModel):
    """Outcome of posting a review, atomic or degraded."""

    mode: str
    review: ReviewResultResponse
    comment_results: list[CommentOutcomeResponse] = []
    atomic_error: str | None = None

    @classmethod
    def from_report(cls, report: SubmissionReport) -> SubmissionResponse:
        return cls(
            mode=report.mode.value,
            review=ReviewResultResponse.from_result(report.review),
            comment_results=[
                CommentOutcomeResponse(**outcome.model_dump()) for outcome in report.comment_results
            ],
            atomic_error=report.atomic_error,
        )


# ── Misc ─────────────────────────────────────────────────────────────────────


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = "healthy"
    version: str = "0.1.0"
    services: dict[str, str] = {}


class IssueResponse(BaseModel):
    code: str
    message: str
    index: int | None = None
    field: str | None = None

    @classmethod
    def from_issue(cls, issue: ValidationIssue) -> IssueResponse:
        return cls(code=issue.code.value, message=issue.message, index=issue.index, field=issue.field)


class ErrorResponse(BaseModel):
    """Error response."""

    error: str
    detail: str = ""
    hint: str | None = None
    review_state: str | None = None
    issues: list[IssueResponse] = []
    available_files: list[str] = []
