"""Domain exception hierarchy.

All exceptions inherit from ``PinpointError`` so callers can catch broadly
or narrowly as needed.  The CLI maps them to exit code 1 and FastAPI exception
handlers map them to HTTP responses.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from pinpoint.core.models import ValidationIssue


class PinpointError(Exception):
    """Base exception for all Pinpoint errors."""

    def __init__(self, message: str = "", *, detail: str = "") -> None:
        self.detail = detail or message
        super().__init__(message)


# ── Diff parsing ─────────────────────────────────────────────────────────────


class DiffParseError(PinpointError):
    """The supplied diff text could not be turned into hunks."""


class FileNotInDiffError(DiffParseError):
    """The requested file has no hunks in the supplied diff."""

    def __init__(self, path: str, available_files: Sequence[str] = ()) -> None:
        self.path = path
        self.available_files = list(available_files)
        listing = ", ".join(self.available_files) or "none"
        super().__init__(
            f"File '{path}' not found in diff",
            detail=f"Available files: {listing}",
        )


# ── Validation ───────────────────────────────────────────────────────────────


class ValidationError(PinpointError):
    """Input validation failed."""


class InvalidPRURLError(ValidationError):
    """The provided PR URL could not be parsed."""


class InvalidRepositoryError(ValidationError):
    """A repository reference is not of the form ``owner/repo``."""


class ReviewValidationError(ValidationError):
    """A review batch failed client-side validation.

    Carries every issue found, not just the first one.
    """

    def __init__(self, issues: Sequence[ValidationIssue]) -> None:
        self.issues = list(issues)
        super().__init__(
            f"Review has {len(self.issues)} validation issue(s)",
            detail="; ".join(issue.message for issue in self.issues),
        )


# ── GitHub ───────────────────────────────────────────────────────────────────


class GitHubError(PinpointError):
    """Error communicating with the GitHub API."""


class GitHubAuthError(GitHubError):
    """Missing, invalid or expired GitHub token."""


class GitHubRateLimitError(GitHubError):
    """GitHub API rate limit exhausted."""

    def __init__(self, reset_at: int | None = None) -> None:
        self.reset_at = reset_at
        super().__init__("GitHub API rate limit exceeded", detail=f"Resets at {reset_at}")


class PRNotFoundError(GitHubError):
    """The requested PR (or review) does not exist or is not accessible."""


class GitHubTransportError(GitHubError):
    """Network failure, timeout or 5xx response.

    ``may_have_landed`` is False only when the request provably never reached
    the server (the connection could not be established).
    """

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        may_have_landed: bool = True,
    ) -> None:
        self.status_code = status_code
        self.may_have_landed = may_have_landed
        super().__init__(message)


# ── Review protocol ──────────────────────────────────────────────────────────


class ProtocolError(GitHubError):
    """The review API rejected a request because a contract was violated.

    Never retried.  ``hint`` tells the caller how to recover and
    ``review_state`` reports what the client knows about the review afterwards.
    """

    default_hint: str = ""

    def __init__(
        self,
        message: str,
        *,
        hint: str = "",
        field: str | None = None,
        comment_index: int | None = None,
        review_id: int | None = None,
        review_state: str | None = None,
    ) -> None:
        self.hint = hint or self.default_hint
        self.field = field
        self.comment_index = comment_index
        self.review_id = review_id
        self.review_state = review_state
        super().__init__(message, detail=self.hint or message)


class WrongFieldTypeError(ProtocolError):
    """A field was sent with the wrong JSON type (e.g. position as a string) or null."""

    default_hint = "Send 'position' as a JSON number and make sure path, position and body are set"


class AlreadySubmittedError(ProtocolError):
    """A submit event was sent for a review that is no longer pending."""

    default_hint = "The review is already closed; create a new review instead of submitting again"


class UnsupportedUpdateError(ProtocolError):
    """Comments cannot be added to a review after it has been created."""

    default_hint = (
        "Recreate the review with the corrected comments, "
        "or post the comments individually"
    )


class PositionUnresolvedError(ProtocolError):
    """The API could not resolve a comment position against the diff."""

    default_hint = "Re-validate every position against the current diff of the pull request"


class PendingReviewExistsError(ProtocolError):
    """The authenticated user already has a pending review on this pull request."""

    default_hint = "Submit or delete the existing pending review before creating another"


# ── Pipeline ─────────────────────────────────────────────────────────────────


class PipelineError(PinpointError):
    """Error during analysis fan-out."""
