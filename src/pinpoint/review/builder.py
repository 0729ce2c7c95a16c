"""Review payload builder — turns raw comment entries into a validated ReviewDraft.

Validation is batch-wide: every entry is checked and every problem is
reported together, so nothing reaches the network until the whole batch is
clean.
"""

from __future__ import annotations

from collections.abc import Collection, Mapping, Sequence
from typing import Any

from pinpoint.core.exceptions import ReviewValidationError
from pinpoint.core.logging import get_logger
from pinpoint.core.models import (
    AutoSubmit,
    Comment,
    FileDiff,
    IssueCode,
    PendingThenSubmit,
    ReviewDraft,
    ReviewEvent,
    ValidationIssue,
)
from pinpoint.diff.validator import validate_position

logger = get_logger(__name__)

# Fields a position-addressed comment never carries
_IGNORED_COMMENT_FIELDS = {"side", "line", "start_line", "start_side"}

CommentEntry = Comment | Mapping[str, Any] | Sequence[Any]


def _unpack(entry: CommentEntry) -> tuple[Any, Any, Any]:
    if isinstance(entry, Comment):
        return entry.path, entry.position, entry.body
    if isinstance(entry, Mapping):
        return entry.get("path"), entry.get("position"), entry.get("body")
    if isinstance(entry, str):
        raise TypeError("comment entry is a string")
    path, position, body = entry
    return path, position, body


def _is_positive_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value > 0


def _is_blank(value: Any) -> bool:
    return not isinstance(value, str) or not value.strip()


def _position_message(index: int, position: Any) -> str:
    if isinstance(position, str) and position.strip().isdigit():
        return f"Comment {index}: position must be a JSON number, got string {position!r}"
    return f"Comment {index}: position must be a positive integer, got {position!r}"


def validate_entries(
    entries: Sequence[CommentEntry],
    files: Mapping[str, FileDiff],
    changed_files: Collection[str] | None = None,
) -> list[ValidationIssue]:
    """Check every (path, position, body) entry; return all issues found."""
    issues: list[ValidationIssue] = []

    for index, entry in enumerate(entries):
        try:
            path, position, body = _unpack(entry)
        except (TypeError, ValueError):
            issues.append(
                ValidationIssue(
                    code=IssueCode.MALFORMED_PAYLOAD,
                    index=index,
                    message=f"Comment {index}: expected an object with path, position and body",
                )
            )
            continue

        if isinstance(entry, Mapping):
            ignored = _IGNORED_COMMENT_FIELDS.intersection(entry)
            if ignored:
                logger.warning("ignored_comment_fields", index=index, fields=sorted(ignored))

        path_ok = not _is_blank(path)
        position_ok = _is_positive_int(position)

        if not path_ok:
            issues.append(
                ValidationIssue(
                    code=IssueCode.EMPTY_FIELD,
                    index=index,
                    field="path",
                    message=f"Comment {index}: 'path' is empty",
                )
            )
        if not position_ok:
            issues.append(
                ValidationIssue(
                    code=IssueCode.INVALID_POSITION,
                    index=index,
                    field="position",
                    path=path if path_ok else None,
                    message=_position_message(index, position),
                )
            )
        if _is_blank(body):
            issues.append(
                ValidationIssue(
                    code=IssueCode.EMPTY_FIELD,
                    index=index,
                    field="body",
                    path=path if path_ok else None,
                    message=f"Comment {index}: 'body' is empty",
                )
            )

        if not path_ok:
            continue

        known = path in files and (changed_files is None or path in changed_files)
        if not known:
            issues.append(
                ValidationIssue(
                    code=IssueCode.UNKNOWN_FILE,
                    index=index,
                    field="path",
                    path=path,
                    message=f"Comment {index}: '{path}' is not part of the pull request diff",
                )
            )
            continue

        if position_ok:
            check = validate_position(files[path], position)
            if not check.ok:
                issues.append(
                    ValidationIssue(
                        code=IssueCode.POSITION_OUT_OF_RANGE,
                        index=index,
                        field="position",
                        path=path,
                        position=position,
                        min_position=check.min_position,
                        max_position=check.max_position,
                        message=(
                            f"Comment {index}: position {position} in '{path}' is out of range "
                            f"[{check.min_position}-{check.max_position}]"
                        ),
                    )
                )

    return issues


def _coerce_event(value: Any, issues: list[ValidationIssue]) -> ReviewEvent | None:
    if value is None or value == "":
        return None
    if isinstance(value, ReviewEvent):
        return value
    try:
        return ReviewEvent(str(value).strip().upper())
    except ValueError:
        issues.append(
            ValidationIssue(
                code=IssueCode.MALFORMED_PAYLOAD,
                field="event",
                message=f"Unknown event {value!r}; use one of {', '.join(e.value for e in ReviewEvent)}",
            )
        )
        return None


def _build(
    commit_id: Any,
    entries: Sequence[CommentEntry],
    files: Mapping[str, FileDiff],
    event: Any,
    summary_body: Any,
    changed_files: Collection[str] | None,
    issues: list[ValidationIssue],
) -> ReviewDraft:
    if _is_blank(commit_id):
        issues.append(
            ValidationIssue(code=IssueCode.MISSING_COMMIT, field="commit_id", message="commit_id is required")
        )

    resolved_event = _coerce_event(event, issues)
    if resolved_event is not None and _is_blank(summary_body):
        issues.append(
            ValidationIssue(
                code=IssueCode.MISSING_SUMMARY,
                field="body",
                message=f"A summary body is required when event is {resolved_event.value}",
            )
        )

    issues.extend(validate_entries(entries, files, changed_files))

    if issues:
        logger.warning("review_validation_failed", issue_count=len(issues))
        raise ReviewValidationError(issues)

    comments = tuple(
        Comment(path=path, position=position, body=body)
        for path, position, body in map(_unpack, entries)
    )
    if resolved_event is not None:
        intent: AutoSubmit | PendingThenSubmit = AutoSubmit(event=resolved_event, body=summary_body)
    else:
        intent = PendingThenSubmit(body=summary_body if not _is_blank(summary_body) else None)

    draft = ReviewDraft(commit_id=commit_id.strip(), comments=comments, intent=intent)
    logger.info(
        "built_review_draft",
        comment_count=len(comments),
        files=len({c.path for c in comments}),
        intent=intent.kind,
    )
    return draft


def build_review_draft(
    commit_id: str,
    entries: Sequence[CommentEntry],
    files: Mapping[str, FileDiff],
    *,
    event: ReviewEvent | str | None = None,
    summary_body: str | None = None,
    changed_files: Collection[str] | None = None,
) -> ReviewDraft:
    """Validate a batch of comments and assemble an immutable ReviewDraft.

    Args:
        commit_id: SHA of the commit being reviewed.
        entries: (path, position, body) triples, mappings or Comments.
        files: Indexed FileDiffs of the session, keyed by path.
        event: Optional closing event; its presence makes the review auto-submit.
        summary_body: Overall review body (required with an event).
        changed_files: Optional PR file list; paths outside it are unknown.

    Raises:
        ReviewValidationError: With every issue found in the batch.
    """
    return _build(commit_id, entries, files, event, summary_body, changed_files, [])


def draft_from_payload(
    payload: Any,
    files: Mapping[str, FileDiff],
    changed_files: Collection[str] | None = None,
    *,
    commit_id: str | None = None,
) -> ReviewDraft:
    """Build a draft from a review JSON document.

    The document has the shape ``{"commit_id", "event"?, "body"?, "comments": [...]}``.
    ``commit_id`` fills in a missing ``commit_id`` field.

    Raises:
        ReviewValidationError: With structural and per-comment issues together.
    """
    issues: list[ValidationIssue] = []

    if not isinstance(payload, Mapping):
        raise ReviewValidationError(
            [ValidationIssue(code=IssueCode.MALFORMED_PAYLOAD, message="Review document must be a JSON object")]
        )

    comments = payload.get("comments", [])
    if not isinstance(comments, list):
        issues.append(
            ValidationIssue(
                code=IssueCode.MALFORMED_PAYLOAD,
                field="comments",
                message="'comments' must be an array",
            )
        )
        comments = []

    return _build(
        payload.get("commit_id") or commit_id,
        comments,
        files,
        payload.get("event"),
        payload.get("body"),
        changed_files,
        issues,
    )
