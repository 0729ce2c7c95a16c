"""Tests for pinpoint.core.models — domain model contracts."""

from __future__ import annotations

import pytest
from pydantic import TypeAdapter, ValidationError

from pinpoint.core.models import (
    AutoSubmit,
    Comment,
    DiffLine,
    FileDiff,
    Hunk,
    HunkHeader,
    LineKind,
    PendingThenSubmit,
    ReviewDraft,
    ReviewEvent,
    ReviewState,
    ReviewSubmissionResult,
    StandaloneCommentResult,
    SubmissionIntent,
    SubmissionMode,
    SubmissionReport,
)


class TestDiffLine:
    @pytest.mark.parametrize(
        ("kind", "marker"),
        [(LineKind.ADDED, "+"), (LineKind.REMOVED, "-"), (LineKind.CONTEXT, " "), (LineKind.BLANK, "")],
    )
    def test_marker(self, kind, marker):
        assert DiffLine(kind=kind).marker == marker

    def test_frozen(self):
        line = DiffLine(kind=LineKind.ADDED, text="x", position=1)
        with pytest.raises(ValidationError):
            line.position = 2


class TestFileDiff:
    def test_requires_path(self):
        with pytest.raises(ValidationError):
            FileDiff(path="")

    def test_position_helpers(self):
        hunk = Hunk(
            header=HunkHeader(old_start=1, new_start=1),
            lines=(DiffLine(kind=LineKind.REMOVED, text="a", position=1), DiffLine(kind=LineKind.ADDED, text="b", position=2)),
        )
        file_diff = FileDiff(path="a.py", hunks=(hunk,))
        assert file_diff.max_position == 2
        assert file_diff.valid_position_range == (1, 2)
        assert file_diff.line_at(2).text == "b"


class TestComment:
    def test_valid(self):
        c = Comment(path="a.py", position=3, body="b")
        assert c.position == 3

    @pytest.mark.parametrize("position", [0, -1, "3", 2.0, True])
    def test_position_must_be_positive_int(self, position):
        with pytest.raises(ValidationError):
            Comment(path="a.py", position=position, body="b")

    @pytest.mark.parametrize(("path", "body"), [("", "b"), ("a.py", "")])
    def test_non_empty_fields(self, path, body):
        with pytest.raises(ValidationError):
            Comment(path=path, position=1, body=body)


class TestReviewDraft:
    def test_default_intent_is_pending(self):
        draft = ReviewDraft(commit_id="abc")
        assert isinstance(draft.intent, PendingThenSubmit)
        assert draft.event is None
        assert not draft.auto_submits

    def test_auto_submit(self):
        draft = ReviewDraft(commit_id="abc", intent=AutoSubmit(event=ReviewEvent.APPROVE, body="lgtm"))
        assert draft.event == ReviewEvent.APPROVE
        assert draft.summary_body == "lgtm"
        assert draft.auto_submits

    def test_auto_submit_requires_body(self):
        with pytest.raises(ValidationError):
            AutoSubmit(event=ReviewEvent.COMMENT, body="")

    def test_requires_commit(self):
        with pytest.raises(ValidationError):
            ReviewDraft(commit_id="")

    def test_intent_discriminated_by_kind(self):
        adapter = TypeAdapter(SubmissionIntent)
        assert isinstance(adapter.validate_python({"kind": "pending"}), PendingThenSubmit)
        parsed = adapter.validate_python({"kind": "auto_submit", "event": "COMMENT", "body": "ok"})
        assert isinstance(parsed, AutoSubmit)


class TestSubmissionReport:
    def test_failed_comments(self):
        report = SubmissionReport(
            mode=SubmissionMode.DEGRADED,
            review=ReviewSubmissionResult(id=1, state=ReviewState.SUBMITTED),
            comment_results=(
                StandaloneCommentResult(index=0, path="a.py", position=1, ok=True, comment_id=5),
                StandaloneCommentResult(index=1, path="a.py", position=9, ok=False, error="nope"),
            ),
        )
        assert report.degraded
        assert [r.index for r in report.failed_comments] == [1]

    def test_atomic_default(self):
        report = SubmissionReport(review=ReviewSubmissionResult(id=1, state=ReviewState.PENDING))
        assert not report.degraded
