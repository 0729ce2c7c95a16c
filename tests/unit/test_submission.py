"""Tests for pinpoint.review.submission — the two-phase review protocol."""

from __future__ import annotations

import json

import httpx
import pytest

from pinpoint.core.exceptions import (
    AlreadySubmittedError,
    GitHubTransportError,
    PendingReviewExistsError,
    ReviewValidationError,
    UnsupportedUpdateError,
    WrongFieldTypeError,
)
from pinpoint.core.models import (
    AutoSubmit,
    Comment,
    IssueCode,
    ReviewDraft,
    ReviewEvent,
    ReviewState,
    SubmissionMode,
)
from pinpoint.review.submission import ReviewSubmitter

COMMENT = Comment(path="src/x.ts", position=2, body="Unused import")


@pytest.fixture
def submitter(github_client):
    return ReviewSubmitter(github_client, "octo", "repo", 42)


def _auto_draft(*comments: Comment) -> ReviewDraft:
    return ReviewDraft(
        commit_id="abc",
        comments=comments or (COMMENT,),
        intent=AutoSubmit(event=ReviewEvent.COMMENT, body="ok"),
    )


def _pending_draft(*comments: Comment) -> ReviewDraft:
    return ReviewDraft(commit_id="abc", comments=comments or (COMMENT,))


class TestAutoSubmit:
    @pytest.mark.asyncio
    async def test_create_with_event_is_submitted(self, submitter, fake_github):
        result = await submitter.create(_auto_draft())
        assert result.state == ReviewState.SUBMITTED
        assert result.api_state == "COMMENTED"
        assert submitter.state_of(result.id) == ReviewState.SUBMITTED

        [request] = fake_github.posts("/reviews")
        sent = json.loads(request.content)
        assert sent["event"] == "COMMENT"
        assert sent["comments"] == [{"path": "src/x.ts", "position": 2, "body": "Unused import"}]

    @pytest.mark.asyncio
    async def test_submit_after_auto_submit_fails_without_network(self, submitter, fake_github):
        result = await submitter.create(_auto_draft())
        sent_before = len(fake_github.requests)

        with pytest.raises(AlreadySubmittedError) as exc_info:
            await submitter.submit_pending(result.id, ReviewEvent.APPROVE, "lgtm")

        assert exc_info.value.review_state == "submitted"
        assert len(fake_github.requests) == sent_before

    @pytest.mark.asyncio
    async def test_post_with_extra_event_is_rejected_locally(self, submitter, fake_github):
        with pytest.raises(AlreadySubmittedError):
            await submitter.post(_auto_draft(), event=ReviewEvent.APPROVE)
        assert fake_github.requests == []


class TestPendingThenSubmit:
    @pytest.mark.asyncio
    async def test_pending_then_submit(self, submitter, fake_github):
        created = await submitter.create(_pending_draft())
        assert created.state == ReviewState.PENDING
        sent = json.loads(fake_github.posts("/reviews")[0].content)
        assert "event" not in sent

        submitted = await submitter.submit_pending(created.id, ReviewEvent.REQUEST_CHANGES, "fix this")
        assert submitted.state == ReviewState.SUBMITTED
        assert submitted.api_state == "CHANGES_REQUESTED"

        with pytest.raises(AlreadySubmittedError):
            await submitter.submit_pending(created.id, ReviewEvent.REQUEST_CHANGES, "fix this")
        assert len(fake_github.posts("/events")) == 1

    @pytest.mark.asyncio
    async def test_server_side_already_submitted(self, github_client, fake_github):
        first = ReviewSubmitter(github_client, "octo", "repo", 42)
        created = await first.create(_pending_draft())
        await first.submit_pending(created.id, ReviewEvent.COMMENT, "done")

        # A fresh submitter has no local knowledge of the review
        second = ReviewSubmitter(github_client, "octo", "repo", 42)
        with pytest.raises(AlreadySubmittedError) as exc_info:
            await second.submit_pending(created.id, ReviewEvent.COMMENT, "again")

        assert exc_info.value.review_id == created.id
        assert second.state_of(created.id) == ReviewState.SUBMITTED
        assert len(fake_github.posts("/events")) == 2

    @pytest.mark.asyncio
    async def test_empty_body_rejected(self, submitter, fake_github):
        with pytest.raises(ReviewValidationError):
            await submitter.submit_pending(101, ReviewEvent.COMMENT, "   ")
        assert fake_github.requests == []

    @pytest.mark.asyncio
    async def test_post_runs_both_phases(self, submitter, fake_github):
        result = await submitter.post(_pending_draft(), event=ReviewEvent.APPROVE, body="lgtm")
        assert result.state == ReviewState.SUBMITTED
        assert len(fake_github.posts("/reviews")) == 1
        assert len(fake_github.posts("/events")) == 1

    @pytest.mark.asyncio
    async def test_post_event_without_summary_creates_nothing(self, submitter, fake_github):
        with pytest.raises(ReviewValidationError) as exc_info:
            await submitter.post(_pending_draft(), event=ReviewEvent.APPROVE)

        assert [issue.code for issue in exc_info.value.issues] == [IssueCode.MISSING_SUMMARY]
        assert fake_github.posts("/reviews") == []
        assert fake_github.reviews == {}

    @pytest.mark.asyncio
    async def test_post_with_fallback_event_without_summary_creates_nothing(self, submitter, fake_github):
        with pytest.raises(ReviewValidationError):
            await submitter.post_with_fallback(_pending_draft(), event=ReviewEvent.COMMENT, body="  ")
        assert fake_github.requests == []

    @pytest.mark.asyncio
    async def test_post_without_event_stays_pending(self, submitter):
        result = await submitter.post(_pending_draft())
        assert result.state == ReviewState.PENDING

    @pytest.mark.asyncio
    async def test_add_comments_unsupported(self, submitter):
        created = await submitter.create(_pending_draft())
        with pytest.raises(UnsupportedUpdateError) as exc_info:
            await submitter.add_comments(created.id, [COMMENT])
        assert exc_info.value.review_state == "pending"
        assert exc_info.value.hint


class TestSubmitTransportFailure:
    @pytest.mark.asyncio
    async def test_landed_submit_is_reported_as_submitted(self, submitter, fake_github):
        created = await submitter.create(_pending_draft())
        path = f"{fake_github.prefix}/reviews/{created.id}/events"

        def _lands_then_fails(request: httpx.Request) -> httpx.Response:
            fake_github.reviews[created.id]["state"] = "APPROVED"
            return httpx.Response(502, json={"message": "Bad Gateway"})

        fake_github.overrides[("POST", path)] = _lands_then_fails

        result = await submitter.submit_pending(created.id, ReviewEvent.APPROVE, "lgtm")
        assert result.state == ReviewState.SUBMITTED
        assert len(fake_github.posts("/events")) == 1

    @pytest.mark.asyncio
    async def test_failed_submit_is_not_retried(self, submitter, fake_github):
        created = await submitter.create(_pending_draft())
        path = f"{fake_github.prefix}/reviews/{created.id}/events"
        fake_github.overrides[("POST", path)] = lambda request: httpx.Response(503, json={})

        with pytest.raises(GitHubTransportError):
            await submitter.submit_pending(created.id, ReviewEvent.APPROVE, "lgtm")

        assert len(fake_github.posts("/events")) == 1
        assert submitter.state_of(created.id) == ReviewState.PENDING


class TestProtocolErrors:
    @pytest.mark.asyncio
    async def test_wrong_field_type_surfaces(self, submitter, fake_github):
        path = f"{fake_github.prefix}/reviews"
        fake_github.overrides[("POST", path)] = lambda request: httpx.Response(
            422, json={"message": "Invalid request.", "errors": ['For "position", "2" is not a number.']}
        )
        with pytest.raises(WrongFieldTypeError) as exc_info:
            await submitter.create(_pending_draft())
        assert exc_info.value.field == "position"
        assert len(fake_github.posts("/reviews")) == 1


class TestFallback:
    @pytest.mark.asyncio
    async def test_atomic_when_accepted(self, submitter):
        report = await submitter.post_with_fallback(_auto_draft())
        assert report.mode == SubmissionMode.ATOMIC
        assert not report.degraded
        assert report.comment_results == ()

    @pytest.mark.asyncio
    async def test_degrades_to_individual_comments(self, submitter, fake_github):
        bad = Comment(path="src/y.ts", position=6, body="Unresolvable")
        fake_github.unresolvable.add(("src/y.ts", 6))

        report = await submitter.post_with_fallback(_auto_draft(COMMENT, bad))

        assert report.degraded
        assert "could not be resolved" in report.atomic_error
        assert [r.ok for r in report.comment_results] == [True, False]
        assert [r.path for r in report.failed_comments] == ["src/y.ts"]
        assert len(fake_github.comments) == 1

        summary_review = fake_github.reviews[report.review.id]
        assert summary_review["state"] == "COMMENTED"
        assert "posted individually" in summary_review["body"]

    @pytest.mark.asyncio
    async def test_degraded_pending_draft_uses_comment_event(self, submitter, fake_github):
        fake_github.unresolvable.add(("src/x.ts", 2))

        report = await submitter.post_with_fallback(_pending_draft())

        assert report.degraded
        assert report.review.state == ReviewState.SUBMITTED
        assert fake_github.reviews[report.review.id]["state"] == "COMMENTED"

    @pytest.mark.asyncio
    async def test_other_protocol_errors_do_not_degrade(self, submitter, fake_github):
        path = f"{fake_github.prefix}/reviews"
        fake_github.overrides[("POST", path)] = lambda request: httpx.Response(
            422, json={"message": "User can only have one pending review per pull request"}
        )
        with pytest.raises(PendingReviewExistsError):
            await submitter.post_with_fallback(_pending_draft())
        assert fake_github.posts("/comments") == []
