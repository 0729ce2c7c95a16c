"""Review submission state machine.

GitHub's create-review endpoint has two behaviours depending on whether the
payload carries an ``event``:

* with an event the review is created **and** submitted in one call
  (``Drafted → Submitted``);
* without one it is left ``PENDING`` and a second call to the events endpoint
  performs the only legal transition ``Pending → Submitted``.

A submitted review can never be submitted again, and a pending review cannot
receive more comments.  ``ReviewSubmitter`` makes the chosen shape explicit
and refuses illegal transitions it can detect before touching the network.
"""

from __future__ import annotations

from pinpoint.core.constants import API_STATE_MAP, DEFAULT_EVENT_FOR_DEGRADED, DEGRADED_SUMMARY_NOTE
from pinpoint.core.exceptions import (
    AlreadySubmittedError,
    GitHubError,
    GitHubTransportError,
    PositionUnresolvedError,
    ProtocolError,
    ReviewValidationError,
    UnsupportedUpdateError,
)
from pinpoint.core.logging import get_logger
from pinpoint.core.models import (
    Comment,
    IssueCode,
    ReviewDraft,
    ReviewEvent,
    ReviewState,
    ReviewSubmissionResult,
    StandaloneCommentResult,
    SubmissionMode,
    SubmissionReport,
    ValidationIssue,
)
from pinpoint.github.client import GitHubClient
from pinpoint.github.schemas import (
    CreateReviewPayload,
    GitHubReview,
    StandaloneCommentPayload,
    SubmitReviewPayload,
)

logger = get_logger(__name__)


def _to_result(review: GitHubReview, expected: ReviewState) -> ReviewSubmissionResult:
    state = API_STATE_MAP.get(review.state.upper(), expected)
    return ReviewSubmissionResult(
        id=review.id,
        state=state,
        api_state=review.state,
        html_url=review.html_url,
    )


def _require_summary(body: str | None, event: ReviewEvent) -> None:
    if not body or not body.strip():
        raise ReviewValidationError(
            [
                ValidationIssue(
                    code=IssueCode.MISSING_SUMMARY,
                    field="body",
                    message=f"A summary body is required to submit a review as {event.value}",
                )
            ]
        )


class ReviewSubmitter:
    """Drives one pull request's reviews through the submission protocol.

    The submitter remembers the state of every review it has created or
    submitted, so a second submit on a review it knows is closed fails with
    ``AlreadySubmittedError`` without a network call.
    """

    def __init__(self, client: GitHubClient, owner: str, repo: str, pr_number: int) -> None:
        self._client = client
        self._owner = owner
        self._repo = repo
        self._pr_number = pr_number
        self._states: dict[int, ReviewState] = {}

    def state_of(self, review_id: int) -> ReviewState | None:
        """Last known state of a review, or None if this submitter never saw it."""
        return self._states.get(review_id)

    async def create(self, draft: ReviewDraft) -> ReviewSubmissionResult:
        """Send the draft; auto-submitted if it carries an event, else PENDING."""
        expected = ReviewState.SUBMITTED if draft.auto_submits else ReviewState.PENDING
        review = await self._client.create_review(
            self._owner, self._repo, self._pr_number, CreateReviewPayload.from_draft(draft)
        )
        result = _to_result(review, expected)
        self._states[result.id] = result.state

        logger.info(
            "review_created",
            review_id=result.id,
            state=result.state.value,
            api_state=result.api_state,
            comment_count=len(draft.comments),
        )
        return result

    async def submit_pending(self, review_id: int, event: ReviewEvent, body: str) -> ReviewSubmissionResult:
        """Close a PENDING review with an event and summary body.

        Raises:
            AlreadySubmittedError: If the review is already submitted.  Never retried.
            ReviewValidationError: If ``body`` is empty.
        """
        known = self._states.get(review_id)
        if known == ReviewState.SUBMITTED:
            raise AlreadySubmittedError(
                f"Review {review_id} was already submitted",
                review_id=review_id,
                review_state=ReviewState.SUBMITTED.value,
            )
        _require_summary(body, event)

        payload = SubmitReviewPayload(event=event, body=body)
        try:
            review = await self._client.submit_review(
                self._owner, self._repo, self._pr_number, review_id, payload
            )
        except AlreadySubmittedError as exc:
            self._states[review_id] = ReviewState.SUBMITTED
            exc.review_id = review_id
            exc.review_state = ReviewState.SUBMITTED.value
            raise
        except ProtocolError as exc:
            exc.review_id = review_id
            exc.review_state = (known or ReviewState.PENDING).value
            raise
        except GitHubTransportError as exc:
            # Not retried: the submit may have landed.  Look before reporting.
            current = await self._refresh_state(review_id)
            if current is not None and current.state == ReviewState.SUBMITTED:
                logger.warning("submit_landed_despite_error", review_id=review_id, error=str(exc))
                return current
            raise

        result = _to_result(review, ReviewState.SUBMITTED)
        self._states[review_id] = result.state
        logger.info("review_submitted", review_id=review_id, review_event=event.value, api_state=result.api_state)
        return result

    async def _refresh_state(self, review_id: int) -> ReviewSubmissionResult | None:
        try:
            review = await self._client.get_review(self._owner, self._repo, self._pr_number, review_id)
        except GitHubError as exc:
            logger.warning("review_state_unknown", review_id=review_id, error=str(exc))
            return None
        result = _to_result(review, ReviewState.PENDING)
        self._states[review_id] = result.state
        return result

    async def add_comments(self, review_id: int, comments: list[Comment]) -> None:
        """Reviews cannot be amended once created.

        Raises:
            UnsupportedUpdateError: Always.
        """
        raise UnsupportedUpdateError(
            f"Cannot add {len(comments)} comment(s) to review {review_id} after creation",
            review_id=review_id,
            review_state=(self._states.get(review_id) or ReviewState.PENDING).value,
        )

    async def post(
        self,
        draft: ReviewDraft,
        *,
        event: ReviewEvent | None = None,
        body: str | None = None,
    ) -> ReviewSubmissionResult:
        """Run the full protocol for a draft.

        An auto-submitting draft takes one call.  A pending draft is created
        and, when ``event`` is given, submitted straight away; without
        ``event`` it is left PENDING for a later :meth:`submit_pending`.

        Raises:
            AlreadySubmittedError: If ``event`` is given for a draft that already
                carries one.  Raised before any network call.
            ReviewValidationError: If ``event`` is given without a summary body,
                checked before the review is created so none is left PENDING.
        """
        if draft.auto_submits and event is not None:
            raise AlreadySubmittedError(
                f"Draft already carries event {draft.event}; it is submitted on creation",
                hint="Drop the extra event, or build the draft without one to submit it later",
                review_state=ReviewState.DRAFTED.value,
            )
        summary = body or draft.summary_body
        if event is not None:
            _require_summary(summary, event)

        result = await self.create(draft)
        if event is None or result.state == ReviewState.SUBMITTED:
            return result
        return await self.submit_pending(result.id, event, summary or "")

    async def post_with_fallback(
        self,
        draft: ReviewDraft,
        *,
        event: ReviewEvent | None = None,
        body: str | None = None,
    ) -> SubmissionReport:
        """Post atomically; degrade to individual comments if a position is rejected.

        Degraded mode creates a comment-less review carrying the summary and
        event, then posts each comment on its own, continuing past failures.
        """
        try:
            result = await self.post(draft, event=event, body=body)
        except PositionUnresolvedError as exc:
            logger.warning("entering_degraded_mode", error=str(exc), comment_count=len(draft.comments))
            return await self._post_individually(draft, event, body, exc)
        return SubmissionReport(mode=SubmissionMode.ATOMIC, review=result)

    async def _post_individually(
        self,
        draft: ReviewDraft,
        event: ReviewEvent | None,
        body: str | None,
        cause: Exception,
    ) -> SubmissionReport:
        resolved_event = draft.event or event or DEFAULT_EVENT_FOR_DEGRADED
        summary = "\n\n".join(part for part in (draft.summary_body or body, DEGRADED_SUMMARY_NOTE) if part)

        review = await self._client.create_review(
            self._owner,
            self._repo,
            self._pr_number,
            CreateReviewPayload(commit_id=draft.commit_id, event=resolved_event, body=summary),
        )
        result = _to_result(review, ReviewState.SUBMITTED)
        self._states[result.id] = result.state

        outcomes: list[StandaloneCommentResult] = []
        for index, comment in enumerate(draft.comments):
            payload = StandaloneCommentPayload(
                commit_id=draft.commit_id,
                path=comment.path,
                position=comment.position,
                body=comment.body,
            )
            try:
                created = await self._client.create_review_comment(
                    self._owner, self._repo, self._pr_number, payload
                )
            except GitHubError as exc:
                logger.warning(
                    "standalone_comment_failed",
                    index=index,
                    path=comment.path,
                    position=comment.position,
                    error=str(exc),
                )
                outcomes.append(
                    StandaloneCommentResult(
                        index=index,
                        path=comment.path,
                        position=comment.position,
                        ok=False,
                        error=str(exc),
                    )
                )
                continue

            comment_id = created.get("id")
            outcomes.append(
                StandaloneCommentResult(
                    index=index,
                    path=comment.path,
                    position=comment.position,
                    ok=True,
                    comment_id=comment_id if isinstance(comment_id, int) else None,
                )
            )

        failed = sum(1 for o in outcomes if not o.ok)
        logger.info("degraded_review_posted", review_id=result.id, posted=len(outcomes) - failed, failed=failed)

        return SubmissionReport(
            mode=SubmissionMode.DEGRADED,
            review=result,
            comment_results=tuple(outcomes),
            atomic_error=str(cause),
        )
