"""Review endpoints — validate, post and submit PR reviews."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from pinpoint.api.dependencies import get_github_client
from pinpoint.api.schemas import (
    CreateReviewRequest,
    DraftResponse,
    ReviewResultResponse,
    ReviewValidateRequest,
    SubmissionResponse,
    SubmitReviewRequest,
)
from pinpoint.core.logging import bind_pr_context, get_logger
from pinpoint.core.models import SubmissionMode, SubmissionReport
from pinpoint.diff.parser import parse_diff_or_patch
from pinpoint.github.client import GitHubClient, parse_repository
from pinpoint.review.builder import build_review_draft, draft_from_payload
from pinpoint.review.submission import ReviewSubmitter

logger = get_logger(__name__)

router = APIRouter(prefix="/reviews", tags=["Reviews"])


@router.post("/validate", response_model=DraftResponse)
async def validate_review(request: ReviewValidateRequest) -> DraftResponse:
    """Validate a review document against a diff; 422 lists every issue."""
    files = parse_diff_or_patch(request.diff_text)
    draft = draft_from_payload(request.review, files, commit_id=request.commit_id)
    return DraftResponse.from_draft(draft)


@router.post("", response_model=SubmissionResponse, status_code=201)
async def create_review(
    request: CreateReviewRequest,
    client: GitHubClient = Depends(get_github_client),
) -> SubmissionResponse:
    """Build a review against the PR's current diff and post it.

    The system will:
    1. Fetch the diff, the changed file list and the head commit
    2. Validate every comment, rejecting the whole batch on any issue
    3. Post atomically, degrading to individual comments if GitHub rejects a position
    """
    owner, repo = parse_repository(request.repository)
    bind_pr_context(owner, repo, request.pr_number)

    files = await client.get_pr_diff(owner, repo, request.pr_number)
    changed = await client.list_changed_files(owner, repo, request.pr_number)
    commit_id = request.commit_id or await client.resolve_head_commit(owner, repo, request.pr_number)

    draft = build_review_draft(
        commit_id,
        request.comments,
        files,
        event=request.event,
        summary_body=request.body,
        changed_files=changed,
    )

    submitter = ReviewSubmitter(client, owner, repo, request.pr_number)
    if request.fallback:
        report = await submitter.post_with_fallback(draft)
    else:
        report = SubmissionReport(mode=SubmissionMode.ATOMIC, review=await submitter.post(draft))

    logger.info(
        "review_posted",
        mode=report.mode.value,
        review_id=report.review.id,
    )
    return SubmissionResponse.from_report(report)


@router.post("/{review_id}/events", response_model=ReviewResultResponse)
async def submit_review(
    review_id: int,
    request: SubmitReviewRequest,
    client: GitHubClient = Depends(get_github_client),
) -> ReviewResultResponse:
    """Submit a PENDING review; 409 if it was already submitted."""
    owner, repo = parse_repository(request.repository)
    bind_pr_context(owner, repo, request.pr_number)
    submitter = ReviewSubmitter(client, owner, repo, request.pr_number)
    result = await submitter.submit_pending(review_id, request.event, request.body)
    return ReviewResultResponse.from_result(result)
