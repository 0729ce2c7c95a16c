"""Pydantic models for GitHub API requests and responses."""

from __future__ import annotations

from pydantic import BaseModel, StrictInt

from pinpoint.core.models import Comment, ReviewDraft, ReviewEvent


class GitHubUser(BaseModel):
    login: str
    avatar_url: str = ""


class GitHubPRHead(BaseModel):
    ref: str
    sha: str


class GitHubPRBase(BaseModel):
    ref: str
    sha: str


class GitHubPullRequest(BaseModel):
    """Subset of GitHub's PR response we actually need."""

    number: int
    title: str
    body: str | None = None
    state: str = "open"
    head: GitHubPRHead
    base: GitHubPRBase
    user: GitHubUser | None = None
    html_url: str = ""


class GitHubFile(BaseModel):
    """A file entry from GitHub's GET /pulls/{number}/files endpoint."""

    filename: str
    status: str  # "added", "modified", "removed", "renamed"
    additions: int = 0
    deletions: int = 0
    changes: int = 0
    patch: str | None = None
    previous_filename: str | None = None
    sha: str = ""


class GitHubReview(BaseModel):
    """A review object as returned by the reviews endpoints."""

    id: int
    state: str = ""
    body: str | None = None
    commit_id: str | None = None
    html_url: str = ""


class ReviewCommentPayload(BaseModel):
    """One inline comment inside a create-review payload.

    ``position`` must reach GitHub as a JSON number.  There is deliberately no
    ``side`` or ``line`` field: position-addressed comments do not accept them.
    """

    path: str
    position: StrictInt
    body: str

    @classmethod
    def from_comment(cls, comment: Comment) -> ReviewCommentPayload:
        return cls(path=comment.path, position=comment.position, body=comment.body)


class CreateReviewPayload(BaseModel):
    """Payload for POST /pulls/{n}/reviews.

    Including ``event`` makes GitHub submit the review immediately; omitting
    it leaves the review PENDING.
    """

    commit_id: str
    event: ReviewEvent | None = None
    body: str | None = None
    comments: list[ReviewCommentPayload] | None = None

    @classmethod
    def from_draft(cls, draft: ReviewDraft) -> CreateReviewPayload:
        return cls(
            commit_id=draft.commit_id,
            event=draft.event,
            body=draft.summary_body,
            comments=[ReviewCommentPayload.from_comment(c) for c in draft.comments] or None,
        )

    def to_json(self) -> dict:
        return self.model_dump(mode="json", exclude_none=True)


class SubmitReviewPayload(BaseModel):
    """Payload for POST /pulls/{n}/reviews/{id}/events."""

    event: ReviewEvent
    body: str

    def to_json(self) -> dict:
        return self.model_dump(mode="json")


class StandaloneCommentPayload(BaseModel):
    """Payload for POST /pulls/{n}/comments (one comment, no review batch)."""

    commit_id: str
    path: str
    position: StrictInt
    body: str

    def to_json(self) -> dict:
        return self.model_dump(mode="json")
