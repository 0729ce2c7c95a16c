"""Async GitHub API client for fetching PR diffs and posting reviews."""

from __future__ import annotations

import re
from typing import Any

import httpx

from pinpoint.core.config import Settings
from pinpoint.core.constants import DIFF_MEDIA_TYPE
from pinpoint.core.exceptions import (
    AlreadySubmittedError,
    GitHubAuthError,
    GitHubError,
    GitHubRateLimitError,
    GitHubTransportError,
    InvalidPRURLError,
    InvalidRepositoryError,
    PendingReviewExistsError,
    PositionUnresolvedError,
    PRNotFoundError,
    ProtocolError,
    WrongFieldTypeError,
)
from pinpoint.core.logging import get_logger
from pinpoint.core.models import FileDiff
from pinpoint.diff.parser import parse_diff
from pinpoint.github.schemas import (
    CreateReviewPayload,
    GitHubFile,
    GitHubPullRequest,
    GitHubReview,
    StandaloneCommentPayload,
    SubmitReviewPayload,
)
from pinpoint.orchestrator.retry import RetryPolicy

logger = get_logger(__name__)

# Pattern: https://github.com/{owner}/{repo}/pull/{number}
_PR_URL_RE = re.compile(
    r"https?://github\.com/(?P<owner>[^/]+)/(?P<repo>[^/]+)/pull/(?P<number>\d+)"
)

_REPOSITORY_RE = re.compile(r"^(?P<owner>[\w.-]+)/(?P<repo>[\w.-]+)$")

_FIELD_RE = re.compile(r"\b(position|path|body|commit_id|event)\b")


def parse_pr_url(url: str) -> tuple[str, str, int]:
    """Extract owner, repo, and PR number from a GitHub PR URL.

    Raises:
        InvalidPRURLError: If the URL doesn't match expected format.
    """
    match = _PR_URL_RE.match(url.strip())
    if not match:
        raise InvalidPRURLError(f"Cannot parse PR URL: {url}")
    return match.group("owner"), match.group("repo"), int(match.group("number"))


def parse_repository(value: str) -> tuple[str, str]:
    """Split an ``owner/repo`` reference.

    Raises:
        InvalidRepositoryError: If the value is not ``owner/repo``.
    """
    match = _REPOSITORY_RE.match(value.strip())
    if not match:
        raise InvalidRepositoryError(f"Repository must be 'owner/repo', got: {value!r}")
    return match.group("owner"), match.group("repo")


def _error_text(body: Any) -> str:
    """Flatten GitHub's ``message`` + ``errors`` into one string."""
    if not isinstance(body, dict):
        return ""
    parts = [str(body.get("message", ""))]
    for error in body.get("errors", None) or []:
        if isinstance(error, dict):
            parts.append(str(error.get("message") or error.get("code") or ""))
            if error.get("field"):
                parts.append(f"field {error['field']}")
        else:
            parts.append(str(error))
    return "; ".join(p for p in parts if p)


def classify_unprocessable(text: str, context: str = "") -> ProtocolError:
    """Map a 422 message from the reviews API to the matching ProtocolError."""
    lowered = text.lower()
    field_match = _FIELD_RE.search(lowered)
    field = field_match.group(1) if field_match else None
    message = f"{context}: {text}" if context else text

    if "already" in lowered and "submit" in lowered:
        return AlreadySubmittedError(message, review_state="submitted")
    if "one pending review" in lowered:
        return PendingReviewExistsError(message)
    if (
        "is not a number" in lowered
        or "not of type" in lowered
        or "expected value to not be null" in lowered
        or "invalid type" in lowered
    ):
        return WrongFieldTypeError(message, field=field)
    if "could not be resolved" in lowered or "position is invalid" in lowered:
        return PositionUnresolvedError(message, field=field or "position")
    return ProtocolError(message, field=field)


class GitHubClient:
    """Async client for the GitHub REST API.

    Uses httpx with connection pooling for efficient async I/O.  GET calls are
    retried on transport errors; mutating calls are retried only when the
    request provably never reached GitHub.
    """

    def __init__(
        self,
        settings: Settings,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if settings.github_token is None:
            raise GitHubAuthError("No GitHub token configured (set PINPOINT_GITHUB_TOKEN)")
        self._settings = settings
        self._retry = RetryPolicy.from_settings(settings)
        self._base_url = settings.github_api_base.rstrip("/")
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            token = self._settings.github_token
            self._client = httpx.AsyncClient(
                base_url=self._base_url,
                headers={
                    "Authorization": f"Bearer {token.get_secret_value() if token else ''}",
                    "Accept": "application/vnd.github+json",
                    "X-GitHub-Api-Version": "2022-11-28",
                },
                timeout=self._settings.request_timeout_seconds,
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    def _handle_error(self, response: httpx.Response, context: str = "") -> None:
        """Map HTTP status codes to domain exceptions."""
        if response.is_success:
            return

        status = response.status_code
        detail = f"{context} — HTTP {status}"

        try:
            body = response.json()
        except ValueError:
            body = None
        text = _error_text(body)
        if text:
            detail = f"{detail}: {text}"

        if status == 401:
            raise GitHubAuthError(detail)
        if status in (403, 429) and "rate limit" in detail.lower():
            reset_at = response.headers.get("X-RateLimit-Reset")
            raise GitHubRateLimitError(reset_at=int(reset_at) if reset_at else None)
        if status == 404:
            raise PRNotFoundError(detail)
        if status == 422:
            raise classify_unprocessable(text or "Unprocessable Entity", context=f"{context} — HTTP 422")
        if status >= 500:
            raise GitHubTransportError(detail, status_code=status, may_have_landed=True)
        raise GitHubError(detail)

    async def _request(
        self,
        method: str,
        path: str,
        *,
        json: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
        accept: str | None = None,
    ) -> httpx.Response:
        client = await self._get_client()
        context = f"{method} {path}"
        headers = {"Accept": accept} if accept else None
        try:
            response = await client.request(method, path, json=json, params=params, headers=headers)
        except (httpx.ConnectError, httpx.ConnectTimeout) as exc:
            raise GitHubTransportError(f"{context}: {exc!r}", may_have_landed=False) from exc
        except httpx.TransportError as exc:
            raise GitHubTransportError(f"{context}: {exc!r}", may_have_landed=True) from exc
        self._handle_error(response, context=context)
        return response

    async def _get(self, path: str, params: dict[str, Any] | None = None) -> Any:
        """Make an authenticated GET request (retried on transport errors)."""
        response = await self._retry.call(self._request, "GET", path, params=params)
        return response.json()

    async def _get_text(self, path: str, accept: str) -> str:
        response = await self._retry.call(self._request, "GET", path, accept=accept)
        return response.text

    async def _post(self, path: str, json: dict[str, Any]) -> Any:
        """Make an authenticated POST request.

        POSTs are not idempotent: only failures that never reached GitHub are retried.
        """
        response = await self._retry.call(self._request, "POST", path, json=json, idempotent=False)
        return response.json() if response.content else {}

    # ── Pull requests ────────────────────────────────────────────────────

    async def get_pull_request(self, owner: str, repo: str, pr_number: int) -> GitHubPullRequest:
        """Fetch PR metadata."""
        data = await self._get(f"/repos/{owner}/{repo}/pulls/{pr_number}")
        return GitHubPullRequest.model_validate(data)

    async def resolve_head_commit(self, owner: str, repo: str, pr_number: int) -> str:
        """SHA of the PR's head commit, the commit a review is anchored to."""
        pr = await self.get_pull_request(owner, repo, pr_number)
        return pr.head.sha

    async def get_pr_files(
        self,
        owner: str,
        repo: str,
        pr_number: int,
        per_page: int = 100,
    ) -> list[GitHubFile]:
        """Fetch all files changed in a PR (handles pagination)."""
        all_files: list[GitHubFile] = []
        page = 1

        while True:
            data = await self._get(
                f"/repos/{owner}/{repo}/pulls/{pr_number}/files",
                params={"per_page": per_page, "page": page},
            )

            if not data:
                break

            all_files.extend(GitHubFile.model_validate(f) for f in data)

            if len(data) < per_page:
                break
            page += 1

        return all_files

    async def list_changed_files(self, owner: str, repo: str, pr_number: int) -> list[str]:
        """Paths of every file the PR touches."""
        return [f.filename for f in await self.get_pr_files(owner, repo, pr_number)]

    async def get_pr_diff_text(self, owner: str, repo: str, pr_number: int) -> str:
        """Fetch the raw unified diff of a PR."""
        return await self._get_text(f"/repos/{owner}/{repo}/pulls/{pr_number}", accept=DIFF_MEDIA_TYPE)

    async def get_pr_diff(self, owner: str, repo: str, pr_number: int) -> dict[str, FileDiff]:
        """Fetch and index the diff of every file in a PR.

        This is the diff source for a review session.
        """
        logger.info("fetching_pr_diff", owner=owner, repo=repo, pr_number=pr_number)
        files = parse_diff(await self.get_pr_diff_text(owner, repo, pr_number))
        logger.info("parsed_pr_diff", pr_number=pr_number, files=len(files))
        return files

    # ── Reviews ──────────────────────────────────────────────────────────

    async def create_review(
        self,
        owner: str,
        repo: str,
        pr_number: int,
        payload: CreateReviewPayload,
    ) -> GitHubReview:
        """Create a review; submitted at once when ``payload.event`` is set."""
        logger.info(
            "creating_review",
            owner=owner,
            repo=repo,
            pr_number=pr_number,
            comment_count=len(payload.comments or []),
            review_event=payload.event.value if payload.event else None,
        )
        data = await self._post(
            f"/repos/{owner}/{repo}/pulls/{pr_number}/reviews",
            json=payload.to_json(),
        )
        return GitHubReview.model_validate(data)

    async def submit_review(
        self,
        owner: str,
        repo: str,
        pr_number: int,
        review_id: int,
        payload: SubmitReviewPayload,
    ) -> GitHubReview:
        """Submit a PENDING review with an event."""
        logger.info("submitting_review", pr_number=pr_number, review_id=review_id, review_event=payload.event.value)
        data = await self._post(
            f"/repos/{owner}/{repo}/pulls/{pr_number}/reviews/{review_id}/events",
            json=payload.to_json(),
        )
        return GitHubReview.model_validate(data)

    async def get_review(self, owner: str, repo: str, pr_number: int, review_id: int) -> GitHubReview:
        """Fetch a review's current state."""
        data = await self._get(f"/repos/{owner}/{repo}/pulls/{pr_number}/reviews/{review_id}")
        return GitHubReview.model_validate(data)

    async def create_review_comment(
        self,
        owner: str,
        repo: str,
        pr_number: int,
        payload: StandaloneCommentPayload,
    ) -> dict[str, Any]:
        """Create a single review comment outside any review batch."""
        return await self._post(
            f"/repos/{owner}/{repo}/pulls/{pr_number}/comments",
            json=payload.to_json(),
        )
