"""Shared test fixtures for all Pinpoint tests."""

from __future__ import annotations

import json
import re
from collections.abc import Callable

import httpx
import pytest
import pytest_asyncio

from pinpoint.core.config import Settings
from pinpoint.core.constants import DIFF_MEDIA_TYPE
from pinpoint.core.models import FileDiff
from pinpoint.diff.parser import parse_diff
from pinpoint.github.client import GitHubClient

# Scenario A: one hunk, [context, added, context, context] → positions 1-4
X_TS_DIFF = """\
diff --git a/src/x.ts b/src/x.ts
index 1111111..2222222 100644
--- a/src/x.ts
+++ b/src/x.ts
@@ -1,3 +1,4 @@
 import { a } from "./a";
+import { b } from "./b";
 export const x = a;
 export default x;
"""

# Scenario B: hunk one spans positions 1-5, hunk two spans 6-9
Y_TS_DIFF = """\
diff --git a/src/y.ts b/src/y.ts
index 3333333..4444444 100644
--- a/src/y.ts
+++ b/src/y.ts
@@ -1,4 +1,5 @@
 line1
 line2
+added3
 line4
 line5
@@ -20,3 +21,3 @@ function tail() {
 ctx21
-old22
+new22
 ctx23
"""

DELETED_DIFF = """\
diff --git a/old.py b/old.py
deleted file mode 100644
index 5555555..0000000
--- a/old.py
+++ /dev/null
@@ -1,2 +0,0 @@
-gone1
-gone2
"""

BINARY_DIFF = """\
diff --git a/img.png b/img.png
index 6666666..7777777 100644
Binary files a/img.png and b/img.png differ
"""

PR_DIFF = X_TS_DIFF + Y_TS_DIFF + DELETED_DIFF + BINARY_DIFF

HEAD_SHA = "abc123def456"

_API_STATE = {
    "COMMENT": "COMMENTED",
    "APPROVE": "APPROVED",
    "REQUEST_CHANGES": "CHANGES_REQUESTED",
}

_REVIEW_EVENTS_RE = re.compile(r"^/repos/[^/]+/[^/]+/pulls/\d+/reviews/(\d+)/events$")
_REVIEW_RE = re.compile(r"^/repos/[^/]+/[^/]+/pulls/\d+/reviews/(\d+)$")


def _unprocessable(*errors: str) -> httpx.Response:
    return httpx.Response(422, json={"message": "Unprocessable Entity", "errors": list(errors)})


class FakeGitHub:
    """In-memory stand-in for the pull request review API of one PR.

    Reviews move PENDING → submitted exactly like the real service, and
    positions listed in ``unresolvable`` are rejected the way GitHub rejects
    positions it cannot map onto the diff.
    """

    def __init__(
        self,
        diff_text: str = PR_DIFF,
        changed_files: tuple[str, ...] = ("src/x.ts", "src/y.ts", "old.py", "img.png"),
        head_sha: str = HEAD_SHA,
        owner: str = "octo",
        repo: str = "repo",
        number: int = 42,
    ) -> None:
        self.diff_text = diff_text
        self.changed_files = changed_files
        self.head_sha = head_sha
        self.prefix = f"/repos/{owner}/{repo}/pulls/{number}"
        self.number = number
        self.requests: list[httpx.Request] = []
        self.reviews: dict[int, dict] = {}
        self.comments: list[dict] = []
        self.unresolvable: set[tuple[str, int]] = set()
        self.overrides: dict[tuple[str, str], Callable[[httpx.Request], httpx.Response]] = {}
        self._next_id = 100

    def posts(self, suffix: str = "") -> list[httpx.Request]:
        return [r for r in self.requests if r.method == "POST" and r.url.path.endswith(suffix)]

    def _new_id(self) -> int:
        self._next_id += 1
        return self._next_id

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path

        override = self.overrides.get((request.method, path))
        if override is not None:
            return override(request)

        if request.method == "GET" and path == self.prefix:
            if request.headers.get("accept") == DIFF_MEDIA_TYPE:
                return httpx.Response(200, text=self.diff_text)
            return httpx.Response(
                200,
                json={
                    "number": self.number,
                    "title": "Add b import",
                    "head": {"ref": "feature", "sha": self.head_sha},
                    "base": {"ref": "main", "sha": "base000"},
                },
            )

        if request.method == "GET" and path == f"{self.prefix}/files":
            page = int(request.url.params.get("page", "1"))
            files = [{"filename": name, "status": "modified"} for name in self.changed_files]
            return httpx.Response(200, json=files if page == 1 else [])

        if request.method == "POST" and path == f"{self.prefix}/reviews":
            return self._create_review(json.loads(request.content))

        if request.method == "POST" and path == f"{self.prefix}/comments":
            body = json.loads(request.content)
            if (body["path"], body["position"]) in self.unresolvable:
                return _unprocessable("pull_request_review_thread.position could not be resolved")
            comment = {"id": self._new_id(), **body}
            self.comments.append(comment)
            return httpx.Response(201, json=comment)

        match = _REVIEW_EVENTS_RE.match(path)
        if request.method == "POST" and match:
            return self._submit_review(int(match.group(1)), json.loads(request.content))

        match = _REVIEW_RE.match(path)
        if request.method == "GET" and match and int(match.group(1)) in self.reviews:
            return httpx.Response(200, json=self.reviews[int(match.group(1))])

        return httpx.Response(404, json={"message": "Not Found"})

    def _create_review(self, body: dict) -> httpx.Response:
        for comment in body.get("comments", []):
            if not isinstance(comment.get("position"), int):
                return _unprocessable('For "position", "1" is not a number.')
            if (comment["path"], comment["position"]) in self.unresolvable:
                return _unprocessable("Path could not be resolved")

        review_id = self._new_id()
        event = body.get("event")
        review = {
            "id": review_id,
            "state": _API_STATE[event] if event else "PENDING",
            "body": body.get("body"),
            "commit_id": body["commit_id"],
            "html_url": f"https://github.com/octo/repo/pull/{self.number}#pullrequestreview-{review_id}",
        }
        self.reviews[review_id] = review
        return httpx.Response(200, json=review)

    def _submit_review(self, review_id: int, body: dict) -> httpx.Response:
        review = self.reviews.get(review_id)
        if review is None:
            return httpx.Response(404, json={"message": "Not Found"})
        if review["state"] != "PENDING":
            return _unprocessable("Can not submit review: review has already been submitted")
        review["state"] = _API_STATE[body["event"]]
        review["body"] = body["body"]
        return httpx.Response(200, json=review)


@pytest.fixture
def settings() -> Settings:
    return Settings(
        _env_file=None,
        github_token="ghp_test_token",
        github_repository="octo/repo",
        max_retries=2,
        retry_base_delay=0.0,
        retry_max_delay=0.0,
    )


@pytest.fixture
def fake_github() -> FakeGitHub:
    return FakeGitHub()


@pytest.fixture
def make_client(settings: Settings, fake_github: FakeGitHub) -> Callable[[], GitHubClient]:
    def _make() -> GitHubClient:
        return GitHubClient(settings, transport=httpx.MockTransport(fake_github.handler))

    return _make


@pytest_asyncio.fixture
async def github_client(make_client: Callable[[], GitHubClient]):
    client = make_client()
    yield client
    await client.close()


@pytest.fixture
def pr_files() -> dict[str, FileDiff]:
    return parse_diff(PR_DIFF)


@pytest.fixture
def pr_diff() -> str:
    return PR_DIFF


@pytest.fixture
def x_ts_diff() -> str:
    return X_TS_DIFF


@pytest.fixture
def y_ts_diff() -> str:
    return Y_TS_DIFF
