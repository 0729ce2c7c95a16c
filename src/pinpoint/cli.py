"""Command-line interface.

Primary results go to stdout; diagnostics and logs go to stderr.  Every
command exits 0 on success and 1 on any validation or API failure.
"""

from __future__ import annotations

import asyncio
import functools
import json
import sys
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import click
import uvicorn

from pinpoint.core.config import Settings, get_settings
from pinpoint.core.exceptions import (
    FileNotInDiffError,
    PinpointError,
    ProtocolError,
    ReviewValidationError,
)
from pinpoint.core.logging import bind_pr_context, setup_logging
from pinpoint.core.models import FileDiff, ReviewDraft, ReviewEvent, ReviewState
from pinpoint.diff.parser import parse_diff_or_patch, parse_file_diff
from pinpoint.diff.positions import position_for_line, render_positions
from pinpoint.diff.validator import check_position, render_check
from pinpoint.github.client import GitHubClient, parse_pr_url, parse_repository
from pinpoint.github.schemas import CreateReviewPayload
from pinpoint.orchestrator.analysis import FindingsFilePass
from pinpoint.orchestrator.pipeline import run_review
from pinpoint.review.builder import draft_from_payload
from pinpoint.review.consolidator import to_review_document
from pinpoint.review.submission import ReviewSubmitter

_EVENT_CHOICE = click.Choice([e.value for e in ReviewEvent], case_sensitive=False)


@dataclass
class CliContext:
    settings: Settings
    repository: str | None

    def resolve_pr(self, pr: str) -> tuple[str, str, int]:
        """Accept a PR URL, or a PR number together with --repo."""
        if pr.startswith(("http://", "https://")):
            owner, repo, number = parse_pr_url(pr)
        elif not pr.isdigit():
            raise click.BadParameter(f"expected a PR number or URL, got {pr!r}", param_hint="PR")
        elif not self.repository:
            raise click.UsageError("A PR number needs --repo owner/repo (or PINPOINT_GITHUB_REPOSITORY)")
        else:
            owner, repo = parse_repository(self.repository)
            number = int(pr)
        bind_pr_context(owner, repo, number)
        return owner, repo, number

    def client(self) -> GitHubClient:
        return GitHubClient(self.settings)


def _err(message: str = "") -> None:
    click.echo(message, err=True)


def report_error(exc: PinpointError) -> None:
    """Render a domain error on stderr with everything needed to fix it."""
    _err(f"✗ {exc}")

    if isinstance(exc, ReviewValidationError):
        for issue in exc.issues:
            _err(f"  - [{issue.code.value}] {issue.message}")
    elif isinstance(exc, FileNotInDiffError):
        _err("")
        _err("Available files in diff:")
        for name in exc.available_files:
            _err(f"  - {name}")
    elif isinstance(exc, ProtocolError):
        if exc.hint:
            _err(f"  Hint: {exc.hint}")
        if exc.review_state:
            _err(f"  Review state: {exc.review_state}")
    elif exc.detail and exc.detail != str(exc):
        _err(f"  {exc.detail}")


def handle_errors(func: Callable[..., Any]) -> Callable[..., Any]:
    """Map domain errors to exit code 1 with a readable report."""

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            return func(*args, **kwargs)
        except PinpointError as exc:
            report_error(exc)
            raise click.exceptions.Exit(1) from exc

    return wrapper


async def _fetch_diff_text(obj: CliContext, pr: str) -> str:
    owner, repo, number = obj.resolve_pr(pr)
    client = obj.client()
    try:
        return await client.get_pr_diff_text(owner, repo, number)
    finally:
        await client.close()


def _load_diff_text(obj: CliContext, pr: str, diff_file: Path | None) -> str:
    if diff_file is not None:
        return diff_file.read_text(encoding="utf-8")
    return asyncio.run(_fetch_diff_text(obj, pr))


def _print_draft_summary(draft: ReviewDraft) -> None:
    _err(f"  Commit ID: {draft.commit_id}")
    _err(f"  Event: {draft.event.value if draft.event else 'none (will create PENDING review)'}")
    _err(f"  Comments: {len(draft.comments)}")
    for comment in draft.comments:
        preview = comment.body.replace("\n", " ")[:60]
        _err(f"    {comment.path}:{comment.position} - {preview}")


@click.group()
@click.option("--repo", default=None, help="Repository as owner/repo (defaults to PINPOINT_GITHUB_REPOSITORY).")
@click.option("--log-level", default="WARNING", show_default=True, help="Log level for stderr logs.")
@click.pass_context
def cli(ctx: click.Context, repo: str | None, log_level: str) -> None:
    """Compute and validate diff positions and post PR reviews."""
    settings = get_settings()
    setup_logging(log_level, stream=sys.stderr)
    ctx.obj = CliContext(settings=settings, repository=repo or settings.github_repository)


@cli.command()
@click.argument("pr")
@click.argument("file_path")
@click.option("--diff-file", type=click.Path(exists=True, dir_okay=False, path_type=Path), default=None,
              help="Read the diff from a local file instead of GitHub.")
@click.option("--line", "line_number", type=int, default=None, help="Translate a new-file line number.")
@click.option("--limit", type=int, default=None, help="Show at most this many numbered lines.")
@click.pass_obj
@handle_errors
def positions(
    obj: CliContext,
    pr: str,
    file_path: str,
    diff_file: Path | None,
    line_number: int | None,
    limit: int | None,
) -> None:
    """List the valid diff positions of FILE_PATH in PR."""
    file_diff = parse_file_diff(_load_diff_text(obj, pr, diff_file), file_path)

    if line_number is not None:
        position = position_for_line(file_diff, line_number)
        if position is None:
            _err(f"✗ Line {line_number} of '{file_path}' is not part of the diff")
            raise click.exceptions.Exit(1)
        click.echo(position)
        return

    for rendered in render_positions(file_diff, limit=limit):
        click.echo(rendered)
    click.echo("")
    click.echo(f"Total valid positions: 1-{file_diff.max_position}")
    _err("Tip: use the position number when creating review comments, NOT the line number in the file")


@cli.command("validate-position")
@click.argument("pr")
@click.argument("file_path")
@click.argument("position", type=int)
@click.option("--diff-file", type=click.Path(exists=True, dir_okay=False, path_type=Path), default=None)
@click.pass_obj
@handle_errors
def validate_position_command(
    obj: CliContext,
    pr: str,
    file_path: str,
    position: int,
    diff_file: Path | None,
) -> None:
    """Check that POSITION is a valid diff position for FILE_PATH."""
    files = parse_diff_or_patch(_load_diff_text(obj, pr, diff_file), file_path)
    check = check_position(files, file_path, position)

    if check.ok:
        for rendered in render_check(check):
            click.echo(rendered)
        return

    for rendered in render_check(check):
        _err(rendered)
    raise click.exceptions.Exit(1)


async def _online_session(
    obj: CliContext, pr: str
) -> tuple[dict[str, FileDiff], list[str], str]:
    owner, repo, number = obj.resolve_pr(pr)
    client = obj.client()
    try:
        files = await client.get_pr_diff(owner, repo, number)
        changed = await client.list_changed_files(owner, repo, number)
        head = await client.resolve_head_commit(owner, repo, number)
    finally:
        await client.close()
    return files, changed, head


def _load_review(path: Path) -> Any:
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise click.BadParameter(f"invalid JSON: {exc}", param_hint="JSON_FILE") from exc


@cli.command("validate-review")
@click.argument("pr")
@click.argument("json_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--diff-file", type=click.Path(exists=True, dir_okay=False, path_type=Path), default=None)
@click.option("--commit", "commit_id", default=None, help="Commit SHA to use when the document has none.")
@click.pass_obj
@handle_errors
def validate_review(
    obj: CliContext,
    pr: str,
    json_file: Path,
    diff_file: Path | None,
    commit_id: str | None,
) -> None:
    """Validate a review JSON document against the PR diff without posting it."""
    payload = _load_review(json_file)

    if diff_file is not None:
        files = parse_diff_or_patch(diff_file.read_text(encoding="utf-8"))
        changed = None
    else:
        files, changed, head = asyncio.run(_online_session(obj, pr))
        commit_id = commit_id or head

    draft = draft_from_payload(payload, files, changed, commit_id=commit_id)

    click.echo(f"✓ Review is valid: {len(draft.comments)} comment(s) on commit {draft.commit_id}")
    click.echo(f"  Event: {draft.event.value if draft.event else 'none (PENDING)'}")
    for comment in draft.comments:
        click.echo(f"  ✓ {comment.path}:{comment.position}")


async def _post(
    obj: CliContext,
    owner: str,
    repo: str,
    number: int,
    draft: ReviewDraft,
    event: ReviewEvent | None,
    body: str | None,
    fallback: bool,
) -> int:
    client = obj.client()
    submitter = ReviewSubmitter(client, owner, repo, number)
    try:
        if fallback:
            report = await submitter.post_with_fallback(draft, event=event, body=body)
            result = report.review
        else:
            report = None
            result = await submitter.post(draft, event=event, body=body)
    finally:
        await client.close()

    click.echo(f"Review ID: {result.id}")
    click.echo(f"State: {result.api_state or result.state.value}")

    if result.state == ReviewState.PENDING:
        _err("")
        _err("To submit this pending review:")
        _err(f"  pinpoint submit-review {number} {result.id} --event COMMENT --body 'Ready to merge'")

    if report is not None and report.degraded:
        _err("")
        _err("⚠ Atomic review was rejected; comments were posted individually:")
        _err(f"  Cause: {report.atomic_error}")
        for outcome in report.comment_results:
            mark = "✓" if outcome.ok else "✗"
            suffix = f" ({outcome.error})" if outcome.error else ""
            _err(f"  {mark} {outcome.path}:{outcome.position}{suffix}")
        if report.failed_comments:
            return 1
    return 0


@cli.command("post-review")
@click.argument("pr")
@click.argument("json_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--dry-run", is_flag=True, help="Validate and show the payload without posting.")
@click.option("--yes", "assume_yes", is_flag=True, help="Do not ask for confirmation.")
@click.option("--fallback/--no-fallback", default=True, show_default=True,
              help="Post comments individually if GitHub rejects the batch.")
@click.option("--event", type=_EVENT_CHOICE, default=None,
              help="Submit a pending draft right after creating it.")
@click.option("--body", default=None, help="Summary body for --event.")
@click.pass_obj
@handle_errors
def post_review(
    obj: CliContext,
    pr: str,
    json_file: Path,
    dry_run: bool,
    assume_yes: bool,
    fallback: bool,
    event: str | None,
    body: str | None,
) -> None:
    """Validate and post a review JSON document to PR."""
    owner, repo, number = obj.resolve_pr(pr)
    payload = _load_review(json_file)
    files, changed, head = asyncio.run(_online_session(obj, pr))
    draft = draft_from_payload(payload, files, changed, commit_id=head)
    submit_event = ReviewEvent(event.upper()) if event else None

    _err(f"Review for PR #{number}:")
    _print_draft_summary(draft)

    if dry_run:
        _err("")
        _err("=== DRY RUN - nothing was posted ===")
        click.echo(json.dumps(CreateReviewPayload.from_draft(draft).to_json(), indent=2))
        return

    if not assume_yes and not click.confirm(f"Post this review to PR #{number}?", err=True):
        _err("Cancelled.")
        return

    exit_code = asyncio.run(_post(obj, owner, repo, number, draft, submit_event, body, fallback))
    if exit_code:
        raise click.exceptions.Exit(exit_code)


async def _submit(obj: CliContext, pr: str, review_id: int, event: ReviewEvent, body: str) -> str:
    owner, repo, number = obj.resolve_pr(pr)
    client = obj.client()
    try:
        result = await ReviewSubmitter(client, owner, repo, number).submit_pending(review_id, event, body)
    finally:
        await client.close()
    return result.api_state or result.state.value


@cli.command("submit-review")
@click.argument("pr")
@click.argument("review_id", type=int)
@click.option("--event", type=_EVENT_CHOICE, required=True)
@click.option("--body", required=True, help="Summary body of the review.")
@click.pass_obj
@handle_errors
def submit_review(obj: CliContext, pr: str, review_id: int, event: str, body: str) -> None:
    """Submit the PENDING review REVIEW_ID on PR."""
    state = asyncio.run(_submit(obj, pr, review_id, ReviewEvent(event.upper()), body))
    click.echo(f"Review {review_id} submitted: {state}")


@cli.command()
@click.argument("findings_files", nargs=-1, required=True,
                type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--commit", "commit_id", required=True, help="Commit SHA the review is anchored to.")
@click.option("--output", type=click.Path(dir_okay=False, path_type=Path), default=None,
              help="Write the review document here instead of stdout.")
@click.pass_obj
@handle_errors
def consolidate(obj: CliContext, findings_files: tuple[Path, ...], commit_id: str, output: Path | None) -> None:
    """Merge reviewer findings files into one review JSON document."""
    passes = [FindingsFilePass(path) for path in findings_files]
    review = asyncio.run(
        run_review(
            passes,
            {},
            max_concurrent=obj.settings.max_concurrent_analyses,
            timeout_per_pass=obj.settings.analysis_timeout_seconds,
        )
    )

    document = json.dumps(to_review_document(review, commit_id), indent=2, ensure_ascii=False)
    if output is not None:
        output.write_text(document + "\n", encoding="utf-8")
        _err(f"Consolidated review written to {output}")
    else:
        click.echo(document)

    stats = review.stats
    _err(f"{stats['total_findings']} finding(s); recommended event {stats['recommended_event']}")
    for source in review.failed_sources:
        _err(f"⚠ {source} produced no results (timed out or failed)")


@cli.command()
@click.option("--host", default=None, help="Bind address (defaults to PINPOINT_HOST).")
@click.option("--port", type=int, default=None, help="Port (defaults to PINPOINT_PORT).")
@click.option("--reload", is_flag=True, help="Reload on code changes.")
@click.pass_obj
def serve(obj: CliContext, host: str | None, port: int | None, reload: bool) -> None:
    """Run the HTTP API."""
    uvicorn.run(
        "pinpoint.api.app:create_app",
        factory=True,
        host=host or obj.settings.host,
        port=port or obj.settings.port,
        reload=reload,
        log_level=obj.settings.log_level.lower(),
    )


def main() -> None:
    cli()
