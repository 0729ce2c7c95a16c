"""Result consolidation — merge, rank and summarise findings from several analyses."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from typing import Any

from pinpoint.core.constants import (
    SEVERITY_BADGES,
    SEVERITY_HEADINGS,
    SEVERITY_LABELS,
    SEVERITY_ORDER,
)
from pinpoint.core.logging import get_logger
from pinpoint.core.models import (
    AnalysisOutcome,
    ConsolidatedReview,
    Finding,
    ReviewEvent,
    Severity,
)

logger = get_logger(__name__)


def merge_findings(finding_sets: Iterable[Sequence[Finding]]) -> list[Finding]:
    """Concatenate finding sets, then stable-sort by severity, path and position."""
    merged = [finding for findings in finding_sets for finding in findings]
    return sorted(
        merged,
        key=lambda f: (SEVERITY_ORDER[f.severity], f.comment.path, f.comment.position),
    )


def deduplicate_findings(findings: list[Finding]) -> list[Finding]:
    """Drop findings that repeat the same body at the same location.

    The first (most severe, after merging) occurrence is kept.
    """
    seen: set[tuple[str, int, str]] = set()
    unique: list[Finding] = []

    for finding in findings:
        key = (finding.comment.path, finding.comment.position, finding.comment.body.strip())
        if key in seen:
            continue
        seen.add(key)
        unique.append(finding)

    removed = len(findings) - len(unique)
    if removed:
        logger.info("deduplicated_findings", removed=removed, remaining=len(unique))

    return unique


def recommend_event(findings: Sequence[Finding]) -> ReviewEvent:
    """P0/P1 → REQUEST_CHANGES, P2 → COMMENT, P3 only or nothing → APPROVE."""
    severities = {f.severity for f in findings}
    if severities & {Severity.CRITICAL, Severity.HIGH}:
        return ReviewEvent.REQUEST_CHANGES
    if Severity.MEDIUM in severities:
        return ReviewEvent.COMMENT
    return ReviewEvent.APPROVE


def format_finding_body(finding: Finding) -> str:
    """Inline comment body: tier badge, title and source tag above the text."""
    badge = SEVERITY_BADGES[finding.severity]
    label = SEVERITY_LABELS[finding.severity]
    heading = f"**{badge} {label}**"
    if finding.title:
        heading = f"{heading} {finding.title}"

    return "\n".join([heading, "", finding.comment.body, "", f"*Source: {finding.source_tag}*"])


def build_summary(
    findings: Sequence[Finding],
    event: ReviewEvent,
    sources: Sequence[str],
    failed_sources: Sequence[str] = (),
) -> str:
    """Top-level review body in Markdown, grouped by severity tier."""
    counts = {s: sum(1 for f in findings if f.severity == s) for s in Severity}
    lines = [
        "## Consolidated Review",
        "",
        f"**{len(findings)} findings** from {len(sources)} reviewer(s) — recommended event `{event.value}`",
        "",
        " | ".join(f"{SEVERITY_BADGES[s]} {counts[s]} {SEVERITY_LABELS[s]}" for s in Severity),
    ]

    for severity in Severity:
        tier = [f for f in findings if f.severity == severity]
        if not tier:
            continue
        title, note = SEVERITY_HEADINGS[severity]
        lines.extend(["", f"### {SEVERITY_BADGES[severity]} {title}", "", f"*{note}*", ""])
        for finding in tier:
            label = finding.title or finding.comment.body.splitlines()[0][:80]
            lines.append(
                f"- `{finding.comment.path}` position {finding.comment.position}: {label} ({finding.source_tag})"
            )

    lines.extend(["", "---", "", "Reviewers: " + (", ".join(f"`{s}`" for s in sources) or "none")])
    if failed_sources:
        lines.append("Incomplete (timed out or failed): " + ", ".join(f"`{s}`" for s in failed_sources))

    return "\n".join(lines)


def consolidate(outcomes: Sequence[AnalysisOutcome]) -> ConsolidatedReview:
    """Merge per-pass outcomes into one ranked review.

    Failed passes contribute nothing but are listed in the summary.
    """
    merged = merge_findings(o.findings for o in outcomes)
    findings = deduplicate_findings(merged)
    event = recommend_event(findings)
    sources = [o.source_tag for o in outcomes if o.succeeded]
    failed = [o.source_tag for o in outcomes if not o.succeeded]

    consolidated = ConsolidatedReview(
        findings=findings,
        event=event,
        summary_body=build_summary(findings, event, sources, failed),
        sources=sources,
        failed_sources=failed,
    )
    logger.info("consolidated_findings", **consolidated.stats)
    return consolidated


def to_comment_entries(review: ConsolidatedReview) -> list[dict[str, Any]]:
    """Builder entries with formatted bodies, in ranked order."""
    return [
        {
            "path": f.comment.path,
            "position": f.comment.position,
            "body": format_finding_body(f),
        }
        for f in review.findings
    ]


def to_review_document(review: ConsolidatedReview, commit_id: str) -> dict[str, Any]:
    """A review JSON document ready for validation and posting."""
    return {
        "commit_id": commit_id,
        "event": review.event.value,
        "body": review.summary_body,
        "comments": to_comment_entries(review),
    }
