"""Constants and mappings used across the application."""

from __future__ import annotations

from pinpoint.core.models import ReviewEvent, ReviewState, Severity

# ── Diff format ──────────────────────────────────────────────────────────────

NO_NEWLINE_MARKER = "\\"

DEV_NULL = "/dev/null"

# Accept header that makes the pull request endpoint return the raw unified diff
DIFF_MEDIA_TYPE = "application/vnd.github.v3.diff"

# ── Severity tiers ───────────────────────────────────────────────────────────

SEVERITY_ORDER: dict[Severity, int] = {
    Severity.CRITICAL: 0,
    Severity.HIGH: 1,
    Severity.MEDIUM: 2,
    Severity.LOW: 3,
}

SEVERITY_LABELS: dict[Severity, str] = {
    Severity.CRITICAL: "P0",
    Severity.HIGH: "P1",
    Severity.MEDIUM: "P2",
    Severity.LOW: "P3",
}

SEVERITY_BADGES: dict[Severity, str] = {
    Severity.CRITICAL: "🔴",
    Severity.HIGH: "🟠",
    Severity.MEDIUM: "🟡",
    Severity.LOW: "🟢",
}

SEVERITY_HEADINGS: dict[Severity, tuple[str, str]] = {
    Severity.CRITICAL: ("Critical (P0) - Must Fix", "These issues must be resolved before merging."),
    Severity.HIGH: ("High (P1) - Should Fix", "These issues should be fixed before merging."),
    Severity.MEDIUM: ("Medium (P2) - Fix or Follow-up", "Fix these or create follow-up issues."),
    Severity.LOW: ("Low (P3) - Optional", "Optional improvements for code quality."),
}

# Accept both tier names and P-labels when reading findings files
SEVERITY_ALIASES: dict[str, Severity] = {
    **{s.value: s for s in Severity},
    **{label.lower(): s for s, label in SEVERITY_LABELS.items()},
}

# ── Review API ───────────────────────────────────────────────────────────────

# Review "state" strings returned by GitHub → our two-phase model
API_STATE_MAP: dict[str, ReviewState] = {
    "PENDING": ReviewState.PENDING,
    "COMMENTED": ReviewState.SUBMITTED,
    "APPROVED": ReviewState.SUBMITTED,
    "CHANGES_REQUESTED": ReviewState.SUBMITTED,
    "DISMISSED": ReviewState.SUBMITTED,
}

DEGRADED_SUMMARY_NOTE = (
    "Some inline comments could not be attached as part of this review "
    "and were posted individually."
)

DEFAULT_EVENT_FOR_DEGRADED: ReviewEvent = ReviewEvent.COMMENT


def severity_from_label(value: str) -> Severity:
    """Resolve ``critical``/``P0``-style labels to a Severity tier.

    Raises:
        ValueError: If the label is not a known tier.
    """
    try:
        return SEVERITY_ALIASES[value.strip().lower()]
    except KeyError:
        raise ValueError(f"Unknown severity tier: {value!r}") from None
