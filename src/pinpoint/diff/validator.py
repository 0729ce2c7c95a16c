"""Position validation against an indexed FileDiff."""

from __future__ import annotations

from collections.abc import Mapping

from pinpoint.core.models import FileDiff, HunkSpan, PositionCheck, PositionStatus


def hunk_spans(file_diff: FileDiff) -> tuple[HunkSpan, ...]:
    """Each hunk's header and inclusive position range, for diagnostics."""
    spans: list[HunkSpan] = []
    for hunk in file_diff.hunks:
        span = hunk.position_range
        spans.append(
            HunkSpan(
                header=hunk.header.render(),
                first_position=span[0] if span else None,
                last_position=span[1] if span else None,
            )
        )
    return tuple(spans)


def validate_position(file_diff: FileDiff, position: int) -> PositionCheck:
    """Check ``position`` against the file's position space.

    Valid positions are ``1..max`` across all hunks.  Removed lines count:
    a comment may point at deleted code.
    """
    valid_range = file_diff.valid_position_range
    spans = hunk_spans(file_diff)

    if valid_range and valid_range[0] <= position <= valid_range[1]:
        return PositionCheck(
            status=PositionStatus.OK,
            path=file_diff.path,
            position=position,
            min_position=valid_range[0],
            max_position=valid_range[1],
            hunks=spans,
            line=file_diff.line_at(position),
        )

    return PositionCheck(
        status=PositionStatus.OUT_OF_RANGE,
        path=file_diff.path,
        position=position,
        min_position=valid_range[0] if valid_range else None,
        max_position=valid_range[1] if valid_range else None,
        hunks=spans,
    )


def check_position(files: Mapping[str, FileDiff], path: str, position: int) -> PositionCheck:
    """Validate a (path, position) pair against every file known to the session."""
    file_diff = files.get(path)
    if file_diff is None:
        return PositionCheck(
            status=PositionStatus.FILE_NOT_FOUND,
            path=path,
            position=position,
            available_files=tuple(files),
        )
    return validate_position(file_diff, position)


def render_check(check: PositionCheck) -> list[str]:
    """Human-readable diagnostic lines for a PositionCheck."""
    if check.status == PositionStatus.FILE_NOT_FOUND:
        lines = [f"❌ Error: File '{check.path}' not found in diff", "", "Available files:"]
        lines.extend(f"  - {name}" for name in check.available_files)
        return lines

    valid = (
        f"[{check.min_position}-{check.max_position}]"
        if check.min_position is not None
        else "none"
    )
    if check.ok:
        lines = [f"✅ Valid: Position {check.position} is in range {valid}"]
        if check.line is not None:
            lines.append(f"   Line: {check.line.render() or '(empty line)'}")
    else:
        lines = [
            f"❌ Invalid: Position {check.position} is out of range.",
            f"   Valid positions: {valid}",
        ]

    lines.extend(["", f"File: {check.path}", "", "Diff hunks:"])
    lines.extend(f"  {span.render()}" for span in check.hunks)
    return lines
