"""Diff position indexing.

GitHub's PR review API addresses inline comments by ``position``: a 1-indexed
offset into a file's diff.  The line just below the first ``@@`` marker is
position 1 and the count keeps increasing through every added, removed,
context and blank line, across all hunks of the file.  It restarts only at a
new file.
"""

from __future__ import annotations

from collections.abc import Sequence
from functools import reduce

from pinpoint.core.models import DiffLine, FileDiff, Hunk, LineKind


def _index_hunk(acc: tuple[tuple[Hunk, ...], int], hunk: Hunk) -> tuple[tuple[Hunk, ...], int]:
    indexed, next_position = acc
    lines = tuple(
        line.model_copy(update={"position": next_position + offset})
        for offset, line in enumerate(hunk.lines)
    )
    return (*indexed, hunk.model_copy(update={"lines": lines})), next_position + len(lines)


def index_hunks(hunks: Sequence[Hunk]) -> tuple[Hunk, ...]:
    """Assign file-global, hunk-continuous positions starting at 1."""
    indexed, _ = reduce(_index_hunk, hunks, ((), 1))
    return indexed


def index_file(path: str, hunks: Sequence[Hunk]) -> FileDiff:
    """Build an immutable, fully indexed FileDiff."""
    return FileDiff(path=path, hunks=index_hunks(hunks))


def build_newline_to_position(file_diff: FileDiff) -> dict[int, int]:
    """Return map: new-file line number -> diff position.

    Only lines present in the post-image (context, added, blank) are mapped.
    Removed lines are addressable by position but have no new-file line.
    """
    mapping: dict[int, int] = {}

    for hunk in file_diff.hunks:
        new_line = hunk.header.new_start
        for line in hunk.lines:
            if line.kind == LineKind.REMOVED:
                continue
            if line.position is not None:
                mapping[new_line] = line.position
            new_line += 1

    return mapping


def position_for_line(file_diff: FileDiff, line_number: int) -> int | None:
    """Translate a new-file line number into a diff position, if it is in the diff."""
    return build_newline_to_position(file_diff).get(line_number)


def render_line(line: DiffLine) -> str:
    text = line.render() if line.kind != LineKind.BLANK else "(empty line)"
    return f"Position {line.position}: {text}"


def render_positions(file_diff: FileDiff, limit: int | None = None) -> list[str]:
    """Render each hunk header followed by its numbered lines.

    ``limit`` caps the number of numbered lines shown in total.
    """
    rendered: list[str] = []
    shown = 0

    for hunk in file_diff.hunks:
        span = hunk.position_range
        suffix = f"  (positions {span[0]}-{span[1]})" if span else ""
        rendered.append(f"{hunk.header.render()}{suffix}")
        for line in hunk.lines:
            if limit is not None and shown >= limit:
                break
            rendered.append(f"  {render_line(line)}")
            shown += 1

    return rendered
