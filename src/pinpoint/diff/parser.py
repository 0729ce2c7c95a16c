"""Unified diff parser — converts raw diff text to hunks and indexed FileDiff models."""

from __future__ import annotations

import re

from pinpoint.core.constants import DEV_NULL, NO_NEWLINE_MARKER
from pinpoint.core.exceptions import DiffParseError, FileNotInDiffError
from pinpoint.core.logging import get_logger
from pinpoint.core.models import DiffLine, FileDiff, Hunk, HunkHeader, LineKind
from pinpoint.diff.positions import index_file

logger = get_logger(__name__)

# Matches: @@ -10,5 +12,7 @@ optional context
_HUNK_HEADER_RE = re.compile(r"^@@ -(\d+)(?:,(\d+))? \+(\d+)(?:,(\d+))? @@ ?(.*)$")

# Matches: diff --git a/old/path b/new/path
_DIFF_GIT_RE = re.compile(r"^diff --git (?:\"?a/)?(.+?)\"? (?:\"?b/)?(.+?)\"?$")

_KIND_BY_MARKER = {
    "+": LineKind.ADDED,
    "-": LineKind.REMOVED,
    " ": LineKind.CONTEXT,
}


def parse_hunk_header(line: str) -> HunkHeader | None:
    """Parse an ``@@ -a,b +c,d @@`` marker; a missing count means 1."""
    match = _HUNK_HEADER_RE.match(line)
    if not match:
        return None
    return HunkHeader(
        old_start=int(match.group(1)),
        old_count=int(match.group(2)) if match.group(2) is not None else 1,
        new_start=int(match.group(3)),
        new_count=int(match.group(4)) if match.group(4) is not None else 1,
        section=match.group(5).strip(),
    )


def _consume(raw: str, old_left: int, new_left: int) -> tuple[int, int]:
    """Decrement the remaining old/new line counts of a hunk for one line."""
    if raw.startswith(NO_NEWLINE_MARKER):
        return old_left, new_left
    if raw.startswith("+"):
        return old_left, new_left - 1
    if raw.startswith("-"):
        return old_left - 1, new_left
    # Context and genuinely empty lines belong to both sides
    return old_left - 1, new_left - 1


def parse_hunks(diff_text: str) -> list[Hunk]:
    """Parse one file's diff text into ordered hunks (positions not assigned).

    File header lines (``diff --git``, ``index``, ``---``, ``+++`` ...) before
    the first ``@@`` are skipped.  A hunk ends when the line counts declared
    in its header are used up; anything after that and before the next ``@@``
    is outside every hunk.

    Raises:
        DiffParseError: If a line inside a hunk has no recognisable marker.
    """
    hunks: list[Hunk] = []
    header: HunkHeader | None = None
    lines: list[DiffLine] = []
    old_left = new_left = 0

    def _flush() -> None:
        if header is not None:
            hunks.append(Hunk(header=header, lines=tuple(lines)))

    for number, raw in enumerate(diff_text.splitlines(), start=1):
        parsed = parse_hunk_header(raw)
        if parsed is not None:
            _flush()
            header, lines = parsed, []
            old_left, new_left = parsed.old_count, parsed.new_count
            continue

        in_hunk = header is not None and (old_left > 0 or new_left > 0)
        if not in_hunk:
            continue

        if raw.startswith(NO_NEWLINE_MARKER):
            continue

        if raw == "":
            lines.append(DiffLine(kind=LineKind.BLANK))
        else:
            kind = _KIND_BY_MARKER.get(raw[0])
            if kind is None:
                raise DiffParseError(
                    f"Unexpected line {number} inside hunk",
                    detail=f"{header.render() if header else ''}: {raw[:80]!r}",
                )
            lines.append(DiffLine(kind=kind, text=raw[1:]))

        old_left, new_left = _consume(raw, old_left, new_left)

    _flush()
    return hunks


def _strip_prefix(path: str, prefix: str) -> str:
    path = path.split("\t", 1)[0].strip().strip('"')
    return path[len(prefix):] if path.startswith(prefix) else path


def _section_path(lines: list[str]) -> str | None:
    """Resolve a file section's path: post-image, or pre-image for deletions."""
    old_path = new_path = git_path = None
    for raw in lines:
        if raw.startswith("diff --git "):
            match = _DIFF_GIT_RE.match(raw)
            if match:
                git_path = match.group(2)
        elif raw.startswith("--- ") and old_path is None:
            old_path = _strip_prefix(raw[4:], "a/")
        elif raw.startswith("+++ ") and new_path is None:
            new_path = _strip_prefix(raw[4:], "b/")
        elif parse_hunk_header(raw):
            break

    if new_path and new_path != DEV_NULL:
        return new_path
    if old_path and old_path != DEV_NULL:
        return old_path
    return git_path


def split_file_sections(diff_text: str) -> dict[str, str]:
    """Split a multi-file diff (``gh pr diff`` output) into per-file sections.

    Returns:
        Mapping of file path → that file's diff text, in diff order.
    """
    sections: list[list[str]] = []
    current: list[str] | None = None
    old_left = new_left = 0
    seen_hunk = False

    for raw in diff_text.splitlines():
        in_hunk = old_left > 0 or new_left > 0
        header = parse_hunk_header(raw)

        if raw.startswith("diff --git ") or (
            not in_hunk and raw.startswith("--- ") and (current is None or seen_hunk)
        ):
            current = []
            sections.append(current)
            seen_hunk = False
            old_left = new_left = 0
        elif header is not None:
            old_left, new_left = header.old_count, header.new_count
            seen_hunk = True
        elif in_hunk:
            old_left, new_left = _consume(raw, old_left, new_left)

        if current is not None:
            current.append(raw)

    result: dict[str, str] = {}
    for lines in sections:
        path = _section_path(lines)
        if path:
            result[path] = "\n".join(lines) + "\n"
    return result


def parse_file_diff(diff_text: str, path: str) -> FileDiff:
    """Parse and index the diff of one file.

    ``diff_text`` may be a whole multi-file diff (the section for ``path`` is
    picked out) or a bare patch for that file.

    Raises:
        FileNotInDiffError: If ``path`` has no hunks in the diff.
    """
    sections = split_file_sections(diff_text)
    if sections:
        if path not in sections:
            raise FileNotInDiffError(path, list(sections))
        section = sections[path]
    else:
        section = diff_text

    hunks = parse_hunks(section)
    if not hunks:
        raise FileNotInDiffError(path, list(sections))
    return index_file(path, hunks)


def parse_diff(diff_text: str) -> dict[str, FileDiff]:
    """Parse and index every file in a multi-file diff.

    Files without hunks (binary files, pure renames, mode changes) are left out.
    """
    files: dict[str, FileDiff] = {}
    for path, section in split_file_sections(diff_text).items():
        hunks = parse_hunks(section)
        if not hunks:
            logger.debug("file_without_hunks", path=path)
            continue
        files[path] = index_file(path, hunks)
    return files


def parse_diff_or_patch(diff_text: str, path: str | None = None) -> dict[str, FileDiff]:
    """Like :func:`parse_diff`, but a bare single-file patch is keyed by ``path``."""
    files = parse_diff(diff_text)
    if not files and path:
        files = {path: parse_file_diff(diff_text, path)}
    return files


def parse_pr_files(files: list[dict]) -> tuple[dict[str, FileDiff], list[str]]:
    """Parse GitHub file dicts (GET /pulls/{n}/files) into indexed FileDiffs.

    Returns:
        Tuple of (path → FileDiff, list of skipped file names).
    """
    parsed: dict[str, FileDiff] = {}
    skipped: list[str] = []

    for f in files:
        filename = f.get("filename", "")

        # Files without patches (binary, too large, etc.) cannot be commented on
        patch = f.get("patch", "") or ""
        if not filename or not patch:
            skipped.append(filename)
            continue

        hunks = parse_hunks(patch)
        if not hunks:
            skipped.append(filename)
            continue

        parsed[filename] = index_file(filename, hunks)

    return parsed, skipped
