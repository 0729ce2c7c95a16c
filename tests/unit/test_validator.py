"""Tests for pinpoint.diff.validator."""

from __future__ import annotations

import pytest

from pinpoint.core.models import PositionStatus
from pinpoint.diff.parser import parse_file_diff
from pinpoint.diff.validator import check_position, hunk_spans, render_check, validate_position


@pytest.fixture
def x_ts(x_ts_diff):
    return parse_file_diff(x_ts_diff, "src/x.ts")


@pytest.fixture
def y_ts(y_ts_diff):
    return parse_file_diff(y_ts_diff, "src/y.ts")


class TestValidatePosition:
    def test_valid_position(self, x_ts):
        check = validate_position(x_ts, 2)
        assert check.ok
        assert check.line is not None
        assert check.line.text == 'import { b } from "./b";'

    def test_past_the_end(self, x_ts):
        check = validate_position(x_ts, 5)
        assert not check.ok
        assert check.status == PositionStatus.OUT_OF_RANGE
        assert (check.min_position, check.max_position) == (1, 4)

    @pytest.mark.parametrize("position", [0, -1])
    def test_non_positive(self, x_ts, position):
        assert validate_position(x_ts, position).status == PositionStatus.OUT_OF_RANGE

    def test_second_hunk_is_in_range(self, y_ts):
        check = validate_position(y_ts, 6)
        assert check.ok
        assert check.line.text == "ctx21"

    def test_removed_line_is_commentable(self, y_ts):
        check = validate_position(y_ts, 7)
        assert check.ok
        assert check.line.render() == "-old22"

    def test_every_position_up_to_max_is_valid(self, y_ts):
        assert all(validate_position(y_ts, p).ok for p in range(1, y_ts.max_position + 1))


class TestCheckPosition:
    def test_unknown_file(self, pr_files):
        check = check_position(pr_files, "missing.ts", 1)
        assert check.status == PositionStatus.FILE_NOT_FOUND
        assert "src/x.ts" in check.available_files

    def test_known_file(self, pr_files):
        assert check_position(pr_files, "old.py", 2).ok


class TestRenderCheck:
    def test_hunk_spans(self, y_ts):
        spans = hunk_spans(y_ts)
        assert [s.render() for s in spans] == [
            "@@ -1,4 +1,5 @@ → positions 1-5",
            "@@ -20,3 +21,3 @@ → positions 6-9",
        ]

    def test_valid(self, x_ts):
        lines = render_check(validate_position(x_ts, 2))
        assert lines[0] == "✅ Valid: Position 2 is in range [1-4]"
        assert "File: src/x.ts" in lines

    def test_invalid(self, y_ts):
        lines = render_check(validate_position(y_ts, 12))
        assert lines[0] == "❌ Invalid: Position 12 is out of range."
        assert "   Valid positions: [1-9]" in lines
        assert "  @@ -20,3 +21,3 @@ → positions 6-9" in lines

    def test_file_not_found(self, pr_files):
        lines = render_check(check_position(pr_files, "nope.py", 1))
        assert lines[0] == "❌ Error: File 'nope.py' not found in diff"
        assert "  - src/y.ts" in lines
