"""Tests for the pure dashboard logic functions."""

import pytest

from devdeck.status_constants import FOCUS_LIST, FOCUS_LOG, FOCUS_SECONDARY
from devdeck.tui_logic import (
    clamp_index,
    clamp_pin,
    compute_layout,
    cycle_focus,
    filter_lines,
    find_match_positions,
    find_match_spans,
    format_cpu,
    format_memory_mb,
    line_matches,
)


class TestComputeLayout:
    """Tests for compute_layout."""

    def test_unpinned(self):
        layout = compute_layout(120, 40, pinned=False)
        assert layout.list_width == 35
        assert layout.log_width == 85
        assert layout.primary_height == 38
        assert layout.secondary_height == 0
        assert layout.primary_rows == 36
        assert layout.secondary_rows == 0

    def test_pinned_splits_evenly(self):
        layout = compute_layout(120, 42, pinned=True)
        assert layout.primary_height == 20
        assert layout.secondary_height == 20

    def test_pinned_odd_row_goes_to_primary(self):
        layout = compute_layout(120, 41, pinned=True)
        assert layout.primary_height == 20
        assert layout.secondary_height == 19

    def test_tiny_terminal(self):
        layout = compute_layout(20, 1, pinned=True)
        assert layout.list_width == 20
        assert layout.log_width == 0
        assert layout.primary_height == 0
        assert layout.primary_rows == 1

    def test_custom_list_width(self):
        assert compute_layout(100, 30, False, list_width=20).log_width == 80


class TestFiltering:
    """Tests for search filtering."""

    LINES = ["GET /health 200", "ERROR db down", "warn: slow", "error again"]

    def test_line_matches_ignores_case(self):
        assert line_matches("Hello World", "world")
        assert not line_matches("Hello", "bye")

    def test_filter_keeps_order(self):
        assert filter_lines(self.LINES, "error") == ["ERROR db down", "error again"]

    def test_empty_query_keeps_everything(self):
        assert filter_lines(self.LINES, "") == self.LINES

    @pytest.mark.parametrize("query", ["", "error", "o", "zzz", "GET"])
    def test_filter_is_idempotent(self, query):
        once = filter_lines(self.LINES, query)
        assert filter_lines(once, query) == once

    def test_filter_returns_new_list(self):
        result = filter_lines(self.LINES, "")
        assert result is not self.LINES

    def test_match_positions(self):
        assert find_match_positions(self.LINES, "ERROR") == [1, 3]
        assert find_match_positions(self.LINES, "") == []

    def test_match_spans(self):
        assert find_match_spans("abcABCabc", "bc") == [(1, 3), (4, 6), (7, 9)]
        assert find_match_spans("aaaa", "aa") == [(0, 2), (2, 4)]
        assert find_match_spans("abc", "") == []


class TestIndices:
    """Tests for clamp_index, clamp_pin and cycle_focus."""

    @pytest.mark.parametrize("index,length,expected", [
        (0, 3, 0), (2, 3, 2), (3, 3, 2), (-1, 3, 0), (5, 0, 0),
    ])
    def test_clamp_index(self, index, length, expected):
        assert clamp_index(index, length) == expected

    def test_clamp_pin(self):
        assert clamp_pin(1, 3) == 1
        assert clamp_pin(3, 3) == -1
        assert clamp_pin(-1, 3) == -1

    def test_cycle_focus(self):
        assert cycle_focus(FOCUS_LIST, False) == FOCUS_LOG
        assert cycle_focus(FOCUS_LOG, False) == FOCUS_LIST
        assert cycle_focus(FOCUS_LOG, True) == FOCUS_SECONDARY
        assert cycle_focus(FOCUS_SECONDARY, True) == FOCUS_LIST
        assert cycle_focus(FOCUS_SECONDARY, False) == FOCUS_LIST


class TestFormatting:
    """Tests for stat formatting."""

    def test_memory(self):
        assert format_memory_mb(42 * 1024 * 1024 + 10) == "42 MB"
        assert format_memory_mb(0) == "0 MB"

    def test_cpu(self):
        assert format_cpu(3.4) == "3% CPU"
        assert format_cpu(0) == "0% CPU"
