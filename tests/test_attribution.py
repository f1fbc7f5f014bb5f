"""Tests for last-click attribution inside the window."""
from dataclasses import dataclass
from datetime import datetime, timedelta

import pytest

from affiliate_tracker.services.attribution import attribution_window, select_attributed_click

T = datetime(2026, 3, 1, 12, 0, 0)


@dataclass
class Click:
    id: int
    clicked_at: datetime


def test_window_bounds():
    start, end = attribution_window(T, 30)
    assert start == T - timedelta(days=30)
    assert end == T


def test_negative_window_rejected():
    with pytest.raises(ValueError):
        attribution_window(T, -1)


def test_latest_click_in_window_wins():
    clicks = [
        Click(1, T - timedelta(days=40)),
        Click(2, T - timedelta(days=10)),
        Click(3, T - timedelta(days=5)),
    ]
    assert select_attributed_click(clicks, T, 30).id == 3


def test_click_outside_window_ignored():
    clicks = [Click(1, T - timedelta(days=40))]
    assert select_attributed_click(clicks, T, 30) is None


def test_window_edges_are_inclusive():
    clicks = [Click(1, T - timedelta(days=30))]
    assert select_attributed_click(clicks, T, 30).id == 1
    assert select_attributed_click([Click(2, T)], T, 30).id == 2


def test_click_after_conversion_ignored():
    clicks = [Click(1, T + timedelta(seconds=1))]
    assert select_attributed_click(clicks, T, 30) is None


def test_same_timestamp_higher_id_wins():
    ts = T - timedelta(days=1)
    clicks = [Click(7, ts), Click(9, ts), Click(8, ts)]
    assert select_attributed_click(clicks, T, 30).id == 9


def test_empty_candidates():
    assert select_attributed_click([], T, 30) is None


def test_zero_day_window_only_matches_now():
    clicks = [Click(1, T - timedelta(seconds=1)), Click(2, T)]
    assert select_attributed_click(clicks, T, 0).id == 2
