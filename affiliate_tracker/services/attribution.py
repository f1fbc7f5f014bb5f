"""
Last-click attribution inside a fixed window.

A conversion at `as_of` is credited to the most recent click on the same link
with clicked_at in [as_of − window_days, as_of]. Clicks sharing a timestamp
are ordered by insertion (higher id wins). No first-click, no multi-touch.

Pure functions: the repository supplies the candidate clicks.
"""
from __future__ import annotations

from datetime import datetime, timedelta
from typing import Iterable, Optional, Protocol, TypeVar


class ClickLike(Protocol):
    id: int
    clicked_at: datetime


C = TypeVar("C", bound=ClickLike)


def attribution_window(as_of: datetime, window_days: int) -> tuple[datetime, datetime]:
    """Inclusive [start, end] bounds for clicks that may earn a conversion at `as_of`."""
    if window_days < 0:
        raise ValueError("window_days must be non-negative")
    return as_of - timedelta(days=window_days), as_of


def select_attributed_click(
    clicks: Iterable[C],
    as_of: datetime,
    window_days: int,
) -> Optional[C]:
    """Pick the winning click, or None when nothing falls inside the window."""
    start, end = attribution_window(as_of, window_days)
    best: Optional[C] = None
    for click in clicks:
        if not (start <= click.clicked_at <= end):
            continue
        if best is None or (click.clicked_at, click.id) > (best.clicked_at, best.id):
            best = click
    return best
