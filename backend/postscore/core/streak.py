"""Streak calculator - consecutive posting days from publish history.

All instants are reduced to calendar dates in a single reference zone
(``settings.SCORING_TIMEZONE``) before any comparison. Naive datetimes are
taken to be UTC, which is how the database hands them back.

Only the last ``window_days`` calendar days ending at ``as_of`` are scanned,
so ``best_streak`` is the best run *within that window*, not over all time.
"""

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from zoneinfo import ZoneInfo

from postscore.config import settings


@dataclass(frozen=True)
class StreakResult:
    current_streak: int = 0
    best_streak: int = 0


def reference_zone() -> ZoneInfo:
    return ZoneInfo(settings.SCORING_TIMEZONE)


def to_calendar_day(moment: datetime, tz: ZoneInfo | None = None) -> date:
    """Calendar day of an instant in the reference zone."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(tz or reference_zone()).date()


def compute_streak(
    publish_days: Iterable[date],
    as_of: date,
    window_days: int | None = None,
) -> StreakResult:
    """Compute current and best streak as of a given day."""
    if window_days is None:
        window_days = settings.STREAK_WINDOW_DAYS
    window_start = as_of - timedelta(days=window_days - 1)

    # Unique days inside the window, newest first
    days = sorted({d for d in publish_days if window_start <= d <= as_of}, reverse=True)
    if not days:
        return StreakResult()

    runs = []
    run = 1
    for newer, older in zip(days, days[1:]):
        if newer - older == timedelta(days=1):
            run += 1
        else:
            runs.append(run)
            run = 1
    runs.append(run)

    # runs[0] is the run containing the most recent publish day
    current = runs[0] if as_of - days[0] <= timedelta(days=1) else 0
    return StreakResult(current_streak=current, best_streak=max(runs))
