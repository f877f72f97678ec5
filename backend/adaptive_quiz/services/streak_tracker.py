"""Daily engagement streaks counted in a fixed civil timezone.

Both timestamps are converted to the configured zone and compared as
calendar dates, so the day boundary is that zone's midnight regardless of
server or client locale.
"""

from dataclasses import dataclass
from datetime import date, datetime, tzinfo
from typing import Optional, Protocol

from adaptive_quiz.services.clock import as_utc


class StreakProfile(Protocol):
    streak: int
    last_quiz_date: Optional[datetime]


@dataclass
class EngagementState:
    streak: int = 0
    last_quiz_date: Optional[datetime] = None


@dataclass(frozen=True)
class EffectiveStreak:
    effective: int
    should_reset: bool


def civil_day(moment: datetime, tz: tzinfo) -> date:
    return as_utc(moment).astimezone(tz).date()


def day_difference(last: datetime, now: datetime, tz: tzinfo) -> int:
    return (civil_day(now, tz) - civil_day(last, tz)).days


def _stored_streak(profile: StreakProfile) -> int:
    value = profile.streak
    if not isinstance(value, int) or value < 0:
        return 0
    return value


def update_on_completion(profile: StreakProfile, now: datetime, tz: tzinfo) -> int:
    stored = _stored_streak(profile)
    if profile.last_quiz_date is None:
        new_streak = 1
    else:
        diff = day_difference(profile.last_quiz_date, now, tz)
        if diff <= 0:
            # one completion per day; a clock behind the stored date counts as the same day
            new_streak = stored
        elif diff == 1:
            new_streak = stored + 1
        else:
            new_streak = 1

    profile.streak = new_streak
    profile.last_quiz_date = now
    return new_streak


def compute_effective(profile: Optional[StreakProfile], now: datetime, tz: tzinfo) -> EffectiveStreak:
    if profile is None:
        return EffectiveStreak(effective=0, should_reset=False)
    stored = _stored_streak(profile)
    if profile.last_quiz_date is None:
        return EffectiveStreak(effective=0, should_reset=stored != 0)
    if day_difference(profile.last_quiz_date, now, tz) <= 1:
        return EffectiveStreak(effective=stored, should_reset=False)
    return EffectiveStreak(effective=0, should_reset=True)
