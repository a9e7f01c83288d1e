from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any


DEFAULT_GRACE_MINUTES = 5


@dataclass(frozen=True)
class WindowCheck:
    valid: bool
    actualMinutes: float
    requiredMinutes: int

    def as_dict(self) -> dict[str, Any]:
        return {
            "valid": self.valid,
            "actualMinutes": self.actualMinutes,
            "requiredMinutes": self.requiredMinutes,
        }


def required_window_minutes(duration_minutes: int, grace_minutes: int = DEFAULT_GRACE_MINUTES) -> int:
    return int(duration_minutes) + int(grace_minutes)


def validate_window(
    start: datetime,
    end: datetime,
    duration_minutes: int,
    grace_minutes: int = DEFAULT_GRACE_MINUTES,
) -> WindowCheck:
    required = required_window_minutes(duration_minutes, grace_minutes)
    actual = (end - start).total_seconds() / 60.0
    return WindowCheck(
        valid=end > start and actual >= required,
        actualMinutes=round(actual, 2),
        requiredMinutes=required,
    )


def propose_end(start: datetime, duration_minutes: int, grace_minutes: int = DEFAULT_GRACE_MINUTES) -> datetime:
    return start + timedelta(minutes=required_window_minutes(duration_minutes, grace_minutes))


def too_short_message(duration_minutes: int, check: WindowCheck, title: str = "") -> str:
    what = f' for "{title}"' if title else ""
    if check.actualMinutes <= 0:
        return f"Test window{what} must end after it starts."
    return (
        f"Test window too short{what}. For a {int(duration_minutes)}-minute test, "
        f"you need at least {int(math.ceil(check.requiredMinutes))} minutes between start and end time."
    )


def window_state(start: datetime, end: datetime, now: datetime) -> str:
    if now < start:
        return "upcoming"
    if now > end:
        return "expired"
    return "open"
