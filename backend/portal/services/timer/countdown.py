"""Batch countdown that only burns down during college working hours.

The functions here operate on anything exposing the four timer fields
(``timer_total_hours``, ``current_remaining_seconds``, ``is_timer_running``,
``timer_last_updated``): the ``ProjectScope`` model, or a detached
``TimerSnapshot``. Nothing in this module touches the database or a clock;
callers pass ``now`` in.
"""

import logging
import math
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional

from portal.errors import (
    InvalidDuration,
    InvalidTimerTransition,
    TimerStateCorrupted,
    UnknownTimerAction,
)
from .working_hours import TzLike, as_aware, is_working_moment, parse_instant, working_seconds_between


log = logging.getLogger(__name__)

START = 'START'
PAUSE = 'PAUSE'
RESET = 'RESET'
SET_DURATION = 'SET_DURATION'
ACTIONS = (START, PAUSE, RESET, SET_DURATION)

RUNNING = 'running'
PAUSED = 'paused'


@dataclass
class TimerSnapshot:
    """The persisted timer triple plus the configured duration, detached from the ORM."""

    timer_total_hours: Optional[float] = None
    current_remaining_seconds: int = 0
    is_timer_running: bool = False
    timer_last_updated: Optional[datetime] = None
    scope_id: Optional[int] = None

    @property
    def id(self) -> Optional[int]:
        return self.scope_id

    @classmethod
    def from_scope(cls, scope) -> 'TimerSnapshot':
        return cls(
            timer_total_hours=scope.timer_total_hours,
            current_remaining_seconds=scope.current_remaining_seconds or 0,
            is_timer_running=bool(scope.is_timer_running),
            timer_last_updated=scope.timer_last_updated,
            scope_id=getattr(scope, 'id', None),
        )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'TimerSnapshot':
        last = data.get('timerLastUpdated')
        if last is not None:
            last = parse_instant(last)
        return cls(
            timer_total_hours=data.get('timerTotalHours'),
            current_remaining_seconds=int(data.get('currentRemainingSeconds') or 0),
            is_timer_running=bool(data.get('isTimerRunning')),
            timer_last_updated=last,
            scope_id=data.get('id'),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.scope_id,
            'timerTotalHours': self.timer_total_hours,
            'currentRemainingSeconds': self.current_remaining_seconds,
            'isTimerRunning': self.is_timer_running,
            'timerLastUpdated': as_aware(self.timer_last_updated).isoformat() if self.timer_last_updated else None,
        }


def timer_state(scope) -> str:
    return RUNNING if scope.is_timer_running else PAUSED


def _stored_remaining(scope) -> int:
    return max(0, int(scope.current_remaining_seconds or 0))


def _check_integrity(scope) -> None:
    if scope.is_timer_running and scope.timer_last_updated is None:
        scope_id = getattr(scope, 'id', None)
        log.error(f"[timer-corrupt] scope={scope_id} running without timer_last_updated")
        raise TimerStateCorrupted(
            'running timer has no last-updated stamp',
            scope_id=scope_id,
            remaining=_stored_remaining(scope),
        )


def accrued_remaining(scope, instant: datetime, tz: TzLike = None) -> int:
    """Stored remaining minus every working second since the last snapshot."""
    if not scope.is_timer_running:
        return _stored_remaining(scope)
    _check_integrity(scope)
    elapsed = working_seconds_between(scope.timer_last_updated, instant, tz)
    return max(0, _stored_remaining(scope) - elapsed)


def current_remaining(scope, instant: datetime, tz: TzLike = None) -> int:
    """Remaining seconds as a viewer at ``instant`` should see them.

    Outside working hours, or while paused, the stored value is shown as-is.
    Raises ``TimerStateCorrupted`` (with the stored value attached) for a
    running timer that lost its last-updated stamp.
    """
    if not scope.is_timer_running:
        return _stored_remaining(scope)
    _check_integrity(scope)
    if not is_working_moment(instant, tz):
        return _stored_remaining(scope)
    return accrued_remaining(scope, instant, tz)


def full_duration_seconds(hours) -> int:
    return int(round(float(hours) * 3600))


def _validate_hours(hours, scope_id=None) -> float:
    if isinstance(hours, bool):
        raise InvalidDuration(f"hours must be a number, got {hours!r}", scope_id=scope_id)
    try:
        value = float(hours)
    except (TypeError, ValueError):
        raise InvalidDuration(f"hours must be a number, got {hours!r}", scope_id=scope_id)
    if not math.isfinite(value):
        raise InvalidDuration(f"hours must be finite, got {hours!r}", scope_id=scope_id)
    return value


def start_timer(scope, now: datetime) -> None:
    if scope.is_timer_running:
        raise InvalidTimerTransition('timer is already running', scope_id=getattr(scope, 'id', None))
    scope.is_timer_running = True
    scope.timer_last_updated = now
    scope.current_remaining_seconds = _stored_remaining(scope)


def pause_timer(scope, now: datetime, tz: TzLike = None) -> None:
    if not scope.is_timer_running:
        raise InvalidTimerTransition('timer is already paused', scope_id=getattr(scope, 'id', None))
    remaining = accrued_remaining(scope, now, tz)
    scope.current_remaining_seconds = remaining
    scope.timer_last_updated = now
    scope.is_timer_running = False


def reset_timer(scope, now: datetime) -> None:
    scope_id = getattr(scope, 'id', None)
    if scope.timer_total_hours is None:
        raise InvalidDuration('no duration configured', scope_id=scope_id)
    hours = _validate_hours(scope.timer_total_hours, scope_id)
    if hours <= 0:
        raise InvalidDuration(f"duration must be positive, got {hours}", scope_id=scope_id)
    scope.current_remaining_seconds = full_duration_seconds(hours)
    scope.timer_last_updated = now
    scope.is_timer_running = False


def set_timer_duration(scope, hours) -> None:
    """Change the configured total. Only a later RESET applies it."""
    scope.timer_total_hours = _validate_hours(hours, getattr(scope, 'id', None))


def apply_timer_action(scope, action: str, now: datetime, tz: TzLike = None, hours=None) -> None:
    name = str(action or '').strip().upper()
    if name == START:
        start_timer(scope, now)
    elif name == PAUSE:
        pause_timer(scope, now, tz)
    elif name == RESET:
        reset_timer(scope, now)
    elif name == SET_DURATION:
        set_timer_duration(scope, hours)
    else:
        raise UnknownTimerAction(f"expected one of {', '.join(ACTIONS)}, got {action!r}",
                                 scope_id=getattr(scope, 'id', None))


def format_hms(seconds) -> str:
    seconds = max(0, int(seconds or 0))
    h, rest = divmod(seconds, 3600)
    m, s = divmod(rest, 60)
    return f"{h:02d}:{m:02d}:{s:02d}"
