import threading
from datetime import datetime
from typing import Dict, Optional

from flask import current_app

from portal import db
from portal.errors import TimerError
from portal.models import ProjectScope
from .countdown import apply_timer_action, timer_state
from .working_hours import TzLike


# Writers for the same scope queue up here; the row lock covers other processes.
_scope_locks: Dict[int, threading.Lock] = {}
_scope_locks_guard = threading.Lock()


def scope_lock(scope_id: int) -> threading.Lock:
    with _scope_locks_guard:
        lock = _scope_locks.get(scope_id)
        if lock is None:
            lock = _scope_locks[scope_id] = threading.Lock()
        return lock


def run_timer_action(
    scope_id: int, action: str, now: datetime, hours=None, tz: TzLike = None
) -> Optional[ProjectScope]:
    """Apply one timer action to a scope as a single read-modify-write.

    Returns the updated scope, or None if it doesn't exist. Timer errors
    roll the transaction back and propagate.
    """
    if tz is None:
        tz = current_app.config.get('INSTITUTION_TIMEZONE')
    with scope_lock(scope_id):
        scope = ProjectScope.query.filter_by(id=scope_id).with_for_update().first()
        if not scope:
            db.session.rollback()
            return None
        before = (scope.current_remaining_seconds, timer_state(scope))
        try:
            apply_timer_action(scope, action, now, tz=tz, hours=hours)
        except TimerError:
            db.session.rollback()
            raise
        current_app.logger.info(
            f"[timer-{str(action).lower().replace('_', '-')}] scope={scope.id} remaining {before[0]} -> {scope.current_remaining_seconds} "
            f"state {before[1]} -> {timer_state(scope)} total_hours={scope.timer_total_hours}"
        )
        scope.updated_at = now
        db.session.add(scope)
        db.session.commit()
        return scope
