import threading
from datetime import datetime
from zoneinfo import ZoneInfo
import pytest

from portal import db
from portal.errors import InvalidTimerTransition
from portal.models import ProjectScope
from portal.services.timer.transitions import run_timer_action, scope_lock

IST = ZoneInfo('Asia/Kolkata')


def ist(day, hour=0, minute=0):
    return datetime(2026, 10, day, hour, minute, tzinfo=IST)


@pytest.fixture()
def running_scope(flask_app):
    with flask_app.app_context():
        scope = ProjectScope(name='Batch A', timer_total_hours=2, current_remaining_seconds=7200,
                             is_timer_running=True, timer_last_updated=ist(12, 9))
        db.session.add(scope)
        db.session.commit()
        return scope.id


def test_scope_lock_is_per_scope():
    assert scope_lock(1) is scope_lock(1)
    assert scope_lock(1) is not scope_lock(2)


def test_run_timer_action_persists_and_rejects(flask_app, running_scope):
    with flask_app.app_context():
        scope = run_timer_action(running_scope, 'PAUSE', ist(12, 10))
        assert scope.current_remaining_seconds == 3600
        with pytest.raises(InvalidTimerTransition):
            run_timer_action(running_scope, 'PAUSE', ist(12, 11))
    with flask_app.app_context():
        stored = db.session.get(ProjectScope, running_scope)
        assert stored.current_remaining_seconds == 3600
        assert stored.timer_last_updated == ist(12, 10)
        assert stored.is_timer_running is False


def test_missing_scope_returns_none(flask_app):
    with flask_app.app_context():
        assert run_timer_action(12345, 'START', ist(12, 9)) is None


def test_concurrent_pauses_freeze_once(flask_app, running_scope):
    results = []
    barrier = threading.Barrier(2)

    def pause(at):
        with flask_app.app_context():
            barrier.wait()
            try:
                run_timer_action(running_scope, 'PAUSE', at)
                results.append('ok')
            except InvalidTimerTransition:
                results.append('rejected')

    threads = [threading.Thread(target=pause, args=(ist(12, 10),)) for _ in range(2)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert sorted(results) == ['ok', 'rejected']
    with flask_app.app_context():
        stored = db.session.get(ProjectScope, running_scope)
        assert stored.current_remaining_seconds == 3600
        assert stored.is_timer_running is False


def test_concurrent_start_and_pause_settle_in_one_order(flask_app, running_scope):
    results = {}
    barrier = threading.Barrier(2)

    def act(action):
        with flask_app.app_context():
            barrier.wait()
            try:
                run_timer_action(running_scope, action, ist(12, 10))
                results[action] = 'ok'
            except InvalidTimerTransition:
                results[action] = 'rejected'

    threads = [threading.Thread(target=act, args=(action,)) for action in ('START', 'PAUSE')]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    # Already running, so PAUSE always lands; START only lands if it queued behind PAUSE
    assert results['PAUSE'] == 'ok'
    with flask_app.app_context():
        stored = db.session.get(ProjectScope, running_scope)
        assert stored.current_remaining_seconds == 3600
        assert stored.timer_last_updated == ist(12, 10)
        assert stored.is_timer_running is (results['START'] == 'ok')
