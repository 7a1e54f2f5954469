from flask_socketio import join_room, leave_room, emit
from flask import current_app
from portal import db
from portal.models import ProjectScope
from portal.services.timer.working_hours import utcnow


def _room(scope_id) -> str:
    return f"scope:{scope_id}"


def _scope_id(data):
    try:
        return int((data or {}).get('scope_id'))
    except (TypeError, ValueError):
        return None


def handle_connect():
    emit('connected', {'message': 'Connected to /ws'})


def handle_join_scope(data):
    scope_id = _scope_id(data)
    if scope_id is None:
        emit('error', {'message': 'scope_id is required'})
        return
    room = _room(scope_id)
    join_room(room)
    emit('joined', {'room': room})
    # Hand the viewer a fresh snapshot so it can compute its clock offset
    scope = db.session.get(ProjectScope, scope_id)
    if scope is None:
        emit('error', {'message': 'Scope not found'})
        return
    emit('timer_state', scope.to_dict(now=utcnow(), tz=current_app.config.get('INSTITUTION_TIMEZONE')))


def handle_leave_scope(data):
    scope_id = _scope_id(data)
    if scope_id is None:
        emit('error', {'message': 'scope_id is required'})
        return
    room = _room(scope_id)
    leave_room(room)
    emit('left', {'room': room})


def handle_ping(data):
    emit('pong', data or {})


def register_socketio_handlers(testing: bool = False) -> None:
    """Register Socket.IO event handlers.

    Always register on namespace '/ws'. When testing is True, also mirror
    handlers on the default namespace '/' to accommodate the test harness.
    """
    from portal import socketio

    handlers = {
        'connect': handle_connect,
        'join_scope': handle_join_scope,
        'leave_scope': handle_leave_scope,
        'ping': handle_ping,
    }
    namespaces = ['/ws', '/'] if testing else ['/ws']
    for namespace in namespaces:
        for event, handler in handlers.items():
            socketio.on_event(event, handler, namespace=namespace)
