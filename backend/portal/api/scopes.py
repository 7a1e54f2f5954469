import math
from flask import Blueprint, jsonify, request, current_app
from flask_login import login_required, current_user
from portal import db, socketio
from portal.auth import role_required
from portal.models import ProjectScope, User, ADMIN, STUDENT
from portal.services.timer.countdown import SET_DURATION, full_duration_seconds
from portal.services.timer.transitions import run_timer_action, scope_lock
from portal.services.timer.working_hours import utcnow


scopes = Blueprint('scopes', __name__)

# Plain fields the admin console may PATCH, keyed by their JSON name
_EDITABLE_FIELDS = {
    'name': 'name',
    'description': 'description',
    'type': 'type',
    'isActive': 'is_active',
    'requireGuide': 'require_guide',
    'requireSubjectExpert': 'require_subject_expert',
}
_TEXT_FIELDS = ('description', 'type')
_FLAG_FIELDS = ('isActive', 'requireGuide', 'requireSubjectExpert')


def _tz():
    return current_app.config.get('INSTITUTION_TIMEZONE')


def _emit_timer_update(scope: ProjectScope, now) -> None:
    socketio.emit('timer_update', scope.to_dict(now=now, tz=_tz()), to=f"scope:{scope.id}", namespace='/ws')


def _field_error(data):
    """Type-check the plain scope fields present in ``data``; returns an error message or None."""
    if 'name' in data:
        name = data['name']
        if not isinstance(name, str) or not name.strip():
            return 'Name is required'
    for key in _TEXT_FIELDS:
        if key in data and data[key] is not None and not isinstance(data[key], str):
            return f'{key} must be a string'
    for key in _FLAG_FIELDS:
        if key in data and not isinstance(data[key], bool):
            return f'{key} must be true or false'
    return None


def _parse_hours(value):
    try:
        hours = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(hours) or hours <= 0:
        return None
    return hours


def _student_ids(data):
    ids = data.get('studentIds')
    if not isinstance(ids, list) or not ids:
        return None
    try:
        return [int(i) for i in ids]
    except (TypeError, ValueError):
        return None


@scopes.route('', methods=['GET'])
@login_required
def list_scopes():
    now = utcnow()
    rows = ProjectScope.query.order_by(ProjectScope.created_at.desc(), ProjectScope.id.desc()).all()
    return jsonify([s.to_dict(now=now, tz=_tz()) for s in rows])


@scopes.route('/my-scopes', methods=['GET'])
@role_required(STUDENT)
def my_scopes():
    now = utcnow()
    active = [s for s in current_user.scopes if s.is_active]
    active.sort(key=lambda s: (s.created_at, s.id), reverse=True)
    return jsonify([s.to_dict(now=now, tz=_tz()) for s in active])


@scopes.route('/<int:scope_id>', methods=['GET'])
@login_required
def get_scope(scope_id):
    scope = db.get_or_404(ProjectScope, scope_id)
    return jsonify(scope.to_dict(now=utcnow(), tz=_tz()))


@scopes.route('', methods=['POST'])
@role_required(ADMIN)
def create_scope():
    data = request.get_json(silent=True) or {}
    if 'name' not in data:
        return jsonify({'error': 'Name is required'}), 400
    error = _field_error(data)
    if error:
        return jsonify({'error': error}), 400
    name = data['name'].strip()

    hours = data.get('timerTotalHours')
    if hours is None and current_app.config.get('DEFAULT_TIMER_HOURS'):
        hours = current_app.config['DEFAULT_TIMER_HOURS']
    if hours is not None:
        hours = _parse_hours(hours)
        if hours is None:
            return jsonify({'error': 'timerTotalHours must be a positive number'}), 400

    try:
        phases = int(data.get('numberOfPhases') or 4)
    except (TypeError, ValueError):
        return jsonify({'error': 'numberOfPhases must be an integer'}), 400

    now = utcnow()
    scope = ProjectScope(
        name=name,
        description=data.get('description'),
        type=data.get('type'),
        is_active=data.get('isActive', True) is not False,
        require_guide=data.get('requireGuide') is True,
        require_subject_expert=data.get('requireSubjectExpert') is True,
        number_of_phases=phases,
        timer_total_hours=hours,
        # New scopes start paused at their full duration
        current_remaining_seconds=full_duration_seconds(hours) if hours else 0,
        is_timer_running=False,
        timer_last_updated=now if hours else None,
        created_at=now,
        updated_at=now,
    )
    db.session.add(scope)
    db.session.commit()
    current_app.logger.info(f"[scope-create] scope={scope.id} name={scope.name!r} total_hours={hours}")
    return jsonify(scope.to_dict(now=now, tz=_tz())), 201


@scopes.route('/<int:scope_id>', methods=['PATCH'])
@role_required(ADMIN)
def update_scope(scope_id):
    scope = db.get_or_404(ProjectScope, scope_id)
    data = request.get_json(silent=True) or {}

    error = _field_error(data)
    if error:
        return jsonify({'error': error}), 400
    phases = None
    if data.get('numberOfPhases') is not None:
        try:
            phases = int(data['numberOfPhases'])
        except (TypeError, ValueError):
            return jsonify({'error': 'numberOfPhases must be an integer'}), 400

    now = utcnow()
    # Fields are type-checked above, so only the duration can still be rejected; it goes first
    if 'timerTotalHours' in data:
        scope = run_timer_action(scope_id, SET_DURATION, now, hours=data['timerTotalHours'], tz=_tz())
        _emit_timer_update(scope, now)

    for key, attr in _EDITABLE_FIELDS.items():
        if key in data:
            setattr(scope, attr, data[key])
    if phases is not None:
        scope.number_of_phases = phases
    db.session.add(scope)
    db.session.commit()
    return jsonify(scope.to_dict(now=now, tz=_tz()))


@scopes.route('/<int:scope_id>/toggle', methods=['PUT'])
@role_required(ADMIN)
def toggle_scope(scope_id):
    scope = db.get_or_404(ProjectScope, scope_id)
    scope.is_active = not scope.is_active
    db.session.add(scope)
    db.session.commit()
    return jsonify(scope.to_dict(now=utcnow(), tz=_tz()))


@scopes.route('/<int:scope_id>', methods=['DELETE'])
@role_required(ADMIN)
def delete_scope(scope_id):
    with scope_lock(scope_id):
        scope = db.get_or_404(ProjectScope, scope_id)
        if scope.is_timer_running:
            return jsonify({'error': 'Cannot delete scope while its timer is running. Pause it first.'}), 400
        scope.students = []
        db.session.delete(scope)
        db.session.commit()
    current_app.logger.info(f"[scope-delete] scope={scope_id}")
    return jsonify({'success': True, 'message': 'Scope deleted successfully'})


@scopes.route('/<int:scope_id>/students', methods=['GET'])
@role_required(ADMIN)
def list_scope_students(scope_id):
    scope = db.get_or_404(ProjectScope, scope_id)
    return jsonify([s.to_dict() for s in scope.students])


@scopes.route('/<int:scope_id>/students', methods=['POST'])
@role_required(ADMIN)
def add_scope_students(scope_id):
    scope = db.get_or_404(ProjectScope, scope_id)
    ids = _student_ids(request.get_json(silent=True) or {})
    if ids is None:
        return jsonify({'error': 'studentIds array is required'}), 400
    found = User.query.filter(User.id.in_(ids), User.role == STUDENT).all()
    existing = {s.id for s in scope.students}
    added = [u for u in found if u.id not in existing]
    scope.students.extend(added)
    db.session.commit()
    found_ids = {u.id for u in found}
    return jsonify({
        'success': True,
        'addedCount': len(added),
        'notFound': [i for i in ids if i not in found_ids],
    })


@scopes.route('/<int:scope_id>/students', methods=['DELETE'])
@role_required(ADMIN)
def remove_scope_students(scope_id):
    scope = db.get_or_404(ProjectScope, scope_id)
    ids = _student_ids(request.get_json(silent=True) or {})
    if ids is None:
        return jsonify({'error': 'studentIds array is required'}), 400
    to_remove = set(ids)
    kept = [s for s in scope.students if s.id not in to_remove]
    removed = len(scope.students) - len(kept)
    scope.students = kept
    db.session.commit()
    return jsonify({'success': True, 'removedCount': removed})


@scopes.route('/<int:scope_id>/timer', methods=['POST'])
@role_required(ADMIN)
def timer_action(scope_id):
    data = request.get_json(silent=True) or {}
    action = data.get('action')
    if not action:
        return jsonify({'error': 'action is required'}), 400
    now = utcnow()
    scope = run_timer_action(scope_id, action, now, hours=data.get('hours'), tz=_tz())
    if scope is None:
        return jsonify({'error': 'Scope not found'}), 404
    _emit_timer_update(scope, now)
    return jsonify(scope.to_dict(now=now, tz=_tz()))
