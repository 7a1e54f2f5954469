from datetime import datetime, timezone
from sqlalchemy import DateTime
from sqlalchemy.types import TypeDecorator
from portal import db, bcrypt
from flask_login import UserMixin
from portal.services.timer.countdown import TimerSnapshot, current_remaining
from portal.services.timer.working_hours import as_aware, is_working_moment
from portal.errors import TimerStateCorrupted

ADMIN = 'ADMIN'
FACULTY = 'FACULTY'
STUDENT = 'STUDENT'


def _utcnow():
    return datetime.now(timezone.utc)


def _iso(value):
    return as_aware(value).isoformat() if value else None


class UTCDateTime(TypeDecorator):
    """Stores instants as UTC and always hands back aware datetimes (SQLite drops the offset)."""
    impl = DateTime
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is not None:
            value = as_aware(value).astimezone(timezone.utc)
        return value

    def process_result_value(self, value, dialect):
        if value is not None:
            value = as_aware(value)
        return value


scope_student = db.Table(
    'scope_student',
    db.Column('scope_id', db.Integer, db.ForeignKey('project_scope.id'), primary_key=True),
    db.Column('user_id', db.Integer, db.ForeignKey('user.id'), primary_key=True),
)


class User(UserMixin, db.Model):
    __tablename__ = 'user'
    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(64), unique=True, nullable=False, index=True)
    name = db.Column(db.String(128), nullable=True)
    email = db.Column(db.String(128), unique=True, nullable=True)
    roll_number = db.Column(db.String(32), unique=True, nullable=True)
    role = db.Column(db.String(16), nullable=False, default=STUDENT)
    password_hash = db.Column(db.String(256), nullable=False)

    def set_password(self, password):
        self.password_hash = bcrypt.generate_password_hash(password).decode('utf-8')

    def check_password(self, password):
        return bcrypt.check_password_hash(self.password_hash, password)

    def to_dict(self):
        return {
            'id': self.id,
            'username': self.username,
            'name': self.name,
            'email': self.email,
            'rollNumber': self.roll_number,
            'role': self.role,
        }


class ProjectScope(db.Model):
    """A batch of students/projects for one academic cycle, carrying the batch timer."""
    __tablename__ = 'project_scope'
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(128), nullable=False)
    description = db.Column(db.Text, nullable=True)
    type = db.Column(db.String(64), nullable=True)
    is_active = db.Column(db.Boolean, default=True, nullable=False)
    require_guide = db.Column(db.Boolean, default=False, nullable=False)
    require_subject_expert = db.Column(db.Boolean, default=False, nullable=False)
    number_of_phases = db.Column(db.Integer, default=4, nullable=False)
    created_at = db.Column(UTCDateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at = db.Column(UTCDateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False)
    # Timer snapshot: remaining as of timer_last_updated; authoritative while paused
    timer_total_hours = db.Column(db.Float, nullable=True)
    current_remaining_seconds = db.Column(db.Integer, default=0, nullable=False)
    is_timer_running = db.Column(db.Boolean, default=False, nullable=False)
    timer_last_updated = db.Column(UTCDateTime(timezone=True), nullable=True)

    students = db.relationship('User', secondary=scope_student, lazy='subquery',
                               backref=db.backref('scopes', lazy=True))

    def snapshot(self):
        return TimerSnapshot.from_scope(self)

    def to_dict(self, now=None, tz=None):
        data = {
            'id': self.id,
            'name': self.name,
            'description': self.description,
            'type': self.type,
            'isActive': self.is_active,
            'requireGuide': self.require_guide,
            'requireSubjectExpert': self.require_subject_expert,
            'numberOfPhases': self.number_of_phases,
            'createdAt': _iso(self.created_at),
            'updatedAt': _iso(self.updated_at),
            'studentCount': len(self.students),
        }
        data.update(self.snapshot().to_dict())
        if now is not None:
            # serverTime lets viewers compute their clock offset once per fetch
            data['serverTime'] = _iso(now)
            data['isWorkingHours'] = is_working_moment(now, tz)
            try:
                data['remainingSeconds'] = current_remaining(self, now, tz)
            except TimerStateCorrupted as exc:
                data['remainingSeconds'] = exc.remaining
                data['timerFault'] = exc.message
        return data
