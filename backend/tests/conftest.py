import os
import sys
from datetime import datetime, timedelta
from zoneinfo import ZoneInfo
import pytest

# Ensure the backend root (containing the `portal` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from portal import create_app, db, socketio

IST = ZoneInfo('Asia/Kolkata')


class TestConfig:
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    WTF_CSRF_ENABLED = False
    BCRYPT_LOG_ROUNDS = 4
    CORS_ORIGINS = ['http://localhost:5173']
    INSTITUTION_TIMEZONE = 'Asia/Kolkata'
    DEFAULT_TIMER_HOURS = 0
    TIMER_WATCH_POLL_SEC = 60


class FrozenClock:
    """Callable stand-in for `utcnow` that only moves when told to."""

    def __init__(self, now):
        self.now = now

    def __call__(self):
        return self.now

    def set(self, now):
        self.now = now

    def advance(self, **kwargs):
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture()
def flask_app():
    application = create_app(TestConfig)
    with application.app_context():
        # Ensure models are imported so tables are created
        import portal.models  # noqa: F401
        db.create_all()
    # Requests push their own context so the logged-in user never leaks between clients
    yield application
    with application.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def clock(monkeypatch):
    # Monday 12 Oct 2026, 09:00 college time
    frozen = FrozenClock(datetime(2026, 10, 12, 9, 0, tzinfo=IST))
    monkeypatch.setattr('portal.api.scopes.utcnow', frozen)
    monkeypatch.setattr('portal.socketio_events.utcnow', frozen)
    return frozen


@pytest.fixture()
def make_user(flask_app):
    from portal.models import User

    def _make(username, role, password='password'):
        with flask_app.app_context():
            user = User(username=username, name=username.title(), role=role, email=f'{username}@college.edu')
            user.set_password(password)
            db.session.add(user)
            db.session.commit()
            return user.id
    return _make


def _login(flask_app, username, password='password'):
    test_client = flask_app.test_client()
    res = test_client.post('/login', json={'username': username, 'password': password})
    assert res.status_code == 200, res.get_json()
    return test_client


@pytest.fixture()
def admin_client(flask_app, make_user):
    make_user('admin', 'ADMIN')
    return _login(flask_app, 'admin')


@pytest.fixture()
def student(make_user):
    return make_user('student1', 'STUDENT')


@pytest.fixture()
def student_client(flask_app, student):
    return _login(flask_app, 'student1')


@pytest.fixture()
def sio_client(flask_app):
    test_client = socketio.test_client(
        flask_app,
        flask_test_client=flask_app.test_client(),
        namespace='/ws'
    )
    yield test_client
    try:
        test_client.disconnect(namespace='/ws')
    except Exception:
        pass
