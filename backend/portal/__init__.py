from flask import Flask, jsonify
from flask_sqlalchemy import SQLAlchemy
from flask_bcrypt import Bcrypt
from flask_login import LoginManager
from flask_cors import CORS
from flask_migrate import Migrate
from flask_socketio import SocketIO
import click
from config import Config

db = SQLAlchemy()
bcrypt = Bcrypt()
login_manager = LoginManager()
migrate = Migrate()
socketio = SocketIO(async_mode=None)

def create_app(config_class=Config):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)
    allowed_origins = flask_app.config.get('CORS_ORIGINS') or Config.CORS_ORIGINS

    db.init_app(flask_app)
    bcrypt.init_app(flask_app)
    login_manager.init_app(flask_app)
    migrate.init_app(flask_app, db)
    CORS(flask_app, supports_credentials=True, origins=allowed_origins)

    # Initialize Socket.IO after app is created
    socketio.init_app(flask_app, cors_allowed_origins=allowed_origins)

    from portal.errors import register_error_handlers
    register_error_handlers(flask_app)

    # Import and register blueprints here
    from portal.main import main
    flask_app.register_blueprint(main)

    from portal.api.scopes import scopes
    flask_app.register_blueprint(scopes, url_prefix='/api/scopes')

    from portal.socketio_events import register_socketio_handlers
    register_socketio_handlers(testing=flask_app.config.get('TESTING', False))

    from portal.models import User

    @login_manager.user_loader
    def load_user(user_id):
        return db.session.get(User, int(user_id))

    @login_manager.unauthorized_handler
    def unauthorized():
        return jsonify({'error': 'Authentication required'}), 401

    @click.command('db-reset')
    def db_reset_command():
        """Drops, recreates, and seeds the database."""
        from portal.models import ProjectScope, ADMIN, FACULTY, STUDENT
        from portal.services.timer.countdown import full_duration_seconds
        with flask_app.app_context():
            db.drop_all()
            db.create_all()

            # Seed users
            seed = [('admin', ADMIN), ('faculty1', FACULTY), ('student1', STUDENT), ('student2', STUDENT)]
            students = []
            for username, role in seed:
                user = User(username=username, name=username.title(), role=role,
                            email=f'{username}@college.edu')
                user.set_password('password')
                db.session.add(user)
                if role == STUDENT:
                    students.append(user)

            scope = ProjectScope(name='Mini Project 2026', type='MINI_PROJECT',
                                 timer_total_hours=40.0,
                                 current_remaining_seconds=full_duration_seconds(40.0))
            scope.students.extend(students)
            db.session.add(scope)
            db.session.commit()
            print('Database has been reset and seeded!')

    flask_app.cli.add_command(db_reset_command)

    from portal.cli import timer_watch_command
    flask_app.cli.add_command(timer_watch_command)

    return flask_app
