from functools import wraps
from flask import jsonify
from flask_login import current_user, login_required


def role_required(*roles):
    """Restrict a view to logged-in users holding one of `roles`."""
    def decorator(view):
        @wraps(view)
        @login_required
        def wrapped(*args, **kwargs):
            if current_user.role not in roles:
                return jsonify({'error': 'You do not have permission to do that'}), 403
            return view(*args, **kwargs)
        return wrapped
    return decorator
