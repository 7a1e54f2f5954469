"""Timer errors and the JSON error handlers registered on the app."""

from flask import jsonify


class TimerError(Exception):
    """Base class for recoverable timer failures reported to the caller."""

    status_code = 400
    code = 'timer_error'
    message = 'timer error'

    def __init__(self, detail=None, scope_id=None):
        self.detail = detail
        self.scope_id = scope_id
        super().__init__(f"{self.message}: {detail}" if detail else self.message)

    def to_dict(self):
        payload = {'error': self.message, 'code': self.code}
        if self.detail:
            payload['detail'] = self.detail
        if self.scope_id is not None:
            payload['scope_id'] = self.scope_id
        return payload


class InvalidTimerTransition(TimerError):
    status_code = 409
    code = 'invalid_transition'
    message = 'invalid timer state transition'


class InvalidDuration(TimerError):
    status_code = 400
    code = 'invalid_duration'
    message = 'invalid duration'


class UnknownTimerAction(TimerError):
    status_code = 400
    code = 'unknown_action'
    message = 'unknown timer action'


class TimerStateCorrupted(TimerError):
    """Running timer without a `timer_last_updated` stamp.

    `remaining` holds the fail-closed value (stored remaining, elapsed taken
    as 0) so callers can still render something.
    """

    status_code = 409
    code = 'timer_corrupted'
    message = 'timer state corrupted'

    def __init__(self, detail=None, scope_id=None, remaining=0):
        super().__init__(detail, scope_id)
        self.remaining = remaining

    def to_dict(self):
        payload = super().to_dict()
        payload['remainingSeconds'] = self.remaining
        return payload


def register_error_handlers(flask_app):
    @flask_app.errorhandler(TimerError)
    def handle_timer_error(exc):
        flask_app.logger.warning(f"[timer-reject] scope={exc.scope_id} {exc}")
        return jsonify(exc.to_dict()), exc.status_code

    @flask_app.errorhandler(404)
    def handle_not_found(exc):
        return jsonify({'error': 'Not found'}), 404

    @flask_app.errorhandler(405)
    def handle_method_not_allowed(exc):
        return jsonify({'error': 'Method not allowed'}), 405
