from flask import current_app, jsonify
from sqlalchemy.exc import SQLAlchemyError


class LedgerError(Exception):
    """Base for every rejection the ledger reports to callers."""

    status_code = 500
    code = 'server_error'

    def __init__(self, message, code=None, field=None):
        super().__init__(message)
        self.message = message
        if code:
            self.code = code
        self.field = field

    def to_dict(self):
        payload = {'error': self.message, 'code': self.code}
        if self.field:
            payload['field'] = self.field
        return payload


class ValidationError(LedgerError):
    status_code = 400
    code = 'invalid_input'


class GameUnavailableError(ValidationError):
    status_code = 403
    code = 'game_unavailable'


class NotFoundError(LedgerError):
    status_code = 404
    code = 'not_found'


class ConflictError(LedgerError):
    status_code = 409
    code = 'conflict'


class StoreError(LedgerError):
    status_code = 500
    code = 'store_error'


def register_error_handlers(flask_app):
    @flask_app.errorhandler(LedgerError)
    def handle_ledger_error(exc):
        if exc.status_code >= 500:
            current_app.logger.error(f"[ledger-error] code={exc.code} message={exc.message}")
        return jsonify(exc.to_dict()), exc.status_code

    @flask_app.errorhandler(SQLAlchemyError)
    def handle_store_failure(exc):
        current_app.logger.exception(f"[store-error] {exc.__class__.__name__}")
        return jsonify({'error': 'Server error', 'code': StoreError.code}), 500
