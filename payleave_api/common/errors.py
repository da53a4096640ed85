# payleave_api/common/errors.py
from flask import Blueprint, current_app
from werkzeug.exceptions import HTTPException
from sqlalchemy.exc import IntegrityError

from payleave_api.common.http import fail

bp_errors = Blueprint("errors", __name__)


class APIError(Exception):
    """Custom API Error class."""
    def __init__(self, code, message, status_code=400, payload=None):
        super().__init__(message)
        self.code = code
        self.message = message
        self.status_code = status_code
        self.payload = payload


class ValidationError(APIError):
    def __init__(self, message, payload=None):
        super().__init__("VALIDATION_ERROR", message, 422, payload)


class NotFoundError(APIError):
    def __init__(self, message, payload=None):
        super().__init__("NOT_FOUND", message, 404, payload)


class InsufficientBalanceError(APIError):
    """The ledger would go negative; nothing was written."""
    def __init__(self, remaining, requested, leave_type=None):
        self.remaining = float(remaining)
        self.requested = float(requested)
        self.leave_type = leave_type
        msg = f"insufficient balance: remaining {_num(remaining)} < requested {_num(requested)}"
        if leave_type:
            msg = f"{msg} ({leave_type})"
        super().__init__(
            "INSUFFICIENT_BALANCE", msg, 409,
            {"remaining": self.remaining, "requested": self.requested, "leave_type": leave_type},
        )


class InvalidTransitionError(APIError):
    def __init__(self, message, payload=None):
        super().__init__("INVALID_TRANSITION", message, 409, payload)


def _num(v):
    f = float(v)
    return int(f) if f.is_integer() else f


@bp_errors.app_errorhandler(APIError)
def _api_error(e: APIError):
    return fail(message=e.message, status=e.status_code, code=e.code, detail=e.payload)

@bp_errors.app_errorhandler(HTTPException)
def _http(e: HTTPException):
    return fail(message=e.description or "HTTP error", status=e.code or 400)

@bp_errors.app_errorhandler(IntegrityError)
def _integrity(e: IntegrityError):
    # 409 for unique/FK violations
    return fail(message="Conflict / integrity error", status=409, code="CONSTRAINT_ERROR",
                detail=str(e.orig) if getattr(e, "orig", None) else str(e))

@bp_errors.app_errorhandler(Exception)
def _unhandled(e: Exception):
    current_app.logger.exception(e)
    return fail(message="Internal Server Error", status=500)
