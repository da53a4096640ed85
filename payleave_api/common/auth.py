# payleave_api/common/auth.py
from __future__ import annotations

from functools import wraps

from flask_jwt_extended import jwt_required, get_jwt, get_jwt_identity

from payleave_api.common.http import fail


def current_actor() -> str | None:
    """JWT identity of the caller, used for the approval trail."""
    uid = get_jwt_identity()
    return str(uid) if uid is not None else None


def requires_roles(*codes: str):
    """
    Require that the current user has AT LEAST ONE of the given role codes.
    Roles come from the 'roles' claim minted by the auth service.
    'admin' role always passes.
    """
    def outer(fn):
        @wraps(fn)
        @jwt_required()
        def inner(*args, **kwargs):
            claims = get_jwt() or {}
            roles = set(claims.get("roles") or [])
            if "admin" in roles:
                return fn(*args, **kwargs)

            if get_jwt_identity() is None:
                return fail("Unauthorized", status=401)

            if not any(r in roles for r in codes):
                return fail("Forbidden", status=403)

            return fn(*args, **kwargs)
        return inner
    return outer
