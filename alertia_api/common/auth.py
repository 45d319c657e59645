# alertia_api/common/auth.py
from __future__ import annotations

from functools import wraps

from flask import request, has_request_context
from flask_jwt_extended import jwt_required, get_jwt, get_jwt_identity, verify_jwt_in_request

from alertia_api.common.http import fail
from alertia_api.models.user import User

SYSTEM_ACTOR = {"usuario": "Sistema", "usuario_email": None, "nombre": "Sistema", "area": None, "rol": "sistema", "ip": None}


def _roles_from_db(uid) -> set[str]:
    try:
        user = User.query.get(int(uid))
    except (TypeError, ValueError):
        return set()
    return {user.role} if user and user.active else set()


# ---------- decorators ----------

def requires_roles(*codes: str):
    """
    Require that the current user has AT LEAST ONE of the given role codes.
    - Uses roles in JWT if present; falls back to DB.
    - 'admin' role always passes.
    """
    def outer(fn):
        @wraps(fn)
        @jwt_required()
        def inner(*args, **kwargs):
            claims = get_jwt() or {}
            roles = set(claims.get("roles") or [])

            uid = get_jwt_identity()
            if uid is None:
                return fail("Unauthorized", status=401)
            if not roles:
                roles = _roles_from_db(uid)

            if "admin" in roles:
                return fn(*args, **kwargs)
            if codes and not any(r in roles for r in codes):
                return fail("Forbidden", status=403)
            return fn(*args, **kwargs)
        return inner
    return outer


def current_actor() -> dict:
    """
    Who is acting, as recorded in audit and bitácora entries.
    Falls back to the 'Sistema' actor outside an authenticated request (CLI, scheduler).
    """
    if not has_request_context():
        return dict(SYSTEM_ACTOR)
    actor = dict(SYSTEM_ACTOR)
    actor["ip"] = request.headers.get("X-Forwarded-For", request.remote_addr)
    try:
        verify_jwt_in_request(optional=True)
        claims = get_jwt() or {}
    except Exception:
        claims = {}
    if claims.get("sub"):
        actor.update({
            "usuario": claims.get("username") or claims.get("sub"),
            "usuario_email": claims.get("email"),
            "nombre": claims.get("name") or claims.get("username"),
            "area": claims.get("area"),
            "rol": (claims.get("roles") or [None])[0],
        })
    return actor
