# alertia_api/blueprints/auth.py
from flask import Blueprint
from flask_jwt_extended import jwt_required, get_jwt, get_jwt_identity

from alertia_api.common.http import ok, fail, body
from alertia_api.services import auth_service

bp = Blueprint("auth", __name__, url_prefix="/api/v1/auth")


@bp.post("/login")
def login():
    data = body()
    usuario = (data.get("usuario") or data.get("username") or data.get("email") or "").strip()
    password = data.get("password") or ""
    if not usuario or not password:
        return fail("Usuario y contraseña son requeridos", 400, code="MISSING_CREDENTIALS")
    return ok(auth_service.login(usuario, password))


@bp.post("/refresh")
@jwt_required(refresh=True)
def refresh():
    return ok({"access": auth_service.refresh(get_jwt_identity())})


@bp.get("/me")
@jwt_required()
def me():
    return ok(auth_service.me(get_jwt_identity()))


@bp.post("/logout")
@jwt_required(verify_type=False)
def logout():
    auth_service.revoke(get_jwt()["jti"])
    return ok({"revoked": True})
