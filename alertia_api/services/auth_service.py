# alertia_api/services/auth_service.py
from __future__ import annotations

from datetime import timedelta

from flask_jwt_extended import create_access_token, create_refresh_token
from sqlalchemy import func, or_

from alertia_api.common.dates import utcnow
from alertia_api.common.errors import APIError, NotFound
from alertia_api.extensions import db, jwt
from alertia_api.models.user import ROLES, TokenBlocklist, User


def claims_for(u: User) -> dict:
    return {"roles": [u.role], "username": u.username, "email": u.email, "name": u.full_name, "area": u.area}


def authenticate(login: str, password: str) -> User:
    login = (login or "").strip().lower()
    u = User.query.filter(or_(func.lower(User.username) == login, func.lower(User.email) == login)).first()
    if not u or not u.check_password(password or ""):
        raise APIError("INVALID_CREDENTIALS", "Usuario o contraseña incorrectos", 401)
    if not u.active:
        raise APIError("INACTIVE_USER", "Usuario inactivo", 403)
    return u


def login(login: str, password: str) -> dict:
    u = authenticate(login, password)
    u.last_login_at = utcnow()
    db.session.commit()
    access = create_access_token(identity=str(u.id), additional_claims=claims_for(u), expires_delta=timedelta(days=1))
    refresh = create_refresh_token(identity=str(u.id), additional_claims={"roles": [u.role]})
    return {"access": access, "refresh": refresh, "user": u.to_dict()}


def refresh(uid) -> str:
    u = db.session.get(User, int(uid)) if uid else None
    if not u or not u.active:
        raise APIError("INVALID_TOKEN", "Usuario no válido", 401)
    return create_access_token(identity=str(u.id), additional_claims=claims_for(u))


def me(uid) -> dict:
    u = db.session.get(User, int(uid)) if uid else None
    if not u:
        raise NotFound("Usuario", uid)
    return u.to_dict()


def revoke(jti: str) -> None:
    if not TokenBlocklist.query.filter_by(jti=jti).first():
        db.session.add(TokenBlocklist(jti=jti))
        db.session.commit()


@jwt.token_in_blocklist_loader
def _is_revoked(jwt_header, jwt_payload) -> bool:
    return TokenBlocklist.query.filter_by(jti=jwt_payload.get("jti")).first() is not None


def create_user(username, email, password, full_name, role="area", area=None) -> User:
    if role not in ROLES:
        raise APIError("INVALID_ROLE", f"Rol inválido: {role}", 400)
    u = User(username=username.strip().lower(), email=email.strip().lower(),
             full_name=full_name, role=role, area=area)
    u.set_password(password)
    db.session.add(u)
    db.session.commit()
    return u
