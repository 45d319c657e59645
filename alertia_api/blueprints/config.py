# alertia_api/blueprints/config.py
from flask import Blueprint
from flask_jwt_extended import jwt_required

from alertia_api.common.auth import current_actor, requires_roles
from alertia_api.common.http import ok, body
from alertia_api.storage import get_adapter
from alertia_api.services import config_service

bp = Blueprint("config", __name__, url_prefix="/api/v1/configuracion")


@bp.get("")
@jwt_required()
def get_config():
    return ok(config_service.get_configuracion())


@bp.put("")
@requires_roles("admin")
def save_config():
    return ok(config_service.save_configuracion(body(), current_actor()))


@bp.put("/datos")
@requires_roles("admin")
def save_raw():
    """Stores the document as sent. Used by clients that already validated and audited the change."""
    return ok(get_adapter().save_configuracion(body()))


@bp.get("/remitentes")
@jwt_required()
def remitentes():
    return ok({"items": config_service.remitentes_autorizados()})
