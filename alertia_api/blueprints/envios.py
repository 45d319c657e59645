# alertia_api/blueprints/envios.py
from flask import Blueprint, current_app
from flask_jwt_extended import jwt_required

from alertia_api.common.auth import current_actor, requires_roles
from alertia_api.common.http import ok, fail, body
from alertia_api.common.paging import filter_args, page_limit, paginate
from alertia_api.services import envios_service
from alertia_api.services.scheduled_sender import run_scheduled_send

bp = Blueprint("envios", __name__, url_prefix="/api/v1/envios")


@bp.get("")
@jwt_required()
def list_envios():
    rows = envios_service.get_all(filter_args("usuario", "tipo", "fecha_desde", "fecha_hasta"))
    page, size = page_limit()
    items, total = paginate(rows, page, size)
    return ok({"items": items}, page=page, size=size, total=total)


@bp.post("")
@requires_roles("cn")
def create_envio():
    data = body()
    ids = data.get("alertas") or data.get("alerta_ids") or []
    if not isinstance(ids, list):
        return fail("alertas debe ser una lista", 400, code="INVALID_ALERTS")
    return ok(envios_service.create_envio(ids, current_actor(), data.get("destinatarios")), 201)


@bp.post("/registro")
@requires_roles("cn")
def registrar():
    return ok(envios_service.registrar_envio(body(), current_actor()), 201)


@bp.post("/automatico")
@requires_roles("admin")
def automatico():
    force = bool(body().get("force"))
    try:
        return ok(run_scheduled_send(force=force))
    except Exception as e:
        current_app.logger.exception("automatic send failed")
        return fail("Error al ejecutar envío automático", 500, code="SCHEDULED_SEND_FAILED", detail=str(e))


@bp.get("/hoy")
@jwt_required()
def hoy():
    return ok({"items": envios_service.del_dia()})


@bp.get("/stats")
@jwt_required()
def stats():
    return ok(envios_service.estadisticas())


@bp.get("/<eid>")
@jwt_required()
def get_envio(eid):
    return ok(envios_service.get_by_id(eid))
