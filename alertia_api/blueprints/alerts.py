# alertia_api/blueprints/alerts.py
from flask import Blueprint
from flask_jwt_extended import jwt_required

from alertia_api.common.auth import current_actor, requires_roles
from alertia_api.common.errors import NotFound
from alertia_api.common.http import ok, fail, body
from alertia_api.common.paging import filter_args, page_limit, paginate
from alertia_api.storage import get_adapter
from alertia_api.services import alerts_service

bp = Blueprint("alerts", __name__, url_prefix="/api/v1/alertas")


@bp.get("")
@jwt_required()
def list_alertas():
    rows = alerts_service.get_alertas(filter_args("obligacion_id", "estado", "tipo", "fecha"))
    page, size = page_limit()
    items, total = paginate(rows, page, size)
    return ok({"items": items}, page=page, size=size, total=total)


@bp.post("")
@requires_roles("cn")
def save_alerta():
    data = body()
    if not data.get("obligacion_id") or not data.get("tipo"):
        return fail("obligacion_id y tipo son requeridos", 400, code="MISSING_FIELDS")
    return ok(get_adapter().save_alerta(data), 201)


@bp.post("/calcular")
@requires_roles("cn")
def calcular():
    creadas = alerts_service.calcular_alertas_del_dia(current_actor())
    return ok({"items": creadas, "cantidad": len(creadas)})


@bp.get("/pendientes")
@jwt_required()
def pendientes():
    return ok({"items": alerts_service.get_pendientes()})


@bp.get("/stats")
@jwt_required()
def stats():
    return ok(alerts_service.estadisticas())


@bp.patch("/<aid>")
@requires_roles("cn")
def update_alerta(aid):
    data = body()
    estado = data.pop("estado", None)
    if not estado:
        return fail("estado es requerido", 400, code="MISSING_STATUS")
    row = get_adapter().update_alerta_estado(aid, estado, data)
    if row is None:
        raise NotFound("Alerta", aid)
    return ok(row)
