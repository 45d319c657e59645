# alertia_api/blueprints/audit.py
from flask import Blueprint, request
from flask_jwt_extended import jwt_required

from alertia_api.common.auth import requires_roles
from alertia_api.common.http import ok, fail, body
from alertia_api.common.paging import filter_args, page_limit, paginate, text_q
from alertia_api.storage import get_adapter
from alertia_api.services import audit_service

bp = Blueprint("audit", __name__, url_prefix="/api/v1/auditoria")


@bp.get("")
@requires_roles("cn")
def list_eventos():
    q = text_q()
    if q:
        rows = audit_service.buscar(q)
    else:
        rows = audit_service.get_eventos(filter_args("usuario", "accion", "ip", "fecha_desde", "fecha_hasta"))
    page, size = page_limit()
    items, total = paginate(rows, page, size)
    return ok({"items": items}, page=page, size=size, total=total)


@bp.get("/recientes")
@jwt_required()
def recientes():
    try:
        limit = max(1, min(int(request.args.get("limit", 10)), 100))
    except ValueError:
        limit = 10
    return ok({"items": audit_service.recientes(limit)})


@bp.post("")
@jwt_required()
def save_evento():
    # records arriving from a client in api storage mode are already complete
    data = body()
    if not data.get("accion"):
        return fail("accion es requerida", 400, code="MISSING_ACTION")
    return ok(get_adapter().save_auditoria(data), 201)
