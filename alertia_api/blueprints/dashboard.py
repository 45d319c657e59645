# alertia_api/blueprints/dashboard.py
from flask import Blueprint
from flask_jwt_extended import jwt_required

from alertia_api.common.http import ok
from alertia_api.services import alerts_service, audit_service, envios_service, obligations_service

bp = Blueprint("dashboard", __name__, url_prefix="/api/v1/dashboard")


@bp.get("")
@jwt_required()
def summary():
    obligaciones = obligations_service.get_all()
    proximas = sorted(
        (o for o in obligaciones if o.get("dias_restantes") is not None and o["dias_restantes"] >= 0
         and o.get("estatus") in (None, "", "activa")),
        key=lambda o: o["dias_restantes"],
    )[:10]
    return ok({
        "obligaciones": obligations_service.estadisticas(),
        "alertas": alerts_service.estadisticas(),
        "envios": envios_service.estadisticas(),
        "proximas": proximas,
        "actividad": audit_service.recientes(10),
    })
