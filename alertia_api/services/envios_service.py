# alertia_api/services/envios_service.py
from __future__ import annotations

import logging

from alertia_api.common.auth import current_actor
from alertia_api.common.dates import local_date, today as _today, utcnow_iso
from alertia_api.common.errors import APIError, NotFound
from alertia_api.storage import get_adapter
from alertia_api.services import alerts_service, audit_service, config_service, notifications_service

log = logging.getLogger(__name__)


def estado_envio(enviados: int, fallidos: int) -> str:
    if fallidos == 0:
        return "completado"
    return "parcial" if enviados else "fallido"


def registrar_envio(data: dict, actor: dict | None = None) -> dict:
    """Store an Envío record as given (no email is sent)."""
    actor = actor or current_actor()
    config = config_service.get_configuracion()
    record = {
        "fecha": utcnow_iso(),
        "usuario": actor.get("nombre") or actor.get("usuario"),
        "usuario_email": actor.get("usuario_email"),
        "remitente": config.get("remitente"),
        "nombre_remitente": config.get("nombre_remitente"),
        "cc_global": list(config.get("cc_global") or []),
        "estado": "completado",
        **data,
    }
    return get_adapter().create_envio(record)


def create_envio(alerta_ids: list[str], actor: dict | None = None, destinatarios: dict | None = None) -> dict:
    """
    Manual dispatch: one email per selected alert. Failures are counted and
    reported in the Envío; alerts that went out are marked `enviada`.
    `destinatarios` optionally maps alert id -> recipient address.
    """
    if not alerta_ids:
        raise APIError("NO_ALERTS", "Seleccione al menos una alerta para enviar", 400)
    actor = actor or current_actor()
    adapter = get_adapter()
    config = config_service.get_configuracion()
    destinatarios = destinatarios or {}

    por_id = {a["id"]: a for a in adapter.get_alertas({})}
    faltantes = [i for i in alerta_ids if i not in por_id]
    if faltantes:
        raise NotFound("Alerta", ", ".join(faltantes))

    enviadas, errores = [], []
    for alerta_id in alerta_ids:
        alerta = por_id[alerta_id]
        try:
            obligacion = adapter.get_obligacion(alerta["obligacion_id"])
            if not obligacion:
                raise NotFound("Obligación", alerta["obligacion_id"])
            res = notifications_service.enviar_alerta(
                obligacion, alerta["tipo"], destinatarios.get(alerta_id), config
            )
            alerts_service.marcar_enviada(alerta_id, res.get("destinatario"))
            enviadas.append(alerta_id)
        except APIError as e:
            log.error("envío de alerta %s falló: %s", alerta_id, e.message)
            errores.append({"alerta_id": alerta_id, "error": e.message})

    envio = registrar_envio({
        "tipo": "manual",
        "correos_enviados": len(enviadas),
        "fallidos": len(errores),
        "alertas": enviadas,
        "errores": errores,
        "estado": estado_envio(len(enviadas), len(errores)),
        "remitente": config.get("remitente"),
        "nombre_remitente": config.get("nombre_remitente"),
        "cc_global": list(config.get("cc_global") or []),
    }, actor)

    audit_service.registrar("Ejecutó envío manual", {
        "envio_id": envio["id"],
        "correos_enviados": len(enviadas),
        "alertas": enviadas,
    }, actor)
    return envio


def get_all(filters: dict | None = None) -> list[dict]:
    return get_adapter().get_envios(filters or {})


def get_by_id(envio_id: str) -> dict:
    e = get_adapter().get_envio(envio_id)
    if not e:
        raise NotFound("Envío", envio_id)
    return e


def del_dia(today=None) -> list[dict]:
    hoy = today or _today()
    return [e for e in get_adapter().get_envios({}) if local_date(e.get("fecha")) == hoy]


def estadisticas(today=None) -> dict:
    envios = get_adapter().get_envios({})
    hoy = del_dia(today)
    return {
        "total_envios": len(envios),
        "envios_hoy": len(hoy),
        "total_correos": sum(e.get("correos_enviados") or 0 for e in envios),
        "correos_hoy": sum(e.get("correos_enviados") or 0 for e in hoy),
        "exitosos": sum(1 for e in envios if e.get("estado") == "completado"),
        "fallidos": sum(1 for e in envios if e.get("estado") == "fallido"),
    }
