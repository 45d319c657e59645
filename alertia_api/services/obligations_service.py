# alertia_api/services/obligations_service.py
from __future__ import annotations

import logging

from alertia_api.common.dates import days_until, today as _today, utcnow_iso
from alertia_api.common.errors import APIError, NotFound
from alertia_api.common.ids import new_id
from alertia_api.storage import get_adapter
from alertia_api.services import audit_service, bitacora_service, files_service, notifications_service
from alertia_api.services.alerts_service import alertas_por_periodicidad, criticidad
from alertia_api.services.calendar_service import RULE_KEYS, thresholds

log = logging.getLogger(__name__)

ESTATUS_ACTIVA = "activa"
ESTATUS_PAUSADA = "pausada"
ESTATUS_ATENDIDA = "atendida"

FILTER_KEYS = ("area", "periodicidad", "estatus", "estado", "sub_estatus", "criticidad", "id", "search")
# added by enrich(); never stored
COMPUTED_KEYS = ("dias_restantes", "criticidad", "requiere_envio", "en_ventana")


def enrich(obligacion: dict, today=None) -> dict:
    """Adds dias_restantes, criticidad, requiere_envio and en_ventana."""
    if obligacion.get("dias_para_vencer_excel") is not None:
        dias = obligacion["dias_para_vencer_excel"]
    else:
        dias = days_until(obligacion.get("fecha_limite"), today)
    th = thresholds(obligacion)
    return {
        **obligacion,
        "dias_restantes": dias,
        "criticidad": criticidad(dias, th),
        "requiere_envio": dias is not None and dias <= th["critica"],
        "en_ventana": dias is not None and th["critica"] < dias <= th["alerta1"],
    }


def get_all(filters: dict | None = None, today=None) -> list[dict]:
    return [enrich(o, today) for o in get_adapter().get_obligaciones(filters or {})]


def get_by_id(obligacion_id: str, today=None) -> dict:
    o = get_adapter().get_obligacion(obligacion_id)
    if not o:
        raise NotFound("Obligación", obligacion_id)
    return enrich(o, today)


def filter(filters: dict, today=None) -> list[dict]:
    rows = get_all(today=today)
    f = filters or {}

    if f.get("area"):
        rows = [o for o in rows if o.get("area") == f["area"]]
    if f.get("periodicidad"):
        rows = [o for o in rows if o.get("periodicidad") == f["periodicidad"]]
    if f.get("estatus"):
        rows = [o for o in rows if o.get("estatus") == f["estatus"]]
    elif f.get("estado"):
        rows = [o for o in rows if (o.get("estado") or o.get("estatus")) == f["estado"]]
    if f.get("sub_estatus"):
        want = str(f["sub_estatus"]).lower()
        rows = [o for o in rows if str(o.get("sub_estatus")).lower() == want]
    if f.get("criticidad"):
        rows = [o for o in rows if o["criticidad"]["nivel"] == f["criticidad"]]
    if f.get("id"):
        needle = str(f["id"]).lower()
        rows = [o for o in rows if needle in str(o.get("id")).lower()]
    if f.get("search"):
        s = str(f["search"]).lower()
        rows = [
            o for o in rows
            if s in str(o.get("id")).lower()
            or s in str(o.get("regulador") or "").lower()
            or s in str(o.get("descripcion") or o.get("nombre") or "").lower()
            or s in str(o.get("area") or "").lower()
        ]
    return rows


# ---------- CRUD ----------

def _sin_calculados(data: dict) -> dict:
    return {k: v for k, v in data.items() if k not in COMPUTED_KEYS}


def create(data: dict) -> dict:
    if not isinstance(data, dict):
        raise APIError("INVALID_BODY", "Se esperaba un objeto JSON", 400)
    now = utcnow_iso()
    payload = {
        **_sin_calculados(data),
        "id": data.get("id") or new_id("OBL"),
        "estatus": data.get("estatus") or ESTATUS_ACTIVA,
        "created_at": data.get("created_at") or now,
        "updated_at": now,
    }
    adapter = get_adapter()
    if data.get("id") and adapter.get_obligacion(data["id"]):
        raise APIError("DUPLICATE_ID", f"La obligación {data['id']} ya existe", 409)
    return adapter.save_obligacion(payload)


def update(obligacion_id: str, data: dict) -> dict:
    adapter = get_adapter()
    if not adapter.get_obligacion(obligacion_id):
        raise NotFound("Obligación", obligacion_id)
    return adapter.save_obligacion({**_sin_calculados(data), "id": obligacion_id})


def delete(obligacion_id: str) -> None:
    if not get_adapter().delete_obligacion(obligacion_id):
        raise NotFound("Obligación", obligacion_id)
    log.info("obligación %s eliminada", obligacion_id)


def update_estado(obligacion_id: str, estatus: str, extra: dict | None = None) -> dict:
    row = get_adapter().update_obligacion_estado(obligacion_id, estatus, extra)
    if row is None:
        raise NotFound("Obligación", obligacion_id)
    return row


# ---------- status transitions ----------

def _transicion(obligacion_id, nuevo, tipo, titulo, descripcion, accion, contexto,
                extra=None, datos_nuevos=None, actor=None) -> dict:
    adapter = get_adapter()
    obl = adapter.get_obligacion(obligacion_id)
    if not obl:
        raise NotFound("Obligación", obligacion_id)

    anterior = obl.get("estatus") or ESTATUS_ACTIVA
    obl.update(extra or {})
    obl["estatus"] = nuevo
    bitacora_service.adjuntar_evento(
        obl, tipo, titulo, descripcion,
        {"estatus": anterior}, {"estatus": nuevo, **(datos_nuevos or {})},
        actor=actor,
    )
    saved = adapter.save_obligacion(obl)
    audit_service.registrar(accion, {"obligacion_id": obligacion_id, **contexto}, actor)
    return saved


def pausar(obligacion_id: str, motivo: str = "", actor=None) -> dict:
    desc = f"Seguimiento pausado. Motivo: {motivo}" if motivo else "Seguimiento pausado"
    return _transicion(
        obligacion_id, ESTATUS_PAUSADA, "pausar", "Pausar seguimiento", desc,
        "Pausó obligación", {"motivo": motivo},
        extra={"motivo_pausa": motivo or None, "fecha_pausa": utcnow_iso()},
        datos_nuevos={"motivo": motivo}, actor=actor,
    )


def reanudar(obligacion_id: str, actor=None) -> dict:
    return _transicion(
        obligacion_id, ESTATUS_ACTIVA, "reanudar", "Reanudar seguimiento",
        "El seguimiento ha sido reanudado", "Reanudó obligación", {},
        extra={"motivo_pausa": None, "fecha_pausa": None}, actor=actor,
    )


def marcar_atendida(obligacion_id: str, actor=None) -> dict:
    return _transicion(
        obligacion_id, ESTATUS_ATENDIDA, "marcar_atendida", "Marcar como atendida",
        "La obligación ha sido marcada como atendida. El seguimiento se ha detenido.",
        "Marcó obligación como atendida", {},
        extra={"fecha_atendida": utcnow_iso()}, actor=actor,
    )


def agregar_comentario(obligacion_id: str, comentario: str, actor=None) -> dict:
    if not (comentario or "").strip():
        raise APIError("EMPTY_COMMENT", "El comentario no puede estar vacío", 400)
    evento = bitacora_service.registrar_evento(
        obligacion_id, "comentario", "Comentario", comentario.strip(), actor=actor
    )
    audit_service.registrar("Agregó comentario", {"obligacion_id": obligacion_id}, actor)
    return evento


def actualizar_reglas(obligacion_id: str, reglas: dict, actor=None) -> dict:
    """Change alert rule dates / thresholds; the calendar cache is invalidated by its hash."""
    adapter = get_adapter()
    obl = adapter.get_obligacion(obligacion_id)
    if not obl:
        raise NotFound("Obligación", obligacion_id)
    permitidas = set(RULE_KEYS) | {"alerta1", "alerta2", "critica"}
    desconocidas = set(reglas) - permitidas
    if desconocidas:
        raise APIError("INVALID_RULES", f"Reglas desconocidas: {', '.join(sorted(desconocidas))}", 400)

    anteriores = dict(obl.get("reglas_alertamiento") or {})
    nuevas = {**anteriores, **reglas}
    obl["reglas_alertamiento"] = nuevas
    bitacora_service.adjuntar_evento(
        obl, "cambio_regla", "Cambio de regla de alertamiento",
        "Reglas actualizadas: " + ", ".join(sorted(reglas)),
        {k: anteriores.get(k) for k in reglas}, {k: nuevas.get(k) for k in reglas}, actor=actor,
    )
    return adapter.save_obligacion(obl)


# ---------- evidence workflow ----------

ESTATUS_RECORDATORIO = "Recordatorio"
ESTATUS_SOLICITUD = "Solicitud"
SUB_PENDIENTE_CN = "Pendiente (cn)"
SUB_PENDIENTE_JURIDICO = "Pendiente (juridico)"
SUB_SIN_RESPUESTA = "Sin respuesta"


def _cambio_estatus(obl: dict, estatus: str, sub_estatus: str, descripcion: str, accion: str,
                    contexto: dict | None = None, actor=None) -> dict:
    anterior = {"estatus": obl.get("estatus"), "sub_estatus": obl.get("sub_estatus")}
    obl["estatus"] = estatus
    obl["sub_estatus"] = sub_estatus
    bitacora_service.adjuntar_evento(
        obl, "cambio_estatus", "Cambio de estatus", descripcion,
        anterior, {"estatus": estatus, "sub_estatus": sub_estatus}, actor=actor,
    )
    saved = get_adapter().save_obligacion(obl)
    audit_service.registrar(accion, {"obligacion_id": obl["id"], **(contexto or {})}, actor)
    return saved


def solicitar_evidencia(obligacion_id: str, actor=None, today=None) -> dict:
    """Reminds the area to upload evidence; the reminder must go out for the status to change."""
    obl = get_adapter().get_obligacion(obligacion_id)
    if not obl:
        raise NotFound("Obligación", obligacion_id)
    notifications_service.recordatorio_evidencia(obl, today or _today())
    return _cambio_estatus(
        obl, ESTATUS_RECORDATORIO, SUB_PENDIENTE_CN,
        f"Estatus cambiado a \"{ESTATUS_RECORDATORIO}\" y subestatus a \"{SUB_PENDIENTE_CN}\" al solicitar evidencia",
        "Solicitó evidencia", actor=actor,
    )


def enviar_a_verificacion(obligacion_id: str, actor=None) -> dict:
    obl = get_adapter().get_obligacion(obligacion_id)
    if not obl:
        raise NotFound("Obligación", obligacion_id)
    pendientes = files_service.pendientes_revision(obl)
    if not pendientes:
        raise APIError("NO_PENDING_FILES", "No hay archivos pendientes de revisión", 400)
    notifications_service.notificar_verificacion_evidencia(obl, pendientes)
    audit_service.registrar("Envió evidencia a verificación",
                            {"obligacion_id": obligacion_id, "archivos": [a["id"] for a in pendientes]}, actor)
    return {"obligacion_id": obligacion_id, "archivos": pendientes}


def _revisar_pendientes(obl: dict, estado: str) -> list[str]:
    ids = []
    now = utcnow_iso()
    for a in files_service.pendientes_revision(obl):
        a["estado"] = estado
        a["fecha_revision"] = now
        ids.append(a["id"])
    return ids


def enviar_a_juridico(obligacion_id: str, actor=None) -> dict:
    """Approves the pending evidence and hands the obligation to the legal team."""
    obl = get_adapter().get_obligacion(obligacion_id)
    if not obl:
        raise NotFound("Obligación", obligacion_id)
    aprobados = _revisar_pendientes(obl, files_service.ESTADO_APROBADO)
    saved = _cambio_estatus(
        obl, ESTATUS_SOLICITUD, SUB_PENDIENTE_JURIDICO,
        f"Evidencia aprobada ({len(aprobados)} archivo(s)). Enviada a jurídico para redacción de escrito",
        "Envió evidencia a jurídico", {"archivos": aprobados}, actor=actor,
    )
    notifications_service.notificar_juridico(saved)
    return saved


def rechazar_evidencia(obligacion_id: str, actor=None) -> dict:
    obl = get_adapter().get_obligacion(obligacion_id)
    if not obl:
        raise NotFound("Obligación", obligacion_id)
    rechazados = _revisar_pendientes(obl, files_service.ESTADO_RECHAZADO)
    saved = _cambio_estatus(
        obl, ESTATUS_RECORDATORIO, SUB_SIN_RESPUESTA,
        f"Evidencia rechazada ({len(rechazados)} archivo(s))",
        "Rechazó evidencia", {"archivos": rechazados}, actor=actor,
    )
    notifications_service.notificar_rechazo_evidencia(saved)
    return saved


# ---------- views ----------

def por_alerta(numero: int, today=None) -> list[dict]:
    if numero not in (1, 2, 3, 4):
        raise APIError("INVALID_ALERT", "El número de alerta debe ser 1, 2, 3 o 4", 400)
    out = []
    for o in get_all(today=today):
        flags = alertas_por_periodicidad(o, today or _today())
        if flags and flags.get(f"alerta{numero}"):
            out.append(o)
    return out


def estadisticas(today=None) -> dict:
    rows = get_all(today=today)
    return {
        "total": len(rows),
        "activas": sum(1 for o in rows if o.get("estatus") == ESTATUS_ACTIVA),
        "pausadas": sum(1 for o in rows if o.get("estatus") == ESTATUS_PAUSADA),
        "atendidas": sum(1 for o in rows if o.get("estatus") == ESTATUS_ATENDIDA),
        "criticas": sum(1 for o in rows if o["criticidad"]["nivel"] == "critica"),
        "en_ventana": sum(1 for o in rows if o["criticidad"]["nivel"] == "ventana"),
    }
