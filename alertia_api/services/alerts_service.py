# alertia_api/services/alerts_service.py
from __future__ import annotations

import logging
from datetime import date

from alertia_api.common.dates import days_until, local_date, parse_fecha, today as _today, utcnow_iso
from alertia_api.common.errors import NotFound
from alertia_api.common.ids import new_id
from alertia_api.storage import get_adapter
from alertia_api.services import audit_service
from alertia_api.services.calendar_service import thresholds

log = logging.getLogger(__name__)

TIPO_1RA = "1ra Alerta"
TIPO_2DA = "2da Alerta"
TIPO_CRITICA = "Crítica"
TIPOS = (TIPO_1RA, TIPO_2DA, TIPO_CRITICA)


def tipo_alerta(dias: int | None, reglas: dict | None = None) -> str | None:
    """Alert tier for the days left, or None outside every window (or overdue)."""
    if dias is None or dias <= 0:
        return None
    th = {**thresholds({}), **(reglas or {})}
    if dias <= th["critica"]:
        return TIPO_CRITICA
    if dias <= th["alerta2"]:
        return TIPO_2DA
    if dias <= th["alerta1"]:
        return TIPO_1RA
    return None


def criticidad(dias: int | None, reglas: dict | None = None) -> dict:
    th = {**thresholds({}), **(reglas or {})}
    if dias is None:
        return {"nivel": "normal", "label": "Sin fecha", "color": "gray"}
    if dias < 0:
        return {"nivel": "vencida", "label": "Vencida", "color": "red"}
    if dias <= th["critica"]:
        return {"nivel": "critica", "label": "Crítica", "color": "red"}
    if dias <= th["alerta2"]:
        return {"nivel": "ventana", "label": "En ventana", "color": "orange"}
    if dias <= th["alerta1"]:
        return {"nivel": "advertencia", "label": "Advertencia", "color": "yellow"}
    return {"nivel": "normal", "label": "Normal", "color": "green"}


def fecha_consejo(ref: date | None = None) -> date:
    """Board meeting date used by yearly one-shot obligations: Sept 15 of the current year."""
    return date((ref or _today()).year, 9, 15)


def alertas_por_periodicidad(obligacion: dict, today: date | None = None) -> dict | None:
    """
    Which of the four area/CN alerts are open for an obligation, driven by its
    periodicity. Returns {"alerta1".."alerta4": bool} or None when nothing applies.
    """
    ref = today or _today()
    periodicidad = str(obligacion.get("periodicidad") or "").strip().lower()
    if not periodicidad or not obligacion.get("fecha_limite"):
        return None

    una_vez = "anual, una vez" in periodicidad
    limite = fecha_consejo(ref) if una_vez else parse_fecha(obligacion.get("fecha_limite"))
    dias = days_until(limite, ref)
    if dias is None or dias < 0:
        return None

    anual = ("anual" in periodicidad and "semestral" not in periodicidad and "trimestral" not in periodicidad) \
        or "año y medio" in periodicidad or "bianual" in periodicidad or "bi-anual" in periodicidad or una_vez
    corto = any(p in periodicidad for p in ("semestral", "trimestral", "bimestral", "bi-mestral"))
    mensual = "mensual" in periodicidad
    eventual = "eventual" in periodicidad

    if anual:
        limites = (90, 30, 20, 3 if una_vez else None)
    elif corto:
        limites = (30, 10, 7, 3)
    elif mensual:
        limites = (20, 7, 5, None)
    elif eventual:
        limites = (30, None, None, None)
    else:
        return None

    res = {f"alerta{i}": (lim is not None and dias <= lim) for i, lim in enumerate(limites, start=1)}
    return res if any(res.values()) else None


def _ya_enviada_hoy(alertas: list[dict], tipo: str | None, ref: date) -> bool:
    for a in alertas:
        if local_date(a.get("fecha_envio")) == ref and (tipo is None or a.get("tipo") == tipo):
            return True
    return False


def calcular_alertas_del_dia(actor: dict | None = None, today: date | None = None) -> list[dict]:
    """
    Compute today's alerts for active obligations and store them as pending.
    An obligation already alerted today with the same tier is skipped.
    """
    ref = today or _today()
    adapter = get_adapter()
    creadas = []
    for obl in adapter.get_obligaciones():
        if (obl.get("estatus") or "activa") != "activa":
            continue
        dias = days_until(obl.get("fecha_limite"), ref)
        tipo = tipo_alerta(dias, thresholds(obl))
        if not tipo:
            continue
        existentes = adapter.get_alertas({"obligacion_id": obl["id"]})
        if _ya_enviada_hoy(existentes, tipo, ref):
            continue
        # one pending alert per obligation/tier/day
        if any(a.get("estado") == "pendiente" and a.get("tipo") == tipo and a.get("fecha") == ref.isoformat()
               for a in existentes):
            continue
        creadas.append(adapter.save_alerta({
            "id": new_id("ALT"),
            "obligacion_id": obl["id"],
            "tipo": tipo,
            "fecha": ref.isoformat(),
            "fecha_calculo": utcnow_iso(),
            "estado": "pendiente",
            "dias_restantes": dias,
        }))

    audit_service.registrar("Calculó alertas del día", {"cantidad": len(creadas)}, actor)
    log.info("calculated %d alerts for %s", len(creadas), ref)
    return creadas


def get_alertas(filters: dict | None = None) -> list[dict]:
    return get_adapter().get_alertas(filters or {})


def get_pendientes() -> list[dict]:
    return get_adapter().get_alertas({"estado": "pendiente"})


def get_by_obligacion(obligacion_id: str) -> list[dict]:
    return get_adapter().get_alertas({"obligacion_id": obligacion_id})


def marcar_enviada(alerta_id: str, destinatario: str | None = None) -> dict:
    extra = {"fecha_envio": utcnow_iso()}
    if destinatario:
        extra["destinatario"] = destinatario
    row = get_adapter().update_alerta_estado(alerta_id, "enviada", extra)
    if row is None:
        raise NotFound("Alerta", alerta_id)
    return row


def estadisticas() -> dict:
    alertas = get_adapter().get_alertas({})
    return {
        "total": len(alertas),
        "pendientes": sum(1 for a in alertas if a.get("estado") == "pendiente"),
        "enviadas": sum(1 for a in alertas if a.get("estado") == "enviada"),
        "por_tipo": {t: sum(1 for a in alertas if a.get("tipo") == t) for t in TIPOS},
    }
