# alertia_api/services/config_service.py
from __future__ import annotations

import logging
import re

from email_validator import EmailNotValidError, validate_email
from flask import current_app

from alertia_api.common.dates import utcnow_iso
from alertia_api.common.errors import APIError
from alertia_api.storage import get_adapter
from alertia_api.services import audit_service

log = logging.getLogger(__name__)

DEFAULTS = {
    "remitente": "alertia-noreply@alertia.com",
    "nombre_remitente": "AlertIA - Centro de Alertas",
    "cc_global": [],
    "envios_automaticos": False,
    "hora_envio": "09:00",
    "enviar_fines_semana": False,
    "email_subject": "",
    "email_body": "",
    "dominio_correo": "empresa.com",
}

_HHMM = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)$")


def remitentes_autorizados() -> list[str]:
    raw = current_app.config.get("ALERTIA_AUTHORIZED_SENDERS") or []
    if isinstance(raw, str):
        raw = [x.strip() for x in raw.split(",") if x.strip()]
    return [x.lower() for x in raw]


def get_configuracion() -> dict:
    stored = get_adapter().get_configuracion() or {}
    cfg = dict(DEFAULTS)
    cfg.update({k: v for k, v in stored.items() if v is not None})
    return cfg


def _check_email(addr: str, field: str) -> str:
    try:
        return validate_email(addr, check_deliverability=False).normalized
    except EmailNotValidError as e:
        raise APIError("INVALID_EMAIL", f"Correo inválido en {field}: {addr}", 400, payload={"reason": str(e)})


def normalizar_cc(value) -> list[str]:
    """Accepts a list or a comma separated string."""
    if value in (None, ""):
        return []
    if isinstance(value, str):
        value = value.split(",")
    return [_check_email(x.strip(), "cc_global") for x in value if x and str(x).strip()]


def validar(data: dict) -> dict:
    clean = dict(data)
    if "remitente" in clean and clean["remitente"]:
        rem = clean["remitente"].strip().lower()
        permitidos = remitentes_autorizados()
        if rem not in permitidos:
            raise APIError("SENDER_NOT_AUTHORIZED", f"El remitente {rem} no está autorizado",
                           400, payload={"permitidos": permitidos})
        clean["remitente"] = rem
    if "cc_global" in clean:
        clean["cc_global"] = normalizar_cc(clean["cc_global"])
    if "hora_envio" in clean and clean["hora_envio"]:
        if not _HHMM.match(str(clean["hora_envio"])):
            raise APIError("INVALID_HOUR", "hora_envio debe tener formato HH:MM", 400)
    for flag in ("envios_automaticos", "enviar_fines_semana"):
        if flag in clean:
            clean[flag] = _as_bool(clean[flag])
    return clean


def save_configuracion(data: dict, actor: dict | None = None) -> dict:
    clean = validar(data)
    current = get_configuracion()
    cambios = sorted(clean)
    merged = {**current, **clean, "updated_at": utcnow_iso()}
    saved = get_adapter().save_configuracion(merged)
    audit_service.registrar("Modificó configuración", {"cambios": cambios}, actor)
    return {**DEFAULTS, **saved}


def set_valor(key: str, value) -> dict:
    """Internal write (no audit), used for bookkeeping values like total_filas_excel."""
    merged = {**get_configuracion(), key: value}
    return get_adapter().save_configuracion(merged)


def _as_bool(v) -> bool:
    if isinstance(v, bool):
        return v
    return str(v).strip().lower() in ("1", "true", "yes", "si", "sí", "on")
