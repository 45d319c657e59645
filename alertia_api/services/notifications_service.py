# alertia_api/services/notifications_service.py
from __future__ import annotations

import logging
import re

from flask import current_app

from alertia_api.common.dates import dmy, today
from alertia_api.common.errors import APIError, NotFound
from alertia_api.storage import get_adapter
from alertia_api.services import config_service, email_template

log = logging.getLogger(__name__)


def email_area(area: str | None) -> str:
    """Generic mailbox for an area: 'Cumplimiento Normativo' -> cumplimiento.normativo@<area domain>."""
    dominio = current_app.config.get("ALERTIA_AREA_EMAIL_DOMAIN") or "alertia.com"
    slug = re.sub(r"\s+", ".", (area or "area").strip().lower())
    return f"{slug}@{dominio}"


def email_responsable(obligacion: dict, config: dict | None = None) -> str:
    """responsable_email, or nombre.apellido@<dominio_correo> built from the responsable name."""
    if obligacion.get("responsable_email"):
        return obligacion["responsable_email"]
    dominio = (config or {}).get("dominio_correo") or "empresa.com"
    slug = re.sub(r"\s+", ".", (obligacion.get("responsable") or "responsable").strip().lower())
    return f"{slug}@{dominio}"


def _link(path: str) -> str:
    base = (current_app.config.get("ALERTIA_PORTAL_URL") or "").rstrip("/")
    return f"{base}{path}" if base else path


def enviar_correo(to, subject, body, cc=None, remitente=None, nombre_remitente=None, html=None,
                  config: dict | None = None) -> dict:
    config = config or config_service.get_configuracion()
    payload = {
        "to": to if isinstance(to, list) else [to],
        "subject": subject,
        "body": body,
        "cc": list(cc or []),
        "from": remitente or config.get("remitente") or current_app.config.get("FROM_EMAIL"),
        "fromName": nombre_remitente or config.get("nombre_remitente") or current_app.config.get("FROM_NAME"),
    }
    if html:
        payload["html"] = html
    return get_adapter().send_email(payload)


def enviar_alerta(obligacion: dict, tipo: str, destinatario=None, config: dict | None = None) -> dict:
    """Alert email for one obligation with the configured (or per-tier default) template."""
    config = config or config_service.get_configuracion()
    destinatario = destinatario or email_responsable(obligacion, config)
    email = email_template.generate_email(tipo, obligacion, destinatario, config)
    result = enviar_correo(
        email["destinatario"], email["asunto"], email["cuerpo"], email["cc"],
        html=email_template.preview_html(email), config=config,
    )
    return {**result, "destinatario": email["destinatario"]}


def _notice(to, subject, body, cc=None):
    # notices are best effort; the action that triggered them already succeeded
    try:
        return enviar_correo(to, subject, body, cc)
    except APIError as e:
        log.warning("notice %r to %s not sent: %s", subject, to, e.message)
        return None


def recordatorio_evidencia(obligacion: dict, fecha_recordatorio) -> dict:
    """Reminder to the area mailbox to upload evidence. Raises on send failure."""
    area = obligacion.get("area") or "Área no especificada"
    body = (
        f"Estimado/a Responsable del Área {area},\n\n"
        "Este es un recordatorio para subir la evidencia correspondiente a la siguiente obligación:\n\n"
        f"ID: {obligacion.get('id')}\n"
        f"Descripción: {obligacion.get('descripcion') or obligacion.get('nombre')}\n"
        f"Regulador: {obligacion.get('regulador')}\n"
        f"Fecha límite: {dmy(obligacion.get('fecha_limite'))}\n"
        f"Fecha del recordatorio: {dmy(fecha_recordatorio)}\n\n"
        "Por favor, suba la evidencia en el siguiente enlace:\n"
        f"{_link('/evidencias')}\n\n"
        "Saludos,\nAlertIA"
    )
    return enviar_correo(email_area(area), f"[AlertIA] Recordatorio: Subir evidencia - {obligacion.get('id')}", body)


def recordatorio_simple(obligacion_id: str) -> dict:
    obligacion = get_adapter().get_obligacion(obligacion_id)
    if not obligacion:
        raise NotFound("Obligación", obligacion_id)
    return enviar_correo(
        email_area(obligacion.get("area") or "Área no especificada"),
        f"[AlertIA] Recordatorio - {obligacion_id}",
        "Tienes una obligación pendiente",
        nombre_remitente="AlertIA",
    )


def notificar_archivo_subido(obligacion: dict, archivo: dict, usuario: str | None, area: str | None):
    config = config_service.get_configuracion()
    body = (
        f"Se ha subido nueva evidencia para la obligación {obligacion.get('id')}.\n\n"
        f"Descripción: {obligacion.get('descripcion') or obligacion.get('nombre')}\n"
        f"Regulador: {obligacion.get('regulador')}\n"
        f"Área: {area or obligacion.get('area')}\n\n"
        f"Archivo: {archivo.get('nombre')} ({archivo.get('tipo')}, {formatear_tamano(archivo.get('tamaño'))})\n"
        f"Descripción del archivo: {archivo.get('descripcion') or 'Sin descripción'}\n"
        f"Subido por: {usuario or 'Usuario'} el {today().isoformat()}\n\n"
        f"Revisar: {_link('/obligaciones/' + str(obligacion.get('id')))}\n\n"
        "Saludos,\nAlertIA"
    )
    return _notice(config.get("email_responsable_cn") or "responsable.cn@alertia.com",
                   f"[AlertIA] Nueva evidencia subida - {obligacion.get('id')}", body, config.get("cc_global"))


def notificar_verificacion_evidencia(obligacion: dict, archivos: list[dict]):
    config = config_service.get_configuracion()
    listado = "\n".join(f"- {a.get('nombre')} ({formatear_tamano(a.get('tamaño'))})" for a in archivos) or "- (sin archivos)"
    body = (
        f"La obligación {obligacion.get('id')} tiene {len(archivos)} archivo(s) pendientes de verificación:\n\n"
        f"{listado}\n\n"
        f"Fecha límite: {dmy(obligacion.get('fecha_limite'))}\n"
        f"Revisar: {_link('/evidencias?folio=' + str(obligacion.get('id')))}\n\n"
        "Saludos,\nAlertIA"
    )
    return _notice(config.get("email_responsable_cn") or "responsable.cn@alertia.com",
                   f"[AlertIA] Nueva evidencia para verificación - {obligacion.get('id')}", body, config.get("cc_global"))


def notificar_juridico(obligacion: dict):
    config = config_service.get_configuracion()
    body = (
        f"La evidencia de la obligación {obligacion.get('id')} fue aprobada. "
        "Se solicita la redacción del escrito correspondiente.\n\n"
        f"Descripción: {obligacion.get('descripcion') or obligacion.get('nombre')}\n"
        f"Regulador: {obligacion.get('regulador')}\n"
        f"Fecha límite: {dmy(obligacion.get('fecha_limite'))}\n\n"
        "Saludos,\nAlertIA"
    )
    return _notice(config.get("email_responsable_juridico") or "responsable.juridico@alertia.com",
                   f"[AlertIA] Solicitud de redacción de escrito - {obligacion.get('id')}", body, config.get("cc_global"))


def notificar_rechazo_evidencia(obligacion: dict):
    area = obligacion.get("area")
    if not area:
        return None
    body = (
        f"Estimado/a Responsable del Área {area},\n\n"
        f"La evidencia enviada para la obligación {obligacion.get('id')} fue rechazada. "
        "Por favor, revise y vuelva a subirla.\n\n"
        f"Fecha límite: {dmy(obligacion.get('fecha_limite'))}\n"
        f"{_link('/evidencias')}\n\n"
        "Saludos,\nAlertIA"
    )
    return _notice(email_area(area), f"[AlertIA] Evidencia rechazada - {obligacion.get('id')}", body)


def formatear_tamano(size) -> str:
    if not size:
        return "0 Bytes"
    size = float(size)
    for unit in ("Bytes", "KB", "MB"):
        if size < 1024:
            return f"{round(size, 2):g} {unit}"
        size /= 1024
    return f"{round(size, 2):g} GB"
