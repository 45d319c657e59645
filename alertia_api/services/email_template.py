# alertia_api/services/email_template.py
from __future__ import annotations

import re

from alertia_api.common.dates import days_until, dmy, parse_fecha

_VAR = re.compile(r"\{(\w+)\}")

_FOOTER = (
    "Saludos cordiales,\n"
    "**Equipo de {nombre_remitente}**\n\n"
    "---\n"
    "Este es un correo automático, por favor no responda a esta dirección.\n"
    "AlertIA Systems."
)
_DETALLES = (
    "**Detalles de la Obligación:**\n"
    "- ID Obligación: {id_obligacion}\n"
    "- Área Responsable: {area}\n"
    "- Regulador: {regulador}\n"
    "- Responsable: {responsable}\n\n"
)

TEMPLATES = {
    "1ra Alerta": (
        "Estimado {nombre},\n\n"
        "Le informamos que la obligación normativa **{obligacion}** tiene fecha límite el "
        "**{fecha_limite}** (faltan {dias_restantes} días).\n\n"
        "Esta es una **{tipo_alerta}** y requiere su atención.\n\n"
        + _DETALLES +
        "Por favor, tome las acciones necesarias para cumplir con esta obligación antes de la fecha límite indicada.\n\n"
        + _FOOTER
    ),
    "2da Alerta": (
        "Estimado {nombre},\n\n"
        "Le recordamos que la obligación normativa **{obligacion}** tiene fecha límite el "
        "**{fecha_limite}** (faltan {dias_restantes} días).\n\n"
        "Esta es una **{tipo_alerta}** y requiere atención prioritaria.\n\n"
        + _DETALLES +
        "Es importante que tome las acciones necesarias para cumplir con esta obligación antes de la fecha límite.\n\n"
        + _FOOTER
    ),
    "Crítica": (
        "Estimado {nombre},\n\n"
        "**URGENTE:** La obligación normativa **{obligacion}** tiene fecha límite el "
        "**{fecha_limite}** (faltan {dias_restantes} días).\n\n"
        "Esta es una **{tipo_alerta}** y requiere atención INMEDIATA.\n\n"
        + _DETALLES +
        "**ACCIÓN REQUERIDA:** Por favor, tome las acciones necesarias INMEDIATAMENTE para cumplir "
        "con esta obligación antes de la fecha límite.\n\n"
        + _FOOTER
    ),
}


def substitute(template: str, variables: dict) -> str:
    """Replace {name} placeholders; unknown placeholders are left as they are."""
    def _rep(m):
        key = m.group(1)
        if key not in variables:
            return m.group(0)
        v = variables[key]
        return "" if v is None else str(v)
    return _VAR.sub(_rep, template or "")


def variables(obligacion: dict, tipo: str, destinatario=None, config: dict | None = None, today=None) -> dict:
    config = config or {}
    dias = days_until(obligacion.get("fecha_limite"), today)
    if isinstance(destinatario, dict):
        nombre = destinatario.get("nombre") or destinatario.get("email")
    else:
        nombre = destinatario
    return {
        "nombre": nombre or obligacion.get("responsable") or "Responsable",
        "obligacion": obligacion.get("descripcion") or obligacion.get("nombre"),
        "id_obligacion": obligacion.get("id"),
        "fecha_limite": dmy(obligacion.get("fecha_limite")),
        "dias_restantes": str(dias) if dias is not None else "N/A",
        "tipo_alerta": tipo,
        "area": obligacion.get("area") or "N/A",
        "regulador": obligacion.get("regulador") or "N/A",
        "responsable": obligacion.get("responsable") or "N/A",
        "nombre_remitente": config.get("nombre_remitente") or "AlertIA",
    }


def generate_subject(tipo: str, obligacion: dict, config: dict | None = None, today=None) -> str:
    config = config or {}
    custom = (config.get("email_subject") or "").strip()
    if custom:
        return substitute(custom, variables(obligacion, tipo, None, config, today))
    urgente = "[URGENTE]" if tipo == "Crítica" else "[ALERTA]"
    return f"{urgente} Vencimiento {obligacion.get('id')} - {obligacion.get('descripcion') or obligacion.get('nombre')}"


def generate_body(tipo: str, obligacion: dict, destinatario=None, config: dict | None = None, today=None) -> str:
    config = config or {}
    vars_ = variables(obligacion, tipo, destinatario, config, today)
    custom = (config.get("email_body") or "").strip()
    return substitute(custom or TEMPLATES.get(tipo, TEMPLATES["1ra Alerta"]), vars_)


def generate_email(tipo: str, obligacion: dict, destinatario, config: dict | None = None, today=None) -> dict:
    config = config or {}
    email = destinatario.get("email") if isinstance(destinatario, dict) else destinatario
    return {
        "asunto": generate_subject(tipo, obligacion, config, today),
        "cuerpo": generate_body(tipo, obligacion, destinatario, config, today),
        "remitente": config.get("remitente"),
        "nombre_remitente": config.get("nombre_remitente"),
        "destinatario": email,
        "cc": list(config.get("cc_global") or []),
        "tipo": tipo,
        "obligacion_id": obligacion.get("id"),
    }


def markdown_to_html(text: str) -> str:
    html = (text or "").replace("\n", "<br>")
    html = re.sub(r"\*\*(.*?)\*\*", r"<strong>\1</strong>", html)
    return re.sub(r"\*(.*?)\*", r"<em>\1</em>", html)


def preview_html(email: dict) -> str:
    return (
        '<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto; padding: 20px;">'
        '<div style="margin-bottom: 20px;"><h2 style="color: #ec0000;">AlertIA</h2></div>'
        f'<div style="line-height: 1.6; color: #333;">{markdown_to_html(email.get("cuerpo"))}</div>'
        "</div>"
    )


def scheduled_email(obligacion: dict, tipo: str, config: dict | None = None) -> dict:
    """Subject and HTML body used by the unattended daily sender."""
    config = config or {}
    desc = obligacion.get("descripcion") or obligacion.get("nombre") or "Obligación Normativa"
    limite = parse_fecha(obligacion.get("fecha_limite"))
    fecha = limite.strftime("%d/%m/%Y") if limite else "N/A"
    cuerpo = (
        '<html><body style="font-family: Arial, sans-serif; line-height: 1.6; color: #333;">'
        f'<h2 style="color: #ec0000;">AlertIA - {tipo}</h2>'
        f"<p>Estimado/a <strong>{obligacion.get('responsable') or 'Responsable'}</strong>,</p>"
        "<p>Le informamos que tiene una obligación normativa pendiente:</p>"
        '<div style="background-color: #f5f5f5; padding: 15px; border-left: 4px solid #ec0000; margin: 20px 0;">'
        f"<p><strong>Descripción:</strong> {desc}</p>"
        f"<p><strong>Regulador:</strong> {obligacion.get('regulador') or 'N/A'}</p>"
        f"<p><strong>Fecha Límite:</strong> {fecha}</p>"
        f"<p><strong>Área:</strong> {obligacion.get('area') or 'N/A'}</p>"
        "</div>"
        "<p>Por favor, tome las acciones necesarias para cumplir con esta obligación antes de la fecha límite.</p>"
        f"<p>Saludos cordiales,<br><strong>{config.get('nombre_remitente') or 'AlertIA'}</strong></p>"
        "</body></html>"
    )
    return {"asunto": f"[{tipo}] {desc}", "cuerpo": cuerpo}
