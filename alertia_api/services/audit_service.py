# alertia_api/services/audit_service.py
from __future__ import annotations

import logging

from alertia_api.common.auth import current_actor
from alertia_api.common.dates import utcnow_iso
from alertia_api.storage import get_adapter

log = logging.getLogger(__name__)

# Actions shown in the audit screen; anything else stays stored but hidden.
ACCIONES_VISIBLES = (
    "Ejecutó envío manual",
    "Ejecutó envío automático",
    "Pausó obligación",
    "Reanudó obligación",
    "Marcó obligación como atendida",
    "Calculó alertas del día",
    "Agregó comentario",
    "Modificó configuración",
    "Cargó archivo Excel",
    "Solicitó evidencia",
    "Envió evidencia a verificación",
    "Envió evidencia a jurídico",
    "Rechazó evidencia",
)


def registrar(accion: str, contexto: dict | None = None, actor: dict | None = None) -> dict:
    actor = actor or current_actor()
    evento = {
        "usuario": actor.get("nombre") or actor.get("usuario") or "Sistema",
        "usuario_email": actor.get("usuario_email"),
        "accion": accion,
        "contexto": contexto or {},
        "ip": actor.get("ip"),
        "fecha": utcnow_iso(),
    }
    saved = get_adapter().save_auditoria(evento)
    log.info("audit: %s by %s", accion, evento["usuario"])
    return saved


def get_eventos(filters: dict | None = None) -> list[dict]:
    eventos = get_adapter().get_auditoria(filters or {})
    return [e for e in eventos if any(a in (e.get("accion") or "") for a in ACCIONES_VISIBLES)]


def buscar(query: str) -> list[dict]:
    q = (query or "").lower()
    if not q:
        return get_eventos()
    return [
        e for e in get_eventos()
        if q in (e.get("usuario") or "").lower()
        or q in (e.get("accion") or "").lower()
        or q in (e.get("ip") or "")
    ]


def get_by_usuario(usuario: str) -> list[dict]:
    return get_eventos({"usuario": usuario})


def recientes(limit: int = 10) -> list[dict]:
    return get_eventos()[:limit]
