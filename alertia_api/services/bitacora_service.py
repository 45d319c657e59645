# alertia_api/services/bitacora_service.py
"""
Per-obligation event log ("bitácora").

Every event lives twice: in the obligation's `historial` list and as a text
block appended to obligaciones/<id>/bitacora.txt. The text file is never
truncated; `sincronizar` rebuilds `historial` from both sources.
"""
from __future__ import annotations

import json
import logging
import re
import secrets
import string
from datetime import datetime

from alertia_api.common.auth import current_actor
from alertia_api.common.dates import utcnow, utcnow_iso
from alertia_api.common.errors import NotFound
from alertia_api.common.ids import millis
from alertia_api.storage import get_adapter
from alertia_api.services.file_storage import get_file_storage

log = logging.getLogger(__name__)

TIPOS = {
    "carga_inicial": "CARGA INICIAL",
    "inicio_seguimiento": "INICIO DE SEGUIMIENTO",
    "fin_seguimiento": "FIN DE SEGUIMIENTO",
    "pausar": "PAUSAR SEGUIMIENTO",
    "reanudar": "REANUDAR SEGUIMIENTO",
    "marcar_atendida": "OBLIGACIÓN MARCADA COMO ATENDIDA",
    "cambio_estatus": "CAMBIO DE ESTATUS",
    "cambio_regla": "CAMBIO DE REGLA",
    "comentario": "COMENTARIO",
    "archivo_subido": "ARCHIVO SUBIDO",
    "archivo_eliminado": "ARCHIVO ELIMINADO",
    "archivo_aprobado": "ARCHIVO APROBADO",
    "archivo_rechazado": "ARCHIVO RECHAZADO",
    "recordatorio_enviado": "RECORDATORIO ENVIADO",
}
_TIPOS_INV = {v: k for k, v in TIPOS.items()}

SEPARATOR = "---\n"
_HEADER = re.compile(r"^\[(\d{4}-\d{2}-\d{2} \d{2}:\d{2}:\d{2})\]\s*(.*)$")


def _evt_id(ms: int | None = None) -> str:
    rand = "".join(secrets.choice(string.ascii_lowercase + string.digits) for _ in range(9))
    return f"evt_{ms or millis()}_{rand}"


def _path(obligacion_id: str, storage=None) -> str:
    storage = storage or get_file_storage()
    return f"{storage.obligation_dir(obligacion_id)}/bitacora.txt"


def nuevo_evento(tipo, titulo, descripcion="", datos_anteriores=None, datos_nuevos=None,
                 archivos=None, actor=None) -> dict:
    actor = actor or current_actor()
    return {
        "id": _evt_id(),
        "tipo": tipo,
        "titulo": titulo,
        "descripcion": descripcion or "",
        "fecha": utcnow().isoformat(timespec="milliseconds"),
        "usuario": actor.get("nombre") or actor.get("usuario") or "Sistema",
        "area": actor.get("area"),
        "datos_anteriores": datos_anteriores,
        "datos_nuevos": datos_nuevos,
        "archivos": list(archivos or []),
    }


def adjuntar_evento(obligacion: dict, tipo, titulo, descripcion="", datos_anteriores=None,
                    datos_nuevos=None, archivos=None, actor=None) -> dict:
    """Append an event to an obligation dict and to its text file. The caller persists the dict."""
    evento = nuevo_evento(tipo, titulo, descripcion, datos_anteriores, datos_nuevos, archivos, actor)
    historial = list(obligacion.get("historial") or [])
    historial.append(evento)
    obligacion["historial"] = historial
    guardar_en_archivo(obligacion["id"], evento)
    return evento


def registrar_evento(obligacion_id, tipo, titulo, descripcion="", datos_anteriores=None,
                     datos_nuevos=None, archivos=None, actor=None) -> dict:
    adapter = get_adapter()
    obligacion = adapter.get_obligacion(obligacion_id)
    if not obligacion:
        raise NotFound("Obligación", obligacion_id)
    evento = adjuntar_evento(obligacion, tipo, titulo, descripcion, datos_anteriores,
                             datos_nuevos, archivos, actor)
    adapter.save_obligacion({"id": obligacion_id, "historial": obligacion["historial"]})
    log.info("bitácora %s: %s", obligacion_id, tipo)
    return evento


def get_historial(obligacion_id) -> list[dict]:
    obligacion = get_adapter().get_obligacion(obligacion_id)
    if not obligacion:
        return []
    return sorted(obligacion.get("historial") or [], key=lambda e: e.get("fecha") or "", reverse=True)


def limpiar_historial(obligacion_id) -> None:
    """Empties `historial`; the text file is kept as the permanent record."""
    adapter = get_adapter()
    if not adapter.get_obligacion(obligacion_id):
        raise NotFound("Obligación", obligacion_id)
    adapter.save_obligacion({"id": obligacion_id, "historial": []})


# ---------- text file ----------

def formatear_evento_texto(evento: dict) -> str:
    fecha = (evento.get("fecha") or utcnow_iso())[:19].replace("T", " ")
    tipo = evento.get("tipo") or "evento"
    legible = TIPOS.get(tipo, tipo.upper())
    titulo = evento.get("titulo") or legible

    lines = [f"[{fecha}] {legible}: {titulo}"]
    if evento.get("usuario") or evento.get("area"):
        u = f"Usuario: {evento.get('usuario') or 'Sistema'}"
        if evento.get("area"):
            u += f" | Área: {evento['area']}"
        lines.append(u)
    if evento.get("descripcion"):
        lines.append(f"Descripción: {evento['descripcion']}")
    if evento.get("datos_anteriores"):
        lines.append(f"Datos anteriores: {json.dumps(evento['datos_anteriores'], ensure_ascii=False, default=str)}")
    if evento.get("datos_nuevos"):
        lines.append(f"Datos nuevos: {json.dumps(evento['datos_nuevos'], ensure_ascii=False, default=str)}")
    return "\n".join(lines) + "\n" + SEPARATOR


def guardar_en_archivo(obligacion_id, evento: dict) -> None:
    storage = get_file_storage()
    try:
        storage.append_to_file(_path(obligacion_id, storage), formatear_evento_texto(evento))
    except OSError as e:
        # the DB copy is authoritative for the request; the file can be rebuilt
        log.error("could not append bitácora file for %s: %s", obligacion_id, e)


def parsear_eventos_texto(texto: str) -> list[dict]:
    """Inverse of formatear_evento_texto. Oldest first; unreadable blocks are skipped."""
    eventos = []
    for bloque in (texto or "").split(SEPARATOR):
        lineas = [l for l in bloque.strip().split("\n") if l.strip()]
        if not lineas:
            continue
        m = _HEADER.match(lineas[0])
        if not m:
            continue
        fecha = datetime.strptime(m.group(1), "%Y-%m-%d %H:%M:%S")
        legible, _, titulo = m.group(2).partition(":")
        legible = legible.strip()
        tipo = _TIPOS_INV.get(legible, legible.lower().replace(" ", "_"))

        evento = {
            "id": _evt_id(int(fecha.timestamp() * 1000)),
            "tipo": tipo,
            "titulo": titulo.strip(),
            "descripcion": "",
            "fecha": fecha.isoformat(),
            "usuario": "Sistema",
            "area": None,
            "datos_anteriores": None,
            "datos_nuevos": None,
            "archivos": [],
        }
        for linea in lineas[1:]:
            if linea.startswith("Usuario:"):
                usuario, _, area = linea[len("Usuario:"):].partition("| Área:")
                evento["usuario"] = usuario.strip() or "Sistema"
                evento["area"] = area.strip() or None
            elif linea.startswith("Descripción:"):
                evento["descripcion"] = linea[len("Descripción:"):].strip()
            elif linea.startswith("Datos anteriores:"):
                evento["datos_anteriores"] = _json_or_none(linea[len("Datos anteriores:"):])
            elif linea.startswith("Datos nuevos:"):
                evento["datos_nuevos"] = _json_or_none(linea[len("Datos nuevos:"):])
        eventos.append(evento)
    return sorted(eventos, key=lambda e: e["fecha"])


def cargar_desde_archivo(obligacion_id) -> list[dict]:
    storage = get_file_storage()
    return parsear_eventos_texto(storage.read_text(_path(obligacion_id, storage)) or "")


def _dedup_key(e: dict) -> str:
    return "|".join((
        (e.get("fecha") or "")[:19],
        e.get("usuario") or "",
        e.get("titulo") or "",
        (e.get("descripcion") or "")[:100],
    ))


def sincronizar(obligacion_id) -> list[dict]:
    """
    Merge file and stored events, drop duplicates and persist the result.
    Returns the merged history newest first.
    """
    adapter = get_adapter()
    obligacion = adapter.get_obligacion(obligacion_id)
    if not obligacion:
        raise NotFound("Obligación", obligacion_id)

    merged: dict[str, dict] = {}
    # stored events win over parsed ones (they keep ids and archivos)
    for e in cargar_desde_archivo(obligacion_id) + list(obligacion.get("historial") or []):
        merged[_dedup_key(e)] = e
    historial = sorted(merged.values(), key=lambda e: e.get("fecha") or "", reverse=True)

    adapter.save_obligacion({"id": obligacion_id, "historial": historial})
    return historial


def _json_or_none(raw: str):
    try:
        return json.loads(raw.strip())
    except ValueError:
        return None
