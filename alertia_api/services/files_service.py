# alertia_api/services/files_service.py
from __future__ import annotations

import logging
import mimetypes
import secrets
import string

from werkzeug.utils import secure_filename

from alertia_api.common.auth import current_actor
from alertia_api.common.dates import utcnow_iso
from alertia_api.common.errors import APIError, NotFound
from alertia_api.common.ids import millis
from alertia_api.storage import get_adapter
from alertia_api.services import bitacora_service, notifications_service
from alertia_api.services.file_storage import get_file_storage

log = logging.getLogger(__name__)

MAX_FILE_SIZE = 25 * 1024 * 1024

ESTADO_PENDIENTE = "pendiente_revision"
ESTADO_APROBADO = "aprobado"
ESTADO_RECHAZADO = "rechazado"
ESTADOS = (ESTADO_PENDIENTE, ESTADO_APROBADO, ESTADO_RECHAZADO)


def _archivo_id() -> str:
    rand = "".join(secrets.choice(string.ascii_lowercase + string.digits) for _ in range(9))
    return f"arch_{millis()}_{rand}"


def _obligacion(obligacion_id: str) -> dict:
    obl = get_adapter().get_obligacion(obligacion_id)
    if not obl:
        raise NotFound("Obligación", obligacion_id)
    return obl


def _buscar(obl: dict, archivo_id: str) -> dict:
    for a in obl.get("archivos") or []:
        if a.get("id") == archivo_id:
            return a
    raise NotFound("Archivo", archivo_id)


def validar_archivo(nombre: str | None, contenido: bytes | None) -> None:
    if not nombre or contenido is None:
        raise APIError("NO_FILE", "No se seleccionó ningún archivo", 400)
    if len(contenido) > MAX_FILE_SIZE:
        raise APIError("FILE_TOO_LARGE",
                       f"El archivo excede el tamaño máximo de {MAX_FILE_SIZE // (1024 * 1024)}MB", 413)


def subir_archivo(obligacion_id: str, nombre: str, contenido: bytes, tipo: str | None = None,
                  descripcion: str = "", actor: dict | None = None) -> dict:
    validar_archivo(nombre, contenido)
    actor = actor or current_actor()
    obl = _obligacion(obligacion_id)
    storage = get_file_storage()

    archivo_id = _archivo_id()
    safe = secure_filename(nombre) or "archivo"
    ruta = storage.save_file(f"{storage.obligation_dir(obligacion_id)}/archivos/{archivo_id}_{safe}", contenido)
    info = {
        "id": archivo_id,
        "nombre": nombre,
        "tipo": tipo or mimetypes.guess_type(nombre)[0] or "application/octet-stream",
        "tamaño": len(contenido),
        "fecha_subida": utcnow_iso(),
        "usuario_subio": actor.get("nombre") or "Usuario",
        "area_subio": actor.get("area"),
        "descripcion": descripcion or "",
        "estado": ESTADO_PENDIENTE,
        "ruta": ruta,
    }
    obl["archivos"] = [*(obl.get("archivos") or []), info]
    bitacora_service.adjuntar_evento(
        obl, "archivo_subido", "Archivo subido",
        f'Archivo "{nombre}" subido por {info["usuario_subio"]}',
        None, {"archivo": info}, [archivo_id], actor=actor,
    )
    get_adapter().save_obligacion(obl)
    log.info("archivo %s subido para %s", nombre, obligacion_id)

    notifications_service.notificar_archivo_subido(obl, info, info["usuario_subio"], info["area_subio"])
    return info


def obtener_archivos(obligacion_id: str) -> list[dict]:
    return list(_obligacion(obligacion_id).get("archivos") or [])


def descargar_archivo(obligacion_id: str, archivo_id: str) -> tuple[dict, bytes]:
    """(metadata, bytes) for one stored file."""
    archivo = _buscar(_obligacion(obligacion_id), archivo_id)
    data = get_file_storage().read_bytes(archivo.get("ruta") or "")
    if data is None:
        raise APIError("FILE_MISSING", "No se pudo descargar el archivo", 404)
    return archivo, data


def eliminar_archivo(obligacion_id: str, archivo_id: str, actor: dict | None = None) -> None:
    obl = _obligacion(obligacion_id)
    archivo = _buscar(obl, archivo_id)
    try:
        get_file_storage().delete(archivo.get("ruta") or "")
    except OSError as e:
        log.warning("no se pudo eliminar %s del almacenamiento: %s", archivo.get("ruta"), e)

    obl["archivos"] = [a for a in obl.get("archivos") or [] if a.get("id") != archivo_id]
    bitacora_service.adjuntar_evento(
        obl, "archivo_eliminado", "Archivo eliminado", f'Archivo "{archivo.get("nombre")}" eliminado',
        {"archivo": archivo}, None, [archivo_id], actor=actor,
    )
    get_adapter().save_obligacion(obl)


def cambiar_estado_archivo(obligacion_id: str, archivo_id: str, estado: str, actor: dict | None = None) -> dict:
    if estado not in (ESTADO_APROBADO, ESTADO_RECHAZADO):
        raise APIError("INVALID_STATE", "El estado debe ser 'aprobado' o 'rechazado'", 400)
    obl = _obligacion(obligacion_id)
    archivo = _buscar(obl, archivo_id)
    anterior = archivo.get("estado")
    archivo["estado"] = estado
    archivo["fecha_revision"] = utcnow_iso()

    tipo = "archivo_aprobado" if estado == ESTADO_APROBADO else "archivo_rechazado"
    bitacora_service.adjuntar_evento(
        obl, tipo, "Archivo " + estado, f'Archivo "{archivo.get("nombre")}" {estado}',
        {"estado": anterior}, {"estado": estado}, [archivo_id], actor=actor,
    )
    get_adapter().save_obligacion(obl)
    return archivo


def pendientes_revision(obligacion: dict) -> list[dict]:
    return [a for a in obligacion.get("archivos") or [] if a.get("estado") == ESTADO_PENDIENTE]
