# alertia_api/blueprints/obligations.py
from __future__ import annotations

from flask import Blueprint, request, send_file
from flask_jwt_extended import jwt_required
import io

from alertia_api.common.auth import current_actor, requires_roles
from alertia_api.common.http import ok, fail, body
from alertia_api.common.paging import page_limit, paginate, filter_args
from alertia_api.services import (
    bitacora_service, files_service, obligations_service, reminders_service,
)
from alertia_api.services.calendar_service import obtener_calendario

bp = Blueprint("obligations", __name__, url_prefix="/api/v1/obligaciones")

WRITE_ROLES = ("cn",)


# ---------- collection ----------

@bp.get("")
@jwt_required()
def list_obligaciones():
    filters = filter_args(*obligations_service.FILTER_KEYS)
    if request.args.get("q"):
        filters["search"] = request.args["q"].strip()
    rows = obligations_service.filter(filters)
    page, size = page_limit()
    items, total = paginate(rows, page, size)
    return ok({"items": items}, page=page, size=size, total=total)


@bp.post("")
@requires_roles(*WRITE_ROLES)
def create_obligacion():
    return ok(obligations_service.create(body()), 201)


@bp.get("/stats")
@jwt_required()
def stats():
    return ok(obligations_service.estadisticas())


@bp.get("/por-alerta/<int:numero>")
@jwt_required()
def por_alerta(numero: int):
    return ok({"items": obligations_service.por_alerta(numero)})


# ---------- item ----------

@bp.get("/<oid>")
@jwt_required()
def get_obligacion(oid):
    return ok(obligations_service.get_by_id(oid))


@bp.route("/<oid>", methods=["PUT", "PATCH"])
@requires_roles(*WRITE_ROLES)
def update_obligacion(oid):
    return ok(obligations_service.update(oid, body()))


@bp.delete("/<oid>")
@requires_roles(*WRITE_ROLES)
def delete_obligacion(oid):
    obligations_service.delete(oid)
    return ok({"id": oid, "deleted": True})


@bp.patch("/<oid>/estado")
@requires_roles(*WRITE_ROLES)
def update_estado(oid):
    data = body()
    estatus = data.pop("estatus", None) or data.pop("estado", None)
    if not estatus:
        return fail("estatus es requerido", 400, code="MISSING_STATUS")
    return ok(obligations_service.update_estado(oid, estatus, data))


@bp.post("/<oid>/pausar")
@requires_roles(*WRITE_ROLES)
def pausar(oid):
    return ok(obligations_service.pausar(oid, (body().get("motivo") or "").strip(), current_actor()))


@bp.post("/<oid>/reanudar")
@requires_roles(*WRITE_ROLES)
def reanudar(oid):
    return ok(obligations_service.reanudar(oid, current_actor()))


@bp.post("/<oid>/atender")
@requires_roles(*WRITE_ROLES)
def atender(oid):
    return ok(obligations_service.marcar_atendida(oid, current_actor()))


@bp.post("/<oid>/comentarios")
@jwt_required()
def comentar(oid):
    return ok(obligations_service.agregar_comentario(oid, body().get("comentario") or "", current_actor()), 201)


@bp.put("/<oid>/reglas")
@requires_roles(*WRITE_ROLES)
def reglas(oid):
    return ok(obligations_service.actualizar_reglas(oid, body(), current_actor()))


# ---------- bitácora ----------

@bp.get("/<oid>/bitacora")
@jwt_required()
def bitacora(oid):
    obligations_service.get_by_id(oid)
    return ok({"items": bitacora_service.get_historial(oid)})


@bp.post("/<oid>/bitacora/sincronizar")
@requires_roles(*WRITE_ROLES)
def bitacora_sync(oid):
    return ok({"items": bitacora_service.sincronizar(oid)})


@bp.delete("/<oid>/bitacora")
@requires_roles("admin")
def bitacora_clear(oid):
    bitacora_service.limpiar_historial(oid)
    return ok({"id": oid, "cleared": True})


# ---------- calendar / reminders ----------

@bp.get("/<oid>/calendario")
@jwt_required()
def calendario(oid):
    obl = obligations_service.get_by_id(oid)
    force = request.args.get("force", "").lower() in ("1", "true", "yes")
    return ok(obtener_calendario(obl, force=force))


@bp.post("/<oid>/recordatorios")
@requires_roles(*WRITE_ROLES)
def generar_recordatorios(oid):
    obl = obligations_service.get_by_id(oid)
    return ok({"items": reminders_service.generar_desde_calendario(obl)})


@bp.post("/<oid>/recordatorios/reprogramar")
@requires_roles(*WRITE_ROLES)
def reprogramar(oid):
    return ok({"items": reminders_service.reprogramar(oid)})


# ---------- files ----------

@bp.get("/<oid>/archivos")
@jwt_required()
def archivos(oid):
    return ok({"items": files_service.obtener_archivos(oid)})


@bp.post("/<oid>/archivos")
@jwt_required()
def subir(oid):
    f = request.files.get("file") or request.files.get("archivo")
    if f is None:
        return fail("No se seleccionó ningún archivo", 400, code="NO_FILE")
    info = files_service.subir_archivo(
        oid, f.filename, f.read(), f.mimetype, request.form.get("descripcion", ""), current_actor(),
    )
    return ok(info, 201)


@bp.get("/<oid>/archivos/<aid>")
@jwt_required()
def descargar(oid, aid):
    archivo, data = files_service.descargar_archivo(oid, aid)
    return send_file(io.BytesIO(data), mimetype=archivo.get("tipo") or "application/octet-stream",
                     as_attachment=True, download_name=archivo.get("nombre") or aid)


@bp.delete("/<oid>/archivos/<aid>")
@jwt_required()
def eliminar(oid, aid):
    files_service.eliminar_archivo(oid, aid, current_actor())
    return ok({"id": aid, "deleted": True})


@bp.patch("/<oid>/archivos/<aid>")
@requires_roles(*WRITE_ROLES)
def estado_archivo(oid, aid):
    return ok(files_service.cambiar_estado_archivo(oid, aid, body().get("estado") or "", current_actor()))


# ---------- evidence ----------

@bp.post("/<oid>/evidencia/solicitar")
@requires_roles(*WRITE_ROLES)
def solicitar_evidencia(oid):
    return ok(obligations_service.solicitar_evidencia(oid, current_actor()))


@bp.post("/<oid>/evidencia/verificacion")
@jwt_required()
def enviar_a_verificacion(oid):
    return ok(obligations_service.enviar_a_verificacion(oid, current_actor()))


@bp.post("/<oid>/evidencia/juridico")
@requires_roles(*WRITE_ROLES)
def enviar_a_juridico(oid):
    return ok(obligations_service.enviar_a_juridico(oid, current_actor()))


@bp.post("/<oid>/evidencia/rechazar")
@requires_roles(*WRITE_ROLES)
def rechazar_evidencia(oid):
    return ok(obligations_service.rechazar_evidencia(oid, current_actor()))
