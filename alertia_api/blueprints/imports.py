# alertia_api/blueprints/imports.py
from flask import Blueprint, request

from alertia_api.common.auth import current_actor, requires_roles
from alertia_api.common.http import ok, fail
from alertia_api.services import excel_service

bp = Blueprint("imports", __name__, url_prefix="/api/v1/imports")


def _upload():
    f = request.files.get("file")
    if f is None or not f.filename:
        return None
    return f.read()


@bp.post("/excel/hojas")
@requires_roles("cn")
def hojas():
    data = _upload()
    if data is None:
        return fail("Se requiere un archivo Excel (campo 'file')", 400, code="NO_FILE")
    return ok({"hojas": excel_service.sheet_names(data)})


@bp.post("/excel")
@requires_roles("cn")
def importar():
    data = _upload()
    if data is None:
        return fail("Se requiere un archivo Excel (campo 'file')", 400, code="NO_FILE")
    sheet = (request.form.get("hoja") or request.args.get("hoja") or "").strip() or None
    if request.args.get("dry_run", "").lower() in ("1", "true", "yes"):
        return ok(excel_service.process(data, sheet))
    return ok(excel_service.importar(data, sheet, current_actor()), 201)
