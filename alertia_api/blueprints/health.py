from flask import Blueprint
from sqlalchemy import text

from alertia_api.extensions import db
from alertia_api.storage import get_adapter

bp = Blueprint("health", __name__, url_prefix="/api/v1")


@bp.get("/health")
def health():
    try:
        db.session.execute(text("SELECT 1"))
        db_ok = True
    except Exception:
        db_ok = False
    return {"status": "ok", "db": db_ok, "storage_mode": get_adapter().mode}
