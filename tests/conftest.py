import os

import pytest
from flask_jwt_extended import create_access_token

from alertia_api import create_app
from alertia_api.extensions import db


@pytest.fixture(scope="function")
def app(tmp_path):
    os.environ["DATABASE_URL"] = "sqlite:///:memory:"
    app = create_app({
        "TESTING": True,
        "ALERTIA_STORAGE_MODE": "local",
        "ALERTIA_STORAGE_ROOT": str(tmp_path / "storage"),
        "ALERTIA_EMAIL_PROVIDER": "log",
        "ALERTIA_SCHEDULER_ENABLED": False,
        "ALERTIA_AUTHORIZED_SENDERS": ["alertia-noreply@alertia.com", "cumplimiento@alertia.com"],
        "ALERTIA_TIMEZONE": "UTC",
    })
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture(scope="function")
def client(app):
    return app.test_client()


@pytest.fixture(scope="function")
def outbox(app):
    """Messages handed to the log email provider."""
    from alertia_api.services.email_sender import outbox as _outbox
    return _outbox()


def _token_for(role, username, area=None):
    from alertia_api.services import auth_service
    u = auth_service.create_user(username, f"{username}@alertia.com", "secret", username.title(), role, area)
    return create_access_token(identity=str(u.id), additional_claims=auth_service.claims_for(u))


@pytest.fixture(scope="function")
def admin_headers(app):
    return {"Authorization": f"Bearer {_token_for('admin', 'admin')}"}


@pytest.fixture(scope="function")
def cn_headers(app):
    return {"Authorization": f"Bearer {_token_for('cn', 'cumplimiento', 'Cumplimiento Normativo')}"}


@pytest.fixture(scope="function")
def area_headers(app):
    return {"Authorization": f"Bearer {_token_for('area', 'finanzas', 'Finanzas')}"}


@pytest.fixture(scope="function")
def make_obligacion(app):
    from alertia_api.storage import get_adapter

    def _make(**kw):
        data = {
            "id": "OBL-1",
            "regulador": "CNBV",
            "area": "Finanzas",
            "descripcion": "Reporte regulatorio trimestral",
            "periodicidad": "Trimestral",
            "responsable": "Ana Lopez",
            "fecha_limite": "2026-03-31",
            "estatus": "activa",
        }
        data.update(kw)
        return get_adapter().save_obligacion(data)
    return _make
