from alertia_api.extensions import db
from alertia_api.services import auth_service


def _user(app, **kw):
    data = dict(username="Lucia", email="Lucia@Alertia.com", password="s3cret",
                full_name="Lucía Pérez", role="cn", area="Cumplimiento Normativo")
    data.update(kw)
    return auth_service.create_user(**data)


def test_login_by_username_or_email(app, client):
    _user(app)
    for login in ("lucia", "LUCIA@alertia.com"):
        r = client.post("/api/v1/auth/login", json={"usuario": login, "password": "s3cret"})
        assert r.status_code == 200, r.get_json()
        data = r.get_json()["data"]
        assert data["access"] and data["refresh"]
        assert data["user"]["rol"] == "cn"
        assert data["user"]["ultimo_acceso"] is not None


def test_login_errors(app, client):
    u = _user(app)
    r = client.post("/api/v1/auth/login", json={"usuario": "lucia", "password": "nope"})
    assert r.status_code == 401
    assert r.get_json()["error"]["message"] == "Usuario o contraseña incorrectos"

    r = client.post("/api/v1/auth/login", json={"usuario": "lucia"})
    assert r.status_code == 400
    assert r.get_json()["error"]["code"] == "MISSING_CREDENTIALS"

    u.active = False
    db.session.commit()
    r = client.post("/api/v1/auth/login", json={"usuario": "lucia", "password": "s3cret"})
    assert r.status_code == 403
    assert r.get_json()["error"]["code"] == "INACTIVE_USER"


def test_me_refresh_and_logout(app, client):
    _user(app)
    tokens = client.post("/api/v1/auth/login", json={"email": "lucia@alertia.com", "password": "s3cret"}).get_json()["data"]
    auth = {"Authorization": f"Bearer {tokens['access']}"}

    me = client.get("/api/v1/auth/me", headers=auth).get_json()["data"]
    assert me["usuario"] == "lucia"
    assert me["area"] == "Cumplimiento Normativo"

    r = client.post("/api/v1/auth/refresh", headers={"Authorization": f"Bearer {tokens['refresh']}"})
    assert r.status_code == 200
    assert r.get_json()["data"]["access"]

    assert client.post("/api/v1/auth/logout", headers=auth).status_code == 200
    assert client.get("/api/v1/auth/me", headers=auth).status_code == 401


def test_roles_guard_writes(client, area_headers, cn_headers):
    r = client.post("/api/v1/alertas/calcular", headers=area_headers)
    assert r.status_code == 403
    r = client.post("/api/v1/alertas/calcular", headers=cn_headers)
    assert r.status_code == 200


def test_create_user_rejects_unknown_role(app):
    import pytest
    from alertia_api.common.errors import APIError
    with pytest.raises(APIError) as exc:
        _user(app, role="root")
    assert exc.value.code == "INVALID_ROLE"


def test_audit_actor_comes_from_token(client, cn_headers, make_obligacion):
    make_obligacion()
    r = client.post("/api/v1/obligaciones/OBL-1/pausar", json={"motivo": "vacaciones"}, headers=cn_headers)
    assert r.status_code == 200
    eventos = client.get("/api/v1/auditoria", headers=cn_headers).get_json()["data"]["items"]
    assert eventos[0]["accion"] == "Pausó obligación"
    assert eventos[0]["usuario"] == "Cumplimiento"
    assert eventos[0]["usuario_email"] == "cumplimiento@alertia.com"
