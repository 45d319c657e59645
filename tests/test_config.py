import pytest

from alertia_api.common.errors import APIError
from alertia_api.services import audit_service, config_service


def test_defaults(app):
    cfg = config_service.get_configuracion()
    assert cfg["remitente"] == "alertia-noreply@alertia.com"
    assert cfg["hora_envio"] == "09:00"
    assert cfg["envios_automaticos"] is False
    assert cfg["cc_global"] == []


def test_validation(app):
    with pytest.raises(APIError) as exc:
        config_service.save_configuracion({"remitente": "otro@gmail.com"})
    assert exc.value.code == "SENDER_NOT_AUTHORIZED"
    assert "cumplimiento@alertia.com" in exc.value.payload["permitidos"]

    with pytest.raises(APIError) as exc:
        config_service.save_configuracion({"cc_global": "jefe@empresa.com, no-es-correo"})
    assert exc.value.code == "INVALID_EMAIL"

    with pytest.raises(APIError) as exc:
        config_service.save_configuracion({"hora_envio": "25:00"})
    assert exc.value.code == "INVALID_HOUR"


def test_save_normalizes_and_audits(app):
    saved = config_service.save_configuracion({
        "remitente": "Cumplimiento@Alertia.com",
        "cc_global": "jefe@empresa.com, auditoria@empresa.com",
        "envios_automaticos": "true",
        "hora_envio": "08:30",
    })
    assert saved["remitente"] == "cumplimiento@alertia.com"
    assert saved["cc_global"] == ["jefe@empresa.com", "auditoria@empresa.com"]
    assert saved["envios_automaticos"] is True
    assert saved["nombre_remitente"] == "AlertIA - Centro de Alertas"

    evento = audit_service.get_eventos({"accion": "Modificó configuración"})[0]
    assert evento["contexto"]["cambios"] == ["cc_global", "envios_automaticos", "hora_envio", "remitente"]
    assert config_service.get_configuracion()["hora_envio"] == "08:30"


def test_config_api(client, admin_headers, area_headers):
    assert client.put("/api/v1/configuracion", json={"hora_envio": "07:00"}, headers=area_headers).status_code == 403
    r = client.put("/api/v1/configuracion", json={"hora_envio": "07:00"}, headers=admin_headers)
    assert r.status_code == 200
    assert client.get("/api/v1/configuracion", headers=area_headers).get_json()["data"]["hora_envio"] == "07:00"

    r = client.put("/api/v1/configuracion", json={"remitente": "x@y.com"}, headers=admin_headers)
    assert r.status_code == 400
    assert r.get_json()["error"]["code"] == "SENDER_NOT_AUTHORIZED"

    remitentes = client.get("/api/v1/configuracion/remitentes", headers=area_headers).get_json()["data"]["items"]
    assert remitentes == ["alertia-noreply@alertia.com", "cumplimiento@alertia.com"]


def test_raw_save_skips_audit(client, admin_headers):
    r = client.put("/api/v1/configuracion/datos", json={"hora_envio": "10:15"}, headers=admin_headers)
    assert r.status_code == 200
    assert audit_service.get_eventos({"accion": "Modificó configuración"}) == []
