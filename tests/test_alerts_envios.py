from datetime import date

import pytest

from alertia_api.common.errors import APIError
from alertia_api.services import alerts_service, audit_service, envios_service
from alertia_api.storage import get_adapter

HOY = date(2026, 3, 2)


@pytest.mark.parametrize("dias,tipo", [
    (None, None), (-1, None), (0, None), (3, "Crítica"), (5, "Crítica"),
    (6, "2da Alerta"), (10, "2da Alerta"), (30, "1ra Alerta"), (31, None),
])
def test_tipo_alerta(dias, tipo):
    assert alerts_service.tipo_alerta(dias) == tipo


def test_tipo_alerta_custom_thresholds():
    reglas = {"alerta1": 60, "alerta2": 20, "critica": 7}
    assert alerts_service.tipo_alerta(45, reglas) == "1ra Alerta"
    assert alerts_service.tipo_alerta(7, reglas) == "Crítica"


def test_criticidad():
    assert alerts_service.criticidad(None)["nivel"] == "normal"
    assert alerts_service.criticidad(-2)["label"] == "Vencida"
    assert alerts_service.criticidad(4)["nivel"] == "critica"
    assert alerts_service.criticidad(8)["nivel"] == "ventana"
    assert alerts_service.criticidad(20)["color"] == "yellow"
    assert alerts_service.criticidad(90)["nivel"] == "normal"


def test_alertas_por_periodicidad():
    obl = {"periodicidad": "Trimestral", "fecha_limite": "2026-03-10"}
    assert alerts_service.alertas_por_periodicidad(obl, HOY) == {
        "alerta1": True, "alerta2": True, "alerta3": False, "alerta4": False,
    }
    assert alerts_service.alertas_por_periodicidad({**obl, "fecha_limite": "2026-06-30"}, HOY) is None
    assert alerts_service.alertas_por_periodicidad({**obl, "fecha_limite": "2026-01-01"}, HOY) is None
    una_vez = {"periodicidad": "Anual, una vez al año", "fecha_limite": "2026-01-01"}
    assert alerts_service.alertas_por_periodicidad(una_vez, date(2026, 9, 13))["alerta4"] is True


def test_calcular_alertas_del_dia(app, make_obligacion):
    make_obligacion(id="OBL-1", fecha_limite="2026-03-05")
    make_obligacion(id="OBL-2", fecha_limite="2026-03-20")
    make_obligacion(id="OBL-3", fecha_limite="2026-03-25", estatus="pausada")
    make_obligacion(id="OBL-4", fecha_limite="2026-12-31")

    creadas = alerts_service.calcular_alertas_del_dia(today=HOY)
    assert {(a["obligacion_id"], a["tipo"]) for a in creadas} == {("OBL-1", "Crítica"), ("OBL-2", "1ra Alerta")}
    assert all(a["estado"] == "pendiente" for a in creadas)

    assert alerts_service.calcular_alertas_del_dia(today=HOY) == []
    assert len(alerts_service.get_pendientes()) == 2
    assert audit_service.get_eventos({"accion": "Calculó alertas del día"})


def test_manual_envio_sends_and_marks(app, make_obligacion, outbox):
    make_obligacion(id="OBL-1", fecha_limite="2026-03-05", responsable_email="ana@empresa.com")
    alerta = get_adapter().save_alerta({"obligacion_id": "OBL-1", "tipo": "Crítica", "fecha": "2026-03-02"})

    envio = envios_service.create_envio([alerta["id"]], destinatarios={alerta["id"]: "jefe@empresa.com"})
    assert envio["tipo"] == "manual"
    assert envio["correos_enviados"] == 1
    assert envio["estado"] == "completado"
    assert outbox[-1]["Destination"]["ToAddresses"] == ["jefe@empresa.com"]
    assert outbox[-1]["Message"]["Subject"]["Data"].startswith("[URGENTE]")

    row = alerts_service.get_by_obligacion("OBL-1")[0]
    assert row["estado"] == "enviada"
    assert row["destinatario"] == "jefe@empresa.com"
    assert audit_service.get_eventos({"accion": "Ejecutó envío manual"})[0]["contexto"]["correos_enviados"] == 1


def test_manual_envio_validation(app):
    with pytest.raises(APIError) as exc:
        envios_service.create_envio([])
    assert exc.value.code == "NO_ALERTS"
    with pytest.raises(APIError) as exc:
        envios_service.create_envio(["ALT-nope"])
    assert exc.value.status_code == 404


def test_estado_envio():
    assert envios_service.estado_envio(3, 0) == "completado"
    assert envios_service.estado_envio(2, 1) == "parcial"
    assert envios_service.estado_envio(0, 2) == "fallido"


def test_envios_api(client, cn_headers, area_headers, make_obligacion):
    make_obligacion(fecha_limite="2026-03-05")
    r = client.post("/api/v1/alertas", json={"obligacion_id": "OBL-1", "tipo": "Crítica", "fecha": "2026-03-02"},
                    headers=cn_headers)
    assert r.status_code == 201
    alerta_id = r.get_json()["data"]["id"]

    assert client.post("/api/v1/envios", json={"alertas": [alerta_id]}, headers=area_headers).status_code == 403
    r = client.post("/api/v1/envios", json={"alertas": [alerta_id]}, headers=cn_headers)
    assert r.status_code == 201
    envio_id = r.get_json()["data"]["id"]

    assert client.get(f"/api/v1/envios/{envio_id}", headers=area_headers).get_json()["data"]["alertas"] == [alerta_id]
    stats = client.get("/api/v1/envios/stats", headers=area_headers).get_json()["data"]
    assert stats["total_envios"] == 1
    assert stats["total_correos"] == 1
    assert client.get("/api/v1/envios/ENV-nope", headers=area_headers).status_code == 404

    r = client.post("/api/v1/envios", json={"alertas": "x"}, headers=cn_headers)
    assert r.get_json()["error"]["code"] == "INVALID_ALERTS"


def test_alert_state_update(client, cn_headers, make_obligacion):
    make_obligacion()
    alerta = get_adapter().save_alerta({"obligacion_id": "OBL-1", "tipo": "1ra Alerta"})
    r = client.patch(f"/api/v1/alertas/{alerta['id']}", json={"estado": "enviada", "destinatario": "x@empresa.com"},
                     headers=cn_headers)
    assert r.get_json()["data"]["destinatario"] == "x@empresa.com"
    assert client.patch(f"/api/v1/alertas/{alerta['id']}", json={}, headers=cn_headers).status_code == 400
    assert client.patch("/api/v1/alertas/ALT-x", json={"estado": "enviada"}, headers=cn_headers).status_code == 404


def test_envios_del_dia_uses_local_calendar_day(app):
    app.config["ALERTIA_TIMEZONE"] = "America/Mexico_City"
    envios_service.registrar_envio({"fecha": "2026-03-03T01:00:00", "tipo": "manual", "total_alertas": 1})
    assert [e["fecha"][:19] for e in envios_service.del_dia(date(2026, 3, 2))] == ["2026-03-03T01:00:00"]
    assert envios_service.del_dia(date(2026, 3, 3)) == []


def test_alert_sent_last_evening_local_time_counts_as_today(app, make_obligacion):
    make_obligacion(id="OBL-1", fecha_limite="2026-03-05")
    get_adapter().save_alerta({
        "id": "ALT-prev", "obligacion_id": "OBL-1", "tipo": "Crítica", "fecha": "2026-03-02",
        "estado": "enviada", "fecha_envio": "2026-03-03T01:00:00",
    })
    app.config["ALERTIA_TIMEZONE"] = "America/Mexico_City"
    assert alerts_service.calcular_alertas_del_dia(today=HOY) == []

    app.config["ALERTIA_TIMEZONE"] = "UTC"
    assert [a["tipo"] for a in alerts_service.calcular_alertas_del_dia(today=HOY)] == ["Crítica"]
