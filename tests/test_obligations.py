from datetime import date

import pytest

from alertia_api.common.errors import APIError, NotFound
from alertia_api.storage import get_adapter
from alertia_api.services import obligations_service


def _audit(accion):
    return [e for e in get_adapter().get_auditoria({}) if e["accion"] == accion]


def test_crud_round_trip(app):
    created = obligations_service.create({
        "regulador": "SAT", "area": "Fiscal", "descripcion": "Declaración anual",
        "fecha_limite": "31/03/2026", "campo_libre": "x",
    })
    assert created["id"].startswith("OBL-")
    assert created["estatus"] == "activa"
    assert created["fecha_limite"] == "2026-03-31"

    got = obligations_service.get_by_id(created["id"], today=date(2026, 3, 1))
    assert got["campo_libre"] == "x"
    assert got["dias_restantes"] == 30

    obligations_service.update(created["id"], {"area": "Contabilidad"})
    assert obligations_service.get_by_id(created["id"])["area"] == "Contabilidad"

    obligations_service.delete(created["id"])
    with pytest.raises(NotFound):
        obligations_service.get_by_id(created["id"])


def test_update_does_not_store_computed_fields(client, cn_headers, make_obligacion):
    make_obligacion(fecha_limite="2026-03-05")
    fetched = client.get("/api/v1/obligaciones/OBL-1", headers=cn_headers).get_json()["data"]
    assert "criticidad" in fetched

    r = client.put("/api/v1/obligaciones/OBL-1", json={**fetched, "area": "Tesorería"}, headers=cn_headers)
    assert r.status_code == 200

    stored = get_adapter().get_obligacion("OBL-1")
    assert stored["area"] == "Tesorería"
    for key in obligations_service.COMPUTED_KEYS:
        assert key not in stored

    created = obligations_service.create({"id": "OBL-9", "dias_restantes": 3, "en_ventana": True})
    assert "dias_restantes" not in created
    assert "en_ventana" not in created


def test_create_rejects_duplicate_id(make_obligacion):
    make_obligacion()
    with pytest.raises(APIError) as exc:
        obligations_service.create({"id": "OBL-1"})
    assert exc.value.status_code == 409


def test_pausar_writes_one_audit_and_one_bitacora_event(make_obligacion):
    make_obligacion()
    obl = obligations_service.pausar("OBL-1", "Prórroga del regulador")

    assert obl["estatus"] == "pausada"
    assert obl["motivo_pausa"] == "Prórroga del regulador"
    assert len(obl["historial"]) == 1
    evento = obl["historial"][0]
    assert evento["tipo"] == "pausar"
    assert evento["datos_anteriores"] == {"estatus": "activa"}
    assert len(_audit("Pausó obligación")) == 1
    assert _audit("Pausó obligación")[0]["contexto"]["motivo"] == "Prórroga del regulador"


def test_reanudar_and_atender(make_obligacion):
    make_obligacion(estatus="pausada", motivo_pausa="x")
    obl = obligations_service.reanudar("OBL-1")
    assert obl["estatus"] == "activa"
    assert obl["motivo_pausa"] is None

    obl = obligations_service.marcar_atendida("OBL-1")
    assert obl["estatus"] == "atendida"
    assert obl["fecha_atendida"]
    assert [e["tipo"] for e in obl["historial"]] == ["reanudar", "marcar_atendida"]
    assert len(_audit("Reanudó obligación")) == 1
    assert len(_audit("Marcó obligación como atendida")) == 1


def test_transition_on_missing_obligation(app):
    with pytest.raises(NotFound):
        obligations_service.pausar("NOPE")


def test_filter(make_obligacion):
    make_obligacion(id="A", area="Finanzas", estatus="activa", sub_estatus="Pendiente (CN)")
    make_obligacion(id="B", area="Legal", estatus="pausada", regulador="Banxico")
    assert [o["id"] for o in obligations_service.filter({"area": "Legal"})] == ["B"]
    assert [o["id"] for o in obligations_service.filter({"estado": "activa"})] == ["A"]
    assert [o["id"] for o in obligations_service.filter({"sub_estatus": "pendiente (cn)"})] == ["A"]
    assert [o["id"] for o in obligations_service.filter({"search": "banxico"})] == ["B"]


def test_enrich_prefers_spreadsheet_days(make_obligacion):
    make_obligacion(dias_para_vencer_excel=3)
    o = obligations_service.get_by_id("OBL-1", today=date(2026, 1, 1))
    assert o["dias_restantes"] == 3
    assert o["criticidad"]["nivel"] == "critica"
    assert o["requiere_envio"] is True


def test_actualizar_reglas(make_obligacion):
    make_obligacion()
    obl = obligations_service.actualizar_reglas("OBL-1", {"regla_diaria": "2026-03-25"})
    assert obl["reglas_alertamiento"]["regla_diaria"] == "2026-03-25"
    assert obl["historial"][-1]["tipo"] == "cambio_regla"
    with pytest.raises(APIError):
        obligations_service.actualizar_reglas("OBL-1", {"otra": 1})


def test_comentario(make_obligacion):
    make_obligacion()
    with pytest.raises(APIError):
        obligations_service.agregar_comentario("OBL-1", "   ")
    evento = obligations_service.agregar_comentario("OBL-1", " revisado ")
    assert evento["descripcion"] == "revisado"
    assert len(_audit("Agregó comentario")) == 1


def test_evidence_workflow(make_obligacion, outbox):
    from alertia_api.services import files_service

    make_obligacion()
    obl = obligations_service.solicitar_evidencia("OBL-1", today=date(2026, 3, 1))
    assert (obl["estatus"], obl["sub_estatus"]) == ("Recordatorio", "Pendiente (cn)")
    assert any("Subir evidencia" in m["Message"]["Subject"]["Data"] for m in outbox)

    files_service.subir_archivo("OBL-1", "acuse.pdf", b"%PDF-1.4", "application/pdf")
    obl = obligations_service.enviar_a_juridico("OBL-1")
    assert (obl["estatus"], obl["sub_estatus"]) == ("Solicitud", "Pendiente (juridico)")
    assert obl["archivos"][0]["estado"] == "aprobado"
    assert len(_audit("Envió evidencia a jurídico")) == 1


def test_rechazar_evidencia(make_obligacion):
    from alertia_api.services import files_service

    make_obligacion()
    files_service.subir_archivo("OBL-1", "acuse.pdf", b"data")
    obl = obligations_service.rechazar_evidencia("OBL-1")
    assert obl["sub_estatus"] == "Sin respuesta"
    assert obl["archivos"][0]["estado"] == "rechazado"


def test_verification_needs_pending_files(make_obligacion):
    make_obligacion()
    with pytest.raises(APIError) as exc:
        obligations_service.enviar_a_verificacion("OBL-1")
    assert exc.value.code == "NO_PENDING_FILES"


def test_por_alerta(make_obligacion):
    make_obligacion(id="M", periodicidad="Mensual", fecha_limite="2026-01-20")
    make_obligacion(id="T", periodicidad="Trimestral", fecha_limite="2026-06-30")
    ids = [o["id"] for o in obligations_service.por_alerta(1, today=date(2026, 1, 5))]
    assert ids == ["M"]
    with pytest.raises(APIError):
        obligations_service.por_alerta(5)


def test_api_transitions(client, cn_headers, area_headers, make_obligacion):
    make_obligacion()
    assert client.post("/api/v1/obligaciones/OBL-1/pausar", json={"motivo": "x"}, headers=area_headers).status_code == 403

    r = client.post("/api/v1/obligaciones/OBL-1/pausar", json={"motivo": "x"}, headers=cn_headers)
    assert r.status_code == 200
    assert r.get_json()["data"]["estatus"] == "pausada"
    assert _audit("Pausó obligación")[0]["usuario"] == "Cumplimiento"

    r = client.get("/api/v1/obligaciones/NOPE", headers=cn_headers)
    assert r.status_code == 404
    assert r.get_json()["error"]["code"] == "NOT_FOUND"


def test_api_list_and_estado(client, cn_headers, make_obligacion):
    make_obligacion(id="A")
    make_obligacion(id="B", area="Legal")
    r = client.get("/api/v1/obligaciones?area=Legal", headers=cn_headers)
    body = r.get_json()
    assert [o["id"] for o in body["data"]["items"]] == ["B"]
    assert body["meta"]["total"] == 1

    r = client.patch("/api/v1/obligaciones/A/estado", json={"estatus": "cerrada", "sub_estatus": "Ok"}, headers=cn_headers)
    assert r.get_json()["data"]["estatus"] == "cerrada"
    assert r.get_json()["data"]["sub_estatus"] == "Ok"
