from datetime import date

import boto3
from botocore.stub import Stubber

from alertia_api.services import reminders_service
from alertia_api.storage import get_adapter

REGLAS = {"regla_1_vez": "2026-03-01", "regla_semanal": "2026-03-10", "regla_diaria": "2026-03-28"}


def test_generate_from_calendar(app, make_obligacion):
    obl = make_obligacion(reglas_alertamiento=REGLAS)
    recordatorios = reminders_service.generar_desde_calendario(obl)
    fechas = [r["fecha"] for r in recordatorios]
    assert fechas == ["2026-03-01", "2026-03-10", "2026-03-17", "2026-03-24",
                      "2026-03-28", "2026-03-29", "2026-03-30", "2026-03-31"]
    assert recordatorios[0] == {"fecha": "2026-03-01", "tipo": "1_vez", "enviado": False,
                                "fecha_envio": None, "intentos": 0, "error": None}
    assert recordatorios[1]["tipo"] == "semanal"
    assert recordatorios[-1]["tipo"] == "diaria"
    assert get_adapter().get_obligacion("OBL-1")["recordatorios_programados"] == recordatorios


def test_generate_keeps_existing_entries(app, make_obligacion):
    enviado = {"fecha": "2026-03-10", "tipo": "semanal", "enviado": True,
               "fecha_envio": "2026-03-10T09:00:00", "intentos": 1, "error": None}
    obl = make_obligacion(reglas_alertamiento=REGLAS, recordatorios_programados=[enviado])
    recordatorios = reminders_service.generar_desde_calendario(obl)
    assert len(recordatorios) == 8
    assert [r for r in recordatorios if r["fecha"] == "2026-03-10"] == [enviado]


def test_generate_without_deadline(app, make_obligacion):
    obl = make_obligacion(fecha_limite=None, reglas_alertamiento=REGLAS)
    assert reminders_service.generar_desde_calendario(obl) == []


def test_send_due_reminders(app, make_obligacion, outbox):
    make_obligacion(reglas_alertamiento=REGLAS)
    make_obligacion(id="OBL-2", estatus="pausada", reglas_alertamiento=REGLAS)
    assert reminders_service.generar_todos() == 1

    res = reminders_service.enviar_pendientes(date(2026, 3, 17))
    assert res == {"total": 1, "enviados": 1, "fallidos": 0, "errores": []}
    assert "finanzas@" in outbox[-1]["Destination"]["ToAddresses"][0]

    obl = get_adapter().get_obligacion("OBL-1")
    r = next(x for x in obl["recordatorios_programados"] if x["fecha"] == "2026-03-17")
    assert r["enviado"] is True
    assert r["intentos"] == 1
    assert obl["historial"][-1]["tipo"] == "recordatorio_enviado"
    assert obl["historial"][-1]["usuario"] == "Sistema"

    assert reminders_service.enviar_pendientes(date(2026, 3, 17))["total"] == 0


def test_failed_reminder_is_retried(app, make_obligacion):
    make_obligacion(reglas_alertamiento=REGLAS)
    reminders_service.generar_todos()
    app.config["ALERTIA_EMAIL_PROVIDER"] = "ses"
    client = boto3.client("ses", region_name="us-east-1",
                          aws_access_key_id="test", aws_secret_access_key="test")
    app.extensions["alertia_ses"] = client
    with Stubber(client) as stub:
        stub.add_client_error("send_email", service_error_code="Throttling", service_message="Rate exceeded")
        res = reminders_service.enviar_pendientes(date(2026, 3, 24))
        assert res["fallidos"] == 1

        stub.add_response("send_email", {"MessageId": "ses-1"})
        assert reminders_service.enviar_pendientes(date(2026, 3, 24))["enviados"] == 1

    r = next(x for x in get_adapter().get_obligacion("OBL-1")["recordatorios_programados"]
             if x["fecha"] == "2026-03-24")
    assert r["intentos"] == 2
    assert r["error"] is None


def test_reprogramar_keeps_sent(app, make_obligacion):
    enviado = {"fecha": "2026-03-01", "tipo": "1_vez", "enviado": True,
               "fecha_envio": "2026-03-01T09:00:00", "intentos": 1, "error": None}
    viejo = {"fecha": "2026-02-15", "tipo": "semanal", "enviado": False,
             "fecha_envio": None, "intentos": 0, "error": None}
    make_obligacion(reglas_alertamiento={"regla_diaria": "2026-03-30"}, recordatorios_programados=[enviado, viejo])
    fechas = [r["fecha"] for r in reminders_service.reprogramar("OBL-1")]
    assert fechas == ["2026-03-01", "2026-03-30", "2026-03-31"]
