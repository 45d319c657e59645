import io
from datetime import date, datetime

import openpyxl
import pytest

from alertia_api.common.errors import APIError
from alertia_api.services import bitacora_service, config_service, excel_service
from alertia_api.storage import get_adapter

HEADERS = {
    2: "Órgano / Regulador",
    3: "Disposición resumida",
    4: "Fecha límite de entrega",
    7: "Área responsable",
    8: "1er alerta",
    11: "4ta alerta",
    13: "Periodicidad",
    14: "Días para vencer",
    19: "Estatus",
    20: "Sub estatus",
    21: "ID",
}


def _row(**cols):
    row = [None] * 22
    for idx, value in cols.items():
        row[int(idx[1:])] = value
    return row


def _workbook(rows, sheet="Obligaciones") -> bytes:
    wb = openpyxl.Workbook()
    ws = wb.active
    ws.title = sheet
    ws.append(["Matriz de obligaciones"])
    ws.append([])
    ws.append([])
    header = [None] * 22
    for idx, name in HEADERS.items():
        header[idx] = name
    ws.append(header)
    for r in rows:
        ws.append(r)
    wb.create_sheet("Notas")
    buf = io.BytesIO()
    wb.save(buf)
    return buf.getvalue()


@pytest.fixture
def workbook():
    return _workbook([
        _row(c2="CNBV", c3="Reporte R01", c4=datetime(2026, 3, 31), c7="Finanzas", c8=46023,
             c13="Trimestral", c14=12.4, c19="Activa", c20="pendiente (cn)", c21="OBL-001"),
        _row(),
        _row(c7="Legal", c3="Fila sin folio"),
        _row(c11="15/02/2026", c21="OBL-002"),
        _row(c21="OBL-003"),
    ])


def test_sheet_names(workbook):
    assert excel_service.sheet_names(workbook) == ["Obligaciones", "Notas"]


def test_sheet_is_required(workbook):
    with pytest.raises(APIError) as exc:
        excel_service.process(workbook, None)
    assert exc.value.code == "SHEET_SELECTION_REQUIRED"

    with pytest.raises(APIError) as exc:
        excel_service.process(workbook, "Otra")
    assert "Hojas disponibles: Obligaciones, Notas" in exc.value.message


def test_process_rows(app, workbook):
    res = excel_service.process(workbook, "Obligaciones", today=date(2026, 5, 1))
    obls = {o["id"]: o for o in res["obligaciones"]}
    assert sorted(obls) == ["OBL-001", "OBL-002", "OBL-003"]

    first = obls["OBL-001"]
    assert first["regulador"] == "CNBV"
    assert first["nombre"] == "Reporte R01"
    assert first["area"] == "Finanzas"
    assert first["periodicidad"] == "Trimestral"
    assert first["fecha_limite"] == "2026-03-31"
    assert first["estatus"] == "activa"
    assert first["sub_estatus"] == "Pendiente (CN)"
    assert first["dias_para_vencer_excel"] == 12
    assert first["alertas"]["alerta_1"] == "2026-01-01"
    assert first["reglas_alertamiento"]["regla_1_vez"] == "2026-01-01"

    assert obls["OBL-002"]["fecha_limite"] == "2026-02-15"
    assert obls["OBL-003"]["fecha_limite"] == "2026-12-31"
    assert obls["OBL-003"]["area"] == "Sin asignar"
    assert obls["OBL-003"]["regulador"] == "General"

    stats = res["problemas"]["estadisticas"]
    assert stats == {"total": 5, "procesadas": 3, "vacias": 1, "conErrores": 1}
    (problema,) = res["problemas"]["filas"]
    assert problema["fila"] == 7
    assert problema["problemas"][0]["campo"] == "id_oficial"


def test_no_valid_rows(app):
    data = _workbook([_row(c7="Legal")])
    with pytest.raises(APIError) as exc:
        excel_service.process(data, "Obligaciones")
    assert exc.value.code == "NO_VALID_ROWS"


def test_parse_date():
    assert excel_service.parse_date(46023) == date(2026, 1, 1)
    assert excel_service.parse_date("31/12/2026") == date(2026, 12, 31)
    assert excel_service.parse_date(datetime(2026, 1, 2, 8, 0)) == date(2026, 1, 2)
    assert excel_service.parse_date(12) is None
    assert excel_service.parse_date("texto") is None


def test_map_columns_prefers_exact_match():
    headers = ["periodicidad", "sub estatus", "estatus", "id"]
    cols = excel_service.map_columns(headers)
    assert cols["id"] == 3
    assert cols["estatus"] == 2
    assert cols["sub_estatus"] == 1


def test_importar_upserts_and_logs(app, workbook):
    res = excel_service.importar(workbook, "Obligaciones", today=date(2026, 5, 1))
    assert (res["nuevas"], res["actualizadas"]) == (3, 0)

    historial = bitacora_service.get_historial("OBL-001")
    assert [e["tipo"] for e in historial] == ["carga_inicial"]
    assert config_service.get_configuracion()["total_filas_excel"] == 5
    assert any(e["accion"] == "Cargó archivo Excel" for e in get_adapter().get_auditoria({}))

    res = excel_service.importar(workbook, "Obligaciones", today=date(2026, 5, 1))
    assert (res["nuevas"], res["actualizadas"]) == (0, 3)
    assert len(bitacora_service.get_historial("OBL-001")) == 1


def test_import_endpoint(client, cn_headers, workbook):
    r = client.post(
        "/api/v1/imports/excel",
        data={"file": (io.BytesIO(workbook), "matriz.xlsx"), "hoja": "Obligaciones"},
        headers=cn_headers,
        content_type="multipart/form-data",
    )
    assert r.status_code == 201
    assert r.get_json()["data"]["nuevas"] == 3

    r = client.post(
        "/api/v1/imports/excel",
        data={"file": (io.BytesIO(workbook), "matriz.xlsx")},
        headers=cn_headers,
        content_type="multipart/form-data",
    )
    assert r.status_code == 400
    assert r.get_json()["error"]["code"] == "SHEET_SELECTION_REQUIRED"
