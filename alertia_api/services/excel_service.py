# alertia_api/services/excel_service.py
"""
Spreadsheet import of obligations.

The workbook layout is fixed by the compliance team: headers on row 4, data
from row 5. Some fields are always read from a fixed column (ID in V, area
in H, periodicity in N, regulator in C, status in T, sub-status in U); the
rest are located by header name.
"""
from __future__ import annotations

import io
import logging
import re
from datetime import date, datetime

import openpyxl
from openpyxl.utils.datetime import from_excel

from alertia_api.common.auth import current_actor
from alertia_api.common.dates import parse_fecha, today as _today
from alertia_api.common.errors import APIError
from alertia_api.storage import get_adapter
from alertia_api.services import audit_service, bitacora_service, config_service

log = logging.getLogger(__name__)

HEADER_ROW = 4

COL_REGULADOR = 2    # C
COL_AREA = 7         # H
COL_PERIODICIDAD = 13  # N
COL_ESTATUS = 19     # T
COL_SUB_ESTATUS = 20  # U
COL_ID = 21          # V

COLUMN_ALIASES = {
    "id": ["id", "identificador", "código", "codigo", "id obligación", "id obligacion"],
    "estatus": ["estatus", "estado", "status", "situación", "situacion"],
    "sub_estatus": ["sub estatus", "sub_estatus", "subestatus", "sub-estatus", "detalle estatus"],
    "alerta_1": ["1er alerta", "1er alerta (1 vez)", "alerta 1", "primera alerta"],
    "alerta_2": ["2da alerta", "2da alerta (semanal)", "alerta 2", "segunda alerta"],
    "alerta_3": ["3er alerta", "3er alerta (tercer dia)", "alerta 3", "tercera alerta"],
    "alerta_4": ["4ta alerta", "4ta alerta (diaria)", "alerta 4", "cuarta alerta"],
    "area": ["responsable área", "responsable area", "area", "área", "departamento",
             "área responsable", "area responsable"],
    "responsable_cn": ["responsable cn", "responsable c.n.", "cn"],
    "responsable_juridico": ["responsable juridico", "responsable jurídico", "juridico"],
    "nombre": ["disposición resumida", "disposicion resumida", "nombre", "obligación", "obligacion",
               "título", "titulo"],
    "regulador": ["órgano / regulador", "organo / regulador", "órgano regulador", "organo regulador",
                  "regulador", "autoridad"],
    "descripcion": ["tema", "disposición aplicable", "disposicion aplicable", "descripción", "descripcion"],
    "fecha_limite": ["fecha límite de entrega", "fecha limite de entrega", "fecha límite", "fecha limite",
                     "fecha de vencimiento", "vencimiento", "fecha"],
    "periodicidad": ["periodicidad", "frecuencia"],
    "dias_para_vencer": ["días para vencer", "dias para vencer", "días restantes", "dias restantes",
                         "días hasta vencimiento", "dias hasta vencimiento"],
}

# rule dates the calendar reads, keyed by the spreadsheet alert column
RULE_FOR_ALERT = {
    "alerta_1": "regla_1_vez",
    "alerta_2": "regla_semanal",
    "alerta_3": "regla_saltado",
    "alerta_4": "regla_diaria",
}


def _load(data: bytes):
    try:
        return openpyxl.load_workbook(io.BytesIO(data), data_only=True)
    except Exception as e:
        raise APIError("INVALID_EXCEL", f"Error al leer el archivo: {e}", 400)


def sheet_names(data: bytes) -> list[str]:
    return list(_load(data).sheetnames)


def map_columns(headers: list[str]) -> dict[str, int]:
    """field -> column index. An exact header match wins over a partial one."""
    out = {}
    for field, names in COLUMN_ALIASES.items():
        partial = None
        for j, h in enumerate(headers):
            if not h:
                continue
            if h in names:
                out[field] = j
                break
            if partial is None and any(n in h for n in names):
                partial = j
        else:
            if partial is not None:
                out[field] = partial
    return out


def validate_columns(column_map: dict, headers: list[str]) -> dict:
    problemas = {"columnasFaltantes": [], "columnasEncontradas": [], "advertencias": []}
    for field in ("id", "nombre"):
        if field in column_map:
            problemas["columnasEncontradas"].append(
                {"campo": field, "columna": headers[column_map[field]], "indice": column_map[field]}
            )
    if "id" not in column_map and "nombre" not in column_map:
        problemas["columnasFaltantes"].append(
            {"campo": "id", "nombresEsperados": ["ID", "Disposición resumida"], "descripcion": "id"}
        )
        raise APIError("MISSING_COLUMNS", "Faltan columnas requeridas: id", 400, payload=problemas)
    if "fecha_limite" not in column_map:
        problemas["advertencias"].append(
            "No se encontró columna de fecha límite; se usará la 4ta alerta o el 31 de diciembre"
        )
    return problemas


def parse_date(val) -> date | None:
    """datetime cells, Excel serial numbers or text dates; years outside 1900-2100 are rejected."""
    if val is None or val == "":
        return None
    d = None
    if isinstance(val, datetime):
        d = val.date()
    elif isinstance(val, date):
        d = val
    elif isinstance(val, (int, float)) and not isinstance(val, bool):
        if val > 1000:
            d = from_excel(val).date()
    else:
        d = parse_fecha(str(val).strip())
    if d and 1900 < d.year < 2100:
        return d
    return None


def _text(v) -> str | None:
    if v is None:
        return None
    s = str(v).strip()
    return s or None


def _cell(row, idx):
    return row[idx] if idx is not None and idx < len(row) else None


def _sub_estatus(v: str | None) -> str | None:
    if not v:
        return None
    v = v[0].upper() + v[1:]
    return re.sub(r"\(cn\)", "(CN)", v, flags=re.IGNORECASE)


def parse_row(row: tuple, column_map: dict, fila: int, today: date | None = None) -> tuple[dict | None, list[dict]]:
    def get(field):
        return _text(_cell(row, column_map.get(field)))

    id_oficial = _text(_cell(row, COL_ID))
    if not id_oficial:
        has_data = any(_text(c) for i, c in enumerate(row) if i != COL_ID)
        if not has_data:
            return None, []
        return None, [{
            "tipo": "error",
            "campo": "id_oficial",
            "mensaje": f"Fila {fila} del Excel: La columna V (ID) está vacía, pero se detectaron datos "
                       "en otras columnas. El ID es obligatorio.",
            "valor": None,
            "filaExcel": fila,
        }]

    alertas = {k: parse_date(_cell(row, column_map.get(k))) for k in RULE_FOR_ALERT}
    fecha_limite = parse_date(_cell(row, column_map.get("fecha_limite"))) or alertas["alerta_4"]
    if fecha_limite is None:
        fecha_limite = date((today or _today()).year, 12, 31)

    dias = None
    raw_dias = _cell(row, column_map.get("dias_para_vencer"))
    if raw_dias not in (None, ""):
        try:
            dias = round(float(raw_dias))
        except (TypeError, ValueError):
            dias = None

    nombre = get("nombre") or id_oficial
    estatus = _text(_cell(row, COL_ESTATUS))
    alertas_iso = {k: (v.isoformat() if v else None) for k, v in alertas.items()}
    obligacion = {
        "id": id_oficial,
        "id_oficial": id_oficial,
        "regulador": _text(_cell(row, COL_REGULADOR)) or "General",
        "descripcion": nombre,
        "nombre": nombre,
        "area": _text(_cell(row, COL_AREA)) or "Sin asignar",
        "periodicidad": _text(_cell(row, COL_PERIODICIDAD)) or "No definida",
        "fecha_limite": fecha_limite.isoformat(),
        "estatus": estatus.lower() if estatus else None,
        "sub_estatus": _sub_estatus(_text(_cell(row, COL_SUB_ESTATUS))),
        "responsable_cn": get("responsable_cn"),
        "responsable_juridico": get("responsable_juridico"),
        "dias_para_vencer_excel": dias,
        "alertas": alertas_iso,
        "reglas_alertamiento": {RULE_FOR_ALERT[k]: v for k, v in alertas_iso.items()},
    }
    return obligacion, []


def process(data: bytes, sheet_name: str | None = None, today: date | None = None) -> dict:
    wb = _load(data)
    if not sheet_name:
        raise APIError("SHEET_SELECTION_REQUIRED", "SHEET_SELECTION_REQUIRED", 400,
                       payload={"hojas": list(wb.sheetnames)})
    if sheet_name not in wb.sheetnames:
        raise APIError(
            "SHEET_NOT_FOUND",
            f'La hoja "{sheet_name}" no existe en el archivo. Hojas disponibles: {", ".join(wb.sheetnames)}',
            400, payload={"hojas": list(wb.sheetnames)},
        )

    rows = list(wb[sheet_name].iter_rows(values_only=True))
    if len(rows) < HEADER_ROW + 1:
        raise APIError(
            "INVALID_EXCEL",
            f"El archivo Excel debe tener al menos {HEADER_ROW} filas (cabecera en fila {HEADER_ROW}) "
            "y una fila de datos", 400,
        )

    headers = [str(h).strip().lower() if h is not None else "" for h in rows[HEADER_ROW - 1]]
    column_map = map_columns(headers)
    problemas_columnas = validate_columns(column_map, headers)

    obligaciones, problemas_filas = [], []
    vacias = con_errores = 0
    for fila, row in enumerate(rows[HEADER_ROW:], start=HEADER_ROW + 1):
        if not row or all(_text(c) is None for c in row):
            vacias += 1
            continue
        try:
            obligacion, problemas = parse_row(row, column_map, fila, today)
        except (TypeError, ValueError, OverflowError) as e:
            obligacion = None
            problemas = [{"tipo": "error", "campo": "general", "mensaje": str(e), "valor": None}]
        if obligacion:
            obligaciones.append(obligacion)
        elif not problemas:
            vacias += 1
        if problemas:
            problemas_filas.append({"fila": fila, "problemas": problemas})
            if not obligacion:
                con_errores += 1

    total = len(rows) - HEADER_ROW
    log.info("excel %s: %d filas, %d procesadas, %d vacías, %d con errores",
             sheet_name, total, len(obligaciones), vacias, con_errores)
    if not obligaciones:
        raise APIError(
            "NO_VALID_ROWS",
            f"No se encontraron obligaciones válidas en el archivo. Total filas: {total}, "
            f"Vacías: {vacias}, Errores: {con_errores}", 400,
            payload={"filas": problemas_filas},
        )

    return {
        "obligaciones": obligaciones,
        "problemas": {
            "columnas": problemas_columnas,
            "filas": problemas_filas,
            "estadisticas": {
                "total": total,
                "procesadas": len(obligaciones),
                "vacias": vacias,
                "conErrores": con_errores,
            },
        },
    }


def importar(data: bytes, sheet_name: str | None, actor: dict | None = None, today: date | None = None) -> dict:
    """Process and upsert. New obligations get a `carga_inicial` event; existing ones keep their history."""
    actor = actor or current_actor()
    resultado = process(data, sheet_name, today)
    adapter = get_adapter()

    nuevas = actualizadas = 0
    for obl in resultado["obligaciones"]:
        existente = adapter.get_obligacion(obl["id"])
        if existente:
            adapter.save_obligacion(obl)
            actualizadas += 1
            continue
        nueva = {**obl, "estatus": obl.get("estatus") or "activa"}
        bitacora_service.adjuntar_evento(
            nueva, "carga_inicial", "Carga inicial desde Excel",
            f"Obligación importada desde la hoja {sheet_name}", None,
            {"fecha_limite": nueva["fecha_limite"], "area": nueva["area"]}, actor=actor,
        )
        adapter.save_obligacion(nueva)
        nuevas += 1

    stats = resultado["problemas"]["estadisticas"]
    config_service.set_valor("total_filas_excel", stats["total"])
    audit_service.registrar("Cargó archivo Excel", {
        "hoja": sheet_name, "nuevas": nuevas, "actualizadas": actualizadas, "procesadas": stats["procesadas"],
    }, actor)
    return {**resultado, "nuevas": nuevas, "actualizadas": actualizadas}
