from datetime import date

from alertia_api.services.calendar_service import (
    fechas_alerta_por_umbral, gen_range, generate_schedule, obtener_calendario,
    rule_dates, rule_type_for_date, rules_hash,
)


D = date


def test_gen_range_inclusive_with_step():
    assert gen_range(D(2026, 1, 1), D(2026, 1, 7), 3) == [D(2026, 1, 1), D(2026, 1, 4), D(2026, 1, 7)]
    assert gen_range(D(2026, 1, 2), D(2026, 1, 1), 1) == []


def test_schedule_without_deadline_is_empty():
    assert generate_schedule(D(2026, 1, 1), None, None, None, None) == []


def test_schedule_priorities():
    # weekly from Jan 1, every 2 days from Jan 20, daily from Jan 26, deadline Jan 28
    fechas = generate_schedule(None, D(2026, 1, 1), D(2026, 1, 20), D(2026, 1, 26), D(2026, 1, 28))
    assert fechas == [
        D(2026, 1, 1), D(2026, 1, 8), D(2026, 1, 15),
        D(2026, 1, 20), D(2026, 1, 22), D(2026, 1, 24),
        D(2026, 1, 26), D(2026, 1, 27), D(2026, 1, 28),
    ]


def test_one_time_only_before_higher_rules():
    assert generate_schedule(D(2026, 1, 5), D(2026, 1, 3), None, None, D(2026, 1, 3)) == [D(2026, 1, 3)]
    assert generate_schedule(D(2026, 1, 1), D(2026, 1, 3), None, None, D(2026, 1, 3)) == [D(2026, 1, 1), D(2026, 1, 3)]


def test_dates_after_deadline_are_dropped():
    fechas = generate_schedule(D(2026, 2, 1), None, None, D(2026, 1, 30), D(2026, 1, 31))
    assert fechas == [D(2026, 1, 30), D(2026, 1, 31)]


def test_accepts_text_dates():
    assert generate_schedule("01/01/2026", None, None, None, "2026-01-31") == [D(2026, 1, 1)]


def test_rule_type_for_date():
    a1, a2, a3, a4 = D(2026, 1, 1), D(2026, 1, 5), D(2026, 1, 20), D(2026, 1, 26)
    assert rule_type_for_date(D(2026, 1, 27), a1, a2, a3, a4) == "diaria"
    assert rule_type_for_date(D(2026, 1, 22), a1, a2, a3, a4) == "saltado"
    assert rule_type_for_date(D(2026, 1, 12), a1, a2, a3, a4) == "semanal"
    assert rule_type_for_date(D(2026, 1, 1), a1, a2, a3, a4) == "1_vez"


def test_rule_dates_fall_back_to_spreadsheet_alerts():
    obl = {"reglas_alertamiento": {"regla_diaria": "2026-01-26"},
           "alertas": {"alerta_1": "2026-01-01", "alerta_4": "2026-01-25"}}
    assert rule_dates(obl) == (D(2026, 1, 1), None, None, D(2026, 1, 26))


def test_calendar_cache_rebuilds_when_rules_change(app):
    obl = {"id": "OBL-CAL", "fecha_limite": "2026-01-10", "reglas_alertamiento": {"regla_diaria": "2026-01-08"}}
    cal = obtener_calendario(obl)
    assert cal["fechas"] == ["2026-01-08", "2026-01-09", "2026-01-10"]
    assert cal["reglasHash"] == rules_hash(obl)

    obl["reglas_alertamiento"]["regla_diaria"] = "2026-01-09"
    cal2 = obtener_calendario(obl)
    assert cal2["fechas"] == ["2026-01-09", "2026-01-10"]
    assert cal2["reglasHash"] != cal["reglasHash"]


def test_threshold_dates_skip_the_past():
    obl = {"fecha_limite": "2026-02-28"}
    assert fechas_alerta_por_umbral(obl, D(2026, 2, 1)) == [D(2026, 2, 18), D(2026, 2, 23)]
