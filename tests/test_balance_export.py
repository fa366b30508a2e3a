import asyncio
from pathlib import Path

from conftest import make_loader, unit
from models import UnitKind
from services.balance_export import DEFAULT_MAP, build_csv_bytes, build_pdf_bytes, load_map, period_label_pt
from services.settlement import settle_network
from services.tariff_resolver import FlatTariffResolver


def _result(units, readings, period):
    return asyncio.run(settle_network(42, period, units, FlatTariffResolver(0.75), make_loader(readings)))


def test_csv_layout(scenario_units, scenario_readings, period):
    text = build_csv_bytes(_result(scenario_units, scenario_readings, period), DEFAULT_MAP).decode("utf-8")
    lines = text.split("\n")

    assert lines[0] == "ID,Nome,Tipo,Consumo (kWh),Tarifa (R$/kWh),Custo Total (R$),Geração (kWh),Pagamento Excedente (R$)"
    assert lines[1] == "1,Consumer A,Consumer,100.0,0.75,93.75,0.0,18.75"
    assert lines[2] == "2,Consumer B,Consumer,300.0,0.75,281.25,0.0,56.25"
    assert lines[3] == "3,Generator G,Generator,0.0,0.75,0.00,300.0,0.00"
    assert lines[4] == ""
    assert lines[5] == "Total,,,400.0,,375.00,300.0,"


def test_shipped_yaml_map_matches_default():
    shipped = Path(__file__).resolve().parent.parent / "config" / "balance_csv_map.yaml"
    assert load_map(str(shipped)) == DEFAULT_MAP
    assert load_map("does/not/exist.yaml") is DEFAULT_MAP


def test_csv_custom_map(scenario_units, scenario_readings, period):
    cfg = {
        "delimiter": ";",
        "columns": [
            {"name": "Unidade", "source": "unit.name"},
            {"name": "Tipo", "source": "unit.kind", "map": {"Consumer": "Consumidor", "Generator": "Gerador"}},
            {"name": "Total", "source": "unit.total_cost", "round": 1},
        ],
    }
    lines = build_csv_bytes(_result(scenario_units, scenario_readings, period), cfg).decode("utf-8").splitlines()
    assert lines[0] == "Unidade;Tipo;Total"
    assert lines[1] == "Consumer A;Consumidor;93.8"
    assert lines[3] == "Generator G;Gerador;0.0"
    assert len(lines) == 4  # no totals block configured


def test_pdf_renders(scenario_units, scenario_readings, period):
    data = build_pdf_bytes(_result(scenario_units, scenario_readings, period), "Rede <Vila> & Verde")
    assert data.startswith(b"%PDF")
    assert len(data) > 1000


def test_period_label_pt():
    assert period_label_pt("2025-03") == "março 2025"


def test_csv_totals_row_matches_unit_rows(period):
    units = [unit(i, UnitKind.CONSUMER) for i in (1, 2, 3)] + [unit(4, UnitKind.GENERATOR)]
    readings = {uid: [{"value": 1, "reading_at": period.start}] for uid in (1, 2, 3)}
    readings[4] = [{"value": 2, "reading_at": period.start}]
    result = asyncio.run(settle_network(42, period, units, FlatTariffResolver(0.335), make_loader(readings)))

    lines = build_csv_bytes(result, DEFAULT_MAP).decode("utf-8").split("\n")
    assert lines[1].endswith(",0.46,0.0,0.12")
    assert lines[6] == "Total,,,3.0,,1.36,2.0,"
