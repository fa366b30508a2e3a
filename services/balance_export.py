# services/balance_export.py
from __future__ import annotations
import csv
import decimal
import io
import os
from enum import Enum
from typing import Any, Dict, List, Optional
from xml.sax.saxutils import escape

import yaml
from reportlab.lib import colors
from reportlab.lib.pagesizes import A4, landscape
from reportlab.lib.styles import getSampleStyleSheet
from reportlab.lib.units import mm
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

import services.config as config
from services.settlement_types import SettlementResult

HEADER = [
    "ID",
    "Nome",
    "Tipo",
    "Consumo (kWh)",
    "Tarifa (R$/kWh)",
    "Custo Total (R$)",
    "Geração (kWh)",
    "Pagamento Excedente (R$)",
]

DEFAULT_MAP: Dict[str, Any] = {
    "delimiter": ",",
    "quotechar": '"',
    "header": HEADER,
    "columns": [
        {"name": "ID", "source": "unit.unit_id"},
        {"name": "Nome", "source": "unit.name"},
        {"name": "Tipo", "source": "unit.kind"},
        {"name": "Consumo (kWh)", "source": "unit.consumption_kwh"},
        {"name": "Tarifa (R$/kWh)", "source": "unit.cost_per_kwh", "round": 2},
        {"name": "Custo Total (R$)", "source": "unit.total_cost", "round": 2},
        {"name": "Geração (kWh)", "source": "unit.generation_kwh"},
        {"name": "Pagamento Excedente (R$)", "source": "unit.deficit_share", "round": 2},
    ],
    "totals": {
        "label": "Total",
        "columns": [
            {"name": "Consumo (kWh)", "source": "result.total_consumption_kwh"},
            {"name": "Custo Total (R$)", "source": "result.total_cost", "round": 2},
            {"name": "Geração (kWh)", "source": "result.total_generation_kwh"},
        ],
    },
}

KIND_LABELS_PT = {"Consumer": "Consumidor", "Generator": "Gerador"}
MONTHS_PT = [
    "janeiro", "fevereiro", "março", "abril", "maio", "junho",
    "julho", "agosto", "setembro", "outubro", "novembro", "dezembro",
]


def _get_attr_path(root: Any, path: str):
    cur = root
    for part in path.split("."):
        if cur is None:
            return None
        if isinstance(cur, dict):
            cur = cur.get(part)
        else:
            cur = getattr(cur, part, None)
    return cur


def _fmt_value(val: Any, col_cfg: dict) -> Any:
    if val is None:
        return col_cfg.get("default", "")
    if isinstance(val, Enum):
        val = val.value
    if "map" in col_cfg:
        val = col_cfg["map"].get(val, val)

    # booleans before numbers (bool is an int)
    if isinstance(val, bool):
        return "true" if val else "false"

    # numeric rounding
    if isinstance(val, (int, float, decimal.Decimal)):
        x = decimal.Decimal(str(val))
        if "round" in col_cfg:
            q = decimal.Decimal(10) ** (-int(col_cfg["round"]))
            x = x.quantize(q, rounding=decimal.ROUND_HALF_UP)
        # keep as plain string to avoid locale issues
        return format(x, "f")

    return str(val)


def load_map(path: Optional[str] = None) -> dict:
    path = path if path is not None else config.CSV_MAP_FILE
    if path and os.path.exists(path):
        with open(path, "r", encoding="utf-8") as f:
            return yaml.safe_load(f) or DEFAULT_MAP
    return DEFAULT_MAP


def build_csv_bytes(result: SettlementResult, cfg: Optional[dict] = None) -> bytes:
    """
    One row per unit, then a blank line and a totals row. Column layout comes
    from the YAML map (CSV_MAP_FILE) or DEFAULT_MAP.
    """
    cfg = cfg or load_map()
    cols: List[dict] = cfg.get("columns", [])
    header = cfg.get("header") or [c.get("name", "") for c in cols]

    out = io.StringIO(newline="")
    writer = csv.writer(
        out,
        delimiter=cfg.get("delimiter", ","),
        quotechar=cfg.get("quotechar", '"'),
        lineterminator="\n",
    )
    writer.writerow(header)

    for u in result.units:
        roots = {"unit": u, "result": result}
        writer.writerow([_fmt_value(_get_attr_path(roots, c.get("source", "")), c) for c in cols])

    totals = cfg.get("totals")
    if totals:
        by_name = {c["name"]: c for c in totals.get("columns", [])}
        row = []
        for i, c in enumerate(cols):
            tc = by_name.get(c.get("name"))
            if tc:
                row.append(_fmt_value(_get_attr_path({"result": result}, tc.get("source", "")), tc))
            elif i == 0:
                row.append(totals.get("label", "Total"))
            else:
                row.append("")
        writer.writerow([])
        writer.writerow(row)

    return out.getvalue().encode("utf-8")


def period_label_pt(period: str) -> str:
    """'2025-05' -> 'maio 2025'"""
    year, month = period.split("-")
    return f"{MONTHS_PT[int(month) - 1]} {year}"


def build_pdf_bytes(result: SettlementResult, network_name: Optional[str] = None) -> bytes:
    """Landscape A4 table: title, period subtitle, one row per unit, bold totals row."""
    name = escape(network_name or f"Rede #{result.network_id}")
    styles = getSampleStyleSheet()

    data: List[List[str]] = [list(HEADER)]
    for u in result.units:
        data.append([
            str(u.unit_id),
            u.name,
            KIND_LABELS_PT.get(u.kind.value, u.kind.value),
            f"{u.consumption_kwh:g}",
            f"{u.cost_per_kwh:.2f}",
            f"{u.total_cost:.2f}",
            f"{u.generation_kwh:g}",
            f"{u.deficit_share:.2f}",
        ])
    data.append([
        "Total", "", "",
        f"{result.total_consumption_kwh:g}",
        "",
        f"{result.total_cost:.2f}",
        f"{result.total_generation_kwh:g}",
        f"{result.deficit_cost:.2f}",
    ])

    table = Table(data, repeatRows=1)
    table.setStyle(TableStyle([
        ("BACKGROUND", (0, 0), (-1, 0), colors.HexColor("#2E7D32")),
        ("TEXTCOLOR", (0, 0), (-1, 0), colors.white),
        ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
        ("FONTNAME", (0, -1), (-1, -1), "Helvetica-Bold"),
        ("BACKGROUND", (0, -1), (-1, -1), colors.HexColor("#EEEEEE")),
        ("ALIGN", (3, 1), (-1, -1), "RIGHT"),
        ("GRID", (0, 0), (-1, -1), 0.25, colors.grey),
        ("FONTSIZE", (0, 0), (-1, -1), 9),
    ]))

    buf = io.BytesIO()
    doc = SimpleDocTemplate(
        buf,
        pagesize=landscape(A4),
        leftMargin=12 * mm, rightMargin=12 * mm, topMargin=12 * mm, bottomMargin=12 * mm,
        title=f"Balanço Energético - {name}",
    )
    doc.build([
        Paragraph(f"Balanço Energético - {name}", styles["Title"]),
        Paragraph(f"Período: {period_label_pt(result.period)}", styles["Normal"]),
        Spacer(1, 6 * mm),
        table,
    ])
    return buf.getvalue()
