# services/tariff_resolver.py
from __future__ import annotations
from typing import Dict, Iterable, List, Optional, Protocol, Sequence

from models import Tariff, TariffType
from services.settlement_errors import RateUnavailable
from services.settlement_types import Period, SettlementUnit, TariffRecord, as_utc


class TariffResolver(Protocol):
    def resolve(self, unit: SettlementUnit, period: Period) -> float: ...


class FlatTariffResolver:
    """One R$/kWh rate for every unit of the network."""

    def __init__(self, rate: float):
        if rate is None or rate < 0:
            raise ValueError(f"flat rate must be >= 0, got {rate!r}")
        self.rate = float(rate)

    def resolve(self, unit: SettlementUnit, period: Period) -> float:
        return self.rate


class HistoryTariffResolver:
    """
    Per-unit lookup over tariff history: records of the unit's concessionaire
    and tariff type whose [start_date, end_date) window contains the start of
    the period. Latest start_date wins when several overlap.
    """

    def __init__(self, tariffs: Iterable[TariffRecord], default_rate: Optional[float] = None):
        self._by_key: Dict[tuple, List[TariffRecord]] = {}
        for t in tariffs:
            self._by_key.setdefault((t.concessionaire_id, TariffType(t.type)), []).append(t)
        for recs in self._by_key.values():
            recs.sort(key=lambda r: as_utc(r.start_date), reverse=True)
        if default_rate is not None and default_rate < 0:
            raise ValueError(f"default rate must be >= 0, got {default_rate!r}")
        self.default_rate = default_rate

    def resolve(self, unit: SettlementUnit, period: Period) -> float:
        if unit.concessionaire_id is not None:
            for rec in self._by_key.get((unit.concessionaire_id, unit.tariff_type), []):
                if rec.covers(period.start):
                    return float(rec.rate)
        if self.default_rate is not None:
            return float(self.default_rate)
        raise RateUnavailable(
            unit.id,
            f"no {unit.tariff_type.value} tariff for unit {unit.id} "
            f"(concessionaire={unit.concessionaire_id}) covering {period.label}",
        )


def resolve_rates(resolver: TariffResolver, units: Sequence[SettlementUnit], period: Period) -> Dict[int, float]:
    """Resolve every unit up front; the first RateUnavailable aborts."""
    return {u.id: resolver.resolve(u, period) for u in units}


async def load_tariffs(concessionaire_ids: Iterable[int]) -> List[TariffRecord]:
    ids = sorted({cid for cid in concessionaire_ids if cid is not None})
    if not ids:
        return []
    rows = await Tariff.filter(concessionaire_id__in=ids).order_by("start_date").values(
        "concessionaire_id", "type", "value", "start_date", "end_date"
    )
    return [
        TariffRecord(
            concessionaire_id=r["concessionaire_id"],
            type=TariffType(r["type"]),
            rate=float(r["value"]),
            start_date=r["start_date"],
            end_date=r["end_date"],
        )
        for r in rows
    ]
