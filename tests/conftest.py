from datetime import datetime, timezone

import pytest

from models import UnitKind
from services.settlement_types import Period, SettlementUnit

UTC = timezone.utc
MAY_2025 = Period.for_month(2025, 5)


def unit(uid: int, kind: UnitKind, name: str = "", concessionaire_id=None, **kw) -> SettlementUnit:
    return SettlementUnit(
        id=uid,
        name=name or f"Unit {uid}",
        kind=kind,
        network_id=1,
        concessionaire_id=concessionaire_id,
        **kw,
    )


def rows(*pairs):
    """(value, datetime) pairs -> loader rows"""
    return [{"value": v, "reading_at": ts} for v, ts in pairs]


def make_loader(readings_by_unit: dict, failing: set = frozenset()):
    """In-memory ReadingLoader; unit ids in `failing` raise ConnectionError."""
    calls = []

    async def loader(unit_id, start, end):
        calls.append((unit_id, start, end))
        if unit_id in failing:
            raise ConnectionError(f"reading store down for {unit_id}")
        return readings_by_unit.get(unit_id, [])

    loader.calls = calls
    return loader


@pytest.fixture
def period():
    return MAY_2025


@pytest.fixture
def scenario_units():
    return [
        unit(1, UnitKind.CONSUMER, "Consumer A"),
        unit(2, UnitKind.CONSUMER, "Consumer B"),
        unit(3, UnitKind.GENERATOR, "Generator G"),
    ]


@pytest.fixture
def scenario_readings():
    mid = datetime(2025, 5, 15, 12, tzinfo=UTC)
    return {
        1: rows((60, mid), (40, datetime(2025, 5, 1, tzinfo=UTC))),
        2: rows((300, mid)),
        3: rows((100, mid), (200, datetime(2025, 5, 31, 23, 59, tzinfo=UTC))),
    }
