# services/settlement_types.py
from __future__ import annotations
import calendar
import re
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Optional, Tuple

from models import TariffType, UnitKind
from services.settlement_errors import InvalidPeriod, ReadingFetchFailed

UTC = timezone.utc
_PERIOD_RE = re.compile(r"^(\d{4})-(\d{1,2})$")


def as_utc(ts: datetime) -> datetime:
    """Naive timestamps are taken as UTC wall time."""
    if ts.tzinfo is None:
        return ts.replace(tzinfo=UTC)
    return ts.astimezone(UTC)


@dataclass(frozen=True)
class Period:
    """Closed billing interval [start, end]."""
    start: datetime
    end: datetime

    def __post_init__(self):
        start, end = as_utc(self.start), as_utc(self.end)
        if end < start:
            raise InvalidPeriod(f"period end {end.isoformat()} is before start {start.isoformat()}")
        object.__setattr__(self, "start", start)
        object.__setattr__(self, "end", end)

    @classmethod
    def for_month(cls, year: int, month: int) -> "Period":
        if not 1 <= month <= 12:
            raise InvalidPeriod(f"month must be 1..12, got {month}")
        if not 1 <= year <= 9999:
            raise InvalidPeriod(f"year out of range: {year}")
        last_day = calendar.monthrange(year, month)[1]
        start = datetime(year, month, 1, tzinfo=UTC)
        end = datetime(year, month, last_day, tzinfo=UTC) + timedelta(days=1) - timedelta(microseconds=1)
        return cls(start, end)

    @classmethod
    def parse(cls, value: Optional[str], *, today: Optional[datetime] = None) -> "Period":
        """'YYYY-MM' -> whole calendar month; empty -> current month (UTC)."""
        if not value:
            now = as_utc(today or datetime.now(tz=UTC))
            return cls.for_month(now.year, now.month)
        m = _PERIOD_RE.match(value.strip())
        if not m:
            raise InvalidPeriod(f"period must look like YYYY-MM, got {value!r}")
        return cls.for_month(int(m.group(1)), int(m.group(2)))

    @property
    def label(self) -> str:
        return f"{self.start.year:04d}-{self.start.month:02d}"

    def contains(self, ts: datetime) -> bool:
        return self.start <= as_utc(ts) <= self.end


@dataclass(frozen=True)
class SettlementUnit:
    id: int
    name: str
    kind: UnitKind
    network_id: int
    concessionaire_id: Optional[int] = None
    tariff_type: TariffType = TariffType.RESIDENTIAL

    @classmethod
    def from_model(cls, unit) -> "SettlementUnit":
        return cls(
            id=unit.id,
            name=unit.name,
            kind=UnitKind(unit.kind),
            network_id=unit.network_id,
            concessionaire_id=unit.concessionaire_id,
            tariff_type=TariffType(unit.tariff_type or TariffType.RESIDENTIAL),
        )


@dataclass(frozen=True)
class TariffRecord:
    concessionaire_id: int
    type: TariffType
    rate: float
    start_date: datetime
    end_date: Optional[datetime] = None

    def covers(self, at: datetime) -> bool:
        """[start_date, end_date) semantics; None end means still current."""
        at = as_utc(at)
        if as_utc(self.start_date) > at:
            return False
        return self.end_date is None or at < as_utc(self.end_date)


@dataclass(frozen=True)
class UnitReading:
    unit_id: int
    quantity_kwh: float
    error: Optional[ReadingFetchFailed] = None

    @property
    def degraded(self) -> bool:
        return self.error is not None


@dataclass(frozen=True)
class UnitBalance:
    unit_id: int
    name: str
    kind: UnitKind
    consumption_kwh: float
    generation_kwh: float
    cost_per_kwh: float
    base_cost: float
    deficit_share: float = 0.0
    total_cost: float = 0.0


@dataclass(frozen=True)
class NetworkBalance:
    total_consumption_kwh: float
    total_generation_kwh: float
    total_cost: float
    units: Tuple[UnitBalance, ...] = ()
    deficit_kwh: float = 0.0
    deficit_cost: float = 0.0

    @property
    def net_balance_kwh(self) -> float:
        # positive = surplus, negative = deficit
        return self.total_generation_kwh - self.total_consumption_kwh

    @property
    def is_deficit(self) -> bool:
        return self.net_balance_kwh < 0


@dataclass(frozen=True)
class UnitWarning:
    unit_id: int
    error: str


@dataclass(frozen=True)
class SettlementResult:
    network_id: int
    period: str
    total_consumption_kwh: float
    total_generation_kwh: float
    net_balance_kwh: float
    total_cost: float
    deficit_kwh: float
    deficit_cost: float
    units: Tuple[UnitBalance, ...] = ()
    warnings: Tuple[UnitWarning, ...] = field(default_factory=tuple)
