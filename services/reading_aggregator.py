# services/reading_aggregator.py
from __future__ import annotations
import asyncio
import logging
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, Iterable, Optional, Sequence

from models import Reading
from services import config
from services.settlement_errors import ReadingFetchFailed, SettlementTimeout
from services.settlement_types import Period, SettlementUnit, UnitReading

logger = logging.getLogger(__name__)

# (unit_id, start, end) -> rows with at least 'value' and 'reading_at'
ReadingLoader = Callable[[int, datetime, datetime], Awaitable[Iterable[Dict[str, Any]]]]


async def load_unit_readings(unit_id: int, start: datetime, end: datetime) -> Iterable[Dict[str, Any]]:
    """Default loader: readings of one unit inside the closed interval [start, end]."""
    return await (
        Reading.filter(unit_id=unit_id, reading_at__gte=start, reading_at__lte=end)
        .order_by("reading_at")
        .values("value", "reading_at")
    )


async def aggregate(
    unit: SettlementUnit,
    period: Period,
    loader: Optional[ReadingLoader] = None,
) -> UnitReading:
    """
    Sum one unit's readings for the period. A failing loader does not raise:
    the unit is zero-filled and carries a ReadingFetchFailed instead.
    """
    loader = loader or load_unit_readings
    try:
        rows = await loader(unit.id, period.start, period.end)
        total = 0.0
        for r in rows:
            ts = r.get("reading_at")
            # loaders may over-fetch; the period is authoritative
            if ts is None or not period.contains(ts):
                continue
            value = float(r.get("value") or 0.0)
            if value < 0:
                logger.warning("[readings] unit=%s skipping negative reading %s at %s", unit.id, value, ts)
                continue
            total += value
    except Exception as e:
        logger.warning("[readings] unit=%s period=%s fetch failed, zero-filled: %s", unit.id, period.label, e)
        return UnitReading(unit_id=unit.id, quantity_kwh=0.0, error=ReadingFetchFailed(unit.id, e))
    return UnitReading(unit_id=unit.id, quantity_kwh=total)


async def aggregate_all(
    units: Sequence[SettlementUnit],
    period: Period,
    loader: Optional[ReadingLoader] = None,
    *,
    max_concurrency: Optional[int] = None,
    timeout: Optional[float] = None,
) -> Dict[int, UnitReading]:
    """
    Fan out one aggregate() per unit (at most max_concurrency in flight) and
    join on all of them. Result keeps the order of `units`.

    Raises SettlementTimeout when the join does not finish in time; outstanding
    fetches are cancelled and nothing partial is returned.
    """
    limit = max(1, max_concurrency or config.SETTLEMENT_MAX_CONCURRENCY)
    if timeout is None:
        timeout = config.SETTLEMENT_TIMEOUT_SECONDS
    if timeout is not None and timeout <= 0:
        timeout = None

    sem = asyncio.Semaphore(limit)

    async def _one(unit: SettlementUnit) -> UnitReading:
        async with sem:
            return await aggregate(unit, period, loader)

    async def _join():
        return await asyncio.gather(*(_one(u) for u in units))

    try:
        results = await asyncio.wait_for(_join(), timeout)
    except asyncio.TimeoutError:
        logger.warning("[readings] period=%s aggregation of %d units timed out after %ss", period.label, len(units), timeout)
        raise SettlementTimeout(f"reading aggregation timed out after {timeout}s") from None

    return {r.unit_id: r for r in results}
