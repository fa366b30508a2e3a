# services/settlement.py
from __future__ import annotations
import asyncio
import logging
from typing import Optional, Sequence

from models import Network, Unit
from services import config
from services.balance_calculator import compute, readings_by_unit
from services.deficit_allocator import allocate, network_deficit_rate
from services.reading_aggregator import ReadingLoader, aggregate_all
from services.settlement_errors import NetworkNotFound, SettlementTimeout
from services.settlement_report import build, warnings_from
from services.settlement_types import Period, SettlementResult, SettlementUnit
from services.tariff_resolver import (
    FlatTariffResolver,
    HistoryTariffResolver,
    TariffResolver,
    load_tariffs,
    resolve_rates,
)

logger = logging.getLogger(__name__)


async def settle_network(
    network_id: int,
    period: Period,
    units: Sequence[SettlementUnit],
    resolver: TariffResolver,
    loader: Optional[ReadingLoader] = None,
    *,
    max_concurrency: Optional[int] = None,
    timeout: Optional[float] = None,
    fold_deficit: Optional[bool] = None,
) -> SettlementResult:
    """
    Rates -> readings (fan-out/fan-in) -> balance -> deficit shares -> result.

    Rates are resolved before any reading is fetched so a missing tariff fails
    fast. RateUnavailable and SettlementTimeout propagate; a unit whose
    readings could not be fetched settles at zero and is listed in warnings.
    """
    if fold_deficit is None:
        fold_deficit = config.SETTLEMENT_FOLD_DEFICIT

    rates = resolve_rates(resolver, units, period)
    unit_readings = await aggregate_all(
        units, period, loader, max_concurrency=max_concurrency, timeout=timeout
    )

    balance = compute(units, readings_by_unit(unit_readings), rates)
    if balance.is_deficit:
        balance = allocate(balance, network_deficit_rate(balance), fold_into_total=fold_deficit)

    result = build(
        balance,
        network_id=network_id,
        period=period,
        warnings=warnings_from(unit_readings.values()),
    )
    logger.info(
        "[settlement] network=%s period=%s units=%d consumption=%.3f generation=%.3f net=%.3f cost=%.2f degraded=%d",
        network_id, period.label, len(units),
        result.total_consumption_kwh, result.total_generation_kwh,
        result.net_balance_kwh, result.total_cost, len(result.warnings),
    )
    return result


async def load_network_units(network_id: int) -> list[SettlementUnit]:
    if not await Network.exists(id=network_id):
        raise NetworkNotFound(network_id)
    rows = await Unit.filter(network_id=network_id).order_by("id")
    return [SettlementUnit.from_model(u) for u in rows]


async def build_resolver(units: Sequence[SettlementUnit]) -> TariffResolver:
    if config.SETTLEMENT_TARIFF_MODE == "flat":
        if config.SETTLEMENT_DEFAULT_RATE is None:
            raise RuntimeError("SETTLEMENT_TARIFF_MODE=flat requires SETTLEMENT_DEFAULT_RATE")
        return FlatTariffResolver(config.SETTLEMENT_DEFAULT_RATE)
    tariffs = await load_tariffs(u.concessionaire_id for u in units)
    return HistoryTariffResolver(tariffs, default_rate=config.SETTLEMENT_DEFAULT_RATE)


async def settle_network_from_db(
    network_id: int,
    period: Period,
    *,
    fold_deficit: Optional[bool] = None,
    loader: Optional[ReadingLoader] = None,
) -> SettlementResult:
    """
    Load units and tariffs, then settle. SETTLEMENT_TIMEOUT_SECONDS bounds the
    whole call, DB loads included.
    """
    async def _run() -> SettlementResult:
        units = await load_network_units(network_id)
        resolver = await build_resolver(units)
        return await settle_network(network_id, period, units, resolver, loader, fold_deficit=fold_deficit)

    timeout = config.SETTLEMENT_TIMEOUT_SECONDS
    if timeout is not None and timeout <= 0:
        timeout = None
    try:
        return await asyncio.wait_for(_run(), timeout)
    except asyncio.TimeoutError:
        logger.warning("[settlement] network=%s period=%s timed out after %ss", network_id, period.label, timeout)
        raise SettlementTimeout(f"settlement timed out after {timeout}s") from None
