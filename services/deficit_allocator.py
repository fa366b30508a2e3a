# services/deficit_allocator.py
from __future__ import annotations
import logging
from dataclasses import replace

from models import UnitKind
from services.settlement_types import NetworkBalance

logger = logging.getLogger(__name__)


def network_deficit_rate(balance: NetworkBalance) -> float:
    """
    Rate used to price the deficit. A network with one rate gets exactly that
    rate; mixed rates fall back to the consumption-weighted mean.
    """
    consumers = [u for u in balance.units if u.kind == UnitKind.CONSUMER]
    if not consumers:
        return 0.0
    distinct = {u.cost_per_kwh for u in consumers}
    if len(distinct) == 1:
        return next(iter(distinct))
    weight = sum(u.consumption_kwh for u in consumers)
    if weight <= 0:
        return 0.0
    return sum(u.consumption_kwh * u.cost_per_kwh for u in consumers) / weight


def allocate(balance: NetworkBalance, rate: float, *, fold_into_total: bool = True) -> NetworkBalance:
    """
    Spread the cost of a network deficit over consumers, proportional to each
    consumer's share of consumption. Returns a new balance; surplus (or even)
    networks come back unchanged.

    deficit_share is always filled in. With fold_into_total=False the
    consumers' total_cost stays at their base cost and billing the share is
    left to the caller.
    """
    if rate < 0:
        raise ValueError(f"rate must be >= 0, got {rate!r}")
    if not balance.is_deficit:
        return balance

    deficit_kwh = abs(balance.net_balance_kwh)
    deficit_cost = deficit_kwh * rate
    consumer_kwh = sum(u.consumption_kwh for u in balance.units if u.kind == UnitKind.CONSUMER)

    if consumer_kwh <= 0:
        # nobody to bill
        logger.info("[settlement] deficit of %.3f kWh with no consuming units, nothing allocated", deficit_kwh)
        return replace(balance, deficit_kwh=deficit_kwh, deficit_cost=deficit_cost)

    rows = []
    total_cost = 0.0
    for u in balance.units:
        if u.kind == UnitKind.CONSUMER:
            share = (u.consumption_kwh / consumer_kwh) * deficit_cost
            row = replace(
                u,
                deficit_share=share,
                total_cost=u.base_cost + share if fold_into_total else u.base_cost,
            )
        else:
            row = replace(u, deficit_share=0.0)
        total_cost += row.total_cost
        rows.append(row)

    return replace(
        balance,
        units=tuple(rows),
        total_cost=total_cost,
        deficit_kwh=deficit_kwh,
        deficit_cost=deficit_cost,
    )
