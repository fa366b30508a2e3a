# services/settlement_report.py
from __future__ import annotations
import decimal
import math
from dataclasses import replace
from typing import Iterable, Sequence

from services.settlement_types import (
    NetworkBalance,
    Period,
    SettlementResult,
    UnitBalance,
    UnitReading,
    UnitWarning,
)

MONEY_PLACES = 2
ENERGY_PLACES = 3
RATE_PLACES = 4


def _round(x: float, places: int) -> float:
    q = decimal.Decimal(10) ** (-places)
    r = decimal.Decimal(str(x)).quantize(q, rounding=decimal.ROUND_HALF_UP)
    # normalise -0.0
    return float(r) + 0.0


def money(x: float) -> float:
    return _round(x, MONEY_PLACES)


def energy(x: float) -> float:
    return _round(x, ENERGY_PLACES)


def _round_unit(u: UnitBalance, share: float) -> UnitBalance:
    base_cost = money(u.base_cost)
    folded = u.deficit_share > 0 and math.isclose(u.total_cost, u.base_cost + u.deficit_share, abs_tol=1e-9)
    return replace(
        u,
        consumption_kwh=energy(u.consumption_kwh),
        generation_kwh=energy(u.generation_kwh),
        cost_per_kwh=_round(u.cost_per_kwh, RATE_PLACES),
        base_cost=base_cost,
        deficit_share=share,
        total_cost=money(base_cost + share) if folded else base_cost,
    )


def _split_cents(shares: Sequence[float], total: float) -> list[float]:
    """
    Round shares to cents so they add up to money(total): floor every share,
    then hand the leftover cents to the largest remainders (ties go to the
    earlier row).
    """
    if not any(s > 0 for s in shares):
        return [money(s) for s in shares]
    cent = decimal.Decimal("0.01")
    exact = [decimal.Decimal(str(s)) / cent for s in shares]
    floors = [int(e.to_integral_value(rounding=decimal.ROUND_FLOOR)) for e in exact]
    target = int(decimal.Decimal(str(money(total))) / cent)
    leftover = max(0, min(len(shares), target - sum(floors)))
    by_remainder = sorted(range(len(shares)), key=lambda i: (-(exact[i] - floors[i]), i))
    for i in by_remainder[:leftover]:
        floors[i] += 1
    return [float(decimal.Decimal(c) * cent) + 0.0 for c in floors]


def warnings_from(readings: Iterable[UnitReading]) -> Sequence[UnitWarning]:
    return tuple(UnitWarning(unit_id=r.unit_id, error=str(r.error)) for r in readings if r.degraded)


def build(
    balance: NetworkBalance,
    *,
    network_id: int,
    period: Period,
    warnings: Sequence[UnitWarning] = (),
) -> SettlementResult:
    """
    Presentation shape of a balance. Rounding happens here and only here.

    Network cost totals are summed from the rounded rows, so total_cost always
    equals the sum of the units' total_cost and deficit_cost the sum of their
    deficit_share (when a share was allocated at all).
    """
    shares = _split_cents([u.deficit_share for u in balance.units], balance.deficit_cost)
    units = tuple(_round_unit(u, s) for u, s in zip(balance.units, shares))
    allocated = any(s > 0 for s in shares)
    return SettlementResult(
        network_id=network_id,
        period=period.label,
        total_consumption_kwh=energy(balance.total_consumption_kwh),
        total_generation_kwh=energy(balance.total_generation_kwh),
        net_balance_kwh=energy(balance.net_balance_kwh),
        total_cost=money(sum(u.total_cost for u in units)),
        deficit_kwh=energy(balance.deficit_kwh),
        deficit_cost=money(sum(shares)) if allocated else money(balance.deficit_cost),
        units=units,
        warnings=tuple(warnings),
    )
