# services/balance_calculator.py
from __future__ import annotations
from typing import Dict, Mapping, Sequence, Union

from models import UnitKind
from services.settlement_types import NetworkBalance, SettlementUnit, UnitBalance, UnitReading

Rates = Union[float, Mapping[int, float]]


def _rate_for(rates: Rates, unit_id: int) -> float:
    if isinstance(rates, Mapping):
        return float(rates[unit_id])
    return float(rates)


def compute(
    units: Sequence[SettlementUnit],
    readings: Mapping[int, float],
    rates: Rates,
) -> NetworkBalance:
    """
    Per-unit rows and network totals, deficit shares not applied yet.

    Consumers: consumption = reading, base_cost = reading * rate.
    Generators: generation = reading, no cost.
    Units missing from `readings` count as zero.
    """
    total_consumption = 0.0
    total_generation = 0.0
    total_cost = 0.0
    rows = []

    for u in units:
        qty = float(readings.get(u.id, 0.0))
        rate = _rate_for(rates, u.id)
        if u.kind == UnitKind.CONSUMER:
            consumption, generation = qty, 0.0
            base_cost = qty * rate
        elif u.kind == UnitKind.GENERATOR:
            consumption, generation = 0.0, qty
            base_cost = 0.0
        else:
            raise ValueError(f"unit {u.id} has unknown kind {u.kind!r}")

        total_consumption += consumption
        total_generation += generation
        total_cost += base_cost
        rows.append(UnitBalance(
            unit_id=u.id,
            name=u.name,
            kind=u.kind,
            consumption_kwh=consumption,
            generation_kwh=generation,
            cost_per_kwh=rate,
            base_cost=base_cost,
            deficit_share=0.0,
            total_cost=base_cost,
        ))

    return NetworkBalance(
        total_consumption_kwh=total_consumption,
        total_generation_kwh=total_generation,
        total_cost=total_cost,
        units=tuple(rows),
    )


def readings_by_unit(unit_readings: Mapping[int, UnitReading]) -> Dict[int, float]:
    """Flatten aggregator output {unit_id: UnitReading} into {unit_id: kWh}."""
    return {uid: r.quantity_kwh for uid, r in unit_readings.items()}
