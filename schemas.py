from typing import List

from pydantic import BaseModel, ConfigDict, Field

from models import UnitKind
from services.settlement_types import SettlementResult


# =========================
# Network balance (wire shape: camelCase, as the dashboard reads it)
# =========================
class UnitBalanceRead(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: int
    name: str
    kind: UnitKind
    consumption_kwh: float = Field(alias="consumptionKWh")
    cost_per_kwh: float = Field(alias="costPerKWh")
    base_cost: float = Field(alias="baseCost")
    generation_kwh: float = Field(alias="generationKWh")
    deficit_share: float = Field(alias="deficitShare")
    total_cost: float = Field(alias="totalCost")


class UnitWarningRead(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    unit_id: int = Field(alias="unitId")
    error: str


class NetworkBalanceRead(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    network_id: int = Field(alias="networkId")
    period: str  # YYYY-MM
    total_consumption: float = Field(alias="totalConsumption")
    total_generation: float = Field(alias="totalGeneration")
    surplus: float  # generation - consumption; negative = deficit
    total_cost: float = Field(alias="totalCost")
    deficit_kwh: float = Field(alias="deficitKWh")
    deficit_cost: float = Field(alias="deficitCost")
    units: List[UnitBalanceRead]
    warnings: List[UnitWarningRead] = []

    @classmethod
    def from_result(cls, r: SettlementResult) -> "NetworkBalanceRead":
        return cls(
            network_id=r.network_id,
            period=r.period,
            total_consumption=r.total_consumption_kwh,
            total_generation=r.total_generation_kwh,
            surplus=r.net_balance_kwh,
            total_cost=r.total_cost,
            deficit_kwh=r.deficit_kwh,
            deficit_cost=r.deficit_cost,
            units=[
                UnitBalanceRead(
                    id=u.unit_id,
                    name=u.name,
                    kind=u.kind,
                    consumption_kwh=u.consumption_kwh,
                    cost_per_kwh=u.cost_per_kwh,
                    base_cost=u.base_cost,
                    generation_kwh=u.generation_kwh,
                    deficit_share=u.deficit_share,
                    total_cost=u.total_cost,
                )
                for u in r.units
            ],
            warnings=[UnitWarningRead(unit_id=w.unit_id, error=w.error) for w in r.warnings],
        )
