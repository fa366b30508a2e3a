# routers/network_balance.py
from __future__ import annotations
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response

from models import Network
from schemas import NetworkBalanceRead
from services.balance_export import build_csv_bytes, build_pdf_bytes
from services.settlement import settle_network_from_db
from services.settlement_errors import (
    InvalidPeriod,
    NetworkNotFound,
    RateUnavailable,
    SettlementError,
    SettlementTimeout,
)
from services.settlement_types import Period, SettlementResult

router = APIRouter(prefix="/networks", tags=["network-balance"])


class BalanceService:
    """DB-backed settlement; swapped out in tests via dependency_overrides."""

    async def settle(self, network_id: int, period: Period, fold_deficit: Optional[bool] = None) -> SettlementResult:
        return await settle_network_from_db(network_id, period, fold_deficit=fold_deficit)

    async def network_name(self, network_id: int) -> Optional[str]:
        net = await Network.get_or_none(id=network_id)
        return net.name if net else None


def get_balance_service() -> BalanceService:
    return BalanceService()


def _period(period: Optional[str], month: Optional[int], year: Optional[int]) -> Period:
    try:
        if month is not None or year is not None:
            if month is None or year is None:
                raise InvalidPeriod("month and year must be given together")
            return Period.for_month(year, month)
        return Period.parse(period)
    except InvalidPeriod as e:
        raise HTTPException(status_code=400, detail=str(e))


async def _settle(svc: BalanceService, network_id: int, period: Period, fold_deficit: Optional[bool]) -> SettlementResult:
    try:
        return await svc.settle(network_id, period, fold_deficit)
    except InvalidPeriod as e:
        raise HTTPException(status_code=400, detail=str(e))
    except NetworkNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    except RateUnavailable as e:
        raise HTTPException(status_code=422, detail=str(e))
    except SettlementTimeout as e:
        raise HTTPException(status_code=504, detail=str(e))
    except SettlementError as e:
        raise HTTPException(status_code=500, detail=str(e))


@router.get("/{network_id}/balance", response_model=NetworkBalanceRead)
async def get_network_balance(
    network_id: int,
    period: Optional[str] = Query(None, description="YYYY-MM; defaults to the current month"),
    month: Optional[int] = Query(None, ge=1, le=12),
    year: Optional[int] = Query(None),
    fold_deficit: Optional[bool] = Query(None, description="include deficit share in totalCost"),
    svc: BalanceService = Depends(get_balance_service),
):
    """
    Settlement of a network for one month: per-unit consumption/generation,
    base cost, deficit share and totals.
    """
    p = _period(period, month, year)
    result = await _settle(svc, network_id, p, fold_deficit)
    return NetworkBalanceRead.from_result(result)


@router.get("/{network_id}/balance/export.csv")
async def export_network_balance_csv(
    network_id: int,
    period: Optional[str] = Query(None),
    month: Optional[int] = Query(None, ge=1, le=12),
    year: Optional[int] = Query(None),
    fold_deficit: Optional[bool] = Query(None),
    svc: BalanceService = Depends(get_balance_service),
):
    p = _period(period, month, year)
    result = await _settle(svc, network_id, p, fold_deficit)
    return Response(
        content=build_csv_bytes(result),
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="balanco-rede-{network_id}-{p.label}.csv"'},
    )


@router.get("/{network_id}/balance/export.pdf")
async def export_network_balance_pdf(
    network_id: int,
    period: Optional[str] = Query(None),
    month: Optional[int] = Query(None, ge=1, le=12),
    year: Optional[int] = Query(None),
    fold_deficit: Optional[bool] = Query(None),
    svc: BalanceService = Depends(get_balance_service),
):
    p = _period(period, month, year)
    result = await _settle(svc, network_id, p, fold_deficit)
    name = await svc.network_name(network_id)
    return Response(
        content=build_pdf_bytes(result, name),
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="balanco-energetico-{network_id}-{p.label}.pdf"'},
    )
