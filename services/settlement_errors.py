# services/settlement_errors.py
from __future__ import annotations
from typing import Optional


class SettlementError(Exception):
    """Base class for everything the settlement pipeline raises."""


class InvalidPeriod(SettlementError):
    pass


class RateUnavailable(SettlementError):
    def __init__(self, unit_id: Optional[int], message: str):
        super().__init__(message)
        self.unit_id = unit_id


class ReadingFetchFailed(SettlementError):
    """
    Per-unit and recoverable: the aggregator attaches it to the unit's reading
    instead of raising, so the rest of the network still settles.
    """
    def __init__(self, unit_id: int, cause: BaseException):
        super().__init__(f"readings for unit {unit_id} unavailable: {cause}")
        self.unit_id = unit_id
        self.cause = cause


class SettlementTimeout(SettlementError):
    pass


class NetworkNotFound(SettlementError):
    def __init__(self, network_id: int):
        super().__init__(f"network {network_id} not found")
        self.network_id = network_id
