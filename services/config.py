# services/config.py
from __future__ import annotations
import os
from typing import Optional

# ------------------------------------------------------------------------------
# Helper: get env var with fallback
# ------------------------------------------------------------------------------
def _env(name: str, default: str = "") -> str:
    v = os.getenv(name)
    return v if v is not None and v != "" else default

def _env_bool(name: str, default: bool) -> bool:
    return _env(name, "true" if default else "false").strip().lower() in {"1", "true", "yes", "on"}

def _env_rate(name: str) -> Optional[float]:
    raw = _env(name, "")
    return float(raw) if raw else None

# ------------------------------------------------------------------------------
# Database
# ------------------------------------------------------------------------------
DB_URL: str = _env("DB_URL", "sqlite://./db.sqlite3")
SEED_ON_STARTUP: bool = _env_bool("SEED_ON_STARTUP", False)

CORS_ORIGINS: list[str] = [
    o.strip() for o in _env("CORS_ORIGINS", "http://localhost:5173,http://127.0.0.1:5173").split(",") if o.strip()
]

# ------------------------------------------------------------------------------
# Settlement engine
# ------------------------------------------------------------------------------
# Upper bound on concurrent per-unit reading fetches.
SETTLEMENT_MAX_CONCURRENCY: int = int(_env("SETTLEMENT_MAX_CONCURRENCY", "8"))
# Deadline for one settlement (DB loads and reading fan-out); an expired deadline fails the request (no partial totals).
SETTLEMENT_TIMEOUT_SECONDS: float = float(_env("SETTLEMENT_TIMEOUT_SECONDS", "30"))

# Fallback R$/kWh when no tariff record covers the period. Empty = no fallback (RateUnavailable).
SETTLEMENT_DEFAULT_RATE: Optional[float] = _env_rate("SETTLEMENT_DEFAULT_RATE")

# "history": per-concessionaire tariff lookup; "flat": SETTLEMENT_DEFAULT_RATE for every unit.
SETTLEMENT_TARIFF_MODE: str = _env("SETTLEMENT_TARIFF_MODE", "history").lower()

# Whether consumers' total_cost includes their deficit share.
SETTLEMENT_FOLD_DEFICIT: bool = _env_bool("SETTLEMENT_FOLD_DEFICIT", True)

# ---------------- CSV map (YAML) ----------------
CSV_MAP_FILE: str = _env("CSV_MAP_FILE", "config/balance_csv_map.yaml")
