# main.py (lifespan-based)
from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.routing import APIRoute
from tortoise import Tortoise

from routers import network_balance
from services import config
from services.seeder import seed_if_empty

logger = logging.getLogger("uvicorn")


# ----- lifespan -----
@asynccontextmanager
async def lifespan(app: FastAPI):
    # 1) DB init
    await Tortoise.init(
        db_url=config.DB_URL,
        modules={"models": ["models"]},
    )
    await Tortoise.generate_schemas()

    # 2) Seeds (dev only)
    if config.SEED_ON_STARTUP:
        await seed_if_empty(logger=logger.info)

    logger.info(
        "[settlement] tariff_mode=%s default_rate=%s max_concurrency=%s timeout=%ss fold_deficit=%s",
        config.SETTLEMENT_TARIFF_MODE,
        config.SETTLEMENT_DEFAULT_RATE,
        config.SETTLEMENT_MAX_CONCURRENCY,
        config.SETTLEMENT_TIMEOUT_SECONDS,
        config.SETTLEMENT_FOLD_DEFICIT,
    )
    try:
        yield
    finally:
        await Tortoise.close_connections()


# ----- app & routers -----
app = FastAPI(lifespan=lifespan, title="Shared Solar Settlement API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["Content-Disposition"],
)

app.include_router(network_balance.router)


@app.get("/healthz")
async def healthz():
    return {"status": "ok"}


for route in app.routes:
    if isinstance(route, APIRoute):
        logger.info("%s -> %s", list(route.methods), route.path)
