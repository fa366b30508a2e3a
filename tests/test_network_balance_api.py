"""HTTP surface of the settlement engine, DB replaced by in-memory sources."""

from typing import Optional

import pytest
from fastapi.testclient import TestClient

from conftest import make_loader, unit
from main import app
from models import UnitKind
from routers.network_balance import BalanceService, get_balance_service
from services.settlement import settle_network
from services.settlement_errors import NetworkNotFound, SettlementTimeout
from services.settlement_types import Period
from services.tariff_resolver import FlatTariffResolver, HistoryTariffResolver

UNITS = [
    unit(1, UnitKind.CONSUMER, "Consumer A"),
    unit(2, UnitKind.CONSUMER, "Consumer B"),
    unit(3, UnitKind.GENERATOR, "Generator G"),
]


class FakeBalanceService(BalanceService):
    def __init__(self, generation: float = 300.0, resolver=None, fail_with: Optional[Exception] = None):
        self.generation = generation
        self.resolver = resolver or FlatTariffResolver(0.75)
        self.fail_with = fail_with
        self.seen = []

    async def settle(self, network_id, period, fold_deficit=None):
        self.seen.append((network_id, period, fold_deficit))
        if self.fail_with:
            raise self.fail_with
        at = period.start
        loader = make_loader({
            1: [{"value": 100, "reading_at": at}],
            2: [{"value": 300, "reading_at": at}],
            3: [{"value": self.generation, "reading_at": at}],
        })
        return await settle_network(network_id, period, UNITS, self.resolver, loader, fold_deficit=fold_deficit)

    async def network_name(self, network_id):
        return "Rede Teste"


@pytest.fixture
def fake():
    return FakeBalanceService()


@pytest.fixture
def client(fake):
    app.dependency_overrides[get_balance_service] = lambda: fake
    # no context manager: lifespan (DB init) is not needed here
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_balance_deficit_payload(client, fake):
    resp = client.get("/networks/7/balance", params={"period": "2025-05"})
    assert resp.status_code == 200
    body = resp.json()

    assert body["networkId"] == 7
    assert body["period"] == "2025-05"
    assert body["totalConsumption"] == 400.0
    assert body["totalGeneration"] == 300.0
    assert body["surplus"] == -100.0
    assert body["totalCost"] == 375.0
    assert body["deficitKWh"] == 100.0
    assert body["deficitCost"] == 75.0
    assert body["warnings"] == []

    a = body["units"][0]
    assert set(a) == {
        "id", "name", "kind", "consumptionKWh", "costPerKWh", "baseCost",
        "generationKWh", "deficitShare", "totalCost",
    }
    assert a["kind"] == "Consumer"
    assert a["baseCost"] == 75.0
    assert a["deficitShare"] == 18.75
    assert a["totalCost"] == 93.75
    assert body["units"][2]["kind"] == "Generator"
    assert body["units"][2]["totalCost"] == 0.0


def test_balance_without_folding(client, fake):
    resp = client.get("/networks/7/balance", params={"period": "2025-05", "fold_deficit": "false"})
    body = resp.json()
    assert body["totalCost"] == 300.0
    assert body["units"][0]["deficitShare"] == 18.75
    assert body["units"][0]["totalCost"] == 75.0
    assert fake.seen[-1][2] is False


def test_balance_month_year_params(client, fake):
    resp = client.get("/networks/7/balance", params={"month": 2, "year": 2024})
    assert resp.status_code == 200
    assert fake.seen[-1][1] == Period.for_month(2024, 2)


@pytest.mark.parametrize("params", [{"period": "2025-13"}, {"period": "may"}, {"month": 3}])
def test_balance_invalid_period(client, params):
    resp = client.get("/networks/7/balance", params=params)
    assert resp.status_code == 400


def test_balance_network_not_found(fake, client):
    fake.fail_with = NetworkNotFound(99)
    resp = client.get("/networks/99/balance", params={"period": "2025-05"})
    assert resp.status_code == 404
    assert "99" in resp.json()["detail"]


def test_balance_rate_unavailable(fake, client):
    fake.resolver = HistoryTariffResolver([])
    resp = client.get("/networks/7/balance", params={"period": "2025-05"})
    assert resp.status_code == 422


def test_balance_timeout(fake, client):
    fake.fail_with = SettlementTimeout("reading aggregation timed out after 0.1s")
    resp = client.get("/networks/7/balance", params={"period": "2025-05"})
    assert resp.status_code == 504


def test_export_csv(client):
    resp = client.get("/networks/7/balance/export.csv", params={"period": "2025-05"})
    assert resp.status_code == 200
    assert resp.headers["content-type"].startswith("text/csv")
    assert 'filename="balanco-rede-7-2025-05.csv"' in resp.headers["content-disposition"]
    lines = resp.content.decode("utf-8").splitlines()
    assert lines[0].startswith("ID,Nome,Tipo")
    assert lines[-1] == "Total,,,400.0,,375.00,300.0,"


def test_export_pdf(client):
    resp = client.get("/networks/7/balance/export.pdf", params={"period": "2025-05"})
    assert resp.status_code == 200
    assert resp.headers["content-type"] == "application/pdf"
    assert resp.content.startswith(b"%PDF")


def test_healthz():
    assert TestClient(app).get("/healthz").json() == {"status": "ok"}
