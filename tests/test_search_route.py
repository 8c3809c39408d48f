"""Tests for the search, suppliers and health routes."""

from fastapi import FastAPI
from fastapi.testclient import TestClient

from conftest import FakeTabPlatform, SUPPLIER_A_CONFIG, read_fixture
from core.search_orchestrator import SearchOrchestrator
from core.suppliers import SupplierRegistry
from core.types import SearchSettings
from services.api.dependencies import get_orchestrator
from services.api.routes.health import router as health_router
from services.api.routes.search import router as search_router


def _create_test_app(orchestrator: SearchOrchestrator) -> FastAPI:
    app = FastAPI()

    async def _get_orchestrator_override():
        return orchestrator

    app.dependency_overrides[get_orchestrator] = _get_orchestrator_override
    app.include_router(search_router, prefix="/api")
    app.include_router(health_router, prefix="/api")
    return app


def _orchestrator(**platform_options) -> SearchOrchestrator:
    platform = FakeTabPlatform(
        documents={
            "supplier-a.example": read_fixture("supplier_a_search.html"),
            "mobilax.fr": read_fixture("mobilax_search.html"),
            "utopya.fr": read_fixture("utopya_search.html"),
        },
        **platform_options,
    )
    return SearchOrchestrator(
        platform,
        suppliers=SupplierRegistry.from_config(SUPPLIER_A_CONFIG),
        settings=SearchSettings(
            load_timeout_seconds=0.2,
            hydration_delay_seconds=0.01,
            agent_settle_seconds=0.01,
            agent_response_timeout_seconds=0.2,
        ),
    )


def test_search_success() -> None:
    app = _create_test_app(_orchestrator())

    with TestClient(app) as client:
        response = client.post("/api/search", json={"supplier": "supplierA", "query": "ecran"})

    assert response.status_code == 200
    payload = response.json()
    assert payload["supplier"] == "suppliera"
    assert "error" not in payload
    assert [p["name"] for p in payload["products"]] == ["Ecran iPhone 11 Noir", "Batterie iPhone 11"]
    assert payload["products"][0]["supplier_label"] == "SupplierA"
    assert payload["products"][0]["availability"] == "in_stock"


def test_search_unknown_supplier_is_404() -> None:
    app = _create_test_app(_orchestrator())

    with TestClient(app) as client:
        response = client.post("/api/search", json={"supplier": "nowhere", "query": "ecran"})

    assert response.status_code == 404
    assert "nowhere" in response.json()["detail"]


def test_search_failure_is_reported_not_raised() -> None:
    orchestrator = _orchestrator(auto_agent=False, install_works=False)
    app = _create_test_app(orchestrator)

    with TestClient(app) as client:
        response = client.post("/api/search", json={"supplier": "mobilax", "query": "ecran"})
        health = client.get("/api/health")

    assert response.status_code == 200
    assert response.json()["products"] == []
    assert "Mobilax" in response.json()["error"]

    assert health.json() == {
        "status": "ok",
        "tabs": {"mobilax": "settled"},
        "errors": {"no_agent": 1},
    }


def test_search_rejects_empty_query() -> None:
    app = _create_test_app(_orchestrator())

    with TestClient(app) as client:
        response = client.post("/api/search", json={"supplier": "mobilax", "query": ""})

    assert response.status_code == 422


def test_batch_search_merges_by_price() -> None:
    app = _create_test_app(_orchestrator())

    with TestClient(app) as client:
        response = client.post(
            "/api/search/batch", json={"suppliers": ["mobilax", "utopya"], "query": "iphone 11"}
        )

    assert response.status_code == 200
    payload = response.json()
    prices = [p["price"] for p in payload["products"]]
    assert len(prices) == 5
    assert prices[-1] == 0
    assert prices[:-1] == sorted(prices[:-1])
    assert payload["errors"] == {}


def test_list_suppliers() -> None:
    app = _create_test_app(_orchestrator())

    with TestClient(app) as client:
        response = client.get("/api/suppliers")

    assert response.status_code == 200
    keys = {s["key"]: s for s in response.json()}
    assert set(keys) == {"mobilax", "utopya", "suppliera"}
    assert keys["suppliera"]["domains"] == ["supplier-a.example"]
