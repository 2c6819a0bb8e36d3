"""
FastAPI endpoint tests for the Property Reconciler API.

Uses httpx + FastAPI TestClient — no real server needed, no LLM calls.
"""

from __future__ import annotations

import api
import pytest
from api import app
from fastapi.testclient import TestClient

from property_reconciler.config import Settings
from property_reconciler.pipeline import PropertyReconciliationPipeline

client = TestClient(app)


@pytest.fixture(scope="module", autouse=True)
def _warm_pipeline() -> None:
    """Initialise the pipeline once for all API tests (bypasses lifespan)."""
    api._pipeline = PropertyReconciliationPipeline(settings=Settings(openai_api_key=None))
    yield  # type: ignore[misc]
    api._pipeline = None


# ─── Sample provider payloads (same as main.py) ─────────────────────

ADDRESS = "1100 Congress Ave, Austin, TX 78701"

SOURCES = [
    {
        "source": "zillow",
        "data": {
            "address": ADDRESS,
            "zestimate": 602300,
            "bedrooms": 3,
            "bathrooms": 2.5,
            "sqft": 1850,
            "year_built": 1995,
            "latitude": 30.2747,
            "longitude": -97.7404,
        },
    },
    {
        "source": "county-assessor",
        "confidence": 0.6,
        "data": {
            "parcel_number": "0203-1105-0712",
            "zoning": "SF-3",
            "year_built": 1998,
            "sqft": "1,920",
            "bedrooms": 3,
            "bathrooms": 2,
        },
    },
    {"source": "redfin", "error": "Listing not found"},
]


class TestHealthEndpoint:
    def test_health_returns_200(self) -> None:
        resp = client.get("/health")
        assert resp.status_code == 200

    def test_health_response_shape(self) -> None:
        data = client.get("/health").json()
        assert data["status"] == "healthy"
        assert data["version"] == "1.0.0"
        assert "county-assessor" in data["sources_supported"]
        assert data["fields_reconciled"] >= 18


class TestReconcileEndpoint:
    def test_returns_unified_record(self) -> None:
        resp = client.post("/reconcile", json={"address": ADDRESS, "sources": SOURCES})
        assert resp.status_code == 200
        record = resp.json()["record"]
        assert record["details"]["year_built"] == 1998
        assert record["regulatory"]["zoning"] == "SF-3"
        assert record["address"]["state"] == "TX"

    def test_conflicts_reported(self) -> None:
        data = client.post("/reconcile", json={"address": ADDRESS, "sources": SOURCES}).json()
        fields = {c["field"] for c in data["conflicts"]}
        assert "year_built" in fields
        assert data["conflict_count"] == len(data["conflicts"])

        year = next(c for c in data["conflicts"] if c["field"] == "year_built")
        assert year["resolved"] == 1998
        assert year["resolution"] == "highest-priority"

    def test_failed_source_in_errors(self) -> None:
        data = client.post("/reconcile", json={"address": ADDRESS, "sources": SOURCES}).json()
        assert data["errors"] == [{"source": "redfin", "error": "Listing not found"}]

    def test_rooms_and_metadata(self) -> None:
        data = client.post("/reconcile", json={"address": ADDRESS, "sources": SOURCES}).json()
        record = data["record"]
        assert data["completeness"] == record["metadata"]["completeness"]
        assert len(record["metadata"]["input_hash"]) == 64  # SHA-256 hex
        assert all(r["layout"]["source"] == "heuristic" for r in record["rooms"])

    def test_grounding_without_key_is_a_source_error(self) -> None:
        resp = client.post(
            "/reconcile",
            json={"address": ADDRESS, "sources": SOURCES, "include_grounding": True},
        )
        assert resp.status_code == 200
        errors = {e["source"]: e["error"] for e in resp.json()["errors"]}
        assert errors["google-grounding"] == "OpenAI API key not configured"

    def test_all_sources_failed_returns_502(self) -> None:
        resp = client.post(
            "/reconcile",
            json={"address": ADDRESS, "sources": [{"source": "zillow", "error": "blocked"}]},
        )
        assert resp.status_code == 502
        detail = resp.json()["detail"]
        assert detail["code"] == "NO_DATA_FOUND"
        assert detail["errors"][0]["source"] == "zillow"

    def test_duplicate_source_returns_400(self) -> None:
        resp = client.post(
            "/reconcile",
            json={
                "address": ADDRESS,
                "sources": [
                    {"source": "zillow", "data": {"year_built": 1995}},
                    {"source": "zillow", "data": {"year_built": 1996}},
                ],
            },
        )
        assert resp.status_code == 400


class TestRequestValidation:
    def test_empty_body_returns_422(self) -> None:
        resp = client.post("/reconcile", json={})
        assert resp.status_code == 422

    def test_too_short_address_returns_422(self) -> None:
        resp = client.post("/reconcile", json={"address": "1 Mx"})
        assert resp.status_code == 422

    def test_unknown_source_returns_422(self) -> None:
        resp = client.post(
            "/reconcile", json={"address": ADDRESS, "sources": [{"source": "trulia"}]}
        )
        assert resp.status_code == 422

    def test_confidence_out_of_range_returns_422(self) -> None:
        resp = client.post(
            "/reconcile",
            json={"address": ADDRESS, "sources": [{"source": "zillow", "confidence": 1.5}]},
        )
        assert resp.status_code == 422


class TestRoomsEndpoint:
    def test_single_story_layout(self) -> None:
        resp = client.post(
            "/rooms", json={"living_area": 2000, "stories": 1, "bedrooms": 3, "bathrooms": 2}
        )
        assert resp.status_code == 200
        data = resp.json()
        assert data["count"] == 9
        assert {r["floor"] for r in data["rooms"]} == {1}

    def test_deterministic(self) -> None:
        body = {"living_area": 1800, "stories": 2, "bedrooms": 2, "bathrooms": 1.5}
        first = client.post("/rooms", json=body).json()
        second = client.post("/rooms", json=body).json()
        assert first == second

    def test_defaults(self) -> None:
        data = client.post("/rooms", json={}).json()
        assert data["count"] == 9

    def test_zero_stories_returns_422(self) -> None:
        resp = client.post("/rooms", json={"stories": 0})
        assert resp.status_code == 422
