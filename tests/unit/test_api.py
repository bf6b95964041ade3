"""
Tests for the HTTP surface.
"""

import pytest
from fastapi.testclient import TestClient

from api.main import app, get_client
from core.errors import ConfigurationError, UpstreamFetchError
from tests.conftest import FakeFetcher, make_event, make_person

client = TestClient(app)


@pytest.fixture
def fake_fetcher(scenario_people):
    return FakeFetcher(
        people=scenario_people + [make_person("ada", status="Lead", Name="Ada", Email="ada@example.com")],
        events=[make_event("e1", "Lead", "2026-01-01T00:00:00Z"), make_event("e2", "Onboarded", "2026-01-02T00:00:00Z")],
    )


@pytest.fixture
def override_client(fake_fetcher):
    app.dependency_overrides[get_client] = lambda: fake_fetcher
    yield fake_fetcher
    app.dependency_overrides.clear()


def test_healthz_endpoint():
    response = client.get("/healthz")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_list_people(override_client):
    response = client.get("/api/people")
    assert response.status_code == 200
    data = response.json()
    assert len(data) == 101
    assert data[-1] == {"id": "ada", "Status": "Lead", "Name": "Ada", "Email": "ada@example.com"}


def test_list_people_with_search_and_status(override_client):
    response = client.get("/api/people", params={"q": "ADA@", "status": "Lead"})
    assert response.status_code == 200
    assert [p["id"] for p in response.json()] == ["ada"]


def test_list_funnel_events_keeps_order(override_client):
    response = client.get("/api/funnel-events")
    assert response.status_code == 200
    assert [e["id"] for e in response.json()] == ["e1", "e2"]


def test_patch_person_applies_fields(override_client):
    response = client.patch("/api/people/ada", json={"Status": "Closed", "Close Class": "Withdrew — After Call"})
    assert response.status_code == 200
    assert response.json()["Status"] == "Closed"
    assert override_client.updates == [("ada", {"Status": "Closed", "Close Class": "Withdrew — After Call"})]


def test_patch_person_with_empty_body_is_rejected(override_client):
    response = client.patch("/api/people/ada", json={})
    assert response.status_code == 400
    assert response.json()["error"] == "No fields to update"
    assert override_client.updates == []


def test_upstream_failure_returns_error_shape(override_client):
    override_client.people_error = UpstreamFetchError("NOT_AUTHORIZED", status_code=403)
    response = client.get("/api/people")
    assert response.status_code == 500
    assert response.json() == {"error": "NOT_AUTHORIZED", "type": "UpstreamFetchError"}


def test_configuration_failure_is_per_request(override_client):
    override_client.events_error = ConfigurationError("Missing Airtable configuration: AIRTABLE_BASE_ID")
    response = client.get("/api/funnel-events")
    assert response.status_code == 500
    assert "AIRTABLE_BASE_ID" in response.json()["error"]
    # other routes are unaffected
    assert client.get("/api/people").status_code == 200


def test_flow_graph_endpoint(override_client):
    response = client.get("/api/flow-graph")
    assert response.status_code == 200
    data = response.json()
    assert len(data["nodes"]) == 9
    assert {"source": "Applications", "target": "Closed/Rejected", "value": 45} in data["links"]
    assert all(link["value"] > 0 for link in data["links"])
    assert "layer" in data["charts"]["flow"]


def test_flow_graph_without_people_reports_no_data(override_client):
    override_client.people = []
    response = client.get("/api/flow-graph")
    assert response.status_code == 500
    assert response.json()["type"] == "NoDataError"


def test_overview_endpoint(override_client):
    response = client.get("/api/overview")
    assert response.status_code == 200
    data = response.json()
    assert data["total"] == 101
    assert data["status_counts"]["Closed"] == 55
    assert data["funnel"]["closed_initially"] == 45
    assert data["flow"]["nodes"][0]["name"] == "Applications"


def test_overview_fails_whole_when_events_fail(override_client):
    override_client.events_error = UpstreamFetchError("boom")
    response = client.get("/api/overview")
    assert response.status_code == 500
    assert response.json()["error"] == "boom"


@pytest.mark.parametrize("body", [["Status", "Closed"], "Closed", 42])
def test_patch_person_with_non_object_body_uses_error_shape(override_client, body):
    response = client.patch("/api/people/ada", json=body)
    assert response.status_code == 400
    data = response.json()
    assert set(data) == {"error", "type"}
    assert data["type"] == "RequestValidationError"
    assert override_client.updates == []
