"""HTTP endpoints served from a shared test database."""

import pytest
from fastapi.testclient import TestClient

from census_acs.main import create_app


@pytest.fixture(scope="module")
def client(db):
    with TestClient(create_app(db)) as c:
        yield c


def test_health(client):
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok", "transport": "stdio"}


def test_resolve(client):
    resp = client.get("/resolve", params={"location": "90210"})
    assert resp.status_code == 200
    assert resp.json() == {"geo_id": "860Z200US90210", "name": "90210"}


def test_resolve_not_found(client):
    resp = client.get("/resolve", params={"location": "Atlantis"})
    assert resp.status_code == 404


def test_locations(client):
    resp = client.get("/locations", params={"query": "San Diego", "summary_level": "county"})
    body = resp.json()
    assert [r["geo_id"] for r in body["results"]] == ["0500000US06073"]
    assert body["total_matches"] == 1


def test_geographies(client):
    resp = client.get(
        "/geographies", params={"summary_level": "050", "parent_geo_id": "0400000US48"}
    )
    assert [g["name"] for g in resp.json()["results"]] == ["Harris County, Texas"]


def test_rankings_sum(client):
    resp = client.get(
        "/rankings",
        params=[("metric_id", "B08301_010"), ("metric_id", "B08301_019"), ("summary_level", "050")],
    )
    assert resp.status_code == 200
    body = resp.json()
    assert body["results"][0]["geo_id"] == "0500000US06037"
    assert body["results"][0]["unit"] == "count"
    assert "national_percentile" not in body["results"][0]


def test_rankings_direct_has_percentile(client):
    resp = client.get("/rankings", params={"metric_id": "B01003_001", "summary_level": "040"})
    top = resp.json()["results"][0]
    assert top["geo_id"] == "0400000US06"
    assert top["national_percentile"] == 1.0


def test_rankings_bad_band(client):
    resp = client.get(
        "/rankings",
        params={"metric_id": "B01003_001", "percentile_min": 0.9, "percentile_max": 0.1},
    )
    assert resp.status_code == 400


def test_rankings_unknown_metric(client):
    resp = client.get("/rankings", params={"metric_id": "B99999_001"})
    assert resp.status_code == 404


def test_area_summary(client):
    resp = client.get("/area-summary", params={"location": "0500000US06073"})
    assert resp.json()["land_area_sq_miles"] == 4208.49


def test_compare(client):
    resp = client.get(
        "/compare",
        params={"location_a": "0500000US06037", "location_b": "0500000US06073", "table_ids": "B08301"},
    )
    assert len(resp.json()["comparisons"]) == 3


def test_catalog_endpoints(client):
    assert len(client.get("/topics").json()["topics"]) == 10
    assert client.get("/universes").json()["total_count"] == 3
    assert client.get("/search", params={"query": "walked"}).json()["total_matches"] == 1
    assert client.get("/tables/B01003").json()["labels"][0]["unique_id"] == "B01003_001"
    assert client.get("/tables/B99999").status_code == 404


def test_population_groups(client):
    groups = client.get("/population-groups").json()["groups"]
    assert groups[0]["code"] == "0000"


def test_interesting_facts(client):
    resp = client.get("/interesting-facts", params={"location": "0500000US06073"})
    assert len(resp.json()["facts"]) == 2
    assert client.get("/interesting-facts", params={"location": "x", "threshold": 0.9}).status_code == 422


def test_lookup_point(client, spatial):
    if not spatial:
        pytest.skip("DuckDB spatial extension not available")
    resp = client.get("/lookup", params={"latitude": 32.75, "longitude": -117.15})
    assert resp.json()["geo_id"] == "1400000US06073000100"
    resp = client.get("/lookup", params={"latitude": 0, "longitude": 0})
    assert resp.status_code == 404
