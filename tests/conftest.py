"""Shared fixtures: a miniature census catalog built into temp DuckDB files."""

from __future__ import annotations

import duckdb
import pytest

from census_acs.config import JSON_DB_FILE, PCT_DB_FILE, Settings
from census_acs.db import Database


def _box(x0: float, y0: float, x1: float, y1: float) -> str:
    return f"POLYGON(({x0} {y0}, {x1} {y0}, {x1} {y1}, {x0} {y1}, {x0} {y0}))"


CA_BOX = _box(-125, 32, -114, 42)
SD_BOX = _box(-118, 32, -116, 33.5)

# geo_id, name, aland (sq m), boundary
GEOMETRIES = [
    ("0400000US06", "California", 403_500_000_000, CA_BOX),
    ("04000A0US06", "California", 403_500_000_000, CA_BOX),
    ("0400000US48", "Texas", 676_600_000_000, _box(-106, 26, -93, 36)),
    ("0400000US53", "Washington", 172_100_000_000, _box(-125, 45.5, -117, 49)),
    ("0500000US06003", "Alpine County, California", 1_912_000_000, _box(-120.1, 38.4, -119.5, 38.9)),
    ("0500000US06037", "Los Angeles County, California", 10_510_000_000, _box(-119, 33.7, -117.6, 34.9)),
    ("0500000US06073", "San Diego County, California", 10_900_000_000, SD_BOX),
    ("0500000US48201", "Harris County, Texas", 4_410_000_000, _box(-95.9, 29.5, -94.9, 30.2)),
    ("0500000US53033", "King County, Washington", 5_480_000_000, _box(-122.5, 47.1, -121, 47.8)),
    ("3100000US41740", "San Diego-Chula Vista-Carlsbad, CA Metro Area", 10_900_000_000, SD_BOX),
    (
        "1400000US06073000100",
        "Census Tract 1, San Diego County, California",
        1_500_000,
        _box(-117.2, 32.7, -117.1, 32.8),
    ),
    ("860Z200US90210", "Unknown", 26_000_000, _box(-118.45, 34.05, -118.38, 34.12)),
]

# geo_id, title, universe, labels_data
GEO_LOOKUP = [
    ("0500000US06073", "Total Population", "Total population", '{"Total": 3300000}'),
    (
        "0500000US06073",
        "Means of Transportation to Work",
        "Workers 16 years and over",
        '{"Total": 1600000, "Walked": 40000}',
    ),
    ("1400000US06073000100", "Total Population", "Total population", '{"Total": 4000}'),
    (
        "1400000US06073000100",
        "Median Household Income in the Past 12 Months",
        "Households",
        '{"Median household income in the past 12 months": 61000}',
    ),
]

COMMUTE_TITLE = "Means of Transportation to Work"
INCOME_TITLE = "Median Household Income in the Past 12 Months"

# table_id, unique_id, line, label, title, universe
TABLE_METADATA = [
    ("B01003", "B01003_001", 1, "Total", "Total Population", "Total population"),
    ("B08301", "B08301_001", 1, "Total", COMMUTE_TITLE, "Workers 16 years and over"),
    (
        "B08301",
        "B08301_010",
        10,
        "Public transportation (excluding taxicab)",
        COMMUTE_TITLE,
        "Workers 16 years and over",
    ),
    ("B08301", "B08301_019", 19, "Walked", COMMUTE_TITLE, "Workers 16 years and over"),
    ("B19013", "B19013_001", 1, "Median household income in the past 12 months", INCOME_TITLE, "Households"),
]


def _obs(uid, geo_id, estimate, pct, state=None, county=None):
    level = geo_id[:3]
    return (uid, geo_id, float(estimate), level, state, county, pct, pct, pct)


# uid, geo_id, estimate, summary_level, state_fips, county_fips, national/state/county percentile
OBSERVATIONS = [
    # population
    _obs("B01003_001", "0400000US06", 39_000_000, 1.0, "06"),
    _obs("B01003_001", "0400000US48", 29_500_000, 0.98, "48"),
    _obs("B01003_001", "0400000US53", 7_700_000, 0.98, "53"),
    _obs("B01003_001", "04000A0US06", 15_000_000, 0.99, "06"),
    _obs("B01003_001", "0500000US06003", 1_200, 0.01, "06", "003"),
    _obs("B01003_001", "0500000US06037", 10_000_000, 0.99, "06", "037"),
    _obs("B01003_001", "0500000US06073", 3_300_000, 0.97, "06", "073"),
    _obs("B01003_001", "0500000US48201", 4_700_000, 0.98, "48", "201"),
    _obs("B01003_001", "0500000US53033", 2_250_000, 0.95, "53", "033"),
    _obs("B01003_001", "05000A0US06073", 1_500_000, 0.90, "06", "073"),
    _obs("B01003_001", "1400000US06073000100", 4_000, 0.55, "06", "073"),
    _obs("B01003_001", "0600000US0603791400", 50_000, 0.60, "06", "037"),
    _obs("B01003_001", "860Z200US90210", 21_000, 0.50),
    # commute: workers / public transit / walked
    _obs("B08301_001", "0400000US06", 18_000_000, 0.99, "06"),
    _obs("B08301_010", "0400000US06", 900_000, 0.99, "06"),
    _obs("B08301_019", "0400000US06", 450_000, 0.99, "06"),
    _obs("B08301_001", "0500000US06003", 500, 0.02, "06", "003"),
    _obs("B08301_010", "0500000US06003", 0, 0.01, "06", "003"),
    _obs("B08301_019", "0500000US06003", 30, 0.03, "06", "003"),
    _obs("B08301_001", "0500000US06037", 4_800_000, 0.99, "06", "037"),
    _obs("B08301_010", "0500000US06037", 240_000, 0.99, "06", "037"),
    _obs("B08301_019", "0500000US06037", 120_000, 0.99, "06", "037"),
    _obs("B08301_001", "0500000US06073", 1_600_000, 0.5, "06", "073"),
    _obs("B08301_010", "0500000US06073", 48_000, 0.5, "06", "073"),
    _obs("B08301_019", "0500000US06073", 40_000, 0.5, "06", "073"),
    _obs("B08301_001", "0500000US48201", 2_300_000, 0.98, "48", "201"),
    _obs("B08301_010", "0500000US48201", 46_000, 0.90, "48", "201"),
    _obs("B08301_019", "0500000US48201", 23_000, 0.80, "48", "201"),
    _obs("B08301_001", "0500000US53033", 1_300_000, 0.94, "53", "033"),
    _obs("B08301_010", "0500000US53033", 130_000, 0.99, "53", "033"),
    _obs("B08301_019", "0500000US53033", 65_000, 0.99, "53", "033"),
    _obs("B08301_001", "05000A0US06073", 800_000, 0.9, "06", "073"),
    _obs("B08301_010", "05000A0US06073", 20_000, 0.9, "06", "073"),
    _obs("B08301_019", "05000A0US06073", 15_000, 0.9, "06", "073"),
    # income
    _obs("B19013_001", "0500000US06073", 96_000, 0.96, "06", "073"),
    _obs("B19013_001", "1400000US06073000100", 61_000, 0.02, "06", "073"),
]


def _spatial_available() -> bool:
    con = duckdb.connect()
    try:
        con.execute("INSTALL spatial")
        con.execute("LOAD spatial")
    except duckdb.Error:
        return False
    finally:
        con.close()
    return True


def _build_json_db(path, spatial: bool) -> None:
    con = duckdb.connect(str(path))
    try:
        if spatial:
            con.execute("LOAD spatial")
            con.execute(
                "CREATE TABLE tiger_geometries (geo_id VARCHAR, name VARCHAR, aland DOUBLE, geom GEOMETRY)"
            )
            con.executemany(
                "INSERT INTO tiger_geometries VALUES (?, ?, ?, ST_GeomFromText(?))", GEOMETRIES
            )
        else:
            con.execute(
                "CREATE TABLE tiger_geometries (geo_id VARCHAR, name VARCHAR, aland DOUBLE, geom VARCHAR)"
            )
            con.executemany("INSERT INTO tiger_geometries VALUES (?, ?, ?, ?)", GEOMETRIES)
        con.execute(
            "CREATE TABLE geo_lookup (geo_id VARCHAR, title VARCHAR, universe VARCHAR, labels_data VARCHAR)"
        )
        con.executemany("INSERT INTO geo_lookup VALUES (?, ?, ?, ?)", GEO_LOOKUP)
    finally:
        con.close()


def _build_pct_db(path) -> None:
    con = duckdb.connect(str(path))
    try:
        con.execute(
            """
            CREATE TABLE table_metadata (
                table_id VARCHAR, unique_id VARCHAR, line INTEGER,
                label VARCHAR, title VARCHAR, universe VARCHAR
            )
            """
        )
        con.executemany("INSERT INTO table_metadata VALUES (?, ?, ?, ?, ?, ?)", TABLE_METADATA)
        con.execute(
            """
            CREATE TABLE acs_with_percentiles (
                uid VARCHAR, geo_id VARCHAR, estimate DOUBLE,
                summary_level VARCHAR, state_fips VARCHAR, county_fips VARCHAR,
                national_percentile DOUBLE, state_percentile DOUBLE, county_percentile DOUBLE
            )
            """
        )
        con.executemany(
            "INSERT INTO acs_with_percentiles VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)", OBSERVATIONS
        )
    finally:
        con.close()


@pytest.fixture(scope="session")
def spatial() -> bool:
    return _spatial_available()


@pytest.fixture(scope="session")
def settings(tmp_path_factory, spatial) -> Settings:
    db_dir = tmp_path_factory.mktemp("census_db")
    _build_json_db(db_dir / JSON_DB_FILE, spatial)
    _build_pct_db(db_dir / PCT_DB_FILE)
    return Settings(
        db_path=db_dir,
        db_memory_limit="512MB",
        db_threads=2,
        query_timeout_ms=30_000,
        extensions=("spatial",) if spatial else (),
    )


@pytest.fixture(scope="session")
def db(settings):
    database = Database.open(settings)
    yield database
    database.close()


@pytest.fixture
def spatial_db(db, spatial):
    if not spatial:
        pytest.skip("DuckDB spatial extension not available")
    return db
