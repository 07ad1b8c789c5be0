"""Location resolution: keys, ZIP codes, names and points to geographic areas."""

from __future__ import annotations

import json

from census_acs import predicates as P
from census_acs.db import Database
from census_acs.geo import (
    NAME_PRIORITY,
    SPECIFICITY,
    SUMMARY_LEVELS,
    get_summary_level,
    is_zip,
    level_code,
    level_name,
    looks_like_geo_id,
    parent_state_fips,
    zip_code,
    zip_geo_id,
)
from census_acs.models import (
    GeoLocation,
    GeographicArea,
    ListGeographiesResult,
    LookupLocationResult,
    ResolvedLocation,
    SearchLocationsResult,
    TableData,
)

GEOMETRIES = "json_db.tiger_geometries"
GEO_LOOKUP = "json_db.geo_lookup"
TABLE_METADATA = "pct_db.table_metadata"

_DATA_ROW_LIMIT = 100


def _exact(db: Database, geo_id: str) -> GeoLocation | None:
    rows = db.fetch_as(
        GeoLocation,
        f"SELECT geo_id, name FROM {GEOMETRIES} WHERE geo_id = ? LIMIT 1",
        [geo_id],
    )
    return rows[0] if rows else None


def _name_filters(text: str, summary_level: str | None) -> list[P.Predicate]:
    preds = [P.name_contains("name", text)]
    if summary_level:
        preds.append(P.key_level("geo_id", level_code(summary_level)))
    return preds


def _search_by_name(
    db: Database, text: str, summary_level: str | None, limit: int
) -> list[GeoLocation]:
    where_sql, params = P.where(_name_filters(text, summary_level))
    rank = P.level_rank("geo_id", NAME_PRIORITY)
    return db.fetch_as(
        GeoLocation,
        f"""
        SELECT geo_id, name
        FROM {GEOMETRIES}
        {where_sql}
        ORDER BY {rank.sql}, LENGTH(name), name, geo_id
        LIMIT ?
        """,
        [*params, *rank.params, limit],
    )


def resolve_location(
    db: Database, location: str, summary_level: str | None = None
) -> ResolvedLocation | None:
    """Resolve a geo_id, 5-digit ZIP or place name to a single area.

    Tried in order: exact geo_id, ZIP shorthand, name search. The name search
    prefers states, then metros, then counties, then the shortest name, so
    "California" picks the state rather than every county named after it.
    Returns None when nothing matches.
    """
    text = location.strip()

    if looks_like_geo_id(text):
        hit = _exact(db, text)
        if hit:
            return ResolvedLocation(geo_id=hit.geo_id, name=hit.name)

    if is_zip(text):
        geo_id = zip_geo_id(text)
        if _exact(db, geo_id):
            # bundled ZIP names are placeholders; the digits read better
            return ResolvedLocation(geo_id=geo_id, name=text)

    matches = _search_by_name(db, text, summary_level, limit=1)
    if matches:
        return ResolvedLocation(geo_id=matches[0].geo_id, name=matches[0].name)
    return None


def search_locations(
    db: Database, query: str, summary_level: str | None = None, limit: int = 20
) -> SearchLocationsResult:
    """Search areas by name, ranked the same way as `resolve_location`."""
    text = query.strip()
    rows = _search_by_name(db, text, summary_level, limit)

    where_sql, params = P.where(_name_filters(text, summary_level))
    total = db.count(f"SELECT COUNT(*) AS cnt FROM {GEOMETRIES} {where_sql}", params)

    return SearchLocationsResult(
        query=query,
        results=[
            GeographicArea(
                geo_id=r.geo_id,
                name=r.name,
                summary_level=get_summary_level(r.geo_id),
                summary_level_name=level_name(get_summary_level(r.geo_id)),
            )
            for r in rows
        ],
        total_matches=total,
    )


def list_geographies(
    db: Database, summary_level: str, parent_geo_id: str | None = None, limit: int = 100
) -> ListGeographiesResult:
    """List canonical areas at a level, optionally within a parent's state.

    The parent filter only looks at the parent's trailing two FIPS digits, so
    it narrows by state; passing a county parent does not restrict to that
    county's tracts.
    """
    code = level_code(summary_level)
    preds = [P.key_level("geo_id", code), P.canonical("geo_id")]
    if parent_geo_id:
        preds.append(P.key_state("geo_id", parent_state_fips(parent_geo_id)))
    where_sql, params = P.where(preds)

    rows = db.fetch_as(
        GeoLocation,
        f"""
        SELECT geo_id, name
        FROM {GEOMETRIES}
        {where_sql}
        ORDER BY name, geo_id
        LIMIT ?
        """,
        [*params, limit],
    )
    total = db.count(f"SELECT COUNT(*) AS cnt FROM {GEOMETRIES} {where_sql}", params)

    return ListGeographiesResult(
        summary_level=code,
        summary_level_name=SUMMARY_LEVELS.get(code, summary_level),
        parent_geo_id=parent_geo_id,
        results=rows,
        total_count=total,
    )


def tables_filter(column: str, tables: list[str]) -> P.Predicate:
    """Payload title belongs to one of the given table ids."""
    inner = P.one_of("table_id", tables)
    return P.Predicate(
        f"{column} IN (SELECT DISTINCT title FROM {TABLE_METADATA} WHERE {inner.sql})",
        inner.params,
    )


def table_data(
    db: Database, geo_id: str, tables: list[str] | None = None, limit: int | None = None
) -> list[TableData]:
    """Bundled table payloads for one area, optionally limited to table ids."""
    preds = [P.equals("g.geo_id", geo_id)]
    if tables:
        preds.append(tables_filter("g.title", tables))
    where_sql, params = P.where(preds)
    limit_sql = ""
    if limit is not None:
        limit_sql = "LIMIT ?"
        params.append(limit)

    rows = db.fetch(
        f"""
        SELECT DISTINCT
            COALESCE(m.table_id, split_part(g.title, ' ', 1)) AS table_id,
            g.title,
            g.universe,
            g.labels_data
        FROM {GEO_LOOKUP} g
        LEFT JOIN (SELECT DISTINCT table_id, title AS meta_title FROM {TABLE_METADATA}) m
            ON g.title = m.meta_title
        {where_sql}
        ORDER BY table_id, title
        {limit_sql}
        """,
        params,
    )
    for row in rows:
        if isinstance(row["labels_data"], str):
            row["labels_data"] = json.loads(row["labels_data"])
    return [TableData.model_validate(row) for row in rows]


def lookup_location(
    db: Database, latitude: float, longitude: float, tables: list[str] | None = None
) -> LookupLocationResult | None:
    """Census data for the most specific area containing a point."""
    rank = P.level_rank("geo_id", SPECIFICITY)
    rows = db.fetch_as(
        GeoLocation,
        f"""
        SELECT geo_id, name
        FROM {GEOMETRIES}
        WHERE ST_Contains(geom, ST_Point(?, ?))
        ORDER BY {rank.sql}, geo_id
        LIMIT 1
        """,
        [longitude, latitude, *rank.params],
    )
    if not rows:
        return None

    geo = rows[0]
    return LookupLocationResult(
        geo_id=geo.geo_id,
        name=zip_code(geo.geo_id) or geo.name,
        summary_level=get_summary_level(geo.geo_id),
        data=table_data(db, geo.geo_id, tables, limit=_DATA_ROW_LIMIT),
    )
