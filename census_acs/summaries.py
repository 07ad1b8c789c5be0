"""Area summaries and head-to-head area comparison."""

from __future__ import annotations

from census_acs import predicates as P
from census_acs.db import Database
from census_acs.geo import get_summary_level
from census_acs.lookup import GEOMETRIES, resolve_location, table_data
from census_acs.models import (
    AreaSummaryResult,
    CompareAreasResult,
    ComparisonMetric,
    GeoLocation,
)
from census_acs.rankings import OBSERVATIONS, TABLE_METADATA

SQ_METERS_PER_SQ_MILE = 2.59e6

_COMPARISON_LIMIT = 100


def get_area_summary(
    db: Database, location: str, tables: list[str] | None = None
) -> AreaSummaryResult | None:
    """Full census data summary for a geo_id, ZIP code or place name."""
    resolved = resolve_location(db, location)
    if not resolved:
        return None

    row = db.fetch_one(
        f"SELECT aland FROM {GEOMETRIES} WHERE geo_id = ? LIMIT 1", [resolved.geo_id]
    )
    aland = row["aland"] if row and row["aland"] is not None else 0
    land_area = float(aland) / SQ_METERS_PER_SQ_MILE

    return AreaSummaryResult(
        geo_id=resolved.geo_id,
        name=resolved.name,
        summary_level=get_summary_level(resolved.geo_id),
        land_area_sq_miles=round(land_area, 2),
        tables=table_data(db, resolved.geo_id, tables),
    )


def compare_areas(
    db: Database,
    location_a: str,
    location_b: str,
    metric_ids: list[str] | None = None,
    table_ids: list[str] | None = None,
) -> CompareAreasResult | None:
    """Compare metric estimates and percentiles between two areas.

    `metric_ids` wins over `table_ids` when both are given. Returns None when
    either location does not resolve.
    """
    area_a = resolve_location(db, location_a)
    area_b = resolve_location(db, location_b)
    if not area_a or not area_b:
        return None

    preds = [P.equals("a.geo_id", area_a.geo_id), P.equals("b.geo_id", area_b.geo_id)]
    if metric_ids:
        preds.append(P.one_of("a.uid", metric_ids))
    elif table_ids:
        preds.append(P.one_of("m.table_id", table_ids))
    where_sql, params = P.where(preds)

    comparisons = db.fetch_as(
        ComparisonMetric,
        f"""
        SELECT
            a.uid AS metric_id,
            m.label,
            a.estimate AS value_a,
            b.estimate AS value_b,
            a.national_percentile AS percentile_a,
            b.national_percentile AS percentile_b
        FROM {OBSERVATIONS} a
        JOIN {OBSERVATIONS} b ON a.uid = b.uid
        JOIN {TABLE_METADATA} m ON a.uid = m.unique_id
        {where_sql}
        ORDER BY a.uid
        LIMIT ?
        """,
        [*params, _COMPARISON_LIMIT],
    )

    return CompareAreasResult(
        area_a=GeoLocation(geo_id=area_a.geo_id, name=area_a.name),
        area_b=GeoLocation(geo_id=area_b.geo_id, name=area_b.name),
        comparisons=comparisons,
    )
