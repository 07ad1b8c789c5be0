"""Metric ranking: rank areas by a metric, a sum of metrics, or a rate."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from census_acs import predicates as P
from census_acs.db import Database
from census_acs.geo import level_code
from census_acs.lookup import GEOMETRIES
from census_acs.models import (
    ListPopulationGroupsResult,
    MetricDefinition,
    PopulationGroup,
    RankAreasResult,
    RankingRequest,
    RankResult,
    RankRow,
)

OBSERVATIONS = "pct_db.acs_with_percentiles"
TABLE_METADATA = "pct_db.table_metadata"

# Known population group codes, from ACS table iteration naming.
POPULATION_GROUP_NAMES: dict[str, str] = {
    "0000": "Total population",
    "00A0": "White alone",
    "00B0": "Black or African American alone",
    "00C0": "American Indian and Alaska Native alone",
    "00D0": "Asian alone",
    "00E0": "Native Hawaiian and Other Pacific Islander alone",
    "00F0": "Some other race alone",
    "00G0": "Two or more races",
    "00H0": "White alone, not Hispanic or Latino",
    "00I0": "Hispanic or Latino",
    "C201": "ACS 5-year estimate variant",
    "C243": "ACS 5-year estimate variant",
}


@dataclass
class RankingQuery:
    """A per-area source query plus the filters and ordering applied on top.

    `source` must yield one row per geo_id with a `value` column; predicates
    refer to the source's columns through the `src` alias.
    """

    source: str
    source_params: list[Any]
    sort_column: str = "value"
    columns: tuple[str, ...] = ("geo_id", "value")
    predicates: list[P.Predicate] = field(default_factory=list)

    def _where(self) -> tuple[str, list[Any]]:
        where_sql, params = P.where(self.predicates)
        return where_sql, [*self.source_params, *params]

    def rows(self, db: Database, order: str, limit: int) -> list[RankRow]:
        where_sql, params = self._where()
        direction = "DESC" if order == "desc" else "ASC"
        cols = ", ".join(f"src.{c}" for c in self.columns)
        # geo_id breaks ties so equal values page deterministically
        return db.fetch_as(
            RankRow,
            f"""
            SELECT {cols}
            FROM ({self.source}) AS src
            {where_sql}
            ORDER BY src.{self.sort_column} {direction} NULLS LAST, src.geo_id ASC
            LIMIT ?
            """,
            [*params, limit],
        )

    def total(self, db: Database) -> int:
        where_sql, params = self._where()
        return db.count(f"SELECT COUNT(*) AS cnt FROM ({self.source}) AS src {where_sql}", params)


def _key_filters(request: RankingRequest) -> list[P.Predicate]:
    """Group/level/state filters matched against the geo_id string."""
    preds = []
    if request.population_group:
        preds.append(P.population_group("src.geo_id", request.population_group))
    if request.summary_level:
        preds.append(P.key_level("src.geo_id", level_code(request.summary_level)))
    if request.state_fips:
        preds.append(P.key_state("src.geo_id", request.state_fips))
    return preds


def _rate_query(request: RankingRequest) -> RankingQuery:
    num = P.one_of("uid", request.metric_ids)
    den = P.one_of("uid", request.denominator_ids)
    source = f"""
        SELECT
            n.geo_id,
            ROUND(n.num_total * 100.0 / NULLIF(d.denom_total, 0), 2) AS value,
            d.denom_total
        FROM (
            SELECT geo_id, SUM(estimate) AS num_total
            FROM {OBSERVATIONS}
            WHERE {num.sql}
            GROUP BY geo_id
        ) n
        JOIN (
            SELECT geo_id, SUM(estimate) AS denom_total
            FROM {OBSERVATIONS}
            WHERE {den.sql}
            GROUP BY geo_id
        ) d ON n.geo_id = d.geo_id
    """
    return RankingQuery(
        source=source,
        source_params=[*num.params, *den.params],
        predicates=[P.at_least("src.denom_total", request.min_population), *_key_filters(request)],
    )


def _sum_query(request: RankingRequest) -> RankingQuery:
    ids = P.one_of("uid", request.metric_ids)
    source = f"""
        SELECT geo_id, SUM(estimate) AS value
        FROM {OBSERVATIONS}
        WHERE {ids.sql}
        GROUP BY geo_id
    """
    return RankingQuery(
        source=source, source_params=list(ids.params), predicates=_key_filters(request)
    )


def _direct_query(request: RankingRequest) -> RankingQuery:
    source = f"""
        SELECT geo_id, estimate AS value, national_percentile, summary_level, state_fips
        FROM {OBSERVATIONS}
        WHERE uid = ?
    """
    preds = [P.between("src.national_percentile", request.percentile_min, request.percentile_max)]
    if request.population_group:
        preds.append(P.population_group("src.geo_id", request.population_group))
    # raw observations carry level/state columns, so match them exactly
    if request.summary_level:
        preds.append(P.equals("src.summary_level", level_code(request.summary_level)))
    if request.state_fips:
        preds.append(P.equals("src.state_fips", request.state_fips))
    return RankingQuery(
        source=source,
        source_params=[request.metric_ids[0]],
        sort_column="national_percentile",
        columns=("geo_id", "value", "national_percentile"),
        predicates=preds,
    )


def metric_definitions(db: Database, metric_ids: list[str]) -> dict[str, MetricDefinition]:
    ids = P.one_of("unique_id", metric_ids)
    defs = db.fetch_as(
        MetricDefinition,
        f"""
        SELECT unique_id, table_id, line, label, title, universe
        FROM {TABLE_METADATA}
        WHERE {ids.sql}
        """,
        list(ids.params),
    )
    return {d.unique_id: d for d in defs}


def display_names(db: Database, geo_ids: list[str]) -> dict[str, str]:
    """Best-effort names for ranked keys; unknown keys are left out."""
    if not geo_ids:
        return {}
    ids = P.one_of("geo_id", geo_ids)
    names: dict[str, str] = {}
    for row in db.fetch(
        f"SELECT geo_id, name FROM {GEOMETRIES} WHERE {ids.sql} ORDER BY geo_id, name",
        list(ids.params),
    ):
        names.setdefault(row["geo_id"], row["name"])
    return names


def _label(request: RankingRequest, defs: dict[str, MetricDefinition], compound: bool) -> str:
    ids = request.metric_ids
    if compound:
        shown = ", ".join(ids[:3])
        more = "..." if len(ids) > 3 else ""
        return f"Sum of {len(ids)} metrics ({shown}{more})"
    d = defs[ids[0]]
    return f"{d.title}: {d.label}"


def rank_areas_by_metric(db: Database, request: RankingRequest) -> RankAreasResult | None:
    """Rank areas by a metric value or computed rate.

    - denominator given: rate = sum(numerators) / sum(denominators) * 100,
      only areas whose denominator reaches `min_population`; unit "percent"
    - several metric ids: per-area sum of the estimates; unit "count"
    - one metric id: raw estimate, filtered to the percentile band and sorted
      by national percentile; unit "count", percentile included

    Sums and rates have no precomputed percentile, so none is reported.
    Returns None when any metric id is unknown.
    """
    metric_ids = request.metric_ids
    denominator_ids = request.denominator_ids
    compound = len(metric_ids) > 1 or len(denominator_ids) > 1

    defs = metric_definitions(db, [*metric_ids, *denominator_ids])
    if any(uid not in defs for uid in [*metric_ids, *denominator_ids]):
        return None

    if denominator_ids:
        query, unit = _rate_query(request), "percent"
    elif compound:
        query, unit = _sum_query(request), "count"
    else:
        query, unit = _direct_query(request), "count"

    rows = query.rows(db, request.order, request.limit)
    total = query.total(db)
    names = display_names(db, [r.geo_id for r in rows])

    return RankAreasResult(
        metric=_label(request, defs, compound),
        results=[
            RankResult(
                geo_id=r.geo_id,
                name=names.get(r.geo_id, r.geo_id),
                value=r.value,
                unit=unit,
                national_percentile=r.national_percentile,
            )
            for r in rows
        ],
        total_matches=total,
    )


def list_population_groups(db: Database) -> ListPopulationGroupsResult:
    """Population group codes present in state-level observations."""
    rows = db.fetch(
        f"""
        SELECT SUBSTRING(geo_id, 4, 4) AS group_code, COUNT(*) AS record_count
        FROM {OBSERVATIONS}
        WHERE starts_with(geo_id, '040')
        GROUP BY SUBSTRING(geo_id, 4, 4)
        ORDER BY record_count DESC, group_code
        """
    )
    return ListPopulationGroupsResult(
        groups=[
            PopulationGroup(
                code=r["group_code"],
                name=POPULATION_GROUP_NAMES.get(r["group_code"], f"Unknown ({r['group_code']})"),
                record_count=r["record_count"],
            )
            for r in rows
        ]
    )
