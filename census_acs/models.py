"""Pydantic request and response models.

Query rows are decoded straight into these types at the query boundary, so
aggregate results arrive as plain int/float and every tool response
serializes as-is.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field, field_validator, model_validator


# ── geography ──


class GeoLocation(BaseModel):
    geo_id: str
    name: str


class ResolvedLocation(GeoLocation):
    pass


class GeographicArea(GeoLocation):
    summary_level: str
    summary_level_name: str


class SearchLocationsResult(BaseModel):
    query: str
    results: list[GeographicArea] = []
    total_matches: int


class ListGeographiesResult(BaseModel):
    summary_level: str
    summary_level_name: str
    parent_geo_id: str | None = None
    results: list[GeoLocation] = []
    total_count: int


class TableData(BaseModel):
    table_id: str
    title: str
    universe: str | None = None
    labels_data: dict | list | None = None


class LookupLocationResult(GeoLocation):
    summary_level: str
    data: list[TableData] = []


# ── metric catalog ──


class MetricDefinition(BaseModel):
    unique_id: str
    table_id: str
    line: int | None = None
    label: str
    title: str
    universe: str | None = None


class TableLabel(BaseModel):
    unique_id: str
    line: int | None = None
    label: str


class DescribeTableResult(BaseModel):
    table_id: str
    title: str
    universe: str | None = None
    labels: list[TableLabel] = []


class Topic(BaseModel):
    name: str
    description: str
    table_count: int
    example_tables: list[str] = []


class ListTopicsResult(BaseModel):
    topics: list[Topic] = []


class UniverseInfo(BaseModel):
    universe: str | None = None
    table_count: int
    example_tables: list[str] = []


class ListUniversesResult(BaseModel):
    universes: list[UniverseInfo] = []
    total_count: int


class SearchResult(BaseModel):
    table_id: str
    title: str | None = None
    universe: str | None = None
    matching_labels: list[str] = []


class SearchDataResult(BaseModel):
    query: str
    results: list[SearchResult] = []
    total_matches: int


# ── rankings ──


class RankingRequest(BaseModel):
    metric_id: str | list[str]
    denominator_id: str | list[str] | None = None
    order: Literal["desc", "asc"] = "desc"
    percentile_min: float = Field(default=0.0, ge=0.0, le=1.0)
    percentile_max: float = Field(default=1.0, ge=0.0, le=1.0)
    summary_level: str | None = None
    state_fips: str | None = None
    population_group: str = "0000"
    min_population: float = 10000
    limit: int = Field(default=10, ge=1, le=1000)

    @field_validator("metric_id")
    @classmethod
    def _metric_required(cls, v):
        if not v:
            raise ValueError("metric_id must name at least one metric")
        return v

    @field_validator("denominator_id")
    @classmethod
    def _empty_denominator(cls, v):
        # an empty list means "no denominator", same as omitting it
        return v or None

    @model_validator(mode="after")
    def _percentile_band(self):
        if self.percentile_min > self.percentile_max:
            raise ValueError("percentile_min must not exceed percentile_max")
        return self

    @property
    def metric_ids(self) -> list[str]:
        return [self.metric_id] if isinstance(self.metric_id, str) else list(self.metric_id)

    @property
    def denominator_ids(self) -> list[str]:
        if self.denominator_id is None:
            return []
        if isinstance(self.denominator_id, str):
            return [self.denominator_id]
        return list(self.denominator_id)


class RankRow(BaseModel):
    geo_id: str
    value: int | float | None = None
    national_percentile: float | None = None


class RankResult(BaseModel):
    geo_id: str
    name: str
    value: int | float | None = None
    unit: Literal["count", "percent"]
    national_percentile: float | None = None


class RankAreasResult(BaseModel):
    metric: str
    results: list[RankResult] = []
    total_matches: int


class PopulationGroup(BaseModel):
    code: str
    name: str
    record_count: int


class ListPopulationGroupsResult(BaseModel):
    groups: list[PopulationGroup] = []


# ── summaries / exploration ──


class AreaSummaryResult(GeoLocation):
    summary_level: str
    land_area_sq_miles: float
    tables: list[TableData] = []


class ComparisonMetric(BaseModel):
    metric_id: str
    label: str | None = None
    value_a: float | None = None
    value_b: float | None = None
    percentile_a: float | None = None
    percentile_b: float | None = None


class CompareAreasResult(BaseModel):
    area_a: GeoLocation
    area_b: GeoLocation
    comparisons: list[ComparisonMetric] = []


class InterestingFact(BaseModel):
    table_id: str
    title: str
    label: str
    estimate: float | None = None
    national_percentile: float
    direction: Literal["high", "low"]
    description: str


class InterestingFactsResult(GeoLocation):
    facts: list[InterestingFact] = []


class HealthResponse(BaseModel):
    status: str
    transport: str
