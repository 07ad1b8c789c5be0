"""FastAPI app for the Census ACS API.

Serves the same operations as the MCP server over plain HTTP.
"""

from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from census_acs import discovery, exploration, lookup, rankings, summaries
from census_acs.config import load_settings
from census_acs.db import Database, QueryError, QueryTimeoutError
from census_acs.models import (
    AreaSummaryResult,
    CompareAreasResult,
    DescribeTableResult,
    HealthResponse,
    InterestingFactsResult,
    ListGeographiesResult,
    ListPopulationGroupsResult,
    ListTopicsResult,
    ListUniversesResult,
    LookupLocationResult,
    RankAreasResult,
    RankingRequest,
    ResolvedLocation,
    SearchDataResult,
    SearchLocationsResult,
)
from census_acs.utils import configure_logging, logger


def create_app(db: Database | None = None) -> FastAPI:
    """Build the app; without `db` the lifespan opens one from the environment."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owned = db is None
        if owned:
            settings = load_settings()
            configure_logging(settings.log_level)
            app.state.db = Database.open(settings)
        else:
            app.state.db = db
        try:
            yield
        finally:
            if owned:
                app.state.db.close()

    app = FastAPI(
        title="Census ACS",
        description="American Community Survey lookups, rankings and comparisons",
        version="1.0.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(QueryError)
    async def query_error(request: Request, exc: QueryError):
        status = 504 if isinstance(exc, QueryTimeoutError) else 500
        logger.error("request_failed", extra={"path": request.url.path, "error": str(exc)})
        return JSONResponse(status_code=status, content={"detail": f"Error: {exc}"})

    app.include_router(router)
    return app


def get_db(request: Request) -> Database:
    return request.app.state.db


router = APIRouter()


@router.get("/health", response_model=HealthResponse)
def health(db: Database = Depends(get_db)):
    """Liveness plus the configured MCP transport."""
    return {"status": "ok", "transport": db.settings.transport}


@router.get("/resolve", response_model=ResolvedLocation)
def resolve(
    location: str = Query(..., description="geo_id, 5-digit ZIP code or place name"),
    summary_level: str | None = Query(None, description="Restrict name matches to a level"),
    db: Database = Depends(get_db),
):
    """Resolve a location string to one geo_id."""
    result = lookup.resolve_location(db, location, summary_level)
    if result is None:
        raise HTTPException(404, f"Could not resolve location: {location}")
    return result


@router.get("/locations", response_model=SearchLocationsResult)
def locations(
    query: str = Query(..., description="Location name to search for"),
    summary_level: str | None = Query(None, description="040, 050, 140, 310, 860 or a level name"),
    limit: int = Query(20, ge=1, le=1000),
    db: Database = Depends(get_db),
):
    """Search locations by name."""
    return lookup.search_locations(db, query, summary_level, limit)


@router.get("/geographies", response_model=ListGeographiesResult)
def geographies(
    summary_level: str = Query(..., description="040, 050, 140, 310, 860 or a level name"),
    parent_geo_id: str | None = Query(None, description="Parent geo_id (narrows by state)"),
    limit: int = Query(100, ge=1, le=10000),
    db: Database = Depends(get_db),
):
    """List canonical geographies at a summary level."""
    return lookup.list_geographies(db, summary_level, parent_geo_id, limit)


@router.get("/lookup", response_model=LookupLocationResult)
def lookup_point(
    latitude: float = Query(..., ge=-90, le=90),
    longitude: float = Query(..., ge=-180, le=180),
    tables: list[str] | None = Query(None, description="Filter to table ids"),
    db: Database = Depends(get_db),
):
    """Census data for the most specific area containing a point."""
    result = lookup.lookup_location(db, latitude, longitude, tables)
    if result is None:
        raise HTTPException(404, "No geographic area found at the specified coordinates")
    return result


@router.get("/population-groups", response_model=ListPopulationGroupsResult)
def population_groups(db: Database = Depends(get_db)):
    """Population group codes available for ranking."""
    return rankings.list_population_groups(db)


@router.get("/rankings", response_model=RankAreasResult, response_model_exclude_none=True)
def rank(
    metric_id: list[str] = Query(..., description="Metric id(s); several ids are summed"),
    denominator_id: list[str] | None = Query(None, description="Denominator id(s) for a rate"),
    order: str = Query("desc", description="desc or asc"),
    percentile_min: float = Query(0.0),
    percentile_max: float = Query(1.0),
    summary_level: str | None = Query(None),
    state_fips: str | None = Query(None),
    population_group: str = Query("0000"),
    min_population: float = Query(10000),
    limit: int = Query(10),
    db: Database = Depends(get_db),
):
    """Rank areas by a metric, a sum of metrics or a rate."""
    try:
        request = RankingRequest(
            metric_id=metric_id,
            denominator_id=denominator_id,
            order=order,
            percentile_min=percentile_min,
            percentile_max=percentile_max,
            summary_level=summary_level,
            state_fips=state_fips,
            population_group=population_group,
            min_population=min_population,
            limit=limit,
        )
    except ValidationError as e:
        raise HTTPException(400, str(e)) from e
    result = rankings.rank_areas_by_metric(db, request)
    if result is None:
        raise HTTPException(404, f"Unknown metric id in: {metric_id} / {denominator_id}")
    return result


@router.get("/area-summary", response_model=AreaSummaryResult)
def area_summary(
    location: str = Query(..., description="geo_id, 5-digit ZIP code or place name"),
    tables: list[str] | None = Query(None),
    db: Database = Depends(get_db),
):
    """Full census data summary for an area."""
    result = summaries.get_area_summary(db, location, tables)
    if result is None:
        raise HTTPException(404, f"Could not resolve location: {location}")
    return result


@router.get("/compare", response_model=CompareAreasResult)
def compare(
    location_a: str = Query(..., description="First area"),
    location_b: str = Query(..., description="Second area"),
    metric_ids: list[str] | None = Query(None),
    table_ids: list[str] | None = Query(None),
    db: Database = Depends(get_db),
):
    """Compare two areas metric by metric."""
    result = summaries.compare_areas(db, location_a, location_b, metric_ids, table_ids)
    if result is None:
        raise HTTPException(404, "Could not resolve one or both locations")
    return result


@router.get("/topics", response_model=ListTopicsResult)
def topics(db: Database = Depends(get_db)):
    return discovery.list_topics(db)


@router.get("/search", response_model=SearchDataResult)
def search(
    query: str = Query(..., description="Search term(s), OR logic"),
    limit: int = Query(20, ge=1, le=1000),
    db: Database = Depends(get_db),
):
    return discovery.search_data(db, query, limit)


@router.get("/universes", response_model=ListUniversesResult)
def universes(limit: int = Query(100, ge=1, le=10000), db: Database = Depends(get_db)):
    return discovery.list_universes(db, limit)


@router.get("/tables/{table_id}", response_model=DescribeTableResult)
def table(table_id: str, db: Database = Depends(get_db)):
    result = discovery.describe_table(db, table_id)
    if result is None:
        raise HTTPException(404, f"Table not found: {table_id}")
    return result


@router.get("/interesting-facts", response_model=InterestingFactsResult)
def interesting_facts(
    location: str = Query(..., description="geo_id, ZIP code or place name"),
    threshold: float = Query(0.05, ge=0, le=0.5),
    limit: int = Query(20, ge=1, le=1000),
    category: str | None = Query(None),
    db: Database = Depends(get_db),
):
    """Metrics where the area is in the national top or bottom `threshold`."""
    result = exploration.get_interesting_facts(db, location, threshold, limit, category)
    if result is None:
        raise HTTPException(404, f"Could not resolve location: {location}")
    return result


app = create_app()
