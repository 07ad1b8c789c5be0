"""MCP server for Census ACS data.

Exposes 12 tools that let Claude look up, rank and compare US geographies
using American Community Survey estimates stored in DuckDB.
Uses FastMCP (v2); stdio transport by default, sse/http for remote hosting
(see CENSUS_ACS_TRANSPORT).
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import Callable, Literal, TypeVar

from fastmcp import FastMCP
from fastmcp.exceptions import ToolError
from pydantic import ValidationError

from census_acs import discovery, exploration, lookup, rankings, summaries
from census_acs.config import load_settings
from census_acs.db import Database, QueryError
from census_acs.models import RankingRequest
from census_acs.utils import Timer, configure_logging, logger, new_request_id

T = TypeVar("T")

_db: Database | None = None


@asynccontextmanager
async def _lifespan(server: FastMCP):
    """Open the shared database once for the life of the server."""
    global _db
    owned = _db is None
    if owned:
        _db = Database.open(load_settings())
    try:
        yield
    finally:
        if owned and _db is not None:
            _db.close()
            _db = None


mcp = FastMCP(
    "Census ACS",
    instructions=(
        "American Community Survey (ACS) estimates for US states, counties, "
        "metros, ZIP codes, tracts and block groups. Locations can be given as "
        "geo_ids (e.g. 0500000US06073), 5-digit ZIP codes or place names. "
        "Use search_data / describe_table to find metric ids (e.g. B01003_001) "
        "before calling rank_areas_by_metric or compare_areas."
    ),
    lifespan=_lifespan,
)


def _get_db() -> Database:
    if _db is None:
        raise ToolError("Error: MCP server not started, database unavailable")
    return _db


async def _run(tool: str, fn: Callable[[Database], T]) -> T:
    """Run one tool call on a worker thread so the event loop stays free.

    Query and validation failures become a single tool error.
    """
    rid = new_request_id()
    try:
        with Timer() as t:
            result = await asyncio.to_thread(fn, _get_db())
    except ValidationError as e:
        raise ToolError(f"Error: invalid parameters: {e}") from e
    except QueryError as e:
        logger.error("tool_failed", extra={"rid": rid, "tool": tool, "error": str(e)})
        raise ToolError(f"Error: {e}") from e
    logger.info("tool_done", extra={"rid": rid, "tool": tool, "elapsed_ms": t.elapsed_ms})
    return result


@mcp.tool()
async def lookup_location(
    latitude: float, longitude: float, tables: list[str] | None = None
) -> dict:
    """Get census data for a geographic point given by latitude and longitude.

    Returns the most specific area containing the point (block group, tract,
    ZIP, county, metro, then state) with its table data. Optionally filter to
    specific table ids.
    """
    if not -90 <= latitude <= 90 or not -180 <= longitude <= 180:
        raise ToolError("Error: latitude must be in [-90, 90] and longitude in [-180, 180]")
    result = await _run(
        "lookup_location",
        lambda db: lookup.lookup_location(db, latitude, longitude, tables),
    )
    if result is None:
        return {"error": "No geographic area found at the specified coordinates"}
    return result.model_dump()


@mcp.tool()
async def search_locations(
    query: str, summary_level: str | None = None, limit: int = 20
) -> dict:
    """Search for geographic locations by name.

    Returns matching areas with their summary levels so you can pick the right
    geo_id. summary_level filters by level: 040 (state), 050 (county),
    140 (tract), 310 (metro), 860 (ZIP); names like "state" also work.
    """
    result = await _run(
        "search_locations",
        lambda db: lookup.search_locations(db, query, summary_level, limit),
    )
    return result.model_dump()


@mcp.tool()
async def list_geographies(
    summary_level: str, parent_geo_id: str | None = None, limit: int = 100
) -> dict:
    """List all geographies at a summary level, sorted by name.

    Useful for getting all states, or all counties in a state (pass the
    state's geo_id as parent_geo_id).
    """
    result = await _run(
        "list_geographies",
        lambda db: lookup.list_geographies(db, summary_level, parent_geo_id, limit),
    )
    return result.model_dump()


@mcp.tool()
async def list_population_groups() -> dict:
    """List population groups (race/ethnicity iterations) present in the data.

    Use the codes as population_group in rank_areas_by_metric.
    """
    result = await _run("list_population_groups", rankings.list_population_groups)
    return result.model_dump()


@mcp.tool()
async def rank_areas_by_metric(
    metric_id: str | list[str],
    denominator_id: str | list[str] | None = None,
    order: Literal["desc", "asc"] = "desc",
    percentile_min: float = 0.0,
    percentile_max: float = 1.0,
    summary_level: str | None = None,
    state_fips: str | None = None,
    population_group: str = "0000",
    min_population: float = 10000,
    limit: int = 10,
) -> dict:
    """Rank geographic areas by a metric value or computed rate.

    - metric_id: one id (e.g. B12001_010) or a list of ids to sum
      (e.g. ["B18135_003", "B18135_014"] for a total)
    - denominator_id: id(s) to divide by; the result is a percentage and
      only areas whose denominator reaches min_population are ranked
    - percentile_min / percentile_max (0-1): single metrics only, for
      "top 10%" or "bottom quartile" style questions
    - summary_level: 040 state, 050 county, 140 tract, 150 block group, 860 ZIP
    - state_fips: restrict to one state
    - population_group: "0000" (total) or a code from list_population_groups
    """

    def rank(db: Database):
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
        return rankings.rank_areas_by_metric(db, request)

    result = await _run("rank_areas_by_metric", rank)
    if result is None:
        return {"error": f"Unknown metric id in: {metric_id} / {denominator_id}"}
    return result.model_dump(exclude_none=True)


@mcp.tool()
async def get_area_summary(location: str, tables: list[str] | None = None) -> dict:
    """Get the full census data summary for an area.

    location can be a geo_id, a 5-digit ZIP code or a place name.
    """
    result = await _run(
        "get_area_summary", lambda db: summaries.get_area_summary(db, location, tables)
    )
    if result is None:
        return {"error": f"Could not resolve location: {location}"}
    return result.model_dump()


@mcp.tool()
async def compare_areas(
    location_a: str,
    location_b: str,
    metric_ids: list[str] | None = None,
    table_ids: list[str] | None = None,
) -> dict:
    """Compare census metrics between two areas (geo_id, ZIP or name each).

    Returns estimates and national percentiles side by side, filtered to
    metric_ids or, failing that, table_ids.
    """
    result = await _run(
        "compare_areas",
        lambda db: summaries.compare_areas(db, location_a, location_b, metric_ids, table_ids),
    )
    if result is None:
        return {"error": "Could not resolve one or both locations"}
    return result.model_dump()


@mcp.tool()
async def list_topics() -> dict:
    """List data topic categories with table counts and example tables."""
    return (await _run("list_topics", discovery.list_topics)).model_dump()


@mcp.tool()
async def search_data(query: str, limit: int = 20) -> dict:
    """Search table metadata by keyword to find census data.

    Multi-word queries use OR logic (tables matching any word).
    """
    result = await _run("search_data", lambda db: discovery.search_data(db, query, limit))
    return result.model_dump()


@mcp.tool()
async def list_universes(limit: int = 100) -> dict:
    """List the data universes (populations covered) in the census data."""
    result = await _run("list_universes", lambda db: discovery.list_universes(db, limit))
    return result.model_dump()


@mcp.tool()
async def describe_table(table_id: str) -> dict:
    """Get an ACS table (e.g. B12001) with all its labels and metric ids."""
    result = await _run("describe_table", lambda db: discovery.describe_table(db, table_id))
    if result is None:
        return {"error": f"Table not found: {table_id}"}
    return result.model_dump()


@mcp.tool()
async def get_interesting_facts(
    location: str,
    threshold: float = 0.05,
    limit: int = 20,
    category: str | None = None,
) -> dict:
    """Find metrics where an area ranks unusually high or low nationally.

    threshold (0-0.5): 0.05 finds the top and bottom 5%. category narrows to
    demographics, income, employment, education, housing, health,
    transportation, language, internet or family.
    """
    if not 0 <= threshold <= 0.5:
        raise ToolError("Error: threshold must be between 0 and 0.5")
    result = await _run(
        "get_interesting_facts",
        lambda db: exploration.get_interesting_facts(db, location, threshold, limit, category),
    )
    if result is None:
        return {"error": f"Could not resolve location: {location}"}
    return result.model_dump()


def main():
    settings = load_settings()
    configure_logging(settings.log_level)
    if settings.transport == "stdio":
        mcp.run()
    else:
        mcp.run(transport=settings.transport, host=settings.host, port=settings.port)


if __name__ == "__main__":
    main()
