"""Outlier facts: metrics where an area sits far from the national middle."""

from __future__ import annotations

from census_acs import predicates as P
from census_acs.db import Database
from census_acs.discovery import TOPIC_CATEGORIES
from census_acs.lookup import resolve_location
from census_acs.models import InterestingFact, InterestingFactsResult
from census_acs.rankings import OBSERVATIONS, TABLE_METADATA

# short category names accepted by get_interesting_facts
CATEGORY_KEYWORDS: dict[str, list[str]] = {
    "demographics": TOPIC_CATEGORIES["demographics"][1],
    "income": TOPIC_CATEGORIES["income_poverty"][1],
    "employment": TOPIC_CATEGORIES["employment"][1],
    "education": TOPIC_CATEGORIES["education"][1],
    "housing": TOPIC_CATEGORIES["housing"][1],
    "health": TOPIC_CATEGORIES["health_disability"][1],
    "transportation": TOPIC_CATEGORIES["transportation"][1],
    "language": TOPIC_CATEGORIES["language_immigration"][1],
    "internet": TOPIC_CATEGORIES["internet"][1],
    "family": TOPIC_CATEGORIES["family"][1],
}


def _describe(national_percentile: float) -> tuple[str, str]:
    if national_percentile > 0.5:
        pct = round(national_percentile * 100)
        return "high", f"{pct}th percentile nationally (higher than {pct}% of areas)"
    pct = round((1 - national_percentile) * 100)
    return "low", f"{100 - pct}th percentile nationally (lower than {pct}% of areas)"


def get_interesting_facts(
    db: Database,
    location: str,
    threshold: float = 0.05,
    limit: int = 20,
    category: str | None = None,
) -> InterestingFactsResult | None:
    """Metrics where the area ranks in the top or bottom `threshold` nationally.

    Unknown categories are ignored rather than rejected.
    """
    resolved = resolve_location(db, location)
    if not resolved:
        return None

    preds = [
        P.equals("p.geo_id", resolved.geo_id),
        P.Predicate(
            "p.national_percentile > ? OR p.national_percentile < ?", (1 - threshold, threshold)
        ),
    ]
    keywords = CATEGORY_KEYWORDS.get(category.lower()) if category else None
    if keywords:
        preds.append(P.any_ilike("m.title", keywords))
    where_sql, params = P.where(preds)

    rows = db.fetch(
        f"""
        SELECT m.table_id, m.title, m.label, p.estimate, p.national_percentile
        FROM {OBSERVATIONS} p
        JOIN {TABLE_METADATA} m ON p.uid = m.unique_id
        {where_sql}
        ORDER BY ABS(p.national_percentile - 0.5) DESC, p.uid
        LIMIT ?
        """,
        [*params, limit],
    )

    facts = []
    for row in rows:
        direction, description = _describe(row["national_percentile"])
        facts.append(
            InterestingFact(
                table_id=row["table_id"],
                title=row["title"],
                label=row["label"],
                estimate=row["estimate"],
                national_percentile=row["national_percentile"],
                direction=direction,
                description=description,
            )
        )

    return InterestingFactsResult(geo_id=resolved.geo_id, name=resolved.name, facts=facts)
