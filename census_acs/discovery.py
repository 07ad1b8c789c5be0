"""Metric catalog discovery: topics, universes, keyword search, table detail."""

from __future__ import annotations

from census_acs import predicates as P
from census_acs.db import Database
from census_acs.models import (
    DescribeTableResult,
    ListTopicsResult,
    ListUniversesResult,
    SearchDataResult,
    SearchResult,
    TableLabel,
    Topic,
    UniverseInfo,
)
from census_acs.rankings import TABLE_METADATA

# topic key -> (display name, title keywords)
TOPIC_CATEGORIES: dict[str, tuple[str, list[str]]] = {
    "demographics": ("Demographics", ["age", "sex", "race", "ethnic", "population", "citizen"]),
    "income_poverty": ("Income & Poverty", ["income", "poverty", "earnings", "wage", "salary"]),
    "employment": (
        "Employment & Occupation",
        ["employ", "occupation", "labor", "workforce", "job", "unemploy"],
    ),
    "education": ("Education", ["education", "school", "degree", "college", "enroll"]),
    "housing": (
        "Housing & Rent",
        ["housing", "rent", "mortgage", "home", "tenure", "owner", "vacant"],
    ),
    "health_disability": ("Health & Disability", ["health", "disability", "insurance", "disab"]),
    "transportation": (
        "Transportation & Commuting",
        ["transport", "commut", "travel", "vehicle", "car"],
    ),
    "language_immigration": (
        "Language & Immigration",
        ["language", "english", "foreign", "native", "immigr", "birth"],
    ),
    "internet": ("Internet & Computer Access", ["internet", "computer", "broadband", "device"]),
    "family": (
        "Family & Household Structure",
        ["family", "household", "marital", "married", "child", "fertil"],
    ),
}

_EXAMPLES = 3
_MATCHING_LABELS = 5


def _examples(joined: str | None) -> list[str]:
    return joined.split(", ")[:_EXAMPLES] if joined else []


def _labels(joined: str | None) -> list[str]:
    return joined.split("; ")[:_MATCHING_LABELS] if joined else []


def list_topics(db: Database) -> ListTopicsResult:
    """Topic categories with matching table counts and example table ids."""
    topics = []
    for name, keywords in TOPIC_CATEGORIES.values():
        match = P.any_ilike("title", keywords)
        row = db.fetch_one(
            f"""
            SELECT
                COUNT(DISTINCT table_id) AS cnt,
                STRING_AGG(DISTINCT table_id, ', ' ORDER BY table_id) AS examples
            FROM {TABLE_METADATA}
            WHERE {match.sql}
            """,
            list(match.params),
        ) or {}
        topics.append(
            Topic(
                name=name,
                description=f"Tables related to {name.lower()}",
                table_count=row.get("cnt") or 0,
                example_tables=_examples(row.get("examples")),
            )
        )
    return ListTopicsResult(topics=topics)


def list_universes(db: Database, limit: int = 100) -> ListUniversesResult:
    """Distinct universes (populations covered) with their table counts."""
    rows = db.fetch(
        f"""
        SELECT
            universe,
            COUNT(DISTINCT table_id) AS table_count,
            STRING_AGG(DISTINCT table_id, ', ' ORDER BY table_id) AS example_tables
        FROM {TABLE_METADATA}
        GROUP BY universe
        ORDER BY table_count DESC, universe
        LIMIT ?
        """,
        [limit],
    )
    universes = [
        UniverseInfo(
            universe=r["universe"],
            table_count=r["table_count"],
            example_tables=_examples(r["example_tables"]),
        )
        for r in rows
    ]
    return ListUniversesResult(universes=universes, total_count=len(universes))


def search_data(db: Database, query: str, limit: int = 20) -> SearchDataResult:
    """Search table metadata by keyword.

    Each whitespace-separated word is matched (OR logic) against table id,
    title, universe and label. Tables whose id matches the first word sort
    first, then title matches, then by table id.
    """
    words = query.split()
    if not words:
        return SearchDataResult(query=query, results=[], total_matches=0)

    word_match = P.Predicate(
        " OR ".join(
            "(contains(lower(table_id), lower(?)) OR contains(lower(title), lower(?))"
            " OR contains(lower(universe), lower(?)) OR contains(lower(label), lower(?)))"
            for _ in words
        ),
        tuple(w for word in words for w in (word, word, word, word)),
    )
    label_match = P.Predicate(
        " OR ".join("contains(lower(label), lower(?))" for _ in words), tuple(words)
    )
    first = words[0]

    rows = db.fetch(
        f"""
        SELECT
            table_id,
            MAX(title) AS title,
            MAX(universe) AS universe,
            STRING_AGG(DISTINCT label, '; ' ORDER BY label)
                FILTER (WHERE {label_match.sql}) AS matching_labels
        FROM {TABLE_METADATA}
        WHERE {word_match.sql}
        GROUP BY table_id
        ORDER BY
            CASE WHEN contains(lower(table_id), lower(?)) THEN 0
                 WHEN contains(lower(MAX(title)), lower(?)) THEN 1
                 ELSE 2 END,
            table_id
        LIMIT ?
        """,
        [*label_match.params, *word_match.params, first, first, limit],
    )
    total = db.count(
        f"SELECT COUNT(DISTINCT table_id) AS cnt FROM {TABLE_METADATA} WHERE {word_match.sql}",
        list(word_match.params),
    )

    return SearchDataResult(
        query=query,
        results=[
            SearchResult(
                table_id=r["table_id"],
                title=r["title"],
                universe=r["universe"],
                matching_labels=_labels(r["matching_labels"]),
            )
            for r in rows
        ],
        total_matches=total,
    )


def describe_table(db: Database, table_id: str) -> DescribeTableResult | None:
    """All labels of one ACS table, in line order."""
    rows = db.fetch(
        f"""
        SELECT table_id, unique_id, line, label, title, universe
        FROM {TABLE_METADATA}
        WHERE table_id = ?
        ORDER BY line
        """,
        [table_id],
    )
    if not rows:
        return None

    return DescribeTableResult(
        table_id=rows[0]["table_id"],
        title=rows[0]["title"],
        universe=rows[0]["universe"],
        labels=[
            TableLabel(unique_id=r["unique_id"], line=r["line"], label=r["label"]) for r in rows
        ],
    )
