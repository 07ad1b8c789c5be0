"""Filter predicates shared by location search and metric ranking.

Each predicate carries its SQL fragment and the values it binds; fragments
only ever reference column expressions written in this package, every
caller-supplied value goes through a `?` placeholder.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, Sequence

from census_acs.geo import CANONICAL_GROUP


@dataclass(frozen=True)
class Predicate:
    sql: str
    params: tuple[Any, ...] = ()


def where(predicates: Iterable[Predicate]) -> tuple[str, list[Any]]:
    """AND the predicates together into a WHERE clause (empty when none)."""
    preds = list(predicates)
    if not preds:
        return "", []
    params: list[Any] = []
    for p in preds:
        params.extend(p.params)
    return "WHERE " + " AND ".join(f"({p.sql})" for p in preds), params


# ── geographic key predicates (prefix/substring on the key string) ──


def population_group(column: str, group: str) -> Predicate:
    return Predicate(f"SUBSTRING({column}, 4, 4) = ?", (group,))


def canonical(column: str) -> Predicate:
    return population_group(column, CANONICAL_GROUP)


def key_level(column: str, level: str) -> Predicate:
    return Predicate(f"starts_with({column}, ?)", (level,))


def key_state(column: str, state_fips: str) -> Predicate:
    return Predicate(f"contains({column}, ?)", (f"US{state_fips}",))


def name_contains(column: str, text: str) -> Predicate:
    return Predicate(f"contains(lower({column}), lower(?))", (text,))


# ── plain column predicates ──


def equals(column: str, value: Any) -> Predicate:
    return Predicate(f"{column} = ?", (value,))


def at_least(column: str, value: Any) -> Predicate:
    return Predicate(f"{column} >= ?", (value,))


def between(column: str, low: Any, high: Any) -> Predicate:
    return Predicate(f"{column} >= ? AND {column} <= ?", (low, high))


def one_of(column: str, values: Sequence[Any]) -> Predicate:
    placeholders = ", ".join("?" for _ in values)
    return Predicate(f"{column} IN ({placeholders})", tuple(values))


def any_ilike(column: str, keywords: Sequence[str]) -> Predicate:
    """Column matches any keyword, case-insensitive substring."""
    sql = " OR ".join(f"{column} ILIKE ?" for _ in keywords)
    return Predicate(sql, tuple(f"%{kw}%" for kw in keywords))


# ── ordering ──


def level_rank(column: str, levels: Sequence[str]) -> Predicate:
    """CASE expression ranking keys by level prefix; unlisted levels sort last."""
    whens = " ".join(f"WHEN starts_with({column}, ?) THEN {i}" for i, _ in enumerate(levels, 1))
    return Predicate(f"CASE {whens} ELSE {len(levels) + 1} END", tuple(levels))
