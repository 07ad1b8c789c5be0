"""Geographic key helpers.

Key layout: <level:3><group:4>US<fips-suffix>, e.g. "0500000US06073" is
county (050), total population (0000), San Diego County (06073).
"""

from __future__ import annotations

import re

CANONICAL_GROUP = "0000"
ZIP_KEY_PREFIX = "860Z200US"

SUMMARY_LEVELS: dict[str, str] = {
    "040": "state",
    "050": "county",
    "140": "tract",
    "150": "block_group",
    "310": "metro",
    "860": "zip",
}

SUMMARY_LEVEL_CODES: dict[str, str] = {name: code for code, name in SUMMARY_LEVELS.items()}

# Name search: ambiguous names prefer the broadest well-known area.
NAME_PRIORITY = ("040", "310", "050")

# Point lookup: the finest containing area wins.
SPECIFICITY = ("150", "140", "860", "050", "310", "040")

_ZIP_RE = re.compile(r"[0-9]{5}")


def get_summary_level(geo_id: str) -> str:
    return geo_id[:3]


def population_group(geo_id: str) -> str:
    return geo_id[3:7]


def fips_suffix(geo_id: str) -> str:
    _, _, suffix = geo_id.partition("US")
    return suffix


def is_canonical(geo_id: str) -> bool:
    return population_group(geo_id) == CANONICAL_GROUP


def looks_like_geo_id(text: str) -> bool:
    return bool(text) and text[0].isdigit() and "US" in text


def is_zip(text: str) -> bool:
    return bool(_ZIP_RE.fullmatch(text))


def zip_geo_id(zip_code: str) -> str:
    return f"{ZIP_KEY_PREFIX}{zip_code}"


def zip_code(geo_id: str) -> str | None:
    """The 5-digit code of a ZIP key, None for any other key."""
    if not geo_id.startswith(ZIP_KEY_PREFIX):
        return None
    return fips_suffix(geo_id)


def level_code(level: str) -> str:
    """Accept a summary level code ("040") or name ("state")."""
    return SUMMARY_LEVEL_CODES.get(level, level)


def level_name(code: str) -> str:
    return SUMMARY_LEVELS.get(code, "unknown")


def parent_state_fips(parent_geo_id: str) -> str:
    # Only the trailing two characters are used, whatever the parent level:
    # a state parent narrows by state, a county parent does not narrow to
    # its own children.
    return parent_geo_id[-2:]
