"""Process configuration for the census ACS server.

Values come from CENSUS_ACS_* environment variables (a local .env file is
honoured). Tests build `Settings` directly instead of going through
`load_settings()`.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Literal

from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError, field_validator

load_dotenv()

JSON_DB_FILE = "census_acs.production.json_summaries.db"
PCT_DB_FILE = "census_acs.production.percentiles.db"


class Settings(BaseModel):
    # transport: stdio for local CLI use, sse/http for a remote server
    transport: Literal["stdio", "sse", "http"] = "stdio"
    host: str = "127.0.0.1"
    port: int = Field(default=3000, ge=1, le=65535)

    # database
    db_path: Path = Path("./db")
    db_memory_limit: str = "4GB"
    db_threads: int = Field(default=4, ge=1)
    query_timeout_ms: int = Field(default=120_000, ge=1)
    query_workers: int = Field(default=4, ge=1)
    extensions: tuple[str, ...] = ("spatial",)

    log_level: str = "INFO"

    @field_validator("extensions", mode="before")
    @classmethod
    def _split_extensions(cls, v):
        if isinstance(v, str):
            return tuple(part.strip() for part in v.split(",") if part.strip())
        return v

    @property
    def json_db_path(self) -> Path:
        return self.db_path / JSON_DB_FILE

    @property
    def pct_db_path(self) -> Path:
        return self.db_path / PCT_DB_FILE

    @property
    def query_timeout_s(self) -> float:
        return self.query_timeout_ms / 1000.0


_ENV = {
    "transport": "CENSUS_ACS_TRANSPORT",
    "host": "CENSUS_ACS_HOST",
    "port": "CENSUS_ACS_PORT",
    "db_path": "CENSUS_ACS_DB_PATH",
    "db_memory_limit": "CENSUS_ACS_DB_MEMORY_LIMIT",
    "db_threads": "CENSUS_ACS_DB_THREADS",
    "query_timeout_ms": "CENSUS_ACS_QUERY_TIMEOUT_MS",
    "query_workers": "CENSUS_ACS_QUERY_WORKERS",
    "extensions": "CENSUS_ACS_EXTENSIONS",
    "log_level": "CENSUS_ACS_LOG_LEVEL",
}


def load_settings() -> Settings:
    """Build settings from the environment; unset variables keep defaults."""
    env = {field: os.environ[var] for field, var in _ENV.items() if var in os.environ}
    try:
        return Settings.model_validate(env)
    except ValidationError as e:
        raise RuntimeError(
            f"Config error: check CENSUS_ACS_* environment variables ({e.error_count()} invalid)."
        ) from e
