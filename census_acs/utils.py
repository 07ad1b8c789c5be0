import logging
import time
import uuid

from pythonjsonlogger.json import JsonFormatter

# ---------- logger JSON ----------
# StreamHandler writes to stderr; stdout belongs to the MCP stdio transport.
logger = logging.getLogger("census_acs")
_handler = logging.StreamHandler()
_formatter = JsonFormatter("%(levelname)s %(message)s %(asctime)s %(name)s")
_handler.setFormatter(_formatter)
logger.setLevel(logging.INFO)
logger.addHandler(_handler)


def configure_logging(level: str) -> None:
    logger.setLevel(level.upper())


def new_request_id() -> str:
    return uuid.uuid4().hex


class Timer:
    def __enter__(self):
        self.t0 = time.perf_counter()
        return self

    def __exit__(self, *_):
        self.elapsed_ms = (time.perf_counter() - self.t0) * 1000.0
