"""
OpenLog — Request-scoped logger with step duration tracking.

Every line carries the id of the API request it belongs to (``-`` outside
a request), so the GitHub, Clerk and model calls made on behalf of one
request can be followed in an interleaved async log.
"""

import contextvars
import logging
import time
import uuid
from contextlib import contextmanager
from typing import Generator

LOG_FORMAT = "%(asctime)s | %(levelname)-7s | %(request_id)-12s | %(message)s"

_request_id: contextvars.ContextVar[str] = contextvars.ContextVar("openlog_request_id", default="-")


class RequestIdFilter(logging.Filter):
    """Stamps each record with the id of the request being served."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = _request_id.get()
        return True


def new_request_id(request_id: str | None = None) -> str:
    """Start a request scope in the current context and return its id."""
    request_id = request_id or uuid.uuid4().hex[:12]
    _request_id.set(request_id)
    return request_id


def current_request_id() -> str:
    return _request_id.get()


_handler = logging.StreamHandler()
_handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt="%H:%M:%S"))
# third-party records reach this handler too and need the field
_handler.addFilter(RequestIdFilter())

logging.basicConfig(level=logging.INFO, handlers=[_handler])

logger = logging.getLogger("openlog")
logger.addFilter(RequestIdFilter())


@contextmanager
def step_timer(step_name: str) -> Generator[None, None, None]:
    """Context manager that logs the start and duration of a step."""
    logger.info("▶ %s — started", step_name)
    start = time.perf_counter()
    try:
        yield
    finally:
        elapsed_ms = (time.perf_counter() - start) * 1000
        logger.info("✔ %s — completed in %.0f ms", step_name, elapsed_ms)
