"""Span helper for timing gateway calls."""
from __future__ import annotations

import logging
import time
from contextlib import contextmanager
from typing import Iterator

from .logger import log_event


@contextmanager
def span(session_id: str, op: str) -> Iterator[None]:
    """Log ``op`` with its elapsed milliseconds and whether it raised."""

    start = time.perf_counter()
    outcome = "ok"
    try:
        yield
    except Exception:
        outcome = "error"
        raise
    finally:
        elapsed_ms = int((time.perf_counter() - start) * 1000)
        level = logging.INFO if outcome == "ok" else logging.WARNING
        log_event("gateway_call", session_id, level=level, op=op, ms=elapsed_ms, outcome=outcome)


__all__ = ["span"]
