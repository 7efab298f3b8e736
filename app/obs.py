"""Observability utilities: logging setup, optional Langfuse tracing and OpenTelemetry spans.

This module centralizes lightweight observability features:
- configure_logging: one stdout handler with timestamps on the root logger.
- Langfuse integration via a minimal Trace wrapper that becomes a safe no-op when
  Langfuse is not installed or not configured by environment variables.
- OpenTelemetry span context manager that gracefully degrades to a no-op when
  OpenTelemetry is not available.

Environment/config dependencies are read from app.config.settings.
"""

from __future__ import annotations

import logging
import sys
from contextlib import contextmanager
from typing import Any, Dict, Optional

from app.config import settings

logger = logging.getLogger(__name__)

# Optional Langfuse
try:
    from langfuse import Langfuse
except ImportError:  # pragma: no cover
    Langfuse = None

# Optional OpenTelemetry
try:
    from opentelemetry import trace
except ImportError:  # pragma: no cover
    trace = None  # type: ignore


_langfuse_client: Optional[Langfuse] = None


def configure_logging(level: str = "") -> None:
    """Configure root logging with an ISO timestamp format on stdout."""
    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    )
    root_logger.setLevel((level or settings.LOG_LEVEL).upper())
    root_logger.addHandler(handler)

    # Reduce noise from verbose third-party libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)


def _init_langfuse() -> Optional[Langfuse]:
    """Initialize and memoize a Langfuse client if configuration is present."""
    global _langfuse_client
    if _langfuse_client is not None:
        return _langfuse_client
    if (
        settings.LANGFUSE_HOST
        and settings.LANGFUSE_PUBLIC_KEY
        and settings.LANGFUSE_SECRET_KEY
        and Langfuse is not None
    ):
        _langfuse_client = Langfuse(
            host=settings.LANGFUSE_HOST,
            public_key=settings.LANGFUSE_PUBLIC_KEY,
            secret_key=settings.LANGFUSE_SECRET_KEY,
        )
        return _langfuse_client
    return None


@contextmanager
def span(name: str, attributes: Optional[Dict[str, Any]] = None):
    """
    Lightweight context manager for an OpenTelemetry span.
    Falls back to no-op if OTel is not available.
    """
    if trace is None:
        yield
        return
    tracer = trace.get_tracer(__name__)
    with tracer.start_as_current_span(name) as otel_span:
        for k, v in (attributes or {}).items():
            if v is not None:
                otel_span.set_attribute(k, v)
        yield


class Trace:
    """
    Minimal wrapper for a Langfuse trace with safe no-op methods if not configured.
    Tracing failures are logged and never affect the request.
    """

    def __init__(self, name: str, input: Optional[Dict[str, Any]] = None):
        self.name = name
        self.enabled = False
        self._span = None
        client = _init_langfuse()
        if client is not None:
            try:
                self._span = client.start_span(name=name, input=input or {})
                self.enabled = True
            except Exception as e:
                logger.warning("Langfuse trace %s not started: %s", name, e)

    def event(self, name: str, data: Optional[Dict[str, Any]] = None):
        """Record a structured event on the trace if Langfuse is enabled."""
        if not self.enabled:
            return
        try:
            self._span.create_event(name=name, input=data or {})
        except Exception as e:
            logger.debug("Langfuse event %s dropped: %s", name, e)

    def end(self, output: Optional[Dict[str, Any]] = None):
        """Finalize the trace, optionally updating a final output payload."""
        if not self.enabled:
            return
        try:
            self._span.update(output=output or {})
            self._span.end()
        except Exception as e:
            logger.debug("Langfuse trace %s not finalized: %s", self.name, e)
