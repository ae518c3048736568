"""Observability for the publishing service.

This module provides:
- Structured logging setup
- In-process counters for the publish pipeline
- A timing span for logging how long a pipeline step took
"""

import json
import logging
import time
from contextlib import asynccontextmanager
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from typing import Any, AsyncGenerator

logger = logging.getLogger(__name__)

TEXT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


@dataclass
class PublishMetrics:
    """Counters for the publish pipeline."""

    requests_submitted: int = 0
    requests_created: int = 0
    requests_updated: int = 0
    requests_evicted: int = 0
    requests_rejected: int = 0

    builds_approved: int = 0
    builds_succeeded: int = 0
    builds_failed: int = 0
    requests_denied: int = 0
    requests_skipped_ci: int = 0

    webhooks_received: int = 0
    webhooks_rejected: int = 0
    extraction_failures: int = 0

    def to_dict(self) -> dict[str, int]:
        """Convert metrics to dictionary."""
        return asdict(self)


class StructuredFormatter(logging.Formatter):
    """Render log records as one JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        log_data: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "message": record.getMessage(),
            "logger": record.name,
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        for attr in ("request_id", "owner", "repo", "plugin", "new_repository", "delivery_id"):
            if hasattr(record, attr):
                log_data[attr] = getattr(record, attr)

        return json.dumps(log_data)


def setup_logging(level: str = "INFO", format: str = "text") -> None:
    """Configure logging for the application.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR)
        format: Log format (json, text)
    """
    log_level = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(level=log_level, format=TEXT_FORMAT)
    logging.getLogger().setLevel(log_level)

    if format == "json":
        for handler in logging.root.handlers:
            handler.setFormatter(StructuredFormatter())


_metrics = PublishMetrics()


def get_metrics() -> PublishMetrics:
    """Get the global metrics instance."""
    return _metrics


def reset_metrics() -> None:
    """Zero every counter."""
    global _metrics
    _metrics = PublishMetrics()


def record(counter: str, amount: int = 1) -> None:
    """Increment a named counter on the global metrics."""
    setattr(_metrics, counter, getattr(_metrics, counter) + amount)


def record_publish(owner: str, plugin: str, new_repository: bool) -> None:
    """Record a publish submission.

    Args:
        owner: Repository owner
        plugin: Plugin name
        new_repository: True when the repository has never been approved
    """
    record("requests_submitted")
    logger.info(
        "publish submitted",
        extra={"owner": owner, "plugin": plugin, "new_repository": new_repository},
    )


@asynccontextmanager
async def trace_span(name: str, **fields: Any) -> AsyncGenerator[dict[str, Any], None]:
    """Log the duration of an operation.

    Args:
        name: Name of the span
        **fields: Extra fields attached to the log record

    Yields:
        Mutable dict the caller may fill with outcome details
    """
    span: dict[str, Any] = {}
    start = time.perf_counter()
    try:
        yield span
    finally:
        elapsed = time.perf_counter() - start
        logger.debug(
            f"{name} finished in {elapsed:.3f}s {span}",
            extra=fields,
        )
