"""Structured logging configuration for ab2."""

from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import Any

from loguru import logger


class JSONFormatter:
    """JSON formatter for structured logging."""

    def __call__(self, record: dict[str, Any]) -> str:
        """Format log record as a single JSON line."""
        log_data = {
            "timestamp": record["time"].isoformat(),
            "level": record["level"].name,
            "message": record["message"],
            "module": record.get("module", ""),
            "function": record.get("function", ""),
            "line": record.get("line", 0),
        }

        exception = record.get("exception")
        if exception:
            log_data["exception"] = {
                "type": exception.type.__name__ if exception.type else None,
                "value": str(exception.value) if exception.value else None,
            }

        if record.get("extra"):
            log_data.update({key: str(value) for key, value in record["extra"].items()})

        # loguru treats the return value as a format template
        return json.dumps(log_data, ensure_ascii=False).replace("{", "{{").replace("}", "}}") + "\n"


def setup_logging(
    *,
    level: str = "INFO",
    json_format: bool = False,
    log_file: Path | None = None,
) -> None:
    """Configure logging for the command line tool.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        json_format: Whether to emit one JSON object per line.
        log_file: Optional path to log file. If None, logs only to stderr.
    """
    logger.remove()

    if json_format:
        formatter: Any = JSONFormatter()
    else:
        formatter = (
            "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
            "<level>{level: <8}</level> | "
            "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "
            "<level>{message}</level>"
        )

    logger.add(
        sys.stderr,
        format=formatter,
        level=level.upper(),
        colorize=not json_format,
    )

    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        logger.add(
            log_file,
            format=formatter,
            level=level.upper(),
            rotation="10 MB",
            retention="7 days",
            compression="zip",
        )


def get_logger(name: str) -> Any:
    """Return the shared loguru logger bound to an ab2 component name."""
    return logger.bind(component=name)


__all__ = ["JSONFormatter", "setup_logging", "get_logger"]
