"""
Structured Logging for Grafana Loki

Every log line is JSON with consistent, queryable fields.
Query logs by: module, action, check_id, provider, etc.

GRAFANA LOKI QUERIES
====================
# All errors
{project="prose-check"} | json | level="ERROR"

# Follow one check from submission to result
{project="prose-check"} | json | check_id="<id>"

# LLM answers that fell back to the default result
{project="prose-check"} | json | module="text_check" action="check_fallback"

# Token refreshes against SAP AI Core
{project="prose-check"} | json | module="llm.providers" action="token_done"

# Client-side poll failures (timeouts included)
{project="prose-check"} | json | module="coordinator" action="poll_failed"

# History writes that were swallowed
{project="prose-check"} | json | module="coordinator" action="history_failed"

USAGE
=====
from src.utils.logging import log, get_logger, configure_logging

logger = get_logger()

log.info(logger, "checking", "submit_start", "Submitting document",
         profile_id=profile_id, content_format="HTML")

log.error(logger, "text_check", "llm_failed", "LLM request failed",
          error=str(e), model=model)

ACTION NAMING
=============
Consistent suffixes for queryable actions:
  *_start    : beginning of an operation
  *_done     : successful completion
  *_failed   : error/failure
  *_skipped  : intentionally skipped
  *_fallback : falling back to alternative path
"""

import json
import logging
import os
import sys
from datetime import datetime, timezone
from typing import Optional


class StructuredFormatter(logging.Formatter):
    """JSON formatter for Grafana Loki."""

    def __init__(self, pretty: bool = False):
        super().__init__()
        self.pretty = pretty

    @staticmethod
    def _timestamp() -> str:
        return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%f")[:-3] + "Z"

    def format(self, record: logging.LogRecord) -> str:
        msg = record.getMessage()

        # Structured log (emitted via StructuredLogger)
        if getattr(record, "_structured", False):
            data = {
                "ts": self._timestamp(),
                "level": record.levelname,
                "module": record._module,
                "action": record._action,
                "msg": msg,
            }
            for key, value in record._extra.items():
                if value is not None:
                    data[key] = value

            if self.pretty:
                return self._pretty(data)
            return json.dumps(data, default=str, separators=(",", ":"))

        # Third-party log (uvicorn, httpx, ...); wrap so Promtail can still parse it
        if self.pretty:
            return msg
        return json.dumps(
            {
                "ts": self._timestamp(),
                "level": record.levelname,
                "module": record.name,
                "action": "log",
                "msg": msg,
            },
            default=str,
            separators=(",", ":"),
        )

    def _pretty(self, data: dict) -> str:
        """Human-readable format for development."""
        ts = data["ts"][11:23]
        lvl = data["level"][0]
        mod = data["module"].upper()[:12].ljust(12)
        act = data["action"]
        msg = data["msg"]

        skip = {"ts", "level", "module", "action", "msg"}
        ctx = " ".join(f"{k}={v}" for k, v in data.items() if k not in skip)

        return f"{ts} {lvl} [{mod}] {act}: {msg}" + (f" | {ctx}" if ctx else "")


class StructuredLogger:
    """
    Centralized structured logging.

    All methods take a stdlib logger, module name, action name, message and
    arbitrary context fields. Context fields set to None are dropped.
    """

    def _log(
        self,
        logger: logging.Logger,
        level: int,
        module: str,
        action: str,
        msg: str,
        **kwargs,
    ) -> None:
        extra = {
            "_structured": True,
            "_module": module,
            "_action": action,
            "_extra": {k: v for k, v in kwargs.items() if v is not None},
        }
        logger.log(level, msg, extra=extra)

    def info(self, logger: logging.Logger, module: str, action: str, msg: str, **kwargs) -> None:
        self._log(logger, logging.INFO, module, action, msg, **kwargs)

    def warning(self, logger: logging.Logger, module: str, action: str, msg: str, **kwargs) -> None:
        self._log(logger, logging.WARNING, module, action, msg, **kwargs)

    def error(
        self,
        logger: logging.Logger,
        module: str,
        action: str,
        msg: str,
        error: Optional[str] = None,
        error_type: Optional[str] = None,
        **kwargs,
    ) -> None:
        self._log(
            logger, logging.ERROR, module, action, msg,
            error=error, error_type=error_type, **kwargs,
        )

    def debug(self, logger: logging.Logger, module: str, action: str, msg: str, **kwargs) -> None:
        self._log(logger, logging.DEBUG, module, action, msg, **kwargs)


# Singleton instance: import this everywhere
log = StructuredLogger()

_shared_logger = None


def get_logger() -> logging.Logger:
    """Get the shared application logger."""
    global _shared_logger
    if _shared_logger is None:
        _shared_logger = logging.getLogger("prose-check")
    return _shared_logger


def configure_logging() -> None:
    """Configure root logger with structured formatter. Call once at startup.

    Reads from environment:
      LOG_FORMAT: "json" (default, for Loki) or "pretty" (for development)
      LOG_LEVEL: "INFO" (default), "DEBUG", "WARNING", "ERROR"
    """
    pretty = os.environ.get("LOG_FORMAT", "json") == "pretty"
    level_name = os.environ.get("LOG_LEVEL", "INFO").upper()
    level = getattr(logging, level_name, logging.INFO)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(StructuredFormatter(pretty=pretty))

    logging.basicConfig(
        level=level,
        handlers=[handler],
        force=True,
    )

    # LangChain: extremely chatty at DEBUG
    logging.getLogger("langchain").setLevel(logging.WARNING)
    logging.getLogger("langchain_core").setLevel(logging.WARNING)
    logging.getLogger("langchain_openai").setLevel(logging.WARNING)
    logging.getLogger("openai").setLevel(logging.WARNING)

    # HTTP clients
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)

    # SQLAlchemy + embedded DB driver
    logging.getLogger("sqlalchemy").setLevel(logging.WARNING)
    logging.getLogger("aiosqlite").setLevel(logging.WARNING)

    logging.getLogger("asyncio").setLevel(logging.WARNING)
