"""
Logging for review runs.

Everything goes to stderr so reports printed on stdout can be piped.
Two renderings are available through ``log_format``: ``text`` for a
terminal and ``json`` for CI log collectors. Both carry the fields of
the current :class:`LogContext` (origin, commit, branch) and any
``extra`` passed at the call site (analyzer, file, severity).
"""

import json
import logging
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Dict

from review_bot.config import Settings

_run_fields: ContextVar[Dict[str, Any]] = ContextVar('review_run_fields', default={})

# Anything on a record beyond these came in through ``extra``
_STANDARD_ATTRS = frozenset(vars(logging.makeLogRecord({}))) | {'message', 'asctime'}

# Chatty libraries that should not drown out analyzer output
_QUIET_LOGGERS = ('sentry_sdk', 'urllib3')


def _record_fields(record: logging.LogRecord) -> Dict[str, Any]:
    fields = dict(_run_fields.get())
    fields.update(
        (key, value) for key, value in vars(record).items() if key not in _STANDARD_ATTRS
    )
    return fields


class JSONFormatter(logging.Formatter):
    """One JSON object per line, with run fields under ``fields``."""

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            'ts': datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
        }

        fields = _record_fields(record)
        if fields:
            entry['fields'] = fields

        if record.exc_info:
            entry['exception'] = {
                'type': record.exc_info[0].__name__,
                'message': str(record.exc_info[1]),
                'traceback': self.formatException(record.exc_info),
            }

        return json.dumps(entry, default=str)


class ContextFormatter(logging.Formatter):
    """Plain text with run fields appended as ``[key=value ...]``."""

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        fields = _record_fields(record)
        if fields:
            line += " [" + " ".join(f"{k}={v}" for k, v in fields.items()) + "]"
        return line


def setup_logging(settings: Settings, verbose: bool = False) -> None:
    """
    Configure the root logger for a CLI invocation.

    Args:
        settings: Supplies ``log_level`` and ``log_format``
        verbose: Force DEBUG, as ``-v`` does
    """
    level = logging.DEBUG if verbose else getattr(logging, settings.log_level.upper())

    handler = logging.StreamHandler(sys.stderr)
    if settings.log_format == "json":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(ContextFormatter(fmt='%(levelname)-7s %(name)s: %(message)s'))

    root_logger = logging.getLogger()
    root_logger.handlers = [handler]
    root_logger.setLevel(level)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))

    root_logger.debug(f"Logging at {logging.getLevelName(level)} as {settings.log_format}")


class LogContext:
    """
    Attach fields to every record logged inside the block.

    Nested blocks add to the outer fields and restore them on exit.

    Usage:
        with LogContext(origin="commit", commit="abc123"):
            logger.info("Analyzing")
    """

    def __init__(self, **fields: Any):
        self.fields = fields
        self._token = None

    def __enter__(self) -> "LogContext":
        self._token = _run_fields.set({**_run_fields.get(), **self.fields})
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if self._token is not None:
            _run_fields.reset(self._token)
