"""
Project Archive - logging configuration.

Plain text in development, one JSON object per line in production. Every
record is stamped with the request id, the acting user's email and the
project id of the current request when those are known.
"""

import json
import logging
import sys
import traceback
import uuid
from contextvars import ContextVar
from datetime import datetime
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Dict, Optional

from config import settings


_request_id: ContextVar[str] = ContextVar('request_id', default='')
_user_id: ContextVar[str] = ContextVar('user_id', default='')
_project_id: ContextVar[str] = ContextVar('project_id', default='')

CONTEXT_FIELDS = ('request_id', 'user_id', 'project_id')

# attributes every LogRecord has; anything else came in through ``extra``
_STANDARD_ATTRS = set(
    logging.LogRecord('', 0, '', 0, '', None, None).__dict__
) | {'message', 'asctime', 'taskName'} | set(CONTEXT_FIELDS)


def set_request_id(request_id: str) -> None:
    _request_id.set(request_id)


def set_user_id(user_id: str) -> None:
    _user_id.set(user_id)


def get_user_id() -> str:
    return _user_id.get()


def set_project_id(project_id: str) -> None:
    _project_id.set(project_id)


def generate_request_id() -> str:
    return uuid.uuid4().hex[:8]


def request_context() -> Dict[str, str]:
    """Request-scoped values currently set, keyed by field name."""
    return {
        'request_id': _request_id.get(),
        'user_id': _user_id.get(),
        'project_id': _project_id.get(),
    }


class JSONFormatter(logging.Formatter):
    """One JSON object per record, for log shippers."""

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "timestamp": datetime.utcnow().isoformat() + "Z",
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "location": f"{record.module}.{record.funcName}:{record.lineno}",
        }
        entry.update({k: v for k, v in request_context().items() if v})

        if record.exc_info and record.exc_info[0]:
            exc_type, exc, tb = record.exc_info
            entry["exception"] = {
                "type": exc_type.__name__,
                "message": str(exc),
                "traceback": traceback.format_exception(exc_type, exc, tb),
            }

        entry.update({
            k: v for k, v in record.__dict__.items()
            if k not in _STANDARD_ATTRS and not k.startswith('_')
        })
        return json.dumps(entry, default=str)


class ContextualFormatter(logging.Formatter):
    """Text formatter; missing context shows as ``-``."""

    def format(self, record: logging.LogRecord) -> str:
        for field, value in request_context().items():
            setattr(record, field, value or '-')
        return super().format(record)


class ArchiveLogger(logging.Logger):
    """Logger with one helper per kind of event the service records."""

    def log_request(self, method: str, path: str, status_code: int,
                    duration_ms: float, **kwargs) -> None:
        self.info(
            f"{method} {path} -> {status_code} in {duration_ms:.1f}ms",
            extra={
                "event_type": "http_request",
                "http_method": method,
                "http_path": path,
                "http_status": status_code,
                "duration_ms": round(duration_ms, 2),
                **kwargs
            }
        )

    def log_auth_event(self, event: str, success: bool, user_email: Optional[str] = None,
                       reason: Optional[str] = None, **kwargs) -> None:
        outcome = "ok" if success else "failed"
        parts = [f"Auth {event} {outcome}", user_email, reason]
        self.log(
            logging.INFO if success else logging.WARNING,
            " - ".join(p for p in parts if p),
            extra={
                "event_type": "auth",
                "auth_event": event,
                "auth_success": success,
                "user_email": user_email,
                "failure_reason": reason,
                **kwargs
            }
        )

    def log_transition(self, project_id: Any, action: str, from_status: str,
                       to_status: str, actor_role: str, **kwargs) -> None:
        self.info(
            f"Project {project_id}: {action} ({from_status} -> {to_status}) by {actor_role}",
            extra={
                "event_type": "transition",
                "transition_action": action,
                "from_status": from_status,
                "to_status": to_status,
                "actor_role": actor_role,
                **kwargs
            }
        )


def _build_handlers(production: bool) -> list:
    if production:
        console_format: logging.Formatter = JSONFormatter()
        file_format: logging.Formatter = console_format
    else:
        console_format = ContextualFormatter("%(levelname)-8s [%(request_id)s] %(message)s")
        file_format = ContextualFormatter(
            "%(asctime)s %(levelname)-8s [%(request_id)s] [%(user_id)s] "
            "[project %(project_id)s] %(message)s"
        )

    console = logging.StreamHandler(sys.stdout)
    console.setFormatter(console_format)
    handlers = [console]

    if settings.LOG_FILE:
        path = Path(settings.LOG_FILE)
        path.parent.mkdir(parents=True, exist_ok=True)
        rotating = RotatingFileHandler(path, maxBytes=10 * 1024 * 1024, backupCount=5)
        rotating.setFormatter(file_format)
        handlers.append(rotating)

    return handlers


def setup_logging() -> ArchiveLogger:
    """Configure the ``project_archive`` logger from settings."""
    logging.setLoggerClass(ArchiveLogger)
    log = logging.getLogger("project_archive")
    log.__class__ = ArchiveLogger
    log.setLevel(getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO))
    log.propagate = False

    log.handlers.clear()
    for handler in _build_handlers(settings.ENVIRONMENT == "production"):
        log.addHandler(handler)
    return log


logger: ArchiveLogger = setup_logging()
