from __future__ import annotations

import contextvars
import datetime as dt
import json
import logging
import os
import sys
from collections import Counter
from collections.abc import Generator, Mapping
from contextlib import contextmanager
from typing import Any

SENSITIVE_KEYS = {"api_key", "token", "authorization", "password", "secret", "redis_url"}

_STANDARD_EXTRAS = (
    "event",
    "request_id",
    "session_id",
    "task_id",
    "method",
    "path",
    "status_code",
    "duration_ms",
    "attributes",
)


def _iso_now() -> str:
    return dt.datetime.now(dt.UTC).isoformat()


def _redact(obj: Any) -> Any:
    if isinstance(obj, Mapping):
        redacted: dict[str, Any] = {}
        for k, v in obj.items():
            if isinstance(k, str) and k.lower() in SENSITIVE_KEYS:
                redacted[k] = "[REDACTED]"
            else:
                redacted[k] = _redact(v)
        return redacted
    if isinstance(obj, list | tuple):
        return [_redact(v) for v in obj]
    return obj


def _build_base_payload(record: logging.LogRecord) -> dict[str, Any]:
    service = getattr(record, "service", None) or os.getenv("SERVICE_NAME") or "sessiontodo"
    return {
        "ts": _iso_now(),
        "level": record.levelname.lower(),
        "service": service,
        "msg": record.getMessage(),
    }


def _add_standard_extras(payload: dict[str, Any], record: logging.LogRecord) -> None:
    for attr in _STANDARD_EXTRAS:
        if hasattr(record, attr):
            payload[attr] = getattr(record, attr)


def _enrich_with_context(payload: dict[str, Any]) -> None:
    ctx = get_request_context() or {}
    for key in ("request_id", "session_id"):
        value = ctx.get(key)
        if key not in payload and value is not None:
            payload[key] = value


class JsonLogFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:  # noqa: D401
        payload: dict[str, Any] = _build_base_payload(record)
        _add_standard_extras(payload, record)
        _enrich_with_context(payload)
        attributes = payload.get("attributes")
        if isinstance(attributes, dict):
            payload["attributes"] = _redact(attributes)
        # Keep the JSON single-line even with a traceback attached
        if record.exc_info:
            exc_type, exc_value, _ = record.exc_info
            payload["err_type"] = getattr(exc_type, "__name__", str(exc_type))
            if exc_value is not None:
                payload["err"] = str(exc_value)
            payload["stack"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)


class ConsoleLogFormatter(logging.Formatter):
    def __init__(self) -> None:
        super().__init__("%(message)s")

    @staticmethod
    def _shorten(value: str | None, *, n: int = 8) -> str:
        if not value:
            return "-"
        return value[:n]

    def format(self, record: logging.LogRecord) -> str:  # noqa: D401
        ts = _iso_now()[11:19]  # HH:MM:SS
        parts: list[str] = [ts, record.levelname.upper()]
        parts.append(str(getattr(record, "service", None) or record.name))
        event = getattr(record, "event", None)
        if event:
            parts.append(str(event))

        ctx = get_request_context() or {}
        session_id = getattr(record, "session_id", None) or ctx.get("session_id")
        request_id = getattr(record, "request_id", None) or ctx.get("request_id")
        if session_id:
            parts.append(f"session={self._shorten(str(session_id))}")
        if request_id:
            parts.append(f"req={self._shorten(str(request_id))}")
        status_code = getattr(record, "status_code", None)
        if status_code is not None:
            parts.append(f"status={status_code}")
        parts.append("-")
        parts.append(record.getMessage())
        return " ".join(parts)


def _choose_formatter() -> logging.Formatter:
    format_pref = (os.getenv("LOG_FORMAT") or "").strip().lower() or "auto"
    if format_pref == "auto":
        try:
            if sys.stdout.isatty():
                return ConsoleLogFormatter()
        except Exception:
            pass
        return JsonLogFormatter()
    if format_pref == "console":
        return ConsoleLogFormatter()
    return JsonLogFormatter()


def _level_from_name(value: str | None) -> int | None:
    level = logging.getLevelName((value or "").strip().upper())
    return level if isinstance(level, int) else None


def _module_levels(raw: str | None) -> dict[str, int]:
    """Parse `LOG_MODULE_LEVELS` ("sessiontodo.store=DEBUG,uvicorn=WARNING")."""
    levels: dict[str, int] = {}
    for entry in (raw or "").split(","):
        logger_name, sep, level_name = entry.partition("=")
        level = _level_from_name(level_name)
        if sep and logger_name.strip() and level is not None:
            levels[logger_name.strip()] = level
    return levels


def _level_for_logger(logger_name: str) -> int:
    """Most specific `LOG_MODULE_LEVELS` entry wins, then `LOG_LEVEL`, then INFO."""
    overrides = _module_levels(os.getenv("LOG_MODULE_LEVELS"))
    name = logger_name
    while name:
        if name in overrides:
            return overrides[name]
        name = name.rpartition(".")[0]
    return _level_from_name(os.getenv("LOG_LEVEL")) or logging.INFO


def get_json_logger(name: str = "sessiontodo") -> logging.Logger:
    logger = logging.getLogger(name)
    if not logger.handlers:
        handler = logging.StreamHandler(stream=sys.stdout)
        handler.setFormatter(_choose_formatter())
        logger.addHandler(handler)
        logger.setLevel(_level_for_logger(name))
        logger.propagate = False
    return logger


def configure_uvicorn_logging() -> None:
    """Bind uvicorn loggers to our formatter and levels.

    Replaces the handlers of "uvicorn", "uvicorn.error" and "uvicorn.access"
    with a single stdout handler so server and application lines share one
    format.
    """
    try:
        for name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
            lg = logging.getLogger(name)
            for h in list(lg.handlers):
                lg.removeHandler(h)
                h.close()
            handler = logging.StreamHandler(stream=sys.stdout)
            handler.setFormatter(_choose_formatter())
            lg.addHandler(handler)
            lg.setLevel(_level_for_logger(name))
            lg.propagate = False
    except Exception:
        # Best-effort; never break app startup over a logging tweak
        pass


class Metrics:
    """In-process counters keyed by name plus an unordered label set."""

    def __init__(self) -> None:
        self._counts: Counter[tuple[str, frozenset[tuple[str, str]]]] = Counter()

    def increment(self, name: str, labels: Mapping[str, str] | None = None) -> None:
        self._counts[(name, frozenset((labels or {}).items()))] += 1

    def value(self, name: str, labels: Mapping[str, str] | None = None) -> int:
        return self._counts[(name, frozenset((labels or {}).items()))]

    def total(self, name: str) -> int:
        return sum(n for (counter, _), n in self._counts.items() if counter == name)


# ----------------------------
# Request context helpers
# ----------------------------

_request_context_var: contextvars.ContextVar[dict[str, Any] | None] = contextvars.ContextVar(
    "sessiontodo_request_context", default=None
)


def get_request_context() -> dict[str, Any] | None:
    return _request_context_var.get()


def bind_session(session_id: str) -> None:
    """Attach a session id to the current request context, if one is active."""
    ctx = _request_context_var.get()
    if ctx is not None:
        ctx["session_id"] = session_id


@contextmanager
def use_request_context(
    request_id: str, session_id: str | None = None
) -> Generator[None, None, None]:
    token = _request_context_var.set({"request_id": request_id, "session_id": session_id})
    try:
        yield None
    finally:
        _request_context_var.reset(token)


# ----------------------------
# Metrics singleton
# ----------------------------

_metrics_singleton: Metrics | None = None


def get_metrics() -> Metrics:
    global _metrics_singleton
    if _metrics_singleton is None:
        _metrics_singleton = Metrics()
    return _metrics_singleton


def reset_metrics() -> None:
    global _metrics_singleton
    _metrics_singleton = Metrics()


__all__ = [
    "ConsoleLogFormatter",
    "JsonLogFormatter",
    "Metrics",
    "bind_session",
    "configure_uvicorn_logging",
    "get_json_logger",
    "get_metrics",
    "get_request_context",
    "reset_metrics",
    "use_request_context",
]
