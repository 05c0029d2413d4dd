"""
Structured event logging.

Every event is one JSON line with the keys: ts, level, message, request_id,
event, module (+ extras). The request id is carried in a context variable set
by the HTTP middleware, so service code never has to thread it through.
"""
from __future__ import annotations

import datetime
import json
import logging
from contextvars import ContextVar
from typing import Any, Dict, Optional

from assistdesk.core.config import get_settings

_log = logging.getLogger("assistdesk")

_request_id: ContextVar[Optional[str]] = ContextVar("assistdesk_request_id", default=None)


def configure_logging() -> None:
    if not _log.handlers:
        logging.basicConfig(level=get_settings().log_level)


def set_request_id(request_id: Optional[str]) -> None:
    _request_id.set(request_id)


def get_request_id() -> Optional[str]:
    return _request_id.get()


def _now_iso() -> str:
    return datetime.datetime.now(datetime.timezone.utc).isoformat()


def emit(level: str, event: str, message: str, module: str, **extra: Any) -> None:
    payload: Dict[str, Any] = {
        "ts": _now_iso(),
        "level": level.lower(),
        "message": message,
        "request_id": get_request_id(),
        "event": event,
        "module": module,
    }
    payload.update(extra)
    _log.log(logging.getLevelName(level.upper()), json.dumps(payload, ensure_ascii=False, default=str))
