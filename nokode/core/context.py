"""
Per-request context handed from the HTTP layer to the orchestrator.
"""

from __future__ import annotations

import secrets
import string
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict

_ID_ALPHABET = string.ascii_lowercase + string.digits


def new_request_id(length: int = 9) -> str:
    """Short random correlation id used in logs and on the error page."""
    return "".join(secrets.choice(_ID_ALPHABET) for _ in range(length))


def utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


@dataclass
class RequestContext:
    method: str
    path: str
    url: str = ""
    query: Dict[str, Any] = field(default_factory=dict)
    headers: Dict[str, str] = field(default_factory=dict)
    body: Any = field(default_factory=dict)
    ip: str = ""
    timestamp: str = field(default_factory=utc_timestamp)
    request_id: str = field(default_factory=new_request_id)
