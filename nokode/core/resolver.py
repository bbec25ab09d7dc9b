"""
Response resolution.

Picks exactly one HTTP response out of a finished session:

1. the first successful webResponse call anywhere in the session;
2. otherwise the result of the last call of the last step that made
   calls, sent as JSON;
3. otherwise the model's final text, or a fixed fallback string.

A webResponse issued after the first one is ignored.
"""

import json
import logging
from dataclasses import dataclass, field
from typing import Dict, Optional

from nokode.core.agent import Session, ToolInvocation

logger = logging.getLogger(__name__)

RESPOND_TOOL_NAME = "webResponse"
NO_RESPONSE_TEXT = "No response generated"
JSON_CONTENT_TYPE = "application/json; charset=utf-8"
HTML_CONTENT_TYPE = "text/html; charset=utf-8"


@dataclass
class ResolvedResponse:
    status_code: int = 200
    headers: Dict[str, str] = field(default_factory=dict)
    body: str = ""
    source: str = "text"


def _first_respond(session: Session) -> Optional[ToolInvocation]:
    for step in session.steps:
        for invocation in step.invocations:
            if invocation.name == RESPOND_TOOL_NAME and invocation.succeeded:
                return invocation
    return None


def _last_invocation(session: Session) -> Optional[ToolInvocation]:
    for step in reversed(session.steps):
        if step.invocations:
            return step.invocations[-1]
    return None


def resolve(session: Session) -> ResolvedResponse:
    respond = _first_respond(session)
    if respond is not None:
        output = respond.result
        return ResolvedResponse(
            status_code=int(output.get("statusCode") or 200),
            headers={str(k): str(v) for k, v in (output.get("headers") or {}).items()},
            body=output.get("body") or "",
            source="webResponse",
        )

    last = _last_invocation(session)
    if last is not None:
        logger.warning("No webResponse found, using %s output as fallback", last.name)
        return ResolvedResponse(
            status_code=200,
            headers={"Content-Type": JSON_CONTENT_TYPE},
            body=json.dumps(last.result, default=str),
            source=last.name,
        )

    logger.warning("No tools called, returning text response (%d chars)", len(session.text))
    return ResolvedResponse(
        status_code=200,
        headers={"Content-Type": HTML_CONTENT_TYPE},
        body=session.text or NO_RESPONSE_TEXT,
        source="text",
    )
