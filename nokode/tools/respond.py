"""
Web response tool.

Lets the model declare the HTTP response for the current request. The
tool has no side effect; the resolver picks the declared response out of
the finished session.
"""

import re
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field, field_validator

from nokode.tools.base import Tool

# RFC 9110 token
HEADER_NAME_RE = re.compile(r"^[!#$%&'*+.^_`|~0-9A-Za-z-]+$")


def check_header_value(value: str) -> str:
    """Header values go on the wire as latin-1 and may not break the line."""
    if any(ch in value for ch in "\r\n\x00"):
        raise ValueError("header values must not contain CR, LF or NUL")
    try:
        value.encode("latin-1")
    except UnicodeEncodeError:
        raise ValueError(f"header value {value!r} is not latin-1 encodable") from None
    return value


class RespondInput(BaseModel):
    statusCode: Optional[int] = Field(default=None, ge=100, le=599, description="HTTP status code (default 200)")
    contentType: Optional[str] = Field(default=None, description="Content-Type header value")
    headers: Optional[Dict[str, str]] = Field(default=None, description="Additional response headers")
    body: str = Field(description="Response body as a string (can be HTML, JSON string, plain text, etc.)")

    @field_validator("contentType")
    @classmethod
    def _content_type_is_sendable(cls, value: Optional[str]) -> Optional[str]:
        return value if value is None else check_header_value(value)

    @field_validator("headers")
    @classmethod
    def _headers_are_sendable(cls, value: Optional[Dict[str, str]]) -> Optional[Dict[str, str]]:
        for name, header_value in (value or {}).items():
            if not HEADER_NAME_RE.match(name):
                raise ValueError(f"invalid header name {name!r}")
            check_header_value(header_value)
        return value


class RespondTool(Tool):
    """
    Declare the HTTP response: status, headers and body.

    Tool input schema:
    {
        "statusCode": 200,
        "contentType": "text/html",
        "headers": {"X-Custom": "value"},
        "body": "<html>...</html>"
    }
    """

    input_model = RespondInput

    def __init__(self) -> None:
        super().__init__(
            name="webResponse",
            description="Generate a web response with full control over status, headers, and body",
        )

    async def run(self, tool_input: RespondInput) -> Dict[str, Any]:
        headers: Dict[str, str] = dict(tool_input.headers or {})
        if tool_input.contentType:
            headers["Content-Type"] = tool_input.contentType
        return {
            "statusCode": tool_input.statusCode or 200,
            "headers": headers,
            "body": tool_input.body,
        }
