"""
Prompt management.

This module provides the PromptManager, which loads the instruction
template from disk and fills its `{{PLACEHOLDER}}` markers with the
request details, the persistent memory, the cached schema and a short
summary of what the datastore currently holds.
"""

import asyncio
import json
import logging
import re
from typing import Any, Dict, Mapping, Optional

from nokode.core.context import RequestContext

logger = logging.getLogger(__name__)

PLACEHOLDER_RE = re.compile(r"\{\{([A-Z_]+)\}\}")

DEFAULT_TEMPLATE = """You are a web server. Generate an appropriate response for this HTTP request using the webResponse tool.

Request Information:
Method: {{METHOD}}
Path: {{PATH}}
URL: {{URL}}
Query Parameters: {{QUERY}}
Headers: {{HEADERS}}
Body: {{BODY}}
Client IP: {{IP}}
Timestamp: {{TIMESTAMP}}

{{MEMORY}}

Use the webResponse tool to generate an appropriate response."""


def _json(value: Any) -> str:
    return json.dumps(value, default=str)


class PromptManager:
    """
    Load and fill the instruction template.

    The template path comes from the `paths.prompt` config key. Unknown
    placeholders are left in the text untouched.
    """

    def __init__(self, template_path: Optional[str] = None) -> None:
        self.template_path = template_path

    def load_template(self) -> str:
        """
        Read the template file, falling back to the embedded default.

        Returns:
            The raw template text.
        """
        if not self.template_path:
            return DEFAULT_TEMPLATE
        try:
            with open(self.template_path, "r", encoding="utf-8") as f:
                return f.read()
        except (OSError, UnicodeDecodeError) as exc:
            logger.error("Error loading prompt template %s: %s", self.template_path, exc)
            return DEFAULT_TEMPLATE

    async def load(self) -> str:
        return await asyncio.to_thread(self.load_template)

    def assemble(
        self,
        template: str,
        context: RequestContext,
        memory: str = "",
        schema: str = "",
        datastore_summary: str = "",
    ) -> str:
        values = {
            "METHOD": context.method,
            "PATH": context.path,
            "URL": context.url,
            "QUERY": _json(context.query),
            "HEADERS": _json(context.headers),
            "BODY": _json(context.body),
            "IP": context.ip,
            "TIMESTAMP": context.timestamp,
            "MEMORY": memory + schema + datastore_summary,
        }
        # single pass, so placeholder-like text inside values is never expanded
        return PLACEHOLDER_RE.sub(lambda m: values.get(m.group(1), m.group(0)), template)

    @staticmethod
    def datastore_summary(counts: Mapping[str, int]) -> str:
        """Describe non-empty tables so the model knows what data exists."""
        populated: Dict[str, int] = {name: count for name, count in counts.items() if count > 0}
        if not populated:
            return ""
        lines = [f"- `{name}`: {count} row(s)" for name, count in populated.items()]
        return (
            "\n## DATABASE CONTEXT\n\nThe database currently contains:\n"
            + "\n".join(lines)
            + "\n\nUse the database tool to query them if needed for this request.\n\n"
        )
