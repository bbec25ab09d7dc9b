"""
Persistent memory tool.

Memory is a free-text markdown file whose content is injected into every
future prompt, so whatever the model writes here becomes part of its own
instructions. Writes are durable as soon as the tool returns.
"""

import asyncio
import logging
import os
from typing import Any, Dict, Literal

from pydantic import BaseModel, Field

from nokode.tools.base import Tool

logger = logging.getLogger(__name__)


class MemoryStore:
    """
    File-backed memory store.

    There is no locking across requests: concurrent rewrites are
    last-writer-wins.
    """

    def __init__(self, path: str) -> None:
        self.path = os.path.abspath(path)

    def read(self) -> str:
        if not os.path.exists(self.path):
            return ""
        # bad bytes decode as U+FFFD
        with open(self.path, "r", encoding="utf-8", errors="replace") as f:
            return f.read()

    def append(self, content: str) -> None:
        existing = self.read()
        if existing and not existing.endswith("\n"):
            existing += "\n"
        self._write(existing + content)

    def rewrite(self, content: str) -> None:
        self._write(content)

    def _write(self, text: str) -> None:
        directory = os.path.dirname(self.path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        with open(self.path, "w", encoding="utf-8") as f:
            f.write(text)

    async def load(self) -> str:
        """Read memory for prompt assembly; unreadable memory counts as empty."""
        try:
            return await asyncio.to_thread(self.read)
        except OSError as exc:
            logger.error("Error loading memory from %s: %s", self.path, exc)
            return ""


class RememberInput(BaseModel):
    content: str = Field(
        description=(
            "User preferences, feedback, or instructions to save (markdown format) "
            "- these become active directives"
        )
    )
    mode: Literal["append", "rewrite"] = Field(
        description="Whether to append to existing memory or rewrite the entire file"
    )


class RememberTool(Tool):
    """
    Append to or rewrite the persistent memory file.

    Tool input schema:
    {
        "content": "Use a dark theme on every page.",
        "mode": "append"
    }
    """

    input_model = RememberInput

    def __init__(self, store: MemoryStore) -> None:
        super().__init__(
            name="updateMemory",
            description=(
                "Update persistent memory to store user feedback, preferences, and instructions "
                "that shape the application. Memory content becomes active directives for the "
                "system. ALWAYS use this for: 1) User feedback about UI/UX preferences, "
                "2) Feature requests, 3) Style preferences, 4) Behavioral changes requested. "
                "The memory content is injected into your prompt and becomes part of your "
                "instructions."
            ),
        )
        self.store = store

    async def run(self, tool_input: RememberInput) -> Dict[str, Any]:
        try:
            if tool_input.mode == "append":
                await asyncio.to_thread(self.store.append, tool_input.content)
                message = "Memory appended successfully"
            else:
                await asyncio.to_thread(self.store.rewrite, tool_input.content)
                message = "Memory rewritten successfully"
        except OSError as exc:
            logger.error("Failed to update memory at %s: %s", self.store.path, exc)
            return {"success": False, "message": f"Failed to update memory: {exc}"}

        logger.info("Memory %s (%d chars)", tool_input.mode, len(tool_input.content))
        return {"success": True, "message": message}
