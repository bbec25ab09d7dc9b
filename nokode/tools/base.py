"""
Base classes for tool plugins.

Tools are self-contained capabilities the model can request through the
provider's native tool-calling API. Each tool declares a pydantic input
model, validates the raw arguments against it, performs the requested
action asynchronously, and returns a JSON-serializable result. Tools are
registered in a `ToolRegistry` for lookup by name.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, ClassVar, Dict, List, Optional, Type

from pydantic import BaseModel, ValidationError


class ToolValidationError(Exception):
    """Raised when tool arguments do not match the declared input shape."""


class ToolExecutionError(Exception):
    """Raised when a tool fails while executing valid input."""


@dataclass
class Tool:
    """
    Represents a tool that the agent can invoke.

    Each tool has a model-facing name, a human-readable description and
    an input model. Subclasses implement `run`, which receives the
    validated input and returns a result mapping.
    """

    name: str
    description: str

    input_model: ClassVar[Type[BaseModel]]

    def parameters_schema(self) -> Dict[str, Any]:
        """JSON Schema of the input model, as sent to providers."""
        schema = self.input_model.model_json_schema()
        schema.pop("title", None)
        return schema

    def validate(self, arguments: Any) -> BaseModel:
        try:
            return self.input_model.model_validate(arguments if arguments is not None else {})
        except ValidationError as exc:
            raise ToolValidationError(f"Invalid input for tool '{self.name}': {exc}") from exc

    async def run(self, tool_input: BaseModel) -> Dict[str, Any]:
        raise NotImplementedError


class ToolRegistry:
    """
    Registers and retrieves tools by name.
    """

    def __init__(self) -> None:
        self._tools: Dict[str, Tool] = {}

    def register_tool(self, tool: Tool) -> None:
        self._tools[tool.name] = tool

    def get_tool(self, name: str) -> Optional[Tool]:
        return self._tools.get(name)

    def list_tools(self) -> List[Tool]:
        return list(self._tools.values())

    async def execute(self, name: str, arguments: Any) -> Dict[str, Any]:
        """
        Validate and run a tool by name.

        Raises:
            ToolValidationError: If the tool is unknown or the input is malformed.
            ToolExecutionError: If the tool fails while running.
        """
        tool = self.get_tool(name)
        if tool is None:
            raise ToolValidationError(f"Tool '{name}' is not available.")

        tool_input = tool.validate(arguments)
        try:
            return await tool.run(tool_input)
        except ToolExecutionError:
            raise
        except Exception as exc:  # noqa: BLE001
            raise ToolExecutionError(f"Tool '{name}' raised an error: {exc}") from exc
