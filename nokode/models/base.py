"""
Base types and registry for model providers.

Defines the normalized turn returned by every provider, the session
state handed to it, and a registry that maps provider names to
configured provider instances.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Dict, List, Sequence

if TYPE_CHECKING:
    from nokode.core.agent import Step
    from nokode.tools.base import Tool


@dataclass
class ToolCall:
    """A single tool request issued by the model in one turn."""

    id: str
    name: str
    arguments: Any


@dataclass
class ModelTurn:
    """
    Normalized model output for one step.

    The text attribute holds any free text the model produced; tool_calls
    lists the tool requests in the order they were issued. The raw
    attribute keeps the provider response for debugging.
    """

    text: str = ""
    tool_calls: List[ToolCall] = field(default_factory=list)
    raw: Any = None


@dataclass
class SessionState:
    """Everything a provider needs to produce the next turn."""

    instructions: str
    tools: Sequence["Tool"]
    steps: Sequence["Step"]


class ModelCallError(Exception):
    """Raised when a provider fails to produce a turn."""


class BaseProvider:
    """
    Abstract base class for all LLM providers.

    Providers must implement `generate`. Provider-specific request shaping
    (token ceilings, reasoning effort, message format) stays inside each
    implementation. A classmethod `from_config` builds instances from the
    configuration dictionaries.
    """

    def __init__(self, name: str, model: str) -> None:
        self.name = name
        self.model = model

    async def generate(self, state: SessionState) -> ModelTurn:
        raise NotImplementedError

    @classmethod
    def from_config(cls, name: str, cfg: Dict[str, Any], agent_cfg: Dict[str, Any]) -> "BaseProvider":
        raise NotImplementedError

    async def close(self) -> None:
        return None


class ProviderRegistry:
    """
    ProviderRegistry keeps track of configured providers by name.
    """

    def __init__(self) -> None:
        self.providers: Dict[str, BaseProvider] = {}

    def register_provider(self, provider: BaseProvider) -> None:
        self.providers[provider.name] = provider

    def resolve(self, provider_name: str) -> BaseProvider:
        provider = self.providers.get(provider_name)
        if provider is None:
            raise ModelCallError(f"Provider '{provider_name}' not registered.")
        return provider
