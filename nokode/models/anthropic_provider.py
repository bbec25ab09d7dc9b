"""
Anthropic provider implementation.

This provider wraps the Claude messages API via the official `anthropic`
async SDK. Session history is translated into alternating assistant
`tool_use` / user `tool_result` content blocks, and the response blocks
are collected back into a normalized turn. Claude models use the general
`max_tokens` ceiling.
"""

import json
import os
from typing import Any, Dict, List, Optional

import anthropic

from nokode.models.base import BaseProvider, ModelCallError, ModelTurn, SessionState, ToolCall


class AnthropicProvider(BaseProvider):
    """
    AnthropicProvider wraps the Claude messages API via the official anthropic SDK.
    """

    def __init__(
        self,
        name: str,
        model: str,
        api_key_env: str,
        max_tokens: int = 50000,
        client: Optional[anthropic.AsyncAnthropic] = None,
    ) -> None:
        super().__init__(name=name, model=model)
        self.api_key_env = api_key_env
        self.max_tokens = max_tokens
        self._async_client = client

    @classmethod
    def from_config(cls, name: str, cfg: Dict[str, Any], agent_cfg: Dict[str, Any]) -> "AnthropicProvider":
        return cls(
            name=name,
            model=cfg.get("model", "claude-3-haiku-20240307"),
            api_key_env=cfg.get("api_key_env", "ANTHROPIC_API_KEY"),
            max_tokens=int(agent_cfg.get("max_tokens", 50000)),
        )

    def _client(self) -> anthropic.AsyncAnthropic:
        if self._async_client is None:
            api_key = os.getenv(self.api_key_env)
            if not api_key:
                raise ModelCallError(
                    f"Environment variable '{self.api_key_env}' is not set for provider '{self.name}'."
                )
            # no client-side timeout on model calls
            self._async_client = anthropic.AsyncAnthropic(api_key=api_key, timeout=None)
        return self._async_client

    def _messages(self, state: SessionState) -> List[Dict[str, Any]]:
        messages: List[Dict[str, Any]] = [{"role": "user", "content": state.instructions}]
        for step in state.steps:
            blocks: List[Dict[str, Any]] = []
            if step.text:
                blocks.append({"type": "text", "text": step.text})
            for inv in step.invocations:
                blocks.append(
                    {
                        "type": "tool_use",
                        "id": inv.call_id,
                        "name": inv.name,
                        "input": inv.arguments if isinstance(inv.arguments, dict) else {},
                    }
                )
            if not blocks:
                continue
            messages.append({"role": "assistant", "content": blocks})
            if step.invocations:
                messages.append(
                    {
                        "role": "user",
                        "content": [
                            {
                                "type": "tool_result",
                                "tool_use_id": inv.call_id,
                                "content": json.dumps(inv.result, default=str),
                                "is_error": not inv.succeeded,
                            }
                            for inv in step.invocations
                        ],
                    }
                )
        return messages

    def build_request(self, state: SessionState) -> Dict[str, Any]:
        """Assemble keyword arguments for `messages.create`."""
        request: Dict[str, Any] = {
            "model": self.model,
            "max_tokens": self.max_tokens,
            "messages": self._messages(state),
        }
        if state.tools:
            request["tools"] = [
                {
                    "name": tool.name,
                    "description": tool.description,
                    "input_schema": tool.parameters_schema(),
                }
                for tool in state.tools
            ]
        return request

    async def generate(self, state: SessionState) -> ModelTurn:
        client = self._client()
        try:
            resp = await client.messages.create(**self.build_request(state))
        except Exception as exc:  # noqa: BLE001
            raise ModelCallError(f"Anthropic provider error: {exc}") from exc

        parts: List[str] = []
        tool_calls: List[ToolCall] = []
        for block in resp.content:
            block_type = getattr(block, "type", "")
            if block_type == "text":
                parts.append(block.text)
            elif block_type == "tool_use":
                tool_calls.append(ToolCall(id=block.id, name=block.name, arguments=block.input))

        return ModelTurn(text="\n".join(parts), tool_calls=tool_calls, raw=resp)

    async def close(self) -> None:
        if self._async_client is not None:
            await self._async_client.close()
