"""
OpenAI provider implementation.

Wraps the OpenAI Chat Completions API with native function calling using
the official async SDK. Reasoning models (the o-series and gpt-5 families)
get minimal internal reasoning effort and the separate, smaller
`reasoning_max_tokens` output ceiling; every other model uses the general
`max_tokens` ceiling. The category is derived from the model id unless
the provider config sets `reasoning` explicitly.
"""

import json
import os
from typing import Any, Dict, List, Optional

from openai import AsyncOpenAI

from nokode.models.base import BaseProvider, ModelCallError, ModelTurn, SessionState, ToolCall

REASONING_MODEL_PREFIXES = ("o1", "o3", "o4", "gpt-5")


def is_reasoning_model(model: str) -> bool:
    return model.lower().startswith(REASONING_MODEL_PREFIXES)


class OpenAIProvider(BaseProvider):
    """
    OpenAIProvider wraps the OpenAI Chat Completions API via the official SDK.
    """

    def __init__(
        self,
        name: str,
        model: str,
        api_key_env: str,
        base_url: str,
        reasoning: Optional[bool] = None,
        max_tokens: int = 50000,
        reasoning_max_tokens: int = 8000,
        client: Optional[AsyncOpenAI] = None,
    ) -> None:
        super().__init__(name=name, model=model)
        self.api_key_env = api_key_env
        self.base_url = base_url
        self.reasoning = is_reasoning_model(model) if reasoning is None else reasoning
        self.max_tokens = max_tokens
        self.reasoning_max_tokens = reasoning_max_tokens
        self._async_client = client

    @classmethod
    def from_config(cls, name: str, cfg: Dict[str, Any], agent_cfg: Dict[str, Any]) -> "OpenAIProvider":
        reasoning = cfg.get("reasoning")
        return cls(
            name=name,
            model=cfg.get("model", "gpt-4-turbo-preview"),
            api_key_env=cfg.get("api_key_env", "OPENAI_API_KEY"),
            base_url=cfg.get("base_url", "https://api.openai.com/v1"),
            reasoning=None if reasoning is None else bool(reasoning),
            max_tokens=int(agent_cfg.get("max_tokens", 50000)),
            reasoning_max_tokens=int(agent_cfg.get("reasoning_max_tokens", 8000)),
        )

    def _client(self) -> AsyncOpenAI:
        if self._async_client is None:
            api_key = os.getenv(self.api_key_env)
            if not api_key:
                raise ModelCallError(
                    f"Environment variable '{self.api_key_env}' is not set for provider '{self.name}'."
                )
            self._async_client = AsyncOpenAI(api_key=api_key, base_url=self.base_url)
        return self._async_client

    def _messages(self, state: SessionState) -> List[Dict[str, Any]]:
        messages: List[Dict[str, Any]] = [{"role": "user", "content": state.instructions}]
        for step in state.steps:
            assistant: Dict[str, Any] = {"role": "assistant", "content": step.text or None}
            if step.invocations:
                assistant["tool_calls"] = [
                    {
                        "id": inv.call_id,
                        "type": "function",
                        "function": {
                            "name": inv.name,
                            "arguments": json.dumps(inv.arguments, default=str),
                        },
                    }
                    for inv in step.invocations
                ]
            messages.append(assistant)
            for inv in step.invocations:
                messages.append(
                    {
                        "role": "tool",
                        "tool_call_id": inv.call_id,
                        "content": json.dumps(inv.result, default=str),
                    }
                )
        return messages

    def build_request(self, state: SessionState) -> Dict[str, Any]:
        """Assemble keyword arguments for `chat.completions.create`."""
        request: Dict[str, Any] = {
            "model": self.model,
            "messages": self._messages(state),
        }
        if state.tools:
            request["tools"] = [
                {
                    "type": "function",
                    "function": {
                        "name": tool.name,
                        "description": tool.description,
                        "parameters": tool.parameters_schema(),
                    },
                }
                for tool in state.tools
            ]
        if self.reasoning:
            request["reasoning_effort"] = "minimal"
            request["max_completion_tokens"] = self.reasoning_max_tokens
        else:
            request["max_tokens"] = self.max_tokens
        return request

    async def generate(self, state: SessionState) -> ModelTurn:
        client = self._client()
        try:
            resp = await client.chat.completions.create(**self.build_request(state))
        except Exception as exc:  # noqa: BLE001
            raise ModelCallError(f"OpenAI provider error: {exc}") from exc

        if not resp.choices:
            raise ModelCallError("OpenAI provider error: response contained no choices")

        message = resp.choices[0].message
        tool_calls: List[ToolCall] = []
        for tc in message.tool_calls or []:
            try:
                arguments = json.loads(tc.function.arguments or "{}")
            except json.JSONDecodeError:
                # left unparsed so the tool reports a validation failure
                arguments = tc.function.arguments
            tool_calls.append(ToolCall(id=tc.id, name=tc.function.name, arguments=arguments))

        return ModelTurn(text=message.content or "", tool_calls=tool_calls, raw=resp)

    async def close(self) -> None:
        if self._async_client is not None:
            await self._async_client.close()
