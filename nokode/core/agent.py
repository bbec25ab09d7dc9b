"""
Bounded tool-calling session.

Defines:
- ToolInvocation / Step / Session: the record of one request's exchange
  with the model.
- AgentSession: drives the active provider against the tool registry,
  one step at a time, until the model stops calling tools or the step
  budget runs out.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from nokode.models.base import BaseProvider, ModelTurn, SessionState, ToolCall
from nokode.tools.base import ToolExecutionError, ToolRegistry, ToolValidationError

logger = logging.getLogger(__name__)

DEFAULT_MAX_STEPS = 10

TERMINATED_COMPLETED = "completed"
TERMINATED_MAX_STEPS = "max_steps"


@dataclass
class ToolInvocation:
    """One tool call paired with its result; the result is always set."""

    call_id: str
    name: str
    arguments: Any
    result: Dict[str, Any]

    @property
    def succeeded(self) -> bool:
        return self.result.get("success", True) is not False


@dataclass
class Step:
    index: int
    text: str = ""
    invocations: List[ToolInvocation] = field(default_factory=list)


@dataclass
class Session:
    steps: List[Step] = field(default_factory=list)
    termination_reason: Optional[str] = None

    @property
    def text(self) -> str:
        """Free text of the final step."""
        return self.steps[-1].text if self.steps else ""


class AgentSession:
    """
    Tool-using agent loop.

    Each step sends the full instructions, the tool list and every prior
    step to the provider. Tool calls of a step are validated and executed
    in the order the model issued them, and their results are attached to
    the step. Tool failures become `success: false` results for the next
    step to see; a provider failure (ModelCallError) propagates.
    """

    def __init__(
        self,
        provider: BaseProvider,
        tools: ToolRegistry,
        max_steps: int = DEFAULT_MAX_STEPS,
    ) -> None:
        if max_steps < 1:
            raise ValueError("max_steps must be at least 1")
        self.provider = provider
        self.tools = tools
        self.max_steps = max_steps

    async def run(self, instructions: str, request_id: str = "") -> Session:
        session = Session()
        started = time.monotonic()

        while len(session.steps) < self.max_steps:
            state = SessionState(
                instructions=instructions,
                tools=self.tools.list_tools(),
                steps=list(session.steps),
            )
            turn: ModelTurn = await self.provider.generate(state)

            step = Step(index=len(session.steps), text=turn.text or "")
            for call in turn.tool_calls:
                step.invocations.append(await self._invoke(call, request_id))
            session.steps.append(step)

            logger.info(
                "[%s] Step %d completed at %dms with %d tool call(s)",
                request_id,
                step.index + 1,
                int((time.monotonic() - started) * 1000),
                len(step.invocations),
            )

            if not turn.tool_calls:
                session.termination_reason = TERMINATED_COMPLETED
                break
        else:
            session.termination_reason = TERMINATED_MAX_STEPS

        return session

    async def _invoke(self, call: ToolCall, request_id: str) -> ToolInvocation:
        arg_keys = sorted(call.arguments) if isinstance(call.arguments, dict) else []
        logger.info("[%s] Tool: %s called (args: %s)", request_id, call.name, arg_keys)
        start = time.monotonic()
        try:
            result = await self.tools.execute(call.name, call.arguments)
        except ToolValidationError as exc:
            logger.warning("[%s] Tool %s rejected input: %s", request_id, call.name, exc)
            result = {"success": False, "error": str(exc), "errorType": "validation"}
        except ToolExecutionError as exc:
            logger.error("[%s] Tool %s failed: %s", request_id, call.name, exc)
            result = {"success": False, "error": str(exc), "errorType": "execution"}

        invocation = ToolInvocation(
            call_id=call.id,
            name=call.name,
            arguments=call.arguments or {},
            result=result,
        )
        logger.info(
            "[%s] Tool %s completed in %dms (success=%s)",
            request_id,
            call.name,
            int((time.monotonic() - start) * 1000),
            invocation.succeeded,
        )
        return invocation
