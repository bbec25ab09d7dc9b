"""
Request orchestration.

The orchestrator turns one RequestContext into one ResolvedResponse:
assemble the prompt, run the agent session, resolve the response. Any
failure that ends the session early becomes a fixed 500 error page, so
`handle` never raises.
"""

from __future__ import annotations

import html
import logging
import time
from dataclasses import dataclass
from typing import Any, Dict

from nokode.core.agent import AgentSession, Session
from nokode.core.context import RequestContext
from nokode.core.prompts import PromptManager
from nokode.core.resolver import HTML_CONTENT_TYPE, ResolvedResponse, resolve
from nokode.core.schema import SchemaCache
from nokode.models.base import BaseProvider
from nokode.tools.base import ToolRegistry
from nokode.tools.database import Datastore
from nokode.tools.memory import MemoryStore

logger = logging.getLogger(__name__)

ERROR_PAGE = """
      <html>
        <body>
          <h1>Server Error</h1>
          <p>An error occurred while processing your request.</p>
          <p><strong>Request ID:</strong> {request_id}</p>
          <pre>{message}</pre>
        </body>
      </html>
    """


@dataclass
class AppContext:
    """
    Process-wide collaborators, built once at startup and shared by
    reference with every request task.
    """

    config: Dict[str, Any]
    provider: BaseProvider
    tools: ToolRegistry
    datastore: Datastore
    memory: MemoryStore
    prompts: PromptManager
    schema: SchemaCache

    @property
    def max_steps(self) -> int:
        return int(self.config.get("agent", {}).get("max_steps", 10))


def error_response(request_id: str, exc: BaseException) -> ResolvedResponse:
    return ResolvedResponse(
        status_code=500,
        headers={"Content-Type": HTML_CONTENT_TYPE},
        body=ERROR_PAGE.format(request_id=request_id, message=html.escape(str(exc))),
        source="error",
    )


class RequestOrchestrator:
    def __init__(self, app_context: AppContext) -> None:
        self.app_context = app_context

    async def _build_prompt(self, ctx: RequestContext) -> str:
        app = self.app_context
        memory = await app.memory.load()
        template = await app.prompts.load()

        try:
            summary = app.prompts.datastore_summary(await app.datastore.table_row_counts())
        except Exception as exc:  # noqa: BLE001
            logger.debug("[%s] Datastore summary unavailable: %s", ctx.request_id, exc)
            summary = ""

        prompt = app.prompts.assemble(template, ctx, memory, app.schema.text, summary)
        logger.debug(
            "[%s] Prompt size: %d chars (memory %d, schema %d)",
            ctx.request_id,
            len(prompt),
            len(memory),
            len(app.schema.text),
        )
        return prompt

    async def handle(self, ctx: RequestContext) -> ResolvedResponse:
        app = self.app_context
        started = time.monotonic()
        logger.info("[%s] === REQUEST START: %s %s ===", ctx.request_id, ctx.method, ctx.path)

        try:
            prompt = await self._build_prompt(ctx)
            logger.info(
                "[%s] Using %s provider with model %s",
                ctx.request_id,
                app.provider.name,
                app.provider.model,
            )
            agent = AgentSession(app.provider, app.tools, max_steps=app.max_steps)
            session: Session = await agent.run(prompt, request_id=ctx.request_id)
            response = resolve(session)
        except Exception as exc:  # noqa: BLE001
            logger.exception(
                "[%s] Request %s %s failed after %dms",
                ctx.request_id,
                ctx.method,
                ctx.path,
                _elapsed_ms(started),
            )
            return error_response(ctx.request_id, exc)

        logger.info(
            "[%s] === REQUEST COMPLETE: %d from %s after %d step(s) (%s) in %dms ===",
            ctx.request_id,
            response.status_code,
            response.source,
            len(session.steps),
            session.termination_reason,
            _elapsed_ms(started),
        )
        return response


def _elapsed_ms(start: float) -> int:
    return int((time.monotonic() - start) * 1000)
