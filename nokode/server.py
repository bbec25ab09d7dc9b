"""
HTTP surface.

Every method on every path is routed to the RequestOrchestrator. The
application's collaborators (provider, tools, datastore, memory, prompt
manager, schema snapshot) are built once in `create_app` / the lifespan
hook and shared by every request through `app.state.context`.
"""

from __future__ import annotations

import json
import logging
from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional, Tuple

from fastapi import FastAPI, Request
from fastapi.responses import Response

from nokode.core.context import RequestContext
from nokode.core.orchestrator import AppContext, RequestOrchestrator
from nokode.core.prompts import PromptManager
from nokode.core.resolver import HTML_CONTENT_TYPE, ResolvedResponse
from nokode.core.schema import SchemaCache
from nokode.models.anthropic_provider import AnthropicProvider
from nokode.models.base import BaseProvider, ProviderRegistry
from nokode.models.openai_provider import OpenAIProvider
from nokode.tools.base import ToolRegistry
from nokode.tools.database import Datastore, QueryTool
from nokode.tools.memory import MemoryStore, RememberTool
from nokode.tools.respond import RespondTool

logger = logging.getLogger(__name__)

PROVIDER_CLASSES = {
    "openai": OpenAIProvider,
    "anthropic": AnthropicProvider,
}

# computed by the server itself
MANAGED_HEADERS = {"content-length", "transfer-encoding"}


# --------------------------------------------------------------------------------------
# Registry builders
# --------------------------------------------------------------------------------------


def build_provider_registry(cfg: Dict[str, Any]) -> ProviderRegistry:
    """
    Build a registry holding every known provider that has a config section.
    """
    registry = ProviderRegistry()
    providers_cfg = cfg.get("providers", {})
    agent_cfg = cfg.get("agent", {})
    for name, provider_cls in PROVIDER_CLASSES.items():
        if name in providers_cfg:
            registry.register_provider(provider_cls.from_config(name, providers_cfg[name], agent_cfg))
    return registry


def build_tool_registry(memory: MemoryStore, datastore: Datastore) -> ToolRegistry:
    registry = ToolRegistry()
    registry.register_tool(RespondTool())
    registry.register_tool(RememberTool(memory))
    registry.register_tool(QueryTool(datastore))
    return registry


# --------------------------------------------------------------------------------------
# Request / response translation
# --------------------------------------------------------------------------------------


def _group(items: List[Tuple[str, Any]]) -> Dict[str, Any]:
    grouped: Dict[str, List[Any]] = {}
    for key, value in items:
        grouped.setdefault(key, []).append(value)
    return {key: values[0] if len(values) == 1 else values for key, values in grouped.items()}


async def read_body(request: Request) -> Any:
    """
    Parse JSON and url-encoded bodies; other non-empty bodies are kept as
    text and an absent body becomes an empty mapping.
    """
    raw = await request.body()
    if not raw:
        return {}

    content_type = request.headers.get("content-type", "").split(";")[0].strip().lower()
    if content_type == "application/json" or content_type.endswith("+json"):
        try:
            return json.loads(raw)
        except ValueError:
            logger.warning("Malformed JSON body on %s %s", request.method, request.url.path)
    elif content_type == "application/x-www-form-urlencoded":
        form = await request.form()
        return _group(list(form.multi_items()))

    return raw.decode("utf-8", errors="replace")


async def build_request_context(request: Request) -> RequestContext:
    url = request.url.path
    if request.url.query:
        url += "?" + request.url.query
    return RequestContext(
        method=request.method,
        path=request.url.path,
        url=url,
        query=_group(list(request.query_params.multi_items())),
        headers=dict(request.headers),
        body=await read_body(request),
        ip=request.client.host if request.client else "",
    )


def to_http_response(resolved: ResolvedResponse) -> Response:
    headers = {k: v for k, v in resolved.headers.items() if k.lower() not in MANAGED_HEADERS}
    if not any(k.lower() == "content-type" for k in headers):
        headers["Content-Type"] = HTML_CONTENT_TYPE
    return Response(content=resolved.body, status_code=resolved.status_code, headers=headers)


async def handle_any(request: Request) -> Response:
    orchestrator: RequestOrchestrator = request.app.state.orchestrator
    ctx = await build_request_context(request)
    resolved = await orchestrator.handle(ctx)
    return to_http_response(resolved)


class CatchAllEndpoint:
    """
    Raw ASGI endpoint for the catch-all route. Starlette only restricts
    methods on function endpoints, so any verb (PURGE, PROPFIND, ...) gets
    through to the agent.
    """

    async def __call__(self, scope: Dict[str, Any], receive: Any, send: Any) -> None:
        request = Request(scope, receive, send)
        response = await handle_any(request)
        await response(scope, receive, send)


# --------------------------------------------------------------------------------------
# Application factory
# --------------------------------------------------------------------------------------


def create_app(
    config: Dict[str, Any],
    *,
    provider: Optional[BaseProvider] = None,
    datastore: Optional[Datastore] = None,
    memory: Optional[MemoryStore] = None,
    prompts: Optional[PromptManager] = None,
) -> FastAPI:
    paths = config.get("paths", {})
    if provider is None:
        provider = build_provider_registry(config).resolve(config.get("provider", "anthropic"))
    datastore = datastore or Datastore(paths.get("database", "database.db"))
    memory = memory or MemoryStore(paths.get("memory", "memory.md"))
    prompts = prompts or PromptManager(paths.get("prompt", "prompt.md"))

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        schema = await SchemaCache.build(datastore)
        app.state.context = AppContext(
            config=config,
            provider=provider,
            tools=build_tool_registry(memory, datastore),
            datastore=datastore,
            memory=memory,
            prompts=prompts,
            schema=schema,
        )
        app.state.orchestrator = RequestOrchestrator(app.state.context)
        try:
            yield
        finally:
            await provider.close()

    app = FastAPI(title="nokode", lifespan=lifespan, docs_url=None, redoc_url=None, openapi_url=None)
    app.add_route("/{full_path:path}", CatchAllEndpoint())
    return app
