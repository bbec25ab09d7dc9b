"""
nokode package root.

An HTTP server where every request is answered by a tool-calling LLM
agent. This package provides configuration loading, the core session
and resolution logic, model providers, tool implementations and the
ASGI application.
"""

__all__ = [
    "config",
    "core",
    "models",
    "server",
    "tools",
]
