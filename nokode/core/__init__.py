"""
Core logic for the nokode server.

This subpackage provides prompt assembly, the startup schema snapshot,
the bounded agent session, response resolution and the per-request
orchestrator that ties them together.
"""

__all__ = [
    "agent",
    "context",
    "orchestrator",
    "prompts",
    "resolver",
    "schema",
]
