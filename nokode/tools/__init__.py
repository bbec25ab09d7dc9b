"""
Tool plugin system.

Tools implement the capabilities the model may request during a
session: declaring the HTTP response, updating persistent memory and
running SQL against the datastore. Tools are registered via the
`ToolRegistry` and offered to the model through the provider's native
tool-calling API.
"""

__all__ = [
    "base",
    "respond",
    "memory",
    "database",
]
