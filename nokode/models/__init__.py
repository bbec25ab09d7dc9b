"""
Model provider implementations.

This package collects base types in `base.py` and concrete provider
implementations for OpenAI and Anthropic. Adding a new provider involves
creating a new module that subclasses `BaseProvider` and registering it
in `nokode.server.PROVIDER_CLASSES`.
"""

__all__ = [
    "base",
    "openai_provider",
    "anthropic_provider",
]
