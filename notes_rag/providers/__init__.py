"""
Provider interfaces and registry for notes-rag.

Providers are pluggable components for embedding text and generating
answers. Concrete implementations register themselves on import.
"""

from .base import (
    ANSWER_SYSTEM_PROMPT,
    EmbeddingProvider,
    GenerationProvider,
    ProviderRegistry,
    build_chat_messages,
    build_context_message,
    build_system_prompt,
    get_registry,
)

__all__ = [
    "ANSWER_SYSTEM_PROMPT",
    "EmbeddingProvider",
    "GenerationProvider",
    "ProviderRegistry",
    "build_chat_messages",
    "build_context_message",
    "build_system_prompt",
    "get_registry",
]
