"""
Base provider protocols.

These define the interfaces that concrete providers must implement.
Using Protocol for structural subtyping - no explicit inheritance required.
"""

from collections.abc import Sequence
from typing import Protocol, runtime_checkable


# -----------------------------------------------------------------------------
# Embedding Generation
# -----------------------------------------------------------------------------

@runtime_checkable
class EmbeddingProvider(Protocol):
    """
    Generates vector embeddings from text.

    Embeddings enable semantic similarity search. The same provider instance
    must be used for both indexing and querying to ensure consistent vectors.
    Vector length is taken from the first embedding and must not change.

    Example implementation:
        class SentenceTransformerEmbedding:
            def __init__(self, model: str = "BAAI/bge-base-en-v1.5"):
                from sentence_transformers import SentenceTransformer
                self._model = SentenceTransformer(model)

            def embed(self, text: str) -> list[float]:
                return self._model.encode(text).tolist()
    """

    def embed(self, text: str) -> list[float]:
        """
        Generate an embedding vector for the given text.

        Args:
            text: The text to embed

        Returns:
            A list of floats representing the embedding vector
        """
        ...


# -----------------------------------------------------------------------------
# Answer Generation
# -----------------------------------------------------------------------------

# Fixed instruction sent with every question
ANSWER_SYSTEM_PROMPT = (
    "When answering the question or responding, use the context provided, "
    "if it is provided and relevant."
)


def build_context_message(notes: Sequence[str]) -> str:
    """
    Format retrieved notes as a bulleted context block.

    Returns an empty string when there are no notes, so callers can omit
    the block entirely.
    """
    if not notes:
        return ""
    bullets = "\n".join(f"- {note}" for note in notes)
    return f"Context:\n{bullets}"


def build_system_prompt(notes: Sequence[str]) -> str:
    """Instruction followed by the context block, for backends with one system message."""
    return " ".join(part for part in (ANSWER_SYSTEM_PROMPT, build_context_message(notes)) if part)


def build_chat_messages(question: str, notes: Sequence[str]) -> list[dict[str, str]]:
    """
    Role-tagged messages for backends without a distinguished system prompt.

    Context (if any) and the instruction are separate system messages,
    followed by the question as the user message.
    """
    messages = []
    context = build_context_message(notes)
    if context:
        messages.append({"role": "system", "content": context})
    messages.append({"role": "system", "content": ANSWER_SYSTEM_PROMPT})
    messages.append({"role": "user", "content": question})
    return messages


@runtime_checkable
class GenerationProvider(Protocol):
    """
    Answers a question grounded in retrieved notes.

    Two variants exist: the primary remote chat backend and the local
    fallback. Which one a deployment uses is decided once from
    configuration, never per call.

    Attributes:
        name: Provider name ("anthropic", "ollama")
        model: Model identifier reported to callers
    """

    name: str
    model: str

    def generate(self, question: str, context: Sequence[str]) -> str:
        """
        Generate an answer.

        Args:
            question: The user's question
            context: Retrieved note texts, most relevant first (may be empty)

        Returns:
            The answer text

        Raises:
            GenerationFailure: If the backend call fails
        """
        ...


# -----------------------------------------------------------------------------
# Provider Registry
# -----------------------------------------------------------------------------

class ProviderRegistry:
    """
    Registry for discovering and instantiating providers.

    Providers are registered by name and can be instantiated from configuration.
    This allows the store configuration (TOML) to specify providers by name
    rather than requiring code changes.

    Example:
        registry = ProviderRegistry()
        registry.register_embedding("sentence-transformers", SentenceTransformerEmbedding)

        # Later, from config:
        provider = registry.create_embedding("sentence-transformers", {"model": "all-MiniLM-L6-v2"})
    """

    def __init__(self):
        self._embedding_providers: dict[str, type] = {}
        self._generation_providers: dict[str, type] = {}
        self._lazy_loaded = False

    def _ensure_providers_loaded(self) -> None:
        """Lazily load all provider modules."""
        if self._lazy_loaded:
            return

        self._lazy_loaded = True

        # Importing only registers classes; model libraries load on instantiation
        from . import embeddings  # noqa: F401
        from . import llm  # noqa: F401

    # Registration methods

    def register_embedding(self, name: str, provider_class: type) -> None:
        """Register an embedding provider class."""
        self._embedding_providers[name] = provider_class

    def register_generation(self, name: str, provider_class: type) -> None:
        """Register a generation provider class."""
        self._generation_providers[name] = provider_class

    # Factory methods

    @staticmethod
    def _create_provider(kind: str, name: str, providers: dict, params: dict | None):
        """Shared factory logic for all provider types."""
        if name not in providers:
            available = ", ".join(providers.keys()) or "none"
            raise ValueError(
                f"Unknown {kind} provider: '{name}'. "
                f"Available providers: {available}. "
                f"Install missing dependencies or check provider name."
            )
        try:
            return providers[name](**(params or {}))
        except ImportError as e:
            raise RuntimeError(
                f"Failed to create {kind} provider '{name}': {e}\n"
                f"Install required dependencies."
            ) from e
        except Exception as e:
            raise RuntimeError(
                f"Failed to create {kind} provider '{name}': {e}"
            ) from e

    def create_embedding(self, name: str, params: dict | None = None) -> EmbeddingProvider:
        """Create an embedding provider instance."""
        self._ensure_providers_loaded()
        return self._create_provider("embedding", name, self._embedding_providers, params)

    def create_generation(self, name: str, params: dict | None = None) -> GenerationProvider:
        """Create a generation provider instance."""
        self._ensure_providers_loaded()
        return self._create_provider("generation", name, self._generation_providers, params)


# Global registry instance
# Concrete providers register themselves on import
_registry = ProviderRegistry()


def get_registry() -> ProviderRegistry:
    """Get the global provider registry."""
    return _registry
