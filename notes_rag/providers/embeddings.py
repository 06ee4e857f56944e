"""
Embedding providers.

The default is a local sentence-transformers model; OpenAI and Ollama are
available for deployments that prefer a hosted or separately-run model.
"""

import logging
import os

from .base import get_registry

logger = logging.getLogger(__name__)


class SentenceTransformerEmbedding:
    """
    Local embeddings with sentence-transformers.

    Default model is BAAI/bge-base-en-v1.5 (768 dimensions).
    The model loads on first use, not at construction.
    """

    def __init__(self, model: str = "BAAI/bge-base-en-v1.5", device: str | None = None):
        self.model_name = model
        self._device = device
        self._model = None

    def _load(self):
        if self._model is None:
            from sentence_transformers import SentenceTransformer
            logger.info("Loading embedding model %s", self.model_name)
            self._model = SentenceTransformer(self.model_name, device=self._device)
        return self._model

    def embed(self, text: str) -> list[float]:
        vector = self._load().encode(text, normalize_embeddings=True, convert_to_numpy=True)
        return vector.astype("float32").tolist()


class OpenAIEmbedding:
    """
    Embeddings from the OpenAI API.

    Requires: NOTES_RAG_OPENAI_API_KEY or OPENAI_API_KEY environment variable.
    """

    def __init__(self, model: str = "text-embedding-3-small", api_key: str | None = None):
        from openai import OpenAI

        key = api_key or os.environ.get("NOTES_RAG_OPENAI_API_KEY") or os.environ.get("OPENAI_API_KEY")
        if not key:
            raise ValueError(
                "OpenAI API key required. Set NOTES_RAG_OPENAI_API_KEY or OPENAI_API_KEY"
            )
        self.model_name = model
        self._client = OpenAI(api_key=key)

    def embed(self, text: str) -> list[float]:
        response = self._client.embeddings.create(model=self.model_name, input=text)
        return list(response.data[0].embedding)


class OllamaEmbedding:
    """
    Embeddings from a local Ollama server.

    Respects OLLAMA_HOST env var (default: http://localhost:11434).
    """

    def __init__(self, model: str = "nomic-embed-text", base_url: str | None = None):
        from .ollama_utils import ollama_base_url, ollama_ensure_model

        self.model_name = model
        self.base_url = ollama_base_url(base_url)
        ollama_ensure_model(self.base_url, self.model_name)

    def embed(self, text: str) -> list[float]:
        import requests

        response = requests.post(
            f"{self.base_url}/api/embed",
            json={"model": self.model_name, "input": text},
            timeout=(10, 60),  # (connect, read)
        )
        if not response.ok:
            detail = response.text[:200] if response.text else ""
            raise RuntimeError(
                f"Ollama embedding failed (model={self.model_name}): "
                f"HTTP {response.status_code} from {self.base_url}. {detail}"
            )
        return response.json()["embeddings"][0]


_registry = get_registry()
_registry.register_embedding("sentence-transformers", SentenceTransformerEmbedding)
_registry.register_embedding("openai", OpenAIEmbedding)
_registry.register_embedding("ollama", OllamaEmbedding)
