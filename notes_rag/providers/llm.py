"""
Answer generation providers.

AnthropicGeneration is the primary backend, used when an Anthropic
credential is configured. OllamaGeneration is the local fallback.
Failures are raised as GenerationFailure; there is no automatic demotion
from one backend to the other.
"""

from collections.abc import Sequence

from ..errors import GenerationFailure
from .base import build_chat_messages, build_system_prompt, get_registry


class AnthropicGeneration:
    """
    Primary generation backend using Anthropic's Claude API.

    Instruction and context are sent as the system prompt; the question is
    the sole user message.
    """

    name = "anthropic"

    def __init__(
        self,
        model: str = "claude-3-5-sonnet-latest",
        api_key: str | None = None,
        max_tokens: int = 1024,
    ):
        from anthropic import Anthropic

        if not api_key:
            raise ValueError("Anthropic API key required. Set ANTHROPIC_API_KEY")

        self.model = model
        self.max_tokens = max_tokens
        self._client = Anthropic(api_key=api_key)

    def generate(self, question: str, context: Sequence[str]) -> str:
        """Generate an answer using Anthropic Claude."""
        import anthropic

        # The SDK retries rate limits itself; anything left is a failure
        try:
            response = self._client.messages.create(
                model=self.model,
                max_tokens=self.max_tokens,
                system=build_system_prompt(context),
                messages=[{"role": "user", "content": question}],
            )
        except anthropic.APIError as e:
            raise GenerationFailure(f"Anthropic request failed (model={self.model}): {e}") from e

        return "\n".join(block.text for block in response.content if block.type == "text")


class OllamaGeneration:
    """
    Fallback generation backend using a local Ollama model.

    Context and instruction go in as separate system messages ahead of the
    user question. Respects OLLAMA_HOST env var (default: http://localhost:11434).
    """

    name = "ollama"

    def __init__(
        self,
        model: str = "llama3.1:8b",
        base_url: str | None = None,
    ):
        from .ollama_utils import ollama_base_url, ollama_ensure_model

        self.model = model
        self.base_url = ollama_base_url(base_url)
        ollama_ensure_model(self.base_url, self.model)

    def generate(self, question: str, context: Sequence[str]) -> str:
        """Generate an answer using Ollama."""
        import requests

        try:
            response = requests.post(
                f"{self.base_url}/api/chat",
                json={
                    "model": self.model,
                    "messages": build_chat_messages(question, context),
                    "stream": False,
                },
                timeout=(10, 300),  # (connect, read); generation can be slow
            )
        except requests.RequestException as e:
            raise GenerationFailure(
                f"Ollama request failed (model={self.model}): {e}"
            ) from e

        if not response.ok:
            detail = response.text[:200] if response.text else ""
            raise GenerationFailure(
                f"Ollama generate failed (model={self.model}): "
                f"HTTP {response.status_code} from {self.base_url}. {detail}"
            )
        return response.json()["message"]["content"].strip()


_registry = get_registry()
_registry.register_generation("anthropic", AnthropicGeneration)
_registry.register_generation("ollama", OllamaGeneration)
