"""
Ollama server helpers shared by the embedding and generation providers.
"""

import logging
import os

import requests

logger = logging.getLogger(__name__)

DEFAULT_OLLAMA_URL = "http://localhost:11434"
PULL_TIMEOUT = 600


def ollama_base_url(base_url: str | None = None) -> str:
    """Resolve the Ollama URL from the argument, OLLAMA_HOST, or the default."""
    url = base_url or os.environ.get("OLLAMA_HOST") or DEFAULT_OLLAMA_URL
    if not url.startswith(("http://", "https://")):
        url = f"http://{url}"
    return url.rstrip("/")


def _canonical(model: str) -> str:
    # "llama3.1" and "llama3.1:latest" name the same model
    return model if ":" in model else f"{model}:latest"


def ollama_ensure_model(base_url: str, model: str) -> None:
    """
    Make sure the server has ``model``, pulling it on first use.

    Raises:
        RuntimeError: If the server is unreachable or the pull fails.
    """
    try:
        resp = requests.get(f"{base_url}/api/tags", timeout=5)
        resp.raise_for_status()
    except requests.RequestException as e:
        raise RuntimeError(
            f"Cannot reach Ollama at {base_url}. Is `ollama serve` running?"
        ) from e

    installed = {_canonical(m["name"]) for m in resp.json().get("models", [])}
    if _canonical(model) in installed:
        return

    logger.warning("Ollama model %s not found at %s; pulling it", model, base_url)
    try:
        resp = requests.post(
            f"{base_url}/api/pull",
            json={"model": model, "stream": False},
            timeout=PULL_TIMEOUT,
        )
        resp.raise_for_status()
    except requests.RequestException as e:
        raise RuntimeError(f"Failed to pull Ollama model '{model}': {e}") from e

    error = resp.json().get("error")
    if error:
        raise RuntimeError(f"Ollama pull failed for '{model}': {error}")
    logger.info("Pulled Ollama model %s", model)
