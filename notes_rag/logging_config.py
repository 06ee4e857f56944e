"""
Logging configuration for notes-rag.

Suppress verbose library output by default for better UX.
"""

import logging
import os
import sys
import warnings
from logging.handlers import RotatingFileHandler
from pathlib import Path

OPS_LOG_FILENAME = "notes-rag-ops.log"

# Libraries that are chatty at INFO level
_NOISY_LOGGERS = (
    "sentence_transformers",
    "transformers",
    "chromadb",
    "httpx",
    "anthropic",
    "openai",
)

# Set environment variables BEFORE model imports to suppress warnings early
if not os.environ.get("NOTES_RAG_VERBOSE"):
    os.environ.setdefault("HF_HUB_DISABLE_PROGRESS_BARS", "1")
    os.environ.setdefault("TRANSFORMERS_VERBOSITY", "error")
    os.environ.setdefault("TOKENIZERS_PARALLELISM", "false")
    os.environ.setdefault("ANONYMIZED_TELEMETRY", "False")


def configure_quiet_mode(quiet: bool = True):
    """
    Configure logging to suppress verbose library output.

    This silences HuggingFace progress bars, library warnings, and the
    INFO chatter of the embedding, vector index and HTTP client libraries.

    Args:
        quiet: If True, suppress verbose output. If False, show everything.
    """
    if not quiet:
        return

    os.environ["HF_HUB_DISABLE_PROGRESS_BARS"] = "1"
    os.environ["TRANSFORMERS_VERBOSITY"] = "error"
    os.environ["TOKENIZERS_PARALLELISM"] = "false"

    warnings.filterwarnings("ignore")

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.ERROR)


def enable_debug_mode():
    """Enable debug-level logging to stderr."""
    warnings.filterwarnings("default")

    os.environ.pop("HF_HUB_DISABLE_PROGRESS_BARS", None)
    os.environ.pop("TRANSFORMERS_VERBOSITY", None)

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)

    if not any(isinstance(h, logging.StreamHandler) and h.stream == sys.stderr
               for h in root_logger.handlers):
        handler = logging.StreamHandler(sys.stderr)
        handler.setLevel(logging.DEBUG)
        handler.setFormatter(logging.Formatter(
            "%(asctime)s %(levelname)s %(name)s: %(message)s",
            datefmt="%H:%M:%S"
        ))
        root_logger.addHandler(handler)

    for name in ("notes_rag", *_NOISY_LOGGERS):
        logging.getLogger(name).setLevel(logging.DEBUG)


def configure_ops_log(store_path: Path) -> RotatingFileHandler:
    """Configure a persistent operations log for a store.

    Writes to {store_path}/notes-rag-ops.log using a rotating file handler
    (1MB max, 3 backups). Always active regardless of --verbose.
    Returns the handler so it can be removed on close().
    """
    store_path.mkdir(parents=True, exist_ok=True)
    handler = RotatingFileHandler(
        str(store_path / OPS_LOG_FILENAME),
        maxBytes=1_000_000,
        backupCount=3,
    )
    handler.setLevel(logging.INFO)
    handler.setFormatter(logging.Formatter(
        "%(asctime)s %(levelname)s %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    ))

    pkg_logger = logging.getLogger("notes_rag")
    pkg_logger.addHandler(handler)
    # Let INFO through even in quiet mode
    if pkg_logger.level == logging.NOTSET or pkg_logger.level > logging.INFO:
        pkg_logger.setLevel(logging.INFO)

    return handler


def remove_ops_log(handler: RotatingFileHandler) -> None:
    """Detach and close a handler returned by configure_ops_log()."""
    logging.getLogger("notes_rag").removeHandler(handler)
    handler.close()
