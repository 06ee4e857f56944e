"""
notes-rag: notes with retrieval-augmented question answering.

Quick start:
    from notes_rag import NotesRag

    with NotesRag() as rag:
        ids = rag.ingest("The sky is blue.")
        answer = rag.query("What color is the sky?")
        print(answer.text, answer.backend)
"""

from .api import NotesRag
from .errors import IngestionError, NotesRagError
from .tools import NotesTools, Operation, ToolResult
from .types import Answer, DeleteOutcome, RetrievedNote

__version__ = "0.1.0"
__all__ = [
    "NotesRag",
    "NotesTools",
    "Operation",
    "ToolResult",
    "Answer",
    "RetrievedNote",
    "DeleteOutcome",
    "NotesRagError",
    "IngestionError",
]
