"""
Result types returned by the NotesRag API.
"""

from dataclasses import dataclass, field
from enum import Enum


@dataclass
class RetrievedNote:
    """A note resolved from a vector match, with its similarity score."""
    id: str
    text: str
    score: float


@dataclass
class Answer:
    """
    A generated answer with provenance.

    Attributes:
        text: The answer text
        backend: Generation provider name ("anthropic" or "ollama")
        model: Model that produced the answer
        notes: Context notes used, most relevant first
    """
    text: str
    backend: str
    model: str
    notes: list[RetrievedNote] = field(default_factory=list)

    @property
    def context_count(self) -> int:
        return len(self.notes)


class DeleteOutcome(str, Enum):
    """Result of deleting a note. NOT_FOUND is a normal outcome, not an error."""
    DELETED = "deleted"
    NOT_FOUND = "not_found"
