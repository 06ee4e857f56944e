"""
Tool surface for notes-rag: the four note operations.

Each operation takes a JSON-like argument object and returns a
ToolResult: a list of text content blocks plus an error flag. Nothing
raises past call(); failures come back as ``Error: <message>`` results.

Operation names resolve by exact match against the Operation enum.
Arguments are validated with pydantic before anything touches the stores.
"""

import logging
from enum import Enum
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, StrictStr
from pydantic import ValidationError as PydanticValidationError

from .api import NotesRag
from .errors import IngestionError, NotesRagError, ValidationError
from .types import DeleteOutcome

logger = logging.getLogger(__name__)

# list_notes preview length
PREVIEW_CHARS = 100


class Operation(str, Enum):
    """The closed set of tool operations."""
    QUERY_NOTES = "query_notes"
    ADD_NOTE = "add_note"
    LIST_NOTES = "list_notes"
    DELETE_NOTE = "delete_note"


# ---------------------------------------------------------------------------
# Argument models
# ---------------------------------------------------------------------------

class _Args(BaseModel):
    model_config = ConfigDict(extra="ignore")


class QueryNotesArgs(_Args):
    question: StrictStr = Field(description="The question or query to search for in the notes")


class AddNoteArgs(_Args):
    text: StrictStr = Field(description="The text content of the note to add")


class ListNotesArgs(_Args):
    pass


class DeleteNoteArgs(_Args):
    id: StrictStr = Field(description="The ID of the note to delete")


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------

class TextContent(BaseModel):
    type: Literal["text"] = "text"
    text: str


class ToolResult(BaseModel):
    """Result of a tool call. Serializes the error flag as ``isError``."""
    model_config = ConfigDict(populate_by_name=True)

    content: list[TextContent]
    is_error: bool = Field(default=False, alias="isError")

    @classmethod
    def of(cls, *texts: str, is_error: bool = False) -> "ToolResult":
        return cls(content=[TextContent(text=t) for t in texts], is_error=is_error)

    @classmethod
    def error(cls, message: str) -> "ToolResult":
        return cls.of(f"Error: {message}", is_error=True)

    @property
    def text(self) -> str:
        """All content blocks joined."""
        return "".join(block.text for block in self.content)

    def to_dict(self) -> dict:
        """Wire shape; ``isError`` is present only on errors."""
        data = self.model_dump(by_alias=True)
        if not self.is_error:
            data.pop("isError")
        return data


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------

_DESCRIPTIONS = {
    Operation.QUERY_NOTES: "Query notes using RAG (Retrieval-Augmented Generation) with vector search",
    Operation.ADD_NOTE: "Add a new note to the database with automatic vector embedding",
    Operation.LIST_NOTES: "List all notes in the database",
    Operation.DELETE_NOTE: "Delete a note by its ID",
}

_ARGS = {
    Operation.QUERY_NOTES: QueryNotesArgs,
    Operation.ADD_NOTE: AddNoteArgs,
    Operation.LIST_NOTES: ListNotesArgs,
    Operation.DELETE_NOTE: DeleteNoteArgs,
}


def _input_schema(model: type[BaseModel]) -> dict:
    schema = model.model_json_schema()
    schema.pop("title", None)
    for prop in schema.get("properties", {}).values():
        prop.pop("title", None)
    return schema


def tool_definitions() -> list[dict]:
    """Name, description and JSON input schema of each tool."""
    return [
        {
            "name": op.value,
            "description": _DESCRIPTIONS[op],
            "inputSchema": _input_schema(_ARGS[op]),
        }
        for op in Operation
    ]


def resolve_operation(name: Any) -> Operation:
    """
    Exact-match lookup of an operation name.

    Raises:
        ValidationError: If the name is not one of the four operations
    """
    if isinstance(name, str):
        for op in Operation:
            if op.value == name:
                return op
    raise ValidationError(f"Unknown tool: {name}")


def validate_arguments(op: Operation, arguments: Optional[dict]) -> BaseModel:
    """
    Parse arguments for an operation.

    Raises:
        ValidationError: If a required field is missing or not a string
    """
    model = _ARGS[op]
    if not isinstance(arguments, dict):
        arguments = {}
    try:
        return model.model_validate(arguments)
    except PydanticValidationError as e:
        loc = e.errors()[0]["loc"]
        field = loc[0] if loc else next(iter(model.model_fields))
        raise ValidationError(f"Missing required parameter: {field}") from e


class NotesTools:
    """
    Dispatches tool calls to a NotesRag instance.

    Usage:
        tools = NotesTools(rag)
        result = tools.call("add_note", {"text": "The sky is blue."})
        print(result.text)
    """

    def __init__(self, rag: NotesRag):
        self._rag = rag
        self._handlers = {
            Operation.QUERY_NOTES: self._query_notes,
            Operation.ADD_NOTE: self._add_note,
            Operation.LIST_NOTES: self._list_notes,
            Operation.DELETE_NOTE: self._delete_note,
        }

    @property
    def rag(self) -> NotesRag:
        return self._rag

    def list_tools(self) -> list[dict]:
        return tool_definitions()

    def call(self, name: str, arguments: Optional[dict] = None) -> ToolResult:
        """
        Run a tool. Never raises: every failure becomes an error result.
        """
        try:
            op = resolve_operation(name)
            args = validate_arguments(op, arguments)
            return self._handlers[op](args)
        except ValidationError as e:
            logger.info("Rejected %s call: %s", name, e)
            return ToolResult.error(str(e))
        except IngestionError as e:
            logger.warning(
                "add_note failed at chunk %d of %d (created: %s, orphaned: %s): %s",
                e.chunk_index + 1, e.chunk_count, e.created_ids, e.orphaned_ids, e,
            )
            return ToolResult.error(str(e))
        except NotesRagError as e:
            logger.warning("%s failed: %s", name, e)
            return ToolResult.error(str(e))
        except Exception as e:
            logger.exception("Unexpected error in %s", name)
            return ToolResult.error(str(e) or type(e).__name__)

    # -------------------------------------------------------------------------
    # Handlers
    # -------------------------------------------------------------------------

    def _query_notes(self, args: QueryNotesArgs) -> ToolResult:
        answer = self._rag.query(args.question)
        footer = f"\n\n[Model used: {answer.model}]"
        if answer.context_count:
            footer += f"\n[Found {answer.context_count} relevant notes]"
        return ToolResult.of(answer.text, footer)

    def _add_note(self, args: AddNoteArgs) -> ToolResult:
        ids = self._rag.ingest(args.text)
        if len(ids) > 1:
            message = f"Successfully added notes (split into {len(ids)} chunks)."
        else:
            message = "Successfully added note."
        return ToolResult.of(f"{message} IDs: {', '.join(ids)}")

    def _list_notes(self, args: ListNotesArgs) -> ToolResult:
        notes = self._rag.list_notes()
        if not notes:
            return ToolResult.of("No notes found.")

        lines = []
        for n, note in enumerate(notes, 1):
            preview = note.text[:PREVIEW_CHARS]
            if len(note.text) > PREVIEW_CHARS:
                preview += "..."
            lines.append(f"{n}. [ID: {note.id}] {preview}")
        return ToolResult.of(f"Found {len(notes)} notes:\n\n" + "\n".join(lines))

    def _delete_note(self, args: DeleteNoteArgs) -> ToolResult:
        outcome = self._rag.delete(args.id)
        if outcome is DeleteOutcome.NOT_FOUND:
            return ToolResult.of(f"Note with ID {args.id} not found.", is_error=True)
        return ToolResult.of(f"Successfully deleted note with ID {args.id}.")
