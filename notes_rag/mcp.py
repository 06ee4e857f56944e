"""
MCP stdio server for notes-rag.

Exposes the four note tools so AI agents can store notes and ask
questions answered from them.

Usage:
    notes-rag mcp                                   # stdio server (via CLI)
    claude --mcp-server notes="notes-rag mcp"       # Claude Code integration

All NotesRag calls are serialized through a single asyncio.Lock.
Tools return CallToolResult directly, so error results carry isError
with their text unchanged.
"""

import asyncio
from pathlib import Path
from typing import Annotated, Optional

from mcp.server.fastmcp import FastMCP
from mcp.types import CallToolResult, TextContent, ToolAnnotations
from pydantic import Field

from .api import NotesRag
from .tools import NotesTools, Operation, ToolResult, _DESCRIPTIONS

# ---------------------------------------------------------------------------
# Server setup
# ---------------------------------------------------------------------------

mcp = FastMCP(
    "notes-rag",
    instructions=(
        "Personal notes with semantic search. "
        "Add notes, then ask questions answered from the most relevant ones."
    ),
)

_tools: Optional[NotesTools] = None
_lock = asyncio.Lock()


def _get_tools() -> NotesTools:
    """Lazy-init NotesRag with default config (respects NOTES_RAG_STORE_PATH env).

    Must be called inside ``async with _lock``.
    """
    global _tools
    if _tools is None:
        import os
        store_path = os.environ.get("NOTES_RAG_STORE_PATH")
        _tools = NotesTools(NotesRag(store_path=Path(store_path) if store_path else None))
    return _tools


def _to_wire(result: ToolResult) -> CallToolResult:
    # Returned as-is by FastMCP: block boundaries and error text survive.
    return CallToolResult(
        content=[TextContent(type="text", text=block.text) for block in result.content],
        isError=result.is_error,
    )


# ---------------------------------------------------------------------------
# Tool annotations
# ---------------------------------------------------------------------------

_READ_ONLY = ToolAnnotations(readOnlyHint=True, destructiveHint=False)
_ADDITIVE = ToolAnnotations(idempotentHint=False, destructiveHint=False)
_DESTRUCTIVE = ToolAnnotations(destructiveHint=True, idempotentHint=True)


# ---------------------------------------------------------------------------
# Tools
# ---------------------------------------------------------------------------


@mcp.tool(description=_DESCRIPTIONS[Operation.QUERY_NOTES], annotations=_READ_ONLY)
async def query_notes(
    question: Annotated[str, Field(
        description="The question or query to search for in the notes",
    )],
) -> CallToolResult:
    """Answer a question from the most relevant notes."""
    async with _lock:
        result = _get_tools().call(Operation.QUERY_NOTES.value, {"question": question})
    return _to_wire(result)


@mcp.tool(description=_DESCRIPTIONS[Operation.ADD_NOTE], annotations=_ADDITIVE)
async def add_note(
    text: Annotated[str, Field(
        description="The text content of the note to add",
    )],
) -> CallToolResult:
    """Store a note."""
    async with _lock:
        result = _get_tools().call(Operation.ADD_NOTE.value, {"text": text})
    return _to_wire(result)


@mcp.tool(description=_DESCRIPTIONS[Operation.LIST_NOTES], annotations=_READ_ONLY)
async def list_notes() -> CallToolResult:
    """List all notes."""
    async with _lock:
        result = _get_tools().call(Operation.LIST_NOTES.value, {})
    return _to_wire(result)


@mcp.tool(description=_DESCRIPTIONS[Operation.DELETE_NOTE], annotations=_DESTRUCTIVE)
async def delete_note(
    id: Annotated[str, Field(
        description="The ID of the note to delete",
    )],
) -> CallToolResult:
    """Delete a note by ID."""
    async with _lock:
        result = _get_tools().call(Operation.DELETE_NOTE.value, {"id": id})
    return _to_wire(result)


def main():
    """Run the MCP stdio server."""
    import os
    import signal
    # The stdin reader shields blocking readline from cancellation, so the
    # first Ctrl+C would otherwise hang.
    signal.signal(signal.SIGINT, lambda *_: os._exit(130))

    mcp.run(transport="stdio")


if __name__ == "__main__":
    main()
