"""
CLI interface for notes-rag.

Usage:
    notes-rag add "The sky is blue."
    notes-rag query "What color is the sky?"
    notes-rag list
    notes-rag delete 1
"""

import json
import os
import select
import sys
from pathlib import Path
from typing import Optional

import typer
from typing_extensions import Annotated

from .api import NotesRag
from .logging_config import configure_quiet_mode, enable_debug_mode
from .tools import NotesTools, Operation, ToolResult, tool_definitions


def _has_stdin_data() -> bool:
    """Check if stdin has data available without blocking.

    Returns True only when stdin is a pipe with data ready to read.
    """
    if sys.stdin.isatty():
        return False
    try:
        ready, _, _ = select.select([sys.stdin], [], [], 0)
        return bool(ready)
    except (ValueError, OSError):
        return False


# Configure quiet mode by default (suppress verbose library output)
# Set NOTES_RAG_VERBOSE=1 to enable debug mode via environment
if os.environ.get("NOTES_RAG_VERBOSE") == "1":
    enable_debug_mode()
else:
    configure_quiet_mode(quiet=True)


def _verbose_callback(value: bool):
    if value:
        enable_debug_mode()


# Global state for CLI options
_json_output = False
_store_override: Optional[Path] = None


def _json_callback(value: bool):
    global _json_output
    _json_output = value


def _get_json_output() -> bool:
    return _json_output


def _store_callback(value: Optional[Path]):
    global _store_override
    if value is not None:
        _store_override = value


def _get_store_override() -> Optional[Path]:
    return _store_override


app = typer.Typer(
    name="notes-rag",
    help="Notes with retrieval-augmented question answering.",
    no_args_is_help=True,
    rich_markup_mode=None,
)


@app.callback()
def main_callback(
    verbose: Annotated[bool, typer.Option(
        "--verbose", "-v",
        help="Enable debug-level logging to stderr",
        callback=_verbose_callback,
        is_eager=True,
    )] = False,
    output_json: Annotated[bool, typer.Option(
        "--json", "-j",
        help="Output tool results as JSON",
        callback=_json_callback,
        is_eager=True,
    )] = False,
    store: Annotated[Optional[Path], typer.Option(
        "--store", "-s",
        envvar="NOTES_RAG_STORE_PATH",
        help="Path to the store directory (default: ~/.notes-rag/)",
        callback=_store_callback,
        is_eager=True,
    )] = None,
):
    """Notes with retrieval-augmented question answering."""


# -----------------------------------------------------------------------------
# Helpers
# -----------------------------------------------------------------------------

def _get_rag() -> NotesRag:
    """Open the store, handling errors gracefully."""
    import atexit

    try:
        rag = NotesRag(_get_store_override())
    except Exception as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)
    atexit.register(rag.close)
    return rag


def _emit(result: ToolResult) -> None:
    """Print a tool result; exit 1 if it is an error."""
    if _get_json_output():
        typer.echo(json.dumps(result.to_dict(), indent=2))
    elif result.is_error:
        typer.echo(result.text, err=True)
    else:
        typer.echo(result.text)
    if result.is_error:
        raise typer.Exit(1)


def _run(op: Operation, arguments: dict) -> None:
    tools = NotesTools(_get_rag())
    _emit(tools.call(op.value, arguments))


# -----------------------------------------------------------------------------
# Tool commands
# -----------------------------------------------------------------------------

@app.command()
def add(
    text: Annotated[Optional[str], typer.Argument(
        help="Note text (reads stdin if omitted)"
    )] = None,
):
    """Add a note. Long text is split into chunks when splitting is enabled."""
    if text is None:
        if not _has_stdin_data():
            typer.echo("Error: Provide note text or pipe it on stdin", err=True)
            raise typer.Exit(1)
        text = sys.stdin.read()
    _run(Operation.ADD_NOTE, {"text": text})


@app.command()
def query(
    question: Annotated[str, typer.Argument(help="Question to answer from your notes")],
):
    """Answer a question using the most relevant notes as context."""
    _run(Operation.QUERY_NOTES, {"question": question})


@app.command("list")
def list_cmd():
    """List all notes."""
    _run(Operation.LIST_NOTES, {})


@app.command()
def delete(
    id: Annotated[str, typer.Argument(help="ID of the note to delete")],
):
    """Delete a note and its vector."""
    _run(Operation.DELETE_NOTE, {"id": id})


@app.command()
def tools():
    """Show the tool definitions served over MCP."""
    typer.echo(json.dumps(tool_definitions(), indent=2))


# -----------------------------------------------------------------------------
# Maintenance
# -----------------------------------------------------------------------------

@app.command()
def reconcile(
    fix: Annotated[bool, typer.Option(
        "--fix",
        help="Index notes missing a vector and remove vectors with no note"
    )] = False,
):
    """Check that every note has exactly one vector."""
    rag = _get_rag()
    result = rag.reconcile(fix=fix)

    if _get_json_output():
        typer.echo(json.dumps(result, indent=2))
        return

    typer.echo(f"Notes missing from index: {result['missing_from_index']}")
    if result["missing_ids"]:
        typer.echo(f"  {', '.join(result['missing_ids'])}")
    typer.echo(f"Index entries with no note: {result['orphaned_in_index']}")
    if result["orphaned_ids"]:
        typer.echo(f"  {', '.join(result['orphaned_ids'])}")
    if fix:
        typer.echo(f"Indexed: {result['fixed']}, removed: {result['removed']}")
        if result["fixed"] < result["missing_from_index"]:
            raise typer.Exit(1)
    elif result["missing_from_index"] or result["orphaned_in_index"]:
        typer.echo("Run with --fix to repair")


@app.command("pending")
def pending_cmd(
    retry: Annotated[bool, typer.Option(
        "--retry",
        help="Reset failed items back to pending before processing"
    )] = False,
    limit: Annotated[int, typer.Option(
        "--limit", "-n",
        help="Maximum items to process"
    )] = 10,
):
    """Re-index notes whose vector could not be written."""
    rag = _get_rag()
    if retry:
        reset = rag.retry_failed()
        if reset:
            typer.echo(f"Reset {reset} failed items")

    counts = rag.process_pending(limit=limit)
    stats = rag.pending_stats()

    if _get_json_output():
        typer.echo(json.dumps({"processed": counts, "queue": stats}, indent=2))
        return

    typer.echo(
        f"Indexed: {counts['indexed']}, retrying: {counts['failed']}, "
        f"abandoned: {counts['abandoned']}, dropped: {counts['dropped']}"
    )
    typer.echo(f"Queue: {stats['pending']} pending, {stats['failed']} failed")


@app.command()
def mcp():
    """Start MCP stdio server for AI agent integration."""
    if _get_store_override() is not None:
        os.environ["NOTES_RAG_STORE_PATH"] = str(_get_store_override())
    from .mcp import main as mcp_main
    mcp_main()


# -----------------------------------------------------------------------------

def main():
    try:
        app()
    except SystemExit:
        raise  # Let typer handle exit codes
    except KeyboardInterrupt:
        raise SystemExit(130)  # Standard exit code for Ctrl+C
    except Exception as e:
        # Log full traceback to file, show clean message to user
        from .errors import log_exception
        log_path = log_exception(e, context="notes-rag CLI")
        typer.echo(f"Error: {e}", err=True)
        typer.echo(f"Details logged to {log_path}", err=True)
        raise SystemExit(1)


if __name__ == "__main__":
    main()
