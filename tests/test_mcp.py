"""
Tests for the MCP stdio server tool functions.

Tests the async tool layer over a real NotesTools with mock providers:
parameter mapping, content blocks, and the isError flag, both on the
tool functions and through the server's tools/call handler.
"""

import pytest

pytest.importorskip("mcp")

from mcp import types

from notes_rag.tools import NotesTools


@pytest.fixture(autouse=True)
def patch_tools(rag):
    """Point the server at a test NotesRag."""
    import notes_rag.mcp as mcp_mod
    mcp_mod._tools = NotesTools(rag)
    yield
    mcp_mod._tools = None


def _texts(result: types.CallToolResult) -> list[str]:
    return [block.text for block in result.content]


async def _call_over_wire(name: str, arguments: dict) -> types.CallToolResult:
    """Dispatch a tools/call request the way a client would."""
    from notes_rag.mcp import mcp
    handler = mcp._mcp_server.request_handlers[types.CallToolRequest]
    request = types.CallToolRequest(
        method="tools/call",
        params=types.CallToolRequestParams(name=name, arguments=arguments),
    )
    response = await handler(request)
    return response.root


class TestMcpTools:

    @pytest.mark.asyncio
    async def test_add_then_list(self):
        from notes_rag.mcp import add_note, list_notes
        result = await add_note("The sky is blue.")
        assert result.isError is False
        assert _texts(result) == ["Successfully added note. IDs: 1"]
        listed = await list_notes()
        assert _texts(listed) == ["Found 1 notes:\n\n1. [ID: 1] The sky is blue."]

    @pytest.mark.asyncio
    async def test_query_keeps_blocks(self):
        from notes_rag.mcp import add_note, query_notes
        await add_note("The sky is blue.")
        result = await query_notes("What color is the sky?")
        assert _texts(result) == [
            "Answer to 'What color is the sky?' from 1 notes",
            "\n\n[Model used: llama3.1:8b]\n[Found 1 relevant notes]",
        ]

    @pytest.mark.asyncio
    async def test_delete(self):
        from notes_rag.mcp import add_note, delete_note, list_notes
        await add_note("The sky is blue.")
        assert _texts(await delete_note("1")) == ["Successfully deleted note with ID 1."]
        assert _texts(await list_notes()) == ["No notes found."]

    @pytest.mark.asyncio
    async def test_delete_missing_is_error_result(self):
        from notes_rag.mcp import delete_note
        result = await delete_note("5")
        assert result.isError is True
        assert _texts(result) == ["Note with ID 5 not found."]

    @pytest.mark.asyncio
    async def test_failure_is_error_result(self, generation):
        from notes_rag.mcp import query_notes
        generation.fail = True
        result = await query_notes("anything")
        assert result.isError is True
        assert _texts(result) == ["Error: ollama request failed: simulated outage"]


class TestToolsCallHandler:

    @pytest.mark.asyncio
    async def test_delete_missing_text_is_not_rewrapped(self):
        result = await _call_over_wire("delete_note", {"id": "5"})
        assert result.isError is True
        assert _texts(result) == ["Note with ID 5 not found."]

    @pytest.mark.asyncio
    async def test_generation_failure_text(self, generation):
        generation.fail = True
        result = await _call_over_wire("query_notes", {"question": "anything"})
        assert result.isError is True
        assert _texts(result) == ["Error: ollama request failed: simulated outage"]

    @pytest.mark.asyncio
    async def test_query_returns_two_blocks(self):
        await _call_over_wire("add_note", {"text": "The sky is blue."})
        result = await _call_over_wire("query_notes", {"question": "What color is the sky?"})
        assert result.isError is False
        assert len(result.content) == 2
        assert _texts(result)[1] == "\n\n[Model used: llama3.1:8b]\n[Found 1 relevant notes]"

    @pytest.mark.asyncio
    async def test_add_success(self):
        result = await _call_over_wire("add_note", {"text": "The sky is blue."})
        assert result.isError is False
        assert _texts(result) == ["Successfully added note. IDs: 1"]


class TestServerRegistration:

    @pytest.mark.asyncio
    async def test_four_tools_registered(self):
        from notes_rag.mcp import mcp
        tools = await mcp.list_tools()
        assert sorted(t.name for t in tools) == ["add_note", "delete_note", "list_notes", "query_notes"]
