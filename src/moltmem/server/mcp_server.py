"""moltmem MCP Server -- stdio-based MCP server exposing the memory tools."""

import asyncio
import atexit
import logging
import sys

from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.types import TextContent, Tool

from moltmem import plugin
from moltmem.config import StoreConfig
from moltmem.plugin import PluginContext
from moltmem.server.handlers import HANDLERS
from moltmem.server.tool_schemas import TOOL_SCHEMAS

logger = logging.getLogger("moltmem.server")

SERVER_NAME = "moltmem"


class ToolError(Exception):
    """A memory tool reported failure; the message is the handler's error text."""


def build_server(ctx: PluginContext) -> Server:
    """Create an MCP Server whose tools operate on *ctx*."""
    server = Server(SERVER_NAME)

    @server.list_tools()
    async def list_tools() -> list[Tool]:
        """Return all memory tools."""
        return [
            Tool(
                name=schema["name"],
                description=schema["description"],
                inputSchema=schema["inputSchema"],
            )
            for schema in TOOL_SCHEMAS
        ]

    @server.call_tool()
    async def call_tool(name: str, arguments: dict) -> list[TextContent]:
        """Dispatch tool call to the appropriate handler."""
        handler = HANDLERS.get(name)
        if not handler:
            return [TextContent(type="text", text=f"Unknown tool: {name}")]

        result = await handler(ctx, arguments or {})
        # Extract text from MCP response format
        content_list = result.get("content", [{}])
        text = content_list[0].get("text", str(result)) if content_list else str(result)
        if result.get("isError"):
            # The SDK turns a raised exception into a result with isError set
            raise ToolError(text)
        return [TextContent(type="text", text=text)]

    return server


def open_context(config: StoreConfig = None) -> PluginContext:
    """Initialize the store and make sure it is flushed when the process exits."""
    ctx = plugin.init(config or StoreConfig.from_env())
    atexit.register(plugin.shutdown, ctx)
    return ctx


async def main(config: StoreConfig = None):
    """Entry point for the moltmem MCP server."""
    logging.basicConfig(level=logging.WARNING, stream=sys.stderr)
    logger.info("Starting moltmem MCP server...")

    ctx = open_context(config)
    server = build_server(ctx)
    try:
        async with stdio_server() as (read_stream, write_stream):
            await server.run(
                read_stream,
                write_stream,
                server.create_initialization_options(),
            )
    finally:
        plugin.shutdown(ctx)


if __name__ == "__main__":
    asyncio.run(main())
