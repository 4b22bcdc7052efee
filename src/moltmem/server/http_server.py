"""moltmem HTTP Server -- the memory tools over Streamable HTTP.

Serves the same PluginContext the stdio server uses, through the MCP SDK's
StreamableHTTPSessionManager. Two plain JSON endpoints sit next to /mcp so
a host can check on the memory store without opening an MCP session:

    GET /health                 store state, database path and memory count
    GET /.well-known/mcp.json   plugin identity and the memory tools offered
"""

import contextlib
import logging
import os
import secrets
from collections.abc import AsyncIterator
from pathlib import Path
from typing import Any, Dict

from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.routing import Mount, Route
from starlette.types import Receive, Scope, Send

from mcp.server.streamable_http_manager import StreamableHTTPSessionManager

from moltmem import __version__, plugin
from moltmem.config import moltmem_home
from moltmem.errors import NotInitializedError
from moltmem.plugin import PluginContext
from moltmem.server.mcp_server import SERVER_NAME, build_server
from moltmem.server.tool_schemas import TOOL_SCHEMAS
from moltmem.sqlite_store import StoreState

logger = logging.getLogger("moltmem.server.http")


def api_key_path() -> Path:
    """Resolve the API key location lazily (follows MOLTMEM_HOME)."""
    return moltmem_home() / "api_key"


def get_or_create_api_key(path: Path = None) -> str:
    """Load the API key, or generate one into a new owner-only (0o600) file."""
    key_path = path or api_key_path()
    if key_path.exists():
        return key_path.read_text().strip()
    key = secrets.token_urlsafe(32)
    key_path.parent.mkdir(parents=True, exist_ok=True, mode=0o700)
    fd = os.open(str(key_path), os.O_WRONLY | os.O_CREAT | os.O_EXCL, 0o600)
    with os.fdopen(fd, "w") as f:
        f.write(key + "\n")
    logger.info("Generated HTTP API key at %s", key_path)
    return key


def store_status(ctx: PluginContext) -> Dict[str, Any]:
    """Lifecycle state of the context's store, with its count when READY."""
    store = ctx.store
    if store is None:
        return {"state": StoreState.UNINITIALIZED.value}
    status: Dict[str, Any] = {"state": store.state.value, "dbPath": str(store.db_path)}
    if store.state is StoreState.READY:
        try:
            status["memories"] = store.count()
        except NotInitializedError:
            status["state"] = StoreState.CLOSED.value  # closed under us
    return status


def server_card() -> Dict[str, Any]:
    """Discovery document: plugin identity, transports and memory tools."""
    return {
        "name": SERVER_NAME,
        "version": __version__,
        "description": "SQLite long-term memory for AI agents",
        "plugin": {
            "id": plugin.PLUGIN_ID,
            "name": plugin.PLUGIN_NAME,
            "slot": plugin.PLUGIN_SLOT,
        },
        "transports": [
            {"type": "streamable-http", "url": "/mcp"},
            {"type": "stdio", "command": "moltmem serve"},
        ],
        "tools": [
            {
                "name": schema["name"],
                "description": schema["description"],
                "required": schema["inputSchema"].get("required", []),
            }
            for schema in TOOL_SCHEMAS
        ],
    }


def _authorized(request: Request, api_key: str) -> bool:
    provided = request.headers.get("x-api-key") or request.query_params.get("api_key")
    return provided is not None and secrets.compare_digest(provided, api_key)


def create_http_app(ctx: PluginContext, api_key: str | None = None) -> Starlette:
    """Create a Starlette ASGI app serving the memory tools for *ctx*.

    Args:
        ctx: Context from plugin.init(); its store backs every tool call.
        api_key: Required on /mcp (X-API-Key header or api_key query
            parameter). None disables the check. /health and the server
            card are always open.
    """
    session_manager = StreamableHTTPSessionManager(
        app=build_server(ctx),
        json_response=True,
        stateless=True,
    )

    async def mcp_asgi_app(scope: Scope, receive: Receive, send: Send) -> None:
        if api_key and not _authorized(Request(scope, receive), api_key):
            response = JSONResponse({"error": "Unauthorized"}, status_code=401)
            await response(scope, receive, send)
            return
        await session_manager.handle_request(scope, receive, send)

    async def health(request: Request):
        status = store_status(ctx)
        ready = status["state"] == StoreState.READY.value
        return JSONResponse(
            {"status": "ok" if ready else "unavailable", "server": SERVER_NAME, "store": status},
            status_code=200 if ready else 503,
        )

    async def card(request: Request):
        return JSONResponse(server_card())

    @contextlib.asynccontextmanager
    async def lifespan(app: Starlette) -> AsyncIterator[None]:
        async with session_manager.run():
            yield

    return Starlette(
        routes=[
            Mount("/mcp", app=mcp_asgi_app),
            Route("/health", endpoint=health),
            Route("/.well-known/mcp.json", endpoint=card),
        ],
        lifespan=lifespan,
    )


async def run_http(host: str, port: int, api_key: str | None, config=None) -> None:
    """Open the store and serve its memory tools with uvicorn until stopped."""
    import uvicorn

    from moltmem.server.mcp_server import open_context

    ctx = open_context(config)
    try:
        app = create_http_app(ctx, api_key=api_key)
        srv = uvicorn.Server(uvicorn.Config(app, host=host, port=port, log_level="info"))
        await srv.serve()
    finally:
        plugin.shutdown(ctx)
