#!/usr/bin/env python3
"""
MCP server for Solana wallet operations.

Exposes the tools in sol_tools.TOOLS over the MCP stdio transport:
price lookup, balance lookup, and a single-slot wallet connection.
"""

from __future__ import annotations

import asyncio
import logging
import sys
from typing import Any, List

from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.types import TextContent, Tool

from sol_tools import Failure, ToolCall, ToolDispatcher, registry
from sol_wallet import SolConfig

logger = logging.getLogger(__name__)

app = Server("solana-mcp-server")

_dispatcher: ToolDispatcher | None = None


class ToolCallError(Exception):
    """Raised for a Failure result; the server reports it with isError set."""


def get_dispatcher() -> ToolDispatcher:
    global _dispatcher
    if _dispatcher is None:
        _dispatcher = ToolDispatcher(cfg=SolConfig.from_env())
    return _dispatcher


def set_dispatcher(dispatcher: ToolDispatcher | None) -> None:
    global _dispatcher
    _dispatcher = dispatcher


@app.list_tools()
async def list_tools() -> List[Tool]:
    return [
        Tool(name=tool.name, description=tool.description, inputSchema=tool.input_schema)
        for tool in registry.list()
    ]


@app.call_tool()
async def call_tool(name: str, arguments: Any) -> List[TextContent]:
    if arguments is None:
        arguments = {}
    result = await get_dispatcher().invoke(ToolCall(name=name, arguments=arguments))
    if isinstance(result, Failure):
        raise ToolCallError(result.error_text)
    return [TextContent(type="text", text=result.text)]


async def main() -> None:
    cfg = SolConfig.from_env()
    logging.basicConfig(
        level=cfg.log_level,
        stream=sys.stderr,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    set_dispatcher(ToolDispatcher(cfg=cfg))
    logger.info("Solana MCP server running on stdio (rpc=%s)", cfg.rpc_url)
    async with stdio_server() as (read_stream, write_stream):
        await app.run(read_stream, write_stream, app.create_initialization_options())


def run() -> None:
    asyncio.run(main())


if __name__ == "__main__":
    run()
