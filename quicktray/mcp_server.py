#!/usr/bin/env python3
"""QuickTray MCP Server - clipboard history with semantic search."""

import asyncio
import base64
import binascii
import json
import logging
import sys
from typing import Any, Dict, List

from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.types import Tool, TextContent
from mcp.server.models import InitializationOptions
from mcp.server.lowlevel import NotificationOptions

from quicktray.config import QuickTrayConfig
from quicktray.core.engine import ClipboardEngine
from quicktray.core.history import MAX_RETENTION_LIMIT, MIN_RETENTION_LIMIT
from quicktray.models.schemas import (
    ClipItem,
    ClipResponse,
    ClipSummary,
    SearchResponse,
)

logger = logging.getLogger(__name__)


def _clip_id_schema(description: str) -> Dict[str, Any]:
    return {
        "type": "object",
        "properties": {"clip_id": {"type": "string", "description": description}},
        "required": ["clip_id"],
    }


class QuickTrayMCPServer:
    """MCP front end for the clipboard history engine."""

    def __init__(self, engine: ClipboardEngine):
        self.engine = engine
        self.app = Server("quicktray")
        self._register_handlers()

    def _register_handlers(self):
        """Register MCP protocol handlers."""

        @self.app.list_tools()
        async def list_tools() -> List[Tool]:
            return self.tools()

        @self.app.call_tool()
        async def call_tool(name: str, arguments: Dict[str, Any]) -> List[TextContent]:
            return await self.handle_call(name, arguments)

    def tools(self) -> List[Tool]:
        return [
            Tool(
                name="clip_add",
                description="Add text or a base64 image to the clipboard history",
                inputSchema={
                    "type": "object",
                    "properties": {
                        "content": {
                            "type": "string",
                            "description": "Text content to store",
                        },
                        "image_base64": {
                            "type": "string",
                            "description": "Base64 encoded image bytes",
                        },
                    },
                },
            ),
            Tool(
                name="clip_search",
                description="Semantic search through clipboard history",
                inputSchema={
                    "type": "object",
                    "properties": {
                        "query": {
                            "type": "string",
                            "description": "Natural language search query",
                        },
                        "limit": {
                            "type": "integer",
                            "description": "Maximum results to return",
                            "default": 10,
                            "minimum": 1,
                            "maximum": 100,
                        },
                    },
                    "required": ["query"],
                },
            ),
            Tool(
                name="clip_list",
                description="List clipboard history as displayed, optionally filtered by a query",
                inputSchema={
                    "type": "object",
                    "properties": {
                        "query": {
                            "type": "string",
                            "description": "Search box text; empty shows the full history",
                            "default": "",
                        },
                        "limit": {
                            "type": "integer",
                            "description": "Number of entries to return",
                            "default": 20,
                            "minimum": 1,
                            "maximum": MAX_RETENTION_LIMIT,
                        }
                    },
                },
            ),
            Tool(
                name="clip_pin",
                description="Pin or unpin a clipboard entry",
                inputSchema=_clip_id_schema("Entry to pin or unpin"),
            ),
            Tool(
                name="clip_copy",
                description="Copy an entry back to the system clipboard",
                inputSchema=_clip_id_schema("Entry to copy"),
            ),
            Tool(
                name="clip_remove",
                description="Remove clipboard entry by ID",
                inputSchema=_clip_id_schema("Entry to remove"),
            ),
            Tool(
                name="clip_clear",
                description="Remove every entry, pinned ones included",
                inputSchema={"type": "object", "properties": {}},
            ),
            Tool(
                name="clip_set_retention",
                description="Set how many unpinned entries to keep",
                inputSchema={
                    "type": "object",
                    "properties": {
                        "limit": {
                            "type": "integer",
                            "minimum": MIN_RETENTION_LIMIT,
                            "maximum": MAX_RETENTION_LIMIT,
                        }
                    },
                    "required": ["limit"],
                },
            ),
            Tool(
                name="clip_stats",
                description="Get clipboard history statistics",
                inputSchema={"type": "object", "properties": {}},
            ),
        ]

    async def handle_call(self, name: str, arguments: Dict[str, Any]) -> List[TextContent]:
        """Run a tool and wrap its result as JSON text."""
        try:
            result = await self._dispatch_tool_call(name, arguments or {})
            return [
                TextContent(
                    type="text",
                    text=json.dumps(result, indent=2, ensure_ascii=False, default=str),
                )
            ]
        except Exception as e:
            logger.warning(f"Tool {name} failed: {e}")
            error_result = {"error": str(e), "tool": name, "arguments": arguments}
            return [
                TextContent(type="text", text=json.dumps(error_result, indent=2, default=str))
            ]

    async def _dispatch_tool_call(
        self, name: str, arguments: Dict[str, Any]
    ) -> Dict[str, Any]:
        handlers = {
            "clip_add": self._handle_clip_add,
            "clip_search": self._handle_clip_search,
            "clip_list": self._handle_clip_list,
            "clip_pin": self._handle_clip_pin,
            "clip_copy": self._handle_clip_copy,
            "clip_remove": self._handle_clip_remove,
            "clip_clear": self._handle_clip_clear,
            "clip_set_retention": self._handle_clip_set_retention,
            "clip_stats": self._handle_clip_stats,
        }

        handler = handlers.get(name)
        if not handler:
            raise ValueError(f"Unknown tool: {name}")

        return await handler(arguments)

    async def _handle_clip_add(self, args: Dict[str, Any]) -> Dict[str, Any]:
        if args.get("image_base64"):
            try:
                data = base64.b64decode(args["image_base64"], validate=True)
            except binascii.Error as e:
                raise ValueError(f"Invalid image_base64: {e}")
            item = ClipItem.from_image(data)
        elif args.get("content"):
            item = ClipItem.from_text(args["content"])
        else:
            raise ValueError("Either content or image_base64 is required")

        self.engine.ingest(item)
        stored = next(
            (existing for existing in self.engine.store if existing.same_content(item)),
            item,
        )
        return ClipResponse(
            id=stored.id,
            status="stored" if stored.id == item.id else "touched",
        ).model_dump()

    async def _handle_clip_search(self, args: Dict[str, Any]) -> Dict[str, Any]:
        query = args["query"]
        limit = int(args.get("limit", 10))

        scored = await self.engine.score(query)
        results = [ClipSummary.from_item(s.item, s.score) for s in scored[:limit]]
        return SearchResponse(
            query=query, results=results, count=len(results)
        ).model_dump(mode="json")

    async def _handle_clip_list(self, args: Dict[str, Any]) -> Dict[str, Any]:
        limit = int(args.get("limit", 20))
        query = args.get("query", "")
        displayed = await self.engine.search(query)
        clips = [ClipSummary.from_item(item) for item in displayed[:limit]]
        return {
            "query": query,
            "clips": [clip.model_dump(mode="json") for clip in clips],
            "count": len(clips),
            "limit": limit,
        }

    async def _handle_clip_pin(self, args: Dict[str, Any]) -> Dict[str, Any]:
        clip_id = args["clip_id"]
        self.engine.store.toggle_pin(clip_id)
        item = self.engine.store.get(clip_id)
        if item is None:
            return ClipResponse(id=clip_id, status="not_found").model_dump()
        return ClipResponse(
            id=clip_id, status="pinned" if item.is_pinned else "unpinned"
        ).model_dump()

    async def _handle_clip_copy(self, args: Dict[str, Any]) -> Dict[str, Any]:
        clip_id = args["clip_id"]
        if self.engine.store.get(clip_id) is None:
            return ClipResponse(id=clip_id, status="not_found").model_dump()
        self.engine.store.copy_out(clip_id)
        return ClipResponse(id=clip_id, status="copied").model_dump()

    async def _handle_clip_remove(self, args: Dict[str, Any]) -> Dict[str, Any]:
        clip_id = args["clip_id"]
        if self.engine.store.get(clip_id) is None:
            return ClipResponse(id=clip_id, status="not_found").model_dump()
        self.engine.store.remove(clip_id)
        return ClipResponse(id=clip_id, status="removed").model_dump()

    async def _handle_clip_clear(self, args: Dict[str, Any]) -> Dict[str, Any]:
        removed = len(self.engine.store)
        self.engine.store.clear_all()
        return ClipResponse(status="cleared", message=f"Removed {removed} entries").model_dump()

    async def _handle_clip_set_retention(self, args: Dict[str, Any]) -> Dict[str, Any]:
        self.engine.store.set_retention_limit(int(args["limit"]))
        return {
            "retention_limit": self.engine.store.retention_limit,
            "count": len(self.engine.store),
        }

    async def _handle_clip_stats(self, args: Dict[str, Any]) -> Dict[str, Any]:
        stats = self.engine.store.get_stats()
        stats["embedding_cache"] = self.engine.cache.get_stats()
        stats["storage_path"] = str(self.engine.storage.path)
        return stats

    async def run(self):
        """Run MCP server over stdio."""
        async with stdio_server() as (read_stream, write_stream):
            await self.app.run(
                read_stream,
                write_stream,
                InitializationOptions(
                    server_name="quicktray",
                    server_version="1.0.0",
                    capabilities=self.app.get_capabilities(
                        notification_options=NotificationOptions(),
                        experimental_capabilities={},
                    ),
                ),
            )


async def async_main():
    """Main async entry point."""
    config = QuickTrayConfig.from_env()
    logging.basicConfig(
        level=config.log_level,
        stream=sys.stderr,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    engine = await ClipboardEngine.create(config)
    engine.start()
    try:
        await QuickTrayMCPServer(engine).run()
    finally:
        await engine.stop()


def main():
    """Synchronous entry point for console script."""
    try:
        asyncio.run(async_main())
    except KeyboardInterrupt:
        logger.info("QuickTray MCP Server stopped")


if __name__ == "__main__":
    main()
