"""
Atrium MCP Server.

Exposes workspace indexing, search and the assistant as MCP tools.

Transport: stdio.

Expected MCP Tool Return Format:
{
    "ok": bool,
    "results": Any,          # Present if ok is True
    "error": str            # Present if ok is False
}
"""

import argparse
import logging
import os
import signal
import sys
from typing import Annotated, Any, Dict, List, Optional

from dotenv import load_dotenv
from fastmcp import FastMCP
from mcp.types import ToolAnnotations
from pydantic import Field, ValidationError

from ..common.config import load_config
from ..common.schemas import ContentType, SearchFilter
from ..indexer.outbox import IndexingJob
from .service import Components, build_components

logger = logging.getLogger("atrium.mcp")


class MCPServerApp:
    """
    MCP surface over an assembled Atrium pipeline.

    Indexing through MCP is synchronous: the tool returns once the content
    has been embedded (or skipped), so callers can search for it right away.
    """

    def __init__(self, components: Components, mcp_server_name: str = "atrium") -> None:
        """
        Args:
            components: Pipeline built by ``build_components``
            mcp_server_name: Advertised MCP server name
        """
        self.components = components
        self.mcp = FastMCP(name=mcp_server_name)

        # ---------- MCP Tools: Index Content ---------- #
        @self.mcp.tool(
            name="index_content",
            description=(
                "Index a piece of workspace content (message, task, note or card) for semantic search. "
                "Rich-text bodies (Quill delta JSON) are converted to plain text first. "
                "Re-indexing the same content_id replaces the previous entry."
            ),
            annotations=ToolAnnotations(readOnlyHint=False, destructiveHint=False),
        )
        async def tool_index_content(
            workspace_id: Annotated[str, Field(description="workspace the content belongs to")],
            content_id: Annotated[str, Field(description="unique id of the content within the workspace")],
            content_type: Annotated[str, Field(description="one of: message, task, note, card")],
            body: Annotated[str, Field(description="content text or rich-text body")],
            channel_id: Annotated[Optional[str], Field(description="channel of the content, if any")] = None,
        ) -> Dict[str, Any]:
            try:
                ctype = ContentType(content_type)
            except ValueError:
                return {"ok": False, "error": f"Unsupported content_type: {content_type}"}

            job = IndexingJob(
                workspace_id=workspace_id,
                content_id=content_id,
                content_type=ctype,
                body=body,
                metadata={"channelId": channel_id} if channel_id else {},
            )
            entry_id = await self.components.outbox.process(job)
            return {
                "ok": True,
                "results": {"content_id": content_id, "entry_id": entry_id, "indexed": entry_id is not None},
            }

        # ---------- MCP Tools: Semantic Search ---------- #
        @self.mcp.tool(
            name="semantic_search",
            description=(
                "Search indexed workspace content by meaning. Returns an empty list when "
                "the embedding provider is not configured."
            ),
            annotations=ToolAnnotations(readOnlyHint=True, destructiveHint=False),
        )
        async def tool_semantic_search(
            workspace_id: Annotated[str, Field(description="workspace to search in")],
            query: Annotated[str, Field(description="natural language query")],
            limit: Annotated[int, Field(description="maximum number of results", ge=1, le=50)] = 10,
            filters: Annotated[
                Optional[List[Dict[str, str]]],
                Field(description="tag filters, e.g. [{'name': 'contentType', 'value': 'note'}]"),
            ] = None,
        ) -> Dict[str, Any]:
            try:
                parsed = [SearchFilter.model_validate(f) for f in filters or []]
            except ValidationError as e:
                return {"ok": False, "error": f"Invalid filters: {e}"}

            results = await self.components.retrieval.semantic_search(
                workspace_id, query, filters=parsed, limit=limit
            )
            return {"ok": True, "results": [r.model_dump(mode="json") for r in results]}

        # ---------- MCP Tools: Search All ---------- #
        @self.mcp.tool(
            name="search_all",
            description=(
                "Keyword search across messages, tasks, notes and board cards of a workspace, "
                "newest first."
            ),
            annotations=ToolAnnotations(readOnlyHint=True, destructiveHint=False),
        )
        async def tool_search_all(
            workspace_id: Annotated[str, Field(description="workspace to search in")],
            query: Annotated[str, Field(description="text that must appear in the content")],
            limit: Annotated[int, Field(description="maximum number of results", ge=1, le=50)] = 10,
            channel_id: Annotated[Optional[str], Field(description="restrict messages and notes to a channel")] = None,
        ) -> Dict[str, Any]:
            results = await self.components.retrieval.search_all(
                workspace_id, query, channel_id=channel_id, limit=limit
            )
            return {"ok": True, "results": [r.model_dump(mode="json") for r in results]}

        # ---------- MCP Tools: Ask Assistant ---------- #
        @self.mcp.tool(
            name="ask_assistant",
            description=(
                "Ask the workspace assistant a question. Answers are grounded in workspace content "
                "and recorded in the member's conversation history."
            ),
            annotations=ToolAnnotations(readOnlyHint=False, destructiveHint=False),
        )
        async def tool_ask_assistant(
            workspace_id: Annotated[str, Field(description="workspace the question is about")],
            member_id: Annotated[str, Field(description="member asking the question")],
            message: Annotated[str, Field(description="the question or request")],
        ) -> Dict[str, Any]:
            if not message.strip():
                return {"ok": False, "error": "message must not be empty"}

            reply = await self.components.orchestrator.handle(workspace_id, member_id, message)
            return {
                "ok": True,
                "results": {
                    "response": reply.response,
                    "assistant_type": reply.assistant_type.value,
                    "grounded": reply.grounded,
                    "sources": [s.model_dump(mode="json") for s in reply.sources],
                    "actions": [a.model_dump(mode="json", exclude_none=True) for a in reply.actions],
                },
            }

    def run(self) -> None:
        """Runs the MCP server using stdio transport."""
        self.mcp.run(transport="stdio")


def main() -> None:
    load_dotenv()
    logging.basicConfig(
        level=logging.INFO,
        stream=sys.stderr,  # stdout carries the MCP protocol
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
    )

    parser = argparse.ArgumentParser(description="Run the Atrium MCP server (stdio).")
    parser.add_argument(
        "--server-name",
        default=os.getenv("MCP_SERVER_NAME", "atrium"),
        help="Advertised MCP server name.",
    )
    parser.add_argument(
        "--embedding-mode",
        default=None,
        choices=("femb", "openai", "none"),
        help="Override the configured embedding backend.",
    )
    args = parser.parse_args()

    config = load_config()
    if args.embedding_mode is not None:
        config.embedding.mode = args.embedding_mode

    components = build_components(config)
    logger.info(
        "Atrium MCP server starting (embedding: %s, available: %s)",
        config.embedding.mode, components.embedding_service.is_available,
    )

    app = MCPServerApp(components, mcp_server_name=args.server_name)

    def _handle_shutdown(signum, frame):
        raise SystemExit(0)
    for sig in (signal.SIGINT, getattr(signal, "SIGTERM", None)):
        if sig is not None:
            signal.signal(sig, _handle_shutdown)

    app.run()


if __name__ == "__main__":
    main()
