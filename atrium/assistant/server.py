"""
Atrium Server

FastAPI server exposing indexing, search and the workspace assistant.

Endpoints:
- GET /health: Health check
- GET /stats: Component statistics
- POST /workspaces/{workspace_id}/content: Enqueue content for indexing
- POST /workspaces/{workspace_id}/search: Lexical search across content types
- POST /workspaces/{workspace_id}/search/semantic: Semantic search
- POST /workspaces/{workspace_id}/assistant/messages: Ask the assistant
- GET /workspaces/{workspace_id}/assistant/history: Conversation history
- DELETE /workspaces/{workspace_id}/assistant/history: Reset conversation
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, HTTPException, Query
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from ..common.config import AtriumConfig, ensure_directories, load_config
from ..common.schemas import ContentType, SearchFilter
from .service import Components, build_components

logger = logging.getLogger("atrium.assistant.server")


# Global state
config: Optional[AtriumConfig] = None
components: Optional[Components] = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize components on startup"""
    global config, components

    logger.info("Starting up...")
    ensure_directories()

    config = load_config()
    components = build_components(config)
    logger.info(
        "Components ready (embedding: %s, available: %s)",
        config.embedding.mode, components.embedding_service.is_available,
    )

    components.outbox.start()

    yield

    logger.info("Shutting down...")
    await components.aclose()


app = FastAPI(
    title="Atrium",
    description="Workspace knowledge retrieval and grounded assistant",
    version="0.1.0",
    lifespan=lifespan,
)


# =============================================================================
# Request Models
# =============================================================================

class IndexContentRequest(BaseModel):
    content_id: str
    content_type: ContentType
    body: Any  # plain text or rich-text delta
    metadata: Dict[str, Any] = Field(default_factory=dict)


class SearchRequest(BaseModel):
    query: str
    channel_id: Optional[str] = None
    limit: int = Field(default=10, ge=1, le=100)


class SemanticSearchRequest(BaseModel):
    query: str
    filters: List[SearchFilter] = Field(default_factory=list)
    limit: int = Field(default=10, ge=1, le=100)


class AssistantMessageRequest(BaseModel):
    member_id: str
    message: str = Field(min_length=1)


def _require() -> Components:
    if components is None:
        raise HTTPException(status_code=503, detail="Server not initialized")
    return components


# =============================================================================
# Endpoints
# =============================================================================

@app.get("/health")
async def health():
    """Health check endpoint"""
    return {
        "status": "healthy",
        "service": "atrium",
        "initialized": components is not None,
        "semantic_search": components.embedding_service.is_available if components else False,
        "indexing_worker": components.outbox.running if components else False,
    }


@app.get("/stats")
async def get_stats():
    """Get component statistics"""
    stats: Dict[str, Any] = {
        "service": "atrium",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }

    if components:
        stats["outbox"] = components.outbox.get_stats()
        stats["conversations"] = components.conversations.get_stats()
        stats["retrieval"] = {
            "score_threshold": components.semantic.score_threshold,
            "semantic_available": components.semantic.is_available,
        }

    return stats


@app.post("/workspaces/{workspace_id}/content", status_code=202)
async def index_content(workspace_id: str, request: IndexContentRequest):
    """Queue content for indexing; returns before the content is embedded."""
    c = _require()
    job = c.retrieval.index_content(
        workspace_id,
        request.content_id,
        request.content_type,
        request.body,
        request.metadata,
    )
    return JSONResponse(
        status_code=202,
        content={"status": "queued", "content_id": job.content_id, "content_type": job.content_type.value},
    )


@app.post("/workspaces/{workspace_id}/search")
async def search(workspace_id: str, request: SearchRequest):
    c = _require()
    results = await c.retrieval.search_all(
        workspace_id, request.query, channel_id=request.channel_id, limit=request.limit
    )
    return {"count": len(results), "results": [r.model_dump(mode="json") for r in results]}


@app.post("/workspaces/{workspace_id}/search/semantic")
async def semantic_search(workspace_id: str, request: SemanticSearchRequest):
    c = _require()
    results = await c.retrieval.semantic_search(
        workspace_id, request.query, filters=request.filters, limit=request.limit
    )
    return {"count": len(results), "results": [r.model_dump(mode="json") for r in results]}


@app.post("/workspaces/{workspace_id}/assistant/messages")
async def ask_assistant(workspace_id: str, request: AssistantMessageRequest):
    c = _require()
    reply = await c.orchestrator.handle(workspace_id, request.member_id, request.message)
    return {
        "response": reply.response,
        "assistant_type": reply.assistant_type.value,
        "grounded": reply.grounded,
        "sources": [s.model_dump(mode="json") for s in reply.sources],
        "actions": [a.model_dump(mode="json", exclude_none=True) for a in reply.actions],
    }


@app.get("/workspaces/{workspace_id}/assistant/history")
async def get_history(workspace_id: str, member_id: str = Query(...)):
    c = _require()
    turns = c.conversations.read(workspace_id, member_id)
    return {"count": len(turns), "turns": [t.model_dump(mode="json") for t in turns]}


@app.delete("/workspaces/{workspace_id}/assistant/history")
async def clear_history(workspace_id: str, member_id: str = Query(...)):
    c = _require()
    if not c.conversations.clear(workspace_id, member_id):
        raise HTTPException(status_code=404, detail="No conversation history")
    return {"status": "cleared"}


# =============================================================================
# CLI Entry Point
# =============================================================================

def run_server():
    """Run the Atrium server"""
    import uvicorn

    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(name)s %(levelname)s %(message)s")

    server_config = load_config().server
    logger.info("Starting server on %s:%d", server_config.host, server_config.port)
    uvicorn.run(
        "atrium.assistant.server:app",
        host=server_config.host,
        port=server_config.port,
        reload=False,
    )


if __name__ == "__main__":
    run_server()
