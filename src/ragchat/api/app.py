"""HTTP API: thin FastAPI controllers over RagPipeline.

Routes (all under /api):
  GET    /health                        liveness
  POST   /chat                          one query turn
  POST   /chat/stream                   streamed answer, nothing persisted
  GET    /chat/history/{conversationId} conversation with messages
  DELETE /chat/history/{conversationId} delete a conversation
  GET    /chat/conversations            recently active conversations
  POST   /chat/ingest                   chunk, embed, and store documents
  GET    /chat/stats                    collection statistics

Every JSON response carries ``success``; failures render as
``{"success": false, "error": {"message": ..., "stack"?: ...}}`` with the
status taken from the RagChatError subclass. ``stack`` is only included
when ``server.debug`` is on.
"""

from __future__ import annotations

import logging
import traceback
from datetime import datetime, timezone
from collections.abc import Iterator
from typing import Any

from fastapi import APIRouter, FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import BaseModel, Field, StrictStr

from ragchat import __version__
from ragchat.config import RagChatConfig
from ragchat.db.connection import Database
from ragchat.errors import NotFoundError, RagChatError
from ragchat.rag.pipeline import QueryOptions, RagPipeline

logger = logging.getLogger(__name__)


class ChatRequest(BaseModel):
    message: StrictStr = Field(min_length=1)
    conversationId: str | None = None
    maxSources: int | None = None
    similarityThreshold: float | None = None
    includeHistory: bool | None = None

    def options(self) -> QueryOptions:
        return QueryOptions(
            max_sources=self.maxSources,
            similarity_threshold=self.similarityThreshold,
            include_history=self.includeHistory is not False,
        )


class DocumentIn(BaseModel):
    content: str
    metadata: dict[str, Any] | None = None


class IngestRequest(BaseModel):
    documents: list[DocumentIn] = Field(min_length=1)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _error_body(message: str, exc: BaseException, debug: bool) -> dict[str, Any]:
    error: dict[str, Any] = {"message": message}
    if debug:
        error["stack"] = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
    return {"success": False, "error": error}


def _pipeline(request: Request) -> RagPipeline:
    return request.app.state.pipeline


def _primed(fragments: Iterator[str]) -> Iterator[str]:
    """Pull the first fragment before the response starts.

    Errors raised on the first read propagate from here, before any headers
    are sent.
    """
    fragments = iter(fragments)
    first = next(fragments, None)

    def body() -> Iterator[str]:
        try:
            if first is not None:
                yield first
            yield from fragments
        finally:
            close = getattr(fragments, "close", None)
            if callable(close):
                close()

    return body()


router = APIRouter(prefix="/api")


@router.get("/health", tags=["health"])
def health() -> dict[str, Any]:
    return {
        "success": True,
        "message": "RAG chat API is running",
        "version": __version__,
        "timestamp": _now(),
    }


@router.post("/chat", tags=["chat"])
def chat(body: ChatRequest, request: Request) -> dict[str, Any]:
    result = _pipeline(request).query(body.message, body.conversationId, body.options())
    data = result.to_dict()
    data["timestamp"] = _now()
    data["sourceCount"] = len(result.sources)
    return {"success": True, "data": data}


@router.post("/chat/stream", tags=["chat"])
def chat_stream(body: ChatRequest, request: Request) -> StreamingResponse:
    fragments = _pipeline(request).stream(body.message, body.options())
    return StreamingResponse(_primed(fragments), media_type="text/plain; charset=utf-8")


@router.get("/chat/history/{conversation_id}", tags=["chat"])
def get_history(conversation_id: str, request: Request) -> dict[str, Any]:
    history = _pipeline(request).get_history(conversation_id)
    if history is None:
        raise NotFoundError("Conversation not found")
    return {
        "success": True,
        "data": {
            "conversationId": history.conversation.id,
            "messages": [m.to_dict() for m in history.messages],
            "createdAt": history.conversation.created_at,
            "updatedAt": history.conversation.updated_at,
        },
    }


@router.delete("/chat/history/{conversation_id}", tags=["chat"])
def delete_history(conversation_id: str, request: Request) -> dict[str, Any]:
    if not _pipeline(request).conversations.delete_conversation(conversation_id):
        raise NotFoundError("Conversation not found")
    return {"success": True, "data": {"conversationId": conversation_id, "deleted": True}}


@router.get("/chat/conversations", tags=["chat"])
def list_conversations(
    request: Request,
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
) -> dict[str, Any]:
    conversations = _pipeline(request).conversations.get_recent_conversations(limit, offset)
    return {"success": True, "data": [c.to_dict() for c in conversations]}


@router.post("/chat/ingest", tags=["ingest"])
def ingest(body: IngestRequest, request: Request) -> dict[str, Any]:
    results = _pipeline(request).ingest_documents([d.model_dump() for d in body.documents])
    return {
        "success": True,
        "data": {"ingested": len(results), "results": [r.to_dict() for r in results]},
    }


@router.get("/chat/stats", tags=["chat"])
def stats(request: Request) -> dict[str, Any]:
    return {"success": True, "data": _pipeline(request).vector_search.get_stats()}


def create_app(config: RagChatConfig, pipeline: RagPipeline | None = None) -> FastAPI:
    """Build the application.

    Args:
        config: Loaded configuration; ``server`` controls CORS and error detail.
        pipeline: Pre-wired pipeline (tests). When omitted, the database at
            ``config.database.path`` is migrated and a pipeline is built from it.
    """
    if pipeline is None:
        db = Database(config.database.path)
        db.initialize()
        pipeline = RagPipeline.from_config(config, db)

    debug = config.server.debug
    app = FastAPI(title="ragchat", version=__version__, debug=False)
    app.state.pipeline = pipeline

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.server.cors_origins,
        allow_credentials="*" not in config.server.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(RagChatError)
    async def _ragchat_error(request: Request, exc: RagChatError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc)
        else:
            logger.info("%s %s rejected: %s", request.method, request.url.path, exc)
        return JSONResponse(_error_body(str(exc), exc, debug), status_code=exc.status_code)

    @app.exception_handler(RequestValidationError)
    async def _invalid_request(request: Request, exc: RequestValidationError) -> JSONResponse:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err.get('loc', ()) if p != 'body')}: {err.get('msg')}"
            for err in exc.errors()
        )
        return JSONResponse(
            _error_body(f"Invalid request: {problems}", exc, debug), status_code=400
        )

    @app.exception_handler(Exception)
    async def _unexpected(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("%s %s crashed", request.method, request.url.path)
        return JSONResponse(_error_body("Internal server error", exc, debug), status_code=500)

    app.include_router(router)
    return app
