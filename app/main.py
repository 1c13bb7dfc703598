from __future__ import annotations

import base64
import binascii
import json
import logging
import os
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.database import Database
from assistant import __version__
from assistant.exceptions import CompletionError, UnsupportedModelError
from assistant.gateway import CompletionGateway
from assistant.models import (
    ChatRequest,
    CompletionEnvelope,
    SessionCreate,
    SessionDetail,
    SessionMessageOut,
    SessionOut,
)
from assistant.tools import WebSearch
from config.settings import Settings, get_settings


logging.basicConfig(level=logging.INFO, format="[%(asctime)s] %(levelname)s - %(message)s")
logger = logging.getLogger("infonex")

IMAGE_PREFIX = "data:image/"


class ImageUpload(BaseModel):
    image: Optional[str] = None


def _image_is_valid(data: str) -> bool:
    header, _, encoded = data.partition(",")
    if not header.startswith(IMAGE_PREFIX) or not header.endswith(";base64") or not encoded:
        return False
    try:
        base64.b64decode(encoded, validate=True)
    except (binascii.Error, ValueError):
        return False
    return True


def _parse_session_id(raw: str) -> int:
    try:
        return int(raw)
    except (TypeError, ValueError):
        raise HTTPException(status_code=400, detail="Invalid session ID")


def create_app(
    settings: Optional[Settings] = None,
    *,
    gateway: Optional[CompletionGateway] = None,
    search: Optional[WebSearch] = None,
    database: Optional[Database] = None,
) -> FastAPI:
    settings = settings or get_settings()
    app = FastAPI(title="Infonex Chat API", version=__version__)

    # CORS: allow local frontend during development
    if settings.is_development:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=["*"],
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    app.state.settings = settings
    app.state.gateway = gateway or CompletionGateway.from_settings(settings)
    app.state.search = search or WebSearch(settings)
    app.state.database = database

    def resolve_database() -> Optional[Database]:
        if app.state.database is None and settings.database_url:
            app.state.database = Database(settings.database_url)
        return app.state.database

    def require_database() -> Database:
        database = resolve_database()
        if database is None:
            raise HTTPException(status_code=500, detail="DATABASE_URL is not configured")
        return database

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
        return JSONResponse(
            status_code=400,
            content={"message": "Invalid request format", "errors": jsonable_encoder(exc.errors())},
        )

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        return JSONResponse(status_code=exc.status_code, content={"message": exc.detail})

    def record_exchange(req: ChatRequest, envelope: CompletionEnvelope) -> None:
        # audit logging must never fail the chat response
        try:
            session_id = int(req.session_id)
            database = resolve_database()
            if database is None:
                logger.warning("Skipping message storage: DATABASE_URL is not configured")
                return
            last = req.messages[-1] if req.messages else None
            user_content = None
            if last is not None and last.role == "user":
                if isinstance(last.content, str):
                    user_content = last.content
                else:
                    user_content = json.dumps(jsonable_encoder(last.content))
            database.record_exchange(
                session_id,
                model=envelope.model,
                assistant_role=envelope.message.role,
                assistant_content=envelope.message.content,
                user_content=user_content,
            )
        except Exception as exc:
            logger.error("Error storing messages in database: %s", exc)

    @app.post("/api/chat")
    def chat(req: ChatRequest) -> Dict[str, Any]:
        logger.info(
            "Incoming chat: model=%s turns=%s session=%s",
            req.model,
            len(req.messages),
            req.session_id,
        )
        try:
            envelope = app.state.gateway.complete(req.model, req.messages)
        except UnsupportedModelError as exc:
            raise HTTPException(status_code=400, detail=str(exc))
        except CompletionError as exc:
            logger.error("Error in chat endpoint: %s", exc.message)
            raise HTTPException(status_code=500, detail=exc.message)
        except Exception as e:
            logger.exception("Chat processing failed: %s", e)
            raise HTTPException(status_code=500, detail=str(e) or "Something went wrong")

        if req.session_id:
            record_exchange(req, envelope)
        return envelope.model_dump()

    @app.get("/api/search")
    def search(query: Optional[str] = None):
        if not query or not query.strip():
            return JSONResponse(
                status_code=400, content={"error": "Invalid query parameter", "results": []}
            )
        try:
            results = app.state.search.search(query)
        except Exception as e:
            logger.exception("Error in search endpoint: %s", e)
            return JSONResponse(
                status_code=500, content={"error": "Failed to perform search", "results": []}
            )
        return {"results": [r.model_dump(exclude_none=True) for r in results]}

    @app.post("/api/upload-image")
    def upload_image(payload: Optional[ImageUpload] = None):
        image = payload.image if payload else None
        if not image:
            return JSONResponse(status_code=400, content={"error": "No image data provided"})
        if not _image_is_valid(image):
            return JSONResponse(status_code=400, content={"error": "Invalid image data"})
        return {"success": True, "imageData": image}

    @app.post("/api/chat-sessions", status_code=201)
    def create_chat_session(payload: SessionCreate) -> Dict[str, Any]:
        database = require_database()
        try:
            row = database.create_session(payload.title, user_id=payload.user_id)
        except SQLAlchemyError as exc:
            logger.error("Error creating chat session: %s", exc)
            raise HTTPException(status_code=500, detail="Failed to create chat session")
        return SessionOut.model_validate(row).model_dump(mode="json", by_alias=True)

    @app.get("/api/chat-sessions")
    def list_chat_sessions() -> List[Dict[str, Any]]:
        database = require_database()
        try:
            rows = database.list_sessions()
        except SQLAlchemyError as exc:
            logger.error("Error fetching chat sessions: %s", exc)
            raise HTTPException(status_code=500, detail="Failed to fetch chat sessions")
        return [SessionOut.model_validate(r).model_dump(mode="json", by_alias=True) for r in rows]

    @app.get("/api/chat-sessions/{session_id}")
    def get_chat_session(session_id: str) -> Dict[str, Any]:
        sid = _parse_session_id(session_id)
        database = require_database()
        try:
            row = database.get_session(sid)
            if row is None:
                raise HTTPException(status_code=404, detail="Chat session not found")
            messages = database.get_messages(sid)
        except SQLAlchemyError as exc:
            logger.error("Error fetching chat session: %s", exc)
            raise HTTPException(status_code=500, detail="Failed to fetch chat session")
        detail = SessionDetail(
            **SessionOut.model_validate(row).model_dump(),
            messages=[SessionMessageOut.model_validate(m) for m in messages],
        )
        return detail.model_dump(mode="json", by_alias=True)

    @app.delete("/api/chat-sessions/{session_id}")
    def delete_chat_session(session_id: str) -> Dict[str, Any]:
        sid = _parse_session_id(session_id)
        database = require_database()
        try:
            deleted = database.delete_session(sid)
        except SQLAlchemyError as exc:
            logger.error("Error deleting chat session: %s", exc)
            raise HTTPException(status_code=500, detail="Failed to delete chat session")
        if not deleted:
            raise HTTPException(status_code=404, detail="Chat session not found")
        return {"message": "Chat session deleted successfully"}

    @app.get("/api/health")
    def health():
        missing = settings.missing_keys()
        if missing:
            return JSONResponse(
                status_code=500,
                content={
                    "status": "error",
                    "message": f"Missing environment variables: {', '.join(missing)}",
                },
            )
        return {"status": "ok"}

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("app.main:app", host=os.getenv("HOST", "127.0.0.1"), port=int(os.getenv("PORT", "8000")))
