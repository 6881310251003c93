#!/usr/bin/env python3
"""
HTTP chat endpoint for the Solana assistant.

Routes:
- POST /chat    {"message": "..."} -> {"content": "..."} or {"content", "error"}
- GET  /health  liveness probe
"""

from __future__ import annotations

import json
import logging
import sys

import uvicorn
from starlette.applications import Starlette
from starlette.middleware import Middleware
from starlette.middleware.cors import CORSMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.routing import Route

from sol_chat_service import ChatService
from sol_wallet import SolConfig

logger = logging.getLogger(__name__)

INTERNAL_ERROR_CONTENT = "Sorry, I encountered an error processing your request."
MISSING_MESSAGE_CONTENT = "Please type a message so I can help you."


def create_app(chat_service: ChatService | None = None, cfg: SolConfig | None = None) -> Starlette:
    if chat_service is None:
        chat_service = ChatService.from_config(cfg or SolConfig.from_env())

    async def chat(request: Request) -> JSONResponse:
        try:
            body = await request.json()
        except (json.JSONDecodeError, UnicodeDecodeError):
            return _client_error("Request body must be valid JSON")

        message = body.get("message") if isinstance(body, dict) else None
        if not isinstance(message, str) or not message.strip():
            return _client_error("Message is required")

        try:
            response = await chat_service.process_message(message)
        except Exception as exc:  # noqa: BLE001
            logger.exception("Error processing chat message")
            return JSONResponse(
                {"content": INTERNAL_ERROR_CONTENT, "error": str(exc) or type(exc).__name__},
                status_code=500,
            )
        return JSONResponse(response.to_dict())

    async def health(request: Request) -> JSONResponse:
        return JSONResponse({"status": "ok", "message": "MCP Chat Server is running"})

    async def not_found(request: Request, exc: Exception) -> JSONResponse:
        return JSONResponse({"error": "Not found"}, status_code=404)

    return Starlette(
        routes=[
            Route("/chat", chat, methods=["POST"]),
            Route("/health", health, methods=["GET"]),
        ],
        middleware=[
            Middleware(
                CORSMiddleware,
                allow_origins=["*"],
                allow_methods=["GET", "POST", "OPTIONS"],
                allow_headers=["Content-Type"],
            )
        ],
        exception_handlers={404: not_found},
    )


def _client_error(error: str) -> JSONResponse:
    return JSONResponse({"content": MISSING_MESSAGE_CONTENT, "error": error}, status_code=400)


def main() -> None:
    cfg = SolConfig.from_env()
    logging.basicConfig(
        level=cfg.log_level,
        stream=sys.stderr,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    app = create_app(cfg=cfg)
    logger.info("Chat endpoint: http://%s:%d/chat", cfg.chat_host, cfg.chat_port)
    uvicorn.run(app, host=cfg.chat_host, port=cfg.chat_port, log_level=cfg.log_level.lower())


if __name__ == "__main__":
    main()
