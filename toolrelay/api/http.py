"""
HTTP façade over the orchestrator.

Endpoints:
- ``GET /response``: the last published response (empty before any query).
- ``POST /query``: run a query and return its response.
- ``OPTIONS *``: CORS preflight, always 204.

Every response carries permissive CORS headers. Failures are always returned
as JSON bodies; nothing escapes to the server loop.
"""

import logging
import threading
from typing import Any, Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel

from toolrelay.core.orchestrator import Orchestrator

logger = logging.getLogger(__name__)

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type",
}


class QueryRequest(BaseModel):
    """Body of ``POST /query``."""

    query: Optional[Any] = None


def create_app(orchestrator: Orchestrator) -> FastAPI:
    """Build the FastAPI application for one orchestrator."""
    app = FastAPI(title="toolrelay", docs_url=None, redoc_url=None, openapi_url=None)
    app.state.orchestrator = orchestrator

    @app.middleware("http")
    async def cors(request: Request, call_next):
        if request.method == "OPTIONS":
            response = Response(status_code=204)
        else:
            response = await call_next(request)
        response.headers.update(CORS_HEADERS)
        return response

    @app.exception_handler(RequestValidationError)
    async def invalid_body(request: Request, exc: RequestValidationError):
        return JSONResponse(status_code=400, content={"error": "Invalid request body"})

    @app.get("/response")
    def get_response():
        return {"response": orchestrator.last_response}

    @app.post("/query")
    def post_query(body: Optional[QueryRequest] = None):
        query = body.query if body is not None else None
        if not isinstance(query, str) or not query.strip():
            return JSONResponse(status_code=400, content={"error": "Query is required"})

        logger.info("Received query from frontend: %s", query)
        try:
            response = orchestrator.process_query(query)
        except Exception as e:
            logger.exception("Error processing query")
            return JSONResponse(
                status_code=500,
                content={"error": "Failed to process query", "details": str(e)},
            )
        return {"success": True, "response": response}

    return app


class HttpServer:
    """Runs the façade with uvicorn on a background thread."""

    def __init__(self, app: FastAPI, host: str = "127.0.0.1", port: int = 3000):
        self.host = host
        self.port = port
        self._server = uvicorn.Server(
            uvicorn.Config(app, host=host, port=port, log_level="warning")
        )
        self._thread: Optional[threading.Thread] = None

    def start(self) -> None:
        if self._thread is not None:
            return
        self._thread = threading.Thread(
            target=self._server.run, name="toolrelay-http", daemon=True
        )
        self._thread.start()
        logger.info("HTTP server running on port %s", self.port)

    def stop(self, timeout: float = 5.0) -> None:
        if self._thread is None:
            return
        self._server.should_exit = True
        self._thread.join(timeout=timeout)
        self._thread = None
