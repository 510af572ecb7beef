"""
termhost API.

FastAPI host for the session manager: windows connect over ``/ws`` and
exchange JSON messages; a few read-only endpoints report status.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from loguru import logger

from termhost import __version__
from termhost.api.websocket import WindowConnectionManager
from termhost.core.context import AppContext
from termhost.core.logging import configure_logging


def create_app(context: AppContext | None = None) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        context: Pre-built context (tests); built at startup when omitted.

    Returns:
        The configured application.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        """
        Startup and shutdown events.

        Args:
            app: The FastAPI application instance.

        Yields:
            None during application runtime.
        """
        ctx = context
        if ctx is None:
            ctx = AppContext.create()
            configure_logging(ctx.settings)

        app.state.context = ctx
        app.state.ws_manager = WindowConnectionManager(ctx)
        logger.info("Starting termhost API...")
        yield
        logger.info("Shutting down termhost API...")
        await ctx.shutdown()

    app = FastAPI(
        title="termhost API",
        description="PTY session host for terminal front-ends",
        version=__version__,
        lifespan=lifespan,
    )

    @app.websocket("/ws")
    async def websocket_endpoint(websocket: WebSocket) -> None:
        """
        WebSocket endpoint; one connection is one window.

        Clients send and receive JSON messages such as:
        {"type": "pty_create", "command": "bash", "args": [], "columns": 80, "rows": 24}

        Args:
            websocket: The WebSocket connection.
        """
        ws_manager: WindowConnectionManager = websocket.app.state.ws_manager
        window_id = await ws_manager.connect(websocket)
        try:
            while True:
                data = await websocket.receive_text()
                await ws_manager.handle_message(window_id, data)
        except WebSocketDisconnect:
            pass
        finally:
            await ws_manager.disconnect(window_id)

    @app.get("/health")
    async def health_check() -> dict[str, str]:
        """
        Health check endpoint.

        Returns:
            Health status and version.
        """
        return {"status": "healthy", "version": __version__}

    @app.get("/api/sessions")
    async def list_sessions() -> list[dict[str, Any]]:
        """Live sessions with their owning window and state."""
        ctx: AppContext = app.state.context
        return ctx.manager.describe()

    @app.get("/api/windows")
    async def window_status() -> dict[str, int]:
        """
        Get window (WebSocket connection) status.

        Returns:
            Number of open windows and live sessions.
        """
        ctx: AppContext = app.state.context
        return {"active_windows": len(ctx.router), "active_sessions": len(ctx.registry)}

    return app


app = create_app()
