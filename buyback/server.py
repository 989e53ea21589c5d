"""
FastAPI application for the buyback relay.

Routes:
- WebSocket feed (``config.ws_path``, ``/`` by default): stats, config, then buybacks
- GET /api/health: service status and current totals
- GET /{path}: dashboard assets
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.responses import FileResponse, JSONResponse, PlainTextResponse

from buyback.config import BuybackConfig
from buyback.hub import serialize
from buyback.service import BuybackService
from buyback.static import StaticResponder

logger = logging.getLogger("buyback.server")


def create_app(
    config: BuybackConfig,
    service: Optional[BuybackService] = None,
) -> FastAPI:
    """Create the FastAPI application around one service context."""
    service = service or BuybackService(config)
    static = StaticResponder(config.asset_root)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Start the scheduler with the server, stop it on shutdown."""
        service.start()
        yield
        await service.stop()

    app = FastAPI(
        title="Buyback Relay",
        lifespan=lifespan,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )
    app.state.service = service

    @app.websocket(config.ws_path)
    async def buyback_feed(websocket: WebSocket):
        """Push channel: snapshot on connect, then live buybacks."""
        hub = service.hub
        try:
            await hub.connect(websocket)
            while True:
                data = await websocket.receive_text()
                if data == "ping":
                    await websocket.send_text(serialize({"type": "pong"}))
        except WebSocketDisconnect:
            pass
        finally:
            hub.disconnect(websocket)

    @app.get("/api/health")
    async def health_check():
        return JSONResponse(
            content={
                "status": "healthy" if service.active else "idle",
                "mode": config.mode,
                "active": service.active,
                "running": service.scheduler.running,
                "clients": service.hub.client_count,
                "stats": {
                    "totalBuybacks": service.stats.total_buybacks,
                    "totalSol": float(service.stats.total_sol),
                    "totalTokens": float(service.stats.total_tokens),
                },
            }
        )

    @app.get("/{path:path}")
    async def static_asset(path: str):
        found = static.resolve(path)
        if found is None:
            return PlainTextResponse("Not found", status_code=404)
        file_path, content_type = found
        return FileResponse(file_path, media_type=content_type)

    return app
