"""
WebSocket Gateway main application.
Pushes order events to bartender, cashier and waiter dashboards.
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Query, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from pos_shared.config.settings import settings
from pos_shared.config.logging import setup_logging, ws_gateway_logger as logger
from pos_shared.infrastructure.events import channel_orders, close_redis_pool, get_redis_pool
from pos_shared.security.auth import ws_auth_context
from pos_gateway.connection_manager import ConnectionManager
from pos_gateway.redis_subscriber import run_subscriber_forever


# Global connection manager
manager = ConnectionManager()

HEARTBEAT_SWEEP_INTERVAL = 30  # seconds


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.
    Starts the Redis subscriber and the heartbeat sweep.
    """
    setup_logging()
    logger.info("Starting WebSocket Gateway", port=settings.ws_gateway_port, env=settings.environment)

    subscriber_task = asyncio.create_task(run_subscriber_forever(dispatch_event))
    cleanup_task = asyncio.create_task(start_heartbeat_cleanup())

    yield

    logger.info("Shutting down WebSocket Gateway")
    for task in (subscriber_task, cleanup_task):
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    await manager.shutdown()
    await close_redis_pool()
    logger.info("Redis connection pool closed")


async def dispatch_event(event: dict) -> None:
    """Forward one validated event to every dashboard."""
    sent = await manager.broadcast(event)
    logger.debug("Dispatched event", event_type=event.get("type"), clients=sent)


async def start_heartbeat_cleanup():
    """Periodically close connections that stopped sending heartbeats."""
    while True:
        try:
            await asyncio.sleep(HEARTBEAT_SWEEP_INTERVAL)
            cleaned = await manager.cleanup_stale_connections()
            if cleaned > 0:
                logger.info("Cleaned up stale connections", count=cleaned)
        except asyncio.CancelledError:
            break
        except Exception as e:
            logger.error("Error in heartbeat cleanup", error=str(e))


app = FastAPI(
    title="Bar POS WebSocket Gateway",
    description="Real-time order notifications for bar staff",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# =============================================================================
# Health Check
# =============================================================================


@app.get("/ws/health")
def health_check():
    """Basic health check endpoint."""
    return {
        "status": "healthy",
        "service": "ws-gateway",
        "environment": settings.environment,
        **manager.get_stats(),
    }


@app.get("/ws/health/detailed")
async def detailed_health_check():
    """
    Detailed health check that verifies Redis connectivity.
    """
    checks = {
        "service": "ws-gateway",
        "environment": settings.environment,
        "connections": manager.get_stats(),
        "dependencies": {},
    }
    all_healthy = True

    try:
        redis = await get_redis_pool()
        await redis.ping()
        checks["dependencies"]["redis"] = {"status": "healthy"}
    except Exception as e:
        checks["dependencies"]["redis"] = {"status": "unhealthy", "error": str(e)}
        all_healthy = False

    checks["status"] = "healthy" if all_healthy else "degraded"

    if not all_healthy:
        return JSONResponse(content=checks, status_code=503)
    return checks


# =============================================================================
# WebSocket Endpoint
# =============================================================================


@app.websocket("/ws/ordenes")
async def orders_websocket(
    websocket: WebSocket,
    token: str = Query(..., description="Access token or channel token"),
):
    """
    Order feed shared by every dashboard.

    The server only pushes; clients send "ping" as heartbeat and re-fetch
    the REST snapshot endpoints after reconnecting.
    """
    channel = channel_orders()
    try:
        claims = ws_auth_context(token, channel)
    except HTTPException as e:
        code = 4003 if e.status_code == 403 else 4001
        await websocket.close(code=code, reason=str(e.detail))
        return

    user_id = int(claims["sub"])
    try:
        await manager.connect(websocket, user_id)
    except ConnectionError as e:
        logger.warning("WebSocket rejected", user_id=user_id, reason=str(e))
        return

    logger.info("Dashboard connected", user_id=user_id, role=claims.get("role"))

    try:
        while True:
            data = await websocket.receive_text()

            if len(data) > settings.ws_max_message_size:
                logger.warning(
                    "Message size exceeded limit",
                    user_id=user_id,
                    size=len(data),
                    max_size=settings.ws_max_message_size,
                )
                await websocket.close(code=1009, reason="Message too large")
                break

            manager.record_heartbeat(websocket)
            if data == "ping" or data == '{"type":"ping"}':
                await websocket.send_text("pong")
            else:
                logger.debug("Unknown message from dashboard", user_id=user_id, message=data[:100])
    except WebSocketDisconnect:
        logger.info("Dashboard disconnected", user_id=user_id)
    finally:
        await manager.disconnect(websocket)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "pos_gateway.main:app",
        host="0.0.0.0",
        port=settings.ws_gateway_port,
        reload=settings.debug,
    )
