# suitsync/main.py
import os
import httpx
import uvicorn
from fastapi import FastAPI
import structlog

from suitsync import config
from suitsync.infrastructure.database import init_db
from suitsync.infrastructure.server_bridge import ServerBridge, build_server_client
from suitsync.middleware.lightspeed_errors import LightspeedErrorMiddleware
from suitsync.middleware.logging import RequestIdMiddleware
from suitsync.routers.auth_router import router as auth_router
from suitsync.routers.client_router import router as client_router
from suitsync.routers.lightspeed_router import router as lightspeed_router
from suitsync.routers.session_router import router as session_router


def configure_structlog():
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer()
        ],
        context_class=dict,
    )


configure_structlog()
logger = structlog.get_logger()

app = FastAPI(title="SuitSync")

# last added runs outermost
app.add_middleware(LightspeedErrorMiddleware)
app.add_middleware(RequestIdMiddleware)

app.include_router(auth_router)
app.include_router(session_router)
app.include_router(client_router)
app.include_router(lightspeed_router)


@app.get("/api/health")
async def health():
    return {"status": "healthy", "installation": config.get_installation_info()}


def _server_bridge() -> ServerBridge:
    http = None
    if config.is_client_installation() and config.SUITSYNC_SERVER_URL:
        http = build_server_client(config.SUITSYNC_SERVER_URL)
    return ServerBridge(http)


@app.on_event("startup")
async def on_startup():
    await init_db()
    app.state.lightspeed_http = httpx.AsyncClient(timeout=30)
    app.state.server_bridge = _server_bridge()
    if config.is_client_installation():
        if config.SUITSYNC_SERVER_URL:
            await app.state.server_bridge.test_connection()
        else:
            logger.warning("client_installation_without_server_url")
    logger.info("app_startup", installation=config.SUITSYNC_INSTALL_TYPE)


@app.on_event("shutdown")
async def on_shutdown():
    await app.state.lightspeed_http.aclose()
    await app.state.server_bridge.aclose()
    logger.info("app_shutdown")


if __name__ == "__main__":
    uvicorn.run("suitsync.main:app", host="0.0.0.0", port=int(os.getenv("PORT", 8000)), reload=True)
