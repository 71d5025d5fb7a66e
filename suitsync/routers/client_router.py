# suitsync/routers/client_router.py
from fastapi import APIRouter, Depends, HTTPException
import structlog

from suitsync import config
from suitsync.accounts.schemas import SessionContext
from suitsync.dependencies.auth import get_session_context
from suitsync.dependencies.clients import get_server_bridge
from suitsync.infrastructure.server_bridge import ServerBridge
from suitsync.schemas.client_schema import SendDataRequest, SyncRequest

logger = structlog.get_logger(__name__)
router = APIRouter(prefix="/api/client", tags=["client"])


def _require_client_installation() -> None:
    if config.is_server_installation():
        raise HTTPException(status_code=400, detail="This endpoint is only for client installations")


@router.get("/installation-info")
async def installation_info():
    return {"success": True, "data": config.get_installation_info()}


@router.get("/server-status")
async def server_status(bridge: ServerBridge = Depends(get_server_bridge)):
    if config.is_server_installation():
        return {
            "success": True,
            "data": {"isServer": True, "status": "healthy", "message": "This is a server installation"},
        }
    is_connected = await bridge.is_server_available()
    return {
        "success": True,
        "data": {
            "isServer": False,
            "isConnected": is_connected,
            "clientInfo": bridge.get_client_info(),
            "serverStatus": await bridge.get_server_status() if is_connected else None,
        },
    }


@router.post("/test-connection")
async def test_connection(bridge: ServerBridge = Depends(get_server_bridge)):
    if config.is_server_installation():
        return {"success": True, "data": {"isServer": True, "isConnected": True}}
    connected = await bridge.test_connection()
    return {"success": True, "data": {"isServer": False, "isConnected": connected, "clientInfo": bridge.get_client_info()}}


@router.post("/sync")
async def sync(
    body: SyncRequest,
    context: SessionContext = Depends(get_session_context),
    bridge: ServerBridge = Depends(get_server_bridge),
):
    _require_client_installation()
    result = await bridge.sync_data(body.resource, body.last_sync_timestamp)
    if result is None:
        raise HTTPException(status_code=503, detail="Server is not available")
    logger.info("client_sync_completed", resource=body.resource, user_id=context.user_id)
    return {"success": True, "data": result}


@router.post("/send-data")
async def send_data(
    body: SendDataRequest,
    context: SessionContext = Depends(get_session_context),
    bridge: ServerBridge = Depends(get_server_bridge),
):
    _require_client_installation()
    if not await bridge.send_data_to_server(body.endpoint, body.data):
        raise HTTPException(status_code=503, detail="Failed to send data to server")
    return {"success": True, "message": "Data sent to server successfully"}
