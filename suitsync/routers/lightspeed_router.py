# suitsync/routers/lightspeed_router.py
from typing import Optional
from fastapi import APIRouter, Depends

from suitsync.dependencies.clients import get_lightspeed_client
from suitsync.infrastructure.lightspeed_client import LightspeedClient

router = APIRouter(prefix="/api/lightspeed", tags=["lightspeed"])

# Failures propagate as LightspeedError and are rendered by LightspeedErrorMiddleware.


@router.get("/users/{user_id}")
async def get_user(user_id: str, client: LightspeedClient = Depends(get_lightspeed_client)):
    return {"success": True, "data": await client.get_user(user_id)}


@router.get("/customers")
async def list_customers(
    after: Optional[int] = None,
    page_size: Optional[int] = None,
    client: LightspeedClient = Depends(get_lightspeed_client),
):
    params = {}
    if after is not None:
        params["after"] = after
    if page_size is not None:
        params["page_size"] = page_size
    payload = await client.get("/customers", params=params or None)
    return {"success": True, "data": (payload or {}).get("data", []), "version": (payload or {}).get("version")}
