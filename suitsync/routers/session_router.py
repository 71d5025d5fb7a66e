# suitsync/routers/session_router.py
from fastapi import APIRouter, Depends, HTTPException, Response
import structlog

from suitsync.accounts.schemas import SelectUserRequest, SelectedUser, SessionContext, SessionRead
from suitsync.accounts.services import SessionLifecycleService
from suitsync.dependencies.auth import get_session_context
from suitsync.dependencies.clients import get_lifecycle_service
from suitsync.routers.auth_router import set_session_cookie

logger = structlog.get_logger(__name__)
router = APIRouter(prefix="/api/sessions", tags=["sessions"])


def _selected(session: SessionRead) -> SelectedUser:
    return SelectedUser(
        id=session.user_id,
        lightspeed_user_id=session.lightspeed_user_id,
        name=session.name,
        email=session.email,
        role=session.role,
        photo_url=session.photo_url,
    )


@router.get("/active")
async def active_sessions(
    context: SessionContext = Depends(get_session_context),
    lifecycle: SessionLifecycleService = Depends(get_lifecycle_service),
):
    sessions = await lifecycle.get_active_sessions()
    return {"success": True, "users": sessions, "total": len(sessions)}


@router.post("/select")
async def select_user(
    body: SelectUserRequest,
    response: Response,
    context: SessionContext = Depends(get_session_context),
    lifecycle: SessionLifecycleService = Depends(get_lifecycle_service),
):
    session = await lifecycle.get_active_session(body.user_id)
    if not session:
        raise HTTPException(status_code=404, detail="user has no active session")

    await lifecycle.update_activity(body.user_id)
    set_session_cookie(response, context.model_copy(update={"selected_user_id": body.user_id}))
    logger.info("user_selected", user_id=context.user_id, selected_user_id=body.user_id)
    return {"success": True, "user": _selected(session), "message": f"Selected {session.name}"}


@router.get("/selected")
async def selected_user(
    response: Response,
    context: SessionContext = Depends(get_session_context),
    lifecycle: SessionLifecycleService = Depends(get_lifecycle_service),
):
    if context.selected_user_id is None:
        return {"success": True, "user": None}

    session = await lifecycle.get_active_session(context.selected_user_id)
    if not session:
        # the selected user's session expired or was logged out
        set_session_cookie(response, context.model_copy(update={"selected_user_id": None}))
        return {"success": True, "user": None}
    return {"success": True, "user": _selected(session)}


@router.post("/clear-selection")
async def clear_selection(response: Response, context: SessionContext = Depends(get_session_context)):
    set_session_cookie(response, context.model_copy(update={"selected_user_id": None}))
    return {"success": True, "message": "Selection cleared"}


@router.post("/activity")
async def record_activity(
    context: SessionContext = Depends(get_session_context),
    lifecycle: SessionLifecycleService = Depends(get_lifecycle_service),
):
    user_id = context.selected_user_id or context.user_id
    touched = await lifecycle.update_activity(user_id)
    return {"success": True, "updated": touched}


@router.delete("/{user_id}")
async def deactivate_user(
    user_id: int,
    response: Response,
    context: SessionContext = Depends(get_session_context),
    lifecycle: SessionLifecycleService = Depends(get_lifecycle_service),
):
    expired = await lifecycle.deactivate_session(user_id)
    if context.selected_user_id == user_id:
        set_session_cookie(response, context.model_copy(update={"selected_user_id": None}))
    return {"success": True, "deactivated": expired}


@router.post("/cleanup")
async def cleanup(
    context: SessionContext = Depends(get_session_context),
    lifecycle: SessionLifecycleService = Depends(get_lifecycle_service),
):
    purged = await lifecycle.cleanup_expired_sessions()
    return {"success": True, "purged": purged}
