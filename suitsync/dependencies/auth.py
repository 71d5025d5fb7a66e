# suitsync/dependencies/auth.py
from typing import Optional
from fastapi import Cookie, Header, HTTPException, status
from jose import JWTError
from suitsync import config
from suitsync.accounts.schemas import SessionContext
from suitsync.accounts.utils import decode_session_token


def _bearer(authorization: Optional[str]) -> Optional[str]:
    if authorization and authorization.lower().startswith("bearer "):
        return authorization[7:].strip()
    return None


async def get_session_context(
    authorization: Optional[str] = Header(None),
    session_cookie: Optional[str] = Cookie(None, alias=config.SESSION_COOKIE_NAME),
) -> SessionContext:
    token = _bearer(authorization) or session_cookie
    if not token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="not authenticated")
    try:
        return decode_session_token(token)
    except (JWTError, KeyError, ValueError):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="invalid session token")


async def get_optional_session_context(
    authorization: Optional[str] = Header(None),
    session_cookie: Optional[str] = Cookie(None, alias=config.SESSION_COOKIE_NAME),
) -> Optional[SessionContext]:
    token = _bearer(authorization) or session_cookie
    if not token:
        return None
    try:
        return decode_session_token(token)
    except (JWTError, KeyError, ValueError):
        return None
