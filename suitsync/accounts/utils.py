# suitsync/accounts/utils.py
import secrets
import time
import uuid
from datetime import timedelta
from typing import Dict, Any, Optional

import structlog
from jose import jwt, JWTError
from cryptography.fernet import Fernet, InvalidToken

from suitsync import config
from .schemas import SessionContext

logger = structlog.get_logger(__name__)

OAUTH_TOKEN_KEY = config.OAUTH_TOKEN_KEY
if not OAUTH_TOKEN_KEY:
    # dev fallback (not for production)
    OAUTH_TOKEN_KEY = Fernet.generate_key().decode()

fernet = Fernet(OAUTH_TOKEN_KEY.encode())

# --- OAuth token encryption ---
def encrypt_token(plaintext: Optional[str]) -> Optional[str]:
    if plaintext is None:
        return None
    return fernet.encrypt(plaintext.encode()).decode()

def decrypt_token(ciphertext: Optional[str]) -> Optional[str]:
    if not ciphertext:
        return None
    try:
        return fernet.decrypt(ciphertext.encode()).decode()
    except InvalidToken:
        logger.warning("token_decrypt_failed")
        return None

# --- JWT helpers ---
def _now_ts() -> int:
    return int(time.time())

def _encode(payload: Dict[str, Any]) -> str:
    return jwt.encode(payload, config.SESSION_SECRET, algorithm=config.ALGORITHM)

def decode_token(token: str) -> Dict[str, Any]:
    try:
        return jwt.decode(token, config.SESSION_SECRET, algorithms=[config.ALGORITHM])
    except JWTError as e:
        logger.warning("token_decode_failed", error=str(e))
        raise

def create_session_token(context: SessionContext, expires_delta: Optional[timedelta] = None) -> Dict[str, Any]:
    jti = str(uuid.uuid4())
    lifetime = expires_delta or timedelta(hours=config.SESSION_TOKEN_EXPIRE_HOURS)
    payload = {
        "sub": str(context.user_id),
        "sid": context.browser_session_id,
        "lsu": context.lightspeed_user_id,
        "sel": context.selected_user_id,
        "exp": _now_ts() + int(lifetime.total_seconds()),
        "iat": _now_ts(),
        "jti": jti,
        "type": "session",
    }
    token = _encode(payload)
    logger.debug("create_session_token", sub=payload["sub"], sid=context.browser_session_id, jti=jti)
    return {"token": token, "jti": jti, "exp": payload["exp"]}

def decode_session_token(token: str) -> SessionContext:
    payload = decode_token(token)
    if payload.get("type") != "session":
        raise JWTError("not a session token")
    return SessionContext(
        user_id=int(payload["sub"]),
        browser_session_id=payload["sid"],
        lightspeed_user_id=payload["lsu"],
        selected_user_id=payload.get("sel"),
    )

# --- OAuth state helpers ---
OAUTH_STATE_TTL = 300

def create_oauth_state(browser_session_id: Optional[str] = None) -> str:
    """
    Signed state for one authorization round trip. It carries the browser session
    id the callback will upsert, fixed before Lightspeed redirects back.
    """
    payload = {
        "nonce": secrets.token_urlsafe(16),
        "bsid": browser_session_id or new_browser_session_id(),
        "exp": _now_ts() + OAUTH_STATE_TTL,
        "type": "oauth_state",
    }
    return _encode(payload)

def verify_oauth_state(state: Optional[str]) -> Optional[Dict[str, Any]]:
    """Return the state's claims, or None when it is missing, forged or expired."""
    if not state:
        return None
    try:
        payload = decode_token(state)
    except JWTError:
        return None
    if payload.get("type") != "oauth_state":
        return None
    return payload

# --- Lightspeed user helpers ---
_ROLE_MAP = {
    "admin": "admin",
    "manager": "manager",
    "sales": "sales",
    "tailor": "tailor",
    "associate": "sales",
    "employee": "sales",
}

def map_lightspeed_role(account_type: Optional[str]) -> str:
    return _ROLE_MAP.get((account_type or "").lower(), "sales")

def detect_device_type(user_agent: Optional[str]) -> str:
    user_agent = user_agent or ""
    if "Mobile" in user_agent:
        return "mobile"
    if "Tablet" in user_agent:
        return "tablet"
    return "desktop"

def generate_browser_session_id(lightspeed_user_id: str) -> str:
    return f"{lightspeed_user_id}_{int(time.time() * 1000)}"

def new_browser_session_id() -> str:
    return f"b_{secrets.token_urlsafe(12)}"
