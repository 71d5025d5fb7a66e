# suitsync/accounts/schemas.py
from pydantic import BaseModel
from typing import Literal, Optional
from datetime import datetime


class DeviceInfo(BaseModel):
    user_agent: str = "unknown"
    ip_address: str = "unknown"
    device_type: Literal["mobile", "desktop", "tablet"] = "desktop"


class LightspeedUserData(BaseModel):
    """Identity and fresh tokens of a user verified through the Lightspeed OAuth flow."""
    lightspeed_user_id: str
    lightspeed_employee_id: str
    email: str
    name: str
    role: str = "sales"
    photo_url: Optional[str] = None
    access_token: str
    refresh_token: Optional[str] = None
    expires_at: datetime
    domain_prefix: str


class TokenGrant(BaseModel):
    access_token: str
    refresh_token: Optional[str] = None
    expires_at: datetime


class LightspeedCredentials(BaseModel):
    domain_prefix: str
    access_token: str
    refresh_token: Optional[str] = None
    expires_at: Optional[datetime] = None


class SessionRead(BaseModel):
    id: int
    user_id: int
    browser_session_id: str
    lightspeed_user_id: str
    name: str
    email: str
    role: str
    photo_url: Optional[str] = None
    domain_prefix: str
    device_info: Optional[DeviceInfo] = None
    expires_at: datetime
    last_active: datetime


class SessionContext(BaseModel):
    """The caller's app session, decoded from the session token."""
    user_id: int
    browser_session_id: str
    lightspeed_user_id: str
    selected_user_id: Optional[int] = None


class SelectUserRequest(BaseModel):
    user_id: int


class SelectedUser(BaseModel):
    id: int
    lightspeed_user_id: str
    name: str
    email: str
    role: str
    photo_url: Optional[str] = None
