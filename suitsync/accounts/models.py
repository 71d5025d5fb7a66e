# suitsync/accounts/models.py
from sqlmodel import SQLModel, Field, Column
from typing import Optional
from datetime import datetime
from sqlalchemy import JSON, UniqueConstraint


class User(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    lightspeed_employee_id: str = Field(unique=True, index=True)
    email: str = Field(index=True)
    name: str
    role: str = Field(default="sales")
    photo_url: Optional[str] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)


class UserSession(SQLModel, table=True):
    # one row per (user, browser/device); active while expires_at is in the future
    __table_args__ = (
        UniqueConstraint("user_id", "browser_session_id", name="uq_usersession_user_browser"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="user.id", index=True)
    browser_session_id: str = Field(index=True)
    access_token_enc: str
    refresh_token_enc: Optional[str] = None
    domain_prefix: str
    device_info: Optional[dict] = Field(sa_column=Column(JSON), default=None)
    expires_at: datetime = Field(index=True)
    last_active: datetime = Field(default_factory=datetime.utcnow, index=True)
    created_at: datetime = Field(default_factory=datetime.utcnow)
