# suitsync/models/api_token.py
from sqlmodel import SQLModel, Field
from typing import Optional
from datetime import datetime


class ExternalApiToken(SQLModel, table=True):
    """Installation-wide OAuth credential, one row per external service."""
    id: Optional[int] = Field(default=None, primary_key=True)
    service: str = Field(unique=True, index=True)
    access_token_enc: str
    refresh_token_enc: Optional[str] = None
    expires_at: Optional[datetime] = None
    updated_at: datetime = Field(default_factory=datetime.utcnow)
