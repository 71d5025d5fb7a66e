# suitsync/schemas/client_schema.py
from pydantic import BaseModel, Field
from typing import Any, Optional


class SyncRequest(BaseModel):
    resource: str = Field(min_length=1)
    last_sync_timestamp: Optional[str] = Field(default=None, alias="lastSyncTimestamp")

    model_config = {"populate_by_name": True}


class SendDataRequest(BaseModel):
    endpoint: str = Field(min_length=1)  # path on the primary server, e.g. /api/customers
    data: Any
