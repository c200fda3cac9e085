from typing import Any, Optional

from pydantic import BaseModel, ConfigDict

AUTH = "auth"
STOCK_UPDATE = "stock_update"
SALE_UPDATE = "sale_update"
TRANSACTION_UPDATE = "transaction_update"
AUDIT_UPDATE = "audit_update"
SYNC_REQUEST = "sync_request"
SYNC_RESPONSE = "sync_response"

# Types that write to the cache; gated when socket auth is required.
MUTATING_TYPES = {STOCK_UPDATE, SALE_UPDATE, TRANSACTION_UPDATE, AUDIT_UPDATE, SYNC_RESPONSE}


class SyncMessage(BaseModel):
    model_config = ConfigDict(extra="ignore")

    type: str
    data: Any = None
    userType: Optional[str] = None
    userName: Optional[str] = None


def error_message(reason: str) -> dict:
    return {"type": "error", "message": reason}
