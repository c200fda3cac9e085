from typing import Optional

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from ..config import settings
from ..logs import json_log
from ..security import legacy_hash, verify_password
from ..validation import normalize_role

router = APIRouter(prefix="/api", tags=["auth"])


class LoginIn(BaseModel):
    loginType: str
    password: str


def _expected_hash(role: str) -> Optional[str]:
    """
    Placeholder rule set: one password per role. A configured bcrypt hash wins
    over the plaintext default.
    """
    if role == "admin":
        return settings.login_admin_password_hash or legacy_hash(settings.login_admin_password)
    if role == "user":
        return settings.login_user_password_hash or legacy_hash(settings.login_user_password)
    return None


def _display_name(role: str) -> str:
    return settings.login_admin_name if role == "admin" else settings.login_user_name


@router.post("/login")
async def login(data: LoginIn):
    role = normalize_role(data.loginType)
    if not role or not verify_password(data.password, _expected_hash(role)):
        json_log("warning", "auth.login_failed", login_type=data.loginType)
        return JSONResponse(status_code=401, content={"success": False, "message": "invalid credentials"})
    return {"success": True, "userType": role, "userName": _display_name(role)}
