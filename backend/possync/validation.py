from typing import Optional

USER_ROLES = {"user", "admin"}


def normalize_role(value) -> Optional[str]:
    raw = str(value or "").strip().lower()
    if not raw:
        return None
    return raw if raw in USER_ROLES else None


def normalize_name(value) -> Optional[str]:
    if value is None:
        return None
    name = str(value).strip()
    return name or None
