from typing import Optional

from fastapi import Header, HTTPException

from schoolflow.domain.workflow.entities import Principal


def get_principal(
    x_user_id: Optional[str] = Header(default=None),
    x_user_name: Optional[str] = Header(default=None),
    x_user_role: Optional[str] = Header(default=None),
) -> Principal:
    """Principal supplied by the upstream auth layer through request headers."""
    user_id = (x_user_id or "").strip()
    if not user_id:
        raise HTTPException(status_code=401, detail="X-User-Id header is required")
    role = (x_user_role or "").strip().lower()
    return Principal(id=user_id, name=(x_user_name or user_id).strip(), role=role)
