import logging
from typing import Annotated

from fastapi import Depends, HTTPException, Request, status

from core.firebase import verify_id_token

logger = logging.getLogger(__name__)

# Standard credentials exception
CREDENTIALS_EXCEPTION = HTTPException(
    status_code=status.HTTP_401_UNAUTHORIZED,
    detail="Could not validate credentials",
    headers={"WWW-Authenticate": "Bearer"},
)

# Role hierarchy: each role includes the permissions of those before it
ROLE_ORDER = ["student", "ta", "teacher", "admin"]


def has_role(user_role: str, minimum: str) -> bool:
    if user_role not in ROLE_ORDER:
        return False
    return ROLE_ORDER.index(user_role) >= ROLE_ORDER.index(minimum)


# Verifies the Bearer ID token and pulls identity from its custom claims
async def get_current_user(request: Request) -> dict:
    # 1) Extract & Analyze Authorization Header
    auth_header = request.headers.get("Authorization", "")
    if not auth_header.startswith("Bearer "):
        raise CREDENTIALS_EXCEPTION
    token = auth_header.split(" ", 1)[1]

    # 2) Verify This Points to a Real User Account
    try:
        decoded = verify_id_token(token)
    except Exception as e:
        logger.info("Rejected ID token: %s", e)
        raise CREDENTIALS_EXCEPTION
    uid = decoded.get("uid")
    if not uid:
        raise CREDENTIALS_EXCEPTION

    return {
        "uid": uid,
        "email": decoded.get("email", ""),
        "employee_id": decoded.get("employee_id") or uid,
        "role": decoded.get("role", "student"),
    }


def require_role(minimum: str):
    async def dependency(
        current_user: Annotated[dict, Depends(get_current_user)],
    ) -> dict:
        # Check That User Has Adequate Permissions
        if not has_role(current_user.get("role", ""), minimum):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="User doesn't have sufficient privileges for this action",
            )
        return current_user

    return dependency


require_teacher_role = require_role("teacher")
require_admin_role = require_role("admin")
