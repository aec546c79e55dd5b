from dataclasses import dataclass

import jwt
from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from backend.auth import jwt_handler
from backend.core import config

security = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class Operator:
    """The already-authorized caller of a booking operation."""

    subject: str
    branch_ids: tuple[int, ...] | None = None


ANONYMOUS = Operator(subject="anonymous")


def get_current_operator(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
) -> Operator:
    if credentials is None:
        if not config.AUTH_REQUIRED:
            return ANONYMOUS
        raise HTTPException(status_code=401, detail="Not authenticated")

    try:
        payload = jwt_handler.decode_access_token(credentials.credentials)
    except jwt.PyJWTError as exc:
        raise HTTPException(status_code=401, detail="Invalid token") from exc

    subject = payload.get("sub")
    if not subject:
        raise HTTPException(status_code=401, detail="Invalid token subject")

    branches = payload.get(jwt_handler.BRANCHES_CLAIM)
    return Operator(subject=subject, branch_ids=tuple(branches) if branches is not None else None)
