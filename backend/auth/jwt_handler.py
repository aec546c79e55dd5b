from datetime import datetime, timedelta, timezone
from typing import Any, Iterable

import jwt

from backend.core import config

BRANCHES_CLAIM = "branches"


def create_access_token(
    subject: str,
    branch_ids: Iterable[int] | None = None,
    expires_minutes: int | None = None,
) -> str:
    """Sign a token for a front-desk operator; ``branch_ids`` limits which branches they may book for."""
    issued_at = datetime.now(timezone.utc)
    claims: dict[str, Any] = {
        "sub": subject,
        "iat": issued_at,
        "exp": issued_at + timedelta(minutes=expires_minutes or config.JWT_EXPIRES_MINUTES),
    }
    if branch_ids is not None:
        claims[BRANCHES_CLAIM] = sorted(set(branch_ids))
    return jwt.encode(claims, config.JWT_SECRET_KEY, algorithm=config.JWT_ALGORITHM)


def decode_access_token(token: str) -> dict:
    payload = jwt.decode(token, config.JWT_SECRET_KEY, algorithms=[config.JWT_ALGORITHM])

    branches = payload.get(BRANCHES_CLAIM)
    if branches is not None and (
        not isinstance(branches, list)
        or not all(isinstance(branch_id, int) and not isinstance(branch_id, bool) for branch_id in branches)
    ):
        raise jwt.InvalidTokenError("Branch scope must be a list of branch ids")
    return payload
