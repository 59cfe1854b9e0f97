"""
Problem statement lock tokens.

A lock token is a short lived HS256 JWT binding a user to one problem
statement. It is issued when the user locks a statement and verified when the
team is created (or patched) with that statement. The token's `iat` is the
authoritative lock time.
"""
import time
from datetime import datetime, timezone
from typing import Optional
from dataclasses import dataclass, field

from jose import JWTError, ExpiredSignatureError, jwt

from config import config
from errors import LockTokenError

ALGORITHM = "HS256"


@dataclass
class LockVerification:
    valid: bool
    payload: dict = field(default_factory=dict)
    error: Optional[str] = None


def _isoformat(timestamp):
    return datetime.fromtimestamp(timestamp, tz=timezone.utc).isoformat().replace("+00:00", "Z")


def lock_time_from_iat(iat):
    """ISO timestamp recorded as problemStatementLockedAt."""
    return _isoformat(iat)


def create_problem_lock_token(user_id: str, problem_statement_id: str, now: Optional[float] = None) -> dict:
    secret = config.lock_token.secret
    if not secret:
        raise LockTokenError("Problem lock token secret is not configured.")

    issued_at = int(now if now is not None else time.time())
    expires_at = issued_at + config.lock_token.ttl_seconds
    claims = {
        "sub": user_id,
        "problemStatementId": problem_statement_id,
        "iat": issued_at,
        "exp": expires_at,
    }

    try:
        token = jwt.encode(claims, secret, algorithm=ALGORITHM)
    except JWTError as e:
        raise LockTokenError(f"Failed to create lock token: {e}") from e

    return {"token": token, "expiresAt": _isoformat(expires_at)}


def verify_problem_lock_token(token: str, user_id: str, problem_statement_id: str) -> LockVerification:
    secret = config.lock_token.secret
    if not secret:
        return LockVerification(valid=False, error="Lock token verification is not configured.")

    if not isinstance(token, str) or not token.strip():
        return LockVerification(valid=False, error="Lock token is required.")

    try:
        payload = jwt.decode(token.strip(), secret, algorithms=[ALGORITHM])
    except ExpiredSignatureError:
        return LockVerification(valid=False, error="Lock token has expired. Please lock the problem statement again.")
    except JWTError:
        return LockVerification(valid=False, error="Lock token is invalid.")

    if payload.get("sub") != user_id:
        return LockVerification(valid=False, error="Lock token does not belong to this user.")

    if payload.get("problemStatementId") != problem_statement_id:
        return LockVerification(valid=False, error="Lock token does not match the selected problem statement.")

    if not isinstance(payload.get("iat"), int):
        return LockVerification(valid=False, error="Lock token is invalid.")

    return LockVerification(valid=True, payload={"iat": payload["iat"]})
