"""
Request authentication.

Access tokens are issued by the hosted auth provider as HS256 JWTs and sent
as `Authorization: Bearer <token>`.
"""
from typing import Optional
from dataclasses import dataclass

from fastapi import Header, HTTPException
from jose import JWTError, jwt

from config import config


@dataclass
class AuthContext:
    user_id: str
    email: Optional[str] = None


def decode_access_token(token):
    """AuthContext for a valid access token, else None."""
    secret = config.auth.jwt_secret
    if not secret or not token:
        return None

    try:
        payload = jwt.decode(token, secret, algorithms=["HS256"], audience=config.auth.audience)
    except JWTError:
        return None

    user_id = payload.get("sub")
    if not isinstance(user_id, str) or not user_id:
        return None
    return AuthContext(user_id=user_id, email=payload.get("email"))


def authenticate(authorization):
    """AuthContext for an `Authorization` header value; 401 otherwise."""
    token = None
    if authorization and authorization.lower().startswith("bearer "):
        token = authorization[7:].strip()

    context = decode_access_token(token)
    if not context:
        raise HTTPException(status_code=401, detail="Unauthorized")
    return context


async def get_auth_context(authorization: Optional[str] = Header(None)) -> AuthContext:
    return authenticate(authorization)
