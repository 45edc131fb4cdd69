"""Identity extraction from JWTs issued by the login service.

Tokens arrive as ``Authorization: Bearer <jwt>`` or in the ``token`` cookie.
Issuing tokens is not handled here.
"""

import logging

import jwt
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from .config import settings
from .models import Identity

logger = logging.getLogger(__name__)
bearer_scheme = HTTPBearer(auto_error=False)


def decode_token(token: str) -> Identity | None:
    try:
        claims = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except jwt.PyJWTError as e:
        logger.info("Rejected token: %s", e)
        return None
    sub = claims.get("sub") or claims.get("id") or claims.get("email")
    if sub is None:
        return None
    email = claims.get("email")
    return Identity(sub=str(sub), email=email if isinstance(email, str) else None)


async def get_identity(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> Identity | None:
    token = credentials.credentials if credentials else request.cookies.get("token")
    if not token or not token.strip():
        return None
    return decode_token(token.strip())


async def require_identity(identity: Identity | None = Depends(get_identity)) -> Identity | None:
    if identity is None and settings.auth_required:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Login required to access this route",
        )
    return identity
