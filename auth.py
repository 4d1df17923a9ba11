"""
Caller identity from Clerk session tokens.

Clerk issues RS256 JWTs, sent either as a bearer token or in the `__session`
cookie. The `sub` claim is the user id every record is scoped to.
"""
import os
import logging
from typing import Optional

import jwt
from dotenv import load_dotenv
from fastapi import Depends, HTTPException, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

load_dotenv()

logger = logging.getLogger(__name__)

CLERK_JWT_KEY = os.getenv("CLERK_JWT_KEY")
CLERK_JWKS_URL = os.getenv("CLERK_JWKS_URL")
CLERK_AUTHORIZED_PARTIES = [
    p.strip() for p in os.getenv("CLERK_AUTHORIZED_PARTIES", "").split(",") if p.strip()
]
SESSION_COOKIE = "__session"

security = HTTPBearer(auto_error=False)
_jwks_client: Optional[jwt.PyJWKClient] = None


def _signing_key(token: str):
    global _jwks_client
    if CLERK_JWT_KEY:
        return CLERK_JWT_KEY.replace("\\n", "\n")
    if CLERK_JWKS_URL:
        if _jwks_client is None:
            _jwks_client = jwt.PyJWKClient(CLERK_JWKS_URL)
        return _jwks_client.get_signing_key_from_jwt(token).key
    raise jwt.InvalidTokenError("No Clerk verification key configured")


def verify_session_token(token: str) -> dict:
    claims = jwt.decode(
        token,
        _signing_key(token),
        algorithms=["RS256"],
        options={"require": ["exp", "sub"]},
        leeway=5,
    )
    if CLERK_AUTHORIZED_PARTIES and claims.get("azp") not in CLERK_AUTHORIZED_PARTIES:
        raise jwt.InvalidTokenError("Unauthorized party")
    return claims


def require_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> str:
    """FastAPI dependency returning the caller's user id, 401 otherwise."""
    token = credentials.credentials if credentials else request.cookies.get(SESSION_COOKIE)
    if not token:
        raise HTTPException(status_code=401, detail="Unauthorized")
    try:
        claims = verify_session_token(token)
    except jwt.PyJWTError as exc:
        logger.info("Rejected session token: %s", exc)
        raise HTTPException(status_code=401, detail="Unauthorized")
    return claims["sub"]
