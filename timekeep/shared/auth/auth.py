"""
Authentication Module

This module verifies bearer tokens for API endpoints.

Features:
- JWT validation
- User id extraction
- Error handling

Dependencies:
- FastAPI for security schemes
- PyJWT for tokens
- logging for tracking
"""

import logging
from typing import Optional

import jwt
from fastapi import HTTPException, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from timekeep.shared import config

logger = logging.getLogger(__name__)

security = HTTPBearer()

# Claims checked for the user id, in order
USER_ID_FIELDS = ["custom:UserID", "user_id", "sub"]


def decode_token(token: str) -> dict:
    """
    Validate and decode a JWT.

    Raises:
        jwt.InvalidTokenError: For bad signatures, expired or malformed tokens
    """
    return jwt.decode(token, config.JWT_SECRET, algorithms=[config.JWT_ALGORITHM])


def extract_user_id(claims: dict) -> Optional[str]:
    for field in USER_ID_FIELDS:
        if claims.get(field):
            return str(claims[field])
    return None


async def get_current_user(credentials: HTTPAuthorizationCredentials = Security(security)) -> dict:
    """
    Extract the signed-in user from the bearer token.

    Args:
        credentials: HTTP auth credentials

    Returns:
        dict: ``{"user_id": ..., "email": ...}``

    Raises:
        HTTPException: 401 for missing or invalid tokens
    """
    try:
        claims = decode_token(credentials.credentials)
    except jwt.InvalidTokenError as e:
        logger.warning(f"Invalid token: {str(e)}")
        raise HTTPException(status_code=401, detail="Could not validate credentials")

    user_id = extract_user_id(claims)
    if not user_id:
        raise HTTPException(status_code=401, detail="No user ID found in token")

    return {"user_id": user_id, "email": claims.get("email")}

