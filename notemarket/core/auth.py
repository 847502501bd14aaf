"""
JWT verification for the marketplace API.

Tokens are issued by the identity service; this side only checks the
signature and expiry and trusts the ``account_id`` claim afterwards.
"""
from typing import Optional

import jwt as pyjwt
from pydantic import BaseModel

from notemarket.core.config import settings
from notemarket.core.logging import get_logger

logger = get_logger(__name__)


class TokenPayload(BaseModel):
    """Claims carried by an access token"""
    account_id: int
    role: str = "USER"
    exp: int  # Unix timestamp


def verify_token(token: str) -> Optional[TokenPayload]:
    """Verify a JWT - returns None when invalid or expired"""
    if not settings.JWT_SECRET_KEY:
        logger.error("JWT_SECRET_KEY is empty - tokens cannot be verified")
        return None
    try:
        payload = pyjwt.decode(
            token,
            settings.JWT_SECRET_KEY,
            algorithms=[settings.JWT_ALGORITHM],
        )
        return TokenPayload(**payload)
    except pyjwt.InvalidTokenError:
        logger.warning("JWT token invalid or expired")
        return None
    except (KeyError, ValueError) as e:
        logger.warning("JWT payload malformed", extra_data={"error": str(e)})
        return None
