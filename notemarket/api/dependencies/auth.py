"""
FastAPI dependencies for authenticating API callers

Usage:
    @router.get("/wallet")
    async def wallet(
        account: Account = Depends(get_current_account),
        db: AsyncSession = Depends(get_db),
    ):
        ...
"""
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession

from notemarket.core.auth import verify_token
from notemarket.core.logging import get_logger
from notemarket.db.database import get_db
from notemarket.db.models.account import Account, AccountRole

logger = get_logger(__name__)

security = HTTPBearer()
optional_security = HTTPBearer(auto_error=False)


async def _load_account(token: str, db: AsyncSession) -> Account:
    token_data = verify_token(token)
    if not token_data:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    account = await db.get(Account, token_data.account_id)
    if not account:
        logger.warning(
            "Token refers to a missing account",
            extra_data={"account_id": token_data.account_id},
        )
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Account not found",
            headers={"WWW-Authenticate": "Bearer"},
        )
    if account.role == AccountRole.PLATFORM:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="The platform account cannot be used interactively",
        )
    return account


async def get_current_account(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: AsyncSession = Depends(get_db),
) -> Account:
    """
    Verify the bearer token and load the caller's account.

    401 when the token is invalid or the account no longer exists.
    """
    return await _load_account(credentials.credentials, db)


async def get_optional_account(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(optional_security),
    db: AsyncSession = Depends(get_db),
) -> Optional[Account]:
    """Like get_current_account, but anonymous callers get None"""
    if credentials is None:
        return None
    return await _load_account(credentials.credentials, db)


async def require_admin(
    account: Account = Depends(get_current_account),
) -> Account:
    if account.role != AccountRole.ADMIN:
        logger.warning(
            "Admin access denied",
            extra_data={"account_id": account.id, "role": account.role.value},
        )
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required",
        )
    return account
