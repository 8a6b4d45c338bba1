from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from typing import Optional
import logging

from ..core.security import verify_token
from ..models.user import User
from .exam_session import Identity

logger = logging.getLogger(__name__)


class AuthService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_user_by_id(self, user_id: str) -> Optional[User]:
        result = await self.db.execute(select(User).filter(User.id == user_id))
        return result.scalars().first()

    async def get_current_user(self, token: str) -> Optional[User]:
        try:
            user_id = verify_token(token)
            if user_id is None:
                return None
            return await self.get_user_by_id(user_id)
        except Exception as e:
            logger.error(f"Failed to resolve user from token: {e}")
            return None


class TokenIdentityProvider:
    """Current-user lookup for a monitored exam.

    The token is re-verified and the user re-read on every call, so an
    expired token or a deleted account is noticed at the next violation.
    Lookup failures propagate to the caller.
    """

    def __init__(self, db: AsyncSession, token: str):
        self.auth_service = AuthService(db)
        self.token = token

    async def get_current_identity(self) -> Optional[Identity]:
        user_id = verify_token(self.token)
        if user_id is None:
            return None
        user = await self.auth_service.get_user_by_id(user_id)
        if user is None:
            return None
        return Identity(id=user.id, email=user.email, full_name=user.full_name, role=user.role)
