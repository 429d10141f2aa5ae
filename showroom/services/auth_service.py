from decimal import Decimal

from loguru import logger
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from showroom.core.config import settings
from showroom.core.exceptions import AuthenticationError, ShowroomError
from showroom.core.security import hash_password, verify_password
from showroom.models.user import User

ADMIN_STARTING_BALANCE = Decimal("999999")


class AuthService:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_email(self, email: str):
        stmt = select(User).where(func.lower(User.email) == email.strip().lower())
        result = await self.session.execute(stmt)
        return result.scalars().first()

    async def sign_up(self, name: str, email: str, password: str) -> User:
        if not name.strip() or not email.strip():
            raise ShowroomError("Name and email are required.")
        if len(password) < 6:
            raise ShowroomError("Password should be at least 6 characters.")
        if await self.get_by_email(email):
            raise ShowroomError("An account with this email already exists.")

        user = User(
            name=name.strip(),
            email=email.strip().lower(),
            password_hash=hash_password(password),
            balance=Decimal(0),
        )
        self.session.add(user)
        await self.session.commit()
        await self.session.refresh(user)
        logger.info(f"New account {user.id} for {user.email}")
        return user

    async def login(self, email: str, password: str) -> User:
        user = await self.get_by_email(email)
        if not user or not verify_password(password, user.password_hash):
            logger.warning(f"Failed login for {email}")
            raise AuthenticationError()
        return user

    async def ensure_admin_user_exists(self) -> User:
        user = await self.get_by_email(settings.ADMIN_EMAIL)
        if user:
            if not user.is_admin:
                user.is_admin = True
                await self.session.commit()
            return user

        user = User(
            name="Admin User",
            email=settings.ADMIN_EMAIL.lower(),
            password_hash=hash_password(settings.ADMIN_PASSWORD),
            balance=ADMIN_STARTING_BALANCE,
            is_admin=True,
        )
        self.session.add(user)
        await self.session.commit()
        await self.session.refresh(user)
        logger.info(f"Admin account created for {user.email}")
        return user
