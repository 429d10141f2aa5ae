import secrets
from decimal import Decimal
from typing import List

from loguru import logger
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from showroom.core.exceptions import InsufficientFunds, PaymentMethodDisabled
from showroom.core.utils import positive_amount, to_decimal, today_str
from showroom.models.user import Investment, User
from showroom.services.settings_service import MethodToggle
from showroom.services.wallet_service import WalletService


class InvestmentService:
    def __init__(self, session: AsyncSession, toggle: MethodToggle):
        self.session = session
        self.toggle = toggle
        self.wallet = WalletService(session)

    async def invest(self, user: User, amount) -> Investment:
        amount = positive_amount(amount)
        if not self.toggle.wallet_enabled:
            raise PaymentMethodDisabled("Investments are not open at the moment.")

        balance = await self.wallet.get_balance(user.id)
        if amount > balance:
            raise InsufficientFunds("Insufficient balance for this investment.")

        # Debit and investment row commit together
        await self.wallet.debit(user.id, amount, commit=False)
        investment = Investment(
            user_id=user.id,
            amount=amount,
            description=f"User Investment #{secrets.randbelow(1000)}",
            date=today_str(),
        )
        self.session.add(investment)
        await self.session.commit()
        await self.session.refresh(investment)
        logger.info(f"User {user.id} invested {amount}")
        return investment

    async def list_for_user(self, user_id: str) -> List[Investment]:
        stmt = (
            select(Investment)
            .where(Investment.user_id == user_id)
            .order_by(Investment.date.desc(), Investment.created_at.desc())
        )
        result = await self.session.execute(stmt)
        return result.scalars().all()

    async def total_for_user(self, user_id: str) -> Decimal:
        return sum((to_decimal(i.amount) for i in await self.list_for_user(user_id)), Decimal(0))
