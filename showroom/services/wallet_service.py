from decimal import Decimal
from typing import Union
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession
from loguru import logger

from showroom.core.exceptions import InsufficientFunds, InvalidAmount, NotFound
from showroom.core.utils import positive_amount, to_cents, to_decimal
from showroom.models.user import User

class WalletService:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_balance(self, user_id: str) -> Decimal:
        balance = await self.session.scalar(select(User.balance).where(User.id == user_id))
        if balance is None:
            raise NotFound("Wallet account not found")
        return to_decimal(balance)

    async def apply_delta(self, user_id: str, delta: Union[Decimal, float, str], commit: bool = True) -> Decimal:
        """
        Credit (delta > 0) or debit (delta < 0) a wallet in a single UPDATE.

        Debits only match rows whose balance covers them, so two concurrent
        debits can never take the balance below zero. Returns the new balance.
        """
        try:
            delta = to_cents(delta)
        except ValueError:
            raise InvalidAmount()
        if delta == 0:
            raise InvalidAmount("Amount must not be zero")

        stmt = update(User).where(User.id == user_id)
        if delta < 0:
            stmt = stmt.where(User.balance >= -delta)
        stmt = stmt.values(balance=User.balance + delta).execution_options(synchronize_session=False)

        result = await self.session.execute(stmt)
        if result.rowcount != 1:
            exists = await self.session.scalar(select(User.id).where(User.id == user_id))
            await self.session.rollback()
            if not exists:
                raise NotFound("Wallet account not found")
            raise InsufficientFunds()

        new_balance = await self.get_balance(user_id)
        if commit:
            await self.session.commit()
        logger.info(f"Wallet {user_id}: {'+' if delta > 0 else ''}{delta} -> {new_balance}")
        return new_balance

    async def credit(self, user_id: str, amount, commit: bool = True) -> Decimal:
        amount = positive_amount(amount)
        return await self.apply_delta(user_id, amount, commit=commit)

    async def debit(self, user_id: str, amount, commit: bool = True) -> Decimal:
        amount = positive_amount(amount)
        return await self.apply_delta(user_id, -amount, commit=commit)
