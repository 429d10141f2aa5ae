from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import List, Optional

from loguru import logger
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from showroom.core.config import settings
from showroom.core.exceptions import InvalidAmount
from showroom.core.utils import CENT, positive_amount, to_decimal, today_str
from showroom.models.catalog import Vehicle
from showroom.models.payment import InstallmentPlan
from showroom.models.user import User
from showroom.services.notification_service import NotificationService
from showroom.workflow.notifications import EmailTemplate

TERM_OPTIONS = (12, 24, 36, 48, 60)
MIN_DOWN_PAYMENT = Decimal("0.10")
MAX_DOWN_PAYMENT = Decimal("0.80")


@dataclass(frozen=True)
class Quote:
    principal: Decimal
    monthly_payment: Decimal
    term_months: int
    annual_rate: Decimal


def monthly_payment(principal, term_months: int, annual_rate=None) -> Decimal:
    """
    Standard amortised payment M = P*r*(1+r)^n / ((1+r)^n - 1) with r the
    monthly rate. Non-positive principal costs nothing; a zero rate splits
    the principal evenly.
    """
    principal = to_decimal(principal)
    if principal <= 0:
        return Decimal(0)
    rate = to_decimal(settings.INSTALLMENT_RATE if annual_rate is None else annual_rate)
    r = rate / 100 / 12
    n = int(term_months)
    if r == 0:
        return (principal / n).quantize(CENT, rounding=ROUND_HALF_UP)
    growth = (1 + r) ** n
    return (principal * r * growth / (growth - 1)).quantize(CENT, rounding=ROUND_HALF_UP)


def quote(price, down_payment, term_months: int, annual_rate=None) -> Quote:
    price = to_decimal(price)
    down_payment = positive_amount(down_payment)
    if term_months not in TERM_OPTIONS:
        raise InvalidAmount(f"Loan term must be one of {', '.join(str(t) for t in TERM_OPTIONS)} months.")
    if not price * MIN_DOWN_PAYMENT <= down_payment <= price * MAX_DOWN_PAYMENT:
        raise InvalidAmount("Down payment must be between 10% and 80% of the vehicle price.")

    rate = to_decimal(settings.INSTALLMENT_RATE if annual_rate is None else annual_rate)
    principal = max(price - down_payment, Decimal(0))
    return Quote(
        principal=principal,
        monthly_payment=monthly_payment(principal, term_months, rate),
        term_months=term_months,
        annual_rate=rate,
    )


class InstallmentService:
    def __init__(self, session: AsyncSession, notifier: Optional[NotificationService] = None):
        self.session = session
        self.notifier = notifier or NotificationService(session)

    async def apply(self, vehicle: Vehicle, customer_name: str, customer_email: str,
                    down_payment, term_months: int, user: Optional[User] = None) -> InstallmentPlan:
        q = quote(vehicle.price, down_payment, term_months)
        plan = InstallmentPlan(
            user_id=user.id if user else None,
            customer_name=customer_name.strip(),
            customer_email=customer_email.strip(),
            vehicle_id=vehicle.id,
            vehicle_name=vehicle.name,
            total_price=vehicle.price,
            down_payment=to_decimal(down_payment),
            monthly_payment=q.monthly_payment,
            term_months=q.term_months,
            start_date=today_str(),
            status="Active",
        )
        self.session.add(plan)
        await self.session.commit()
        await self.session.refresh(plan)
        logger.info(f"Installment plan {plan.id}: {vehicle.name} over {term_months} months for {plan.customer_email}")

        await self.notifier.dispatch(EmailTemplate.INSTALLMENT_CONFIRMATION, {
            "payer_name": plan.customer_name,
            "payer_email": plan.customer_email,
            "vehicle_name": plan.vehicle_name,
            "monthly_payment": plan.monthly_payment,
            "term_months": plan.term_months,
        })
        return plan

    async def list_all(self) -> List[InstallmentPlan]:
        result = await self.session.execute(select(InstallmentPlan).order_by(InstallmentPlan.created_at.desc()))
        return result.scalars().all()

    async def list_for_user(self, user_id: str) -> List[InstallmentPlan]:
        stmt = select(InstallmentPlan).where(InstallmentPlan.user_id == user_id).order_by(InstallmentPlan.created_at.desc())
        result = await self.session.execute(stmt)
        return result.scalars().all()
