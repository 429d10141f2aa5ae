import secrets
import string
from typing import Any, Dict, Optional

from loguru import logger
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from showroom.core.config import settings
from showroom.core.exceptions import InvalidAmount, InvalidTransition, NotFound, PermissionDenied
from showroom.core.utils import positive_amount, to_decimal, today_str
from showroom.models.catalog import Vehicle
from showroom.models.payment import Deposit, GiveawayEntry, Order
from showroom.models.user import User
from showroom.services.audit_service import AuditService
from showroom.services.notification_service import NotificationService
from showroom.services.wallet_service import WalletService
from showroom.workflow.machine import (
    ChooseAgent,
    ChooseWallet,
    ConfirmPayment,
    Notify,
    PaymentContext,
    StoreWrite,
    SubmitReceipt,
    WalletDelta,
    payment_options,
    transition,
)
from showroom.workflow.states import (
    PaymentMethod,
    PaymentState,
    Variant,
    WorkflowConfig,
    checkout_step,
    parse_status,
    status_label,
)

_RAFFLE_ALPHABET = string.ascii_uppercase + string.digits


class PaymentWorkflow:
    """
    Runs payment events against one variant's table.

    Each event is load -> transition -> (status CAS + wallet delta) -> commit
    -> notifications -> audit. The status write only lands if the stored
    label is still the one the transition was computed from, so a replayed
    or concurrent event is rejected instead of being applied twice.
    """

    variant: Variant = None
    model = None

    def __init__(self, session: AsyncSession, config: WorkflowConfig,
                 notifier: Optional[NotificationService] = None):
        self.session = session
        self.config = config
        self.notifier = notifier or NotificationService(session)
        self.wallet = WalletService(session)
        self.audit = AuditService(session)

    # --- Reads ---

    async def get(self, transaction_id: str):
        row = await self.session.get(self.model, transaction_id)
        if not row:
            raise NotFound(f"{self.variant.value.capitalize()} not found")
        return row

    async def get_for_payer(self, transaction_id: str, user: Optional[User] = None, email: str = None):
        """Only the owner (or, for guest rows, whoever knows the payer email) may act on a transaction."""
        row = await self.get(transaction_id)
        if user is not None and user.is_admin:
            return row
        if row.user_id:
            if user is None or user.id != row.user_id:
                raise PermissionDenied()
        elif not email or email.strip().lower() != row.payer_email.lower():
            raise PermissionDenied()
        return row

    def state_of(self, row) -> PaymentState:
        return parse_status(self.variant, row.payment_status, row.payment_method)

    def ensure_awaiting_receipt(self, row):
        if self.state_of(row) is not PaymentState.AWAITING_RECEIPT:
            raise InvalidTransition(f"{self.variant.value.capitalize()} is {row.payment_status!r}; no receipt is expected.")

    async def list_all(self):
        result = await self.session.execute(select(self.model).order_by(self.model.created_at.desc()))
        return result.scalars().all()

    async def list_for_user(self, user_id: str):
        stmt = select(self.model).where(self.model.user_id == user_id).order_by(self.model.created_at.desc())
        result = await self.session.execute(stmt)
        return result.scalars().all()

    async def options(self, row, user: Optional[User] = None) -> Dict[str, Any]:
        """Checkout step for the row's status and which rails can be used from it."""
        state = self.state_of(row)
        balance = await self.wallet.get_balance(user.id) if user is not None else None
        return {
            "id": row.id,
            "status": row.payment_status,
            "state": state.value,
            "step": checkout_step(state),
            "amount": row.amount,
            "payment_method": row.payment_method,
            "receipt_reference": row.receipt_reference,
            "balance": balance,
            **payment_options(self.variant, self.config, to_decimal(row.amount), balance,
                              has_account=user is not None),
        }

    # --- Events ---

    async def pay_with_wallet(self, transaction_id: str, user: User, ip_address: str = None):
        row = await self.get_for_payer(transaction_id, user)
        return await self._apply(row, ChooseWallet(), user, ip_address)

    async def pay_with_agent(self, transaction_id: str, method: str, user: Optional[User] = None,
                             email: str = None, ip_address: str = None):
        row = await self.get_for_payer(transaction_id, user, email)
        try:
            method = PaymentMethod(method)
        except ValueError:
            raise InvalidTransition(f"Unknown payment method: {method}")
        return await self._apply(row, ChooseAgent(method), user, ip_address)

    async def submit_receipt(self, transaction_id: str, receipt_reference: Optional[str],
                             user: Optional[User] = None, email: str = None, ip_address: str = None):
        row = await self.get_for_payer(transaction_id, user, email)
        return await self._apply(row, SubmitReceipt(receipt_reference), user, ip_address)

    async def confirm(self, transaction_id: str, admin: Optional[User] = None, ip_address: str = None):
        row = await self.get(transaction_id)
        return await self._apply(row, ConfirmPayment(), admin, ip_address)

    # --- Executor ---

    def _details(self, row) -> Dict[str, Any]:
        """Variant-specific fields the transition needs for its writes and emails."""
        return {}

    async def _prepare(self, row, event) -> Dict[str, Any]:
        return self._details(row)

    async def _context(self, row, event) -> PaymentContext:
        balance = None
        if isinstance(event, ChooseWallet) and row.user_id:
            balance = await self.wallet.get_balance(row.user_id)
        return PaymentContext(
            transaction_id=row.id,
            payer_name=row.payer_name,
            payer_email=row.payer_email,
            amount=to_decimal(row.amount),
            user_id=row.user_id,
            balance=balance,
            receipt_reference=row.receipt_reference,
            details=await self._prepare(row, event),
        )

    async def _store(self, row_id: str, write: StoreWrite):
        stmt = (
            update(self.model)
            .where(self.model.id == row_id, self.model.payment_status == write.expected_status)
            .values(**write.fields)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        if result.rowcount != 1:
            await self.session.rollback()
            raise InvalidTransition(f"{self.variant.value.capitalize()} {row_id} was updated by another request.")

    async def _apply(self, row, event, actor: Optional[User] = None, ip_address: str = None):
        before = row.payment_status
        ctx = await self._context(row, event)
        result = transition(self.variant, self.state_of(row), event, ctx, self.config)

        # Store write and balance change commit together or not at all
        for effect in result.effects:
            if isinstance(effect, StoreWrite):
                await self._store(row.id, effect)
            elif isinstance(effect, WalletDelta):
                await self.wallet.apply_delta(effect.user_id, effect.amount, commit=False)
        await self.session.commit()
        await self.session.refresh(row)
        logger.info(f"{self.variant.value} {row.id}: {before} -> {row.payment_status} ({type(event).__name__})")

        for effect in result.effects_of(Notify):
            await self.notifier.dispatch(effect.template, effect.fields)

        await self.audit.log_action(
            user_id=actor.id if actor else None,
            username=actor.name if actor else row.payer_name,
            action=f"{self.variant.value}:{_event_name(event)}",
            target=f"{self.variant.value}:{row.id}",
            details={"from": before, "to": row.payment_status, "amount": row.amount,
                     "method": row.payment_method},
            ip_address=ip_address,
        )
        return row


def _event_name(event) -> str:
    return {
        ChooseWallet: "choose_wallet",
        ChooseAgent: "choose_agent",
        SubmitReceipt: "submit_receipt",
        ConfirmPayment: "confirm",
    }[type(event)]


class OrderWorkflow(PaymentWorkflow):
    variant = Variant.ORDER
    model = Order

    async def create_order(self, user: User, vehicle: Vehicle, payer_name: str = None, payer_email: str = None) -> Order:
        order = Order(
            user_id=user.id,
            payer_name=(payer_name or user.name).strip(),
            payer_email=(payer_email or user.email).strip(),
            amount=vehicle.price,
            vehicle_id=vehicle.id,
            vehicle_name=vehicle.name,
            payment_status=status_label(self.variant, PaymentState.PENDING),
            order_date=today_str(),
        )
        self.session.add(order)
        await self.session.commit()
        await self.session.refresh(order)
        logger.info(f"Order {order.id} created for {vehicle.name} by {order.payer_email}")
        return order

    async def pending_for_user(self, user_id: str) -> Optional[Order]:
        """The user's order still waiting for a receipt, so checkout can resume at the upload step."""
        stmt = (
            select(Order)
            .where(Order.user_id == user_id,
                   Order.payment_status == status_label(self.variant, PaymentState.AWAITING_RECEIPT))
            .order_by(Order.created_at.desc())
        )
        result = await self.session.execute(stmt)
        return result.scalars().first()

    async def update_fulfillment(self, order_id: str, fulfillment_status: str) -> Order:
        if fulfillment_status not in ("Processing", "Delivered", "Cancelled"):
            raise InvalidTransition(f"Unknown fulfillment status: {fulfillment_status}")
        order = await self.get(order_id)
        order.fulfillment_status = fulfillment_status
        await self.session.commit()
        return order

    def _details(self, row: Order) -> Dict[str, Any]:
        return {"vehicle_name": row.vehicle_name}


class DepositWorkflow(PaymentWorkflow):
    variant = Variant.DEPOSIT
    model = Deposit

    async def request_deposit(self, user: User, amount, method: str, ip_address: str = None) -> Deposit:
        """Creates the deposit and hands it straight to the agent."""
        amount = positive_amount(amount)
        if method not in {m.value for m in PaymentMethod if m.is_agent_rail}:
            raise InvalidTransition(f"Deposits cannot be paid by {method}.")

        deposit = Deposit(
            user_id=user.id,
            payer_name=user.name,
            payer_email=user.email,
            amount=amount,
            payment_status=status_label(self.variant, PaymentState.PENDING),
            request_date=today_str(),
        )
        self.session.add(deposit)
        await self.session.commit()
        await self.session.refresh(deposit)
        return await self.pay_with_agent(deposit.id, method, user, ip_address=ip_address)

    async def pending_for_user(self, user_id: str) -> Optional[Deposit]:
        open_labels = [status_label(self.variant, s) for s in (PaymentState.AWAITING_RECEIPT, PaymentState.VERIFYING)]
        stmt = (
            select(Deposit)
            .where(Deposit.user_id == user_id, Deposit.payment_status.in_(open_labels))
            .order_by(Deposit.created_at.desc())
        )
        result = await self.session.execute(stmt)
        return result.scalars().first()


class GiveawayWorkflow(PaymentWorkflow):
    variant = Variant.GIVEAWAY
    model = GiveawayEntry

    async def create_entry(self, name: str, email: str, phone: str = None, country: str = None,
                           user: Optional[User] = None) -> GiveawayEntry:
        fee = self.config.fee_amount
        if fee is None or fee <= 0:
            raise InvalidAmount("The giveaway entry fee has not been configured.")

        entry = GiveawayEntry(
            user_id=user.id if user else None,
            payer_name=name.strip(),
            payer_email=email.strip(),
            phone=phone,
            country=country,
            amount=fee,
            payment_status=status_label(self.variant, PaymentState.PENDING),
        )
        self.session.add(entry)
        await self.session.commit()
        await self.session.refresh(entry)
        logger.info(f"Giveaway entry {entry.id} created for {entry.payer_email}")
        return entry

    async def new_raffle_code(self) -> str:
        while True:
            code = f"{settings.RAFFLE_PREFIX}-{''.join(secrets.choice(_RAFFLE_ALPHABET) for _ in range(4))}"
            taken = await self.session.scalar(select(GiveawayEntry.id).where(GiveawayEntry.raffle_code == code))
            if not taken:
                return code

    async def _prepare(self, row: GiveawayEntry, event) -> Dict[str, Any]:
        details = {}
        if isinstance(event, (ChooseWallet, ConfirmPayment)):
            details["raffle_code"] = row.raffle_code or await self.new_raffle_code()
        return details
