from decimal import Decimal

import pytest
from sqlalchemy import select, update

from showroom.core.exceptions import (
    InsufficientFunds,
    InvalidAmount,
    InvalidTransition,
    PaymentMethodDisabled,
    PermissionDenied,
)
from showroom.models.audit import AuditLog
from showroom.models.email_log import EmailLog
from showroom.models.payment import Deposit, Order
from showroom.services.payment_service import DepositWorkflow, GiveawayWorkflow, OrderWorkflow
from showroom.services.wallet_service import WalletService
from showroom.workflow.states import WorkflowConfig

AGENT_EMAIL = "agent@wuxibyd.test"

RECEIPT = "https://cdn.test/receipts/1.png"


@pytest.fixture
def orders(session, notifier):
    return OrderWorkflow(session, WorkflowConfig(wallet_enabled=True, agent_enabled=True), notifier)


@pytest.fixture
def deposits(session, notifier):
    return DepositWorkflow(session, WorkflowConfig(wallet_enabled=False, agent_enabled=True), notifier)


@pytest.fixture
def giveaway(session, notifier):
    return GiveawayWorkflow(session, WorkflowConfig(wallet_enabled=False, agent_enabled=True,
                                                    fee_amount=Decimal("1000")), notifier)


async def test_wallet_order_debits_once(session, orders, mailbox, make_user, make_vehicle):
    user = await make_user(balance=300000)
    vehicle = await make_vehicle(price=212800)
    order = await orders.create_order(user, vehicle)
    assert order.payment_status == "Pending"

    order = await orders.pay_with_wallet(order.id, user)

    assert order.payment_status == "Paid"
    assert order.payment_method == "wallet"
    assert order.fulfillment_status == "Processing"
    assert await WalletService(session).get_balance(user.id) == Decimal("87200")
    assert mailbox.templates() == ["order_confirmation"]
    assert mailbox.sent[0]["recipient"] == user.email

    with pytest.raises(InvalidTransition):
        await orders.pay_with_wallet(order.id, user)
    assert await WalletService(session).get_balance(user.id) == Decimal("87200")
    assert mailbox.templates() == ["order_confirmation"]


async def test_wallet_order_over_balance_changes_nothing(session, orders, mailbox, make_user, make_vehicle):
    user = await make_user(balance=100)
    vehicle = await make_vehicle(price=212800)
    order = await orders.create_order(user, vehicle)

    with pytest.raises(InsufficientFunds):
        await orders.pay_with_wallet(order.id, user)

    await session.refresh(order)
    assert order.payment_status == "Pending"
    assert order.payment_method is None
    assert await WalletService(session).get_balance(user.id) == Decimal("100")
    assert mailbox.sent == []


async def test_agent_order_flow(session, orders, mailbox, make_user, make_vehicle):
    user = await make_user(balance=0)
    admin = await make_user(name="Admin", is_admin=True)
    vehicle = await make_vehicle(name="BYD Tang EV", price=289800, type="SUV")
    order = await orders.create_order(user, vehicle)

    order = await orders.pay_with_agent(order.id, "bank", user)
    assert order.payment_status == "Awaiting Receipt"
    assert (await orders.pending_for_user(user.id)).id == order.id

    with pytest.raises(InvalidTransition):
        await orders.confirm(order.id, admin)

    order = await orders.submit_receipt(order.id, RECEIPT, user)
    assert order.payment_status == "Verifying"
    assert order.receipt_reference == RECEIPT
    assert await orders.pending_for_user(user.id) is None

    order = await orders.confirm(order.id, admin)
    assert order.payment_status == "Paid"
    assert orders.state_of(order).value == "confirmed"

    assert mailbox.templates() == ["payment_request_agent", "payment_receipt_agent", "order_confirmation"]
    assert mailbox.sent[0]["recipient"] == AGENT_EMAIL
    assert mailbox.sent[1]["recipient"] == AGENT_EMAIL
    assert RECEIPT in mailbox.sent[1]["body"]
    assert mailbox.sent[2]["recipient"] == user.email


async def test_deposit_flow_credits_exactly_once(session, deposits, mailbox, make_user):
    user = await make_user(balance=1000)
    admin = await make_user(name="Admin", is_admin=True)
    wallet = WalletService(session)

    deposit = await deposits.request_deposit(user, Decimal("50000"), "bank")
    assert deposit.payment_status == "Awaiting Receipt"
    assert deposit.payment_method == "bank"
    assert mailbox.templates() == ["deposit_request_agent"]
    assert mailbox.sent[0]["recipient"] == AGENT_EMAIL
    assert await wallet.get_balance(user.id) == Decimal("1000")

    deposit = await deposits.submit_receipt(deposit.id, RECEIPT, user)
    assert deposit.payment_status == "Verifying"
    assert (await deposits.pending_for_user(user.id)).id == deposit.id
    assert await wallet.get_balance(user.id) == Decimal("1000")

    deposit = await deposits.confirm(deposit.id, admin)
    assert deposit.payment_status == "Completed"
    assert await wallet.get_balance(user.id) == Decimal("51000")
    assert mailbox.templates()[-1] == "deposit_confirmation"

    with pytest.raises(InvalidTransition):
        await deposits.confirm(deposit.id, admin)
    assert await wallet.get_balance(user.id) == Decimal("51000")


async def test_deposit_validation(deposits, make_user):
    user = await make_user()
    with pytest.raises(InvalidAmount):
        await deposits.request_deposit(user, 0, "bank")
    with pytest.raises(InvalidAmount):
        await deposits.request_deposit(user, "abc", "bank")
    with pytest.raises(InvalidTransition):
        await deposits.request_deposit(user, 100, "wallet")
    assert await deposits.list_for_user(user.id) == []


async def test_sub_cent_deposit_is_rejected_before_anything_is_stored(session, deposits, mailbox, make_user):
    user = await make_user()
    uid = user.id

    with pytest.raises(InvalidAmount):
        await deposits.request_deposit(user, Decimal("0.004"), "bank")
    with pytest.raises(InvalidAmount):
        await deposits.request_deposit(user, "99.999", "bank")

    assert (await session.execute(select(Deposit))).scalars().all() == []
    assert mailbox.sent == []

    # Whole cents go all the way through
    deposit = await deposits.request_deposit(user, "10.50", "bank")
    await deposits.submit_receipt(deposit.id, RECEIPT, user)
    deposit = await deposits.confirm(deposit.id)
    assert deposit.payment_status == "Completed"
    assert await WalletService(session).get_balance(uid) == Decimal("10.50")


async def test_deposit_cannot_be_paid_from_wallet(deposits, make_user):
    user = await make_user(balance=999999)
    deposits.session.add(Deposit(user_id=user.id, payer_name=user.name, payer_email=user.email,
                                 amount=Decimal("10"), payment_status="Pending"))
    await deposits.session.commit()
    deposit = (await deposits.list_for_user(user.id))[0]

    with pytest.raises(PaymentMethodDisabled):
        await deposits.pay_with_wallet(deposit.id, user)


async def test_giveaway_with_wallet_disabled_uses_agent(session, giveaway, mailbox, make_user):
    user = await make_user(balance=10)
    admin = await make_user(name="Admin", is_admin=True)
    entry = await giveaway.create_entry("Li Wei", user.email, "+86 138 0000 0000", "China", user)
    assert entry.amount == Decimal("1000")

    options = await giveaway.options(entry, user)
    assert options["step"] == "choose_method"
    assert options["wallet"] is False
    assert options["agent"] is True

    entry = await giveaway.pay_with_agent(entry.id, "crypto", user)
    assert entry.payment_status == "Awaiting Receipt"
    assert mailbox.templates() == ["giveaway_payment_request_agent"]

    entry = await giveaway.submit_receipt(entry.id, RECEIPT, user)
    entry = await giveaway.confirm(entry.id, admin)

    assert entry.payment_status == "Paid"
    assert entry.raffle_code.startswith("BYD2025-")
    assert len(entry.raffle_code) == len("BYD2025-") + 4
    assert entry.winner_status == "No"
    confirmation = mailbox.last("giveaway_confirmation")
    assert confirmation["recipient"] == user.email
    assert entry.raffle_code in confirmation["body"]
    assert await WalletService(session).get_balance(user.id) == Decimal("10")


async def test_guest_entry_is_guarded_by_email(giveaway):
    entry = await giveaway.create_entry("Guest", "guest@example.com")

    with pytest.raises(PermissionDenied):
        await giveaway.pay_with_agent(entry.id, "bank", email="someone@example.com")

    entry = await giveaway.pay_with_agent(entry.id, "bank", email="Guest@Example.com")
    assert entry.payment_status == "Awaiting Receipt"


async def test_giveaway_needs_a_fee(session, notifier):
    workflow = GiveawayWorkflow(session, WorkflowConfig(agent_enabled=True), notifier)
    with pytest.raises(InvalidAmount):
        await workflow.create_entry("Li Wei", "li.wei@example.com")


async def test_other_users_cannot_act_on_an_order(orders, make_user, make_vehicle):
    owner = await make_user(balance=300000)
    other = await make_user(name="Zhang San", balance=300000)
    order = await orders.create_order(owner, await make_vehicle())

    with pytest.raises(PermissionDenied):
        await orders.pay_with_wallet(order.id, other)


async def test_stale_status_is_rejected(session, orders, mailbox, make_user, make_vehicle):
    user = await make_user(balance=300000)
    uid = user.id
    order = await orders.create_order(user, await make_vehicle())

    # Another request moves the order on; the in-memory row still says Pending
    await session.execute(
        update(Order).where(Order.id == order.id)
        .values(payment_status="Awaiting Receipt", payment_method="bank")
        .execution_options(synchronize_session=False)
    )
    await session.commit()
    assert order.payment_status == "Pending"

    with pytest.raises(InvalidTransition):
        await orders.pay_with_wallet(order.id, user)

    assert await WalletService(session).get_balance(uid) == Decimal("300000")
    await session.refresh(order)
    assert order.payment_status == "Awaiting Receipt"
    assert mailbox.sent == []


async def test_failed_debit_rolls_the_status_back(session, orders, mailbox, make_user, make_vehicle, monkeypatch):
    user = await make_user(balance=300000)
    uid = user.id
    order = await orders.create_order(user, await make_vehicle(price=212800))
    read_balance = orders.wallet.get_balance

    async def balance_then_drained(user_id):
        # Another request spends most of the wallet after the balance was read
        balance = await read_balance(user_id)
        await WalletService(session).debit(user_id, Decimal("250000"))
        return balance

    monkeypatch.setattr(orders.wallet, "get_balance", balance_then_drained)

    with pytest.raises(InsufficientFunds):
        await orders.pay_with_wallet(order.id, user)

    await session.refresh(order)
    assert order.payment_status == "Pending"
    assert order.payment_method is None
    assert await WalletService(session).get_balance(uid) == Decimal("50000")
    assert mailbox.sent == []
    assert (await session.execute(select(AuditLog))).scalars().all() == []


async def test_email_failure_keeps_the_transition(session, orders, mailbox, make_user, make_vehicle):
    mailbox.fail = True
    user = await make_user()
    order = await orders.create_order(user, await make_vehicle())

    order = await orders.pay_with_agent(order.id, "bank", user)

    assert order.payment_status == "Awaiting Receipt"
    logs = (await session.execute(select(EmailLog))).scalars().all()
    assert [(log.email_type, log.status) for log in logs] == [("payment_request_agent", "failed")]


async def test_transitions_are_audited(session, orders, make_user, make_vehicle):
    user = await make_user()
    order = await orders.create_order(user, await make_vehicle())
    await orders.pay_with_agent(order.id, "crypto", user, ip_address="10.0.0.1")

    log = (await session.execute(select(AuditLog))).scalars().one()
    assert log.action == "order:choose_agent"
    assert log.target == f"order:{order.id}"
    assert log.user_id == user.id
    assert '"to": "Awaiting Receipt"' in log.details
