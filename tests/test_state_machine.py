from decimal import Decimal

import pytest

from showroom.core.exceptions import (
    InsufficientFunds,
    InvalidTransition,
    PaymentMethodDisabled,
    ReceiptRequired,
)
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
from showroom.workflow.notifications import EmailTemplate
from showroom.workflow.states import (
    PaymentMethod,
    PaymentState,
    Variant,
    WorkflowConfig,
    checkout_step,
    parse_status,
    status_label,
)

WALLET_ON = WorkflowConfig(wallet_enabled=True, agent_enabled=True)
AGENT_ONLY = WorkflowConfig(wallet_enabled=False, agent_enabled=True)


def ctx(**overrides) -> PaymentContext:
    data = dict(
        transaction_id="t-1",
        payer_name="Li Wei",
        payer_email="li.wei@example.com",
        amount=Decimal("212800"),
        user_id="u-1",
        details={"vehicle_name": "BYD Seal"},
    )
    data.update(overrides)
    return PaymentContext(**data)


def test_wallet_payment_writes_then_debits_then_notifies():
    result = transition(Variant.ORDER, PaymentState.PENDING, ChooseWallet(),
                        ctx(balance=Decimal("300000")), WALLET_ON)

    assert result.state is PaymentState.WALLET_PAID
    write, debit, notify = result.effects
    assert isinstance(write, StoreWrite)
    assert write.expected_status == "Pending"
    assert write.fields["payment_status"] == "Paid"
    assert write.fields["payment_method"] == "wallet"
    assert write.fields["fulfillment_status"] == "Processing"
    assert debit == WalletDelta("u-1", Decimal("-212800"))
    assert isinstance(notify, Notify)
    assert notify.template is EmailTemplate.ORDER_CONFIRMATION
    assert notify.fields["vehicle_name"] == "BYD Seal"


def test_wallet_payment_with_exact_balance_is_allowed():
    result = transition(Variant.ORDER, PaymentState.PENDING, ChooseWallet(),
                        ctx(balance=Decimal("212800")), WALLET_ON)
    assert result.state is PaymentState.WALLET_PAID


def test_wallet_payment_over_balance_is_rejected():
    with pytest.raises(InsufficientFunds):
        transition(Variant.ORDER, PaymentState.PENDING, ChooseWallet(),
                   ctx(balance=Decimal("212799.99")), WALLET_ON)


def test_wallet_payment_needs_enabled_rail():
    with pytest.raises(PaymentMethodDisabled):
        transition(Variant.ORDER, PaymentState.PENDING, ChooseWallet(),
                   ctx(balance=Decimal("999999")), AGENT_ONLY)


def test_deposits_have_no_wallet_rail():
    with pytest.raises(PaymentMethodDisabled):
        transition(Variant.DEPOSIT, PaymentState.PENDING, ChooseWallet(),
                   ctx(balance=Decimal("999999")), WALLET_ON)


def test_wallet_payment_needs_an_account():
    with pytest.raises(InvalidTransition):
        transition(Variant.GIVEAWAY, PaymentState.PENDING, ChooseWallet(),
                   ctx(user_id=None, details={"raffle_code": "BYD2025-AB12"}), WALLET_ON)


def test_giveaway_wallet_payment_issues_raffle_code():
    result = transition(Variant.GIVEAWAY, PaymentState.PENDING, ChooseWallet(),
                        ctx(amount=Decimal("1000"), balance=Decimal("5000"),
                            details={"raffle_code": "BYD2025-AB12"}), WALLET_ON)

    write = result.effects_of(StoreWrite)[0]
    assert write.fields["raffle_code"] == "BYD2025-AB12"
    notify = result.effects_of(Notify)[0]
    assert notify.template is EmailTemplate.GIVEAWAY_CONFIRMATION
    assert notify.fields["raffle_code"] == "BYD2025-AB12"


def test_agent_choice_awaits_receipt_and_asks_agent():
    result = transition(Variant.ORDER, PaymentState.PENDING, ChooseAgent(PaymentMethod.BANK), ctx(), AGENT_ONLY)

    assert result.state is PaymentState.AWAITING_RECEIPT
    assert result.state is PaymentState.AWAITING_AGENT_DETAILS
    assert result.effects_of(WalletDelta) == []
    write = result.effects_of(StoreWrite)[0]
    assert write.fields == {"payment_status": "Awaiting Receipt", "payment_method": "bank"}
    notify = result.effects_of(Notify)[0]
    assert notify.template is EmailTemplate.PAYMENT_REQUEST_AGENT
    assert notify.fields["method"] == "bank"


def test_agent_choice_needs_enabled_rail():
    with pytest.raises(PaymentMethodDisabled):
        transition(Variant.ORDER, PaymentState.PENDING, ChooseAgent(PaymentMethod.CRYPTO), ctx(),
                   WorkflowConfig(wallet_enabled=True, agent_enabled=False))


def test_wallet_is_not_an_agent_method():
    with pytest.raises(InvalidTransition):
        transition(Variant.ORDER, PaymentState.PENDING, ChooseAgent(PaymentMethod.WALLET), ctx(), AGENT_ONLY)


def test_receipt_moves_to_verifying():
    result = transition(Variant.DEPOSIT, PaymentState.AWAITING_RECEIPT,
                        SubmitReceipt("https://cdn.test/r.png"), ctx(details={}), AGENT_ONLY)

    assert result.state is PaymentState.VERIFYING
    write = result.effects_of(StoreWrite)[0]
    assert write.expected_status == "Awaiting Receipt"
    assert write.fields["receipt_reference"] == "https://cdn.test/r.png"
    assert result.effects_of(Notify)[0].template is EmailTemplate.DEPOSIT_RECEIPT_AGENT


def test_empty_receipt_is_rejected():
    with pytest.raises(ReceiptRequired):
        transition(Variant.ORDER, PaymentState.AWAITING_RECEIPT, SubmitReceipt(""), ctx(), AGENT_ONLY)


def test_receipt_before_choosing_agent_is_rejected():
    with pytest.raises(InvalidTransition):
        transition(Variant.ORDER, PaymentState.PENDING, SubmitReceipt("https://cdn.test/r.png"), ctx(), AGENT_ONLY)


def test_confirming_a_deposit_credits_the_wallet():
    result = transition(Variant.DEPOSIT, PaymentState.VERIFYING, ConfirmPayment(),
                        ctx(amount=Decimal("50000"), receipt_reference="https://cdn.test/r.png", details={}),
                        AGENT_ONLY)

    assert result.state is PaymentState.CONFIRMED
    assert result.effects_of(StoreWrite)[0].fields == {"payment_status": "Completed"}
    assert result.effects_of(WalletDelta) == [WalletDelta("u-1", Decimal("50000"))]
    assert result.effects_of(Notify)[0].template is EmailTemplate.DEPOSIT_CONFIRMATION


def test_confirming_an_order_does_not_touch_the_wallet():
    result = transition(Variant.ORDER, PaymentState.VERIFYING, ConfirmPayment(),
                        ctx(receipt_reference="https://cdn.test/r.png"), AGENT_ONLY)
    assert result.effects_of(WalletDelta) == []
    assert result.effects_of(StoreWrite)[0].fields["payment_status"] == "Paid"


def test_confirm_requires_verifying():
    with pytest.raises(InvalidTransition):
        transition(Variant.ORDER, PaymentState.AWAITING_RECEIPT, ConfirmPayment(),
                   ctx(receipt_reference="https://cdn.test/r.png"), AGENT_ONLY)


def test_confirm_requires_receipt():
    with pytest.raises(ReceiptRequired):
        transition(Variant.ORDER, PaymentState.VERIFYING, ConfirmPayment(), ctx(), AGENT_ONLY)


def test_reconfirming_a_completed_deposit_is_rejected():
    with pytest.raises(InvalidTransition):
        transition(Variant.DEPOSIT, PaymentState.CONFIRMED, ConfirmPayment(),
                   ctx(receipt_reference="https://cdn.test/r.png", details={}), AGENT_ONLY)


@pytest.mark.parametrize("state", [PaymentState.WALLET_PAID, PaymentState.CONFIRMED, PaymentState.FAILED])
def test_terminal_orders_accept_no_events(state):
    for event in (ChooseWallet(), ChooseAgent(PaymentMethod.BANK), SubmitReceipt("x"), ConfirmPayment()):
        with pytest.raises(InvalidTransition, match="cannot change"):
            transition(Variant.ORDER, state, event,
                       ctx(balance=Decimal("999999"), receipt_reference="x"), WALLET_ON)


def test_paid_label_resolves_by_payment_method():
    assert parse_status(Variant.ORDER, "Paid", "wallet") is PaymentState.WALLET_PAID
    assert parse_status(Variant.ORDER, "Paid", "bank") is PaymentState.CONFIRMED
    assert parse_status(Variant.DEPOSIT, "Completed", "crypto") is PaymentState.CONFIRMED
    assert parse_status(Variant.GIVEAWAY, "Awaiting Receipt") is PaymentState.AWAITING_RECEIPT


def test_unknown_labels_are_errors():
    with pytest.raises(ValueError):
        parse_status(Variant.DEPOSIT, "Paid")
    with pytest.raises(ValueError):
        status_label(Variant.DEPOSIT, PaymentState.FAILED)


def test_checkout_steps():
    assert checkout_step(PaymentState.PENDING) == "choose_method"
    assert checkout_step(PaymentState.AWAITING_RECEIPT) == "upload_receipt"
    assert checkout_step(PaymentState.VERIFYING) == "pending_confirmation"
    assert checkout_step(PaymentState.WALLET_PAID) == "confirmed"
    assert checkout_step(PaymentState.CONFIRMED) == "confirmed"


def test_only_agent_rail_actionable_when_wallet_disabled_and_short():
    options = payment_options(Variant.GIVEAWAY, AGENT_ONLY, Decimal("1000"), Decimal("10"))
    assert options["wallet"] is False
    assert options["wallet_reason"] == "disabled"
    assert options["agent"] is True
    assert options["agent_methods"] == ["bank", "crypto"]


def test_wallet_reasons():
    amount = Decimal("1000")
    assert payment_options(Variant.ORDER, WALLET_ON, amount, None, has_account=False)["wallet_reason"] == "login_required"
    assert payment_options(Variant.ORDER, WALLET_ON, amount, Decimal("999"))["wallet_reason"] == "insufficient_funds"
    assert payment_options(Variant.ORDER, WALLET_ON, amount, Decimal("1000"))["wallet"] is True
    assert payment_options(Variant.DEPOSIT, WALLET_ON, amount, Decimal("5000"))["wallet_reason"] == "disabled"
