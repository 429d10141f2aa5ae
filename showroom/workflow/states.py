"""
Payment workflow vocabulary: variants, states, payment rails and the labels
each variant persists for a state.
"""
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Optional


class Variant(str, Enum):
    ORDER = "order"
    DEPOSIT = "deposit"
    GIVEAWAY = "giveaway"


class PaymentState(str, Enum):
    PENDING = "pending"
    WALLET_PAID = "wallet_paid"
    AWAITING_RECEIPT = "awaiting_receipt"
    # Same persisted state: the agent has been asked to send payment details
    # and the payer has not uploaded proof yet.
    AWAITING_AGENT_DETAILS = "awaiting_receipt"
    VERIFYING = "verifying"
    CONFIRMED = "confirmed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (PaymentState.WALLET_PAID, PaymentState.CONFIRMED, PaymentState.FAILED)


class PaymentMethod(str, Enum):
    WALLET = "wallet"
    BANK = "bank"
    CRYPTO = "crypto"

    @property
    def label(self) -> str:
        return _METHOD_LABELS[self]

    @property
    def is_agent_rail(self) -> bool:
        return self is not PaymentMethod.WALLET


_METHOD_LABELS = {
    PaymentMethod.WALLET: "Wallet",
    PaymentMethod.BANK: "Bank Deposit",
    PaymentMethod.CRYPTO: "Crypto",
}


STATUS_LABELS = {
    Variant.ORDER: {
        PaymentState.PENDING: "Pending",
        PaymentState.WALLET_PAID: "Paid",
        PaymentState.AWAITING_RECEIPT: "Awaiting Receipt",
        PaymentState.VERIFYING: "Verifying",
        PaymentState.CONFIRMED: "Paid",
        PaymentState.FAILED: "Failed",
    },
    Variant.DEPOSIT: {
        PaymentState.PENDING: "Pending",
        PaymentState.AWAITING_RECEIPT: "Awaiting Receipt",
        PaymentState.VERIFYING: "Verifying",
        PaymentState.CONFIRMED: "Completed",
    },
    Variant.GIVEAWAY: {
        PaymentState.PENDING: "Pending",
        PaymentState.WALLET_PAID: "Paid",
        PaymentState.AWAITING_RECEIPT: "Awaiting Receipt",
        PaymentState.VERIFYING: "Verifying",
        PaymentState.CONFIRMED: "Paid",
    },
}


def status_label(variant: Variant, state: PaymentState) -> str:
    try:
        return STATUS_LABELS[variant][state]
    except KeyError:
        raise ValueError(f"{variant.value} has no {state.name} state")


def parse_status(variant: Variant, label: str, payment_method: Optional[str] = None) -> PaymentState:
    """
    Map a stored label back to its state.

    Wallet and agent payments both persist "Paid" for orders and giveaway
    entries; the recorded payment method tells them apart.
    """
    matches = [state for state, text in STATUS_LABELS[variant].items() if text == label]
    if not matches:
        raise ValueError(f"Unknown {variant.value} status: {label!r}")
    if len(matches) > 1:
        if payment_method == PaymentMethod.WALLET.value:
            return PaymentState.WALLET_PAID
        return PaymentState.CONFIRMED
    return matches[0]


@dataclass(frozen=True)
class WorkflowConfig:
    """Per-variant payment settings, injected into each workflow."""

    wallet_enabled: bool = False
    agent_enabled: bool = False
    fee_amount: Optional[Decimal] = None


# Which view the storefront renders for each state
CHECKOUT_STEPS = {
    PaymentState.PENDING: "choose_method",
    PaymentState.AWAITING_RECEIPT: "upload_receipt",
    PaymentState.VERIFYING: "pending_confirmation",
    PaymentState.WALLET_PAID: "confirmed",
    PaymentState.CONFIRMED: "confirmed",
    PaymentState.FAILED: "failed",
}


def checkout_step(state: PaymentState) -> str:
    return CHECKOUT_STEPS[state]
