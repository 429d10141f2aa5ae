"""
Payment transition function.

``transition`` is pure: given the current state, an event, a snapshot of the
transaction and the variant's configuration it returns the next state and
the side effects the caller must execute, in order. It never touches the
database, the wallet or the mail endpoint.
"""
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

from showroom.core.exceptions import (
    InsufficientFunds,
    InvalidTransition,
    PaymentMethodDisabled,
    ReceiptRequired,
)
from showroom.workflow.notifications import EmailTemplate
from showroom.workflow.states import (
    PaymentMethod,
    PaymentState,
    Variant,
    WorkflowConfig,
    status_label,
)


# --- Events ---

@dataclass(frozen=True)
class ChooseWallet:
    pass


@dataclass(frozen=True)
class ChooseAgent:
    method: PaymentMethod


@dataclass(frozen=True)
class SubmitReceipt:
    receipt_reference: Optional[str]


@dataclass(frozen=True)
class ConfirmPayment:
    pass


Event = Union[ChooseWallet, ChooseAgent, SubmitReceipt, ConfirmPayment]


# --- Effects ---

@dataclass(frozen=True)
class StoreWrite:
    """Partial update of the transaction row, applied only if its status is still ``expected_status``."""

    expected_status: str
    fields: Mapping[str, Any]


@dataclass(frozen=True)
class WalletDelta:
    """Signed change to the owner's balance. Debits require sufficient funds."""

    user_id: str
    amount: Decimal


@dataclass(frozen=True)
class Notify:
    template: EmailTemplate
    fields: Mapping[str, Any]


Effect = Union[StoreWrite, WalletDelta, Notify]


@dataclass(frozen=True)
class PaymentContext:
    """Snapshot of a transaction as seen by the transition function."""

    transaction_id: str
    payer_name: str
    payer_email: str
    amount: Decimal
    user_id: Optional[str] = None
    balance: Optional[Decimal] = None  # owner's wallet balance, for the wallet rail
    receipt_reference: Optional[str] = None
    details: Mapping[str, Any] = field(default_factory=dict)  # vehicle_name, raffle_code, ...


@dataclass(frozen=True)
class Transition:
    state: PaymentState
    effects: Tuple[Effect, ...]

    def effects_of(self, kind) -> List[Effect]:
        return [e for e in self.effects if isinstance(e, kind)]


@dataclass(frozen=True)
class _VariantRules:
    has_wallet_rail: bool
    agent_request: EmailTemplate
    agent_receipt: EmailTemplate
    payer_confirmation: EmailTemplate


RULES: Dict[Variant, _VariantRules] = {
    Variant.ORDER: _VariantRules(
        has_wallet_rail=True,
        agent_request=EmailTemplate.PAYMENT_REQUEST_AGENT,
        agent_receipt=EmailTemplate.PAYMENT_RECEIPT_AGENT,
        payer_confirmation=EmailTemplate.ORDER_CONFIRMATION,
    ),
    Variant.DEPOSIT: _VariantRules(
        has_wallet_rail=False,
        agent_request=EmailTemplate.DEPOSIT_REQUEST_AGENT,
        agent_receipt=EmailTemplate.DEPOSIT_RECEIPT_AGENT,
        payer_confirmation=EmailTemplate.DEPOSIT_CONFIRMATION,
    ),
    Variant.GIVEAWAY: _VariantRules(
        has_wallet_rail=True,
        agent_request=EmailTemplate.GIVEAWAY_PAYMENT_REQUEST_AGENT,
        agent_receipt=EmailTemplate.GIVEAWAY_PAYMENT_RECEIPT_AGENT,
        payer_confirmation=EmailTemplate.GIVEAWAY_CONFIRMATION,
    ),
}


def _expect(variant: Variant, state: PaymentState, *allowed: PaymentState):
    if state not in allowed:
        raise InvalidTransition(
            f"{variant.value} is {status_label(variant, state)!r}; "
            f"expected {' or '.join(repr(status_label(variant, s)) for s in allowed)}"
        )


def _fields(ctx: PaymentContext, **extra) -> Dict[str, Any]:
    fields = {
        "transaction_id": ctx.transaction_id,
        "payer_name": ctx.payer_name,
        "payer_email": ctx.payer_email,
        "amount": ctx.amount,
    }
    fields.update(ctx.details)
    fields.update(extra)
    return fields


def _paid_fields(variant: Variant, ctx: PaymentContext) -> Dict[str, Any]:
    """Extra columns written when a transaction reaches a paid terminal state."""
    if variant is Variant.ORDER:
        return {"fulfillment_status": "Processing"}
    if variant is Variant.GIVEAWAY:
        raffle_code = ctx.details.get("raffle_code")
        if not raffle_code:
            raise ValueError("giveaway payment needs a raffle code")
        return {"raffle_code": raffle_code}
    return {}


def payment_options(variant: Variant, config: WorkflowConfig, amount: Decimal,
                    balance: Optional[Decimal], has_account: bool = True) -> Dict[str, Any]:
    """Which rails the checkout can offer right now, and why the wallet rail is not actionable."""
    rules = RULES[variant]
    wallet_reason = None
    if not rules.has_wallet_rail or not config.wallet_enabled:
        wallet_reason = "disabled"
    elif not has_account:
        wallet_reason = "login_required"
    elif balance is None or balance < amount:
        wallet_reason = "insufficient_funds"

    return {
        "wallet": wallet_reason is None,
        "wallet_reason": wallet_reason,
        "agent": bool(config.agent_enabled),
        "agent_methods": [m.value for m in PaymentMethod if m.is_agent_rail] if config.agent_enabled else [],
    }


def transition(variant: Variant, state: PaymentState, event: Event,
               ctx: PaymentContext, config: WorkflowConfig) -> Transition:
    rules = RULES[variant]
    current = status_label(variant, state)

    if state.is_terminal:
        raise InvalidTransition(f"{variant.value.capitalize()} is already {current!r} and cannot change.")

    if isinstance(event, ChooseWallet):
        _expect(variant, state, PaymentState.PENDING)
        if not rules.has_wallet_rail or not config.wallet_enabled:
            raise PaymentMethodDisabled("Wallet payment is not available.")
        if not ctx.user_id:
            raise InvalidTransition("Wallet payment requires a signed-in account.")
        if ctx.balance is None or ctx.balance < ctx.amount:
            raise InsufficientFunds()

        new_state = PaymentState.WALLET_PAID
        write = {
            "payment_status": status_label(variant, new_state),
            "payment_method": PaymentMethod.WALLET.value,
        }
        write.update(_paid_fields(variant, ctx))
        return Transition(new_state, (
            StoreWrite(current, write),
            WalletDelta(ctx.user_id, -ctx.amount),
            Notify(rules.payer_confirmation, _fields(ctx, **write)),
        ))

    if isinstance(event, ChooseAgent):
        _expect(variant, state, PaymentState.PENDING)
        method = PaymentMethod(event.method)
        if not method.is_agent_rail:
            raise InvalidTransition(f"{method.label} is not an agent payment method.")
        if not config.agent_enabled:
            raise PaymentMethodDisabled("Bank and crypto payments are not available.")

        new_state = PaymentState.AWAITING_RECEIPT
        write = {
            "payment_status": status_label(variant, new_state),
            "payment_method": method.value,
        }
        return Transition(new_state, (
            StoreWrite(current, write),
            Notify(rules.agent_request, _fields(ctx, method=method.value)),
        ))

    if isinstance(event, SubmitReceipt):
        _expect(variant, state, PaymentState.AWAITING_RECEIPT)
        if not event.receipt_reference:
            raise ReceiptRequired()

        new_state = PaymentState.VERIFYING
        write = {
            "payment_status": status_label(variant, new_state),
            "receipt_reference": event.receipt_reference,
        }
        return Transition(new_state, (
            StoreWrite(current, write),
            Notify(rules.agent_receipt, _fields(ctx, receipt_reference=event.receipt_reference)),
        ))

    if isinstance(event, ConfirmPayment):
        _expect(variant, state, PaymentState.VERIFYING)
        if not ctx.receipt_reference:
            raise ReceiptRequired("Cannot confirm a payment without a receipt.")

        new_state = PaymentState.CONFIRMED
        write = {"payment_status": status_label(variant, new_state)}
        write.update(_paid_fields(variant, ctx))
        effects: List[Effect] = [StoreWrite(current, write)]
        if variant is Variant.DEPOSIT:
            if not ctx.user_id:
                raise InvalidTransition("Deposit has no wallet owner.")
            effects.append(WalletDelta(ctx.user_id, ctx.amount))
        effects.append(Notify(rules.payer_confirmation, _fields(ctx, **write)))
        return Transition(new_state, tuple(effects))

    raise TypeError(f"Unknown event: {event!r}")
