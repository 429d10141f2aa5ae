from decimal import Decimal

import pytest
from sqlalchemy import select

from showroom.core.exceptions import InvalidAmount
from showroom.models.email_log import EmailLog
from showroom.services.installment_service import InstallmentService, monthly_payment, quote


def test_amortised_payment():
    # 100,000 over 12 months at 4.5% a year
    assert abs(monthly_payment(100000, 12, 4.5) - Decimal("8537.85")) <= Decimal("0.02")


def test_zero_rate_splits_evenly():
    assert monthly_payment(120000, 12, 0) == Decimal("10000.00")


def test_nothing_to_finance():
    assert monthly_payment(0, 36) == 0
    assert monthly_payment(-500, 36) == 0


def test_default_rate_is_used():
    assert monthly_payment(100000, 12) == monthly_payment(100000, 12, 4.5)


def test_quote_bounds():
    q = quote(212800, 42560, 36)
    assert q.principal == Decimal("170240")
    assert q.monthly_payment > q.principal / 36

    with pytest.raises(InvalidAmount):
        quote(212800, 1000, 36)  # under 10%
    with pytest.raises(InvalidAmount):
        quote(212800, 200000, 36)  # over 80%
    with pytest.raises(InvalidAmount):
        quote(212800, 42560, 18)
    with pytest.raises(InvalidAmount):
        quote(212800, "42560.005", 36)


async def test_apply_creates_active_plan_and_emails(session, notifier, mailbox, make_vehicle):
    vehicle = await make_vehicle(name="BYD Han EV", price=239800)

    plan = await InstallmentService(session, notifier).apply(
        vehicle, "Alice Johnson", "alice@example.com", Decimal("50000"), 36
    )

    assert plan.status == "Active"
    assert plan.vehicle_name == "BYD Han EV"
    assert plan.monthly_payment == quote(239800, 50000, 36).monthly_payment
    assert mailbox.templates() == ["installment_confirmation"]
    assert mailbox.sent[0]["recipient"] == "alice@example.com"

    log = (await session.execute(select(EmailLog))).scalars().one()
    assert log.status == "sent"
    assert [p.id for p in await InstallmentService(session).list_all()] == [plan.id]
