from decimal import Decimal

from sqlalchemy import select

from showroom.core.config import Settings
from showroom.models.email_log import EmailLog
from showroom.services.notification_service import NotificationService
from showroom.workflow.notifications import EmailTemplate

FIELDS = {
    "payer_name": "Li Wei",
    "payer_email": "li.wei@example.com",
    "amount": Decimal("50000"),
    "method": "bank",
}


async def _logs(session):
    return (await session.execute(select(EmailLog))).scalars().all()


async def test_posts_rendered_email(session, notifier, mailbox):
    assert await notifier.dispatch(EmailTemplate.DEPOSIT_REQUEST_AGENT, FIELDS) is True

    sent = mailbox.sent[0]
    assert sent["template_id"] == "deposit_request_agent"
    assert sent["recipient"] == "agent@wuxibyd.test"
    assert "Li Wei" in sent["subject"]
    assert "¥50,000" in sent["body"]
    assert mailbox.headers[0]["authorization"] == "Bearer test-key"

    logs = await _logs(session)
    assert logs[0].status == "sent"
    assert logs[0].recipient == "agent@wuxibyd.test"


async def test_endpoint_failure_is_logged_not_raised(session, notifier, mailbox):
    mailbox.fail = True

    assert await notifier.dispatch(EmailTemplate.DEPOSIT_REQUEST_AGENT, FIELDS) is False

    logs = await _logs(session)
    assert logs[0].status == "failed"
    assert "500" in logs[0].error


async def test_missing_fields_are_logged_not_raised(session, notifier, mailbox):
    assert await notifier.dispatch(EmailTemplate.ORDER_CONFIRMATION, {"payer_email": "li.wei@example.com"}) is False

    assert mailbox.sent == []
    logs = await _logs(session)
    assert logs[0].status == "failed"
    assert "vehicle_name" in logs[0].error


async def test_without_endpoint_sends_are_skipped(session):
    service = NotificationService(session, settings=Settings(EMAIL_FUNCTION_URL=""))

    assert await service.dispatch(EmailTemplate.DEPOSIT_CONFIRMATION, FIELDS) is False

    logs = await _logs(session)
    assert logs[0].status == "skipped"
    assert logs[0].recipient == "li.wei@example.com"
