from typing import Any, Mapping, Optional

import httpx
from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from showroom.core.config import Settings, settings as default_settings
from showroom.models.email_log import EmailLog
from showroom.workflow.notifications import EmailTemplate, render_email, resolve_recipient


class NotificationService:
    """
    Sends rendered emails through the hosted email function.

    Best-effort: one attempt per notification, never retried, every failure
    is logged and recorded in email_logs, nothing is raised to the caller.
    """

    def __init__(self, session: AsyncSession, client: Optional[httpx.AsyncClient] = None,
                 settings: Optional[Settings] = None):
        self.session = session
        self.client = client
        self.settings = settings or default_settings

    async def dispatch(self, template: EmailTemplate, fields: Mapping[str, Any]) -> bool:
        try:
            recipient = resolve_recipient(template, fields, self.settings.AGENT_EMAIL)
            subject, body = render_email(template, fields)
        except (KeyError, ValueError) as e:
            logger.error(f"Cannot render {template.value}: {e}")
            await self._record(template, fields.get("payer_email") or "", template.value, "", "failed", str(e))
            return False

        if not self.settings.EMAIL_FUNCTION_URL:
            logger.warning(f"[EMAIL] No email endpoint configured. Skipping {template.value} to {recipient}: {subject}")
            await self._record(template, recipient, subject, body, "skipped")
            return False

        payload = {
            "template_id": template.value,
            "recipient": recipient,
            "subject": subject,
            "body": body,
        }
        logger.info(f"[EMAIL] Sending {template.value} to {recipient}")
        try:
            response = await self._post(payload)
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.error(f"Email function failed for {template.value} to {recipient}: {e}")
            await self._record(template, recipient, subject, body, "failed", str(e))
            return False

        await self._record(template, recipient, subject, body, "sent")
        return True

    async def _post(self, payload: dict) -> httpx.Response:
        headers = {"Content-Type": "application/json"}
        if self.settings.EMAIL_FUNCTION_KEY:
            headers["Authorization"] = f"Bearer {self.settings.EMAIL_FUNCTION_KEY}"

        if self.client is not None:
            return await self.client.post(self.settings.EMAIL_FUNCTION_URL, json=payload, headers=headers)
        async with httpx.AsyncClient(timeout=self.settings.EMAIL_TIMEOUT) as client:
            return await client.post(self.settings.EMAIL_FUNCTION_URL, json=payload, headers=headers)

    async def _record(self, template: EmailTemplate, recipient: str, subject: str, body: str,
                      status: str, error: str = None):
        try:
            self.session.add(EmailLog(
                email_type=template.value,
                recipient=recipient,
                subject=subject,
                body=body,
                status=status,
                error=error,
            ))
            await self.session.commit()
        except Exception as e:
            logger.error(f"Failed to write email log: {e}")
            await self.session.rollback()
