from decimal import Decimal
from typing import Any, Optional

from loguru import logger
from pydantic import BaseModel, Field, field_validator
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from showroom.core.cache import cache_service
from showroom.core.utils import to_cents
from showroom.models.content import SiteContent
from showroom.workflow.states import Variant, WorkflowConfig

PAYMENT_SETTINGS_KEY = "paymentSettings"


class MethodToggle(BaseModel):
    wallet_enabled: bool = False
    agent_enabled: bool = False


class GiveawaySettings(MethodToggle):
    fee_cny: Decimal = Field(default=Decimal(0), ge=0)

    @field_validator("fee_cny")
    @classmethod
    def whole_cents(cls, value: Decimal) -> Decimal:
        return to_cents(value)


class PaymentSettings(BaseModel):
    car_purchase: MethodToggle = Field(default_factory=MethodToggle)
    giveaway: GiveawaySettings = Field(default_factory=GiveawaySettings)
    investment: MethodToggle = Field(default_factory=MethodToggle)

    @classmethod
    def merged(cls, stored: Optional[dict]) -> "PaymentSettings":
        """Stored sections may be missing or partial; fill every gap from the defaults."""
        stored = stored or {}
        defaults = cls().model_dump()
        data = {}
        for section, values in defaults.items():
            override = stored.get(section) or {}
            data[section] = {**values, **{k: v for k, v in override.items() if v is not None}}
        return cls(**data)


class SiteContentService:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_content(self, key: str) -> Optional[dict]:
        cached = await cache_service.get_content(key)
        if cached is not None:
            return cached

        row = await self.session.get(SiteContent, key)
        if not row:
            return None
        await cache_service.set_content(key, row.data)
        return row.data

    async def save_content(self, key: str, data: dict):
        row = await self.session.get(SiteContent, key)
        if row:
            row.data = data
        else:
            self.session.add(SiteContent(key=key, data=data))
        await self.session.commit()
        await cache_service.invalidate_content(key)
        logger.info(f"Site content {key} updated")

    async def get_payment_settings(self) -> PaymentSettings:
        return PaymentSettings.merged(await self.get_content(PAYMENT_SETTINGS_KEY))

    async def update_payment_settings(self, data: Any) -> PaymentSettings:
        if isinstance(data, PaymentSettings):
            data = data.model_dump()
        current = dict(await self.get_content(PAYMENT_SETTINGS_KEY) or {})
        # Partial updates keep the untouched sections
        for section, values in (data or {}).items():
            current[section] = {**(current.get(section) or {}), **(values or {})}
        merged = PaymentSettings.merged(current)
        await self.save_content(PAYMENT_SETTINGS_KEY, merged.model_dump(mode="json"))
        return merged

    async def workflow_config(self, variant: Variant) -> WorkflowConfig:
        return for_variant(await self.get_payment_settings(), variant)

    async def list_keys(self):
        result = await self.session.execute(select(SiteContent.key).order_by(SiteContent.key))
        return result.scalars().all()


def for_variant(payment_settings: PaymentSettings, variant: Variant) -> WorkflowConfig:
    if variant is Variant.ORDER:
        section = payment_settings.car_purchase
        return WorkflowConfig(wallet_enabled=section.wallet_enabled, agent_enabled=section.agent_enabled)
    if variant is Variant.GIVEAWAY:
        section = payment_settings.giveaway
        return WorkflowConfig(
            wallet_enabled=section.wallet_enabled,
            agent_enabled=section.agent_enabled,
            fee_amount=Decimal(str(section.fee_cny)),
        )
    # Deposits are always paid to the agent; there is no toggle for them
    return WorkflowConfig(wallet_enabled=False, agent_enabled=True)
