from decimal import Decimal

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from showroom.api.deps import get_content_service, get_current_user, to_dict
from showroom.core.database import get_db
from showroom.models.user import User
from showroom.services.investment_service import InvestmentService
from showroom.services.settings_service import SiteContentService
from showroom.services.wallet_service import WalletService

router = APIRouter()

class InvestRequest(BaseModel):
    amount: Decimal

async def _investments(db: AsyncSession, content: SiteContentService) -> InvestmentService:
    payment_settings = await content.get_payment_settings()
    return InvestmentService(db, payment_settings.investment)

@router.get("")
async def wallet_summary(user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db),
                         content: SiteContentService = Depends(get_content_service)):
    service = await _investments(db, content)
    return {
        "balance": await WalletService(db).get_balance(user.id),
        "invested": await service.total_for_user(user.id),
        "investments_enabled": service.toggle.wallet_enabled,
    }

@router.get("/investments")
async def list_investments(user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db),
                           content: SiteContentService = Depends(get_content_service)):
    service = await _investments(db, content)
    return {"investments": [to_dict(i) for i in await service.list_for_user(user.id)]}

@router.post("/investments", status_code=201)
async def invest(req: InvestRequest, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db),
                 content: SiteContentService = Depends(get_content_service)):
    service = await _investments(db, content)
    investment = await service.invest(user, req.amount)
    return {"investment": to_dict(investment), "balance": await service.wallet.get_balance(user.id)}
