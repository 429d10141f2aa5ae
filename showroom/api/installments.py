from decimal import Decimal
from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from showroom.api.deps import get_current_user, get_notifier, get_optional_user, to_dict
from showroom.core.database import get_db
from showroom.models.user import User
from showroom.services.catalog_service import CatalogService
from showroom.services.installment_service import TERM_OPTIONS, InstallmentService, quote
from showroom.services.notification_service import NotificationService

router = APIRouter()

class QuoteRequest(BaseModel):
    vehicle_id: int
    down_payment: Decimal
    term_months: int = 36

class ApplicationRequest(QuoteRequest):
    customer_name: str
    customer_email: str

@router.post("/quote")
async def installment_quote(req: QuoteRequest, db: AsyncSession = Depends(get_db)):
    vehicle = await CatalogService(db).get_vehicle(req.vehicle_id)
    q = quote(vehicle.price, req.down_payment, req.term_months)
    return {
        "vehicle_id": vehicle.id,
        "price": vehicle.price,
        "down_payment": req.down_payment,
        "principal": q.principal,
        "monthly_payment": q.monthly_payment,
        "term_months": q.term_months,
        "annual_rate": q.annual_rate,
        "term_options": TERM_OPTIONS,
    }

@router.post("", status_code=201)
async def apply_for_installment(req: ApplicationRequest, db: AsyncSession = Depends(get_db),
                                user: Optional[User] = Depends(get_optional_user),
                                notifier: NotificationService = Depends(get_notifier)):
    vehicle = await CatalogService(db).get_vehicle(req.vehicle_id)
    plan = await InstallmentService(db, notifier).apply(
        vehicle, req.customer_name, req.customer_email, req.down_payment, req.term_months, user
    )
    return {"plan": to_dict(plan)}

@router.get("")
async def my_plans(user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    plans = await InstallmentService(db).list_for_user(user.id)
    return {"plans": [to_dict(p) for p in plans]}
