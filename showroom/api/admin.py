from typing import Any, Optional

from fastapi import APIRouter, Body, Depends, Path, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, ValidationError
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from showroom.api.content import CONTENT_KEY, read_document
from showroom.api.deps import (
    client_ip,
    get_assistant,
    get_content_service,
    get_deposit_workflow,
    get_giveaway_workflow,
    get_order_workflow,
    require_admin,
    to_dict,
    user_dict,
)
from showroom.core.database import get_db
from showroom.core.exceptions import NotFound
from showroom.core.utils import get_now
from showroom.models.catalog import Vehicle
from showroom.models.email_log import EmailLog
from showroom.models.payment import Deposit, GiveawayEntry, Order
from showroom.models.user import User
from showroom.services.assistant_service import AssistantService
from showroom.services.audit_service import AuditService
from showroom.services.catalog_service import CatalogService, VehicleIn
from showroom.services.export_service import export_deposits, export_orders
from showroom.services.installment_service import InstallmentService
from showroom.services.payment_service import DepositWorkflow, GiveawayWorkflow, OrderWorkflow
from showroom.services.settings_service import PAYMENT_SETTINGS_KEY, PaymentSettings, SiteContentService
from loguru import logger

router = APIRouter(dependencies=[Depends(require_admin)])

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

class FulfillmentUpdate(BaseModel):
    fulfillment_status: str

class AutofillRequest(BaseModel):
    name: str

# --- Dashboard ---

@router.get("/stats")
async def dashboard_stats(db: AsyncSession = Depends(get_db)):
    revenue = await db.scalar(select(func.sum(Order.amount)).where(Order.payment_status == "Paid")) or 0
    wallet_float = await db.scalar(select(func.sum(User.balance)).where(User.is_admin == False)) or 0

    verifying = {}
    for name, model in (("orders", Order), ("deposits", Deposit), ("giveaway", GiveawayEntry)):
        verifying[name] = await db.scalar(select(func.count(model.id)).where(model.payment_status == "Verifying"))

    return {
        "revenue": revenue,
        "wallet_float": wallet_float,
        "orders": await db.scalar(select(func.count(Order.id))),
        "customers": await db.scalar(select(func.count(User.id)).where(User.is_admin == False)),
        "vehicles": await db.scalar(select(func.count(Vehicle.id))),
        "awaiting_verification": verifying,
    }

# --- Payment workflows ---

@router.get("/orders")
async def list_orders(workflow: OrderWorkflow = Depends(get_order_workflow)):
    return {"orders": [to_dict(o) for o in await workflow.list_all()]}

@router.post("/orders/{order_id}/confirm")
async def confirm_order(order_id: str, request: Request, admin: User = Depends(require_admin),
                        workflow: OrderWorkflow = Depends(get_order_workflow)):
    order = await workflow.confirm(order_id, admin, ip_address=client_ip(request))
    return {"order": to_dict(order)}

@router.put("/orders/{order_id}/fulfillment")
async def update_fulfillment(order_id: str, req: FulfillmentUpdate, request: Request,
                             admin: User = Depends(require_admin), db: AsyncSession = Depends(get_db),
                             workflow: OrderWorkflow = Depends(get_order_workflow)):
    order = await workflow.update_fulfillment(order_id, req.fulfillment_status)
    await AuditService(db).log_action(admin.id, admin.name, "order:fulfillment", f"order:{order_id}",
                                      {"fulfillment_status": req.fulfillment_status}, client_ip(request))
    return {"order": to_dict(order)}

@router.get("/deposits")
async def list_deposits(workflow: DepositWorkflow = Depends(get_deposit_workflow)):
    return {"deposits": [to_dict(d) for d in await workflow.list_all()]}

@router.post("/deposits/{deposit_id}/confirm")
async def confirm_deposit(deposit_id: str, request: Request, admin: User = Depends(require_admin),
                          workflow: DepositWorkflow = Depends(get_deposit_workflow)):
    deposit = await workflow.confirm(deposit_id, admin, ip_address=client_ip(request))
    return {"deposit": to_dict(deposit)}

@router.get("/giveaway")
async def list_entries(workflow: GiveawayWorkflow = Depends(get_giveaway_workflow)):
    return {"entries": [to_dict(e) for e in await workflow.list_all()]}

@router.post("/giveaway/{entry_id}/confirm")
async def confirm_entry(entry_id: str, request: Request, admin: User = Depends(require_admin),
                        workflow: GiveawayWorkflow = Depends(get_giveaway_workflow)):
    entry = await workflow.confirm(entry_id, admin, ip_address=client_ip(request))
    return {"entry": to_dict(entry)}

@router.get("/installments")
async def list_installments(db: AsyncSession = Depends(get_db)):
    return {"plans": [to_dict(p) for p in await InstallmentService(db).list_all()]}

@router.get("/users")
async def list_users(db: AsyncSession = Depends(get_db)):
    result = await db.execute(select(User).order_by(User.created_at.desc()))
    return {"users": [user_dict(u) for u in result.scalars().all()]}

# --- Logs ---

@router.get("/email-logs")
async def list_email_logs(status: Optional[str] = None, limit: int = 200, db: AsyncSession = Depends(get_db)):
    stmt = select(EmailLog).order_by(EmailLog.id.desc()).limit(limit)
    if status:
        stmt = stmt.where(EmailLog.status == status)
    result = await db.execute(stmt)
    return {"logs": [to_dict(log) for log in result.scalars().all()]}

@router.get("/audit-logs")
async def list_audit_logs(target: Optional[str] = None, db: AsyncSession = Depends(get_db)):
    logs = await AuditService(db).recent(target)
    return {"logs": [to_dict(log) for log in logs]}

# --- Settings ---

@router.get("/payment-settings")
async def get_payment_settings(content: SiteContentService = Depends(get_content_service)):
    return (await content.get_payment_settings()).model_dump(mode="json")

@router.put("/payment-settings")
async def update_payment_settings(req: PaymentSettings, request: Request, admin: User = Depends(require_admin),
                                  db: AsyncSession = Depends(get_db),
                                  content: SiteContentService = Depends(get_content_service)):
    updated = await content.update_payment_settings(req)
    await AuditService(db).log_action(admin.id, admin.name, "settings:payment", "content:paymentSettings",
                                      updated.model_dump(mode="json"), client_ip(request))
    return updated.model_dump(mode="json")

@router.get("/content")
async def list_content_keys(content: SiteContentService = Depends(get_content_service)):
    return {"keys": await content.list_keys()}

@router.put("/content/{key}")
async def update_content(request: Request, key: str = Path(pattern=CONTENT_KEY), data: Any = Body(...),
                         admin: User = Depends(require_admin), db: AsyncSession = Depends(get_db),
                         content: SiteContentService = Depends(get_content_service)):
    if key == PAYMENT_SETTINGS_KEY:
        try:
            data = PaymentSettings.model_validate(data)
        except ValidationError as e:
            raise RequestValidationError(e.errors(include_url=False, include_context=False))
        await content.update_payment_settings(data)
    else:
        await content.save_content(key, data)
    stored = await read_document(content, key)
    await AuditService(db).log_action(admin.id, admin.name, "content:update", f"content:{key}",
                                      {"data": stored}, client_ip(request))
    return {"key": key, "data": stored}

# --- Catalog ---

@router.post("/vehicles", status_code=201)
async def add_vehicle(req: VehicleIn, db: AsyncSession = Depends(get_db)):
    return to_dict(await CatalogService(db).add_vehicle(req))

@router.put("/vehicles/{vehicle_id}")
async def update_vehicle(vehicle_id: int, req: VehicleIn, db: AsyncSession = Depends(get_db)):
    return to_dict(await CatalogService(db).update_vehicle(vehicle_id, req))

@router.delete("/vehicles/{vehicle_id}")
async def delete_vehicle(vehicle_id: int, db: AsyncSession = Depends(get_db)):
    await CatalogService(db).delete_vehicle(vehicle_id)
    return {"status": "success"}

@router.post("/vehicles/autofill")
async def autofill_vehicle(req: AutofillRequest, assistant: AssistantService = Depends(get_assistant)):
    draft = await assistant.autofill_vehicle(req.name)
    logger.info(f"Autofilled catalog data for {req.name}")
    return {"name": req.name, **draft.model_dump()}

# --- Export ---

@router.get("/export/{kind}")
async def export_ledger(kind: str, db: AsyncSession = Depends(get_db)):
    exporters = {"orders": export_orders, "deposits": export_deposits}
    if kind not in exporters:
        raise NotFound(f"Unknown export: {kind}")
    output = await exporters[kind](db)
    filename = f"{kind}_{get_now().strftime('%Y%m%d')}.xlsx"
    return StreamingResponse(
        output,
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": f"attachment; filename={filename}"},
    )
