from typing import Optional

from fastapi import APIRouter, Depends, File, Request, UploadFile
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from showroom.api.deps import client_ip, get_current_user, get_order_workflow, get_storage, store_receipt, to_dict
from showroom.core.database import get_db
from showroom.models.user import User
from showroom.services.catalog_service import CatalogService
from showroom.services.payment_service import OrderWorkflow
from showroom.services.storage_service import StorageService

router = APIRouter()

class CreateOrderRequest(BaseModel):
    vehicle_id: int
    payer_name: Optional[str] = None
    payer_email: Optional[str] = None

class AgentPaymentRequest(BaseModel):
    method: str

async def _checkout(workflow: OrderWorkflow, order, user: User) -> dict:
    return {"order": to_dict(order), "checkout": await workflow.options(order, user)}

@router.post("", status_code=201)
async def create_order(req: CreateOrderRequest, db: AsyncSession = Depends(get_db),
                       user: User = Depends(get_current_user),
                       workflow: OrderWorkflow = Depends(get_order_workflow)):
    vehicle = await CatalogService(db).get_vehicle(req.vehicle_id)
    order = await workflow.create_order(user, vehicle, req.payer_name, req.payer_email)
    return await _checkout(workflow, order, user)

@router.get("")
async def my_orders(user: User = Depends(get_current_user), workflow: OrderWorkflow = Depends(get_order_workflow)):
    return {"orders": [to_dict(o) for o in await workflow.list_for_user(user.id)]}

@router.get("/pending")
async def pending_order(user: User = Depends(get_current_user), workflow: OrderWorkflow = Depends(get_order_workflow)):
    """Resume point: the order still waiting for a receipt, if any."""
    order = await workflow.pending_for_user(user.id)
    if not order:
        return {"order": None}
    return await _checkout(workflow, order, user)

@router.get("/{order_id}")
async def get_order(order_id: str, user: User = Depends(get_current_user),
                    workflow: OrderWorkflow = Depends(get_order_workflow)):
    order = await workflow.get_for_payer(order_id, user)
    return await _checkout(workflow, order, user)

@router.post("/{order_id}/wallet")
async def pay_with_wallet(order_id: str, request: Request, user: User = Depends(get_current_user),
                          workflow: OrderWorkflow = Depends(get_order_workflow)):
    order = await workflow.pay_with_wallet(order_id, user, ip_address=client_ip(request))
    return await _checkout(workflow, order, user)

@router.post("/{order_id}/agent")
async def pay_with_agent(order_id: str, req: AgentPaymentRequest, request: Request,
                         user: User = Depends(get_current_user),
                         workflow: OrderWorkflow = Depends(get_order_workflow)):
    order = await workflow.pay_with_agent(order_id, req.method, user, ip_address=client_ip(request))
    return await _checkout(workflow, order, user)

@router.post("/{order_id}/receipt")
async def submit_receipt(order_id: str, request: Request, file: Optional[UploadFile] = File(None),
                         user: User = Depends(get_current_user),
                         workflow: OrderWorkflow = Depends(get_order_workflow),
                         storage: StorageService = Depends(get_storage)):
    # Ownership and state are checked before anything is uploaded
    order = await workflow.get_for_payer(order_id, user)
    workflow.ensure_awaiting_receipt(order)
    url = await store_receipt(file, storage)
    order = await workflow.submit_receipt(order_id, url, user, ip_address=client_ip(request))
    return await _checkout(workflow, order, user)
