from decimal import Decimal
from typing import Optional

from fastapi import APIRouter, Depends, File, Request, UploadFile
from pydantic import BaseModel

from showroom.api.deps import client_ip, get_current_user, get_deposit_workflow, get_storage, store_receipt, to_dict
from showroom.models.user import User
from showroom.services.payment_service import DepositWorkflow
from showroom.services.storage_service import StorageService

router = APIRouter()

class DepositRequest(BaseModel):
    amount: Decimal
    method: str = "bank"

async def _checkout(workflow: DepositWorkflow, deposit, user: User) -> dict:
    return {"deposit": to_dict(deposit), "checkout": await workflow.options(deposit, user)}

@router.post("", status_code=201)
async def request_deposit(req: DepositRequest, request: Request, user: User = Depends(get_current_user),
                          workflow: DepositWorkflow = Depends(get_deposit_workflow)):
    deposit = await workflow.request_deposit(user, req.amount, req.method, ip_address=client_ip(request))
    return await _checkout(workflow, deposit, user)

@router.get("")
async def my_deposits(user: User = Depends(get_current_user), workflow: DepositWorkflow = Depends(get_deposit_workflow)):
    return {"deposits": [to_dict(d) for d in await workflow.list_for_user(user.id)]}

@router.get("/pending")
async def pending_deposit(user: User = Depends(get_current_user), workflow: DepositWorkflow = Depends(get_deposit_workflow)):
    deposit = await workflow.pending_for_user(user.id)
    if not deposit:
        return {"deposit": None}
    return await _checkout(workflow, deposit, user)

@router.get("/{deposit_id}")
async def get_deposit(deposit_id: str, user: User = Depends(get_current_user),
                      workflow: DepositWorkflow = Depends(get_deposit_workflow)):
    deposit = await workflow.get_for_payer(deposit_id, user)
    return await _checkout(workflow, deposit, user)

@router.post("/{deposit_id}/receipt")
async def submit_receipt(deposit_id: str, request: Request, file: Optional[UploadFile] = File(None),
                         user: User = Depends(get_current_user),
                         workflow: DepositWorkflow = Depends(get_deposit_workflow),
                         storage: StorageService = Depends(get_storage)):
    deposit = await workflow.get_for_payer(deposit_id, user)
    workflow.ensure_awaiting_receipt(deposit)
    url = await store_receipt(file, storage)
    deposit = await workflow.submit_receipt(deposit_id, url, user, ip_address=client_ip(request))
    return await _checkout(workflow, deposit, user)
