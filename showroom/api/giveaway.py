from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Request, UploadFile
from pydantic import BaseModel

from showroom.api.deps import (
    client_ip,
    get_current_user,
    get_giveaway_workflow,
    get_optional_user,
    get_storage,
    store_receipt,
    to_dict,
)
from showroom.models.user import User
from showroom.services.payment_service import GiveawayWorkflow
from showroom.services.storage_service import StorageService
from showroom.workflow.machine import payment_options

router = APIRouter()

class EntryRequest(BaseModel):
    name: str
    email: str
    phone: Optional[str] = None
    country: Optional[str] = None

class AgentPaymentRequest(BaseModel):
    method: str
    email: Optional[str] = None # Guests prove ownership with the entry email

async def _checkout(workflow: GiveawayWorkflow, entry, user: Optional[User]) -> dict:
    return {"entry": to_dict(entry), "checkout": await workflow.options(entry, user)}

@router.get("")
async def giveaway_info(user: Optional[User] = Depends(get_optional_user),
                        workflow: GiveawayWorkflow = Depends(get_giveaway_workflow)):
    fee = workflow.config.fee_amount or 0
    balance = await workflow.wallet.get_balance(user.id) if user else None
    return {
        "fee": fee,
        "open": fee > 0 and (workflow.config.wallet_enabled or workflow.config.agent_enabled),
        **payment_options(workflow.variant, workflow.config, fee, balance, has_account=user is not None),
    }

@router.post("/entries", status_code=201)
async def create_entry(req: EntryRequest, user: Optional[User] = Depends(get_optional_user),
                       workflow: GiveawayWorkflow = Depends(get_giveaway_workflow)):
    entry = await workflow.create_entry(req.name, req.email, req.phone, req.country, user)
    return await _checkout(workflow, entry, user)

@router.get("/entries/{entry_id}")
async def get_entry(entry_id: str, email: Optional[str] = None, user: Optional[User] = Depends(get_optional_user),
                    workflow: GiveawayWorkflow = Depends(get_giveaway_workflow)):
    entry = await workflow.get_for_payer(entry_id, user, email)
    return await _checkout(workflow, entry, user)

@router.post("/entries/{entry_id}/wallet")
async def pay_with_wallet(entry_id: str, request: Request, user: User = Depends(get_current_user),
                          workflow: GiveawayWorkflow = Depends(get_giveaway_workflow)):
    entry = await workflow.pay_with_wallet(entry_id, user, ip_address=client_ip(request))
    return await _checkout(workflow, entry, user)

@router.post("/entries/{entry_id}/agent")
async def pay_with_agent(entry_id: str, req: AgentPaymentRequest, request: Request,
                         user: Optional[User] = Depends(get_optional_user),
                         workflow: GiveawayWorkflow = Depends(get_giveaway_workflow)):
    entry = await workflow.pay_with_agent(entry_id, req.method, user, req.email, ip_address=client_ip(request))
    return await _checkout(workflow, entry, user)

@router.post("/entries/{entry_id}/receipt")
async def submit_receipt(entry_id: str, request: Request, file: Optional[UploadFile] = File(None),
                         email: Optional[str] = Form(None),
                         user: Optional[User] = Depends(get_optional_user),
                         workflow: GiveawayWorkflow = Depends(get_giveaway_workflow),
                         storage: StorageService = Depends(get_storage)):
    entry = await workflow.get_for_payer(entry_id, user, email)
    workflow.ensure_awaiting_receipt(entry)
    url = await store_receipt(file, storage)
    entry = await workflow.submit_receipt(entry_id, url, user, email, ip_address=client_ip(request))
    return await _checkout(workflow, entry, user)
