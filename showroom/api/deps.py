from datetime import datetime
from typing import Optional

from fastapi import Depends, HTTPException, Request, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from showroom.core.config import settings
from showroom.core.database import get_db
from showroom.core.exceptions import PermissionDenied, ReceiptRequired, ServiceUnavailable
from showroom.core.security import read_session_token
from showroom.core.utils import to_timezone
from showroom.models.user import User
from showroom.services.assistant_service import AssistantService
from showroom.services.notification_service import NotificationService
from showroom.services.payment_service import DepositWorkflow, GiveawayWorkflow, OrderWorkflow
from showroom.services.settings_service import SiteContentService
from showroom.services.storage_service import StorageService
from showroom.workflow.states import Variant

LOGIN_URL = "/auth/login"

# --- Auth ---

async def get_optional_user(request: Request, db: AsyncSession = Depends(get_db)) -> Optional[User]:
    user_id = read_session_token(request.cookies.get(settings.SESSION_COOKIE))
    if not user_id:
        return None
    return await db.get(User, user_id)

async def get_current_user(user: Optional[User] = Depends(get_optional_user)) -> User:
    if user is None:
        raise HTTPException(status_code=307, headers={"Location": LOGIN_URL})
    return user

async def require_admin(user: User = Depends(get_current_user)) -> User:
    if not user.is_admin:
        raise PermissionDenied()
    return user

def client_ip(request: Request) -> Optional[str]:
    return request.client.host if request.client else None

# --- Collaborators ---

def get_notifier(db: AsyncSession = Depends(get_db)) -> NotificationService:
    return NotificationService(db)

def get_storage() -> StorageService:
    return StorageService()

def get_assistant() -> AssistantService:
    return AssistantService()

def get_content_service(db: AsyncSession = Depends(get_db)) -> SiteContentService:
    return SiteContentService(db)

async def get_order_workflow(db: AsyncSession = Depends(get_db),
                             notifier: NotificationService = Depends(get_notifier),
                             content: SiteContentService = Depends(get_content_service)) -> OrderWorkflow:
    return OrderWorkflow(db, await content.workflow_config(Variant.ORDER), notifier)

async def get_deposit_workflow(db: AsyncSession = Depends(get_db),
                               notifier: NotificationService = Depends(get_notifier),
                               content: SiteContentService = Depends(get_content_service)) -> DepositWorkflow:
    return DepositWorkflow(db, await content.workflow_config(Variant.DEPOSIT), notifier)

async def get_giveaway_workflow(db: AsyncSession = Depends(get_db),
                                notifier: NotificationService = Depends(get_notifier),
                                content: SiteContentService = Depends(get_content_service)) -> GiveawayWorkflow:
    return GiveawayWorkflow(db, await content.workflow_config(Variant.GIVEAWAY), notifier)

# --- Helpers ---

async def store_receipt(file: Optional[UploadFile], storage: StorageService) -> str:
    """Uploads a receipt and returns its URL. Preview URLs are never accepted as receipts."""
    if file is None or not file.filename:
        raise ReceiptRequired()
    content = await file.read()
    if not content:
        raise ReceiptRequired()
    result = await storage.upload(file.filename, content, file.content_type or "application/octet-stream")
    if not result.persisted:
        raise ServiceUnavailable("Receipt upload failed. Please try again.")
    return result.url

def to_dict(row, exclude=()) -> dict:
    data = {c.name: getattr(row, c.name) for c in row.__table__.columns if c.name not in exclude}
    for key, value in data.items():
        if isinstance(value, datetime):
            data[key] = to_timezone(value).isoformat()
    return data

def user_dict(user: User) -> dict:
    return to_dict(user, exclude=("password_hash",))
