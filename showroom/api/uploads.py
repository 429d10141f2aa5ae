from fastapi import APIRouter, Depends, File, UploadFile

from showroom.api.deps import get_current_user, get_storage
from showroom.core.exceptions import ReceiptRequired
from showroom.models.user import User
from showroom.services.storage_service import StorageService

router = APIRouter()

@router.post("")
async def upload_file(file: UploadFile = File(...), user: User = Depends(get_current_user),
                      storage: StorageService = Depends(get_storage)):
    """Generic image upload (vehicle photos). A failed upload still answers with a preview URL."""
    content = await file.read()
    if not content:
        raise ReceiptRequired("Please select a file to upload.")
    result = await storage.upload(file.filename or "upload", content, file.content_type or "application/octet-stream")
    return {"url": result.url, "persisted": result.persisted}
