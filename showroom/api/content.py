from fastapi import APIRouter, Depends, Path

from showroom.api.deps import get_content_service
from showroom.core.exceptions import NotFound
from showroom.services.settings_service import PAYMENT_SETTINGS_KEY, SiteContentService

CONTENT_KEY = r"^[A-Za-z0-9_]{1,64}$"

router = APIRouter()

async def read_document(content: SiteContentService, key: str):
    # Payment settings are always served complete, defaults filled in
    if key == PAYMENT_SETTINGS_KEY:
        return (await content.get_payment_settings()).model_dump(mode="json")
    return await content.get_content(key)

@router.get("")
async def list_content(content: SiteContentService = Depends(get_content_service)):
    keys = await content.list_keys()
    return {"content": {key: await read_document(content, key) for key in keys}}

@router.get("/{key}")
async def get_content(key: str = Path(pattern=CONTENT_KEY),
                      content: SiteContentService = Depends(get_content_service)):
    data = await read_document(content, key)
    if data is None:
        raise NotFound(f"No content stored under {key}")
    return {"key": key, "data": data}
