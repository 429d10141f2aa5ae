from dataclasses import dataclass
from typing import Optional
from urllib.parse import quote

import httpx
from loguru import logger

from showroom.core.config import Settings, settings as default_settings


@dataclass(frozen=True)
class UploadResult:
    url: str
    persisted: bool  # False: url is a placeholder preview, nothing was stored


class StorageService:
    def __init__(self, client: Optional[httpx.AsyncClient] = None, settings: Optional[Settings] = None):
        self.client = client
        self.settings = settings or default_settings

    @staticmethod
    def preview_url(filename: str) -> str:
        return f"https://picsum.photos/seed/{quote(filename or 'upload')}/1920/1080"

    async def upload(self, filename: str, content: bytes, content_type: str = "application/octet-stream") -> UploadResult:
        if not self.settings.STORAGE_UPLOAD_URL:
            logger.warning(f"Storage upload is disabled. Returning a preview for {filename}")
            return UploadResult(self.preview_url(filename), persisted=False)

        files = {"file": (filename, content, content_type)}
        try:
            if self.client is not None:
                response = await self.client.post(self.settings.STORAGE_UPLOAD_URL, files=files)
            else:
                async with httpx.AsyncClient(timeout=self.settings.STORAGE_TIMEOUT) as client:
                    response = await client.post(self.settings.STORAGE_UPLOAD_URL, files=files)
            response.raise_for_status()
            url = response.json().get("url")
            if not url:
                raise ValueError("storage response has no url")
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Upload of {filename} failed: {e}")
            return UploadResult(self.preview_url(filename), persisted=False)

        logger.info(f"Uploaded {filename} -> {url}")
        return UploadResult(url, persisted=True)
