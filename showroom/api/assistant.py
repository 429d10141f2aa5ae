from typing import List

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from showroom.api.deps import get_assistant
from showroom.core.database import get_db
from showroom.services.assistant_service import AssistantService, ChatTurn
from showroom.services.catalog_service import CatalogService

router = APIRouter()

class ChatRequest(BaseModel):
    message: str = Field(min_length=1)
    history: List[ChatTurn] = Field(default_factory=list)

@router.post("/chat")
async def chat(req: ChatRequest, db: AsyncSession = Depends(get_db),
               assistant: AssistantService = Depends(get_assistant)):
    if not assistant.lineup:
        assistant.lineup = [v.name for v in await CatalogService(db).list_vehicles()]
    reply = await assistant.ask(req.history, req.message)
    return {"reply": reply}
