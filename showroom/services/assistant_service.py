"""
Sales assistant and catalog autofill on Google Gemini.
"""
import json
from decimal import Decimal
from typing import List, Optional

import google.generativeai as genai
from loguru import logger
from pydantic import BaseModel, Field, ValidationError

from showroom.core.config import Settings, settings as default_settings
from showroom.core.exceptions import ServiceUnavailable
from showroom.services.catalog_service import VehicleSpec

OFFLINE_REPLY = "I'm currently in offline mode. Please contact our sales team for help with vehicles, financing or the giveaway."
ERROR_REPLY = "I'm sorry, I'm having trouble connecting to my knowledge base right now. Please try again later."

SYSTEM_INSTRUCTION = """You are a friendly and knowledgeable sales expert for {dealership}.
Your goal is to answer questions about our BYD vehicles, help users calculate installment plans, provide information about our giveaway, and assist with any other dealership-related questions.
Use the information from the user's chat history to provide contextually relevant answers.
Be enthusiastic and helpful. Keep responses concise and easy to read.
Our available models are: {lineup}.
You can help with financing calculations by asking for the vehicle price, down payment, and loan term. The interest rate is around {rate}%.
Participants in the current giveaway pay a non-refundable entry fee and receive a unique raffle code.
Our dealership is located in Wuxi, Jiangsu, China."""

AUTOFILL_PROMPT = """Provide catalog details for the vehicle "{name}" as sold in China.
Return ONLY a JSON object with these keys:
- type (string): one of Sedan, SUV, Hatchback, Commercial, Special
- price (number): typical starting price in CNY
- description (string): one or two marketing sentences
- specs (array): exactly four objects with keys icon (an Ionicons name such as "flash-outline"), name and value"""


class ChatTurn(BaseModel):
    role: str = Field(pattern="^(user|model)$")
    text: str


class VehicleDraft(BaseModel):
    type: str
    price: Decimal = Field(gt=0)
    description: str
    specs: List[VehicleSpec]


class AssistantService:
    def __init__(self, settings: Optional[Settings] = None, lineup: Optional[List[str]] = None):
        self.settings = settings or default_settings
        self.lineup = lineup or []

    def _model(self, **kwargs):
        genai.configure(api_key=self.settings.GEMINI_API_KEY)
        return genai.GenerativeModel(model_name=self.settings.GEMINI_MODEL, **kwargs)

    async def ask(self, history: List[ChatTurn], message: str) -> str:
        if not self.settings.GEMINI_API_KEY:
            return OFFLINE_REPLY

        try:
            model = self._model(system_instruction=SYSTEM_INSTRUCTION.format(
                dealership=self.settings.DEALERSHIP_NAME,
                lineup=", ".join(self.lineup) or "the full BYD range",
                rate=self.settings.INSTALLMENT_RATE,
            ))
            chat = model.start_chat(history=[{"role": t.role, "parts": [t.text]} for t in history])
            response = await chat.send_message_async(message)
            return response.text.strip()
        except Exception as e:
            logger.error(f"Assistant request failed: {e}")
            return ERROR_REPLY

    async def autofill_vehicle(self, name: str) -> VehicleDraft:
        if not self.settings.GEMINI_API_KEY:
            raise ServiceUnavailable("AI autofill is not configured.")

        try:
            model = self._model(generation_config={"temperature": 0.2, "response_mime_type": "application/json"})
            response = await model.generate_content_async(AUTOFILL_PROMPT.format(name=name))
            raw_text = response.text.strip()
        except Exception as e:
            logger.error(f"Autofill request failed for {name}: {e}")
            raise ServiceUnavailable("Could not fetch AI data. Please try again.")

        if raw_text.startswith("```"):
            raw_text = raw_text.strip("`").removeprefix("json").strip()
        try:
            return VehicleDraft(**json.loads(raw_text))
        except (json.JSONDecodeError, TypeError, ValidationError) as e:
            logger.error(f"Autofill returned an unexpected format for {name}: {e}")
            raise ServiceUnavailable("AI response was not in the expected format.")
