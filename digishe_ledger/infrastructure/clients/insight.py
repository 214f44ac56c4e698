"""Business tip generator backed by Google Gemini"""

import logging
from decimal import Decimal
from typing import List

import google.generativeai as genai

from digishe_ledger.config import settings
from digishe_ledger.domain.models import Business, EntryKind, LedgerEntry

logger = logging.getLogger(__name__)

MISSING_KEY_TIP = "Tracking your finances is the first step toward business growth. Keep it up!"
EMPTY_RESPONSE_TIP = "Your dedication to record-keeping is setting your business up for success."
FAILURE_TIP = "Great job documenting your business journey! Every entry counts towards your success."


def build_prompt(business: Business, entries: List[LedgerEntry]) -> str:
    """Summarise the last 10 entries for the model"""
    recent = entries[-10:]
    sales = sum((e.amount for e in recent if e.kind == EntryKind.SALE), Decimal("0"))
    expenses = sum((e.amount for e in recent if e.kind == EntryKind.EXPENSE), Decimal("0"))

    return f"""Business: {business.name} ({business.category.value})
Recent Stats: Total Sales {sales}, Total Expenses {expenses}
Task: Give a very short, encouraging, and simple business tip (one sentence) for a woman business owner.
Focus on growth and financial health. Keep the language simple and friendly."""


class InsightClient:
    """
    Generates one-sentence business tips.

    Never raises: a missing key, a failed call or an empty answer all
    resolve to a static tip so the dashboard is never blocked.
    """

    def __init__(self, api_key: str | None = None, model_name: str | None = None):
        self.api_key = api_key if api_key is not None else settings.gemini_api_key
        self.model_name = model_name or settings.gemini_model
        self._model = None

    def _get_model(self):
        if self._model is None:
            genai.configure(api_key=self.api_key)
            self._model = genai.GenerativeModel(
                model_name=self.model_name,
                generation_config={
                    "temperature": 0.7,
                    "max_output_tokens": 80,
                },
            )
        return self._model

    async def generate(self, business: Business, entries: List[LedgerEntry]) -> str:
        if not self.api_key:
            logger.warning("Gemini API key is not set; using fallback tip")
            return MISSING_KEY_TIP

        try:
            response = await self._get_model().generate_content_async(build_prompt(business, entries))
            text = (response.text or "").strip()
        except Exception as e:
            logger.warning(f"Insight generation failed: {e}")
            return FAILURE_TIP

        return text or EMPTY_RESPONSE_TIP
