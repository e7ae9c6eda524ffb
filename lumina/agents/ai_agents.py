"""
AI Agents for Lumina

DESIGN DECISION: Both agents talk to Gemini through google.generativeai
and hand back plain, typed results. Neither agent ever sees or touches
ledger state.

CRITICAL BOUNDARIES:

1. RECEIPT AGENT:
   - CAN: Read a receipt image and report total, date, merchant, category
   - CANNOT: Commit anything; its output is merged into a draft the user
     still has to confirm
   - CANNOT: Invent fields; missing or unusable values come back as None

2. INSIGHT AGENT:
   - CAN: Summarize recent transactions into short advice
   - CANNOT: Change data; the text is display-only

Failures surface as CollaboratorError. The flows in lumina.orchestrator
turn that into a fallback (unchanged draft / fallback text).
"""

import json
from collections.abc import Iterable, Sequence
from typing import Any, Optional

import google.generativeai as genai
import structlog
from pydantic import ValidationError as PydanticValidationError

from lumina.config import get_settings
from lumina.models.ledger import Category, ReceiptAnalysis, Transaction
from lumina.queries.aggregation import local_date


logger = structlog.get_logger(__name__)

DEFAULT_RECEIPT_CATEGORIES = (
    "Food", "Transportation", "Shopping", "Entertainment",
    "Housing", "Utilities", "Others",
)
INSIGHT_TRANSACTION_LIMIT = 50


class CollaboratorError(Exception):
    """An external collaborator failed or returned unusable output."""
    pass


def _build_model(temperature: Optional[float] = None, max_tokens: Optional[int] = None, **extra):
    """Configure Google Generative AI and build a model from settings."""
    settings = get_settings().gemini
    genai.configure(api_key=settings.api_key)
    generation_config = {
        "temperature": settings.temperature if temperature is None else temperature,
        "max_output_tokens": settings.max_tokens if max_tokens is None else max_tokens,
    }
    generation_config.update(extra)
    return genai.GenerativeModel(
        model_name=settings.model_name,
        generation_config=generation_config,
    )


def _response_text(response: Any) -> str:
    try:
        text = response.text
    except (AttributeError, ValueError) as e:
        # .text raises ValueError when the response was blocked
        raise CollaboratorError(f"Model returned no text: {e}")
    return (text or "").strip()


class ReceiptAgent:
    """
    AI agent for receipt scanning.

    RESPONSIBILITIES:
    - Extract total, date, merchant and a category suggestion from a photo

    BOUNDARIES:
    - NEVER persists data
    - NEVER guesses a value the model did not return
    """

    def __init__(self, model: Any = None):
        """
        Args:
            model: Anything with an async generate_content_async(); built
                from GeminiSettings when omitted.
        """
        self._model = model or _build_model(
            temperature=0.1,  # Low temperature for consistency
            max_tokens=512,
            response_mime_type="application/json",
        )

    def _prompt(self, category_names: Sequence[str]) -> str:
        return (
            "Analyze this receipt image. Extract the total amount, date, "
            "merchant name, and suggest a category from: "
            f"{', '.join(category_names)}.\n\n"
            "Respond with ONLY a JSON object in this exact format:\n"
            '{"total": 12.5, "date": "YYYY-MM-DD", "merchant": "name", '
            '"category": "category name", "summary": "one line", "items": ["item"]}\n\n'
            "Use null for anything you cannot read. Do not guess."
        )

    async def analyze_receipt(
        self,
        image: bytes,
        mime_type: str = "image/png",
        category_names: Optional[Sequence[str]] = None,
    ) -> ReceiptAnalysis:
        """
        Read a receipt image.

        Args:
            image: Raw image bytes
            mime_type: Image MIME type (image/png, image/jpeg, image/webp)
            category_names: Category names to suggest from

        Returns:
            ReceiptAnalysis where any field may be absent

        Raises:
            CollaboratorError: The call failed or the output is not a JSON object
        """
        if not image:
            raise CollaboratorError("Receipt image is empty")

        names = list(category_names or DEFAULT_RECEIPT_CATEGORIES)
        parts = [
            {"mime_type": mime_type, "data": image},
            self._prompt(names),
        ]

        try:
            response = await self._model.generate_content_async(parts)
        except Exception as e:
            raise CollaboratorError(f"Receipt analysis request failed: {e}") from e

        text = _response_text(response)
        # Find JSON in response
        start = text.find("{")
        end = text.rfind("}") + 1
        if start < 0 or end <= start:
            raise CollaboratorError("Receipt analysis returned no JSON object")

        try:
            data = json.loads(text[start:end])
        except json.JSONDecodeError as e:
            raise CollaboratorError(f"Receipt analysis returned malformed JSON: {e}")
        if not isinstance(data, dict):
            raise CollaboratorError("Receipt analysis returned no JSON object")

        try:
            analysis = ReceiptAnalysis.model_validate(data)
        except PydanticValidationError as e:
            raise CollaboratorError(f"Receipt analysis output unusable: {e}")

        logger.info("receipt_analyzed", fields_found=analysis.fields_found())
        return analysis


class InsightAgent:
    """
    AI agent for spending insights.

    Gets the most recent transactions as compact text lines and returns
    a few markdown bullet points. Display-only.
    """

    def __init__(self, model: Any = None):
        self._model = model or _build_model()

    @staticmethod
    def format_transactions(
        transactions: Iterable[Transaction],
        categories: Iterable[Category],
        limit: int = INSIGHT_TRANSACTION_LIMIT,
    ) -> list[str]:
        """
        Render transactions as 'YYYY-MM-DD: TYPE amount (Category)'.

        Transactions arrive newest first, so the first `limit` are the
        most recent. Unresolvable categories show as Unknown.
        """
        names = {c.id: c.name for c in categories}
        lines = []
        for t in list(transactions)[:max(limit, 0)]:
            category = names.get(t.category_id, "Unknown")
            lines.append(
                f"{local_date(t.date).isoformat()}: {t.type.value} {t.amount} ({category})"
            )
        return lines

    async def generate_insights(
        self,
        transactions: Iterable[Transaction],
        categories: Iterable[Category],
        limit: int = INSIGHT_TRANSACTION_LIMIT,
    ) -> str:
        """
        Ask for brief, actionable insights on recent spending.

        Raises:
            CollaboratorError: The call failed or returned no text
        """
        lines = self.format_transactions(transactions, categories, limit)
        prompt = (
            "You are a financial advisor. Analyze these recent transactions and "
            "provide 3 brief, actionable insights or warnings in markdown format. "
            "Be encouraging but realistic.\n\n"
            "Data:\n" + "\n".join(lines)
        )

        try:
            response = await self._model.generate_content_async(prompt)
        except Exception as e:
            raise CollaboratorError(f"Insight request failed: {e}") from e

        text = _response_text(response)
        if not text:
            raise CollaboratorError("Insight request returned empty text")

        logger.info("insights_generated", transaction_count=len(lines))
        return text
