"""
Ateria - Gemini Provider

Google Gemini backend for the optional AI layer: intent classification
with food extraction, search-result relevance rating and natural-language
rephrasing of confirmations.

Every call asks for a JSON reply, is bounded by asyncio.wait_for and
raises AIProviderError on failure; the callers fall back to the
deterministic path.
"""

import asyncio
import json
import logging
import re
from typing import Any, Optional, Sequence

import google.generativeai as genai
from opik import track

from ateria.agents.prompts import build_parser_prompt, build_ranking_prompt, build_responder_prompt
from ateria.config import get_settings
from ateria.core.base_agent import AgentError
from ateria.core.state import (
    AIConversationContext,
    AIExtractedItem,
    AIParseResult,
    AIResponseResult,
    AISuggestion,
    CompanionAnswer,
    CorrectionData,
    CountAnswer,
    FineliFood,
    IntentType,
    PortionSizeAnswer,
    RankedResult,
    RemovalData,
    SelectionAnswer,
    UpdatePortionData,
    VolumeAnswer,
    WeightAnswer,
)

logger = logging.getLogger(__name__)

# answerPortionSize values -> Fineli size codes
PORTION_SIZE_CODES = {
    "pieni": "KPL_S", "small": "KPL_S",
    "normaali": "KPL_M", "keskikokoinen": "KPL_M", "medium": "KPL_M",
    "iso": "KPL_L", "suuri": "KPL_L", "large": "KPL_L",
}

VOLUME_UNITS = {"dl", "ml", "l"}


class AIProviderError(AgentError):
    """Raised when the language model cannot produce a usable answer."""

    def __init__(self, message: str, original_error: Exception | None = None):
        super().__init__("GeminiProvider", message, original_error)


def extract_json(response_text: str) -> Any:
    """Pull the JSON payload out of a model reply (plain or fenced)."""
    json_match = re.search(r"```(?:json)?\s*([\s\S]*?)\s*```", response_text)
    if json_match:
        json_str = json_match.group(1)
    else:
        json_match = re.search(r"\{[\s\S]*\}", response_text)
        if not json_match:
            raise ValueError("No JSON found in response")
        json_str = json_match.group()
    return json.loads(json_str)


def _number(value: Any) -> Optional[float]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return float(value)


def parse_result_from_json(data: dict) -> AIParseResult:
    """Map the parser's flat JSON reply onto typed intent payloads."""
    try:
        intent = IntentType(data.get("intent", "unclear"))
    except ValueError:
        intent = IntentType.UNCLEAR

    items = []
    for raw in data.get("items") or []:
        if not isinstance(raw, dict) or not raw.get("text"):
            continue
        items.append(AIExtractedItem(
            text=str(raw["text"]),
            amount=_number(raw.get("amount")),
            unit=raw.get("unit") or None,
            confidence=min(max(_number(raw.get("confidence")) or 1.0, 0.0), 1.0),
            search_hint=raw.get("searchHint") or None,
            portion_estimate_grams=_number(raw.get("portionEstimateGrams")),
        ))

    answer = None
    index = _number(data.get("answerIndex"))
    grams = _number(data.get("answerGrams"))
    value = _number(data.get("answerValue"))
    unit = (data.get("answerUnit") or "").lower()
    size = (data.get("answerPortionSize") or "").lower()
    companion = data.get("companionResponse")

    if index is not None:
        answer = SelectionAnswer(index=int(index) - 1)
    elif isinstance(companion, bool):
        answer = CompanionAnswer(value=companion)
    elif grams is not None:
        answer = WeightAnswer(grams=grams)
    elif size in PORTION_SIZE_CODES:
        answer = PortionSizeAnswer(key=PORTION_SIZE_CODES[size])
    elif value is not None and unit:
        if unit == "g":
            answer = WeightAnswer(grams=value)
        elif unit in VOLUME_UNITS:
            answer = VolumeAnswer(value=value, unit=unit)
        else:
            answer = CountAnswer(value=value, unit=unit)

    correction = None
    correction_grams = _number(data.get("correctionGrams"))
    if correction_grams is not None:
        correction = UpdatePortionData(grams=correction_grams)
    elif data.get("correctionText"):
        correction = CorrectionData(new_text=str(data["correctionText"]))

    removal = None
    if data.get("removalTarget"):
        removal = RemovalData(target_text=str(data["removalTarget"]))

    confidence = _number(data.get("confidence")) or 0.0

    return AIParseResult(
        intent=intent,
        items=items or None,
        answer=answer,
        correction=correction,
        removal=removal,
        confidence=min(max(confidence, 0.0), 1.0),
    )


class GeminiProvider:
    """
    AIProvider backed by google-generativeai.

    Usage:
        provider = GeminiProvider()
        result = await provider.parse_message("söin kaurapuuroa", context)
    """

    def __init__(
        self,
        parse_model: Optional[str] = None,
        response_model: Optional[str] = None,
        api_key: Optional[str] = None,
    ):
        self.settings = get_settings()
        self.parse_model_name = parse_model or self.settings.ai_parse_model
        self.response_model_name = response_model or self.settings.ai_response_model

        key = api_key or self.settings.google_api_key
        if key:
            genai.configure(api_key=key)
            generation_config = {"response_mime_type": "application/json", "temperature": 0.1}
            self.parse_model = genai.GenerativeModel(
                self.parse_model_name, generation_config=generation_config
            )
            self.response_model = genai.GenerativeModel(
                self.response_model_name,
                generation_config={"response_mime_type": "application/json", "temperature": 0.4},
            )
        else:
            self.parse_model = None
            self.response_model = None
            logger.warning("Google API key not configured - GeminiProvider is disabled")

    @property
    def available(self) -> bool:
        return self.parse_model is not None

    async def _generate(self, model: Any, prompt: str, timeout: float) -> Any:
        if model is None:
            raise AIProviderError("Gemini model not configured")

        try:
            response = await asyncio.wait_for(model.generate_content_async(prompt), timeout=timeout)
        except asyncio.TimeoutError as e:
            raise AIProviderError(f"Gemini call timed out after {timeout}s", e)
        except Exception as e:
            raise AIProviderError(f"Gemini call failed: {e}", e)

        try:
            return extract_json(response.text)
        except (ValueError, AttributeError) as e:
            raise AIProviderError(f"Unparseable Gemini response: {e}", e)

    @track(name="gemini.parse_message")
    async def parse_message(self, message: str, context: AIConversationContext) -> AIParseResult:
        data = await self._generate(
            self.parse_model,
            build_parser_prompt(message, context),
            self.settings.ai_parse_timeout_seconds,
        )
        if not isinstance(data, dict):
            raise AIProviderError("Parser reply is not a JSON object")
        result = parse_result_from_json(data)
        logger.debug(f"Gemini parsed '{message}' as {result.intent.value} ({result.confidence:.2f})")
        return result

    @track(name="gemini.rank_results")
    async def rank_results(self, query: str, candidates: Sequence[FineliFood]) -> list[RankedResult]:
        """Rate candidates 1-5; returned indexes are 0-based."""
        data = await self._generate(
            self.parse_model,
            build_ranking_prompt(query, [food.name_fi for food in candidates]),
            self.settings.ai_rank_timeout_seconds,
        )
        rankings = data.get("rankings") if isinstance(data, dict) else None
        if not isinstance(rankings, list):
            return []

        ranked = []
        for raw in rankings:
            index = _number(raw.get("index")) if isinstance(raw, dict) else None
            relevance = _number(raw.get("relevance")) if isinstance(raw, dict) else None
            if index is None or relevance is None:
                continue
            ranked.append(RankedResult(
                index=int(index) - 1,
                relevance=min(max(int(relevance), 1), 5),
            ))
        return ranked

    @track(name="gemini.generate_response")
    async def generate_response(
        self,
        template_message: str,
        context: AIConversationContext,
    ) -> Optional[AIResponseResult]:
        data = await self._generate(
            self.response_model,
            build_responder_prompt(template_message, context),
            self.settings.ai_response_timeout_seconds,
        )
        if not isinstance(data, dict) or not data.get("message"):
            return None

        suggestions = []
        for raw in data.get("suggestions") or []:
            try:
                suggestions.append(AISuggestion.model_validate(raw))
            except ValueError:
                logger.debug(f"Dropping malformed suggestion: {raw}")
        return AIResponseResult(message=str(data["message"]), suggestions=suggestions)
