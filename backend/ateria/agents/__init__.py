"""
Ateria - Agents Module

Pluggable external capabilities for the conversation engine:
- FineliClient: Food search against the Fineli REST API
- GeminiProvider: NLU, relevance rating and rephrasing with Gemini
- AIIntentClassifier: AI-first intent classification with regex fallback
- AIResultRanker: Relevance filtering of search hits
- AIResponder: Natural-language confirmations
"""

from ateria.agents.fineli_client import FineliClient, FineliError
from ateria.agents.gemini_provider import AIProviderError, GeminiProvider
from ateria.agents.ai_parser import AIIntentClassifier
from ateria.agents.ai_ranker import AIResultRanker
from ateria.agents.ai_responder import AIResponder

__all__ = [
    "FineliClient",
    "FineliError",
    "GeminiProvider",
    "AIProviderError",
    "AIIntentClassifier",
    "AIResultRanker",
    "AIResponder",
]
