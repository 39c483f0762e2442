"""
Ateria - Search Result Ranking

Heuristic relevance ranking for Fineli search hits. Fineli's text search
matches the query anywhere in a name, so "maito" also returns
"Näkkileipä, sisältää maitoa"; this module pushes the foods whose primary
identity is the query to the top and drops the rest.
"""

import re
from typing import Sequence

from ateria.core.state import FineliFood, FoodType

DEFAULT_RESULT_LIMIT = 5
MIN_SCORE = 10
DESCRIPTOR_SCORE_CAP = 5

# Words that mark the text after them as a secondary descriptor
DESCRIPTOR_MARKERS = re.compile(
    r"\b(?:sisältää|sisältäen|lisätty|maustettu|täytetty|kuorrutettu|"
    r"contains|containing|with|flavou?red|flavou?r)\b|makuinen\b|maku\b",
    re.IGNORECASE,
)

# Colloquial Finnish names -> Fineli naming convention
FOOD_ALIASES: dict[str, str] = {
    # Dairy
    "kevytmaito": "maito, kevyt",
    "rasvaton maito": "maito, rasvaton",
    "täysmaito": "maito, täysi",
    "kermajuusto": "juusto, kerma",
    "edam": "juusto, edam",
    "emmental": "juusto, emmental",
    # Grains & bread
    "sekaleipä": "ruisleipä, ruissekaleipä",
    "graham": "sämpylä, graham",
    # Meat & protein
    "porsas": "porsaanliha",
    "nauta": "naudanliha",
    "muna": "kananmuna",
    # Prepared dishes
    "kana curry": "curry, kananliha",
    "perunamuusi": "perunasose",
    "lihapullat": "lihapulla",
}


def normalize_query(text: str) -> str:
    """Lowercase, trim, collapse whitespace and drop trailing punctuation."""
    normalized = " ".join(text.lower().split())
    return normalized.rstrip(",.")


def search_term(text: str) -> str:
    """Normalized query with the colloquial alias applied."""
    normalized = normalize_query(text)
    return FOOD_ALIASES.get(normalized, normalized)


def _descriptor_only(name: str, primary: str, query: str) -> bool:
    """True when the query only shows up inside a secondary descriptor."""
    if query in primary or "," not in name:
        return False
    rest = name.split(",", 1)[1]
    stem = query[:-1] if len(query) > 4 else query
    return stem in rest and DESCRIPTOR_MARKERS.search(rest) is not None


def score_result(food: FineliFood, query: str) -> int:
    """
    Additive relevance score of one hit for a normalized query.

    Exact whole-name matches score highest, then matches on the part of
    the name before the first comma, then prefix and substring matches.
    Plain foods, short names and matched query words earn small bonuses.
    """
    name = food.name_fi.lower()
    primary = name.split(",")[0].strip()
    qualified = "," in name

    score = 0
    if name == query:
        score += 100
    elif qualified and primary == query:
        score += 55
    elif qualified and primary.startswith(query):
        score += 45
    elif not qualified and name.startswith(query):
        # "kana grillattu" names the food plus a qualifier
        score += 60 if name[len(query):].startswith(" ") else 50
    elif qualified and query in primary:
        score += 30
    elif query in name:
        score += 20 if re.search(rf"\b{re.escape(query)}", name) else 15

    words = query.split()
    if len(words) > 1:
        score += 8 * sum(1 for word in words if word in name)

    if food.type == FoodType.FOOD:
        score += 10

    if len(name) < 40:
        score += 3
    if len(name) < 25:
        score += 2

    if _descriptor_only(name, primary, query):
        score = min(score, DESCRIPTOR_SCORE_CAP)

    return score


def rank_search_results(
    results: Sequence[FineliFood],
    query: str,
    limit: int = DEFAULT_RESULT_LIMIT,
) -> list[FineliFood]:
    """
    Rank and filter search results by relevance to the user's query.

    Hits at or below MIN_SCORE are dropped unless that would leave
    nothing, in which case the single best hit is kept. Ties keep their
    input order.

    Args:
        results: Raw search hits in provider order
        query: What the user typed
        limit: Maximum number of results to return

    Returns:
        At most `limit` foods, best first
    """
    normalized = normalize_query(query)
    if not normalized:
        return list(results[:limit])

    scored = [(score_result(food, normalized), food) for food in results]
    scored.sort(key=lambda pair: pair[0], reverse=True)

    kept = [pair for pair in scored if pair[0] > MIN_SCORE]
    if not kept:
        kept = scored[:1]

    return [food for _, food in kept[:limit]]
