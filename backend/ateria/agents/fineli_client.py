"""
Ateria - Fineli Client

Food-composition lookups against the Finnish Fineli open API
(https://fineli.fi/fineli/api/v1). Implements the engine's
FoodSearchProvider contract and adds food detail and component lookups.

Responses are cached in memory; when Fineli is unreachable a stale cached
copy is served before giving up.
"""

import logging
from typing import Any, Optional

import httpx
from opik import track
from pydantic import ValidationError

from ateria.config import get_settings
from ateria.core.base_agent import AgentError
from ateria.core.cache import MemoryCache
from ateria.core.nutrients import kj_to_kcal, map_data_to_components
from ateria.core.search import search_term
from ateria.core.state import FineliComponent, FineliFood, FineliUnit, FoodType

logger = logging.getLogger(__name__)

# Cache lifetimes (seconds)
SEARCH_TTL = 60 * 60
NAME_TTL = 7 * 24 * 60 * 60
FOOD_TTL = 7 * 24 * 60 * 60
COMPONENTS_TTL = 24 * 60 * 60

# Search hits carry only these per-100g values
SEARCH_NUTRIENT_FIELDS = {
    "ENERC": "energy",
    "FAT": "fat",
    "CHOAVL": "carbohydrate",
    "PROT": "protein",
    "FIBC": "fiber",
}


class FineliError(AgentError):
    """Raised when Fineli cannot answer and nothing is cached."""

    def __init__(self, message: str, status_code: Optional[int] = None, original_error: Exception | None = None):
        self.status_code = status_code
        super().__init__("FineliClient", message, original_error)


# === Response mapping ===

def map_unit(raw: dict) -> FineliUnit:
    description = raw.get("description") or {}
    return FineliUnit(
        code=raw["code"],
        label_fi=description.get("fi") or "",
        label_en=description.get("en") or "",
        mass_grams=float(raw.get("mass") or 0),
    )


def map_search_item(raw: dict) -> FineliFood:
    """Map one /foods search hit to a FineliFood."""
    name = raw.get("name") or {}
    type_code = (raw.get("type") or {}).get("code")

    nutrients: dict[str, float] = {}
    for code, key in SEARCH_NUTRIENT_FIELDS.items():
        value = raw.get(key)
        if isinstance(value, (int, float)):
            nutrients[code] = float(value)
    nutrients.setdefault("FIBC", 0.0)

    return FineliFood(
        id=raw["id"],
        name_fi=name.get("fi") or "",
        name_en=name.get("en") or None,
        name_sv=name.get("sv") or None,
        type=FoodType.DISH if type_code == "DISH" else FoodType.FOOD,
        preparation_methods=[pm["code"] for pm in raw.get("preparationMethod") or [] if pm.get("code")],
        units=[map_unit(u) for u in raw.get("units") or []],
        nutrients=nutrients,
        energy_kj=nutrients.get("ENERC", 0.0),
        energy_kcal=float(raw.get("energyKcal") or 0),
        fat=nutrients.get("FAT", 0.0),
        protein=nutrients.get("PROT", 0.0),
        carbohydrate=nutrients.get("CHOAVL", 0.0),
    )


def map_component(raw: dict) -> FineliComponent:
    name = raw.get("name") or {}
    return FineliComponent(
        id=raw["id"],
        code=raw["code"],
        name_fi=name.get("fi") or raw["code"],
        name_en=name.get("en") or "",
        unit=raw.get("unit") or "",
    )


class FineliClient:
    """
    Async client for the Fineli REST API.

    Usage:
        client = FineliClient()
        foods = await client.search_foods("kaurapuuro")
        detail = await client.get_food(foods[0].id)
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        default_lang: Optional[str] = None,
        cache: Optional[MemoryCache] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout_seconds: Optional[float] = None,
    ):
        settings = get_settings()
        self.base_url = (base_url or settings.fineli_base_url).rstrip("/")
        self.default_lang = default_lang or settings.fineli_default_lang
        self.timeout_seconds = timeout_seconds or settings.fineli_timeout_seconds
        self.cache = cache if cache is not None else MemoryCache()
        self._client = http_client

        logger.info(f"FineliClient initialized: {self.base_url} (lang={self.default_lang})")

    async def _get_json(self, path: str, params: Optional[dict] = None) -> Any:
        url = f"{self.base_url}{path}"
        if self._client is not None:
            response = await self._client.get(url, params=params)
        else:
            async with httpx.AsyncClient(timeout=self.timeout_seconds) as client:
                response = await client.get(url, params=params)
        response.raise_for_status()
        return response.json()

    def _stale_or_raise(self, cache_key: str, what: str, error: Exception) -> Any:
        stale = self.cache.get_stale(cache_key)
        if stale is not None:
            logger.warning(f"Fineli {what} failed ({error}), serving stale cache")
            return stale

        status = error.response.status_code if isinstance(error, httpx.HTTPStatusError) else None
        raise FineliError(f"Fineli {what} failed: {error}", status_code=status, original_error=error)

    @track(name="fineli.search_foods")
    async def search_foods(self, query: str, lang: Optional[str] = None) -> list[FineliFood]:
        """
        Search foods by name.

        Colloquial names are mapped to Fineli's naming first
        ("kevytmaito" -> "maito, kevyt").

        Args:
            query: What the user typed
            lang: Search language (fi, en, sv)

        Returns:
            Hits in Fineli's order

        Raises:
            FineliError: If the request fails and nothing is cached
        """
        lang_key = lang or self.default_lang
        search_query = search_term(query)
        cache_key = f"fineli:search:{search_query}:{lang_key}"

        cached = self.cache.get(cache_key)
        if cached is not None:
            return cached

        try:
            raw = await self._get_json("/foods", params={"q": search_query, "lang": lang_key})
            foods = []
            for item in raw or []:
                if not (item.get("name") or {}).get("fi"):
                    logger.debug(f"Skipping unnamed Fineli hit {item.get('id')}")
                    continue
                foods.append(map_search_item(item))
        except (httpx.HTTPError, ValidationError, KeyError, TypeError, ValueError) as e:
            return self._stale_or_raise(cache_key, "search", e)

        for food in foods:
            self.cache.set(
                f"fineli:name:{food.id}",
                {"name_fi": food.name_fi, "name_en": food.name_en, "name_sv": food.name_sv},
                NAME_TTL,
            )

        self.cache.set(cache_key, foods, SEARCH_TTL)
        logger.debug(f"Fineli search '{search_query}' ({lang_key}): {len(foods)} hits")
        return foods

    @track(name="fineli.get_food")
    async def get_food(
        self,
        food_id: int,
        name_fi: Optional[str] = None,
        name_en: Optional[str] = None,
        name_sv: Optional[str] = None,
    ) -> FineliFood:
        """
        Fetch the full per-100g composition of one food.

        The detail endpoint carries no name, so it comes from the arguments,
        then from names cached by earlier searches, then a placeholder.
        """
        cache_key = f"fineli:food:{food_id}"
        cached = self.cache.get(cache_key)
        if cached is not None:
            return cached

        try:
            detail = await self._get_json(f"/foods/{food_id}")
            nutrients = map_data_to_components(detail.get("data") or [])
            units = [map_unit(u) for u in detail.get("units") or []]
        except (httpx.HTTPError, ValidationError, KeyError, TypeError, ValueError, AttributeError) as e:
            return self._stale_or_raise(cache_key, f"food {food_id}", e)

        if not name_fi:
            cached_name = self.cache.get(f"fineli:name:{food_id}") or {}
            name_fi = cached_name.get("name_fi") or f"Tuote {food_id}"
            name_en = cached_name.get("name_en")
            name_sv = cached_name.get("name_sv")

        energy_kj = nutrients.get("ENERC", 0.0)
        food = FineliFood(
            id=food_id,
            name_fi=name_fi,
            name_en=name_en,
            name_sv=name_sv,
            type=FoodType.FOOD,
            units=units,
            nutrients=nutrients,
            energy_kj=energy_kj,
            energy_kcal=kj_to_kcal(energy_kj),
            fat=nutrients.get("FAT", 0.0),
            protein=nutrients.get("PROT", 0.0),
            carbohydrate=nutrients.get("CHOAVL", 0.0),
        )

        self.cache.set(cache_key, food, FOOD_TTL)
        return food

    @track(name="fineli.get_components")
    async def get_components(self) -> list[FineliComponent]:
        """List the nutrient components Fineli reports, in Finnish."""
        cache_key = "fineli:components"
        cached = self.cache.get(cache_key)
        if cached is not None:
            return cached

        try:
            raw = await self._get_json("/components", params={"lang": "fi"})
            components = [map_component(c) for c in raw or []]
        except (httpx.HTTPError, ValidationError, KeyError, TypeError, ValueError) as e:
            return self._stale_or_raise(cache_key, "components", e)

        self.cache.set(cache_key, components, COMPONENTS_TTL)
        return components

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
