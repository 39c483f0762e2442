"""
Tests for the conversation store and the TTL cache.
"""

from ateria.core.cache import MemoryCache
from ateria.core.state import ItemState, ParsedItem
from ateria.core.storage import ConversationStore


class TestConversationStore:

    def test_new_state_is_saved(self):
        store = ConversationStore()
        state = store.new_state(session_id="s", meal_id="m", language="en")

        assert store.exists("m")
        assert store.load("m") == state
        assert state.language == "en"

    def test_generated_ids(self):
        state = ConversationStore().new_state()
        assert state.session_id and state.meal_id

    def test_save_stores_wire_copy(self, make_state):
        store = ConversationStore()
        state = make_state()
        store.save(state)

        state.items.append(ParsedItem(id="item-1", raw_text="leipä", state=ItemState.PARSED))

        assert store.load("meal-1").items == []
        assert store.load_wire("meal-1")["sessionId"] == "session-1"

    def test_round_trip(self, make_state, porridge_foods):
        store = ConversationStore()
        state = make_state(
            items=[ParsedItem(
                id="item-1", raw_text="kaurapuuro", state=ItemState.DISAMBIGUATING,
                fineli_candidates=porridge_foods,
            )],
            unresolved_queue=["item-1"],
            active_item_id="item-1",
        )
        store.save(state)
        assert store.load("meal-1") == state

    def test_unknown_meal(self):
        store = ConversationStore()
        assert store.load("nope") is None
        assert store.load_wire("nope") is None
        assert not store.delete("nope")

    def test_delete(self, make_state):
        store = ConversationStore()
        store.save(make_state())
        assert store.delete("meal-1")
        assert not store.exists("meal-1")

    def test_clear_all(self, make_state):
        store = ConversationStore()
        store.save(make_state())
        store.save(make_state(meal_id="meal-2"))
        store.clear_all()
        assert not store.exists("meal-1") and not store.exists("meal-2")


class TestMemoryCache:

    def _cache(self):
        now = [0.0]
        return MemoryCache(clock=lambda: now[0]), now

    def test_fresh_entry(self):
        cache, _ = self._cache()
        cache.set("k", [1, 2], 10)
        assert cache.get("k") == [1, 2]

    def test_expired_entry_only_stale(self):
        cache, now = self._cache()
        cache.set("k", "v", 10)
        now[0] = 11
        assert cache.get("k") is None
        assert cache.get_stale("k") == "v"

    def test_missing(self):
        cache, _ = self._cache()
        assert cache.get("k") is None
        assert cache.get_stale("k") is None

    def test_delete_and_clear(self):
        cache, _ = self._cache()
        cache.set("a", 1, 10)
        cache.set("b", 2, 10)
        cache.delete("a")
        assert len(cache) == 1
        cache.clear()
        assert len(cache) == 0

    def test_full_cache_evicts_oldest(self):
        cache = MemoryCache(max_entries=2)
        cache.set("a", 1, 10)
        cache.set("b", 2, 10)
        cache.set("c", 3, 10)

        assert len(cache) == 2
        assert cache.get("a") is None
        assert cache.get_stale("a") is None
        assert cache.get("b") == 2
        assert cache.get("c") == 3

    def test_reset_key_becomes_newest(self):
        cache = MemoryCache(max_entries=2)
        cache.set("a", 1, 10)
        cache.set("b", 2, 10)
        cache.set("a", 10, 10)
        cache.set("c", 3, 10)

        assert cache.get("a") == 10
        assert cache.get("b") is None
        assert cache.get("c") == 3
