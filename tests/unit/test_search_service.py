from __future__ import annotations

import asyncio
import time
from typing import Any

import pytest

from src.app.domain.errors import InvalidArgumentError, RemoteServiceError
from src.app.domain.models import SearchMode, SearchResults
from src.app.infra.db.memory_store import InMemoryDocumentStore
from src.app.services.recipes import RecipeService
from src.app.services.search import DebouncedSearch, SearchService
from src.app.services.users import UserService


class CountingStore(InMemoryDocumentStore):
    def __init__(self) -> None:
        super().__init__()
        self.queries = 0

    def query(self, *args: Any, **kwargs: Any) -> list[dict[str, Any]]:
        self.queries += 1
        return super().query(*args, **kwargs)


@pytest.fixture
def store() -> CountingStore:
    store = CountingStore()
    store.set("recipes/r1", {"title": "Basil Pesto", "ingredients": ["basil", "pine nuts"], "isPublished": True})
    store.set("recipes/r2", {"title": "Tomato Soup", "ingredients": ["tomato", "basil"], "isPublished": True})
    store.set("users/u1", {"displayName": "Basil Fawlty", "email": "basil@example.com"})
    store.set("users/u2", {"email": "mia@example.com"})
    return store


@pytest.fixture
def service(store: CountingStore) -> SearchService:
    return SearchService(RecipeService(store), UserService(store))


class TestSearchService:
    def test_blank_query_makes_no_store_call(self, service: SearchService, store: CountingStore) -> None:
        assert service.search("   ", SearchMode.ALL).is_empty
        assert service.search(None).is_empty
        assert store.queries == 0

    def test_all_mode(self, service: SearchService) -> None:
        results = service.search("basil", "all")

        assert [r["id"] for r in results.recipes] == ["r1"]
        assert sorted(r["id"] for r in results.ingredients) == ["r1", "r2"]
        assert [u["id"] for u in results.users] == ["u1"]

    def test_single_mode_leaves_other_categories_empty(self, service: SearchService) -> None:
        results = service.search("mia", SearchMode.USERS)
        assert [u["username"] for u in results.users] == ["mia"]
        assert results.recipes == []
        assert results.ingredients == []

    def test_unknown_mode(self, service: SearchService) -> None:
        with pytest.raises(InvalidArgumentError):
            service.search("basil", "everything")


class TestDebouncedSearch:
    def test_only_last_query_within_window_runs(self) -> None:
        calls: list[str] = []

        def search(term: str, mode: SearchMode) -> SearchResults:
            calls.append(term)
            return SearchResults(recipes=[{"id": term}])

        async def scenario() -> DebouncedSearch:
            debounced = DebouncedSearch(search, debounce_seconds=0.05)
            debounced.submit("b")
            debounced.submit("ba")
            debounced.submit("bas")
            await debounced.wait()
            return debounced

        debounced = asyncio.run(scenario())

        assert calls == ["bas"]
        assert debounced.results.recipes == [{"id": "bas"}]
        assert debounced.loading is False

    def test_stale_result_dropped(self) -> None:
        def search(term: str, mode: SearchMode) -> SearchResults:
            if term == "slow":
                time.sleep(0.2)
            return SearchResults(recipes=[{"id": term}])

        async def scenario() -> DebouncedSearch:
            debounced = DebouncedSearch(search, debounce_seconds=0)
            debounced.submit("slow")
            await asyncio.sleep(0.05)
            debounced.submit("fast")
            await debounced.wait()
            return debounced

        debounced = asyncio.run(scenario())

        assert debounced.results.recipes == [{"id": "fast"}]

    def test_blank_query_resets_without_calling(self) -> None:
        calls: list[str] = []

        def search(term: str, mode: SearchMode) -> SearchResults:
            calls.append(term)
            return SearchResults(users=[{"id": "u1"}])

        async def scenario() -> DebouncedSearch:
            debounced = DebouncedSearch(search, debounce_seconds=0)
            debounced.submit("mia")
            await debounced.wait()
            assert debounced.submit("  ") is None
            return debounced

        debounced = asyncio.run(scenario())

        assert calls == ["mia"]
        assert debounced.results.is_empty

    def test_error_clears_results(self) -> None:
        def search(term: str, mode: SearchMode) -> SearchResults:
            raise RemoteServiceError("search users", "unavailable")

        async def scenario() -> DebouncedSearch:
            debounced = DebouncedSearch(search, debounce_seconds=0)
            debounced.submit("mia")
            await debounced.wait()
            return debounced

        debounced = asyncio.run(scenario())

        assert debounced.error == "Failed to search users: unavailable"
        assert debounced.results.is_empty
        assert debounced.loading is False
