"""
Search across recipes (by title and by ingredient) and users.

``SearchService`` runs one query. ``DebouncedSearch`` sits in front of it for
type-ahead callers: only the last query submitted within the debounce window
runs, and a result that arrives after a newer query was submitted is dropped.
"""
from __future__ import annotations

import asyncio
import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Optional

from starlette.concurrency import run_in_threadpool

from src.app.domain.errors import InvalidArgumentError
from src.app.domain.models import SearchMode, SearchResults
from src.app.services.recipes import RecipeService
from src.app.services.users import UserService

logger = logging.getLogger(__name__)

DEFAULT_DEBOUNCE_SECONDS = 0.3


def _parse_mode(mode: SearchMode | str) -> SearchMode:
    try:
        return SearchMode(mode)
    except ValueError:
        raise InvalidArgumentError(
            f"Unknown search mode: {mode}",
            fields=["mode"],
        ) from None


class SearchService:
    def __init__(self, recipes: RecipeService, users: UserService):
        self._recipes = recipes
        self._users = users

    def search(self, query: Optional[str], mode: SearchMode | str = SearchMode.ALL) -> SearchResults:
        """
        Run a search. A blank query returns empty results without touching
        the store. In ``all`` mode the three lookups run concurrently.

        Raises:
            InvalidArgumentError: for an unknown mode
            RemoteServiceError: if any lookup fails
        """
        mode = _parse_mode(mode)
        term = (query or "").strip()
        if not term:
            return SearchResults()

        if mode == SearchMode.RECIPES:
            return SearchResults(recipes=self._recipes.search_recipes_by_title(term))
        if mode == SearchMode.INGREDIENTS:
            return SearchResults(ingredients=self._recipes.search_recipes_by_ingredient(term))
        if mode == SearchMode.USERS:
            return SearchResults(users=self._users.search_users(term))

        with ThreadPoolExecutor(max_workers=3) as pool:
            recipes = pool.submit(self._recipes.search_recipes_by_title, term)
            ingredients = pool.submit(self._recipes.search_recipes_by_ingredient, term)
            users = pool.submit(self._users.search_users, term)
            return SearchResults(
                recipes=recipes.result(),
                ingredients=ingredients.result(),
                users=users.result(),
            )


SearchFn = Callable[[str, SearchMode], SearchResults]


class DebouncedSearch:
    """
    Debounced, sequence-guarded search state for one input box.

    Every ``submit`` takes a new sequence number. A query only runs if it is
    still the latest once the debounce delay has passed, and its outcome is
    only applied if it is still the latest when the search returns.
    """

    def __init__(self, search_fn: SearchFn, debounce_seconds: float = DEFAULT_DEBOUNCE_SECONDS):
        self._search_fn = search_fn
        self._debounce_seconds = debounce_seconds
        self._sequence = 0
        self._tasks: set[asyncio.Task] = set()

        self.results = SearchResults()
        self.loading = False
        self.error: Optional[str] = None

    @property
    def sequence(self) -> int:
        return self._sequence

    def submit(self, query: Optional[str], mode: SearchMode | str = SearchMode.ALL) -> Optional[asyncio.Task]:
        """
        Schedule a search; must be called from a running event loop.
        A blank query resets the state immediately and schedules nothing.
        """
        self._sequence += 1
        term = (query or "").strip()
        if not term:
            self.results = SearchResults()
            self.loading = False
            self.error = None
            return None

        task = asyncio.get_running_loop().create_task(self._run(self._sequence, term, _parse_mode(mode)))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def wait(self) -> None:
        """Wait for every scheduled search, including superseded ones, to settle."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def _run(self, sequence: int, term: str, mode: SearchMode) -> None:
        if self._debounce_seconds > 0:
            await asyncio.sleep(self._debounce_seconds)
        if sequence != self._sequence:
            return

        self.loading = True
        self.error = None
        try:
            results = await run_in_threadpool(self._search_fn, term, mode)
        except Exception as e:
            if sequence != self._sequence:
                logger.debug("Dropping stale search failure: seq=%d", sequence)
                return
            logger.error("Search error: query=%r mode=%s error=%s", term, mode.value, e)
            self.error = str(e) or "An error occurred while searching"
            self.results = SearchResults()
            self.loading = False
            return

        if sequence != self._sequence:
            logger.debug("Dropping stale search results: seq=%d latest=%d", sequence, self._sequence)
            return
        self.results = results
        self.loading = False
