from __future__ import annotations

from typing import Any

import pytest

from src.app.domain.errors import DocumentNotFoundError, InvalidArgumentError, RemoteServiceError, ValidationError
from src.app.infra.db.memory_store import InMemoryDocumentStore
from src.app.services.recipes import RecipeService, validate_recipe


def recipe_input(**overrides: Any) -> dict[str, Any]:
    data = {
        "title": " Lemon Pasta ",
        "description": "Quick weeknight pasta",
        "youtubeLink": "",
        "imageUrls": ["https://res.cloudinary.com/demo/a.jpg"],
        "difficulty": "Easy",
        "duration": 20,
        "ingredients": ["pasta", " lemon ", ""],
        "steps": ["boil", "toss"],
        "authorId": "author-1",
        "authorName": "Ana",
    }
    data.update(overrides)
    return data


class FailingStore(InMemoryDocumentStore):
    def add(self, collection: str, data: dict[str, Any]) -> str:
        raise ConnectionError("unavailable")

    def update(self, path: str, data: dict[str, Any]) -> None:
        raise ConnectionError("unavailable")


@pytest.fixture
def store() -> InMemoryDocumentStore:
    return InMemoryDocumentStore()


@pytest.fixture
def service(store: InMemoryDocumentStore) -> RecipeService:
    return RecipeService(store)


class TestValidateRecipe:
    def test_valid_input_passes(self) -> None:
        validate_recipe(recipe_input())

    def test_missing_fields_listed(self) -> None:
        with pytest.raises(ValidationError) as exc_info:
            validate_recipe(recipe_input(title="", authorName=None))
        assert exc_info.value.fields == ["title", "authorName"]
        assert "Missing required fields: title, authorName" in str(exc_info.value)

    def test_blank_only_ingredients_count_as_empty(self) -> None:
        with pytest.raises(ValidationError, match="Ingredients cannot be empty"):
            validate_recipe(recipe_input(ingredients=["  ", ""]))

    def test_bad_difficulty_and_duration_reported_together(self) -> None:
        with pytest.raises(ValidationError) as exc_info:
            validate_recipe(recipe_input(difficulty="Extreme", duration=-5))
        assert exc_info.value.problems == [
            "Difficulty must be Easy, Medium, or Hard",
            "Duration must be a positive number",
        ]

    def test_boolean_duration_rejected(self) -> None:
        with pytest.raises(ValidationError):
            validate_recipe(recipe_input(duration=True))


class TestCreateRecipe:
    def test_persists_normalized_document(self, service: RecipeService, store: InMemoryDocumentStore) -> None:
        recipe_id = service.create_recipe(recipe_input())

        doc = store.get(f"recipes/{recipe_id}")
        assert doc["title"] == "Lemon Pasta"
        assert doc["ingredients"] == ["pasta", "lemon"]
        assert doc["youtubeLink"] is None
        assert doc["likes"] == 0
        assert doc["views"] == 0
        assert doc["isPublished"] is True
        assert doc["createdAt"] is not None

    def test_empty_ingredients_writes_nothing(self, service: RecipeService, store: InMemoryDocumentStore) -> None:
        with pytest.raises(ValidationError):
            service.create_recipe(recipe_input(ingredients=[]))
        assert store.count("recipes") == 0

    def test_store_failure_wrapped(self) -> None:
        service = RecipeService(FailingStore())
        with pytest.raises(RemoteServiceError, match="Failed to create recipe: unavailable"):
            service.create_recipe(recipe_input())


class TestRecipeQueries:
    def test_get_recipe_requires_id(self, service: RecipeService) -> None:
        with pytest.raises(InvalidArgumentError):
            service.get_recipe_by_id("")

    def test_get_missing_recipe_is_none(self, service: RecipeService) -> None:
        assert service.get_recipe_by_id("nope") is None

    def test_author_listing_and_count(self, service: RecipeService) -> None:
        service.create_recipe(recipe_input())
        service.create_recipe(recipe_input(title="Soup"))
        service.create_recipe(recipe_input(authorId="author-2"))

        assert len(service.get_recipes_by_author("author-1")) == 2
        assert service.get_user_recipe_count("author-1") == 2
        assert service.get_user_recipe_count("") == 0

    def test_unpublished_recipes_hidden(self, service: RecipeService, store: InMemoryDocumentStore) -> None:
        recipe_id = service.create_recipe(recipe_input())
        service.update_recipe(recipe_id, {"isPublished": False})
        assert service.get_all_recipes() == []


class TestRecipeUpdates:
    def test_update_missing_recipe_propagates(self, service: RecipeService) -> None:
        with pytest.raises(DocumentNotFoundError):
            service.update_recipe("nope", {"title": "x"})

    def test_delete_recipe(self, service: RecipeService, store: InMemoryDocumentStore) -> None:
        recipe_id = service.create_recipe(recipe_input())
        service.delete_recipe(recipe_id)
        assert store.get(f"recipes/{recipe_id}") is None

    def test_increment_views(self, service: RecipeService, store: InMemoryDocumentStore) -> None:
        recipe_id = service.create_recipe(recipe_input())
        service.increment_recipe_views(recipe_id)
        service.increment_recipe_views(recipe_id)
        assert store.get(f"recipes/{recipe_id}")["views"] == 2

    def test_increment_views_never_raises(self) -> None:
        RecipeService(FailingStore()).increment_recipe_views("r1")
        RecipeService(InMemoryDocumentStore()).increment_recipe_views("missing")


class TestRecipeSearch:
    def test_title_search_case_insensitive(self, service: RecipeService) -> None:
        service.create_recipe(recipe_input(title="Lemon Pasta"))
        service.create_recipe(recipe_input(title="Tomato Soup"))

        assert [r["title"] for r in service.search_recipes_by_title("LEMON")] == ["Lemon Pasta"]

    def test_ingredient_search(self, service: RecipeService) -> None:
        service.create_recipe(recipe_input(title="Soup", ingredients=["tomato", "basil"]))
        assert [r["title"] for r in service.search_recipes_by_ingredient("bas")] == ["Soup"]

    def test_blank_term_returns_nothing(self, service: RecipeService) -> None:
        service.create_recipe(recipe_input())
        assert service.search_recipes_by_title("   ") == []
