from __future__ import annotations

import pytest

from src.app.domain.errors import (
    CooktopiaError,
    DocumentNotFoundError,
    InvalidArgumentError,
    MediaStoreError,
    RemoteServiceError,
    ValidationError,
)


class TestCooktopiaError:
    def test_base_exception(self) -> None:
        error = CooktopiaError("Base error")
        assert str(error) == "Base error"
        assert isinstance(error, Exception)


class TestValidationError:
    def test_single_problem(self) -> None:
        error = ValidationError("Ingredients cannot be empty")
        assert str(error) == "Ingredients cannot be empty"
        assert error.problems == ["Ingredients cannot be empty"]
        assert error.fields == []

    def test_joins_problems_and_keeps_fields(self) -> None:
        error = ValidationError(
            ["Missing required fields: title", "Steps cannot be empty"],
            fields=["title"],
        )
        assert str(error) == "Missing required fields: title; Steps cannot be empty"
        assert error.fields == ["title"]

    def test_invalid_argument_is_validation_error(self) -> None:
        error = InvalidArgumentError("Recipe ID is required")
        assert isinstance(error, ValidationError)
        assert isinstance(error, CooktopiaError)


class TestDocumentNotFoundError:
    def test_includes_path(self) -> None:
        error = DocumentNotFoundError("recipes/r1")
        assert "recipes/r1" in str(error)
        assert error.path == "recipes/r1"


class TestRemoteServiceError:
    def test_prefixes_operation(self) -> None:
        error = RemoteServiceError("toggle like", ConnectionError("deadline exceeded"))
        assert str(error) == "Failed to toggle like: deadline exceeded"
        assert error.operation == "toggle like"
        assert error.reason == "deadline exceeded"


class TestErrorHierarchy:
    @pytest.mark.parametrize(
        "error",
        [
            ValidationError("x"),
            InvalidArgumentError("x"),
            DocumentNotFoundError("a/b"),
            RemoteServiceError("op", "boom"),
            MediaStoreError("x"),
        ],
    )
    def test_all_inherit_from_base(self, error: Exception) -> None:
        assert isinstance(error, CooktopiaError)
