from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

import pytest

from src.app.domain.models import ActivityType
from src.app.infra.db.memory_store import InMemoryDocumentStore
from src.app.services.activity_logs import (
    ActivityLogService,
    format_activity_date,
    group_activity_logs_by_date,
)
from src.app.services.events import EventType, InteractionEvent
from src.app.services.recipes import RecipeService
from src.app.services.users import UserService


class OrderedQueryFailingStore(InMemoryDocumentStore):
    def query(self, collection: str, filters: Any = (), order_by: Any = None, **kwargs: Any) -> list[dict[str, Any]]:
        if order_by:
            raise RuntimeError("The query requires an index")
        return super().query(collection, filters, **kwargs)


def at(day: int, hour: int) -> datetime:
    return datetime(2025, 8, day, hour, 5, tzinfo=timezone.utc)


class TestFormatting:
    def test_date_label(self) -> None:
        assert format_activity_date(at(28, 9)) == "28 August 2025"
        assert format_activity_date(None) == ""


class TestGroupActivityLogs:
    def test_groups_newest_first(self) -> None:
        logs = [
            {"id": "1", "type": "like_post", "createdAt": at(27, 8), "targetPostId": "r1"},
            {"id": "2", "type": "follow", "createdAt": at(28, 9), "targetUserId": "u2"},
            {"id": "3", "type": "comment", "createdAt": at(28, 18), "targetPostId": "r2"},
        ]

        groups = group_activity_logs_by_date(logs)

        assert [g["date"] for g in groups] == ["28 August 2025", "27 August 2025"]
        assert [a["id"] for a in groups[0]["activities"]] == ["3", "2"]
        assert groups[0]["activities"][1]["type"] == "follow"
        assert groups[0]["activities"][1]["userId"] == "u2"
        assert groups[1]["activities"][0]["type"] == "like"
        assert groups[1]["activities"][0]["time"] == "08:05"

    def test_empty(self) -> None:
        assert group_activity_logs_by_date([]) == []


class TestActivityLogService:
    def test_create_and_list(self) -> None:
        service = ActivityLogService(InMemoryDocumentStore())
        log_id = service.create_activity_log("u1", ActivityType.SAVE, target_post_id="r1")

        [log] = service.get_user_activity_logs("u1")

        assert log["id"] == log_id
        assert log["type"] == "save"
        assert "targetUserId" not in log

    def test_missing_user_skipped(self) -> None:
        assert ActivityLogService(InMemoryDocumentStore()).create_activity_log("", "save") is None

    def test_falls_back_to_local_sort(self) -> None:
        store = OrderedQueryFailingStore()
        store.set("activityLogs/old", {"userId": "u1", "type": "save", "createdAt": at(1, 1)})
        store.set("activityLogs/new", {"userId": "u1", "type": "save", "createdAt": at(2, 1)})

        logs = ActivityLogService(store).get_user_activity_logs("u1")

        assert [log["id"] for log in logs] == ["new", "old"]

    @pytest.mark.parametrize(
        "event_type,expected",
        [
            (EventType.RECIPE_LIKED, "like_post"),
            (EventType.COMMENT_LIKED, "like_comment"),
            (EventType.RECIPE_RATED, "rating"),
        ],
    )
    def test_events_mapped(self, event_type: EventType, expected: str) -> None:
        store = InMemoryDocumentStore()
        ActivityLogService(store).handle_event(
            InteractionEvent(event_type, actor_id="u1", recipe_id="r1", target_user_id="author")
        )

        [log] = store.query("activityLogs")
        assert log["type"] == expected
        assert "targetUserId" not in log


def describing_service() -> ActivityLogService:
    store = InMemoryDocumentStore()
    store.set("recipes/r1", {"title": "Feijoada", "authorName": "Ana"})
    store.set("users/u2", {"displayName": "Bruno"})
    return ActivityLogService(store, RecipeService(store), UserService(store))


class TestDescribeActivity:
    def test_own_profile_reads_as_you(self) -> None:
        service = describing_service()
        log = {"userId": "u1", "type": "like_post", "targetPostId": "r1"}

        assert service.describe(log, current_user_id="u1") == "You liked Ana's recipe"
        assert service.describe(log, current_user_id="u9", profile_owner_name="Carla") == "Carla liked Ana's recipe"
        assert service.describe(log) == "They liked Ana's recipe"

    def test_comment_snippet_truncated(self) -> None:
        log = {"userId": "u1", "type": "comment", "targetPostId": "r1", "meta": {"textSnippet": "x" * 60}}

        description = describing_service().describe(log, current_user_id="u1")

        assert description == f'You commented on Ana\'s recipe: "{"x" * 50}..."'

    def test_follow_uses_profile_name(self) -> None:
        log = {"userId": "u1", "type": "follow", "targetUserId": "u2"}
        assert describing_service().describe(log, current_user_id="u1") == "You followed Bruno"

    def test_rating_and_save(self) -> None:
        service = describing_service()
        rating = {"userId": "u1", "type": "rating", "targetPostId": "r1", "meta": {"rating": 4}}
        save = {"userId": "u1", "type": "save", "targetPostId": "r1"}

        assert service.describe(rating, "u1") == "You rated Ana's recipe 4 stars"
        assert service.describe(save, "u1") == "You added Ana's recipe to favorites"

    def test_missing_targets_fall_back(self) -> None:
        service = describing_service()

        assert service.describe({"userId": "u1", "type": "save", "targetPostId": "gone"}, "u1") == "You saved a recipe"
        assert service.describe({"userId": "u1", "type": "like_comment"}, "u1") == "You liked a comment"
        assert service.describe({"userId": "u1", "type": "unknown"}, "u1") == "Activity"

    def test_listing_attaches_descriptions(self) -> None:
        service = describing_service()
        service.create_activity_log("u1", ActivityType.FOLLOW, target_user_id="u2")

        [log] = service.get_user_activity_logs("u1", current_user_id="u1")
        [group] = group_activity_logs_by_date([log])

        assert log["description"] == "You followed Bruno"
        assert group["activities"][0]["description"] == "You followed Bruno"
