from __future__ import annotations

import pytest

from src.app.deps import Services, build_services
from src.app.domain.errors import InvalidArgumentError
from src.app.infra.db.memory_store import InMemoryDocumentStore


@pytest.fixture
def store() -> InMemoryDocumentStore:
    store = InMemoryDocumentStore()
    store.set("users/a", {"displayName": "Ana"})
    store.set("users/b", {"displayName": "Bruno"})
    return store


@pytest.fixture
def services(store: InMemoryDocumentStore) -> Services:
    return build_services(store)


class TestFollowUser:
    def test_self_follow_rejected_without_write(self, services: Services, store: InMemoryDocumentStore) -> None:
        with pytest.raises(InvalidArgumentError):
            services.follows.follow_user("a", "a")
        assert store.count("users/a/following") == 0
        assert store.count("users/a/followers") == 0

    def test_follow_unfollow_round_trip(self, services: Services, store: InMemoryDocumentStore) -> None:
        assert services.follows.follow_user("a", "b") is True
        assert services.follows.is_following("a", "b") is True
        assert services.follows.is_following("b", "a") is False
        assert store.get("users/b/followers/a")["userId"] == "a"

        services.follows.unfollow_user("a", "b")

        assert services.follows.is_following("a", "b") is False
        assert store.get("users/b/followers/a") is None

    def test_already_following_is_noop(self, services: Services, store: InMemoryDocumentStore) -> None:
        services.follows.follow_user("a", "b")
        assert services.follows.follow_user("a", "b") is False
        assert len(store.query("notifications")) == 1

    def test_follow_notifies_and_logs(self, services: Services, store: InMemoryDocumentStore) -> None:
        services.follows.follow_user("a", "b")

        [notification] = store.query("notifications", [("recipientUserId", "==", "b")])
        assert notification["type"] == "follow"
        [log] = store.query("activityLogs", [("userId", "==", "a")])
        assert log["type"] == "follow"
        assert log["targetUserId"] == "b"

    def test_is_following_self_is_false(self, services: Services) -> None:
        assert services.follows.is_following("a", "a") is False


class TestFollowListings:
    def test_counts(self, services: Services) -> None:
        services.follows.follow_user("a", "b")
        assert services.follows.get_followers_count("b") == 1
        assert services.follows.get_following_count("a") == 1
        assert services.follows.get_followers_count("") == 0

    def test_followers_joined_to_profiles(self, services: Services) -> None:
        services.follows.follow_user("a", "b")
        services.follows.follow_user("ghost", "b")

        followers = {f["id"]: f for f in services.follows.get_followers("b")}

        assert followers["a"]["displayName"] == "Ana"
        assert followers["ghost"]["displayName"] == "User"
        assert [f["id"] for f in services.follows.get_following("a")] == ["b"]
