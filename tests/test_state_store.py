"""
Tests for the in-memory state store and the scheduling roster.
"""
from datetime import datetime, timezone

from models import Challenge, DEFAULT_LANGUAGE, MAX_ATTEMPTS
from services.state_store import StateStore
from services.user_registry import UserRegistry


def make_challenge(**overrides):
    fields = dict(
        id="challenge_x",
        title="Print",
        question="How do you print?",
        correct_answer="print()",
        hints=["one", "two"],
        language="python",
        created_at=datetime(2025, 3, 14, tzinfo=timezone.utc),
    )
    fields.update(overrides)
    return Challenge(**fields)


class TestStateStore:
    def test_unknown_user_gets_default_state(self, store):
        state = store.get("new-user")

        assert state.user_id == "new-user"
        assert state.preferred_language == DEFAULT_LANGUAGE
        assert state.current_challenge is None
        assert state.last_challenge_date == ""
        assert state.score == 0
        assert state.streak == 0

    def test_default_state_is_stored(self, store):
        first = store.get("u1")
        assert store.get("u1") is first
        assert len(store) == 1

    def test_set_replaces_only_given_fields(self, store):
        store.set("u1", score=5)
        state = store.set("u1", preferred_language="rust")

        assert state.score == 5
        assert state.preferred_language == "rust"
        assert store.get("u1") == state

    def test_set_current_challenge_records_date(self, store):
        challenge = make_challenge()
        state = store.set_current_challenge("u1", challenge, "2025-03-14")

        assert state.current_challenge == challenge
        assert state.last_challenge_date == "2025-03-14"

    def test_increment_attempts_without_challenge(self, store):
        assert store.increment_attempts("u1") is None

    def test_increment_attempts_is_capped(self, store):
        store.set_current_challenge("u1", make_challenge(), "2025-03-14")

        for _ in range(MAX_ATTEMPTS + 3):
            challenge = store.increment_attempts("u1")

        assert challenge.attempts == MAX_ATTEMPTS
        assert store.get("u1").current_challenge.attempts == MAX_ATTEMPTS

    def test_increment_does_not_mutate_previous_value(self, store):
        store.set_current_challenge("u1", make_challenge(), "2025-03-14")
        before = store.get("u1").current_challenge

        store.increment_attempts("u1")

        assert before.attempts == 0

    def test_mark_solved_bumps_score_and_streak(self, store):
        store.set_current_challenge("u1", make_challenge(), "2025-03-14")
        state = store.mark_solved("u1")

        assert state.current_challenge.solved is True
        assert state.score == 1
        assert state.streak == 1

    def test_mark_solved_twice_counts_once(self, store):
        store.set_current_challenge("u1", make_challenge(), "2025-03-14")
        store.mark_solved("u1")
        state = store.mark_solved("u1")

        assert state.score == 1
        assert state.streak == 1

    def test_locks_are_per_user(self, store):
        assert store.lock("a") is store.lock("a")
        assert store.lock("a") is not store.lock("b")

    def test_custom_default_language(self):
        assert StateStore(default_language="go").get("x").preferred_language == "go"


class TestUserRegistry:
    def test_add_remove_and_count(self, registry):
        registry.add_user("alice")
        registry.add_user("bob")
        registry.add_user("alice")

        assert registry.get_user_count() == 2
        assert registry.get_all_users() == ["alice", "bob"]

        registry.remove_user("alice")
        assert registry.get_all_users() == ["bob"]
        assert not registry.is_registered("alice")

    def test_remove_unknown_user_is_noop(self, registry):
        registry.remove_user("ghost")
        assert registry.get_user_count() == 0

    def test_registry_is_independent_of_state(self, store):
        registry = UserRegistry()
        store.get("alice")

        assert not registry.is_registered("alice")
