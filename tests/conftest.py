"""
Pytest configuration and shared fixtures
"""
import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from llm.generator import ChallengeGenerationError
from models import Challenge
from services.challenge_service import ChallengeService
from services.dispatcher import ChallengeDispatcher
from services.state_store import StateStore
from services.user_registry import UserRegistry

CANONICAL_ANSWER = "print('Hello')"
HINTS = ["Think about output.", "It is a built-in function.", "p _ _ _ _ ( )"]


class FrozenClock:
    """Callable clock the tests can move forward."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs):
        self.now = self.now + timedelta(**kwargs)


class FakeGenerator:
    """Deterministic stand-in for the OpenAI backed generator."""

    def __init__(self, answer=CANONICAL_ANSWER, hints=None, fail_languages=(), delay=0.0):
        self.answer = answer
        self.hints = list(hints if hints is not None else HINTS)
        self.fail_languages = set(fail_languages)
        self.delay = delay
        self.calls = []

    async def generate(self, language: str) -> Challenge:
        self.calls.append(language)
        if self.delay:
            await asyncio.sleep(self.delay)
        if language in self.fail_languages:
            raise ChallengeGenerationError(f"model returned garbage for {language}")
        n = len(self.calls)
        return Challenge(
            id=f"challenge_{n}",
            title=f"Hello Challenge {n}",
            question=f"How do you print Hello in {language}?",
            correct_answer=self.answer,
            hints=list(self.hints),
            language=language,
            created_at=datetime.now(timezone.utc),
        )


class FakeSink:
    def __init__(self, fail_users=(), raise_users=()):
        self.fail_users = set(fail_users)
        self.raise_users = set(raise_users)
        self.deliveries = []

    async def deliver(self, user_id: str, message: str) -> bool:
        if user_id in self.raise_users:
            raise RuntimeError("channel exploded")
        if user_id in self.fail_users:
            return False
        self.deliveries.append((user_id, message))
        return True


@pytest.fixture
def clock():
    return FrozenClock(datetime(2025, 3, 14, 9, 30, tzinfo=timezone.utc))


@pytest.fixture
def store():
    return StateStore()


@pytest.fixture
def registry():
    return UserRegistry()


@pytest.fixture
def generator():
    return FakeGenerator()


@pytest.fixture
def service(store, generator, clock):
    return ChallengeService(store, generator, generation_timeout=1.0, clock=clock)


@pytest.fixture
def dispatcher(service):
    return ChallengeDispatcher(service)


@pytest.fixture
def sink():
    return FakeSink()
