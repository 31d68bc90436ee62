import asyncio
import dataclasses
import logging
from typing import Dict, Optional

from models import Challenge, UserState, DEFAULT_LANGUAGE, MAX_ATTEMPTS

logger = logging.getLogger(__name__)

class StateStore:
    """
    In-memory map of user id -> UserState.
    States are immutable; every write stores a new value.
    """

    def __init__(self, default_language: str = DEFAULT_LANGUAGE):
        self.default_language = default_language
        self._states: Dict[str, UserState] = {}
        self._locks: Dict[str, asyncio.Lock] = {}

    def get(self, user_id: str) -> UserState:
        state = self._states.get(user_id)
        if state is None:
            state = UserState(user_id=user_id, preferred_language=self.default_language)
            self._states[user_id] = state
        return state

    def set(self, user_id: str, **updates) -> UserState:
        """Shallow-merges the given fields into the stored state."""
        new_state = dataclasses.replace(self.get(user_id), **updates)
        self._states[user_id] = new_state
        return new_state

    def lock(self, user_id: str) -> asyncio.Lock:
        """Per-user lock for read-modify-write sequences."""
        lock = self._locks.get(user_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[user_id] = lock
        return lock

    def set_preferred_language(self, user_id: str, language: str) -> UserState:
        return self.set(user_id, preferred_language=language)

    def set_current_challenge(self, user_id: str, challenge: Challenge, today: str) -> UserState:
        logger.info(f"Assigned challenge {challenge.id} ({challenge.language}) to user {user_id}")
        return self.set(user_id, current_challenge=challenge, last_challenge_date=today)

    def increment_attempts(self, user_id: str) -> Optional[Challenge]:
        state = self.get(user_id)
        challenge = state.current_challenge
        if challenge is None:
            return None

        attempts = min(challenge.attempts + 1, MAX_ATTEMPTS)
        challenge = dataclasses.replace(challenge, attempts=attempts)
        self.set(user_id, current_challenge=challenge)
        return challenge

    def mark_solved(self, user_id: str) -> UserState:
        state = self.get(user_id)
        if state.current_challenge is None or state.current_challenge.solved:
            return state

        challenge = dataclasses.replace(state.current_challenge, solved=True)
        return self.set(
            user_id,
            current_challenge=challenge,
            score=state.score + 1,
            streak=state.streak + 1,
        )

    def __len__(self) -> int:
        return len(self._states)
