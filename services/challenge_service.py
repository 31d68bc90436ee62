import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional

from models import Challenge, SUPPORTED_LANGUAGES, MAX_ATTEMPTS
from services.state_store import StateStore
from llm.generator import ChallengeGenerationError

logger = logging.getLogger(__name__)

Result = Dict[str, Any]

def normalize_answer(text: str) -> str:
    if not text:
        return ""
    return text.strip().casefold()

def answers_match(submitted: str, canonical: str) -> bool:
    """
    Lenient comparison: equal after normalization, or either side
    contains the other. Empty input never matches.
    """
    user_answer = normalize_answer(submitted)
    correct_answer = normalize_answer(canonical)
    if not user_answer or not correct_answer:
        return False
    return (user_answer == correct_answer
            or correct_answer in user_answer
            or user_answer in correct_answer)

def _utc_now() -> datetime:
    return datetime.now(timezone.utc)

class ChallengeService:
    """
    Daily challenge lifecycle: staleness, generation, answer checks and hints.

    The user-facing coroutines return a dict tagged by "type" and never
    raise. refresh_challenge is for the scheduler and raises on failure.
    """

    def __init__(self, store: StateStore, generator, generation_timeout: float = 30.0,
                 clock: Callable[[], datetime] = _utc_now):
        self.store = store
        self.generator = generator
        self.generation_timeout = generation_timeout
        self.clock = clock

    def today(self) -> str:
        return self.clock().astimezone(timezone.utc).strftime("%Y-%m-%d")

    def needs_new_challenge(self, user_id: str) -> bool:
        state = self.store.get(user_id)
        return (state.current_challenge is None
                or state.current_challenge.solved
                or state.last_challenge_date != self.today())

    async def _generate(self, language: str) -> Challenge:
        try:
            return await asyncio.wait_for(self.generator.generate(language), timeout=self.generation_timeout)
        except ChallengeGenerationError:
            raise
        except asyncio.TimeoutError as e:
            raise ChallengeGenerationError(
                f"Generation timed out after {self.generation_timeout}s") from e
        except Exception as e:
            raise ChallengeGenerationError(str(e)) from e

    async def check_state(self, user_id: str) -> Result:
        try:
            state = self.store.get(user_id)
            challenge = state.current_challenge

            if challenge and challenge.solved and state.last_challenge_date == self.today():
                return {"type": "solved", "score": state.score, "streak": state.streak}

            if self.needs_new_challenge(user_id):
                return {"type": "no_challenge"}

            return {
                "type": "has_active_challenge",
                "challenge": challenge.summary(),
                "attempts_used": challenge.attempts,
                "attempts_left": challenge.attempts_left,
                "exhausted": challenge.exhausted,
            }
        except Exception as e:
            logger.error(f"Error checking state for {user_id}: {e}", exc_info=True)
            return {"type": "error", "message": "Could not check state"}

    async def start_challenge(self, user_id: str, language: Optional[str]) -> Result:
        language = language.strip().lower() if isinstance(language, str) else ""
        if not language:
            return {"type": "error", "message": "Please specify a programming language."}
        if language not in SUPPORTED_LANGUAGES:
            return {"type": "error",
                    "message": f"Unsupported language '{language}'. Choose one of: {', '.join(SUPPORTED_LANGUAGES)}."}

        try:
            async with self.store.lock(user_id):
                state = self.store.set_preferred_language(user_id, language)

                if self.needs_new_challenge(user_id):
                    logger.info(f"Generating new {language} challenge for {user_id}")
                    try:
                        challenge = await self._generate(language)
                    except ChallengeGenerationError as e:
                        logger.error(f"Challenge generation failed for {user_id}: {e}")
                        return {"type": "error",
                                "message": "Something went wrong generating the challenge. Please try again."}

                    state = self.store.set_current_challenge(user_id, challenge, self.today())
                    return {
                        "type": "new_challenge",
                        "challenge": challenge.summary(),
                        "attempts_left": challenge.attempts_left,
                        "score": state.score,
                        "streak": state.streak,
                    }

                challenge = state.current_challenge
                if challenge.solved:
                    return {"type": "already_solved", "score": state.score, "streak": state.streak}

                return {
                    "type": "existing_challenge",
                    "challenge": challenge.summary(),
                    "attempts_left": challenge.attempts_left,
                    "score": state.score,
                    "streak": state.streak,
                }
        except Exception as e:
            logger.error(f"Error starting challenge for {user_id}: {e}", exc_info=True)
            return {"type": "error",
                    "message": "Something went wrong generating the challenge. Please try again."}

    async def submit_answer(self, user_id: str, answer: Optional[str]) -> Result:
        if not isinstance(answer, str) or not answer.strip():
            return {"type": "error", "message": "Please provide an answer."}

        try:
            async with self.store.lock(user_id):
                state = self.store.get(user_id)
                challenge = state.current_challenge

                if challenge is None:
                    return {"type": "no_challenge"}

                if challenge.solved:
                    return {"type": "already_solved", "score": state.score, "streak": state.streak}

                # Out of attempts: nothing left to evaluate
                if challenge.exhausted:
                    return {"type": "wrong_no_attempts", "correct_answer": challenge.correct_answer}

                if answers_match(answer, challenge.correct_answer):
                    state = self.store.mark_solved(user_id)
                    logger.info(f"User {user_id} solved {challenge.id} (score={state.score}, streak={state.streak})")
                    return {
                        "type": "correct",
                        "correct_answer": challenge.correct_answer,
                        "score": state.score,
                        "streak": state.streak,
                    }

                challenge = self.store.increment_attempts(user_id)
                if challenge.attempts < MAX_ATTEMPTS:
                    return {"type": "wrong_with_attempts", "attempts_left": challenge.attempts_left}

                logger.info(f"User {user_id} ran out of attempts on {challenge.id}")
                return {"type": "wrong_no_attempts", "correct_answer": challenge.correct_answer}
        except Exception as e:
            logger.error(f"Error submitting answer for {user_id}: {e}", exc_info=True)
            return {"type": "error",
                    "message": "Something went wrong processing your answer. Please try again."}

    async def get_hint(self, user_id: str) -> Result:
        try:
            state = self.store.get(user_id)
            challenge = state.current_challenge

            if challenge is None:
                return {"type": "no_challenge"}

            if challenge.solved:
                return {"type": "already_solved", "score": state.score, "streak": state.streak}

            if not challenge.hints:
                return {"type": "error", "message": "No hints available for this challenge."}

            hint_index = min(challenge.attempts, len(challenge.hints) - 1)
            return {
                "type": "hint",
                "hint": challenge.hints[hint_index],
                "attempts_left": challenge.attempts_left,
            }
        except Exception as e:
            logger.error(f"Error getting hint for {user_id}: {e}", exc_info=True)
            return {"type": "error", "message": "Could not get hint. Please try again."}

    async def refresh_challenge(self, user_id: str) -> Optional[Challenge]:
        """
        Generates and stores a challenge in the user's preferred language if
        the current one is stale. Returns None when today's challenge is
        still open. Raises ChallengeGenerationError; nothing is stored then.
        """
        async with self.store.lock(user_id):
            if not self.needs_new_challenge(user_id):
                return None

            language = self.store.get(user_id).preferred_language
            challenge = await self._generate(language)
            self.store.set_current_challenge(user_id, challenge, self.today())
            return challenge
