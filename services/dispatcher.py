import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, Optional

from models import SUPPORTED_LANGUAGES, MAX_ATTEMPTS
from services.challenge_service import ChallengeService

logger = logging.getLogger(__name__)

HINT_WORDS = ('hint', 'help', 'clue', 'direction')

LANGUAGE_ALIASES = {
    'python': 'python', 'py': 'python', 'python3': 'python',
    'javascript': 'javascript', 'js': 'javascript', 'node': 'javascript',
    'typescript': 'typescript', 'ts': 'typescript',
    'java': 'java',
    'cpp': 'cpp', 'c++': 'cpp',
    'csharp': 'csharp', 'c#': 'csharp',
    'golang': 'go',
    'rust': 'rust',
}

LANGUAGE_LABELS = {
    'python': 'Python', 'javascript': 'JavaScript', 'typescript': 'TypeScript',
    'java': 'Java', 'cpp': 'C++', 'csharp': 'C#', 'go': 'Go', 'rust': 'Rust',
}

TOKEN = re.compile(r"[a-z0-9+#]+")

@dataclass
class Intent:
    kind: str  # "hint" | "answer" | "start" | "ask_language" | "solved" | "error"
    language: Optional[str] = None
    answer: Optional[str] = None

def detect_language(text: str) -> Optional[str]:
    """Finds the first language named in free text, or None."""
    cleaned = (text or "").strip().lower()
    # "go" is only a language when it is the whole message
    if cleaned.strip(' .!?') == 'go':
        return 'go'
    for token in TOKEN.findall(cleaned):
        if token in LANGUAGE_ALIASES:
            return LANGUAGE_ALIASES[token]
    return None

def classify_intent(text: str, state_type: str) -> Intent:
    """Maps a user message to an action given the result of check_state."""
    normalized = (text or "").strip().lower()

    if state_type == "has_active_challenge":
        if normalized in HINT_WORDS:
            return Intent("hint")
        return Intent("answer", answer=text)

    if state_type == "no_challenge":
        language = detect_language(text)
        if language:
            return Intent("start", language=language)
        return Intent("ask_language")

    if state_type == "solved":
        return Intent("solved")

    return Intent("error")

def _score_line(result: Dict[str, Any]) -> str:
    return f"📊 Score: {result.get('score', 0)} | Streak: {result.get('streak', 0)} 🔥"

def render(result: Dict[str, Any]) -> str:
    """Turns a tagged ChallengeService result into chat text."""
    kind = result.get("type")

    if kind in ("new_challenge", "existing_challenge"):
        challenge = result["challenge"]
        label = LANGUAGE_LABELS.get(challenge["language"], challenge["language"])
        header = f"🎯 {label} Challenge" if kind == "new_challenge" \
            else f"You already have an active {label} challenge."
        return f"{header}\n\n" \
               f"**{challenge['title']}**\n" \
               f"{challenge['question']}\n\n" \
               f"{_score_line(result)}\n\n" \
               f"Submit your answer ({result['attempts_left']} attempt(s) left)"

    if kind == "has_active_challenge":
        challenge = result["challenge"]
        return f"You have an active {LANGUAGE_LABELS.get(challenge['language'], challenge['language'])} challenge.\n\n" \
               f"**{challenge['title']}**\n" \
               f"{challenge['question']}\n\n" \
               f"Attempts used: {result['attempts_used']}/{MAX_ATTEMPTS}"

    if kind in ("solved", "already_solved"):
        return "You already solved today's challenge! ✅\n\n" \
               f"{_score_line(result)}\n\n" \
               "Come back tomorrow at 8 AM or 6 PM for a new challenge."

    if kind == "correct":
        return "✅ Correct!\n\n" \
               f"Answer: {result['correct_answer']}\n\n" \
               f"{_score_line(result)}\n\n" \
               "New challenge tomorrow at 8 AM or 6 PM!"

    if kind == "wrong_with_attempts":
        return "❌ Incorrect.\n\n" \
               f"Attempts left: {result['attempts_left']}\n\n" \
               "Want a hint? Say \"hint\""

    if kind == "wrong_no_attempts":
        return "❌ Out of attempts. Correct answer:\n\n" \
               f"✅ {result['correct_answer']}\n\n" \
               "New challenge tomorrow!"

    if kind == "hint":
        text = f"💡 Hint: {result['hint']}\n\n"
        if result["attempts_left"] == 0:
            return text + "No attempts left. New challenge tomorrow!"
        return text + f"Attempts left: {result['attempts_left']}\n\nTry again!"

    if kind == "no_challenge":
        return "You don't have an active challenge.\n\n" + ask_language()

    if kind == "ask_language":
        return ask_language()

    return f"⚠️ {result.get('message') or 'Something went wrong. Please try again.'}"

def ask_language() -> str:
    return "Select a programming language:\n\n" + \
           " | ".join(LANGUAGE_LABELS[lang] for lang in SUPPORTED_LANGUAGES)

class ChallengeDispatcher:
    """Routes free text to the challenge operations and renders the reply."""

    def __init__(self, challenge_service: ChallengeService):
        self.challenge_service = challenge_service

    async def dispatch(self, user_id: str, text: str) -> Dict[str, Any]:
        """Runs the matching operation and returns its tagged result."""
        state = await self.challenge_service.check_state(user_id)
        intent = classify_intent(text, state["type"])
        logger.info(f"User {user_id}: state={state['type']} intent={intent.kind}")

        if intent.kind == "hint":
            return await self.challenge_service.get_hint(user_id)
        if intent.kind == "answer":
            return await self.challenge_service.submit_answer(user_id, intent.answer)
        if intent.kind == "start":
            return await self.challenge_service.start_challenge(user_id, intent.language)
        if intent.kind == "ask_language":
            return {"type": "ask_language"}
        return state

    async def handle_message(self, user_id: str, text: str) -> str:
        return render(await self.dispatch(user_id, text))
