from dataclasses import dataclass
from typing import List, Optional
from datetime import datetime

SUPPORTED_LANGUAGES = ('python', 'javascript', 'typescript', 'java', 'cpp', 'csharp', 'go', 'rust')
DEFAULT_LANGUAGE = 'python'
MAX_ATTEMPTS = 2

@dataclass(frozen=True)
class Challenge:
    id: str
    title: str
    question: str
    correct_answer: str
    hints: List[str]
    language: str
    created_at: datetime
    attempts: int = 0
    solved: bool = False

    @property
    def attempts_left(self) -> int:
        return max(0, MAX_ATTEMPTS - self.attempts)

    @property
    def exhausted(self) -> bool:
        return not self.solved and self.attempts >= MAX_ATTEMPTS

    def summary(self) -> dict:
        """Fields safe to show the user (no answer, no hints)."""
        return {
            "id": self.id,
            "title": self.title,
            "question": self.question,
            "language": self.language,
        }

@dataclass(frozen=True)
class UserState:
    user_id: str
    preferred_language: str = DEFAULT_LANGUAGE
    current_challenge: Optional[Challenge] = None
    last_challenge_date: str = ''  # YYYY-MM-DD
    score: int = 0
    streak: int = 0
