import json
import logging
import os
import re
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List

import openai

from models import Challenge

MIN_HINTS = 2
MAX_HINTS = 3

PROMPT_TEMPLATE = """
Generate ONE simple, daily coding challenge for {language}.

CRITICAL REQUIREMENTS:
- Question must be SHORT (2-3 sentences max)
- Answer must be SHORT (1 line of code or single word/phrase)
- Hints must be SHORT (1 sentence each)
- Difficulty: EASY - a beginner should solve it in 1-2 minutes
- Focus on basic syntax, simple logic, or fundamental concepts
- NO complex algorithms, NO multiple steps

Examples of GOOD challenges:
- "What's the correct syntax to print 'Hello' in {language}?"
- "How do you create an empty list/array in {language}?"
- "What operator checks if two values are equal?"
- "What's the keyword to define a function in {language}?"

Return ONLY a valid JSON object in this EXACT format:
{{
  "title": "Short catchy title (max 5 words)",
  "question": "Clear, simple question that can be answered in one line",
  "answer": "The correct answer (one line of code or simple phrase)",
  "hints": [
    "First hint: gentle nudge",
    "Second hint: more specific",
    "Third hint: almost gives it away"
  ]
}}
"""

FENCED_JSON = re.compile(r"```(?:json)?\s*\n?(.*?)\n?```", re.DOTALL)

class ChallengeGenerationError(Exception):
    """The generator failed or returned content we could not use."""

def extract_json_payload(text: str) -> Dict[str, Any]:
    """
    Pulls the challenge JSON out of raw model output.
    Accepts a bare object, a ```json fenced block, or an object
    embedded in surrounding prose.
    """
    if not text or not text.strip():
        raise ChallengeGenerationError("Empty response from generator")

    candidates = [m.group(1) for m in FENCED_JSON.finditer(text)]
    candidates.append(text)
    start, end = text.find('{'), text.rfind('}')
    if start != -1 and end > start:
        candidates.append(text[start:end + 1])

    for candidate in candidates:
        try:
            data = json.loads(candidate.strip())
        except ValueError:
            continue
        if isinstance(data, dict):
            return data

    raise ChallengeGenerationError("Failed to parse challenge from AI response")

def _require_text(data: Dict[str, Any], key: str) -> str:
    value = data.get(key)
    if not isinstance(value, str) or not value.strip():
        raise ChallengeGenerationError(f"Challenge payload has no usable '{key}'")
    return value.strip()

def build_challenge(data: Dict[str, Any], language: str) -> Challenge:
    """Validates a parsed payload and turns it into a fresh Challenge."""
    hints = data.get("hints")
    if not isinstance(hints, list):
        raise ChallengeGenerationError("Challenge payload has no hint list")

    clean_hints: List[str] = [h.strip() for h in hints if isinstance(h, str) and h.strip()]
    if len(clean_hints) < MIN_HINTS:
        raise ChallengeGenerationError(f"Expected at least {MIN_HINTS} hints, got {len(clean_hints)}")

    return Challenge(
        id=f"challenge_{uuid.uuid4().hex}",
        title=_require_text(data, "title"),
        question=_require_text(data, "question"),
        correct_answer=_require_text(data, "answer"),
        hints=clean_hints[:MAX_HINTS],
        language=language,
        created_at=datetime.now(timezone.utc),
    )

def parse_challenge(text: str, language: str) -> Challenge:
    return build_challenge(extract_json_payload(text), language)

class ChallengeGenerator:
    def __init__(self, client=None, model: str = "gpt-4o-mini"):
        self.logger = logging.getLogger(__name__)
        self.model = model
        if client is None:
            api_key = os.getenv("OPENAI_API_KEY")
            if not api_key:
                raise ValueError("OPENAI_API_KEY not found in environment.")
            client = openai.AsyncClient(api_key=api_key)
        self.client = client

    async def generate(self, language: str) -> Challenge:
        """
        Asks the model for one challenge in the given language.
        Raises ChallengeGenerationError on any failure.
        """
        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=[{"role": "user", "content": PROMPT_TEMPLATE.format(language=language)}],
                temperature=0.7,
                response_format={"type": "json_object"}
            )
            content = response.choices[0].message.content
        except Exception as e:
            self.logger.error(f"Challenge Generation Error: {e}", exc_info=True)
            raise ChallengeGenerationError(str(e)) from e

        challenge = parse_challenge(content, language)
        self.logger.info(f"Generated {language} challenge '{challenge.title}' ({challenge.id})")
        return challenge
