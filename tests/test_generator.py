"""
Tests for challenge generation: payload extraction, validation and the OpenAI call.
"""
import json
from unittest.mock import AsyncMock, MagicMock

import pytest

from llm.generator import (
    ChallengeGenerationError,
    ChallengeGenerator,
    build_challenge,
    extract_json_payload,
    parse_challenge,
)

PAYLOAD = {
    "title": "Empty List",
    "question": "How do you create an empty list in Python?",
    "answer": "[]",
    "hints": ["Square things.", "Two characters.", "Open and close."],
}


def openai_response(content):
    response = MagicMock()
    response.choices = [MagicMock()]
    response.choices[0].message.content = content
    return response


def mock_client(content=None, side_effect=None):
    client = MagicMock()
    client.chat.completions.create = AsyncMock(
        return_value=openai_response(content), side_effect=side_effect)
    return client


class TestExtractJsonPayload:
    def test_bare_object(self):
        assert extract_json_payload(json.dumps(PAYLOAD)) == PAYLOAD

    def test_fenced_block(self):
        text = f"Here you go:\n```json\n{json.dumps(PAYLOAD, indent=2)}\n```\nEnjoy!"
        assert extract_json_payload(text) == PAYLOAD

    def test_object_inside_prose(self):
        text = f"Sure! {json.dumps(PAYLOAD)} Let me know if you want another."
        assert extract_json_payload(text) == PAYLOAD

    @pytest.mark.parametrize("text", ["", "   ", "no json here", "```json\n{broken\n```", "[1, 2, 3]"])
    def test_unparseable_output(self, text):
        with pytest.raises(ChallengeGenerationError):
            extract_json_payload(text)


class TestBuildChallenge:
    def test_valid_payload(self):
        challenge = build_challenge(PAYLOAD, "python")

        assert challenge.id.startswith("challenge_")
        assert challenge.title == "Empty List"
        assert challenge.correct_answer == "[]"
        assert challenge.hints == PAYLOAD["hints"]
        assert challenge.language == "python"
        assert challenge.attempts == 0
        assert challenge.solved is False
        assert challenge.created_at.tzinfo is not None

    def test_ids_are_unique(self):
        assert build_challenge(PAYLOAD, "python").id != build_challenge(PAYLOAD, "python").id

    @pytest.mark.parametrize("missing", ["title", "question", "answer"])
    def test_missing_text_field(self, missing):
        data = dict(PAYLOAD)
        del data[missing]
        with pytest.raises(ChallengeGenerationError, match=missing):
            build_challenge(data, "python")

    def test_blank_answer(self):
        with pytest.raises(ChallengeGenerationError):
            build_challenge(dict(PAYLOAD, answer="   "), "python")

    def test_too_few_hints(self):
        with pytest.raises(ChallengeGenerationError, match="hints"):
            build_challenge(dict(PAYLOAD, hints=["only one", ""]), "python")

    def test_hints_not_a_list(self):
        with pytest.raises(ChallengeGenerationError):
            build_challenge(dict(PAYLOAD, hints="just a string"), "python")

    def test_extra_hints_are_trimmed(self):
        challenge = build_challenge(dict(PAYLOAD, hints=["a", "b", "c", "d"]), "python")
        assert challenge.hints == ["a", "b", "c"]

    def test_parse_challenge(self):
        challenge = parse_challenge(f"```json\n{json.dumps(PAYLOAD)}\n```", "go")
        assert challenge.language == "go"


class TestChallengeGenerator:
    @pytest.mark.asyncio
    async def test_generate(self):
        client = mock_client(json.dumps(PAYLOAD))
        generator = ChallengeGenerator(client=client, model="test-model")

        challenge = await generator.generate("rust")

        assert challenge.title == "Empty List"
        assert challenge.language == "rust"
        kwargs = client.chat.completions.create.call_args.kwargs
        assert kwargs["model"] == "test-model"
        assert "rust" in kwargs["messages"][0]["content"]

    @pytest.mark.asyncio
    async def test_api_error_becomes_generation_error(self):
        generator = ChallengeGenerator(client=mock_client(side_effect=RuntimeError("rate limited")))

        with pytest.raises(ChallengeGenerationError, match="rate limited"):
            await generator.generate("python")

    @pytest.mark.asyncio
    async def test_garbage_output_becomes_generation_error(self):
        generator = ChallengeGenerator(client=mock_client("I cannot help with that."))

        with pytest.raises(ChallengeGenerationError):
            await generator.generate("python")

    def test_requires_api_key(self, monkeypatch):
        monkeypatch.delenv("OPENAI_API_KEY", raising=False)

        with pytest.raises(ValueError, match="OPENAI_API_KEY"):
            ChallengeGenerator()
