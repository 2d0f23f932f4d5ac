import json

import httpx
import pytest

from flashdeck.config import settings
from flashdeck.services.flashcard_generator import (
    MAX_SOURCE_CHARS,
    FlashcardGenerationError,
    build_generation_prompt,
    generate_flashcards,
    parse_generated_cards,
)


def _ollama(content: str, seen: list | None = None) -> httpx.MockTransport:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/api/tags":
            return httpx.Response(200, json={"models": [{"name": settings.report_model}]})
        if seen is not None:
            seen.append(json.loads(request.content))
        return httpx.Response(200, json={"message": {"role": "assistant", "content": content}})

    return httpx.MockTransport(handler)


async def test_generates_cards_in_json_mode():
    seen = []
    reply = json.dumps(
        {
            "cards": [
                {"question": " What is the powerhouse of the cell? ", "answer": "The mitochondrion."},
                {"question": "What year did World War II end?", "answer": "1945."},
            ]
        }
    )
    async with httpx.AsyncClient(transport=_ollama(reply, seen)) as client:
        cards = await generate_flashcards("Cells and history notes", "Grade 8", client=client)

    assert [c.question for c in cards] == [
        "What is the powerhouse of the cell?",
        "What year did World War II end?",
    ]
    payload = seen[0]
    assert payload["format"] == "json"
    assert payload["messages"][0]["role"] == "system"
    assert "tailored for a Grade 8 student" in payload["messages"][1]["content"]


async def test_invalid_json_reply_raises():
    async with httpx.AsyncClient(transport=_ollama("not json at all")) as client:
        with pytest.raises(FlashcardGenerationError, match="invalid JSON"):
            await generate_flashcards("Some notes", client=client)


async def test_blank_source_text_raises():
    with pytest.raises(FlashcardGenerationError):
        await generate_flashcards("   ")


def test_malformed_pairs_are_dropped():
    cards = parse_generated_cards(
        {
            "cards": [
                {"question": "Q1", "answer": "A1"},
                {"question": "", "answer": "A2"},
                {"question": "Q3"},
                {"question": 4, "answer": "A4"},
                "just a string",
                {"question": "Q6", "answer": " A6 "},
            ]
        }
    )
    assert [(c.question, c.answer) for c in cards] == [("Q1", "A1"), ("Q6", "A6")]


def test_bare_list_is_accepted():
    assert len(parse_generated_cards([{"question": "Q", "answer": "A"}])) == 1


def test_empty_card_list_is_not_an_error():
    assert parse_generated_cards({"cards": []}) == []


def test_all_malformed_pairs_raise():
    with pytest.raises(FlashcardGenerationError, match="invalid structure"):
        parse_generated_cards({"cards": [{"q": "x"}, None]})


def test_unexpected_shape_raises():
    with pytest.raises(FlashcardGenerationError, match="expected format"):
        parse_generated_cards({"flashcards": "nope"})


def test_long_source_text_is_truncated():
    prompt = build_generation_prompt("x" * (MAX_SOURCE_CHARS + 500))
    assert "x" * MAX_SOURCE_CHARS + "..." in prompt
    assert "x" * (MAX_SOURCE_CHARS + 1) not in prompt
