"""
Flashcard generation from study notes.

  1. Calls the LLM via llm_service.chat_json() in Ollama JSON mode
  2. Parses {"cards": [{"question", "answer"}]} (a bare list is accepted too)
  3. Drops malformed pairs and returns the rest as FlashcardCreate payloads

Inserting the cards is left to the caller.
"""
from __future__ import annotations

import json
import logging
from typing import Any

import httpx

from flashdeck.models.flashcard import FlashcardCreate
from flashdeck.services.llm_service import chat_json

logger = logging.getLogger(__name__)

MAX_SOURCE_CHARS = 10000
GENERATION_MAX_TOKENS = 2000
GENERATION_TEMPERATURE = 0.4

SYSTEM_PROMPT = (
    "You are a flashcard generator for active recall learning. "
    "From the given text, extract key concepts, terms, facts or definitions and turn "
    "them into clear question and answer pairs. Aim for 5 to 15 flashcards. "
    "Respond ONLY with valid JSON in exactly this structure:\n"
    '{"cards": [{"question": "string", "answer": "string"}]}\n'
    "Rules:\n"
    "- Questions must be specific and answerable from the text.\n"
    "- Answers must be concise.\n"
    "- If the text has no meaningful content to test, return an empty cards array."
)


class FlashcardGenerationError(Exception):
    """The model output could not be turned into flashcards."""


def build_generation_prompt(source_text: str, grade_level: str | None = None) -> str:
    text = source_text.strip()
    if len(text) > MAX_SOURCE_CHARS:
        logger.warning(
            "Flashcard source text truncated from %d to %d characters",
            len(text),
            MAX_SOURCE_CHARS,
        )
        text = text[:MAX_SOURCE_CHARS] + "..."
    lines = []
    if grade_level:
        lines.append(f"The flashcards should be tailored for a {grade_level} student.")
    lines.append("Source Text:")
    lines.append("---BEGIN TEXT---")
    lines.append(text)
    lines.append("---END TEXT---")
    return "\n".join(lines)


def _valid_pair(item: Any) -> FlashcardCreate | None:
    if not isinstance(item, dict):
        return None
    question, answer = item.get("question"), item.get("answer")
    if not isinstance(question, str) or not isinstance(answer, str):
        return None
    if not question.strip() or not answer.strip():
        return None
    return FlashcardCreate(question=question, answer=answer)


def parse_generated_cards(data: Any) -> list[FlashcardCreate]:
    items = data.get("cards") if isinstance(data, dict) else data
    if not isinstance(items, list):
        raise FlashcardGenerationError(
            "AI response is not in the expected format. Expected a list of Q&A pairs."
        )
    cards = [card for card in map(_valid_pair, items) if card is not None]
    if items and not cards:
        raise FlashcardGenerationError(
            "Generated flashcards have invalid structure. "
            "Each card must have a valid question and answer."
        )
    if len(cards) < len(items):
        logger.info("Dropped %d malformed flashcard(s)", len(items) - len(cards))
    return cards


async def generate_flashcards(
    source_text: str,
    grade_level: str | None = None,
    client: httpx.AsyncClient | None = None,
) -> list[FlashcardCreate]:
    """
    Ask the LLM for Q&A pairs from `source_text`.

    Raises FlashcardGenerationError for blank input or unusable output;
    LLMUnavailableError and httpx errors propagate to the caller.
    """
    if not source_text.strip():
        raise FlashcardGenerationError("Source text is required.")
    try:
        data = await chat_json(
            SYSTEM_PROMPT,
            build_generation_prompt(source_text, grade_level),
            max_tokens=GENERATION_MAX_TOKENS,
            temperature=GENERATION_TEMPERATURE,
            client=client,
        )
    except json.JSONDecodeError as e:
        raise FlashcardGenerationError("AI response contains invalid JSON.") from e
    cards = parse_generated_cards(data)
    logger.info("Generated %d flashcard(s)", len(cards))
    return cards
