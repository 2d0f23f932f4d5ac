"""
Narrative study-session report.

Summarises which cards the student struggled with and which they recalled
well, then asks the LLM for a short Markdown report.
"""
from __future__ import annotations

import logging

from flashdeck.models.flashcard import Quality
from flashdeck.models.session import PerformanceRecord
from flashdeck.services.llm_service import chat_text

logger = logging.getLogger(__name__)

MAX_LISTED_CARDS = 5

REPORT_INSTRUCTIONS = """
Please generate a concise study session report that includes:
1.  A brief overall encouragement or summary statement.
2.  Specific areas or topics (based on the challenging card questions) the student should focus on more.
3.  Positive reinforcement for topics they seem to understand well (if any were reviewed positively).
4.  One or two practical study tips relevant to flashcard learning or the topics covered.
5.  Keep the tone supportive and constructive.
Output the report as a well-formatted Markdown string."""


class ReportGenerationError(Exception):
    """The report could not be produced from the given input or model output."""


def build_report_prompt(
    set_title: str,
    performance: list[PerformanceRecord],
    grade_level: str | None = None,
) -> str:
    lines = [
        f'The student just finished a study session for the flashcard set titled "{set_title}".'
    ]
    if grade_level:
        lines.append(f"The student is in {grade_level}.")
    lines.append("Here's a summary of their performance on some cards:")

    difficult = [p for p in performance if p.quality < Quality.GOOD]
    well_known = [p for p in performance if p.quality >= Quality.GOOD]

    if difficult:
        lines.append("")
        lines.append("Cards they found challenging (marked 'Again' or 'Hard'):")
        for p in difficult[:MAX_LISTED_CARDS]:
            lines.append(f'- Question: "{p.question}" (Rated: {p.quality.label})')
    if well_known and len(difficult) < MAX_LISTED_CARDS:
        lines.append("")
        lines.append("Cards they recalled well (marked 'Good' or 'Easy'):")
        for p in well_known[: MAX_LISTED_CARDS - len(difficult)]:
            lines.append(f'- Question: "{p.question}" (Rated: {p.quality.label})')
    if not difficult and well_known:
        lines.append("")
        lines.append("Great job! The student recalled all reviewed cards well or easily.")

    return "\n".join(lines) + "\n" + REPORT_INSTRUCTIONS


async def generate_study_report(
    set_title: str,
    performance: list[PerformanceRecord],
    grade_level: str | None = None,
) -> str:
    if not performance:
        raise ReportGenerationError("No study data to generate a report.")

    report = await chat_text(None, build_report_prompt(set_title, performance, grade_level))
    if not report:
        raise ReportGenerationError("AI could not generate a study report.")
    logger.info(
        "Generated study report for %r (%d cards, %d chars)",
        set_title,
        len(performance),
        len(report),
    )
    return report
