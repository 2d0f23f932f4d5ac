import pytest

from flashdeck.models.flashcard import Quality
from flashdeck.models.session import PerformanceRecord
from flashdeck.services import study_report
from flashdeck.services.study_report import (
    ReportGenerationError,
    build_report_prompt,
    generate_study_report,
)


def _perf(*qualities):
    return [
        PerformanceRecord(card_id=f"c{i}", question=f"Question {i}", quality=q)
        for i, q in enumerate(qualities)
    ]


def test_prompt_lists_challenging_then_recalled_cards():
    prompt = build_report_prompt(
        "Cells", _perf(Quality.AGAIN, Quality.GOOD, Quality.HARD), "Grade 8"
    )
    assert 'flashcard set titled "Cells"' in prompt
    assert "The student is in Grade 8." in prompt
    assert '- Question: "Question 0" (Rated: Again)' in prompt
    assert '- Question: "Question 2" (Rated: Hard)' in prompt
    assert '- Question: "Question 1" (Rated: Good)' in prompt
    assert prompt.index("challenging") < prompt.index("recalled well")
    assert "Great job!" not in prompt


def test_prompt_caps_listed_cards():
    prompt = build_report_prompt("Cells", _perf(*[Quality.AGAIN] * 6, Quality.EASY))
    assert prompt.count("(Rated: Again)") == 5
    assert "recalled well" not in prompt
    assert "The student is in" not in prompt


def test_prompt_praises_clean_sessions():
    prompt = build_report_prompt("Cells", _perf(Quality.GOOD, Quality.EASY))
    assert "Great job! The student recalled all reviewed cards well or easily." in prompt


async def test_empty_performance_is_rejected():
    with pytest.raises(ReportGenerationError):
        await generate_study_report("Cells", [])


async def test_empty_model_output_is_rejected(monkeypatch):
    async def silent(system_prompt, user_prompt, **kwargs):
        return ""

    monkeypatch.setattr(study_report, "chat_text", silent)
    with pytest.raises(ReportGenerationError):
        await generate_study_report("Cells", _perf(Quality.GOOD))
