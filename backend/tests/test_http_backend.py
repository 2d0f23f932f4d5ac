import httpx
import pytest

from flashdeck import app
from flashdeck.models.flashcard import FlashcardCreate, Quality
from flashdeck.models.session import ControllerState, StudyMode
from flashdeck.routers import flashcards as flashcards_router
from flashdeck.services.study_backend import BackendError, HttpStudyBackend
from flashdeck.services.study_session import StudySessionController


@pytest.fixture
async def http_backend(data_dir):
    async with HttpStudyBackend(
        "http://test", transport=httpx.ASGITransport(app=app)
    ) as backend:
        yield backend


async def _seed(client, n=2):
    set_id = (await client.post("/flashcards/sets", json={"title": "History"})).json()["id"]
    for i in range(n):
        await client.post(
            f"/flashcards/sets/{set_id}/cards", json={"question": f"Q{i}", "answer": f"A{i}"}
        )
    return set_id


async def test_missing_set_raises_backend_error(http_backend):
    with pytest.raises(BackendError, match="Flashcard set not found"):
        await http_backend.fetch_set("nope")


async def test_card_round_trip(client, http_backend):
    set_id = await _seed(client, n=0)
    card = await http_backend.add_card(set_id, FlashcardCreate(question="Q", answer="A"))
    result = await http_backend.update_srs(card.id, Quality.EASY)
    assert result.repetitions == 1
    assert result.ease_factor == pytest.approx(2.6)
    assert await http_backend.fetch_due_cards(set_id) == []
    deleted = await http_backend.delete_card(card.id)
    assert deleted.id == card.id
    with pytest.raises(BackendError):
        await http_backend.delete_card(card.id)


async def test_controller_over_http(client, http_backend, rng, monkeypatch):
    async def fake_report(set_title, performance, grade_level=None):
        return f"Report for {set_title}"

    monkeypatch.setattr(flashcards_router, "generate_study_report", fake_report)
    set_id = await _seed(client)

    async with StudySessionController(http_backend, set_id, rng=rng) as controller:
        assert await controller.load()
        assert controller.grade_level is None
        await controller.compose(StudyMode.STUDY)
        for quality in (Quality.GOOD, Quality.HARD):
            controller.flip()
            await controller.grade(quality)
        await controller.settle()

        assert controller.state is ControllerState.BROWSING
        assert controller.report.narrative == "Report for History"
        assert all(c.repetitions is not None for c in controller.cards)

    assert controller.closed
    history = await http_backend.fetch_history(set_id)
    assert len(history) == 1
    assert history[0].performance_counts.hard == 1
