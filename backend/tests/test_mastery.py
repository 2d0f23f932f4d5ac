import pytest

from fakes import make_card
from flashdeck.services.mastery import (
    is_mastered,
    mastered_count,
    mastery_percentage,
    percent,
)


@pytest.mark.parametrize(
    "part, whole, expected",
    [(0, 0, 0), (3, 0, 0), (1, -2, 0), (1, 8, 13), (1, 3, 33), (2, 3, 67), (1, 2, 50), (4, 4, 100)],
)
def test_percent_rounds_half_up(part, whole, expected):
    assert percent(part, whole) == expected


def test_unreviewed_card_is_not_mastered():
    assert not is_mastered(make_card("a"))


@pytest.mark.parametrize(
    "interval, repetitions, expected",
    [
        (21, 0, True),
        (20, 2, False),
        (7, 3, True),
        (6, 3, False),
        (7, 2, False),
        (30, 1, True),
    ],
)
def test_mastery_thresholds(interval, repetitions, expected):
    assert is_mastered(make_card("a", interval=interval, repetitions=repetitions)) is expected


def test_empty_set_has_zero_mastery():
    assert mastery_percentage([]) == 0


def test_mastery_percentage_of_mixed_set():
    cards = [
        make_card("a", interval=25, repetitions=4),
        make_card("b", interval=8, repetitions=3),
        make_card("c", interval=1, repetitions=0),
    ]
    assert mastered_count(cards) == 2
    assert mastery_percentage(cards) == 67


def test_mastering_a_card_never_lowers_the_percentage():
    cards = [make_card(str(i)) for i in range(7)]
    last = mastery_percentage(cards)
    for i in range(len(cards)):
        cards[i] = make_card(str(i), interval=21)
        current = mastery_percentage(cards)
        assert 0 <= current <= 100
        assert current >= last
        last = current
    assert last == 100
