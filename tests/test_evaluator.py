import itertools

import pytest

from core.cards import build_deck, parse_cards, shuffle
from core.evaluator import HandCategory, compare_hands, describe, evaluate_five, find_best


def test_evaluate_five_identifies_all_hand_categories():
    cases = [
        (HandCategory.STRAIGHT_FLUSH, ["Ah", "Kh", "Qh", "Jh", "Th"]),
        (HandCategory.FOUR_OF_A_KIND, ["As", "Ah", "Ad", "Ac", "Kd"]),
        (HandCategory.FULL_HOUSE, ["Qc", "Qd", "Qs", "9h", "9s"]),
        (HandCategory.FLUSH, ["Ah", "Jh", "9h", "6h", "2h"]),
        (HandCategory.STRAIGHT, ["9h", "8d", "7c", "6s", "5h"]),
        (HandCategory.THREE_OF_A_KIND, ["8h", "8d", "8s", "Qd", "Js"]),
        (HandCategory.TWO_PAIR, ["7h", "7d", "4s", "4c", "As"]),
        (HandCategory.ONE_PAIR, ["6h", "6s", "Qh", "8d", "4c"]),
        (HandCategory.HIGH_CARD, ["As", "Kd", "Jh", "9c", "4d"]),
    ]

    for expected, labels in cases:
        result = evaluate_five(parse_cards(labels))
        assert result.category == expected, f"labels={labels}"


def test_kickers_follow_group_size_then_rank():
    assert evaluate_five(parse_cards(["4s", "Ah", "4d", "4c", "Kd"])).kickers == (4, 14, 13)
    assert evaluate_five(parse_cards(["7h", "Kd", "4s", "7d", "4c"])).kickers == (7, 4, 13)
    assert evaluate_five(parse_cards(["9h", "9s", "Qh", "Qd", "Qs"])).kickers == (12, 9)
    assert evaluate_five(parse_cards(["2c", "Ks", "Ah", "7d", "5c"])).kickers == (14, 13, 7, 5, 2)


def test_wheel_is_the_lowest_straight():
    wheel = evaluate_five(parse_cards(["Ah", "2d", "3c", "4s", "5h"]))
    six_high = evaluate_five(parse_cards(["2h", "3d", "4c", "5s", "6h"]))
    trips = evaluate_five(parse_cards(["Ah", "Ad", "Ac", "Ks", "Qh"]))

    assert wheel.category == HandCategory.STRAIGHT
    assert wheel.kickers == (5,)
    assert compare_hands(wheel, six_high) == -1
    assert compare_hands(wheel, trips) == 1


def test_steel_wheel_is_a_five_high_straight_flush():
    result = evaluate_five(parse_cards(["Ad", "2d", "3d", "4d", "5d"]))
    assert result.category == HandCategory.STRAIGHT_FLUSH
    assert result.kickers == (5,)


def test_ace_does_not_wrap_around():
    result = evaluate_five(parse_cards(["Qh", "Kd", "Ac", "2s", "3h"]))
    assert result.category == HandCategory.HIGH_CARD


def test_compare_hands_uses_kickers_for_equal_categories():
    high_kicker = find_best(parse_cards(["Ah", "Ad", "Kc", "Qs", "9h", "2d", "3c"]))
    low_kicker = find_best(parse_cards(["As", "Ac", "Qc", "Js", "8h", "2s", "3h"]))
    assert compare_hands(high_kicker, low_kicker) == 1
    assert compare_hands(low_kicker, high_kicker) == -1


def test_identical_ranks_in_other_suits_tie():
    a = evaluate_five(parse_cards(["Ah", "Kd", "9c", "7s", "3h"]))
    b = evaluate_five(parse_cards(["Ad", "Kh", "9s", "7c", "3d"]))
    assert compare_hands(a, b) == 0


def test_quads_beat_a_flush_even_with_a_weaker_kicker():
    quads = evaluate_five(parse_cards(["2s", "2h", "2d", "2c", "3d"]))
    flush = evaluate_five(parse_cards(["Ah", "Kh", "Qh", "Jh", "9h"]))
    assert compare_hands(quads, flush) == 1


def test_find_best_picks_the_strongest_five_of_ten():
    cards = parse_cards(["2h", "7d", "9c", "Jh", "Kh", "4h", "Qs", "3h", "5c", "8h"])
    best = find_best(cards)
    assert best.category == HandCategory.FLUSH
    assert best.kickers == (13, 11, 8, 4, 3)
    assert len(best.cards) == 5


def test_find_best_is_at_least_as_strong_as_every_subset():
    deck = shuffle(build_deck(), 2024)
    for start in range(0, 40, 10):
        cards = deck[start : start + 8]
        best = find_best(cards)
        for combo in itertools.combinations(cards, 5):
            assert compare_hands(best, evaluate_five(combo)) >= 0


def test_evaluation_rejects_wrong_card_counts():
    with pytest.raises(ValueError, match="exactly 5"):
        evaluate_five(parse_cards(["Ah", "Kd", "Qs", "Jc"]))
    with pytest.raises(ValueError, match="between 5 and 10"):
        find_best(parse_cards(["Ah", "Kd", "Qs", "Jc"]))
    with pytest.raises(ValueError, match="between 5 and 10"):
        find_best(build_deck()[:11])
    with pytest.raises(ValueError, match="distinct"):
        find_best(parse_cards(["Ah", "Ah", "Qs", "Jc", "9d"]))


def test_describe_and_payload():
    result = find_best(parse_cards(["Ah", "Ad", "Kc", "Qs", "9h"]))
    assert describe(result) == "one_pair [A K Q 9]"
    payload = result.to_payload()
    assert payload["category"] == "one_pair"
    assert payload["kickers"] == [14, 13, 12, 9]
