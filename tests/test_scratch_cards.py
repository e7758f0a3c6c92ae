from collections import Counter

import pytest

from live_quiz.core.errors import InvalidSessionStateError, ParticipantNotFoundError, SessionNotFoundError
from live_quiz.core.models import Prize, SessionStatus
from live_quiz.core.services.scratch_cards import PrizeSpec, build_prize_pool


def join_all(service, giveaway, clock, names):
    joined = []
    for name in names:
        clock.advance(1)
        joined.append(service.join_session(giveaway.join_code, name))
    return joined


def test_pool_is_padded_with_blanks():
    prizes = [Prize(id="mug", session_id="g1", name="Mug", quantity=2)]

    assert build_prize_pool(prizes, 5) == ["mug", "mug", None, None, None]
    assert build_prize_pool(prizes, 1) == ["mug", "mug"]


def test_prizes_are_validated(scratch_service):
    with pytest.raises(ValueError):
        scratch_service.create_session("  ", [PrizeSpec("Mug")])
    with pytest.raises(ValueError):
        scratch_service.create_session("Giveaway", [PrizeSpec("")])
    with pytest.raises(ValueError):
        scratch_service.create_session("Giveaway", [PrizeSpec("Mug", quantity=0)])


def test_every_participant_gets_one_card(scratch_service, clock):
    giveaway = scratch_service.create_session("Friday", [PrizeSpec("Mug", 2), PrizeSpec("Hoodie", 1)])
    people = join_all(scratch_service, giveaway, clock, ["Ada", "Bo", "Cy", "Di", "Ed"])

    cards = scratch_service.generate_cards(giveaway.id)

    assert [c.card_number for c in cards] == [1, 2, 3, 4, 5]
    assert [c.participant_id for c in cards] == [p.id for p in people]
    prizes = {p.id: p.name for p in scratch_service.get_prizes(giveaway.id)}
    dealt = Counter(prizes[c.prize_id] for c in cards if c.prize_id)
    assert dealt == Counter({"Mug": 2, "Hoodie": 1})
    assert scratch_service.get_session(giveaway.id).status is SessionStatus.ACTIVE
    assert scratch_service.get_session(giveaway.id).total_cards == 5


def test_extra_prize_units_stay_undealt(scratch_service, clock):
    giveaway = scratch_service.create_session("Friday", [PrizeSpec("Sticker", 10)])
    join_all(scratch_service, giveaway, clock, ["Ada", "Bo"])

    cards = scratch_service.generate_cards(giveaway.id)

    assert len(cards) == 2
    assert all(c.prize_id for c in cards)


def test_cards_are_generated_only_once(scratch_service, clock):
    giveaway = scratch_service.create_session("Friday", [PrizeSpec("Mug")])
    with pytest.raises(ValueError):
        scratch_service.generate_cards(giveaway.id)

    join_all(scratch_service, giveaway, clock, ["Ada"])
    scratch_service.generate_cards(giveaway.id)

    with pytest.raises(InvalidSessionStateError):
        scratch_service.generate_cards(giveaway.id)
    assert len(scratch_service.get_cards(giveaway.id)) == 1


def test_late_joins_are_refused_but_rejoins_are_not(scratch_service, clock):
    giveaway = scratch_service.create_session("Friday", [PrizeSpec("Mug")])
    (ada,) = join_all(scratch_service, giveaway, clock, ["Ada"])
    scratch_service.generate_cards(giveaway.id)

    assert scratch_service.join_session(giveaway.join_code, "ADA").id == ada.id
    with pytest.raises(InvalidSessionStateError):
        scratch_service.join_session(giveaway.join_code, "Bo")

    scratch_service.end_session(giveaway.id)
    with pytest.raises(SessionNotFoundError):
        scratch_service.join_session(giveaway.join_code, "Ada")


def test_scratching_is_idempotent(scratch_service, clock):
    giveaway = scratch_service.create_session("Friday", [PrizeSpec("Mug")])
    (ada,) = join_all(scratch_service, giveaway, clock, ["Ada"])
    scratch_service.generate_cards(giveaway.id)
    card = scratch_service.card_for_participant(giveaway.id, ada.id)

    first = scratch_service.scratch(card.id)
    clock.advance(30)
    second = scratch_service.scratch(card.id)

    assert first.scratched and second.scratched
    assert second.scratched_at == first.scratched_at


def test_cards_cannot_be_scratched_after_the_giveaway_ends(scratch_service, clock):
    giveaway = scratch_service.create_session("Friday", [PrizeSpec("Mug")])
    (ada,) = join_all(scratch_service, giveaway, clock, ["Ada"])
    scratch_service.generate_cards(giveaway.id)
    card = scratch_service.card_for_participant(giveaway.id, ada.id)
    scratch_service.end_session(giveaway.id)

    with pytest.raises(InvalidSessionStateError):
        scratch_service.scratch(card.id)


def test_results_list_scratched_winners_only(scratch_service, clock):
    giveaway = scratch_service.create_session("Friday", [PrizeSpec("Mug", 2, value="$10")])
    people = join_all(scratch_service, giveaway, clock, ["Ada", "Bo", "Cy"])
    cards = scratch_service.generate_cards(giveaway.id)
    winning = [c for c in cards if c.prize_id]
    scratch_service.scratch(winning[0].id)
    scratch_service.scratch(next(c for c in cards if not c.prize_id).id)

    results = scratch_service.get_results(giveaway.id)

    names = {p.id: p.name for p in people}
    assert [(w.participant_name, w.prize_name, w.prize_value) for w in results.winners] == [
        (names[winning[0].participant_id], "Mug", "$10")
    ]
    assert results.total_prize_units == 2
    assert results.scratched_count == 2


def test_participant_without_card(scratch_service, clock):
    giveaway = scratch_service.create_session("Friday", [PrizeSpec("Mug")])
    (ada,) = join_all(scratch_service, giveaway, clock, ["Ada"])

    with pytest.raises(ParticipantNotFoundError):
        scratch_service.card_for_participant(giveaway.id, ada.id)
