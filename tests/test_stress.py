import random

from holdem.models import ActionType

from .helpers import create_engine, start_hand, total_chips

REBUY = 2_000


def random_action(engine, actor, rng):
    legal, _, min_to, max_to = engine.legal_actions(actor)
    roll = rng.random()
    if roll < 0.15:
        return ActionType.FOLD, None
    if roll < 0.25 and ActionType.RAISE in legal:
        return ActionType.RAISE, rng.randint(min_to, min(max_to, min_to * 3))
    if roll < 0.27 and ActionType.ALL_IN in legal:
        return ActionType.ALL_IN, None
    return (ActionType.CHECK if ActionType.CHECK in legal else ActionType.CALL), None


def test_random_play_conserves_chips_hand_after_hand():
    rng = random.Random(2024)
    engine = create_engine(seats=6, stack=REBUY, sb=5, bb=10)
    expected = total_chips(engine)
    hands_played = 0

    for seed in range(300):
        # Busted seats buy back in so every hand is dealt six-handed.
        for player in engine.seats:
            if player.stack == 0:
                player.stack = REBUY
                expected += REBUY
        hand = start_hand(engine, seed=seed)
        assert total_chips(engine) == expected
        while not hand.complete:
            actor = hand.current
            assert actor is not None
            action, amount = random_action(engine, actor, rng)
            engine.apply_action(actor, action, amount)
            assert total_chips(engine) == expected
        assert sum(hand.result.payouts.values()) == sum(hand.contributions)
        assert len(hand.community) in (0, 3, 4, 5)
        hands_played += 1

    assert hands_played == 300
    assert sum(player.stack for player in engine.seats) == expected


def test_heads_up_shoves_every_hand_until_one_player_busts():
    engine = create_engine(seats=2, stack=100, sb=1, bb=2)
    for seed in range(200):
        if not engine.can_start_hand():
            break
        hand = start_hand(engine, seed=seed)
        while not hand.complete:
            actor = hand.current
            legal, *_ = engine.legal_actions(actor)
            engine.apply_action(actor, ActionType.ALL_IN if ActionType.ALL_IN in legal else ActionType.CALL)
        assert engine.seats[0].stack + engine.seats[1].stack == 200
