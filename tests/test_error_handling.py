import pytest

from holdem.errors import CapacityError, PokerError, StateError, ValidationError
from holdem.game import GameEngine
from holdem.models import ActionType, Player, TableConfig

from .helpers import create_engine, perform_actions, start_hand


def snapshot(engine):
    hand = engine.hand
    return (
        [player.stack for player in engine.seats],
        list(hand.bets),
        list(hand.acted),
        hand.current,
        hand.current_bet,
        hand.min_raise,
    )


def test_check_when_facing_bet_is_rejected():
    engine = create_engine()
    start_hand(engine)
    with pytest.raises(ValidationError, match="Cannot check") as excinfo:
        engine.apply_action(0, ActionType.CHECK)
    assert excinfo.value.code == "CANNOT_CHECK"


def test_out_of_turn_action_is_a_value_error():
    engine = create_engine()
    start_hand(engine)
    with pytest.raises(ValueError, match="Not your turn"):
        engine.apply_action(1, ActionType.CALL)


@pytest.mark.parametrize(
    "action, amount, code",
    [
        (ActionType.RAISE, 30, "RAISE_TOO_SMALL"),
        (ActionType.RAISE, 20, "RAISE_TOO_SMALL"),
        (ActionType.RAISE, 5_000, "INSUFFICIENT_CHIPS"),
        (ActionType.RAISE, None, "BAD_AMOUNT"),
        (ActionType.RAISE, -40, "BAD_AMOUNT"),
        (ActionType.RAISE, True, "BAD_AMOUNT"),
        ("BET", None, "INVALID_ACTION"),
    ],
)
def test_rejected_actions_leave_state_untouched(action, amount, code):
    engine = create_engine()
    start_hand(engine)
    before = snapshot(engine)
    with pytest.raises(ValidationError) as excinfo:
        engine.apply_action(0, action, amount)
    assert excinfo.value.code == code
    assert snapshot(engine) == before


def test_call_with_nothing_owed_is_accepted_as_check():
    engine = create_engine()
    hand = start_hand(engine)
    perform_actions(engine, [(0, ActionType.CALL, None), (1, ActionType.CALL, None)])
    result = engine.apply_action(2, ActionType.CALL)
    assert result.events[0] == {"ev": "CALL", "seat": 2, "amount": 0, "all_in": False}
    assert hand.pot == 60


def test_actions_without_a_hand_raise_state_error():
    engine = create_engine()
    with pytest.raises(StateError, match="Hand not in progress") as excinfo:
        engine.apply_action(0, ActionType.FOLD)
    assert isinstance(excinfo.value, RuntimeError)
    assert excinfo.value.code == "NO_HAND"


def test_start_hand_twice_or_short_handed():
    engine = create_engine()
    start_hand(engine)
    with pytest.raises(StateError, match="already in progress"):
        engine.start_hand()

    lonely = GameEngine(TableConfig(max_seats=4))
    lonely.seat_player(2, Player(id="solo", name="Solo", stack=100))
    assert lonely.start_hand() is None


def test_seat_errors():
    engine = create_engine()
    newcomer = Player(id="x", name="X", stack=100)
    with pytest.raises(CapacityError, match="Seat is taken"):
        engine.seat_player(0, newcomer)
    with pytest.raises(ValidationError, match="out of range"):
        engine.seat_player(7, newcomer)
    with pytest.raises(CapacityError, match="Table is full") as excinfo:
        engine.first_open_seat()
    assert excinfo.value.code == "TABLE_FULL"
    with pytest.raises(ValidationError, match="Seat is empty"):
        GameEngine(TableConfig(max_seats=2)).occupant(1)


def test_live_player_cannot_change_seats():
    engine = GameEngine(TableConfig(max_seats=4, sb=10, bb=20))
    for idx in range(3):
        engine.seat_player(idx, Player(id=f"p{idx}", name=f"P{idx}", stack=500))
    start_hand(engine)
    with pytest.raises(StateError, match="active hand"):
        engine.move_player(0, 3)

    engine.apply_action(0, ActionType.FOLD)
    engine.move_player(0, 3)
    assert engine.seats[3].id == "p0"


def test_folded_seat_has_no_legal_actions():
    engine = create_engine()
    start_hand(engine)
    engine.apply_action(0, ActionType.FOLD)
    with pytest.raises(ValidationError, match="Seat not active"):
        engine.legal_actions(0)
    engine.hand.current = 0
    with pytest.raises(ValidationError, match="Cannot act"):
        engine.apply_action(0, ActionType.CALL)


def test_reveal_and_show_validation():
    engine = create_engine()
    start_hand(engine)
    with pytest.raises(ValidationError, match="Card index") as excinfo:
        engine.reveal_card(0, 2)
    assert excinfo.value.code == "BAD_CARD"
    with pytest.raises(StateError, match="after the hand") as excinfo:
        engine.show_cards(0)
    assert excinfo.value.code == "NOT_SHOWDOWN"


def test_error_payload_carries_code_and_message():
    err = ValidationError("BAD_AMOUNT", "Amount must be a non-negative integer")
    assert isinstance(err, PokerError)
    assert err.to_payload() == {"code": "BAD_AMOUNT", "msg": "Amount must be a non-negative integer"}
    assert str(err) == "Amount must be a non-negative integer"
