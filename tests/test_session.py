"""Tests for roll sessions and the end-to-end request pipeline."""

import pytest

from letsroll.actions import CountValues, Explode, Sum, Total
from letsroll.config import settings
from letsroll.dice import (
    ConstDice,
    FudgeDice,
    FudgeRoll,
    NumberedDice,
    RepeatingDice,
    RollRequest,
)
from letsroll.errors import (
    BadActionParameterError,
    IncompatibleActionError,
    ParseDiceError,
    ParseError,
)
from letsroll.generators import DiceGenerator
from letsroll.session import FudgeSession, MultiSession, NumericSession, roll

PLUS, MINUS, BLANK = FudgeRoll.plus, FudgeRoll.minus, FudgeRoll.blank


# ---------------------------------------------------------------------------
# Session objects
# ---------------------------------------------------------------------------


class TestSession:
    def test_rolls_every_request_once(self, generator) -> None:
        session = NumericSession(
            [RollRequest(3, NumberedDice(6)), RollRequest(1, ConstDice(4))], generator
        )
        assert len(session.results) == 2
        assert len(session.results[0].values) == 3
        assert session.results[1].values == (4,)
        assert session.results[1].description == "+4"

    def test_rejects_requests_of_other_kind(self, generator) -> None:
        with pytest.raises(IncompatibleActionError):
            NumericSession([RollRequest(2, FudgeDice())], generator)
        with pytest.raises(IncompatibleActionError):
            FudgeSession([RollRequest(2, NumberedDice(6))], generator)

    def test_request_actions(self, generator) -> None:
        request = RollRequest(5, RepeatingDice((1, 2, 3, 2, 1)), actions=(Explode({2}),))
        session = NumericSession([request], generator)
        session.apply_request_actions()
        assert session.results[0].values == (1, 2, 3, 2, 1, 1, 2, 1)
        assert session.results[0].description == "5[1,2,3,2,1,...] explode(2)"

    def test_add_step_applies_to_every_request(self, generator) -> None:
        session = NumericSession(
            [RollRequest(2, ConstDice(3)), RollRequest(3, ConstDice(1))], generator
        )
        session.add_step(Sum())
        assert [rolls.values for rolls in session.results] == [(6,), (3,)]

    def test_total_is_terminal(self, generator) -> None:
        session = NumericSession([RollRequest(2, ConstDice(3))], generator)
        session.add_step(Total())
        assert str(session) == "TOTAL (2+3: 6): 6"
        with pytest.raises(IncompatibleActionError, match="total or a count"):
            session.add_step(Sum())
        with pytest.raises(IncompatibleActionError):
            session.aggregate(CountValues())

    def test_aggregate_returns_numeric_session(self, scripted_generator) -> None:
        generator = scripted_generator(choice=[PLUS, MINUS, PLUS])
        session = FudgeSession([RollRequest(3, FudgeDice())], generator)
        counted = session.aggregate(CountValues())
        assert isinstance(counted, NumericSession)
        assert counted.terminated
        assert str(counted) == "COUNT(-): 1\nCOUNT(+): 2"
        assert counted.requests == []
        with pytest.raises(IncompatibleActionError):
            counted.add_step(Sum())

    def test_generator_defaults_to_configured_seed(self, monkeypatch) -> None:
        monkeypatch.setattr(settings, "seed", 99)
        first = NumericSession([RollRequest(10, NumberedDice(100))])
        second = NumericSession([RollRequest(10, NumberedDice(100))])
        assert first.results[0].values == second.results[0].values


class TestMultiSession:
    def test_empty(self) -> None:
        assert str(MultiSession()) == ""
        assert MultiSession().results == []

    def test_numeric_before_fudge(self, scripted_generator) -> None:
        generator = scripted_generator(choice=[PLUS, BLANK])
        session = roll("2F +4", generator=generator)
        assert str(session) == "+4: 4\n2F: + 0"
        assert [rolls.description for rolls in session.results] == ["+4", "2F"]


# ---------------------------------------------------------------------------
# roll(): parse, roll, apply
# ---------------------------------------------------------------------------


class TestRoll:
    def test_const(self) -> None:
        session = roll("+5")
        assert session.fudge is None
        assert session.numeric.results[0].values == (5,)
        assert str(session) == "+5: 5"

    def test_numbered_dice_in_range(self) -> None:
        for _ in range(20):
            values = roll("3D6").numeric.results[0].values
            assert len(values) == 3
            assert all(1 <= value <= 6 for value in values)

    def test_fudge(self) -> None:
        session = roll("F")
        assert session.numeric is None
        assert len(session.fudge.results) == 1
        assert session.fudge.results[0].values[0] in (PLUS, MINUS, BLANK)

    def test_no_dice_marker(self) -> None:
        with pytest.raises(ParseError):
            roll("5")
        with pytest.raises(ParseDiceError):
            roll("5")

    def test_reroll(self, scripted_generator) -> None:
        generator = scripted_generator(randint=[1, 4, 5])
        session = roll("2D6 reroll(1)", generator=generator)
        assert session.numeric.results[0].values == (5, 4)
        assert str(session) == "2D6 reroll(1): 5 4"

    def test_explode(self, scripted_generator) -> None:
        generator = scripted_generator(randint=[6, 2, 6, 3])
        session = roll("2D6 explode(6)", generator=generator)
        assert session.numeric.results[0].values == (6, 2, 6, 3)

    def test_keep_best(self, scripted_generator) -> None:
        generator = scripted_generator(randint=[2, 5, 1, 4])
        session = roll("4D6 keep-best(3) sum", generator=generator)
        assert str(session) == "4D6 keep-best(3) sum: 11"

    def test_flip(self, scripted_generator) -> None:
        generator = scripted_generator(randint=[1, 15])
        assert str(roll("2D100 flip", generator=generator)) == "2D100 flip: 100 510"

    def test_group_total(self) -> None:
        session = roll("(FIRE +2) (ICE +3) total")
        assert str(session) == "TOTAL (FIRE +2: 2, ICE +3: 3): 5"

    def test_request_actions_run_before_global_actions(self) -> None:
        session = roll("(BONUS +2 x10) +3 x2")
        assert str(session) == "BONUS +2 x10 x2: 40\n+3 x2: 6"

    def test_group_total_only_sums_the_group(self) -> None:
        session = roll("(A1 2D1 total) +3")
        assert str(session) == "A1 2D1 total: 2\n+3: 3"

    def test_fudge_group(self, scripted_generator) -> None:
        generator = scripted_generator(choice=[MINUS, PLUS, PLUS])
        session = roll("(LUCK 2F reroll(-))", generator=generator)
        assert str(session) == "LUCK 2F reroll(-): + +"

    def test_numeric_action_on_fudge_dice(self) -> None:
        with pytest.raises(IncompatibleActionError) as exc_info:
            roll("3D6 4F sum")
        assert exc_info.value.roll_kind == "fudge"
        assert exc_info.value.action == "Sum"

    def test_numeric_values_on_fudge_dice(self) -> None:
        with pytest.raises(IncompatibleActionError):
            roll("4F reroll(1)")

    def test_fudge_values_on_numeric_dice(self) -> None:
        with pytest.raises(IncompatibleActionError):
            roll("(FIRE 2D6 explode(+))")

    def test_total_with_fudge_dice(self) -> None:
        with pytest.raises(IncompatibleActionError, match="fudge"):
            roll("3D6 2F total")

    def test_keep_more_than_rolled(self) -> None:
        with pytest.raises(BadActionParameterError):
            roll("2D6 keep-best(3)")

    def test_keep_none(self) -> None:
        assert str(roll("2D6 keep-worst(0)")) == "2D6 keep-worst(0): "

    def test_count_numeric(self) -> None:
        session = roll("+3 +3 +5 count")
        assert str(session) == "COUNT(3): 2\nCOUNT(5): 1"
        assert session.fudge is None

    def test_count_merges_fudge_into_numeric(self, scripted_generator) -> None:
        generator = scripted_generator(choice=[PLUS, PLUS, MINUS, BLANK])
        session = roll("+3 4F count", generator=generator)
        assert session.fudge is None
        assert str(session) == "COUNT(3): 1\nCOUNT(-): 1\nCOUNT(blank): 1\nCOUNT(+): 2"

    def test_count_fudge_only(self, scripted_generator) -> None:
        generator = scripted_generator(choice=[BLANK, BLANK])
        session = roll("2F count", generator=generator)
        assert session.fudge is None
        assert str(session) == "COUNT(blank): 2"

    def test_count_keeps_numeric_zero_and_fudge_blank_apart(self, scripted_generator) -> None:
        generator = scripted_generator(choice=[BLANK])
        session = roll("+0 F count", generator=generator)
        assert str(session) == "COUNT(0): 1\nCOUNT(blank): 1"

    def test_counted_session_holds_no_requests(self, scripted_generator) -> None:
        generator = scripted_generator(choice=[PLUS])
        session = roll("+3 F count", generator=generator)
        assert session.numeric.requests == []
        assert all(rolls.request is None for rolls in session.numeric.results)

    def test_count_after_total(self) -> None:
        with pytest.raises(IncompatibleActionError):
            roll("3D6 total count")

    def test_seeded_sessions_agree(self) -> None:
        request = "4D20 explode(20) keep-best(2)"
        first = roll(request, generator=DiceGenerator(seed=42))
        second = roll(request, generator=DiceGenerator(seed=42))
        assert str(first) == str(second)


class TestAutoTotal:
    def test_disabled_by_default(self) -> None:
        assert str(roll("+2 +3")) == "+2: 2\n+3: 3"

    def test_totals_when_no_action(self) -> None:
        assert str(roll("+2 +3", auto_total=True)) == "TOTAL (+2: 2, +3: 3): 5"

    def test_explicit_actions_win(self) -> None:
        assert str(roll("+2 +3 x2", auto_total=True)) == "+2 x2: 4\n+3 x2: 6"

    def test_aggregation_wins(self) -> None:
        assert str(roll("+2 +2 count", auto_total=True)) == "COUNT(2): 2"

    def test_fudge_dice_untouched(self, scripted_generator) -> None:
        generator = scripted_generator(choice=[MINUS])
        session = roll("+2 F", generator=generator, auto_total=True)
        assert str(session) == "TOTAL (+2: 2): 2\n1F: -"

    def test_configured_policy(self, monkeypatch) -> None:
        monkeypatch.setattr(settings, "auto_total", True)
        assert str(roll("+2 +3")) == "TOTAL (+2: 2, +3: 3): 5"
