"""Random source turning a roll count and a dice into values."""

from __future__ import annotations

import itertools
import random

from letsroll.dice import (
    ConstDice,
    Dice,
    FudgeDice,
    FudgeRoll,
    NumberedDice,
    RepeatingDice,
    RollValue,
)
from letsroll.errors import BadDiceError

FUDGE_FACES: tuple[FudgeRoll, ...] = (FudgeRoll.blank, FudgeRoll.plus, FudgeRoll.minus)


class DiceGenerator:
    """Draws dice values from a private random.Random instance.

    A generator belongs to one session; every action that needs fresh values
    (rerolls, explosions) draws from the same instance, so a seeded generator
    makes a whole session reproducible.
    """

    def __init__(self, seed: int | None = None, rng: random.Random | None = None) -> None:
        self._rng = rng if rng is not None else random.Random(seed)

    def roll(self, number: int, dice: Dice) -> list[RollValue]:
        """Roll the dice `number` times.

        Args:
            number: How many values to produce. Zero yields an empty list.
            dice: The dice to roll.

        Returns:
            The rolled values, in order.

        Raises:
            BadDiceError: If the dice type is unknown.
        """
        if number <= 0:
            return []
        if isinstance(dice, ConstDice):
            return [dice.value] * number
        if isinstance(dice, NumberedDice):
            return [self._rng.randint(1, dice.sides) for _ in range(number)]
        if isinstance(dice, RepeatingDice):
            return list(itertools.islice(itertools.cycle(dice.values), number))
        if isinstance(dice, FudgeDice):
            return [self._rng.choice(FUDGE_FACES) for _ in range(number)]
        raise BadDiceError(f"Don't know how to roll {dice!r}")
