"""Transformations applied to dice rolls: rerolls, explosions, sums, selections.

Each action declares the roll kinds it is defined for. Applying an action to
rolls of another kind raises IncompatibleActionError; there is no coercion.

Per-request actions take one Rolls and return a new one. Two operations work
on a whole session at once and end its pipeline:

    total         -> one numeric result summing every request
    count_values  -> one numeric result per distinct value, holding its count
"""

from __future__ import annotations

import dataclasses
import logging
from collections import Counter
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING, ClassVar, Union

from letsroll.dice import Dice, FudgeRoll, NumericRolls, RollKind, Rolls, RollValue
from letsroll.errors import BadActionParameterError, IncompatibleActionError

if TYPE_CHECKING:
    from letsroll.generators import DiceGenerator

logger = logging.getLogger(__name__)

NUMERIC: frozenset[RollKind] = frozenset({RollKind.numeric})
FUDGE: frozenset[RollKind] = frozenset({RollKind.fudge})

# Notation used for fudge faces inside reroll(...) and explode(...).
FUDGE_SYMBOLS: dict[str, FudgeRoll] = {
    "+": FudgeRoll.plus,
    "-": FudgeRoll.minus,
    "blank": FudgeRoll.blank,
}
_SYMBOL_OF: dict[FudgeRoll, str] = {face: symbol for symbol, face in FUDGE_SYMBOLS.items()}


def _sort_key(value: RollValue) -> int:
    return value.score if isinstance(value, FudgeRoll) else value


def _symbol(value: RollValue) -> str:
    return _SYMBOL_OF[value] if isinstance(value, FudgeRoll) else str(value)


def _format_values(values: Iterable[RollValue]) -> str:
    return ",".join(_symbol(value) for value in sorted(values, key=_sort_key))


# ---------------------------------------------------------------------------
# Value transforms
# ---------------------------------------------------------------------------


def multiply(values: Sequence[int], factor: int) -> list[int]:
    """Multiply every value by factor."""
    return [value * factor for value in values]


def flip(values: Sequence[int], max_value: int) -> list[int]:
    """Reverse the digits of each value, zero-padded to the width of max_value.

    On a D100, 1 becomes "001", read backwards as 100; 15 becomes 510. Negative
    values keep their sign: -15 becomes -510.
    """
    width = len(str(abs(max_value)))
    return [_flip_digits(value, width) for value in values]


def _flip_digits(value: int, width: int) -> int:
    flipped = int(f"{abs(value):0{width}d}"[::-1])
    return -flipped if value < 0 else flipped


def keep_best(values: Sequence[int], n: int) -> list[int]:
    """Return the n highest values, in ascending order.

    Raises:
        BadActionParameterError: If n is negative or larger than len(values).
    """
    _check_selection(values, n)
    return sorted(values)[len(values) - n :]


def keep_worst(values: Sequence[int], n: int) -> list[int]:
    """Return the n lowest values, in ascending order.

    Raises:
        BadActionParameterError: If n is negative or larger than len(values).
    """
    _check_selection(values, n)
    return sorted(values)[:n]


def _check_selection(values: Sequence[int], n: int) -> None:
    if n < 0:
        raise BadActionParameterError(f"Cannot select a negative number of rolls ({n})")
    if n > len(values):
        raise BadActionParameterError(f"Cannot select {n} rolls out of {len(values)}")


def reroll(
    values: Sequence[RollValue],
    triggers: frozenset[RollValue],
    dice: Dice,
    generator: DiceGenerator,
) -> list[RollValue]:
    """Replace each value found in triggers with one fresh roll, in place.

    Fresh rolls are not checked against triggers again.
    """
    return [generator.roll(1, dice)[0] if value in triggers else value for value in values]


def explode(
    values: Sequence[RollValue],
    triggers: frozenset[RollValue],
    dice: Dice,
    generator: DiceGenerator,
) -> list[RollValue]:
    """Append one new roll per value found in triggers, then repeat on the new batch.

    Stops once a batch holds no trigger value. Never terminates when every
    possible roll of the dice is a trigger (e.g. +6 exploding on 6).
    """
    result = list(values)
    batch: list[RollValue] = list(values)
    while True:
        matches = sum(1 for value in batch if value in triggers)
        if not matches:
            return result
        batch = generator.roll(matches, dice)
        result.extend(batch)


# ---------------------------------------------------------------------------
# Actions
# ---------------------------------------------------------------------------


class Action:
    """Base class for per-request actions.

    Subclasses set `kinds` to the roll kinds they are defined for, and
    `needs_dice` when they roll again or read the dice's maximum value.
    """

    kinds: ClassVar[frozenset[RollKind]] = frozenset()
    needs_dice: ClassVar[bool] = False

    @property
    def name(self) -> str:
        return type(self).__name__

    @classmethod
    def is_compatible(cls, kind: RollKind) -> bool:
        return kind in cls.kinds

    def transform(
        self, values: list[RollValue], dice: Dice | None, generator: DiceGenerator
    ) -> list[RollValue]:
        raise NotImplementedError


@dataclass(frozen=True)
class _TriggerAction(Action):
    values: frozenset[RollValue]

    def __post_init__(self) -> None:
        object.__setattr__(self, "values", frozenset(self.values))


@dataclass(frozen=True)
class RerollNumeric(_TriggerAction):
    kinds: ClassVar[frozenset[RollKind]] = NUMERIC
    needs_dice: ClassVar[bool] = True

    def transform(
        self, values: list[RollValue], dice: Dice | None, generator: DiceGenerator
    ) -> list[RollValue]:
        return reroll(values, self.values, dice, generator)

    def __str__(self) -> str:
        return f"reroll({_format_values(self.values)})"


@dataclass(frozen=True)
class RerollFudge(_TriggerAction):
    kinds: ClassVar[frozenset[RollKind]] = FUDGE
    needs_dice: ClassVar[bool] = True

    def transform(
        self, values: list[RollValue], dice: Dice | None, generator: DiceGenerator
    ) -> list[RollValue]:
        return reroll(values, self.values, dice, generator)

    def __str__(self) -> str:
        return f"reroll({_format_values(self.values)})"


@dataclass(frozen=True)
class Explode(_TriggerAction):
    kinds: ClassVar[frozenset[RollKind]] = NUMERIC
    needs_dice: ClassVar[bool] = True

    def transform(
        self, values: list[RollValue], dice: Dice | None, generator: DiceGenerator
    ) -> list[RollValue]:
        return explode(values, self.values, dice, generator)

    def __str__(self) -> str:
        return f"explode({_format_values(self.values)})"


@dataclass(frozen=True)
class ExplodeFudge(_TriggerAction):
    kinds: ClassVar[frozenset[RollKind]] = FUDGE
    needs_dice: ClassVar[bool] = True

    def transform(
        self, values: list[RollValue], dice: Dice | None, generator: DiceGenerator
    ) -> list[RollValue]:
        return explode(values, self.values, dice, generator)

    def __str__(self) -> str:
        return f"explode({_format_values(self.values)})"


@dataclass(frozen=True)
class MultiplyBy(Action):
    factor: int
    kinds: ClassVar[frozenset[RollKind]] = NUMERIC

    def transform(
        self, values: list[RollValue], dice: Dice | None, generator: DiceGenerator
    ) -> list[RollValue]:
        return multiply(values, self.factor)

    def __str__(self) -> str:
        return f"x{self.factor}"


@dataclass(frozen=True)
class FlipFlop(Action):
    kinds: ClassVar[frozenset[RollKind]] = NUMERIC
    needs_dice: ClassVar[bool] = True

    def transform(
        self, values: list[RollValue], dice: Dice | None, generator: DiceGenerator
    ) -> list[RollValue]:
        return flip(values, dice.get_max_value())

    def __str__(self) -> str:
        return "flip"


@dataclass(frozen=True)
class Sum(Action):
    kinds: ClassVar[frozenset[RollKind]] = NUMERIC

    def transform(
        self, values: list[RollValue], dice: Dice | None, generator: DiceGenerator
    ) -> list[RollValue]:
        return [sum(values)]

    def __str__(self) -> str:
        return "sum"


@dataclass(frozen=True)
class Total(Action):
    """Session-wide sum; inside a group it only sums that group's rolls."""

    kinds: ClassVar[frozenset[RollKind]] = NUMERIC

    def transform(
        self, values: list[RollValue], dice: Dice | None, generator: DiceGenerator
    ) -> list[RollValue]:
        return [sum(values)]

    def __str__(self) -> str:
        return "total"


@dataclass(frozen=True)
class _SelectAction(Action):
    n: int
    kinds: ClassVar[frozenset[RollKind]] = NUMERIC


@dataclass(frozen=True)
class KeepBest(_SelectAction):
    def transform(
        self, values: list[RollValue], dice: Dice | None, generator: DiceGenerator
    ) -> list[RollValue]:
        return keep_best(values, self.n)

    def __str__(self) -> str:
        return f"keep-best({self.n})"


@dataclass(frozen=True)
class KeepWorst(_SelectAction):
    def transform(
        self, values: list[RollValue], dice: Dice | None, generator: DiceGenerator
    ) -> list[RollValue]:
        return keep_worst(values, self.n)

    def __str__(self) -> str:
        return f"keep-worst({self.n})"


@dataclass(frozen=True)
class RerollBest(_SelectAction):
    needs_dice: ClassVar[bool] = True

    def transform(
        self, values: list[RollValue], dice: Dice | None, generator: DiceGenerator
    ) -> list[RollValue]:
        _check_selection(values, self.n)
        return keep_worst(values, len(values) - self.n) + generator.roll(self.n, dice)

    def __str__(self) -> str:
        return f"reroll-best({self.n})"


@dataclass(frozen=True)
class RerollWorst(_SelectAction):
    needs_dice: ClassVar[bool] = True

    def transform(
        self, values: list[RollValue], dice: Dice | None, generator: DiceGenerator
    ) -> list[RollValue]:
        _check_selection(values, self.n)
        return keep_best(values, len(values) - self.n) + generator.roll(self.n, dice)

    def __str__(self) -> str:
        return f"reroll-worst({self.n})"


@dataclass(frozen=True)
class CountValues:
    """Aggregation turning a session into per-value occurrence counts."""

    @property
    def name(self) -> str:
        return type(self).__name__

    def __str__(self) -> str:
        return "count"


Aggregation = Union[CountValues]


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------


def apply_action(action: Action, rolls: Rolls, generator: DiceGenerator) -> Rolls:
    """Apply one action to one request's rolls and return the new rolls.

    Args:
        action: The action to apply.
        rolls: Current rolls of a single request.
        generator: Random source for actions that roll again.

    Returns:
        A new Rolls of the same shape, its description extended with the action.

    Raises:
        IncompatibleActionError: If the action is not defined for the rolls' kind,
            or needs a dice and the rolls come from an aggregation.
        BadActionParameterError: If a selection asks for more rolls than available.
    """
    if not action.is_compatible(rolls.kind):
        raise IncompatibleActionError(action.name, rolls.kind.value)
    if action.needs_dice and rolls.dice is None:
        raise IncompatibleActionError(
            action.name, rolls.kind.value, "aggregated results have no dice to roll"
        )
    values = action.transform(list(rolls.values), rolls.dice, generator)
    logger.debug("Applied %s to %s: %s", action, rolls.description, values)
    return dataclasses.replace(rolls, description=f"{rolls.description} {action}", values=values)


def total(results: Sequence[Rolls]) -> NumericRolls:
    """Sum every value of every result into a single numeric result.

    The description lists each contributing sub-total. An empty session
    totals to 0.

    Raises:
        IncompatibleActionError: If any result is not numeric.
    """
    for rolls in results:
        if rolls.kind is not RollKind.numeric:
            raise IncompatibleActionError(
                Total().name, rolls.kind.value, "only numeric rolls can be totalled"
            )
    if not results:
        return NumericRolls(description="TOTAL (no dice to total)", values=(0,))
    detail = ", ".join(f"{rolls.description}: {sum(rolls.values)}" for rolls in results)
    grand_total = sum(sum(rolls.values) for rolls in results)
    return NumericRolls(description=f"TOTAL ({detail})", values=(grand_total,))


def count_values(results: Sequence[Rolls]) -> list[NumericRolls]:
    """Count occurrences of each distinct value across all results.

    Returns:
        One numeric result per distinct value, ordered by value, described as
        COUNT(<value>) and holding the occurrence count. Fudge faces use their
        notation symbol (COUNT(blank), not COUNT(0)).
    """
    counts = Counter(value for rolls in results for value in rolls.values)
    return [
        NumericRolls(description=f"COUNT({_symbol(value)})", values=(counts[value],))
        for value in sorted(counts, key=_sort_key)
    ]
