"""Dice model: what can be rolled, how many times, and what came out.

Two roll kinds exist. Numeric dice produce integers; fudge dice produce one of
plus, minus or blank. Constant and repeating dice work for both kinds, the kind
being derived from the values they hold.

Examples:
    NumberedDice(20)           -> a D20
    ConstDice(5)               -> always 5 (written +5 in a request)
    RepeatingDice((1, 2, 3))   -> 1, 2, 3, 1, 2, 3, ...
    FudgeDice()                -> +, - or 0
"""

from __future__ import annotations

import enum
import re
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, ClassVar, Union

from letsroll.config import settings
from letsroll.errors import BadDiceError

if TYPE_CHECKING:
    from letsroll.actions import Action

IDENTIFIER_RE = re.compile(r"[A-Z][A-Z0-9_]+")


# ---------------------------------------------------------------------------
# Roll values
# ---------------------------------------------------------------------------


class RollKind(str, enum.Enum):
    """Kind of values a dice produces."""

    numeric = "numeric"
    fudge = "fudge"


class FudgeRoll(str, enum.Enum):
    """Face of a fudge (fate) die."""

    plus = "+"
    minus = "-"
    blank = "0"

    @property
    def score(self) -> int:
        """Return +1, -1 or 0; also used to order fudge faces."""
        return {"+": 1, "-": -1, "0": 0}[self.value]

    def __str__(self) -> str:
        return self.value


RollValue = Union[int, FudgeRoll]


def _kind_of(value: RollValue) -> RollKind:
    if isinstance(value, FudgeRoll):
        return RollKind.fudge
    if isinstance(value, int) and not isinstance(value, bool):
        return RollKind.numeric
    raise BadDiceError(f"Unsupported dice value: {value!r}")


# ---------------------------------------------------------------------------
# Dice
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ConstDice:
    """A dice that always rolls the same value."""

    value: RollValue

    def __post_init__(self) -> None:
        _kind_of(self.value)

    @property
    def kind(self) -> RollKind:
        return _kind_of(self.value)

    def get_max_value(self) -> int:
        if self.kind is not RollKind.numeric:
            raise BadDiceError("Fudge dice have no maximum value")
        return self.value  # type: ignore[return-value]

    def __str__(self) -> str:
        return f"+{self.value}" if self.kind is RollKind.numeric else str(self.value)


@dataclass(frozen=True)
class NumberedDice:
    """An N-sided dice rolling uniformly in [1, sides]."""

    sides: int
    kind: ClassVar[RollKind] = RollKind.numeric

    def __post_init__(self) -> None:
        if isinstance(self.sides, bool) or not isinstance(self.sides, int) or self.sides < 1:
            raise BadDiceError(f"A numbered dice needs at least one side, got {self.sides!r}")

    def get_max_value(self) -> int:
        return self.sides

    def __str__(self) -> str:
        return f"D{self.sides}"


@dataclass(frozen=True)
class RepeatingDice:
    """A dice cycling through a fixed, non-empty sequence of values."""

    values: tuple[RollValue, ...]

    def __post_init__(self) -> None:
        object.__setattr__(self, "values", tuple(self.values))
        if not self.values:
            raise BadDiceError("A repeating dice needs at least one value")
        kinds = {_kind_of(value) for value in self.values}
        if len(kinds) > 1:
            raise BadDiceError("A repeating dice cannot mix numeric and fudge values")

    @property
    def kind(self) -> RollKind:
        return _kind_of(self.values[0])

    def get_max_value(self) -> int:
        if self.kind is not RollKind.numeric:
            raise BadDiceError("Fudge dice have no maximum value")
        return max(self.values)  # type: ignore[type-var]

    def __str__(self) -> str:
        return "[" + "".join(f"{value}," for value in self.values) + "...]"


@dataclass(frozen=True)
class FudgeDice:
    """The three-faced fate die: blank, plus or minus."""

    kind: ClassVar[RollKind] = RollKind.fudge

    def __str__(self) -> str:
        return "F"


Dice = Union[ConstDice, NumberedDice, RepeatingDice, FudgeDice]


# ---------------------------------------------------------------------------
# Requests and results
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RollRequest:
    """How many times to roll which dice, plus the actions private to it.

    Args:
        number: Roll count, between 1 and settings.max_dice_number.
        dice: The dice to roll.
        identifier: Optional name given in a group, e.g. "FIRE".
        actions: Actions applied to this request only, in order.
    """

    number: int
    dice: Dice
    identifier: str | None = None
    actions: tuple[Action, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        object.__setattr__(self, "actions", tuple(self.actions))
        if isinstance(self.number, bool) or not isinstance(self.number, int):
            raise BadDiceError(f"Roll count must be an integer, got {self.number!r}")
        if not 1 <= self.number <= settings.max_dice_number:
            raise BadDiceError(
                f"Roll count must be between 1 and {settings.max_dice_number}, got {self.number}"
            )
        if self.identifier is not None and not IDENTIFIER_RE.fullmatch(self.identifier):
            raise BadDiceError(f"Invalid identifier: {self.identifier!r}")

    @property
    def kind(self) -> RollKind:
        return self.dice.kind

    def __str__(self) -> str:
        if self.number == 1 and isinstance(self.dice, ConstDice):
            text = str(self.dice)
        else:
            text = f"{self.number}{self.dice}"
        if self.identifier:
            return f"{self.identifier} {text}"
        return text


@dataclass(frozen=True)
class Rolls:
    """Values currently held for one request, with a running description.

    Instances are never mutated: every action returns a new Rolls. Aggregated
    results (totals, counts) have no originating request.
    """

    description: str
    values: tuple[RollValue, ...]
    request: RollRequest | None = None
    kind: ClassVar[RollKind]

    def __post_init__(self) -> None:
        object.__setattr__(self, "values", tuple(self.values))

    @property
    def dice(self) -> Dice | None:
        return self.request.dice if self.request is not None else None

    def __str__(self) -> str:
        return f"{self.description}: " + " ".join(str(value) for value in self.values)


@dataclass(frozen=True)
class NumericRolls(Rolls):
    kind: ClassVar[RollKind] = RollKind.numeric


@dataclass(frozen=True)
class FudgeRolls(Rolls):
    kind: ClassVar[RollKind] = RollKind.fudge


def rolls_class(kind: RollKind) -> type[Rolls]:
    """Return the concrete Rolls shape for a roll kind."""
    return NumericRolls if kind is RollKind.numeric else FudgeRolls
