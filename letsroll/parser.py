"""Reader for dice request notation.

Grammar (whitespace separated):

    request     ::= (dice | group)+ action* [aggregation]
    dice        ::= [count] "D" sides        numbered dice, e.g. 3D6, D20
                  | "+" value                constant, e.g. +5
                  | [count] "F"              fudge dice, e.g. 4F
    group       ::= "(" ID dice action* ")"  e.g. (FIRE 2D6 explode(6))
    action      ::= "reroll(" values ")" | "explode(" values ")"
                  | "x" factor | "flip" | "sum" | "total"
                  | "keep-best(" n ")" | "keep-worst(" n ")"
                  | "reroll-best(" n ")" | "reroll-worst(" n ")"
    aggregation ::= "count"
    values      ::= numbers, or fudge symbols among "+", "-", "blank"

Actions written inside a group apply to that group's dice only; actions after
the last dice apply to every dice. Errors report the offending fragment and
its offset in the request.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterator
from dataclasses import dataclass, field

from letsroll.actions import (
    FUDGE_SYMBOLS,
    Action,
    Aggregation,
    CountValues,
    Explode,
    ExplodeFudge,
    FlipFlop,
    KeepBest,
    KeepWorst,
    MultiplyBy,
    RerollBest,
    RerollFudge,
    RerollNumeric,
    RerollWorst,
    Sum,
    Total,
)
from letsroll.config import settings
from letsroll.dice import (
    IDENTIFIER_RE,
    ConstDice,
    Dice,
    FudgeDice,
    NumberedDice,
    RollKind,
    RollRequest,
)
from letsroll.errors import BadDiceError, ParseDiceError, ParseError

logger = logging.getLogger(__name__)

_TOKEN_RE = re.compile(
    r"""
      (?P<space>\s+)
    | (?P<open>\()
    | (?P<close>\))
    | (?P<word>[^\s()]+(?:\([^()]*\))?)
    """,
    re.VERBOSE,
)

_NUMBERED_RE = re.compile(r"^(?P<count>\d*)[dD](?P<sides>\d+)$")
_CONST_RE = re.compile(r"^\+(?P<value>\d+)$")
_FUDGE_RE = re.compile(r"^(?P<count>\d*)[fF]$")
_ACTION_RE = re.compile(r"^(?P<keyword>[a-z][a-z-]*)(?:\((?P<args>[^()]*)\))?$")
_MULTIPLY_RE = re.compile(r"^x(?P<factor>\d+)$")
_NUMBER_RE = re.compile(r"^\d+$")

_SIMPLE_ACTIONS: dict[str, type[Action]] = {
    "flip": FlipFlop,
    "sum": Sum,
    "total": Total,
}
_SELECT_ACTIONS: dict[str, type[Action]] = {
    "keep-best": KeepBest,
    "keep-worst": KeepWorst,
    "reroll-best": RerollBest,
    "reroll-worst": RerollWorst,
}
_AGGREGATIONS: dict[str, type[CountValues]] = {
    "count": CountValues,
}


@dataclass
class ParsedRequest:
    """Everything read from one request string, before any dice is rolled."""

    numeric_requests: list[RollRequest] = field(default_factory=list)
    fudge_requests: list[RollRequest] = field(default_factory=list)
    actions: list[Action] = field(default_factory=list)
    aggregation: Aggregation | None = None

    @property
    def requests(self) -> list[RollRequest]:
        return self.numeric_requests + self.fudge_requests


@dataclass(frozen=True)
class _Token:
    kind: str
    text: str
    position: int


def _tokenize(text: str) -> Iterator[_Token]:
    for match in _TOKEN_RE.finditer(text):
        kind = match.lastgroup
        if kind == "space":
            continue
        yield _Token(kind, match.group(), match.start())


# ---------------------------------------------------------------------------
# Dice tokens
# ---------------------------------------------------------------------------


def _to_int(digits: str, default: int) -> int:
    return int(digits) if digits else default


def parse_dice(text: str, position: int | None = None) -> tuple[int, Dice]:
    """Parse a single dice token into (roll count, dice).

    Args:
        text: Dice token, e.g. "3D6", "D20", "+5", "4F".
        position: Offset of the token in the full request, for error reporting.

    Raises:
        ParseDiceError: If the token is not a dice or is out of range.
    """
    match = _NUMBERED_RE.match(text)
    if match:
        count = _to_int(match.group("count"), 1)
        sides = int(match.group("sides"))
        if sides > settings.max_dice_sides:
            raise ParseDiceError(
                f"Too many sides: {sides} (max {settings.max_dice_sides})", text, position
            )
        try:
            return count, NumberedDice(sides)
        except BadDiceError as exc:
            raise ParseDiceError(str(exc), text, position) from exc

    match = _CONST_RE.match(text)
    if match:
        return 1, ConstDice(int(match.group("value")))

    match = _FUDGE_RE.match(text)
    if match:
        return _to_int(match.group("count"), 1), FudgeDice()

    raise ParseDiceError(
        f"Expected something like 'D20', '3D6', '+5' or '4F' but got {text!r}", text, position
    )


def _build_request(
    text: str,
    position: int,
    identifier: str | None = None,
    actions: list[Action] | None = None,
) -> RollRequest:
    count, dice = parse_dice(text, position)
    try:
        return RollRequest(count, dice, identifier=identifier, actions=tuple(actions or ()))
    except BadDiceError as exc:
        raise ParseDiceError(str(exc), text, position) from exc


def _looks_like_dice(text: str) -> bool:
    return not text[0].islower()


# ---------------------------------------------------------------------------
# Action tokens
# ---------------------------------------------------------------------------


def _parse_trigger_values(
    args: str, keyword: str, text: str, position: int | None
) -> tuple[RollKind, frozenset]:
    items = [item.strip() for item in args.split(",")]
    if not all(items):
        raise ParseError(f"Empty value in {keyword}(...)", text, position)
    if all(_NUMBER_RE.match(item) for item in items):
        return RollKind.numeric, frozenset(int(item) for item in items)
    if all(item in FUDGE_SYMBOLS for item in items):
        return RollKind.fudge, frozenset(FUDGE_SYMBOLS[item] for item in items)
    if any(_NUMBER_RE.match(item) for item in items) and any(
        item in FUDGE_SYMBOLS for item in items
    ):
        raise ParseError(f"Cannot mix numeric and fudge values in {keyword}(...)", text, position)
    raise ParseError(f"Invalid value list for {keyword}: {args!r}", text, position)


def parse_action(text: str, position: int | None = None) -> Action:
    """Parse a single action token, e.g. "reroll(1,2)", "x10" or "keep-best(3)".

    Raises:
        ParseError: If the keyword is unknown or its arguments are malformed.
    """
    match = _MULTIPLY_RE.match(text)
    if match:
        return MultiplyBy(int(match.group("factor")))

    match = _ACTION_RE.match(text)
    if not match:
        raise ParseError(f"Unknown action {text!r}", text, position)
    keyword, args = match.group("keyword"), match.group("args")

    if keyword in _SIMPLE_ACTIONS:
        if args is not None:
            raise ParseError(f"Action {keyword!r} takes no arguments", text, position)
        return _SIMPLE_ACTIONS[keyword]()

    if keyword in ("reroll", "explode"):
        if not args or not args.strip():
            raise ParseError(f"Action {keyword!r} needs at least one value", text, position)
        kind, values = _parse_trigger_values(args, keyword, text, position)
        if keyword == "reroll":
            return RerollNumeric(values) if kind is RollKind.numeric else RerollFudge(values)
        return Explode(values) if kind is RollKind.numeric else ExplodeFudge(values)

    if keyword in _SELECT_ACTIONS:
        if args is None or not _NUMBER_RE.match(args.strip()):
            raise ParseError(
                f"Action {keyword!r} needs a number, e.g. {keyword}(2)", text, position
            )
        return _SELECT_ACTIONS[keyword](int(args.strip()))

    raise ParseError(f"Unknown action {keyword!r}", text, position)


# ---------------------------------------------------------------------------
# Request
# ---------------------------------------------------------------------------


def parse_request(text: str) -> ParsedRequest:
    """Parse a full request string.

    Args:
        text: Request such as "5D8 4D2 +1000 reroll(1) explode(6) keep-best(3)".

    Returns:
        The numeric and fudge requests, the global actions and the aggregation.

    Raises:
        ParseError: On the first syntax error found.
        ParseDiceError: If a dice token is malformed.
    """
    parsed = ParsedRequest()
    tokens = _tokenize(text)

    for token in tokens:
        if parsed.aggregation is not None:
            raise ParseError(
                f"{parsed.aggregation} must be the last element of a request",
                token.text,
                token.position,
            )

        if token.kind == "close":
            raise ParseError("Unbalanced ')'", token.text, token.position)

        if token.kind == "open":
            if parsed.actions:
                raise ParseError("Dice must come before actions", token.text, token.position)
            _add_request(parsed, _parse_group(token, tokens))
            continue

        if token.text in _AGGREGATIONS:
            parsed.aggregation = _AGGREGATIONS[token.text]()
            continue

        if not _looks_like_dice(token.text) and not _is_dice(token.text):
            parsed.actions.append(parse_action(token.text, token.position))
            continue

        if parsed.actions:
            raise ParseError("Dice must come before actions", token.text, token.position)
        _add_request(parsed, _build_request(token.text, token.position))

    if not parsed.requests:
        raise ParseError("No dice to roll", text.strip(), 0)

    logger.debug(
        "Parsed %r: %d numeric, %d fudge, actions=%s, aggregation=%s",
        text,
        len(parsed.numeric_requests),
        len(parsed.fudge_requests),
        [str(action) for action in parsed.actions],
        parsed.aggregation,
    )
    return parsed


def _is_dice(text: str) -> bool:
    return bool(_NUMBERED_RE.match(text) or _FUDGE_RE.match(text))


def _add_request(parsed: ParsedRequest, request: RollRequest) -> None:
    if request.kind is RollKind.numeric:
        parsed.numeric_requests.append(request)
    else:
        parsed.fudge_requests.append(request)


def _parse_group(opening: _Token, tokens: Iterator[_Token]) -> RollRequest:
    """Read "(ID dice action*)" once the opening parenthesis is consumed."""
    identifier = next(tokens, None)
    if identifier is None or identifier.kind != "word":
        raise ParseError("Expected an identifier after '('", opening.text, opening.position)
    if not IDENTIFIER_RE.fullmatch(identifier.text):
        raise ParseError(
            f"Invalid identifier {identifier.text!r}: expected an uppercase letter "
            "followed by uppercase letters, digits or '_'",
            identifier.text,
            identifier.position,
        )

    dice = next(tokens, None)
    if dice is None or dice.kind != "word":
        raise ParseError(
            f"Group {identifier.text} needs a dice", identifier.text, identifier.position
        )

    actions: list[Action] = []
    for token in tokens:
        if token.kind == "close":
            return _build_request(dice.text, dice.position, identifier.text, actions)
        if token.kind == "open":
            raise ParseError("Groups cannot be nested", token.text, token.position)
        if token.text in _AGGREGATIONS:
            raise ParseError(
                f"{token.text} cannot be used inside a group", token.text, token.position
            )
        actions.append(parse_action(token.text, token.position))

    raise ParseError(
        f"Group {identifier.text} is missing its closing ')'", opening.text, opening.position
    )
