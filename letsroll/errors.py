"""Exceptions raised while reading, rolling and transforming dice requests.

Every failure is terminal for the current request: parsing stops at the first
error, and a failing action aborts the rest of the session's pipeline.
"""

from __future__ import annotations


class DiceError(ValueError):
    """Base class for every letsroll failure."""


class ParseError(DiceError):
    """Raised when a request string does not follow the notation grammar.

    Attributes:
        fragment: The offending piece of input.
        position: Character offset of the fragment in the request, if known.
    """

    def __init__(self, message: str, fragment: str = "", position: int | None = None) -> None:
        self.fragment = fragment
        self.position = position
        if position is not None:
            message = f"{message} (at position {position})"
        super().__init__(message)


class ParseDiceError(ParseError):
    """Raised when a dice token is malformed or out of range."""


class IncompatibleActionError(DiceError):
    """Raised when an action cannot be applied to the rolls it was given.

    Covers actions defined for the other roll kind (summing fudge rolls) and
    anything requested after a terminal aggregation.
    """

    def __init__(self, action: str, roll_kind: str, reason: str = "") -> None:
        self.action = action
        self.roll_kind = roll_kind
        message = f"Action {action} is incompatible with {roll_kind} rolls"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class BadDiceError(DiceError):
    """Raised when a dice or roll request is built from invalid values."""


class BadActionParameterError(DiceError):
    """Raised when an action parameter cannot be honoured, e.g. keeping 5 of 3 rolls."""
