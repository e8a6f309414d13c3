"""Roll sessions: roll every request, run the action pipeline, render the report.

A session holds the current rolls of every request of one kind (numeric or
fudge). Its pipeline is linear:

    rolled -> per-request actions -> global actions -> [total | count]

Totals and counts are terminal; the session accepts no step afterwards.
A MultiSession pairs at most one numeric and one fudge session so a single
request string can mix both kinds.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from typing import ClassVar

from letsroll.actions import Action, Aggregation, Total, apply_action, count_values, total
from letsroll.config import settings
from letsroll.dice import RollKind, RollRequest, Rolls, rolls_class
from letsroll.errors import IncompatibleActionError
from letsroll.generators import DiceGenerator
from letsroll.parser import ParsedRequest, parse_request

logger = logging.getLogger(__name__)


class Session:
    """Current rolls of a set of requests sharing one roll kind.

    Args:
        requests: Requests to roll; all must be of the session's kind.
        generator: Random source owned by this session. A fresh one seeded
            from settings.seed is created when omitted.
    """

    kind: ClassVar[RollKind]

    def __init__(
        self, requests: Iterable[RollRequest], generator: DiceGenerator | None = None
    ) -> None:
        self.requests: list[RollRequest] = list(requests)
        self.generator = generator if generator is not None else DiceGenerator(settings.seed)
        self.terminated = False
        for request in self.requests:
            if request.kind is not self.kind:
                raise IncompatibleActionError(
                    "roll", self.kind.value, f"{request} is a {request.kind.value} request"
                )
        self.results: list[Rolls] = [self._roll(request) for request in self.requests]

    def _roll(self, request: RollRequest) -> Rolls:
        values = self.generator.roll(request.number, request.dice)
        return rolls_class(request.kind)(description=str(request), values=values, request=request)

    def _ensure_open(self, step: str) -> None:
        if self.terminated:
            raise IncompatibleActionError(
                step, self.kind.value, "no action may follow a total or a count"
            )

    def apply_request_actions(self) -> None:
        """Apply each request's private actions to its own rolls."""
        self._ensure_open("request actions")
        self.results = [self._apply_all(rolls.request.actions, rolls) for rolls in self.results]

    def _apply_all(self, actions: Sequence[Action], rolls: Rolls) -> Rolls:
        for action in actions:
            rolls = apply_action(action, rolls, self.generator)
        return rolls

    def add_step(self, action: Action) -> None:
        """Apply a global action to every request's current rolls.

        A Total replaces all results with a single aggregate and ends the
        pipeline.

        Raises:
            IncompatibleActionError: If the session is terminated or the action
                is not defined for this session's kind.
        """
        self._ensure_open(action.name)
        if isinstance(action, Total):
            self.results = [total(self.results)]
            self.terminated = True
            logger.debug("Totalled %s session: %s", self.kind.value, self.results[0])
            return
        if not action.is_compatible(self.kind):
            raise IncompatibleActionError(action.name, self.kind.value)
        self.results = [apply_action(action, rolls, self.generator) for rolls in self.results]

    def aggregate(self, aggregation: Aggregation) -> NumericSession:
        """Summarise the whole session into a new, terminated numeric session.

        The new session holds the count results only; it has no requests.

        Raises:
            IncompatibleActionError: If the session is already terminated.
        """
        self._ensure_open(aggregation.name)
        aggregated = NumericSession([], self.generator)
        aggregated.results = list(count_values(self.results))
        aggregated.terminated = True
        logger.debug(
            "Counted values of %s session: %d groups", self.kind.value, len(aggregated.results)
        )
        return aggregated

    def __str__(self) -> str:
        return "\n".join(str(rolls) for rolls in self.results)


class NumericSession(Session):
    kind: ClassVar[RollKind] = RollKind.numeric


class FudgeSession(Session):
    kind: ClassVar[RollKind] = RollKind.fudge


@dataclass
class MultiSession:
    """At most one numeric and one fudge session from the same request."""

    numeric: NumericSession | None = None
    fudge: FudgeSession | None = None

    @property
    def sessions(self) -> list[Session]:
        return [session for session in (self.numeric, self.fudge) if session is not None]

    @property
    def results(self) -> list[Rolls]:
        return [rolls for session in self.sessions for rolls in session.results]

    def __str__(self) -> str:
        return "\n".join(str(session) for session in self.sessions)


def run_session(session: Session, actions: Sequence[Action]) -> Session:
    """Run request actions then global actions on a freshly rolled session."""
    session.apply_request_actions()
    for action in actions:
        session.add_step(action)
    return session


def run_request(
    parsed: ParsedRequest,
    generator: DiceGenerator | None = None,
    auto_total: bool | None = None,
) -> MultiSession:
    """Roll a parsed request and apply its whole pipeline.

    Args:
        parsed: Output of parse_request.
        generator: Random source shared by both sessions. Defaults to a
            generator seeded from settings.seed.
        auto_total: Append a total to the numeric session when the request has
            neither global actions nor an aggregation. Defaults to
            settings.auto_total.

    Raises:
        IncompatibleActionError: If an action does not fit a session's kind.
        BadActionParameterError: If a selection asks for more rolls than exist.
    """
    if generator is None:
        generator = DiceGenerator(settings.seed)
    if auto_total is None:
        auto_total = settings.auto_total

    result = MultiSession()

    if parsed.numeric_requests:
        numeric_actions = list(parsed.actions)
        if auto_total and not parsed.actions and parsed.aggregation is None:
            numeric_actions.append(Total())
        numeric = run_session(NumericSession(parsed.numeric_requests, generator), numeric_actions)
        if parsed.aggregation is not None:
            numeric = numeric.aggregate(parsed.aggregation)
        result.numeric = numeric

    if parsed.fudge_requests:
        fudge = run_session(FudgeSession(parsed.fudge_requests, generator), parsed.actions)
        if parsed.aggregation is not None:
            counted = fudge.aggregate(parsed.aggregation)
            if result.numeric is not None:
                result.numeric.results.extend(counted.results)
            else:
                result.numeric = counted
        else:
            result.fudge = fudge

    return result


def roll(
    notation: str,
    generator: DiceGenerator | None = None,
    auto_total: bool | None = None,
) -> MultiSession:
    """Parse a request string, roll it and apply every action.

    Example:
        >>> print(roll("+5 (BONUS +2) total"))
        TOTAL (+5: 5, BONUS +2: 2): 7

    Raises:
        DiceError: Any parse, dice or action failure, as raised by the step that failed.
    """
    return run_request(parse_request(notation), generator=generator, auto_total=auto_total)
