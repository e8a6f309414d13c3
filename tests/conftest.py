"""Shared fixtures for the letsroll test suite.

generator
    A DiceGenerator seeded with a fixed value, for tests that only need
    reproducible values within their bounds.

scripted_generator
    Factory building a DiceGenerator over a mocked random source. Numbered
    dice draw from `randint` side effects and fudge dice from `choice` side
    effects, so a test can state exactly which values come out.

Constant and repeating dice never touch the random source; most action tests
use them directly and need no fixture.
"""

from __future__ import annotations

import unittest.mock

import pytest

from letsroll.generators import DiceGenerator


@pytest.fixture
def generator() -> DiceGenerator:
    return DiceGenerator(seed=1234)


@pytest.fixture
def scripted_generator():
    """Return a factory: scripted_generator(randint=[...], choice=[...])."""

    def _build(randint=(), choice=()) -> DiceGenerator:
        rng = unittest.mock.MagicMock()
        rng.randint.side_effect = list(randint)
        rng.choice.side_effect = list(choice)
        return DiceGenerator(rng=rng)

    return _build
