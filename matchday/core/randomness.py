"""
Injected randomness for award tie-breaks.

Single-winner elections break ties with an unweighted coin flip. The source
is injectable so tests can force each branch of a tie.
"""
import random
from typing import Any, List, Optional, Protocol, Sequence


class RandomSource(Protocol):
    def choice(self, items: Sequence[Any]) -> Any: ...


class PythonRandomSource:
    """Default source backed by random.Random."""

    def __init__(self, seed: Optional[int] = None):
        self._rng = random.Random(seed)

    def choice(self, items: Sequence[Any]) -> Any:
        if not items:
            raise ValueError("choice items must not be empty")
        return self._rng.choice(list(items))


class ScriptedRandomSource:
    """
    Picks by scripted index, cycling through the script.

    ScriptedRandomSource([1]) always takes the second tied candidate.
    """

    def __init__(self, picks: List[int]):
        if not picks:
            raise ValueError("picks must not be empty")
        self._picks = list(picks)
        self._cursor = 0
        self.calls: List[List[Any]] = []

    def choice(self, items: Sequence[Any]) -> Any:
        if not items:
            raise ValueError("choice items must not be empty")
        options = list(items)
        self.calls.append(options)
        index = self._picks[self._cursor % len(self._picks)]
        self._cursor += 1
        return options[index % len(options)]


def default_random() -> PythonRandomSource:
    return PythonRandomSource(seed=None)
