"""
Id generators passed into the engine wherever it creates matches or slots.
"""
import itertools
import uuid
from typing import Callable

IdGenerator = Callable[[], str]


class SequentialIds:
    """Deterministic ids: ``prefix1``, ``prefix2``, ..."""

    def __init__(self, prefix: str = 'id'):
        self.prefix = prefix
        self._counter = itertools.count(1)

    def __call__(self) -> str:
        return f"{self.prefix}{next(self._counter)}"

    def __repr__(self):
        return f"SequentialIds(prefix={self.prefix})"


def random_ids(length: int = 9) -> IdGenerator:
    """Return a generator of short random ids."""
    def new_id() -> str:
        return uuid.uuid4().hex[:length]
    return new_id
