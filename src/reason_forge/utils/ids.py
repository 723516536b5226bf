"""
Identifier generators for graphs and nodes.

Reasoners take any `IdGenerator`; the default produces UUID4 strings, which
stay unique no matter how quickly nodes are created. Tests inject a
`SequentialIdGenerator` to get predictable ids.
"""

import itertools
import uuid
from threading import Lock
from typing import Protocol


class IdGenerator(Protocol):
    """Protocol for id generators: each call returns a new unique string."""
    def __call__(self) -> str:
        ...


class UUIDGenerator:
    """Random UUID4 ids."""

    def __call__(self) -> str:
        return str(uuid.uuid4())


class SequentialIdGenerator:
    """Deterministic ids of the form '<prefix>-<n>'; thread-safe."""

    def __init__(self, prefix: str = "id", start: int = 1):
        self.prefix = prefix
        self._counter = itertools.count(start)
        self._lock = Lock()

    def __call__(self) -> str:
        with self._lock:
            return f"{self.prefix}-{next(self._counter)}"
