import os
import tempfile
from pathlib import Path

import pytest

_DB_DIR = Path(tempfile.mkdtemp(prefix="stockclass-tests-"))
os.environ.setdefault("STOCKCLASS_SQLITE", str(_DB_DIR / "stockclass.db"))
os.environ.setdefault("TEACHER_PASSCODE", "2468")
os.environ.setdefault("SESSION_SECRET", "test-session-secret")


class SequenceRandom:
    """Deterministic stand-in for :mod:`random` that replays fixed draws."""

    def __init__(self, values):
        self._values = list(values)
        self.calls = 0

    def randint(self, a: int, b: int) -> int:
        self.calls += 1
        value = self._values.pop(0) if self._values else a
        assert a <= value <= b
        return value


@pytest.fixture()
def sequence_random():
    return SequenceRandom
