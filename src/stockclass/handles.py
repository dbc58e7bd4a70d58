"""Account handle and initial password generation."""

from __future__ import annotations

import random
from typing import Callable, Optional, Protocol

from .exceptions import HandleExhaustedError

SUFFIX_LOW = 1000
SUFFIX_HIGH = 9999
DEFAULT_MAX_ATTEMPTS = SUFFIX_HIGH - SUFFIX_LOW + 1


class RandomSource(Protocol):
    def randint(self, a: int, b: int) -> int: ...


def _suffix(rng: RandomSource) -> str:
    return str(rng.randint(SUFFIX_LOW, SUFFIX_HIGH))


def generate_unique_handle(
    base: str,
    exists: Callable[[str], bool],
    *,
    rng: Optional[RandomSource] = None,
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
) -> str:
    """Return ``base`` followed by a random four digit suffix not yet taken.

    ``exists`` is asked about each candidate in turn.  Suffixes are drawn with
    replacement, so ``max_attempts`` draws do not guarantee every suffix was
    tried; running out raises :class:`HandleExhaustedError`.
    """

    if max_attempts <= 0:
        raise ValueError("max_attempts must be positive")
    source = rng or random
    for _ in range(max_attempts):
        candidate = f"{base}{_suffix(source)}"
        if not exists(candidate):
            return candidate
    raise HandleExhaustedError(f"No free handle for {base!r} after {max_attempts} attempts.")


def generate_password(*, rng: Optional[RandomSource] = None) -> str:
    """Return a four digit initial password."""

    return _suffix(rng or random)


__all__ = [
    "DEFAULT_MAX_ATTEMPTS",
    "RandomSource",
    "generate_password",
    "generate_unique_handle",
]
