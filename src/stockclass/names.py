"""Validation of the student name batches typed in by teachers."""

from __future__ import annotations

import re
from typing import List

from .exceptions import InvalidStudentNameError

# Optional class number prefix, then at least two Hangul syllables.
KOREAN_NAME_PATTERN = re.compile(r"[0-9\s]*[가-힣]{2,}")

EMPTY_BATCH_MESSAGE = "학생 이름을 입력해주세요."
INVALID_NAME_MESSAGE = "학생 이름은 한글로 2자 이상 입력해주세요."


def is_valid_korean_name(name: str) -> bool:
    return KOREAN_NAME_PATTERN.fullmatch(name) is not None


def parse_name_batch(text: str) -> List[str]:
    """Split ``text`` into trimmed names, rejecting the batch if any is invalid."""

    names = [line.strip() for line in (text or "").splitlines() if line.strip()]
    if not names:
        raise InvalidStudentNameError(EMPTY_BATCH_MESSAGE)
    invalid = tuple(name for name in names if not is_valid_korean_name(name))
    if invalid:
        raise InvalidStudentNameError(INVALID_NAME_MESSAGE, invalid)
    return names


__all__ = [
    "EMPTY_BATCH_MESSAGE",
    "INVALID_NAME_MESSAGE",
    "KOREAN_NAME_PATTERN",
    "is_valid_korean_name",
    "parse_name_batch",
]
