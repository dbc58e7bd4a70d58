"""Ranking helpers for the teacher's student list."""

from __future__ import annotations

import locale
import math
from enum import Enum
from functools import cmp_to_key
from typing import Callable, List, Optional, Sequence

from .models import StudentAccount


class RankingKey(str, Enum):
    """Fields the student list can be re-ordered by."""

    TOTAL_VALUE = "total_value"
    TOTAL_RETURN = "total_return"
    CASH = "cash"
    HOLDING_COUNT = "holding_count"
    NAME = "name"

    @property
    def label(self) -> str:
        return RANKING_LABELS[self]


RANKING_LABELS = {
    RankingKey.TOTAL_VALUE: "총자산 순",
    RankingKey.TOTAL_RETURN: "평가금 순",
    RankingKey.CASH: "현금 순",
    RankingKey.HOLDING_COUNT: "보유종목 수량순",
    RankingKey.NAME: "이름 순",
}


def _total_value(student: StudentAccount) -> Optional[float]:
    valuation = student.valuation()
    return valuation.total_value if valuation else None


def _total_return(student: StudentAccount) -> Optional[float]:
    valuation = student.valuation()
    return valuation.total_return if valuation else None


def _cash(student: StudentAccount) -> Optional[float]:
    portfolio = student.portfolio
    return portfolio.cash if portfolio else None


def _holding_count(student: StudentAccount) -> Optional[float]:
    portfolio = student.portfolio
    return float(portfolio.holding_count) if portfolio else None


_METRICS: dict[RankingKey, Callable[[StudentAccount], Optional[float]]] = {
    RankingKey.TOTAL_VALUE: _total_value,
    RankingKey.TOTAL_RETURN: _total_return,
    RankingKey.CASH: _cash,
    RankingKey.HOLDING_COUNT: _holding_count,
}


def _descending(metric: Callable[[StudentAccount], Optional[float]]) -> Callable[[StudentAccount, StudentAccount], int]:
    def compare(a: StudentAccount, b: StudentAccount) -> int:
        value_a = metric(a)
        value_b = metric(b)
        # Students without a readable portfolio never move relative to others.
        if value_a is None or value_b is None:
            return 0
        diff = value_b - value_a
        if math.isnan(diff) or diff == 0:
            return 0
        return 1 if diff > 0 else -1

    return compare


def _by_name(a: StudentAccount, b: StudentAccount) -> int:
    return locale.strcoll(a.name, b.name)


def parse_ranking_key(raw: str) -> RankingKey:
    try:
        return RankingKey(raw)
    except ValueError:
        raise ValueError(f"Unknown ranking key: {raw!r}") from None


def rank_students(students: Sequence[StudentAccount], key: RankingKey | str) -> List[StudentAccount]:
    """Return a new list of ``students`` ordered by ``key``.

    Numeric keys sort descending, names ascending.  The sort is stable, so
    ranking an already ranked list by a second key keeps the first order
    among ties.
    """

    ranking_key = parse_ranking_key(key)
    if ranking_key is RankingKey.NAME:
        compare = _by_name
    else:
        compare = _descending(_METRICS[ranking_key])
    return sorted(students, key=cmp_to_key(compare))


__all__ = ["RANKING_LABELS", "RankingKey", "parse_ranking_key", "rank_students"]
