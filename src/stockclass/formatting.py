"""Display helpers for won amounts and percentages."""

from __future__ import annotations

import math
from typing import Optional

NO_DATA = "정보 없음"


def format_won(amount: float) -> str:
    """Return ``amount`` with thousands separators and a 원 suffix."""

    if math.isnan(amount):
        return NO_DATA
    if float(amount).is_integer():
        return f"{int(amount):,}원"
    return f"{amount:,.2f}원"


def format_quantity(quantity: float) -> str:
    if float(quantity).is_integer():
        return f"{int(quantity):,}"
    return f"{quantity:,.2f}"


def format_return(pct: Optional[float]) -> str:
    """Return ``pct`` to two decimals; NaN and ``None`` render as no data."""

    if pct is None or math.isnan(pct) or math.isinf(pct):
        return NO_DATA
    return f"{pct:.2f}%"


def return_tone(pct: Optional[float]) -> str:
    """CSS tone for a return: gains are red and losses blue, as on Korean boards."""

    if pct is None or math.isnan(pct) or pct == 0:
        return "even"
    return "gain" if pct > 0 else "loss"


__all__ = ["NO_DATA", "format_quantity", "format_return", "format_won", "return_tone"]
