"""Portfolio valuation helpers for StockClass.

A student's game state arrives as a ``data`` payload that is either a JSON
string or an already parsed mapping.  :func:`decode_user_data` turns either
form into a :class:`UserData` once, and every valuation helper below works
on that canonical form only.
"""

from __future__ import annotations

import json
import math
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Union

from .exceptions import PayloadDecodeError
from .ops import get_logger

PayloadLike = Union[str, bytes, Mapping[str, Any], "UserData", None]


@dataclass(slots=True, frozen=True)
class Holding:
    """A quantity of one stock together with the price it was bought at."""

    quantity: float
    purchase_price: float


@dataclass(slots=True)
class Portfolio:
    """Cash balance plus every stock holding of a student."""

    cash: float
    holdings: Dict[str, Holding] = field(default_factory=dict)

    @property
    def holding_count(self) -> int:
        return len(self.holdings)


@dataclass(slots=True)
class MarketSnapshot:
    """Current prices grouped by sector, as seen by one student's game."""

    sectors: Dict[str, Dict[str, float]] = field(default_factory=dict)

    def price_of(self, stock_name: str) -> Optional[float]:
        """Return the first price listed for ``stock_name`` in any sector."""

        for prices in self.sectors.values():
            if stock_name in prices:
                return prices[stock_name]
        return None


@dataclass(slots=True)
class UserData:
    day_count: int = 0
    portfolio: Optional[Portfolio] = None
    market: MarketSnapshot = field(default_factory=MarketSnapshot)
    market_error: Optional[str] = None


@dataclass(slots=True, frozen=True)
class Valuation:
    total_value: float
    total_return: float

    @property
    def has_return(self) -> bool:
        return not math.isnan(self.total_return)


@dataclass(slots=True, frozen=True)
class HoldingView:
    """Display row for a single holding."""

    name: str
    quantity: float
    purchase_price: float
    current_price: Optional[float]
    return_pct: float

    @property
    def resolved(self) -> bool:
        return self.current_price is not None


# ---------------------------------------------------------------------------
# Decoding
# ---------------------------------------------------------------------------
def _number(value: Any, what: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise PayloadDecodeError(f"{what} must be a number, got {value!r}")
    return float(value)


def _decode_portfolio(raw: Any) -> Portfolio:
    if not isinstance(raw, Mapping):
        raise PayloadDecodeError("portfolio must be an object")
    cash = _number(raw.get("cash"), "portfolio.cash")
    stocks = raw.get("stocks") or {}
    if not isinstance(stocks, Mapping):
        raise PayloadDecodeError("portfolio.stocks must be an object")
    holdings: Dict[str, Holding] = {}
    for name, lot in stocks.items():
        if not isinstance(lot, Mapping):
            raise PayloadDecodeError(f"holding {name!r} must be an object")
        holdings[str(name)] = Holding(
            quantity=_number(lot.get("quantity"), f"{name}.quantity"),
            purchase_price=_number(lot.get("purchase_price"), f"{name}.purchase_price"),
        )
    return Portfolio(cash=cash, holdings=holdings)


def _decode_market(raw: Any) -> MarketSnapshot:
    """Decode ``data.stocks``.

    A quote without a numeric ``current_price`` is left out, so the holding
    it would price stays unresolved.  A listing that is not shaped as sectors
    of quotes raises :class:`PayloadDecodeError`.
    """

    if raw is None:
        return MarketSnapshot()
    if not isinstance(raw, Mapping):
        raise PayloadDecodeError("stocks must be an object")
    sectors: Dict[str, Dict[str, float]] = {}
    for sector, listing in raw.items():
        if not isinstance(listing, Mapping):
            raise PayloadDecodeError(f"sector {sector!r} must be an object")
        prices: Dict[str, float] = {}
        for name, quote in listing.items():
            price = quote.get("current_price") if isinstance(quote, Mapping) else quote
            try:
                prices[str(name)] = _number(price, f"{sector}.{name}.current_price")
            except PayloadDecodeError:
                continue
        sectors[str(sector)] = prices
    return MarketSnapshot(sectors=sectors)


def decode_user_data(payload: PayloadLike) -> Optional[UserData]:
    """Decode a raw ``data`` payload into :class:`UserData`.

    ``None`` and empty strings decode to ``None``.  A malformed document or
    portfolio raises :class:`~stockclass.exceptions.PayloadDecodeError`.  A
    malformed market does not: the portfolio is kept, the market is left
    empty and the problem is recorded in :attr:`UserData.market_error`.
    """

    if payload is None:
        return None
    if isinstance(payload, UserData):
        return payload
    if isinstance(payload, bytes):
        payload = payload.decode("utf-8", errors="replace")
    if isinstance(payload, str):
        if not payload.strip():
            return None
        try:
            payload = json.loads(payload)
        except ValueError as exc:
            raise PayloadDecodeError(f"data is not valid JSON: {exc}") from exc
    if not isinstance(payload, Mapping):
        raise PayloadDecodeError(f"data must be an object, got {type(payload).__name__}")
    portfolio_raw = payload.get("portfolio")
    portfolio = _decode_portfolio(portfolio_raw) if portfolio_raw is not None else None
    day_count = payload.get("day_count") or 0
    if not isinstance(day_count, int) or isinstance(day_count, bool):
        raise PayloadDecodeError("day_count must be an integer")
    try:
        market = _decode_market(payload.get("stocks"))
        market_error = None
    except PayloadDecodeError as exc:
        market, market_error = MarketSnapshot(), str(exc)
    return UserData(
        day_count=day_count,
        portfolio=portfolio,
        market=market,
        market_error=market_error,
    )


def load_user_data(payload: PayloadLike, *, account: str = "") -> Optional[UserData]:
    """Like :func:`decode_user_data` but logs and swallows decode failures."""

    try:
        decoded = decode_user_data(payload)
    except PayloadDecodeError as exc:
        get_logger().log("payload_decode_failed", account=account, error=str(exc))
        return None
    if decoded is not None and decoded.market_error:
        get_logger().log("market_decode_failed", account=account, error=decoded.market_error)
    return decoded


# ---------------------------------------------------------------------------
# Valuation
# ---------------------------------------------------------------------------
def holding_return(purchase_price: float, current_price: float) -> float:
    """Return the percentage change from ``purchase_price``; NaN when it is 0."""

    if purchase_price == 0:
        return math.nan
    return (current_price - purchase_price) / purchase_price * 100


def resolve_price(market: MarketSnapshot, stock_name: str) -> Optional[float]:
    price = market.price_of(stock_name)
    # A listed price of zero is treated the same as a missing listing.
    if not price:
        return None
    return price


def value_portfolio(portfolio: Portfolio, market: MarketSnapshot) -> Valuation:
    """Mark ``portfolio`` to ``market``.

    Holdings whose price cannot be resolved are left out of both the current
    value and the invested amount.
    """

    current_value = portfolio.cash
    invested = portfolio.cash
    for name, holding in portfolio.holdings.items():
        price = resolve_price(market, name)
        if price is None:
            continue
        current_value += price * holding.quantity
        invested += holding.purchase_price * holding.quantity
    if invested == 0:
        total_return = math.nan
    else:
        total_return = (current_value - invested) / invested * 100
    return Valuation(total_value=current_value, total_return=total_return)


def valuate(portfolio: Portfolio, data: PayloadLike, *, account: str = "") -> Valuation:
    """Value ``portfolio`` against the market found in the raw ``data`` payload.

    A payload that fails to decode yields a cash-only valuation with a zero
    return; the failure is logged.
    """

    fallback = Valuation(total_value=portfolio.cash, total_return=0.0)
    try:
        decoded = decode_user_data(data)
    except PayloadDecodeError as exc:
        get_logger().log("valuation_fallback", account=account, error=str(exc))
        return fallback
    if decoded is not None and decoded.market_error:
        get_logger().log("valuation_fallback", account=account, error=decoded.market_error)
        return fallback
    market = decoded.market if decoded is not None else MarketSnapshot()
    try:
        return value_portfolio(portfolio, market)
    except (TypeError, ValueError, OverflowError) as exc:
        get_logger().log("valuation_fallback", account=account, error=str(exc))
        return fallback


def holding_views(portfolio: Portfolio, market: MarketSnapshot) -> List[HoldingView]:
    rows: List[HoldingView] = []
    for name, holding in portfolio.holdings.items():
        price = resolve_price(market, name)
        rows.append(
            HoldingView(
                name=name,
                quantity=holding.quantity,
                purchase_price=holding.purchase_price,
                current_price=price,
                return_pct=holding_return(holding.purchase_price, price) if price is not None else math.nan,
            )
        )
    return rows


__all__ = [
    "Holding",
    "HoldingView",
    "MarketSnapshot",
    "PayloadLike",
    "Portfolio",
    "UserData",
    "Valuation",
    "decode_user_data",
    "holding_return",
    "holding_views",
    "load_user_data",
    "resolve_price",
    "valuate",
    "value_portfolio",
]
