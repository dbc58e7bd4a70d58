"""Domain models used by the StockClass package."""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional

from .portfolio import (
    HoldingView,
    PayloadLike,
    Portfolio,
    UserData,
    Valuation,
    holding_views,
    load_user_data,
    valuate,
)


@dataclass(slots=True, frozen=True)
class TeacherContext:
    """Identity that scopes every roster query.

    Students are visible to a teacher only when all three fields match the
    values stored on the student record.
    """

    school: str
    display_name: str
    email: str

    @property
    def complete(self) -> bool:
        return bool(self.school and self.email)

    def as_dict(self) -> dict:
        return {"school": self.school, "displayName": self.display_name, "email": self.email}


@dataclass(slots=True)
class StudentAccount:
    """A student as shown to the teacher, with its payload already decoded."""

    handle: str
    name: str
    password: str
    user_data: Optional[UserData] = None
    record_id: Optional[int] = None

    @classmethod
    def from_payload(
        cls,
        handle: str,
        name: str,
        password: str,
        data: PayloadLike,
        *,
        record_id: Optional[int] = None,
    ) -> "StudentAccount":
        return cls(
            handle=handle,
            name=name,
            password=password,
            user_data=load_user_data(data, account=handle),
            record_id=record_id,
        )

    @property
    def portfolio(self) -> Optional[Portfolio]:
        if self.user_data is None:
            return None
        return self.user_data.portfolio

    def valuation(self) -> Optional[Valuation]:
        portfolio = self.portfolio
        if portfolio is None or self.user_data is None:
            return None
        return valuate(portfolio, self.user_data, account=self.handle)

    def holdings(self) -> List[HoldingView]:
        portfolio = self.portfolio
        if portfolio is None or self.user_data is None:
            return []
        return holding_views(portfolio, self.user_data.market)


@dataclass(slots=True, frozen=True)
class CreationResult:
    """Outcome of creating one student in a batch."""

    name: str
    handle: Optional[str] = None
    password: Optional[str] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


__all__ = ["CreationResult", "StudentAccount", "TeacherContext"]
