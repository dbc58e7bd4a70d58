"""StockClass package: teacher console for a classroom stock-market game."""

from .exceptions import (
    HandleExhaustedError,
    InvalidPasswordError,
    InvalidStudentNameError,
    PayloadDecodeError,
    StockClassError,
    StudentNotFoundError,
)
from .handles import generate_password, generate_unique_handle
from .models import CreationResult, StudentAccount, TeacherContext
from .names import is_valid_korean_name, parse_name_batch
from .ops import StructuredLogger, configure_logging, get_logger
from .portfolio import (
    Holding,
    HoldingView,
    MarketSnapshot,
    Portfolio,
    UserData,
    Valuation,
    decode_user_data,
    holding_return,
    holding_views,
    load_user_data,
    valuate,
    value_portfolio,
)
from .ranking import RankingKey, rank_students
from .security import LoginThrottle

__all__ = [
    "CreationResult",
    "HandleExhaustedError",
    "Holding",
    "HoldingView",
    "InvalidPasswordError",
    "InvalidStudentNameError",
    "LoginThrottle",
    "MarketSnapshot",
    "PayloadDecodeError",
    "Portfolio",
    "RankingKey",
    "StockClassError",
    "StructuredLogger",
    "StudentAccount",
    "StudentNotFoundError",
    "TeacherContext",
    "UserData",
    "Valuation",
    "configure_logging",
    "decode_user_data",
    "generate_password",
    "generate_unique_handle",
    "get_logger",
    "holding_return",
    "holding_views",
    "is_valid_korean_name",
    "load_user_data",
    "parse_name_batch",
    "rank_students",
    "valuate",
    "value_portfolio",
]
