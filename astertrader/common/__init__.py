"""公共模块"""

from .clock import Clock, SystemClock
from .config import (
    ApiConfig,
    DispatchConfig,
    ExchangeConfig,
    Settings,
    TradingConfig,
    get_settings,
    load_settings,
    load_yaml_config,
    reset_settings,
)
from .enums import (
    ExitReason,
    OrderSide,
    OrderStatus,
    OrderType,
    PositionSide,
    PositionStatus,
    SignalMagnitude,
    SignalType,
    TradePhase,
)
from .exceptions import (
    ConfigurationError,
    ExchangeError,
    ExecutionError,
    NetworkError,
    OrderTimeoutError,
    SignatureError,
    TradeValidationError,
    TradingSystemError,
)
from .logging import JSONFormatter, LoggerAdapter, get_logger, set_log_level
from .models import (
    AccountBalance,
    GateResult,
    Order,
    Position,
    PositionSizing,
    TargetHits,
    TradeContext,
    TradeDecision,
    TradeOverrides,
    TradeResult,
    TradeSignal,
    TradeTargets,
)
from .retry import retry_with_backoff
from .utils import format_decimal, from_utc_ms, generate_position_id, to_utc, to_utc_ms, utc_now

__all__ = [
    # Clock
    "Clock",
    "SystemClock",
    # Config
    "ApiConfig",
    "DispatchConfig",
    "ExchangeConfig",
    "Settings",
    "TradingConfig",
    "get_settings",
    "load_settings",
    "load_yaml_config",
    "reset_settings",
    # Enums
    "ExitReason",
    "OrderSide",
    "OrderStatus",
    "OrderType",
    "PositionSide",
    "PositionStatus",
    "SignalMagnitude",
    "SignalType",
    "TradePhase",
    # Exceptions
    "ConfigurationError",
    "ExchangeError",
    "ExecutionError",
    "NetworkError",
    "OrderTimeoutError",
    "SignatureError",
    "TradeValidationError",
    "TradingSystemError",
    # Logging
    "JSONFormatter",
    "LoggerAdapter",
    "get_logger",
    "set_log_level",
    # Models
    "AccountBalance",
    "GateResult",
    "Order",
    "Position",
    "PositionSizing",
    "TargetHits",
    "TradeContext",
    "TradeDecision",
    "TradeOverrides",
    "TradeResult",
    "TradeSignal",
    "TradeTargets",
    # Retry
    "retry_with_backoff",
    # Utils
    "format_decimal",
    "from_utc_ms",
    "generate_position_id",
    "to_utc",
    "to_utc_ms",
    "utc_now",
]
