"""
Aster 信号交易系统 — 执行层

交易引擎、交易所客户端与执行审计日志。
"""

from .constants import ExecutionConstants
from .engine import TradingEngine
from .exchange import (
    AsterClient,
    Credentials,
    ExchangeClient,
    ExchangeFilterPolicy,
    FixedPrecisionPolicy,
    PrecisionPolicy,
    RequestSigner,
)
from .logger import ExecutionEvent, ExecutionLogEntry, ExecutionLogger

__all__ = [
    # Constants
    "ExecutionConstants",
    # Engine
    "TradingEngine",
    # Exchange
    "ExchangeClient",
    "AsterClient",
    "Credentials",
    "RequestSigner",
    "PrecisionPolicy",
    "FixedPrecisionPolicy",
    "ExchangeFilterPolicy",
    # Logger
    "ExecutionLogger",
    "ExecutionLogEntry",
    "ExecutionEvent",
]
