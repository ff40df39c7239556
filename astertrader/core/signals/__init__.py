"""
Aster 信号交易系统 — 信号接入层
"""

from .base import AccountConfig, Classification, SignalClassifier, TradeStore, Tweet
from .dispatcher import SignalDispatcher
from .processor import ProcessResult, ProcessStatus, SignalProcessor

__all__ = [
    "AccountConfig",
    "Classification",
    "SignalClassifier",
    "TradeStore",
    "Tweet",
    "SignalDispatcher",
    "SignalProcessor",
    "ProcessResult",
    "ProcessStatus",
]
