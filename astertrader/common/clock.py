"""
Aster 信号交易系统 — 时钟

交易引擎和风控闸门通过注入的 Clock 读取时间，测试可替换为可控时钟。
"""

import time
from datetime import datetime
from typing import Protocol

from .utils import utc_now


class Clock(Protocol):
    """时钟接口"""

    def now(self) -> datetime:
        """当前 UTC 时间（带时区）"""
        ...

    def monotonic(self) -> float:
        """单调时间（秒），用于超时计算"""
        ...


class SystemClock:
    """系统时钟"""

    def now(self) -> datetime:
        return utc_now()

    def monotonic(self) -> float:
        return time.monotonic()
