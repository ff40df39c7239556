"""
Aster 信号交易系统 — API 路由模块
"""

from .trading import router as trading_router

__all__ = [
    "trading_router",
]
