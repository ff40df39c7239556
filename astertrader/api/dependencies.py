"""
Aster 信号交易系统 — API 依赖注入
"""

from typing import Annotated

from fastapi import Depends

from astertrader.common.logging import get_logger
from astertrader.core.execution.engine import TradingEngine
from astertrader.core.signals.dispatcher import SignalDispatcher
from astertrader.runtime import Runtime

logger = get_logger(__name__)

_runtime: Runtime | None = None


def init_runtime(runtime: Runtime | None) -> None:
    """注入运行时（启动时或测试中调用，传 None 清除）"""
    global _runtime
    _runtime = runtime
    if runtime is not None:
        logger.info("API 运行时已注入")


def get_runtime() -> Runtime:
    if _runtime is None:
        raise RuntimeError("运行时未初始化")
    return _runtime


def get_engine(runtime: Annotated[Runtime, Depends(get_runtime)]) -> TradingEngine:
    return runtime.engine


def get_dispatcher(runtime: Annotated[Runtime, Depends(get_runtime)]) -> SignalDispatcher:
    return runtime.dispatcher


EngineDep = Annotated[TradingEngine, Depends(get_engine)]
DispatcherDep = Annotated[SignalDispatcher, Depends(get_dispatcher)]
