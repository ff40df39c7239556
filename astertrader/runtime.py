"""
Aster 信号交易系统 — 运行时装配

按配置组装交易所客户端、精度策略、交易引擎和信号分发器。
"""

from dataclasses import dataclass

from astertrader.common.config import Settings
from astertrader.common.logging import get_logger
from astertrader.core.execution.engine import TradingEngine
from astertrader.core.execution.exchange.aster import AsterClient
from astertrader.core.execution.exchange.base import ExchangeClient
from astertrader.core.execution.exchange.precision import (
    ExchangeFilterPolicy,
    FixedPrecisionPolicy,
    PrecisionPolicy,
)
from astertrader.core.signals.base import TradeStore
from astertrader.core.signals.dispatcher import SignalDispatcher

logger = get_logger(__name__)


@dataclass
class Runtime:
    """进程内的服务实例集合"""
    settings: Settings
    exchange: ExchangeClient
    engine: TradingEngine
    dispatcher: SignalDispatcher

    async def start(self) -> None:
        self.dispatcher.start()

    async def stop(self) -> None:
        await self.dispatcher.stop()
        await self.exchange.close()


def build_precision(settings: Settings, exchange: ExchangeClient) -> PrecisionPolicy:
    config = settings.exchange
    if config.use_exchange_filters:
        return ExchangeFilterPolicy(exchange)
    return FixedPrecisionPolicy(config.quantity_decimals, config.price_decimals)


def build_runtime(
    settings: Settings,
    exchange: ExchangeClient | None = None,
    store: TradeStore | None = None,
) -> Runtime:
    """
    组装运行时

    Args:
        settings: 系统配置
        exchange: 交易所客户端（默认按配置创建 AsterClient，凭证非法时抛出 ConfigurationError）
        store: 交易存储（可选）
    """
    if exchange is None:
        exchange = AsterClient.from_config(
            settings.exchange,
            poll_interval_ms=settings.trading.fill_poll_interval_ms,
        )

    engine = TradingEngine(
        exchange,
        config=settings.trading,
        precision=build_precision(settings, exchange),
    )
    dispatcher = SignalDispatcher(engine, store=store, queue_size=settings.dispatch.queue_size)

    logger.info(
        "运行时已装配",
        extra={
            "env": settings.env,
            "exchange": exchange.name,
            "trading_enabled": settings.trading.enabled,
        },
    )
    return Runtime(settings=settings, exchange=exchange, engine=engine, dispatcher=dispatcher)
