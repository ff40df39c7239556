"""
Aster 信号交易系统 — 仓位与目标价计算

纯函数。数量精度在编排层按交易对规则处理，这里不取整。
"""

from decimal import Decimal
from typing import TYPE_CHECKING

from astertrader.common.enums import PositionSide
from astertrader.common.exceptions import TradeValidationError
from astertrader.common.models import Position, PositionSizing, TradeTargets

from .constants import RiskConstants

if TYPE_CHECKING:
    from astertrader.core.execution.exchange.precision import PrecisionPolicy


def _direction(side: PositionSide) -> int:
    return 1 if side == PositionSide.LONG else -1


def calculate_position_size(
    balance: float,
    risk_percent: float,
    leverage: int = 100,
) -> PositionSizing:
    """
    计算仓位规模

    Args:
        balance: 账户余额（USDT）
        risk_percent: 仓位占余额百分比
        leverage: 杠杆倍数

    Returns:
        名义价值与所需保证金
    """
    position_size = balance * (risk_percent / 100)
    return PositionSizing(
        position_size=position_size,
        margin=position_size / leverage,
    )


def calculate_targets(entry_price: float, side: PositionSide) -> TradeTargets:
    """按入场价和方向计算止盈 / 止损 / 强平价"""
    m = _direction(side)
    offsets = RiskConstants.targets
    return TradeTargets(
        tp1=entry_price * (1 + m * offsets.tp1),
        tp2=entry_price * (1 + m * offsets.tp2),
        tp3=entry_price * (1 + m * offsets.tp3),
        sl=entry_price * (1 - m * offsets.sl),
        liq=entry_price * (1 - m * offsets.liq),
    )


def validate_trade_params(
    balance: float,
    position_size: float,
    leverage: int,
    confidence: float,
) -> None:
    """
    开仓前参数校验

    Raises:
        TradeValidationError: 第一个不满足的条件
    """
    if balance <= 0:
        raise TradeValidationError("Insufficient balance", {"balance": balance})

    if position_size > balance:
        raise TradeValidationError(
            "Position size exceeds available balance",
            {"position_size": position_size, "balance": balance},
        )

    if not RiskConstants.leverage.min <= leverage <= RiskConstants.leverage.max:
        raise TradeValidationError("Invalid leverage (must be 1-125x)", {"leverage": leverage})

    if not 0 <= confidence <= 100:
        raise TradeValidationError("Invalid confidence score", {"confidence": confidence})


def calculate_required_margin(position_size: float, leverage: int) -> float:
    return position_size / leverage


def split_take_profit_quantities(
    symbol: str,
    quantity: Decimal | float,
    precision: "PrecisionPolicy",
) -> tuple[Decimal, Decimal, Decimal]:
    """按 30% / 50% / 20% 拆分止盈数量，每档独立向下取整"""
    total = quantity if isinstance(quantity, Decimal) else Decimal(str(quantity))
    split = RiskConstants.tp_split
    return (
        precision.round_quantity(symbol, total * Decimal(split.tp1)),
        precision.round_quantity(symbol, total * Decimal(split.tp2)),
        precision.round_quantity(symbol, total * Decimal(split.tp3)),
    )


def calculate_pnl(position: Position, current_price: float) -> tuple[float, float]:
    """
    未实现盈亏

    Returns:
        (盈亏 USDT, 占保证金百分比)
    """
    pnl = (current_price - position.entry_price) * _direction(position.side) * position.quantity
    pnl_percent = pnl / position.margin * 100 if position.margin > 0 else 0.0
    return pnl, pnl_percent


def is_target_hit(current_price: float, target_price: float, side: PositionSide) -> bool:
    if side == PositionSide.LONG:
        return current_price >= target_price
    return current_price <= target_price


def distance_to_liquidation(current_price: float, liquidation_price: float) -> float:
    """距强平价的百分比距离"""
    return abs((current_price - liquidation_price) / current_price) * 100


def round_price(price: float, decimals: int = 2) -> float:
    return round(price, decimals)
