"""
Aster 信号交易系统 — 风控层

风控闸门与仓位计算，均无 I/O。
"""

from .constants import RiskConstants
from .gate import RiskGate, TradingState
from .sizing import (
    calculate_pnl,
    calculate_position_size,
    calculate_required_margin,
    calculate_targets,
    distance_to_liquidation,
    is_target_hit,
    round_price,
    split_take_profit_quantities,
    validate_trade_params,
)

__all__ = [
    "RiskConstants",
    # Gate
    "RiskGate",
    "TradingState",
    # Sizing
    "calculate_position_size",
    "calculate_targets",
    "validate_trade_params",
    "calculate_required_margin",
    "split_take_profit_quantities",
    "calculate_pnl",
    "is_target_hit",
    "distance_to_liquidation",
    "round_price",
]
