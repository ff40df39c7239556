"""
Aster 信号交易系统 — 风控常量

目标价偏移按 100x 杠杆档位标定，调整需同步复核强平距离。
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class TargetOffsets:
    """目标价相对入场价的偏移（多头正向，空头反向）"""
    tp1: float = 0.003
    tp2: float = 0.005
    tp3: float = 0.008
    sl: float = 0.006
    liq: float = 0.01


@dataclass(frozen=True)
class TakeProfitSplit:
    """止盈分批比例"""
    tp1: str = "0.3"
    tp2: str = "0.5"
    tp3: str = "0.2"


@dataclass(frozen=True)
class LeverageLimits:
    """交易所允许的杠杆范围"""
    min: int = 1
    max: int = 125


class RiskConstants:
    """风控常量集合"""
    targets = TargetOffsets()
    tp_split = TakeProfitSplit()
    leverage = LeverageLimits()
