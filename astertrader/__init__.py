"""
Aster 信号交易系统

接收分类器信号，经风控闸门后在 Aster 永续合约上执行入场、三档止盈和止损。
"""

__version__ = "0.1.0"
