"""
Aster 信号交易系统 — 自定义异常

异常层级：
- TradingSystemError: 基础异常
  - ConfigurationError: 配置错误（启动即失败）
  - SignatureError: 签名失败
  - TradeValidationError: 交易参数校验失败（无副作用）
  - ExecutionError: 执行层异常
    - ExchangeError: 交易所返回非 2xx 或错误码
    - NetworkError: 网络 / 传输层失败
    - OrderTimeoutError: 等待成交超时

风控闸门拒绝不是异常，见 GateResult。
"""

from typing import Any


class TradingSystemError(Exception):
    """交易系统基础异常"""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


# ============================================================
# 配置 / 签名
# ============================================================

class ConfigurationError(TradingSystemError):
    """
    配置错误

    触发场景：
    - 钱包地址格式非法
    - 私钥格式非法
    - 配置的 signer 地址与私钥推导地址不一致
    """
    pass


class SignatureError(TradingSystemError):
    """签名失败"""
    pass


# ============================================================
# 参数校验
# ============================================================

class TradeValidationError(TradingSystemError):
    """交易参数校验失败"""
    pass


# ============================================================
# 执行层异常
# ============================================================

class ExecutionError(TradingSystemError):
    """执行层异常"""
    pass


class ExchangeError(ExecutionError):
    """交易所返回错误"""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        code: int | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message, details)
        self.status_code = status_code
        self.code = code


class NetworkError(ExecutionError):
    """网络请求失败"""
    pass


class OrderTimeoutError(ExecutionError):
    """订单超时"""
    pass
