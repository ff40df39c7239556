"""
Aster 信号交易系统 — 配置加载

支持 YAML 配置文件、${VAR} 环境变量替换和环境变量覆盖。
"""

import os
import re
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field

from .logging import get_logger

logger = get_logger(__name__)


class TradingConfig(BaseModel):
    """交易配置（进程级，可被单次请求覆盖）"""

    enabled: bool = Field(default=False)
    max_position_size_percent: float = Field(default=15.0, gt=0, le=100)
    leverage: int = Field(default=100, ge=1, le=125)
    min_confidence_threshold: float = Field(default=75.0, ge=0, le=100)
    cooldown_minutes: float = Field(default=5.0, ge=0)
    max_daily_trades: int = Field(default=10, ge=0)
    default_symbol: str = Field(default="BTCUSDT")
    fill_timeout_ms: int = Field(default=10_000, gt=0)
    fill_poll_interval_ms: int = Field(default=500, gt=0)


class ExchangeConfig(BaseModel):
    """交易所配置"""

    api_url: str = Field(default="https://fapi.asterdex.com")
    owner_address: str = Field(default="")
    signing_key: str = Field(default="", repr=False)
    # 为空时使用私钥推导出的地址
    signer_address: str | None = Field(default=None)
    recv_window: str = Field(default="50000")
    timeout_seconds: float = Field(default=10.0, gt=0)
    quantity_decimals: int = Field(default=3, ge=0, le=8)
    price_decimals: int = Field(default=2, ge=0, le=8)
    use_exchange_filters: bool = Field(default=False)


class DispatchConfig(BaseModel):
    """信号分发配置"""

    queue_size: int = Field(default=1, ge=1, le=100)


class ApiConfig(BaseModel):
    """运维 API 配置"""

    api_key: str = Field(default="", repr=False)
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=8000, ge=1, le=65535)


class Settings(BaseModel):
    """系统配置"""

    env: str = Field(default="development")
    debug: bool = Field(default=False)
    log_level: str = Field(default="INFO")

    trading: TradingConfig = Field(default_factory=TradingConfig)
    exchange: ExchangeConfig = Field(default_factory=ExchangeConfig)
    dispatch: DispatchConfig = Field(default_factory=DispatchConfig)
    api: ApiConfig = Field(default_factory=ApiConfig)


# 环境变量 -> (配置段, 字段)
ENV_OVERRIDES: dict[str, tuple[str, str]] = {
    "TRADING_ENABLED": ("trading", "enabled"),
    "MAX_POSITION_SIZE_PERCENT": ("trading", "max_position_size_percent"),
    "LEVERAGE": ("trading", "leverage"),
    "MIN_CONFIDENCE_THRESHOLD": ("trading", "min_confidence_threshold"),
    "COOLDOWN_MINUTES": ("trading", "cooldown_minutes"),
    "MAX_DAILY_TRADES": ("trading", "max_daily_trades"),
    "ASTER_API_URL": ("exchange", "api_url"),
    "ASTER_DEX_KEY": ("exchange", "owner_address"),
    "ASTER_SECRET_KEY": ("exchange", "signing_key"),
    # API 钱包私钥优先于主钱包私钥
    "API_WALLET_PRIVATE_KEY": ("exchange", "signing_key"),
    "API_WALLET_ADDRESS": ("exchange", "signer_address"),
    "TRADING_API_KEY": ("api", "api_key"),
}


def _substitute_env_vars(value: Any) -> Any:
    """替换环境变量占位符 ${VAR_NAME}"""
    if isinstance(value, str):
        pattern = r"\$\{([^}]+)\}"

        def replacer(match: re.Match[str]) -> str:
            var_name = match.group(1)
            return os.environ.get(var_name, match.group(0))

        return re.sub(pattern, replacer, value)

    if isinstance(value, dict):
        return {k: _substitute_env_vars(v) for k, v in value.items()}

    if isinstance(value, list):
        return [_substitute_env_vars(item) for item in value]

    return value


def load_yaml_config(path: str | Path) -> dict[str, Any]:
    """
    加载 YAML 配置文件

    Args:
        path: 配置文件路径

    Returns:
        配置字典，文件不存在时为空
    """
    path = Path(path)

    if not path.exists():
        logger.warning(f"配置文件不存在: {path}")
        return {}

    with open(path, encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}

    return _substitute_env_vars(data)


def _apply_env_overrides(
    config_data: dict[str, Any],
    environ: dict[str, str],
) -> dict[str, Any]:
    """按 ENV_OVERRIDES 把环境变量写入配置字典（空值忽略）"""
    for env_name, (section, field_name) in ENV_OVERRIDES.items():
        raw = environ.get(env_name)
        if raw is None or raw.strip() == "":
            continue
        config_data.setdefault(section, {})[field_name] = raw.strip()
    return config_data


def load_settings(
    config_dir: str | Path | None = None,
    environ: dict[str, str] | None = None,
) -> Settings:
    """
    加载系统配置

    优先级：环境变量 > config/config.yaml > 默认值

    Args:
        config_dir: 配置目录路径
        environ: 环境变量（默认 os.environ）

    Returns:
        Settings 实例
    """
    config_data: dict[str, Any] = {}

    if config_dir:
        main_config = Path(config_dir) / "config.yaml"
        if main_config.exists():
            config_data.update(load_yaml_config(main_config))

    env = dict(os.environ) if environ is None else environ
    config_data = _apply_env_overrides(config_data, env)

    return Settings(**config_data)


# 全局配置实例（延迟初始化）
_settings: Settings | None = None


def get_settings() -> Settings:
    """获取全局配置实例"""
    global _settings
    if _settings is None:
        _settings = load_settings(os.environ.get("ASTERTRADER_CONFIG_DIR", "config"))
    return _settings


def reset_settings() -> None:
    """清除缓存的全局配置"""
    global _settings
    _settings = None
