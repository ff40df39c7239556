"""
Aster 信号交易系统 — API 认证

写操作需要 X-API-Key 请求头，与配置中的 api_key 比对。
"""

import hmac
from typing import Annotated

from fastapi import Depends, Header, HTTPException, status

from astertrader.common.logging import get_logger
from astertrader.common.utils import utc_now

from astertrader.runtime import Runtime

from .dependencies import get_runtime

logger = get_logger(__name__)


def _mask(key: str) -> str:
    return key[:4] + "..." if len(key) > 4 else "***"


async def verify_api_key(
    runtime: Annotated[Runtime, Depends(get_runtime)],
    x_api_key: Annotated[str | None, Header()] = None,
) -> str:
    """校验 X-API-Key"""
    expected = runtime.settings.api.api_key
    if not expected:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail={"code": "API_KEY_NOT_CONFIGURED", "message": "未配置 API Key，写操作已禁用"},
        )

    if not x_api_key:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"code": "MISSING_API_KEY", "message": "缺少 API Key"},
        )

    if not hmac.compare_digest(x_api_key.encode(), expected.encode()):
        logger.warning("无效的 API Key", extra={"api_key": _mask(x_api_key)})
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"code": "INVALID_API_KEY", "message": "无效的 API Key"},
        )

    return x_api_key


RequireWrite = Annotated[str, Depends(verify_api_key)]


class AuditLog:
    """写操作审计日志"""

    def __init__(self, max_entries: int = 1000):
        self.max_entries = max_entries
        self._logs: list[dict] = []

    def log(
        self,
        api_key: str,
        action: str,
        details: dict | None = None,
        success: bool = True,
    ) -> None:
        entry = {
            "timestamp": utc_now().isoformat(),
            "api_key": _mask(api_key),
            "action": action,
            "details": details,
            "success": success,
        }
        self._logs.append(entry)
        if len(self._logs) > self.max_entries:
            del self._logs[0]

        logger.info(
            f"审计日志: {action}",
            extra={"api_key": entry["api_key"], "action": action, "success": success},
        )

    def get_logs(self, limit: int = 100) -> list[dict]:
        return self._logs[-limit:]


audit_log = AuditLog()
