"""
Aster 信号交易系统 — 启动入口
"""

import uvicorn
from dotenv import load_dotenv

from astertrader.common.config import get_settings
from astertrader.common.logging import set_log_level


def main() -> None:
    load_dotenv()
    settings = get_settings()
    set_log_level(settings.log_level)

    uvicorn.run(
        "astertrader.api.app:app",
        host=settings.api.host,
        port=settings.api.port,
        reload=settings.debug,
    )


if __name__ == "__main__":
    main()
