"""
Aster 信号交易系统 — FastAPI 应用

运维 API：引擎状态、信号投递、紧急平仓、配置更新。
"""

from contextlib import asynccontextmanager
from typing import Any

# 加载环境变量（必须在其他导入之前）
from dotenv import load_dotenv
load_dotenv()

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from astertrader import __version__
from astertrader.common.config import get_settings
from astertrader.common.exceptions import (
    ConfigurationError,
    ExecutionError,
    TradeValidationError,
    TradingSystemError,
)
from astertrader.common.logging import get_logger, set_log_level
from astertrader.common.utils import utc_now
from astertrader.runtime import build_runtime

from . import dependencies
from .routes import trading_router

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """应用生命周期管理"""
    logger.info("API 服务启动")

    # 测试等场景可预先注入运行时
    if dependencies._runtime is None:
        settings = get_settings()
        set_log_level(settings.log_level)
        dependencies.init_runtime(build_runtime(settings))

    runtime = dependencies.get_runtime()
    await runtime.start()
    yield
    await runtime.stop()
    logger.info("API 服务关闭")


def create_app() -> FastAPI:
    """
    创建 FastAPI 应用

    Returns:
        配置好的 FastAPI 实例
    """
    app = FastAPI(
        title="Aster 信号交易系统 API",
        description="信号驱动的 Aster 永续合约交易引擎运维接口",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)
    register_routes(app)

    return app


def _error_response(
    status_code: int,
    code: str,
    message: str,
    details: Any = None,
) -> JSONResponse:
    error: dict[str, Any] = {"code": code, "message": message}
    if details:
        error["details"] = details
    return JSONResponse(
        status_code=status_code,
        content={
            "success": False,
            "data": None,
            "error": error,
            "timestamp": utc_now().isoformat(),
        },
    )


def register_exception_handlers(app: FastAPI) -> None:
    """注册异常处理器"""

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
        """HTTP 异常处理"""
        if isinstance(exc.detail, dict):
            return JSONResponse(
                status_code=exc.status_code,
                content={
                    "success": False,
                    "data": None,
                    "error": exc.detail,
                    "timestamp": utc_now().isoformat(),
                },
            )
        return _error_response(exc.status_code, "HTTP_ERROR", str(exc.detail))

    @app.exception_handler(TradingSystemError)
    async def trading_error_handler(request: Request, exc: TradingSystemError) -> JSONResponse:
        """业务异常处理"""
        if isinstance(exc, (ConfigurationError, TradeValidationError)):
            status_code = status.HTTP_400_BAD_REQUEST
        elif isinstance(exc, ExecutionError):
            status_code = status.HTTP_502_BAD_GATEWAY
        else:
            status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

        logger.warning(
            f"请求失败: {exc.message}",
            extra={"path": request.url.path, "error_type": type(exc).__name__},
        )
        return _error_response(status_code, type(exc).__name__, exc.message, exc.details)

    @app.exception_handler(ValidationError)
    async def validation_error_handler(request: Request, exc: ValidationError) -> JSONResponse:
        """配置值越界等模型校验失败"""
        return _error_response(
            status.HTTP_422_UNPROCESSABLE_ENTITY,
            "VALIDATION_ERROR",
            "参数校验失败",
            {"errors": exc.errors(include_url=False, include_context=False, include_input=False)},
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """通用异常处理"""
        logger.error(f"未处理的异常: {exc}", exc_info=True)
        return _error_response(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "INTERNAL_ERROR",
            "服务器内部错误",
        )


def register_routes(app: FastAPI) -> None:
    """注册路由"""
    app.include_router(trading_router, prefix="/api/v1")

    @app.get("/health", tags=["系统"])
    async def health_check() -> dict[str, Any]:
        """健康检查"""
        return {
            "status": "healthy",
            "timestamp": utc_now().isoformat(),
            "version": __version__,
        }

    @app.get("/", tags=["系统"])
    async def root() -> dict[str, Any]:
        """根路径"""
        return {
            "name": "Aster 信号交易系统 API",
            "version": __version__,
            "docs": "/docs",
        }


# 创建应用实例
app = create_app()
