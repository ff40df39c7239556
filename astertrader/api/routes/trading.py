"""
Aster 信号交易系统 — 交易路由

引擎状态查询、信号投递、紧急平仓、配置更新、对账与审计日志。
"""

from typing import Any

from fastapi import APIRouter, HTTPException, Query, status

from astertrader.api.auth import RequireWrite, audit_log
from astertrader.api.dependencies import DispatcherDep, EngineDep
from astertrader.api.schemas import (
    ApiResponse,
    ConfigUpdateRequest,
    EmergencyCloseResponse,
    ExecutionEventResponse,
    SignalAcceptedResponse,
    SignalRequest,
    TradingStatusResponse,
)
from astertrader.common.config import TradingConfig
from astertrader.common.models import Position

router = APIRouter(prefix="/trading", tags=["交易"])


@router.get("/status", response_model=ApiResponse[TradingStatusResponse])
async def get_status(
    engine: EngineDep,
    dispatcher: DispatcherDep,
) -> ApiResponse[TradingStatusResponse]:
    """获取交易引擎状态"""
    stats = engine.get_stats()
    return ApiResponse(
        data=TradingStatusResponse(
            **stats,
            signals_accepted=dispatcher.accepted_count,
            signals_rejected=dispatcher.rejected_count,
        )
    )


@router.get("/position", response_model=ApiResponse[Position | None])
async def get_position(engine: EngineDep) -> ApiResponse[Position | None]:
    """获取当前仓位（可能已平仓）"""
    return ApiResponse(data=engine.get_current_position())


@router.get("/events", response_model=ApiResponse[list[ExecutionEventResponse]])
async def get_events(
    engine: EngineDep,
    limit: int = Query(100, ge=1, le=1000),
    trade_id: str | None = None,
) -> ApiResponse[list[ExecutionEventResponse]]:
    """获取交易生命周期事件"""
    log = engine.execution_logger
    entries = log.get_trade_history(trade_id) if trade_id else log.get_recent_logs(limit)
    return ApiResponse(data=[ExecutionEventResponse(**e.to_dict()) for e in entries])


@router.post(
    "/signals",
    status_code=status.HTTP_202_ACCEPTED,
    response_model=ApiResponse[SignalAcceptedResponse],
)
async def submit_signal(
    request: SignalRequest,
    api_key: RequireWrite,
    dispatcher: DispatcherDep,
) -> ApiResponse[SignalAcceptedResponse]:
    """
    投递交易信号

    交易在途时返回 429，调用方自行决定是否丢弃。
    """
    accepted = dispatcher.submit(request.to_signal())
    audit_log.log(
        api_key=api_key,
        action="submit_signal",
        details={"signal": request.signal.value, "confidence": request.confidence},
        success=accepted,
    )

    if not accepted:
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail={"code": "SIGNAL_REJECTED", "message": "已有交易在途，信号被拒绝"},
        )

    return ApiResponse(
        data=SignalAcceptedResponse(accepted=True, decision_id=request.decision_id)
    )


@router.post("/emergency-close", response_model=ApiResponse[EmergencyCloseResponse])
async def emergency_close(
    api_key: RequireWrite,
    engine: EngineDep,
) -> ApiResponse[EmergencyCloseResponse]:
    """撤销全部挂单并市价全平"""
    closed = await engine.emergency_close()
    audit_log.log(api_key=api_key, action="emergency_close", details={"closed": closed})
    return ApiResponse(
        data=EmergencyCloseResponse(closed=closed, position=engine.get_current_position())
    )


@router.patch("/config", response_model=ApiResponse[TradingConfig])
async def update_config(
    request: ConfigUpdateRequest,
    api_key: RequireWrite,
    engine: EngineDep,
) -> ApiResponse[TradingConfig]:
    """部分更新交易配置"""
    changes = request.model_dump(exclude_unset=True, exclude_none=True)
    config = engine.update_config(**changes)
    audit_log.log(api_key=api_key, action="update_config", details=changes)
    return ApiResponse(data=config)


@router.post("/reconcile", response_model=ApiResponse[Position | None])
async def reconcile(
    api_key: RequireWrite,
    engine: EngineDep,
) -> ApiResponse[Position | None]:
    """与交易所持仓对账"""
    position = await engine.reconcile_position()
    audit_log.log(api_key=api_key, action="reconcile")
    return ApiResponse(data=position)


@router.get("/audit", response_model=ApiResponse[list[dict[str, Any]]])
async def get_audit_logs(
    api_key: RequireWrite,
    limit: int = Query(100, ge=1, le=1000),
) -> ApiResponse[list[dict[str, Any]]]:
    """获取写操作审计日志（需要写权限）"""
    return ApiResponse(data=audit_log.get_logs(limit))
