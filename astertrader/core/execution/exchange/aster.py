"""
Aster 信号交易系统 — Aster 合约客户端

REST 接口封装。签名请求每次调用都重新生成 nonce / timestamp / signature，
HTTP 层不重试；只有幂等的公开行情请求按 NetworkError 退避重试。
"""

import asyncio
from decimal import Decimal
from typing import Any

import httpx

from astertrader.common.clock import Clock, SystemClock
from astertrader.common.config import ExchangeConfig
from astertrader.common.enums import OrderSide, OrderStatus, OrderType, PositionSide
from astertrader.common.exceptions import ExchangeError, NetworkError, TradingSystemError
from astertrader.common.logging import get_logger
from astertrader.common.models import AccountBalance, Order, Position
from astertrader.common.retry import retry_with_backoff
from astertrader.common.utils import format_decimal, from_utc_ms, generate_position_id, utc_now

from .base import ExchangeClient, Kline, SymbolFilters
from .signer import Credentials, RequestSigner

logger = get_logger(__name__)

# 单向持仓模式
ONE_WAY_POSITION_SIDE = "BOTH"


def _to_float(value: Any, default: float = 0.0) -> float:
    if value is None or value == "":
        return default
    return float(value)


def _to_optional_price(value: Any) -> float | None:
    """交易所用 "0" 表示未设置价格"""
    price = _to_float(value)
    return price if price > 0 else None


class AsterClient(ExchangeClient):
    """
    Aster Futures 客户端

    传入 transport 可替换底层传输（测试使用 httpx.MockTransport）。
    """

    DEFAULT_BASE_URL = "https://fapi.asterdex.com"

    def __init__(
        self,
        signer: RequestSigner,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 10.0,
        poll_interval_ms: int = 500,
        transport: httpx.AsyncBaseTransport | None = None,
        clock: Clock | None = None,
    ):
        self._signer = signer
        self.base_url = base_url.rstrip("/")
        self.poll_interval_ms = poll_interval_ms
        self._clock = clock or SystemClock()
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout,
            transport=transport,
            headers={"Content-Type": "application/json"},
        )

        credentials = signer.credentials
        logger.info(
            "Aster 客户端已初始化",
            extra={
                "base_url": self.base_url,
                "user": credentials.owner_address,
                "signer": credentials.signer_address,
            },
        )

    @classmethod
    def from_config(
        cls,
        config: ExchangeConfig,
        poll_interval_ms: int = 500,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> "AsterClient":
        """从配置创建，凭证非法时抛出 ConfigurationError"""
        credentials = Credentials.from_config(config)
        signer = RequestSigner(credentials, recv_window=config.recv_window)
        return cls(
            signer,
            base_url=config.api_url,
            timeout=config.timeout_seconds,
            poll_interval_ms=poll_interval_ms,
            transport=transport,
        )

    @property
    def name(self) -> str:
        return "aster"

    async def close(self) -> None:
        await self._client.aclose()
        logger.info("Aster 客户端已关闭")

    # ========================================
    # 请求
    # ========================================

    async def _send(
        self,
        method: str,
        path: str,
        params: dict[str, Any] | None = None,
        json_body: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> Any:
        try:
            response = await self._client.request(
                method,
                path,
                params=params,
                json=json_body,
                headers=headers,
            )
        except httpx.TransportError as e:
            raise NetworkError(
                f"{method} {path} failed: {e}",
                {"method": method, "path": path},
            ) from e

        logger.debug(
            f"{method} {path} -> {response.status_code}",
            extra={"method": method, "path": path, "status_code": response.status_code},
        )

        if not response.is_success:
            raise self._to_exchange_error(method, path, response)

        try:
            return response.json()
        except ValueError as e:
            raise ExchangeError(
                f"Invalid JSON response from {path}",
                status_code=response.status_code,
            ) from e

    @staticmethod
    def _to_exchange_error(method: str, path: str, response: httpx.Response) -> ExchangeError:
        code: int | None = None
        msg = response.text
        try:
            payload = response.json()
        except ValueError:
            payload = None
        if isinstance(payload, dict):
            try:
                code = int(payload["code"]) if payload.get("code") is not None else None
            except (TypeError, ValueError):
                code = None
            msg = payload.get("msg", msg)

        logger.warning(
            f"交易所返回错误: {method} {path}",
            extra={"status_code": response.status_code, "code": code, "msg": msg},
        )
        return ExchangeError(
            f"{method} {path} returned {response.status_code}: {msg}",
            status_code=response.status_code,
            code=code,
            details={"method": method, "path": path},
        )

    @retry_with_backoff(max_retries=3, base_delay=0.5, exceptions=(NetworkError,))
    async def _public_get(self, path: str, params: dict[str, Any] | None = None) -> Any:
        return await self._send("GET", path, params=params)

    async def _signed_request(
        self,
        method: str,
        path: str,
        params: dict[str, Any] | None = None,
    ) -> Any:
        """签名请求：GET / DELETE 参数放 query，POST 放 JSON body"""
        signed = self._signer.sign(path, params)
        if method in ("GET", "DELETE"):
            return await self._send(method, path, params=signed.params, headers=signed.headers)
        return await self._send(method, path, json_body=signed.params, headers=signed.headers)

    # ========================================
    # 市场数据
    # ========================================

    async def get_server_time(self) -> int:
        data = await self._public_get("/fapi/v1/time")
        return int(data["serverTime"])

    async def get_current_price(self, symbol: str) -> float:
        data = await self._public_get("/fapi/v1/ticker/price", {"symbol": symbol})
        return float(data["price"])

    async def get_exchange_info(self, symbol: str | None = None) -> dict[str, Any]:
        params = {"symbol": symbol} if symbol else None
        return await self._public_get("/fapi/v1/exchangeInfo", params)

    async def get_symbol_filters(self, symbol: str) -> SymbolFilters:
        """
        解析交易对精度规则

        MARKET_LOT_SIZE 存在时优先使用其步长与最小数量（市价单适用）。
        """
        info = await self.get_exchange_info(symbol)
        symbols = info.get("symbols") or []
        symbol_info = next((s for s in symbols if s.get("symbol") == symbol), None)
        if symbol_info is None:
            raise ExchangeError(f"Exchange info missing symbol {symbol}")

        filters = {f.get("filterType"): f for f in symbol_info.get("filters", [])}
        lot_filter = filters.get("LOT_SIZE")
        price_filter = filters.get("PRICE_FILTER")
        if lot_filter is None or price_filter is None:
            raise ExchangeError(f"Exchange info missing LOT_SIZE/PRICE_FILTER for {symbol}")

        step_source = min_source = lot_filter
        market_lot_filter = filters.get("MARKET_LOT_SIZE")
        if market_lot_filter is not None:
            if Decimal(str(market_lot_filter.get("stepSize") or "0")) > 0:
                step_source = market_lot_filter
            if Decimal(str(market_lot_filter.get("minQty") or "0")) > 0:
                min_source = market_lot_filter

        return SymbolFilters(
            symbol=symbol,
            step_size=Decimal(str(step_source["stepSize"])),
            min_qty=Decimal(str(min_source["minQty"])),
            tick_size=Decimal(str(price_filter["tickSize"])),
        )

    async def get_klines(self, symbol: str, interval: str = "1h", limit: int = 100) -> list[Kline]:
        rows = await self._public_get(
            "/fapi/v1/klines",
            {"symbol": symbol, "interval": interval, "limit": limit},
        )
        return [
            Kline(
                time=int(row[0]) // 1000,
                open=float(row[1]),
                high=float(row[2]),
                low=float(row[3]),
                close=float(row[4]),
                volume=float(row[5]),
            )
            for row in rows
        ]

    # ========================================
    # 账户与仓位
    # ========================================

    async def get_account_balance(self) -> AccountBalance:
        balances = await self._signed_request("GET", "/fapi/v3/balance")
        usdt = next((b for b in balances if b.get("asset") == "USDT"), None)
        if usdt is None:
            logger.warning("余额列表中没有 USDT")
            return AccountBalance()

        available = _to_float(usdt.get("availableBalance"))
        return AccountBalance(
            total=_to_float(usdt.get("balance")),
            available=available,
            margin_used=_to_float(usdt.get("crossWalletBalance")) - available,
            unrealized_pnl=_to_float(usdt.get("crossUnPnl")),
        )

    async def get_position(self, symbol: str) -> Position | None:
        rows = await self._signed_request("GET", "/fapi/v3/positionRisk", {"symbol": symbol})
        row = next(
            (r for r in rows if r.get("symbol") == symbol and _to_float(r.get("positionAmt")) != 0),
            None,
        )
        if row is None:
            return None

        amount = _to_float(row.get("positionAmt"))
        entry_price = _to_float(row.get("entryPrice"))
        now = utc_now()
        return Position(
            id=generate_position_id(symbol, now),
            symbol=symbol,
            side=PositionSide.LONG if amount > 0 else PositionSide.SHORT,
            entry_price=entry_price,
            quantity=abs(amount),
            position_size=abs(amount) * entry_price,
            leverage=int(row.get("leverage") or 1),
            margin=_to_float(row.get("isolatedMargin") or row.get("initialMargin")),
            mark_price=_to_optional_price(row.get("markPrice")),
            unrealized_pnl=_to_float(row.get("unRealizedProfit")),
            liquidation_price=_to_optional_price(row.get("liquidationPrice")),
            opened_at=now,
        )

    async def set_leverage(self, symbol: str, leverage: int) -> None:
        await self._signed_request(
            "POST", "/fapi/v1/leverage", {"symbol": symbol, "leverage": leverage}
        )
        logger.info(f"设置杠杆: {symbol} = {leverage}x")

    async def set_position_mode(self, dual_side: bool) -> None:
        await self._signed_request(
            "POST", "/fapi/v1/positionSide/dual", {"dualSidePosition": dual_side}
        )
        logger.info(f"设置持仓模式: {'HEDGE' if dual_side else 'ONE_WAY'}")

    # ========================================
    # 订单
    # ========================================

    def _parse_order(self, data: dict[str, Any]) -> Order:
        try:
            created_ms = data.get("updateTime") or data.get("time")
            return Order(
                order_id=str(data["orderId"]),
                client_order_id=data.get("clientOrderId"),
                symbol=data["symbol"],
                side=OrderSide(data["side"]),
                order_type=OrderType(data["type"]),
                quantity=_to_float(data.get("origQty")),
                price=_to_optional_price(data.get("price")),
                stop_price=_to_optional_price(data.get("stopPrice")),
                status=OrderStatus(data.get("status", OrderStatus.NEW.value)),
                executed_qty=_to_float(data.get("executedQty")),
                avg_fill_price=_to_optional_price(data.get("avgPrice")),
                created_at=from_utc_ms(int(created_ms)) if created_ms else utc_now(),
            )
        except (KeyError, ValueError, TypeError) as e:
            raise ExchangeError(
                f"Unexpected order payload: {e}",
                details={"payload": data},
            ) from e

    async def _post_order(self, params: dict[str, Any]) -> Order:
        data = await self._signed_request("POST", "/fapi/v1/order", params)
        order = self._parse_order(data)
        logger.info(
            f"下单成功: {order.symbol} {order.side.value} {order.order_type.value}",
            extra={
                "order_id": order.order_id,
                "quantity": order.quantity,
                "stop_price": order.stop_price,
                "status": order.status.value,
            },
        )
        return order

    async def place_market_order(
        self,
        symbol: str,
        side: OrderSide,
        quantity: Decimal,
        leverage: int | None = None,
    ) -> Order:
        if leverage:
            await self.set_leverage(symbol, leverage)

        return await self._post_order({
            "symbol": symbol,
            "side": side.value,
            "type": OrderType.MARKET.value,
            "quantity": format_decimal(quantity),
            "positionSide": ONE_WAY_POSITION_SIDE,
        })

    async def _place_reduce_only_stop(
        self,
        order_type: OrderType,
        symbol: str,
        side: OrderSide,
        stop_price: Decimal,
        quantity: Decimal,
    ) -> Order:
        return await self._post_order({
            "symbol": symbol,
            "side": side.value,
            "type": order_type.value,
            "stopPrice": format_decimal(stop_price),
            "quantity": format_decimal(quantity),
            "reduceOnly": "true",
            "positionSide": ONE_WAY_POSITION_SIDE,
            "workingType": "MARK_PRICE",
        })

    async def place_take_profit_order(
        self,
        symbol: str,
        side: OrderSide,
        stop_price: Decimal,
        quantity: Decimal,
    ) -> Order:
        return await self._place_reduce_only_stop(
            OrderType.TAKE_PROFIT_MARKET, symbol, side, stop_price, quantity
        )

    async def place_stop_loss_order(
        self,
        symbol: str,
        side: OrderSide,
        stop_price: Decimal,
        quantity: Decimal,
    ) -> Order:
        return await self._place_reduce_only_stop(
            OrderType.STOP_MARKET, symbol, side, stop_price, quantity
        )

    async def close_position(self, symbol: str, side: PositionSide) -> Order:
        return await self._post_order({
            "symbol": symbol,
            "side": side.exit_side.value,
            "type": OrderType.MARKET.value,
            "closePosition": "true",
            "positionSide": ONE_WAY_POSITION_SIDE,
        })

    async def cancel_all_orders(self, symbol: str) -> None:
        await self._signed_request("DELETE", "/fapi/v1/allOpenOrders", {"symbol": symbol})
        logger.info(f"撤销所有订单: {symbol}")

    async def get_order(self, symbol: str, order_id: str) -> Order | None:
        try:
            data = await self._signed_request(
                "GET", "/fapi/v1/order", {"symbol": symbol, "orderId": order_id}
            )
            return self._parse_order(data)
        except TradingSystemError as e:
            logger.warning(
                f"查询订单失败: {order_id}",
                extra={"symbol": symbol, "error": str(e)},
            )
            return None

    async def wait_for_fill(
        self,
        symbol: str,
        order_id: str,
        max_wait_ms: int = 10_000,
        poll_interval_ms: int | None = None,
    ) -> bool:
        start = self._clock.monotonic()
        max_wait = max_wait_ms / 1000
        interval = (poll_interval_ms or self.poll_interval_ms) / 1000

        while self._clock.monotonic() - start < max_wait:
            order = await self.get_order(symbol, order_id)
            if order is None:
                return False
            if order.status == OrderStatus.FILLED:
                return True
            if order.status.is_terminal:
                logger.warning(
                    f"订单未成交即终止: {order_id}",
                    extra={"status": order.status.value},
                )
                return False

            await asyncio.sleep(interval)

        logger.warning(f"等待成交超时: {order_id}", extra={"max_wait_ms": max_wait_ms})
        return False
