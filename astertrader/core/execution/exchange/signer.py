"""
Aster 信号交易系统 — 请求签名

Aster V3 钱包签名协议，必须与交易所的校验逐字节一致：

1. 丢弃 None 参数，所有值转为字符串
2. 注入 recvWindow 和 timestamp（属于签名内容）
3. 按键名 ASCII 排序，序列化为无空格 JSON（空参数为 "{}"）
4. ABI 编码 (string, address, address, uint256) =
   (序列化参数, owner 校验和地址, signer 校验和地址, nonce)
5. Keccak-256 哈希
6. EIP-191 个人消息前缀签名，输出 0x 开头的 65 字节签名

认证全部放在请求参数里，不使用 API Key 请求头。
"""

import json
import threading
import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any

from eth_abi import encode as abi_encode
from eth_account import Account
from eth_account.messages import encode_defunct
from eth_utils import is_address, keccak, to_checksum_address

from astertrader.common.config import ExchangeConfig
from astertrader.common.exceptions import ConfigurationError, SignatureError
from astertrader.common.logging import get_logger
from astertrader.common.utils import format_decimal

logger = get_logger(__name__)

RECV_WINDOW = "50000"
SIGNED_REQUEST_HEADERS: dict[str, str] = {"Content-Type": "application/json"}

_ABI_TYPES = ["string", "address", "address", "uint256"]


# ========================================
# 凭证
# ========================================

@dataclass(frozen=True)
class Credentials:
    """
    钱包凭证

    owner_address 是账户身份，signer_address 是被授权签名的 API 钱包，
    两者可以相同也可以不同。构造后不可变。
    """
    owner_address: str
    signer_address: str
    signing_key: str = field(repr=False)

    @classmethod
    def from_keys(
        cls,
        owner_address: str,
        signing_key: str,
        expected_signer: str | None = None,
    ) -> "Credentials":
        """
        校验并构造凭证，任何格式问题都在联网前抛出 ConfigurationError

        Args:
            owner_address: 主钱包地址
            signing_key: 签名私钥（可带或不带 0x）
            expected_signer: 期望的 signer 地址，给定时必须与私钥推导地址一致
        """
        if not owner_address:
            raise ConfigurationError("owner address (ASTER_DEX_KEY) is required")
        if not is_address(owner_address):
            raise ConfigurationError(
                "Invalid owner address format",
                {"owner_address": owner_address},
            )
        if not signing_key:
            raise ConfigurationError("signing key (ASTER_SECRET_KEY) is required")

        key = signing_key if signing_key.startswith("0x") else f"0x{signing_key}"
        try:
            account = Account.from_key(key)
        except Exception as e:
            raise ConfigurationError("Invalid signing key format") from e

        signer = to_checksum_address(account.address)

        if expected_signer:
            if not is_address(expected_signer):
                raise ConfigurationError(
                    "Invalid signer address format",
                    {"signer_address": expected_signer},
                )
            if to_checksum_address(expected_signer) != signer:
                raise ConfigurationError(
                    "Signer address does not match signing key",
                    {"expected": expected_signer, "derived": signer},
                )

        return cls(
            owner_address=to_checksum_address(owner_address),
            signer_address=signer,
            signing_key=key,
        )

    @classmethod
    def from_config(cls, config: ExchangeConfig) -> "Credentials":
        return cls.from_keys(
            config.owner_address,
            config.signing_key,
            expected_signer=config.signer_address,
        )

    @property
    def is_same_wallet(self) -> bool:
        """owner 与 signer 是否为同一钱包"""
        return self.owner_address == self.signer_address


# ========================================
# Nonce
# ========================================

class NonceGenerator:
    """
    微秒级严格递增 nonce

    同一微秒内的多次调用退化为计数器 +1，跨线程共享。
    """

    def __init__(self, time_ns: Callable[[], int] = time.time_ns):
        self._time_ns = time_ns
        self._lock = threading.Lock()
        self._last = 0

    def next(self) -> int:
        with self._lock:
            now_us = self._time_ns() // 1000
            nonce = now_us if now_us > self._last else self._last + 1
            self._last = nonce
            return nonce


# 进程级共享，保证所有签名请求的 nonce 全局单调
_default_nonce_generator = NonceGenerator()


def generate_nonce() -> int:
    """生成进程内全局单调的微秒 nonce"""
    return _default_nonce_generator.next()


# ========================================
# 序列化与签名
# ========================================

def _stringify(value: Any) -> str:
    """参数值转字符串（布尔值小写，数值不用科学计数法）"""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, Enum):
        return str(value.value)
    if isinstance(value, (Decimal, float)):
        return format_decimal(value)
    return str(value)


def normalize_params(params: Mapping[str, Any] | None) -> dict[str, str]:
    """丢弃 None 值并把所有值转为字符串"""
    if not params:
        return {}
    return {
        str(key): _stringify(value)
        for key, value in params.items()
        if value is not None
    }


def serialize_params(params: Mapping[str, Any] | None) -> str:
    """
    规范化序列化

    键名 ASCII 排序、无空白的 JSON 对象；空参数得到 "{}"。
    """
    return json.dumps(
        normalize_params(params),
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
    )


def build_digest(
    serialized: str,
    owner_address: str,
    signer_address: str,
    nonce: int,
) -> bytes:
    """ABI 编码后做 Keccak-256"""
    encoded = abi_encode(
        _ABI_TYPES,
        [
            serialized,
            to_checksum_address(owner_address),
            to_checksum_address(signer_address),
            nonce,
        ],
    )
    return keccak(encoded)


def sign_digest(digest: bytes, signing_key: str) -> str:
    """EIP-191 前缀签名，返回 0x 开头的 hex"""
    try:
        signed = Account.sign_message(encode_defunct(primitive=digest), private_key=signing_key)
    except Exception as e:
        raise SignatureError(f"Failed to create signature: {e}") from e
    return "0x" + bytes(signed.signature).hex()


def recover_signer(digest: bytes, signature: str) -> str:
    """从签名恢复 signer 地址（调试与自检用）"""
    return to_checksum_address(
        Account.recover_message(encode_defunct(primitive=digest), signature=signature)
    )


@dataclass(frozen=True)
class SignedRequest:
    """
    一次签名请求

    params 中的 timestamp 与签名内容中的 timestamp 必须相同。
    """
    endpoint: str
    canonical_params: str
    params: dict[str, Any]
    nonce: int
    timestamp: int
    signature: str
    headers: dict[str, str] = field(default_factory=lambda: dict(SIGNED_REQUEST_HEADERS))


def sign(
    endpoint: str,
    params: Mapping[str, Any] | None,
    credentials: Credentials,
    nonce: int | None = None,
    timestamp: int | None = None,
    recv_window: str = RECV_WINDOW,
) -> SignedRequest:
    """
    生成签名请求

    Args:
        endpoint: 接口路径，如 /fapi/v3/balance
        params: 业务参数
        credentials: 钱包凭证
        nonce: 微秒 nonce（默认取全局生成器）
        timestamp: 毫秒时间戳（默认当前时间）
        recv_window: 服务端时间窗口

    Returns:
        SignedRequest
    """
    ts = int(time.time() * 1000) if timestamp is None else int(timestamp)
    request_nonce = generate_nonce() if nonce is None else int(nonce)

    signed_params = normalize_params(params)
    signed_params["recvWindow"] = str(recv_window)
    signed_params["timestamp"] = str(ts)

    canonical = serialize_params(signed_params)
    digest = build_digest(
        canonical,
        credentials.owner_address,
        credentials.signer_address,
        request_nonce,
    )
    signature = sign_digest(digest, credentials.signing_key)

    wire_params: dict[str, Any] = dict(signed_params)
    wire_params.update({
        "timestamp": ts,
        "nonce": str(request_nonce),
        "user": credentials.owner_address,
        "signer": credentials.signer_address,
        "signature": signature,
    })

    logger.debug(
        f"签名请求: {endpoint}",
        extra={"endpoint": endpoint, "nonce": request_nonce, "timestamp": ts},
    )

    return SignedRequest(
        endpoint=endpoint,
        canonical_params=canonical,
        params=wire_params,
        nonce=request_nonce,
        timestamp=ts,
        signature=signature,
    )


def verify_signed_request(request: SignedRequest, credentials: Credentials) -> bool:
    """按交易所的校验流程复算，确认签名出自 credentials 的 signer"""
    digest = build_digest(
        request.canonical_params,
        credentials.owner_address,
        credentials.signer_address,
        request.nonce,
    )
    return recover_signer(digest, request.signature) == credentials.signer_address


class RequestSigner:
    """
    请求签名器

    绑定凭证、nonce 生成器和时间源，供交易所客户端每次请求调用。
    """

    def __init__(
        self,
        credentials: Credentials,
        recv_window: str = RECV_WINDOW,
        nonce_generator: NonceGenerator | None = None,
        time_ms: Callable[[], int] | None = None,
    ):
        self.credentials = credentials
        self.recv_window = recv_window
        self._nonces = nonce_generator or _default_nonce_generator
        self._time_ms = time_ms or (lambda: int(time.time() * 1000))

    def sign(self, endpoint: str, params: Mapping[str, Any] | None = None) -> SignedRequest:
        return sign(
            endpoint,
            params,
            self.credentials,
            nonce=self._nonces.next(),
            timestamp=self._time_ms(),
            recv_window=self.recv_window,
        )
