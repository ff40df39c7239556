"""交易所接口"""

from .aster import AsterClient
from .base import ExchangeClient, Kline, SymbolFilters
from .precision import ExchangeFilterPolicy, FixedPrecisionPolicy, PrecisionPolicy
from .signer import (
    Credentials,
    NonceGenerator,
    RequestSigner,
    SignedRequest,
    serialize_params,
    sign,
    verify_signed_request,
)

__all__ = [
    "ExchangeClient",
    "Kline",
    "SymbolFilters",
    "AsterClient",
    # Precision
    "PrecisionPolicy",
    "FixedPrecisionPolicy",
    "ExchangeFilterPolicy",
    # Signer
    "Credentials",
    "NonceGenerator",
    "RequestSigner",
    "SignedRequest",
    "serialize_params",
    "sign",
    "verify_signed_request",
]
