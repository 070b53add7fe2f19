"""Tradelink 다중 거래소 서명/정규화 계층 패키지."""

from .clients.base import VenueAdapter  # noqa: F401
from .clients.binance import BinanceAdapter  # noqa: F401
from .clients.gate import GateAdapter  # noqa: F401
from .clients.signing import BinanceSigner, GateSigner  # noqa: F401
from .config.settings import AppSettings, get_settings  # noqa: F401
from .data import (  # noqa: F401
    AccountType,
    CanonicalBalance,
    CanonicalPosition,
    ExchangeCredentials,
    OrderRequest,
    OrderResult,
    OrderSide,
    OrderType,
    RiskAssessment,
    RiskLevel,
    SignalType,
    SignatureDiagnostics,
    TradeProposal,
    TradeRecord,
    TradingSignal,
    Venue,
    VolatilityTier,
)
from .errors import (  # noqa: F401
    AuthenticationError,
    NetworkError,
    RateLimitError,
    Result,
    RiskGateRejection,
    SignatureFormatError,
    VenueError,
    VenuePermissionError,
)
from .runtime.bootstrap import build_application  # noqa: F401
from .services.history import TradeHistoryStore  # noqa: F401
from .services.risk import RiskGate, RiskParameters, StaticVolatilityProvider  # noqa: F401
from .services.session import TradingSession  # noqa: F401
from .services.trading import TradingClient  # noqa: F401

__all__ = [
    "AccountType",
    "AppSettings",
    "AuthenticationError",
    "BinanceAdapter",
    "BinanceSigner",
    "CanonicalBalance",
    "CanonicalPosition",
    "ExchangeCredentials",
    "GateAdapter",
    "GateSigner",
    "NetworkError",
    "OrderRequest",
    "OrderResult",
    "OrderSide",
    "OrderType",
    "RateLimitError",
    "Result",
    "RiskAssessment",
    "RiskGate",
    "RiskGateRejection",
    "RiskLevel",
    "RiskParameters",
    "SignalType",
    "SignatureDiagnostics",
    "SignatureFormatError",
    "StaticVolatilityProvider",
    "TradeHistoryStore",
    "TradeProposal",
    "TradeRecord",
    "TradingClient",
    "TradingSession",
    "TradingSignal",
    "Venue",
    "VenueAdapter",
    "VenueError",
    "VenuePermissionError",
    "VolatilityTier",
    "build_application",
    "get_settings",
]
