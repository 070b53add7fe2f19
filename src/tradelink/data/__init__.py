"""데이터 모델 서브패키지."""

from .models import (
    AccountType,
    CanonicalBalance,
    CanonicalPosition,
    DailyStats,
    ExchangeCredentials,
    OrderExecutionReport,
    OrderRequest,
    OrderResult,
    OrderSide,
    OrderType,
    PositionSide,
    RiskAssessment,
    RiskLevel,
    RiskStatistics,
    SignalType,
    SignatureDiagnostics,
    SignatureRequest,
    TradeProposal,
    TradeRecord,
    TradingSignal,
    Venue,
    VolatilityTier,
)

__all__ = [
    "AccountType",
    "CanonicalBalance",
    "CanonicalPosition",
    "DailyStats",
    "ExchangeCredentials",
    "OrderExecutionReport",
    "OrderRequest",
    "OrderResult",
    "OrderSide",
    "OrderType",
    "PositionSide",
    "RiskAssessment",
    "RiskLevel",
    "RiskStatistics",
    "SignalType",
    "SignatureDiagnostics",
    "SignatureRequest",
    "TradeProposal",
    "TradeRecord",
    "TradingSignal",
    "Venue",
    "VolatilityTier",
]
