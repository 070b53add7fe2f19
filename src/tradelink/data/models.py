"""거래소 공통(캐노니컬) 데이터 모델."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Optional, Tuple

ZERO = Decimal("0")


def to_decimal(value: object, default: Decimal = ZERO) -> Decimal:
    """거래소 응답의 숫자 필드를 Decimal 로 변환한다. 빈 값은 기본값을 쓴다."""

    if value is None or value == "":
        return default
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool):
        raise TypeError(f"Decimal 로 변환할 수 없는 타입: {type(value)!r}")
    if isinstance(value, (int, float)):
        return Decimal(str(value))
    if isinstance(value, str):
        try:
            return Decimal(value.strip())
        except InvalidOperation as exc:
            raise ValueError(f"숫자 형식이 아닙니다: {value!r}") from exc
    raise TypeError(f"Decimal 로 변환할 수 없는 타입: {type(value)!r}")


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def normalize_symbol(symbol: str) -> str:
    """거래소별 구분자(/, _)를 없앤 대문자 심볼. 이력과 잠금의 키로 쓴다."""

    return symbol.strip().replace("/", "").replace("_", "").upper()


class Venue(str, Enum):
    """지원하는 거래소."""

    BINANCE = "binance"
    GATE = "gate"


class AccountType(str, Enum):
    SPOT = "spot"
    FUTURES = "futures"


class OrderSide(str, Enum):
    """주문 방향."""

    BUY = "buy"
    SELL = "sell"

    @property
    def is_buy(self) -> bool:
        return self is OrderSide.BUY


class OrderType(str, Enum):
    MARKET = "market"
    LIMIT = "limit"


class PositionSide(str, Enum):
    LONG = "long"
    SHORT = "short"


class SignalType(str, Enum):
    """외부 지표 모듈이 만든 시그널 종류."""

    BUY = "BUY"
    SELL = "SELL"
    HOLD = "HOLD"


class RiskLevel(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    EXTREME = "EXTREME"

    @property
    def rank(self) -> int:
        return _RISK_RANK[self]

    def raise_to(self, other: "RiskLevel") -> "RiskLevel":
        """두 위험 등급 중 더 높은 쪽을 반환한다."""

        return other if other.rank > self.rank else self


_RISK_RANK = {RiskLevel.LOW: 0, RiskLevel.MEDIUM: 1, RiskLevel.HIGH: 2, RiskLevel.EXTREME: 3}


class VolatilityTier(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


@dataclass(frozen=True, slots=True)
class ExchangeCredentials:
    """호출마다 전달되는 거래소 인증 정보. 이 계층은 저장하지 않는다."""

    venue: Venue
    api_key: str
    api_secret: str = field(repr=False)
    sandbox: bool = False

    def __repr__(self) -> str:
        return (
            f"ExchangeCredentials(venue={self.venue.value!r}, api_key={_mask(self.api_key)!r}, "
            f"api_secret='***', sandbox={self.sandbox!r})"
        )


def _mask(value: str) -> str:
    if len(value) <= 8:
        return "***"
    return f"{value[:4]}***{value[-4:]}"


@dataclass(frozen=True, slots=True)
class SignatureRequest:
    """Gate 방식 서명의 입력. timestamp 는 서명 직전에 생성된 초 단위 값이다."""

    method: str
    path: str
    query: str
    body: str
    timestamp: int


@dataclass(frozen=True, slots=True)
class CanonicalBalance:
    """거래소와 무관한 정산 자산 잔고."""

    venue: Venue
    account_type: AccountType
    asset: str
    total: Decimal
    available: Decimal
    margin_balance: Optional[Decimal] = None
    unrealized_pnl: Optional[Decimal] = None
    captured_at: datetime = field(default_factory=utc_now)

    @classmethod
    def empty(cls, venue: Venue, account_type: AccountType, asset: str) -> "CanonicalBalance":
        """정산 자산 행이 없을 때 사용하는 0 잔고."""

        futures = account_type is AccountType.FUTURES
        return cls(
            venue=venue,
            account_type=account_type,
            asset=asset.upper(),
            total=ZERO,
            available=ZERO,
            margin_balance=ZERO if futures else None,
            unrealized_pnl=ZERO if futures else None,
        )


@dataclass(frozen=True, slots=True)
class CanonicalPosition:
    """보유 선물 포지션. size 는 항상 0 보다 크다."""

    id: str
    venue: Venue
    symbol: str
    side: PositionSide
    size: Decimal
    entry_price: Decimal
    mark_price: Decimal
    leverage: Decimal
    unrealized_pnl: Decimal
    liquidation_price: Decimal
    margin: Decimal
    timestamp: datetime = field(default_factory=utc_now)

    @classmethod
    def from_signed_size(
        cls,
        *,
        venue: Venue,
        symbol: str,
        signed_size: Decimal,
        **fields: object,
    ) -> Optional["CanonicalPosition"]:
        """부호 있는 수량으로 방향을 정한다. 수량이 0 이면 None."""

        if signed_size == ZERO:
            return None
        side = PositionSide.LONG if signed_size > ZERO else PositionSide.SHORT
        return cls(
            id=f"{venue.value}-{symbol}",
            venue=venue,
            symbol=symbol,
            side=side,
            size=abs(signed_size),
            **fields,  # type: ignore[arg-type]
        )


@dataclass(frozen=True, slots=True)
class OrderRequest:
    symbol: str
    side: OrderSide
    amount: Decimal
    price: Optional[Decimal] = None
    order_type: OrderType = OrderType.MARKET

    def validation_error(self) -> Optional[str]:
        """주문 파라미터의 문제를 설명한다. 문제가 없으면 None."""

        if not self.symbol.strip():
            return "심볼이 비어 있습니다."
        if self.amount <= ZERO:
            return "주문 수량은 0 보다 커야 합니다."
        if self.order_type is OrderType.LIMIT and (self.price is None or self.price <= ZERO):
            return "지정가 주문에는 0 보다 큰 가격이 필요합니다."
        return None


@dataclass(frozen=True, slots=True)
class OrderResult:
    order_id: str
    venue: Venue
    symbol: str
    side: OrderSide
    filled_amount: Decimal
    requested_amount: Decimal
    status: str
    timestamp: datetime = field(default_factory=utc_now)


@dataclass(frozen=True, slots=True)
class TradingSignal:
    """지표 모듈에서 전달받는 매매 시그널."""

    type: SignalType
    strength: Decimal
    price: Decimal
    source: Optional[str] = None
    message: Optional[str] = None
    timestamp: datetime = field(default_factory=utc_now)

    def __post_init__(self) -> None:
        object.__setattr__(self, "strength", to_decimal(self.strength))
        object.__setattr__(self, "price", to_decimal(self.price))
        if not (ZERO <= self.strength <= Decimal("100")):
            raise ValueError("시그널 강도는 0 이상 100 이하여야 합니다.")


@dataclass(frozen=True, slots=True)
class TradeRecord:
    """체결된 거래 한 건."""

    symbol: str
    side: OrderSide
    amount: Decimal
    entry_price: Decimal
    timestamp: datetime
    exit_price: Optional[Decimal] = None
    pnl: Optional[Decimal] = None

    @property
    def is_win(self) -> Optional[bool]:
        """실현 손익이 없으면 None, 양수면 승, 그 외에는 패."""

        if self.pnl is None:
            return None
        return self.pnl > ZERO


@dataclass(frozen=True, slots=True)
class DailyStats:
    """UTC 하루 단위 거래 집계 스냅샷."""

    trading_day: date
    trades: int = 0
    wins: int = 0
    losses: int = 0
    pnl: Decimal = ZERO

    @property
    def win_rate(self) -> Decimal:
        if self.trades == 0:
            return ZERO
        return Decimal(self.wins) / Decimal(self.trades) * Decimal("100")


@dataclass(frozen=True, slots=True)
class TradeProposal:
    """리스크 평가 대상 거래."""

    symbol: str
    signal: TradingSignal
    account_balance: Decimal
    open_positions: Tuple[CanonicalPosition, ...] = ()
    volatility: Optional[VolatilityTier] = None


@dataclass(frozen=True, slots=True)
class RiskAssessment:
    approved: bool
    risk_level: RiskLevel
    recommended_position_size: Decimal
    recommended_leverage: int
    stop_loss: Optional[Decimal]
    take_profit: Optional[Decimal]
    warnings: Tuple[str, ...]
    reasons: Tuple[str, ...]


@dataclass(frozen=True, slots=True)
class RiskStatistics:
    daily_pnl: Decimal
    daily_trades: int
    win_rate: Decimal
    consecutive_losses: int
    risk_level: RiskLevel


@dataclass(frozen=True, slots=True)
class OrderExecutionReport:
    """리스크 승인 후 실행된 주문의 결과."""

    order: OrderResult
    assessment: RiskAssessment
    record: TradeRecord


@dataclass(frozen=True, slots=True)
class SignatureDiagnostics:
    """서명 진단 결과. 서명 원문과 Secret 은 담지 않는다."""

    venue: Venue
    api_key_length: int
    api_secret_length: int
    min_key_length: int
    api_key_valid: bool
    api_secret_valid: bool
    whitespace_free: bool
    timestamp: Optional[int]
    signature_valid: bool
    signature_length: int
    expected_signature_length: int
    signature_preview: Optional[str] = None
    signature_error: Optional[str] = None
    api_call_ok: Optional[bool] = None
    api_call_error_kind: Optional[str] = None
    api_call_status_code: Optional[int] = None
    api_call_message: Optional[str] = None
    recommendations: Tuple[str, ...] = ()

    @property
    def ok(self) -> bool:
        return self.signature_valid and self.api_call_ok is True


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
    "ZERO",
    "normalize_symbol",
    "to_decimal",
    "utc_now",
]
