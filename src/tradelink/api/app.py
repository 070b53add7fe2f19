"""FastAPI 트레이딩 엔드포인트."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, List, Optional

from fastapi import Depends, FastAPI
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from pydantic import AwareDatetime, BaseModel, Field

from ..data import (
    AccountType,
    CanonicalPosition,
    ExchangeCredentials,
    OrderRequest,
    OrderSide,
    OrderType,
    PositionSide,
    SignalType,
    TradeProposal,
    TradeRecord,
    TradingSignal,
    Venue,
    VolatilityTier,
)
from ..data.models import ZERO
from ..errors import Result
from ..services.risk import RiskGate
from ..services.session import TradingSession
from ..services.trading import TradingClient

# 실패 종류별 HTTP 상태 코드. 목록에 없으면 502.
ERROR_STATUS: Dict[str, int] = {
    "invalid_credentials": 400,
    "invalid_order": 400,
    "unsupported_venue": 400,
    "authentication": 401,
    "permission": 403,
    "risk_rejected": 422,
    "rate_limit": 429,
    "network": 504,
}


class CredentialsPayload(BaseModel):
    venue: Venue
    api_key: str
    api_secret: str
    sandbox: bool = False

    def to_credentials(self) -> ExchangeCredentials:
        return ExchangeCredentials(
            venue=self.venue,
            api_key=self.api_key,
            api_secret=self.api_secret,
            sandbox=self.sandbox,
        )


class BalanceRequest(BaseModel):
    credentials: CredentialsPayload
    account_type: AccountType = AccountType.FUTURES


class OrderPayload(BaseModel):
    symbol: str = Field(min_length=1)
    side: OrderSide
    amount: Decimal = Field(gt=Decimal("0"))
    price: Optional[Decimal] = None
    order_type: OrderType = OrderType.MARKET

    def to_order(self) -> OrderRequest:
        return OrderRequest(
            symbol=self.symbol,
            side=self.side,
            amount=self.amount,
            price=self.price,
            order_type=self.order_type,
        )


class SignalPayload(BaseModel):
    type: SignalType
    strength: Decimal = Field(ge=Decimal("0"), le=Decimal("100"))
    price: Decimal
    source: Optional[str] = None
    message: Optional[str] = None

    def to_signal(self) -> TradingSignal:
        return TradingSignal(
            type=self.type,
            strength=self.strength,
            price=self.price,
            source=self.source,
            message=self.message,
        )


class OrderExecutionRequest(BaseModel):
    credentials: CredentialsPayload
    order: OrderPayload
    signal: SignalPayload
    volatility: Optional[VolatilityTier] = None


class PositionPayload(BaseModel):
    """리스크 평가에 전달하는 보유 포지션 요약."""

    venue: Venue
    symbol: str
    side: PositionSide
    size: Decimal = Field(gt=Decimal("0"))
    entry_price: Decimal = ZERO
    mark_price: Decimal = ZERO
    leverage: Decimal = Decimal("1")

    def to_position(self) -> CanonicalPosition:
        return CanonicalPosition(
            id=f"{self.venue.value}-{self.symbol}",
            venue=self.venue,
            symbol=self.symbol,
            side=self.side,
            size=self.size,
            entry_price=self.entry_price,
            mark_price=self.mark_price,
            leverage=self.leverage,
            unrealized_pnl=ZERO,
            liquidation_price=ZERO,
            margin=ZERO,
        )


class RiskAssessmentRequest(BaseModel):
    symbol: str = Field(min_length=1)
    signal: SignalPayload
    account_balance: Decimal
    open_positions: List[PositionPayload] = Field(default_factory=list)
    volatility: Optional[VolatilityTier] = None


class TradeRecordPayload(BaseModel):
    symbol: str = Field(min_length=1)
    side: OrderSide
    amount: Decimal = Field(gt=Decimal("0"))
    entry_price: Decimal
    exit_price: Optional[Decimal] = None
    pnl: Optional[Decimal] = None
    timestamp: Optional[AwareDatetime] = Field(None, description="체결 시각(시간대 포함). 없으면 기록 시각")


@dataclass
class ApplicationContext:
    client: TradingClient
    risk_gate: RiskGate
    session: TradingSession


def encode(value: Any) -> Any:
    """응답 본문으로 변환한다. Decimal 은 정밀도 유지를 위해 문자열로 보낸다."""

    return jsonable_encoder(value, custom_encoder={Decimal: str})


def result_response(result: Result[Any]) -> JSONResponse:
    status_code = 200 if result.ok else ERROR_STATUS.get(result.error.kind, 502)
    return JSONResponse(status_code=status_code, content=encode(result.to_dict()))


def create_app(context: ApplicationContext) -> FastAPI:
    app = FastAPI(title="Tradelink Trading API", version="0.1.0")
    app.state.context = context

    def get_context() -> ApplicationContext:
        return app.state.context

    @app.get("/health")
    async def health() -> Dict[str, str]:
        return {"status": "ok"}

    @app.post("/connection/test")
    async def test_connection(
        payload: CredentialsPayload,
        ctx: ApplicationContext = Depends(get_context),
    ) -> JSONResponse:
        return result_response(await ctx.client.test_connection(payload.to_credentials()))

    @app.post("/balance")
    async def balance(
        payload: BalanceRequest,
        ctx: ApplicationContext = Depends(get_context),
    ) -> JSONResponse:
        credentials = payload.credentials.to_credentials()
        return result_response(await ctx.client.get_balance(credentials, payload.account_type))

    @app.post("/diagnostics/signature")
    async def diagnose_signature(
        payload: CredentialsPayload,
        ctx: ApplicationContext = Depends(get_context),
    ) -> JSONResponse:
        return result_response(await ctx.client.diagnose(payload.to_credentials()))

    @app.post("/positions")
    async def positions(
        payload: CredentialsPayload,
        ctx: ApplicationContext = Depends(get_context),
    ) -> JSONResponse:
        return result_response(await ctx.client.get_positions(payload.to_credentials()))

    @app.post("/orders")
    async def execute_order(
        payload: OrderExecutionRequest,
        ctx: ApplicationContext = Depends(get_context),
    ) -> JSONResponse:
        result = await ctx.session.execute(
            payload.credentials.to_credentials(),
            payload.order.to_order(),
            payload.signal.to_signal(),
            volatility=payload.volatility,
        )
        return result_response(result)

    @app.post("/risk/assess")
    async def assess(
        payload: RiskAssessmentRequest,
        ctx: ApplicationContext = Depends(get_context),
    ) -> Dict[str, Any]:
        proposal = TradeProposal(
            symbol=payload.symbol,
            signal=payload.signal.to_signal(),
            account_balance=payload.account_balance,
            open_positions=tuple(position.to_position() for position in payload.open_positions),
            volatility=payload.volatility,
        )
        return encode(ctx.risk_gate.assess_trade(proposal))

    @app.post("/trades")
    async def record_trade(
        payload: TradeRecordPayload,
        ctx: ApplicationContext = Depends(get_context),
    ) -> Dict[str, Any]:
        record = TradeRecord(
            symbol=payload.symbol,
            side=payload.side,
            amount=payload.amount,
            entry_price=payload.entry_price,
            timestamp=payload.timestamp or ctx.session.history.now(),
            exit_price=payload.exit_price,
            pnl=payload.pnl,
        )
        ctx.session.record_trade(record)
        return {"status": "recorded", "daily": encode(ctx.session.history.daily_stats())}

    @app.get("/risk/statistics")
    async def statistics(ctx: ApplicationContext = Depends(get_context)) -> Dict[str, Any]:
        return encode(ctx.risk_gate.statistics())

    return app


__all__ = [
    "ApplicationContext",
    "BalanceRequest",
    "CredentialsPayload",
    "OrderExecutionRequest",
    "OrderPayload",
    "PositionPayload",
    "RiskAssessmentRequest",
    "SignalPayload",
    "TradeRecordPayload",
    "create_app",
    "encode",
    "result_response",
]
