"""런타임 구성과 FastAPI 애플리케이션 부트스트랩."""

from __future__ import annotations

from typing import Optional

from fastapi import FastAPI

from ..api.app import ApplicationContext, create_app
from ..clients.binance import BinanceAdapter
from ..clients.gate import GateAdapter
from ..config.settings import AppSettings, get_settings
from ..services.history import TradeHistoryStore
from ..services.risk import RiskGate, RiskParameters, StaticVolatilityProvider
from ..services.session import TradingSession
from ..services.trading import TradingClient


def build_risk_parameters(settings: AppSettings) -> RiskParameters:
    return RiskParameters(
        min_signal_strength=settings.min_signal_strength,
        max_daily_loss_pct=settings.max_daily_loss_pct,
        max_position_size_pct=settings.max_position_size_pct,
        position_size_factor=settings.position_size_factor,
        max_consecutive_losses=settings.max_consecutive_losses,
        min_risk_reward_ratio=settings.min_risk_reward_ratio,
        cooldown_seconds=settings.cooldown_seconds,
        max_open_positions=settings.max_open_positions,
        leverage_low_volatility=settings.leverage_low_volatility,
        leverage_medium_volatility=settings.leverage_medium_volatility,
        leverage_high_volatility=settings.leverage_high_volatility,
        min_leverage=settings.min_leverage,
        statistics_extreme_loss=settings.statistics_extreme_loss,
    )


def build_application(settings: Optional[AppSettings] = None) -> FastAPI:
    settings = settings or get_settings()
    client = TradingClient([BinanceAdapter(settings), GateAdapter(settings)])
    history = TradeHistoryStore(limit=settings.history_limit)
    risk_gate = RiskGate(
        build_risk_parameters(settings),
        history,
        volatility=StaticVolatilityProvider(settings.default_volatility, settings.volatility_overrides),
    )
    session = TradingSession(client, risk_gate, history)

    context = ApplicationContext(client=client, risk_gate=risk_gate, session=session)
    app = create_app(context)

    @app.on_event("shutdown")
    async def _close_client() -> None:  # pragma: no cover - FastAPI 훅
        await client.aclose()

    return app


__all__ = ["build_application", "build_risk_parameters"]
