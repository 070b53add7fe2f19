"""애플리케이션 설정 로더."""

from __future__ import annotations

from decimal import Decimal
from functools import lru_cache
from typing import Dict

from pydantic import Field, HttpUrl
from pydantic_settings import BaseSettings, SettingsConfigDict

from ..data import VolatilityTier


class AppSettings(BaseSettings):
    """환경 변수 기반 프로젝트 설정."""

    model_config = SettingsConfigDict(
        env_prefix="TRADELINK_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    binance_spot_url: HttpUrl = Field(
        default="https://api.binance.com",
        description="바이낸스 현물 REST 기본 URL",
    )
    binance_futures_url: HttpUrl = Field(
        default="https://fapi.binance.com",
        description="바이낸스 USDT 선물 REST 기본 URL",
    )
    binance_testnet_spot_url: HttpUrl = Field(
        default="https://testnet.binance.vision",
        description="바이낸스 현물 테스트넷 URL",
    )
    binance_testnet_futures_url: HttpUrl = Field(
        default="https://testnet.binancefuture.com",
        description="바이낸스 선물 테스트넷 URL",
    )
    gate_spot_url: HttpUrl = Field(
        default="https://api.gateio.ws/api/v4",
        description="Gate 현물 REST 기본 URL (/api/v4 포함)",
    )
    gate_futures_url: HttpUrl = Field(
        default="https://fx-api.gateio.ws/api/v4",
        description="Gate 선물 REST 기본 URL (/api/v4 포함)",
    )
    gate_testnet_futures_url: HttpUrl = Field(
        default="https://fx-api-testnet.gateio.ws/api/v4",
        description="Gate 선물 테스트넷 URL",
    )
    http_timeout: float = Field(
        default=30.0,
        description="HTTP 요청 타임아웃(초)",
        ge=0.1,
    )
    binance_recv_window: int = Field(
        default=5000,
        description="바이낸스 서명 요청의 recvWindow(ms)",
        ge=1,
        le=60000,
    )
    settlement_asset: str = Field(
        default="USDT",
        description="잔고 조회와 선물 정산에 사용할 자산",
    )
    binance_min_key_length: int = Field(
        default=40,
        description="바이낸스 API Key/Secret 최소 길이",
        ge=1,
    )
    gate_min_key_length: int = Field(
        default=20,
        description="Gate API Key/Secret 최소 길이",
        ge=1,
    )
    min_signal_strength: Decimal = Field(
        default=Decimal("60"),
        description="주문을 고려할 최소 시그널 강도",
        ge=Decimal("0"),
        le=Decimal("100"),
    )
    max_daily_loss_pct: Decimal = Field(
        default=Decimal("2"),
        description="잔고 대비 일일 최대 손실 비율(%)",
        ge=Decimal("0"),
    )
    max_position_size_pct: Decimal = Field(
        default=Decimal("5"),
        description="포지션 하나에 허용되는 잔고 대비 최대 비율(%)",
        gt=Decimal("0"),
        le=Decimal("100"),
    )
    position_size_factor: Decimal = Field(
        default=Decimal("0.8"),
        description="권장 포지션 크기에 곱하는 안전 계수",
        gt=Decimal("0"),
        le=Decimal("1"),
    )
    max_consecutive_losses: int = Field(
        default=3,
        description="심볼별 연속 손실 허용 횟수",
        ge=1,
    )
    min_risk_reward_ratio: Decimal = Field(
        default=Decimal("1.5"),
        description="손절 대비 익절 최소 비율",
        gt=Decimal("0"),
    )
    cooldown_seconds: float = Field(
        default=300.0,
        description="같은 심볼 재진입까지의 최소 대기 시간(초)",
        ge=0.0,
    )
    max_open_positions: int = Field(
        default=3,
        description="동시에 보유할 수 있는 최대 포지션 수",
        ge=1,
    )
    leverage_low_volatility: int = Field(
        default=20,
        description="변동성 LOW 일 때의 권장 레버리지",
        ge=1,
    )
    leverage_medium_volatility: int = Field(
        default=10,
        description="변동성 MEDIUM 일 때의 권장 레버리지",
        ge=1,
    )
    leverage_high_volatility: int = Field(
        default=5,
        description="변동성 HIGH 일 때의 권장 레버리지",
        ge=1,
    )
    min_leverage: int = Field(
        default=2,
        description="권장 레버리지의 하한",
        ge=1,
    )
    default_volatility: VolatilityTier = Field(
        default=VolatilityTier.MEDIUM,
        description="변동성 입력이 없을 때 사용할 등급",
    )
    volatility_overrides: Dict[str, VolatilityTier] = Field(
        default_factory=dict,
        description="심볼별 고정 변동성 등급 (JSON, 예: {\"BTCUSDT\": \"LOW\"})",
    )
    history_limit: int = Field(
        default=100,
        description="심볼별로 보관할 최근 거래 수",
        ge=1,
    )
    statistics_extreme_loss: Decimal = Field(
        default=Decimal("1000"),
        description="리스크 통계에서 EXTREME 으로 분류할 일일 손실 금액",
        ge=Decimal("0"),
    )


@lru_cache(maxsize=1)
def get_settings() -> AppSettings:
    """싱글턴 형태로 설정을 반환한다."""

    return AppSettings()


__all__ = ["AppSettings", "get_settings"]
