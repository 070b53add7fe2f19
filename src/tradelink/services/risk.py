"""주문 전 리스크 게이트."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, List, Mapping, Optional, Tuple

from ..data import (
    RiskAssessment,
    RiskLevel,
    RiskStatistics,
    SignalType,
    TradeProposal,
    TradingSignal,
    VolatilityTier,
)
from ..data.models import ZERO, normalize_symbol
from .history import TradeHistoryStore

logger = logging.getLogger(__name__)

HUNDRED = Decimal("100")

STOP_LOSS_PCT: Mapping[VolatilityTier, Decimal] = {
    VolatilityTier.LOW: Decimal("0.02"),
    VolatilityTier.MEDIUM: Decimal("0.03"),
    VolatilityTier.HIGH: Decimal("0.05"),
}


@dataclass(frozen=True)
class RiskParameters:
    """리스크 게이트 임계값."""

    min_signal_strength: Decimal = Decimal("60")
    max_daily_loss_pct: Decimal = Decimal("2")
    max_position_size_pct: Decimal = Decimal("5")
    position_size_factor: Decimal = Decimal("0.8")
    max_consecutive_losses: int = 3
    min_risk_reward_ratio: Decimal = Decimal("1.5")
    cooldown_seconds: float = 300.0
    max_open_positions: int = 3
    leverage_low_volatility: int = 20
    leverage_medium_volatility: int = 10
    leverage_high_volatility: int = 5
    min_leverage: int = 2
    statistics_extreme_loss: Decimal = Decimal("1000")

    def __post_init__(self) -> None:
        if not (ZERO <= self.min_signal_strength <= HUNDRED):
            raise ValueError("min_signal_strength는 0 이상 100 이하여야 합니다.")
        if self.max_daily_loss_pct < ZERO:
            raise ValueError("max_daily_loss_pct는 음수일 수 없습니다.")
        if not (ZERO < self.max_position_size_pct <= HUNDRED):
            raise ValueError("max_position_size_pct는 0 초과 100 이하여야 합니다.")
        if not (ZERO < self.position_size_factor <= Decimal("1")):
            raise ValueError("position_size_factor는 0 초과 1 이하여야 합니다.")
        if self.max_consecutive_losses < 1:
            raise ValueError("max_consecutive_losses는 1 이상이어야 합니다.")
        if self.min_risk_reward_ratio <= ZERO:
            raise ValueError("min_risk_reward_ratio는 양수여야 합니다.")
        if self.cooldown_seconds < 0:
            raise ValueError("cooldown_seconds는 0 이상이어야 합니다.")
        if self.max_open_positions < 1:
            raise ValueError("max_open_positions는 1 이상이어야 합니다.")
        if min(self.leverage_low_volatility, self.leverage_medium_volatility, self.leverage_high_volatility) < 1:
            raise ValueError("레버리지 한도는 1 이상이어야 합니다.")
        if self.min_leverage < 1:
            raise ValueError("min_leverage는 1 이상이어야 합니다.")

    def base_leverage(self, volatility: VolatilityTier) -> int:
        return {
            VolatilityTier.LOW: self.leverage_low_volatility,
            VolatilityTier.MEDIUM: self.leverage_medium_volatility,
            VolatilityTier.HIGH: self.leverage_high_volatility,
        }[volatility]


class VolatilityProvider(ABC):
    """심볼의 변동성 등급을 알려주는 외부 입력."""

    @abstractmethod
    def estimate(self, symbol: str, price: Decimal) -> VolatilityTier:
        """심볼과 현재가로 변동성 등급을 추정한다."""


class StaticVolatilityProvider(VolatilityProvider):
    """심볼별 고정 등급, 없으면 기본 등급을 돌려준다."""

    def __init__(
        self,
        default: VolatilityTier = VolatilityTier.MEDIUM,
        overrides: Optional[Mapping[str, VolatilityTier]] = None,
    ) -> None:
        self._default = default
        self._overrides: Dict[str, VolatilityTier] = {
            normalize_symbol(symbol): tier for symbol, tier in (overrides or {}).items()
        }

    def estimate(self, symbol: str, price: Decimal) -> VolatilityTier:
        return self._overrides.get(normalize_symbol(symbol), self._default)


class RiskGate:
    """시그널 강도, 일일 손익, 연속 손실, 재진입 대기, 보유 포지션 수를 검사한다.

    모든 검사를 끝까지 수행해 실패한 검사는 ``warnings`` 에, 통과한 검사와 권장값은
    ``reasons`` 에 남긴다. 네트워크에는 접근하지 않는다.
    """

    def __init__(
        self,
        params: RiskParameters,
        history: TradeHistoryStore,
        *,
        volatility: Optional[VolatilityProvider] = None,
    ) -> None:
        self._params = params
        self._history = history
        self._volatility = volatility or StaticVolatilityProvider()

    @property
    def params(self) -> RiskParameters:
        return self._params

    @property
    def history(self) -> TradeHistoryStore:
        return self._history

    def assess_trade(self, proposal: TradeProposal) -> RiskAssessment:
        params = self._params
        signal = proposal.signal
        symbol = proposal.symbol
        balance = proposal.account_balance
        warnings: List[str] = []
        reasons: List[str] = []
        approved = True
        forced_level = RiskLevel.LOW

        if signal.strength < params.min_signal_strength:
            approved = False
            warnings.append(f"시그널 강도 부족: {signal.strength}% (최소 {params.min_signal_strength}%)")
        else:
            reasons.append(f"시그널 강도 적정: {signal.strength}%")

        daily = self._history.daily_stats()
        loss_limit = balance * params.max_daily_loss_pct / HUNDRED
        if daily.pnl < -loss_limit:
            approved = False
            forced_level = RiskLevel.EXTREME
            warnings.append(f"일일 손실 한도 초과: {daily.pnl:.2f} (한도 -{loss_limit:.2f})")
        else:
            reasons.append(f"일일 손익 한도 이내: {daily.pnl:.2f}")

        losses = self._history.consecutive_losses(symbol)
        if losses >= params.max_consecutive_losses:
            approved = False
            forced_level = forced_level.raise_to(RiskLevel.HIGH)
            warnings.append(f"연속 손실 한도 도달: {symbol} {losses}회 (최대 {params.max_consecutive_losses}회)")
        else:
            reasons.append(f"연속 손실 {losses}회로 한도 이내")

        remaining = self._cooldown_remaining(symbol)
        if remaining > 0:
            approved = False
            warnings.append(f"{symbol} 재진입 대기 중: {remaining:.0f}초 남음")
        else:
            reasons.append(f"{symbol} 재진입 대기 시간 경과")

        open_count = len(proposal.open_positions)
        if open_count >= params.max_open_positions:
            approved = False
            warnings.append(f"최대 보유 포지션 수 도달: {open_count}개 (최대 {params.max_open_positions}개)")
        else:
            reasons.append(f"보유 포지션 {open_count}개로 한도 이내")

        if signal.type is SignalType.HOLD:
            approved = False
            warnings.append("HOLD 시그널은 주문 대상이 아닙니다.")

        volatility = proposal.volatility or self._volatility.estimate(symbol, signal.price)
        position_size = self._position_size(balance, signal.strength)
        leverage = self._leverage(volatility, signal.strength)
        stop_loss, take_profit = self._exit_levels(signal, volatility)
        risk_level = self._tier(signal.strength, losses, daily.pnl).raise_to(forced_level)

        if approved:
            reasons.append("모든 리스크 검사 통과")
        reasons.append(f"권장 포지션 크기: {position_size:.2f}")
        reasons.append(f"권장 레버리지: {leverage}x (변동성 {volatility.value})")

        if not approved:
            logger.info("%s 주문 거부(%s): %s", symbol, risk_level.value, "; ".join(warnings))

        return RiskAssessment(
            approved=approved,
            risk_level=risk_level,
            recommended_position_size=position_size,
            recommended_leverage=leverage,
            stop_loss=stop_loss,
            take_profit=take_profit,
            warnings=tuple(warnings),
            reasons=tuple(reasons),
        )

    def statistics(self) -> RiskStatistics:
        """당일 손익, 승률, 심볼별 최대 연속 손실로 현재 위험 등급을 요약한다."""

        daily = self._history.daily_stats()
        losses = self._history.max_consecutive_losses()
        win_rate = daily.win_rate
        closed = daily.wins + daily.losses
        level = RiskLevel.LOW
        if daily.pnl < ZERO and abs(daily.pnl) > self._params.statistics_extreme_loss:
            level = RiskLevel.EXTREME
        elif losses >= self._params.max_consecutive_losses or (closed and win_rate < Decimal("30")):
            level = RiskLevel.HIGH
        elif losses >= self._params.max_consecutive_losses - 1 or (closed and win_rate < Decimal("50")):
            level = RiskLevel.MEDIUM
        return RiskStatistics(
            daily_pnl=daily.pnl,
            daily_trades=daily.trades,
            win_rate=win_rate,
            consecutive_losses=losses,
            risk_level=level,
        )

    def _cooldown_remaining(self, symbol: str) -> float:
        last_trade = self._history.last_trade_time(symbol)
        if last_trade is None:
            return 0.0
        elapsed = (self._history.now() - last_trade).total_seconds()
        return max(0.0, self._params.cooldown_seconds - elapsed)

    def _position_size(self, balance: Decimal, strength: Decimal) -> Decimal:
        if balance <= ZERO:
            return ZERO
        max_position_value = balance * self._params.max_position_size_pct / HUNDRED
        return max_position_value * (strength / HUNDRED) * self._params.position_size_factor

    def _leverage(self, volatility: VolatilityTier, strength: Decimal) -> int:
        base = self._params.base_leverage(volatility)
        if strength >= Decimal("80"):
            return base
        factor = Decimal("0.8") if strength >= Decimal("70") else Decimal("0.6")
        return max(int(Decimal(base) * factor), self._params.min_leverage)

    def _exit_levels(
        self, signal: TradingSignal, volatility: VolatilityTier
    ) -> Tuple[Optional[Decimal], Optional[Decimal]]:
        if signal.type is SignalType.HOLD or signal.price <= ZERO:
            return None, None
        stop_pct = STOP_LOSS_PCT[volatility]
        take_pct = stop_pct * self._params.min_risk_reward_ratio
        one = Decimal("1")
        if signal.type is SignalType.BUY:
            return signal.price * (one - stop_pct), signal.price * (one + take_pct)
        return signal.price * (one + stop_pct), signal.price * (one - take_pct)

    @staticmethod
    def _tier(strength: Decimal, losses: int, daily_pnl: Decimal) -> RiskLevel:
        if strength >= Decimal("80") and losses == 0 and daily_pnl >= ZERO:
            return RiskLevel.LOW
        if strength >= Decimal("70") and losses <= 1:
            return RiskLevel.MEDIUM
        if strength >= Decimal("60") and losses <= 2:
            return RiskLevel.HIGH
        return RiskLevel.EXTREME


__all__ = [
    "RiskGate",
    "RiskParameters",
    "STOP_LOSS_PCT",
    "StaticVolatilityProvider",
    "VolatilityProvider",
]
