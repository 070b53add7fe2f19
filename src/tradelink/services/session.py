"""리스크 승인 후 주문을 실행하는 트레이딩 세션."""

from __future__ import annotations

import asyncio
import logging
import weakref
from typing import Optional

from ..data import (
    AccountType,
    ExchangeCredentials,
    OrderExecutionReport,
    OrderRequest,
    OrderType,
    TradeProposal,
    TradeRecord,
    TradingSignal,
    VolatilityTier,
)
from ..data.models import normalize_symbol
from ..errors import Result, RiskGateRejection
from .history import TradeHistoryStore
from .risk import RiskGate
from .trading import TradingClient

logger = logging.getLogger(__name__)


class TradingSession:
    """잔고 조회 → 리스크 평가 → 주문 → 거래 기록을 한 번에 수행한다.

    같은 심볼의 주문은 ``asyncio.Lock`` 으로 직렬화해 두 주문이 같은 재진입 대기 시간이나
    연속 손실 상태를 동시에 통과하지 못하게 한다. 잠금과 거래 기록은 정규화한 심볼
    (``BTC/USDT`` 와 ``BTC_USDT`` 는 ``BTCUSDT``)을 키로 쓰고, 거래소에는 요청한 심볼 그대로
    주문한다. 대기 중인 주문이 없는 심볼의 잠금은 남겨 두지 않는다.
    """

    def __init__(self, client: TradingClient, risk_gate: RiskGate, history: TradeHistoryStore) -> None:
        self._client = client
        self._risk_gate = risk_gate
        self._history = history
        self._locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = weakref.WeakValueDictionary()

    @property
    def history(self) -> TradeHistoryStore:
        return self._history

    async def execute(
        self,
        credentials: ExchangeCredentials,
        order: OrderRequest,
        signal: TradingSignal,
        *,
        volatility: Optional[VolatilityTier] = None,
    ) -> Result[OrderExecutionReport]:
        symbol = normalize_symbol(order.symbol)
        async with self._lock_for(symbol):
            balance = await self._client.get_balance(credentials, AccountType.FUTURES)
            if not balance.ok:
                return Result.failure(balance.error)
            positions = await self._client.get_positions(credentials)
            if not positions.ok:
                return Result.failure(positions.error)

            proposal = TradeProposal(
                symbol=symbol,
                signal=signal,
                account_balance=balance.value.available,
                open_positions=tuple(positions.value),
                volatility=volatility,
            )
            assessment = self._risk_gate.assess_trade(proposal)
            if not assessment.approved:
                return Result.failure(RiskGateRejection(assessment))

            placed = await self._client.place_order(credentials, order)
            if not placed.ok:
                return Result.failure(placed.error)

            entry_price = order.price if order.order_type is OrderType.LIMIT else signal.price
            record = TradeRecord(
                symbol=symbol,
                side=order.side,
                amount=placed.value.requested_amount,
                entry_price=entry_price,
                timestamp=self._history.now(),
            )
            self._history.record_trade(record)
            logger.info(
                "%s %s %s 주문 실행 (위험도 %s, id=%s)",
                credentials.venue.value,
                order.symbol,
                order.side.value,
                assessment.risk_level.value,
                placed.value.order_id,
            )
            return Result.success(OrderExecutionReport(order=placed.value, assessment=assessment, record=record))

    def _lock_for(self, symbol: str) -> asyncio.Lock:
        lock = self._locks.get(symbol)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[symbol] = lock
        return lock

    def record_trade(self, record: TradeRecord) -> None:
        """외부에서 확정된 거래(청산 손익 포함)를 기록한다."""

        self._history.record_trade(record)


__all__ = ["TradingSession"]
