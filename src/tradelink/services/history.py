"""심볼별 거래 이력과 일일 집계."""

from __future__ import annotations

import threading
from dataclasses import replace
from datetime import date, datetime, timezone
from typing import Callable, Dict, Optional, Tuple

from ..data import DailyStats, TradeRecord
from ..data.models import normalize_symbol

Clock = Callable[[], datetime]


def _utc_clock() -> datetime:
    return datetime.now(timezone.utc)


class TradeHistoryStore:
    """거래 기록의 단일 소유자.

    심볼은 구분자를 없앤 대문자로 정규화해 저장하고, 시각이 없는 timestamp 는 UTC 로 본다.
    심볼별 이력은 최근 ``limit`` 건만 보관하며 가장 오래된 기록부터 밀려난다(FIFO).
    일일 집계는 불변 스냅샷으로 관리하고, UTC 날짜가 바뀐 뒤 처음 호출되는 메서드에서
    초기화된다.
    """

    def __init__(self, *, limit: int = 100, clock: Optional[Clock] = None) -> None:
        if limit < 1:
            raise ValueError("limit 는 1 이상이어야 합니다.")
        self._limit = limit
        self._clock = clock or _utc_clock
        self._lock = threading.RLock()
        self._history: Dict[str, Tuple[TradeRecord, ...]] = {}
        self._last_trade_at: Dict[str, datetime] = {}
        self._daily = DailyStats(trading_day=self._today())

    @property
    def limit(self) -> int:
        return self._limit

    def now(self) -> datetime:
        return self._clock()

    def record_trade(self, record: TradeRecord) -> None:
        """거래를 추가하고 일일 승/패, 손익 집계를 갱신한다."""

        record = _normalize_record(record)
        with self._lock:
            self._roll_day()
            history = self._history.get(record.symbol, ())
            self._history[record.symbol] = (*history, record)[-self._limit :]
            self._last_trade_at[record.symbol] = record.timestamp
            daily = replace(self._daily, trades=self._daily.trades + 1)
            if record.pnl is not None:
                daily = replace(
                    daily,
                    pnl=daily.pnl + record.pnl,
                    wins=daily.wins + (1 if record.is_win else 0),
                    losses=daily.losses + (0 if record.is_win else 1),
                )
            self._daily = daily

    def history(self, symbol: str) -> Tuple[TradeRecord, ...]:
        with self._lock:
            self._roll_day()
            return self._history.get(normalize_symbol(symbol), ())

    def symbols(self) -> Tuple[str, ...]:
        with self._lock:
            self._roll_day()
            return tuple(self._history)

    def last_trade_time(self, symbol: str) -> Optional[datetime]:
        with self._lock:
            self._roll_day()
            return self._last_trade_at.get(normalize_symbol(symbol))

    def consecutive_losses(self, symbol: str) -> int:
        """최신 기록부터 거슬러 올라가며 첫 승리 전까지의 손실 횟수를 센다."""

        with self._lock:
            self._roll_day()
            return _count_consecutive_losses(self._history.get(normalize_symbol(symbol), ()))

    def max_consecutive_losses(self) -> int:
        with self._lock:
            self._roll_day()
            return max((_count_consecutive_losses(records) for records in self._history.values()), default=0)

    def daily_stats(self) -> DailyStats:
        with self._lock:
            self._roll_day()
            return self._daily

    def reset(self) -> None:
        """모든 이력과 집계를 지운다."""

        with self._lock:
            self._history.clear()
            self._last_trade_at.clear()
            self._daily = DailyStats(trading_day=self._today())

    def _roll_day(self) -> None:
        today = self._today()
        if self._daily.trading_day != today:
            self._daily = DailyStats(trading_day=today)

    def _today(self) -> date:
        return self._clock().astimezone(timezone.utc).date()


def _normalize_record(record: TradeRecord) -> TradeRecord:
    timestamp = record.timestamp
    if timestamp.tzinfo is None or timestamp.utcoffset() is None:
        timestamp = timestamp.replace(tzinfo=timezone.utc)
    else:
        timestamp = timestamp.astimezone(timezone.utc)
    return replace(record, symbol=normalize_symbol(record.symbol), timestamp=timestamp)


def _count_consecutive_losses(records: Tuple[TradeRecord, ...]) -> int:
    losses = 0
    for record in reversed(records):
        if record.is_win is None:
            continue
        if record.is_win:
            break
        losses += 1
    return losses


__all__ = ["Clock", "TradeHistoryStore"]
