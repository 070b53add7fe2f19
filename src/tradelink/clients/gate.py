"""Gate 방식(Venue B) REST 어댑터."""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, List, Mapping, Optional, Tuple

import httpx

from ..config.settings import AppSettings
from ..data import (
    AccountType,
    CanonicalBalance,
    CanonicalPosition,
    ExchangeCredentials,
    OrderRequest,
    OrderResult,
    OrderSide,
    OrderType,
    Venue,
)
from ..data.models import ZERO, to_decimal, utc_now
from ..errors import OrderValidationError, Result
from .base import VenueAdapter, find_row
from .signing import SHA512_HEX_LENGTH, GateSigner, TimestampFactory, seconds_timestamp

logger = logging.getLogger(__name__)

PUBLIC_CHECK_PAIR = "BTC_USDT"


class GateAdapter(VenueAdapter):
    """KEY/SIGN/Timestamp 헤더와 HMAC-SHA512 서명을 쓰는 Gate 현물/선물 어댑터.

    서명의 RESOURCE 요소는 ``/api/v4`` 접두사를 포함한 전체 경로다. 선물 주문 수량은
    계약 수(정수)이며 매도는 음수로 보낸다.
    """

    venue = Venue.GATE
    signature_length = SHA512_HEX_LENGTH

    def __init__(
        self,
        settings: Optional[AppSettings] = None,
        *,
        client: Optional[httpx.AsyncClient] = None,
        timestamp_factory: Optional[TimestampFactory] = None,
    ) -> None:
        super().__init__(settings, client=client)
        self._signer = GateSigner(timestamp_factory=timestamp_factory or seconds_timestamp)
        self._settle = self._settlement_asset.lower()

    @property
    def min_key_length(self) -> int:
        return self._settings.gate_min_key_length

    async def test_connection(self, credentials: ExchangeCredentials) -> Result[str]:
        problem = self.check_credentials(credentials)
        if problem is not None:
            return Result.failure(problem)
        result = await self._send("GET", f"{self._spot_url()}/spot/currency_pairs/{PUBLIC_CHECK_PAIR}")
        if not result.ok:
            return Result.failure(result.error)
        return Result.success("Gate 서버에 연결되었습니다. API 키 형식이 확인되었습니다.")

    async def get_balance(
        self, credentials: ExchangeCredentials, account_type: AccountType
    ) -> Result[CanonicalBalance]:
        problem = self.check_credentials(credentials)
        if problem is not None:
            return Result.failure(problem)
        if account_type is AccountType.FUTURES:
            result = await self._signed(
                credentials, "GET", self._futures_url(credentials), f"/futures/{self._settle}/accounts"
            )
        else:
            result = await self._signed(credentials, "GET", self._spot_url(), "/spot/accounts")
        if not result.ok:
            return Result.failure(result.error)
        try:
            if account_type is AccountType.FUTURES:
                return Result.success(self._parse_futures_balance(result.value))
            return Result.success(self._parse_spot_balance(result.value))
        except (KeyError, TypeError, ValueError) as exc:
            return self._malformed("잔고", exc)

    async def get_positions(self, credentials: ExchangeCredentials) -> Result[List[CanonicalPosition]]:
        problem = self.check_credentials(credentials)
        if problem is not None:
            return Result.failure(problem)
        result = await self._signed(
            credentials, "GET", self._futures_url(credentials), f"/futures/{self._settle}/positions"
        )
        if not result.ok:
            return Result.failure(result.error)
        try:
            return Result.success(self._parse_positions(result.value))
        except (KeyError, TypeError, ValueError) as exc:
            return self._malformed("포지션", exc)

    async def place_order(self, credentials: ExchangeCredentials, order: OrderRequest) -> Result[OrderResult]:
        problem = self.check_credentials(credentials) or self.check_order(order)
        if problem is not None:
            return Result.failure(problem)
        if order.amount != order.amount.to_integral_value():
            return Result.failure(
                OrderValidationError("Gate 선물 주문 수량은 정수 계약 수여야 합니다.", venue=self.venue.value)
            )
        contract = order.symbol.replace("/", "_").upper()
        contracts = int(order.amount)
        payload = {
            "contract": contract,
            "size": contracts if order.side.is_buy else -contracts,
            "price": format(order.price, "f") if order.order_type is OrderType.LIMIT else "0",
            "tif": "gtc" if order.order_type is OrderType.LIMIT else "ioc",
        }
        body = json.dumps(payload, separators=(",", ":"))
        result = await self._signed(
            credentials, "POST", self._futures_url(credentials), f"/futures/{self._settle}/orders", body=body
        )
        if not result.ok:
            return Result.failure(result.error)
        try:
            execution = self._parse_order(result.value, order, contract)
        except (KeyError, TypeError, ValueError) as exc:
            return self._malformed("주문", exc)
        logger.info(
            "Gate 주문 접수: %s %s %s (id=%s, status=%s)",
            execution.symbol,
            execution.side.value,
            execution.requested_amount,
            execution.order_id,
            execution.status,
        )
        return Result.success(execution)

    def _sample_signature(self, credentials: ExchangeCredentials) -> Tuple[str, int]:
        path = f"{httpx.URL(self._futures_url(credentials)).path.rstrip('/')}/futures/{self._settle}/accounts"
        request, headers = self._signer.headers(credentials.api_key, credentials.api_secret, "GET", path)
        return headers["SIGN"], request.timestamp

    async def _signed(
        self,
        credentials: ExchangeCredentials,
        method: str,
        base_url: str,
        resource: str,
        *,
        query: str = "",
        body: str = "",
    ) -> Result[Any]:
        """서명 직전에 timestamp 를 발급하고, 서명한 본문 그대로 전송한다."""

        path = f"{httpx.URL(base_url).path.rstrip('/')}{resource}"
        _, auth_headers = self._signer.headers(
            credentials.api_key, credentials.api_secret, method, path, query, body
        )
        headers = {"Accept": "application/json", "Content-Type": "application/json", **auth_headers}
        url = f"{base_url}{resource}" + (f"?{query}" if query else "")
        return await self._send(method, url, headers=headers, content=body or None)

    def _parse_spot_balance(self, payload: Any) -> CanonicalBalance:
        if not isinstance(payload, list):
            raise TypeError("현물 잔고 응답이 목록이 아닙니다.")
        row = find_row(payload, "currency", self._settlement_asset)
        if row is None:
            return CanonicalBalance.empty(self.venue, AccountType.SPOT, self._settlement_asset)
        available = to_decimal(row.get("available"))
        locked = to_decimal(row.get("locked"))
        return CanonicalBalance(
            venue=self.venue,
            account_type=AccountType.SPOT,
            asset=self._settlement_asset,
            total=available + locked,
            available=available,
        )

    def _parse_futures_balance(self, payload: Any) -> CanonicalBalance:
        if not isinstance(payload, Mapping):
            raise TypeError("선물 계정 응답이 객체가 아닙니다.")
        currency = payload.get("currency")
        if not payload or (currency and str(currency).upper() != self._settlement_asset):
            return CanonicalBalance.empty(self.venue, AccountType.FUTURES, self._settlement_asset)
        margin = to_decimal(payload.get("position_margin")) + to_decimal(payload.get("order_margin"))
        return CanonicalBalance(
            venue=self.venue,
            account_type=AccountType.FUTURES,
            asset=self._settlement_asset,
            total=to_decimal(payload.get("total")),
            available=to_decimal(payload.get("available")),
            margin_balance=margin,
            unrealized_pnl=to_decimal(payload.get("unrealised_pnl")),
        )

    def _parse_positions(self, payload: Any) -> List[CanonicalPosition]:
        if not isinstance(payload, list):
            raise TypeError("포지션 응답이 목록이 아닙니다.")
        now = utc_now()
        positions = []
        for row in payload:
            if not isinstance(row, Mapping):
                raise TypeError("포지션 행이 객체가 아닙니다.")
            position = CanonicalPosition.from_signed_size(
                venue=self.venue,
                symbol=str(row["contract"]),
                signed_size=to_decimal(row.get("size")),
                entry_price=to_decimal(row.get("entry_price")),
                mark_price=to_decimal(row.get("mark_price")),
                leverage=to_decimal(row.get("leverage"), default=Decimal("1")),
                unrealized_pnl=to_decimal(row.get("unrealised_pnl")),
                liquidation_price=to_decimal(row.get("liq_price")),
                margin=to_decimal(row.get("margin")),
                timestamp=now,
            )
            if position is not None:
                positions.append(position)
        return positions

    def _parse_order(self, payload: Any, order: OrderRequest, contract: str) -> OrderResult:
        if not isinstance(payload, Mapping) or payload.get("id") is None:
            raise ValueError("주문 응답에 id 가 없습니다.")
        size = to_decimal(payload.get("size"), default=order.amount if order.side.is_buy else -order.amount)
        left = abs(to_decimal(payload.get("left")))
        requested = abs(size)
        if size > ZERO:
            side = OrderSide.BUY
        elif size < ZERO:
            side = OrderSide.SELL
        else:
            side = order.side
        created = payload.get("create_time")
        timestamp = datetime.fromtimestamp(float(created), tz=timezone.utc) if created else utc_now()
        return OrderResult(
            order_id=str(payload["id"]),
            venue=self.venue,
            symbol=str(payload.get("contract") or contract),
            side=side,
            filled_amount=max(ZERO, requested - left),
            requested_amount=requested,
            status=str(payload.get("status") or "open"),
            timestamp=timestamp,
        )

    @staticmethod
    def _error_message(payload: Any) -> Optional[str]:
        if not isinstance(payload, Mapping):
            return None
        message = payload.get("message") or payload.get("error")
        label = payload.get("label")
        if message and label:
            return f"{label}: {message}"
        if message or label:
            return str(message or label)
        return None

    @staticmethod
    def _error_code(payload: Any) -> Optional[str]:
        if isinstance(payload, Mapping) and payload.get("label"):
            return str(payload["label"])
        return None

    def _spot_url(self) -> str:
        return str(self._settings.gate_spot_url).rstrip("/")

    def _futures_url(self, credentials: ExchangeCredentials) -> str:
        url = self._settings.gate_testnet_futures_url if credentials.sandbox else self._settings.gate_futures_url
        return str(url).rstrip("/")


__all__ = ["GateAdapter", "PUBLIC_CHECK_PAIR"]
