"""바이낸스 방식(Venue A) REST 어댑터."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, List, Mapping, MutableMapping, Optional, Tuple

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
from ..data.models import to_decimal, utc_now
from ..errors import AuthenticationError, RateLimitError, Result, VenueError, VenueRejectionError
from .base import VenueAdapter, find_row
from .signing import SHA256_HEX_LENGTH, BinanceSigner, TimestampFactory, milliseconds_timestamp

logger = logging.getLogger(__name__)

# -1021 recvWindow 밖의 timestamp, -1022 서명 불일치, -2014/-2015 API 키 형식/권한 오류
AUTH_ERROR_CODES = frozenset({"-1021", "-1022", "-2014", "-2015"})


class BinanceAdapter(VenueAdapter):
    """HMAC-SHA256 쿼리 서명을 쓰는 바이낸스 현물/USDT 선물 어댑터."""

    venue = Venue.BINANCE
    signature_length = SHA256_HEX_LENGTH

    def __init__(
        self,
        settings: Optional[AppSettings] = None,
        *,
        client: Optional[httpx.AsyncClient] = None,
        timestamp_factory: Optional[TimestampFactory] = None,
    ) -> None:
        super().__init__(settings, client=client)
        self._signer = BinanceSigner(
            recv_window=self._settings.binance_recv_window,
            timestamp_factory=timestamp_factory or milliseconds_timestamp,
        )

    @property
    def min_key_length(self) -> int:
        return self._settings.binance_min_key_length

    async def test_connection(self, credentials: ExchangeCredentials) -> Result[str]:
        problem = self.check_credentials(credentials)
        if problem is not None:
            return Result.failure(problem)
        result = await self._send("GET", f"{self._spot_url(credentials)}/api/v3/ping")
        if not result.ok:
            return Result.failure(result.error)
        network = "테스트넷" if credentials.sandbox else "메인넷"
        return Result.success(f"바이낸스 {network} 서버에 연결되었습니다. API 키 형식이 확인되었습니다.")

    async def get_balance(
        self, credentials: ExchangeCredentials, account_type: AccountType
    ) -> Result[CanonicalBalance]:
        problem = self.check_credentials(credentials)
        if problem is not None:
            return Result.failure(problem)
        if account_type is AccountType.FUTURES:
            result = await self._signed(credentials, "GET", self._futures_url(credentials), "/fapi/v2/balance")
        else:
            result = await self._signed(credentials, "GET", self._spot_url(credentials), "/api/v3/account")
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
        result = await self._signed(credentials, "GET", self._futures_url(credentials), "/fapi/v2/positionRisk")
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
        symbol = order.symbol.replace("/", "").upper()
        params: MutableMapping[str, object] = {
            "symbol": symbol,
            "side": order.side.value.upper(),
            "type": order.order_type.value.upper(),
            "quantity": order.amount,
        }
        if order.order_type is OrderType.LIMIT:
            params["price"] = order.price
            params["timeInForce"] = "GTC"
        result = await self._signed(credentials, "POST", self._futures_url(credentials), "/fapi/v1/order", params)
        if not result.ok:
            return Result.failure(result.error)
        try:
            execution = self._parse_order(result.value, order, symbol)
        except (KeyError, TypeError, ValueError) as exc:
            return self._malformed("주문", exc)
        logger.info(
            "바이낸스 주문 접수: %s %s %s (id=%s, status=%s)",
            execution.symbol,
            execution.side.value,
            execution.requested_amount,
            execution.order_id,
            execution.status,
        )
        return Result.success(execution)

    def _sample_signature(self, credentials: ExchangeCredentials) -> Tuple[str, int]:
        params = httpx.QueryParams(self._signer.signed_query({}, credentials.api_secret))
        return params["signature"], int(params["timestamp"])

    async def _signed(
        self,
        credentials: ExchangeCredentials,
        method: str,
        base_url: str,
        path: str,
        params: Optional[Mapping[str, object]] = None,
    ) -> Result[Any]:
        """timestamp 를 새로 발급해 서명한 요청을 보낸다. POST 는 폼 본문으로 전송한다."""

        query = self._signer.signed_query(params or {}, credentials.api_secret)
        headers = {"X-MBX-APIKEY": credentials.api_key}
        if method == "GET":
            return await self._send("GET", f"{base_url}{path}?{query}", headers=headers)
        headers["Content-Type"] = "application/x-www-form-urlencoded"
        return await self._send(method, f"{base_url}{path}", headers=headers, content=query)

    def _parse_spot_balance(self, payload: Any) -> CanonicalBalance:
        if not isinstance(payload, Mapping):
            raise TypeError("계정 응답이 객체가 아닙니다.")
        row = find_row(payload.get("balances", []), "asset", self._settlement_asset)
        if row is None:
            return CanonicalBalance.empty(self.venue, AccountType.SPOT, self._settlement_asset)
        free = to_decimal(row.get("free"))
        locked = to_decimal(row.get("locked"))
        return CanonicalBalance(
            venue=self.venue,
            account_type=AccountType.SPOT,
            asset=self._settlement_asset,
            total=free + locked,
            available=free,
        )

    def _parse_futures_balance(self, payload: Any) -> CanonicalBalance:
        if not isinstance(payload, list):
            raise TypeError("선물 잔고 응답이 목록이 아닙니다.")
        row = find_row(payload, "asset", self._settlement_asset)
        if row is None:
            return CanonicalBalance.empty(self.venue, AccountType.FUTURES, self._settlement_asset)
        return CanonicalBalance(
            venue=self.venue,
            account_type=AccountType.FUTURES,
            asset=self._settlement_asset,
            total=to_decimal(row.get("balance")),
            available=to_decimal(row.get("availableBalance")),
            margin_balance=to_decimal(row.get("crossWalletBalance")),
            unrealized_pnl=to_decimal(row.get("crossUnPnl")),
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
                symbol=str(row["symbol"]),
                signed_size=to_decimal(row.get("positionAmt")),
                entry_price=to_decimal(row.get("entryPrice")),
                mark_price=to_decimal(row.get("markPrice")),
                leverage=to_decimal(row.get("leverage"), default=to_decimal(1)),
                unrealized_pnl=to_decimal(row.get("unRealizedProfit")),
                liquidation_price=to_decimal(row.get("liquidationPrice")),
                margin=to_decimal(row.get("isolatedMargin")),
                timestamp=now,
            )
            if position is not None:
                positions.append(position)
        return positions

    def _parse_order(self, payload: Any, order: OrderRequest, symbol: str) -> OrderResult:
        if not isinstance(payload, Mapping) or payload.get("orderId") is None:
            raise ValueError("주문 응답에 orderId 가 없습니다.")
        side_value = str(payload.get("side") or order.side.value).lower()
        update_time = payload.get("updateTime")
        timestamp = (
            datetime.fromtimestamp(int(update_time) / 1000, tz=timezone.utc) if update_time else utc_now()
        )
        return OrderResult(
            order_id=str(payload["orderId"]),
            venue=self.venue,
            symbol=str(payload.get("symbol") or symbol),
            side=OrderSide(side_value),
            filled_amount=to_decimal(payload.get("executedQty")),
            requested_amount=to_decimal(payload.get("origQty"), default=order.amount),
            status=str(payload.get("status") or "NEW"),
            timestamp=timestamp,
        )

    def _classify_rejection(self, response: httpx.Response, message: str, code: Optional[str]) -> VenueError:
        common = {"venue": self.venue.value, "status_code": response.status_code, "venue_code": code}
        if code in AUTH_ERROR_CODES:
            return AuthenticationError(f"인증 실패: API 키, 서명 또는 시계를 확인하세요. {message}", **common)
        if response.status_code == 418:
            retry_after = response.headers.get("Retry-After")
            return RateLimitError(
                f"호출 빈도 제한으로 IP 가 차단되었습니다. {message}",
                retry_after=float(retry_after) if retry_after and retry_after.isdigit() else None,
                **common,
            )
        return VenueRejectionError(message, **common)

    @staticmethod
    def _error_message(payload: Any) -> Optional[str]:
        if isinstance(payload, Mapping) and payload.get("msg"):
            return str(payload["msg"])
        return None

    @staticmethod
    def _error_code(payload: Any) -> Optional[str]:
        if isinstance(payload, Mapping) and payload.get("code") is not None:
            return str(payload["code"])
        return None

    def _spot_url(self, credentials: ExchangeCredentials) -> str:
        url = self._settings.binance_testnet_spot_url if credentials.sandbox else self._settings.binance_spot_url
        return str(url).rstrip("/")

    def _futures_url(self, credentials: ExchangeCredentials) -> str:
        url = (
            self._settings.binance_testnet_futures_url
            if credentials.sandbox
            else self._settings.binance_futures_url
        )
        return str(url).rstrip("/")


__all__ = ["AUTH_ERROR_CODES", "BinanceAdapter"]
