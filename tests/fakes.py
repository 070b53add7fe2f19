import asyncio
from decimal import Decimal
from typing import List, Optional

from tradelink.data import (
    AccountType,
    CanonicalBalance,
    CanonicalPosition,
    ExchangeCredentials,
    OrderRequest,
    OrderResult,
    SignatureDiagnostics,
    Venue,
)
from tradelink.errors import Result, VenueError


class FakeAdapter:
    def __init__(
        self,
        venue: Venue = Venue.BINANCE,
        *,
        available: Decimal = Decimal("10000"),
        positions: Optional[List[CanonicalPosition]] = None,
        balance_error: Optional[VenueError] = None,
        order_error: Optional[VenueError] = None,
        yield_control: bool = False,
    ) -> None:
        self.venue = venue
        self._available = available
        self._positions = positions or []
        self._balance_error = balance_error
        self._order_error = order_error
        self._yield_control = yield_control
        self.orders: List[OrderRequest] = []
        self.balance_calls: List[AccountType] = []
        self.closed = False

    async def aclose(self) -> None:
        self.closed = True

    async def test_connection(self, credentials: ExchangeCredentials) -> Result[str]:
        return Result.success(f"{self.venue.value} ok")

    async def get_balance(
        self, credentials: ExchangeCredentials, account_type: AccountType
    ) -> Result[CanonicalBalance]:
        self.balance_calls.append(account_type)
        if self._yield_control:
            await asyncio.sleep(0)
        if self._balance_error is not None:
            return Result.failure(self._balance_error)
        return Result.success(
            CanonicalBalance(
                venue=self.venue,
                account_type=account_type,
                asset="USDT",
                total=self._available,
                available=self._available,
            )
        )

    async def get_positions(self, credentials: ExchangeCredentials) -> Result[List[CanonicalPosition]]:
        if self._yield_control:
            await asyncio.sleep(0)
        return Result.success(list(self._positions))

    async def place_order(self, credentials: ExchangeCredentials, order: OrderRequest) -> Result[OrderResult]:
        if self._yield_control:
            await asyncio.sleep(0)
        if self._order_error is not None:
            return Result.failure(self._order_error)
        self.orders.append(order)
        return Result.success(
            OrderResult(
                order_id=f"order-{len(self.orders)}",
                venue=self.venue,
                symbol=order.symbol,
                side=order.side,
                filled_amount=order.amount,
                requested_amount=order.amount,
                status="FILLED",
            )
        )


    async def diagnose(self, credentials: ExchangeCredentials) -> Result[SignatureDiagnostics]:
        return Result.success(
            SignatureDiagnostics(
                venue=self.venue,
                api_key_length=len(credentials.api_key),
                api_secret_length=len(credentials.api_secret),
                min_key_length=40,
                api_key_valid=True,
                api_secret_valid=True,
                whitespace_free=True,
                timestamp=1700000000000,
                signature_valid=True,
                signature_length=64,
                expected_signature_length=64,
                signature_preview="0123456789abcdef...01234567",
                api_call_ok=True,
            )
        )


def make_credentials(venue: Venue = Venue.BINANCE) -> ExchangeCredentials:
    return ExchangeCredentials(venue=venue, api_key="k" * 64, api_secret="s" * 64)
