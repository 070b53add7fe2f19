"""거래소 태그로 어댑터를 고르는 캐노니컬 트레이딩 클라이언트."""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

from ..clients.base import VenueAdapter
from ..data import (
    AccountType,
    CanonicalBalance,
    CanonicalPosition,
    ExchangeCredentials,
    OrderRequest,
    OrderResult,
    SignatureDiagnostics,
    Venue,
)
from ..errors import Result, UnsupportedVenueError


class TradingClient:
    """거래소별 어댑터를 하나의 API 로 묶는다.

    호출마다 전달된 ``ExchangeCredentials.venue`` 로 어댑터를 찾으며, 인증 정보나 응답을
    보관하지 않는다. 등록되지 않은 거래소는 ``UnsupportedVenueError`` 실패로 돌려준다.
    """

    def __init__(self, adapters: Union[Mapping[Venue, VenueAdapter], Iterable[VenueAdapter]]) -> None:
        if isinstance(adapters, Mapping):
            registry: Dict[Venue, VenueAdapter] = dict(adapters)
        else:
            registry = {adapter.venue: adapter for adapter in adapters}
        for venue, adapter in registry.items():
            if adapter.venue is not venue:
                raise ValueError(f"{venue.value} 에 {adapter.venue.value} 어댑터를 등록할 수 없습니다.")
        self._adapters = registry

    async def __aenter__(self) -> "TradingClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        for adapter in self._adapters.values():
            await adapter.aclose()

    @property
    def venues(self) -> List[Venue]:
        return list(self._adapters)

    def adapter_for(self, venue: Venue) -> Optional[VenueAdapter]:
        return self._adapters.get(venue)

    async def test_connection(self, credentials: ExchangeCredentials) -> Result[str]:
        adapter = self.adapter_for(credentials.venue)
        if adapter is None:
            return _unsupported(credentials.venue)
        return await adapter.test_connection(credentials)

    async def get_balance(
        self,
        credentials: ExchangeCredentials,
        account_type: AccountType = AccountType.FUTURES,
    ) -> Result[CanonicalBalance]:
        adapter = self.adapter_for(credentials.venue)
        if adapter is None:
            return _unsupported(credentials.venue)
        return await adapter.get_balance(credentials, account_type)

    async def get_positions(self, credentials: ExchangeCredentials) -> Result[List[CanonicalPosition]]:
        adapter = self.adapter_for(credentials.venue)
        if adapter is None:
            return _unsupported(credentials.venue)
        return await adapter.get_positions(credentials)

    async def place_order(self, credentials: ExchangeCredentials, order: OrderRequest) -> Result[OrderResult]:
        adapter = self.adapter_for(credentials.venue)
        if adapter is None:
            return _unsupported(credentials.venue)
        return await adapter.place_order(credentials, order)

    async def diagnose(self, credentials: ExchangeCredentials) -> Result[SignatureDiagnostics]:
        """서명 생성과 인증 조회를 점검한다. 결과에는 서명 원문이 담기지 않는다."""

        adapter = self.adapter_for(credentials.venue)
        if adapter is None:
            return _unsupported(credentials.venue)
        return await adapter.diagnose(credentials)


def _unsupported(venue: Venue) -> Result[Any]:
    return Result.failure(
        UnsupportedVenueError(f"지원하지 않는 거래소입니다: {venue.value}", venue=venue.value)
    )


__all__ = ["TradingClient"]
