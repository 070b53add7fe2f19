import hashlib
import hmac
from decimal import Decimal

import httpx
import pytest
import respx

from tradelink.clients.binance import BinanceAdapter
from tradelink.config.settings import AppSettings
from tradelink.data import (
    AccountType,
    ExchangeCredentials,
    OrderRequest,
    OrderSide,
    OrderType,
    PositionSide,
    Venue,
)
from tradelink.errors import (
    AuthenticationError,
    InvalidCredentialsError,
    NetworkError,
    OrderValidationError,
    RateLimitError,
    VenuePermissionError,
    VenueRejectionError,
)

API_KEY = "k" * 64
API_SECRET = "s" * 64
TIMESTAMP = 1700000000000


def make_credentials(**overrides: object) -> ExchangeCredentials:
    fields = {"venue": Venue.BINANCE, "api_key": API_KEY, "api_secret": API_SECRET}
    fields.update(overrides)
    return ExchangeCredentials(**fields)  # type: ignore[arg-type]


def make_adapter() -> BinanceAdapter:
    return BinanceAdapter(AppSettings(), timestamp_factory=lambda: TIMESTAMP)


def expected_signature(query: str) -> str:
    return hmac.new(API_SECRET.encode(), query.encode(), hashlib.sha256).hexdigest()


@pytest.mark.asyncio
async def test_test_connection_pings_spot_api(respx_mock: respx.MockRouter) -> None:
    route = respx_mock.get("https://api.binance.com/api/v3/ping").mock(return_value=httpx.Response(200, json={}))

    async with make_adapter() as adapter:
        result = await adapter.test_connection(make_credentials())

    assert route.called
    assert result.ok
    assert "바이낸스" in result.value


@pytest.mark.asyncio
async def test_test_connection_uses_testnet_for_sandbox(respx_mock: respx.MockRouter) -> None:
    route = respx_mock.get("https://testnet.binance.vision/api/v3/ping").mock(
        return_value=httpx.Response(200, json={})
    )

    async with make_adapter() as adapter:
        result = await adapter.test_connection(make_credentials(sandbox=True))

    assert route.called
    assert result.ok


@pytest.mark.asyncio
async def test_short_key_fails_without_network_call(respx_mock: respx.MockRouter) -> None:
    async with make_adapter() as adapter:
        result = await adapter.test_connection(make_credentials(api_key="short"))

    assert not result.ok
    assert isinstance(result.error, InvalidCredentialsError)
    assert respx_mock.calls.call_count == 0


@pytest.mark.asyncio
async def test_key_with_whitespace_is_rejected(respx_mock: respx.MockRouter) -> None:
    async with make_adapter() as adapter:
        result = await adapter.get_balance(make_credentials(api_key=f" {API_KEY}"), AccountType.SPOT)

    assert isinstance(result.error, InvalidCredentialsError)
    assert respx_mock.calls.call_count == 0


@pytest.mark.asyncio
async def test_futures_balance_is_signed_and_normalized(respx_mock: respx.MockRouter) -> None:
    payload = [
        {"asset": "BNB", "balance": "1.0", "availableBalance": "1.0"},
        {
            "asset": "USDT",
            "balance": "1200.50",
            "availableBalance": "1000.25",
            "crossWalletBalance": "1150.00",
            "crossUnPnl": "-12.5",
        },
    ]
    route = respx_mock.get("https://fapi.binance.com/fapi/v2/balance").mock(
        return_value=httpx.Response(200, json=payload)
    )

    async with make_adapter() as adapter:
        result = await adapter.get_balance(make_credentials(), AccountType.FUTURES)

    assert route.called
    request = route.calls.last.request
    assert request.headers["X-MBX-APIKEY"] == API_KEY
    params = request.url.params
    assert params["timestamp"] == str(TIMESTAMP)
    assert params["recvWindow"] == "5000"
    assert params["signature"] == expected_signature(f"timestamp={TIMESTAMP}&recvWindow=5000")

    balance = result.unwrap()
    assert balance.venue is Venue.BINANCE
    assert balance.account_type is AccountType.FUTURES
    assert balance.asset == "USDT"
    assert balance.total == Decimal("1200.50")
    assert balance.available == Decimal("1000.25")
    assert balance.margin_balance == Decimal("1150.00")
    assert balance.unrealized_pnl == Decimal("-12.5")


@pytest.mark.asyncio
async def test_spot_balance_without_settlement_row_is_zero(respx_mock: respx.MockRouter) -> None:
    respx_mock.get("https://api.binance.com/api/v3/account").mock(
        return_value=httpx.Response(200, json={"balances": [{"asset": "BTC", "free": "0.1", "locked": "0"}]})
    )

    async with make_adapter() as adapter:
        result = await adapter.get_balance(make_credentials(), AccountType.SPOT)

    balance = result.unwrap()
    assert balance.total == Decimal("0")
    assert balance.available == Decimal("0")
    assert balance.margin_balance is None


@pytest.mark.asyncio
async def test_spot_balance_adds_locked_to_total(respx_mock: respx.MockRouter) -> None:
    respx_mock.get("https://api.binance.com/api/v3/account").mock(
        return_value=httpx.Response(
            200, json={"balances": [{"asset": "usdt", "free": "80.5", "locked": "19.5"}]}
        )
    )

    async with make_adapter() as adapter:
        balance = (await adapter.get_balance(make_credentials(), AccountType.SPOT)).unwrap()

    assert balance.total == Decimal("100.0")
    assert balance.available == Decimal("80.5")


@pytest.mark.asyncio
async def test_positions_skip_zero_size_rows(respx_mock: respx.MockRouter) -> None:
    payload = [
        {
            "symbol": "BTCUSDT",
            "positionAmt": "0.010",
            "entryPrice": "42000",
            "markPrice": "42500",
            "leverage": "10",
            "unRealizedProfit": "5",
            "liquidationPrice": "38000",
            "isolatedMargin": "0",
        },
        {"symbol": "ETHUSDT", "positionAmt": "0.000", "entryPrice": "0", "markPrice": "2200", "leverage": "20"},
        {
            "symbol": "SOLUSDT",
            "positionAmt": "-3",
            "entryPrice": "100",
            "markPrice": "98",
            "leverage": "5",
            "unRealizedProfit": "6",
            "liquidationPrice": "130",
            "isolatedMargin": "60",
        },
    ]
    respx_mock.get("https://fapi.binance.com/fapi/v2/positionRisk").mock(
        return_value=httpx.Response(200, json=payload)
    )

    async with make_adapter() as adapter:
        positions = (await adapter.get_positions(make_credentials())).unwrap()

    assert [position.symbol for position in positions] == ["BTCUSDT", "SOLUSDT"]
    assert all(position.size > 0 for position in positions)
    assert positions[0].side is PositionSide.LONG
    assert positions[0].id == "binance-BTCUSDT"
    assert positions[1].side is PositionSide.SHORT
    assert positions[1].size == Decimal("3")
    assert positions[1].margin == Decimal("60")


@pytest.mark.asyncio
async def test_place_market_order_posts_signed_form(respx_mock: respx.MockRouter) -> None:
    route = respx_mock.post("https://fapi.binance.com/fapi/v1/order").mock(
        return_value=httpx.Response(
            200,
            json={
                "orderId": 123456,
                "symbol": "BTCUSDT",
                "side": "BUY",
                "status": "FILLED",
                "executedQty": "0.010",
                "origQty": "0.010",
                "updateTime": 1700000000123,
            },
        )
    )
    order = OrderRequest(symbol="BTC/USDT", side=OrderSide.BUY, amount=Decimal("0.010"))

    async with make_adapter() as adapter:
        execution = (await adapter.place_order(make_credentials(), order)).unwrap()

    request = route.calls.last.request
    body = request.content.decode()
    assert request.headers["Content-Type"] == "application/x-www-form-urlencoded"
    unsigned, signature = body.rsplit("&signature=", 1)
    assert unsigned == f"symbol=BTCUSDT&side=BUY&type=MARKET&quantity=0.010&timestamp={TIMESTAMP}&recvWindow=5000"
    assert signature == expected_signature(unsigned)
    assert execution.order_id == "123456"
    assert execution.side is OrderSide.BUY
    assert execution.filled_amount == Decimal("0.010")
    assert execution.status == "FILLED"
    assert execution.timestamp.tzinfo is not None


@pytest.mark.asyncio
async def test_place_limit_order_includes_price_and_time_in_force(respx_mock: respx.MockRouter) -> None:
    route = respx_mock.post("https://fapi.binance.com/fapi/v1/order").mock(
        return_value=httpx.Response(200, json={"orderId": 1, "status": "NEW", "executedQty": "0", "origQty": "1"})
    )
    order = OrderRequest(
        symbol="ETHUSDT",
        side=OrderSide.SELL,
        amount=Decimal("1"),
        price=Decimal("2500.5"),
        order_type=OrderType.LIMIT,
    )

    async with make_adapter() as adapter:
        execution = (await adapter.place_order(make_credentials(), order)).unwrap()

    body = route.calls.last.request.content.decode()
    assert "type=LIMIT" in body
    assert "price=2500.5" in body
    assert "timeInForce=GTC" in body
    assert execution.side is OrderSide.SELL
    assert execution.filled_amount == Decimal("0")


@pytest.mark.asyncio
async def test_limit_order_without_price_is_rejected_locally(respx_mock: respx.MockRouter) -> None:
    order = OrderRequest(symbol="ETHUSDT", side=OrderSide.SELL, amount=Decimal("1"), order_type=OrderType.LIMIT)

    async with make_adapter() as adapter:
        result = await adapter.place_order(make_credentials(), order)

    assert isinstance(result.error, OrderValidationError)
    assert respx_mock.calls.call_count == 0


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("status", "error_type"),
    [(401, AuthenticationError), (403, VenuePermissionError), (500, VenueRejectionError)],
)
async def test_http_failures_are_classified(respx_mock: respx.MockRouter, status: int, error_type: type) -> None:
    respx_mock.get("https://fapi.binance.com/fapi/v2/balance").mock(
        return_value=httpx.Response(status, json={"code": -1000, "msg": "boom"})
    )

    async with make_adapter() as adapter:
        result = await adapter.get_balance(make_credentials(), AccountType.FUTURES)

    assert type(result.error) is error_type
    assert result.error.status_code == status
    assert result.error.venue == "binance"
    assert "boom" in result.error.message


@pytest.mark.asyncio
async def test_rate_limit_carries_retry_after(respx_mock: respx.MockRouter) -> None:
    respx_mock.get("https://fapi.binance.com/fapi/v2/positionRisk").mock(
        return_value=httpx.Response(429, headers={"Retry-After": "7"}, json={"code": -1003, "msg": "Too many"})
    )

    async with make_adapter() as adapter:
        result = await adapter.get_positions(make_credentials())

    assert isinstance(result.error, RateLimitError)
    assert result.error.retryable
    assert result.error.retry_after == 7.0


@pytest.mark.asyncio
async def test_signature_error_code_maps_to_authentication(respx_mock: respx.MockRouter) -> None:
    respx_mock.get("https://fapi.binance.com/fapi/v2/balance").mock(
        return_value=httpx.Response(400, json={"code": -1022, "msg": "Signature for this request is not valid."})
    )

    async with make_adapter() as adapter:
        result = await adapter.get_balance(make_credentials(), AccountType.FUTURES)

    assert isinstance(result.error, AuthenticationError)
    assert result.error.venue_code == "-1022"


@pytest.mark.asyncio
async def test_transport_error_becomes_network_error(respx_mock: respx.MockRouter) -> None:
    respx_mock.get("https://api.binance.com/api/v3/ping").mock(side_effect=httpx.ConnectError("refused"))

    async with make_adapter() as adapter:
        result = await adapter.test_connection(make_credentials())

    assert isinstance(result.error, NetworkError)
    assert result.error.retryable


@pytest.mark.asyncio
async def test_gate_credentials_are_refused(respx_mock: respx.MockRouter) -> None:
    async with make_adapter() as adapter:
        result = await adapter.test_connection(make_credentials(venue=Venue.GATE))

    assert isinstance(result.error, InvalidCredentialsError)
    assert respx_mock.calls.call_count == 0


@pytest.mark.asyncio
async def test_diagnose_reports_signature_and_authenticated_call(respx_mock: respx.MockRouter) -> None:
    route = respx_mock.get("https://fapi.binance.com/fapi/v2/balance").mock(
        return_value=httpx.Response(200, json=[{"asset": "USDT", "balance": "10", "availableBalance": "10"}])
    )

    async with make_adapter() as adapter:
        result = await adapter.diagnose(make_credentials())

    report = result.unwrap()
    signature = expected_signature(f"timestamp={TIMESTAMP}&recvWindow=5000")
    assert report.ok
    assert report.api_key_valid and report.api_secret_valid
    assert report.timestamp == TIMESTAMP
    assert report.signature_length == report.expected_signature_length == 64
    assert report.signature_preview == f"{signature[:16]}...{signature[-8:]}"
    assert signature not in repr(report)
    assert report.api_call_ok is True
    assert report.recommendations == ()
    assert route.calls.last.request.url.params["signature"] == signature


@pytest.mark.asyncio
async def test_diagnose_reports_authentication_failure(respx_mock: respx.MockRouter) -> None:
    respx_mock.get("https://fapi.binance.com/fapi/v2/balance").mock(
        return_value=httpx.Response(400, json={"code": -1022, "msg": "Signature for this request is not valid."})
    )

    async with make_adapter() as adapter:
        report = (await adapter.diagnose(make_credentials())).unwrap()

    assert report.signature_valid
    assert not report.ok
    assert report.api_call_ok is False
    assert report.api_call_error_kind == "authentication"
    assert report.api_call_status_code == 400
    assert "Signature for this request is not valid." in report.api_call_message
    assert any("인증" in advice for advice in report.recommendations)


@pytest.mark.asyncio
async def test_diagnose_skips_api_call_for_short_key(respx_mock: respx.MockRouter) -> None:
    async with make_adapter() as adapter:
        report = (await adapter.diagnose(make_credentials(api_key="short"))).unwrap()

    assert respx_mock.calls.call_count == 0
    assert report.api_key_length == 5
    assert not report.api_key_valid
    assert report.api_secret_valid
    assert report.signature_valid
    assert report.api_call_ok is None
    assert any("API Key" in advice for advice in report.recommendations)


@pytest.mark.asyncio
async def test_diagnose_rejects_other_venue_credentials() -> None:
    async with make_adapter() as adapter:
        result = await adapter.diagnose(make_credentials(venue=Venue.GATE))

    assert isinstance(result.error, InvalidCredentialsError)
