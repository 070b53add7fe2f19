"""거래소 어댑터 공통 인터페이스와 HTTP 처리."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import replace
from typing import Any, Dict, List, Mapping, Optional, Tuple

import httpx

from ..config.settings import AppSettings, get_settings
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
from ..errors import (
    AuthenticationError,
    InvalidCredentialsError,
    NetworkError,
    OrderValidationError,
    RateLimitError,
    Result,
    SignatureFormatError,
    VenueError,
    VenuePermissionError,
    VenueRejectionError,
)
from .signing import validate_signature

logger = logging.getLogger(__name__)

# 인증 조회 실패 종류별 조치 안내
FAILURE_ADVICE: Dict[str, str] = {
    "authentication": "서명은 생성되었지만 인증에 실패했습니다. API Key/Secret 과 서버 시간 동기화를 확인하세요.",
    "permission": "서명은 올바르지만 API 키에 계정 조회 권한이 없습니다. API 권한을 확인하세요.",
    "rate_limit": "호출 빈도 제한에 걸렸습니다. 잠시 후 다시 진단하세요.",
    "network": "거래소에 연결하지 못했습니다. 네트워크와 sandbox 설정을 확인하세요.",
}
DEFAULT_FAILURE_ADVICE = "서명은 올바르게 생성되었지만 API 호출이 실패했습니다. API 권한을 확인하세요."


class VenueAdapter(ABC):
    """거래소 하나의 REST API 를 캐노니컬 모델로 감싸는 비동기 어댑터.

    예상 가능한 실패(인증, 권한, 빈도 제한, 네트워크, 거래소 거부)는 예외 대신
    ``Result.failure`` 로 돌려준다. 서명 형식 오류처럼 프로그램 불변식이 깨진 경우만
    예외가 전파된다.
    """

    venue: Venue
    signature_length: int

    def __init__(
        self,
        settings: Optional[AppSettings] = None,
        *,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._client = client or httpx.AsyncClient(timeout=self._settings.http_timeout)
        self._owns_client = client is None
        self._settlement_asset = self._settings.settlement_asset.upper()

    async def __aenter__(self) -> "VenueAdapter":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """내부 HTTP 클라이언트를 종료한다."""

        if self._owns_client:
            await self._client.aclose()

    @property
    @abstractmethod
    def min_key_length(self) -> int:
        """API Key 와 Secret 에 요구하는 최소 길이."""

    @abstractmethod
    async def test_connection(self, credentials: ExchangeCredentials) -> Result[str]:
        """인증 정보 형식과 거래소 접속 가능 여부를 확인한다."""

    @abstractmethod
    async def get_balance(
        self, credentials: ExchangeCredentials, account_type: AccountType
    ) -> Result[CanonicalBalance]:
        """정산 자산의 잔고를 조회한다."""

    @abstractmethod
    async def get_positions(self, credentials: ExchangeCredentials) -> Result[List[CanonicalPosition]]:
        """수량이 0 이 아닌 선물 포지션을 조회한다."""

    @abstractmethod
    async def place_order(self, credentials: ExchangeCredentials, order: OrderRequest) -> Result[OrderResult]:
        """선물 주문을 전송한다."""

    def check_credentials(self, credentials: ExchangeCredentials) -> Optional[InvalidCredentialsError]:
        """네트워크 호출 없이 인증 정보 형식을 검사한다."""

        if credentials.venue is not self.venue:
            return InvalidCredentialsError(
                f"{credentials.venue.value} 인증 정보로 {self.venue.value} 어댑터를 호출할 수 없습니다.",
                venue=self.venue.value,
            )
        key = credentials.api_key.strip()
        secret = credentials.api_secret.strip()
        if len(key) < self.min_key_length or len(secret) < self.min_key_length:
            return InvalidCredentialsError(
                f"API 키 형식이 올바르지 않습니다. Key 와 Secret 은 최소 {self.min_key_length}자 이상이어야 합니다.",
                venue=self.venue.value,
            )
        if key != credentials.api_key or secret != credentials.api_secret:
            return InvalidCredentialsError("API 키 앞뒤에 공백이 포함되어 있습니다.", venue=self.venue.value)
        return None

    def check_order(self, order: OrderRequest) -> Optional[OrderValidationError]:
        problem = order.validation_error()
        if problem is None:
            return None
        return OrderValidationError(problem, venue=self.venue.value)

    async def diagnose(self, credentials: ExchangeCredentials) -> Result[SignatureDiagnostics]:
        """인증 정보 형식, 서명 생성, 실제 인증 조회를 차례로 점검한다.

        형식이나 서명 검사에 실패하면 인증 조회는 건너뛴다. 인증 조회는 선물 잔고 조회를
        그대로 사용하며, 그 실패도 ``Result.failure`` 가 아닌 진단 결과에 담는다.
        """

        if credentials.venue is not self.venue:
            return Result.failure(
                InvalidCredentialsError(
                    f"{credentials.venue.value} 인증 정보로 {self.venue.value} 어댑터를 진단할 수 없습니다.",
                    venue=self.venue.value,
                )
            )
        key = credentials.api_key.strip()
        secret = credentials.api_secret.strip()
        key_valid = len(key) >= self.min_key_length
        secret_valid = len(secret) >= self.min_key_length
        whitespace_free = key == credentials.api_key and secret == credentials.api_secret
        recommendations: List[str] = []
        if not key_valid:
            recommendations.append(f"API Key 가 너무 짧습니다. 최소 {self.min_key_length}자 이상이어야 합니다.")
        if not secret_valid:
            recommendations.append(f"API Secret 이 너무 짧습니다. 최소 {self.min_key_length}자 이상이어야 합니다.")
        if not whitespace_free:
            recommendations.append("API Key/Secret 앞뒤의 공백을 제거하세요.")

        signature = ""
        timestamp: Optional[int] = None
        signature_error: Optional[str] = None
        try:
            signature, timestamp = self._sample_signature(credentials)
            validate_signature(signature, self.signature_length)
        except SignatureFormatError as exc:
            signature_error = str(exc)
            recommendations.append("서명 생성에 실패했습니다. 서명 구현과 Secret 인코딩을 확인하세요.")

        diagnostics = SignatureDiagnostics(
            venue=self.venue,
            api_key_length=len(credentials.api_key),
            api_secret_length=len(credentials.api_secret),
            min_key_length=self.min_key_length,
            api_key_valid=key_valid,
            api_secret_valid=secret_valid,
            whitespace_free=whitespace_free,
            timestamp=timestamp,
            signature_valid=signature_error is None,
            signature_length=len(signature),
            expected_signature_length=self.signature_length,
            signature_preview=_preview(signature) if signature else None,
            signature_error=signature_error,
        )
        if not (key_valid and secret_valid and whitespace_free and signature_error is None):
            recommendations.append("형식 검사를 통과하지 못해 인증 조회를 건너뛰었습니다.")
            return Result.success(replace(diagnostics, recommendations=tuple(recommendations)))

        balance = await self.get_balance(credentials, AccountType.FUTURES)
        if balance.ok:
            logger.info("%s 서명 진단 통과", self.venue.value)
            return Result.success(replace(diagnostics, api_call_ok=True, recommendations=tuple(recommendations)))

        error = balance.error
        kind = error.kind
        recommendations.append(FAILURE_ADVICE.get(kind, DEFAULT_FAILURE_ADVICE))
        logger.info("%s 서명 진단: 인증 조회 실패(%s)", self.venue.value, kind)
        return Result.success(
            replace(
                diagnostics,
                api_call_ok=False,
                api_call_error_kind=kind,
                api_call_status_code=getattr(error, "status_code", None),
                api_call_message=getattr(error, "message", str(error)),
                recommendations=tuple(recommendations),
            )
        )

    @abstractmethod
    def _sample_signature(self, credentials: ExchangeCredentials) -> Tuple[str, int]:
        """인증 조회 요청에 쓰일 서명과 timestamp 를 새로 만든다."""

    async def _send(
        self,
        method: str,
        url: str,
        *,
        headers: Optional[Mapping[str, str]] = None,
        content: Optional[str] = None,
    ) -> Result[Any]:
        """HTTP 요청을 보내고 JSON 본문 또는 분류된 오류를 돌려준다."""

        try:
            response = await self._client.request(method, url, headers=headers, content=content)
        except httpx.TimeoutException as exc:
            logger.warning("%s %s 요청 시간 초과: %s", self.venue.value, _path_of(url), exc)
            return Result.failure(NetworkError("요청 시간이 초과되었습니다.", venue=self.venue.value))
        except httpx.HTTPError as exc:
            logger.warning("%s %s 네트워크 오류: %s", self.venue.value, _path_of(url), exc)
            return Result.failure(NetworkError(f"네트워크 오류: {exc}", venue=self.venue.value))

        if not response.is_success:
            error = self._error_from_response(response)
            logger.warning(
                "%s %s 요청 실패(HTTP %s, %s): %s",
                self.venue.value,
                _path_of(url),
                response.status_code,
                error.kind,
                error.message,
            )
            return Result.failure(error)
        try:
            return Result.success(response.json())
        except ValueError:
            return Result.failure(
                VenueRejectionError(
                    "응답 본문을 JSON 으로 해석할 수 없습니다.",
                    venue=self.venue.value,
                    status_code=response.status_code,
                )
            )

    def _malformed(self, what: str, exc: Exception) -> Result[Any]:
        logger.warning("%s %s 응답 형식 오류: %s", self.venue.value, what, exc)
        return Result.failure(
            VenueRejectionError(f"{what} 응답 형식이 올바르지 않습니다: {exc}", venue=self.venue.value)
        )

    def _error_from_response(self, response: httpx.Response) -> VenueError:
        try:
            payload = response.json()
        except ValueError:
            payload = None
        status = response.status_code
        message = self._error_message(payload) or f"HTTP {status}"
        code = self._error_code(payload)
        common = {"venue": self.venue.value, "status_code": status, "venue_code": code}
        if status == 401:
            return AuthenticationError(f"인증 실패: API 키와 서명을 확인하세요. {message}", **common)
        if status == 403:
            return VenuePermissionError(f"권한 없음: API 키에 필요한 권한이 없습니다. {message}", **common)
        if status == 429:
            return RateLimitError(
                f"호출 빈도 제한 초과: 잠시 후 다시 시도하세요. {message}",
                retry_after=_retry_after(response),
                **common,
            )
        return self._classify_rejection(response, message, code)

    def _classify_rejection(self, response: httpx.Response, message: str, code: Optional[str]) -> VenueError:
        """401/403/429 이외의 실패를 분류한다. 거래소별 오류 코드는 하위 클래스에서 처리한다."""

        return VenueRejectionError(
            message,
            venue=self.venue.value,
            status_code=response.status_code,
            venue_code=code,
        )

    @staticmethod
    @abstractmethod
    def _error_message(payload: Any) -> Optional[str]:
        """거래소 오류 응답에서 메시지 필드를 꺼낸다."""

    @staticmethod
    @abstractmethod
    def _error_code(payload: Any) -> Optional[str]:
        """거래소 오류 응답에서 오류 코드를 꺼낸다."""


def find_row(rows: Any, field: str, asset: str) -> Optional[Mapping[str, Any]]:
    """목록에서 자산 필드가 대소문자 구분 없이 일치하는 첫 행을 찾는다."""

    if not isinstance(rows, list):
        return None
    target = asset.lower()
    for row in rows:
        if isinstance(row, Mapping) and str(row.get(field, "")).lower() == target:
            return row
    return None


def _retry_after(response: httpx.Response) -> Optional[float]:
    value = response.headers.get("Retry-After")
    if value is None:
        return None
    try:
        return float(value)
    except ValueError:
        return None


def _preview(signature: str) -> str:
    if len(signature) <= 24:
        return "***"
    return f"{signature[:16]}...{signature[-8:]}"


def _path_of(url: str) -> str:
    return httpx.URL(url).path


__all__ = ["VenueAdapter", "find_row"]
