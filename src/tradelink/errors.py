"""거래소 연동 계층의 오류 분류와 결과 타입."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Generic, Optional, TypeVar, Union

if TYPE_CHECKING:  # pragma: no cover
    from .data.models import RiskAssessment

T = TypeVar("T")


class SignatureFormatError(RuntimeError):
    """생성된 서명의 길이나 문자셋이 올바르지 않을 때 발생한다."""

    def __init__(self, expected_length: int, actual: str) -> None:
        self.expected_length = expected_length
        self.actual_length = len(actual)
        super().__init__(
            f"서명 형식 오류: {expected_length}자리 소문자 16진수가 필요하지만 "
            f"{self.actual_length}자리 값이 생성되었습니다."
        )


class VenueError(RuntimeError):
    """거래소 호출 실패의 공통 기반 클래스."""

    kind = "venue_error"
    retryable = False

    def __init__(
        self,
        message: str,
        *,
        venue: Optional[str] = None,
        status_code: Optional[int] = None,
        venue_code: Optional[str] = None,
    ) -> None:
        self.message = message
        self.venue = venue
        self.status_code = status_code
        self.venue_code = venue_code
        prefix = f"[{venue}] " if venue else ""
        super().__init__(f"{prefix}{message}")

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind,
            "message": self.message,
            "venue": self.venue,
            "status_code": self.status_code,
            "venue_code": self.venue_code,
            "retryable": self.retryable,
        }


class AuthenticationError(VenueError):
    """HTTP 401 또는 서명/키 오류."""

    kind = "authentication"


class VenuePermissionError(VenueError):
    """HTTP 403: API 키에 필요한 권한이 없다."""

    kind = "permission"


class RateLimitError(VenueError):
    """HTTP 429: 호출 빈도 제한. 호출자는 대기 후 재시도해야 한다."""

    kind = "rate_limit"
    retryable = True

    def __init__(self, message: str, *, retry_after: Optional[float] = None, **kwargs: Any) -> None:
        self.retry_after = retry_after
        super().__init__(message, **kwargs)

    def to_dict(self) -> dict[str, Any]:
        payload = super().to_dict()
        payload["retry_after"] = self.retry_after
        return payload


class NetworkError(VenueError):
    """연결 실패 또는 타임아웃."""

    kind = "network"
    retryable = True


class VenueRejectionError(VenueError):
    """그 밖의 비정상 응답. 거래소가 전달한 메시지를 담는다."""

    kind = "rejected"


class InvalidCredentialsError(VenueError):
    """API 키 형식이 올바르지 않아 네트워크 호출 전에 거부된 경우."""

    kind = "invalid_credentials"


class OrderValidationError(VenueError):
    """주문 요청이 로컬 검증을 통과하지 못한 경우."""

    kind = "invalid_order"


class UnsupportedVenueError(VenueError):
    """등록되지 않은 거래소 태그."""

    kind = "unsupported_venue"


class RiskGateRejection(RuntimeError):
    """리스크 게이트가 주문을 차단했다. 네트워크 호출 없이 발생한다."""

    kind = "risk_rejected"
    retryable = False

    def __init__(self, assessment: "RiskAssessment") -> None:
        self.assessment = assessment
        self.warnings = tuple(assessment.warnings)
        self.message = "; ".join(self.warnings) or "리스크 검사 미통과"
        super().__init__(f"리스크 게이트 거부: {self.message}")

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind,
            "message": self.message,
            "risk_level": self.assessment.risk_level.value,
            "warnings": list(self.assessment.warnings),
            "reasons": list(self.assessment.reasons),
            "retryable": self.retryable,
        }


ResultError = Union[VenueError, RiskGateRejection]


@dataclass(frozen=True, slots=True)
class Result(Generic[T]):
    """성공 값 또는 오류 중 하나만 담는 결과."""

    value: Optional[T] = None
    error: Optional[ResultError] = None

    def __post_init__(self) -> None:
        if self.error is not None and self.value is not None:
            raise ValueError("Result 는 값과 오류를 동시에 가질 수 없습니다.")

    @classmethod
    def success(cls, value: T) -> "Result[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, error: ResultError) -> "Result[T]":
        return cls(error=error)

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> T:
        """성공 값을 반환하고, 실패라면 담긴 오류를 던진다."""

        if self.error is not None:
            raise self.error
        return self.value  # type: ignore[return-value]

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.ok,
            "data": self.value,
            "error": self.error.to_dict() if self.error is not None else None,
        }


__all__ = [
    "AuthenticationError",
    "InvalidCredentialsError",
    "NetworkError",
    "OrderValidationError",
    "RateLimitError",
    "Result",
    "ResultError",
    "RiskGateRejection",
    "SignatureFormatError",
    "UnsupportedVenueError",
    "VenueError",
    "VenuePermissionError",
    "VenueRejectionError",
]
