"""거래소별 요청 서명.

바이낸스 방식은 쿼리 문자열 전체에 대한 HMAC-SHA256 이고, Gate 방식은 다섯 줄로 구성한
문자열에 대한 HMAC-SHA512 이다. Gate 의 본문 요소는 HMAC 이 아닌 일반 SHA-512 해시이며,
빈 본문도 해시한 값을 넣어야 한다.
"""

from __future__ import annotations

import hashlib
import hmac
import re
import time
from decimal import Decimal
from typing import Callable, Mapping, Tuple
from urllib.parse import urlencode

from ..data import SignatureRequest
from ..errors import SignatureFormatError

SHA256_HEX_LENGTH = 64
SHA512_HEX_LENGTH = 128

EMPTY_BODY_SHA512 = (
    "cf83e1357eefb8bdf1542850d66d8007d620e4050b5715dc83f4a921d36ce9ce"
    "47d0d13c5d85f2b0ff8318d2877eec2f63b931bd47417a81a538327af927da3e"
)

_HEX_PATTERN = re.compile(r"^[0-9a-f]+$")

TimestampFactory = Callable[[], int]


def seconds_timestamp() -> int:
    return int(time.time())


def milliseconds_timestamp() -> int:
    return int(time.time() * 1000)


def validate_signature(signature: str, expected_length: int) -> str:
    """길이와 소문자 16진수 문자셋을 확인한다."""

    if len(signature) != expected_length or not _HEX_PATTERN.match(signature):
        raise SignatureFormatError(expected_length, signature)
    return signature


def hmac_sha256(payload: str, secret: str) -> str:
    digest = hmac.new(secret.encode("utf-8"), payload.encode("utf-8"), hashlib.sha256).hexdigest()
    return validate_signature(digest, SHA256_HEX_LENGTH)


def hmac_sha512(payload: str, secret: str) -> str:
    digest = hmac.new(secret.encode("utf-8"), payload.encode("utf-8"), hashlib.sha512).hexdigest()
    return validate_signature(digest, SHA512_HEX_LENGTH)


def hash_body(body: str) -> str:
    """요청 본문의 SHA-512 해시. 빈 본문도 해시한다."""

    return validate_signature(hashlib.sha512(body.encode("utf-8")).hexdigest(), SHA512_HEX_LENGTH)


class BinanceSigner:
    """바이낸스 방식: timestamp, recvWindow 를 포함한 쿼리 문자열에 HMAC-SHA256."""

    def __init__(self, *, recv_window: int = 5000, timestamp_factory: TimestampFactory = milliseconds_timestamp) -> None:
        if not 0 < recv_window <= 60000:
            raise ValueError("recvWindow 는 1 이상 60000 이하여야 합니다.")
        self._recv_window = recv_window
        self._timestamp_factory = timestamp_factory

    @property
    def recv_window(self) -> int:
        return self._recv_window

    @staticmethod
    def sign(payload: str, secret: str) -> str:
        return hmac_sha256(payload, secret)

    def signed_query(self, params: Mapping[str, object], secret: str) -> str:
        """파라미터에 timestamp, recvWindow 를 덧붙이고 서명까지 붙인 쿼리 문자열."""

        pairs = [(key, _stringify(value)) for key, value in params.items()]
        pairs.append(("timestamp", str(self._timestamp_factory())))
        pairs.append(("recvWindow", str(self._recv_window)))
        query = urlencode(pairs)
        return f"{query}&signature={self.sign(query, secret)}"


class GateSigner:
    """Gate 방식: METHOD/RESOURCE/QUERY/SHA512(BODY)/TIMESTAMP 에 HMAC-SHA512."""

    def __init__(self, *, timestamp_factory: TimestampFactory = seconds_timestamp) -> None:
        self._timestamp_factory = timestamp_factory

    @staticmethod
    def payload(request: SignatureRequest) -> str:
        return "\n".join(
            [
                request.method.strip().upper(),
                request.path.strip(),
                request.query.strip(),
                hash_body(request.body),
                str(request.timestamp),
            ]
        )

    @classmethod
    def sign(cls, request: SignatureRequest, secret: str) -> str:
        return hmac_sha512(cls.payload(request), secret)

    def build_request(self, method: str, path: str, query: str = "", body: str = "") -> SignatureRequest:
        """서명 시점에 새 timestamp 를 발급해 요청을 만든다."""

        return SignatureRequest(
            method=method,
            path=path,
            query=query,
            body=body,
            timestamp=int(self._timestamp_factory()),
        )

    def headers(
        self,
        api_key: str,
        secret: str,
        method: str,
        path: str,
        query: str = "",
        body: str = "",
    ) -> Tuple[SignatureRequest, dict[str, str]]:
        request = self.build_request(method, path, query, body)
        return request, {
            "KEY": api_key,
            "SIGN": self.sign(request, secret),
            "Timestamp": str(request.timestamp),
        }


def _stringify(value: object) -> str:
    if isinstance(value, Decimal):
        return format(value, "f")
    return str(value)


__all__ = [
    "BinanceSigner",
    "EMPTY_BODY_SHA512",
    "GateSigner",
    "SHA256_HEX_LENGTH",
    "SHA512_HEX_LENGTH",
    "hash_body",
    "hmac_sha256",
    "hmac_sha512",
    "milliseconds_timestamp",
    "seconds_timestamp",
    "validate_signature",
]
