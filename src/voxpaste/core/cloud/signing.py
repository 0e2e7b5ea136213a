"""
HMAC-SHA256 request signing for signature-authenticated cloud APIs.

The default parameters produce Tencent Cloud's TC3-HMAC-SHA256 scheme. With
``key_prefix=""`` and ``scope_terminator="request"`` the same chain yields the
generic ``{date}/{service}/request`` form.
"""

import hashlib
import hmac
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, Optional

SIGNED_HEADERS = "content-type;host"
JSON_CONTENT_TYPE = "application/json"


def sha256_hex(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def hmac_sha256(key: bytes, message: str) -> bytes:
    return hmac.new(key, message.encode("utf-8"), hashlib.sha256).digest()


def utc_date(timestamp: int) -> str:
    return datetime.fromtimestamp(timestamp, tz=timezone.utc).strftime("%Y-%m-%d")


@dataclass(frozen=True)
class SignedRequest:
    timestamp: int
    date: str
    credential_scope: str
    canonical_request: str
    string_to_sign: str
    signature: str
    authorization: str
    headers: Dict[str, str]


class RequestSigner:
    def __init__(
        self,
        secret_id: str,
        secret_key: str,
        service: str,
        algorithm: str = "TC3-HMAC-SHA256",
        key_prefix: str = "TC3",
        scope_terminator: str = "tc3_request",
    ):
        if not secret_id or not secret_key:
            raise ValueError("Signing requires both a secret id and a secret key")
        self.secret_id = secret_id
        self._secret_key = secret_key
        self.service = service
        self.algorithm = algorithm
        self.key_prefix = key_prefix
        self.scope_terminator = scope_terminator

    def canonical_request(
        self,
        body: bytes,
        host: str,
        method: str = "POST",
        uri: str = "/",
        content_type: str = JSON_CONTENT_TYPE,
    ) -> str:
        canonical_headers = f"content-type:{content_type.lower()}\nhost:{host.lower()}\n"
        return "\n".join(
            [
                method,
                uri,
                "",
                canonical_headers,
                SIGNED_HEADERS,
                sha256_hex(body),
            ]
        )

    def credential_scope(self, date: str) -> str:
        return f"{date}/{self.service}/{self.scope_terminator}"

    def string_to_sign(self, canonical_request: str, timestamp: int, date: str) -> str:
        return "\n".join(
            [
                self.algorithm,
                str(timestamp),
                self.credential_scope(date),
                sha256_hex(canonical_request.encode("utf-8")),
            ]
        )

    def signature(self, string_to_sign: str, date: str) -> str:
        secret_date = hmac_sha256(
            f"{self.key_prefix}{self._secret_key}".encode("utf-8"), date
        )
        secret_service = hmac_sha256(secret_date, self.service)
        secret_signing = hmac_sha256(secret_service, self.scope_terminator)
        return hmac.new(
            secret_signing, string_to_sign.encode("utf-8"), hashlib.sha256
        ).hexdigest()

    def sign(
        self,
        body: bytes,
        host: str,
        action: str,
        version: str,
        region: Optional[str] = None,
        timestamp: Optional[int] = None,
        content_type: str = JSON_CONTENT_TYPE,
    ) -> SignedRequest:
        """
        Sign one request. Never reuse the result for another request.

        Args:
            body: The exact JSON bytes that will be sent
            host: Target host name, e.g. "asr.tencentcloudapi.com"
            action: API action header value
            version: API version header value
            region: Region header value, omitted when None
            timestamp: Unix seconds; defaults to now
            content_type: Content-Type header value, also signed
        """
        if timestamp is None:
            timestamp = int(time.time())
        date = utc_date(timestamp)

        canonical = self.canonical_request(body, host, content_type=content_type)
        to_sign = self.string_to_sign(canonical, timestamp, date)
        signature = self.signature(to_sign, date)
        scope = self.credential_scope(date)
        authorization = (
            f"{self.algorithm} Credential={self.secret_id}/{scope}, "
            f"SignedHeaders={SIGNED_HEADERS}, Signature={signature}"
        )

        headers = {
            "Authorization": authorization,
            "Content-Type": content_type,
            "Host": host,
            "X-TC-Timestamp": str(timestamp),
            "X-TC-Action": action,
            "X-TC-Version": version,
        }
        if region:
            headers["X-TC-Region"] = region

        return SignedRequest(
            timestamp=timestamp,
            date=date,
            credential_scope=scope,
            canonical_request=canonical,
            string_to_sign=to_sign,
            signature=signature,
            authorization=authorization,
            headers=headers,
        )
