"""
Signed JSON client for Tencent Cloud APIs (ASR and Hunyuan share it).
"""

import json
from typing import Any, Dict, Optional
from urllib.parse import urlparse

import requests

from ...utils.logger import get_logger
from ..errors import BackendError
from .signing import RequestSigner

logger = get_logger(__name__)


def split_endpoint(endpoint: str) -> tuple[str, str]:
    """Return (url, host) for an endpoint given either as a host or a full URL."""
    endpoint = endpoint.strip().rstrip("/")
    if "://" not in endpoint:
        endpoint = f"https://{endpoint}"
    host = urlparse(endpoint).netloc
    if not host:
        raise ValueError(f"Invalid endpoint: {endpoint!r}")
    return endpoint + "/", host


def encode_body(payload: Dict[str, Any]) -> bytes:
    return json.dumps(payload, ensure_ascii=False, separators=(",", ":")).encode(
        "utf-8"
    )


class TencentCloudClient:
    def __init__(
        self,
        secret_id: str,
        secret_key: str,
        service: str,
        endpoint: str,
        version: str,
        region: Optional[str] = None,
        timeout: float = 15.0,
        session: Optional[requests.Session] = None,
    ):
        self.signer = RequestSigner(secret_id, secret_key, service)
        self.url, self.host = split_endpoint(endpoint)
        self.version = version
        self.region = region
        self.timeout = timeout
        self._session = session or requests.Session()

    def call(self, action: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        """
        POST a signed action and return the ``Response`` object.

        Raises:
            BackendError: On transport failure, a non-JSON reply, or an
                ``Response.Error`` object (its Code is kept on the error).
        """
        body = encode_body(payload)
        signed = self.signer.sign(
            body,
            host=self.host,
            action=action,
            version=self.version,
            region=self.region,
        )

        try:
            response = self._session.post(
                self.url, data=body, headers=signed.headers, timeout=self.timeout
            )
        except requests.RequestException as e:
            raise BackendError(f"{action} request failed: {e}") from e

        try:
            data = response.json()
        except ValueError as e:
            raise BackendError(
                f"{action} returned invalid JSON (HTTP {response.status_code})"
            ) from e

        result = data.get("Response") if isinstance(data, dict) else None
        if not isinstance(result, dict):
            raise BackendError(
                f"{action} response is missing 'Response' (HTTP {response.status_code})"
            )

        error = result.get("Error")
        if isinstance(error, dict):
            code = error.get("Code")
            message = error.get("Message") or "Unknown error"
            logger.warning(f"{action} failed: {code} {message}")
            raise BackendError(message, code=code)

        if response.status_code >= 400:
            raise BackendError(
                f"{action} failed with HTTP {response.status_code}",
                code=response.status_code,
            )

        return result
