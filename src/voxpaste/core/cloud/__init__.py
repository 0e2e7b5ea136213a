from .signing import RequestSigner, SignedRequest
from .tencent import TencentCloudClient

__all__ = ["RequestSigner", "SignedRequest", "TencentCloudClient"]
