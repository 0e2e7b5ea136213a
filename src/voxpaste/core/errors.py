"""Error kinds shared by the recording, recognition and optimization layers."""

from typing import Optional, Union


class VoxPasteError(Exception):
    pass


class SetupError(VoxPasteError):
    """Audio device or format could not be prepared for a recording attempt."""


class ProviderUnavailable(VoxPasteError):
    """A provider's prerequisites (credentials, endpoint) are missing."""


class BackendError(VoxPasteError):
    """A recognition or optimization backend failed to produce text."""

    def __init__(self, message: str, code: Optional[Union[int, str]] = None):
        super().__init__(message)
        self.message = message
        self.code = code

    def __str__(self) -> str:
        if self.code is None:
            return self.message
        return f"{self.message} (code={self.code})"


class LoadingInProgress(BackendError):
    """A local model is still loading; the request was not queued."""


class GatingRejected(VoxPasteError):
    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason
