"""
Recognition provider selection and the one-level fallback policy.

The selected backend is tried first; any failure falls back exactly once to
the terminal system recognizer, whose own failure is final.
"""

import threading
from typing import Dict, List, Mapping, Optional

from ...utils.logger import get_logger
from ..audio.recorder import (
    CANONICAL_BITS_PER_SAMPLE,
    CANONICAL_CHANNELS,
    CANONICAL_SAMPLE_RATE,
)
from ..errors import BackendError
from ..settings.providers import (
    ProviderConfiguration,
    resolve_provider_configuration,
    resolve_provider_key,
)
from ..settings.settings import Settings, get_settings
from .backends import (
    ASR_BACKENDS,
    ASR_DISPLAY_NAMES,
    LOCAL_SHERPA,
    SYSTEM_SPEECH,
    TENCENT_CLOUD,
    BackendFactory,
    RecognitionBackend,
)

logger = get_logger(__name__)

DEFAULT_ASR_PROVIDER = LOCAL_SHERPA


class RecognitionOrchestrator:
    def __init__(
        self,
        settings: Optional[Settings] = None,
        environ: Optional[Mapping[str, str]] = None,
        registry: Optional[Dict[str, BackendFactory]] = None,
        terminal_provider: str = SYSTEM_SPEECH,
        default_provider: str = DEFAULT_ASR_PROVIDER,
    ):
        self._settings = settings or get_settings()
        self._environ = environ
        self._registry = dict(registry if registry is not None else ASR_BACKENDS)
        self._terminal_key = terminal_provider
        self._default_key = default_provider
        self._lock = threading.Lock()

        key = resolve_provider_key(
            self._settings.asr_provider,
            "ASR_PROVIDER",
            list(self._registry),
            self._environ,
        )
        if key is not None and not self.is_available(key):
            logger.warning(
                f"ASR provider '{key}' is unavailable, falling back to '{self._default_key}'"
            )
            self._settings.asr_provider = self._default_key
            self._settings.save()
            key = self._default_key

        self._current = key or self._default_key
        self._backend = self._build(self._current)
        self._terminal = self._build(self._terminal_key)
        logger.info(f"ASR provider: {self.provider_display_name}")

    @property
    def current_provider(self) -> str:
        return self._current

    @property
    def provider_display_name(self) -> str:
        return ASR_DISPLAY_NAMES.get(self._current, self._current)

    @property
    def terminal_provider(self) -> str:
        return self._terminal_key

    @property
    def available_providers(self) -> List[str]:
        return [key for key in self._registry if self.is_available(key)]

    def configuration_for(self, key: str) -> ProviderConfiguration:
        return resolve_provider_configuration(key, self._settings, self._environ)

    def is_available(self, key: str) -> bool:
        if key not in self._registry:
            return False
        if key == TENCENT_CLOUD:
            config = self.configuration_for(key)
            return bool(config.secret_id and config.secret_key)
        return True

    def select_provider(self, key: str) -> bool:
        if not self.is_available(key):
            logger.warning(f"Rejected ASR provider '{key}': unavailable")
            return False

        backend = self._build(key)
        with self._lock:
            self._current = key
            self._backend = backend

        self._settings.asr_provider = key
        self._settings.save()
        logger.info(f"ASR provider switched to {key}")
        return True

    def update_credentials(self, secret_id: str, secret_key: str) -> bool:
        secret_id = (secret_id or "").strip()
        secret_key = (secret_key or "").strip()
        if not secret_id or not secret_key:
            logger.warning("Rejected empty Tencent Cloud credentials")
            return False

        self._settings.tencent_secret_id = secret_id
        self._settings.tencent_secret_key = secret_key
        self._settings.save()

        if self._current == TENCENT_CLOUD:
            self.reconfigure()
        logger.info("Tencent Cloud credentials updated")
        return True

    def reconfigure(self) -> None:
        """Rebuild the selected and terminal backends from fresh configuration."""
        backend = self._build(self._current)
        terminal = self._build(self._terminal_key)
        with self._lock:
            self._backend = backend
            self._terminal = terminal

    def prewarm(self) -> None:
        with self._lock:
            backend = self._backend
        prewarm = getattr(backend, "prewarm", None)
        if prewarm is not None:
            logger.info(f"Prewarming ASR backend {backend.name}")
            prewarm()

    def release_local_resources(self) -> None:
        with self._lock:
            backend = self._backend
        release = getattr(backend, "release", None)
        if release is not None:
            release()

    def recognize(
        self,
        pcm: bytes,
        sample_rate: int = CANONICAL_SAMPLE_RATE,
        channels: int = CANONICAL_CHANNELS,
        bits_per_sample: int = CANONICAL_BITS_PER_SAMPLE,
    ) -> str:
        """
        Recognize a finalized buffer.

        Raises:
            BackendError: Only when the terminal recognizer itself fails.
        """
        with self._lock:
            key = self._current
            backend = self._backend

        if not pcm:
            logger.info("Empty audio buffer, using the system recognizer directly")
            return self._recognize_terminal(pcm, sample_rate, channels, bits_per_sample)

        if key == self._terminal_key:
            return self._recognize_terminal(pcm, sample_rate, channels, bits_per_sample)

        if backend is None:
            logger.warning(f"ASR backend '{key}' is not ready, using fallback")
            return self._recognize_terminal(pcm, sample_rate, channels, bits_per_sample)

        try:
            text = backend.recognize(pcm, sample_rate, channels, bits_per_sample)
            logger.info(f"{backend.name} recognized {len(text)} chars")
            return text
        except Exception as e:
            logger.warning(f"{backend.name} failed ({e}), falling back to system recognizer")

        return self._recognize_terminal(pcm, sample_rate, channels, bits_per_sample)

    def _recognize_terminal(
        self, pcm: bytes, sample_rate: int, channels: int, bits_per_sample: int
    ) -> str:
        with self._lock:
            terminal = self._terminal
        if terminal is None:
            raise BackendError("System recognizer is not available")

        try:
            return terminal.recognize(pcm, sample_rate, channels, bits_per_sample)
        except BackendError:
            raise
        except Exception as e:
            raise BackendError(f"System recognizer failed: {e}") from e

    def _build(self, key: str) -> Optional[RecognitionBackend]:
        factory = self._registry.get(key)
        if factory is None:
            return None
        try:
            return factory(self.configuration_for(key))
        except Exception as e:
            logger.error(f"Could not create ASR backend '{key}': {e}")
            return None
