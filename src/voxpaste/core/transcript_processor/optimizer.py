"""
Transcript optimization with provider selection, output gating and the
local model lifecycle policies (prewarm, keep-alive, release).
"""

import threading
import time
from typing import Callable, Dict, List, Mapping, Optional, Tuple

from ...utils.logger import get_logger
from ..errors import BackendError, GatingRejected
from ..settings.config import KEEP_ALIVE_MIN_IDLE_SECONDS
from ..settings.providers import (
    resolve_provider_configuration,
    resolve_provider_key,
)
from ..settings.settings import Settings, get_settings
from .gating import OutputGate
from .llm_backends import LLM_BACKENDS, BackendFactory, OptimizationBackend

logger = get_logger(__name__)


class OptimizationOrchestrator:
    def __init__(
        self,
        settings: Optional[Settings] = None,
        environ: Optional[Mapping[str, str]] = None,
        registry: Optional[Dict[str, BackendFactory]] = None,
        gate: Optional[OutputGate] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._settings = settings or get_settings()
        self._environ = environ
        self._registry = dict(registry if registry is not None else LLM_BACKENDS)
        self._gate = gate or OutputGate()
        self._clock = clock
        self._lock = threading.Lock()

        key = resolve_provider_key(
            self._settings.llm_provider,
            "LLM_PROVIDER",
            list(self._registry),
            self._environ,
        )
        self._key = key or next(iter(self._registry))
        self._backend = self._build(self._key)
        self._last_activity = self._clock()
        self._prewarm_started = False

        if self._backend is None:
            logger.warning(f"Text optimization disabled: '{self._key}' is not configured")
        else:
            logger.info(
                f"Text optimization provider: {self._key} ({self.provider_model_identifier})"
            )

    @property
    def enabled(self) -> bool:
        with self._lock:
            return self._backend is not None

    @property
    def provider_key(self) -> str:
        return self._key

    @property
    def available_providers(self) -> List[str]:
        return list(self._registry)

    @property
    def provider_display_name(self) -> str:
        factory = self._registry.get(self._key)
        return getattr(factory, "display_name", self._key)

    @property
    def provider_model_identifier(self) -> Optional[str]:
        with self._lock:
            backend = self._backend
        return backend.model_identifier if backend is not None else None

    @property
    def idle_seconds(self) -> float:
        with self._lock:
            return self._clock() - self._last_activity

    def select_provider(self, key: str) -> bool:
        if key not in self._registry:
            logger.warning(f"Rejected unknown LLM provider '{key}'")
            return False

        backend = self._build(key)
        if backend is None:
            logger.warning(f"Rejected LLM provider '{key}': unavailable")
            return False

        with self._lock:
            self._key = key
            self._backend = backend
            self._prewarm_started = False

        self._settings.llm_provider = key
        self._settings.save()
        logger.info(f"LLM provider switched to {key}")
        return True

    def update_credentials(
        self,
        secret_id: Optional[str] = None,
        secret_key: Optional[str] = None,
        api_key: Optional[str] = None,
    ) -> bool:
        """
        Persist cloud credentials and rebuild the current backend.

        Tencent credentials must be given as a non-empty pair.
        """
        updated = False

        if secret_id is not None or secret_key is not None:
            secret_id = (secret_id or "").strip()
            secret_key = (secret_key or "").strip()
            if not secret_id or not secret_key:
                logger.warning("Rejected empty Tencent Cloud credentials")
                return False
            self._settings.tencent_secret_id = secret_id
            self._settings.tencent_secret_key = secret_key
            updated = True

        if api_key is not None:
            api_key = api_key.strip()
            if not api_key:
                logger.warning("Rejected empty MiniMax API key")
                return False
            self._settings.minimax_api_key = api_key
            updated = True

        if not updated:
            return False

        self._settings.save()
        self.reconfigure()
        return True

    def reconfigure(self) -> None:
        """Rebuild the selected backend from fresh configuration."""
        backend = self._build(self._key)
        with self._lock:
            self._backend = backend
            self._prewarm_started = False

    def optimize(self, text: str, prompt_override: Optional[str] = None) -> str:
        """
        Clean up a transcript. Never raises.

        Backend failures and gated outputs resolve to the trimmed input.
        """
        return self.optimize_with_outcome(text, prompt_override)[0]

    def optimize_with_outcome(
        self, text: str, prompt_override: Optional[str] = None
    ) -> Tuple[str, bool]:
        """
        Like optimize(), also reporting whether model output was accepted.

        Returns:
            (text, accepted). accepted is False when the input was blank, the
            optimizer is disabled, the backend failed or the gate rejected.
        """
        if not text or not text.strip():
            return text, False

        trimmed = text.strip()
        with self._lock:
            backend = self._backend
        if backend is None:
            return trimmed, False

        started = time.time()
        try:
            output = backend.optimize(trimmed, prompt_override)
        except Exception as e:
            logger.warning(f"{self._key} optimization failed, keeping original: {e}")
            return trimmed, False

        self._mark_activity()

        try:
            cleaned = self._gate.check(trimmed, output)
        except GatingRejected as e:
            logger.info(f"Keeping original text ({e.reason})")
            return trimmed, False

        logger.info(
            f"Optimization complete in {time.time() - started:.2f}s: "
            f"{len(trimmed)} -> {len(cleaned)} chars"
        )
        return cleaned, True

    def prewarm_if_needed(self) -> bool:
        """Start one background load for backends that have a local model."""
        with self._lock:
            backend = self._backend
            prewarm = getattr(backend, "prewarm", None)
            if prewarm is None or self._prewarm_started:
                return False
            self._prewarm_started = True

        future = prewarm()

        def _on_done(f):
            if f.exception() is not None:
                logger.warning(f"Prewarm failed: {f.exception()}")
                with self._lock:
                    if self._backend is backend:
                        self._prewarm_started = False
            else:
                self._mark_activity()

        future.add_done_callback(_on_done)
        return True

    def keep_alive_if_needed(
        self, min_idle_seconds: float = KEEP_ALIVE_MIN_IDLE_SECONDS
    ) -> bool:
        with self._lock:
            backend = self._backend
        keep_alive = getattr(backend, "keep_alive_if_loaded", None)
        if keep_alive is None or self.idle_seconds < min_idle_seconds:
            return False

        try:
            alive = keep_alive()
        except BackendError as e:
            logger.warning(f"Keep-alive failed: {e}")
            return False

        if alive:
            self._mark_activity()
        return alive

    def release_local_resources(self) -> bool:
        with self._lock:
            backend = self._backend
            self._prewarm_started = False
        release = getattr(backend, "release_loaded_model", None)
        if release is None:
            return False

        released = release()
        if released:
            logger.info(f"Released local model for {self._key}")
        return released

    def _mark_activity(self) -> None:
        with self._lock:
            self._last_activity = self._clock()

    def _build(self, key: str) -> Optional[OptimizationBackend]:
        factory = self._registry.get(key)
        if factory is None:
            return None
        config = resolve_provider_configuration(key, self._settings, self._environ)
        try:
            return factory(config)
        except Exception as e:
            logger.warning(f"Could not create LLM backend '{key}': {e}")
            return None
