"""
Recording session state machine.

IDLE -> RECORDING on toggle, RECORDING -> PROCESSING on the next toggle, and
back to IDLE when the pipeline worker reports. A toggle while PROCESSING
starts a new recording; the older worker's result is then discarded.
"""

from enum import Enum, auto
from typing import Callable, Optional, Set

from PySide6.QtCore import QObject, Signal

from ..utils.logger import get_logger
from .asr.orchestrator import RecognitionOrchestrator
from .audio.recorder import AudioRecorder
from .errors import SetupError
from .pipeline_worker import PipelineWorkerThread
from .settings.settings import Settings, get_settings
from .transcript_processor.optimizer import OptimizationOrchestrator

logger = get_logger(__name__)


class SessionState(Enum):
    IDLE = auto()
    RECORDING = auto()
    PROCESSING = auto()


class VoiceInputSession(QObject):
    """
    Signals:
        state_changed: Emitted with the new SessionState
        text_ready: Emitted with the final text of the latest recording
        error: Emitted with a user-facing message (setup or terminal recognition failure)
    """

    state_changed = Signal(object)
    text_ready = Signal(str)
    error = Signal(str)

    def __init__(
        self,
        recorder: AudioRecorder,
        recognizer: RecognitionOrchestrator,
        optimizer: Optional[OptimizationOrchestrator] = None,
        settings: Optional[Settings] = None,
        worker_factory: Callable[..., PipelineWorkerThread] = PipelineWorkerThread,
        parent: Optional[QObject] = None,
    ):
        super().__init__(parent)
        self._recorder = recorder
        self._recognizer = recognizer
        self._optimizer = optimizer
        self._settings = settings or get_settings()
        self._worker_factory = worker_factory

        self._state = SessionState.IDLE
        self._generation = 0
        self._workers: Set[PipelineWorkerThread] = set()

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def generation(self) -> int:
        return self._generation

    def toggle(self) -> None:
        if self._state == SessionState.RECORDING:
            self.stop()
        else:
            self.start()

    def start(self) -> bool:
        if self._state == SessionState.RECORDING:
            return False

        try:
            self._recorder.start()
        except SetupError as e:
            logger.error(f"Recording error: {e}")
            self.error.emit(str(e))
            return False

        if self._state == SessionState.PROCESSING:
            logger.info("New recording supersedes the in-flight result")
        self._generation += 1
        self._set_state(SessionState.RECORDING)
        logger.info("Recording started")

        if self._optimizer is not None:
            self._optimizer.prewarm_if_needed()
        return True

    def stop(self) -> bool:
        if self._state != SessionState.RECORDING:
            return False

        pcm = self._recorder.stop() or b""
        self._set_state(SessionState.PROCESSING)
        logger.info(f"Recording stopped with {len(pcm)} bytes, starting background processing")

        enhancement = self._settings.get_active_enhancement()
        prompt_override = enhancement.prompt if enhancement else None

        worker = self._worker_factory(
            recognizer=self._recognizer,
            optimizer=self._optimizer,
            pcm=pcm,
            generation=self._generation,
            prompt_override=prompt_override,
            parent=self,
        )
        self._workers.add(worker)
        worker.finished.connect(self._on_worker_finished)
        worker.error.connect(self._on_worker_error)
        worker.start()
        return True

    def _on_worker_finished(self, final_text: str, raw_text: str, generation: int) -> None:
        self._forget_worker(generation)
        if generation != self._generation:
            logger.info(f"Discarding superseded result from recording #{generation}")
            return

        self._set_state(SessionState.IDLE)
        if not final_text:
            logger.warning(f"Nothing to paste (raw transcript: {raw_text!r})")
            return
        self.text_ready.emit(final_text)

    def _on_worker_error(self, message: str, generation: int) -> None:
        self._forget_worker(generation)
        if generation != self._generation:
            logger.info(f"Discarding superseded error from recording #{generation}")
            return

        logger.error(f"Processing failed: {message}")
        self._set_state(SessionState.IDLE)
        self.error.emit(message)

    def _forget_worker(self, generation: int) -> None:
        for worker in list(self._workers):
            if getattr(worker, "generation", None) == generation:
                self._workers.discard(worker)

    def _set_state(self, state: SessionState) -> None:
        if self._state == state:
            return
        self._state = state
        self.state_changed.emit(state)
