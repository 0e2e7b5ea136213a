import time
from typing import Optional, Tuple

from PySide6.QtCore import QThread, Signal

from ..utils.logger import get_logger
from .asr.orchestrator import RecognitionOrchestrator
from .audio.recorder import (
    CANONICAL_BITS_PER_SAMPLE,
    CANONICAL_CHANNELS,
    CANONICAL_SAMPLE_RATE,
)
from .transcript_processor.optimizer import OptimizationOrchestrator
from .transcript_processor.prompts import clean_text

logger = get_logger(__name__)


def process_recording(
    pcm: bytes,
    recognizer: RecognitionOrchestrator,
    optimizer: Optional[OptimizationOrchestrator],
    prompt_override: Optional[str] = None,
) -> Tuple[str, str]:
    """
    Recognize a finalized buffer and clean up the transcript.

    Returns:
        (final_text, raw_text)

    Raises:
        BackendError: If the terminal recognizer fails.
    """
    raw_text = recognizer.recognize(
        pcm, CANONICAL_SAMPLE_RATE, CANONICAL_CHANNELS, CANONICAL_BITS_PER_SAMPLE
    )

    accepted = False
    if optimizer is not None and optimizer.enabled:
        optimized, accepted = optimizer.optimize_with_outcome(raw_text, prompt_override)

    # Model output only needs light cleanup; anything else gets the full pass.
    if accepted:
        final_text = clean_text(optimized, aggressive=False)
    else:
        final_text = clean_text(raw_text, aggressive=True)

    return final_text, raw_text


class PipelineWorkerThread(QThread):
    """
    Background thread for recognition + optimization.

    Signals:
        finished: Emitted when processing completes (final_text, raw_text, generation)
        error: Emitted when the terminal recognizer fails (error_message, generation)
    """

    finished = Signal(str, str, int)
    error = Signal(str, int)

    def __init__(
        self,
        recognizer: RecognitionOrchestrator,
        optimizer: Optional[OptimizationOrchestrator],
        pcm: bytes,
        generation: int,
        prompt_override: Optional[str] = None,
        parent=None,
    ):
        super().__init__(parent)
        self._recognizer = recognizer
        self._optimizer = optimizer
        self._pcm = pcm
        self._generation = generation
        self._prompt_override = prompt_override

    @property
    def generation(self) -> int:
        return self._generation

    def run(self):
        start_time = time.time()

        try:
            logger.info(f"Background processing started: {len(self._pcm)} bytes")
            final_text, raw_text = process_recording(
                self._pcm, self._recognizer, self._optimizer, self._prompt_override
            )
        except Exception as e:
            logger.exception(f"Background processing error: {e}")
            self.error.emit(str(e), self._generation)
            return

        logger.info(
            f"Processing completed in {time.time() - start_time:.2f}s: "
            f"'{final_text[:50]}{'...' if len(final_text) > 50 else ''}'"
        )
        self.finished.emit(final_text, raw_text, self._generation)
