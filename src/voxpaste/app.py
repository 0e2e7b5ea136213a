"""Application runtime."""

import signal
import sys

from PySide6.QtCore import QObject, Qt, Signal
from PySide6.QtWidgets import QApplication

from voxpaste import __app_name__, __version__
from voxpaste.core.asr import RecognitionOrchestrator
from voxpaste.core.audio import AudioRecorder
from voxpaste.core.input import HotkeyListener
from voxpaste.core.lifecycle import (
    KeepAliveTimer,
    MemoryPressureLevel,
    MemoryPressureMonitor,
)
from voxpaste.core.output import TextOutputController
from voxpaste.core.session import SessionState, VoiceInputSession
from voxpaste.core.settings import get_settings
from voxpaste.core.transcript_processor import OptimizationOrchestrator
from voxpaste.utils.logger import get_logger, shutdown_logging
from voxpaste.utils.platform import check_accessibility_permissions

logger = get_logger(__name__)


class VoxPasteApp(QObject):
    # Background threads report memory pressure through this signal so the
    # release runs on the main thread.
    _memory_pressure = Signal(object)

    def __init__(self):
        super().__init__()

        self._settings = get_settings()

        self._recorder = AudioRecorder(device=self._settings.input_device)
        self._recognizer = RecognitionOrchestrator(self._settings)
        self._optimizer = OptimizationOrchestrator(self._settings)
        self._session = VoiceInputSession(
            recorder=self._recorder,
            recognizer=self._recognizer,
            optimizer=self._optimizer,
            settings=self._settings,
            parent=self,
        )
        self._hotkey_listener = HotkeyListener(self._settings)
        self._text_output = TextOutputController()

        self._keep_alive = KeepAliveTimer(self._optimizer.keep_alive_if_needed)
        self._memory_monitor = MemoryPressureMonitor(self._memory_pressure.emit)

        self._hotkey_listener.toggled.connect(
            self._session.toggle, Qt.ConnectionType.QueuedConnection
        )
        self._session.state_changed.connect(self._on_state_changed)
        self._session.text_ready.connect(self._text_output.output_text)
        self._session.error.connect(self._on_session_error)
        self._memory_pressure.connect(self._on_memory_pressure)

    def _on_state_changed(self, state: SessionState) -> None:
        logger.info(f"Session state: {state.name}")

    def _on_session_error(self, message: str) -> None:
        logger.error(f"Dictation failed: {message}")

    def _on_memory_pressure(self, level: MemoryPressureLevel) -> None:
        logger.warning(f"Releasing local models ({level.name.lower()} memory pressure)")
        self._optimizer.release_local_resources()
        self._recognizer.release_local_resources()

    def run(self) -> None:
        logger.info(f"Starting {__app_name__} v{__version__}")
        logger.info(
            f"ASR: {self._recognizer.provider_display_name}, "
            f"LLM: {self._optimizer.provider_display_name} "
            f"({'enabled' if self._optimizer.enabled else 'disabled'})"
        )

        logger.info(
            f"Starting hotkey listener: {self._settings.hotkey.to_display_string()}"
        )
        self._hotkey_listener.start()

        if not check_accessibility_permissions():
            logger.warning(
                "Accessibility permission missing: text will be copied but not pasted"
            )

        self._recognizer.prewarm()
        self._optimizer.prewarm_if_needed()
        self._keep_alive.start()
        self._memory_monitor.start()

        logger.info("Application initialization complete")

    def quit(self) -> None:
        logger.info("Shutting down application")
        self._hotkey_listener.stop()
        self._keep_alive.stop()
        self._memory_monitor.stop()
        self._optimizer.release_local_resources()
        QApplication.quit()
        logger.info("Application shutdown complete")


def main():
    app = QApplication(sys.argv)
    app.setApplicationName(__app_name__)
    app.setQuitOnLastWindowClosed(False)

    voxpaste_app = VoxPasteApp()
    signal.signal(signal.SIGINT, lambda *args: voxpaste_app.quit())
    voxpaste_app.run()

    exit_code = app.exec()
    shutdown_logging()
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
