"""
Tests for the recording session state machine and the pipeline worker.
"""

from unittest.mock import MagicMock

import pytest
from PySide6.QtCore import QObject, Signal

from voxpaste.core.errors import BackendError, SetupError
from voxpaste.core.pipeline_worker import PipelineWorkerThread, process_recording
from voxpaste.core.session import SessionState, VoiceInputSession
from voxpaste.core.settings import Settings
from voxpaste.core.transcript_processor.optimizer import OptimizationOrchestrator

PCM = b"\x10\x00" * 3200


class FakeWorker(QObject):
    finished = Signal(str, str, int)
    error = Signal(str, int)

    def __init__(self, recognizer, optimizer, pcm, generation, prompt_override=None, parent=None):
        super().__init__(parent)
        self.pcm = pcm
        self.generation = generation
        self.prompt_override = prompt_override
        self.started = False

    def start(self):
        self.started = True


class WorkerFactory:
    def __init__(self):
        self.workers = []

    def __call__(self, **kwargs):
        worker = FakeWorker(**kwargs)
        self.workers.append(worker)
        return worker


@pytest.fixture
def recorder():
    recorder = MagicMock()
    recorder.stop.return_value = PCM
    return recorder


@pytest.fixture
def factory():
    return WorkerFactory()


@pytest.fixture
def session(recorder, factory, settings):
    optimizer = MagicMock()
    return VoiceInputSession(
        recorder,
        MagicMock(),
        optimizer=optimizer,
        settings=settings,
        worker_factory=factory,
    )


class TestVoiceInputSession:
    def test_toggle_cycle(self, session, recorder, factory):
        states = []
        texts = []
        session.state_changed.connect(states.append)
        session.text_ready.connect(texts.append)

        session.toggle()
        assert session.state == SessionState.RECORDING
        recorder.start.assert_called_once()

        session.toggle()
        assert session.state == SessionState.PROCESSING
        worker = factory.workers[0]
        assert worker.started
        assert worker.pcm == PCM

        worker.finished.emit("今天天气不错", "嗯今天天气不错", worker.generation)

        assert session.state == SessionState.IDLE
        assert texts == ["今天天气不错"]
        assert states == [
            SessionState.RECORDING,
            SessionState.PROCESSING,
            SessionState.IDLE,
        ]

    def test_start_prewarms_optimizer(self, session):
        session.start()
        session._optimizer.prewarm_if_needed.assert_called_once()

    def test_setup_error_stays_idle(self, session, recorder):
        recorder.start.side_effect = SetupError("No microphone")
        errors = []
        session.error.connect(errors.append)

        assert session.start() is False

        assert session.state == SessionState.IDLE
        assert errors == ["No microphone"]

    def test_stop_when_idle_is_ignored(self, session, recorder):
        assert session.stop() is False
        recorder.stop.assert_not_called()

    def test_empty_recording_still_processed(self, session, recorder, factory):
        recorder.stop.return_value = None

        session.toggle()
        session.toggle()

        assert factory.workers[0].pcm == b""

    def test_new_recording_supersedes_in_flight_result(self, session, factory):
        texts = []
        session.text_ready.connect(texts.append)

        session.toggle()
        session.toggle()
        first = factory.workers[0]

        session.toggle()
        assert session.state == SessionState.RECORDING

        first.finished.emit("old", "old", first.generation)
        assert texts == []
        assert session.state == SessionState.RECORDING

        session.toggle()
        second = factory.workers[1]
        second.finished.emit("new", "new", second.generation)

        assert texts == ["new"]
        assert session.state == SessionState.IDLE

    def test_worker_error(self, session, factory):
        errors = []
        session.error.connect(errors.append)

        session.toggle()
        session.toggle()
        worker = factory.workers[0]
        worker.error.emit("System recognizer could not understand audio", worker.generation)

        assert errors == ["System recognizer could not understand audio"]
        assert session.state == SessionState.IDLE

    def test_empty_final_text_not_emitted(self, session, factory):
        texts = []
        session.text_ready.connect(texts.append)

        session.toggle()
        session.toggle()
        worker = factory.workers[0]
        worker.finished.emit("", "嗯", worker.generation)

        assert texts == []
        assert session.state == SessionState.IDLE

    def test_active_enhancement_passed_to_worker(self, recorder, factory):
        settings = Settings(
            enhancements=[{"id": "formal", "title": "Formal", "prompt": "Make it formal."}],
            active_enhancement_id="formal",
        )
        session = VoiceInputSession(
            recorder, MagicMock(), settings=settings, worker_factory=factory
        )

        session.toggle()
        session.toggle()

        assert factory.workers[0].prompt_override == "Make it formal."


class TestProcessRecording:
    def test_optimized_text_lightly_cleaned(self):
        recognizer = MagicMock()
        recognizer.recognize.return_value = "嗯那个今天天气不错"
        optimizer = MagicMock(enabled=True)
        optimizer.optimize_with_outcome.return_value = ("那个，今天天气不错。", True)

        final, raw = process_recording(PCM, recognizer, optimizer, "prompt")

        assert raw == "嗯那个今天天气不错"
        assert final == "那个，今天天气不错"
        recognizer.recognize.assert_called_once_with(PCM, 16000, 1, 16)
        optimizer.optimize_with_outcome.assert_called_once_with("嗯那个今天天气不错", "prompt")

    def test_disabled_optimizer_uses_aggressive_cleanup(self):
        recognizer = MagicMock()
        recognizer.recognize.return_value = "那个，我们明天开会"
        optimizer = MagicMock(enabled=False)

        final, _ = process_recording(PCM, recognizer, optimizer)

        assert final == "我们明天开会"
        optimizer.optimize_with_outcome.assert_not_called()

    def test_failed_optimization_uses_aggressive_cleanup(self):
        recognizer = MagicMock()
        recognizer.recognize.return_value = "嗯，那个，今天天气不错"
        backend = MagicMock(model_identifier="fake-model")
        backend.optimize.side_effect = BackendError("request timed out")
        optimizer = OptimizationOrchestrator(
            Settings(), environ={}, registry={"local_ollama": lambda config: backend}
        )

        final, raw = process_recording(PCM, recognizer, optimizer)

        assert raw == "嗯，那个，今天天气不错"
        assert final == "今天天气不错"

    def test_gated_optimization_uses_aggressive_cleanup(self):
        recognizer = MagicMock()
        recognizer.recognize.return_value = "嗯，那个，帮我整理一下这段话"
        backend = MagicMock(model_identifier="fake-model")
        backend.optimize.return_value = "抱歉，我无法处理"
        optimizer = OptimizationOrchestrator(
            Settings(), environ={}, registry={"local_ollama": lambda config: backend}
        )

        final, _ = process_recording(PCM, recognizer, optimizer)

        assert final == "帮我整理一下这段话"
        backend.optimize.assert_called_once()

    def test_recognition_failure_propagates(self):
        recognizer = MagicMock()
        recognizer.recognize.side_effect = BackendError("no speech")

        with pytest.raises(BackendError):
            process_recording(PCM, recognizer, None)


class TestPipelineWorkerThread:
    def test_emits_finished(self, qtbot):
        recognizer = MagicMock()
        recognizer.recognize.return_value = "hello world"
        worker = PipelineWorkerThread(recognizer, None, PCM, generation=3)

        with qtbot.waitSignal(worker.finished, timeout=5000) as blocker:
            worker.start()
        worker.wait()

        assert blocker.args == ["hello world", "hello world", 3]

    def test_emits_error(self, qtbot):
        recognizer = MagicMock()
        recognizer.recognize.side_effect = BackendError("no speech")
        worker = PipelineWorkerThread(recognizer, None, PCM, generation=7)

        with qtbot.waitSignal(worker.error, timeout=5000) as blocker:
            worker.start()
        worker.wait()

        assert blocker.args == ["no speech", 7]
