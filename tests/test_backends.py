"""
Tests for the speech recognition backends.

Verifies request building and response parsing without network, models or
audio hardware.
"""

import base64
from unittest.mock import MagicMock, patch

import numpy as np
import pytest
import speech_recognition as sr

from voxpaste.core.asr.backends import (
    SherpaOnnxBackend,
    SystemSpeechBackend,
    TencentASRBackend,
    pcm_to_float,
)
from voxpaste.core.asr.file_utils import detect_model_type
from voxpaste.core.errors import BackendError, LoadingInProgress, ProviderUnavailable
from voxpaste.core.lifecycle import LoadState, SingleFlightLoader
from voxpaste.core.settings.providers import ProviderConfiguration

PCM = np.array([0, 1000, -1000, 2000], dtype="<i2").tobytes()


def _config(provider, **kwargs):
    return ProviderConfiguration(provider=provider, **kwargs)


class TestPcmDecoding:
    def test_scales_to_float(self):
        samples = pcm_to_float(np.array([16384, -32768], dtype="<i2").tobytes(), 1, 16)
        assert samples.dtype == np.float32
        assert samples.tolist() == [0.5, -1.0]

    def test_keeps_first_channel(self):
        pcm = np.array([1, 2, 3, 4], dtype="<i2").tobytes()
        samples = pcm_to_float(pcm, 2, 16)
        assert (samples * 32768).round().tolist() == [1, 3]

    def test_rejects_other_bit_depths(self):
        with pytest.raises(BackendError):
            pcm_to_float(PCM, 1, 24)


class TestModelDetection:
    def test_paraformer(self, tmp_path):
        (tmp_path / "model.int8.onnx").touch()
        (tmp_path / "tokens.txt").touch()
        assert detect_model_type(str(tmp_path)) == "paraformer"

    def test_transducer(self, tmp_path):
        for name in ("encoder.onnx", "decoder.onnx", "joiner.onnx", "tokens.txt"):
            (tmp_path / name).touch()
        assert detect_model_type(str(tmp_path)) == "transducer"

    def test_whisper(self, tmp_path):
        for name in ("tiny-encoder.onnx", "tiny-decoder.onnx", "tiny-tokens.txt"):
            (tmp_path / name).touch()
        assert detect_model_type(str(tmp_path)) == "whisper"

    def test_missing(self, tmp_path):
        assert detect_model_type(str(tmp_path / "absent")) is None
        assert detect_model_type(str(tmp_path)) is None


class TestSherpaOnnxBackend:
    def _backend(self, tmp_path, recognizer=None):
        backend = SherpaOnnxBackend(_config("local_sherpa", model=str(tmp_path)))
        if recognizer is not None:
            backend._loader = SingleFlightLoader(lambda: recognizer, name="test")
        return backend

    def _recognizer(self, text):
        recognizer = MagicMock()
        stream = recognizer.create_stream.return_value
        stream.result.text = text
        return recognizer

    def test_recognizes(self, tmp_path):
        recognizer = self._recognizer(" 你好世界 ")
        backend = self._backend(tmp_path, recognizer)

        assert backend.recognize(PCM, 16000, 1, 16) == "你好世界"
        stream = recognizer.create_stream.return_value
        rate, samples = stream.accept_waveform.call_args.args
        assert rate == 16000
        assert len(samples) == 4
        recognizer.decode_stream.assert_called_once_with(stream)

    def test_fails_fast_while_loading(self, tmp_path):
        backend = self._backend(tmp_path)
        backend._loader = MagicMock(state=LoadState.LOADING)

        with pytest.raises(LoadingInProgress):
            backend.recognize(PCM, 16000, 1, 16)

        backend._loader.get.assert_not_called()

    def test_empty_text_is_error(self, tmp_path):
        backend = self._backend(tmp_path, self._recognizer(""))

        with pytest.raises(BackendError):
            backend.recognize(PCM, 16000, 1, 16)

    def test_missing_model_is_backend_error(self, tmp_path):
        backend = self._backend(tmp_path / "missing")

        with pytest.raises(BackendError):
            backend.recognize(PCM, 16000, 1, 16)

        assert backend._loader.state == LoadState.UNLOADED

    def test_release(self, tmp_path):
        backend = self._backend(tmp_path, self._recognizer("x"))
        backend.recognize(PCM, 16000, 1, 16)

        assert backend.is_loaded
        assert backend.release() is True
        assert not backend.is_loaded


class TestTencentASRBackend:
    def _backend(self, response=None, error=None):
        client = MagicMock()
        if error is not None:
            client.call.side_effect = error
        else:
            client.call.return_value = response
        factory = MagicMock(return_value=client)
        backend = TencentASRBackend(
            _config("tencent_cloud", secret_id="id", secret_key="key", timeout=15.0),
            client_factory=factory,
        )
        return backend, client, factory

    def test_requires_credentials(self):
        with pytest.raises(ProviderUnavailable):
            TencentASRBackend(_config("tencent_cloud"), client_factory=MagicMock())

    def test_client_configuration(self):
        _, _, factory = self._backend({"Result": "ok"})

        kwargs = factory.call_args.kwargs
        assert kwargs["service"] == "asr"
        assert kwargs["version"] == "2019-06-14"
        assert kwargs["region"] == "ap-guangzhou"
        assert kwargs["endpoint"] == "asr.tencentcloudapi.com"

    def test_request_payload(self):
        backend, client, _ = self._backend({"Result": " 今天天气不错 "})

        assert backend.recognize(PCM, 16000, 1, 16) == "今天天气不错"

        action, payload = client.call.call_args.args
        assert action == "SentenceRecognition"
        assert payload["EngSerViceType"] == "16k_zh"
        assert payload["VoiceFormat"] == "pcm"
        assert payload["SourceType"] == 1
        assert base64.b64decode(payload["Data"]) == PCM
        assert payload["DataLen"] == len(PCM)
        assert payload["ChannelNum"] == 1

    def test_result_object(self):
        backend, _, _ = self._backend({"Result": {"ResultText": "hello"}})
        assert backend.recognize(PCM, 16000, 1, 16) == "hello"

    def test_empty_result_is_error(self):
        backend, _, _ = self._backend({"Result": "   "})
        with pytest.raises(BackendError):
            backend.recognize(PCM, 16000, 1, 16)

    @pytest.mark.parametrize("rate,bits", [(8000, 16), (16000, 8), (44100, 16)])
    def test_rejects_non_canonical_audio(self, rate, bits):
        backend, client, _ = self._backend({"Result": "ok"})

        with pytest.raises(BackendError):
            backend.recognize(PCM, rate, 1, bits)

        client.call.assert_not_called()

    def test_client_error_propagates(self):
        backend, _, _ = self._backend(error=BackendError("denied", code="AuthFailure"))

        with pytest.raises(BackendError) as exc_info:
            backend.recognize(PCM, 16000, 1, 16)

        assert exc_info.value.code == "AuthFailure"


class TestSystemSpeechBackend:
    def _backend(self, **kwargs):
        recognizer = MagicMock()
        backend = SystemSpeechBackend(
            _config("system_speech", **kwargs), recognizer=recognizer
        )
        return backend, recognizer

    def test_recognizes_wav_audio(self):
        backend, recognizer = self._backend()
        recognizer.recognize_sphinx.return_value = " hello world "

        assert backend.recognize(PCM, 16000, 1, 16) == "hello world"

        source = recognizer.record.call_args.args[0]
        assert isinstance(source, sr.AudioFile)
        assert recognizer.recognize_sphinx.call_args.kwargs["language"] == "en-US"

    def test_google_engine(self):
        backend, recognizer = self._backend(model="google", language="zh-CN")
        recognizer.recognize_google.return_value = "你好"

        assert backend.recognize(PCM, 16000, 1, 16) == "你好"
        recognizer.recognize_sphinx.assert_not_called()

    def test_unknown_value_is_backend_error(self):
        backend, recognizer = self._backend()
        recognizer.recognize_sphinx.side_effect = sr.UnknownValueError()

        with pytest.raises(BackendError):
            backend.recognize(PCM, 16000, 1, 16)

    def test_request_error_is_backend_error(self):
        backend, recognizer = self._backend()
        recognizer.recognize_sphinx.side_effect = sr.RequestError("missing pocketsphinx")

        with pytest.raises(BackendError):
            backend.recognize(PCM, 16000, 1, 16)

    def test_handles_empty_buffer(self):
        backend, recognizer = self._backend()
        recognizer.recognize_sphinx.side_effect = sr.UnknownValueError()

        with pytest.raises(BackendError):
            backend.recognize(b"", 16000, 1, 16)
