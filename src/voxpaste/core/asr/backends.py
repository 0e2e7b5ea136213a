import base64
import io
from typing import Callable, Dict, Optional, Protocol, runtime_checkable

import numpy as np
import speech_recognition as sr

from ...utils.logger import get_logger
from ..audio.recorder import CANONICAL_BITS_PER_SAMPLE, CANONICAL_SAMPLE_RATE
from ..audio.wav import build_wav_bytes
from ..cloud.tencent import TencentCloudClient
from ..errors import BackendError, LoadingInProgress, ProviderUnavailable
from ..lifecycle import LoadState, SingleFlightLoader
from ..settings.providers import ProviderConfiguration
from .file_utils import (
    detect_model_type,
    find_file_by_suffix,
    find_file_exact,
    find_tokens,
    resolve_model_path,
)

logger = get_logger(__name__)

LOCAL_SHERPA = "local_sherpa"
TENCENT_CLOUD = "tencent_cloud"
SYSTEM_SPEECH = "system_speech"


@runtime_checkable
class RecognitionBackend(Protocol):
    name: str

    def recognize(
        self, pcm: bytes, sample_rate: int, channels: int, bits_per_sample: int
    ) -> str: ...


def pcm_to_float(pcm: bytes, channels: int, bits_per_sample: int) -> np.ndarray:
    """Decode interleaved int16 LE bytes to a float32 waveform of the first channel."""
    if bits_per_sample != 16:
        raise BackendError(f"Unsupported bit depth: {bits_per_sample}")

    usable = len(pcm) - (len(pcm) % (2 * max(channels, 1)))
    samples = np.frombuffer(pcm[:usable], dtype="<i2")
    if channels > 1:
        samples = samples.reshape(-1, channels)[:, 0]
    return samples.astype(np.float32) / 32768.0


class SherpaOnnxBackend:
    """
    Offline recognition with a sherpa-onnx model directory.

    The recognizer is created through a single-flight loader. A request that
    arrives while a load is in flight raises LoadingInProgress instead of
    waiting, so the caller can fall back right away.
    """

    name = LOCAL_SHERPA

    def __init__(self, config: ProviderConfiguration):
        self.model = config.model
        self.model_path = resolve_model_path(config.model or "")
        self._loader: SingleFlightLoader = SingleFlightLoader(
            self._create_recognizer, name=f"ASR model '{self.model}'"
        )

    @property
    def is_loaded(self) -> bool:
        return self._loader.is_loaded

    def prewarm(self):
        return self._loader.load_in_background()

    def release(self) -> bool:
        return self._loader.release()

    def recognize(
        self, pcm: bytes, sample_rate: int, channels: int, bits_per_sample: int
    ) -> str:
        if self._loader.state == LoadState.LOADING:
            raise LoadingInProgress("Local speech model is still loading")

        samples = pcm_to_float(pcm, channels, bits_per_sample)
        if samples.size == 0:
            raise BackendError("No audio samples to recognize")

        try:
            recognizer = self._loader.get()
        except BackendError:
            raise
        except Exception as e:
            raise BackendError(f"Failed to load speech model: {e}") from e

        stream = recognizer.create_stream()
        stream.accept_waveform(sample_rate, samples)
        recognizer.decode_stream(stream)

        text = (stream.result.text or "").strip()
        if not text:
            raise BackendError("Local recognizer returned empty text")
        return text

    def _create_recognizer(self):
        model_type = detect_model_type(self.model_path)
        if model_type is None:
            raise BackendError(
                f"No usable sherpa-onnx model in {self.model_path}. "
                f"Please download the model first."
            )

        import sherpa_onnx

        logger.info(f"Loading model '{self.model}' as type '{model_type}'")
        tokens = find_tokens(self.model_path)

        if model_type == "whisper":
            return sherpa_onnx.OfflineRecognizer.from_whisper(
                encoder=find_file_by_suffix(
                    self.model_path, "-encoder.int8.onnx", "-encoder.onnx"
                ),
                decoder=find_file_by_suffix(
                    self.model_path, "-decoder.int8.onnx", "-decoder.onnx"
                ),
                tokens=tokens,
                num_threads=4,
                provider="cpu",
                debug=False,
                decoding_method="greedy_search",
            )

        if model_type == "transducer":
            return sherpa_onnx.OfflineRecognizer.from_transducer(
                encoder=find_file_exact(
                    self.model_path,
                    ["encoder.int8.onnx", "encoder.onnx", "encoder.fp16.onnx"],
                ),
                decoder=find_file_exact(
                    self.model_path,
                    ["decoder.int8.onnx", "decoder.onnx", "decoder.fp16.onnx"],
                ),
                joiner=find_file_exact(
                    self.model_path,
                    ["joiner.int8.onnx", "joiner.onnx", "joiner.fp16.onnx"],
                ),
                tokens=tokens,
                num_threads=4,
                provider="cpu",
                debug=False,
                decoding_method="greedy_search",
            )

        return sherpa_onnx.OfflineRecognizer.from_paraformer(
            paraformer=find_file_exact(
                self.model_path, ["model.int8.onnx", "model.onnx"]
            ),
            tokens=tokens,
            num_threads=4,
            provider="cpu",
            debug=False,
            decoding_method="greedy_search",
        )


class TencentASRBackend:
    """Tencent Cloud one-sentence recognition (SentenceRecognition)."""

    name = TENCENT_CLOUD

    ACTION = "SentenceRecognition"
    VERSION = "2019-06-14"
    SERVICE = "asr"

    def __init__(
        self,
        config: ProviderConfiguration,
        client_factory: Callable[..., TencentCloudClient] = TencentCloudClient,
    ):
        if not config.secret_id or not config.secret_key:
            raise ProviderUnavailable("Tencent Cloud credentials are not configured")

        self.engine = config.model or "16k_zh"
        self._client = client_factory(
            secret_id=config.secret_id,
            secret_key=config.secret_key,
            service=self.SERVICE,
            endpoint=config.endpoint or "asr.tencentcloudapi.com",
            version=self.VERSION,
            region=config.region or "ap-guangzhou",
            timeout=config.timeout,
        )

    def recognize(
        self, pcm: bytes, sample_rate: int, channels: int, bits_per_sample: int
    ) -> str:
        if bits_per_sample != CANONICAL_BITS_PER_SAMPLE:
            raise BackendError(f"Tencent ASR needs 16-bit PCM, got {bits_per_sample}")
        if sample_rate != CANONICAL_SAMPLE_RATE:
            raise BackendError(f"Tencent ASR needs 16 kHz PCM, got {sample_rate}")
        if not pcm:
            raise BackendError("No audio to send")

        payload = {
            "EngSerViceType": self.engine,
            "VoiceFormat": "pcm",
            "SourceType": 1,
            "Data": base64.b64encode(pcm).decode("ascii"),
            "DataLen": len(pcm),
            "FilterModal": 0,
            "ChannelNum": max(channels, 1),
        }

        response = self._client.call(self.ACTION, payload)
        return self.parse_result(response)

    @staticmethod
    def parse_result(response: dict) -> str:
        result = response.get("Result")
        if isinstance(result, dict):
            result = result.get("ResultText") or result.get("Text")

        text = result.strip() if isinstance(result, str) else ""
        if not text:
            raise BackendError("Tencent ASR returned empty result")
        return text


class SystemSpeechBackend:
    """
    On-device recognizer used as the terminal fallback.

    Wraps the buffer in a WAV file and runs it through speech_recognition;
    the default engine (pocketsphinx) works offline.
    """

    name = SYSTEM_SPEECH

    def __init__(
        self,
        config: ProviderConfiguration,
        recognizer: Optional[sr.Recognizer] = None,
    ):
        self.engine = (config.model or "sphinx").lower()
        self.language = config.language or "en-US"
        self._recognizer = recognizer or sr.Recognizer()

    def recognize(
        self, pcm: bytes, sample_rate: int, channels: int, bits_per_sample: int
    ) -> str:
        try:
            wav_bytes = build_wav_bytes(pcm, sample_rate, channels, bits_per_sample)
        except ValueError as e:
            raise BackendError(f"Cannot encode audio: {e}") from e

        try:
            with sr.AudioFile(io.BytesIO(wav_bytes)) as source:
                audio = self._recognizer.record(source)

            if self.engine == "google":
                text = self._recognizer.recognize_google(audio, language=self.language)
            else:
                text = self._recognizer.recognize_sphinx(audio, language=self.language)
        except sr.UnknownValueError as e:
            raise BackendError("System recognizer could not understand audio") from e
        except sr.RequestError as e:
            raise BackendError(f"System recognizer unavailable: {e}") from e
        except (ValueError, EOFError) as e:
            raise BackendError(f"System recognizer could not read audio: {e}") from e

        text = (text or "").strip()
        if not text:
            raise BackendError("System recognizer returned empty text")
        return text


BackendFactory = Callable[[ProviderConfiguration], RecognitionBackend]

ASR_BACKENDS: Dict[str, BackendFactory] = {
    LOCAL_SHERPA: SherpaOnnxBackend,
    TENCENT_CLOUD: TencentASRBackend,
    SYSTEM_SPEECH: SystemSpeechBackend,
}

ASR_DISPLAY_NAMES: Dict[str, str] = {
    LOCAL_SHERPA: "Local (sherpa-onnx)",
    TENCENT_CLOUD: "Tencent Cloud ASR",
    SYSTEM_SPEECH: "System Speech",
}
