from .backends import (
    ASR_BACKENDS,
    ASR_DISPLAY_NAMES,
    LOCAL_SHERPA,
    SYSTEM_SPEECH,
    TENCENT_CLOUD,
    RecognitionBackend,
    SherpaOnnxBackend,
    SystemSpeechBackend,
    TencentASRBackend,
)
from .orchestrator import DEFAULT_ASR_PROVIDER, RecognitionOrchestrator

__all__ = [
    "ASR_BACKENDS",
    "ASR_DISPLAY_NAMES",
    "DEFAULT_ASR_PROVIDER",
    "LOCAL_SHERPA",
    "SYSTEM_SPEECH",
    "TENCENT_CLOUD",
    "RecognitionBackend",
    "RecognitionOrchestrator",
    "SherpaOnnxBackend",
    "SystemSpeechBackend",
    "TencentASRBackend",
]
