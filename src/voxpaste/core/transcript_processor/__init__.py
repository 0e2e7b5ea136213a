from .gating import GateThresholds, OutputGate, count_core_characters
from .llm_backends import (
    LLM_BACKENDS,
    LLM_DISPLAY_NAMES,
    LOCAL_OLLAMA,
    MINIMAX_TEXT,
    TENCENT_HUNYUAN,
    LocalOllamaBackend,
    MiniMaxBackend,
    OptimizationBackend,
    TencentHunyuanBackend,
)
from .optimizer import OptimizationOrchestrator
from .prompts import (
    Enhancement,
    PromptRequest,
    build_prompt,
    clean_text,
    get_default_enhancements,
)

__all__ = [
    "Enhancement",
    "GateThresholds",
    "LLM_BACKENDS",
    "LLM_DISPLAY_NAMES",
    "LOCAL_OLLAMA",
    "LocalOllamaBackend",
    "MINIMAX_TEXT",
    "MiniMaxBackend",
    "OptimizationBackend",
    "OptimizationOrchestrator",
    "OutputGate",
    "PromptRequest",
    "TENCENT_HUNYUAN",
    "TencentHunyuanBackend",
    "build_prompt",
    "clean_text",
    "count_core_characters",
    "get_default_enhancements",
]
