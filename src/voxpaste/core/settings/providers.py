"""
Layered provider configuration.

Every field of a ProviderConfiguration is resolved independently:
persisted override (Settings) -> environment (VOXPASTE_*) -> built-in default.
"""

import os
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

from pydantic import BaseModel, ConfigDict

from ...utils.logger import get_logger
from .config import DEFAULT_LLM_TIMEOUT_SECONDS, env_name
from .settings import Settings

logger = get_logger(__name__)


class ProviderConfiguration(BaseModel):
    model_config = ConfigDict(frozen=True)

    provider: str
    model: Optional[str] = None
    secret_id: Optional[str] = None
    secret_key: Optional[str] = None
    api_key: Optional[str] = None
    endpoint: Optional[str] = None
    region: Optional[str] = None
    language: Optional[str] = None
    timeout: float = DEFAULT_LLM_TIMEOUT_SECONDS
    temperature: Optional[float] = None
    top_p: Optional[float] = None
    max_tokens: Optional[int] = None
    thinking: bool = False


def _parse_str(raw: Any) -> Optional[str]:
    if raw is None:
        return None
    value = str(raw).strip()
    return value or None


def _parse_float(raw: Any) -> Optional[float]:
    if raw is None or (isinstance(raw, str) and not raw.strip()):
        return None
    return float(raw)


def _parse_positive_float(raw: Any) -> Optional[float]:
    value = _parse_float(raw)
    if value is not None and value <= 0:
        raise ValueError(f"expected a positive number, got {raw!r}")
    return value


def _parse_int(raw: Any) -> Optional[int]:
    if raw is None or (isinstance(raw, str) and not raw.strip()):
        return None
    return int(raw)


def _parse_flag(raw: Any) -> Optional[bool]:
    if raw is None:
        return None
    if isinstance(raw, bool):
        return raw
    value = str(raw).strip().lower()
    if not value:
        return None
    return value in ("1", "true", "on", "enabled", "yes")


_PARSERS: Dict[str, Callable[[Any], Any]] = {
    "model": _parse_str,
    "secret_id": _parse_str,
    "secret_key": _parse_str,
    "api_key": _parse_str,
    "endpoint": _parse_str,
    "region": _parse_str,
    "language": _parse_str,
    "timeout": _parse_positive_float,
    "temperature": _parse_float,
    "top_p": _parse_float,
    "max_tokens": _parse_int,
    "thinking": _parse_flag,
}

_TIMEOUT = (["LLM_TIMEOUT"], DEFAULT_LLM_TIMEOUT_SECONDS)
_TENCENT_CREDENTIALS = {
    "secret_id": (["TENCENT_SECRET_ID"], None),
    "secret_key": (["TENCENT_SECRET_KEY"], None),
    "region": (["TENCENT_REGION"], "ap-guangzhou"),
}

# field -> (environment variable suffixes or absolute names, default)
PROVIDER_FIELDS: Dict[str, Dict[str, Tuple[List[str], Any]]] = {
    "local_sherpa": {
        "model": (
            ["LOCAL_ASR_MODEL"],
            "sherpa-onnx-paraformer-zh-small-2024-03-09",
        ),
    },
    "tencent_cloud": {
        **_TENCENT_CREDENTIALS,
        "endpoint": (["TENCENT_ASR_ENDPOINT"], "asr.tencentcloudapi.com"),
        "model": (["TENCENT_ASR_ENGINE"], "16k_zh"),
        "timeout": (["ASR_TIMEOUT"], 15.0),
    },
    "system_speech": {
        "model": (["SYSTEM_SPEECH_ENGINE"], "sphinx"),
        "language": (["SYSTEM_SPEECH_LANGUAGE"], "en-US"),
    },
    "local_ollama": {
        "model": (["LOCAL_LLM_MODEL"], "ollama/qwen2.5:0.5b-instruct"),
        "endpoint": (["OLLAMA_BASE"], "http://localhost:11434"),
        "max_tokens": (["LOCAL_LLM_MAX_TOKENS"], 160),
        "timeout": _TIMEOUT,
    },
    "tencent_hunyuan": {
        **_TENCENT_CREDENTIALS,
        "endpoint": (["LLM_ENDPOINT"], "https://hunyuan.tencentcloudapi.com"),
        "model": (["LLM_MODEL"], "hunyuan-lite"),
        "temperature": (["LLM_TEMPERATURE"], 0.8),
        "timeout": _TIMEOUT,
    },
    "minimax_text": {
        "api_key": (["MINIMAX_API_KEY", "=MINIMAX_API_KEY"], None),
        "endpoint": (["MINIMAX_ENDPOINT"], "https://api.minimaxi.com/anthropic"),
        "model": (["MINIMAX_MODEL"], "MiniMax-M2.5-highspeed"),
        "temperature": (["LLM_TEMPERATURE"], 0.8),
        "top_p": (["MINIMAX_TOP_P"], 0.95),
        "thinking": (["MINIMAX_THINKING"], False),
        "timeout": _TIMEOUT,
    },
}


def _env_key(name: str) -> str:
    # "=NAME" refers to a variable outside the VOXPASTE_ namespace.
    if name.startswith("="):
        return name[1:]
    return env_name(name)


def _persisted_values(provider: str, settings: Settings) -> Dict[str, Any]:
    values = settings.get_provider_settings(provider).model_dump()
    if provider in ("tencent_cloud", "tencent_hunyuan"):
        values["secret_id"] = settings.tencent_secret_id
        values["secret_key"] = settings.tencent_secret_key
    if provider == "minimax_text":
        values["api_key"] = settings.minimax_api_key
    return values


def _resolve_field(
    provider: str,
    field: str,
    persisted: Any,
    env_names: List[str],
    default: Any,
    environ: Mapping[str, str],
) -> Any:
    parser = _PARSERS[field]
    layers = [("settings", persisted)]
    layers += [(_env_key(name), environ.get(_env_key(name))) for name in env_names]

    for source, raw in layers:
        try:
            value = parser(raw)
        except (TypeError, ValueError):
            logger.warning(
                f"Ignoring invalid {field} for {provider} from {source}: {raw!r}"
            )
            continue
        if value is not None:
            return value

    return default


def resolve_provider_configuration(
    provider: str,
    settings: Settings,
    environ: Optional[Mapping[str, str]] = None,
) -> ProviderConfiguration:
    if environ is None:
        environ = os.environ

    fields = PROVIDER_FIELDS.get(provider, {})
    persisted = _persisted_values(provider, settings)

    resolved: Dict[str, Any] = {"provider": provider}
    for field, (env_names, default) in fields.items():
        value = _resolve_field(
            provider, field, persisted.get(field), env_names, default, environ
        )
        if value is not None:
            resolved[field] = value

    return ProviderConfiguration(**resolved)


def resolve_provider_key(
    persisted: Optional[str],
    env_var: str,
    supported: List[str],
    environ: Optional[Mapping[str, str]] = None,
) -> Optional[str]:
    """Pick the first supported provider key: persisted override, then environment."""
    if environ is None:
        environ = os.environ

    if persisted and persisted in supported:
        return persisted

    env_value = (environ.get(env_name(env_var)) or "").strip()
    if env_value in supported:
        return env_value

    return None
