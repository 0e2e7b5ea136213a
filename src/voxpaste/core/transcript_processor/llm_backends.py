from typing import Any, Callable, Dict, Optional, Protocol, runtime_checkable

import litellm
import requests
from litellm import completion

from ...utils.logger import get_logger
from ..cloud.tencent import TencentCloudClient
from ..errors import BackendError, ProviderUnavailable
from ..lifecycle import SingleFlightLoader
from ..settings.providers import ProviderConfiguration
from .prompts import PromptRequest, build_prompt

logger = get_logger(__name__)

LOCAL_OLLAMA = "local_ollama"
TENCENT_HUNYUAN = "tencent_hunyuan"
MINIMAX_TEXT = "minimax_text"

MIN_LOCAL_MAX_TOKENS = 64
OLLAMA_KEEP_ALIVE = "5m"


@runtime_checkable
class OptimizationBackend(Protocol):
    key: str
    display_name: str

    @property
    def model_identifier(self) -> str: ...

    def optimize(self, text: str, prompt_override: Optional[str] = None) -> str: ...


def _clamp(value: float, low: float, high: float) -> float:
    return min(max(value, low), high)


def _first_choice_content(response: Any) -> str:
    try:
        content = response.choices[0].message.content
    except (AttributeError, IndexError, KeyError, TypeError) as e:
        raise BackendError(f"Unexpected completion response: {e}") from e
    content = (content or "").strip()
    if not content:
        raise BackendError("Model returned no text")
    return content


def _supports_system_messages(model: str) -> bool:
    model_info = litellm.model_cost.get(model, {})
    return model_info.get("supports_system_messages", True)


class LocalOllamaBackend:
    """
    Small local model served by Ollama, called through litellm.

    The model is loaded into the Ollama runtime through a single-flight
    loader; keep-alive pings stop Ollama from evicting it while idle.
    """

    key = LOCAL_OLLAMA
    display_name = "Local (Ollama)"

    def __init__(
        self,
        config: ProviderConfiguration,
        session: Optional[requests.Session] = None,
    ):
        self.model = config.model or "ollama/qwen2.5:0.5b-instruct"
        if not self.model.startswith("ollama/"):
            self.model = f"ollama/{self.model}"
        self.api_base = (config.endpoint or "http://localhost:11434").rstrip("/")
        self.timeout = config.timeout
        self.max_tokens = max(config.max_tokens or 160, MIN_LOCAL_MAX_TOKENS)
        self._session = session or requests.Session()
        self._loader: SingleFlightLoader[str] = SingleFlightLoader(
            self._load_model, name=f"LLM '{self.model}'"
        )

        self._supports_system_messages = _supports_system_messages(self.model)
        if not self._supports_system_messages:
            logger.info(
                f"Model {self.model} does not support system messages (per model_cost)"
            )

    @property
    def model_identifier(self) -> str:
        return self.model

    @property
    def runtime_model_name(self) -> str:
        return self.model.split("/", 1)[1]

    @property
    def is_loaded(self) -> bool:
        return self._loader.is_loaded

    def prewarm(self):
        return self._loader.load_in_background()

    def optimize(self, text: str, prompt_override: Optional[str] = None) -> str:
        try:
            self._loader.get(timeout=self.timeout)
        except BackendError:
            raise
        except Exception as e:
            raise BackendError(f"Local model unavailable: {e}") from e

        prompt = build_prompt(text, prompt_override)
        try:
            response = completion(
                model=self.model,
                messages=prompt.to_messages(self._supports_system_messages),
                api_base=self.api_base,
                temperature=0,
                top_p=1.0,
                max_tokens=self.max_tokens,
                timeout=self.timeout,
            )
        except Exception as e:
            raise BackendError(f"Local model request failed: {e}") from e
        return _first_choice_content(response)

    def keep_alive_if_loaded(self) -> bool:
        if not self._loader.is_loaded:
            return False
        self._post_generate(OLLAMA_KEEP_ALIVE)
        logger.debug(f"Keep-alive sent for {self.model}")
        return True

    def release_loaded_model(self) -> bool:
        if not self._loader.release():
            return False
        try:
            self._post_generate(0)
        except BackendError as e:
            logger.warning(f"Could not unload {self.model} from Ollama: {e}")
        return True

    def _load_model(self) -> str:
        self._post_generate(OLLAMA_KEEP_ALIVE)
        return self.runtime_model_name

    def _post_generate(self, keep_alive) -> None:
        # A generate call without a prompt only loads or unloads the model.
        try:
            response = self._session.post(
                f"{self.api_base}/api/generate",
                json={"model": self.runtime_model_name, "keep_alive": keep_alive},
                timeout=self.timeout,
            )
            response.raise_for_status()
        except requests.RequestException as e:
            raise BackendError(f"Ollama request failed: {e}") from e


class TencentHunyuanBackend:
    key = TENCENT_HUNYUAN
    display_name = "Tencent Hunyuan"

    ACTION = "ChatCompletions"
    VERSION = "2023-09-01"
    SERVICE = "hunyuan"

    def __init__(
        self,
        config: ProviderConfiguration,
        client_factory: Callable[..., TencentCloudClient] = TencentCloudClient,
    ):
        if not config.secret_id or not config.secret_key:
            raise ProviderUnavailable("Tencent Cloud credentials are not configured")

        self.model = config.model or "hunyuan-lite"
        self.temperature = _clamp(
            config.temperature if config.temperature is not None else 0.8, 0.0, 2.0
        )
        self._client = client_factory(
            secret_id=config.secret_id,
            secret_key=config.secret_key,
            service=self.SERVICE,
            endpoint=config.endpoint or "https://hunyuan.tencentcloudapi.com",
            version=self.VERSION,
            region=config.region,
            timeout=config.timeout,
        )

    @property
    def model_identifier(self) -> str:
        return self.model

    def optimize(self, text: str, prompt_override: Optional[str] = None) -> str:
        prompt = build_prompt(text, prompt_override)
        payload = {
            "Model": self.model,
            "Messages": [
                {"Role": m["role"], "Content": m["content"]}
                for m in prompt.to_messages()
            ],
            "Temperature": self.temperature,
            "Stream": False,
        }
        response = self._client.call(self.ACTION, payload)
        return self.extract_text(response)

    @staticmethod
    def extract_text(response: Dict[str, Any]) -> str:
        choices = response.get("Choices")
        if isinstance(choices, list) and choices and isinstance(choices[0], dict):
            first = choices[0]
            for container in ("Message", "Delta"):
                part = first.get(container)
                if isinstance(part, dict) and part.get("Content"):
                    return str(part["Content"]).strip()

        for key in ("Text", "Result"):
            value = response.get(key)
            if isinstance(value, str) and value.strip():
                return value.strip()

        raise BackendError("Hunyuan response contains no text")


class MiniMaxBackend:
    """MiniMax text model through its Anthropic-compatible endpoint."""

    key = MINIMAX_TEXT
    display_name = "MiniMax"

    def __init__(self, config: ProviderConfiguration):
        if not config.api_key:
            raise ProviderUnavailable("MiniMax API key is not configured")

        self.api_key = config.api_key
        self.model = config.model or "MiniMax-M2.5-highspeed"
        self.api_base = (config.endpoint or "https://api.minimaxi.com/anthropic").rstrip(
            "/"
        )
        self.temperature = _clamp(
            config.temperature if config.temperature is not None else 0.8, 0.01, 1.0
        )
        self.top_p = _clamp(config.top_p if config.top_p is not None else 0.95, 0.0, 1.0)
        self.max_tokens = config.max_tokens or 1024
        self.thinking = config.thinking
        self.timeout = config.timeout

    @property
    def model_identifier(self) -> str:
        return self.model

    def optimize(self, text: str, prompt_override: Optional[str] = None) -> str:
        prompt: PromptRequest = build_prompt(text, prompt_override)
        thinking = {"type": "enabled", "budget_tokens": 1024} if self.thinking else {
            "type": "disabled"
        }

        try:
            response = completion(
                model=f"anthropic/{self.model}",
                messages=prompt.to_messages(),
                api_base=self.api_base,
                api_key=self.api_key,
                temperature=self.temperature,
                top_p=self.top_p,
                max_tokens=self.max_tokens,
                thinking=thinking,
                timeout=self.timeout,
            )
        except Exception as e:
            raise BackendError(f"MiniMax request failed: {e}") from e
        return _first_choice_content(response)


BackendFactory = Callable[[ProviderConfiguration], OptimizationBackend]

LLM_BACKENDS: Dict[str, BackendFactory] = {
    LOCAL_OLLAMA: LocalOllamaBackend,
    TENCENT_HUNYUAN: TencentHunyuanBackend,
    MINIMAX_TEXT: MiniMaxBackend,
}

LLM_DISPLAY_NAMES: Dict[str, str] = {
    key: factory.display_name for key, factory in LLM_BACKENDS.items()
}
