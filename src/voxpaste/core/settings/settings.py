"""
Settings management with JSON persistence.

Handles loading, saving, and validating application settings.
Uses platformdirs for cross-platform directory resolution.
"""

import json
from pathlib import Path
from typing import TYPE_CHECKING, Dict, List, Optional

from platformdirs import user_config_path, user_data_path
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from ...utils.logger import get_logger

if TYPE_CHECKING:
    from ..transcript_processor.prompts import Enhancement

logger = get_logger(__name__)

APP_NAME = "voxpaste"

DEFAULT_HOTKEY_KEYS = ["cmd_r"]


def _get_default_enhancements() -> List[dict]:
    from ..transcript_processor.prompts import get_default_enhancements

    return [e.model_dump() for e in get_default_enhancements()]


def get_config_dir() -> Path:
    return user_config_path(APP_NAME, appauthor=False, ensure_exists=True)


def get_data_dir() -> Path:
    return user_data_path(APP_NAME, appauthor=False, ensure_exists=True)


def settings_file() -> Path:
    return get_config_dir() / "settings.json"


def _read_settings_file(path: Path) -> dict:
    if not path.exists():
        return {}
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        logger.warning(f"Could not load settings: {e}. Using defaults.")
        return {}
    if not isinstance(data, dict):
        logger.warning("Settings file is not a JSON object. Using defaults.")
        return {}
    return data


class HotkeyConfig(BaseModel):
    model_config = ConfigDict(validate_assignment=False)

    keys: list[str] = Field(default_factory=lambda: list(DEFAULT_HOTKEY_KEYS))

    @field_validator("keys")
    @classmethod
    def keys_form_a_combo(cls, v):
        if not all(isinstance(k, str) and k.strip() for k in v):
            raise ValueError("keys must be non-empty strings")
        if len(set(v)) not in (1, 2):
            raise ValueError("a hotkey combo needs 1 or 2 distinct keys")
        return v

    def to_display_string(self) -> str:
        from ..input.hotkey import format_combo_display_name

        return format_combo_display_name(self.keys)


class ProviderOverrides(BaseModel):
    """Per-provider values the user saved; any field left as None falls through."""

    model_config = ConfigDict(extra="ignore", validate_assignment=False)

    model: Optional[str] = None
    endpoint: Optional[str] = None
    region: Optional[str] = None
    language: Optional[str] = None
    timeout: Optional[float] = None
    temperature: Optional[float] = None
    top_p: Optional[float] = None
    max_tokens: Optional[int] = None
    thinking: Optional[bool] = None

    def to_dict(self) -> dict:
        return self.model_dump()

    @classmethod
    def from_dict(cls, data: dict) -> "ProviderOverrides":
        return cls.model_validate(data)


class Settings(BaseModel):
    model_config = ConfigDict(validate_assignment=False)

    input_device: Optional[str] = None
    hotkey: HotkeyConfig = Field(default_factory=HotkeyConfig)

    asr_provider: Optional[str] = None
    llm_provider: Optional[str] = None

    tencent_secret_id: Optional[str] = None
    tencent_secret_key: Optional[str] = None
    minimax_api_key: Optional[str] = None
    provider_settings: Dict[str, dict] = Field(default_factory=dict)

    enhancements: List[dict] = Field(default_factory=list)
    active_enhancement_id: Optional[str] = None

    @classmethod
    def load(cls) -> "Settings":
        """
        Read settings.json, keeping every valid field and resetting the rest.

        A missing or unreadable file yields defaults. Unknown keys from older
        versions are dropped.
        """
        data = _read_settings_file(settings_file())
        values = {}
        for name, raw in data.items():
            if name not in cls.model_fields:
                continue
            try:
                values[name] = getattr(cls.model_validate({name: raw}), name)
            except ValidationError:
                logger.warning(f"Invalid {name} {raw!r}, resetting to default")

        defaults = cls()
        merged = {name: getattr(defaults, name) for name in cls.model_fields}
        settings = cls.model_construct(**{**merged, **values})
        if not settings.enhancements:
            settings.enhancements = _get_default_enhancements()
        return settings

    def save(self) -> None:
        with open(settings_file(), "w", encoding="utf-8") as f:
            json.dump(self.model_dump(), f, indent=2, ensure_ascii=False)

    def reset_to_defaults(self) -> None:
        default = Settings()
        for key, value in default.model_dump().items():
            setattr(self, key, value)
        self.hotkey = HotkeyConfig()

    def get_active_enhancement(self) -> Optional["Enhancement"]:
        if not self.active_enhancement_id:
            return None

        from ..transcript_processor.prompts import Enhancement

        for enh_dict in self.enhancements:
            if enh_dict.get("id") == self.active_enhancement_id:
                return Enhancement.model_validate(enh_dict)

        return None

    def get_provider_settings(self, provider_id: str) -> ProviderOverrides:
        if provider_id in self.provider_settings:
            return ProviderOverrides.model_validate(self.provider_settings[provider_id])
        return ProviderOverrides()

    def set_provider_settings(
        self, provider_id: str, overrides: ProviderOverrides
    ) -> None:
        self.provider_settings[provider_id] = overrides.model_dump()


_settings_instance: Optional[Settings] = None


def get_settings() -> Settings:
    global _settings_instance
    if _settings_instance is None:
        _settings_instance = Settings.load()
    return _settings_instance
