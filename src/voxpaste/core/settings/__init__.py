from .providers import (
    ProviderConfiguration,
    resolve_provider_configuration,
    resolve_provider_key,
)
from .settings import (
    HotkeyConfig,
    ProviderOverrides,
    Settings,
    get_config_dir,
    get_data_dir,
    get_settings,
)

__all__ = [
    "HotkeyConfig",
    "ProviderConfiguration",
    "ProviderOverrides",
    "Settings",
    "get_config_dir",
    "get_data_dir",
    "get_settings",
    "resolve_provider_configuration",
    "resolve_provider_key",
]
