"""
Centralized application configuration.

Edit the variables below to configure development settings.
"""

import logging
import os

# =============================================================================
# DEVELOPMENT SETTINGS - Edit these for local development
# =============================================================================
LOG_LEVEL = "DEBUG"  # DEBUG, INFO, WARNING, ERROR, CRITICAL
LOG_TO_CONSOLE = True  # Set to True to output logs to terminal
# =============================================================================

# =============================================================================
# ENVIRONMENT
# =============================================================================
ENV_PREFIX = "VOXPASTE_"
# =============================================================================

# =============================================================================
# LOCAL MODEL RUNTIME GUARDS
# =============================================================================
KEEP_ALIVE_INTERVAL_SECONDS = 180.0
KEEP_ALIVE_MIN_IDLE_SECONDS = 180.0
MEMORY_PRESSURE_POLL_SECONDS = 5.0
MEMORY_PRESSURE_WARNING_PERCENT = 85.0
MEMORY_PRESSURE_CRITICAL_PERCENT = 95.0
# =============================================================================

# =============================================================================
# OPTIMIZATION
# =============================================================================
DEFAULT_LLM_TIMEOUT_SECONDS = 6.0
# =============================================================================


def get_log_level() -> int:
    """Get the logging level as an integer; VOXPASTE_LOG_LEVEL overrides LOG_LEVEL."""
    name = os.environ.get(env_name("LOG_LEVEL")) or LOG_LEVEL
    return getattr(logging, name.strip().upper(), logging.INFO)


def env_name(suffix: str) -> str:
    return f"{ENV_PREFIX}{suffix}"
