"""
Centralized configuration loader.

Reads the ENVIRONMENT env-var and merges the correct environment module
(config_prod or config_local) into a single settings namespace.

Usage:
    from configs.config import get_config
    cfg = get_config()
    print(cfg.OUTPUT_ROOT)
"""

import os
import importlib
import logging
import tempfile
from types import SimpleNamespace

logger = logging.getLogger(__name__)

# ── Environment detection ────────────────────────────────────────────────
ENVIRONMENT = os.getenv("ENVIRONMENT", "production")

# ── Shared constants (environment-independent) ───────────────────────────

# Server
HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", "3001"))

# File storage
_TMP = tempfile.gettempdir()
UPLOAD_DIR = os.getenv("UPLOAD_DIR", os.path.join(_TMP, "transcribe-uploads"))
OUTPUT_ROOT = os.getenv("OUTPUT_ROOT", _TMP)
MAX_UPLOAD_SIZE = 500 * 1024 * 1024  # 500 MB

ALLOWED_EXTENSIONS = frozenset({
    ".mp4", ".mkv", ".avi", ".mov", ".webm", ".flv", ".wmv", ".m4v",
    ".mp3", ".wav", ".aac", ".ogg", ".oga", ".opus", ".flac", ".m4a", ".wma",
})

CORS_METHODS = ["GET", "POST", "DELETE", "OPTIONS"]
CORS_HEADERS = [
    "Accept",
    "Accept-Language",
    "Content-Type",
    "Origin",
    "X-Requested-With",
    "X-Request-ID",
]

# External transcriber
TRANSCRIBER_COMMAND = os.getenv("TRANSCRIBER_COMMAND", "transcribe-anything").split()
TRANSCRIBER_PACKAGE = "transcribe-anything"
TRANSCRIBER_AUTO_INSTALL = os.getenv("TRANSCRIBER_AUTO_INSTALL", "1") == "1"
PREFLIGHT_ENABLED = os.getenv("PREFLIGHT_ENABLED", "1") == "1"

# Simulated progress
PROGRESS_INTERVAL_SECONDS = 1.0
PROGRESS_MAX_STEP = 10.0
PROGRESS_CAP = 90

# Push channel
EVENT_REPLAY_LIMIT = 64

# Rate limits
RATE_LIMIT_SUBMIT = "30/minute"
RATE_LIMIT_DEFAULT = "120/minute"

# Logging
LOG_DIR = os.getenv("LOG_DIR", "logs")
LOG_FILE_APP = "app.log"
LOG_FILE_ERRORS = "errors.log"
LOG_FILE_TRANSCRIBER = "transcriber.log"  # raw tool output, per job
LOG_LEVEL_CONSOLE = os.getenv("LOG_LEVEL_CONSOLE", "INFO")
LOG_MAX_BYTES = 5 * 1024 * 1024  # 5 MB
LOG_BACKUP_COUNT = 5


# ── Config loader ────────────────────────────────────────────────────────

_config_cache = None


def get_config() -> SimpleNamespace:
    """
    Return a merged configuration namespace.

    Environment-specific values from config_local or config_prod
    override the shared defaults defined above.
    """
    global _config_cache
    if _config_cache is not None:
        return _config_cache

    # Start with all module-level constants
    base = {
        key: value
        for key, value in globals().items()
        if key.isupper() and not key.startswith("_")
    }

    # Overlay environment-specific settings
    env_module_name = (
        "configs.config_local" if ENVIRONMENT == "development"
        else "configs.config_prod"
    )
    try:
        env_module = importlib.import_module(env_module_name)
        for key in dir(env_module):
            if key.isupper():
                base[key] = getattr(env_module, key)
        logger.info("Loaded configuration from %s", env_module_name)
    except ImportError:
        logger.warning(
            "Environment config '%s' not found; using shared defaults.",
            env_module_name,
        )

    _config_cache = SimpleNamespace(**base)
    return _config_cache
