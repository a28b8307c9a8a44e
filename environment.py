import functools
import logging
import os
import sys

logger = logging.getLogger(__name__)

NATIVE = "native"
WEB = "web"

# interpreters hosted inside a browser have no persistent SQLite file
_WEB_PLATFORMS = {"emscripten", "wasi"}


@functools.lru_cache(maxsize=None)
def detect_platform() -> str:
    """Return ``"native"`` or ``"web"`` for the running interpreter.

    The ``LIFTLOG_PLATFORM`` environment variable overrides detection.
    The result is cached for the lifetime of the process.
    """
    override = os.environ.get("LIFTLOG_PLATFORM", "").strip().lower()
    if override in (NATIVE, WEB):
        platform = override
    elif sys.platform in _WEB_PLATFORMS:
        platform = WEB
    else:
        platform = NATIVE
    logger.debug("Detected %s platform", platform)
    return platform


def is_native_backend() -> bool:
    return detect_platform() == NATIVE


def resolve_platform(configured: str = "auto") -> str:
    """Return the platform pinned by configuration, or the detected one."""
    if configured in (NATIVE, WEB):
        return configured
    return detect_platform()
