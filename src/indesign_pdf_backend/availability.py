"""
InDesign installation lookup.

``resolve_indesign_path`` is shared by the launch strategies and by
``AvailabilityProbe``. The probe only checks that something exists at the
resolved path; it says nothing about licensing, executability or whether a
later conversion will succeed.
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Dict, Optional

from .configuration import ServiceConfig

logger = logging.getLogger(__name__)

MACOS = "darwin"
WINDOWS = "win32"

DEFAULT_INDESIGN_PATHS: Dict[str, str] = {
    MACOS: "/Applications/Adobe InDesign 2024/Adobe InDesign 2024.app/Contents/MacOS/Adobe InDesign 2024",
    WINDOWS: "C:\\Program Files\\Adobe\\Adobe InDesign 2024\\InDesign.exe",
}


def is_supported_platform(platform: str) -> bool:
    return platform in DEFAULT_INDESIGN_PATHS


def default_indesign_path(platform: str) -> Optional[str]:
    """Hardcoded install location for ``platform``, or None when InDesign does not run there."""
    return DEFAULT_INDESIGN_PATHS.get(platform)


def resolve_indesign_path(config: ServiceConfig, platform: str = sys.platform) -> Optional[Path]:
    """
    Binary path to use: the configured override, else the platform default.

    Returns:
        The path, or None on a platform without a default and no override
    """
    if config.indesign_app_path:
        return Path(config.indesign_app_path)
    default = default_indesign_path(platform)
    return Path(default) if default else None


class AvailabilityProbe:
    """Existence check of the InDesign binary used for startup and pre-flight diagnostics."""

    def __init__(self, config: ServiceConfig, platform: str = sys.platform) -> None:
        self._config = config
        self._platform = platform

    @property
    def platform(self) -> str:
        return self._platform

    def resolved_path(self) -> Optional[Path]:
        if not is_supported_platform(self._platform):
            return None
        return resolve_indesign_path(self._config, self._platform)

    def is_available(self) -> bool:
        try:
            path = self.resolved_path()
            if path is None:
                return False
            return path.exists()
        except (OSError, ValueError) as exc:
            logger.debug(f"InDesign availability check failed: {exc}")
            return False
