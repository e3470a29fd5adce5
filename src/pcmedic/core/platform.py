"""Platform detection."""

from __future__ import annotations

import sys

WINDOWS = "windows"
MACOS = "macos"
LINUX = "linux"
UNKNOWN = "unknown"


def current_platform() -> str:
    if sys.platform.startswith("win"):
        return WINDOWS
    if sys.platform == "darwin":
        return MACOS
    if sys.platform.startswith("linux"):
        return LINUX
    return UNKNOWN


def platform_label(name: str) -> str:
    return {WINDOWS: "Windows", MACOS: "macOS", LINUX: "Linux"}.get(name, "Unknown")
