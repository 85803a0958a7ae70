"""
Light/dark colour scheme state.

Content scripts report the page's ``prefers-color-scheme`` through
``colorScheme`` messages.  At startup the server also asks the OS
once; that lookup is best-effort and any failure keeps the light
default.
"""

from __future__ import annotations

import asyncio
import sys
from collections.abc import Awaitable, Callable

from cachestatus.utils import errors, logger

log = logger.create_logger("Theme")

AppearanceProbe = Callable[[], Awaitable[bool]]

_PROBE_TIMEOUT_SECONDS = 2.0


async def system_appearance_probe() -> bool:
    """Ask macOS whether the dark appearance is active.

    Raises:
        RuntimeError: On platforms without an appearance setting.
        OSError: When the ``defaults`` tool cannot be run.
    """
    if sys.platform != "darwin":
        raise RuntimeError(f"No appearance probe for platform {sys.platform}")
    proc = await asyncio.create_subprocess_exec(
        "defaults", "read", "-g", "AppleInterfaceStyle",
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.DEVNULL,
    )
    stdout, _ = await proc.communicate()
    # The key is absent (non-zero exit) in light mode.
    return proc.returncode == 0 and stdout.decode().strip().lower() == "dark"


ThemeListener = Callable[[], None]


class ThemeState:
    """Current colour scheme used for icon selection.

    Listeners registered with ``on_change`` run after every actual
    change, whether reported by a content script or by the OS lookup.
    """

    def __init__(self, is_dark: bool = False) -> None:
        self.is_dark = is_dark
        self._listeners: list[ThemeListener] = []

    def on_change(self, listener: ThemeListener) -> None:
        self._listeners.append(listener)

    def set_dark(self, is_dark: bool) -> bool:
        """Record a reported scheme; returns True when it changed."""
        changed = self.is_dark != is_dark
        self.is_dark = is_dark
        if changed:
            log.debug("Colour scheme changed", {"isDark": is_dark})
            for listener in self._listeners:
                listener()
        return changed

    async def refresh(self, probe: AppearanceProbe = system_appearance_probe) -> bool:
        """Query *probe* once, keeping the current value on any failure."""
        try:
            is_dark = await asyncio.wait_for(probe(), timeout=_PROBE_TIMEOUT_SECONDS)
        except Exception as exc:
            log.debug("Appearance probe failed, keeping default", {
                "error": errors.get_error_message(exc),
            })
        else:
            self.set_dark(is_dark)
        return self.is_dark
