"""
Toolbar badge state and the surface it is applied to.

The badge is set per tab where the surface supports it and
globally otherwise.  ``apply_scoped`` is the single place that
decides between the two.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Protocol

import pydantic

from cachestatus.classification import rules
from cachestatus.models.session import TabId, TabSession
from cachestatus.presentation.theme import ThemeState
from cachestatus.utils import errors, logger, serialization

log = logger.create_logger("Badge")

# ============================================================================
# Colours and Text
# ============================================================================


class BadgeColors(pydantic.BaseModel):
    """Background and foreground colour for a badge."""

    model_config = pydantic.ConfigDict(frozen=True)

    badge: str
    text: str


_GREEN = BadgeColors(badge="#22c55e", text="#fff")
_RED = BadgeColors(badge="#ef4444", text="#fff")
_YELLOW = BadgeColors(badge="#eab308", text="#000")
_GRAY = BadgeColors(badge="#6b7280", text="#fff")

STATUS_COLORS: dict[str, BadgeColors] = {
    "HIT": _GREEN,
    "MISS": _RED,
    "EXPIRED": _YELLOW,
    "STALE": _YELLOW,
    "REVALIDATED": _YELLOW,
    "REFRESH": _YELLOW,
    "BYPASS": _GRAY,
    "DYNAMIC": _GRAY,
    "ERROR": _RED,
    rules.NO_STATUS: _GRAY,
}

BADGE_TEXT: dict[str, str] = {
    "HIT": "HIT",
    "MISS": "MISS",
    "EXPIRED": "EXP",
    "STALE": "STL",
    "REVALIDATED": "REV",
    "BYPASS": "BYP",
    "DYNAMIC": "DYN",
    "REFRESH": "REF",
    "ERROR": "ERR",
}

# Shown when navigation finished without any response headers.
RELOAD_HINT_TEXT = "?"


def badge_text(status: str | None) -> str:
    """Shortened badge label for *status*; empty when there is none."""
    if not status:
        return ""
    return BADGE_TEXT.get(status, status[:3])


def icon_path(active: bool, is_dark: bool) -> str:
    """Toolbar icon for the given state and colour scheme."""
    state = "active" if active else "inactive"
    scheme = "dark" if is_dark else "light"
    return f"images/icon-{state}-{scheme}.png"


class BadgeState(serialization.CamelModel):
    """Everything a badge surface needs to draw the toolbar button."""

    model_config = pydantic.ConfigDict(frozen=True)

    text: str = ""
    background_color: str = _GRAY.badge
    text_color: str = _GRAY.text
    icon: str = icon_path(False, False)
    reload_suggested: bool = False


def badge_state_for(session: TabSession | None, *, is_dark: bool = False) -> BadgeState:
    """Compute the badge for a tab's current session.

    Absent sessions clear the badge.  Sessions flagged ``no_headers``
    show the reload hint instead of stale or empty data.
    """
    if session is None:
        return BadgeState(icon=icon_path(False, is_dark))
    if session.no_headers:
        return BadgeState(
            text=RELOAD_HINT_TEXT,
            icon=icon_path(False, is_dark),
            reload_suggested=True,
        )

    status = session.classification.status
    colors = STATUS_COLORS.get(status or rules.NO_STATUS, STATUS_COLORS[rules.NO_STATUS])
    return BadgeState(
        text=badge_text(status),
        background_color=colors.badge,
        text_color=colors.text,
        icon=icon_path(status is not None, is_dark),
    )


# ============================================================================
# Surfaces
# ============================================================================


class BadgeSurface(Protocol):
    """Where badge state is drawn.

    ``set_badge`` with a ``tab_id`` raises
    ``UnsupportedCapabilityError`` when per-tab badges are not
    available on the platform.
    """

    def set_badge(self, state: BadgeState, tab_id: TabId | None = None) -> None: ...


def apply_scoped(scoped: Callable[[], None], unscoped: Callable[[], None]) -> bool:
    """Attempt a per-tab side effect, falling back to the global one.

    Returns:
        True when the scoped effect was applied.
    """
    try:
        scoped()
    except errors.UnsupportedCapabilityError as exc:
        log.debug("Scoped call unsupported, using global", {"capability": exc.capability})
        unscoped()
        return False
    return True


class MemoryBadgeSurface:
    """Badge surface that keeps the latest state for the extension to mirror."""

    def __init__(self, per_tab: bool = True) -> None:
        self.per_tab = per_tab
        self.global_state = BadgeState()
        self._tab_states: dict[TabId, BadgeState] = {}

    def set_badge(self, state: BadgeState, tab_id: TabId | None = None) -> None:
        if tab_id is None:
            self.global_state = state
            return
        if not self.per_tab:
            raise errors.UnsupportedCapabilityError("per-tab badge")
        self._tab_states[tab_id] = state

    def state_for(self, tab_id: TabId | None = None) -> BadgeState:
        """Per-tab state when known, else the global one."""
        if tab_id is not None and tab_id in self._tab_states:
            return self._tab_states[tab_id]
        return self.global_state

    def forget(self, tab_id: TabId) -> None:
        self._tab_states.pop(tab_id, None)


class BadgePresenter:
    """Renders a tab's session onto a badge surface."""

    def __init__(self, surface: BadgeSurface, theme: ThemeState | None = None) -> None:
        self.surface = surface
        self.theme = theme or ThemeState()

    def render(self, tab_id: TabId, session: TabSession | None) -> BadgeState:
        state = badge_state_for(session, is_dark=self.theme.is_dark)
        apply_scoped(
            lambda: self.surface.set_badge(state, tab_id),
            lambda: self.surface.set_badge(state),
        )
        return state

    def forget(self, tab_id: TabId) -> None:
        """Release any per-tab state the surface keeps for a closed tab."""
        forget = getattr(self.surface, "forget", None)
        if forget is not None:
            forget(tab_id)
