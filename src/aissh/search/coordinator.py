"""
Cross-session search.

Search starts in the focused session. A miss on an explicit search (Enter,
next/prev) moves on to the other open sessions in the requested direction,
wrapping around once, and focuses the first one that matches. Incremental
searches (the user is still typing) never leave the focused session.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, Literal, Protocol, Sequence

logger = logging.getLogger(__name__)

Direction = Literal["next", "prev"]

# Delay before handing input focus to a newly selected session
FOCUS_HANDOFF_DELAY = 0.05


class TerminalSurface(Protocol):
    """What the coordinator needs from a session's terminal view."""

    def search(self, text: str, direction: Direction, incremental: bool = False) -> bool:
        ...

    def focus(self) -> None:
        ...


class SearchCoordinator:
    """Runs searches across every open session's terminal surface."""

    def __init__(
        self,
        surfaces: dict[str, TerminalSurface] | None = None,
        on_focus_change: Callable[[str], None] | None = None,
        focus_delay: float = FOCUS_HANDOFF_DELAY,
    ) -> None:
        self.surfaces: dict[str, TerminalSurface] = surfaces if surfaces is not None else {}
        self.open_sessions: list[str] = list(self.surfaces)
        self.active_session_id: str | None = self.open_sessions[0] if self.open_sessions else None
        self.has_matches = True
        self._on_focus_change = on_focus_change
        self._focus_delay = focus_delay
        self._pending_focus: asyncio.TimerHandle | None = None

    # ─── Session Bookkeeping ─────────────────────────────────────

    def add(self, session_id: str, surface: TerminalSurface) -> None:
        self.surfaces[session_id] = surface
        if session_id not in self.open_sessions:
            self.open_sessions.append(session_id)
        if self.active_session_id is None:
            self.active_session_id = session_id

    def remove(self, session_id: str) -> None:
        self.surfaces.pop(session_id, None)
        if session_id in self.open_sessions:
            self.open_sessions.remove(session_id)
        if self.active_session_id == session_id:
            self.active_session_id = self.open_sessions[0] if self.open_sessions else None

    def set_active(self, session_id: str) -> None:
        self.active_session_id = session_id
        if self._on_focus_change:
            self._on_focus_change(session_id)

    # ─── Search ──────────────────────────────────────────────────

    def search(self, text: str, direction: Direction = "next", incremental: bool = False) -> bool:
        """Search for text. Returns whether a match was found anywhere."""
        if not text or not self.open_sessions:
            # Nothing to look for: the box is not in an error state
            self.has_matches = True
            return False

        active = self.active_session_id
        surface = self.surfaces.get(active) if active else None
        if surface is not None:
            found = surface.search(text, direction, incremental=incremental)
            if found or incremental:
                self.has_matches = found
                return found

        found_in = self._cycle(text, direction, self._candidates(direction))
        self.has_matches = found_in is not None
        return self.has_matches

    def _candidates(self, direction: Direction) -> Sequence[str]:
        """The other open sessions, adjacent first, wrapping once."""
        sessions = self.open_sessions
        if self.active_session_id not in sessions:
            # Nothing focused: every session is a candidate
            return list(sessions) if direction == "next" else list(reversed(sessions))

        count = len(sessions)
        current = sessions.index(self.active_session_id)
        step = 1 if direction == "next" else -1
        return [sessions[(current + step * i) % count] for i in range(1, count)]

    def _cycle(self, text: str, direction: Direction, candidates: Sequence[str]) -> str | None:
        for session_id in candidates:
            surface = self.surfaces.get(session_id)
            if surface is None:
                continue
            if surface.search(text, direction, incremental=False):
                logger.debug("Search match moved focus to %s", session_id)
                self.set_active(session_id)
                self._schedule_focus(surface)
                return session_id
        return None

    def _schedule_focus(self, surface: TerminalSurface) -> None:
        if self._pending_focus is not None:
            self._pending_focus.cancel()
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # No event loop driving a UI: nothing to let settle
            surface.focus()
            return
        self._pending_focus = loop.call_later(self._focus_delay, surface.focus)


class BufferSurface:
    """
    A TerminalSurface over a session's buffered output lines.

    Keeps a match cursor like a terminal search box: incremental searches
    re-check from the current match (so a growing query keeps its place),
    explicit searches move past it. Matching is case-insensitive and wraps
    around the buffer, so a search only misses when the text is absent; a
    miss clears the cursor.
    """

    def __init__(self, lines: Callable[[], Sequence[str]], on_focus: Callable[[], None] | None = None):
        self._lines = lines
        self._on_focus = on_focus
        self.match: tuple[int, int] | None = None  # (line, column)

    def search(self, text: str, direction: Direction = "next", incremental: bool = False) -> bool:
        lines = self._lines()
        needle = text.lower()
        scan = self._forward if direction == "next" else self._backward
        found = scan(lines, needle, self.match, incremental)
        if found is None and self.match is not None:
            # Wrap around to the other end of the buffer
            found = scan(lines, needle, None, incremental)
        self.match = found
        return found is not None

    @staticmethod
    def _forward(
        lines: Sequence[str], needle: str, match: tuple[int, int] | None, incremental: bool
    ) -> tuple[int, int] | None:
        if match is None:
            row, col = 0, 0
        else:
            row, col = match
            col += 0 if incremental else 1
        while row < len(lines):
            idx = lines[row].lower().find(needle, col)
            if idx >= 0:
                return row, idx
            row, col = row + 1, 0
        return None

    @staticmethod
    def _backward(
        lines: Sequence[str], needle: str, match: tuple[int, int] | None, incremental: bool
    ) -> tuple[int, int] | None:
        if match is None:
            row, end = len(lines) - 1, None
        else:
            row, col = match
            end = col + len(needle) if incremental else col + len(needle) - 1
        while row >= 0:
            line = lines[row].lower()
            idx = line.rfind(needle, 0, end if end is not None else len(line))
            if idx >= 0:
                return row, idx
            row, end = row - 1, None
        return None

    def focus(self) -> None:
        if self._on_focus:
            self._on_focus()
