"""Search across the buffered output of every open session."""

from aissh.search.coordinator import BufferSurface, SearchCoordinator, TerminalSurface

__all__ = ["BufferSurface", "SearchCoordinator", "TerminalSurface"]
