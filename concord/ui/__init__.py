"""Rich-based terminal display components."""

from .display import DisplayManager, DisplayTheme

__all__ = [
    "DisplayManager",
    "DisplayTheme"
]
