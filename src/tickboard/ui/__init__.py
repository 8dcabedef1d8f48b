"""Textual UI for tickboard."""

from tickboard.ui.app import TickboardApp
from tickboard.ui.board import BoardScreen, PlannerScreen

__all__ = [
    "BoardScreen",
    "PlannerScreen",
    "TickboardApp",
]
