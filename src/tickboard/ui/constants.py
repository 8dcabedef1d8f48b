"""Icons used across the UI."""

ICON_BOARD = "\U0001f4cb"
ICON_PLANNER = "\U0001f5d3"
ICON_SEARCH = "\U0001f50d"
ICON_CLOSE = "❌"
ICON_LOCK = "\U0001f512"

ICON_SYNC_IDLE = "✅"
ICON_SYNC_ACTIVE = "\U0001f504"
ICON_SYNC_ERROR = "⚠️"

ICON_SPRINT_PLANNED = "○"
ICON_SPRINT_ACTIVE = "▶"
ICON_SPRINT_COMPLETED = "✔"

ICON_TYPE = {
    "Task": "☑",
    "Bug": "\U0001f41e",
    "Story": "\U0001f4d6",
}

PRIORITY_CLASSES = {
    "Low": "priority-low",
    "Medium": "priority-medium",
    "High": "priority-high",
    "Critical": "priority-critical",
}
