"""Kanban board and sprint planner for a project-management service."""

__version__ = "0.1.0"
