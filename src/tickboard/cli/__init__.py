"""CLI argument parser and dispatch for tickboard."""

import argparse

from tickboard.cli.board import backlog_summary, board_summary
from tickboard.cli.sprint import sprint_complete, sprint_list, sprint_start
from tickboard.cli.ticket import ticket_move, ticket_plan
from tickboard.cli.watch import watch
from tickboard.cli.web import web


def common_parser() -> argparse.ArgumentParser:
    """Flags shared by every command, and by the TUI launcher."""
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--url", help="Service base URL (default: http://localhost:8080)")
    common.add_argument("--token", help="Bearer token passed to the service")
    common.add_argument("--project", help="Project ID")
    common.add_argument("--config", help="Path to config.yaml")
    common.add_argument("--json", action="store_true", help="Machine-readable JSON output")
    common.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    return common


def build_parser() -> argparse.ArgumentParser:
    """Build the full CLI argument parser."""
    common = common_parser()

    parser = argparse.ArgumentParser(
        prog="tickboard",
        description="Kanban board and sprint planner for a project-management service",
        parents=[common],
    )

    nouns = parser.add_subparsers(dest="noun")

    # --- board ---
    board_p = nouns.add_parser("board", help="Show the status board", parents=[common])
    scope = board_p.add_mutually_exclusive_group()
    scope.add_argument("--sprint", help="Sprint ID (default: the active sprint)")
    scope.add_argument("--all", action="store_true", help="Every ticket in the project")
    board_p.set_defaults(func=board_summary)

    # --- backlog ---
    backlog_p = nouns.add_parser("backlog", help="Show sprints and the backlog", parents=[common])
    backlog_p.set_defaults(func=backlog_summary)

    # --- ticket ---
    ticket_p = nouns.add_parser("ticket", help="Ticket operations", parents=[common])
    ticket_verbs = ticket_p.add_subparsers(dest="verb")

    ticket_move_p = ticket_verbs.add_parser("move", help="Change a ticket's status", parents=[common])
    ticket_move_p.add_argument("id", help="Ticket ID")
    ticket_move_p.add_argument("status", help='Target status, e.g. "In Progress" or done')
    ticket_move_p.set_defaults(func=ticket_move)

    ticket_plan_p = ticket_verbs.add_parser("plan", help="Assign a ticket to a sprint", parents=[common])
    ticket_plan_p.add_argument("id", help="Ticket ID")
    target = ticket_plan_p.add_mutually_exclusive_group(required=True)
    target.add_argument("--sprint", help="Target sprint ID")
    target.add_argument("--backlog", action="store_true", help="Move back to the backlog")
    ticket_plan_p.set_defaults(func=ticket_plan)

    # --- sprint ---
    sprint_p = nouns.add_parser("sprint", help="Sprint operations", parents=[common])
    sprint_verbs = sprint_p.add_subparsers(dest="verb")

    sprint_list_p = sprint_verbs.add_parser("list", help="List sprints", parents=[common])
    sprint_list_p.set_defaults(func=sprint_list)

    sprint_start_p = sprint_verbs.add_parser("start", help="Start a planned sprint", parents=[common])
    sprint_start_p.add_argument("id", help="Sprint ID")
    sprint_start_p.set_defaults(func=sprint_start)

    sprint_complete_p = sprint_verbs.add_parser("complete", help="Complete the active sprint", parents=[common])
    sprint_complete_p.add_argument("id", help="Sprint ID")
    sprint_complete_p.set_defaults(func=sprint_complete)

    # sprint with no verb = list
    sprint_p.set_defaults(func=sprint_list)

    # --- watch ---
    watch_p = nouns.add_parser("watch", help="Log live ticket events", parents=[common])
    watch_p.add_argument("--sprint", help="Only follow this sprint")
    watch_p.set_defaults(func=watch)

    # --- web ---
    web_p = nouns.add_parser("web", help="Serve the board in a browser", parents=[common])
    web_p.add_argument("--host", default="localhost", help="Bind address (default: localhost)")
    web_p.add_argument("--port", type=int, default=8617, help="Port (default: 8617)")
    web_p.set_defaults(func=web)

    return parser


def build_app_parser() -> argparse.ArgumentParser:
    """Parser for ``tickboard [PROJECT]``, which opens the TUI."""
    parser = argparse.ArgumentParser(prog="tickboard", parents=[common_parser()])
    parser.add_argument("project_id", nargs="?", help="Project ID (overrides --project)")
    parser.add_argument("--sprint", help="Sprint ID for the board (default: the active sprint)")
    parser.add_argument("--planner", action="store_true", help="Open the sprint planner first")
    return parser
