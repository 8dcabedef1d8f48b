"""Shared helpers for CLI command handlers."""

import json
import sys

from tickboard.config import load_config
from tickboard.errors import ConfigError
from tickboard.gateway import Gateway
from tickboard.model.partition import Partition
from tickboard.model.ticket import TicketStatus


def settings(args) -> dict:
    """Merge config file, environment and command-line flags. Exit 1 on a bad config."""
    try:
        return load_config(
            getattr(args, "config", None),
            overrides={
                "url": getattr(args, "url", None),
                "token": getattr(args, "token", None),
                "project": getattr(args, "project", None),
            },
        )
    except ConfigError as e:
        error(str(e), getattr(args, "json", False))


def require_project(cfg: dict, json_mode: bool) -> str:
    """Return the configured project id. Exit 1 if there is none."""
    project = cfg.get("project")
    if not project:
        error("no project given (use --project or TICKBOARD_PROJECT)", json_mode)
    return project


def make_gateway(cfg: dict) -> Gateway:
    return Gateway(cfg["url"], token=cfg.get("token"), timeout=cfg["timeout"])


class NoticeLog:
    """Collects reconciler notices so a command can report them."""

    def __init__(self):
        self.errors: list[str] = []
        self.info: list[str] = []

    def __call__(self, message: str, *, severity: str = "information") -> None:
        (self.errors if severity == "error" else self.info).append(message)


def parse_status(text: str, json_mode: bool) -> TicketStatus:
    """Accept a status by wire value or name: "In Progress", "in-progress", "IN_PROGRESS"."""

    def norm(s: str) -> str:
        return "".join(ch for ch in s.lower() if ch.isalnum())

    wanted = norm(text)
    for status in TicketStatus:
        if wanted in (norm(status.value), norm(status.name)):
            return status
    names = ", ".join(s.value for s in TicketStatus)
    error(f"unknown status '{text}'. Expected one of: {names}", json_mode)


def output_json(data: dict | list) -> None:
    """Write JSON to stdout."""
    print(json.dumps(data, indent=2))


def output_result(data: dict, text: str, json_mode: bool) -> None:
    """Output mutation result as JSON or plain text."""
    if json_mode:
        output_json(data)
    else:
        print(text)


def error(message: str, json_mode: bool) -> None:
    """Print error to stderr and exit 1."""
    if json_mode:
        print(json.dumps({"error": message}), file=sys.stderr)
    else:
        print(f"error: {message}", file=sys.stderr)
    sys.exit(1)


def ticket_summary(ticket) -> dict:
    return {
        "id": ticket.id,
        "title": ticket.title,
        "status": ticket.status.value,
        "priority": ticket.priority.value,
        "sprint": ticket.sprint_id,
        "assignee": ticket.assignee.name if ticket.assignee else None,
    }


def build_bucket_summaries(partition: Partition) -> list[dict]:
    """Bucket summary dicts in display order."""
    scheme = partition.scheme
    return [
        {
            "id": key,
            "name": scheme.label(key),
            "tickets": [ticket_summary(t) for t in partition.tickets(key)],
        }
        for key in partition.keys
    ]


def format_bucket(b: dict) -> str:
    """Format a bucket summary dict as a header line plus one line per ticket."""
    count = len(b["tickets"])
    noun = "ticket" if count == 1 else "tickets"
    lines = [f"{b['name']:<20} {count} {noun}"]
    for t in b["tickets"]:
        who = f"  ({t['assignee']})" if t["assignee"] else ""
        lines.append(f"  {t['id'][-4:]}  {t['priority']:<8} {t['title']}{who}")
    return "\n".join(lines)
