"""Handlers for 'tickboard ticket' commands."""

import asyncio

from tickboard.cli._common import (
    NoticeLog,
    error,
    make_gateway,
    output_result,
    parse_status,
    require_project,
    settings,
    ticket_summary,
)
from tickboard.engine import open_board, open_planner
from tickboard.errors import TickboardError
from tickboard.model.schemes import UNSCHEDULED


async def _move(rec, ticket_id: str, destination: str, notices: NoticeLog, json_mode: bool):
    """Drop a ticket at the end of destination and wait for the service."""
    where = rec.partition.locate(ticket_id)
    if where is None:
        error(f"Ticket '{ticket_id}' not found.", json_mode)
    source, _ = where
    index = len(rec.partition.bucket(destination)) if destination in rec.partition.keys else 0
    moved = rec.drop(ticket_id, source, destination, index)
    await rec.drain()
    await rec.close()
    if notices.errors:
        error(notices.errors[0], json_mode)
    return moved, source


def ticket_move(args) -> int:
    """Change a ticket's workflow status."""
    cfg = settings(args)
    project = require_project(cfg, args.json)
    status = parse_status(args.status, args.json)
    notices = NoticeLog()

    async def _run():
        async with make_gateway(cfg) as gateway:
            rec = await open_board(gateway, project, None, True, notify=notices)
            return await _move(rec, args.id, status.value, notices, args.json) + (rec,)

    try:
        moved, source, rec = asyncio.run(_run())
    except TickboardError as e:
        error(str(e), args.json)

    if source == status.value:
        text = f"Ticket {args.id} already in {status.value}"
    else:
        text = f"Moved ticket {args.id}: {source} -> {status.value}"
    ticket = rec.partition.ticket(args.id) or moved
    output_result({"ticket": ticket_summary(ticket), "from": source}, text, args.json)
    return 0


def ticket_plan(args) -> int:
    """Assign a ticket to a sprint, or send it back to the backlog."""
    cfg = settings(args)
    project = require_project(cfg, args.json)
    destination = UNSCHEDULED if args.backlog else args.sprint
    notices = NoticeLog()

    async def _run():
        async with make_gateway(cfg) as gateway:
            rec = await open_planner(gateway, project, notify=notices)
            if not rec.scheme.accepts(destination):
                error(f"Sprint '{destination}' does not accept tickets.", args.json)
            return await _move(rec, args.id, destination, notices, args.json) + (rec,)

    try:
        moved, source, rec = asyncio.run(_run())
    except TickboardError as e:
        error(str(e), args.json)

    label = rec.scheme.label(destination)
    text = f"Planned ticket {args.id} into {label}"
    ticket = rec.partition.ticket(args.id) or moved
    output_result({"ticket": ticket_summary(ticket), "from": source}, text, args.json)
    return 0
