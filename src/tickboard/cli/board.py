"""Handlers for 'tickboard board' and 'tickboard backlog' commands."""

import asyncio

from tickboard.cli._common import (
    build_bucket_summaries,
    error,
    format_bucket,
    make_gateway,
    output_json,
    require_project,
    settings,
)
from tickboard.engine import open_board, open_planner
from tickboard.errors import TickboardError


def board_summary(args) -> int:
    cfg = settings(args)
    project = require_project(cfg, args.json)

    async def _load():
        async with make_gateway(cfg) as gateway:
            return await open_board(gateway, project, args.sprint, args.all)

    try:
        rec = asyncio.run(_load())
    except TickboardError as e:
        error(str(e), args.json)
    if rec is None:
        error("no active sprint (use --sprint ID or --all)", args.json)

    buckets = build_bucket_summaries(rec.partition)
    if args.json:
        output_json({"project": project, "sprint": rec.scope.sprint_id, "columns": buckets})
    else:
        scope = f"sprint {rec.scope.sprint_id}" if rec.scope.sprint_id else "all tickets"
        print(f"{project}  ({scope})\n")
        print("\n\n".join(format_bucket(b) for b in buckets))
    return 0


def backlog_summary(args) -> int:
    cfg = settings(args)
    project = require_project(cfg, args.json)

    async def _load():
        async with make_gateway(cfg) as gateway:
            return await open_planner(gateway, project)

    try:
        rec = asyncio.run(_load())
    except TickboardError as e:
        error(str(e), args.json)

    buckets = build_bucket_summaries(rec.partition)
    for b in buckets:
        sprint = rec.scheme.sprint(b["id"])
        b["status"] = sprint.status.value if sprint else None
    if args.json:
        output_json(buckets)
    else:
        blocks = []
        for b in buckets:
            text = format_bucket(b)
            if b["status"]:
                head, _, rest = text.partition("\n")
                text = f"{head}  [{b['status']}]" + (f"\n{rest}" if rest else "")
            blocks.append(text)
        print("\n\n".join(blocks))
    return 0
