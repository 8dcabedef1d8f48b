"""Handlers for 'tickboard sprint' commands."""

import asyncio

from tickboard.cli._common import (
    NoticeLog,
    error,
    make_gateway,
    output_json,
    output_result,
    require_project,
    settings,
)
from tickboard.engine import open_planner
from tickboard.errors import TickboardError


def _sprint_dict(sprint, tickets: int) -> dict:
    return {
        "id": sprint.id,
        "name": sprint.name,
        "status": sprint.status.value,
        "start": sprint.start_date.isoformat() if sprint.start_date else None,
        "end": sprint.end_date.isoformat() if sprint.end_date else None,
        "goal": sprint.goal,
        "tickets": tickets,
    }


def sprint_list(args) -> int:
    cfg = settings(args)
    project = require_project(cfg, args.json)

    async def _load():
        async with make_gateway(cfg) as gateway:
            return await open_planner(gateway, project)

    try:
        rec = asyncio.run(_load())
    except TickboardError as e:
        error(str(e), args.json)

    items = [_sprint_dict(s, len(rec.partition.bucket(s.id))) for s in rec.sprints]
    if args.json:
        output_json(items)
    else:
        for s in items:
            dates = f"{s['start']} .. {s['end']}" if s["start"] else ""
            goal = s["goal"] or "No goal set"
            print(f"{s['id']}  {s['name']:<16} {s['status']:<10} {s['tickets']:>3} tickets  {dates}  {goal}")
    return 0


def _advance(args, verb: str) -> int:
    cfg = settings(args)
    project = require_project(cfg, args.json)
    notices = NoticeLog()

    async def _run():
        async with make_gateway(cfg) as gateway:
            rec = await open_planner(gateway, project, notify=notices)
            action = rec.start_sprint if verb == "start" else rec.complete_sprint
            ok = await action(args.id)
            return ok, rec

    try:
        ok, rec = asyncio.run(_run())
    except TickboardError as e:
        error(str(e), args.json)
    if not ok:
        error(notices.errors[0] if notices.errors else f"could not {verb} sprint", args.json)

    sprint = rec.scheme.sprint(args.id)
    data = _sprint_dict(sprint, len(rec.partition.bucket(args.id))) if sprint else {"id": args.id}
    output_result(data, notices.info[0] if notices.info else "ok", args.json)
    return 0


def sprint_start(args) -> int:
    return _advance(args, "start")


def sprint_complete(args) -> int:
    return _advance(args, "complete")
