"""Handlers for 'tickboard web' command."""

import shlex
import shutil
import sys

from textual_serve.server import Server

from tickboard.cli._common import require_project, settings


def web(args) -> int:
    cfg = settings(args)
    project = require_project(cfg, args.json)

    tickboard = shutil.which("tickboard")
    if tickboard is None:
        print("error: tickboard not found on PATH", file=sys.stderr)
        return 1

    parts = [tickboard, project, "--url", cfg["url"]]
    if args.config:
        parts += ["--config", args.config]
    if args.token:
        parts += ["--token", args.token]
    command = shlex.join(parts)
    server = Server(
        command,
        host=args.host,
        port=args.port,
        title="tickboard",
    )

    print(f"serving {project} at http://{args.host}:{args.port}")
    server.serve()
    return 0
