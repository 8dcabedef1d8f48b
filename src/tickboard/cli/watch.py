"""Handler for 'tickboard watch' command."""

import asyncio
import logging
import signal
import sys

from tickboard.channel import EventChannel
from tickboard.cli._common import error, make_gateway, require_project, settings
from tickboard.engine import open_board
from tickboard.errors import TickboardError
from tickboard.events import RemoteEvent, TicketCreated

logger = logging.getLogger(__name__)


def describe(event: RemoteEvent) -> str:
    kind = "created" if isinstance(event, TicketCreated) else "updated"
    t = event.ticket
    return f"{kind} {t.id}  [{t.status.value}]  {t.title}"


async def watch_board(rec, channel: EventChannel, interval: int, stop: asyncio.Event) -> None:
    """Run the reconcile loop and the channel until stop is set.

    Refreshes every interval seconds so missed events converge.
    """
    loop_task = asyncio.create_task(rec.run())
    await channel.connect()
    try:
        while not stop.is_set():
            try:
                await asyncio.wait_for(stop.wait(), timeout=interval or None)
            except asyncio.TimeoutError:
                rec.request_refresh("periodic")
    finally:
        await channel.disconnect()
        loop_task.cancel()
        await asyncio.gather(loop_task, return_exceptions=True)
        await rec.close()


def watch(args) -> int:
    """Follow live ticket events for a project and log them."""
    logging.basicConfig(
        format="%(asctime)s %(levelname)s %(message)s",
        stream=sys.stderr,
        level=logging.DEBUG if args.verbose else logging.INFO,
    )
    cfg = settings(args)
    project = require_project(cfg, args.json)

    async def _run():
        stop = asyncio.Event()
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, stop.set)

        async with make_gateway(cfg) as gateway:
            rec = await open_board(
                gateway,
                project,
                args.sprint,
                args.sprint is None,
                queue_size=cfg["queue_size"],
                reject_stale_events=cfg["reject_stale_events"],
            )

            async def sink(event: RemoteEvent) -> None:
                logger.info("%s", describe(event))
                await rec.post(event)

            channel = EventChannel(cfg["url"], sink, project_id=project, user_id=cfg.get("user"), token=cfg.get("token"))
            logger.info("watching %s (%d tickets)", project, len(rec.partition))
            await watch_board(rec, channel, cfg["refresh_interval"], stop)

    try:
        asyncio.run(_run())
    except TickboardError as e:
        error(str(e), args.json)

    logger.info("stopped")
    return 0
