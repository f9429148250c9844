import asyncio
import logging
import signal

from dotenv import load_dotenv

from core import build_responder
from core.settings import load_settings
from transports.discord_bot import run_discord_bot
from transports.web import WebTransport

log = logging.getLogger(__name__)


async def main():
    load_dotenv()
    settings = load_settings()
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s :: %(message)s",
    )

    if not settings.bot_token:
        raise SystemExit("Missing BOT_TOKEN in environment. Add a `.env` with BOT_TOKEN=your_token")
    if not settings.openai_api_key:
        log.info("OPENAI_API_KEY not set; replying with rule-based persona only")

    responder = build_responder(settings)
    web_transport = WebTransport(settings.port)

    stop_event = asyncio.Event()

    def _signal_handler(*_):
        stop_event.set()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, _signal_handler)
        except NotImplementedError:
            signal.signal(sig, lambda *_: stop_event.set())

    discord_task = asyncio.create_task(
        run_discord_bot(responder, settings.bot_token, settings.guild_id)
    )
    web_task = asyncio.create_task(web_transport.start())

    await wait_for_exit(stop_event, discord_task)

    await web_transport.stop()

    failed = discord_task.done() and not discord_task.cancelled() and discord_task.exception()
    if not discord_task.done():
        discord_task.cancel()
        try:
            await discord_task
        except asyncio.CancelledError:
            pass

    await web_task
    await responder.close()
    if failed:
        raise SystemExit(f"Discord connection ended: {failed}")


async def wait_for_exit(stop_event: asyncio.Event, task: asyncio.Task) -> None:
    """Block until a stop signal arrives or ``task`` finishes on its own."""

    waiter = asyncio.create_task(stop_event.wait())
    await asyncio.wait({waiter, task}, return_when=asyncio.FIRST_COMPLETED)
    if not waiter.done():
        waiter.cancel()
    if task.done() and not task.cancelled() and task.exception():
        log.error("Discord bot stopped: %s", task.exception())


def run():
    asyncio.run(main())


if __name__ == "__main__":
    run()
