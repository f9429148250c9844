import asyncio
import logging
from pathlib import Path

from aiohttp import web

log = logging.getLogger(__name__)

SITE_DIR = Path(__file__).resolve().parent / "site"
VIEWS_DIR = SITE_DIR / "views"
PUBLIC_DIR = SITE_DIR / "public"


def create_app(views_dir: Path = VIEWS_DIR, public_dir: Path = PUBLIC_DIR) -> web.Application:
    """Static keep-alive site: index page at ``/`` and assets under ``/public``."""

    index_path = views_dir / "index.html"

    async def index(request: web.Request) -> web.StreamResponse:
        if not index_path.exists():
            raise web.HTTPNotFound()
        return web.FileResponse(index_path)

    app = web.Application()
    app.router.add_get("/", index)
    if public_dir.is_dir():
        app.router.add_static("/public/", public_dir)
    return app


class WebTransport:
    def __init__(self, port: int, *, host: str = "0.0.0.0", app: web.Application = None):
        self.port = port
        self.host = host
        self.app = app or create_app()
        self._stop_event = asyncio.Event()

    async def start(self):
        runner = web.AppRunner(self.app)
        await runner.setup()
        site = web.TCPSite(runner, self.host, self.port)
        await site.start()
        log.info("Web server running on port %s", self.port)
        try:
            await self._stop_event.wait()
        except asyncio.CancelledError:
            pass
        finally:
            await runner.cleanup()

    async def stop(self):
        self._stop_event.set()
