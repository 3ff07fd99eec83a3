"""HTTP server for the health and metrics endpoints."""

import asyncio
import html
from collections.abc import Awaitable, Callable
from typing import Optional

from aiohttp import web

from nfs_supervisor.core.exceptions import StartError
from nfs_supervisor.core.logging import LoggerConfigurator

Handler = Callable[[web.Request], Awaitable[web.StreamResponse]]

_INDEX = """<html>
<head><title>{name}</title></head>
<body>
<h1>{name}</h1>
{links}
</body>
</html>
"""


class HttpServer:
    """aiohttp server whose endpoints can be registered after it starts.

    All requests go through one catch-all route that dispatches on the
    exact path, so handlers can be added while serving.
    """

    def __init__(self, host: str, port: int, name: str):
        """Initialize the server.  Nothing listens until ``run()``.

        Args:
            host: Interface to bind.
            port: Port to bind; 0 picks a free port.
            name: Title shown on the index page.
        """
        self.host = host
        self.port = port
        self.name = name
        self._handlers: dict[str, tuple[str, Handler]] = {}
        self.app = web.Application()
        self.app.add_routes([web.route("*", "/{tail:.*}", self._dispatch)])
        self.runner: Optional[web.AppRunner] = None
        self.site: Optional[web.TCPSite] = None
        self._closed: Optional[asyncio.Future] = None
        self.logger = LoggerConfigurator.configure_logger(
            __name__, dimensions={"component": "http"}
        )

    @property
    def endpoints(self) -> dict[str, str]:
        """Registered endpoints mapped to their human-readable names."""
        return {endpoint: name for endpoint, (name, _) in self._handlers.items()}

    @property
    def bound_port(self) -> Optional[int]:
        if self.runner is None or not self.runner.addresses:
            return None
        return self.runner.addresses[0][1]

    def register_handler(self, name: str, endpoint: str, handler: Handler) -> None:
        """Serve ``handler`` at ``endpoint``.  Only the first registration counts."""
        if endpoint in self._handlers:
            return
        self._handlers[endpoint] = (name, handler)

    async def index_handler(self, request: web.Request) -> web.Response:
        """List every registered endpoint."""
        links = "\n".join(
            f'<p><a href="{html.escape(endpoint)}">{html.escape(name)}</a></p>'
            for endpoint, name in sorted(self.endpoints.items())
        )
        body = _INDEX.format(name=html.escape(self.name), links=links)
        return web.Response(text=body, content_type="text/html")

    async def _dispatch(self, request: web.Request) -> web.StreamResponse:
        entry = self._handlers.get(request.path)
        if entry is None:
            raise web.HTTPNotFound()
        _, handler = entry
        return await handler(request)

    async def run(self) -> asyncio.Future:
        """Start listening.

        Returns:
            A future that resolves to None once ``close()`` has stopped the server.

        Raises:
            StartError: If the address cannot be bound.
        """
        self.runner = web.AppRunner(self.app)
        await self.runner.setup()
        self.site = web.TCPSite(self.runner, host=self.host, port=self.port)
        try:
            await self.site.start()
        except OSError as e:
            await self.runner.cleanup()
            raise StartError("http server", str(e)) from e

        self._closed = asyncio.get_running_loop().create_future()
        self.logger.info(f"Listening on http://{self.host}:{self.bound_port}/")
        return self._closed

    async def close(self) -> None:
        """Stop the server.  No-op if it is not running."""
        if self.site:
            await self.site.stop()
            self.site = None
        if self.runner:
            await self.runner.cleanup()
            self.runner = None
        if self._closed is not None and not self._closed.done():
            self._closed.set_result(None)
