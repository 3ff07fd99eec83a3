"""Unit tests for the HTTP server and its endpoint handlers."""

import asyncio

import aiohttp
import pytest

from nfs_supervisor.adapters.metrics_renderer.fake import FakeMetricsRenderer
from nfs_supervisor.api.endpoints import (
    HEALTH_ENDPOINT,
    METRICS_ENDPOINT,
    health_handler,
    metrics_handler,
)
from nfs_supervisor.api.server import HttpServer
from nfs_supervisor.core.exceptions import StartError
from nfs_supervisor.core.health import HealthService


class FakeMetrics:
    """Spy for the object behind the metrics endpoint."""

    def __init__(self, renderer=None) -> None:
        self.renderer = renderer or FakeMetricsRenderer()
        self.refresh_calls = 0

    async def refresh(self) -> None:
        self.refresh_calls += 1


class _BrokenRenderer(FakeMetricsRenderer):
    def render(self, accept: str = ""):
        raise ValueError("duplicate timeseries")


async def _alive() -> bool:
    return True


async def _silent() -> bool:
    await asyncio.sleep(10)
    return True


async def _get(server: HttpServer, path: str, headers=None) -> tuple[int, str, str]:
    url = f"http://127.0.0.1:{server.bound_port}{path}"
    async with aiohttp.ClientSession() as session:
        async with session.get(url, headers=headers) as resp:
            return resp.status, await resp.text(), resp.headers.get("Content-Type", "")


@pytest.fixture
def server():
    return HttpServer("127.0.0.1", 0, "StorageOS NFS")


# ---------------------------------------------------------------------------
# HttpServer
# ---------------------------------------------------------------------------


class TestHttpServer:
    @pytest.mark.asyncio
    async def test_index_lists_registered_endpoints(self, server):
        server.register_handler("Index", "/", server.index_handler)
        server.register_handler("Health", HEALTH_ENDPOINT, health_handler(HealthService(_alive)))
        await server.run()
        try:
            status, body, content_type = await _get(server, "/")
        finally:
            await server.close()

        assert status == 200
        assert content_type.startswith("text/html")
        assert "<title>StorageOS NFS</title>" in body
        assert '<a href="/healthz">Health</a>' in body

    @pytest.mark.asyncio
    async def test_handlers_registered_after_start_are_served(self, server):
        await server.run()
        try:
            status, _, _ = await _get(server, HEALTH_ENDPOINT)
            assert status == 404

            server.register_handler("Health", HEALTH_ENDPOINT, health_handler(HealthService(_alive)))
            status, body, _ = await _get(server, HEALTH_ENDPOINT)
        finally:
            await server.close()

        assert status == 200
        assert body == "ok"

    def test_first_registration_wins(self, server):
        first = health_handler(HealthService(_alive))
        server.register_handler("Health", HEALTH_ENDPOINT, first)
        server.register_handler("Other", HEALTH_ENDPOINT, server.index_handler)

        assert server.endpoints == {HEALTH_ENDPOINT: "Health"}

    @pytest.mark.asyncio
    async def test_unknown_path_is_not_found(self, server):
        server.register_handler("Index", "/", server.index_handler)
        await server.run()
        try:
            status, _, _ = await _get(server, "/nope")
        finally:
            await server.close()

        assert status == 404

    @pytest.mark.asyncio
    async def test_close_resolves_closed_future(self, server):
        closed = await server.run()
        assert server.bound_port

        await server.close()

        assert closed.done()
        assert closed.result() is None
        assert server.bound_port is None

    @pytest.mark.asyncio
    async def test_address_in_use_is_start_error(self, server):
        await server.run()
        try:
            other = HttpServer("127.0.0.1", server.bound_port, "other")
            with pytest.raises(StartError, match="http server"):
                await other.run()
        finally:
            await server.close()

    @pytest.mark.asyncio
    async def test_close_before_run_is_noop(self, server):
        await server.close()


# ---------------------------------------------------------------------------
# health endpoint
# ---------------------------------------------------------------------------


class TestHealthEndpoint:
    async def _serve(self, server, health):
        server.register_handler("Health", HEALTH_ENDPOINT, health_handler(health))
        await server.run()

    @pytest.mark.asyncio
    async def test_ok_while_heartbeating(self, server):
        await self._serve(server, HealthService(_alive))
        try:
            status, body, _ = await _get(server, HEALTH_ENDPOINT)
        finally:
            await server.close()

        assert (status, body) == (200, "ok")

    @pytest.mark.asyncio
    async def test_unavailable_without_heartbeat(self, server):
        await self._serve(server, HealthService(_silent, timeout=0.1))
        try:
            status, body, _ = await _get(server, HEALTH_ENDPOINT)
        finally:
            await server.close()

        assert status == 503
        assert body == "nfs server not ready"

    @pytest.mark.asyncio
    async def test_unavailable_while_shutting_down(self, server):
        health = HealthService(_alive)
        health.shutting_down = True
        await self._serve(server, health)
        try:
            status, _, _ = await _get(server, HEALTH_ENDPOINT)
        finally:
            await server.close()

        assert status == 503


# ---------------------------------------------------------------------------
# metrics endpoint
# ---------------------------------------------------------------------------


class TestMetricsEndpoint:
    @pytest.mark.asyncio
    async def test_refreshes_then_renders(self, server):
        metrics = FakeMetrics()
        server.register_handler("Metrics", METRICS_ENDPOINT, metrics_handler(metrics))
        await server.run()
        try:
            status, body, content_type = await _get(server, METRICS_ENDPOINT)
        finally:
            await server.close()

        assert status == 200
        assert body == "# fake metrics\n"
        assert content_type.startswith("text/plain")
        assert metrics.refresh_calls == 1
        assert len(metrics.renderer.accepts) == 1

    @pytest.mark.asyncio
    async def test_accept_header_reaches_the_renderer(self, server):
        metrics = FakeMetrics()
        server.register_handler("Metrics", METRICS_ENDPOINT, metrics_handler(metrics))
        await server.run()
        accept = "application/openmetrics-text; version=1.0.0"
        try:
            status, _, _ = await _get(server, METRICS_ENDPOINT, headers={"Accept": accept})
        finally:
            await server.close()

        assert status == 200
        assert metrics.renderer.accepts == [accept]

    @pytest.mark.asyncio
    async def test_render_failure_is_server_error(self, server):
        server.register_handler(
            "Metrics", METRICS_ENDPOINT, metrics_handler(FakeMetrics(_BrokenRenderer()))
        )
        await server.run()
        try:
            status, _, _ = await _get(server, METRICS_ENDPOINT)
        finally:
            await server.close()

        assert status == 500
