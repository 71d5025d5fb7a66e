"""Tests for the client-installation link to the primary server."""
import json

import httpx
import pytest
import pytest_asyncio

from suitsync.infrastructure.server_bridge import ServerBridge, build_server_client


class FakeServer:
    def __init__(self, healthy: bool = True):
        self.healthy = healthy
        self.down = False
        self.requests = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.down:
            raise httpx.ConnectError("server unreachable", request=request)
        if request.url.path == "/api/health":
            if self.healthy:
                return httpx.Response(200, json={"status": "healthy"})
            return httpx.Response(503, json={"status": "degraded"})
        if request.url.path == "/api/sync/client":
            body = json.loads(request.content)
            return httpx.Response(
                200,
                json={"success": True, "data": [{"id": 1}], "lastSyncTimestamp": "2024-01-02T00:00:00Z", "hasChanges": True, "echo": body},
            )
        if request.url.path == "/api/customers":
            return httpx.Response(201, json={"id": 7})
        return httpx.Response(404, json={"error": "not found"})

    def paths(self):
        return [r.url.path for r in self.requests]


@pytest.fixture
def server():
    return FakeServer()


@pytest_asyncio.fixture
async def make_bridge(server):
    bridges = []

    def _make(check_interval: float = 30):
        http = build_server_client(
            "http://primary.test",
            install_type="client",
            instance_id="store-2",
            transport=httpx.MockTransport(server.handler),
        )
        bridge = ServerBridge(http, "http://primary.test", "client", "store-2", check_interval)
        bridges.append(bridge)
        return bridge

    yield _make
    for bridge in bridges:
        await bridge.aclose()


class TestConnectivity:
    async def test_healthy_server_is_connected(self, server, make_bridge):
        bridge = make_bridge()
        assert await bridge.test_connection() is True
        assert bridge.is_connected is True
        assert bridge.last_connection_check is not None
        request = server.requests[0]
        assert request.headers["X-Client-Type"] == "client"
        assert request.headers["X-Instance-ID"] == "store-2"

    async def test_unhealthy_status_is_disconnected(self, server, make_bridge):
        server.healthy = False
        bridge = make_bridge()
        assert await bridge.test_connection() is False
        assert bridge.is_connected is False

    async def test_unreachable_server_is_disconnected(self, server, make_bridge):
        server.down = True
        bridge = make_bridge()
        assert await bridge.test_connection() is False
        assert bridge.last_connection_check is not None

    async def test_flag_is_cached_within_interval(self, server, make_bridge):
        bridge = make_bridge(check_interval=30)
        assert await bridge.is_server_available() is True
        server.down = True
        # still inside the interval: no new health check
        assert await bridge.is_server_available() is True
        assert server.paths() == ["/api/health"]

    async def test_stale_flag_is_rechecked(self, server, make_bridge):
        bridge = make_bridge(check_interval=-1)
        assert await bridge.is_server_available() is True
        server.down = True
        assert await bridge.is_server_available() is False
        assert server.paths() == ["/api/health", "/api/health"]

    async def test_bridge_without_server_is_never_available(self):
        bridge = ServerBridge(None, None, "client")
        assert await bridge.is_server_available() is False
        assert await bridge.test_connection() is False
        assert await bridge.fetch_from_server("/api/health") is None
        assert await bridge.send_data_to_server("/api/customers", {}) is False


class TestRelays:
    async def test_sync_data_posts_resource_and_timestamp(self, server, make_bridge):
        bridge = make_bridge()
        result = await bridge.sync_data("customers", "2024-01-01T00:00:00Z")
        assert result["hasChanges"] is True
        assert result["echo"] == {"resource": "customers", "lastSyncTimestamp": "2024-01-01T00:00:00Z"}

    async def test_relays_return_none_while_server_down(self, server, make_bridge):
        server.down = True
        bridge = make_bridge()
        assert await bridge.sync_data("customers") is None
        assert await bridge.fetch_from_server("/api/customers") is None
        assert await bridge.send_data_to_server("/api/customers", {"name": "x"}) is False
        # only the health check was attempted
        assert server.paths() == ["/api/health"]

    async def test_failed_relay_marks_disconnected(self, server, make_bridge):
        bridge = make_bridge()
        assert await bridge.is_server_available() is True
        assert await bridge.fetch_from_server("/api/missing") is None
        assert bridge.is_connected is False

    async def test_send_data(self, server, make_bridge):
        bridge = make_bridge()
        assert await bridge.send_data_to_server("/api/customers", {"name": "x"}) is True

    async def test_server_status(self, make_bridge):
        bridge = make_bridge()
        assert await bridge.get_server_status() == {"status": "healthy"}

    async def test_client_info(self, make_bridge):
        bridge = make_bridge()
        info = bridge.get_client_info()
        assert info == {
            "type": "client",
            "instanceId": "store-2",
            "serverUrl": "http://primary.test",
            "isConnected": False,
            "lastConnectionCheck": None,
        }
        await bridge.test_connection()
        info = bridge.get_client_info()
        assert info["isConnected"] is True
        assert info["lastConnectionCheck"]
