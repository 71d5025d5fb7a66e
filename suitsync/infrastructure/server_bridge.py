# suitsync/infrastructure/server_bridge.py
import time
from datetime import datetime
from typing import Any, Optional

import httpx
import structlog

from suitsync import config

logger = structlog.get_logger(__name__)

SYNC_ENDPOINT = "/api/sync/client"
HEALTH_ENDPOINT = "/api/health"


def build_server_client(
    server_url: str,
    install_type: str = config.SUITSYNC_INSTALL_TYPE,
    instance_id: Optional[str] = config.SUITSYNC_INSTANCE_ID,
    timeout: int = config.SERVER_TIMEOUT_SECONDS,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> httpx.AsyncClient:
    return httpx.AsyncClient(
        base_url=server_url,
        timeout=timeout,
        transport=transport,
        headers={
            "Content-Type": "application/json",
            "X-Client-Type": install_type,
            "X-Instance-ID": instance_id or "unknown",
        },
    )


class ServerBridge:
    """
    Link from a client installation to the primary SuitSync server.

    Connectivity is cached and re-checked at most every `check_interval` seconds,
    so callers may see a flag up to that old. Relays return None (or False)
    straight away while the server is known to be down.
    """

    def __init__(
        self,
        http: Optional[httpx.AsyncClient],
        server_url: Optional[str] = config.SUITSYNC_SERVER_URL,
        install_type: str = config.SUITSYNC_INSTALL_TYPE,
        instance_id: Optional[str] = config.SUITSYNC_INSTANCE_ID,
        check_interval: float = config.SERVER_CHECK_INTERVAL_SECONDS,
    ):
        self.http = http
        self.server_url = server_url
        self.install_type = install_type
        self.instance_id = instance_id or "unknown"
        self.check_interval = check_interval
        self.is_connected = False
        self.last_connection_check: Optional[datetime] = None
        self._last_check_monotonic: Optional[float] = None

    def _mark_checked(self, connected: bool) -> None:
        self.is_connected = connected
        self.last_connection_check = datetime.utcnow()
        self._last_check_monotonic = time.monotonic()

    async def test_connection(self) -> bool:
        if self.http is None:
            return False
        try:
            r = await self.http.get(HEALTH_ENDPOINT)
            self._mark_checked(r.status_code == 200)
        except httpx.HTTPError as e:
            self._mark_checked(False)
            logger.error("server_connection_failed", server_url=self.server_url, error=str(e))
            return False

        if self.is_connected:
            logger.info("server_connected", server_url=self.server_url)
        else:
            logger.warning("server_unhealthy", server_url=self.server_url, status=r.status_code)
        return self.is_connected

    def _check_is_stale(self) -> bool:
        if self._last_check_monotonic is None:
            return True
        return time.monotonic() - self._last_check_monotonic > self.check_interval

    async def is_server_available(self) -> bool:
        if self.http is None:
            return False
        if self._check_is_stale():
            await self.test_connection()
        return self.is_connected

    async def fetch_from_server(self, endpoint: str, params: Optional[dict] = None) -> Optional[Any]:
        if self.http is None or not await self.is_server_available():
            logger.error("server_fetch_skipped_not_connected", endpoint=endpoint)
            return None
        try:
            r = await self.http.get(endpoint, params=params)
            r.raise_for_status()
            return r.json()
        except (httpx.HTTPError, ValueError) as e:
            self.is_connected = False
            logger.error("server_fetch_failed", endpoint=endpoint, error=str(e))
            return None

    async def post_to_server(self, endpoint: str, data: Any) -> Optional[Any]:
        if self.http is None or not await self.is_server_available():
            logger.error("server_post_skipped_not_connected", endpoint=endpoint)
            return None
        try:
            r = await self.http.post(endpoint, json=data)
            r.raise_for_status()
            return r.json()
        except (httpx.HTTPError, ValueError) as e:
            self.is_connected = False
            logger.error("server_post_failed", endpoint=endpoint, error=str(e))
            return None

    async def sync_data(self, resource: str, last_sync_timestamp: Optional[str] = None) -> Optional[dict]:
        """
        Ask the server for changes to `resource` since `last_sync_timestamp`.
        The server answers {success, data, lastSyncTimestamp, hasChanges}.
        """
        payload = {"resource": resource, "lastSyncTimestamp": last_sync_timestamp}
        result = await self.post_to_server(SYNC_ENDPOINT, payload)
        if result is None:
            logger.warning("client_sync_failed", resource=resource)
        return result

    async def send_data_to_server(self, endpoint: str, data: Any) -> bool:
        return await self.post_to_server(endpoint, data) is not None

    async def get_server_status(self) -> Optional[Any]:
        return await self.fetch_from_server(HEALTH_ENDPOINT)

    def get_client_info(self) -> dict:
        return {
            "type": self.install_type,
            "instanceId": self.instance_id,
            "serverUrl": self.server_url,
            "isConnected": self.is_connected,
            "lastConnectionCheck": self.last_connection_check.isoformat() if self.last_connection_check else None,
        }

    async def aclose(self) -> None:
        if self.http is not None:
            await self.http.aclose()
