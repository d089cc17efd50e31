"""Websocket transport to the mining node.

One ``ConnectionManager`` owns at most one live ``Connection``. Inbound text
frames are handed verbatim to a single ``on_message`` callable; parsing is
the caller's business.
"""

from __future__ import annotations

import asyncio
import logging
import random
from dataclasses import dataclass
from typing import Any, Awaitable, Callable
from urllib.parse import urlsplit, urlunsplit

import aiohttp

from dash_core.errors import ConnectionClosed, TransportUnavailable

logger = logging.getLogger(__name__)

DISCONNECTED = "disconnected"
CONNECTING = "connecting"
CONNECTED = "connected"
UNAVAILABLE = "unavailable"
FAILED = "failed"

MessageHandler = Callable[[str], None]

SCHEME_MAP = {"http": "ws", "https": "wss", "ws": "ws", "wss": "wss"}


def transport_scheme(secure: bool) -> str:
    return "wss" if secure else "ws"


def endpoint_url(host: str, secure: bool = False, path: str = "/") -> str:
    if not path.startswith("/"):
        path = "/" + path
    return f"{transport_scheme(secure)}://{host}{path}"


def resolve_url(url: str | None = None, host: str | None = None, secure: bool = False) -> str | None:
    """Pick the websocket endpoint from an explicit URL or a host.

    A page URL (``http``/``https``) maps to the matching ``ws``/``wss``
    scheme so the socket never downgrades the page's own security.
    """
    if url:
        parts = urlsplit(url)
        scheme = SCHEME_MAP.get(parts.scheme.lower())
        if scheme is None or not parts.netloc:
            raise ValueError(f"unsupported endpoint url: {url}")
        return urlunsplit((scheme, parts.netloc, parts.path or "/", parts.query, ""))
    if host:
        return endpoint_url(host, secure)
    return None


class ReconnectPolicy:
    """Bounded exponential backoff with multiplicative jitter."""

    def __init__(
        self,
        base_delay: float = 1.0,
        max_delay: float = 30.0,
        max_attempts: int = 8,
        jitter: float = 0.2,
        rng: random.Random | None = None,
    ):
        if base_delay <= 0 or max_delay < base_delay:
            raise ValueError("reconnect delays must satisfy 0 < base_delay <= max_delay")
        if not 0 <= jitter < 1:
            raise ValueError("reconnect jitter must be in [0, 1)")
        self.base_delay = float(base_delay)
        self.max_delay = float(max_delay)
        self.max_attempts = int(max_attempts)
        self.jitter = float(jitter)
        self._rng = rng or random.Random()

    def delay(self, attempt: int) -> float:
        raw = min(self.max_delay, self.base_delay * (2 ** max(0, attempt - 1)))
        if self.jitter:
            raw *= 1 + self._rng.uniform(-self.jitter, self.jitter)
        return min(self.max_delay, max(0.0, raw))

    def exhausted(self, attempt: int) -> bool:
        # max_attempts <= 0 means retry forever
        return self.max_attempts > 0 and attempt > self.max_attempts


class Connection:
    def __init__(self, url: str, on_message: MessageHandler, heartbeat: float | None = 20.0):
        self.url = url
        self.on_message = on_message
        self.heartbeat = heartbeat
        self.state = DISCONNECTED
        self._session: aiohttp.ClientSession | None = None
        self._ws: aiohttp.ClientWebSocketResponse | None = None
        self._pending: set[asyncio.Task] = set()

    @property
    def is_live(self) -> bool:
        return self.state in (CONNECTING, CONNECTED)

    async def open(self) -> None:
        self.state = CONNECTING
        self._session = aiohttp.ClientSession()
        try:
            self._ws = await self._session.ws_connect(self.url, heartbeat=self.heartbeat)
        except (aiohttp.ClientError, OSError, asyncio.TimeoutError) as exc:
            await self._release()
            raise ConnectionClosed(f"cannot connect to {self.url}: {exc}") from exc
        self.state = CONNECTED
        logger.info("connected to %s", self.url)

    async def run(self) -> None:
        """Deliver inbound text frames until the socket closes."""
        ws = self._ws
        if ws is None:
            raise ConnectionClosed(f"not connected to {self.url}")
        try:
            async for msg in ws:
                if msg.type == aiohttp.WSMsgType.TEXT:
                    self.on_message(msg.data)
                elif msg.type == aiohttp.WSMsgType.ERROR:
                    logger.warning("websocket error from %s: %s", self.url, ws.exception())
                    break
                else:
                    logger.debug("ignoring %s frame from %s", msg.type.name, self.url)
        finally:
            await self.close()

    async def send(self, payload: dict[str, Any]) -> bool:
        ws = self._ws
        if self.state != CONNECTED or ws is None or ws.closed:
            logger.warning("dropping %s message, not connected", payload.get("type", "?"))
            return False
        try:
            await ws.send_json(payload)
        except (aiohttp.ClientError, ConnectionResetError, RuntimeError) as exc:
            logger.warning("send to %s failed: %s", self.url, exc)
            return False
        return True

    def post(self, payload: dict[str, Any]) -> None:
        """Fire-and-forget send from synchronous code running on the loop."""
        task = asyncio.get_running_loop().create_task(self.send(payload))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def drain(self) -> None:
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def close(self) -> None:
        ws, self._ws = self._ws, None
        if ws is not None and not ws.closed:
            await ws.close()
        await self._release()
        if ws is not None:
            logger.info("disconnected from %s", self.url)

    async def _release(self) -> None:
        session, self._session = self._session, None
        if session is not None:
            await session.close()
        self.state = DISCONNECTED


class NullConnection:
    """Connection stand-in when no endpoint exists; every send is a no-op."""

    url = None
    state = UNAVAILABLE
    is_live = False

    async def open(self) -> None:
        return None

    async def run(self) -> None:
        return None

    async def send(self, payload: dict[str, Any]) -> bool:
        return False

    def post(self, payload: dict[str, Any]) -> None:
        return None

    async def drain(self) -> None:
        return None

    async def close(self) -> None:
        return None


class ConnectionManager:
    def __init__(
        self,
        url: str | None,
        heartbeat: float | None = 20.0,
        connection_factory: Callable[..., Connection] = Connection,
    ):
        self.url = url
        self.heartbeat = heartbeat
        self.connection_factory = connection_factory
        self.connection: Connection | NullConnection | None = None

    async def connect(self, on_message: MessageHandler) -> Connection | NullConnection:
        """Replace the current connection with a fresh one.

        The previous connection is closed before the new one is created.
        Raises ``ConnectionClosed`` when the handshake fails.
        """
        if self.connection is not None:
            await self.connection.close()
            self.connection = None

        if not self.url:
            logger.warning("%s", TransportUnavailable("no websocket endpoint configured"))
            self.connection = NullConnection()
            return self.connection

        connection = self.connection_factory(self.url, on_message, heartbeat=self.heartbeat)
        self.connection = connection
        await connection.open()
        return connection

    async def close(self) -> None:
        if self.connection is not None:
            await self.connection.close()


@dataclass
class LinkStatus:
    state: str = DISCONNECTED
    attempts: int = 0
    last_error: str = ""
    url: str | None = None


async def supervise(
    manager: ConnectionManager,
    on_message: MessageHandler,
    policy: ReconnectPolicy,
    status: LinkStatus,
    on_connect: Callable[[Connection | NullConnection], None] | None = None,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
) -> None:
    """Keep a connection open, reconnecting with backoff after each drop.

    Returns when the endpoint is unavailable or the policy gives up.
    """
    status.url = manager.url
    attempt = 0
    while True:
        status.state = CONNECTING
        try:
            connection = await manager.connect(on_message)
        except ConnectionClosed as exc:
            status.last_error = str(exc)
            logger.warning("%s", exc)
        else:
            if connection.state == UNAVAILABLE:
                status.state = UNAVAILABLE
                status.last_error = "no websocket endpoint configured"
                return
            attempt = 0
            status.attempts = 0
            status.last_error = ""
            status.state = CONNECTED
            try:
                if on_connect is not None:
                    on_connect(connection)
                await connection.run()
            except Exception as exc:
                # a failing handler counts as a drop so the backoff keeps running
                logger.exception("message handling on %s failed", manager.url)
                status.last_error = f"handler error: {exc}"
                await connection.close()
            else:
                status.last_error = "connection closed"
                logger.warning("connection to %s dropped", manager.url)

        attempt += 1
        status.attempts = attempt
        if policy.exhausted(attempt):
            status.state = FAILED
            logger.error("giving up on %s after %d attempts", manager.url, attempt - 1)
            return
        status.state = DISCONNECTED
        delay = policy.delay(attempt)
        logger.info("reconnecting to %s in %.1fs (attempt %d)", manager.url, delay, attempt)
        await sleep(delay)
