from __future__ import annotations

import random
import unittest
from pathlib import Path
import sys

from aiohttp.test_utils import unused_port

sys.path.insert(0, str(Path(__file__).resolve().parents[2]))
sys.path.insert(0, str(Path(__file__).resolve().parent))

from dash_core.errors import ConnectionClosed  # noqa: E402
from dash_core.transport import (  # noqa: E402
    CONNECTED,
    DISCONNECTED,
    FAILED,
    UNAVAILABLE,
    Connection,
    ConnectionManager,
    LinkStatus,
    NullConnection,
    ReconnectPolicy,
    endpoint_url,
    resolve_url,
    supervise,
    transport_scheme,
)
from fake_node import FakeNode, eventually  # noqa: E402


class SchemeTests(unittest.TestCase):
    def test_scheme_mirrors_security(self):
        self.assertEqual(transport_scheme(True), "wss")
        self.assertEqual(transport_scheme(False), "ws")
        self.assertEqual(endpoint_url("node:8124", secure=True), "wss://node:8124/")

    def test_resolve_url(self):
        self.assertEqual(resolve_url("https://node:8124"), "wss://node:8124/")
        self.assertEqual(resolve_url("http://node/ws"), "ws://node/ws")
        self.assertEqual(resolve_url("wss://node/"), "wss://node/")
        self.assertEqual(resolve_url(host="node:9000"), "ws://node:9000/")
        self.assertEqual(resolve_url(host="node", secure=True), "wss://node/")
        self.assertIsNone(resolve_url())

    def test_resolve_url_rejects_other_schemes(self):
        with self.assertRaises(ValueError):
            resolve_url("ftp://node")


class ReconnectPolicyTests(unittest.TestCase):
    def test_exponential_and_bounded(self):
        policy = ReconnectPolicy(base_delay=1.0, max_delay=30.0, jitter=0)
        self.assertEqual([policy.delay(n) for n in (1, 2, 3, 4)], [1.0, 2.0, 4.0, 8.0])
        self.assertEqual(policy.delay(12), 30.0)

    def test_jitter_stays_in_bounds(self):
        policy = ReconnectPolicy(base_delay=1.0, max_delay=10.0, jitter=0.5, rng=random.Random(7))
        for attempt in range(1, 20):
            raw = min(10.0, 2 ** (attempt - 1))
            delay = policy.delay(attempt)
            self.assertGreaterEqual(delay, raw * 0.5)
            self.assertLessEqual(delay, 10.0)

    def test_attempt_budget(self):
        policy = ReconnectPolicy(max_attempts=3)
        self.assertFalse(policy.exhausted(3))
        self.assertTrue(policy.exhausted(4))
        self.assertFalse(ReconnectPolicy(max_attempts=0).exhausted(1000))

    def test_invalid_policy(self):
        with self.assertRaises(ValueError):
            ReconnectPolicy(base_delay=0)
        with self.assertRaises(ValueError):
            ReconnectPolicy(jitter=1.5)


class ConnectionTests(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        self.node = FakeNode(send_sync=False, greeting=["first", '{"type": "progress"}', "third"], close_after_greeting=True)
        self.url = await self.node.start()

    async def asyncTearDown(self):
        await self.node.stop()

    async def test_delivers_frames_verbatim_in_order(self):
        received = []
        manager = ConnectionManager(self.url)
        connection = await manager.connect(received.append)
        self.assertEqual(connection.state, CONNECTED)
        await connection.run()
        self.assertEqual(received, ["first", '{"type": "progress"}', "third"])
        self.assertEqual(connection.state, DISCONNECTED)

    async def test_send_after_close_is_dropped(self):
        manager = ConnectionManager(self.url)
        connection = await manager.connect(lambda raw: None)
        await connection.close()
        self.assertFalse(await connection.send({"type": "settings_update"}))

    async def test_handshake_failure(self):
        manager = ConnectionManager(f"ws://127.0.0.1:{unused_port()}/")
        with self.assertRaises(ConnectionClosed):
            await manager.connect(lambda raw: None)
        self.assertEqual(manager.connection.state, DISCONNECTED)


class ReconnectTests(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        self.node = FakeNode()
        self.url = await self.node.start()

    async def asyncTearDown(self):
        await self.node.stop()

    async def test_connect_closes_prior_connection_first(self):
        created = []

        def factory(url, on_message, heartbeat=None):
            self.assertFalse(any(conn.is_live for conn in created))
            conn = Connection(url, on_message, heartbeat=heartbeat)
            created.append(conn)
            return conn

        manager = ConnectionManager(self.url, connection_factory=factory)
        first = await manager.connect(lambda raw: None)
        second = await manager.connect(lambda raw: None)
        self.assertIsNot(first, second)
        self.assertEqual(first.state, DISCONNECTED)
        self.assertEqual(second.state, CONNECTED)
        self.assertIs(manager.connection, second)
        self.assertTrue(await eventually(lambda: self.node.live == 1))
        await manager.close()

    async def test_supervisor_reconnects_after_drop(self):
        class Stop(Exception):
            pass

        delays = []
        connects = []

        async def fake_sleep(delay):
            delays.append(delay)
            if len(delays) == 2:
                raise Stop

        self.node.close_after_greeting = True
        manager = ConnectionManager(self.url)
        status = LinkStatus()
        policy = ReconnectPolicy(base_delay=0.5, jitter=0)
        with self.assertRaises(Stop):
            await supervise(manager, lambda raw: None, policy, status, on_connect=connects.append, sleep=fake_sleep)
        self.assertEqual(len(connects), 2)
        self.assertEqual(self.node.connections, 2)
        # each successful connect resets the backoff
        self.assertEqual(delays, [0.5, 0.5])
        self.assertEqual(status.url, self.url)

    async def test_handler_failure_counts_as_drop(self):
        class Stop(Exception):
            pass

        delays = []

        async def fake_sleep(delay):
            delays.append(delay)
            raise Stop

        def on_message(raw):
            raise RuntimeError("bad frame")

        manager = ConnectionManager(self.url)
        status = LinkStatus()
        policy = ReconnectPolicy(base_delay=0.5, jitter=0)
        with self.assertLogs("dash_core.transport", level="ERROR"):
            with self.assertRaises(Stop):
                await supervise(manager, on_message, policy, status, sleep=fake_sleep)
        self.assertEqual(status.state, DISCONNECTED)
        self.assertIn("bad frame", status.last_error)
        self.assertEqual(status.attempts, 1)
        self.assertEqual(delays, [0.5])
        self.assertFalse(manager.connection.is_live)


class SupervisorFailureTests(unittest.IsolatedAsyncioTestCase):
    async def test_gives_up_after_budget(self):
        delays = []

        async def fake_sleep(delay):
            delays.append(delay)

        manager = ConnectionManager(f"ws://127.0.0.1:{unused_port()}/")
        status = LinkStatus()
        policy = ReconnectPolicy(base_delay=0.1, max_attempts=2, jitter=0)
        await supervise(manager, lambda raw: None, policy, status, sleep=fake_sleep)
        self.assertEqual(status.state, FAILED)
        self.assertEqual(status.attempts, 3)
        self.assertEqual(delays, [0.1, 0.2])
        self.assertIn("cannot connect", status.last_error)


class NullTransportTests(unittest.IsolatedAsyncioTestCase):
    async def test_null_transport(self):
        manager = ConnectionManager(None)
        connection = await manager.connect(lambda raw: None)
        self.assertIsInstance(connection, NullConnection)
        self.assertEqual(connection.state, UNAVAILABLE)
        connection.post({"type": "settings_update"})
        self.assertFalse(await connection.send({"type": "settings_update"}))
        await connection.run()

        status = LinkStatus()
        await supervise(manager, lambda raw: None, ReconnectPolicy(), status)
        self.assertEqual(status.state, UNAVAILABLE)


if __name__ == "__main__":
    unittest.main()
