# tests/test_push_poller.py

from __future__ import annotations

import json
from unittest.mock import patch

import pytest

from gymadmin_core.core.errors import DuplicateTaskError
from gymadmin_core.polling.backoff import backoff_delay
from gymadmin_core.polling.poll_models import PollStatus
from gymadmin_core.polling.poll_scheduler import PollScheduler
from gymadmin_core.polling.push_poller import PushPoller, PushStatus

from .fakes import CountingWork, FakeWebSocket, wait_for

CONNECT = "gymadmin_core.polling.push_poller.websockets.connect"


def test_backoff_delay_formula() -> None:
    assert backoff_delay(1.0, 2.0, 0, 30.0) == 1.0
    assert backoff_delay(1.0, 2.0, 3, 30.0) == 8.0
    assert backoff_delay(1.0, 2.0, 5, 30.0) == 30.0
    assert backoff_delay(5.0, 1.5, 2, 300.0) == pytest.approx(11.25)
    assert backoff_delay(1.0, 2.0, 10_000, 30.0) == 30.0


@pytest.mark.asyncio
async def test_messages_are_decoded_and_bad_ones_skipped(scheduler: PollScheduler) -> None:
    ws = FakeWebSocket(['{"validationCode": "A1"}', "not-json", '{"validationCode": "B2"}'])
    received: list[dict] = []

    with patch(CONNECT, return_value=ws) as connect:
        poller = scheduler.register_push(
            "cash-push", "ws://backend.test/ws", received.append, max_reconnects=0
        )
        await wait_for(lambda: poller.status == PushStatus.CLOSED)

    connect.assert_called_once_with("ws://backend.test/ws")
    assert received == [{"validationCode": "A1"}, {"validationCode": "B2"}]
    assert poller.messages_received == 3
    assert scheduler.metrics().push_messages == 3
    assert ws.exited


@pytest.mark.asyncio
async def test_reconnects_with_backoff_then_gives_up() -> None:
    with patch(CONNECT, side_effect=OSError("refused")) as connect:
        poller = PushPoller(
            "flaky", "ws://x", lambda _: None, max_reconnects=2, reconnect_base_delay=0.001
        )
        poller.start()
        await wait_for(lambda: poller.status == PushStatus.CLOSED)

    assert connect.call_count == 3
    assert poller.reconnect_attempts == 2


@pytest.mark.asyncio
async def test_successful_open_resets_reconnect_counter() -> None:
    sockets = [OSError("down"), FakeWebSocket(['{"n": 1}']), OSError("down again")]

    def _connect(url, **kwargs):
        item = sockets.pop(0)
        if isinstance(item, Exception):
            raise item
        return item

    got: list[dict] = []
    with patch(CONNECT, side_effect=_connect) as connect:
        poller = PushPoller("reset", "ws://x", got.append, max_reconnects=1, reconnect_base_delay=0.001)
        poller.start()
        await wait_for(lambda: poller.status == PushStatus.CLOSED)

    assert connect.call_count == 3
    assert got == [{"n": 1}]


@pytest.mark.asyncio
async def test_send_and_close() -> None:
    ws = FakeWebSocket(hold=True)

    with patch(CONNECT, return_value=ws):
        poller = PushPoller("chat", "ws://x", lambda _: None, ping_interval=None)
        assert await poller.send("early") is False

        poller.start()
        await wait_for(lambda: poller.connected)

        assert await poller.send("ping") is True
        assert await poller.send({"type": "ack", "code": "A1"}) is True
        assert ws.sent == ["ping", json.dumps({"type": "ack", "code": "A1"})]

        poller.close()
        await poller.wait_closed()

    assert poller.status == PushStatus.CLOSED
    assert not poller.connected
    assert ws.exited


@pytest.mark.asyncio
async def test_async_handler_errors_do_not_drop_connection() -> None:
    ws = FakeWebSocket(['{"n": 1}', '{"n": 2}'], hold=True)
    seen: list[int] = []

    async def handler(data: dict) -> None:
        seen.append(data["n"])
        if data["n"] == 1:
            raise RuntimeError("handler bug")

    with patch(CONNECT, return_value=ws):
        poller = PushPoller("h", "ws://x", handler)
        poller.start()
        await wait_for(lambda: len(seen) == 2)
        assert poller.connected
        poller.close()
        await poller.wait_closed()


@pytest.mark.asyncio
async def test_push_names_share_task_namespace(scheduler: PollScheduler) -> None:
    scheduler.register("shared", CountingWork(), interval=10.0)

    with pytest.raises(DuplicateTaskError):
        scheduler.register_push("shared", "ws://x", lambda _: None)

    ws = FakeWebSocket(hold=True)
    with patch(CONNECT, return_value=ws):
        poller = scheduler.register_push("live", "ws://x", lambda _: None)
        with pytest.raises(DuplicateTaskError):
            scheduler.register("live", CountingWork())

        await wait_for(lambda: poller.connected)
        scheduler.stop("live")
        await poller.wait_closed()

    assert poller.status == PushStatus.CLOSED


@pytest.mark.asyncio
async def test_poller_that_gives_up_frees_its_name(scheduler: PollScheduler) -> None:
    with patch(CONNECT, side_effect=OSError("refused")):
        poller = scheduler.register_push("gone", "ws://x", lambda _: None, max_reconnects=0)
        assert scheduler.metrics().push_connections == 1
        await wait_for(lambda: poller.status == PushStatus.CLOSED)
        await poller.wait_closed()

    assert scheduler.push_names() == []
    assert scheduler.get_push("gone") is None
    assert scheduler.metrics().push_connections == 0

    handle = scheduler.register("gone", CountingWork(), interval=10.0)
    assert handle.status == PollStatus.ACTIVE
