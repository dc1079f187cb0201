import asyncio
import json

import httpx
import pytest

from servicebell.client.api_client import SessionInvalidError
from servicebell.client.sync_agent import ClientSyncAgent, SyncState, backoff_delay


class FakeSocket:
    def __init__(self, *events):
        self.queue = asyncio.Queue()
        for event in events:
            self.push(event)
        self.sent = []
        self.closed = False

    def push(self, event):
        self.queue.put_nowait(event if event is None or isinstance(event, str) else json.dumps(event))

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        self.closed = True

    def __aiter__(self):
        return self

    async def __anext__(self):
        if self.closed:
            raise StopAsyncIteration
        item = await self.queue.get()
        if item is None:
            raise StopAsyncIteration
        return item

    async def send(self, data):
        self.sent.append(data)

    async def close(self):
        self.closed = True
        self.queue.put_nowait(None)


class FailingConnection:
    def __init__(self, exc):
        self.exc = exc

    async def __aenter__(self):
        raise self.exc

    async def __aexit__(self, *exc_info):
        return False


class FakeConnector:
    """Devolve os sockets roteirizados; depois disso toda conexão falha."""

    def __init__(self, *sockets):
        self.sockets = list(sockets)
        self.uris = []

    def __call__(self, uri):
        self.uris.append(uri)
        if self.sockets:
            return self.sockets.pop(0)
        return FailingConnection(OSError("connection refused"))


class FakeApi:
    def __init__(self, active_session="S1"):
        self.calls = []
        self.active_session = active_session
        self.raise_on_create = None

    async def list_requests(self, **params):
        self.calls.append(("requests", params))
        return [{"id": 1, "status": "pending"}]

    async def list_tables(self, restaurant_id):
        self.calls.append(("tables", restaurant_id))
        return [{"id": 5}]

    async def list_feedback(self, restaurant_id):
        self.calls.append(("feedback", restaurant_id))
        return []

    async def verify_table(self, restaurant_id, table_id):
        self.calls.append(("verify", table_id))
        if self.active_session is None:
            return {"valid": True, "requiresNewSession": True}
        return {"valid": True, "activeSession": {"id": self.active_session, "expiresIn": 100}}

    async def create_request(self, table_id, session_id, type, notes=None):
        self.calls.append(("create", session_id, type))
        if self.raise_on_create:
            raise self.raise_on_create
        return {"id": 2, "type": type}


class Recorder:
    def __init__(self):
        self.delays = []
        self.ended = []
        self.states = []
        self.updates = []

    async def sleep(self, delay):
        self.delays.append(delay)

    async def on_session_ended(self, reason):
        self.ended.append(reason)

    async def on_update(self, key, data):
        self.updates.append(key)

    def on_state_change(self, state):
        self.states.append(state)


def make_agent(api, connector, recorder, **overrides):
    options = dict(
        restaurant_id=1,
        table_id=5,
        session_id="S1",
        client_type="customer",
        on_update=recorder.on_update,
        on_session_ended=recorder.on_session_ended,
        on_state_change=recorder.on_state_change,
        max_attempts=3,
        ping_interval=3600,
        revalidate_interval=3600,
        connect=connector,
        sleep=recorder.sleep,
    )
    options.update(overrides)
    return ClientSyncAgent(api, "ws://bell.test/ws", **options)


def test_backoff_delay_is_capped():
    assert [backoff_delay(attempt, 1.0, 30.0) for attempt in range(7)] == [1, 2, 4, 8, 16, 30, 30]


def test_customer_agent_requires_session():
    with pytest.raises(ValueError):
        ClientSyncAgent(FakeApi(), "ws://bell.test/ws", restaurant_id=1, table_id=5)


async def test_gives_up_after_max_attempts():
    recorder = Recorder()
    connector = FakeConnector()
    agent = make_agent(FakeApi(), connector, recorder)

    await agent.run()

    assert recorder.delays == [1, 2, 4]
    assert len(connector.uris) == 4
    assert agent.state == SyncState.DISCONNECTED
    assert recorder.states[0] == SyncState.CONNECTING
    assert SyncState.RECONNECTING in recorder.states


async def test_refetches_on_matching_events_and_ends_session():
    recorder = Recorder()
    api = FakeApi()
    socket = FakeSocket(
        {"type": "new_request", "tableId": 5, "restaurantId": 1},
        {"type": "new_request", "tableId": 6, "restaurantId": 1},
        {"type": "update_request", "tableId": 5, "restaurantId": 2},
        "not json",
        {"type": "connection_status", "status": "connected"},
        {"type": "end_session", "tableId": 5, "sessionId": "OTHER"},
        {"type": "end_session", "tableId": 5, "sessionId": "S1", "reason": "admin_ended"},
        {"type": "new_request", "tableId": 5},
    )
    connector = FakeConnector(socket)
    agent = make_agent(api, connector, recorder)

    await agent.run()

    assert "sessionId=S1" in connector.uris[0]
    assert "clientType=customer" in connector.uris[0]
    # Uma releitura ao conectar, outra pelo aviso da própria mesa e a do end_session alheio
    assert [call[0] for call in api.calls] == ["requests", "requests", "requests"]
    assert api.calls[0][1] == {"table_id": 5, "session_id": "S1"}
    assert agent.state == SyncState.SESSION_ENDED
    assert recorder.ended == ["admin_ended"]
    assert agent.session_id is None
    assert agent.cache == {}
    assert socket.closed
    assert len(connector.uris) == 1


async def test_new_session_for_own_table_replaces_customer():
    recorder = Recorder()
    socket = FakeSocket({"type": "new_session", "tableId": 5, "restaurantId": 1, "sessionId": "S2"})
    agent = make_agent(FakeApi(), FakeConnector(socket), recorder)

    await agent.run()

    assert recorder.ended == ["replaced"]
    assert agent.state == SyncState.SESSION_ENDED


async def test_admin_agent_reconnects_and_resets_counter():
    recorder = Recorder()
    api = FakeApi()
    first = FakeSocket(
        {"type": "new_feedback", "tableId": 5, "restaurantId": 1},
        {"type": "update_table", "tableId": 9, "restaurantId": 2},
        None,
    )
    second = FakeSocket(None)
    connector = FakeConnector(first, second)
    agent = make_agent(
        api, connector, recorder, client_type="admin", table_id=None, session_id=None, max_attempts=1
    )

    await agent.run()

    assert "clientType=admin" in connector.uris[0]
    assert "sessionId" not in connector.uris[0]
    keys = [call[0] for call in api.calls]
    # conectar (3 chaves) + new_feedback + reconexão (3 chaves)
    assert keys == ["requests", "tables", "feedback", "feedback", "requests", "tables", "feedback"]
    assert api.calls[0][1] == {"restaurant_id": 1}
    assert recorder.delays == [1, 1]
    assert agent.state == SyncState.DISCONNECTED
    assert set(agent.cache) == {"requests", "tables", "feedback"}


async def test_revalidation_detects_replaced_session():
    recorder = Recorder()
    api = FakeApi(active_session="S1")
    agent = make_agent(api, FakeConnector(), recorder)

    assert await agent.revalidate() is True
    assert agent.state == SyncState.IDLE

    api.active_session = None
    assert await agent.revalidate() is False
    assert recorder.ended == ["expired"]
    assert agent.state == SyncState.SESSION_ENDED
    assert await agent.revalidate() is False


async def test_session_invalid_from_http_ends_session():
    recorder = Recorder()
    api = FakeApi()
    agent = make_agent(api, FakeConnector(), recorder)

    assert (await agent.create_request("water"))["type"] == "water"

    api.raise_on_create = SessionInvalidError(403, "Session expired", {"shouldClearSession": True})
    with pytest.raises(SessionInvalidError):
        await agent.create_request("check")
    assert recorder.ended == ["invalid"]
    assert agent.state == SyncState.SESSION_ENDED

    with pytest.raises(SessionInvalidError):
        await agent.create_request("water")


class UnreachableApi(FakeApi):
    """Servidor HTTP fora do ar: toda chamada falha no transporte."""

    async def list_requests(self, **params):
        self.calls.append(("requests", params))
        raise httpx.ConnectError("connection refused")

    async def verify_table(self, restaurant_id, table_id):
        self.calls.append(("verify", table_id))
        raise httpx.ReadTimeout("timeout")


async def test_http_outage_during_refetch_keeps_agent_alive():
    recorder = Recorder()
    api = UnreachableApi()
    socket = FakeSocket({"type": "new_request", "tableId": 5, "restaurantId": 1}, None)
    agent = make_agent(api, FakeConnector(socket), recorder, max_attempts=0)

    await agent.run()

    # Releitura ao conectar e a do aviso; nenhuma derruba o agente
    assert [call[0] for call in api.calls] == ["requests", "requests"]
    assert "requests" not in agent.cache
    assert recorder.updates == []
    assert agent.state == SyncState.DISCONNECTED
    assert recorder.ended == []


async def test_http_outage_during_revalidation_keeps_session():
    recorder = Recorder()
    agent = make_agent(UnreachableApi(), FakeConnector(), recorder)

    assert await agent.revalidate() is True
    assert await agent.revalidate() is True
    assert agent.session_id == "S1"
    assert agent.state == SyncState.IDLE
    assert recorder.ended == []
