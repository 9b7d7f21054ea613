import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from clinicdesk import events_api
from clinicdesk.auth import Principal, issue_token
from clinicdesk.models import Role
from clinicdesk.notifications import Notifier


class FakeSocket:
    def __init__(self, fail=False):
        self.fail = fail
        self.accepted = False
        self.closed = False
        self.sent = []

    async def accept(self):
        self.accepted = True

    async def send_json(self, message):
        if self.fail:
            raise RuntimeError("connection reset")
        self.sent.append(message)

    async def close(self):
        self.closed = True


async def test_publish_reaches_every_listener_of_the_tenant():
    notifier = Notifier()
    await notifier.connect()
    first, second = FakeSocket(), FakeSocket()
    await notifier.register(first, 4)
    await notifier.register(second, 4)

    await notifier.publish("newAppointment", {"tenant_id": 4})

    assert first.accepted and second.accepted
    assert first.sent == second.sent == [{"event": "newAppointment", "data": {"tenant_id": 4}}]


async def test_publish_skips_listeners_of_other_tenants():
    notifier = Notifier()
    await notifier.connect()
    clinic_a, clinic_b = FakeSocket(), FakeSocket()
    await notifier.register(clinic_a, 1)
    await notifier.register(clinic_b, 2)

    await notifier.publish("appointmentUpdated", {"appointment": {"id": 9}, "tenant_id": 2})

    assert clinic_a.sent == []
    assert [message["data"]["tenant_id"] for message in clinic_b.sent] == [2]


async def test_event_without_tenant_reaches_nobody():
    notifier = Notifier()
    await notifier.connect()
    socket = FakeSocket()
    await notifier.register(socket, 1)

    await notifier.publish("parametersUpdated", {"parameters": {}})
    await notifier.publish("parametersUpdated", ["not", "a", "dict"])

    assert socket.sent == []


async def test_failed_listener_is_dropped():
    notifier = Notifier()
    await notifier.connect()
    healthy, broken = FakeSocket(), FakeSocket(fail=True)
    await notifier.register(healthy, 1)
    await notifier.register(broken, 1)

    await notifier.publish("appointmentUpdated", {"tenant_id": 1})

    assert notifier.listener_count == 1
    assert len(healthy.sent) == 1


async def test_publish_before_connect_is_dropped():
    notifier = Notifier()
    socket = FakeSocket()
    await notifier.register(socket, 1)

    await notifier.publish("parametersUpdated", {"tenant_id": 1})
    assert socket.sent == []


async def test_close_disconnects_listeners():
    notifier = Notifier()
    await notifier.connect()
    first, second = FakeSocket(), FakeSocket()
    await notifier.register(first, 1)
    await notifier.register(second, 2)

    await notifier.close()

    assert first.closed and second.closed
    assert notifier.listener_count == 0
    assert not notifier.connected


def test_unregister_unknown_listener_is_ignored():
    notifier = Notifier()
    notifier.unregister(FakeSocket(), 7)
    assert notifier.listener_count == 0


# --- /ws endpoint ---
@pytest.fixture
def events_app():
    app = FastAPI()
    app.include_router(events_api.router)
    app.state.notifier = Notifier()
    return app


def test_ws_without_token_is_rejected(events_app):
    with TestClient(events_app) as client:
        with pytest.raises(WebSocketDisconnect):
            with client.websocket_connect("/ws"):
                pass
    assert events_app.state.notifier.listener_count == 0


def test_ws_with_invalid_token_is_rejected(events_app):
    with TestClient(events_app) as client:
        with pytest.raises(WebSocketDisconnect):
            with client.websocket_connect("/ws?token=not-a-jwt"):
                pass


def test_ws_listener_only_receives_own_clinic_events(events_app):
    notifier = events_app.state.notifier
    token = issue_token(Principal(id=5, role=Role.RECEPTIONIST, tenant_id=1))

    with TestClient(events_app) as client:
        client.portal.call(notifier.connect)
        with client.websocket_connect(f"/ws?token={token}") as websocket:
            client.portal.call(notifier.publish, "newAppointment", {"appointment": {"id": 1}, "tenant_id": 2})
            client.portal.call(notifier.publish, "newAppointment", {"appointment": {"id": 2}, "tenant_id": 1})

            message = websocket.receive_json()

    assert message == {"event": "newAppointment", "data": {"appointment": {"id": 2}, "tenant_id": 1}}
