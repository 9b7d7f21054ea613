# clinicdesk/notifications.py
import logging
from collections import defaultdict
from typing import Any, Dict, Set

from fastapi import Request, WebSocket
from fastapi.encoders import jsonable_encoder

logger = logging.getLogger(__name__)

# Event names pushed to listeners
NEW_APPOINTMENT = "newAppointment"
APPOINTMENT_UPDATED = "appointmentUpdated"
UPDATED_APPOINTMENT = "updatedAppointment"
PARAMETERS_UPDATED = "parametersUpdated"


class Notifier:
    """
    Publish-only channel to connected WebSocket listeners, partitioned by tenant.
    An event reaches only the listeners of the clinic named by its payload's tenant_id.
    No delivery guarantee: a listener that fails to receive is dropped.
    """

    def __init__(self):
        self._listeners: Dict[int, Set[WebSocket]] = defaultdict(set)
        self.connected = False

    async def connect(self):
        self.connected = True
        logger.info("NOTIFY: Channel open.")

    async def close(self):
        for websocket in [ws for listeners in self._listeners.values() for ws in listeners]:
            try:
                await websocket.close()
            except RuntimeError:
                pass
        self._listeners.clear()
        self.connected = False
        logger.info("NOTIFY: Channel closed.")

    async def register(self, websocket: WebSocket, tenant_id: int):
        # Reachable by publish as soon as the handshake completes
        self._listeners[tenant_id].add(websocket)
        try:
            await websocket.accept()
        except Exception:
            self.unregister(websocket, tenant_id)
            raise
        logger.debug("NOTIFY: Listener connected to tenant %s (%d total).", tenant_id, self.listener_count)

    def unregister(self, websocket: WebSocket, tenant_id: int):
        listeners = self._listeners.get(tenant_id)
        if listeners is None:
            return
        listeners.discard(websocket)
        if not listeners:
            del self._listeners[tenant_id]
        logger.debug("NOTIFY: Listener disconnected from tenant %s (%d left).", tenant_id, self.listener_count)

    @property
    def listener_count(self) -> int:
        return sum(len(listeners) for listeners in self._listeners.values())

    async def publish(self, event: str, payload: Any):
        if not self.connected:
            logger.debug("NOTIFY: Channel not open, dropping '%s'.", event)
            return
        tenant_id = payload.get("tenant_id") if isinstance(payload, dict) else None
        if tenant_id is None:
            logger.warning("NOTIFY: Dropping '%s' without a tenant_id.", event)
            return
        message = jsonable_encoder({"event": event, "data": payload})
        for websocket in list(self._listeners.get(tenant_id, ())):
            try:
                await websocket.send_json(message)
            except Exception as e:
                logger.warning("NOTIFY: Dropping listener after failed send of '%s': %s", event, e)
                self.unregister(websocket, tenant_id)


def get_notifier(request: Request) -> Notifier:
    return request.app.state.notifier
