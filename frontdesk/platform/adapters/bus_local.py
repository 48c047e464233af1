import json
import logging
from frontdesk.platform.ports.event_bus import EventBusPort, EventHandler, SubscriberSet, Unsubscribe

log = logging.getLogger("bus.local")

class LocalEventBus(EventBusPort):
    """In-process fan-out. Enough for a single API worker; use redis when scaling out."""

    def __init__(self):
        self.subscribers = SubscriberSet()

    async def publish(self, topic: str, key: str, value: dict, headers: dict | None = None) -> None:
        log.debug(f"[LOCAL BUS] topic={topic} key={key} value={json.dumps(value, default=str)} headers={headers or {}}")
        await self.subscribers.dispatch(topic, value)

    def subscribe(self, topic: str, handler: EventHandler) -> Unsubscribe:
        return self.subscribers.add(topic, handler)
