import logging
from typing import Awaitable, Callable, Protocol, runtime_checkable

EventHandler = Callable[[str, dict], Awaitable[None]]
Unsubscribe = Callable[[], None]

log = logging.getLogger("bus")

@runtime_checkable
class EventBusPort(Protocol):
    async def publish(self, topic: str, key: str, value: dict, headers: dict | None = None) -> None: ...

    def subscribe(self, topic: str, handler: EventHandler) -> Unsubscribe: ...


class SubscriberSet:
    """Topic -> handlers registry shared by the bus adapters."""

    def __init__(self):
        self._handlers: dict[str, list[EventHandler]] = {}

    def add(self, topic: str, handler: EventHandler) -> Unsubscribe:
        self._handlers.setdefault(topic, []).append(handler)

        def unsubscribe():
            handlers = self._handlers.get(topic, [])
            if handler in handlers:
                handlers.remove(handler)
        return unsubscribe

    async def dispatch(self, topic: str, value: dict) -> None:
        for handler in list(self._handlers.get(topic, [])):
            try:
                await handler(topic, value)
            except Exception:
                # keep dispatching to the rest
                log.exception("Subscriber failed for topic=%s", topic)
