from frontdesk.core.config import settings
from frontdesk.platform.ports.event_bus import EventBusPort
from frontdesk.platform.adapters.bus_local import LocalEventBus
from frontdesk.platform.adapters.bus_redis import RedisEventBus

class ProviderRegistry:
    _event_bus: EventBusPort | None = None

    @classmethod
    def event_bus(cls) -> EventBusPort:
        if cls._event_bus is None:
            prov = (settings.EVENT_BUS_PROVIDER or "local").lower()
            if prov == "redis":
                cls._event_bus = RedisEventBus()
            else:
                cls._event_bus = LocalEventBus()
        return cls._event_bus

    @classmethod
    def use_event_bus(cls, bus: EventBusPort | None) -> None:
        """Swap the bus (tests, or shutdown with None)."""
        cls._event_bus = bus

registry = ProviderRegistry()
