import asyncio
import json
import logging
from redis.asyncio import from_url as redis_from_url
from frontdesk.platform.ports.event_bus import EventBusPort, EventHandler, SubscriberSet, Unsubscribe
from frontdesk.core.config import settings

log = logging.getLogger("bus.redis")

class RedisEventBus(EventBusPort):
    """Redis pub/sub so every API worker sees every clinic's change notifications."""

    def __init__(self):
        if not settings.REDIS_URL:
            raise RuntimeError("REDIS_URL not configured")
        self.redis = redis_from_url(settings.REDIS_URL, encoding="utf-8", decode_responses=True)
        self.channel = settings.REDIS_CHANNEL or "frontdesk.events"
        self.subscribers = SubscriberSet()
        self._listener: asyncio.Task | None = None

    async def publish(self, topic: str, key: str, value: dict, headers: dict | None = None) -> None:
        payload = {
            "topic": topic,
            "key": key,
            "value": value,
            "headers": headers or {},
        }
        await self.redis.publish(self.channel, json.dumps(payload, default=str))
        log.debug(f"[REDIS BUS] PUBLISH channel={self.channel} topic={topic} key={key}")

    def subscribe(self, topic: str, handler: EventHandler) -> Unsubscribe:
        return self.subscribers.add(topic, handler)

    async def start(self) -> None:
        if self._listener is None:
            self._listener = asyncio.create_task(self._listen())

    async def close(self) -> None:
        if self._listener:
            self._listener.cancel()
            try:
                await self._listener
            except asyncio.CancelledError:
                pass
            self._listener = None
        await self.redis.close()

    async def _listen(self) -> None:
        pubsub = self.redis.pubsub()
        await pubsub.subscribe(self.channel)
        log.info("Listening on channel=%s", self.channel)
        try:
            async for message in pubsub.listen():
                if message.get("type") != "message":
                    continue
                try:
                    payload = json.loads(message["data"])
                except (TypeError, ValueError):
                    log.warning("Dropping malformed message on %s", self.channel)
                    continue
                await self.subscribers.dispatch(payload.get("topic", ""), payload.get("value") or {})
        except asyncio.CancelledError:
            log.info("Redis listener cancelled; shutting down")
            raise
        finally:
            await pubsub.close()
