"""
User event consumer on Redis Streams

Each stream entry carries ``event_type`` and ``payload`` (JSON) fields. The
consumer reads through a consumer group and acknowledges manually:

* handled            -> XACK
* permanent failure  -> copied to ``<stream>:dead`` with the error, then XACK
* retryable failure  -> left pending, read again from the group backlog
* any other error    -> dead-lettered as INTERNAL_ERROR
"""

from typing import Dict, Iterable, List, Optional, Tuple
import asyncio
import logging

import redis.asyncio as redis
from redis.exceptions import RedisError, ResponseError

from notification_service.core.exceptions import DecodeError, NotificationServiceError
from notification_service.core.monitoring import stream_messages

from .notification_service import NotificationService

logger = logging.getLogger(__name__)

ACKED = "acked"
DEAD_LETTERED = "dead_lettered"
PENDING = "pending"

# XREADGROUP ids: "0" replays this consumer's pending entries, ">" reads new ones
BACKLOG = "0"
NEW = ">"


def dead_letter_stream(stream: str) -> str:
    return f"{stream}:dead"


class EventConsumer:
    """Feeds stream entries into NotificationService.handle_event"""

    def __init__(
        self,
        service: NotificationService,
        client: redis.Redis,
        streams: Iterable[str],
        group: str,
        consumer_name: str,
        block_ms: int = 5000,
        batch_size: int = 10,
        error_backoff: float = 1.0
    ):
        self.service = service
        self.client = client
        self.streams = list(streams)
        self.group = group
        self.consumer_name = consumer_name
        self.block_ms = block_ms
        self.batch_size = batch_size
        self.error_backoff = error_backoff
        self._stopping = asyncio.Event()

    async def ensure_groups(self) -> None:
        """Create the consumer group on every stream (and the stream itself)"""
        for stream in self.streams:
            try:
                await self.client.xgroup_create(stream, self.group, id="0", mkstream=True)
                logger.info(f"Created consumer group {self.group} on {stream}")
            except ResponseError as e:
                if "BUSYGROUP" not in str(e):
                    raise

    async def process_entry(self, stream: str, entry_id: str, fields: Dict[str, str]) -> str:
        """Handle one entry and settle it; returns how it was settled"""
        event_type = fields.get("event_type", "")
        payload = fields.get("payload", "")

        try:
            if not event_type:
                raise DecodeError("stream entry has no event_type")
            await self.service.handle_event(event_type, payload)
        except NotificationServiceError as e:
            if e.retryable:
                logger.warning(f"Retryable failure for {stream}/{entry_id} ({event_type}): {e.detail}")
                stream_messages.labels(stream=stream, result=PENDING).inc()
                return PENDING

            return await self._dead_letter(stream, entry_id, event_type, payload, e.error_code, e.detail)
        except Exception as e:
            # not a service error: settle it so the entry is not replayed
            logger.exception(f"Unexpected failure for {stream}/{entry_id} ({event_type})")
            detail = f"{e.__class__.__name__}: {e}"
            return await self._dead_letter(
                stream, entry_id, event_type, payload, NotificationServiceError.error_code, detail
            )

        await self.client.xack(stream, self.group, entry_id)
        stream_messages.labels(stream=stream, result=ACKED).inc()
        logger.debug(f"Acknowledged {stream}/{entry_id} ({event_type})")
        return ACKED

    async def _dead_letter(
        self,
        stream: str,
        entry_id: str,
        event_type: str,
        payload: str,
        error_code: str,
        detail: str
    ) -> str:
        logger.error(f"Dead-lettering {stream}/{entry_id} ({event_type}): {detail}")
        await self.client.xadd(dead_letter_stream(stream), {
            "event_type": event_type,
            "payload": payload,
            "error_code": error_code,
            "error": detail,
            "source_id": entry_id,
        })
        await self.client.xack(stream, self.group, entry_id)
        stream_messages.labels(stream=stream, result=DEAD_LETTERED).inc()
        return DEAD_LETTERED

    async def _read(self, start_id: str, block: Optional[int]) -> List[Tuple[str, list]]:
        response = await self.client.xreadgroup(
            self.group,
            self.consumer_name,
            {stream: start_id for stream in self.streams},
            count=self.batch_size,
            block=block,
        )
        return response or []

    async def poll_once(self, block: Optional[int] = None) -> Dict[str, int]:
        """
        One iteration: replay this consumer's pending entries, then read new
        ones (blocking up to ``block`` ms). Entries of one stream are handled
        in order.
        """
        results = {ACKED: 0, DEAD_LETTERED: 0, PENDING: 0}

        for start_id, wait in ((BACKLOG, None), (NEW, block)):
            for stream, entries in await self._read(start_id, wait):
                for entry_id, fields in entries:
                    # replayed entries that were acked meanwhile come back empty
                    if not fields:
                        continue
                    results[await self.process_entry(stream, entry_id, fields)] += 1

        return results

    async def run(self) -> None:
        """Consume until stop() is called"""
        await self.ensure_groups()
        logger.info(f"Consuming {', '.join(self.streams)} as {self.group}/{self.consumer_name}")

        while not self._stopping.is_set():
            try:
                results = await self.poll_once(block=self.block_ms)
            except (RedisError, OSError) as e:
                logger.error(f"Stream read failed: {e}")
                await asyncio.sleep(self.error_backoff)
                continue

            if results[PENDING]:
                # give the failing dependency a moment before replaying
                await asyncio.sleep(self.error_backoff)

        logger.info("Event consumer stopped")

    def stop(self) -> None:
        self._stopping.set()
