"""
Push channel for job lifecycle events.

Two kinds of subscription are supported:

* firehose subscribers see every event of every job and filter by
  ``jobId`` themselves;
* topic subscribers are keyed by job id and only see that job's events.

The latest event per job is remembered so a topic subscriber that joins
late still learns the current progress or the final outcome. Terminal
events are kept in a bounded cache after the job itself is gone.
"""

import logging
from collections import OrderedDict
from typing import Dict, Optional, Protocol

from pydantic import BaseModel

logger = logging.getLogger(__name__)

TERMINAL_EVENTS = frozenset({"complete", "error", "cancelled"})


class Subscriber(Protocol):
    async def send_json(self, data: dict) -> None: ...


class EventHub:
    """Fan events out to connected WebSocket clients."""

    def __init__(self, replay_limit: int = 64) -> None:
        # Keyed by id(): Starlette WebSockets are Mappings and not hashable
        self._firehose: Dict[int, Subscriber] = {}
        self._topics: Dict[str, Dict[int, Subscriber]] = {}
        self._latest: "OrderedDict[str, dict]" = OrderedDict()
        self._replay_limit = replay_limit

    # ── Subscriptions ────────────────────────────────────────────────────

    def subscribe_all(self, subscriber: Subscriber) -> None:
        self._firehose[id(subscriber)] = subscriber
        logger.debug("Firehose subscriber added (%d total)", len(self._firehose))

    async def subscribe_job(self, job_id: str, subscriber: Subscriber) -> None:
        """Subscribe to one job and replay its latest event, if any."""
        self._topics.setdefault(job_id, {})[id(subscriber)] = subscriber
        latest = self._latest.get(job_id)
        if latest is not None:
            await self._send(subscriber, latest)

    def unsubscribe(self, subscriber: Subscriber) -> None:
        key = id(subscriber)
        self._firehose.pop(key, None)
        for job_id in list(self._topics):
            subscribers = self._topics[job_id]
            subscribers.pop(key, None)
            if not subscribers:
                del self._topics[job_id]

    @property
    def subscriber_count(self) -> int:
        keys = set(self._firehose)
        for subscribers in self._topics.values():
            keys.update(subscribers)
        return len(keys)

    def latest(self, job_id: str) -> Optional[dict]:
        return self._latest.get(job_id)

    # ── Publishing ───────────────────────────────────────────────────────

    async def publish(self, event: BaseModel) -> None:
        """Send ``event`` to the firehose and to the job's topic."""
        payload = event.model_dump(mode="json", by_alias=True)
        job_id = payload["jobId"]
        self._remember(job_id, payload)

        targets = dict(self._firehose)
        targets.update(self._topics.get(job_id, {}))
        for subscriber in targets.values():
            await self._send(subscriber, payload)

    def _remember(self, job_id: str, payload: dict) -> None:
        self._latest[job_id] = payload
        self._latest.move_to_end(job_id)
        # Only finished jobs are evicted; running ones keep their slot
        overflow = len(self._latest) - self._replay_limit
        if overflow <= 0:
            return
        for stale_id in list(self._latest):
            if overflow <= 0:
                break
            if self._latest[stale_id]["type"] in TERMINAL_EVENTS:
                del self._latest[stale_id]
                overflow -= 1

    async def _send(self, subscriber: Subscriber, payload: dict) -> None:
        try:
            await subscriber.send_json(payload)
        except Exception as exc:
            logger.debug("Dropping dead subscriber: %s", exc)
            self.unsubscribe(subscriber)
