"""
ExternalVideoTracker - Outbound click and return detection.

Records the moment a visitor leaves for an external video and, when the page
becomes visible again, turns the elapsed dwell time into an estimated watch
percentage.

Key behaviors:
- track_click never raises and never awaits; delivery happens on a consumer task
- One shared visibility listener, installed only while trackers are pending
- A single visibility return resolves every pending tracker (best-effort
  attribution, there is no cross-site correlation id)
- Dwell below the minimum is discarded silently; trackers past the maximum
  expire without a return event
- Undeliverable events land in a bounded per-type fallback queue
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections import deque
from collections.abc import Sequence
from dataclasses import replace
from datetime import UTC, datetime
from typing import Any
from uuid import uuid4

from travelweb.domain.events import (
    ClickEvent,
    EventType,
    Platform,
    ReturnEvent,
    TrackingEvent,
    VideoRef,
    resolve_event_type,
    resolve_platform,
)

from ._estimate import estimate_watch_percentage, nominal_duration_seconds, user_factor
from .models import DEFAULT_CONFIG, PendingTracker, TrackerConfig
from .ports import (
    CatalogPort,
    TimePort,
    TransportError,
    TransportPort,
    VisibilityPort,
    WatchHistoryPort,
)

logger = logging.getLogger(__name__)


# --- Default Implementations ---


class DefaultTimePort:
    """Default time provider."""

    def now_utc(self) -> datetime:
        return datetime.now(UTC)

    def monotonic(self) -> float:
        return time.monotonic()


class InMemoryWatchHistory:
    """In-memory watch history for testing/dev."""

    def __init__(self, max_entries: int = 50) -> None:
        self._rates: dict[str, deque[float]] = {}
        self._max_entries = max_entries

    def get_completion_rates(self, visitor_key: str) -> list[float]:
        return list(self._rates.get(visitor_key, ()))

    def record(self, visitor_key: str, watch_percentage: float) -> None:
        self._rates.setdefault(visitor_key, deque(maxlen=self._max_entries)).append(
            watch_percentage
        )


class FallbackQueue:
    """
    Bounded local store for undeliverable events.

    Keeps the most recent N events per type; older ones are evicted FIFO.
    """

    def __init__(self, max_per_type: int = 100) -> None:
        self._max_per_type = max_per_type
        self._queues: dict[EventType, deque[TrackingEvent]] = {
            t: deque(maxlen=max_per_type) for t in EventType
        }

    @property
    def max_per_type(self) -> int:
        return self._max_per_type

    def resize(self, max_per_type: int) -> None:
        """Change the per-type bound, keeping the most recent events."""
        self._max_per_type = max_per_type
        self._queues = {t: deque(q, maxlen=max_per_type) for t, q in self._queues.items()}

    def add(self, event: TrackingEvent) -> None:
        self._queues[event.event_type].append(event)

    def records(self, event_type: EventType) -> list[dict[str, Any]]:
        return [e.to_record() for e in self._queues[event_type]]

    def clear(self, event_type: EventType | None = None) -> None:
        if event_type is None:
            for q in self._queues.values():
                q.clear()
        else:
            self._queues[event_type].clear()

    def drain(self) -> list[TrackingEvent]:
        """Remove and return every queued event, clicks first."""
        drained: list[TrackingEvent] = []
        for event_type in (EventType.CLICK, EventType.RETURN):
            q = self._queues[event_type]
            drained.extend(q)
            q.clear()
        return drained

    def __len__(self) -> int:
        return sum(len(q) for q in self._queues.values())


# --- Event Dispatcher ---


class EventDispatcher:
    """
    Consumer side of the tracker's event channel.

    Events are put on an asyncio.Queue without blocking; a background task
    drains whatever is queued and hands it to the transport as one batch.
    """

    def __init__(self, transport: TransportPort, fallback: FallbackQueue) -> None:
        self._transport = transport
        self._fallback = fallback
        self._queue: asyncio.Queue[TrackingEvent] | None = None
        self._task: asyncio.Task[None] | None = None

    @property
    def transport(self) -> TransportPort:
        return self._transport

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def submit(self, event: TrackingEvent) -> None:
        """Queue an event for delivery. Requires a running event loop."""
        if self._queue is None:
            self._queue = asyncio.Queue()
        if not self.running:
            self._task = asyncio.get_running_loop().create_task(self._run())
        self._queue.put_nowait(event)

    async def _run(self) -> None:
        assert self._queue is not None
        queue = self._queue
        while True:
            batch = [await queue.get()]
            while not queue.empty():
                batch.append(queue.get_nowait())
            try:
                await self.deliver(batch)
            finally:
                for _ in batch:
                    queue.task_done()

    async def deliver(self, events: Sequence[TrackingEvent]) -> bool:
        """Send events now; on failure they go to the fallback queue."""
        if not events:
            return True
        try:
            await self._transport.send(list(events))
        except TransportError as e:
            logger.warning("Transport failed for %d event(s), keeping locally: %s", len(events), e)
        except Exception:
            logger.exception("Unexpected transport failure for %d event(s)", len(events))
        else:
            logger.debug("Delivered %d event(s)", len(events))
            return True

        for event in events:
            self._fallback.add(event)
        return False

    async def flush(self) -> None:
        """Wait until every queued event has been handled."""
        if self._queue is not None and self.running:
            await self._queue.join()

    async def close(self) -> None:
        await self.flush()
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        # Transports that hold a connection pool expose aclose()
        aclose = getattr(self._transport, "aclose", None)
        if aclose is not None:
            await aclose()


# --- External Video Tracker ---


class ExternalVideoTracker:
    """
    Tracks outbound video clicks and infers watch time on return.

    Must be driven from a running asyncio event loop.
    """

    def __init__(
        self,
        transport: TransportPort,
        visibility: VisibilityPort,
        *,
        config: TrackerConfig | None = None,
        time_port: TimePort | None = None,
        history: WatchHistoryPort | None = None,
        catalog: CatalogPort | None = None,
        session_id: str | None = None,
        user_id: str | None = None,
    ) -> None:
        self._config = config or DEFAULT_CONFIG
        self._visibility = visibility
        self._time = time_port or DefaultTimePort()
        self._history = history
        self._catalog = catalog
        self.session_id = session_id or uuid4().hex
        self.user_id = user_id

        self._pending: dict[str, PendingTracker] = {}
        self._listener_installed = False
        self._fallback = FallbackQueue(self._config.fallback_queue_size)
        self._dispatcher = EventDispatcher(transport, self._fallback)

    # --- Introspection ---

    @property
    def config(self) -> TrackerConfig:
        return self._config

    @property
    def transport(self) -> TransportPort:
        return self._dispatcher.transport

    @property
    def enabled(self) -> bool:
        return self._config.enabled

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    @property
    def listener_installed(self) -> bool:
        return self._listener_installed

    @property
    def visitor_key(self) -> str:
        return self.user_id or self.session_id

    # --- Click side ---

    def track_click(self, video: VideoRef, platform_hint: str | None = None) -> str | None:
        """
        Record an outbound click and start waiting for the return.

        Returns:
            The click id, or None when tracking is disabled or failed.
            Without a running event loop the click is kept locally and no
            return is awaited.
        """
        if not self._config.enabled:
            return None

        try:
            platform = resolve_platform(platform_hint) if platform_hint else video.platform
            click = ClickEvent(
                id=uuid4().hex,
                video_id=video.video_id,
                video_title=video.title,
                platform=platform,
                click_time=self._time.now_utc(),
                session_id=self.session_id,
                user_id=self.user_id,
            )
        except Exception:
            logger.exception("Failed to build click for video %s", getattr(video, "video_id", video))
            return None

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning("No running event loop, keeping click %s locally", click.id)
            self._fallback.add(click)
            return click.id

        try:
            tracker = PendingTracker(
                click_id=click.id,
                video=video,
                platform=platform,
                click_time=click.click_time,
                started_at=self._time.monotonic(),
            )
            tracker.expiry = loop.call_later(
                self._config.max_dwell_ms / 1000,
                self._expire,
                click.id,
            )
            self._pending[click.id] = tracker
            self._install_listener()

            self._dispatcher.submit(click)
        except Exception:
            logger.exception("Failed to track click %s, keeping it locally", click.id)
            self._remove(click.id)
            self._fallback.add(click)
            return None

        logger.debug("Tracking click %s on video %s (%s)", click.id, video.video_id, platform.value)
        return click.id

    # --- Return side ---

    def _on_visibility(self, state: str) -> None:
        if state != "visible":
            return
        try:
            for click_id in list(self._pending):
                self._resolve(click_id)
        except Exception:
            logger.exception("Failed to resolve pending trackers on visibility return")

    def track_return(self, click_id: str) -> ReturnEvent | None:
        """Resolve one specific pending tracker now."""
        if click_id not in self._pending:
            logger.debug("No pending tracker for click %s", click_id)
            return None
        try:
            return self._resolve(click_id)
        except Exception:
            logger.exception("Failed to resolve tracker %s", click_id)
            return None

    def _resolve(self, click_id: str) -> ReturnEvent | None:
        tracker = self._remove(click_id)
        if tracker is None:
            return None

        dwell_ms = (self._time.monotonic() - tracker.started_at) * 1000
        if dwell_ms < self._config.min_dwell_ms:
            logger.debug("Discarding click %s: dwell %.0fms below minimum", click_id, dwell_ms)
            return None
        if dwell_ms > self._config.max_dwell_ms:
            logger.debug("Discarding click %s: dwell %.0fms past expiry", click_id, dwell_ms)
            return None

        percentage = self.estimate(tracker.video, tracker.platform, dwell_ms)
        event = ReturnEvent(
            id=uuid4().hex,
            click_id=click_id,
            return_time=self._time.now_utc(),
            time_spent_ms=int(dwell_ms),
            estimated_watch_percentage=percentage,
            session_id=self.session_id,
            user_id=self.user_id,
            video_id=tracker.video.video_id,
            platform=tracker.platform,
        )

        if self._history is not None:
            self._history.record(self.visitor_key, percentage)
        self._dispatcher.submit(event)
        return event

    def estimate(self, video: VideoRef, platform: Platform, dwell_ms: float) -> float:
        """Estimated watch percentage for a dwell on this video."""
        known = video.duration_seconds
        if known is None and self._catalog is not None:
            known = self._catalog.get_duration_seconds(video.video_id)
        duration = nominal_duration_seconds(platform, known, self._config)

        prior = self._history.get_completion_rates(self.visitor_key) if self._history else []
        return estimate_watch_percentage(
            dwell_ms,
            platform,
            duration,
            user_factor(prior, self._config),
            self._config,
        )

    def _expire(self, click_id: str) -> None:
        if self._remove(click_id) is not None:
            logger.debug("Tracker for click %s expired without a return", click_id)

    def _remove(self, click_id: str) -> PendingTracker | None:
        tracker = self._pending.pop(click_id, None)
        if tracker is None:
            return None
        if tracker.expiry is not None:
            tracker.expiry.cancel()
        if not self._pending:
            self._uninstall_listener()
        return tracker

    # --- Visibility listener ---

    def _install_listener(self) -> None:
        if not self._listener_installed:
            self._visibility.add_listener(self._on_visibility)
            self._listener_installed = True

    def _uninstall_listener(self) -> None:
        if self._listener_installed:
            self._visibility.remove_listener(self._on_visibility)
            self._listener_installed = False

    # --- Local fallback ---

    def get_local_records(self, event_type: EventType | str) -> list[dict[str, Any]]:
        """Records that could not be delivered, oldest first."""
        resolved = resolve_event_type(event_type)
        if resolved is None:
            logger.warning("Unknown event type %r for local records", event_type)
            return []
        return self._fallback.records(resolved)

    def clear_local_records(self, event_type: EventType | str | None = None) -> None:
        if event_type is None:
            self._fallback.clear()
            return
        resolved = resolve_event_type(event_type)
        if resolved is None:
            logger.warning("Unknown event type %r, nothing cleared", event_type)
            return
        self._fallback.clear(resolved)

    async def retry_fallback(self) -> int:
        """
        Resend every locally kept event.

        Returns:
            Number of events delivered; failures return to the fallback queue
        """
        events = self._fallback.drain()
        if not events:
            return 0
        delivered = await self._dispatcher.deliver(events)
        if delivered:
            logger.info("Resent %d locally stored event(s)", len(events))
            return len(events)
        return 0

    # --- Lifecycle ---

    def update_config(self, **changes: Any) -> TrackerConfig:
        """
        Replace configuration fields; pending trackers keep their timers.

        Unknown or invalid fields leave the configuration unchanged.
        """
        try:
            config = replace(self._config, **changes)
        except TypeError as e:
            logger.warning("Ignoring config update %s: %s", sorted(changes), e)
            return self._config
        size = config.fallback_queue_size
        if not isinstance(size, int) or isinstance(size, bool) or size < 1:
            logger.warning("Ignoring fallback_queue_size %r", size)
            return self._config

        self._config = config
        if config.fallback_queue_size != self._fallback.max_per_type:
            self._fallback.resize(config.fallback_queue_size)
        if not config.enabled:
            self._cancel_all()
        return self._config

    async def flush(self) -> None:
        """Wait for queued events to be delivered or kept locally."""
        await self._dispatcher.flush()

    async def close(self) -> None:
        """Drop pending trackers, remove the listener and stop delivery."""
        self._cancel_all()
        await self._dispatcher.close()

    def _cancel_all(self) -> None:
        for click_id in list(self._pending):
            self._remove(click_id)
        self._uninstall_listener()
