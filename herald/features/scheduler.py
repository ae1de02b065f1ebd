# herald/features/scheduler.py
from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional, Protocol, Set

from ..models import Announcement, RejectReason, ScheduleResult
from ..utils.io_helpers import utcnow
from .dispatcher import Dispatcher
from .history import HistoryStore
from .render import render_announcement

log = logging.getLogger(__name__)

# Longest single-shot delay the timer layer accepts (2**31 - 1 ms, ~24.8 days).
MAX_DELAY = timedelta(milliseconds=2_147_483_647)


class TimerHandle(Protocol):
    def cancel(self) -> Any: ...


CallLater = Callable[[float, Callable[[], None]], TimerHandle]


def _loop_call_later(delay: float, callback: Callable[[], None]) -> TimerHandle:
    return asyncio.get_running_loop().call_later(delay, callback)


class Scheduler:
    """
    Owns the in-memory timers for pending announcements, keyed by announcement id.

    The History Store stays the source of truth: a timer is only a reminder to
    look the record up again and deliver it. Timers are lost on restart; see
    recovery.recover_pending for the startup pass.
    """

    def __init__(
        self,
        dispatcher: Dispatcher,
        store: HistoryStore,
        *,
        clock: Callable[[], datetime] = utcnow,
        call_later: Optional[CallLater] = None,
        max_delay: timedelta = MAX_DELAY,
    ):
        self.dispatcher = dispatcher
        self.store = store
        self.clock = clock
        self.max_delay = max_delay
        self._call_later = call_later or _loop_call_later
        self._timers: Dict[str, TimerHandle] = {}
        self._armed: Dict[str, Announcement] = {}
        self._inflight: Set[asyncio.Task] = set()

    # ---- queries ----
    def armed_ids(self) -> List[str]:
        return list(self._timers)

    def is_armed(self, ann_id: str) -> bool:
        return ann_id in self._timers

    def check_time(self, when: Optional[datetime]) -> Optional[ScheduleResult]:
        """A rejection for `when`, or None when it can be armed."""
        if when is None:
            return ScheduleResult(False, reason=RejectReason.INVALID_TIME, message="No scheduled time given.")
        delay = when - self.clock()
        if delay <= timedelta(0):
            return ScheduleResult(False, reason=RejectReason.PAST_TIME, message="Scheduled time must be in the future.")
        if delay > self.max_delay:
            days = self.max_delay.total_seconds() / 86400
            return ScheduleResult(
                False,
                reason=RejectReason.HORIZON_EXCEEDED,
                message=f"Scheduled time is too far ahead (max {days:.0f} days). Re-submit closer to the date.",
            )
        return None

    # ---- arm / disarm ----
    def schedule(self, ann: Announcement) -> ScheduleResult:
        rejected = self.check_time(ann.scheduled_time)
        if rejected:
            rejected.id = ann.id
            return rejected

        delay = (ann.scheduled_time - self.clock()).total_seconds()
        if ann.id in self._timers:
            # re-arming replaces the previous timer
            self._timers.pop(ann.id).cancel()
        self._timers[ann.id] = self._call_later(delay, lambda aid=ann.id: self._on_timer(aid))
        self._armed[ann.id] = ann
        log.info("Announcement %s armed for %s (in %.0fs)", ann.id, ann.scheduled_time.isoformat(), delay)
        return ScheduleResult(True, id=ann.id)

    def cancel(self, ann_id: str) -> bool:
        handle = self._timers.pop(ann_id, None)
        self._armed.pop(ann_id, None)
        if handle is None:
            return False
        handle.cancel()
        log.info("Announcement %s disarmed", ann_id)
        return True

    # ---- firing ----
    def _on_timer(self, ann_id: str) -> None:
        task = asyncio.get_running_loop().create_task(self.fire(ann_id))
        self._inflight.add(task)
        task.add_done_callback(self._inflight.discard)

    async def fire(self, ann_id: str) -> None:
        # one-shot: the mapping goes away whatever the outcome
        self._timers.pop(ann_id, None)
        armed = self._armed.pop(ann_id, None)
        try:
            ann = self.store.get(ann_id) or armed
            if ann is None:
                log.warning("Announcement %s fired but has no record; skipping", ann_id)
                return
            if ann.is_canceled or ann.is_sent:
                log.info("Announcement %s fired but is already %s; skipping", ann_id, ann.lifecycle_state.value)
                return

            result = await self.dispatcher.deliver(render_announcement(ann), ann.channel_id)
            if result.delivered:
                self.store.mark_sent(ann_id, message_id=result.message_id)
                log.info("Scheduled announcement %s sent to channel %s", ann_id, ann.channel_id)
            else:
                self.store.mark_failed(ann_id, reason=result.detail, message_id=result.message_id)
                log.error("Scheduled announcement %s failed (%s): %s", ann_id, result.reason, result.detail)
        except Exception:
            log.exception("Scheduled announcement %s crashed while firing", ann_id)

    # ---- lifecycle ----
    async def shutdown(self) -> None:
        for ann_id in list(self._timers):
            self.cancel(ann_id)
        if self._inflight:
            await asyncio.gather(*self._inflight, return_exceptions=True)
        log.info("Scheduler stopped")
