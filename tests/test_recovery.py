"""Tests for the startup pass that re-arms pending announcements."""

import json
from datetime import timedelta

from herald.features.recovery import recover_pending
from herald.features.scheduler import MAX_DELAY, Scheduler
from herald.models import Announcement, LifecycleState

from .conftest import NOW


def _ann(text, offset, **flags) -> Announcement:
    return Announcement(
        channel_id="42",
        text_content=text,
        scheduled_time=NOW + offset if offset is not None else None,
        is_scheduled=offset is not None,
        **flags,
    )


def test_only_future_pending_items_are_rearmed(ok_dispatcher, store, clock, timers):
    future = _ann("future", timedelta(hours=1))
    past = _ann("past", -timedelta(hours=1))
    sent = _ann("sent", timedelta(hours=1), is_sent=True)
    canceled = _ann("canceled", timedelta(hours=1), is_canceled=True)
    failed = _ann("failed", timedelta(hours=1), is_failed=True)
    immediate = _ann("immediate", None, is_sent=True)
    store.write_all([future, past, sent, canceled, failed, immediate])
    sched = Scheduler(ok_dispatcher, store, clock=clock, call_later=timers)

    report = recover_pending(store, sched, now=NOW)

    assert report.rearmed == [future.id]
    assert report.stale == [past.id]
    assert sched.armed_ids() == [future.id]
    assert timers.handles[0].delay == 3600


def test_stale_items_stay_pending(ok_dispatcher, store, clock, timers):
    past = _ann("past", -timedelta(minutes=5))
    store.write_all([past])
    sched = Scheduler(ok_dispatcher, store, clock=clock, call_later=timers)

    recover_pending(store, sched, now=NOW)

    assert store.get(past.id).lifecycle_state is LifecycleState.PENDING
    ok_dispatcher.deliver.assert_not_called()


def test_items_past_horizon_are_reported(ok_dispatcher, store, clock, timers):
    too_far = _ann("far", MAX_DELAY + timedelta(days=1))
    store.write_all([too_far])
    sched = Scheduler(ok_dispatcher, store, clock=clock, call_later=timers)

    report = recover_pending(store, sched, now=NOW)

    assert report.rejected == [too_far.id]
    assert sched.armed_ids() == []


def test_empty_or_missing_history(ok_dispatcher, store, clock, timers):
    sched = Scheduler(ok_dispatcher, store, clock=clock, call_later=timers)

    report = recover_pending(store, sched, now=NOW)

    assert report.rearmed == [] and report.stale == []


async def test_record_without_id_is_sent_once_and_marked(ok_dispatcher, store, clock, timers, tmp_path):
    record = _ann("legacy", timedelta(minutes=5)).to_dict()
    del record["id"]
    (tmp_path / "data").mkdir()
    with open(store.path, "w", encoding="utf-8") as f:
        json.dump([record], f)
    sched = Scheduler(ok_dispatcher, store, clock=clock, call_later=timers)

    report = recover_pending(store, sched, now=NOW)
    [ann_id] = report.rearmed
    await sched.fire(ann_id)

    ok_dispatcher.deliver.assert_awaited_once()
    assert [a.lifecycle_state for a in store.read_all()] == [LifecycleState.SENT]
    assert recover_pending(store, sched, now=NOW).rearmed == []
