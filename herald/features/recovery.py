# herald/features/recovery.py
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

from ..utils.io_helpers import utcnow
from .history import HistoryStore
from .scheduler import Scheduler

log = logging.getLogger(__name__)


@dataclass
class RecoveryReport:
    rearmed: List[str] = field(default_factory=list)
    stale: List[str] = field(default_factory=list)
    rejected: List[str] = field(default_factory=list)


def recover_pending(store: HistoryStore, scheduler: Scheduler, now: Optional[datetime] = None) -> RecoveryReport:
    """
    Re-arm every pending announcement whose time is still ahead.

    Ones that came due while the process was down are left pending and only
    reported.
    """
    now = now or utcnow()
    report = RecoveryReport()
    for ann in store.read_all():
        if not ann.is_pending() or ann.scheduled_time is None:
            continue
        if ann.is_stale(now):
            report.stale.append(ann.id)
            continue
        result = scheduler.schedule(ann)
        if result.accepted:
            report.rearmed.append(ann.id)
        else:
            # e.g. history edited by hand to a time past the horizon
            report.rejected.append(ann.id)
            log.warning("Could not re-arm announcement %s: %s", ann.id, result.message)

    if report.stale:
        log.warning(
            "%d scheduled announcement(s) came due while offline and were not sent: %s",
            len(report.stale), ", ".join(report.stale),
        )
    log.info("Recovery re-armed %d announcement(s)", len(report.rearmed))
    return report
