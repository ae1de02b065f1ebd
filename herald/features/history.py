# herald/features/history.py
from __future__ import annotations

import json
import logging
import uuid
from datetime import datetime
from typing import Any, Iterable, List, Optional

from ..models import Announcement
from ..utils.io_helpers import read_json, utcnow, write_json

log = logging.getLogger(__name__)


class HistoryStore:
    """
    Every announcement ever submitted, as one JSON array on disk.

    Each mutation re-reads and rewrites the whole document. Reads and writes
    are synchronous, so on a single event loop two mutations never interleave;
    a second process writing the same file is last-write-wins.

    Entries that can't be read as an Announcement are carried through writes
    untouched, in their original position.
    """

    def __init__(self, path: str):
        self.path = path

    # ---- whole-document primitives ----
    def _load(self) -> List[Any]:
        """Document entries in order: Announcements, or the raw value where parsing failed."""
        try:
            raw = read_json(self.path, default=[])
        except FileNotFoundError:
            self._save([])
            return []
        except (OSError, json.JSONDecodeError, UnicodeDecodeError) as e:
            log.warning("History at %s unreadable (%s); starting a fresh one", self.path, e)
            self._save([])
            return []
        if not isinstance(raw, list):
            log.warning("History at %s is not a list; starting a fresh one", self.path)
            self._save([])
            return []

        entries: List[Any] = []
        assigned = []
        for entry in raw:
            if not isinstance(entry, dict):
                entries.append(entry)
                continue
            if not entry.get("id"):
                # the id has to be the same on every later read
                entry["id"] = uuid.uuid4().hex
                assigned.append(entry["id"])
            try:
                entries.append(Announcement.from_dict(entry))
            except (TypeError, ValueError, AttributeError) as e:
                log.warning("Keeping unreadable history record %r as-is: %s", entry.get("id"), e)
                entries.append(entry)
        if assigned:
            log.info("Assigned ids to %d history record(s) without one: %s", len(assigned), ", ".join(assigned))
            self._save(entries)
        return entries

    def _save(self, entries: Iterable[Any]) -> None:
        write_json(self.path, [e.to_dict() if isinstance(e, Announcement) else e for e in entries])

    def read_all(self) -> List[Announcement]:
        return [e for e in self._load() if isinstance(e, Announcement)]

    def write_all(self, items: Iterable[Announcement]) -> None:
        """Replace the whole document with `items`."""
        self._save(items)

    # ---- record helpers ----
    def get(self, ann_id: str) -> Optional[Announcement]:
        return next((a for a in self.read_all() if a.id == ann_id), None)

    def append(self, ann: Announcement) -> None:
        entries = self._load()
        entries.append(ann)
        self._save(entries)

    def update(self, ann_id: str, *, only_if_open: bool = False, **changes: Any) -> Optional[Announcement]:
        entries = self._load()
        for item in entries:
            if isinstance(item, Announcement) and item.id == ann_id:
                if only_if_open and (item.is_sent or item.is_canceled):
                    log.info("History record %s already %s; leaving it", ann_id, item.lifecycle_state.value)
                    return item
                for key, val in changes.items():
                    setattr(item, key, val)
                self._save(entries)
                return item
        log.warning("History has no record %s to update", ann_id)
        return None

    def mark_sent(self, ann_id: str, message_id: Optional[str] = None, at: Optional[datetime] = None) -> Optional[Announcement]:
        return self.update(
            ann_id, only_if_open=True, is_sent=True, sent_at=at or utcnow(), delivered_message_id=message_id
        )

    def mark_canceled(self, ann_id: str, at: Optional[datetime] = None) -> Optional[Announcement]:
        return self.update(ann_id, only_if_open=True, is_canceled=True, canceled_at=at or utcnow())

    def mark_failed(
        self,
        ann_id: str,
        reason: str,
        message_id: Optional[str] = None,
        at: Optional[datetime] = None,
    ) -> Optional[Announcement]:
        return self.update(
            ann_id,
            only_if_open=True,
            is_failed=True,
            failed_at=at or utcnow(),
            failure_reason=reason,
            delivered_message_id=message_id,
        )

    def recent(self, limit: int = 20) -> List[Announcement]:
        """Newest first."""
        items = self.read_all()
        return list(reversed(items[-limit:])) if limit > 0 else []
