"""Shared fixtures: a tmp history file, a fixed clock, fake timers and mocked Discord objects."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Callable, List
from unittest.mock import AsyncMock, MagicMock

import discord
import pytest

from herald.features.history import HistoryStore
from herald.models import DeliveryResult

NOW = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)


class FakeHandle:
    def __init__(self, delay: float, callback: Callable[[], None]):
        self.delay = delay
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class FakeTimers:
    """Stands in for loop.call_later; tests fire handles by hand."""

    def __init__(self) -> None:
        self.handles: List[FakeHandle] = []

    def __call__(self, delay: float, callback: Callable[[], None]) -> FakeHandle:
        handle = FakeHandle(delay, callback)
        self.handles.append(handle)
        return handle


def make_text_channel(channel_id: int = 42, message_id: int = 555) -> MagicMock:
    channel = MagicMock(spec=discord.TextChannel)
    channel.id = channel_id
    channel.send = AsyncMock(return_value=MagicMock(id=message_id))
    return channel


@pytest.fixture
def clock() -> Callable[[], datetime]:
    return lambda: NOW


@pytest.fixture
def timers() -> FakeTimers:
    return FakeTimers()


@pytest.fixture
def store(tmp_path) -> HistoryStore:
    return HistoryStore(str(tmp_path / "data" / "history.json"))


@pytest.fixture
def text_channel() -> MagicMock:
    return make_text_channel()


@pytest.fixture
def client(text_channel: MagicMock) -> MagicMock:
    client = MagicMock()
    client.get_channel.return_value = text_channel
    client.fetch_channel = AsyncMock(return_value=None)
    return client


@pytest.fixture
def ok_dispatcher() -> MagicMock:
    dispatcher = MagicMock()
    dispatcher.deliver = AsyncMock(return_value=DeliveryResult.ok(555))
    return dispatcher
