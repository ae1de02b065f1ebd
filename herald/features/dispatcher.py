# herald/features/dispatcher.py
from __future__ import annotations

import logging
from typing import Any, List, Optional

import discord

from ..models import AttachmentFile, DeliveryResult, FailureReason
from .render import RenderedMessage

log = logging.getLogger(__name__)


def _files(attachments: List[AttachmentFile]) -> List[discord.File]:
    files: List[discord.File] = []
    try:
        for a in attachments:
            files.append(discord.File(a.stored_path, filename=a.original_name or None))
    except Exception:
        for f in files:
            f.close()
        raise
    return files


class Dispatcher:
    """Posts a rendered announcement into a channel and reports what happened; never raises."""

    def __init__(self, client: discord.Client):
        self.client = client

    async def resolve_channel(self, channel_id: Any) -> Optional[Any]:
        try:
            cid = int(channel_id)
        except (TypeError, ValueError):
            return None
        ch = self.client.get_channel(cid)
        if ch is not None:
            return ch
        try:
            return await self.client.fetch_channel(cid)
        except (discord.NotFound, discord.InvalidData):
            return None

    async def deliver(self, rendered: RenderedMessage, channel_id: Any) -> DeliveryResult:
        first_id = None
        try:
            ch = await self.resolve_channel(channel_id)
            if ch is None:
                log.error("Channel %s not found", channel_id)
                return DeliveryResult.failed(FailureReason.CHANNEL_NOT_FOUND, f"Channel {channel_id} not found.")
            if not isinstance(ch, discord.abc.Messageable):
                log.error("Channel %s is not a text channel", channel_id)
                return DeliveryResult.failed(
                    FailureReason.CHANNEL_NOT_TEXT, f"Channel {channel_id} is not a text channel."
                )

            kwargs: dict = {"allowed_mentions": rendered.allowed_mentions}
            if rendered.content:
                kwargs["content"] = rendered.content
            if rendered.embed is not None:
                kwargs["embed"] = rendered.embed
            view = rendered.make_view()
            if view is not None:
                kwargs["view"] = view
            if rendered.files:
                kwargs["files"] = _files(rendered.files)

            sent = await ch.send(**kwargs)
            first_id = sent.id
        except discord.HTTPException as e:
            log.error("Discord rejected announcement for channel %s: %s", channel_id, e)
            return DeliveryResult.failed(FailureReason.SEND_FAILED, str(e) or type(e).__name__)
        except Exception as e:
            log.exception("Failed to send announcement to channel %s", channel_id)
            return DeliveryResult.failed(FailureReason.SEND_FAILED, str(e) or type(e).__name__)

        if rendered.followup_files:
            # attachments can't sit below text in one message; a failure here leaves the first post up
            try:
                await ch.send(files=_files(rendered.followup_files))
            except Exception as e:
                log.error("Follow-up attachments for message %s in channel %s failed: %s", first_id, channel_id, e)
                return DeliveryResult.failed(
                    FailureReason.FOLLOWUP_FAILED,
                    f"Message posted but attachments failed: {e}",
                    message_id=first_id,
                )

        log.info("Announcement delivered to channel %s as message %s", channel_id, first_id)
        return DeliveryResult.ok(first_id)
