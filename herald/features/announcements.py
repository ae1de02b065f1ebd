# herald/features/announcements.py
from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

import discord
from discord.ext import commands

from ..config import announcements_cfg, save_config
from ..models import (
    EVERYONE,
    MAX_BUTTON_LABEL,
    MAX_BUTTONS,
    Announcement,
    AnnouncementRejected,
    AttachmentFile,
    AttachmentPlacement,
    Author,
    Button,
    CreateResult,
    EmbedSpec,
    RejectReason,
)
from ..utils.discord_resolvers import fetch_guild_data, resolve_channel_any
from ..utils.io_helpers import format_local, parse_when
from ..utils.perms import operator_check_factory
from .dispatcher import Dispatcher
from .history import HistoryStore
from .recovery import recover_pending
from .render import render_announcement
from .scheduler import Scheduler

log = logging.getLogger(__name__)

_URL_RE = re.compile(r"^https?://", re.IGNORECASE)


# ---- Request + validation ----
@dataclass
class AnnouncementRequest:
    """What the composer hands over; loose shapes (JSON strings, dicts) are normalized by validate_request."""

    channel_id: Any
    text_content: Optional[str] = ""
    role_target: Optional[str] = None
    buttons: Union[str, List[Any], None] = field(default_factory=list)
    embed: Union[str, Dict[str, Any], EmbedSpec, None] = None
    attachments: List[Any] = field(default_factory=list)
    attachment_placement: Any = AttachmentPlacement.BEFORE_TEXT
    scheduled_time: Any = None
    timezone: Optional[str] = None


def parse_embed(raw: Any) -> Optional[EmbedSpec]:
    if raw is None or isinstance(raw, EmbedSpec):
        return raw
    if isinstance(raw, str):
        if not raw.strip():
            return None
        try:
            raw = json.loads(raw)
        except json.JSONDecodeError as e:
            raise AnnouncementRejected(RejectReason.INVALID_EMBED, f"Embed is not valid JSON: {e.msg}")
    if not isinstance(raw, dict):
        raise AnnouncementRejected(RejectReason.INVALID_EMBED, "Embed must be a JSON object.")
    return EmbedSpec.from_dict(raw)


def _embed_has_content(spec: Optional[EmbedSpec]) -> bool:
    return bool(spec and (spec.title or spec.description or spec.image_url or spec.thumbnail_url or spec.footer_text))


def clean_buttons(raw: Any) -> List[Button]:
    """Keep well-formed link buttons, in order, at most five; anything else is dropped quietly."""
    if isinstance(raw, str):
        try:
            raw = json.loads(raw) if raw.strip() else []
        except json.JSONDecodeError:
            return []
    if not isinstance(raw, list):
        return []
    out: List[Button] = []
    for entry in raw:
        if isinstance(entry, dict):
            entry = Button.from_dict(entry)
        if not isinstance(entry, Button):
            continue
        label, url = entry.label.strip(), entry.url.strip()
        if label and url and len(label) <= MAX_BUTTON_LABEL and _URL_RE.match(url):
            out.append(Button(label=label, url=url))
    return out[:MAX_BUTTONS]


def normalize_role_target(raw: Optional[str]) -> Optional[str]:
    target = (raw or "").strip()
    if not target:
        return None
    if target.lower() in ("everyone", EVERYONE):
        return EVERYONE
    if target.startswith("<@&") and target.endswith(">"):
        return target[3:-1]
    return target


def _attachment(entry: Any) -> AttachmentFile:
    return entry if isinstance(entry, AttachmentFile) else AttachmentFile.from_dict(entry)


def validate_request(req: AnnouncementRequest, scheduler: Scheduler) -> Announcement:
    """Build an unsaved Announcement or raise AnnouncementRejected; no side effects either way."""
    channel_id = str(req.channel_id or "").strip()
    if not channel_id:
        raise AnnouncementRejected(RejectReason.MISSING_CHANNEL, "Pick a channel.")

    embed = parse_embed(req.embed)
    text = req.text_content or ""
    if not text.strip() and not _embed_has_content(embed):
        raise AnnouncementRejected(RejectReason.MISSING_CONTENT, "Write a message or fill in the embed.")

    when = None
    if req.scheduled_time not in (None, ""):
        when = parse_when(req.scheduled_time, req.timezone)
        if when is None:
            raise AnnouncementRejected(RejectReason.INVALID_TIME, f"Can't read scheduled time {req.scheduled_time!r}.")
        rejected = scheduler.check_time(when)
        if rejected:
            raise AnnouncementRejected(rejected.reason, rejected.message)

    placement = req.attachment_placement
    if not isinstance(placement, AttachmentPlacement):
        placement = AttachmentPlacement.parse(placement)

    return Announcement(
        channel_id=channel_id,
        text_content=text,
        role_mention=normalize_role_target(req.role_target),
        buttons=clean_buttons(req.buttons),
        embed=embed,
        attachments=[_attachment(a) for a in (req.attachments or [])],
        attachment_placement=placement,
        scheduled_time=when,
        is_scheduled=when is not None,
    )


# ---- Service ----
class AnnouncementService:
    """Entry points for composing and canceling announcements."""

    def __init__(self, store: HistoryStore, dispatcher: Dispatcher, scheduler: Scheduler):
        self.store = store
        self.dispatcher = dispatcher
        self.scheduler = scheduler

    async def create(self, req: AnnouncementRequest, author: Optional[Author] = None) -> CreateResult:
        try:
            ann = validate_request(req, self.scheduler)
        except AnnouncementRejected as e:
            log.info("Announcement rejected (%s): %s", e.reason.value, e.message)
            return CreateResult(False, reason=e.reason, message=e.message)

        ann.author = author
        self.store.append(ann)

        if ann.is_scheduled:
            sched = self.scheduler.schedule(ann)
            if not sched.accepted:
                self.store.mark_failed(ann.id, reason=sched.message)
                return CreateResult(False, id=ann.id, reason=sched.reason, message=sched.message)
            log.info("Announcement %s scheduled for channel %s", ann.id, ann.channel_id)
            return CreateResult(True, id=ann.id, message="Announcement scheduled.")

        result = await self.dispatcher.deliver(render_announcement(ann), ann.channel_id)
        if result.delivered:
            self.store.mark_sent(ann.id, message_id=result.message_id)
            return CreateResult(True, id=ann.id, message="Announcement sent.", delivery=result)
        self.store.mark_failed(ann.id, reason=result.detail, message_id=result.message_id)
        return CreateResult(False, id=ann.id, reason=result.reason, message=result.detail, delivery=result)

    def cancel(self, ann_id: str) -> bool:
        if not self.scheduler.cancel(ann_id):
            return False
        self.store.mark_canceled(ann_id)
        log.info("Announcement %s canceled", ann_id)
        return True

    def recent(self, limit: int = 20) -> List[Announcement]:
        return self.store.recent(limit)


# ---- Cog ----
_STATE_ICON = {
    "immediate": "📨",
    "pending": "⏳",
    "sent": "✅",
    "canceled": "🚫",
    "failed": "❌",
}


def _role_target(role: Optional[discord.Role]) -> Optional[str]:
    if role is None:
        return None
    return EVERYONE if role.is_default() else str(role.id)


class Announcements(commands.Cog):
    """Operator commands for posting, scheduling and canceling announcements."""

    def __init__(self, bot: commands.Bot, service: AnnouncementService):
        self.bot = bot
        self.service = service
        self._recovered = False
        self._is_operator = operator_check_factory(lambda: self.bot.config)

    def _cfg(self) -> Dict[str, Any]:
        return announcements_cfg(getattr(self.bot, "config", None) or {})

    def _author(self, ctx: commands.Context) -> Author:
        avatar = getattr(getattr(ctx.author, "display_avatar", None), "url", None)
        return Author(
            id=str(ctx.author.id),
            username=str(ctx.author),
            avatar=avatar,
            timezone=self._tz(),
        )

    async def cog_check(self, ctx: commands.Context) -> bool:
        return self._is_operator(ctx)

    async def cog_unload(self):
        await self.service.scheduler.shutdown()

    @commands.Cog.listener()
    async def on_ready(self):
        # on_ready fires again after reconnects; recover only once per process
        if self._recovered:
            return
        self._recovered = True
        recover_pending(self.service.store, self.service.scheduler)

    def _tz(self) -> str:
        return self._cfg().get("default_timezone") or "UTC"

    async def _reply(self, ctx: commands.Context, res: CreateResult, ok_text: str):
        if res.accepted:
            await ctx.send(f"✅ {ok_text} (`{res.id}`)")
        else:
            await ctx.send(f"❌ {res.message}")

    @commands.command(name="announce")
    async def announce_cmd(
        self, ctx: commands.Context, channel: str, role: Optional[discord.Role] = None, *, text: str
    ):
        ch = resolve_channel_any(ctx.guild, channel)
        if not ch:
            await ctx.send("❌ Provide a valid text channel mention, ID or name."); return
        req = AnnouncementRequest(channel_id=ch.id, text_content=text, role_target=_role_target(role))
        res = await self.service.create(req, self._author(ctx))
        await self._reply(ctx, res, f"Posted in {ch.mention}.")

    @commands.command(name="announceat")
    async def announce_at_cmd(
        self,
        ctx: commands.Context,
        channel: str,
        day: str,
        hhmm: str,
        role: Optional[discord.Role] = None,
        *,
        text: str,
    ):
        ch = resolve_channel_any(ctx.guild, channel)
        if not ch:
            await ctx.send("❌ Provide a valid text channel mention, ID or name."); return
        tz = self._tz()
        req = AnnouncementRequest(
            channel_id=ch.id,
            text_content=text,
            role_target=_role_target(role),
            scheduled_time=f"{day} {hhmm}",
            timezone=tz,
        )
        res = await self.service.create(req, self._author(ctx))
        await self._reply(ctx, res, f"Scheduled for {day} {hhmm} ({tz}) in {ch.mention}.")

    @commands.command(name="announcements")
    async def announcements_cmd(self, ctx: commands.Context, count: Optional[int] = None):
        cfg = self._cfg()
        limit = max(1, min(50, count or int(cfg.get("history_limit") or 20)))
        tz = self._tz()
        items = self.service.recent(limit)
        if not items:
            await ctx.send("ℹ️ No announcements yet."); return
        lines = []
        for a in items:
            state = a.lifecycle_state.value
            when = a.scheduled_time if a.is_scheduled else a.created_at
            preview = (a.text_content or (a.embed.title if a.embed else "") or "").replace("\n", " ")[:60]
            lines.append(f"{_STATE_ICON[state]} `{a.id}` · <#{a.channel_id}> · {state} · {format_local(when, tz)} · {preview}")
        await ctx.send("\n".join(lines)[:1900], allowed_mentions=discord.AllowedMentions.none())

    @commands.command(name="cancelannouncement")
    async def cancel_cmd(self, ctx: commands.Context, ann_id: str):
        if self.service.cancel(ann_id.strip()):
            await ctx.send(f"🚫 Canceled `{ann_id}`.")
        else:
            await ctx.send("❌ Not found or already sent.")

    @commands.command(name="announcetz")
    async def timezone_cmd(self, ctx: commands.Context, zone: Optional[str] = None):
        cfg = self._cfg()
        allowed = [str(z) for z in (cfg.get("timezones") or [])]
        if not zone:
            await ctx.send(f"🕒 Announcement timezone: **{self._tz()}**\nAvailable: {', '.join(allowed) or '_none_'}")
            return
        match = next((z for z in allowed if z.casefold() == zone.strip().casefold()), None)
        if match is None:
            await ctx.send(f"❌ `{zone}` is not in the configured timezones: {', '.join(allowed) or '_none_'}")
            return
        self.bot.config.setdefault("announcements", {})["default_timezone"] = match
        await save_config(self.bot.config)
        await ctx.send(f"✅ Announcement times are now read in **{match}**.")

    @commands.command(name="announcetargets")
    async def targets_cmd(self, ctx: commands.Context):
        data = await fetch_guild_data(self.bot, self._cfg().get("guild_id") or ctx.guild.id)
        chans = ", ".join(c["name"] for c in data["channels"][:40]) or "_none_"
        roles = ", ".join(r["name"] for r in data["roles"][:40]) or "_none_"
        await ctx.send(
            f"**{data['guild_name']}**\nChannels: {chans}\nRoles: @everyone, {roles}"[:1900],
            allowed_mentions=discord.AllowedMentions.none(),
        )


def build_service(bot: commands.Bot) -> AnnouncementService:
    cfg = announcements_cfg(getattr(bot, "config", None) or {})
    store = HistoryStore(cfg["history_path"])
    dispatcher = Dispatcher(bot)
    return AnnouncementService(store, dispatcher, Scheduler(dispatcher, store))


async def setup(bot: commands.Bot):
    service = build_service(bot)
    bot.announcements = service  # for the web panel running in the same process
    await bot.add_cog(Announcements(bot, service))
