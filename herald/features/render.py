# herald/features/render.py
from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, List, Optional

import discord

from ..models import (
    EVERYONE,
    MAX_BUTTONS,
    Announcement,
    AttachmentFile,
    AttachmentPlacement,
    Button,
    EmbedSpec,
)

_HEX6 = re.compile(r"^[0-9A-Fa-f]{6}$")
_MAX_COLOR = 0xFFFFFF


@dataclass
class RenderedMessage:
    """Everything needed to post one announcement; building it touches neither disk nor network."""

    content: Optional[str]
    allowed_mentions: discord.AllowedMentions
    embed: Optional[discord.Embed] = None
    buttons: List[Button] = field(default_factory=list)
    files: List[AttachmentFile] = field(default_factory=list)
    followup_files: List[AttachmentFile] = field(default_factory=list)

    def has_body(self) -> bool:
        return bool(self.content or self.embed or self.buttons)

    def make_view(self) -> Optional[discord.ui.View]:
        # View() needs a running loop, so it is built at send time
        if not self.buttons:
            return None
        view = discord.ui.View(timeout=None)
        for b in self.buttons:
            view.add_item(discord.ui.Button(label=b.label, url=b.url, style=discord.ButtonStyle.link))
        return view


def parse_color(val: Any) -> Optional[int]:
    """Return an int color or None; bad input degrades to no color instead of failing the send."""
    if val is None or isinstance(val, bool):
        return None
    if isinstance(val, int):
        return val if 0 <= val <= _MAX_COLOR else None
    if isinstance(val, str):
        s = val.strip()
        hexpart = s.removeprefix("#").removeprefix("0x").removeprefix("0X")
        if _HEX6.match(hexpart):
            return int(hexpart, 16)
        try:
            num = int(s, 10)
        except ValueError:
            return None
        return num if 0 <= num <= _MAX_COLOR else None
    return None


def resolve_mention(role_mention: Optional[str]) -> tuple[Optional[str], discord.AllowedMentions]:
    """Mention token plus an allow-list that pings exactly the selected target and nobody else."""
    target = (role_mention or "").strip()
    if not target:
        return None, discord.AllowedMentions.none()
    if target in (EVERYONE, "everyone"):
        return EVERYONE, discord.AllowedMentions(everyone=True, users=False, roles=False, replied_user=False)
    rid = target[3:-1] if target.startswith("<@&") and target.endswith(">") else target
    if not rid.isdigit():
        return None, discord.AllowedMentions.none()
    return f"<@&{rid}>", discord.AllowedMentions(
        everyone=False, users=False, roles=[discord.Object(id=int(rid))], replied_user=False
    )


def build_embed(spec: EmbedSpec, fallback_description: str = "") -> discord.Embed:
    emb = discord.Embed(
        title=spec.title or None,
        description=spec.description or fallback_description or None,
    )
    color = parse_color(spec.color)
    if color is not None:
        emb.color = color
    if spec.image_url:
        emb.set_image(url=spec.image_url)
    if spec.thumbnail_url:
        emb.set_thumbnail(url=spec.thumbnail_url)
    if spec.footer_text:
        emb.set_footer(text=str(spec.footer_text))
    return emb


def usable_buttons(buttons: List[Button]) -> List[Button]:
    return [b for b in buttons if b.label and b.url][:MAX_BUTTONS]


def render_announcement(ann: Announcement) -> RenderedMessage:
    mention, allowed = resolve_mention(ann.role_mention)

    if ann.embed is not None:
        # embed carries the body; content only pings
        content = mention
        embed = build_embed(ann.embed, fallback_description=ann.text_content)
    else:
        content = ((mention + " ") if mention else "") + (ann.text_content or "")
        embed = None

    rendered = RenderedMessage(
        content=content or None,
        allowed_mentions=allowed,
        embed=embed,
        buttons=usable_buttons(ann.buttons),
    )

    attachments = list(ann.attachments)
    if attachments and ann.attachment_placement is AttachmentPlacement.AFTER_TEXT and rendered.has_body():
        rendered.followup_files = attachments
    else:
        rendered.files = attachments
    return rendered
