from __future__ import annotations
import logging
from typing import Any, Dict, List, Optional
import discord

log = logging.getLogger(__name__)

def normalize(name: str) -> str:
    return (name or "").strip().casefold()

def resolve_channel_any(guild: discord.Guild, token: Any) -> Optional[discord.TextChannel]:
    if isinstance(token, int):
        ch = guild.get_channel(token)
        return ch if isinstance(ch, discord.TextChannel) else None
    if isinstance(token, str):
        s = token.strip()
        if s.startswith("<#") and s.endswith(">"):
            s = s[2:-1]
        if s.isdigit():
            ch = guild.get_channel(int(s))
            return ch if isinstance(ch, discord.TextChannel) else None
        key = normalize(s.lstrip("#"))
        for ch in guild.text_channels:
            if normalize(ch.name) == key:
                return ch
    return None

def _role_listed(role: discord.Role) -> bool:
    # managed/bot/booster roles carry tags; @everyone is offered separately
    return not role.managed and not role.is_default() and role.tags is None

async def fetch_guild_data(client: discord.Client, guild_id: Any) -> Dict[str, Any]:
    """Channels and roles an operator can pick from when composing an announcement."""
    try:
        guild = client.get_guild(int(guild_id)) or await client.fetch_guild(int(guild_id))
        channels = await guild.fetch_channels()
        roles = await guild.fetch_roles()
        me = guild.me

        out_channels: List[Dict[str, Any]] = []
        for ch in channels:
            if not isinstance(ch, discord.abc.Messageable):
                continue
            if me is not None and not ch.permissions_for(me).view_channel:
                continue
            out_channels.append({"id": str(ch.id), "name": f"#{ch.name}", "type": str(ch.type)})

        out_roles = [
            {"id": str(r.id), "name": r.name, "color": f"#{r.color.value:06x}"}
            for r in sorted(roles, key=lambda r: r.position, reverse=True)
            if _role_listed(r)
        ]
        return {"guild_name": guild.name, "channels": out_channels, "roles": out_roles}
    except Exception as e:
        log.error("Could not load guild %s: %s", guild_id, e)
        return {"guild_name": "Unknown", "channels": [], "roles": []}
