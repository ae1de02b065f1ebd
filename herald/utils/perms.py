from __future__ import annotations
from typing import Any, Callable, Optional
import discord
from discord.ext import commands

def meets_role_floor(member: discord.Member, required_role: Optional[discord.Role]) -> bool:
    """True when the member holds any role positioned at or above `required_role`."""
    if required_role is None:
        return False
    return any(r.position >= required_role.position for r in member.roles)

def operator_check_factory(get_cfg: Callable[[], dict]):
    def predicate(ctx: commands.Context) -> bool:
        if not isinstance(ctx.author, discord.Member) or ctx.guild is None:
            return False
        if ctx.author.guild_permissions.administrator:
            return True
        rid: Any = ((get_cfg() or {}).get("announcements") or {}).get("required_role_id")
        if not rid:
            return False
        try:
            role = ctx.guild.get_role(int(rid))
        except (TypeError, ValueError):
            return False
        return meets_role_floor(ctx.author, role)
    return predicate
