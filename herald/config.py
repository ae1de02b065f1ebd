# herald/config.py
import os
import json
import asyncio
from typing import Any, Dict

JSONDict = Dict[str, Any]

CONFIG_PATH = os.environ.get("HERALD_CONFIG_PATH", "data/config.json")

DEFAULT_CFG: JSONDict = {
    "announcements": {
        "history_path": "data/history.json",
        "history_limit": 20,
        "default_timezone": "UTC",
        "guild_id": None,
        "required_role_id": None,
        "timezones": [
            "UTC",
            "Europe/Moscow",
            "Europe/London",
            "Europe/Berlin",
            "America/New_York",
            "America/Los_Angeles",
            "Asia/Tokyo",
            "Asia/Shanghai",
            "Australia/Sydney",
        ],
    }
}

_lock = asyncio.Lock()

def _deep_merge(dst: JSONDict, src: JSONDict) -> JSONDict:
    # Only the announcements section is nested; shallow per-section is enough
    merged = json.loads(json.dumps(dst))
    for key, val in (src or {}).items():
        if isinstance(val, dict) and isinstance(merged.get(key), dict):
            merged[key].update(val)
        else:
            merged[key] = val
    return merged

def announcements_cfg(cfg: JSONDict) -> JSONDict:
    """Announcement section with env overrides applied."""
    section = dict((cfg or {}).get("announcements") or DEFAULT_CFG["announcements"])
    env_history = os.environ.get("HERALD_HISTORY_PATH")
    if env_history:
        section["history_path"] = env_history
    return section

async def load_config(path: str | None = None) -> JSONDict:
    path = path or CONFIG_PATH
    if not os.path.exists(path):
        async with _lock:
            os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
            with open(path, "w", encoding="utf-8") as f:
                json.dump(DEFAULT_CFG, f, ensure_ascii=False, indent=2)
        return json.loads(json.dumps(DEFAULT_CFG))
    with open(path, "r", encoding="utf-8") as f:
        raw = json.load(f)
    return _deep_merge(DEFAULT_CFG, raw)

async def save_config(cfg: JSONDict, path: str | None = None) -> None:
    path = path or CONFIG_PATH
    async with _lock:
        with open(path, "w", encoding="utf-8") as f:
            json.dump(cfg, f, ensure_ascii=False, indent=2)
