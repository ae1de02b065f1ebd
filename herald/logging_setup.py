# herald/logging_setup.py
import logging
import os
import sys

def init_logging(level: int | str | None = None) -> None:
    """
    Configure root logger once for simple console logs.
    Level comes from HERALD_LOG_LEVEL unless given explicitly.
    """
    if logging.getLogger().handlers:
        return  # already configured

    if level is None:
        level = os.environ.get("HERALD_LOG_LEVEL", "INFO").upper()

    handler = logging.StreamHandler(stream=sys.stdout)
    handler.setFormatter(logging.Formatter("%(asctime)s | %(levelname)s | %(name)s | %(message)s"))

    root = logging.getLogger()
    root.setLevel(level)
    root.addHandler(handler)

    # discord.py's gateway chatter is noisy at INFO
    logging.getLogger("discord.gateway").setLevel(logging.WARNING)
