# herald/main.py
import os
import logging
import discord
from discord.ext import commands
from dotenv import load_dotenv
from .logging_setup import init_logging
from .config import load_config

load_dotenv()
init_logging()
log = logging.getLogger("herald")

intents = discord.Intents.default()
intents.guilds = True
intents.messages = True
intents.message_content = True
intents.members = True

bot = commands.Bot(command_prefix="!", intents=intents)

EXTENSIONS = [
    "herald.features.announcements",
]

@bot.event
async def setup_hook():
    bot.config = await load_config()
    for ext in EXTENSIONS:
        await bot.load_extension(ext)
    log.info("Extensions loaded: %s", ", ".join(EXTENSIONS))

@bot.event
async def on_ready():
    log.info("Logged in as %s (%s) in %d guild(s)", bot.user, bot.user.id, len(bot.guilds))  # type: ignore

def main() -> None:
    token = os.environ.get("DISCORD_TOKEN")
    if not token:
        raise SystemExit("DISCORD_TOKEN is not set")
    # logging is already configured above; keep discord.py from adding its own handler
    bot.run(token, log_handler=None)

if __name__ == "__main__":
    main()
