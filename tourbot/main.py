"""Main bot entry point."""
import logging

import discord
from discord import app_commands
from discord.ext import commands

import config
from tourbot.cogs import setup, tournaments
from tourbot.errors import TournamentError
from tourbot.listeners import buttons
from tourbot.models import create_engine, create_session_factory, init_db
from tourbot.services.lifecycle import TournamentController
from tourbot.services.notifier import DiscordNotifier
from tourbot.services.store import TournamentStore

logger = logging.getLogger("tourbot")

intents = discord.Intents.default()
intents.members = True  # Required to see member roles in checks; enable in Developer Portal → Bot → Server Members Intent


class TourBot(commands.Bot):
    """Single-elimination tournament bot."""

    def __init__(self, database_url: str = config.DATABASE_URL):
        super().__init__(command_prefix="!", intents=intents)
        self.database_url = database_url
        self.engine = None
        self.controller: TournamentController | None = None
        self.notifier: DiscordNotifier | None = None

    async def on_ready(self) -> None:
        logger.info("Bot ready: %s (ID: %s)", self.user, self.user.id if self.user else "?")
        # Guild-specific sync: commands appear instantly instead of waiting for global propagation
        for guild in list(self.guilds):
            try:
                self.tree.copy_global_to(guild=guild)
                await self.tree.sync(guild=guild)
                logger.info("Commands synced to guild: %s (%s)", guild.name, guild.id)
            except discord.HTTPException as e:
                logger.warning("Failed to sync to guild %s: %s", guild.name, e)

    async def setup_hook(self) -> None:
        """Open the database and wire the controller before any event arrives."""
        self.engine = create_engine(self.database_url)
        await init_db(self.engine)
        store = TournamentStore(create_session_factory(self.engine))
        self.controller = TournamentController(store, generation_limit=config.BRACKET_GENERATION_LIMIT)
        self.notifier = DiscordNotifier(self, store)

        self.tree.add_command(setup.setup_group)
        self.tree.add_command(tournaments.tour_group)
        await self.tree.sync()
        logger.info("Commands synced")

        # Global error handler: always respond so Discord doesn't show "application did not respond"
        async def on_app_command_error(interaction: discord.Interaction, error: app_commands.AppCommandError) -> None:
            original = getattr(error, "original", error)
            if isinstance(original, TournamentError):
                msg = str(original)
            elif isinstance(error, app_commands.CheckFailure):
                msg = "You do not have permission to use this command."
            else:
                msg = "Something went wrong. Check bot logs."
                logger.error("Command error: %s", error, exc_info=original)
            try:
                if interaction.response.is_done():
                    await interaction.followup.send(msg, ephemeral=True)
                else:
                    await interaction.response.send_message(msg, ephemeral=True)
            except discord.HTTPException as e:
                logger.warning("Could not report command error: %s", e)

        self.tree.on_error = on_app_command_error

        buttons.setup(self)

    async def close(self) -> None:
        """Cleanup on shutdown."""
        await super().close()
        if self.engine is not None:
            await self.engine.dispose()


def main() -> None:
    """Run the bot."""
    if not config.DISCORD_TOKEN:
        raise ValueError("DISCORD_TOKEN is required")
    logging.basicConfig(level=config.LOG_LEVEL)
    bot = TourBot()
    bot.run(config.DISCORD_TOKEN, log_handler=None)


if __name__ == "__main__":
    main()
