"""Button-based registration listener: register, unregister and admin kick buttons."""
from __future__ import annotations

import logging

import discord
from discord.ext import commands

from tourbot.checks import is_tournament_admin
from tourbot.errors import TournamentError
from tourbot.services.discord_embeds import KICK_PREFIX, REGISTER_ID, UNREGISTER_ID

logger = logging.getLogger("tourbot.buttons")


def _custom_id(interaction: discord.Interaction) -> str:
    if interaction.type != discord.InteractionType.component:
        return ""
    return (interaction.data or {}).get("custom_id", "")


async def _handle_interaction(interaction: discord.Interaction, bot: commands.Bot) -> None:
    custom_id = _custom_id(interaction)
    if custom_id not in (REGISTER_ID, UNREGISTER_ID) and not custom_id.startswith(KICK_PREFIX):
        return
    if not interaction.guild_id:
        return

    controller = bot.controller
    try:
        t = await controller.require_active_tournament(interaction.guild_id)
        if custom_id == REGISTER_ID:
            result = await controller.register(t.id, interaction.user.id, interaction.user.display_name)
            msg = f"✅ Registered for **{t.name}**! ({result.player_count}/{t.size})"
        elif custom_id == UNREGISTER_ID:
            result = await controller.unregister(t.id, interaction.user.id)
            msg = f"👋 Unregistered from **{t.name}**."
        else:
            if not await is_tournament_admin(interaction):
                await interaction.response.send_message(
                    "You do not have permission to kick players.", ephemeral=True
                )
                return
            try:
                user_id = int(custom_id[len(KICK_PREFIX):])
            except ValueError:
                logger.warning("Malformed kick button id: %s", custom_id)
                return
            result = await controller.remove_player(t.id, user_id)
            msg = f"Player <@{user_id}> has been removed from the tournament."
    except TournamentError as e:
        await interaction.response.send_message(str(e), ephemeral=True)
        return

    await interaction.response.send_message(msg, ephemeral=True)
    report = await bot.notifier.dispatch(result.intents)
    if not report.ok:
        logger.info("Registration refresh for tournament %s partially failed", t.id)


def setup(bot: commands.Bot) -> None:
    """Register the button interaction listener."""

    async def on_interaction(interaction: discord.Interaction) -> None:
        await _handle_interaction(interaction, bot)

    bot.add_listener(on_interaction, "on_interaction")
