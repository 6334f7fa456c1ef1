"""Tournaments cog - /tour create, bracket, code, qualify, end, kick, players, view.

Commands raise ``TournamentError`` for user mistakes; the bot's tree error
handler turns those into ephemeral replies.
"""
from __future__ import annotations

import discord
from discord import app_commands

from tourbot.checks import tournament_admin
from tourbot.models import ALLOWED_SIZES
from tourbot.services import discord_embeds
from tourbot.services.intents import DeliveryReport

SIZE_CHOICES = [app_commands.Choice(name=str(s), value=s) for s in ALLOWED_SIZES]

tour_group = app_commands.Group(name="tour", description="Single-elimination tournaments")


async def _dispatch(interaction: discord.Interaction, intents) -> DeliveryReport:
    return await interaction.client.notifier.dispatch(intents)


@tour_group.command(name="create", description="Create a tournament and post its registration (Tournament admin)")
@app_commands.describe(
    size="Maximum number of players",
    name="Tournament name",
    map="Map to play on",
    abilities="Allowed abilities",
    prize="Prize for the winner",
)
@app_commands.choices(size=SIZE_CHOICES)
@tournament_admin()
async def create(
    interaction: discord.Interaction,
    size: int,
    name: str,
    map: str,
    abilities: str,
    prize: str,
) -> None:
    if not interaction.guild_id:
        await interaction.response.send_message("Use this in a server.", ephemeral=True)
        return
    await interaction.response.defer(ephemeral=True)
    result = await interaction.client.controller.create_tournament(
        interaction.guild_id, size, name, map, abilities, prize, channel_id=interaction.channel_id
    )
    report = await _dispatch(interaction, result.intents)
    msg = f"Created tournament **{result.tournament.name}** ({size} players). ID: {result.tournament.id}"
    if not report.ok:
        msg += "\n⚠️ Could not post the registration message. Check my permissions in this channel."
    await interaction.followup.send(msg, ephemeral=True)


@tour_group.command(name="bracket", description="Generate (or regenerate once) a round's bracket (Tournament admin)")
@app_commands.describe(round="Round number, starting at 1")
@tournament_admin()
async def bracket(interaction: discord.Interaction, round: app_commands.Range[int, 1, 6]) -> None:
    if not interaction.guild_id:
        await interaction.response.send_message("Use this in a server.", ephemeral=True)
        return
    await interaction.response.defer(ephemeral=True)
    controller = interaction.client.controller
    t = await controller.require_active_tournament(interaction.guild_id)
    result = await controller.generate_bracket(t.id, round)
    report = await _dispatch(interaction, result.intents)
    msg = f"🎮 Round {round} bracket is ready!"
    if result.bracket.is_regeneration:
        msg = f"🔄 Round {round} bracket regenerated. It cannot be regenerated again."
    if result.bracket.byes:
        byes = ", ".join(discord_embeds.mention(m.player1_id) for m in result.bracket.byes)
        msg += f"\nBye: {byes}"
    if not report.ok:
        msg += "\n⚠️ Could not post the bracket announcement."
    await interaction.followup.send(msg, ephemeral=True)


@tour_group.command(name="code", description="Send a match code to both players by DM (Tournament admin)")
@app_commands.describe(round="Round number", match="Match number", code="In-game lobby code")
@tournament_admin()
async def code(interaction: discord.Interaction, round: int, match: int, code: str) -> None:
    if not interaction.guild_id:
        await interaction.response.send_message("Use this in a server.", ephemeral=True)
        return
    await interaction.response.defer(ephemeral=True)
    controller = interaction.client.controller
    t = await controller.require_active_tournament(interaction.guild_id)
    result = await controller.set_match_code(t.id, round, match, code, host_id=interaction.user.id)
    report = await _dispatch(interaction, result.intents)
    if report.failed_recipients:
        who = ", ".join(f"<@{uid}>" for uid in report.failed_recipients)
        await interaction.followup.send(
            f"⚠️ Code saved for Round {round}, Match {match}, but I could not DM {who}. "
            "They may have DMs disabled; share the code manually.",
            ephemeral=True,
        )
        return
    await interaction.followup.send(f"✅ Match code sent for Round {round}, Match {match}!", ephemeral=True)


@tour_group.command(name="qualify", description="Record the winner of a match (Tournament admin)")
@app_commands.describe(round="Round number", winner="Player who won their match")
@tournament_admin()
async def qualify(interaction: discord.Interaction, round: int, winner: discord.Member) -> None:
    if not interaction.guild_id:
        await interaction.response.send_message("Use this in a server.", ephemeral=True)
        return
    await interaction.response.defer(ephemeral=True)
    controller = interaction.client.controller
    t = await controller.require_active_tournament(interaction.guild_id)
    result = await controller.qualify_winner(t.id, round, winner.id)
    await _dispatch(interaction, result.intents)
    if result.completed:
        msg = f"🏆 Tournament completed! {winner.display_name} is the champion!"
    elif result.next_round:
        msg = f"{winner.display_name} has been advanced to Round {result.next_round}!"
    else:
        msg = f"{winner.display_name} won the final."
    await interaction.followup.send(msg, ephemeral=True)


@tour_group.command(name="end", description="End the active tournament early (Tournament admin)")
@app_commands.describe(reason="Why the tournament is being ended")
@tournament_admin()
async def end(interaction: discord.Interaction, reason: str) -> None:
    if not interaction.guild_id:
        await interaction.response.send_message("Use this in a server.", ephemeral=True)
        return
    await interaction.response.defer(ephemeral=True)
    controller = interaction.client.controller
    t = await controller.require_active_tournament(interaction.guild_id)
    result = await controller.end_tournament(t.id, reason, ended_by=interaction.user.id)
    await _dispatch(interaction, result.intents)
    await interaction.followup.send(f"🛑 **{t.name}** has been ended.", ephemeral=True)


@tour_group.command(name="kick", description="Remove a player from the active tournament (Tournament admin)")
@app_commands.describe(member="Player to remove")
@tournament_admin()
async def kick(interaction: discord.Interaction, member: discord.Member) -> None:
    if not interaction.guild_id:
        await interaction.response.send_message("Use this in a server.", ephemeral=True)
        return
    await interaction.response.defer(ephemeral=True)
    controller = interaction.client.controller
    t = await controller.require_active_tournament(interaction.guild_id)
    result = await controller.remove_player(t.id, member.id)
    await _dispatch(interaction, result.intents)
    await interaction.followup.send(
        f"Player {member.mention} has been removed from the tournament.", ephemeral=True
    )


@tour_group.command(name="players", description="List registered players")
async def players(interaction: discord.Interaction) -> None:
    if not interaction.guild_id:
        await interaction.response.send_message("Use this in a server.", ephemeral=True)
        return
    await interaction.response.defer(ephemeral=True)
    controller = interaction.client.controller
    t = await controller.require_active_tournament(interaction.guild_id)
    roster = await controller.get_players(t.id)
    await interaction.followup.send(embed=discord_embeds.build_players_embed(t, roster), ephemeral=True)


@tour_group.command(name="view", description="Show the active tournament and its latest round")
async def view(interaction: discord.Interaction) -> None:
    if not interaction.guild_id:
        await interaction.response.send_message("Use this in a server.", ephemeral=True)
        return
    await interaction.response.defer(ephemeral=True)
    controller = interaction.client.controller
    t = await controller.require_active_tournament(interaction.guild_id)
    rounds = await controller.get_bracket(t.id)
    count = len(await controller.get_players(t.id))
    embeds = [discord_embeds.build_overview_embed(t, count, rounds)]
    if rounds:
        latest = max(rounds)
        embeds.append(discord_embeds.build_bracket_embed(t, latest, rounds[latest]))
    await interaction.followup.send(embeds=embeds, ephemeral=True)
