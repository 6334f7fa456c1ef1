"""Setup cog - /setup adminrole, start, thirdplace, winnerroles."""
from __future__ import annotations

import discord
from discord import app_commands

from tourbot.checks import server_admin, tournament_admin

CATEGORY_NAME = "🏆 Tournaments"

setup_group = app_commands.Group(name="setup", description="Tournament system setup")


@setup_group.command(name="adminrole", description="Set the role allowed to run tournaments (Administrator)")
@app_commands.describe(role="Role that can create and manage tournaments")
@server_admin()
async def adminrole(interaction: discord.Interaction, role: discord.Role) -> None:
    if not interaction.guild_id:
        await interaction.response.send_message("Use this in a server.", ephemeral=True)
        return
    await interaction.client.controller.set_admin_role(interaction.guild_id, role.id)
    await interaction.response.send_message(
        f"✅ Admin role set to {role.mention}. Run `/setup start` to initialize the tournament system.",
        ephemeral=True,
    )


@setup_group.command(name="start", description="Create the tournament category and channels (Tournament admin)")
@tournament_admin()
async def start(interaction: discord.Interaction) -> None:
    """Create category + tour-info, registered-players and admin-only channels."""
    guild = interaction.guild
    if not guild:
        await interaction.response.send_message("Use this in a server.", ephemeral=True)
        return
    controller = interaction.client.controller
    settings = await controller.get_guild_settings(guild.id)
    if not settings or not settings.admin_role_id:
        await interaction.response.send_message(
            "Please set an admin role first using `/setup adminrole`.", ephemeral=True
        )
        return
    await interaction.response.defer(ephemeral=True)

    hidden = {
        guild.default_role: discord.PermissionOverwrite(view_channel=False),
        guild.me: discord.PermissionOverwrite(view_channel=True, send_messages=True),
    }
    admin_role = guild.get_role(settings.admin_role_id)
    if admin_role:
        hidden[admin_role] = discord.PermissionOverwrite(view_channel=True)
    try:
        category = await guild.create_category(CATEGORY_NAME)
        tour_info = await guild.create_text_channel("tour-info", category=category)
        players = await guild.create_text_channel("registered-players", category=category)
        admin_only = await guild.create_text_channel("admin-only", category=category, overwrites=hidden)
    except discord.Forbidden:
        await interaction.followup.send(
            "Error initializing tournament system. Make sure I have permission to create channels.",
            ephemeral=True,
        )
        return

    await controller.set_tournament_channels(guild.id, category.id, tour_info.id, players.id, admin_only.id)
    await interaction.followup.send(
        "✅ Tournament system initialized!\n"
        f"📁 Category: {category.name}\n"
        f"📢 Tour Info: {tour_info.mention}\n"
        f"📝 Players: {players.mention}\n"
        f"🔐 Admin: {admin_only.mention}",
        ephemeral=True,
    )


@setup_group.command(name="thirdplace", description="Show 3rd place in final results (Tournament admin)")
@app_commands.describe(enabled="on or off")
@app_commands.choices(
    enabled=[
        app_commands.Choice(name="on", value="on"),
        app_commands.Choice(name="off", value="off"),
    ]
)
@tournament_admin()
async def thirdplace(interaction: discord.Interaction, enabled: str) -> None:
    if not interaction.guild_id:
        await interaction.response.send_message("Use this in a server.", ephemeral=True)
        return
    show = enabled == "on"
    await interaction.client.controller.set_third_place(interaction.guild_id, show)
    await interaction.response.send_message(
        f"✅ 3rd place {'enabled' if show else 'disabled'}.", ephemeral=True
    )


@setup_group.command(name="winnerroles", description="Roles given to the top three (Tournament admin)")
@app_commands.describe(first="1st place role", second="2nd place role", third="3rd place role")
@tournament_admin()
async def winnerroles(
    interaction: discord.Interaction,
    first: discord.Role,
    second: discord.Role,
    third: discord.Role,
) -> None:
    if not interaction.guild_id:
        await interaction.response.send_message("Use this in a server.", ephemeral=True)
        return
    await interaction.client.controller.set_winner_roles(interaction.guild_id, first.id, second.id, third.id)
    await interaction.response.send_message(
        f"✅ Winner roles set!\n🥇 1st: {first.mention}\n🥈 2nd: {second.mention}\n🥉 3rd: {third.mention}",
        ephemeral=True,
    )
