"""Permission checks for slash commands and admin buttons."""
from __future__ import annotations

import discord
from discord import app_commands

import config


def _get_member(interaction: discord.Interaction) -> discord.Member | None:
    """Get Member from interaction."""
    if not interaction.guild:
        return None
    return interaction.user if isinstance(interaction.user, discord.Member) else None


def _get_role_ids(member: discord.Member) -> set[int]:
    """Get member's role IDs. Uses raw _roles as well, since member.roles filters
    through guild.get_role() and drops roles missing from an incomplete cache."""
    ids = set()
    raw = getattr(member, "_roles", None)
    if raw is not None:
        ids.update(int(r) for r in raw)
    for r in member.roles:
        ids.add(r.id)
    return ids


async def _get_member_with_roles(interaction: discord.Interaction) -> discord.Member | None:
    """Get Member with roles. Fetches via REST API if we have no role IDs."""
    member = _get_member(interaction)
    if not member or not interaction.guild:
        return None
    if len(_get_role_ids(member)) <= 1:  # Only @everyone or empty
        try:
            member = await interaction.guild.fetch_member(interaction.user.id)
        except discord.NotFound:
            return None
    return member


def _is_server_admin(interaction: discord.Interaction, member: discord.Member) -> bool:
    return member.guild_permissions.administrator or interaction.user.id in config.ADMIN_USER_IDS


async def is_tournament_admin(interaction: discord.Interaction) -> bool:
    """True for server admins, ADMIN_USER_IDS, or holders of the guild's configured admin role."""
    member = await _get_member_with_roles(interaction)
    if not member:
        return False
    if _is_server_admin(interaction, member):
        return True
    settings = await interaction.client.controller.get_guild_settings(interaction.guild_id)
    if not settings or not settings.admin_role_id:
        return False
    return settings.admin_role_id in _get_role_ids(member)


def tournament_admin():
    """Check that user holds the tournament admin role or is server admin."""
    return app_commands.check(is_tournament_admin)


def server_admin():
    """Check that user has the Administrator permission (or is a configured bot owner)."""

    async def predicate(interaction: discord.Interaction) -> bool:
        member = _get_member(interaction)
        return bool(member) and _is_server_admin(interaction, member)

    return app_commands.check(predicate)
