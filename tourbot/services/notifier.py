"""Executes controller intents against Discord. Best effort: failures are reported, never raised."""
from __future__ import annotations

import logging
from typing import Awaitable, Callable, Dict, Iterable, Optional

import discord

from tourbot.models import Tournament
from tourbot.services import discord_embeds
from tourbot.services.intents import (
    AnnounceBracket,
    AnnounceEnd,
    AnnouncePlacements,
    AnnounceTournament,
    AwardRoles,
    DeliverMatchCode,
    DeliveryReport,
    Intent,
    NotifyAdmins,
    NotifyQualified,
    NotifyTournamentFull,
    RefreshRegistration,
)
from tourbot.services.store import TournamentStore

logger = logging.getLogger("tourbot.notifier")


class DiscordNotifier:
    def __init__(self, client: discord.Client, store: TournamentStore) -> None:
        self.client = client
        self.store = store
        self._handlers: Dict[type, Callable[[Intent, DeliveryReport], Awaitable[None]]] = {
            AnnounceTournament: self._announce_tournament,
            RefreshRegistration: self._refresh_registration,
            NotifyTournamentFull: self._notify_full,
            AnnounceBracket: self._announce_bracket,
            DeliverMatchCode: self._deliver_match_code,
            NotifyQualified: self._notify_qualified,
            AnnouncePlacements: self._announce_placements,
            AwardRoles: self._award_roles,
            AnnounceEnd: self._announce_end,
            NotifyAdmins: self._notify_admins,
        }

    async def dispatch(self, intents: Iterable[Intent]) -> DeliveryReport:
        """Run every intent in order; one failure does not stop the rest."""
        report = DeliveryReport()
        for intent in intents:
            handler = self._handlers[type(intent)]
            try:
                await handler(intent, report)
            except (discord.HTTPException, LookupError) as e:
                # Forbidden and NotFound are HTTPException subclasses; LookupError is a deleted tournament
                logger.warning("Delivery failed for %s: %s", type(intent).__name__, e)
                report.failed.append(intent)
        return report

    async def _channel(self, channel_id: Optional[int]):
        if not channel_id:
            return None
        return self.client.get_channel(channel_id) or await self.client.fetch_channel(channel_id)

    async def _user(self, user_id: int):
        return self.client.get_user(user_id) or await self.client.fetch_user(user_id)

    async def _tournament(self, tournament_id: int) -> Tournament:
        t = await self.store.get_tournament_by_id(tournament_id)
        if t is None:
            raise LookupError(f"Tournament {tournament_id} vanished before notification")
        return t

    async def _announcement_channel(self, t: Tournament):
        """Tour-info channel when configured, else the channel the tournament was posted in."""
        settings = await self.store.get_guild_settings(t.guild_id)
        if settings and settings.tour_info_channel_id:
            return await self._channel(settings.tour_info_channel_id)
        return await self._channel(t.channel_id)

    async def _admin_channel(self, guild_id: int):
        settings = await self.store.get_guild_settings(guild_id)
        return await self._channel(settings.admin_channel_id if settings else None)

    # ----- Handlers -----
    async def _announce_tournament(self, intent: AnnounceTournament, report: DeliveryReport) -> None:
        t = await self._tournament(intent.tournament_id)
        channel = await self._channel(intent.channel_id)
        count = await self.store.get_player_count(t.id)
        msg = await channel.send(
            embed=discord_embeds.build_tournament_embed(t),
            view=discord_embeds.build_registration_view(t, count),
        )
        await self.store.set_tournament_message(t.id, msg.channel.id, msg.id)
        t.channel_id, t.message_id = msg.channel.id, msg.id
        await self._refresh_player_list(t)

    async def _refresh_registration(self, intent: RefreshRegistration, report: DeliveryReport) -> None:
        t = await self._tournament(intent.tournament_id)
        if t.channel_id and t.message_id:
            channel = await self._channel(t.channel_id)
            count = await self.store.get_player_count(t.id)
            await channel.get_partial_message(t.message_id).edit(
                embed=discord_embeds.build_tournament_embed(t),
                view=discord_embeds.build_registration_view(t, count),
            )
        await self._refresh_player_list(t)

    async def _refresh_player_list(self, t: Tournament) -> None:
        settings = await self.store.get_guild_settings(t.guild_id)
        if not settings or not settings.registered_players_channel_id:
            return
        channel = await self._channel(settings.registered_players_channel_id)
        players = await self.store.get_players(t.id)
        content, view = discord_embeds.build_player_list(t, players)
        if t.player_list_message_id:
            try:
                await channel.get_partial_message(t.player_list_message_id).edit(content=content, view=view)
                return
            except discord.NotFound:
                logger.info("Player list message for tournament %s is gone, posting a new one", t.id)
        msg = await channel.send(content=content, view=view)
        await self.store.set_player_list_message(t.id, msg.id)

    async def _notify_full(self, intent: NotifyTournamentFull, report: DeliveryReport) -> None:
        t = await self._tournament(intent.tournament_id)
        channel = await self._admin_channel(t.guild_id)
        if channel is None:
            return
        await channel.send(
            f"✅ **{t.name}** is full ({t.size}/{t.size}). Generate the bracket with `/tour bracket 1`."
        )

    async def _announce_bracket(self, intent: AnnounceBracket, report: DeliveryReport) -> None:
        t = await self._tournament(intent.tournament_id)
        channel = await self._announcement_channel(t)
        if channel is None:
            logger.info("No announcement channel for tournament %s; bracket not posted", t.id)
            return
        matches = await self.store.get_matches(t.id, intent.round)
        await channel.send(
            embed=discord_embeds.build_bracket_embed(t, intent.round, matches, intent.generation)
        )

    async def _deliver_match_code(self, intent: DeliverMatchCode, report: DeliveryReport) -> None:
        t = await self._tournament(intent.tournament_id)
        player1 = intent.recipients[0] if intent.recipients else None
        player2 = intent.recipients[1] if len(intent.recipients) > 1 else None
        embed = discord_embeds.build_match_code_embed(
            t, intent.round, intent.match_number, intent.code, player1, player2, intent.host_id
        )
        failed = False
        for user_id in intent.recipients:
            try:
                user = await self._user(user_id)
                await user.send(embed=embed)
            except discord.HTTPException as e:
                logger.warning("Could not DM match code to %s: %s", user_id, e)
                report.failed_recipients.append(user_id)
                failed = True
        if failed:
            report.failed.append(intent)

    async def _notify_qualified(self, intent: NotifyQualified, report: DeliveryReport) -> None:
        t = await self._tournament(intent.tournament_id)
        try:
            user = await self._user(intent.user_id)
            await user.send(embed=discord_embeds.build_qualified_embed(t, intent.next_round))
        except discord.HTTPException as e:
            logger.warning("Could not DM qualification to %s: %s", intent.user_id, e)
            report.failed_recipients.append(intent.user_id)
            report.failed.append(intent)

    async def _announce_placements(self, intent: AnnouncePlacements, report: DeliveryReport) -> None:
        t = await self._tournament(intent.tournament_id)
        channel = await self._announcement_channel(t)
        if channel is None:
            return
        await channel.send(embed=discord_embeds.build_results_embed(t, intent.placements))

    async def _award_roles(self, intent: AwardRoles, report: DeliveryReport) -> None:
        """Role grants never surface as delivery failures."""
        try:
            guild = self.client.get_guild(intent.guild_id) or await self.client.fetch_guild(intent.guild_id)
        except discord.HTTPException as e:
            logger.warning("Could not load guild %s for role awards: %s", intent.guild_id, e)
            return
        for user_id, role_id in intent.awards:
            try:
                member = guild.get_member(user_id) or await guild.fetch_member(user_id)
                await member.add_roles(discord.Object(id=role_id), reason="Tournament placement")
            except discord.HTTPException as e:
                logger.warning("Could not give role %s to %s: %s", role_id, user_id, e)

    async def _announce_end(self, intent: AnnounceEnd, report: DeliveryReport) -> None:
        t = await self._tournament(intent.tournament_id)
        channel = await self._announcement_channel(t)
        if channel is None:
            return
        await channel.send(embed=discord_embeds.build_end_embed(t, intent.reason, intent.ended_by))

    async def _notify_admins(self, intent: NotifyAdmins, report: DeliveryReport) -> None:
        channel = await self._admin_channel(intent.guild_id)
        if channel is None:
            return
        await channel.send(intent.message)
