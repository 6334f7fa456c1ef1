"""Shared Discord embed and button builders for tournament posts."""
from __future__ import annotations

from typing import Optional, Sequence

import discord

from tourbot.models import Match, Tournament, TournamentPlayer, TournamentStatus
from tourbot.services.bracket_engine import PlacementResult

REGISTER_ID = "register"
UNREGISTER_ID = "unregister"
KICK_PREFIX = "kick_"

# Discord allows 5 action rows of 5 buttons on one message
MAX_KICK_BUTTONS = 25

RULES = (
    "🔹 You have 2 minutes to join the match after receiving the code.\n"
    "🔹 No rematch in case of bugs or technical issues.\n"
    "🔹 Respect all players and tournament organizers. 🤝\n"
    "🔹 Match codes will be sent in private messages. 📩\n"
    "🔹 For any issues, contact support immediately. 🆘"
)

MATCH_INSTRUCTIONS = (
    "🔹 🎮 Enter the code in-game as soon as possible.\n"
    "🔹 ⏱️ You have exactly **2 minutes** to join the match.\n"
    "🔹 ❌ Late join = **Instant Disqualification**.\n"
    "🔹 🔁 No rematches for disconnects or technical issues.\n"
    "🔹 🆘 For any problem, contact the tournament **support team**."
)


def mention(user_id: Optional[int]) -> str:
    return f"<@{user_id}>" if user_id else "BYE"


def build_tournament_embed(t: Tournament) -> discord.Embed:
    """Registration post for a tournament."""
    embed = discord.Embed(
        title=f"Tour {t.name}",
        description=(
            f"🗺️ **Map:** {t.map or '-'}\n"
            f"🥊 **Ability:** {t.abilities or '-'}\n"
            f"🎁 **Prize:** {t.prize or '-'}\n"
            f"👥 **Max Players:** {t.size}"
        ),
        color=discord.Color.gold(),
    )
    embed.add_field(name="📌 Important Rules", value=RULES, inline=False)
    embed.add_field(
        name="📢 Additional Information",
        value="📩 Match codes are sent via DM. Check your messages!\n🆘 Need help? Contact support immediately.",
        inline=False,
    )
    embed.set_footer(text=f"Tournament ID: {t.id} • Click Register to join the tournament!")
    embed.timestamp = discord.utils.utcnow()
    return embed


def build_registration_view(t: Tournament, count: int) -> discord.ui.View:
    """Register/Unregister buttons. Clicks are handled by the on_interaction listener."""
    view = discord.ui.View(timeout=None)
    view.add_item(
        discord.ui.Button(
            label=f"Register ({count}/{t.size})",
            style=discord.ButtonStyle.success,
            custom_id=REGISTER_ID,
            disabled=count >= t.size or t.status != TournamentStatus.REGISTRATION.value,
        )
    )
    view.add_item(
        discord.ui.Button(
            label="Unregister",
            style=discord.ButtonStyle.danger,
            custom_id=UNREGISTER_ID,
            disabled=t.status != TournamentStatus.REGISTRATION.value,
        )
    )
    return view


def build_player_list(t: Tournament, players: Sequence[TournamentPlayer]) -> tuple[str, discord.ui.View]:
    """Numbered player list for the registered-players channel, with one kick button per player."""
    lines = [f"**📋 {t.name} - Player List**", ""]
    if not players:
        lines.append("No players registered yet.")
    for i, p in enumerate(players, start=1):
        lines.append(f"{i}. <@{p.user_id}>")
    view = discord.ui.View(timeout=None)
    for i, p in enumerate(players[:MAX_KICK_BUTTONS]):
        view.add_item(
            discord.ui.Button(
                label=f"Kick {p.username}"[:80],
                style=discord.ButtonStyle.danger,
                custom_id=f"{KICK_PREFIX}{p.user_id}",
                row=i // 5,
            )
        )
    return "\n".join(lines), view


def build_bracket_embed(t: Tournament, round_num: int, matches: Sequence[Match], generation: int = 1) -> discord.Embed:
    lines = []
    for m in matches:
        if m.is_bye:
            lines.append(f"**Match {m.match_number}:** {mention(m.player1_id)} (BYE, advances)")
        else:
            line = f"**Match {m.match_number}:** {mention(m.player1_id)} vs {mention(m.player2_id)}"
            if m.winner_id:
                line += f" ✅ {mention(m.winner_id)}"
            lines.append(line)
    title = f"🎮 {t.name} - Round {round_num} Bracket"
    if generation > 1:
        title += " (regenerated)"
    embed = discord.Embed(
        title=title,
        description="\n".join(lines) or "No matches.",
        color=discord.Color.blue(),
    )
    embed.set_footer(text=f"Tournament ID: {t.id}")
    embed.timestamp = discord.utils.utcnow()
    return embed


def build_match_code_embed(
    t: Tournament,
    round_num: int,
    match_number: int,
    code: str,
    player1_id: Optional[int],
    player2_id: Optional[int],
    host_id: Optional[int] = None,
) -> discord.Embed:
    """DM sent to both competitors with the lobby code."""
    embed = discord.Embed(
        title=f"🏆 {t.name} Match - {match_number}",
        description=f"Round {round_num}\n**⚠️⏳ You have 2 minutes to join the match! ⚠️⏳**",
        color=discord.Color.red(),
    )
    embed.add_field(
        name="🎮 Players",
        value=f"👥 **Player 1:** {mention(player1_id)}\n👥 **Player 2:** {mention(player2_id)}",
        inline=False,
    )
    embed.add_field(name="🔒 Match Code", value=f"```\n{code}\n```", inline=False)
    embed.add_field(name="📜 Match Instructions", value=MATCH_INSTRUCTIONS, inline=False)
    if host_id:
        embed.add_field(name="📢 Hoster", value=f"👑 <@{host_id}>", inline=True)
    embed.timestamp = discord.utils.utcnow()
    return embed


def build_qualified_embed(t: Tournament, next_round: Optional[int]) -> discord.Embed:
    if next_round:
        description = f"You qualified for Round {next_round} in {t.name}!"
    else:
        description = f"You won {t.name}! 🏆"
    embed = discord.Embed(title="🎉 Congratulations!", description=description, color=discord.Color.green())
    embed.timestamp = discord.utils.utcnow()
    return embed


def build_results_embed(t: Tournament, placements: PlacementResult) -> discord.Embed:
    """Final standings announcement."""
    embed = discord.Embed(title=f"🏆 {t.name} - Final Results", color=discord.Color.gold())
    embed.add_field(name="🥇 1st Place", value=mention(placements.first), inline=False)
    embed.add_field(name="🥈 2nd Place", value=mention(placements.second), inline=False)
    if placements.third:
        embed.add_field(name="🥉 3rd Place", value=mention(placements.third), inline=False)
    embed.set_footer(text=f"Tournament ID: {t.id}")
    embed.timestamp = discord.utils.utcnow()
    return embed


def build_end_embed(t: Tournament, reason: str, ended_by: Optional[int] = None) -> discord.Embed:
    embed = discord.Embed(
        title="🛑 Tournament Ended",
        description=f"**{t.name}** has been officially closed.",
        color=discord.Color.red(),
    )
    if ended_by:
        embed.add_field(name="📌 Ended By", value=f"<@{ended_by}>", inline=True)
    embed.add_field(name="📝 Reason", value=reason, inline=True)
    embed.set_footer(text="💫 Thank you to everyone who participated!")
    embed.timestamp = discord.utils.utcnow()
    return embed


def build_players_embed(t: Tournament, players: Sequence[TournamentPlayer]) -> discord.Embed:
    """Ephemeral roster for /tour players."""
    lines = [f"{i}. <@{p.user_id}> ({p.username})" for i, p in enumerate(players, start=1)]
    embed = discord.Embed(
        title=f"Players - {t.name}",
        description="\n".join(lines) or "(none)",
        color=discord.Color.green(),
    )
    embed.set_footer(text=f"Tournament ID: {t.id} • {len(players)}/{t.size} registered")
    return embed


def build_overview_embed(t: Tournament, player_count: int, rounds: dict[int, list[Match]]) -> discord.Embed:
    """Status summary for /tour view."""
    embed = discord.Embed(
        title=f"📋 {t.name}",
        description=f"**Status:** {t.status}\n**Players:** {player_count}/{t.size}",
        color=discord.Color.blue(),
    )
    for round_num, matches in sorted(rounds.items()):
        decided = sum(1 for m in matches if m.winner_id)
        embed.add_field(name=f"Round {round_num}", value=f"{decided}/{len(matches)} decided", inline=True)
    if t.end_reason:
        embed.add_field(name="📝 End reason", value=t.end_reason, inline=False)
    embed.set_footer(text=f"Tournament ID: {t.id}")
    return embed
