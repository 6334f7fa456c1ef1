"""Tournament lifecycle controller.

Validates every transition against the store, asks the bracket engine for
pairings, persists through the store and returns a result carrying the
side-effect intents for the notifier. No Discord I/O happens here.
"""
from __future__ import annotations

import logging
import random
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from tourbot.errors import (
    CapacityError,
    ConflictError,
    DuplicateError,
    NotFoundError,
    NotRegisteredError,
    PreconditionError,
    RoundLockedError,
    ValidationError,
)
from tourbot.models import (
    ALLOWED_SIZES,
    GuildSettings,
    Match,
    PlayerStatus,
    Tournament,
    TournamentPlayer,
    TournamentStatus,
)
from tourbot.services.bracket_engine import (
    BracketResult,
    InvalidInput,
    PlacementResult,
    compute_total_rounds,
    derive_placements,
    generate_next_round_pairing,
    generate_round1_pairing,
)
from tourbot.services.intents import (
    AnnounceBracket,
    AnnounceEnd,
    AnnouncePlacements,
    AnnounceTournament,
    AwardRoles,
    DeliverMatchCode,
    Intent,
    NotifyAdmins,
    NotifyQualified,
    NotifyTournamentFull,
    RefreshRegistration,
)
from tourbot.services.store import RegistrationOutcome, TournamentStore

logger = logging.getLogger("tourbot.lifecycle")

DEFAULT_GENERATION_LIMIT = 2


@dataclass
class ActionResult:
    tournament: Tournament
    intents: List[Intent] = field(default_factory=list)


@dataclass
class RegistrationResult(ActionResult):
    player_count: int = 0


@dataclass
class GenerationResult(ActionResult):
    bracket: Optional[BracketResult] = None


@dataclass
class MatchCodeResult(ActionResult):
    match: Optional[Match] = None


@dataclass
class QualifyResult(ActionResult):
    match: Optional[Match] = None
    completed: bool = False
    next_round: Optional[int] = None
    placements: Optional[PlacementResult] = None


@dataclass
class EndResult(ActionResult):
    reason: str = ""


class TournamentController:
    """Single-elimination state machine: registration -> in_progress -> completed."""

    def __init__(
        self,
        store: TournamentStore,
        rng: Optional[random.Random] = None,
        generation_limit: int = DEFAULT_GENERATION_LIMIT,
    ) -> None:
        self.store = store
        self._rng = rng
        self._generation_limit = generation_limit

    async def get_tournament(self, tournament_id: int) -> Tournament:
        t = await self.store.get_tournament_by_id(tournament_id)
        if not t:
            raise NotFoundError("Tournament not found.")
        return t

    # ----- Creation and lookup -----
    async def create_tournament(
        self,
        guild_id: int,
        size: int,
        name: str,
        map: Optional[str] = None,
        abilities: Optional[str] = None,
        prize: Optional[str] = None,
        channel_id: Optional[int] = None,
    ) -> ActionResult:
        if size not in ALLOWED_SIZES:
            raise ValidationError("Tournament size must be 8, 16, 32, or 64.")
        name = (name or "").strip()
        if not name:
            raise ValidationError("Tournament name is required.")
        if await self.store.get_active_tournament(guild_id):
            raise ConflictError("There is already an active tournament. End it first with `/tour end`.")
        t = await self.store.create_tournament(guild_id, size, name, map, abilities, prize)
        logger.info("Tournament %s (%s, size %d) created in guild %s", t.id, t.name, size, guild_id)
        intents: List[Intent] = []
        if channel_id is not None:
            intents.append(AnnounceTournament(t.id, channel_id))
        return ActionResult(tournament=t, intents=intents)

    async def get_active_tournament(self, guild_id: int) -> Optional[Tournament]:
        return await self.store.get_active_tournament(guild_id)

    async def require_active_tournament(self, guild_id: int) -> Tournament:
        t = await self.store.get_active_tournament(guild_id)
        if not t:
            raise NotFoundError("No active tournament found.")
        return t

    # ----- Registration -----
    async def register(self, tournament_id: int, user_id: int, display_name: str) -> RegistrationResult:
        t = await self.get_tournament(tournament_id)
        if t.status != TournamentStatus.REGISTRATION.value:
            raise PreconditionError(f"Tournament is {t.status}, registration closed.")
        outcome = await self.store.register_player(tournament_id, user_id, display_name, t.size)
        if outcome is RegistrationOutcome.FULL:
            raise CapacityError("Tournament is full.")
        if outcome is RegistrationOutcome.DUPLICATE:
            existing = await self.store.get_player(tournament_id, user_id)
            if existing and existing.status == PlayerStatus.REMOVED.value:
                raise DuplicateError("You were removed from this tournament and cannot register again.")
            raise DuplicateError("You're already registered.")
        count = await self.store.get_player_count(tournament_id)
        logger.info("User %s registered for tournament %s (%d/%d)", user_id, tournament_id, count, t.size)
        intents: List[Intent] = [RefreshRegistration(tournament_id)]
        if count >= t.size:
            intents.append(NotifyTournamentFull(tournament_id))
        return RegistrationResult(tournament=t, intents=intents, player_count=count)

    async def unregister(self, tournament_id: int, user_id: int) -> RegistrationResult:
        t = await self.get_tournament(tournament_id)
        if t.status != TournamentStatus.REGISTRATION.value:
            raise PreconditionError(f"Tournament is {t.status}. Ask an admin to remove you.")
        if not await self.store.unregister_player(tournament_id, user_id):
            raise NotRegisteredError("You're not registered for this tournament.")
        count = await self.store.get_player_count(tournament_id)
        logger.info("User %s unregistered from tournament %s", user_id, tournament_id)
        return RegistrationResult(
            tournament=t, intents=[RefreshRegistration(tournament_id)], player_count=count
        )

    async def remove_player(self, tournament_id: int, user_id: int) -> RegistrationResult:
        """Admin kick. Existing match rows keep referencing the user."""
        t = await self.get_tournament(tournament_id)
        if not await self.store.remove_player(tournament_id, user_id):
            raise NotRegisteredError(f"<@{user_id}> is not registered for this tournament.")
        count = await self.store.get_player_count(tournament_id)
        logger.info("User %s removed from tournament %s", user_id, tournament_id)
        return RegistrationResult(
            tournament=t, intents=[RefreshRegistration(tournament_id)], player_count=count
        )

    # ----- Brackets -----
    async def generate_bracket(self, tournament_id: int, round_num: int) -> GenerationResult:
        """Generate or regenerate one round.

        Round 1 shuffles the active players; later rounds pair the previous
        round's winners in match order. Each round may be generated at most
        ``generation_limit`` times and never once a later round exists.
        """
        t = await self.get_tournament(tournament_id)
        if t.status == TournamentStatus.COMPLETED.value:
            raise PreconditionError("Tournament is already completed.")
        total = compute_total_rounds(t.size)
        if round_num < 1 or round_num > total:
            raise ValidationError(f"Round must be between 1 and {total}.")
        latest = await self.store.get_latest_round(tournament_id)
        if latest > round_num:
            raise PreconditionError(
                f"Round {latest} already exists. Round {round_num} can no longer be regenerated."
            )

        if round_num == 1:
            players = await self.store.get_players(tournament_id)
            try:
                plans = generate_round1_pairing(players, rng=self._rng)
            except InvalidInput as exc:
                raise PreconditionError("Need at least 2 players to generate brackets.") from exc
        else:
            if t.status != TournamentStatus.IN_PROGRESS.value:
                raise PreconditionError("Generate Round 1 first.")
            prev = round_num - 1
            previous = await self.store.get_matches(tournament_id, prev)
            if not previous:
                raise PreconditionError(f"Round {prev} doesn't exist yet. Generate it first.")
            if any(m.winner_id is None for m in previous):
                raise PreconditionError(
                    f"Round {prev} is not complete yet. Complete all matches before generating Round {round_num}."
                )
            plans = generate_next_round_pairing([m.winner_id for m in previous])

        generation = await self.store.replace_round(
            tournament_id, round_num, plans, self._generation_limit
        )
        if generation is None:
            raise RoundLockedError(
                f"Round {round_num} has already been generated {self._generation_limit} times."
            )
        bracket = BracketResult(round=round_num, matches=list(plans), generation=generation)
        logger.info(
            "Tournament %s round %d generated (%d matches, %d byes, generation %d)",
            tournament_id,
            round_num,
            len(plans),
            len(bracket.byes),
            generation,
        )
        t = await self.get_tournament(tournament_id)
        return GenerationResult(
            tournament=t,
            intents=[AnnounceBracket(tournament_id, round_num, generation)],
            bracket=bracket,
        )

    async def set_match_code(
        self,
        tournament_id: int,
        round_num: int,
        match_number: int,
        code: str,
        host_id: Optional[int] = None,
    ) -> MatchCodeResult:
        code = (code or "").strip()
        if not code:
            raise ValidationError("Match code is required.")
        t = await self.get_tournament(tournament_id)
        match = await self.store.get_match_by_number(tournament_id, round_num, match_number)
        if not match:
            raise NotFoundError(
                f"Match {match_number} not found in Round {round_num}. Check the match number and try again."
            )
        await self.store.update_match_code(match.id, code)
        match.code = code
        return MatchCodeResult(
            tournament=t,
            intents=[
                DeliverMatchCode(
                    tournament_id,
                    round_num,
                    match_number,
                    code,
                    tuple(match.competitors()),
                    host_id,
                )
            ],
            match=match,
        )

    async def qualify_winner(self, tournament_id: int, round_num: int, winner_id: int) -> QualifyResult:
        """Record a match winner. Deciding the final round completes the tournament."""
        t = await self.get_tournament(tournament_id)
        if t.status == TournamentStatus.COMPLETED.value:
            raise PreconditionError("Tournament is already completed.")
        matches = await self.store.get_matches(tournament_id, round_num)
        match = next(
            (m for m in matches if m.winner_id is None and winner_id in m.competitors()),
            None,
        )
        if match is None or not await self.store.set_match_winner(match.id, winner_id):
            raise NotFoundError("Could not find a pending match for this player in this round.")
        match.winner_id = winner_id

        is_final = round_num >= compute_total_rounds(t.size) or len(matches) == 1
        if not is_final:
            logger.info("User %s advanced to round %d in tournament %s", winner_id, round_num + 1, tournament_id)
            return QualifyResult(
                tournament=t,
                intents=[NotifyQualified(tournament_id, winner_id, round_num, round_num + 1)],
                match=match,
                next_round=round_num + 1,
            )

        intents: List[Intent] = [NotifyQualified(tournament_id, winner_id, round_num)]
        settings = await self.store.get_guild_settings(t.guild_id)
        show_third = bool(settings and settings.show_third_place)
        if not await self.store.complete_tournament(tournament_id, show_third_place=show_third):
            logger.warning("Tournament %s was completed concurrently; skipping placements", tournament_id)
            return QualifyResult(tournament=t, intents=intents, match=match)

        all_matches = await self.store.get_all_matches(tournament_id)
        placements = derive_placements(all_matches, round_num, winner_id, show_third)
        logger.info(
            "Tournament %s completed: 1st %s, 2nd %s, 3rd %s",
            tournament_id,
            placements.first,
            placements.second,
            placements.third,
        )
        intents.append(NotifyAdmins(t.guild_id, "Tournament has ended. Announcing top placements."))
        intents.append(AnnouncePlacements(tournament_id, placements))
        awards = _role_awards(settings, placements)
        if awards:
            intents.append(AwardRoles(t.guild_id, awards))
        t = await self.get_tournament(tournament_id)
        return QualifyResult(
            tournament=t, intents=intents, match=match, completed=True, placements=placements
        )

    async def end_tournament(
        self, tournament_id: int, reason: str, ended_by: Optional[int] = None
    ) -> EndResult:
        reason = (reason or "").strip()
        if not reason:
            raise ValidationError("You must provide a reason to end the tournament.")
        await self.get_tournament(tournament_id)
        if not await self.store.complete_tournament(tournament_id, end_reason=reason):
            raise PreconditionError("Tournament is already completed.")
        logger.info("Tournament %s ended by %s: %s", tournament_id, ended_by, reason)
        t = await self.get_tournament(tournament_id)
        return EndResult(
            tournament=t, intents=[AnnounceEnd(tournament_id, reason, ended_by)], reason=reason
        )

    # ----- Guild configuration -----
    async def get_guild_settings(self, guild_id: int) -> Optional[GuildSettings]:
        return await self.store.get_guild_settings(guild_id)

    async def set_admin_role(self, guild_id: int, role_id: int) -> GuildSettings:
        return await self.store.update_guild_settings(guild_id, admin_role_id=role_id)

    async def set_admin_channel(self, guild_id: int, channel_id: int) -> GuildSettings:
        return await self.store.update_guild_settings(guild_id, admin_channel_id=channel_id)

    async def set_tournament_channels(
        self,
        guild_id: int,
        category_id: int,
        tour_info_channel_id: int,
        registered_players_channel_id: int,
        admin_channel_id: int,
    ) -> GuildSettings:
        return await self.store.update_guild_settings(
            guild_id,
            tournament_category_id=category_id,
            tour_info_channel_id=tour_info_channel_id,
            registered_players_channel_id=registered_players_channel_id,
            admin_channel_id=admin_channel_id,
        )

    async def set_third_place(self, guild_id: int, enabled: bool) -> GuildSettings:
        return await self.store.update_guild_settings(guild_id, show_third_place=enabled)

    async def set_winner_roles(
        self, guild_id: int, first_role_id: int, second_role_id: int, third_role_id: int
    ) -> GuildSettings:
        return await self.store.update_guild_settings(
            guild_id,
            first_place_role_id=first_role_id,
            second_place_role_id=second_role_id,
            third_place_role_id=third_role_id,
        )

    # ----- Read helpers -----
    async def get_players(self, tournament_id: int) -> List[TournamentPlayer]:
        return await self.store.get_players(tournament_id)

    async def get_round(self, tournament_id: int, round_num: int) -> List[Match]:
        return await self.store.get_matches(tournament_id, round_num)

    async def get_bracket(self, tournament_id: int) -> Dict[int, List[Match]]:
        """All matches grouped by round, rounds ascending."""
        rounds: Dict[int, List[Match]] = {}
        for m in await self.store.get_all_matches(tournament_id):
            rounds.setdefault(m.round, []).append(m)
        return rounds

    async def get_placements(self, tournament_id: int) -> PlacementResult:
        t = await self.get_tournament(tournament_id)
        if t.status != TournamentStatus.COMPLETED.value:
            raise PreconditionError("Tournament is not completed yet.")
        rounds = await self.get_bracket(tournament_id)
        if not rounds:
            raise PreconditionError("Tournament ended before a champion was decided.")
        final_round = max(rounds)
        final = rounds[final_round]
        if len(final) != 1 or final[0].winner_id is None:
            raise PreconditionError("Tournament ended before a champion was decided.")
        # Third place follows the flag recorded when the final was decided
        all_matches = [m for matches in rounds.values() for m in matches]
        return derive_placements(all_matches, final_round, final[0].winner_id, bool(t.show_third_place))


def _role_awards(settings: Optional[GuildSettings], placements: PlacementResult) -> tuple:
    if not settings:
        return ()
    winners = (placements.first, placements.second, placements.third)
    return tuple(
        (user_id, role_id)
        for user_id, role_id in zip(winners, settings.winner_role_ids())
        if user_id and role_id
    )


__all__ = [
    "ActionResult",
    "EndResult",
    "GenerationResult",
    "MatchCodeResult",
    "QualifyResult",
    "RegistrationResult",
    "TournamentController",
]
