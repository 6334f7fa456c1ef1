"""Tests for the tournament lifecycle controller."""
import pytest

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
from tourbot.models import TournamentStatus
from tourbot.services.intents import (
    AnnounceBracket,
    AnnounceEnd,
    AnnouncePlacements,
    AnnounceTournament,
    AwardRoles,
    DeliverMatchCode,
    NotifyQualified,
    NotifyTournamentFull,
    RefreshRegistration,
)


async def _create(controller, guild_id, size=8, name="Friday Cup"):
    result = await controller.create_tournament(guild_id, size, name, "Arena", "All", "Nitro")
    return result.tournament


async def _play_round(controller, tournament_id, round_num, pick=lambda m: m.player1_id):
    """Qualify a winner in every pending match of the round; returns the last result."""
    result = None
    for m in await controller.get_round(tournament_id, round_num):
        if m.winner_id is None:
            result = await controller.qualify_winner(tournament_id, round_num, pick(m))
    return result


# --- Creation ---


@pytest.mark.asyncio
async def test_create_tournament(controller, guild_id):
    """Creation strips the name and asks for a registration post."""
    result = await controller.create_tournament(guild_id, 16, "  Cup  ", channel_id=555)
    assert result.tournament.name == "Cup"
    assert result.tournament.status == TournamentStatus.REGISTRATION.value
    assert result.intents == [AnnounceTournament(result.tournament.id, 555)]


@pytest.mark.asyncio
@pytest.mark.parametrize("size", [0, 4, 12, 128])
async def test_create_rejects_bad_size(controller, guild_id, size):
    """Only 8, 16, 32 and 64 player brackets are allowed."""
    with pytest.raises(ValidationError):
        await controller.create_tournament(guild_id, size, "Cup")


@pytest.mark.asyncio
async def test_create_rejects_blank_name(controller, guild_id):
    """A blank name is rejected."""
    with pytest.raises(ValidationError):
        await controller.create_tournament(guild_id, 8, "   ")


@pytest.mark.asyncio
async def test_create_conflicts_with_active(controller, guild_id):
    """A guild cannot open a second active tournament."""
    await _create(controller, guild_id)
    with pytest.raises(ConflictError):
        await _create(controller, guild_id, name="Other")


@pytest.mark.asyncio
async def test_require_active_tournament(controller, guild_id):
    """Lookup fails until the guild has an active tournament."""
    with pytest.raises(NotFoundError):
        await controller.require_active_tournament(guild_id)
    t = await _create(controller, guild_id)
    assert (await controller.require_active_tournament(guild_id)).id == t.id


# --- Registration ---


@pytest.mark.asyncio
async def test_duplicate_registration_leaves_count_unchanged(controller, guild_id):
    """Registering twice is rejected and does not add a slot."""
    t = await _create(controller, guild_id)
    result = await controller.register(t.id, 1, "one")
    assert result.player_count == 1
    assert result.intents == [RefreshRegistration(t.id)]
    with pytest.raises(DuplicateError):
        await controller.register(t.id, 1, "one")
    assert len(await controller.get_players(t.id)) == 1


@pytest.mark.asyncio
async def test_full_tournament_rejects_registration(controller, guild_id, fill):
    """The last slot triggers the full notice; the next sign-up is refused."""
    t = await _create(controller, guild_id, size=8)
    await fill(t.id, 7)
    last = await controller.register(t.id, 9999, "last")
    assert NotifyTournamentFull(t.id) in last.intents
    with pytest.raises(CapacityError):
        await controller.register(t.id, 10000, "late")
    assert len(await controller.get_players(t.id)) == 8


@pytest.mark.asyncio
async def test_unregister(controller, guild_id):
    """Unregistering frees the slot and fails when repeated."""
    t = await _create(controller, guild_id)
    await controller.register(t.id, 1, "one")
    result = await controller.unregister(t.id, 1)
    assert result.player_count == 0
    with pytest.raises(NotRegisteredError):
        await controller.unregister(t.id, 1)
    # Unregistering is not a kick; the user may come back
    await controller.register(t.id, 1, "one")


@pytest.mark.asyncio
async def test_registration_closes_when_bracket_starts(controller, guild_id, fill):
    """Register and unregister are refused once round 1 exists."""
    t = await _create(controller, guild_id)
    ids = await fill(t.id, 4)
    await controller.generate_bracket(t.id, 1)
    with pytest.raises(PreconditionError):
        await controller.register(t.id, 5000, "late")
    with pytest.raises(PreconditionError):
        await controller.unregister(t.id, ids[0])


@pytest.mark.asyncio
async def test_kicked_player_cannot_rejoin(controller, guild_id):
    """A kicked player is told they cannot register again."""
    t = await _create(controller, guild_id)
    await controller.register(t.id, 1, "one")
    await controller.remove_player(t.id, 1)
    with pytest.raises(DuplicateError, match="removed"):
        await controller.register(t.id, 1, "one")
    with pytest.raises(NotRegisteredError):
        await controller.remove_player(t.id, 1)


@pytest.mark.asyncio
async def test_kick_keeps_match_history(controller, guild_id, fill):
    """Kicking a player mid-tournament leaves their matches intact."""
    t = await _create(controller, guild_id)
    ids = await fill(t.id, 4)
    await controller.generate_bracket(t.id, 1)
    kicked = ids[0]
    result = await controller.remove_player(t.id, kicked)
    assert result.player_count == 3
    assert kicked not in [p.user_id for p in await controller.get_players(t.id)]
    round1 = await controller.get_round(t.id, 1)
    assert any(kicked in m.competitors() for m in round1)


# --- Brackets ---


@pytest.mark.asyncio
async def test_round1_needs_two_players(controller, guild_id):
    """Round 1 cannot be generated with a single player."""
    t = await _create(controller, guild_id)
    await controller.register(t.id, 1, "one")
    with pytest.raises(PreconditionError, match="at least 2"):
        await controller.generate_bracket(t.id, 1)
    assert (await controller.get_tournament(t.id)).status == TournamentStatus.REGISTRATION.value


@pytest.mark.asyncio
async def test_round1_generation_starts_tournament(controller, guild_id, fill):
    """Generating round 1 moves the tournament to in progress."""
    t = await _create(controller, guild_id)
    await fill(t.id, 5)
    result = await controller.generate_bracket(t.id, 1)
    assert result.tournament.status == TournamentStatus.IN_PROGRESS.value
    assert len(result.bracket.matches) == 3
    assert len(result.bracket.byes) == 1
    assert result.intents == [AnnounceBracket(t.id, 1, 1)]
    bye = [m for m in await controller.get_round(t.id, 1) if m.is_bye][0]
    assert bye.winner_id == bye.player1_id


@pytest.mark.asyncio
async def test_third_generation_is_locked_and_writes_nothing(controller, store, guild_id, fill):
    """A round may be generated twice; the third attempt changes nothing."""
    t = await _create(controller, guild_id)
    await fill(t.id, 6)
    await controller.generate_bracket(t.id, 1)
    second = await controller.generate_bracket(t.id, 1)
    assert second.bracket.generation == 2
    assert second.bracket.is_regeneration
    before = [(m.id, m.player1_id, m.player2_id) for m in await controller.get_round(t.id, 1)]

    with pytest.raises(RoundLockedError):
        await controller.generate_bracket(t.id, 1)
    after = [(m.id, m.player1_id, m.player2_id) for m in await controller.get_round(t.id, 1)]
    assert after == before
    assert await store.get_bracket_generation_count(t.id, 1) == 2


@pytest.mark.asyncio
async def test_next_round_requires_decided_previous_round(controller, guild_id, fill):
    """Round 2 waits until every round-1 match has a winner."""
    t = await _create(controller, guild_id)
    await fill(t.id, 4)
    with pytest.raises(PreconditionError):
        await controller.generate_bracket(t.id, 2)
    await controller.generate_bracket(t.id, 1)
    with pytest.raises(PreconditionError, match="not complete"):
        await controller.generate_bracket(t.id, 2)
    with pytest.raises(PreconditionError, match="doesn't exist"):
        await controller.generate_bracket(t.id, 3)


@pytest.mark.asyncio
@pytest.mark.parametrize("round_num", [0, 4])
async def test_round_out_of_range(controller, guild_id, fill, round_num):
    """Rounds outside 1..total are rejected."""
    t = await _create(controller, guild_id, size=8)
    await fill(t.id, 4)
    with pytest.raises(ValidationError):
        await controller.generate_bracket(t.id, round_num)


@pytest.mark.asyncio
async def test_earlier_round_cannot_be_regenerated_after_later_exists(controller, guild_id, fill):
    """Round 1 is frozen once round 2 has been generated."""
    t = await _create(controller, guild_id, size=8)
    await fill(t.id, 8)
    await controller.generate_bracket(t.id, 1)
    await _play_round(controller, t.id, 1)
    await controller.generate_bracket(t.id, 2)
    with pytest.raises(PreconditionError):
        await controller.generate_bracket(t.id, 1)


# --- Match codes ---


@pytest.mark.asyncio
async def test_set_match_code(controller, guild_id, fill):
    """Setting a code stores it and DMs both competitors."""
    t = await _create(controller, guild_id)
    await fill(t.id, 4)
    await controller.generate_bracket(t.id, 1)
    result = await controller.set_match_code(t.id, 1, 1, " ABC123 ", host_id=42)
    m = result.match
    assert m.code == "ABC123"
    assert result.intents == [
        DeliverMatchCode(t.id, 1, 1, "ABC123", (m.player1_id, m.player2_id), 42)
    ]
    with pytest.raises(NotFoundError):
        await controller.set_match_code(t.id, 1, 9, "X")
    with pytest.raises(ValidationError):
        await controller.set_match_code(t.id, 1, 1, "   ")


# --- Qualification and completion ---


@pytest.mark.asyncio
async def test_four_player_flow(controller, guild_id, fill):
    """Four players in an 8-slot bracket: the single-match round 2 is the final."""
    t = await _create(controller, guild_id, size=8)
    await fill(t.id, 4)
    await controller.generate_bracket(t.id, 1)
    round1 = await controller.get_round(t.id, 1)
    assert len(round1) == 2

    first = await controller.qualify_winner(t.id, 1, round1[0].player1_id)
    assert first.next_round == 2
    assert first.intents == [NotifyQualified(t.id, round1[0].player1_id, 1, 2)]
    await controller.qualify_winner(t.id, 1, round1[1].player2_id)
    w1, w2 = round1[0].player1_id, round1[1].player2_id

    gen = await controller.generate_bracket(t.id, 2)
    assert [(m.player1_id, m.player2_id) for m in gen.bracket.matches] == [(w1, w2)]

    final = await controller.qualify_winner(t.id, 2, w2)
    assert final.completed
    assert (final.placements.first, final.placements.second) == (w2, w1)
    assert final.tournament.status == TournamentStatus.COMPLETED.value
    assert any(isinstance(i, AnnouncePlacements) for i in final.intents)
    assert await controller.get_active_tournament(guild_id) is None

    placements = await controller.get_placements(t.id)
    assert (placements.first, placements.second) == (w2, w1)


@pytest.mark.asyncio
async def test_eight_player_flow_with_third_place_and_roles(controller, guild_id, fill):
    """Full eight-player run awards first, second and third place roles."""
    await controller.set_third_place(guild_id, True)
    await controller.set_winner_roles(guild_id, 501, 502, 503)
    t = await _create(controller, guild_id, size=8)
    await fill(t.id, 8)

    await controller.generate_bracket(t.id, 1)
    await _play_round(controller, t.id, 1)
    await controller.generate_bracket(t.id, 2)
    semis = await controller.get_round(t.id, 2)
    await _play_round(controller, t.id, 2)
    await controller.generate_bracket(t.id, 3)
    final_match = (await controller.get_round(t.id, 3))[0]
    champion, runner_up = final_match.player1_id, final_match.player2_id

    result = await controller.qualify_winner(t.id, 3, champion)
    assert result.completed
    assert result.placements.first == champion
    assert result.placements.second == runner_up
    # Runner-up came from semifinal 2, so third is semifinal 1's loser
    assert result.placements.third == semis[0].player2_id

    awards = next(i for i in result.intents if isinstance(i, AwardRoles))
    assert awards.awards == ((champion, 501), (runner_up, 502), (semis[0].player2_id, 503))


@pytest.mark.asyncio
async def test_placements_keep_third_place_setting_from_completion(controller, guild_id, fill):
    """Toggling /setup thirdplace after the final does not rewrite past results."""
    await controller.set_third_place(guild_id, True)
    t = await _create(controller, guild_id, size=8)
    await fill(t.id, 4)
    await controller.generate_bracket(t.id, 1)
    semis = await controller.get_round(t.id, 1)
    await _play_round(controller, t.id, 1)
    await controller.generate_bracket(t.id, 2)
    result = await _play_round(controller, t.id, 2)
    assert result.completed
    third = result.placements.third
    assert third in (semis[0].player2_id, semis[1].player2_id)

    await controller.set_third_place(guild_id, False)
    assert (await controller.get_placements(t.id)).third == third

    # And the other way round: off at completion stays off
    await controller.set_third_place(guild_id, False)
    t2 = await _create(controller, guild_id, size=8, name="Saturday Cup")
    await fill(t2.id, 4, first_id=2001)
    await controller.generate_bracket(t2.id, 1)
    await _play_round(controller, t2.id, 1)
    await controller.generate_bracket(t2.id, 2)
    await _play_round(controller, t2.id, 2)
    await controller.set_third_place(guild_id, True)
    assert (await controller.get_placements(t2.id)).third is None


@pytest.mark.asyncio
async def test_qualify_unknown_player(controller, guild_id, fill):
    """Qualifying someone without a pending match fails."""
    t = await _create(controller, guild_id)
    await fill(t.id, 4)
    await controller.generate_bracket(t.id, 1)
    with pytest.raises(NotFoundError):
        await controller.qualify_winner(t.id, 1, 424242)


@pytest.mark.asyncio
async def test_qualify_twice_fails(controller, guild_id, fill):
    """A decided match cannot be qualified again."""
    t = await _create(controller, guild_id)
    await fill(t.id, 4)
    await controller.generate_bracket(t.id, 1)
    m = (await controller.get_round(t.id, 1))[0]
    await controller.qualify_winner(t.id, 1, m.player1_id)
    with pytest.raises(NotFoundError):
        await controller.qualify_winner(t.id, 1, m.player2_id)


@pytest.mark.asyncio
async def test_odd_field_completes(controller, guild_id, fill):
    """Three players: bye in round 1, single final in round 2."""
    t = await _create(controller, guild_id, size=8)
    await fill(t.id, 3)
    await controller.generate_bracket(t.id, 1)
    await _play_round(controller, t.id, 1)
    await controller.generate_bracket(t.id, 2)
    result = await _play_round(controller, t.id, 2)
    assert result.completed
    assert result.placements.second is not None


# --- Ending ---


@pytest.mark.asyncio
async def test_end_requires_reason(controller, guild_id):
    """Ending without a reason leaves the tournament running."""
    t = await _create(controller, guild_id)
    with pytest.raises(ValidationError):
        await controller.end_tournament(t.id, "  ")
    assert (await controller.get_tournament(t.id)).status == TournamentStatus.REGISTRATION.value


@pytest.mark.asyncio
async def test_end_mid_round(controller, guild_id, fill):
    """Ending mid-round completes the tournament and blocks further play."""
    t = await _create(controller, guild_id)
    await fill(t.id, 4)
    await controller.generate_bracket(t.id, 1)
    result = await controller.end_tournament(t.id, "Server maintenance", ended_by=7)
    assert result.tournament.status == TournamentStatus.COMPLETED.value
    assert result.tournament.end_reason == "Server maintenance"
    assert result.intents == [AnnounceEnd(t.id, "Server maintenance", 7)]
    with pytest.raises(PreconditionError):
        await controller.end_tournament(t.id, "again")
    with pytest.raises(PreconditionError):
        await controller.get_placements(t.id)
    with pytest.raises(PreconditionError):
        await controller.generate_bracket(t.id, 2)


@pytest.mark.asyncio
async def test_placements_before_completion(controller, guild_id):
    """Placements are unavailable while the tournament is running."""
    t = await _create(controller, guild_id)
    with pytest.raises(PreconditionError):
        await controller.get_placements(t.id)


# --- Guild configuration ---


@pytest.mark.asyncio
async def test_guild_configuration(controller, guild_id):
    """Guild setters persist admin role and channels."""
    assert await controller.get_guild_settings(guild_id) is None
    await controller.set_admin_role(guild_id, 10)
    await controller.set_tournament_channels(guild_id, 1, 2, 3, 4)
    await controller.set_admin_channel(guild_id, 44)
    s = await controller.get_guild_settings(guild_id)
    assert s.admin_role_id == 10
    assert (s.tournament_category_id, s.tour_info_channel_id, s.registered_players_channel_id) == (1, 2, 3)
    assert s.admin_channel_id == 44
