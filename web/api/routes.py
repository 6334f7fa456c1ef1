"""Read-only API routes for tournaments, players, brackets and placements."""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel, ConfigDict

from tourbot.services.bracket_engine import compute_total_rounds
from tourbot.services.lifecycle import TournamentController

router = APIRouter(prefix="/api", tags=["tournaments"])


def _snowflake(v: Optional[int]) -> Optional[str]:
    """Discord IDs as strings so JS keeps precision (snowflakes > 2^53)."""
    return str(v) if v is not None else None


def get_controller(request: Request) -> TournamentController:
    return request.app.state.controller


# --- Pydantic schemas ---


class TournamentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    guild_id: str
    name: str
    size: int
    map: Optional[str] = None
    abilities: Optional[str] = None
    prize: Optional[str] = None
    status: str
    end_reason: Optional[str] = None
    player_count: int = 0
    created_at: Optional[datetime] = None


class PlayerResponse(BaseModel):
    user_id: str
    username: str
    registered_at: Optional[datetime] = None


class MatchResponse(BaseModel):
    id: int
    round: int
    match_number: int
    player1_id: Optional[str]
    player2_id: Optional[str]
    winner_id: Optional[str]
    status: str
    is_bye: bool
    has_code: bool


class BracketResponse(BaseModel):
    tournament_id: int
    total_rounds: int
    rounds: dict[str, list[MatchResponse]]


class PlacementResponse(BaseModel):
    tournament_id: int
    first: str
    second: Optional[str]
    third: Optional[str] = None


async def _tournament_response(controller: TournamentController, t) -> TournamentResponse:
    count = len(await controller.get_players(t.id))
    return TournamentResponse(
        id=t.id,
        guild_id=_snowflake(t.guild_id),
        name=t.name,
        size=t.size,
        map=t.map,
        abilities=t.abilities,
        prize=t.prize,
        status=t.status,
        end_reason=t.end_reason,
        player_count=count,
        created_at=t.created_at,
    )


@router.get("/health")
async def health():
    return {"status": "ok"}


@router.get("/guilds/{guild_id}/active", response_model=TournamentResponse)
async def get_active(guild_id: int, controller: TournamentController = Depends(get_controller)):
    """The guild's registration or in-progress tournament."""
    t = await controller.get_active_tournament(guild_id)
    if not t:
        raise HTTPException(status_code=404, detail="No active tournament")
    return await _tournament_response(controller, t)


@router.get("/tournaments/{tournament_id}", response_model=TournamentResponse)
async def get_tournament(tournament_id: int, controller: TournamentController = Depends(get_controller)):
    t = await controller.get_tournament(tournament_id)
    return await _tournament_response(controller, t)


@router.get("/tournaments/{tournament_id}/players", response_model=list[PlayerResponse])
async def get_players(tournament_id: int, controller: TournamentController = Depends(get_controller)):
    """Active players in registration order."""
    await controller.get_tournament(tournament_id)
    players = await controller.get_players(tournament_id)
    return [
        PlayerResponse(user_id=_snowflake(p.user_id), username=p.username, registered_at=p.registered_at)
        for p in players
    ]


@router.get("/tournaments/{tournament_id}/bracket", response_model=BracketResponse)
async def get_bracket(tournament_id: int, controller: TournamentController = Depends(get_controller)):
    """All generated rounds, keyed by round number."""
    t = await controller.get_tournament(tournament_id)
    rounds = await controller.get_bracket(tournament_id)
    return BracketResponse(
        tournament_id=t.id,
        total_rounds=compute_total_rounds(t.size),
        rounds={
            str(r): [
                MatchResponse(
                    id=m.id,
                    round=m.round,
                    match_number=m.match_number,
                    player1_id=_snowflake(m.player1_id),
                    player2_id=_snowflake(m.player2_id),
                    winner_id=_snowflake(m.winner_id),
                    status=m.status,
                    is_bye=m.is_bye,
                    has_code=bool(m.code),
                )
                for m in matches
            ]
            for r, matches in sorted(rounds.items())
        },
    )


@router.get("/tournaments/{tournament_id}/placements", response_model=PlacementResponse)
async def get_placements(tournament_id: int, controller: TournamentController = Depends(get_controller)):
    """Final standings. 409 until the final has been decided."""
    placements = await controller.get_placements(tournament_id)
    return PlacementResponse(
        tournament_id=tournament_id,
        first=_snowflake(placements.first),
        second=_snowflake(placements.second),
        third=_snowflake(placements.third),
    )
