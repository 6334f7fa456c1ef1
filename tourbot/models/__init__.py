"""Database models."""
from tourbot.models.base import Base, create_engine, create_session_factory, init_db, utc_now
from tourbot.models.tournament import ALLOWED_SIZES, Tournament, TournamentStatus
from tourbot.models.player import PlayerStatus, TournamentPlayer
from tourbot.models.match import BracketGeneration, Match, MatchStatus
from tourbot.models.guild_settings import GuildSettings

__all__ = [
    "ALLOWED_SIZES",
    "Base",
    "BracketGeneration",
    "GuildSettings",
    "Match",
    "MatchStatus",
    "PlayerStatus",
    "Tournament",
    "TournamentPlayer",
    "TournamentStatus",
    "create_engine",
    "create_session_factory",
    "init_db",
    "utc_now",
]
