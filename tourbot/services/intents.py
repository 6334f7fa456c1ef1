"""Side effects requested by the lifecycle controller.

The controller commits state and returns these; ``DiscordNotifier`` executes
them afterwards. A failed intent never rolls back the transition that
produced it.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional, Tuple, Union

from tourbot.services.bracket_engine import PlacementResult


@dataclass(frozen=True)
class AnnounceTournament:
    """Post the registration embed with Register/Unregister buttons."""

    tournament_id: int
    channel_id: int


@dataclass(frozen=True)
class RefreshRegistration:
    """Update the button counter and the registered-players list."""

    tournament_id: int


@dataclass(frozen=True)
class NotifyTournamentFull:
    tournament_id: int


@dataclass(frozen=True)
class AnnounceBracket:
    tournament_id: int
    round: int
    generation: int = 1


@dataclass(frozen=True)
class DeliverMatchCode:
    """DM the lobby code to both competitors of one match."""

    tournament_id: int
    round: int
    match_number: int
    code: str
    recipients: Tuple[int, ...]
    host_id: Optional[int] = None


@dataclass(frozen=True)
class NotifyQualified:
    tournament_id: int
    user_id: int
    round: int
    next_round: Optional[int] = None


@dataclass(frozen=True)
class AnnouncePlacements:
    tournament_id: int
    placements: PlacementResult


@dataclass(frozen=True)
class AwardRoles:
    """(user_id, role_id) grants. Best effort: failures are logged, never reported as errors."""

    guild_id: int
    awards: Tuple[Tuple[int, int], ...]


@dataclass(frozen=True)
class AnnounceEnd:
    tournament_id: int
    reason: str
    ended_by: Optional[int] = None


@dataclass(frozen=True)
class NotifyAdmins:
    guild_id: int
    message: str


Intent = Union[
    AnnounceTournament,
    RefreshRegistration,
    NotifyTournamentFull,
    AnnounceBracket,
    DeliverMatchCode,
    NotifyQualified,
    AnnouncePlacements,
    AwardRoles,
    AnnounceEnd,
    NotifyAdmins,
]


@dataclass
class DeliveryReport:
    """What the notifier could not deliver."""

    failed: List[Intent] = field(default_factory=list)
    failed_recipients: List[int] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failed and not self.failed_recipients
