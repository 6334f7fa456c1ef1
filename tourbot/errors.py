"""Tournament errors. Every one is user-correctable and reported back to the command issuer."""
from __future__ import annotations


class TournamentError(Exception):
    """Base class; ``str(error)`` is safe to show in Discord."""


class ValidationError(TournamentError):
    """Malformed or out-of-range input."""


class ConflictError(TournamentError):
    """The guild already has an active tournament."""


class CapacityError(TournamentError):
    """Registration is at the tournament's size limit."""


class DuplicateError(TournamentError):
    """The user already holds a registration for this tournament."""


class NotRegisteredError(TournamentError):
    """The user has no active registration for this tournament."""


class NotFoundError(TournamentError):
    """Referenced tournament, round or match does not exist."""


class RoundLockedError(TournamentError):
    """The round was already generated the maximum number of times."""


class PreconditionError(TournamentError):
    """The tournament is not in a state that allows the operation."""


__all__ = [
    "TournamentError",
    "ValidationError",
    "ConflictError",
    "CapacityError",
    "DuplicateError",
    "NotRegisteredError",
    "NotFoundError",
    "RoundLockedError",
    "PreconditionError",
]
