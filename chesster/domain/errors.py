"""Exception types raised by the routing core."""

from typing import Sequence


class ChessterError(Exception):
    """Base class for all chesster errors."""


class ConfigError(ChessterError):
    """Configuration could not be loaded or failed validation."""


class MalformedEventError(ChessterError):
    """Inbound event is missing its channel or user."""


class AmbiguousLeagueError(ChessterError):
    """Free-text league lookup matched more than one league."""

    def __init__(self, leagues: Sequence):
        self.leagues = tuple(leagues)
        names = ", ".join(sorted(l.name for l in self.leagues))
        super().__init__(f"Ambiguous leagues: {names}")


class MiddlewareOrderError(ChessterError):
    """A middleware ran before the state it depends on was resolved."""


class RosterUnavailableError(ChessterError):
    """The external roster API could not be reached."""
