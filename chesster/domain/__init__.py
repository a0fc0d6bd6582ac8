"""Domain layer: pure Python routing core, no framework dependencies."""

from chesster.domain.context import classify, normalize_text
from chesster.domain.entity_index import EntityDirectory, EntityIndex, EntityIndexBuilder
from chesster.domain.errors import (
    AmbiguousLeagueError,
    ChessterError,
    ConfigError,
    MalformedEventError,
    MiddlewareOrderError,
    RosterUnavailableError,
)
from chesster.domain.fuzzy import FuzzyResult, best_matches, rank
from chesster.domain.league import LeagueRegistry, LeagueResolver, build_channel_map
from chesster.domain.listeners import Listener, ListenerKind, ListenerRegistry, find_match, player_pattern
from chesster.domain.middleware import Abort, Continue, apply_middleware, requires_league, requires_moderator
from chesster.domain.models import (
    CommandMessage,
    DispatchResult,
    DispatchState,
    EntityRecord,
    League,
    MatchResult,
    MessageCategory,
    MessageContext,
    NormalizedMessage,
)

__all__ = [
    "Abort",
    "AmbiguousLeagueError",
    "ChessterError",
    "CommandMessage",
    "ConfigError",
    "Continue",
    "DispatchResult",
    "DispatchState",
    "EntityDirectory",
    "EntityIndex",
    "EntityIndexBuilder",
    "EntityRecord",
    "FuzzyResult",
    "League",
    "LeagueRegistry",
    "LeagueResolver",
    "Listener",
    "ListenerKind",
    "ListenerRegistry",
    "MalformedEventError",
    "MatchResult",
    "MessageCategory",
    "MessageContext",
    "MiddlewareOrderError",
    "NormalizedMessage",
    "RosterUnavailableError",
    "apply_middleware",
    "best_matches",
    "build_channel_map",
    "classify",
    "find_match",
    "normalize_text",
    "player_pattern",
    "rank",
    "requires_league",
    "requires_moderator",
]
