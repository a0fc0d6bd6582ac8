"""Listener registry and pattern matching.

Registration order is the only priority: the first listener accepting the
message category whose first matching pattern succeeds wins.
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, FrozenSet, Iterable, Iterator, List, Optional, Sequence, Tuple, Union

import structlog

from chesster.domain.models import MatchResult, MessageCategory, MessageContext

log = structlog.get_logger(__name__)

PatternLike = Union[str, "re.Pattern[str]"]


class ListenerKind(str, Enum):
    COMMAND = "command"
    LEAGUE_COMMAND = "league_command"


def player_pattern(command: str, optional: bool = False) -> "re.Pattern[str]":
    """Build ``command`` followed by a username, with or without a leading ``@``.

    The username lands in group 1. With ``optional`` the username may be
    omitted (``rating`` as well as ``rating @someone``).
    """
    player = command + r"(?: @?([^\s]+))"
    if optional:
        player += "?"
    return re.compile(player, re.IGNORECASE)


def _compile(pattern: PatternLike) -> "re.Pattern[str]":
    if isinstance(pattern, re.Pattern):
        return pattern
    return re.compile(pattern, re.IGNORECASE)


@dataclass(frozen=True)
class Listener:
    """A registered command: patterns, accepted categories, middleware and callback.

    ``resolve_league`` lets a plain command ask for league resolution
    without the league gate; league commands always resolve. ``channel_only``
    restricts resolution to channel bindings (no free-text lookup).
    """

    kind: ListenerKind
    patterns: Tuple["re.Pattern[str]", ...]
    categories: FrozenSet[MessageCategory]
    callback: Callable[..., Any]
    middleware: Tuple[Callable[..., Any], ...] = ()
    resolve_league: bool = False
    channel_only: bool = False
    name: str = ""

    @property
    def wants_league(self) -> bool:
        return self.kind is ListenerKind.LEAGUE_COMMAND or self.resolve_league

    def accepts(self, context: MessageContext) -> bool:
        return context.category in self.categories

    def describe(self) -> str:
        return self.name or ", ".join(p.pattern for p in self.patterns)


def find_match(
    listeners: Iterable[Listener], text: str, context: MessageContext
) -> Optional[MatchResult]:
    """First listener, first pattern, in declaration order. None is not an error."""
    for listener in listeners:
        if not listener.accepts(context):
            continue
        for pattern in listener.patterns:
            m = pattern.search(text)
            if m:
                log.debug("pattern matched", pattern=pattern.pattern, listener=listener.describe())
                return MatchResult(listener=listener, match=m)
    return None


class ListenerRegistry:
    """Append-only, ordered collection of listeners owned by the controller."""

    def __init__(self):
        self._listeners: List[Listener] = []

    def register(self, listener: Listener) -> Listener:
        self._listeners.append(listener)
        return listener

    def hears(
        self,
        patterns: Union[PatternLike, Sequence[PatternLike]],
        categories: Iterable[Union[str, MessageCategory]],
        callback: Callable[..., Any],
        *,
        kind: Union[str, ListenerKind] = ListenerKind.COMMAND,
        middleware: Sequence[Callable[..., Any]] = (),
        resolve_league: bool = False,
        channel_only: bool = False,
        name: str = "",
    ) -> Listener:
        """Convenience wrapper building and registering a Listener."""
        if isinstance(patterns, (str, re.Pattern)):
            patterns = [patterns]
        compiled = tuple(_compile(p) for p in patterns)
        if not compiled:
            raise ValueError("a listener needs at least one pattern")
        listener = Listener(
            kind=ListenerKind(kind),
            patterns=compiled,
            categories=frozenset(MessageCategory(c) for c in categories),
            callback=callback,
            middleware=tuple(middleware),
            resolve_league=resolve_league,
            channel_only=channel_only,
            name=name,
        )
        return self.register(listener)

    def find_match(self, text: str, context: MessageContext) -> Optional[MatchResult]:
        return find_match(self._listeners, text, context)

    def __iter__(self) -> Iterator[Listener]:
        return iter(tuple(self._listeners))

    def __len__(self) -> int:
        return len(self._listeners)
