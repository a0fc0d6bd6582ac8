"""League registry and per-message league resolution.

Resolution order, each tier short-circuiting:
1. channel display name bound in the channel map
2. channel id bound in the channel map (private channels, DMs)
3. fuzzy match of each message token against league names and aliases
Channel bindings are authoritative; free text is only consulted when the
channel says nothing.
"""

from dataclasses import replace
from typing import Dict, Iterable, List, Mapping, Optional, Sequence

import structlog

from chesster.domain import fuzzy
from chesster.domain.errors import AmbiguousLeagueError
from chesster.domain.models import EntityRecord, League

log = structlog.get_logger(__name__)


class LeagueRegistry:
    """Holds the configured leagues by name.

    Identity never changes after startup; refresh replaces league values
    (e.g. a new moderator set) by swapping the whole mapping.
    """

    def __init__(self, leagues: Iterable[League] = ()):
        self._leagues: Dict[str, League] = {}
        for league in leagues:
            if league.name in self._leagues:
                raise ValueError(f"duplicate league name: {league.name!r}")
            self._leagues[league.name] = league

    def get(self, name: Optional[str]) -> Optional[League]:
        if not name:
            return None
        return self._leagues.get(name)

    def all(self) -> List[League]:
        return list(self._leagues.values())

    def names(self) -> List[str]:
        return list(self._leagues)

    def update_moderators(self, name: str, moderators: Iterable[str]) -> Optional[League]:
        league = self._leagues.get(name)
        if league is None:
            return None
        updated = replace(league, moderators=frozenset(moderators))
        leagues = dict(self._leagues)
        leagues[name] = updated
        self._leagues = leagues
        return updated

    def __len__(self) -> int:
        return len(self._leagues)

    def __contains__(self, name: object) -> bool:
        return name in self._leagues


def build_channel_map(channel_map: Mapping[str, str], leagues: Iterable[League]) -> Dict[str, str]:
    """Merge the configured channel map with each league's own bindings.

    Explicit channel map entries win over league bindings.
    """
    merged: Dict[str, str] = {}
    for league in leagues:
        for channel in league.channel_bindings:
            merged[channel] = league.name
    merged.update(channel_map)
    return merged


class LeagueResolver:
    def __init__(
        self,
        channel_map: Mapping[str, str],
        leagues: LeagueRegistry,
        score_cutoff: float = fuzzy.DEFAULT_SCORE_CUTOFF,
    ):
        self._channel_map = dict(channel_map)
        self._leagues = leagues
        self._score_cutoff = score_cutoff

    @property
    def leagues(self) -> LeagueRegistry:
        return self._leagues

    def resolve(
        self,
        channel: Optional[EntityRecord],
        text: str,
        channel_only: bool = False,
    ) -> Optional[League]:
        """Return the league for a message, None when nothing matches.

        Raises AmbiguousLeagueError when free text ties between leagues.
        """
        if channel is not None:
            if channel.display_name:
                league = self._leagues.get(self._channel_map.get(channel.display_name))
                if league:
                    return league
            if channel.id:
                league = self._leagues.get(self._channel_map.get(channel.id))
                if league:
                    return league

        if channel_only:
            return None
        return self.resolve_text(text)

    def resolve_text(self, text: str) -> Optional[League]:
        labels: List[str] = []
        owners: Dict[str, List[League]] = {}
        for league in self._leagues.all():
            for label in (league.name, *sorted(league.aliases)):
                if label not in owners:
                    labels.append(label)
                owners.setdefault(label, []).append(league)

        results: List[fuzzy.FuzzyResult] = []
        for token in (text or "").split():
            results.extend(fuzzy.rank(token.lower(), labels, score_cutoff=self._score_cutoff))

        candidates: Dict[str, League] = {}
        for match in fuzzy.best_matches(results):
            for league in owners.get(match.value, ()):
                candidates[league.name] = league

        if len(candidates) > 1:
            log.info("ambiguous league lookup", text=text, leagues=sorted(candidates))
            raise AmbiguousLeagueError(list(candidates.values()))
        if candidates:
            return next(iter(candidates.values()))
        return None


def disambiguation_reply(leagues: Sequence[League]) -> str:
    names = ", ".join(sorted(l.name for l in leagues))
    return f"I'm not sure which league you mean ({names}). Please name exactly one."
