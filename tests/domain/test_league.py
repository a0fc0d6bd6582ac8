"""Tests for domain/league.py: registry and three-tier resolution."""

import pytest

from chesster.domain.errors import AmbiguousLeagueError
from chesster.domain.league import LeagueRegistry, LeagueResolver, build_channel_map, disambiguation_reply
from chesster.domain.models import EntityRecord, League

L4545 = League(name="45+45", aliases=frozenset({"45", "4545"}), channel_bindings=frozenset({"45-games"}))
LONEWOLF = League(name="lonewolf", aliases=frozenset({"lw", "lonewolf30"}), channel_bindings=frozenset({"lonewolf-games"}))


def _resolver(channel_map=None, leagues=(L4545, LONEWOLF)):
    registry = LeagueRegistry(leagues)
    return LeagueResolver(build_channel_map(channel_map or {}, registry.all()), registry)


class TestLeagueRegistry:
    def test_lookup(self):
        registry = LeagueRegistry([L4545, LONEWOLF])
        assert registry.get("45+45") is L4545
        assert registry.get("missing") is None
        assert registry.get(None) is None
        assert registry.names() == ["45+45", "lonewolf"]
        assert "lonewolf" in registry
        assert len(registry) == 2

    def test_duplicate_names_rejected(self):
        with pytest.raises(ValueError):
            LeagueRegistry([L4545, L4545])

    def test_update_moderators_replaces_value(self):
        registry = LeagueRegistry([L4545])
        before = registry.get("45+45")
        updated = registry.update_moderators("45+45", ["alice"])
        assert updated.moderators == frozenset({"alice"})
        assert registry.get("45+45") is updated
        assert before.moderators == frozenset()

    def test_update_unknown_league(self):
        assert LeagueRegistry([]).update_moderators("nope", ["a"]) is None


class TestBuildChannelMap:
    def test_explicit_map_wins(self):
        merged = build_channel_map({"45-games": "lonewolf"}, [L4545, LONEWOLF])
        assert merged["45-games"] == "lonewolf"
        assert merged["lonewolf-games"] == "lonewolf"


class TestResolve:
    def test_channel_name_binding(self):
        channel = EntityRecord(id="C1", display_name="45-games")
        assert _resolver().resolve(channel, "anything").name == "45+45"

    def test_channel_id_binding(self):
        channel = EntityRecord(id="G45")
        assert _resolver({"G45": "45+45"}).resolve(channel, "pairings").name == "45+45"

    def test_channel_id_binding_beats_fuzzy(self):
        channel = EntityRecord(id="G45")
        league = _resolver({"G45": "45+45"}).resolve(channel, "pairings lonewolf")
        assert league.name == "45+45"

    def test_channel_name_checked_before_id(self):
        channel = EntityRecord(id="C9", display_name="lonewolf-games")
        league = _resolver({"C9": "45+45"}).resolve(channel, "")
        assert league.name == "lonewolf"

    def test_binding_to_unknown_league_falls_through(self):
        channel = EntityRecord(id="C9", display_name="random")
        league = _resolver({"C9": "blitz"}).resolve(channel, "pairings lw")
        assert league.name == "lonewolf"

    def test_fuzzy_by_alias(self):
        assert _resolver().resolve(None, "pairings 4545").name == "45+45"

    def test_fuzzy_by_name_case_insensitive(self):
        assert _resolver().resolve(EntityRecord(id="C2", display_name="general"), "mods LoneWolf").name == "lonewolf"

    def test_fuzzy_nothing(self):
        assert _resolver().resolve(EntityRecord(id="C2", display_name="general"), "pairings") is None

    def test_channel_only_skips_fuzzy(self):
        channel = EntityRecord(id="C2", display_name="general")
        assert _resolver().resolve(channel, "pairings lonewolf", channel_only=True) is None

    def test_fuzzy_tie_is_ambiguous(self):
        blitz_a = League(name="blitz-a", aliases=frozenset({"blitz"}))
        blitz_b = League(name="blitz-b", aliases=frozenset({"blitz"}))
        resolver = _resolver(leagues=(blitz_a, blitz_b))
        with pytest.raises(AmbiguousLeagueError) as exc:
            resolver.resolve(None, "pairings blitz")
        assert {l.name for l in exc.value.leagues} == {"blitz-a", "blitz-b"}

    def test_fuzzy_tie_across_tokens_is_ambiguous(self):
        with pytest.raises(AmbiguousLeagueError):
            _resolver().resolve(None, "45 lw")

    def test_shared_alias_query_from_property(self):
        # "45" matches "45+45" only weakly, so a shared exact alias is what ties
        other = League(name="45-rapid", aliases=frozenset({"45"}))
        with pytest.raises(AmbiguousLeagueError):
            _resolver(leagues=(L4545, other)).resolve(None, "45")

    def test_exact_beats_partial(self):
        # "lonewolf30" is a weaker partial of "lonewolf"
        assert _resolver().resolve(None, "lonewolf").name == "lonewolf"


def test_disambiguation_reply_names_leagues():
    reply = disambiguation_reply([LONEWOLF, L4545])
    assert "45+45, lonewolf" in reply
