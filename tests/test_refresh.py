"""Tests for infrastructure/refresh.py: index rebuild, swap and degraded mode."""

import asyncio

import pytest

from chesster.config import RefreshConfig
from chesster.domain.entity_index import EntityDirectory, EntityIndex
from chesster.domain.errors import RosterUnavailableError
from chesster.domain.league import LeagueRegistry
from chesster.domain.models import EntityRecord, League
from chesster.infrastructure.refresh import DirectoryRefresher

ALICE = EntityRecord(id="U1", display_name="alice")
BOB = EntityRecord(id="U2", display_name="bob")
BOT = EntityRecord(id="U999", display_name="chesster", is_bot=True)
GENERAL = EntityRecord(id="C1", display_name="general")

FAST = RefreshConfig(timeout_seconds=0.05, max_retries=1, backoff_max_seconds=0)


class MockPlatform:
    def __init__(self, users=(ALICE, BOB, BOT), channels=(GENERAL,), fail=False):
        self.users = list(users)
        self.channels = list(channels)
        self.fail = fail

    async def list_users(self):
        if self.fail:
            raise RuntimeError("gateway down")
        return self.users

    async def list_channels(self):
        if self.fail:
            raise RuntimeError("gateway down")
        return self.channels

    async def fetch_channel(self, channel_id):
        return None

    async def fetch_user(self, user_id):
        return None


class MockRoster:
    def __init__(self, user_map=None, moderators=None, fail=False, stall=False):
        self.user_map = user_map or {}
        self.moderators = moderators or {}
        self.fail = fail
        self.stall = stall

    async def get_user_map(self):
        if self.stall:
            await asyncio.sleep(10)
        if self.fail:
            raise RosterUnavailableError("down")
        return dict(self.user_map)

    async def get_league_moderators(self, league_tag):
        if self.fail:
            raise RosterUnavailableError("down")
        return self.moderators.get(league_tag, [])


def _refresher(platform=None, roster=None, leagues=None, directory=None, config=FAST):
    return DirectoryRefresher(
        directory or EntityDirectory(),
        platform or MockPlatform(),
        leagues or LeagueRegistry([League(name="45+45", roster_tag="team4545")]),
        roster=roster,
        config=config,
        identity=lambda: ("U999", "chesster"),
    )


class TestRefreshUsers:
    @pytest.mark.asyncio
    async def test_seeds_secondary_keys(self):
        directory = EntityDirectory()
        refresher = _refresher(roster=MockRoster({"alice4545": "U1"}), directory=directory)
        assert await refresher.refresh_users() is True
        assert directory.users.get_by_name("alice4545").id == "U1"
        assert directory.users.get_by_name("bob").id == "U2"

    @pytest.mark.asyncio
    async def test_bot_addressable_by_name(self):
        directory = EntityDirectory()
        await _refresher(roster=MockRoster(), directory=directory).refresh_users()
        assert directory.find_member("chesster").id == "U999"

    @pytest.mark.asyncio
    async def test_multiple_roster_accounts_are_id_duplicates(self):
        directory = EntityDirectory()
        roster = MockRoster({"alice4545": "U1", "alice_alt": "U1"})
        await _refresher(roster=roster, directory=directory).refresh_users()
        claims = directory.users.duplicates_for_id("U1")
        assert {r.secondary_key for r in claims} == {"alice4545", "alice_alt"}

    @pytest.mark.asyncio
    async def test_roster_failure_keeps_previous_index(self):
        previous = EntityIndex.build([ALICE], label="users")
        directory = EntityDirectory(users=previous)
        refresher = _refresher(roster=MockRoster(fail=True), directory=directory)
        assert await refresher.refresh_users() is False
        assert directory.users is previous

    @pytest.mark.asyncio
    async def test_stalled_roster_times_out(self):
        previous = EntityIndex.build([ALICE], label="users")
        directory = EntityDirectory(users=previous)
        refresher = _refresher(roster=MockRoster(stall=True), directory=directory)
        assert await refresher.refresh_users() is False
        assert directory.users is previous

    @pytest.mark.asyncio
    async def test_platform_failure_keeps_previous_index(self):
        previous = EntityIndex.build([ALICE], label="users")
        directory = EntityDirectory(users=previous)
        refresher = _refresher(platform=MockPlatform(fail=True), directory=directory)
        assert await refresher.refresh_users() is False
        assert directory.users is previous

    @pytest.mark.asyncio
    async def test_without_roster(self):
        directory = EntityDirectory()
        assert await _refresher(directory=directory).refresh_users() is True
        assert len(directory.users) == 3


class TestRefreshOnce:
    @pytest.mark.asyncio
    async def test_full_cycle(self):
        directory = EntityDirectory()
        leagues = LeagueRegistry([League(name="45+45", roster_tag="team4545"), League(name="lonewolf")])
        roster = MockRoster({"alice4545": "U1"}, moderators={"team4545": ["alice4545"]})
        refresher = _refresher(roster=roster, directory=directory, leagues=leagues)

        assert await refresher.refresh_once() is True

        assert refresher.refresh_count == 1
        assert refresher.last_refresh_ok is True
        assert refresher.last_refresh_at is not None
        assert directory.channels.get_by_name("general").id == "C1"
        assert leagues.get("45+45").moderators == frozenset({"alice4545"})
        assert leagues.get("45+45").is_moderator(directory.users.get_by_id("U1"))
        assert leagues.get("lonewolf").moderators == frozenset()

    @pytest.mark.asyncio
    async def test_degraded_cycle(self):
        refresher = _refresher(roster=MockRoster(fail=True))
        assert await refresher.refresh_once() is False
        assert refresher.last_refresh_ok is False
        assert refresher.refresh_count == 1

    @pytest.mark.asyncio
    async def test_league_refresh_can_be_disabled(self):
        leagues = LeagueRegistry([League(name="45+45", roster_tag="team4545")])
        roster = MockRoster(moderators={"team4545": ["x"]})
        config = RefreshConfig(timeout_seconds=0.05, max_retries=1, backoff_max_seconds=0, refresh_leagues=False)
        await _refresher(roster=roster, leagues=leagues, config=config).refresh_once()
        assert leagues.get("45+45").moderators == frozenset()


class TestLoop:
    @pytest.mark.asyncio
    async def test_start_and_stop(self):
        refresher = _refresher()
        task = refresher.start()
        assert refresher.start() is task
        await asyncio.sleep(0.01)
        await refresher.stop()
        assert task.cancelled()
        assert refresher.refresh_count >= 1

    @pytest.mark.asyncio
    async def test_stop_without_start(self):
        await _refresher().stop()
