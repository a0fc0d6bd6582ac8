"""Periodic refresh of the user/channel indexes and league moderators.

Each cycle builds brand-new indexes from fresh snapshots and swaps them in.
A failing cycle keeps the previous index, logs, and the loop carries on.
"""

import asyncio
from dataclasses import replace
from datetime import datetime, timezone
from typing import Awaitable, Callable, Dict, Optional, Tuple, TypeVar

import structlog

from chesster.config import RefreshConfig
from chesster.domain.entity_index import EntityDirectory, EntityIndex, EntityIndexBuilder
from chesster.domain.league import LeagueRegistry
from chesster.domain.models import EntityRecord
from chesster.ports.outbound import DirectoryPort, RosterPort

log = structlog.get_logger(__name__)

T = TypeVar("T")

IdentityFn = Callable[[], Tuple[Optional[str], Optional[str]]]


class DirectoryRefresher:
    def __init__(
        self,
        directory: EntityDirectory,
        platform: DirectoryPort,
        leagues: LeagueRegistry,
        roster: Optional[RosterPort] = None,
        config: Optional[RefreshConfig] = None,
        identity: Optional[IdentityFn] = None,
    ):
        self._directory = directory
        self._platform = platform
        self._leagues = leagues
        self._roster = roster
        self._config = config or RefreshConfig()
        self._identity = identity or (lambda: (None, None))
        self._task: Optional[asyncio.Task] = None
        self.refresh_count = 0
        self.last_refresh_at: Optional[datetime] = None
        self.last_refresh_ok: Optional[bool] = None

    @property
    def deadline(self) -> float:
        """Upper bound for one collaborator call, retries included."""
        cfg = self._config
        return cfg.timeout_seconds * cfg.max_retries + cfg.backoff_max_seconds * (cfg.max_retries - 1)

    async def _bounded(self, what: str, call: Awaitable[T]) -> T:
        try:
            return await asyncio.wait_for(call, timeout=self.deadline)
        except asyncio.TimeoutError:
            log.error("refresh call timed out", call=what, deadline=self.deadline)
            raise

    async def refresh_users(self) -> bool:
        user_map: Dict[str, str] = {}
        if self._roster is not None:
            try:
                user_map = dict(await self._bounded("roster user map", self._roster.get_user_map()))
            except Exception:
                log.exception("roster unavailable, keeping previous user index")
                return False

        bot_id, bot_name = self._identity()
        if bot_id and bot_name:
            user_map[bot_name] = bot_id

        try:
            users = await self._bounded("list users", self._platform.list_users())
        except Exception:
            log.exception("user listing failed, keeping previous user index")
            return False

        username_by_id = {uid: uname.lower() for uname, uid in user_map.items()}
        by_id: Dict[str, EntityRecord] = {}
        builder = EntityIndexBuilder("users")
        for user in users:
            record = replace(user, secondary_key=username_by_id.get(user.id, user.secondary_key))
            builder.add(record)
            by_id[user.id.upper()] = record

        # One extra id-claim per linked roster account; several accounts on
        # one chat user then show up as id duplicates.
        for uname, uid in user_map.items():
            base = by_id.get(uid.upper())
            if base is None:
                continue
            builder.add(replace(base, secondary_key=uname.lower()))

        index = builder.build()
        self._directory.swap_users(index)
        log.info("users updated", count=len(index), roster_links=len(user_map))
        return True

    async def refresh_channels(self) -> bool:
        try:
            channels = await self._bounded("list channels", self._platform.list_channels())
        except Exception:
            log.exception("channel listing failed, keeping previous channel index")
            return False
        index = EntityIndex.build(channels, label="channels")
        self._directory.swap_channels(index)
        log.info("channels updated", count=len(index))
        return True

    async def refresh_leagues(self) -> bool:
        if self._roster is None:
            return True
        ok = True
        for league in self._leagues.all():
            if not league.roster_tag:
                continue
            try:
                moderators = await self._bounded(
                    f"moderators {league.name}", self._roster.get_league_moderators(league.roster_tag)
                )
            except Exception:
                log.exception("moderator refresh failed", league=league.name)
                ok = False
                continue
            self._leagues.update_moderators(league.name, moderators)
            log.info("league moderators updated", league=league.name, count=len(moderators))
        return ok

    async def refresh_once(self) -> bool:
        self.refresh_count += 1
        log.info("doing refresh", count=self.refresh_count)
        users_ok, channels_ok = await asyncio.gather(self.refresh_users(), self.refresh_channels())
        leagues_ok = True
        if self._config.refresh_leagues:
            leagues_ok = await self.refresh_leagues()
        self.last_refresh_at = datetime.now(timezone.utc)
        self.last_refresh_ok = users_ok and channels_ok and leagues_ok
        return self.last_refresh_ok

    async def run(self) -> None:
        while True:
            try:
                await self.refresh_once()
            except Exception:
                log.exception("refresh cycle failed")
            await asyncio.sleep(self._config.interval_seconds)

    def start(self) -> asyncio.Task:
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self.run())
        return self._task

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
