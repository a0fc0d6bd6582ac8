"""Roster client: league management API (aiohttp-based), implements RosterPort."""

import asyncio
import random
from typing import Any, Dict, List, Optional

import aiohttp
import structlog

from chesster.config import RefreshConfig, RosterConfig
from chesster.domain.errors import RosterUnavailableError

log = structlog.get_logger(__name__)


class HeltourClient:
    """Fetches the roster username -> chat user id map and league moderators.

    Every request runs under a total timeout and is retried with jittered
    exponential backoff; exhausting the retries raises RosterUnavailableError.
    """

    def __init__(self, config: RosterConfig, refresh: Optional[RefreshConfig] = None):
        refresh = refresh or RefreshConfig()
        self._base = config.base_endpoint.rstrip("/") + "/"
        self._token = config.token
        self._timeout = aiohttp.ClientTimeout(total=refresh.timeout_seconds)
        self._max_retries = refresh.max_retries
        self._backoff_base = refresh.backoff_base_seconds
        self._backoff_max = refresh.backoff_max_seconds

    @property
    def is_configured(self) -> bool:
        return bool(self._token)

    def _backoff(self, attempt: int) -> float:
        delay = min(self._backoff_base * (2 ** attempt), self._backoff_max)
        return random.uniform(0, delay)

    async def _request(self, endpoint: str, params: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
        url = f"{self._base}{endpoint}/"
        headers = {"Authorization": f"Token {self._token}"}
        last_error = ""
        for attempt in range(self._max_retries):
            try:
                async with aiohttp.ClientSession(timeout=self._timeout) as session:
                    async with session.get(url, headers=headers, params=params or {}) as resp:
                        if resp.status == 429 or resp.status >= 500:
                            last_error = f"HTTP {resp.status}"
                        elif resp.status >= 400:
                            body = await resp.text()
                            raise RosterUnavailableError(f"{endpoint}: HTTP {resp.status}: {body}")
                        else:
                            data = await resp.json()
                            if not isinstance(data, dict):
                                raise RosterUnavailableError(f"{endpoint}: unexpected payload")
                            return data
            except (aiohttp.ClientError, asyncio.TimeoutError) as e:
                last_error = str(e) or type(e).__name__

            log.warning("roster request failed", endpoint=endpoint, attempt=attempt + 1, error=last_error)
            if attempt < self._max_retries - 1:
                await asyncio.sleep(self._backoff(attempt))

        raise RosterUnavailableError(f"{endpoint}: {last_error or 'max retries exceeded'}")

    async def get_user_map(self) -> Dict[str, str]:
        data = await self._request("get_slack_user_map")
        users = data.get("users", {})
        return {str(k): str(v) for k, v in users.items()}

    async def get_league_moderators(self, league_tag: str) -> List[str]:
        data = await self._request("get_league_moderators", {"league": league_tag})
        return [str(m) for m in data.get("moderators", [])]
