"""Outbound ports: interfaces for external system adapters."""

from typing import Dict, List, Optional, Protocol, Sequence, runtime_checkable

from chesster.domain.models import EntityRecord


@runtime_checkable
class ReplyPort(Protocol):
    """Interface for sending to the chat platform."""

    async def post_message(
        self,
        channel_id: str,
        text: str,
        thread_ts: Optional[str] = None,
        reply_broadcast: bool = False,
    ) -> None: ...

    async def add_reaction(self, channel_id: str, ts: str, emoji: str) -> None: ...

    async def open_conversation(self, user_ids: Sequence[str]) -> Optional[str]: ...


@runtime_checkable
class DirectoryPort(Protocol):
    """Interface for listing and fetching platform users and channels."""

    async def list_users(self) -> List[EntityRecord]: ...
    async def list_channels(self) -> List[EntityRecord]: ...
    async def fetch_channel(self, channel_id: str) -> Optional[EntityRecord]: ...
    async def fetch_user(self, user_id: str) -> Optional[EntityRecord]: ...


@runtime_checkable
class RosterPort(Protocol):
    """Interface for the external league roster API."""

    async def get_user_map(self) -> Dict[str, str]: ...
    async def get_league_moderators(self, league_tag: str) -> List[str]: ...
