"""Entity index: id/name lookup for users and channels with duplicate tracking.

An index is built in one step from a snapshot and never mutated afterwards.
Refresh builds a brand-new index and swaps the directory's reference, so a
lookup always sees one complete index.
"""

import re
from types import MappingProxyType
from typing import Callable, Dict, Iterable, List, Mapping, Optional, Tuple

import structlog

from chesster.domain.models import EntityRecord

log = structlog.get_logger(__name__)

# <@U12345> as it appears in message text
MENTION_ID_RE = re.compile(r"<@([^\s>|]+)(?:\|[^>]*)?>")
# <@name-or-id> placeholders in outbound text
OUTBOUND_MENTION_RE = re.compile(r"<@([\w\-.]+)>")


def _default_is_direct(record: EntityRecord) -> bool:
    # Slack direct-message channel ids start with "D"
    return record.is_im or record.id.startswith("D")


class EntityIndex:
    """Immutable lookup tables for one snapshot.

    ``by_id``/``by_name`` hold the most recently added record per key.
    ``claims`` keeps every record that claimed a key, in insertion order.
    """

    def __init__(
        self,
        label: str,
        by_id: Mapping[str, EntityRecord],
        by_name: Mapping[str, EntityRecord],
        id_claims: Mapping[str, Tuple[EntityRecord, ...]],
        name_claims: Mapping[str, Tuple[EntityRecord, ...]],
    ):
        self.label = label
        self.by_id = MappingProxyType(dict(by_id))
        self.by_name = MappingProxyType(dict(by_name))
        self._id_claims = MappingProxyType(dict(id_claims))
        self._name_claims = MappingProxyType(dict(name_claims))

    @classmethod
    def build(
        cls,
        records: Iterable[EntityRecord],
        label: str = "entities",
        is_direct: Callable[[EntityRecord], bool] = _default_is_direct,
    ) -> "EntityIndex":
        builder = EntityIndexBuilder(label, is_direct=is_direct)
        for record in records:
            builder.add(record)
        return builder.build()

    @classmethod
    def empty(cls, label: str = "entities") -> "EntityIndex":
        return cls(label, {}, {}, {}, {})

    def get_by_id(self, entity_id: str) -> Optional[EntityRecord]:
        if not entity_id:
            return None
        return self.by_id.get(entity_id.upper())

    def get_by_name(self, name: str) -> Optional[EntityRecord]:
        if not name:
            return None
        return self.by_name.get(name.lower())

    def get_by_name_or_id(self, key: str) -> Optional[EntityRecord]:
        """Id first, then name or secondary key; both case-normalized."""
        return self.get_by_id(key) or self.get_by_name(key)

    def get_id(self, name: str) -> Optional[str]:
        record = self.get_by_name(name)
        if record is None:
            log.warning("could not find entity by name", index=self.label, name=name)
            return None
        return record.id

    def get_name(self, entity_id: str) -> Optional[str]:
        record = self.get_by_id(entity_id)
        if record is None:
            log.warning("could not find entity by id", index=self.label, id=entity_id)
            return None
        return record.display_name

    def claims_for_id(self, entity_id: str) -> Tuple[EntityRecord, ...]:
        """Every record added under this id, including a single one."""
        return self._id_claims.get(entity_id.upper(), ())

    def duplicates_for(self, key: str) -> Tuple[EntityRecord, ...]:
        """Records that collided on ``key`` (id or name). Empty unless two or more did."""
        claims = self._id_claims.get(key.upper(), ())
        if len(claims) < 2:
            claims = self._name_claims.get(key.lower(), ())
        return claims if len(claims) >= 2 else ()

    def id_duplicate_count(self, entity_id: str) -> int:
        return len(self.duplicates_for_id(entity_id))

    def duplicates_for_id(self, entity_id: str) -> Tuple[EntityRecord, ...]:
        claims = self._id_claims.get(entity_id.upper(), ())
        return claims if len(claims) >= 2 else ()

    def duplicates_for_name(self, name: str) -> Tuple[EntityRecord, ...]:
        claims = self._name_claims.get(name.lower(), ())
        return claims if len(claims) >= 2 else ()

    def __len__(self) -> int:
        return len(self.by_id)

    def __iter__(self):
        return iter(self.by_id.values())


class EntityIndexBuilder:
    """Single-use builder. ``add`` is last-write-wins per key, recording every claim."""

    def __init__(self, label: str = "entities", is_direct: Callable[[EntityRecord], bool] = _default_is_direct):
        self.label = label
        self._is_direct = is_direct
        self._by_id: Dict[str, EntityRecord] = {}
        self._by_name: Dict[str, EntityRecord] = {}
        self._id_claims: Dict[str, List[EntityRecord]] = {}
        self._name_claims: Dict[str, List[EntityRecord]] = {}

    def add(self, record: EntityRecord) -> None:
        key = record.id.upper()
        self._id_claims.setdefault(key, []).append(record)
        self._by_id[key] = record

        # Direct-message channels have no human-facing name; id only
        if self._is_direct(record):
            return

        if not record.display_name:
            log.warning("entity has no name", index=self.label, id=record.id)
            return

        self._add_name(record.display_name.lower(), record)
        if record.secondary_key:
            self._add_name(record.secondary_key.lower(), record)

    def _add_name(self, key: str, record: EntityRecord) -> None:
        self._name_claims.setdefault(key, []).append(record)
        self._by_name[key] = record

    def build(self) -> EntityIndex:
        return EntityIndex(
            self.label,
            self._by_id,
            self._by_name,
            {k: tuple(v) for k, v in self._id_claims.items()},
            {k: tuple(v) for k, v in self._name_claims.items()},
        )


class EntityDirectory:
    """Holds the active user and channel indexes; refresh swaps them whole.

    Channels fetched on an index miss go to a side cache that is dropped
    at the next channel swap.
    """

    def __init__(self, users: Optional[EntityIndex] = None, channels: Optional[EntityIndex] = None):
        self._users = users or EntityIndex.empty("users")
        self._channels = channels or EntityIndex.empty("channels")
        self._fetched_channels: Dict[str, EntityRecord] = {}

    @property
    def users(self) -> EntityIndex:
        return self._users

    @property
    def channels(self) -> EntityIndex:
        return self._channels

    def swap_users(self, index: EntityIndex) -> None:
        self._users = index

    def swap_channels(self, index: EntityIndex) -> None:
        self._channels = index
        self._fetched_channels = {}

    def remember_channel(self, record: EntityRecord) -> None:
        self._fetched_channels[record.id.upper()] = record

    def get_channel(self, name_or_id: str) -> Optional[EntityRecord]:
        channel = self._channels.get_by_name_or_id(name_or_id)
        if channel is None and name_or_id:
            channel = self._fetched_channels.get(name_or_id.upper())
        return channel

    def find_member(self, name_or_id: str) -> Optional[EntityRecord]:
        """Look up a user by id, name, secondary key or ``<@ID>`` mention token."""
        if not name_or_id:
            return None
        users = self._users
        member = users.get_by_name_or_id(name_or_id)
        if member is None:
            m = MENTION_ID_RE.search(name_or_id)
            if m:
                return users.get_by_name_or_id(m.group(1))
            return users.get_by_name_or_id(name_or_id.lower())
        return member

    def rewrite_mentions(self, text: str) -> str:
        """Rewrite ``<@name-or-id>`` into the canonical ``<@ID|name>`` form."""
        users = self._users

        def _sub(m: "re.Match[str]") -> str:
            user = users.get_by_name_or_id(m.group(1))
            if user is not None:
                return f"<@{user.id}|{user.display_name or user.id}>"
            return m.group(0)

        return OUTBOUND_MENTION_RE.sub(_sub, text)
