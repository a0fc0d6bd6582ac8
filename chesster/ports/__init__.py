"""Ports: interfaces between the routing core and the outside world."""

from chesster.ports.inbound import RawEvent
from chesster.ports.outbound import DirectoryPort, ReplyPort, RosterPort

__all__ = ["RawEvent", "DirectoryPort", "ReplyPort", "RosterPort"]
