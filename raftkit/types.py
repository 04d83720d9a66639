"""Core value types and errors shared by the raft node API."""

from __future__ import annotations

import copy
import enum
from dataclasses import dataclass, field
from datetime import datetime

__all__ = [
    "NONE",
    "MemberType",
    "RawMember",
    "Member",
    "RaftError",
    "NodeStoppedError",
    "NotLeaderError",
    "NoLeaderError",
]

NONE = 0
"""Placeholder member id meaning "no member"."""


class MemberType(enum.IntEnum):
    """Role of a member within the cluster."""

    VOTER = 0
    """Participates in elections and log entry commitment; the default."""
    REMOVED = 1
    """A member that has been removed from the cluster."""
    LEARNER = 2
    """Receives log entries but neither votes nor counts toward commitment."""
    STAGING = 3
    """A learner that the leader promotes to voter once it has caught up."""

    def __str__(self) -> str:
        return self.name.lower()

    def __format__(self, spec: str) -> str:
        return format(str(self), spec)


@dataclass
class RawMember:
    """Metadata describing one cluster member."""

    id: int = NONE
    address: str = ""
    type: MemberType = MemberType.VOTER
    context: bytes = b""

    def copy(self) -> "RawMember":
        """Return an independent copy of this member's metadata."""
        return copy.deepcopy(self)


@dataclass
class Member:
    """A cluster member as seen from the local node's pool."""

    member: RawMember = field(default_factory=RawMember)
    active: bool = False
    since: datetime = field(default_factory=datetime.now)

    @property
    def id(self) -> int:
        return self.member.id

    @property
    def address(self) -> str:
        return self.member.address

    @property
    def type(self) -> MemberType:
        return self.member.type

    @property
    def is_active(self) -> bool:
        return self.active

    @property
    def active_since(self) -> datetime:
        return self.since

    def raw(self) -> RawMember:
        """Return a copy of the member metadata, safe to modify."""
        return self.member.copy()


class RaftError(Exception):
    """Base class for errors reported by the raft node."""

    default_message = "raft: error"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.default_message)


class NodeStoppedError(RaftError):
    """The node was shut down or has not been started."""

    default_message = "raft: node stopped"


class NotLeaderError(RaftError):
    """The operation cannot be completed on a follower or candidate."""

    default_message = "raft: node is not the leader"


class NoLeaderError(RaftError):
    """The cluster currently has no elected leader."""

    default_message = "raft: no elected cluster leader"