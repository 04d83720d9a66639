"""Preconditions checked by a node before it accepts an operation.

Each factory returns a check that takes the node and raises a
:class:`~raftkit.types.RaftError` when the precondition does not hold.

The node passed to a check must provide ``whoami()``, ``leader()``,
``get_member(member_id)`` (returning a member or ``None``), ``members()``
and a ``config`` attribute holding a :class:`~raftkit.config.Config`.
"""

from __future__ import annotations

from typing import Any, Callable

from raftkit.types import (
    NONE,
    MemberType,
    NoLeaderError,
    NotLeaderError,
    RaftError,
)

__all__ = [
    "Condition",
    "joined",
    "available",
    "not_member",
    "member_removed",
    "address_in_use",
    "not_leader",
    "leader",
    "id_in_use",
    "no_leader",
    "disable_forwarding",
    "not_type",
]

Condition = Callable[[Any], None]


def joined() -> Condition:
    """Require the node to be part of a cluster."""

    def check(node: Any) -> None:
        if node.whoami() == NONE:
            raise RaftError("raft: node is not yet part of a raft cluster")

    return check


def available() -> Condition:
    """Require a quorum of voters to be active."""

    def check(node: Any) -> None:
        voters = [m for m in node.members() if m.type == MemberType.VOTER]
        reachable = [m for m in voters if m.is_active]
        if len(reachable) < len(voters) // 2 + 1:
            raise RaftError(
                "raft: quorum lost and the cluster unavailable, "
                "no new logs can be committed"
            )

    return check


def not_member(member_id: int) -> Condition:
    """Require ``member_id`` to be a known member."""

    def check(node: Any) -> None:
        if node.get_member(member_id) is None:
            raise RaftError(f"raft: unknown member {member_id:x}")

    return check


def member_removed(member_id: int) -> Condition:
    """Require ``member_id`` not to be a removed member."""

    def check(node: Any) -> None:
        member = node.get_member(member_id)
        if member is not None and member.type == MemberType.REMOVED:
            raise RaftError(f"raft: member {member_id:x} removed")

    return check


def address_in_use(member_id: int, addr: str) -> Condition:
    """Require ``addr`` not to be used by another live member."""

    def check(node: Any) -> None:
        for member in node.members():
            if (
                member.address == addr
                and member.id != member_id
                and member.type != MemberType.REMOVED
            ):
                raise RaftError(f"raft: address used by member {member.id:x}")

    return check


def not_leader() -> Condition:
    """Require the node itself to be the leader."""

    def check(node: Any) -> None:
        if node.whoami() != node.leader():
            raise NotLeaderError()

    return check


def leader(member_id: int) -> Condition:
    """Require ``member_id`` not to be the current leader."""

    def check(node: Any) -> None:
        if member_id == node.leader():
            raise RaftError(
                f"raft: operation not permitted, member {member_id:x} is the leader, "
                "transfer leadership first"
            )

    return check


def id_in_use(member_id: int) -> Condition:
    """Require ``member_id`` not to be taken by an existing member."""

    def check(node: Any) -> None:
        if node.get_member(member_id) is not None:
            raise RaftError(f"raft: id used by member {member_id:x}")

    return check


def no_leader() -> Condition:
    """Require the cluster to have an elected leader."""

    def check(node: Any) -> None:
        if node.leader() == NONE:
            raise NoLeaderError()

    return check


def disable_forwarding() -> Condition:
    """Reject followers when proposal forwarding is disabled."""

    def check(node: Any) -> None:
        disabled = node.config.raft.disable_proposal_forwarding
        if disabled and node.leader() != node.whoami():
            raise NotLeaderError()

    return check


def not_type(member_id: int, member_type: MemberType) -> Condition:
    """Require member ``member_id`` to be of ``member_type``."""

    def check(node: Any) -> None:
        member = node.get_member(member_id)
        if member is None:
            raise RaftError(f"raft: unknown member {member_id:x}")
        if member.type != member_type:
            raise RaftError(
                f"raft: member ({member_id:x}) is a {member.type} not a {member_type}"
            )

    return check