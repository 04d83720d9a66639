"""The node front API: proposals, membership changes and leadership control.

A :class:`Node` fronts the current raft member.  It checks the
preconditions of every operation and hands the work to its collaborators:

* ``engine`` runs consensus.  It provides ``status()``, ``shutdown(ctx)``,
  ``start(addr, *operators)``, ``linearizable_read(ctx)``,
  ``create_snapshot()``, ``transfer_leadership(ctx, member_id)``,
  ``propose_replicate(ctx, data)`` and ``propose_conf_change(ctx, *members)``.
  ``status()`` returns an object with ``id``, ``lead`` and ``progress``
  (a mapping of member id to an object with ``match``, or ``None`` when
  the node does not track progress).
* ``pool`` holds the known members: ``get(member_id)`` (a member or
  ``None``), ``members()`` and ``next_id()``.
* ``storage`` gives access to snapshots through ``snapshotter()``.
* ``dial(ctx, address)`` returns a client able to ``promote_member(ctx, raw)``
  on a remote member.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Callable, Iterable

from raftkit import conditions as cond
from raftkit.config import Config, StartConfig, new_config
from raftkit.types import NONE, MemberType, NoLeaderError, RaftError, RawMember

__all__ = ["Node", "Membership"]


class Node:
    """Controller of the current effective raft member."""

    def __init__(
        self,
        engine: Any,
        pool: Any = None,
        storage: Any = None,
        dial: Callable[[Any, str], Any] | None = None,
        config: Config | None = None,
        handler: Any = None,
    ) -> None:
        self._engine = engine
        self._pool = pool
        self._storage = storage
        self._dial = dial
        self._handler = handler
        self.config = config if config is not None else new_config()

    def shutdown(self, ctx: Any) -> Any:
        """Gracefully shut the node down."""
        return self._engine.shutdown(ctx)

    def handler(self) -> Any:
        """The transport handler that answers RPC requests for this node."""
        return self._handler

    def linearizable_read(self, ctx: Any) -> Any:
        """Wait until reads reflect every write completed so far."""
        self._check(cond.joined(), cond.no_leader(), cond.available())
        return self._engine.linearizable_read(ctx)

    def snapshot(self) -> Any:
        """Force a snapshot and return a reader over the snapshot file.

        The caller is responsible for closing the returned reader.
        """
        self._check(cond.joined())
        snap = self._engine.create_snapshot()
        meta = snap.metadata
        return self._storage.snapshotter().reader(meta.term, meta.index)

    def transfer_leadership(self, ctx: Any, member_id: int) -> Any:
        """Propose to transfer leadership to ``member_id``."""
        self._check(
            cond.joined(),
            cond.not_member(member_id),
            cond.member_removed(member_id),
            cond.no_leader(),
            cond.not_type(self.whoami(), MemberType.VOTER),
            cond.disable_forwarding(),
            cond.available(),
        )
        return self._engine.transfer_leadership(ctx, member_id)

    def stepdown(self, ctx: Any) -> Any:
        """Hand leadership to the longest active voter; must run on the leader."""
        self._check(cond.joined(), cond.not_leader(), cond.available())

        longest = datetime.max
        own_id = self.whoami()
        candidates = []
        for member in self.members():
            since = member.active_since
            if (
                member.is_active
                and member.type == MemberType.VOTER
                and since < longest
                and own_id != member.id
            ):
                longest = since
                candidates.append(member)

        if not candidates:
            raise RaftError("raft: failed to find longest active member")
        return self._engine.transfer_leadership(ctx, candidates[0].id)

    def start(self, *args: Any) -> Any:
        """Start the node with the given start options."""
        start_config = StartConfig()
        start_config.apply(*args)
        return self._engine.start(start_config.addr, *start_config.operators)

    def leave(self, ctx: Any) -> Any:
        """Propose to remove the current member from the cluster."""
        return self.remove_member(ctx, self.whoami())

    def replicate(self, ctx: Any, data: bytes) -> Any:
        """Propose ``data`` for replication to all members."""
        self._check(
            cond.joined(),
            cond.no_leader(),
            cond.not_type(self.whoami(), MemberType.VOTER),
            cond.disable_forwarding(),
            cond.available(),
        )
        return self._engine.propose_replicate(ctx, data)

    def membership(self) -> "Membership":
        """Start a batch of membership changes."""
        return Membership(self)

    def update_member(self, ctx: Any, raw: RawMember) -> Any:
        """Propose an update of a member's configuration (not its id or type)."""
        return self.membership().update(raw).propose(ctx)

    def remove_member(self, ctx: Any, member_id: int) -> Any:
        """Propose to remove ``member_id``; its id cannot be reused afterwards."""
        return self.membership().remove(member_id).propose(ctx)

    def add_member(self, ctx: Any, raw: RawMember) -> Any:
        """Propose to add a member, assigning the next free id if it has none."""
        return self.membership().add(raw).propose(ctx)

    def promote_member(self, ctx: Any, member_id: int) -> Any:
        """Propose to promote a learner to a voter."""
        return self._promote_member(ctx, member_id, False)

    def demote_member(self, ctx: Any, member_id: int) -> Any:
        """Propose to take away a member's vote."""
        return self.membership().demote(member_id).propose(ctx)

    def get_member(self, member_id: int) -> Any:
        """The member with ``member_id``, or ``None`` if unknown."""
        return self._pool.get(member_id)

    def members(self) -> list:
        """All members known to this node."""
        return list(self._pool.members())

    def whoami(self) -> int:
        """The id of the current member, or ``NONE`` if not part of a cluster."""
        status = self._status()
        return NONE if status is None else status.id

    def leader(self) -> int:
        """The id of the cluster leader, or ``NONE`` if there is none."""
        status = self._status()
        return NONE if status is None else status.lead

    def _status(self) -> Any:
        try:
            return self._engine.status()
        except RaftError:
            return None

    def _check(self, *checks: cond.Condition) -> None:
        for check in checks:
            check(self)

    def _promote_member(self, ctx: Any, member_id: int, forwarded: bool) -> Any:
        self._check(
            cond.joined(),
            cond.not_member(member_id),
            cond.no_leader(),
            cond.not_type(self.whoami(), MemberType.VOTER),
            cond.not_type(member_id, MemberType.LEARNER),
            cond.disable_forwarding(),
            cond.available(),
        )

        status = self._engine.status()

        # The leader may be lost while the request was being forwarded here.
        if status.progress is None and forwarded:
            raise NoLeaderError()

        raw = self.get_member(member_id).raw()

        if status.progress is None:
            leader_member = self.get_member(status.lead)
            if leader_member is None:
                raise NoLeaderError()
            client = self._dial(ctx, leader_member.address)
            self.config.logger.v(3).infof(
                "raft.node: forwarding member %x promotion to %x",
                member_id,
                leader_member.id,
            )
            return client.promote_member(ctx, raw)

        leader_match = _match(status.progress, status.lead)
        learner_match = _match(status.progress, member_id)
        if learner_match < leader_match * 0.9:
            raise RaftError(
                f"raft: promotion failed, member {member_id:x} "
                "not synced with the leader yet"
            )

        raw.type = MemberType.VOTER
        return self._engine.propose_conf_change(ctx, raw)


def _match(progress: dict, member_id: int) -> int:
    entry = progress.get(member_id)
    return 0 if entry is None else entry.match


class Membership:
    """A batch of membership changes proposed together.

    Supports one-at-a-time changes as well as joint consensus over several
    changes.  Precondition failures are collected and raised by
    :meth:`propose`.
    """

    def __init__(self, node: Node) -> None:
        self._node = node
        self._members: list[RawMember] = []
        self._errors: list[RaftError] = []

    def _collect(self, checks: Iterable[cond.Condition]) -> bool:
        try:
            self._node._check(*checks)
        except RaftError as exc:
            self._errors.append(exc)
            return False
        return True

    def demote(self, member_id: int) -> "Membership":
        """Add a demotion of ``member_id`` to a learner."""
        node = self._node
        ok = self._collect(
            (
                cond.joined(),
                cond.not_member(member_id),
                cond.member_removed(member_id),
                cond.no_leader(),
                cond.leader(member_id),
                cond.not_type(node.whoami(), MemberType.VOTER),
                cond.not_type(member_id, MemberType.VOTER),
                cond.disable_forwarding(),
                cond.available(),
            )
        )
        if ok:
            raw = node.get_member(member_id).raw()
            raw.type = MemberType.LEARNER
            self._members.append(raw)
        return self

    def add(self, raw: RawMember) -> "Membership":
        """Add a new member; a ``NONE`` id is replaced by the next free id."""
        node = self._node
        ok = self._collect(
            (
                cond.joined(),
                cond.id_in_use(raw.id),
                cond.address_in_use(raw.id, raw.address),
                cond.no_leader(),
                cond.not_type(node.whoami(), MemberType.VOTER),
                cond.disable_forwarding(),
                cond.available(),
            )
        )
        if ok:
            if raw.id == NONE:
                raw.id = node._pool.next_id()
            self._members.append(raw)
        return self

    def remove(self, member_id: int) -> "Membership":
        """Add a removal of ``member_id``."""
        node = self._node
        ok = self._collect(
            (
                cond.joined(),
                cond.not_member(member_id),
                cond.member_removed(member_id),
                cond.leader(member_id),
                cond.no_leader(),
                cond.not_type(node.whoami(), MemberType.VOTER),
                cond.disable_forwarding(),
                cond.available(),
            )
        )
        if ok:
            raw = node.get_member(member_id).raw()
            raw.type = MemberType.REMOVED
            self._members.append(raw)
        return self

    def update(self, raw: RawMember) -> "Membership":
        """Add an update of a member's configuration; its type is kept."""
        node = self._node
        ok = self._collect(
            (
                cond.joined(),
                cond.not_member(raw.id),
                cond.member_removed(raw.id),
                cond.no_leader(),
                cond.not_type(node.whoami(), MemberType.VOTER),
                cond.address_in_use(raw.id, raw.address),
                cond.disable_forwarding(),
                cond.available(),
            )
        )
        if ok:
            raw.type = node.get_member(raw.id).type
            self._members.append(raw)
        return self

    def propose(self, ctx: Any) -> Any:
        """Propose the collected changes, or raise the collected errors."""
        if len(self._errors) == 1:
            raise self._errors[0]
        if self._errors:
            error = RaftError("\n".join(str(e) for e in self._errors))
            error.errors = list(self._errors)
            raise error
        return self._node._engine.propose_conf_change(ctx, *self._members)