"""Node configuration and the options that build it.

:func:`new_config` builds a :class:`Config` from defaults and applies
``with_*`` options in order.  Start options such as :func:`with_join` and
:func:`with_init_cluster` are applied to a :class:`StartConfig`, which
collects the :class:`StartOperator` steps that bring a node up.
"""

from __future__ import annotations

import enum
import tempfile
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any, Callable, Union

from raftkit import raftlog
from raftkit.types import RawMember

__all__ = [
    "ReadOnlyOption",
    "RaftConfig",
    "Config",
    "StartOperator",
    "StartConfig",
    "Option",
    "StartOption",
    "new_config",
    "with_linearizable_read_safe",
    "with_linearizable_read_lease_based",
    "with_tick_interval",
    "with_stream_timeout",
    "with_drain_timeout",
    "with_state_dir",
    "with_max_snapshot_files",
    "with_snapshot_interval",
    "with_election_tick",
    "with_heartbeat_tick",
    "with_max_size_per_msg",
    "with_max_committed_size_per_ready",
    "with_max_uncommitted_entries_size",
    "with_max_inflight_msgs",
    "with_check_quorum",
    "with_pre_vote",
    "with_disable_proposal_forwarding",
    "with_context",
    "with_logger",
    "with_pipelining",
    "with_join",
    "with_force_join",
    "with_init_cluster",
    "with_force_new_cluster",
    "with_restore",
    "with_restart",
    "with_members",
    "with_address",
    "with_fallback",
]

Duration = Union[timedelta, int, float]


def _as_timedelta(value: Duration) -> timedelta:
    if isinstance(value, timedelta):
        return value
    return timedelta(seconds=value)


class ReadOnlyOption(enum.IntEnum):
    """How linearizable read requests are served."""

    SAFE = 0
    """Confirm leadership with a quorum for every read."""
    LEASE_BASED = 1
    """Rely on the leader lease; sensitive to clock drift."""


@dataclass
class RaftConfig:
    """Consensus parameters of a raft member."""

    election_tick: int = 10
    heartbeat_tick: int = 1
    max_size_per_msg: int = 1024 * 1024
    max_committed_size_per_ready: int = 0
    max_uncommitted_entries_size: int = 1 << 30
    max_inflight_msgs: int = 256
    check_quorum: bool = False
    pre_vote: bool = False
    disable_proposal_forwarding: bool = False
    read_only_option: ReadOnlyOption = ReadOnlyOption.SAFE


@dataclass
class Config:
    """Everything a node needs to run, with its collaborators."""

    ctx: Any = None
    raft: RaftConfig = field(default_factory=RaftConfig)
    tick_interval: timedelta = timedelta(milliseconds=100)
    stream_timeout: timedelta = timedelta(seconds=10)
    drain_timeout: timedelta = timedelta(seconds=10)
    state_dir: str = field(default_factory=tempfile.gettempdir)
    max_snapshot_files: int = 5
    snap_interval: int = 1000
    group_id: int = 0
    controller: Any = None
    storage: Any = None
    pool: Any = None
    dial: Any = None
    engine: Any = None
    mux: Any = None
    fsm: Any = None
    logger: Any = field(default_factory=lambda: raftlog.DEFAULT_LOGGER)
    pipelining: bool = False
    rejoin: bool = False


Option = Callable[[Config], None]


@dataclass(frozen=True)
class StartOperator:
    """One step of the node start-up sequence.

    ``kind`` is one of ``join``, ``force_join``, ``init_cluster``,
    ``force_new_cluster``, ``restore``, ``restart``, ``members`` or
    ``fallback``; the other fields carry the parameters of that kind.
    """

    kind: str
    addr: str = ""
    timeout: timedelta = timedelta(0)
    path: str = ""
    members: tuple[RawMember, ...] = ()
    operators: tuple["StartOperator", ...] = ()


@dataclass
class StartConfig:
    """Collected start-up operators and the node address."""

    operators: list[StartOperator] = field(default_factory=list)
    addr: str = ""

    def apply(self, *args: "StartOption") -> None:
        """Apply the given start options in order."""
        for option in args:
            option(self)


StartOption = Callable[[StartConfig], None]


def new_config(*args: Option) -> Config:
    """Return a default configuration with the given options applied."""
    config = Config()
    for option in args:
        option(config)
    return config


def _set_raft(name: str, value: Any) -> Option:
    def option(config: Config) -> None:
        setattr(config.raft, name, value)

    return option


def _set(name: str, value: Any) -> Option:
    def option(config: Config) -> None:
        setattr(config, name, value)

    return option


def with_linearizable_read_safe() -> Option:
    """Serve linearizable reads by consulting the quorum (the default)."""
    return lambda config: None


def with_linearizable_read_lease_based() -> Option:
    """Serve linearizable reads from the leader lease."""
    return _set_raft("read_only_option", ReadOnlyOption.LEASE_BASED)


def with_tick_interval(interval: Duration) -> Option:
    """Interval of one logical clock tick. Default 100 ms."""
    return _set("tick_interval", _as_timedelta(interval))


def with_stream_timeout(timeout: Duration) -> Option:
    """Timeout for streaming messages to other members. Default 10 s."""
    return _set("stream_timeout", _as_timedelta(timeout))


def with_drain_timeout(timeout: Duration) -> Option:
    """Timeout for draining pending messages on shutdown. Default 10 s."""
    return _set("drain_timeout", _as_timedelta(timeout))


def with_state_dir(path: str) -> Option:
    """Directory for WAL and snapshots. Default: the temporary directory."""
    return _set("state_dir", path)


def with_max_snapshot_files(limit: int) -> Option:
    """Number of snapshots kept beyond the current one. Default 5."""
    return _set("max_snapshot_files", limit)


def with_snapshot_interval(interval: int) -> Option:
    """Number of log entries between snapshots. Default 1000."""
    return _set("snap_interval", interval)


def with_election_tick(tick: int) -> Option:
    """Ticks without leader contact before an election starts. Default 10."""
    return _set_raft("election_tick", tick)


def with_heartbeat_tick(tick: int) -> Option:
    """Ticks between leader heartbeats. Default 1."""
    return _set_raft("heartbeat_tick", tick)


def with_max_size_per_msg(limit: int) -> Option:
    """Maximum byte size of one append message. Default 1 MiB."""
    return _set_raft("max_size_per_msg", limit)


def with_max_committed_size_per_ready(limit: int) -> Option:
    """Limit on committed entries applied at once. Default 0."""
    return _set_raft("max_committed_size_per_ready", limit)


def with_max_uncommitted_entries_size(limit: int) -> Option:
    """Limit on uncommitted bytes in the leader log; 0 for none. Default 1 GiB."""
    return _set_raft("max_uncommitted_entries_size", limit)


def with_max_inflight_msgs(limit: int) -> Option:
    """Maximum in-flight append messages. Default 256."""
    return _set_raft("max_inflight_msgs", limit)


def with_check_quorum() -> Option:
    """Make the leader step down when the quorum is not active."""
    return _set_raft("check_quorum", True)


def with_pre_vote() -> Option:
    """Enable the pre-vote phase before elections."""
    return _set_raft("pre_vote", True)


def with_disable_proposal_forwarding() -> Option:
    """Make followers drop proposals instead of forwarding them."""
    return _set_raft("disable_proposal_forwarding", True)


def with_context(ctx: Any) -> Option:
    """Set the parent context that bounds the node lifetime."""
    return _set("ctx", ctx)


def with_logger(logger: Any) -> Option:
    """Set the logger. Default: the package default logger."""
    return _set("logger", logger)


def with_pipelining() -> Option:
    """Send successive requests over one connection without waiting."""
    return _set("pipelining", True)


def _with_rejoin() -> Option:
    return _set("rejoin", True)


def _append(operator: StartOperator) -> StartOption:
    def option(config: StartConfig) -> None:
        config.operators.append(operator)

    return option


def with_join(addr: str, timeout: Duration) -> StartOption:
    """Join the cluster through ``addr``, or wait for the leader if empty."""
    return _append(StartOperator("join", addr=addr, timeout=_as_timedelta(timeout)))


def with_force_join(addr: str, timeout: Duration) -> StartOption:
    """Join through ``addr`` even when already part of a cluster."""
    return _append(StartOperator("force_join", addr=addr, timeout=_as_timedelta(timeout)))


def with_init_cluster() -> StartOption:
    """Initialise a new cluster."""
    return _append(StartOperator("init_cluster"))


def with_force_new_cluster() -> StartOption:
    """Start a new cluster from the state directory, keeping the node id."""
    return _append(StartOperator("force_new_cluster"))


def with_restore(path: str) -> StartOption:
    """Start a new cluster from the snapshot file at ``path``."""
    return _append(StartOperator("restore", path=path))


def with_restart() -> StartOption:
    """Restart the node from the state directory."""
    return _append(StartOperator("restart"))


def with_members(*args: RawMember) -> StartOption:
    """Add members to the node; the first one is the node itself."""
    return _append(StartOperator("members", members=tuple(args)))


def with_address(addr: str) -> StartOption:
    """Set the node address."""

    def option(config: StartConfig) -> None:
        config.addr = addr

    return option


def with_fallback(*args: StartOption) -> StartOption:
    """Try each of the given start options until one succeeds."""

    def option(config: StartConfig) -> None:
        nested = StartConfig()
        nested.apply(*args)
        config.operators.append(StartOperator("fallback", operators=tuple(nested.operators)))

    return option