# raftkit

`raftkit` is the application-facing layer of a Raft consensus node. It has
five modules:

- **`raftkit.node`**: `Node`, the front API used to propose changes to a
  Raft cluster, and `Membership`, which builds and proposes batches of
  membership changes.
- **`raftkit.config`**: `Config`, `RaftConfig` and `new_config` with the node
  options (`with_*` functions), plus `StartConfig`, `StartOperator` and the
  start options that say how a node joins or forms a cluster.
- **`raftkit.conditions`**: the pre-conditions a node checks before it accepts
  an operation (joined, leader known, quorum available, and so on).
- **`raftkit.types`**: `NONE`, `MemberType`, `RawMember`, `Member` and the
  error classes.
- **`raftkit.raftlog`**: a small leveled logger with verbosity gating.

The package has no dependencies outside the standard library.

## What the package does not do

`raftkit` does not run consensus, store a write-ahead log or snapshots, or
talk over the network. A `Node` is built from collaborators that you supply,
and it checks pre-conditions and then calls them:

- `engine`: runs consensus. It provides `status()`, `shutdown(ctx)`,
  `start(addr, *operators)`, `linearizable_read(ctx)`, `create_snapshot()`,
  `transfer_leadership(ctx, member_id)`, `propose_replicate(ctx, data)` and
  `propose_conf_change(ctx, *members)`. `status()` returns an object with
  `id`, `lead` and `progress`. `progress` maps a member id to an object with
  `match`, or is `None` when the node does not track progress.
- `pool`: the known members, with `get(member_id)` (a member or `None`),
  `members()` and `next_id()`.
- `storage`: `snapshotter()`, whose `reader(term, index)` opens a snapshot.
- `dial(ctx, address)`: returns a client whose `promote_member(ctx, raw)`
  forwards a promotion to the leader.
- `handler`: any object. `Node.handler()` returns it unchanged.

```python
from raftkit.node import Node
from raftkit.config import new_config, with_disable_proposal_forwarding

node = Node(engine, pool=pool, storage=storage, dial=dial,
            config=new_config(with_disable_proposal_forwarding()))
```

If `config` is omitted, `new_config()` is used.

## Configuring a node

Node options follow the functional-options style. Each `with_*` function
returns an option, and `new_config` applies them over the defaults, in order:

```python
from raftkit.config import (
    new_config,
    with_election_tick,
    with_heartbeat_tick,
    with_snapshot_interval,
    with_max_snapshot_files,
    with_check_quorum,
    with_pre_vote,
)

cfg = new_config(
    with_election_tick(20),
    with_heartbeat_tick(2),
    with_snapshot_interval(5000),
    with_max_snapshot_files(3),
    with_check_quorum(),
    with_pre_vote(),
)
assert cfg.raft.election_tick == 20
```

Consensus parameters are kept in `cfg.raft`, a `RaftConfig`. The other
settings are attributes of `Config` itself.

Defaults when no option is given:

| Setting                        | Default                  |
|--------------------------------|--------------------------|
| election tick                  | 10                       |
| heartbeat tick                 | 1                        |
| tick interval                  | 100 ms                   |
| stream timeout / drain timeout | 10 s                     |
| max size per message           | 1024 * 1024              |
| max inflight messages          | 256                      |
| max uncommitted entries size   | 1 << 30                  |
| max committed size per ready   | 0                        |
| max snapshot files             | 5                        |
| snapshot interval              | 1000 entries             |
| state directory                | `tempfile.gettempdir()`  |
| linearizable reads             | `ReadOnlyOption.SAFE`    |
| check quorum, pre-vote         | off                      |
| proposal forwarding            | on                       |
| pipelining                     | off                      |
| logger                         | `raftlog.DEFAULT_LOGGER` |

Other options: `with_linearizable_read_safe` (keeps the default),
`with_linearizable_read_lease_based`, `with_tick_interval`,
`with_stream_timeout`, `with_drain_timeout`, `with_state_dir`,
`with_max_size_per_msg`, `with_max_committed_size_per_ready`,
`with_max_uncommitted_entries_size`, `with_max_inflight_msgs`,
`with_disable_proposal_forwarding`, `with_context`, `with_logger` and
`with_pipelining`. Durations can be given as a `timedelta` or as a number of
seconds. They are stored as `timedelta`.

## Starting a node

Start options are applied to a `StartConfig` by `Node.start`. Each one adds a
`StartOperator` whose `kind` names it. The node address and the operators are
then passed to `engine.start`:

- `with_init_cluster()`: form a new cluster (`"init_cluster"`).
- `with_join(addr, timeout)` / `with_force_join(addr, timeout)`: join an
  existing cluster (`"join"`, `"force_join"`).
- `with_restart()`: restart from the state directory (`"restart"`).
- `with_force_new_cluster()`: start a new cluster from local state, keeping
  the node id (`"force_new_cluster"`).
- `with_restore(path)`: start a new cluster from a snapshot file (`"restore"`).
- `with_members(*members)`: seed the member list. The first member is the
  local node (`"members"`).
- `with_address(addr)`: set the local node's address. This adds no operator.
- `with_fallback(*options)`: nests the operators of the given options in one
  `"fallback"` operator, to be tried in turn.

```python
from raftkit.config import StartConfig, with_fallback, with_join, with_restart

sc = StartConfig()
sc.apply(with_fallback(with_join("10.0.0.1:7000", 2), with_restart()))
assert sc.operators[0].kind == "fallback"
```

## Working with a node

`Node` exposes the cluster operations:

- `replicate(ctx, data)`: propose data for replication to all members.
- `linearizable_read(ctx)`: wait until reads reflect every committed write.
- `snapshot()`: force a snapshot and return the storage's reader for it.
- `transfer_leadership(ctx, member_id)` and `stepdown(ctx)`. `stepdown` hands
  leadership to the longest-active voter other than itself and must be run
  on the leader.
- `add_member`, `update_member`, `remove_member`, `promote_member`,
  `demote_member` and `leave`.
  - `add_member` assigns `pool.next_id()` when the member's id is `NONE`.
  - `update_member` keeps the member's current type.
  - `remove_member` proposes the member with type `MemberType.REMOVED`.
  - `promote_member` forwards the request to the leader when this node does
    not track progress. On the leader it fails unless the learner's match
    index is at least 90% of the leader's.
- `members()`, `get_member(member_id)`, `whoami()` and `leader()`. `whoami()`
  and `leader()` return `NONE` when the engine's status raises a `RaftError`.
- `start(*options)`, `shutdown(ctx)` and `handler()`.

Several membership changes can be proposed together, as one joint-consensus
change:

```python
(node.membership()
     .add(new_raw_member)
     .demote(old_voter_id)
     .propose(ctx))
```

Each step checks its pre-conditions. If any step fails, `propose` raises and
proposes nothing. With one failure the original error is raised. With
several, one `RaftError` is raised that joins their messages and keeps them
in its `errors` attribute.

## Members

- `MemberType`: `VOTER`, `REMOVED`, `LEARNER`, `STAGING`. `str()` gives the
  lower-case name, for example `"learner"`.
- `RawMember`: `id`, `address`, `type` and `context` (bytes). `copy()` gives
  an independent copy.
- `Member`: wraps a `RawMember` with an `active` flag and a `since`
  timestamp. It exposes `id`, `address`, `type`, `is_active` and
  `active_since`, and `raw()` returns a copy of the metadata.

## Errors

Operations raise subclasses of `raftkit.types.RaftError`:

- `NodeStoppedError`: the node is shut down or was never started.
- `NotLeaderError`: the operation needs the leader, or proposal forwarding is
  disabled on a follower.
- `NoLeaderError`: the cluster has no elected leader.

Other pre-condition failures raise a plain `RaftError` whose message gives
the cause: the node has not joined, the member is unknown or removed, an id or
address is already in use, the target is the leader, the member has the wrong
type (for example `"is a learner not a voter"`), or the quorum is lost.

## Logging

```python
import sys
from raftkit.raftlog import new_logger, LogPanic

log = new_logger(2, "node-1 ", sys.stderr)
log.info("node started")
log.v(2).info("shown: verbosity 2 is enabled")
log.v(3).info("suppressed: verbosity 3 is above the logger's level")
log.infof("member %x joined", 255)

try:
    log.panic("unrecoverable state")
except LogPanic:
    pass
```

A logger takes one writer per severity (INFO, WARNING, ERROR, FATAL, PANIC).
A writer is any object with `write(text)`. If fewer writers are given, the
last one fills the remaining severities. With none, standard error is used.
A message is written to the writer of its own severity and to the writers of
every lower severity. Use `raftlog.DISCARD` to silence a level. Each line is
the prefix, a `YYYY/MM/DD HH:MM:SS` timestamp, the severity name and the
message.

The `*f` methods take printf-style verbs such as `%v`, `%s`, `%d`, `%x` and
`%q`. `fatal` logs and then calls `sys.exit(1)`. `panic` logs and then raises
`LogPanic`. The module-level functions (`info`, `warningf`, `v`, and so on)
use `DEFAULT_LOGGER`. Its INFO writer is standard error and the writers of
the other levels discard, so every message reaches standard error once.