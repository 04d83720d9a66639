from datetime import datetime, timedelta
from types import SimpleNamespace

import pytest

from raftkit.config import (
    StartOperator,
    new_config,
    with_address,
    with_disable_proposal_forwarding,
    with_init_cluster,
)
from raftkit.node import Membership, Node
from raftkit.types import (
    NONE,
    Member,
    MemberType,
    NodeStoppedError,
    NoLeaderError,
    NotLeaderError,
    RaftError,
    RawMember,
)


def status(member_id=NONE, lead=NONE, progress=None):
    return SimpleNamespace(id=member_id, lead=lead, progress=progress)


class FakeEngine:
    def __init__(self, state=None, error=None):
        self.state = state if state is not None else status()
        self.error = error
        self.calls = []

    def status(self):
        if self.error is not None:
            raise self.error
        return self.state

    def shutdown(self, ctx):
        self.calls.append(("shutdown", ctx))

    def start(self, addr, *operators):
        self.calls.append(("start", addr, operators))
        return "started"

    def linearizable_read(self, ctx):
        self.calls.append(("read", ctx))

    def create_snapshot(self):
        return SimpleNamespace(metadata=SimpleNamespace(term=2, index=9))

    def transfer_leadership(self, ctx, member_id):
        self.calls.append(("transfer", member_id))

    def propose_replicate(self, ctx, data):
        self.calls.append(("replicate", data))

    def propose_conf_change(self, ctx, *members):
        self.calls.append(("conf_change", members))


class FakePool:
    def __init__(self, *members, next_id=0):
        self._members = {m.id: m for m in members}
        self._next_id = next_id

    def get(self, member_id):
        return self._members.get(member_id)

    def members(self):
        return list(self._members.values())

    def next_id(self):
        return self._next_id


def member(member_id, member_type=MemberType.VOTER, active=True, address=None, since=None):
    raw = RawMember(id=member_id, address=address or f"addr-{member_id}", type=member_type)
    return Member(raw, active, since or datetime.now())


def make_node(*members, state=None, config=None, **kwargs):
    engine = FakeEngine(state if state is not None else status(1, 1))
    pool = FakePool(*members, next_id=kwargs.pop("next_id", 0))
    return Node(engine, pool=pool, config=config, **kwargs), engine


def test_handler():
    node = Node(FakeEngine(), handler="TestHandler")
    assert node.handler() == "TestHandler"


def test_shutdown_delegates_to_engine():
    node, engine = make_node()
    assert node.shutdown("ctx") is None
    assert engine.calls == [("shutdown", "ctx")]


def test_linearizable_read():
    node, engine = make_node(member(1))
    node.linearizable_read("ctx")
    assert engine.calls == [("read", "ctx")]


def test_linearizable_read_not_joined():
    node, engine = make_node(member(1), state=status())
    with pytest.raises(RaftError, match="not yet part of a raft cluster"):
        node.linearizable_read("ctx")
    assert engine.calls == []


def test_snapshot_reads_from_snapshotter():
    seen = []

    class Snapshotter:
        def reader(self, term, index):
            seen.append((term, index))
            return "reader"

    storage = SimpleNamespace(snapshotter=lambda: Snapshotter())
    node, _ = make_node(member(1), storage=storage)
    assert node.snapshot() == "reader"
    assert seen == [(2, 9)]


def test_transfer_leadership():
    node, engine = make_node(member(1), member(10))
    node.transfer_leadership("ctx", 10)
    assert engine.calls == [("transfer", 10)]


def test_transfer_leadership_quorum_lost():
    node, engine = make_node(member(1), member(10, active=False))
    with pytest.raises(RaftError, match="quorum lost"):
        node.transfer_leadership("ctx", 10)
    assert engine.calls == []


def test_stepdown_picks_active_voter():
    base = datetime.now()
    node, engine = make_node(
        member(1, since=base - timedelta(seconds=10)),
        member(2, since=base),
        member(3, since=base + timedelta(seconds=1)),
    )
    node.stepdown("ctx")
    assert engine.calls == [("transfer", 2)]


def test_stepdown_without_candidate():
    node, engine = make_node(member(1))
    with pytest.raises(RaftError, match="longest active member"):
        node.stepdown("ctx")
    assert engine.calls == []


def test_stepdown_requires_leader():
    node, _ = make_node(member(1), member(2), state=status(1, 2))
    with pytest.raises(NotLeaderError):
        node.stepdown("ctx")


def test_update_member_keeps_type():
    node, engine = make_node(member(1), member(2, MemberType.LEARNER))
    raw = RawMember(id=2, address="new-addr")
    node.update_member("ctx", raw)
    assert raw.type == MemberType.LEARNER
    assert engine.calls == [("conf_change", (raw,))]


def test_replicate():
    node, engine = make_node(member(1))
    node.replicate("ctx", b"data")
    assert engine.calls == [("replicate", b"data")]


def test_replicate_forwarding_disabled_on_follower():
    config = new_config(with_disable_proposal_forwarding())
    node, engine = make_node(member(1), member(2), state=status(1, 2), config=config)
    with pytest.raises(NotLeaderError):
        node.replicate("ctx", b"data")
    assert engine.calls == []


def test_replicate_from_learner():
    node, _ = make_node(member(1, MemberType.LEARNER), member(2), state=status(1, 2))
    with pytest.raises(RaftError, match="is a learner not a voter"):
        node.replicate("ctx", b"data")


def test_remove_member():
    node, engine = make_node(member(1), member(2))
    node.remove_member("ctx", 2)
    (name, proposed), = engine.calls
    assert name == "conf_change"
    assert proposed[0].id == 2
    assert proposed[0].type == MemberType.REMOVED
    assert node.get_member(2).type == MemberType.VOTER


def test_leave_as_leader_is_refused():
    node, _ = make_node(member(1), member(2))
    with pytest.raises(RaftError, match="is the leader"):
        node.leave("ctx")


def test_add_member_assigns_next_id():
    node, engine = make_node(member(1), next_id=10)
    raw = RawMember(type=MemberType.LEARNER, address="new")
    node.add_member("ctx", raw)
    assert raw.id == 10
    assert engine.calls == [("conf_change", (raw,))]


def test_demote_member():
    node, engine = make_node(member(1), member(2))
    node.demote_member("ctx", 2)
    (_, proposed), = engine.calls
    assert proposed[0].type == MemberType.LEARNER


def test_members():
    node, _ = make_node(member(1), member(2))
    assert [m.id for m in node.members()] == [1, 2]


def test_leader():
    node, _ = make_node(state=status(lead=10))
    assert node.leader() == 10


def test_whoami_when_engine_stopped():
    node = Node(FakeEngine(error=NodeStoppedError()))
    assert node.whoami() == NONE
    assert node.leader() == NONE


def test_start_passes_operators():
    node, engine = make_node()
    assert node.start(with_address(":1"), with_init_cluster()) == "started"
    assert engine.calls == [("start", ":1", (StartOperator("init_cluster"),))]


class FakeClient:
    def __init__(self):
        self.promoted = []

    def promote_member(self, ctx, raw):
        self.promoted.append(raw)
        return "forwarded"


def promote_setup(progress=None):
    return make_node(
        member(1),
        member(10, address="leader-addr"),
        member(2, MemberType.LEARNER),
        state=status(1, 10, progress),
    )


def test_promote_forwarded_without_leader():
    node, _ = promote_setup()
    with pytest.raises(NoLeaderError, match="no elected cluster leader"):
        node._promote_member("ctx", 2, True)


def test_promote_dial_error():
    node, _ = promote_setup()

    def dial(ctx, addr):
        raise NotLeaderError()

    node._dial = dial
    with pytest.raises(NotLeaderError):
        node.promote_member("ctx", 2)


def test_promote_forwards_to_leader():
    node, _ = promote_setup()
    client = FakeClient()
    dialed = []

    def dial(ctx, addr):
        dialed.append(addr)
        return client

    node._dial = dial
    assert node.promote_member("ctx", 2) == "forwarded"
    assert dialed == ["leader-addr"]
    assert [raw.id for raw in client.promoted] == [2]


def test_promote_learner_not_synced():
    node, engine = promote_setup({10: SimpleNamespace(match=100)})
    with pytest.raises(RaftError, match="not synced with the leader yet"):
        node.promote_member("ctx", 2)
    assert engine.calls == []


def test_promote_learner_synced():
    node, engine = promote_setup(
        {10: SimpleNamespace(match=100), 2: SimpleNamespace(match=90)}
    )
    node.promote_member("ctx", 2)
    (_, proposed), = engine.calls
    assert proposed[0].id == 2
    assert proposed[0].type == MemberType.VOTER


def test_promote_requires_learner():
    node, _ = make_node(member(1), member(2))
    with pytest.raises(RaftError, match="is a voter not a learner"):
        node.promote_member("ctx", 2)


def test_membership_collects_errors():
    node, engine = make_node(member(1), member(2))
    batch = node.membership().add(RawMember(id=2, address="z")).remove(7)
    with pytest.raises(RaftError) as info:
        batch.propose("ctx")
    assert "id used by member 2" in str(info.value)
    assert "unknown member 7" in str(info.value)
    assert engine.calls == []


def test_membership_joint_change():
    node, engine = make_node(member(1), member(2), member(3))
    Membership(node).remove(2).demote(3).propose("ctx")
    (_, proposed), = engine.calls
    assert [(raw.id, raw.type) for raw in proposed] == [
        (2, MemberType.REMOVED),
        (3, MemberType.LEARNER),
    ]


def test_membership_update_address_in_use():
    node, _ = make_node(member(1), member(2, address="taken"), member(3))
    with pytest.raises(RaftError, match="address used by member 2"):
        node.update_member("ctx", RawMember(id=3, address="taken"))