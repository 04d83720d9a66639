from dataclasses import dataclass, field

import pytest

from raftkit import conditions
from raftkit.config import Config, new_config, with_disable_proposal_forwarding
from raftkit.types import (
    Member,
    MemberType,
    NoLeaderError,
    NotLeaderError,
    RaftError,
    RawMember,
)


@dataclass
class FakeNode:
    me: int = 0
    lead: int = 0
    pool: list = field(default_factory=list)
    config: Config = field(default_factory=new_config)

    def whoami(self):
        return self.me

    def leader(self):
        return self.lead

    def members(self):
        return list(self.pool)

    def get_member(self, member_id):
        for member in self.pool:
            if member.id == member_id:
                return member
        return None


def make_member(member_id, address="", member_type=MemberType.VOTER, active=True):
    return Member(RawMember(id=member_id, address=address, type=member_type), active=active)


def test_not_type():
    check = conditions.not_type(1, MemberType.VOTER)
    assert check(FakeNode(pool=[make_member(1)])) is None
    with pytest.raises(RaftError, match="is a learner not a voter"):
        check(FakeNode(pool=[make_member(1, member_type=MemberType.LEARNER)]))


def test_not_type_unknown_member():
    with pytest.raises(RaftError, match="unknown member"):
        conditions.not_type(1, MemberType.VOTER)(FakeNode())


def test_disable_forwarding():
    check = conditions.disable_forwarding()
    assert check(FakeNode()) is None
    assert check(FakeNode(me=12, lead=3)) is None
    disabled = new_config(with_disable_proposal_forwarding())
    with pytest.raises(NotLeaderError, match="node is not the leader"):
        check(FakeNode(me=12, config=disabled))
    assert check(FakeNode(me=12, lead=12, config=disabled)) is None


def test_no_leader():
    check = conditions.no_leader()
    with pytest.raises(NoLeaderError, match="no elected cluster leader"):
        check(FakeNode())
    assert check(FakeNode(lead=10)) is None


def test_id_in_use():
    check = conditions.id_in_use(1)
    with pytest.raises(RaftError, match="id used by member 1"):
        check(FakeNode(pool=[make_member(1)]))
    assert check(FakeNode()) is None


def test_leader():
    assert conditions.leader(1)(FakeNode()) is None
    with pytest.raises(RaftError, match="is the leader"):
        conditions.leader(0)(FakeNode())


def test_not_leader():
    check = conditions.not_leader()
    with pytest.raises(NotLeaderError, match="node is not the leader"):
        check(FakeNode(me=15))
    assert check(FakeNode()) is None


def test_address_in_use():
    check = conditions.address_in_use(1, "addr")
    with pytest.raises(RaftError, match="address used by member 2"):
        check(FakeNode(pool=[make_member(2, "addr")]))
    assert check(FakeNode(pool=[make_member(2, "addr", MemberType.REMOVED)])) is None
    assert conditions.address_in_use(0, "")(FakeNode()) is None


def test_address_in_use_same_member_allowed():
    check = conditions.address_in_use(2, "addr")
    assert check(FakeNode(pool=[make_member(2, "addr")])) is None
    with pytest.raises(RaftError, match="address used by member 1a"):
        check(FakeNode(pool=[make_member(26, "addr")]))


def test_member_removed():
    check = conditions.member_removed(0)
    with pytest.raises(RaftError, match="removed"):
        check(FakeNode(pool=[make_member(0, member_type=MemberType.REMOVED)]))
    assert check(FakeNode()) is None


def test_not_member():
    check = conditions.not_member(0)
    assert check(FakeNode(pool=[make_member(0)])) is None
    with pytest.raises(RaftError, match="unknown member 0"):
        check(FakeNode())


def test_available():
    check = conditions.available()
    lost = FakeNode(pool=[make_member(1, active=False), make_member(2, active=True)])
    with pytest.raises(RaftError, match=" quorum lost"):
        check(lost)
    assert check(FakeNode(pool=[make_member(1, active=True)])) is None


def test_available_ignores_learners():
    check = conditions.available()
    node = FakeNode(
        pool=[
            make_member(1, active=True),
            make_member(2, member_type=MemberType.LEARNER, active=False),
            make_member(3, member_type=MemberType.LEARNER, active=False),
        ]
    )
    assert check(node) is None
    node.pool.append(make_member(4, active=False))
    with pytest.raises(RaftError, match="quorum lost"):
        check(node)


def test_joined():
    check = conditions.joined()
    with pytest.raises(RaftError, match="not yet part of a raft"):
        check(FakeNode())
    assert check(FakeNode(me=1)) is None