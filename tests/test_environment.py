"""
Tests for the protocol environment.

Covers:
  - Bridge queue and upgrade creation
  - Time interface (non-decreasing, repeats are no-ops)
  - Atomic apply-or-reject
  - Freeze exclusivity and zk_frozen
  - Queries, invariants and diagnostic snapshot
"""

import pytest

from conftest import RELAYER, make_proposal, start_upgrade

from zkgov.config import FreezeConfig, GovernanceConfig
from zkgov.constants import DAY, HOUR
from zkgov.governance import (
    AuthorizationError,
    FreezeStatus,
    GovernanceAddresses,
    ProtocolEnvironment,
    StateError,
    ThresholdMultisig,
    TimingError,
    UpgradeStage,
    sign_action,
)
from zkgov.governance.security_council import (
    hard_freeze_digest,
    set_soft_freeze_threshold_digest,
    soft_freeze_digest,
    unfreeze_digest,
)


# ══════════════════════════════════════════════════════════════════════
#  1. GENESIS
# ══════════════════════════════════════════════════════════════════════

class TestGenesis:
    """Initial environment."""

    def test_defaults(self, env):
        assert env.block_timestamp == 0
        assert env.get_all_upgrade_ids() == set()
        assert not env.is_frozen()
        assert env.addresses == GovernanceAddresses()
        assert env.check_invariants() == []

    def test_small_council_caps_soft_threshold(self, council_keys, guardian_keys, foundation_keys):
        env = ProtocolEnvironment.genesis(
            security_council=ThresholdMultisig.create([k.address for k in council_keys[:4]], 3),
            guardians=ThresholdMultisig.create([k.address for k in guardian_keys], 3),
            foundation=ThresholdMultisig.create([k.address for k in foundation_keys], 2),
        )
        assert env.security_council.soft_freeze_threshold == 4

    def test_domain_binds_chain(self, env):
        domain = env.domain(env.addresses.guardians)
        assert domain.chain_id == env.config.network.chain_id
        assert domain.verifying_contract == env.addresses.guardians


# ══════════════════════════════════════════════════════════════════════
#  2. QUEUE
# ══════════════════════════════════════════════════════════════════════

class TestProposalQueue:
    """Bridge delivery and dequeue."""

    def test_enqueue_and_start(self, env):
        proposal = make_proposal(1)
        env, result = env.enqueue_proposal(proposal.encode())
        assert result.value == proposal.id
        assert len(env.pending_transactions) == 1
        env, result = env.start_upgrade()
        assert result.value == proposal.id
        assert env.pending_transactions == []
        assert env.get_all_upgrade_ids() == {proposal.id}
        assert env.get_stage(proposal.id) == UpgradeStage.LEGAL_VETO_PERIOD

    def test_fifo(self, env):
        env, _ = env.enqueue_proposal(make_proposal(1).encode())
        env, _ = env.enqueue_proposal(make_proposal(2).encode())
        env, result = env.start_upgrade()
        assert result.value == make_proposal(1).id

    def test_start_empty_queue(self, env):
        after, result = env.start_upgrade()
        assert isinstance(result.error, StateError)
        assert after is env

    def test_reject_malformed_calldata(self, env):
        _, result = env.enqueue_proposal(b"\x01\x02")
        assert isinstance(result.error, StateError)

    def test_reject_duplicate_queued(self, env):
        env, _ = env.enqueue_proposal(make_proposal(1).encode())
        _, result = env.enqueue_proposal(make_proposal(1).encode())
        assert isinstance(result.error, StateError)
        assert "already queued" in result.message

    def test_reject_existing_upgrade(self, env):
        env, _ = start_upgrade(env, make_proposal(1))
        _, result = env.enqueue_proposal(make_proposal(1).encode())
        assert isinstance(result.error, StateError)
        assert "already exists" in result.message

    def test_creation_uses_block_timestamp(self, env):
        env, _ = env.advance_time(5 * DAY)
        env, uid = start_upgrade(env, make_proposal(1))
        status = env.get_status(uid)
        assert status.creation_timestamp == 5 * DAY
        assert status.legal_veto_period_end == 8 * DAY


# ══════════════════════════════════════════════════════════════════════
#  3. TIME
# ══════════════════════════════════════════════════════════════════════

class TestTime:
    """Block timestamps never go backwards."""

    def test_advance(self, env):
        env, result = env.advance_time(100)
        assert result.ok
        assert env.block_timestamp == 100

    def test_repeat_is_noop(self, env):
        env, _ = env.advance_time(100)
        again, result = env.advance_time(100)
        assert result.ok
        assert again.block_timestamp == 100
        assert again.to_dict() == env.to_dict()

    def test_backwards_rejected(self, env):
        env, _ = env.advance_time(100)
        after, result = env.advance_time(99)
        assert isinstance(result.error, TimingError)
        assert after.block_timestamp == 100


# ══════════════════════════════════════════════════════════════════════
#  4. ATOMICITY
# ══════════════════════════════════════════════════════════════════════

class TestAtomicity:
    """Rejected actions leave the environment untouched."""

    def test_failed_action_returns_original(self, env, council_keys):
        env, _ = env.advance_time(10)
        snapshot = env.to_dict()
        after, result = env.hard_freeze(RELAYER, sign_action(council_keys[:2], hard_freeze_digest(env)))
        assert not result.ok
        assert after is env
        assert env.to_dict() == snapshot

    def test_handler_rejection_rolls_back_engine(self, env, council_keys):
        # Authorization passes, then the handler refuses: no nonce bump, no history
        env, _ = env.hard_freeze(RELAYER, sign_action(council_keys, hard_freeze_digest(env)))
        snapshot = env.to_dict()
        after, result = env.hard_freeze(RELAYER, sign_action(council_keys, hard_freeze_digest(env)))
        assert isinstance(result.error, StateError)
        assert after.to_dict() == snapshot
        assert after.security_council.hard_freeze_nonce == 1

    def test_success_does_not_mutate_original(self, env, council_keys):
        after, result = env.soft_freeze(RELAYER, sign_action(council_keys, soft_freeze_digest(env)))
        assert result.ok
        assert after is not env
        assert not env.is_frozen()
        assert env.security_council.soft_freeze_nonce == 0
        assert env.call_history.depth == 0

    @pytest.mark.parametrize("sender", ["relayer", "0x1234", "aa" * 20, None])
    def test_malformed_sender_is_a_result(self, env, council_keys, sender):
        sigs = sign_action(council_keys, soft_freeze_digest(env))
        after, result = env.soft_freeze(sender, sigs)
        assert isinstance(result.error, AuthorizationError)
        assert "Invalid sender" in result.message
        assert after is env

    def test_malformed_sender_on_execute(self, env):
        proposal = make_proposal(1)
        env, uid = start_upgrade(env, proposal)
        after, result = env.execute_upgrade("not-an-address", uid, proposal.encode())
        assert isinstance(result.error, AuthorizationError)
        assert after is env

    def test_get_status_is_a_copy(self, env):
        env, uid = start_upgrade(env, make_proposal(1))
        status = env.get_status(uid)
        status.executed = True
        assert env.get_stage(uid) == UpgradeStage.LEGAL_VETO_PERIOD


# ══════════════════════════════════════════════════════════════════════
#  5. FREEZE EXCLUSIVITY
# ══════════════════════════════════════════════════════════════════════

class TestFreezeExclusivity:
    """zk_frozen iff a live freeze is recorded."""

    def test_soft_window(self, env, council_keys):
        env, _ = env.advance_time(HOUR)
        env, _ = env.soft_freeze(RELAYER, sign_action(council_keys, soft_freeze_digest(env)))
        until = env.freeze.protocol_frozen_until
        assert until == 13 * HOUR
        for t, frozen in [(HOUR, True), (until - 1, True), (until, False), (until + DAY, False)]:
            env, _ = env.advance_time(t)
            assert env.zk_frozen is frozen
            assert env.freeze.status == FreezeStatus.SOFT_FROZEN

    def test_hard_until_unfreeze(self, env, council_keys):
        env, _ = env.hard_freeze(RELAYER, sign_action(council_keys, hard_freeze_digest(env)))
        env, _ = env.advance_time(365 * DAY)
        assert env.zk_frozen
        env, _ = env.unfreeze(RELAYER, sign_action(council_keys, unfreeze_digest(env)))
        assert not env.zk_frozen

    def test_finite_hard_freeze(self, council_keys, guardian_keys, foundation_keys):
        env = ProtocolEnvironment.genesis(
            security_council=ThresholdMultisig.create([k.address for k in council_keys], 6),
            guardians=ThresholdMultisig.create([k.address for k in guardian_keys], 3),
            foundation=ThresholdMultisig.create([k.address for k in foundation_keys], 2),
            config=GovernanceConfig(freeze=FreezeConfig(hard_freeze_period=7 * DAY)),
        )
        env, _ = env.hard_freeze(RELAYER, sign_action(council_keys, hard_freeze_digest(env)))
        env, _ = env.advance_time(7 * DAY)
        assert not env.zk_frozen


# ══════════════════════════════════════════════════════════════════════
#  6. QUERIES & INVARIANTS
# ══════════════════════════════════════════════════════════════════════

class TestQueriesAndInvariants:
    """Read-only surface."""

    def test_unknown_status(self, env):
        assert env.get_status("0x" + "ab" * 32) is None
        assert env.get_stage("0x" + "ab" * 32) == UpgradeStage.NONE

    def test_invariants_hold_through_workflow(self, env, council_keys):
        proposal = make_proposal(1)
        env, uid = start_upgrade(env, proposal)
        assert env.check_invariants() == []
        sigs = sign_action(council_keys, set_soft_freeze_threshold_digest(env, 3))
        env, _ = env.set_soft_freeze_threshold(RELAYER, 3, sigs)
        env, _ = env.soft_freeze(RELAYER, sign_action(council_keys[:3], soft_freeze_digest(env)))
        assert env.check_invariants() == []
        env, _ = env.advance_time(DAY)
        env, _ = env.unfreeze(RELAYER, sign_action(council_keys, unfreeze_digest(env)))
        assert env.check_invariants() == []

    def test_invariants_detect_corruption(self, env):
        env, uid = start_upgrade(env, make_proposal(1))
        env.lifecycle.upgrades[uid].legal_veto_period_end = 100 * DAY
        env.security_council.soft_freeze_threshold = 12
        violated = env.check_invariants()
        assert "upgrade_timestamps_consistent" in violated
        assert "soft_freeze_threshold_bounds" in violated

    def test_invariants_detect_stray_freeze_expiry(self, env):
        env.freeze.protocol_frozen_until = 10
        assert env.check_invariants() == ["freeze_until_only_while_frozen"]

    def test_to_dict(self, env, council_keys):
        env, uid = start_upgrade(env, make_proposal(1))
        env, _ = env.soft_freeze(RELAYER, sign_action(council_keys, soft_freeze_digest(env)))
        d = env.to_dict()
        assert d["zkFrozen"] is True
        assert d["freeze"]["status"] == "SOFT_FROZEN"
        assert d["upgrades"][uid]["stage"] == "LEGAL_VETO_PERIOD"
        assert d["securityCouncil"]["nonces"]["softFreeze"] == 1
        assert d["callHistory"]["lastSender"] == env.addresses.security_council

    def test_replayed_payload_fails(self, env, council_keys):
        sigs = sign_action(council_keys, hard_freeze_digest(env))
        env, _ = env.hard_freeze(RELAYER, sigs)
        env, _ = env.unfreeze(RELAYER, sign_action(council_keys, unfreeze_digest(env)))
        _, result = env.hard_freeze(RELAYER, sigs)
        assert isinstance(result.error, AuthorizationError)

    def test_repr(self, env):
        assert "ProtocolEnvironment" in repr(env)
