"""
Tests for the Emergency Upgrade Board.

Covers:
  - Three-party authorization in order (council, guardians, foundation)
  - Immediate execution of new and in-flight upgrades
  - Freeze lifting and board nonce replay protection
"""

from conftest import (
    COUNCIL_THRESHOLD,
    FOUNDATION_THRESHOLD,
    GUARDIANS_THRESHOLD,
    RELAYER,
    make_proposal,
    start_upgrade,
)

from zkgov.governance import (
    AuthorizationError,
    FreezeStatus,
    StateError,
    UpgradeStage,
    sign_action,
    upgrade_id,
)
from zkgov.governance.emergency_board import emergency_upgrade_digest
from zkgov.governance.security_council import hard_freeze_digest


def _signatures(env, uid, council_keys, guardian_keys, foundation_keys, council=COUNCIL_THRESHOLD,
                guardians=GUARDIANS_THRESHOLD, foundation=FOUNDATION_THRESHOLD):
    digest = emergency_upgrade_digest(env, uid)
    return (
        sign_action(council_keys[:council], digest),
        sign_action(guardian_keys[:guardians], digest),
        sign_action(foundation_keys[:foundation], digest),
    )


class TestEmergencyUpgrade:
    """Immediate execution under three-party approval."""

    def test_executes_new_upgrade(self, env, council_keys, guardian_keys, foundation_keys):
        proposal = make_proposal(9)
        sigs = _signatures(env, proposal.id, council_keys, guardian_keys, foundation_keys)
        env, result = env.execute_emergency_upgrade(RELAYER, proposal.encode(), *sigs)
        assert result.ok
        assert result.value == proposal.id
        status = env.get_status(proposal.id)
        assert status.executed and status.emergency
        assert env.get_stage(proposal.id) == UpgradeStage.EXECUTED
        assert len(env.executed_calls) == len(proposal.calls)
        assert env.emergency_board_nonce == 1
        assert env.check_invariants() == []

    def test_executes_in_flight_upgrade(self, env, council_keys, guardian_keys, foundation_keys):
        proposal = make_proposal(3)
        env, uid = start_upgrade(env, proposal)
        sigs = _signatures(env, uid, council_keys, guardian_keys, foundation_keys)
        env, result = env.execute_emergency_upgrade(RELAYER, proposal.encode(), *sigs)
        assert result.ok
        assert env.get_status(uid).creation_timestamp == 0
        assert env.get_stage(uid) == UpgradeStage.EXECUTED

    def test_queued_proposal_leaves_queue(self, env, council_keys, guardian_keys, foundation_keys):
        first, second = make_proposal(1), make_proposal(2)
        env, _ = env.enqueue_proposal(first.encode())
        env, _ = env.enqueue_proposal(second.encode())
        sigs = _signatures(env, first.id, council_keys, guardian_keys, foundation_keys)
        env, result = env.execute_emergency_upgrade(RELAYER, first.encode(), *sigs)
        assert result.ok
        assert env.pending_transactions == [second.encode()]

        env, result = env.start_upgrade()
        assert result.ok
        assert result.value == second.id
        assert env.get_all_upgrade_ids() == {first.id, second.id}
        assert env.pending_transactions == []

    def test_rejects_executed(self, env, council_keys, guardian_keys, foundation_keys):
        proposal = make_proposal(9)
        sigs = _signatures(env, proposal.id, council_keys, guardian_keys, foundation_keys)
        env, _ = env.execute_emergency_upgrade(RELAYER, proposal.encode(), *sigs)
        sigs = _signatures(env, proposal.id, council_keys, guardian_keys, foundation_keys)
        _, result = env.execute_emergency_upgrade(RELAYER, proposal.encode(), *sigs)
        assert isinstance(result.error, StateError)

    def test_lifts_freeze(self, env, council_keys, guardian_keys, foundation_keys):
        env, _ = env.hard_freeze(RELAYER, sign_action(council_keys, hard_freeze_digest(env)))
        assert env.is_frozen()
        proposal = make_proposal(4)
        sigs = _signatures(env, proposal.id, council_keys, guardian_keys, foundation_keys)
        env, result = env.execute_emergency_upgrade(RELAYER, proposal.encode(), *sigs)
        assert result.ok
        assert not env.is_frozen()
        assert env.freeze.status == FreezeStatus.UNFROZEN
        board = env.addresses.emergency_upgrade_board
        assert env.call_history.was_called(board, env.addresses.upgrade_handler, "unfreeze")

    def test_council_checked_first(self, env, council_keys, guardian_keys, foundation_keys):
        proposal = make_proposal(5)
        sigs = _signatures(env, proposal.id, council_keys, guardian_keys, foundation_keys,
                           council=COUNCIL_THRESHOLD - 1, guardians=0, foundation=0)
        _, result = env.execute_emergency_upgrade(RELAYER, proposal.encode(), *sigs)
        assert isinstance(result.error, AuthorizationError)
        assert "security council" in result.message

    def test_guardians_required(self, env, council_keys, guardian_keys, foundation_keys):
        proposal = make_proposal(5)
        sigs = _signatures(env, proposal.id, council_keys, guardian_keys, foundation_keys, guardians=1)
        _, result = env.execute_emergency_upgrade(RELAYER, proposal.encode(), *sigs)
        assert isinstance(result.error, AuthorizationError)
        assert "guardians" in result.message

    def test_foundation_required(self, env, council_keys, guardian_keys, foundation_keys):
        proposal = make_proposal(5)
        sigs = _signatures(env, proposal.id, council_keys, guardian_keys, foundation_keys, foundation=1)
        after, result = env.execute_emergency_upgrade(RELAYER, proposal.encode(), *sigs)
        assert isinstance(result.error, AuthorizationError)
        assert "foundation" in result.message
        assert after.get_status(proposal.id) is None

    def test_invalid_calldata(self, env, council_keys, guardian_keys, foundation_keys):
        calldata = b"\xde\xad\xbe\xef"
        sigs = _signatures(env, upgrade_id(calldata), council_keys, guardian_keys, foundation_keys)
        _, result = env.execute_emergency_upgrade(RELAYER, calldata, *sigs)
        assert isinstance(result.error, StateError)

    def test_replay_rejected(self, env, council_keys, guardian_keys, foundation_keys):
        first = make_proposal(1)
        sigs = _signatures(env, first.id, council_keys, guardian_keys, foundation_keys)
        env, result = env.execute_emergency_upgrade(RELAYER, first.encode(), *sigs)
        assert result.ok
        # Same signatures can never authorize anything again
        _, result = env.execute_emergency_upgrade(RELAYER, first.encode(), *sigs)
        assert isinstance(result.error, AuthorizationError)
