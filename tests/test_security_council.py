"""
Tests for the Security Council engine.

Covers:
  - Soft freeze at the reduced threshold (9-member council scenario)
  - Hard freeze, escalation from a soft freeze
  - Soft freeze threshold setting and its bounds
  - Unfreeze, including after a soft freeze lapsed
  - Nonce monotonicity and replay rejection
  - Threshold reset after every freeze action
"""

import pytest

from conftest import COUNCIL_THRESHOLD, RELAYER

from zkgov.constants import HOUR
from zkgov.governance import (
    AuthorizationError,
    FreezeStatus,
    StateError,
    sign_action,
)
from zkgov.governance.security_council import (
    hard_freeze_digest,
    set_soft_freeze_threshold_digest,
    soft_freeze_digest,
    unfreeze_digest,
)


def _set_threshold(env, keys, threshold):
    sigs = sign_action(keys[:COUNCIL_THRESHOLD], set_soft_freeze_threshold_digest(env, threshold))
    env, result = env.set_soft_freeze_threshold(RELAYER, threshold, sigs)
    assert result.ok, result
    return env


def _hard_freeze(env, keys):
    env, result = env.hard_freeze(RELAYER, sign_action(keys[:COUNCIL_THRESHOLD], hard_freeze_digest(env)))
    assert result.ok, result
    return env


# ══════════════════════════════════════════════════════════════════════
#  1. SOFT FREEZE
# ══════════════════════════════════════════════════════════════════════

class TestSoftFreeze:
    """Soft freeze against the reduced signer threshold."""

    def test_default_threshold_is_nine(self, env):
        assert env.security_council.soft_freeze_threshold == 9

    def test_nine_member_threshold_five_scenario(self, env, council_keys):
        env = _set_threshold(env, council_keys, 5)
        assert env.security_council.soft_freeze_threshold == 5
        digest = soft_freeze_digest(env)

        # 4 distinct signers: rejected, nothing changes
        four = sign_action(council_keys[:4], digest)
        after, result = env.soft_freeze(RELAYER, four)
        assert isinstance(result.error, AuthorizationError)
        assert after is env
        assert not env.is_frozen()
        assert env.security_council.soft_freeze_nonce == 0

        # 5 distinct signers plus a duplicate of one of them
        five = list(sign_action(council_keys[:5], digest).items())
        five.append(five[0])
        after, result = env.soft_freeze(RELAYER, five)
        assert result.ok
        assert after.is_frozen()
        assert after.zk_frozen
        assert after.freeze.status == FreezeStatus.SOFT_FROZEN
        assert after.security_council.soft_freeze_nonce == env.security_council.soft_freeze_nonce + 1

    def test_duplicates_do_not_reach_threshold(self, env, council_keys):
        env = _set_threshold(env, council_keys, 5)
        pairs = list(sign_action(council_keys[:4], soft_freeze_digest(env)).items())
        pairs += pairs
        _, result = env.soft_freeze(RELAYER, pairs)
        assert isinstance(result.error, AuthorizationError)

    def test_soft_freeze_expires(self, env, council_keys):
        env, result = env.soft_freeze(RELAYER, sign_action(council_keys, soft_freeze_digest(env)))
        assert result.ok
        assert env.freeze.protocol_frozen_until == 12 * HOUR

        env, _ = env.advance_time(12 * HOUR - 1)
        assert env.is_frozen()
        env, _ = env.advance_time(12 * HOUR)
        assert not env.is_frozen()

    def test_no_soft_freeze_while_soft_frozen(self, env, council_keys):
        env, _ = env.soft_freeze(RELAYER, sign_action(council_keys, soft_freeze_digest(env)))
        _, result = env.soft_freeze(RELAYER, sign_action(council_keys, soft_freeze_digest(env)))
        assert isinstance(result.error, StateError)

    def test_soft_freeze_again_after_expiry(self, env, council_keys):
        env, _ = env.soft_freeze(RELAYER, sign_action(council_keys, soft_freeze_digest(env)))
        env, _ = env.advance_time(12 * HOUR)
        env, result = env.soft_freeze(RELAYER, sign_action(council_keys, soft_freeze_digest(env)))
        assert result.ok
        assert env.security_council.soft_freeze_nonce == 2
        assert env.freeze.protocol_frozen_until == 24 * HOUR

    def test_no_soft_freeze_while_hard_frozen(self, env, council_keys):
        env = _hard_freeze(env, council_keys)
        _, result = env.soft_freeze(RELAYER, sign_action(council_keys, soft_freeze_digest(env)))
        assert isinstance(result.error, StateError)

    def test_non_members_cannot_freeze(self, env, outsider_keys):
        _, result = env.soft_freeze(RELAYER, sign_action(outsider_keys, soft_freeze_digest(env)))
        assert isinstance(result.error, AuthorizationError)

    def test_call_history(self, env, council_keys):
        env, _ = env.soft_freeze(RELAYER, sign_action(council_keys, soft_freeze_digest(env)))
        addrs = env.addresses
        assert env.call_history.trace() == [
            (env.call_history.calls[0].caller, addrs.security_council, "softFreeze"),
            (addrs.security_council, addrs.upgrade_handler, "freeze"),
        ]
        assert env.call_history.current_sender() == addrs.security_council


# ══════════════════════════════════════════════════════════════════════
#  2. HARD FREEZE
# ══════════════════════════════════════════════════════════════════════

class TestHardFreeze:
    """Hard freeze needs the full threshold and lasts until unfreeze."""

    def test_hard_freeze(self, env, council_keys):
        env = _hard_freeze(env, council_keys)
        assert env.freeze.status == FreezeStatus.HARD_FROZEN
        assert env.freeze.protocol_frozen_until is None
        assert env.security_council.hard_freeze_nonce == 1

    def test_soft_threshold_not_enough(self, env, council_keys):
        env = _set_threshold(env, council_keys, 2)
        _, result = env.hard_freeze(RELAYER, sign_action(council_keys[:2], hard_freeze_digest(env)))
        assert isinstance(result.error, AuthorizationError)

    def test_lasts_indefinitely(self, env, council_keys):
        env = _hard_freeze(env, council_keys)
        env, _ = env.advance_time(10 ** 9)
        assert env.is_frozen()

    def test_escalates_soft_freeze(self, env, council_keys):
        env, _ = env.soft_freeze(RELAYER, sign_action(council_keys, soft_freeze_digest(env)))
        env = _hard_freeze(env, council_keys)
        assert env.freeze.status == FreezeStatus.HARD_FROZEN
        env, _ = env.advance_time(13 * HOUR)
        assert env.is_frozen()

    def test_no_double_hard_freeze(self, env, council_keys):
        env = _hard_freeze(env, council_keys)
        _, result = env.hard_freeze(RELAYER, sign_action(council_keys, hard_freeze_digest(env)))
        assert isinstance(result.error, StateError)
        assert "HARD_FROZEN" in result.message


# ══════════════════════════════════════════════════════════════════════
#  3. SOFT FREEZE THRESHOLD
# ══════════════════════════════════════════════════════════════════════

class TestSoftFreezeThreshold:
    """Threshold setting bounds and authorization."""

    @pytest.mark.parametrize("threshold", [1, 5, 9])
    def test_valid_values(self, env, council_keys, threshold):
        env = _set_threshold(env, council_keys, threshold)
        assert env.security_council.soft_freeze_threshold == threshold
        assert env.security_council.soft_freeze_threshold_setting_nonce == 1

    @pytest.mark.parametrize("threshold", [0, 10, -1])
    def test_out_of_bounds(self, env, council_keys, threshold):
        _, result = env.set_soft_freeze_threshold(RELAYER, threshold, {})
        assert isinstance(result.error, StateError)
        assert "must be in 1..9" in result.message

    def test_needs_full_threshold(self, env, council_keys):
        sigs = sign_action(council_keys[:COUNCIL_THRESHOLD - 1], set_soft_freeze_threshold_digest(env, 4))
        _, result = env.set_soft_freeze_threshold(RELAYER, 4, sigs)
        assert isinstance(result.error, AuthorizationError)

    def test_signatures_bind_value(self, env, council_keys):
        sigs = sign_action(council_keys, set_soft_freeze_threshold_digest(env, 4))
        _, result = env.set_soft_freeze_threshold(RELAYER, 3, sigs)
        assert isinstance(result.error, AuthorizationError)

    def test_reset_after_soft_freeze(self, env, council_keys):
        env = _set_threshold(env, council_keys, 3)
        env, result = env.soft_freeze(RELAYER, sign_action(council_keys[:3], soft_freeze_digest(env)))
        assert result.ok
        assert env.security_council.soft_freeze_threshold == 9

    def test_reset_after_hard_freeze_and_unfreeze(self, env, council_keys):
        env = _set_threshold(env, council_keys, 3)
        env = _hard_freeze(env, council_keys)
        assert env.security_council.soft_freeze_threshold == 9
        env = _set_threshold(env, council_keys, 4)
        env, result = env.unfreeze(RELAYER, sign_action(council_keys, unfreeze_digest(env)))
        assert result.ok
        assert env.security_council.soft_freeze_threshold == 9


# ══════════════════════════════════════════════════════════════════════
#  4. UNFREEZE
# ══════════════════════════════════════════════════════════════════════

class TestUnfreeze:
    """Unfreeze clears any recorded freeze."""

    def test_unfreeze_hard(self, env, council_keys):
        env = _hard_freeze(env, council_keys)
        env, result = env.unfreeze(RELAYER, sign_action(council_keys, unfreeze_digest(env)))
        assert result.ok
        assert not env.is_frozen()
        assert env.freeze.status == FreezeStatus.UNFROZEN
        assert env.security_council.unfreeze_nonce == 1

    def test_unfreeze_lapsed_soft_freeze(self, env, council_keys):
        env, _ = env.soft_freeze(RELAYER, sign_action(council_keys, soft_freeze_digest(env)))
        env, _ = env.advance_time(13 * HOUR)
        env, result = env.unfreeze(RELAYER, sign_action(council_keys, unfreeze_digest(env)))
        assert result.ok
        assert env.freeze.status == FreezeStatus.UNFROZEN

    def test_unfreeze_when_not_frozen(self, env, council_keys):
        _, result = env.unfreeze(RELAYER, sign_action(council_keys, unfreeze_digest(env)))
        assert isinstance(result.error, StateError)

    def test_needs_full_threshold(self, env, council_keys):
        env = _hard_freeze(env, council_keys)
        sigs = sign_action(council_keys[:COUNCIL_THRESHOLD - 1], unfreeze_digest(env))
        _, result = env.unfreeze(RELAYER, sigs)
        assert isinstance(result.error, AuthorizationError)


# ══════════════════════════════════════════════════════════════════════
#  5. NONCES
# ══════════════════════════════════════════════════════════════════════

class TestNonces:
    """Every success bumps exactly its own nonce; replays fail."""

    def test_replay_soft_freeze(self, env, council_keys):
        sigs = sign_action(council_keys, soft_freeze_digest(env))
        env, result = env.soft_freeze(RELAYER, sigs)
        assert result.ok
        env, _ = env.advance_time(12 * HOUR)
        _, result = env.soft_freeze(RELAYER, sigs)
        assert isinstance(result.error, AuthorizationError)

    def test_replay_unfreeze(self, env, council_keys):
        env = _hard_freeze(env, council_keys)
        sigs = sign_action(council_keys, unfreeze_digest(env))
        env, _ = env.unfreeze(RELAYER, sigs)
        env = _hard_freeze(env, council_keys)
        _, result = env.unfreeze(RELAYER, sigs)
        assert isinstance(result.error, AuthorizationError)

    def test_replay_threshold_setting(self, env, council_keys):
        sigs = sign_action(council_keys, set_soft_freeze_threshold_digest(env, 4))
        env, result = env.set_soft_freeze_threshold(RELAYER, 4, sigs)
        assert result.ok
        _, result = env.set_soft_freeze_threshold(RELAYER, 4, sigs)
        assert isinstance(result.error, AuthorizationError)

    def test_nonces_independent(self, env, council_keys):
        env = _hard_freeze(env, council_keys)
        assert env.security_council.nonces() == {
            "softFreeze": 0,
            "hardFreeze": 1,
            "setSoftFreezeThreshold": 0,
            "unfreeze": 0,
        }

    def test_failed_action_leaves_nonce(self, env, council_keys):
        before = env.security_council.nonces()
        _, result = env.unfreeze(RELAYER, sign_action(council_keys, unfreeze_digest(env)))
        assert not result.ok
        assert env.security_council.nonces() == before
