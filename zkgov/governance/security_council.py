"""
Security Council Engine

The Security Council is the large expert multisig. It can:
  - Soft freeze the protocol with a reduced signer threshold
  - Hard freeze it (or escalate a soft freeze) with the full threshold
  - Change the soft freeze threshold
  - Unfreeze
  - Approve an upgrade, effective immediately

Every freeze-family action has its own nonce, bound into the signed
digest. A signature set is therefore valid for exactly one application:
once the action succeeds the nonce moves on and the same set no longer
verifies.

The engine functions below run against an environment that the caller
has already copied; they mutate it in place and report an ActionResult.
"""

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Dict

from ..constants import MAX_SOFT_FREEZE_THRESHOLD, MIN_SOFT_FREEZE_THRESHOLD
from ..logger import get_logger
from .checks import ActionResult, AuthorizationError, Checks, StateError
from .freeze import FreezeStatus, freeze_protocol, unfreeze_protocol
from .multisig import (
    SignatureSet,
    ThresholdMultisig,
    action_digest,
    verify,
    verify_with_threshold,
)

if TYPE_CHECKING:
    from .environment import ProtocolEnvironment

logger = get_logger(__name__)

SOFT_FREEZE = "softFreeze"
HARD_FREEZE = "hardFreeze"
SET_SOFT_FREEZE_THRESHOLD = "setSoftFreezeThreshold"
UNFREEZE = "unfreeze"
APPROVE_UPGRADE = "approveUpgradeSecurityCouncil"


@dataclass
class SecurityCouncilState:
    """
    Attributes:
        multisig: Council members and full threshold
        soft_freeze_threshold: Distinct signers needed for a soft freeze
        soft_freeze_nonce, hard_freeze_nonce,
        soft_freeze_threshold_setting_nonce, unfreeze_nonce:
            Replay counters, one per action kind
    """
    multisig: ThresholdMultisig
    soft_freeze_threshold: int
    soft_freeze_nonce: int = 0
    hard_freeze_nonce: int = 0
    soft_freeze_threshold_setting_nonce: int = 0
    unfreeze_nonce: int = 0

    @classmethod
    def create(cls, multisig: ThresholdMultisig, recommended_threshold: int) -> "SecurityCouncilState":
        return cls(
            multisig=multisig,
            soft_freeze_threshold=recommended_soft_freeze_threshold(multisig, recommended_threshold),
        )

    def max_soft_freeze_threshold(self) -> int:
        return min(MAX_SOFT_FREEZE_THRESHOLD, self.multisig.size)

    def nonces(self) -> Dict[str, int]:
        return {
            SOFT_FREEZE: self.soft_freeze_nonce,
            HARD_FREEZE: self.hard_freeze_nonce,
            SET_SOFT_FREEZE_THRESHOLD: self.soft_freeze_threshold_setting_nonce,
            UNFREEZE: self.unfreeze_nonce,
        }

    def to_dict(self) -> Dict[str, Any]:
        return {
            "multisig": self.multisig.to_dict(),
            "softFreezeThreshold": self.soft_freeze_threshold,
            "nonces": self.nonces(),
        }


def recommended_soft_freeze_threshold(multisig: ThresholdMultisig, recommended: int) -> int:
    return max(MIN_SOFT_FREEZE_THRESHOLD, min(recommended, MAX_SOFT_FREEZE_THRESHOLD, multisig.size))


def _reset_soft_freeze_threshold(env: "ProtocolEnvironment") -> None:
    council = env.security_council
    council.soft_freeze_threshold = recommended_soft_freeze_threshold(
        council.multisig, env.config.freeze.recommended_soft_freeze_threshold
    )


# ── Digests ───────────────────────────────────────────────────────────

def _digest(env: "ProtocolEnvironment", action: str, *fields) -> bytes:
    return action_digest(env.domain(env.addresses.security_council), action, *fields)


def soft_freeze_digest(env: "ProtocolEnvironment") -> bytes:
    return _digest(env, SOFT_FREEZE, env.security_council.soft_freeze_nonce)


def hard_freeze_digest(env: "ProtocolEnvironment") -> bytes:
    return _digest(env, HARD_FREEZE, env.security_council.hard_freeze_nonce)


def set_soft_freeze_threshold_digest(env: "ProtocolEnvironment", threshold: int) -> bytes:
    return _digest(
        env,
        SET_SOFT_FREEZE_THRESHOLD,
        env.security_council.soft_freeze_threshold_setting_nonce,
        threshold,
    )


def unfreeze_digest(env: "ProtocolEnvironment") -> bytes:
    return _digest(env, UNFREEZE, env.security_council.unfreeze_nonce)


def approve_upgrade_digest(env: "ProtocolEnvironment", upgrade_id: str) -> bytes:
    return _digest(env, APPROVE_UPGRADE, upgrade_id)


# ── Actions ───────────────────────────────────────────────────────────

def soft_freeze(env: "ProtocolEnvironment", sender: str, signatures: SignatureSet) -> ActionResult:
    council = env.security_council
    env.call_history.enter_external(sender, env.addresses.security_council, SOFT_FREEZE)
    checks = Checks().require(
        lambda: verify_with_threshold(
            council.multisig, soft_freeze_digest(env), signatures, council.soft_freeze_threshold
        ),
        AuthorizationError,
        f"Soft freeze needs {council.soft_freeze_threshold} distinct council signatures "
        f"for nonce={council.soft_freeze_nonce}",
    )
    if not checks.ok:
        return ActionResult.from_checks(checks)

    env.call_history.enter_internal(env.addresses.security_council, env.addresses.upgrade_handler, "freeze")
    result = freeze_protocol(
        env.freeze,
        FreezeStatus.SOFT_FROZEN,
        env.block_timestamp,
        env.config.freeze.soft_freeze_period,
        env.call_history.current_sender(),
        env.addresses.security_council,
    )
    if not result.ok:
        return result

    council.soft_freeze_nonce += 1
    _reset_soft_freeze_threshold(env)
    logger.warning(f"Security council soft freeze | nonce={council.soft_freeze_nonce}")
    return ActionResult.success(council.soft_freeze_nonce)


def hard_freeze(env: "ProtocolEnvironment", sender: str, signatures: SignatureSet) -> ActionResult:
    council = env.security_council
    env.call_history.enter_external(sender, env.addresses.security_council, HARD_FREEZE)
    checks = Checks().require(
        lambda: verify(council.multisig, hard_freeze_digest(env), signatures),
        AuthorizationError,
        f"Hard freeze needs {council.multisig.threshold} distinct council signatures "
        f"for nonce={council.hard_freeze_nonce}",
    )
    if not checks.ok:
        return ActionResult.from_checks(checks)

    env.call_history.enter_internal(env.addresses.security_council, env.addresses.upgrade_handler, "freeze")
    result = freeze_protocol(
        env.freeze,
        FreezeStatus.HARD_FROZEN,
        env.block_timestamp,
        env.config.freeze.hard_freeze_period,
        env.call_history.current_sender(),
        env.addresses.security_council,
    )
    if not result.ok:
        return result

    council.hard_freeze_nonce += 1
    _reset_soft_freeze_threshold(env)
    logger.warning(f"Security council hard freeze | nonce={council.hard_freeze_nonce}")
    return ActionResult.success(council.hard_freeze_nonce)


def set_soft_freeze_threshold(
    env: "ProtocolEnvironment",
    sender: str,
    threshold: int,
    signatures: SignatureSet,
) -> ActionResult:
    council = env.security_council
    upper = council.max_soft_freeze_threshold()
    env.call_history.enter_external(sender, env.addresses.security_council, SET_SOFT_FREEZE_THRESHOLD)
    checks = (
        Checks()
        .require(
            isinstance(threshold, int) and not isinstance(threshold, bool)
            and MIN_SOFT_FREEZE_THRESHOLD <= threshold <= upper,
            StateError,
            f"Soft freeze threshold must be in {MIN_SOFT_FREEZE_THRESHOLD}..{upper}, got {threshold}",
        )
        .require(
            lambda: verify(council.multisig, set_soft_freeze_threshold_digest(env, threshold), signatures),
            AuthorizationError,
            f"Threshold change needs {council.multisig.threshold} distinct council signatures "
            f"for nonce={council.soft_freeze_threshold_setting_nonce}",
        )
    )
    if not checks.ok:
        return ActionResult.from_checks(checks)

    previous = council.soft_freeze_threshold
    council.soft_freeze_threshold = threshold
    council.soft_freeze_threshold_setting_nonce += 1
    logger.info(
        f"Soft freeze threshold {previous} → {threshold} "
        f"| nonce={council.soft_freeze_threshold_setting_nonce}"
    )
    return ActionResult.success(threshold)


def unfreeze(env: "ProtocolEnvironment", sender: str, signatures: SignatureSet) -> ActionResult:
    council = env.security_council
    env.call_history.enter_external(sender, env.addresses.security_council, UNFREEZE)
    checks = Checks().require(
        lambda: verify(council.multisig, unfreeze_digest(env), signatures),
        AuthorizationError,
        f"Unfreeze needs {council.multisig.threshold} distinct council signatures "
        f"for nonce={council.unfreeze_nonce}",
    )
    if not checks.ok:
        return ActionResult.from_checks(checks)

    env.call_history.enter_internal(env.addresses.security_council, env.addresses.upgrade_handler, UNFREEZE)
    result = unfreeze_protocol(
        env.freeze,
        env.call_history.current_sender(),
        (env.addresses.security_council,),
    )
    if not result.ok:
        return result

    council.unfreeze_nonce += 1
    _reset_soft_freeze_threshold(env)
    logger.warning(f"Security council unfreeze | nonce={council.unfreeze_nonce}")
    return ActionResult.success(council.unfreeze_nonce)


def approve_upgrade(
    env: "ProtocolEnvironment",
    sender: str,
    upgrade_id: str,
    signatures: SignatureSet,
) -> ActionResult:
    """Approve *upgrade_id*; the approval counts from this block."""
    council = env.security_council
    status = env.lifecycle.get_status(upgrade_id)
    env.call_history.enter_external(sender, env.addresses.security_council, APPROVE_UPGRADE)
    # The digest carries no nonce; an approval already on record consumes it
    checks = (
        Checks()
        .require(
            lambda: verify(council.multisig, approve_upgrade_digest(env, upgrade_id), signatures),
            AuthorizationError,
            f"Upgrade approval needs {council.multisig.threshold} distinct council signatures",
        )
        .require(
            status is None or status.approved_by_security_council_at is None,
            AuthorizationError,
            f"Council approval of {upgrade_id} was already used",
        )
    )
    if not checks.ok:
        return ActionResult.from_checks(checks)

    env.call_history.enter_internal(
        env.addresses.security_council, env.addresses.upgrade_handler, APPROVE_UPGRADE
    )
    return env.lifecycle.approve_by_security_council(
        upgrade_id, env.block_timestamp, env.call_history.current_sender()
    )
