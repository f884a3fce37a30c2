"""
Guardians Engine

The Guardians are the smaller multisig. They can:
  - Extend the legal veto of an upgrade once, while it is still running
  - Approve an upgrade on the slow track (effective 30 days after the
    legal veto ends)
  - Request the one-shot era migration

All three actions share a single nonce.
"""

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Dict

from ..logger import get_logger
from .checks import ActionResult, AuthorizationError, Checks, IdempotenceError
from .multisig import SignatureSet, ThresholdMultisig, action_digest, verify

if TYPE_CHECKING:
    from .environment import ProtocolEnvironment

logger = get_logger(__name__)

APPROVE_UPGRADE = "approveUpgradeGuardians"
EXTEND_LEGAL_VETO = "extendLegalVeto"
REQUEST_ERA_MIGRATION = "requestEraMigration"


@dataclass
class GuardiansState:
    multisig: ThresholdMultisig
    nonce: int = 0
    zksync_era_requested: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "multisig": self.multisig.to_dict(),
            "nonce": self.nonce,
            "zksyncEraRequested": self.zksync_era_requested,
        }


# ── Digests ───────────────────────────────────────────────────────────

def _digest(env: "ProtocolEnvironment", action: str, *fields) -> bytes:
    return action_digest(env.domain(env.addresses.guardians), action, env.guardians.nonce, *fields)


def approve_upgrade_digest(env: "ProtocolEnvironment", upgrade_id: str) -> bytes:
    return _digest(env, APPROVE_UPGRADE, upgrade_id)


def extend_legal_veto_digest(env: "ProtocolEnvironment", upgrade_id: str) -> bytes:
    return _digest(env, EXTEND_LEGAL_VETO, upgrade_id)


def request_era_migration_digest(env: "ProtocolEnvironment") -> bytes:
    return _digest(env, REQUEST_ERA_MIGRATION)


def _authorize(env: "ProtocolEnvironment", digest: bytes, signatures: SignatureSet, what: str) -> Checks:
    guardians = env.guardians
    return Checks().require(
        lambda: verify(guardians.multisig, digest, signatures),
        AuthorizationError,
        f"{what} needs {guardians.multisig.threshold} distinct guardian signatures "
        f"for nonce={guardians.nonce}",
    )


# ── Actions ───────────────────────────────────────────────────────────

def approve_upgrade(
    env: "ProtocolEnvironment",
    sender: str,
    upgrade_id: str,
    signatures: SignatureSet,
) -> ActionResult:
    env.call_history.enter_external(sender, env.addresses.guardians, APPROVE_UPGRADE)
    checks = _authorize(env, approve_upgrade_digest(env, upgrade_id), signatures, "Upgrade approval")
    if not checks.ok:
        return ActionResult.from_checks(checks)

    env.call_history.enter_internal(env.addresses.guardians, env.addresses.upgrade_handler, APPROVE_UPGRADE)
    result = env.lifecycle.approve_by_guardians(
        upgrade_id, env.block_timestamp, env.call_history.current_sender()
    )
    if result.ok:
        env.guardians.nonce += 1
    return result


def extend_legal_veto(
    env: "ProtocolEnvironment",
    sender: str,
    upgrade_id: str,
    signatures: SignatureSet,
) -> ActionResult:
    env.call_history.enter_external(sender, env.addresses.guardians, EXTEND_LEGAL_VETO)
    checks = _authorize(env, extend_legal_veto_digest(env, upgrade_id), signatures, "Legal veto extension")
    if not checks.ok:
        return ActionResult.from_checks(checks)

    env.call_history.enter_internal(env.addresses.guardians, env.addresses.upgrade_handler, EXTEND_LEGAL_VETO)
    result = env.lifecycle.extend_legal_veto(
        upgrade_id, env.block_timestamp, env.call_history.current_sender()
    )
    if result.ok:
        env.guardians.nonce += 1
    return result


def request_era_migration(env: "ProtocolEnvironment", sender: str, signatures: SignatureSet) -> ActionResult:
    """
    Raise the one-shot era migration flag.

    A second request is an error, never a no-op. Replaying the signature
    set of the first request fails authorization instead, because the
    nonce has moved on.
    """
    guardians = env.guardians
    env.call_history.enter_external(sender, env.addresses.guardians, REQUEST_ERA_MIGRATION)
    checks = _authorize(env, request_era_migration_digest(env), signatures, "Era migration request").require(
        not guardians.zksync_era_requested, IdempotenceError, "Era migration already requested"
    )
    if not checks.ok:
        return ActionResult.from_checks(checks)

    guardians.zksync_era_requested = True
    guardians.nonce += 1
    logger.info(f"Guardians requested era migration | nonce={guardians.nonce}")
    return ActionResult.success(True)
