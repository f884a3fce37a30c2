"""
Emergency Upgrade Board

Last-resort path for a live exploit. The board executes an upgrade
immediately, skipping the legal veto, both approval tracks and the
pending delay. In exchange it needs all three multisigs to sign the same
digest, each at its full threshold:

    Security Council  →  Guardians  →  foundation

Executing an emergency upgrade also lifts any freeze.
"""

from typing import TYPE_CHECKING, List

from ..exceptions import EncodingError
from ..logger import get_logger
from .checks import ActionResult, AuthorizationError, Checks, StateError
from .freeze import FreezeStatus, unfreeze_protocol
from .multisig import SignatureSet, action_digest, verify
from .proposals import UpgradeProposal, upgrade_id as compute_upgrade_id

if TYPE_CHECKING:
    from .environment import ProtocolEnvironment

logger = get_logger(__name__)

EXECUTE_EMERGENCY_UPGRADE = "executeEmergencyUpgrade"


def emergency_upgrade_digest(env: "ProtocolEnvironment", upgrade_id: str) -> bytes:
    return action_digest(
        env.domain(env.addresses.emergency_upgrade_board),
        EXECUTE_EMERGENCY_UPGRADE,
        env.emergency_board_nonce,
        upgrade_id,
    )


def execute_emergency_upgrade(
    env: "ProtocolEnvironment",
    sender: str,
    calldata: bytes,
    security_council_signatures: SignatureSet,
    guardian_signatures: SignatureSet,
    foundation_signatures: SignatureSet,
) -> ActionResult:
    board = env.addresses.emergency_upgrade_board
    uid = compute_upgrade_id(calldata)
    digest = emergency_upgrade_digest(env, uid)
    env.call_history.enter_external(sender, board, EXECUTE_EMERGENCY_UPGRADE)

    proposals: List[UpgradeProposal] = []

    def _decodes() -> bool:
        try:
            proposals.append(UpgradeProposal.decode(calldata))
        except EncodingError:
            return False
        return True

    checks = (
        Checks()
        .require(lambda: verify(env.security_council.multisig, digest, security_council_signatures),
                 AuthorizationError, "Emergency upgrade needs the security council threshold")
        .require(lambda: verify(env.guardians.multisig, digest, guardian_signatures),
                 AuthorizationError, "Emergency upgrade needs the guardians threshold")
        .require(lambda: verify(env.foundation, digest, foundation_signatures),
                 AuthorizationError, "Emergency upgrade needs the foundation threshold")
        .require(_decodes, StateError, "Emergency calldata is not a valid upgrade proposal")
    )
    if not checks.ok:
        return ActionResult.from_checks(checks)

    env.call_history.enter_internal(board, env.addresses.upgrade_handler, EXECUTE_EMERGENCY_UPGRADE)
    result = env.lifecycle.execute_emergency(
        calldata, env.block_timestamp, env.call_history.current_sender()
    )
    if not result.ok:
        return result

    env.record_calls(uid, proposals[0])
    # A queued copy could never start once the id exists
    env.pending_transactions = [
        tx for tx in env.pending_transactions if compute_upgrade_id(tx) != uid
    ]
    if env.freeze.status != FreezeStatus.UNFROZEN:
        env.call_history.enter_internal(board, env.addresses.upgrade_handler, "unfreeze")
        unfreeze_protocol(
            env.freeze,
            env.call_history.current_sender(),
            (env.addresses.emergency_upgrade_board,),
        ).unwrap()
    env.emergency_board_nonce += 1
    logger.warning(f"Emergency upgrade board executed {uid} | nonce={env.emergency_board_nonce}")
    return result
