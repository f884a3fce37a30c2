"""
Protocol Environment

The single root aggregate every public operation acts on. It owns the
upgrade lifecycle, both engine states, the foundation multisig, the
pending-transaction queue fed by the bridge, the freeze state, the
call-history ledger and the log of executed upgrade calls.

Atomic apply-or-reject:
  Every action runs against a deep copy. On success the copy is
  returned; on failure the untouched original is returned together with
  the error, so a rejected action can never leave partial state behind.

    env, result = env.soft_freeze(relayer, signatures)
    if not result.ok:
        ...  # env is exactly what it was before the call
"""

import copy
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Optional, Set, Tuple

from ..config.loader import GovernanceConfig
from ..crypto.address import is_valid_address
from ..exceptions import EncodingError
from ..logger import get_logger
from . import emergency_board
from . import guardians as guardians_engine
from . import security_council as council_engine
from .addresses import GovernanceAddresses
from .call_history import CallHistory
from .checks import ActionResult, AuthorizationError, Checks, StateError, TimingError
from .freeze import FreezeState, FreezeStatus
from .guardians import GuardiansState
from .multisig import SignatureSet, SigningDomain, ThresholdMultisig
from .proposals import UpgradeProposal, upgrade_id as compute_upgrade_id
from .security_council import SecurityCouncilState
from .upgrades import UpgradeLifecycle, UpgradeStage, UpgradeStatus

logger = get_logger(__name__)

Transition = Tuple["ProtocolEnvironment", ActionResult]


@dataclass(frozen=True)
class ExecutedCall:
    """One call made by the upgrade handler while executing an upgrade."""
    upgrade_id: str
    target: str
    value: int
    data: bytes
    timestamp: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "upgradeId": self.upgrade_id,
            "target": self.target,
            "value": self.value,
            "data": "0x" + self.data.hex(),
            "timestamp": self.timestamp,
        }


@dataclass
class ProtocolEnvironment:
    config: GovernanceConfig
    addresses: GovernanceAddresses
    security_council: SecurityCouncilState
    guardians: GuardiansState
    foundation: ThresholdMultisig
    lifecycle: UpgradeLifecycle
    block_timestamp: int = 0
    pending_transactions: List[bytes] = field(default_factory=list)
    freeze: FreezeState = field(default_factory=FreezeState)
    call_history: CallHistory = field(default_factory=CallHistory)
    executed_calls: List[ExecutedCall] = field(default_factory=list)
    emergency_board_nonce: int = 0

    # ── Construction ──────────────────────────────────────────────────

    @classmethod
    def genesis(
        cls,
        security_council: ThresholdMultisig,
        guardians: ThresholdMultisig,
        foundation: ThresholdMultisig,
        config: Optional[GovernanceConfig] = None,
        addresses: Optional[GovernanceAddresses] = None,
        block_timestamp: int = 0,
    ) -> "ProtocolEnvironment":
        """
        Build the initial environment.

        Args:
            security_council: Council members and full threshold
            guardians: Guardian members and threshold
            foundation: Foundation multisig (emergency upgrades)
            config: Delays and signing domain; defaults if omitted
            addresses: Governance contract addresses; system addresses if omitted
            block_timestamp: Starting block timestamp
        """
        config = config or GovernanceConfig()
        config.validate()
        addresses = addresses or GovernanceAddresses()
        env = cls(
            config=config,
            addresses=addresses,
            security_council=SecurityCouncilState.create(
                security_council, config.freeze.recommended_soft_freeze_threshold
            ),
            guardians=GuardiansState(multisig=guardians),
            foundation=foundation,
            lifecycle=UpgradeLifecycle(config.timing, addresses),
            block_timestamp=block_timestamp,
        )
        logger.info(
            f"Genesis: council={security_council!r} guardians={guardians!r} "
            f"foundation={foundation!r} at {block_timestamp}"
        )
        return env

    def domain(self, verifying_contract: str) -> SigningDomain:
        network = self.config.network
        return SigningDomain(
            name=network.domain_name,
            version=network.domain_version,
            chain_id=network.chain_id,
            verifying_contract=verifying_contract,
        )

    # ── Atomic apply ──────────────────────────────────────────────────

    def _apply(self, action: str, fn: Callable[..., ActionResult], *args) -> Transition:
        candidate = copy.deepcopy(self)
        result = fn(candidate, *args)
        if result.ok:
            return candidate, result
        logger.warning(f"{action} rejected: {type(result.error).__name__}: {result.error}")
        return self, result

    def _apply_from(self, action: str, sender: str, fn: Callable[..., ActionResult], *args) -> Transition:
        """``_apply`` for actions submitted by *sender*, which must be an address."""
        if not is_valid_address(sender):
            result = ActionResult.failure(AuthorizationError(f"Invalid sender address {sender!r}"))
            logger.warning(f"{action} rejected: AuthorizationError: {result.error}")
            return self, result
        return self._apply(action, fn, sender, *args)

    # ── Bridge & time ─────────────────────────────────────────────────

    def enqueue_proposal(self, calldata: bytes) -> Transition:
        """Deliver proposal calldata from the bridge into the queue."""
        return self._apply("enqueue_proposal", _enqueue_proposal, bytes(calldata))

    def start_upgrade(self) -> Transition:
        """Dequeue the head of the queue and start its upgrade."""
        return self._apply("start_upgrade", _start_upgrade)

    def advance_time(self, timestamp: int) -> Transition:
        """Move the block timestamp forward; repeating the current one is a no-op."""
        return self._apply("advance_time", _advance_time, timestamp)

    # ── Security Council ──────────────────────────────────────────────

    def security_council_approve(self, sender: str, upgrade_id: str, signatures: SignatureSet) -> Transition:
        return self._apply_from("security_council_approve", sender, council_engine.approve_upgrade,
                                upgrade_id, signatures)

    def soft_freeze(self, sender: str, signatures: SignatureSet) -> Transition:
        return self._apply_from("soft_freeze", sender, council_engine.soft_freeze, signatures)

    def hard_freeze(self, sender: str, signatures: SignatureSet) -> Transition:
        return self._apply_from("hard_freeze", sender, council_engine.hard_freeze, signatures)

    def set_soft_freeze_threshold(self, sender: str, threshold: int, signatures: SignatureSet) -> Transition:
        return self._apply_from("set_soft_freeze_threshold", sender, council_engine.set_soft_freeze_threshold,
                                threshold, signatures)

    def unfreeze(self, sender: str, signatures: SignatureSet) -> Transition:
        return self._apply_from("unfreeze", sender, council_engine.unfreeze, signatures)

    # ── Guardians ─────────────────────────────────────────────────────

    def guardians_approve(self, sender: str, upgrade_id: str, signatures: SignatureSet) -> Transition:
        return self._apply_from("guardians_approve", sender, guardians_engine.approve_upgrade, upgrade_id, signatures)

    def extend_legal_veto(self, sender: str, upgrade_id: str, signatures: SignatureSet) -> Transition:
        return self._apply_from("extend_legal_veto", sender, guardians_engine.extend_legal_veto, upgrade_id, signatures)

    def request_era_migration(self, sender: str, signatures: SignatureSet) -> Transition:
        return self._apply_from("request_era_migration", sender, guardians_engine.request_era_migration, signatures)

    # ── Execution ─────────────────────────────────────────────────────

    def execute_upgrade(self, sender: str, upgrade_id: str, calldata: bytes) -> Transition:
        return self._apply_from("execute_upgrade", sender, _execute_upgrade, upgrade_id, bytes(calldata))

    def execute_emergency_upgrade(
        self,
        sender: str,
        calldata: bytes,
        security_council_signatures: SignatureSet,
        guardian_signatures: SignatureSet,
        foundation_signatures: SignatureSet,
    ) -> Transition:
        return self._apply_from(
            "execute_emergency_upgrade",
            sender,
            emergency_board.execute_emergency_upgrade,
            bytes(calldata),
            security_council_signatures,
            guardian_signatures,
            foundation_signatures,
        )

    def record_calls(self, upgrade_id: str, proposal: UpgradeProposal) -> None:
        """Make every call of *proposal* from the upgrade handler."""
        handler = self.addresses.upgrade_handler
        for call in proposal.calls:
            self.call_history.enter_internal(handler, call.target, "call")
            self.executed_calls.append(ExecutedCall(
                upgrade_id=upgrade_id,
                target=call.target,
                value=call.value,
                data=call.data,
                timestamp=self.block_timestamp,
            ))

    # ── Queries ───────────────────────────────────────────────────────

    def get_all_upgrade_ids(self) -> Set[str]:
        return set(self.lifecycle.all_ids())

    def get_status(self, upgrade_id: str) -> Optional[UpgradeStatus]:
        status = self.lifecycle.get_status(upgrade_id)
        return copy.deepcopy(status) if status is not None else None

    def get_stage(self, upgrade_id: str) -> UpgradeStage:
        return self.lifecycle.stage(upgrade_id, self.block_timestamp)

    def is_frozen(self) -> bool:
        return self.freeze.is_frozen(self.block_timestamp)

    @property
    def zk_frozen(self) -> bool:
        return self.is_frozen()

    def check_invariants(self) -> List[str]:
        """Names of every invariant the current state violates."""
        violated = []
        for name, holds in _INVARIANTS:
            if not holds(self):
                violated.append(name)
        return violated

    def to_dict(self) -> Dict[str, Any]:
        return {
            "blockTimestamp": self.block_timestamp,
            "zkFrozen": self.is_frozen(),
            "freeze": self.freeze.to_dict(self.block_timestamp),
            "securityCouncil": self.security_council.to_dict(),
            "guardians": self.guardians.to_dict(),
            "foundation": self.foundation.to_dict(),
            "emergencyBoardNonce": self.emergency_board_nonce,
            "pendingTransactions": ["0x" + tx.hex() for tx in self.pending_transactions],
            "upgrades": self.lifecycle.to_dict(self.block_timestamp),
            "executedCalls": [c.to_dict() for c in self.executed_calls],
            "callHistory": self.call_history.to_dict(),
            "addresses": self.addresses.to_dict(),
            "config": self.config.to_dict(),
        }

    def __repr__(self) -> str:
        return (
            f"<ProtocolEnvironment t={self.block_timestamp} "
            f"upgrades={len(self.lifecycle.upgrades)} frozen={self.is_frozen()}>"
        )


# ══════════════════════════════════════════════════════════════════════
#  ACTIONS (run on the copy)
# ══════════════════════════════════════════════════════════════════════

def _decodes(calldata: bytes) -> bool:
    try:
        UpgradeProposal.decode(calldata)
    except EncodingError:
        return False
    return True


def _enqueue_proposal(env: ProtocolEnvironment, calldata: bytes) -> ActionResult:
    uid = compute_upgrade_id(calldata)
    queued = {compute_upgrade_id(tx) for tx in env.pending_transactions}
    checks = (
        Checks()
        .require(lambda: _decodes(calldata), StateError, "Calldata is not a valid upgrade proposal")
        .require(uid not in env.lifecycle.upgrades, StateError, f"Upgrade {uid} already exists")
        .require(uid not in queued, StateError, f"Upgrade {uid} is already queued")
    )
    if not checks.ok:
        return ActionResult.from_checks(checks)

    env.pending_transactions.append(calldata)
    logger.info(f"Proposal {uid} queued ({len(env.pending_transactions)} pending)")
    return ActionResult.success(uid)


def _start_upgrade(env: ProtocolEnvironment) -> ActionResult:
    checks = (
        Checks()
        .require(bool(env.pending_transactions), StateError, "No pending proposals")
        .require(lambda: _decodes(env.pending_transactions[0]), StateError,
                 "Queued calldata is not a valid upgrade proposal")
    )
    if not checks.ok:
        return ActionResult.from_checks(checks)

    calldata = env.pending_transactions.pop(0)
    return env.lifecycle.start_upgrade(calldata, env.block_timestamp)


def _advance_time(env: ProtocolEnvironment, timestamp: int) -> ActionResult:
    checks = Checks().require(
        timestamp >= env.block_timestamp,
        TimingError,
        f"Block timestamp cannot go backwards ({timestamp} < {env.block_timestamp})",
    )
    if not checks.ok:
        return ActionResult.from_checks(checks)

    if timestamp > env.block_timestamp:
        logger.debug(f"Block timestamp {env.block_timestamp} → {timestamp}")
    env.block_timestamp = timestamp
    return ActionResult.success(timestamp)


def _execute_upgrade(env: ProtocolEnvironment, sender: str, upgrade_id: str, calldata: bytes) -> ActionResult:
    handler = env.addresses.upgrade_handler
    env.call_history.enter_external(sender, handler, "execute")
    try:
        proposal: Optional[UpgradeProposal] = UpgradeProposal.decode(calldata)
    except EncodingError:
        proposal = None

    checks = env.lifecycle.validate_execution(
        upgrade_id,
        calldata,
        env.block_timestamp,
        env.call_history.current_sender(),
        proposal.executor if proposal is not None else None,
        env.is_frozen(),
        env.config.freeze.execution_blocked_while_frozen,
    )
    if not checks.ok:
        return ActionResult.from_checks(checks)

    env.lifecycle.mark_executed(upgrade_id, env.block_timestamp)
    env.record_calls(upgrade_id, proposal)
    return ActionResult.success(upgrade_id)


# ══════════════════════════════════════════════════════════════════════
#  INVARIANTS
# ══════════════════════════════════════════════════════════════════════

def _thresholds_in_bounds(env: ProtocolEnvironment) -> bool:
    multisigs: Iterable[ThresholdMultisig] = (
        env.security_council.multisig, env.guardians.multisig, env.foundation,
    )
    return all(1 <= m.threshold <= m.size for m in multisigs)


def _soft_freeze_threshold_in_bounds(env: ProtocolEnvironment) -> bool:
    council = env.security_council
    return 1 <= council.soft_freeze_threshold <= council.max_soft_freeze_threshold()


def _nonces_non_negative(env: ProtocolEnvironment) -> bool:
    nonces = list(env.security_council.nonces().values())
    nonces += [env.guardians.nonce, env.emergency_board_nonce]
    return all(n >= 0 for n in nonces)


def _freeze_until_only_while_frozen(env: ProtocolEnvironment) -> bool:
    state = env.freeze
    if state.status == FreezeStatus.UNFROZEN:
        return state.protocol_frozen_until is None and state.frozen_at is None
    return state.frozen_at is not None


def _upgrade_timestamps_consistent(env: ProtocolEnvironment) -> bool:
    timing = env.config.timing
    for status in env.lifecycle.upgrades.values():
        if status.emergency:
            if not status.executed:
                return False
            continue
        if not (
            status.creation_timestamp
            <= status.legal_veto_period_end
            <= status.creation_timestamp + timing.extended_legal_veto_period
        ):
            return False
        for approved_at in (status.approved_by_guardians_at, status.approved_by_security_council_at):
            if approved_at is not None and approved_at < status.creation_timestamp:
                return False
        if status.executed != (status.executed_at is not None):
            return False
        if status.executed and status.executed_at < status.executable_at(timing):
            return False
    return True


def _calldata_matches_ids(env: ProtocolEnvironment) -> bool:
    return all(
        compute_upgrade_id(calldata) == uid
        for uid, calldata in env.lifecycle.calldata.items()
    )


def _executed_calls_belong_to_executed_upgrades(env: ProtocolEnvironment) -> bool:
    for call in env.executed_calls:
        status = env.lifecycle.upgrades.get(call.upgrade_id)
        if status is None or not status.executed:
            return False
    return True


def _call_history_sender_consistent(env: ProtocolEnvironment) -> bool:
    history = env.call_history
    if not history.calls:
        return history.last_sender is None
    return history.last_sender == history.calls[-1].caller


_INVARIANTS = (
    ("multisig_threshold_bounds", _thresholds_in_bounds),
    ("soft_freeze_threshold_bounds", _soft_freeze_threshold_in_bounds),
    ("nonces_non_negative", _nonces_non_negative),
    ("freeze_until_only_while_frozen", _freeze_until_only_while_frozen),
    ("upgrade_timestamps_consistent", _upgrade_timestamps_consistent),
    ("calldata_matches_upgrade_id", _calldata_matches_ids),
    ("executed_calls_belong_to_executed_upgrades", _executed_calls_belong_to_executed_upgrades),
    ("call_history_sender_consistent", _call_history_sender_consistent),
)
