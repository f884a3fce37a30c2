"""
Upgrade Lifecycle State Machine

Drives every upgrade from creation to execution:

    LEGAL_VETO_PERIOD → WAITING → APPROVED → PENDING_EXECUTION → EXECUTED
                      ↘ EXPIRED (no approval before the approval deadline)

The stage is never stored. It is a pure function of the recorded
timestamps and the current block timestamp, so expiry and the move to
PENDING_EXECUTION happen lazily when time advances, without timers.

Two authorities can approve:
  - Security Council: effective immediately
  - Guardians: effective ``guardians_approval_delay`` after the legal veto ends
The earlier effective time governs; the Security Council wins ties.
"""

from dataclasses import dataclass
from enum import IntEnum
from typing import Any, Dict, List, Optional, Tuple

from ..config.loader import TimingConfig
from ..logger import get_logger
from .addresses import GovernanceAddresses
from .checks import (
    ActionResult,
    AuthorizationError,
    Checks,
    StateError,
    TimingError,
)
from .proposals import upgrade_id as compute_upgrade_id

logger = get_logger(__name__)


# ══════════════════════════════════════════════════════════════════════
#  ENUMS
# ══════════════════════════════════════════════════════════════════════

class UpgradeStage(IntEnum):
    """Lifecycle stage. Values are ordered; a stage never decreases."""
    NONE = 0                # Unknown upgrade
    LEGAL_VETO_PERIOD = 1   # Open to legal challenge
    WAITING = 2             # Veto over, no approval yet
    APPROVED = 3            # Approved, pending delay running
    PENDING_EXECUTION = 4   # Executable
    EXECUTED = 5
    EXPIRED = 6             # No approval before the deadline


class ApprovalSource(IntEnum):
    """Authority whose approval is effective."""
    SECURITY_COUNCIL = 1
    GUARDIANS = 2


_TERMINAL = (UpgradeStage.EXECUTED, UpgradeStage.EXPIRED)


# ══════════════════════════════════════════════════════════════════════
#  STATUS
# ══════════════════════════════════════════════════════════════════════

@dataclass
class UpgradeStatus:
    """
    Recorded state of one upgrade.

    Fields:
        upgrade_id:                       keccak256 of the proposal calldata
        creation_timestamp:               Block timestamp at creation
        legal_veto_period_end:            End of the (possibly extended) veto window
        legal_veto_extended:              Guardians already extended the window
        approved_by_guardians_at:         Timestamp of the Guardians approval
        approved_by_security_council_at:  Timestamp of the Security Council approval
        executed:                         Upgrade calls have been made
        executed_at:                      Timestamp of execution
        emergency:                        Executed by the Emergency Upgrade Board
    """
    upgrade_id: str
    creation_timestamp: int
    legal_veto_period_end: int
    legal_veto_extended: bool = False
    approved_by_guardians_at: Optional[int] = None
    approved_by_security_council_at: Optional[int] = None
    executed: bool = False
    executed_at: Optional[int] = None
    emergency: bool = False

    # ── Derived timing ────────────────────────────────────────────────

    def guardians_effective_at(self, timing: TimingConfig) -> Optional[int]:
        if self.approved_by_guardians_at is None:
            return None
        return self.legal_veto_period_end + timing.guardians_approval_delay

    def effective_approval(
        self, timing: TimingConfig
    ) -> Optional[Tuple[int, ApprovalSource]]:
        """Earliest effective approval and who gave it, or None."""
        candidates: List[Tuple[int, ApprovalSource]] = []
        if self.approved_by_security_council_at is not None:
            candidates.append(
                (self.approved_by_security_council_at, ApprovalSource.SECURITY_COUNCIL)
            )
        guardians_at = self.guardians_effective_at(timing)
        if guardians_at is not None:
            candidates.append((guardians_at, ApprovalSource.GUARDIANS))
        if not candidates:
            return None
        # Tuples sort on source second, so SECURITY_COUNCIL wins equal times
        return min(candidates)

    def approval_deadline(self, timing: TimingConfig) -> int:
        return self.legal_veto_period_end + timing.approval_window

    def executable_at(self, timing: TimingConfig) -> Optional[int]:
        effective = self.effective_approval(timing)
        if effective is None:
            return None
        return effective[0] + timing.pending_delay

    def stage(self, now: int, timing: TimingConfig) -> UpgradeStage:
        if self.executed:
            return UpgradeStage.EXECUTED
        ready_at = self.executable_at(timing)
        if ready_at is not None:
            if now >= ready_at:
                return UpgradeStage.PENDING_EXECUTION
            return UpgradeStage.APPROVED
        if now < self.legal_veto_period_end:
            return UpgradeStage.LEGAL_VETO_PERIOD
        if now < self.approval_deadline(timing):
            return UpgradeStage.WAITING
        return UpgradeStage.EXPIRED

    def to_dict(self, now: Optional[int] = None, timing: Optional[TimingConfig] = None) -> Dict[str, Any]:
        data = {
            "upgradeId": self.upgrade_id,
            "creationTimestamp": self.creation_timestamp,
            "legalVetoPeriodEnd": self.legal_veto_period_end,
            "legalVetoExtended": self.legal_veto_extended,
            "approvedByGuardiansAt": self.approved_by_guardians_at,
            "approvedBySecurityCouncilAt": self.approved_by_security_council_at,
            "executed": self.executed,
            "executedAt": self.executed_at,
            "emergency": self.emergency,
        }
        if now is not None and timing is not None:
            effective = self.effective_approval(timing)
            data["stage"] = self.stage(now, timing).name
            data["effectiveApproval"] = (
                {"timestamp": effective[0], "source": effective[1].name} if effective else None
            )
        return data


def stage_of(status: Optional[UpgradeStatus], now: int, timing: TimingConfig) -> UpgradeStage:
    """Stage of *status*; NONE for an unknown upgrade."""
    if status is None:
        return UpgradeStage.NONE
    return status.stage(now, timing)


# ══════════════════════════════════════════════════════════════════════
#  LIFECYCLE
# ══════════════════════════════════════════════════════════════════════

class UpgradeLifecycle:
    """
    Upgrade handler state: every known upgrade and its calldata.

    Entry points that only another governance contract may call take the
    caller from the call-history ledger and check it first.
    """

    def __init__(self, timing: TimingConfig, addresses: GovernanceAddresses):
        self.timing = timing
        self.addresses = addresses
        self.upgrades: Dict[str, UpgradeStatus] = {}
        self.calldata: Dict[str, bytes] = {}

    # ── Queries ───────────────────────────────────────────────────────

    def get_status(self, upgrade_id: str) -> Optional[UpgradeStatus]:
        return self.upgrades.get(upgrade_id)

    def stage(self, upgrade_id: str, now: int) -> UpgradeStage:
        return stage_of(self.upgrades.get(upgrade_id), now, self.timing)

    def all_ids(self) -> List[str]:
        return list(self.upgrades)

    # ── Creation ──────────────────────────────────────────────────────

    def start_upgrade(self, calldata: bytes, now: int) -> ActionResult:
        """Create an upgrade for *calldata*; its legal veto starts now."""
        uid = compute_upgrade_id(calldata)
        checks = Checks().require(
            uid not in self.upgrades, StateError, f"Upgrade {uid} already exists"
        )
        if not checks.ok:
            return ActionResult.from_checks(checks)

        self.upgrades[uid] = UpgradeStatus(
            upgrade_id=uid,
            creation_timestamp=now,
            legal_veto_period_end=now + self.timing.legal_veto_period,
        )
        self.calldata[uid] = bytes(calldata)
        logger.info(f"Upgrade {uid} started → LEGAL_VETO_PERIOD until {now + self.timing.legal_veto_period}")
        return ActionResult.success(uid)

    # ── Approvals ─────────────────────────────────────────────────────

    def approve_by_security_council(self, upgrade_id: str, now: int, caller: Optional[str]) -> ActionResult:
        status = self.upgrades.get(upgrade_id)
        stage = stage_of(status, now, self.timing)
        checks = (
            Checks()
            .require(caller == self.addresses.security_council, AuthorizationError,
                     f"Only the security council may approve upgrades (caller={caller})")
            .require(status is not None, StateError, f"Unknown upgrade {upgrade_id}")
            .require(stage not in _TERMINAL, StateError,
                     f"Upgrade {upgrade_id} is {stage.name}")
            .require(lambda: status.approved_by_security_council_at is None, StateError,
                     f"Upgrade {upgrade_id} already approved by the security council")
        )
        if not checks.ok:
            return ActionResult.from_checks(checks)

        status.approved_by_security_council_at = now
        new_stage = status.stage(now, self.timing)
        logger.info(f"Upgrade {upgrade_id}: {stage.name} → {new_stage.name} | security council approval")
        return ActionResult.success(new_stage)

    def approve_by_guardians(self, upgrade_id: str, now: int, caller: Optional[str]) -> ActionResult:
        status = self.upgrades.get(upgrade_id)
        stage = stage_of(status, now, self.timing)
        checks = (
            Checks()
            .require(caller == self.addresses.guardians, AuthorizationError,
                     f"Only the guardians may approve upgrades (caller={caller})")
            .require(status is not None, StateError, f"Unknown upgrade {upgrade_id}")
            .require(stage not in _TERMINAL, StateError,
                     f"Upgrade {upgrade_id} is {stage.name}")
            .require(lambda: status.approved_by_guardians_at is None, StateError,
                     f"Upgrade {upgrade_id} already approved by the guardians")
        )
        if not checks.ok:
            return ActionResult.from_checks(checks)

        status.approved_by_guardians_at = now
        new_stage = status.stage(now, self.timing)
        logger.info(
            f"Upgrade {upgrade_id}: {stage.name} → {new_stage.name} | guardians approval "
            f"(effective at {status.guardians_effective_at(self.timing)})"
        )
        return ActionResult.success(new_stage)

    def extend_legal_veto(self, upgrade_id: str, now: int, caller: Optional[str]) -> ActionResult:
        status = self.upgrades.get(upgrade_id)
        stage = stage_of(status, now, self.timing)
        checks = (
            Checks()
            .require(caller == self.addresses.guardians, AuthorizationError,
                     f"Only the guardians may extend the legal veto (caller={caller})")
            .require(status is not None, StateError, f"Unknown upgrade {upgrade_id}")
            .require(stage not in _TERMINAL, StateError,
                     f"Upgrade {upgrade_id} is {stage.name}")
            .require(lambda: not status.legal_veto_extended, StateError,
                     f"Legal veto of {upgrade_id} was already extended")
            .require(lambda: now < status.legal_veto_period_end, TimingError,
                     f"Legal veto period of {upgrade_id} is over")
        )
        if not checks.ok:
            return ActionResult.from_checks(checks)

        status.legal_veto_period_end = (
            status.creation_timestamp + self.timing.extended_legal_veto_period
        )
        status.legal_veto_extended = True
        logger.info(f"Upgrade {upgrade_id}: legal veto extended until {status.legal_veto_period_end}")
        return ActionResult.success(status.legal_veto_period_end)

    # ── Execution ─────────────────────────────────────────────────────

    def validate_execution(
        self,
        upgrade_id: str,
        calldata: bytes,
        now: int,
        caller: Optional[str],
        executor: Optional[str],
        frozen: bool,
        block_while_frozen: bool,
    ) -> Checks:
        """Precondition chain for ``execute``, in reporting order."""
        status = self.upgrades.get(upgrade_id)
        stage = stage_of(status, now, self.timing)
        return (
            Checks()
            .require(compute_upgrade_id(calldata) == upgrade_id, StateError,
                     f"Calldata does not hash to upgrade {upgrade_id}")
            .require(status is not None, StateError, f"Unknown upgrade {upgrade_id}")
            .require(stage != UpgradeStage.EXECUTED, StateError,
                     f"Upgrade {upgrade_id} already executed")
            .require(stage != UpgradeStage.EXPIRED, StateError,
                     f"Upgrade {upgrade_id} expired")
            .require(stage in (UpgradeStage.APPROVED, UpgradeStage.PENDING_EXECUTION), StateError,
                     f"Upgrade {upgrade_id} is not approved ({stage.name})")
            .require(executor is None or caller == executor, AuthorizationError,
                     f"Upgrade {upgrade_id} may only be executed by {executor}")
            .require(not (block_while_frozen and frozen), StateError,
                     "Upgrades cannot execute while the protocol is frozen")
            .require(lambda: now >= status.executable_at(self.timing), TimingError,
                     f"Upgrade {upgrade_id} executable from "
                     f"{status.executable_at(self.timing) if status else None}, now={now}")
        )

    def mark_executed(self, upgrade_id: str, now: int) -> None:
        status = self.upgrades[upgrade_id]
        status.executed = True
        status.executed_at = now
        logger.info(f"Upgrade {upgrade_id}: PENDING_EXECUTION → EXECUTED")

    def execute_emergency(self, calldata: bytes, now: int, caller: Optional[str]) -> ActionResult:
        """Create (if needed) and execute an upgrade with no delays."""
        uid = compute_upgrade_id(calldata)
        status = self.upgrades.get(uid)
        checks = (
            Checks()
            .require(caller == self.addresses.emergency_upgrade_board, AuthorizationError,
                     f"Only the emergency upgrade board may execute emergency upgrades (caller={caller})")
            .require(status is None or not status.executed, StateError,
                     f"Upgrade {uid} already executed")
        )
        if not checks.ok:
            return ActionResult.from_checks(checks)

        if status is None:
            status = UpgradeStatus(
                upgrade_id=uid,
                creation_timestamp=now,
                legal_veto_period_end=now,
            )
            self.upgrades[uid] = status
            self.calldata[uid] = bytes(calldata)
        status.executed = True
        status.executed_at = now
        status.emergency = True
        logger.warning(f"EMERGENCY UPGRADE: {uid} executed at {now}")
        return ActionResult.success(uid)

    def to_dict(self, now: int) -> Dict[str, Any]:
        return {
            uid: status.to_dict(now, self.timing)
            for uid, status in self.upgrades.items()
        }

    def __repr__(self) -> str:
        return f"<UpgradeLifecycle upgrades={len(self.upgrades)}>"
