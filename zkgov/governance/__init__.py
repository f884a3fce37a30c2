"""
zkgov Upgrade Governance

Provides:
  - GovernanceError taxonomy / Checks / ActionResult          (checks.py)
  - ThresholdMultisig / SigningDomain / verify               (multisig.py)
  - CallHistory / CallRecord                                 (call_history.py)
  - FreezeStatus / FreezeState                               (freeze.py)
  - UpgradeProposal / Call                                   (proposals.py)
  - UpgradeStage / UpgradeStatus / UpgradeLifecycle          (upgrades.py)
  - SecurityCouncilState, GuardiansState                     (security_council.py, guardians.py)
  - ProtocolEnvironment                                      (environment.py)
"""

from .checks import (
    ActionResult,
    AuthorizationError,
    Checks,
    GovernanceError,
    IdempotenceError,
    StateError,
    TimingError,
)
from .multisig import (
    SigningDomain,
    ThresholdMultisig,
    action_digest,
    sign_action,
    valid_signers,
    verify,
    verify_with_threshold,
)
from .addresses import GovernanceAddresses
from .call_history import CallHistory, CallRecord
from .freeze import FreezeState, FreezeStatus
from .proposals import Call, UpgradeProposal, upgrade_id
from .upgrades import ApprovalSource, UpgradeLifecycle, UpgradeStage, UpgradeStatus, stage_of
from .security_council import SecurityCouncilState
from .guardians import GuardiansState
from .environment import ExecutedCall, ProtocolEnvironment

__all__ = [
    # Checks
    "ActionResult",
    "AuthorizationError",
    "Checks",
    "GovernanceError",
    "IdempotenceError",
    "StateError",
    "TimingError",
    # Multisig
    "SigningDomain",
    "ThresholdMultisig",
    "action_digest",
    "sign_action",
    "valid_signers",
    "verify",
    "verify_with_threshold",
    # State
    "GovernanceAddresses",
    "CallHistory",
    "CallRecord",
    "FreezeState",
    "FreezeStatus",
    # Upgrades
    "Call",
    "UpgradeProposal",
    "upgrade_id",
    "ApprovalSource",
    "UpgradeLifecycle",
    "UpgradeStage",
    "UpgradeStatus",
    "stage_of",
    # Engines
    "SecurityCouncilState",
    "GuardiansState",
    # Environment
    "ExecutedCall",
    "ProtocolEnvironment",
]
