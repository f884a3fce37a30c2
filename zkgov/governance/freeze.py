"""
Protocol freeze state

Soft freezes expire on their own once the block timestamp reaches
``protocol_frozen_until``. Hard freezes hold until an explicit unfreeze,
unless the deployment configures a finite hard freeze period.
"""

from dataclasses import dataclass
from enum import IntEnum
from typing import Any, Dict, Optional, Tuple

from ..logger import get_logger
from .checks import ActionResult, AuthorizationError, Checks, StateError

logger = get_logger(__name__)


class FreezeStatus(IntEnum):
    """Kind of freeze currently recorded."""
    UNFROZEN = 0
    SOFT_FROZEN = 1
    HARD_FROZEN = 2


@dataclass
class FreezeState:
    """
    Attributes:
        status: Recorded freeze kind
        protocol_frozen_until: Expiry timestamp; None for an open-ended
            hard freeze and meaningless while UNFROZEN
        frozen_at: Timestamp the current freeze started
    """
    status: FreezeStatus = FreezeStatus.UNFROZEN
    protocol_frozen_until: Optional[int] = None
    frozen_at: Optional[int] = None

    def is_frozen(self, now: int) -> bool:
        if self.status == FreezeStatus.UNFROZEN:
            return False
        if self.protocol_frozen_until is None:
            return self.status == FreezeStatus.HARD_FROZEN
        return now < self.protocol_frozen_until

    def effective_status(self, now: int) -> FreezeStatus:
        """Recorded status, or UNFROZEN once a timed freeze has lapsed."""
        return self.status if self.is_frozen(now) else FreezeStatus.UNFROZEN

    def freeze(self, status: FreezeStatus, now: int, duration: Optional[int]) -> None:
        self.status = status
        self.frozen_at = now
        self.protocol_frozen_until = None if duration is None else now + duration

    def clear(self) -> None:
        self.status = FreezeStatus.UNFROZEN
        self.protocol_frozen_until = None
        self.frozen_at = None

    def to_dict(self, now: Optional[int] = None) -> Dict[str, Any]:
        data = {
            "status": self.status.name,
            "protocolFrozenUntil": self.protocol_frozen_until,
            "frozenAt": self.frozen_at,
        }
        if now is not None:
            data["isFrozen"] = self.is_frozen(now)
        return data


# ══════════════════════════════════════════════════════════════════════
#  UPGRADE HANDLER ENTRY POINTS
# ══════════════════════════════════════════════════════════════════════

def freeze_protocol(
    state: FreezeState,
    status: FreezeStatus,
    now: int,
    duration: Optional[int],
    caller: Optional[str],
    authority: str,
) -> ActionResult:
    """
    Record a freeze on behalf of *authority* (the Security Council).

    A lapsed soft freeze no longer counts, so it can be replaced by a new
    soft freeze. A soft freeze can be escalated to a hard one; nothing
    replaces a live hard freeze.
    """
    current = state.effective_status(now)
    checks = (
        Checks()
        .require(caller == authority, AuthorizationError,
                 f"Only {authority} may freeze the protocol (caller={caller})")
        .require(status != FreezeStatus.UNFROZEN, StateError,
                 "Freeze status must be SOFT_FROZEN or HARD_FROZEN")
        .require(current != FreezeStatus.HARD_FROZEN, StateError,
                 "Protocol is already HARD_FROZEN")
        .require(not (status == FreezeStatus.SOFT_FROZEN and current == FreezeStatus.SOFT_FROZEN),
                 StateError, f"Protocol is already SOFT_FROZEN until {state.protocol_frozen_until}")
    )
    if not checks.ok:
        return ActionResult.from_checks(checks)

    previous = state.status
    state.freeze(status, now, duration)
    logger.warning(
        f"Protocol freeze: {previous.name} → {status.name} "
        f"until {state.protocol_frozen_until if state.protocol_frozen_until is not None else 'unfreeze'}"
    )
    return ActionResult.success(status)


def unfreeze_protocol(
    state: FreezeState,
    caller: Optional[str],
    authorities: Tuple[str, ...],
) -> ActionResult:
    """Clear any recorded freeze, including a lapsed soft freeze."""
    checks = (
        Checks()
        .require(caller in authorities, AuthorizationError,
                 f"Caller {caller} may not unfreeze the protocol")
        .require(state.status != FreezeStatus.UNFROZEN, StateError,
                 "Protocol is not frozen")
    )
    if not checks.ok:
        return ActionResult.from_checks(checks)

    previous = state.status
    state.clear()
    logger.warning(f"Protocol freeze: {previous.name} → UNFROZEN")
    return ActionResult.success(FreezeStatus.UNFROZEN)
