"""
Call-History Ledger

Records the chain of (caller, callee, method) triples for the top-level
call currently executing. It answers one question for the authorization
checks: who is really invoking this entry point? When the Security
Council contract forwards a freeze to the upgrade handler, the handler
sees the council as its sender, not the relayer that submitted the
signatures.

The ledger is observability state only. It never influences an action's
result except through ``current_sender()``.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from ..crypto.address import normalize_address


@dataclass(frozen=True)
class CallRecord:
    """One call frame."""
    caller: str
    callee: str
    method: str

    def to_dict(self) -> Dict[str, Any]:
        return {"caller": self.caller, "callee": self.callee, "method": self.method}


@dataclass
class CallHistory:
    """
    Calls made during one external invocation.

    Attributes:
        last_sender: Sender of the most recent call frame
        calls: Call frames in execution order
    """
    last_sender: Optional[str] = None
    calls: List[CallRecord] = field(default_factory=list)

    def enter_external(self, sender: str, callee: str, method: str) -> CallRecord:
        """
        Start a new top-level invocation; previous history is discarded.

        Raises:
            InvalidAddressError: If *sender* or *callee* is not an address.
                ProtocolEnvironment rejects such senders before they get here.
        """
        record = CallRecord(normalize_address(sender), normalize_address(callee), method)
        self.calls = [record]
        self.last_sender = record.caller
        return record

    def enter_internal(self, sender: str, callee: str, method: str) -> CallRecord:
        """Record a nested call made within the current invocation."""
        record = CallRecord(normalize_address(sender), normalize_address(callee), method)
        self.calls.append(record)
        self.last_sender = record.caller
        return record

    def current_sender(self) -> Optional[str]:
        return self.last_sender

    @property
    def depth(self) -> int:
        return len(self.calls)

    def was_called(self, caller: str, callee: str, method: str) -> bool:
        """True if this exact frame occurred in the current invocation."""
        target = CallRecord(normalize_address(caller), normalize_address(callee), method)
        return target in self.calls

    def trace(self) -> List[Tuple[str, str, str]]:
        return [(c.caller, c.callee, c.method) for c in self.calls]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "lastSender": self.last_sender,
            "calls": [c.to_dict() for c in self.calls],
        }
