"""
Governance Checks: error taxonomy and ordered precondition chain

Every engine action validates its preconditions through a ``Checks``
chain: conditions are evaluated in the order they are declared and the
first failure is the one reported. Later conditions are not evaluated
once one has failed, so they may safely depend on earlier ones (e.g.
"upgrade exists" before "upgrade is approved").

Actions report the outcome as an ``ActionResult`` instead of raising;
callers that prefer exceptions use ``ActionResult.unwrap()``.
"""

from dataclasses import dataclass
from typing import Any, Callable, Optional, Type, Union

from ..exceptions import ZKGovException


# ══════════════════════════════════════════════════════════════════════
#  EXCEPTIONS
# ══════════════════════════════════════════════════════════════════════

class GovernanceError(ZKGovException):
    """Base governance exception."""


class AuthorizationError(GovernanceError):
    """Threshold not met, stale nonce, non-member signer or wrong caller."""


class TimingError(GovernanceError):
    """Action attempted before or after its valid window."""


class StateError(GovernanceError):
    """Action not permitted by the current upgrade or freeze state."""


class IdempotenceError(GovernanceError):
    """One-shot action invoked a second time."""


Condition = Union[bool, Callable[[], bool]]


# ══════════════════════════════════════════════════════════════════════
#  CHECK CHAIN
# ══════════════════════════════════════════════════════════════════════

class Checks:
    """
    Short-circuiting precondition chain.

    >>> checks = Checks().require(True, StateError, "a").require(False, TimingError, "b")
    >>> type(checks.error).__name__
    'TimingError'
    """

    def __init__(self) -> None:
        self.error: Optional[GovernanceError] = None

    def require(
        self,
        condition: Condition,
        error_cls: Type[GovernanceError],
        message: str,
    ) -> "Checks":
        if self.error is not None:
            return self
        passed = condition() if callable(condition) else condition
        if not passed:
            self.error = error_cls(message)
        return self

    @property
    def ok(self) -> bool:
        return self.error is None


# ══════════════════════════════════════════════════════════════════════
#  RESULT
# ══════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class ActionResult:
    """Outcome of one governance action."""
    ok: bool
    value: Any = None
    error: Optional[GovernanceError] = None

    @classmethod
    def success(cls, value: Any = None) -> "ActionResult":
        return cls(ok=True, value=value)

    @classmethod
    def failure(cls, error: GovernanceError) -> "ActionResult":
        return cls(ok=False, error=error)

    @classmethod
    def from_checks(cls, checks: Checks) -> "ActionResult":
        """Failure carrying the chain's first error."""
        return cls.failure(checks.error)

    @property
    def message(self) -> str:
        return str(self.error) if self.error is not None else ""

    def unwrap(self) -> Any:
        """Return the value, or raise the recorded error."""
        if self.error is not None:
            raise self.error
        return self.value

    def __repr__(self) -> str:
        if self.ok:
            return f"<ActionResult ok value={self.value!r}>"
        return f"<ActionResult {type(self.error).__name__}: {self.error}>"
