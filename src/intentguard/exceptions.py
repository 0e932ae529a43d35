"""Custom exceptions for the IntentGuard framework."""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from .governance import GateDecision


INTENT_REQUIRED_ERROR = "You must cite a valid active Intent ID."


class IntentGuardError(Exception):
    """Base exception for all IntentGuard errors."""

    pass


class IntentNotFoundError(IntentGuardError):
    """Raised when an intent selection cites an id that cannot be resolved."""

    def __init__(self, intent_id: Optional[str] = None):
        super().__init__(INTENT_REQUIRED_ERROR)
        self.intent_id = intent_id


class GovernanceViolation(IntentGuardError):
    """Exception raised when the governance gate denies an action."""

    def __init__(self, decision: "GateDecision"):
        """
        Initialize governance violation.

        Args:
            decision: The denial produced by the gate
        """
        super().__init__(decision.reason or "Action denied by governance gate")
        self.decision = decision


class ApprovalRejected(GovernanceViolation):
    """Exception raised when a human rejected the approval request."""

    def __init__(self, decision: "GateDecision"):
        super().__init__(decision)
        # Message is the structured payload so callers can json.loads() it
        self.args = (decision.rejection_payload or decision.reason or "rejected",)


class ApprovalCancelled(IntentGuardError):
    """Raised by approval channels when the prompt is dismissed or cancelled."""

    pass


class HookExecutionError(IntentGuardError):
    """Exception raised when a critical hook fails."""

    def __init__(self, hook_id: str, message: str):
        super().__init__(f"[Hook:{hook_id}] {message}")
        self.hook_id = hook_id


class LedgerLockTimeout(IntentGuardError):
    """Exception raised when the workspace advisory lock cannot be acquired."""

    pass
