"""Human-in-the-loop approval channels.

The governance gate asks an ``ApprovalChannel`` whether a destructive action
may proceed. Channels return True only on an explicit approval; dismissal or
cancellation raises ``ApprovalCancelled``, which the gate turns into a
rejection.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional, Protocol

from rich.console import Console
from rich.panel import Panel

from .exceptions import ApprovalCancelled

logger = logging.getLogger(__name__)

APPROVE_LABEL = "Approve"
REJECT_LABEL = "Reject"


@dataclass(frozen=True)
class ApprovalRequest:
    """What the human is asked to approve."""

    intent_id: str
    action: str
    target: str

    @property
    def message(self) -> str:
        return f"Intent {self.intent_id} is requesting to {self.action} on {self.target}. Approve?"


class ApprovalChannel(Protocol):
    def request(self, approval: ApprovalRequest) -> bool:
        """Return True only on explicit approval; raise ApprovalCancelled on dismissal."""
        ...


class ConsoleApprovalChannel:
    """Modal approval prompt on the terminal."""

    def __init__(self, console: Optional[Console] = None):
        self.console = console or Console()

    def request(self, approval: ApprovalRequest) -> bool:
        self.console.print(Panel(approval.message, title="[bold yellow]Approval required[/bold yellow]", expand=False))
        try:
            answer = self.console.input(f"[bold]{APPROVE_LABEL} / {REJECT_LABEL}:[/bold] ")
        except (EOFError, KeyboardInterrupt) as e:
            self.console.print("[yellow]Cancelled[/yellow]")
            raise ApprovalCancelled("Approval prompt dismissed") from e

        approved = answer.strip().lower() in ("approve", "a", "yes", "y")
        if approved:
            self.console.print("[green]✓[/green] Approved")
        else:
            self.console.print("[red]✗[/red] Rejected")
        return approved


class StaticApprovalChannel:
    """Answers every request the same way; records what was asked."""

    def __init__(self, approve: bool = True):
        self.approve = approve
        self.requests: List[ApprovalRequest] = []

    def request(self, approval: ApprovalRequest) -> bool:
        self.requests.append(approval)
        logger.debug(f"[Approval] Auto-{'approved' if self.approve else 'rejected'}: {approval.message}")
        return self.approve
