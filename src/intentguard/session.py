"""Per-task session state threaded through governor calls.

The selected intent lives on the session object the host passes in, not in
module-level state keyed by the host's task object.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional


@dataclass
class IntentSession:
    """One agent task working in one workspace."""

    workspace_root: Path
    task_id: str
    task_text: str = ""
    model_identifier: str = "unknown"
    current_intent_id: Optional[str] = None
    # XML block returned by intent selection
    intent_xml: Optional[str] = None
    # Consolidated runtime context injected into the agent prompt
    intent_context: Optional[str] = None

    def __post_init__(self) -> None:
        self.workspace_root = Path(self.workspace_root)

    def clear_selection(self) -> None:
        self.current_intent_id = None
        self.intent_xml = None
        self.intent_context = None


@dataclass
class ToolCall:
    """A tool invocation as seen by the pre-tool hook."""

    name: str
    params: Dict[str, Any] = field(default_factory=dict)
    call_id: Optional[str] = None
    is_partial: bool = False  # Still streaming; not yet actionable
