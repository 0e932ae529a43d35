"""Governance gate: the pre-action policy decision for agent tool calls.

Decision procedure for one tool call (terminal outcomes ALLOW / DENY):

1. Classify the tool (SAFE / DESTRUCTIVE / OTHER).
2. Anything not DESTRUCTIVE is allowed.
3. No active intent -> deny.
4. File-mutating tools: resolve and normalize the target path (``..`` is
   collapsed; paths leaving the workspace are denied).
5. Scope: the path must fall inside the active intent's owned_scope.
6. Ignore: the path must not match the workspace ignore file.
7. Content writers: the declared mutation class must be present, and an
   ``AST_REFACTOR`` claim must not add exports/declarations or change
   existing signatures.
8. Ask the approval channel; anything but an explicit approval is a rejection.

The gate reads the ignore file and (for step 7) the current file content. It
never writes to the ledger.
"""

import json
import logging
import os
import posixpath
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Mapping, Optional

from .approval import ApprovalChannel, ApprovalRequest
from .config import Settings
from .declarations import detect_contract_change
from .exceptions import ApprovalCancelled, ApprovalRejected, GovernanceViolation
from .file_layout import WorkspaceLayout, read_text_or_none
from .ignore_rules import IntentIgnore
from .models import Intent, MutationClass
from .scope import find_owning_scope, normalize_scope_path
from .tool_classifier import ToolProfile, classify_tool, resolve_tool_target

logger = logging.getLogger(__name__)

REJECTION_MESSAGE = "User denied this action. Please find an alternative approach or stay within scope."

MUTATION_CLASS_PARAM = "mutation_class"
CONTENT_PARAM = "content"
PREVIOUS_CONTENT_PARAM = "previous_content"


class DenialCode(Enum):
    """Why the gate refused an action."""

    NO_ACTIVE_INTENT = "no_active_intent"
    SCOPE_VIOLATION = "scope_violation"
    IGNORE_VIOLATION = "ignore_violation"
    MISSING_MUTATION_CLASS = "missing_mutation_class"
    CLASSIFICATION_MISMATCH = "classification_mismatch"
    REJECTED = "rejected"  # A human said no


def build_rejection_payload() -> str:
    return json.dumps({"status": "rejected", "message": REJECTION_MESSAGE})


@dataclass(frozen=True)
class GateDecision:
    """Outcome of one gate evaluation. Not persisted."""

    allowed: bool
    reason: Optional[str] = None
    code: Optional[DenialCode] = None
    warning: Optional[str] = None
    rejection_payload: Optional[str] = None

    @property
    def is_rejection(self) -> bool:
        """True for a human rejection, False for policy denials and approvals."""
        return self.code is DenialCode.REJECTED

    @classmethod
    def allow(cls, reason: Optional[str] = None) -> "GateDecision":
        return cls(allowed=True, reason=reason)

    @classmethod
    def deny(
        cls,
        code: DenialCode,
        reason: str,
        warning: Optional[str] = None,
        rejection_payload: Optional[str] = None,
    ) -> "GateDecision":
        return cls(allowed=False, reason=reason, code=code, warning=warning, rejection_payload=rejection_payload)


class GovernanceGate:
    """Evaluates tool calls against the active intent."""

    def __init__(
        self,
        workspace_root: Path,
        approval_channel: ApprovalChannel,
        settings: Optional[Settings] = None,
    ):
        """
        Initialize the gate.

        Args:
            workspace_root: Workspace the agent operates in
            approval_channel: Human-in-the-loop approval boundary
            settings: Optional settings (defaults to module settings)
        """
        self.layout = WorkspaceLayout(workspace_root, settings)
        self.approval_channel = approval_channel

    def evaluate(
        self,
        tool_name: str,
        tool_params: Optional[Mapping[str, Any]],
        active_intent: Optional[Intent],
    ) -> GateDecision:
        """
        Decide whether a tool call may proceed.

        Args:
            tool_name: Tool the agent wants to call
            tool_params: Tool parameters (path, content, mutation_class, ...)
            active_intent: The intent the call is attributed to, if any

        Returns:
            GateDecision; denials carry a user-facing reason and a DenialCode
        """
        params: Mapping[str, Any] = tool_params or {}
        profile = classify_tool(tool_name)

        if not profile.is_destructive:
            return GateDecision.allow()

        if active_intent is None:
            return self._denied(
                DenialCode.NO_ACTIVE_INTENT,
                f"Action denied: no active intent. You must cite a valid active Intent ID before calling {tool_name}.",
            )

        target = resolve_tool_target(profile, params)
        target_path = self._normalize_target(target.file_path) if target.file_path else None

        if profile.mutates_files:
            if not target.file_path:
                return self._denied(
                    DenialCode.SCOPE_VIOLATION,
                    f"Scope Violation: could not resolve the file {tool_name} would modify.",
                )
            if target_path is None:
                return self._denied(
                    DenialCode.SCOPE_VIOLATION,
                    f"Scope Violation: {target.file_path} resolves outside the workspace.",
                )

            owning_scope = find_owning_scope(target_path, active_intent.owned_scope)
            if owning_scope is None:
                return self._denied(
                    DenialCode.SCOPE_VIOLATION,
                    f"Scope Violation: The current active intent {active_intent.id} is not authorized "
                    f"to edit {target_path}. Please call select_active_intent for the correct task "
                    f"or request a scope expansion.",
                )
            logger.debug(f"[Governance] {target_path} owned by {active_intent.id} via {owning_scope}")

        if target_path:
            ignore = IntentIgnore.load(self.layout.get_ignore_path())
            if ignore.ignores(target_path):
                return self._denied(
                    DenialCode.IGNORE_VIOLATION,
                    f"Intent Ignore Violation: {target_path} is blocked by "
                    f"{self.layout.settings.ignore_filename} and cannot be modified.",
                )

        if profile.writes_content:
            mismatch = self._check_mutation_class(profile, params, target_path)
            if mismatch is not None:
                return mismatch

        return self._request_approval(active_intent, tool_name, target.display)

    def enforce(
        self,
        tool_name: str,
        tool_params: Optional[Mapping[str, Any]],
        active_intent: Optional[Intent],
    ) -> GateDecision:
        """Like ``evaluate`` but raises on denial (ApprovalRejected for a human "no")."""
        decision = self.evaluate(tool_name, tool_params, active_intent)
        if decision.allowed:
            return decision
        if decision.is_rejection:
            raise ApprovalRejected(decision)
        raise GovernanceViolation(decision)

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    def _normalize_target(self, file_path: str) -> Optional[str]:
        """Workspace-relative path with ``.``/``..`` collapsed; None if it escapes the workspace."""
        if os.path.isabs(file_path):
            file_path = self.layout.relative(Path(file_path))
        normalized = posixpath.normpath(normalize_scope_path(file_path))
        if posixpath.isabs(normalized) or normalized in (".", "..") or normalized.startswith("../"):
            return None
        return normalized

    def _check_mutation_class(
        self, profile: ToolProfile, params: Mapping[str, Any], target_path: Optional[str]
    ) -> Optional[GateDecision]:
        raw_class = params.get(MUTATION_CLASS_PARAM)
        mutation_class = MutationClass.parse(raw_class)
        if mutation_class is None:
            return self._denied(
                DenialCode.MISSING_MUTATION_CLASS,
                f"Mutation class required for {profile.name}: declare "
                f"{MutationClass.AST_REFACTOR.value} or {MutationClass.INTENT_EVOLUTION.value}"
                + (f" (got {raw_class!r})." if raw_class else "."),
            )

        if mutation_class is not MutationClass.AST_REFACTOR:
            return None

        previous = params.get(PREVIOUS_CONTENT_PARAM)
        if not isinstance(previous, str):
            previous = read_text_or_none(self.layout.workspace_root / target_path) if target_path else None
        proposed = params.get(CONTENT_PARAM)
        proposed = proposed if isinstance(proposed, str) else ""

        findings = detect_contract_change(previous, proposed)
        if not findings:
            return None

        return self._denied(
            DenialCode.CLASSIFICATION_MISMATCH,
            f"Semantic classification mismatch: {MutationClass.AST_REFACTOR.value} declared for "
            f"{target_path or profile.name} but the change alters its contract ({'; '.join(findings)}).",
            warning=f"Actual mutation class may be {MutationClass.INTENT_EVOLUTION.value}.",
        )

    def _request_approval(self, intent: Intent, action: str, target: str) -> GateDecision:
        request = ApprovalRequest(intent_id=intent.id, action=action, target=target)
        try:
            approved = self.approval_channel.request(request)
        except ApprovalCancelled as e:
            logger.info(f"[Governance] Approval cancelled for {intent.id}: {e}")
            approved = False

        if approved is not True:
            payload = build_rejection_payload()
            return self._denied(DenialCode.REJECTED, payload, rejection_payload=payload)

        logger.info(f"[Governance] Approved: {request.message}")
        return GateDecision.allow(reason=f"Approved {action} on {target} for {intent.id}")

    def _denied(self, code: DenialCode, reason: str, **kwargs: Any) -> GateDecision:
        logger.warning(f"[Governance] DENY ({code.value}): {reason}")
        return GateDecision.deny(code, reason, **kwargs)
