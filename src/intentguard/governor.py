"""Intent governor: the host-facing entry point.

Wires the ledger, governance gate, provenance trace and intent map into the
three moments the agent host reports:

- ``select_active_intent``: the agent cites the intent it is working on
- ``before_tool``: a tool call is about to run (returns the gate decision)
- ``after_write``: a file write succeeded (trace + intent map)

All per-task state travels on the ``IntentSession`` passed in by the host.
"""

import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterator, List, Optional
from xml.sax.saxutils import escape

from .approval import ApprovalChannel
from .config import Settings, settings as default_settings
from .exceptions import IntentNotFoundError
from .governance import GateDecision, GovernanceGate
from .hooks import HookCriticality, HookManager
from .intent_map import IntentMapReconciler, IntentMapUpdate
from .ledger import IntentLedger
from .logging_config import correlation_id_var
from .models import Intent, IntentStatus, MutationClass, TraceRecord, utc_now_iso
from .requirements import find_matching_requirement_id, intent_id_for_requirement, normalize_intent_id
from .session import IntentSession, ToolCall
from .tool_classifier import classify_tool
from .trace import ProvenanceTrace

logger = logging.getLogger(__name__)

TRACE_LINE_PREVIEW_CHARS = 240

_XML_ENTITIES = {'"': "&quot;", "'": "&apos;"}


def _xml(value: object) -> str:
    return escape(str(value), _XML_ENTITIES)


def build_intent_xml(intent: Intent) -> str:
    """``<intent_context>`` block returned to the agent on selection."""
    constraints = [f"    <constraint>{_xml(item)}</constraint>" for item in intent.constraints]
    scope = [f"    <path>{_xml(item)}</path>" for item in intent.owned_scope]
    return "\n".join(
        [
            "<intent_context>",
            f"  <intent_id>{_xml(intent.id)}</intent_id>",
            "  <constraints>",
            "\n".join(constraints) or "    <constraint></constraint>",
            "  </constraints>",
            "  <owned_scope>",
            "\n".join(scope) or "    <path></path>",
            "  </owned_scope>",
            "</intent_context>",
        ]
    )


def build_consolidated_context(intent: Intent, related_trace_lines: List[str]) -> str:
    """Runtime context for prompt injection: constraints, scope, recent trace."""
    if related_trace_lines:
        trace_summary = [f"- {line[:TRACE_LINE_PREVIEW_CHARS]}" for line in related_trace_lines]
    else:
        trace_summary = ["- No related trace entries found."]

    return "\n".join(
        [
            "<intent_runtime_context>",
            f"<intent_id>{_xml(intent.id)}</intent_id>",
            "<constraints>",
            *[f"- {item}" for item in intent.constraints],
            "</constraints>",
            "<owned_scope>",
            *[f"- {item}" for item in intent.owned_scope],
            "</owned_scope>",
            "<recent_agent_trace>",
            *trace_summary,
            "</recent_agent_trace>",
            "</intent_runtime_context>",
        ]
    )


@contextmanager
def bound_correlation_id(correlation_id: Optional[str]) -> Iterator[None]:
    token = correlation_id_var.set(correlation_id)
    try:
        yield
    finally:
        correlation_id_var.reset(token)


@dataclass
class WriteContext:
    """Everything the post-write hooks need about one completed write."""

    session: IntentSession
    intent: Optional[Intent]
    relative_path: str
    content: Optional[str]
    mutation_class: Optional[MutationClass]
    previous_content: Optional[str] = None


@dataclass
class WriteOutcome:
    trace: TraceRecord
    intent_map: IntentMapUpdate = field(default_factory=IntentMapUpdate)


class IntentGovernor:
    """Host-facing facade over ledger, gate, trace and intent map."""

    def __init__(
        self,
        workspace_root: Path,
        approval_channel: ApprovalChannel,
        settings: Optional[Settings] = None,
    ):
        self.workspace_root = Path(workspace_root)
        self.settings = settings or default_settings
        self.ledger = IntentLedger(self.workspace_root, self.settings)
        self.gate = GovernanceGate(self.workspace_root, approval_channel, self.settings)
        self.trace = ProvenanceTrace(self.workspace_root, self.settings)
        self.intent_map = IntentMapReconciler(self.workspace_root, self.settings, ledger=self.ledger)

        self.post_write_hooks: HookManager[WriteContext] = HookManager()
        self.post_write_hooks.register("provenance_trace", self._record_trace, HookCriticality.CRITICAL)
        self.post_write_hooks.register("intent_map", self._update_intent_map, HookCriticality.BEST_EFFORT)

    # ------------------------------------------------------------------
    # Selection
    # ------------------------------------------------------------------

    def select_active_intent(self, session: IntentSession, intent_id: str) -> str:
        """
        Bind an intent to the session.

        Unknown ids referenced by the task list are created as PENDING intents
        from spec sources.

        Args:
            session: Session to bind
            intent_id: Intent id as cited by the agent (``int-7`` is accepted)

        Returns:
            XML ``<intent_context>`` block for the agent

        Raises:
            IntentNotFoundError: The id is neither ledgered nor in the task list
        """
        normalized = normalize_intent_id(intent_id or "")
        if not normalized:
            raise IntentNotFoundError(intent_id)

        with bound_correlation_id(session.task_id):
            intent = self.ledger.get_by_id(normalized)
            if intent is None:
                if not self.ledger.task_list_mentions(normalized):
                    logger.warning(f"[Governor] Unknown intent cited: {normalized}")
                    raise IntentNotFoundError(normalized)
                intent = self._create_from_spec(normalized, session)

            session.current_intent_id = intent.id
            session.intent_xml = build_intent_xml(intent)
            session.intent_context = build_consolidated_context(intent, self.trace.related_lines(intent.id))
            logger.info(f"[Governor] Session {session.task_id} selected {intent.id}")
            return session.intent_xml

    def intent_context_for_prompt(self, session: IntentSession) -> Optional[str]:
        return session.intent_context

    # ------------------------------------------------------------------
    # Pre-tool
    # ------------------------------------------------------------------

    def before_tool(self, session: IntentSession, tool_call: ToolCall) -> GateDecision:
        """
        Pre-tool hook: refresh the ledger, then run the governance gate.

        Partial (still streaming) calls are allowed without side effects. Safe
        and unclassified tools do not touch the ledger. Destructive tools and
        the completion tool resolve the intent (session selection, then the
        requirement matched from the task text, then the ledger's current
        intent) and refresh its audit fields; completion also marks the
        requirement done.
        """
        if tool_call.is_partial:
            return GateDecision.allow()

        profile = classify_tool(tool_call.name)
        is_completion = profile.signals_completion
        if not profile.is_destructive and not is_completion:
            return self.gate.evaluate(tool_call.name, tool_call.params, None)

        with bound_correlation_id(session.task_id):
            task_list = self.ledger.ensure_task_list()
            intent = self._resolve_intent(session, task_list)

            if intent is not None:
                intent = self._refresh(intent, session, tool_call, IntentStatus.IN_PROGRESS)
                if is_completion:
                    self.ledger.mark_requirement_completed(intent.id)
                    intent = self._refresh(intent, session, tool_call, IntentStatus.COMPLETED)
                    logger.info(f"[Governor] {intent.id} completed")

            return self.gate.evaluate(tool_call.name, tool_call.params, intent)

    # ------------------------------------------------------------------
    # Post-write
    # ------------------------------------------------------------------

    def after_write(
        self,
        session: IntentSession,
        relative_path: str,
        content: Optional[str] = None,
        mutation_class: Optional[MutationClass] = None,
        previous_content: Optional[str] = None,
    ) -> WriteOutcome:
        """
        Post-write hook: append the provenance trace (critical), then update
        the intent map (best effort, ``INTENT_EVOLUTION`` only).

        Raises:
            HookExecutionError: The trace could not be written
        """
        with bound_correlation_id(session.task_id):
            intent = None
            if session.current_intent_id:
                intent = self.ledger.get_by_id(session.current_intent_id)
            if intent is None:
                intent = self.ledger.get_current()

            context = WriteContext(
                session=session,
                intent=intent,
                relative_path=relative_path,
                content=content,
                mutation_class=MutationClass.parse(mutation_class),
                previous_content=previous_content,
            )
            results = self.post_write_hooks.execute(context)
            trace_record = results[0]
            map_update = results[1] if len(results) > 1 else None
            return WriteOutcome(trace=trace_record, intent_map=map_update or IntentMapUpdate())

    def _record_trace(self, context: WriteContext) -> TraceRecord:
        return self.trace.append_for_write(
            context.relative_path,
            task_id=context.session.task_id,
            model_identifier=context.session.model_identifier,
            intent=context.intent,
            mutation_class=context.mutation_class,
            content=context.content,
        )

    def _update_intent_map(self, context: WriteContext) -> IntentMapUpdate:
        if context.intent is None or context.mutation_class is not MutationClass.INTENT_EVOLUTION:
            return IntentMapUpdate()
        new_content = context.content
        if new_content is None:
            new_content = (self.workspace_root / context.relative_path).read_text(encoding="utf-8")
        return self.intent_map.update_for_write(
            context.intent.id,
            context.relative_path,
            context.mutation_class,
            new_content,
            previous_content=context.previous_content,
            task_context=context.session.task_text or None,
        )

    # ------------------------------------------------------------------
    # Intent resolution
    # ------------------------------------------------------------------

    def _resolve_intent(self, session: IntentSession, task_list: Optional[str]) -> Optional[Intent]:
        if session.current_intent_id:
            selected = self.ledger.get_by_id(session.current_intent_id)
            if selected is not None:
                return selected
            logger.warning(f"[Governor] Selected intent {session.current_intent_id} is no longer in the ledger")

        requirement_id = find_matching_requirement_id(session.task_text, task_list)
        if requirement_id:
            intent_id = intent_id_for_requirement(requirement_id)
            if intent_id:
                existing = self.ledger.get_by_id(intent_id)
                if existing is None:
                    return self._create_from_spec(intent_id, session, requirement_id=requirement_id)
                if existing.requirement_id and existing.requirement_id.upper() != requirement_id:
                    logger.warning(
                        f"[Governor] Task text matched {requirement_id} but {existing.id} is linked to "
                        f"{existing.requirement_id}; keeping the explicit link"
                    )
                return existing

        return self.ledger.get_current()

    def _create_from_spec(
        self, intent_id: str, session: IntentSession, requirement_id: Optional[str] = None
    ) -> Intent:
        details = self.ledger.read_spec_details(intent_id)
        intent = Intent(
            id=intent_id,
            name=details.name or session.task_text,
            status=IntentStatus.PENDING,
            owned_scope=details.owned_scope,
            constraints=details.constraints,
            acceptance_criteria=details.acceptance_criteria,
            requirement_id=requirement_id,
            task_id=session.task_id,
            task=session.task_text or None,
            updated_at=utc_now_iso(),
        )
        logger.info(f"[Governor] Created {intent_id} from spec sources")
        return self.ledger.upsert(intent)

    def _refresh(self, intent: Intent, session: IntentSession, tool_call: ToolCall, status: IntentStatus) -> Intent:
        refreshed = intent.model_copy(
            update={
                "status": status,
                "task_id": session.task_id,
                "task": session.task_text or intent.task,
                "tool_name": tool_call.name,
                "tool_call_id": tool_call.call_id,
                "updated_at": utc_now_iso(),
            }
        )
        return self.ledger.upsert(refreshed)
