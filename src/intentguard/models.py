"""Intent and provenance models (Pydantic-based).

``Intent`` mirrors one entry of ``active_intents.yaml``; unknown keys written by
other tools are preserved on round-trip. Trace models mirror one line of
``agent_trace.jsonl``.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class IntentStatus(str, Enum):
    """Lifecycle state of an intent."""

    PENDING = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"


class MutationClass(str, Enum):
    """Declared nature of a content write."""

    AST_REFACTOR = "AST_REFACTOR"  # claims no external contract change
    INTENT_EVOLUTION = "INTENT_EVOLUTION"  # claims an intentional contract change

    @classmethod
    def parse(cls, value: Any) -> Optional["MutationClass"]:
        """Lenient parse: enum members, names or values in any case; else None."""
        if isinstance(value, MutationClass):
            return value
        if not isinstance(value, str):
            return None
        normalized = value.strip().upper()
        for member in cls:
            if member.value == normalized:
                return member
        return None


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _as_str_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if isinstance(value, (list, tuple)):
        return [str(item) for item in value if item is not None]
    return []


class Intent(BaseModel):
    """A declared, scoped unit of authorized work.

    Attributes:
        id: Stable identifier, canonical form INT-### (see requirements.normalize_intent_id)
        name: Human-readable label, defaults to the originating task description
        status: PENDING, IN_PROGRESS or COMPLETED
        owned_scope: Path patterns (literal prefix or glob) the intent may mutate
        constraints: Free-text restrictions
        acceptance_criteria: Free-text completion conditions
        requirement_id: Optional explicit requirement link (T###)
        task_id/task/tool_name/tool_call_id/updated_at: Audit fields refreshed on
            every gated action
    """

    model_config = ConfigDict(extra="allow", use_enum_values=False)

    id: str
    name: str = ""
    status: IntentStatus = IntentStatus.PENDING
    owned_scope: List[str] = Field(default_factory=list)
    constraints: List[str] = Field(default_factory=list)
    acceptance_criteria: List[str] = Field(default_factory=list)
    requirement_id: Optional[str] = None

    task_id: Optional[str] = None
    task: Optional[str] = None
    tool_name: Optional[str] = None
    tool_call_id: Optional[str] = None
    updated_at: Optional[str] = None

    @field_validator("owned_scope", "constraints", "acceptance_criteria", mode="before")
    @classmethod
    def _coerce_lists(cls, value: Any) -> List[str]:
        return _as_str_list(value)

    @field_validator("status", mode="before")
    @classmethod
    def _coerce_status(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().upper() or IntentStatus.PENDING.value
        if value is None:
            return IntentStatus.PENDING.value
        return value

    @field_validator("updated_at", mode="before")
    @classmethod
    def _coerce_timestamp(cls, value: Any) -> Any:
        # YAML loaders turn unquoted ISO timestamps into datetime objects
        if isinstance(value, datetime):
            return value.isoformat()
        return value

    def to_yaml_dict(self) -> Dict[str, Any]:
        """Plain dict for YAML dumping (enums as strings, extras kept)."""
        return self.model_dump(mode="json")


# =============================================================================
# PROVENANCE TRACE MODELS
# =============================================================================


class TraceRange(BaseModel):
    model_config = ConfigDict(extra="forbid")

    start_line: int
    end_line: int
    content_hash: str


class TraceContributor(BaseModel):
    model_config = ConfigDict(extra="forbid")

    entity_type: Literal["AI"] = "AI"
    model_identifier: str


class TraceRelated(BaseModel):
    model_config = ConfigDict(extra="forbid")

    type: Literal["specification"] = "specification"
    value: str


class TraceConversation(BaseModel):
    model_config = ConfigDict(extra="forbid")

    url: str
    contributor: TraceContributor
    ranges: List[TraceRange]
    related: List[TraceRelated]


class TraceFile(BaseModel):
    model_config = ConfigDict(extra="forbid")

    relative_path: str
    conversations: List[TraceConversation]


class TraceVcs(BaseModel):
    model_config = ConfigDict(extra="forbid")

    revision_id: str


class TraceRecord(BaseModel):
    """One immutable provenance record per mutating write."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    id: str
    trace_id: str
    intent_id: str
    timestamp: str
    vcs: TraceVcs
    files: List[TraceFile]
    mutation_class: Optional[MutationClass] = None
