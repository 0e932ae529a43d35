"""Tool risk classification for agent tool calls.

Every tool name maps to exactly one ``ToolProfile``. Call sites branch on the
returned profile, never on tool-name strings. Unknown tools are ``OTHER`` and
pass through the gate ungated.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Tuple

COMPLETION_TOOL = "attempt_completion"

FILE_TARGET_PARAMS: Tuple[str, ...] = ("path", "file_path")


class ToolRiskClass(Enum):
    """Classification of tool safety."""

    SAFE = "safe"  # Pure reads
    DESTRUCTIVE = "destructive"  # File/content mutation or command execution
    OTHER = "other"  # Unclassified, not gated


@dataclass(frozen=True)
class ToolProfile:
    """What the gate needs to know about one tool."""

    name: str
    risk: ToolRiskClass
    mutates_files: bool = False  # Target is a workspace path subject to scope checks
    writes_content: bool = False  # Carries full proposed content; mutation class applies
    target_params: Tuple[str, ...] = ()  # Parameters naming the target, in priority order
    default_target: str = "target"
    signals_completion: bool = False  # Agent declares its task finished

    @property
    def is_destructive(self) -> bool:
        return self.risk is ToolRiskClass.DESTRUCTIVE


def _reader(name: str) -> ToolProfile:
    return ToolProfile(name, ToolRiskClass.SAFE, target_params=FILE_TARGET_PARAMS)


def _editor(name: str, writes_content: bool = False, extra_params: Tuple[str, ...] = ()) -> ToolProfile:
    return ToolProfile(
        name,
        ToolRiskClass.DESTRUCTIVE,
        mutates_files=True,
        writes_content=writes_content,
        target_params=FILE_TARGET_PARAMS + extra_params,
    )


TOOL_PROFILES: Dict[str, ToolProfile] = {
    profile.name: profile
    for profile in [
        _reader("read_file"),
        _reader("list_files"),
        _reader("list_code_definition_names"),
        _reader("search_files"),
        _editor("write_to_file", writes_content=True),
        _editor("apply_diff"),
        _editor("insert_content", extra_params=("args",)),
        _editor("edit"),
        _editor("edit_file"),
        _editor("search_and_replace"),
        _editor("search_replace"),
        _editor("apply_patch"),
        _editor("generate_image"),
        ToolProfile(COMPLETION_TOOL, ToolRiskClass.OTHER, signals_completion=True),
        ToolProfile(
            "execute_command",
            ToolRiskClass.DESTRUCTIVE,
            target_params=("command",),
            default_target="command",
        ),
    ]
}


def classify_tool(tool_name: str) -> ToolProfile:
    """
    Classify a tool by name.

    Args:
        tool_name: Name of the tool the agent wants to call

    Returns:
        The registered profile, or an ``OTHER`` profile for unknown tools
    """
    profile = TOOL_PROFILES.get(tool_name)
    if profile is None:
        return ToolProfile(tool_name, ToolRiskClass.OTHER)
    return profile


@dataclass(frozen=True)
class ToolTarget:
    """Resolved target of a tool call."""

    display: str  # Shown in the approval prompt
    file_path: Optional[str] = None  # Set only for workspace-path targets


def resolve_tool_target(profile: ToolProfile, tool_params: Optional[Mapping[str, Any]]) -> ToolTarget:
    """
    Resolve what a tool call acts on.

    The first non-blank parameter listed in ``profile.target_params`` wins
    (``execute_command`` -> ``command``; file tools -> ``path``, ``file_path``,
    and ``args`` for ``insert_content``). Only file-mutating tools yield a
    ``file_path``.
    """
    for key in profile.target_params:
        value = (tool_params or {}).get(key)
        if isinstance(value, str) and value.strip():
            candidate = value.strip()
            return ToolTarget(display=candidate, file_path=candidate if profile.mutates_files else None)
    return ToolTarget(display=profile.default_target)
