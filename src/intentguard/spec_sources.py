"""External spec sources: task-list materialization and intent detail extraction.

Spec documents live outside the control directory, under one of the configured
spec dirs, optionally in a per-branch subdirectory::

    <spec_dir>/<branch>/tasks.md      (tried first, for every spec dir)
    <spec_dir>/tasks.md
    <spec_dir>/[<branch>/]_meta.md        constraints
    <spec_dir>/[<branch>/]functional.md   acceptance criteria

Extraction is best-effort text scanning. Lists found nowhere fall back to the
``SPEC_PLACEHOLDER`` value so that an intent never carries an empty list.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from .file_layout import WorkspaceLayout, atomic_write_text, read_text_or_none
from .requirements import requirement_id_for_intent, strip_ids, strip_task_line
from .vcs import resolve_current_branch_name

logger = logging.getLogger(__name__)

SPEC_PLACEHOLDER = "None defined"

TASKS_FILENAME = "tasks.md"
META_FILENAME = "_meta.md"
FUNCTIONAL_FILENAME = "functional.md"

_YAML_KEY_LINE = re.compile(r"^\s*[A-Za-z_][A-Za-z0-9_\-]*\s*:\s*")
_YAML_ITEM_LINE = re.compile(r"^\s*-\s+(.*)$")
_HEADING_LINE = re.compile(r"^#{1,6}\s+(.+)$")
_BULLET_LINE = re.compile(r"^[-*]\s+(.*)$")
_CRITERIA_MARKERS = (
    re.compile(r"^-\s*\*\*Acceptance\s*Criteria\*\*\s*:?\s*$", re.IGNORECASE),
    re.compile(r"^\*\*Acceptance\s*Criteria\*\*\s*:?\s*$", re.IGNORECASE),
)
# Path-like tokens: at least one separator between name segments
_PATH_TOKEN = re.compile(r"([A-Za-z0-9._-]+(?:[\\/][A-Za-z0-9._-]+)+[\\/]?)")


@dataclass
class SpecIntentDetails:
    """Intent fields derived from spec sources for a not-yet-ledgered intent."""

    name: str
    owned_scope: List[str] = field(default_factory=list)
    constraints: List[str] = field(default_factory=list)
    acceptance_criteria: List[str] = field(default_factory=list)


def normalize_list(values: Sequence[str]) -> List[str]:
    """Trim and drop blank values; an empty result becomes ``[SPEC_PLACEHOLDER]``."""
    cleaned = [value.strip() for value in values if value and value.strip()]
    return cleaned if cleaned else [SPEC_PLACEHOLDER]


def _first_non_empty(*candidates: List[str]) -> List[str]:
    for values in candidates:
        if values:
            return values
    return []


# =============================================================================
# SOURCE RESOLUTION
# =============================================================================


def read_spec_file(layout: WorkspaceLayout, file_name: str) -> Optional[str]:
    """First readable candidate for ``file_name``, branch-scoped locations first."""
    branch_name = resolve_current_branch_name(layout.workspace_root)
    for candidate in layout.get_spec_candidates(file_name, branch_name):
        content = read_text_or_none(candidate)
        if content is not None:
            logger.debug(f"[SpecSources] Using {candidate}")
            return content
    return None


def ensure_task_list(layout: WorkspaceLayout) -> Optional[str]:
    """
    Return the local task list, materializing it from a spec source if missing.

    The caller is responsible for holding the workspace lock.

    Returns:
        Task-list content, or None in degraded mode (no task list anywhere)
    """
    task_list_path = layout.get_task_list_path()
    existing = read_text_or_none(task_list_path)
    if existing is not None:
        return existing

    source = read_spec_file(layout, TASKS_FILENAME)
    if source is None:
        logger.debug("[SpecSources] No task list found; running without requirements")
        return None

    layout.ensure_directories()
    atomic_write_text(task_list_path, source)
    logger.info(f"[SpecSources] Materialized task list at {task_list_path}")
    return source


def read_root_tasks_context(layout: WorkspaceLayout) -> Optional[str]:
    """Task text for intent-map context: root task files, then the local task list."""
    for candidate in layout.get_root_task_candidates() + [layout.get_task_list_path()]:
        content = read_text_or_none(candidate)
        if content is not None:
            return content
    return None


# =============================================================================
# LIST EXTRACTION
# =============================================================================


def extract_list_from_yaml_block(content: str, keys: Sequence[str]) -> List[str]:
    """
    Collect ``- item`` lines following a bare ``key:`` line.

    The first key present wins. Collection stops at the next ``key:`` line or
    markdown heading.
    """
    for key in keys:
        key_pattern = re.compile(rf"^\s*{re.escape(key)}\s*:\s*$", re.IGNORECASE | re.MULTILINE)
        key_match = key_pattern.search(content)
        if not key_match:
            continue

        values: List[str] = []
        for line in content[key_match.end() :].splitlines():
            if _YAML_KEY_LINE.match(line) or _HEADING_LINE.match(line.strip()):
                break
            item = _YAML_ITEM_LINE.match(line)
            if item:
                values.append(item.group(1).strip())
        return values

    return []


def _normalize_heading(text: str) -> str:
    return re.sub(r"[^a-z_\s]", "", text.lower()).strip()


def extract_list_from_markdown_section(content: str, headers: Sequence[str]) -> List[str]:
    """Collect bullets under the first heading whose text contains one of ``headers``."""
    in_section = False
    values: List[str] = []

    for raw_line in content.splitlines():
        line = raw_line.strip()
        heading = _HEADING_LINE.match(line)
        if heading:
            normalized = _normalize_heading(heading.group(1))
            if any(normalized == header or header in normalized for header in headers):
                in_section = True
                continue
            if in_section:
                break

        if not in_section:
            continue

        bullet = _BULLET_LINE.match(line)
        if bullet:
            values.append(bullet.group(1).strip())

    return values


def _indent_level(raw_line: str) -> int:
    expanded = raw_line.replace("\t", "    ")
    return len(expanded) - len(expanded.lstrip())


def extract_acceptance_criteria_from_story_format(content: str) -> List[str]:
    """
    Collect criteria written in user-story format::

        - **Acceptance Criteria**:
          - first criterion
          - second criterion

    Bullets indented deeper than the marker are collected; the first
    non-blank line at or above the marker's indent ends the block.
    """
    values: List[str] = []
    collecting = False
    criteria_indent = -1

    for raw_line in content.splitlines():
        line = raw_line.strip()

        if not collecting:
            if any(marker.match(line) for marker in _CRITERIA_MARKERS):
                collecting = True
                criteria_indent = _indent_level(raw_line)
            continue

        if not line:
            continue

        indent = _indent_level(raw_line)
        bullet = _BULLET_LINE.match(line)
        if bullet and indent > criteria_indent:
            values.append(bullet.group(1).strip())
            continue

        if indent <= criteria_indent:
            break

    return values


# =============================================================================
# TASK LINE EXTRACTION
# =============================================================================


def extract_task_string(
    task_list: Optional[str], intent_id: str, requirement_id: Optional[str] = None
) -> Optional[str]:
    """Description of the first task-list line mentioning the intent or requirement id."""
    if not task_list:
        return None

    upper_intent = intent_id.upper()
    upper_requirement = requirement_id.upper() if requirement_id else None
    for raw_line in task_list.splitlines():
        line = raw_line.strip()
        if not line:
            continue
        upper_line = line.upper()
        if upper_intent not in upper_line and not (upper_requirement and upper_requirement in upper_line):
            continue
        return strip_ids(strip_task_line(line), intent_id, requirement_id)

    return None


def extract_owned_scope_from_task_string(task_string: Optional[str]) -> List[str]:
    """
    Derive a fallback owned scope from path-like tokens in a task line.

    ``"Build parser in src/parser/ and src/lexer.py"`` yields
    ``["src/parser/", "src/lexer.py"]``. Without path tokens the whole task
    string is used.
    """
    if not task_string:
        return [SPEC_PLACEHOLDER]

    paths: List[str] = []
    for match in _PATH_TOKEN.finditer(task_string):
        normalized = match.group(1).replace("\\", "/")
        normalized = re.sub(r"[),.;:]+$", "", normalized)
        if normalized and normalized not in paths:
            paths.append(normalized)

    if paths:
        return normalize_list(paths)
    return normalize_list([task_string])


def task_list_mentions_intent(task_list: Optional[str], intent_id: str) -> bool:
    """True if the task list references the intent id or its derived requirement id."""
    if not task_list:
        return False
    upper = task_list.upper()
    requirement_id = requirement_id_for_intent(intent_id)
    return intent_id.upper() in upper or bool(requirement_id and requirement_id in upper)


# =============================================================================
# DETAILS
# =============================================================================


def read_spec_details(layout: WorkspaceLayout, intent_id: str, task_list: Optional[str]) -> SpecIntentDetails:
    """
    Best-effort intent details for ``intent_id``.

    - name: the intent's task-list line, else ``"Intent <id>"``
    - owned_scope: ``_meta.md`` structured block or headed list, else path
      tokens of the task-list line
    - constraints: ``_meta.md``, structured block first, then a headed list
    - acceptance_criteria: ``functional.md``, structured block, story format,
      then a headed list

    Missing sources yield ``[SPEC_PLACEHOLDER]``; lists are never empty.
    """
    requirement_id = requirement_id_for_intent(intent_id)
    task_string = extract_task_string(task_list, intent_id, requirement_id)

    meta = read_spec_file(layout, META_FILENAME)
    declared_scope: List[str] = []
    if meta is not None:
        declared_scope = _first_non_empty(
            extract_list_from_yaml_block(meta, ["owned_scope", "scope"]),
            extract_list_from_markdown_section(meta, ["owned scope", "owned_scope"]),
        )
        constraints = normalize_list(
            _first_non_empty(
                extract_list_from_yaml_block(meta, ["constraints"]),
                extract_list_from_markdown_section(meta, ["constraints"]),
            )
        )
    else:
        constraints = [SPEC_PLACEHOLDER]

    functional = read_spec_file(layout, FUNCTIONAL_FILENAME)
    if functional is not None:
        acceptance_criteria = normalize_list(
            _first_non_empty(
                extract_list_from_yaml_block(functional, ["acceptance_criteria"]),
                extract_acceptance_criteria_from_story_format(functional),
                extract_list_from_markdown_section(functional, ["acceptance criteria", "acceptance_criteria"]),
            )
        )
    else:
        acceptance_criteria = [SPEC_PLACEHOLDER]

    if declared_scope:
        owned_scope = normalize_list(declared_scope)
    else:
        owned_scope = extract_owned_scope_from_task_string(task_string)

    return SpecIntentDetails(
        name=task_string or f"Intent {intent_id}",
        owned_scope=owned_scope,
        constraints=constraints,
        acceptance_criteria=acceptance_criteria,
    )
