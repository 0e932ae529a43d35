"""Intent map: which files and symbols each task has produced.

Persisted as ``<control_dir>/intent_map.md``, one markdown table per phase::

    # Intent Map

    ## Phase 2: Foundational

    | Task | Story | Target file(s) | Primary AST node(s) |
    | --- | --- | --- | --- |
    | T001 | Foundation | src/services/FeatureService.ts | FeatureService; buildFeature |

Set-valued cells are joined with ``"; "``; a literal ``|``, ``;`` or ``\\``
inside a value is backslash-escaped.

The file is derived state. When it is missing or its table is malformed it is
rebuilt from the ledger and task list instead of failing. Merges are set
unions, so replaying a write never duplicates an entry.
"""

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence

from .config import Settings
from .declarations import identify_primary_ast_nodes
from .file_layout import WorkspaceLayout, atomic_write_text, read_text_or_none
from .ledger import IntentLedger
from .models import Intent, MutationClass
from .requirements import requirement_id_for_intent, strip_task_line
from .scope import normalize_scope_path
from .spec_sources import SPEC_PLACEHOLDER, read_root_tasks_context

logger = logging.getLogger(__name__)

TABLE_HEADERS: Sequence[str] = ("Task", "Story", "Target file(s)", "Primary AST node(s)")
EMPTY_CELL = "N/A"
CELL_SEPARATOR = "; "

STORY_SETUP = "Setup"
STORY_FOUNDATION = "Foundation"
STORY_IMPLEMENTATION = "Implementation"

PHASE_SETUP_TITLE = "Phase 1: Setup"
PHASE_FOUNDATION_TITLE = "Phase 2: Foundational"
PHASE_IMPLEMENTATION_TITLE = "Phase 3: Implementation"
PHASE_ORDER = (PHASE_SETUP_TITLE, PHASE_FOUNDATION_TITLE, PHASE_IMPLEMENTATION_TITLE)

_SEPARATOR_ROW = re.compile(r"^\|[\s:\-|]+\|$")
# Inside cells, "\" escapes the next character; "|" and ";" are always escaped
_ESCAPE_CHAR = "\\"
_ESCAPED = re.compile(r"\\(.)")


def _unique(values: Iterable[str]) -> List[str]:
    seen: List[str] = []
    for value in values:
        value = value.strip()
        if value and value not in seen:
            seen.append(value)
    return seen


@dataclass
class IntentMapRow:
    """One task's accumulated targets. Sets only ever grow."""

    task: str
    story: str = ""
    target_files: List[str] = field(default_factory=list)
    ast_nodes: List[str] = field(default_factory=list)

    def merge(self, target_files: Iterable[str] = (), ast_nodes: Iterable[str] = ()) -> None:
        self.target_files = _unique(list(self.target_files) + list(target_files))
        self.ast_nodes = _unique(list(self.ast_nodes) + list(ast_nodes))


@dataclass
class IntentMap:
    rows: List[IntentMapRow] = field(default_factory=list)

    def find(self, task: str) -> Optional[IntentMapRow]:
        key = task.upper()
        for row in self.rows:
            if row.task.upper() == key:
                return row
        return None

    def add_or_merge(self, row: IntentMapRow) -> IntentMapRow:
        existing = self.find(row.task)
        if existing is None:
            self.rows.append(row)
            return row
        if not existing.story:
            existing.story = row.story
        existing.merge(row.target_files, row.ast_nodes)
        return existing


@dataclass
class IntentMapUpdate:
    """Result of one reconciler update."""

    nodes: List[str] = field(default_factory=list)
    message: Optional[str] = None


# =============================================================================
# PARSE / RENDER
# =============================================================================


def _escape(value: str) -> str:
    return value.replace(_ESCAPE_CHAR, _ESCAPE_CHAR * 2).replace("|", "\\|").replace(";", "\\;")


def _unescape(value: str) -> str:
    return _ESCAPED.sub(r"\1", value)


def _split_unescaped(text: str, separator: str) -> List[str]:
    """Split on ``separator`` except where it is backslash-escaped; escapes are kept."""
    parts: List[str] = []
    current: List[str] = []
    index = 0
    while index < len(text):
        char = text[index]
        if char == _ESCAPE_CHAR and index + 1 < len(text):
            current.append(text[index : index + 2])
            index += 2
            continue
        if char == separator:
            parts.append("".join(current))
            current = []
        else:
            current.append(char)
        index += 1
    parts.append("".join(current))
    return parts


def _split_row(line: str) -> List[str]:
    return [cell.strip() for cell in _split_unescaped(line.strip(), "|")[1:-1]]


def _split_cell(value: str) -> List[str]:
    if value.strip().upper() == EMPTY_CELL:
        return []
    return _unique(_unescape(item) for item in _split_unescaped(value, ";"))


def parse(document: str) -> Optional[IntentMap]:
    """
    Parse the intent map document.

    Returns None (unparsable) when no table header exists, a header misses
    one of the required columns, a header is not followed by a separator row,
    or a row's cell count differs from its header. A valid header with no rows
    is an empty map.
    """
    lines = re.split(r"\r?\n", document)
    intent_map = IntentMap()
    found_table = False

    index = 0
    while index < len(lines):
        line = lines[index].strip()
        if not (line.startswith("|") and "Task" in line and "Story" in line):
            index += 1
            continue

        if index + 1 >= len(lines) or not _SEPARATOR_ROW.match(lines[index + 1].strip()):
            logger.debug(f"[IntentMap] Header without separator at line {index + 1}")
            return None

        headers = _split_row(line)
        if any(column not in headers for column in TABLE_HEADERS):
            logger.debug(f"[IntentMap] Header missing required columns: {headers}")
            return None
        task_i, story_i, files_i, nodes_i = (headers.index(column) for column in TABLE_HEADERS)
        found_table = True

        index += 2
        while index < len(lines) and lines[index].strip().startswith("|"):
            cells = _split_row(lines[index])
            if len(cells) != len(headers):
                logger.debug(f"[IntentMap] Row {index + 1} has {len(cells)} cells, expected {len(headers)}")
                return None
            intent_map.add_or_merge(
                IntentMapRow(
                    task=_unescape(cells[task_i]),
                    story=_unescape(cells[story_i]),
                    target_files=_split_cell(cells[files_i]),
                    ast_nodes=_split_cell(cells[nodes_i]),
                )
            )
            index += 1

    return intent_map if found_table else None


def phase_title_for_story(story: str) -> str:
    normalized = story.lower()
    if "setup" in normalized:
        return PHASE_SETUP_TITLE
    if "foundation" in normalized:
        return PHASE_FOUNDATION_TITLE
    return PHASE_IMPLEMENTATION_TITLE


def _table_header() -> List[str]:
    return [
        f"| {' | '.join(TABLE_HEADERS)} |",
        f"| {' | '.join('---' for _ in TABLE_HEADERS)} |",
    ]


def _cell(values: Sequence[str]) -> str:
    return CELL_SEPARATOR.join(_escape(value) for value in _unique(values)) or EMPTY_CELL


def render(intent_map: IntentMap) -> str:
    """Render phases in fixed order; always ends with a single newline."""
    grouped: Dict[str, List[IntentMapRow]] = {}
    for row in intent_map.rows:
        grouped.setdefault(phase_title_for_story(row.story), []).append(row)

    output = ["# Intent Map", ""]
    phases = [title for title in PHASE_ORDER if title in grouped]

    for title in phases:
        output.extend([f"## {title}", ""])
        output.extend(_table_header())
        for row in grouped[title]:
            output.append(
                f"| {_escape(row.task)} | {_escape(row.story)} | {_cell(row.target_files)} | {_cell(row.ast_nodes)} |"
            )
        output.append("")

    if not phases:
        output.extend([f"## {PHASE_SETUP_TITLE}", ""])
        output.extend(_table_header())

    return "\n".join(output).rstrip() + "\n"


# =============================================================================
# RECONSTRUCTION / MERGE
# =============================================================================


def infer_story_label(task_context: Optional[str]) -> str:
    """``setup`` -> Setup; anything else (including ``foundation``) -> Foundation."""
    if task_context and "setup" in task_context.lower():
        return STORY_SETUP
    return STORY_FOUNDATION


def task_key_for(intent_id: str, requirement_id: Optional[str] = None) -> str:
    """Row key: explicit requirement id, else the derived one, else the intent id."""
    return (requirement_id or requirement_id_for_intent(intent_id) or intent_id).upper()


def extract_task_context(tasks_content: Optional[str], intent_id: str, requirement_id: Optional[str]) -> Optional[str]:
    """First task line mentioning the intent or requirement, without bullet/checkbox."""
    if not tasks_content:
        return None
    needles = [intent_id.upper()] + ([requirement_id.upper()] if requirement_id else [])
    for raw_line in tasks_content.splitlines():
        line = raw_line.strip()
        if line and any(needle in line.upper() for needle in needles):
            return strip_task_line(line)
    return None


def reconstruct(intents: Sequence[Intent], tasks_content: Optional[str]) -> IntentMap:
    """
    Rebuild the map from the ledger.

    One row per intent keyed by its requirement id (or intent id), story
    inferred from the intent's task text, targets seeded from owned_scope and
    no symbols.
    """
    intent_map = IntentMap()
    for intent in intents:
        requirement_id = intent.requirement_id or requirement_id_for_intent(intent.id)
        task_context = intent.task or extract_task_context(tasks_content, intent.id, requirement_id)
        scope = [normalize_scope_path(item) for item in intent.owned_scope if item != SPEC_PLACEHOLDER]
        intent_map.add_or_merge(
            IntentMapRow(
                task=task_key_for(intent.id, intent.requirement_id),
                story=infer_story_label(task_context),
                target_files=_unique(scope),
            )
        )
    return intent_map


def apply_write(
    intent_map: IntentMap,
    intent_id: str,
    relative_path: str,
    mutation_class: Optional[MutationClass],
    new_content: str,
    previous_content: Optional[str] = None,
    task_context: Optional[str] = None,
    requirement_id: Optional[str] = None,
) -> Optional[List[str]]:
    """
    Merge one write into the map in place.

    Returns:
        The symbols recorded for this write, or None when the write is not
        ``INTENT_EVOLUTION`` (the map is left untouched)
    """
    if MutationClass.parse(mutation_class) is not MutationClass.INTENT_EVOLUTION:
        return None

    nodes = identify_primary_ast_nodes(new_content, previous_content)
    row = intent_map.find(task_key_for(intent_id, requirement_id))
    if row is None:
        row = intent_map.add_or_merge(IntentMapRow(task=task_key_for(intent_id, requirement_id)))
    if not row.story:
        row.story = infer_story_label(task_context)
    row.merge([normalize_scope_path(relative_path)], nodes)
    return nodes


# =============================================================================
# RECONCILER
# =============================================================================


class IntentMapReconciler:
    """Loads, repairs, updates and persists the workspace intent map."""

    def __init__(
        self,
        workspace_root: Path,
        settings: Optional[Settings] = None,
        ledger: Optional[IntentLedger] = None,
    ):
        self.layout = WorkspaceLayout(workspace_root, settings)
        self.ledger = ledger or IntentLedger(workspace_root, settings)
        self.path = self.layout.get_intent_map_path()

    def load(self) -> IntentMap:
        """Parsed map, or a reconstruction when the file is missing or malformed."""
        existing = read_text_or_none(self.path)
        if existing is not None:
            parsed = parse(existing)
            if parsed is not None:
                return parsed
            logger.warning(f"[IntentMap] {self.path} is unparsable; reconstructing from ledger")
        else:
            logger.info("[IntentMap] No intent map yet; reconstructing from ledger")

        tasks_content = read_root_tasks_context(self.layout) or self.ledger.ensure_task_list()
        return reconstruct(self.ledger.get_all(), tasks_content)

    def update_for_write(
        self,
        intent_id: str,
        relative_path: str,
        mutation_class: Optional[MutationClass],
        new_content: str,
        previous_content: Optional[str] = None,
        task_context: Optional[str] = None,
    ) -> IntentMapUpdate:
        """
        Record a write's file and symbols under the intent's task row.

        Only ``INTENT_EVOLUTION`` writes touch the map.

        Returns:
            IntentMapUpdate with the recorded symbols and a user-facing message
        """
        if MutationClass.parse(mutation_class) is not MutationClass.INTENT_EVOLUTION:
            return IntentMapUpdate()

        with self.layout.lock():
            intent_map = self.load()
            intent = self.ledger.get_by_id(intent_id)
            nodes = apply_write(
                intent_map,
                intent_id,
                relative_path,
                mutation_class,
                new_content,
                previous_content,
                task_context=task_context or (intent.task if intent is not None else None),
                requirement_id=intent.requirement_id if intent is not None else None,
            )
            atomic_write_text(self.path, render(intent_map))

        nodes = nodes or []
        label = ", ".join(nodes) if nodes else "none"
        message = f"Intent Map updated: Added [{label}] to {intent_id} mapping."
        logger.info(f"[IntentMap] {message}")
        return IntentMapUpdate(nodes=nodes, message=message)
