"""Requirement index: task-list parsing and free-text requirement matching.

Requirement lines are markdown lines carrying an id such as ``T007``. Matching a
free-text task description to a requirement is a greedy token-overlap linker:
it is best-effort and "no match" is a normal outcome.

Intent ids and requirement ids share a numeric suffix (``INT-007`` <-> ``T007``);
the conversion helpers here are the only place that convention lives.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import List, Optional, Set

REQUIREMENT_ID_PATTERN = re.compile(r"\bT\d{3,}\b", re.IGNORECASE)
INTENT_ID_PATTERN = re.compile(r"^INT-(\d+)$")

# Leading markdown noise in front of a requirement description: bullets,
# headings, checkbox brackets, the checked-box "x", punctuation
_LEADING_MARKUP = re.compile(r"^[-*#\[\]().:x\s]+", re.IGNORECASE)
_BULLET_PREFIX = re.compile(r"^[-*]\s*")
_CHECKBOX_PREFIX = re.compile(r"^\[[ xX\-~]\]\s*")
_NON_ALNUM = re.compile(r"[^a-z0-9\s]")

MIN_TOKEN_LENGTH = 3


@dataclass(frozen=True)
class RequirementEntry:
    """One requirement line of a task list."""

    id: str
    description: str


def tokenize(value: str) -> List[str]:
    """Lowercase, strip non-alphanumerics, drop tokens shorter than 3 chars."""
    cleaned = _NON_ALNUM.sub(" ", value.lower())
    return [token for token in cleaned.split() if len(token) >= MIN_TOKEN_LENGTH]


def overlap_score(source: str, target: str) -> int:
    """Number of distinct tokens present in both strings."""
    source_tokens: Set[str] = set(tokenize(source))
    target_tokens: Set[str] = set(tokenize(target))
    if not source_tokens or not target_tokens:
        return 0
    return len(source_tokens & target_tokens)


def parse_requirement_entries(tasks_markdown: str) -> List[RequirementEntry]:
    """
    Extract requirement entries from a task-list document.

    The first occurrence of each id wins. The description is the line with all
    requirement ids and leading bullet/checkbox markup removed.

    Args:
        tasks_markdown: Raw task-list text

    Returns:
        Requirement entries in document order
    """
    entries: List[RequirementEntry] = []
    seen: Set[str] = set()

    for raw_line in tasks_markdown.splitlines():
        line = raw_line.strip()
        if not line:
            continue

        id_match = REQUIREMENT_ID_PATTERN.search(line)
        if not id_match:
            continue

        requirement_id = id_match.group(0).upper()
        if requirement_id in seen:
            continue

        description = REQUIREMENT_ID_PATTERN.sub("", line)
        description = _LEADING_MARKUP.sub("", description).strip()

        entries.append(RequirementEntry(id=requirement_id, description=description))
        seen.add(requirement_id)

    return entries


def find_matching_requirement_id(task_text: str, tasks_markdown: Optional[str]) -> Optional[str]:
    """
    Link free text to a requirement id.

    An id written in the text wins outright. Otherwise every requirement is
    scored by token overlap with "{id} {description}"; the highest positive
    score wins and ties keep the first-seen requirement.

    Args:
        task_text: Free-text task description (e.g. the agent's current task)
        tasks_markdown: Task-list text, or None when no task list exists

    Returns:
        Requirement id, or None when nothing overlaps
    """
    normalized_task = (task_text or "").strip()
    if not normalized_task:
        return None

    explicit = REQUIREMENT_ID_PATTERN.search(normalized_task)
    if explicit:
        return explicit.group(0).upper()

    if not tasks_markdown:
        return None

    best_id: Optional[str] = None
    best_score = 0
    for entry in parse_requirement_entries(tasks_markdown):
        score = overlap_score(normalized_task, f"{entry.id} {entry.description}")
        if score > best_score:
            best_id, best_score = entry.id, score

    return best_id


def strip_task_line(line: str) -> str:
    """Remove a leading bullet and checkbox from a task-list line."""
    stripped = _BULLET_PREFIX.sub("", line.strip(), count=1)
    stripped = _CHECKBOX_PREFIX.sub("", stripped, count=1)
    return stripped.strip()


def strip_ids(text: str, *ids: Optional[str]) -> str:
    """Remove every occurrence of the given ids, then leading markup."""
    for identifier in ids:
        if identifier:
            text = re.sub(re.escape(identifier), "", text, flags=re.IGNORECASE)
    return _LEADING_MARKUP.sub("", text).strip()


# =============================================================================
# ID CONVENTIONS
# =============================================================================


def _numeric_suffix(identifier: str) -> Optional[str]:
    match = re.search(r"\d+", identifier or "")
    return match.group(0) if match else None


def normalize_intent_id(raw_intent_id: str) -> str:
    """Canonicalize ``int-7`` style ids to ``INT-007``; other ids are uppercased."""
    trimmed = (raw_intent_id or "").strip().upper()
    match = INTENT_ID_PATTERN.match(trimmed)
    if match:
        return f"INT-{match.group(1).zfill(3)}"
    return trimmed


def requirement_id_for_intent(intent_id: str) -> Optional[str]:
    """Derive ``T###`` from an intent id's numeric suffix (``INT-007`` -> ``T007``)."""
    numeric = _numeric_suffix(intent_id)
    if numeric is None:
        return None
    return f"T{numeric.zfill(3)}"


def intent_id_for_requirement(requirement_id: str) -> Optional[str]:
    """Derive ``INT-###`` from a requirement id (``T007`` -> ``INT-007``)."""
    numeric = _numeric_suffix(requirement_id)
    if numeric is None:
        return None
    return f"INT-{numeric.zfill(3)}"
