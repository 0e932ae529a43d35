"""Intent ledger persisted as ``<control_dir>/active_intents.yaml``.

Document shape::

    active_intents:
      - id: INT-001
        name: Build feature service
        status: IN_PROGRESS
        owned_scope: [src/services/]
        ...

Entries are kept most-recently-updated first. Other root keys in the document
are preserved on every write. Every mutation is a whole-document
read-modify-write under the workspace lock, written atomically.
"""

import logging
import re
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import yaml
from pydantic import ValidationError

from .config import Settings
from .file_layout import WorkspaceLayout, atomic_write_text, read_text_or_none
from .models import Intent, IntentStatus
from .requirements import REQUIREMENT_ID_PATTERN, requirement_id_for_intent
from .spec_sources import SpecIntentDetails, ensure_task_list, read_spec_details, task_list_mentions_intent

logger = logging.getLogger(__name__)

LEDGER_ROOT_KEY = "active_intents"

_UNCHECKED_BOX = re.compile(r"\[\s\]")
_STATUS_TOKENS = re.compile(r"\b(?:TODO|IN_PROGRESS)\b", re.IGNORECASE)
_LINE_BREAK = re.compile(r"\r?\n")


def mark_completed_lines(content: str, requirement_id: str) -> str:
    """
    Rewrite task-list lines mentioning ``requirement_id`` as completed.

    ``[ ]`` becomes ``[x]`` and ``TODO`` / ``IN_PROGRESS`` tokens become
    ``COMPLETED``. When no line mentions the id, ``- [x] <id> COMPLETED`` is
    appended (before a trailing newline, if any).
    """
    needle = requirement_id.upper()
    lines = _LINE_BREAK.split(content)
    found = False
    updated: List[str] = []

    for line in lines:
        if needle not in line.upper():
            updated.append(line)
            continue
        found = True
        line = _UNCHECKED_BOX.sub("[x]", line)
        line = _STATUS_TOKENS.sub("COMPLETED", line)
        updated.append(line)

    if not found:
        completed_line = f"- [x] {requirement_id} COMPLETED"
        if updated and updated[-1] == "":
            updated.insert(len(updated) - 1, completed_line)
        else:
            updated.append(completed_line)

    return "\n".join(updated)


class IntentLedger:
    """CRUD over the workspace intent ledger."""

    def __init__(self, workspace_root: Path, settings: Optional[Settings] = None):
        self.layout = WorkspaceLayout(workspace_root, settings)
        self.path = self.layout.get_ledger_path()

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def _read(self) -> Tuple[Dict[str, Any], List[Intent]]:
        raw = read_text_or_none(self.path)
        if raw is None:
            return {}, []

        try:
            parsed = yaml.safe_load(raw)
        except yaml.YAMLError as e:
            logger.warning(f"[Ledger] Malformed YAML in {self.path}, treating as empty: {e}")
            return {}, []

        if not isinstance(parsed, dict):
            return {}, []

        entries = parsed.get(LEDGER_ROOT_KEY)
        intents: List[Intent] = []
        if isinstance(entries, list):
            for entry in entries:
                if not isinstance(entry, dict) or not isinstance(entry.get("id"), str):
                    continue
                try:
                    intents.append(Intent.model_validate(entry))
                except ValidationError as e:
                    logger.warning(f"[Ledger] Skipping invalid intent entry {entry.get('id')}: {e}")
        return parsed, intents

    def _write(self, root: Dict[str, Any], intents: List[Intent]) -> None:
        document = dict(root)
        document[LEDGER_ROOT_KEY] = [intent.to_yaml_dict() for intent in intents]
        self.layout.ensure_directories()
        atomic_write_text(
            self.path,
            yaml.safe_dump(document, sort_keys=False, allow_unicode=True, default_flow_style=False, width=4096),
        )

    # ------------------------------------------------------------------
    # CRUD
    # ------------------------------------------------------------------

    def upsert(self, intent: Intent) -> Intent:
        """
        Insert or replace an intent, placing it at the head of the ledger.

        Args:
            intent: Intent to store (replaces any entry with the same id)

        Returns:
            The stored intent
        """
        with self.layout.lock():
            root, intents = self._read()
            remaining = [entry for entry in intents if entry.id != intent.id]
            self._write(root, [intent] + remaining)
        logger.debug(f"[Ledger] Upserted {intent.id} ({intent.status.value})")
        return intent

    def remove(self, intent_id: str) -> bool:
        """Drop an intent; returns whether anything was removed."""
        with self.layout.lock():
            root, intents = self._read()
            remaining = [entry for entry in intents if entry.id != intent_id]
            removed = len(remaining) != len(intents)
            if removed:
                self._write(root, remaining)
        if removed:
            logger.info(f"[Ledger] Removed {intent_id}")
        return removed

    def get_all(self) -> List[Intent]:
        _, intents = self._read()
        return intents

    def get_by_id(self, intent_id: str) -> Optional[Intent]:
        for intent in self.get_all():
            if intent.id == intent_id:
                return intent
        return None

    def get_current(self) -> Optional[Intent]:
        """First IN_PROGRESS intent, else the first intent, else None."""
        intents = self.get_all()
        for intent in intents:
            if intent.status == IntentStatus.IN_PROGRESS:
                return intent
        return intents[0] if intents else None

    # ------------------------------------------------------------------
    # Task list
    # ------------------------------------------------------------------

    def ensure_task_list(self) -> Optional[str]:
        """Local task-list content, copied from a spec source on first use."""
        with self.layout.lock():
            return ensure_task_list(self.layout)

    def read_spec_details(self, intent_id: str) -> SpecIntentDetails:
        return read_spec_details(self.layout, intent_id, self.ensure_task_list())

    def task_list_mentions(self, intent_id: str) -> bool:
        return task_list_mentions_intent(self.ensure_task_list(), intent_id)

    def requirement_id_for(self, intent_id: str) -> Optional[str]:
        """Explicit ``requirement_id`` of a ledgered intent, else the derived one."""
        intent = self.get_by_id(intent_id)
        if intent is not None and intent.requirement_id:
            return intent.requirement_id.upper()
        return requirement_id_for_intent(intent_id)

    def mark_requirement_completed(self, intent_id: str) -> bool:
        """
        Mark the intent's requirement completed in the local task list.

        No-op in degraded mode (no task list) or when no requirement id can be
        derived.

        Returns:
            True if the task list was rewritten
        """
        requirement_id = self.requirement_id_for(intent_id)
        if not requirement_id or not REQUIREMENT_ID_PATTERN.fullmatch(requirement_id):
            logger.debug(f"[Ledger] No requirement id for {intent_id}; nothing to complete")
            return False

        with self.layout.lock():
            content = ensure_task_list(self.layout)
            if not content:
                return False
            atomic_write_text(self.layout.get_task_list_path(), mark_completed_lines(content, requirement_id))

        logger.info(f"[Ledger] Marked {requirement_id} completed for {intent_id}")
        return True
