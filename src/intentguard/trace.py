"""Append-only provenance trace (``<control_dir>/agent_trace.jsonl``).

One JSON object per line, one line per mutating write, never rewritten. Each
record links the written file (path, sha256 content hash, line range) to the
intent, requirement, model and revision that produced it.
"""

import hashlib
import json
import logging
import re
import secrets
import uuid
from pathlib import Path
from typing import List, Optional, Tuple

from .config import Settings
from .file_layout import WorkspaceLayout, read_text_or_none
from .models import (
    Intent,
    MutationClass,
    TraceContributor,
    TraceConversation,
    TraceFile,
    TraceRange,
    TraceRecord,
    TraceRelated,
    TraceVcs,
    utc_now_iso,
)
from .requirements import requirement_id_for_intent
from .scope import normalize_scope_path
from .vcs import resolve_revision_id

logger = logging.getLogger(__name__)

UNSPECIFIED = "UNSPECIFIED"


def build_trace_id() -> str:
    """Short human-friendly id: ``TRC-`` + 8 uppercase hex chars."""
    return f"TRC-{secrets.token_hex(4).upper()}"


def content_hash(content: str) -> str:
    return f"sha256:{hashlib.sha256(content.encode('utf-8')).hexdigest()}"


def line_range(content: str) -> Tuple[int, int]:
    """(start_line, end_line) covering the whole content; empty content is one line."""
    if not content:
        return 1, 1
    return 1, max(1, len(re.split(r"\r?\n", content)))


class ProvenanceTrace:
    """Writer and reader for the workspace trace log."""

    def __init__(self, workspace_root: Path, settings: Optional[Settings] = None):
        self.layout = WorkspaceLayout(workspace_root, settings)
        self.path = self.layout.get_trace_path()

    def build_record(
        self,
        relative_path: str,
        content: str,
        task_id: str,
        model_identifier: str,
        intent: Optional[Intent],
        mutation_class: Optional[MutationClass] = None,
    ) -> TraceRecord:
        intent_id = UNSPECIFIED
        requirement_id = None
        if intent is not None:
            intent_id = intent.id
            requirement_id = intent.requirement_id or requirement_id_for_intent(intent.id)
        start_line, end_line = line_range(content)

        return TraceRecord(
            id=str(uuid.uuid4()),
            trace_id=build_trace_id(),
            intent_id=intent_id,
            timestamp=utc_now_iso(),
            vcs=TraceVcs(revision_id=resolve_revision_id(self.layout.workspace_root)),
            files=[
                TraceFile(
                    relative_path=normalize_scope_path(relative_path),
                    conversations=[
                        TraceConversation(
                            url=task_id,
                            contributor=TraceContributor(model_identifier=model_identifier),
                            ranges=[
                                TraceRange(
                                    start_line=start_line,
                                    end_line=end_line,
                                    content_hash=content_hash(content),
                                )
                            ],
                            related=[TraceRelated(value=requirement_id or UNSPECIFIED)],
                        )
                    ],
                )
            ],
            mutation_class=mutation_class,
        )

    def append_for_write(
        self,
        relative_path: str,
        task_id: str,
        model_identifier: str,
        intent: Optional[Intent],
        mutation_class: Optional[MutationClass] = None,
        content: Optional[str] = None,
    ) -> TraceRecord:
        """
        Append one record for a completed write.

        Args:
            relative_path: Workspace-relative path that was written
            task_id: Agent task/conversation id (recorded as the conversation url)
            model_identifier: Model that produced the content
            intent: Intent the write is attributed to (None -> UNSPECIFIED)
            mutation_class: Declared mutation class, if any
            content: Written content; read back from disk when omitted

        Returns:
            The appended record
        """
        if content is None:
            content = read_text_or_none(self.layout.workspace_root / normalize_scope_path(relative_path))
            if content is None:
                raise FileNotFoundError(f"Written file not found: {relative_path}")

        record = self.build_record(relative_path, content, task_id, model_identifier, intent, mutation_class)
        line = json.dumps(record.model_dump(mode="json", exclude_none=True), ensure_ascii=False) + "\n"

        with self.layout.lock():
            self.layout.ensure_directories()
            with open(self.path, "a", encoding="utf-8") as f:
                f.write(line)

        logger.info(f"[Trace] {record.trace_id} {record.intent_id} -> {record.files[0].relative_path}")
        return record

    def read_records(self) -> List[TraceRecord]:
        """All parseable records, oldest first; unparseable lines are skipped."""
        records: List[TraceRecord] = []
        for line in self._lines():
            try:
                records.append(TraceRecord.model_validate_json(line))
            except ValueError as e:
                logger.warning(f"[Trace] Skipping unparseable trace line: {e}")
        return records

    def related_lines(self, intent_id: str, limit: Optional[int] = None) -> List[str]:
        """The most recent raw trace lines mentioning ``intent_id`` (oldest first)."""
        if limit is None:
            limit = self.layout.settings.related_trace_limit
        matching = [line for line in self._lines() if intent_id in line]
        return matching[-limit:] if limit > 0 else []

    def _lines(self) -> List[str]:
        raw = read_text_or_none(self.path)
        if raw is None:
            return []
        return [line.strip() for line in raw.splitlines() if line.strip()]
