"""File layout utilities for the workspace control directory.

All governance artefacts live under <workspace>/<control_dir>/:
- active_intents.yaml  (intent ledger)
- TODO.md              (local task list)
- intent_map.md        (task -> artefact table)
- agent_trace.jsonl    (append-only provenance)
"""

import logging
import os
import tempfile
from pathlib import Path
from typing import List, Optional

from .config import Settings, settings as default_settings
from .file_lock import FileLock

logger = logging.getLogger(__name__)


def read_text_or_none(path: Path) -> Optional[str]:
    """Read a UTF-8 text file; missing or unreadable files yield None."""
    try:
        return Path(path).read_text(encoding="utf-8")
    except FileNotFoundError:
        return None
    except (OSError, UnicodeDecodeError) as e:
        logger.warning(f"[Layout] Could not read {path}: {e}")
        return None


def atomic_write_text(path: Path, content: str) -> None:
    """Write ``content`` to ``path`` via a temp file swapped in with os.replace."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp = tempfile.mkstemp(dir=str(path.parent), prefix=path.name, suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="") as f:
            f.write(content)
        os.replace(tmp, path)
    finally:
        try:
            os.remove(tmp)
        except FileNotFoundError:
            pass


class WorkspaceLayout:
    """Resolves control-file paths for a single workspace"""

    def __init__(self, workspace_root: Path, settings: Optional[Settings] = None):
        self.workspace_root = Path(workspace_root)
        self.settings = settings or default_settings
        self.control_dir = self.workspace_root / self.settings.control_dir

    def ensure_directories(self) -> None:
        """Create the control directory if missing"""
        self.control_dir.mkdir(parents=True, exist_ok=True)

    def get_ledger_path(self) -> Path:
        return self.control_dir / self.settings.ledger_filename

    def get_task_list_path(self) -> Path:
        return self.control_dir / self.settings.task_list_filename

    def get_intent_map_path(self) -> Path:
        return self.control_dir / self.settings.intent_map_filename

    def get_trace_path(self) -> Path:
        return self.control_dir / self.settings.trace_filename

    def get_lock_path(self) -> Path:
        return self.control_dir / self.settings.lock_filename

    def get_ignore_path(self) -> Path:
        return self.workspace_root / self.settings.ignore_filename

    def lock(self) -> FileLock:
        """Advisory lock guarding read-modify-write cycles on control files"""
        return FileLock(self.get_lock_path(), timeout=self.settings.lock_timeout_seconds)

    def get_spec_candidates(self, file_name: str, branch_name: Optional[str] = None) -> List[Path]:
        """Candidate locations for an external spec file.

        Branch-scoped locations for every spec dir come first, then the flat
        locations, so a feature branch overrides the default spec.
        """
        candidates: List[Path] = []
        if branch_name:
            for spec_dir in self.settings.spec_dirs:
                candidates.append(self.workspace_root / spec_dir / branch_name / file_name)
        for spec_dir in self.settings.spec_dirs:
            candidates.append(self.workspace_root / spec_dir / file_name)
        return candidates

    def get_root_task_candidates(self) -> List[Path]:
        """Task files at the workspace root, consulted for intent-map context"""
        return [self.workspace_root / "Tasks.md", self.workspace_root / "tasks.md"]

    def relative(self, path: Path) -> str:
        """Workspace-relative POSIX form of an absolute path (best effort)"""
        try:
            return Path(path).resolve().relative_to(self.workspace_root.resolve()).as_posix()
        except ValueError:
            return Path(path).as_posix()
