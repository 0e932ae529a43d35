"""Minimal git metadata lookup from the .git directory.

Only two questions are answered: which branch is checked out (for
branch-scoped spec sources) and which revision HEAD points at (for trace
records). No git executable is required; anything unexpected resolves to
"no branch" / ``UNKNOWN_REVISION``.
"""

import logging
from pathlib import Path
from typing import Optional

from .file_layout import read_text_or_none

logger = logging.getLogger(__name__)

UNKNOWN_REVISION = "unknown"
REF_PREFIX = "ref:"
BRANCH_REF_PREFIX = "ref: refs/heads/"


def _read_head(workspace_root: Path) -> Optional[str]:
    content = read_text_or_none(Path(workspace_root) / ".git" / "HEAD")
    if content is None:
        return None
    return content.strip()


def resolve_current_branch_name(workspace_root: Path) -> Optional[str]:
    """Branch name from ``.git/HEAD``; None when detached or not a git checkout."""
    head = _read_head(workspace_root)
    if not head or not head.startswith(BRANCH_REF_PREFIX):
        return None
    return head[len(BRANCH_REF_PREFIX) :].strip() or None


def resolve_revision_id(workspace_root: Path) -> str:
    """
    Resolve the commit HEAD points at.

    Order: detached HEAD content, loose ref file, ``packed-refs`` entry.

    Args:
        workspace_root: Workspace directory containing ``.git``

    Returns:
        Commit id, or ``UNKNOWN_REVISION``
    """
    git_dir = Path(workspace_root) / ".git"
    head = _read_head(workspace_root)
    if head is None:
        return UNKNOWN_REVISION

    if not head.startswith(REF_PREFIX):
        return head or UNKNOWN_REVISION

    ref_path = head[len(REF_PREFIX) :].strip()
    loose = read_text_or_none(git_dir / ref_path)
    if loose is not None:
        return loose.strip() or UNKNOWN_REVISION

    packed = read_text_or_none(git_dir / "packed-refs")
    if packed is None:
        logger.debug(f"[VCS] Ref {ref_path} not found (no packed-refs)")
        return UNKNOWN_REVISION

    for line in packed.splitlines():
        if not line or line.startswith("#") or line.startswith("^"):
            continue
        if line.endswith(f" {ref_path}"):
            return line.split(" ", 1)[0] or UNKNOWN_REVISION

    return UNKNOWN_REVISION
