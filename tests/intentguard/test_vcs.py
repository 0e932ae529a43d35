"""Tests for .git metadata lookup."""

from intentguard.vcs import UNKNOWN_REVISION, resolve_current_branch_name, resolve_revision_id

SHA = "0123456789abcdef0123456789abcdef01234567"


def _git(tmp_path, head):
    git_dir = tmp_path / ".git"
    git_dir.mkdir()
    (git_dir / "HEAD").write_text(head, encoding="utf-8")
    return git_dir


def test_no_git_directory(tmp_path):
    assert resolve_current_branch_name(tmp_path) is None
    assert resolve_revision_id(tmp_path) == UNKNOWN_REVISION


def test_branch_name_from_symbolic_head(tmp_path):
    _git(tmp_path, "ref: refs/heads/feature/intent-map\n")
    assert resolve_current_branch_name(tmp_path) == "feature/intent-map"


def test_detached_head_has_no_branch_but_has_revision(tmp_path):
    _git(tmp_path, SHA + "\n")
    assert resolve_current_branch_name(tmp_path) is None
    assert resolve_revision_id(tmp_path) == SHA


def test_revision_from_loose_ref(tmp_path):
    git_dir = _git(tmp_path, "ref: refs/heads/main\n")
    (git_dir / "refs" / "heads").mkdir(parents=True)
    (git_dir / "refs" / "heads" / "main").write_text(SHA + "\n", encoding="utf-8")
    assert resolve_revision_id(tmp_path) == SHA


def test_revision_from_packed_refs(tmp_path):
    git_dir = _git(tmp_path, "ref: refs/heads/main\n")
    (git_dir / "packed-refs").write_text(
        "# pack-refs with: peeled fully-peeled sorted\n"
        f"{'f' * 40} refs/heads/other\n"
        f"{SHA} refs/heads/main\n"
        f"^{'e' * 40}\n",
        encoding="utf-8",
    )
    assert resolve_revision_id(tmp_path) == SHA


def test_unresolvable_ref_is_unknown(tmp_path):
    git_dir = _git(tmp_path, "ref: refs/heads/main\n")
    (git_dir / "packed-refs").write_text(f"{'f' * 40} refs/heads/other\n", encoding="utf-8")
    assert resolve_revision_id(tmp_path) == UNKNOWN_REVISION
