"""Pytest configuration and fixtures for IntentGuard tests"""

import sys
from pathlib import Path

import pytest

# Ensure src directory is in Python path before any imports
project_root = Path(__file__).resolve().parent.parent
src_path = project_root / "src"

for path in (project_root, src_path):
    path_str = str(path)
    if path_str not in sys.path:
        sys.path.insert(0, path_str)

from intentguard.approval import StaticApprovalChannel
from intentguard.config import Settings
from intentguard.models import Intent, IntentStatus


@pytest.fixture
def workspace(tmp_path):
    """Empty workspace root with a control directory"""
    (tmp_path / ".orchestration").mkdir()
    return tmp_path


@pytest.fixture
def settings():
    """Default settings, isolated from any developer .env file"""
    return Settings(_env_file=None)


@pytest.fixture
def approve_all():
    return StaticApprovalChannel(approve=True)


@pytest.fixture
def reject_all():
    return StaticApprovalChannel(approve=False)


@pytest.fixture
def make_intent():
    """Factory for intents with sensible defaults"""

    def _make(intent_id="INT-001", status=IntentStatus.IN_PROGRESS, owned_scope=None, **kwargs):
        return Intent(
            id=intent_id,
            name=kwargs.pop("name", f"Intent {intent_id}"),
            status=status,
            owned_scope=owned_scope if owned_scope is not None else ["src/services/"],
            **kwargs,
        )

    return _make


@pytest.fixture
def write_file(workspace):
    """Create a workspace file (parents included) and return its path"""

    def _write(relative_path: str, content: str) -> Path:
        path = workspace / relative_path
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
        return path

    return _write
