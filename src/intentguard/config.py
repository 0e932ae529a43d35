"""Configuration module for IntentGuard settings.

This module is intentionally small and stable. Every component (ledger, gate,
intent map, trace) resolves its control-file locations through it, so renaming
a field here renames a file on disk for every workspace.
"""

from __future__ import annotations

from typing import List

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(
        env_prefix="INTENTGUARD_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Workspace-relative control directory holding all governance artefacts
    control_dir: str = ".orchestration"

    ledger_filename: str = "active_intents.yaml"
    task_list_filename: str = "TODO.md"
    intent_map_filename: str = "intent_map.md"
    trace_filename: str = "agent_trace.jsonl"
    lock_filename: str = ".lock"

    # Gitignore-style file at the workspace root
    ignore_filename: str = ".intentignore"

    # External spec roots, tried in order (branch-scoped first, then flat)
    spec_dirs: List[str] = Field(default_factory=lambda: [".specify", "specs"])

    lock_timeout_seconds: float = 10.0
    related_trace_limit: int = 20


settings = Settings()
