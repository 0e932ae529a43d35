"""Tests for intent and trace models."""

from datetime import datetime

import pytest
from pydantic import ValidationError

from intentguard.models import Intent, IntentStatus, MutationClass, TraceRecord


class TestIntent:
    def test_defaults(self):
        intent = Intent(id="INT-001")
        assert intent.status is IntentStatus.PENDING
        assert intent.owned_scope == []
        assert intent.requirement_id is None

    def test_lenient_coercion(self):
        intent = Intent.model_validate(
            {
                "id": "INT-001",
                "status": " in_progress ",
                "owned_scope": "src/core/",
                "constraints": None,
                "acceptance_criteria": ["a", None, 3],
                "updated_at": datetime(2026, 1, 2, 3, 4, 5),
            }
        )
        assert intent.status is IntentStatus.IN_PROGRESS
        assert intent.owned_scope == ["src/core/"]
        assert intent.constraints == []
        assert intent.acceptance_criteria == ["a", "3"]
        assert intent.updated_at == "2026-01-02T03:04:05"

    def test_unknown_status_is_rejected(self):
        with pytest.raises(ValidationError):
            Intent(id="INT-001", status="ABANDONED")

    def test_extra_keys_round_trip(self):
        intent = Intent.model_validate({"id": "INT-001", "owner": "team-a"})
        dumped = intent.to_yaml_dict()
        assert dumped["owner"] == "team-a"
        assert dumped["status"] == "PENDING"


class TestMutationClass:
    @pytest.mark.parametrize(
        "value,expected",
        [
            ("AST_REFACTOR", MutationClass.AST_REFACTOR),
            (" intent_evolution ", MutationClass.INTENT_EVOLUTION),
            (MutationClass.AST_REFACTOR, MutationClass.AST_REFACTOR),
            ("REWRITE", None),
            (None, None),
            (1, None),
        ],
    )
    def test_parse(self, value, expected):
        assert MutationClass.parse(value) is expected


def test_trace_record_rejects_unknown_fields():
    with pytest.raises(ValidationError):
        TraceRecord.model_validate(
            {
                "id": "x",
                "trace_id": "TRC-00000000",
                "intent_id": "INT-001",
                "timestamp": "now",
                "vcs": {"revision_id": "unknown"},
                "files": [],
                "extra": True,
            }
        )
