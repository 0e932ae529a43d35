"""Tests for spec source discovery and intent detail extraction."""

import pytest

from intentguard.file_layout import WorkspaceLayout
from intentguard.spec_sources import (
    SPEC_PLACEHOLDER,
    ensure_task_list,
    extract_acceptance_criteria_from_story_format,
    extract_list_from_markdown_section,
    extract_list_from_yaml_block,
    extract_owned_scope_from_task_string,
    extract_task_string,
    normalize_list,
    read_spec_details,
    task_list_mentions_intent,
)


@pytest.fixture
def layout(workspace, settings):
    return WorkspaceLayout(workspace, settings)


def _checkout(workspace, branch):
    (workspace / ".git").mkdir()
    (workspace / ".git" / "HEAD").write_text(f"ref: refs/heads/{branch}\n", encoding="utf-8")


class TestEnsureTaskList:
    def test_existing_local_task_list_is_returned(self, layout, write_file):
        write_file(".orchestration/TODO.md", "- [ ] T001 local")
        write_file("specs/tasks.md", "- [ ] T001 external")
        assert ensure_task_list(layout) == "- [ ] T001 local"

    def test_copies_from_branch_scoped_source_first(self, layout, workspace, write_file):
        _checkout(workspace, "feature-x")
        write_file("specs/feature-x/tasks.md", "- [ ] T001 branch tasks")
        write_file(".specify/tasks.md", "- [ ] T001 default tasks")

        assert ensure_task_list(layout) == "- [ ] T001 branch tasks"
        assert (workspace / ".orchestration" / "TODO.md").read_text(encoding="utf-8") == "- [ ] T001 branch tasks"

    def test_falls_back_to_default_location(self, layout, workspace, write_file):
        _checkout(workspace, "feature-x")
        write_file(".specify/tasks.md", "- [ ] T001 default tasks")
        assert ensure_task_list(layout) == "- [ ] T001 default tasks"

    def test_degraded_mode_without_any_source(self, layout, workspace):
        assert ensure_task_list(layout) is None
        assert not (workspace / ".orchestration" / "TODO.md").exists()


class TestListExtraction:
    def test_yaml_block(self):
        content = "owned_scope:\n  - src/core/\n  - src/api/\nconstraints:\n  - no new deps\n"
        assert extract_list_from_yaml_block(content, ["owned_scope", "scope"]) == ["src/core/", "src/api/"]
        assert extract_list_from_yaml_block(content, ["constraints"]) == ["no new deps"]
        assert extract_list_from_yaml_block(content, ["acceptance_criteria"]) == []

    def test_markdown_section(self):
        content = "# Meta\n\n## Constraints\n- Keep API stable\n* No network calls\n\n## Other\n- not this\n"
        assert extract_list_from_markdown_section(content, ["constraints"]) == [
            "Keep API stable",
            "No network calls",
        ]

    def test_markdown_heading_is_normalized(self):
        content = "### 3. Acceptance Criteria (v2)\n- passes tests\n"
        assert extract_list_from_markdown_section(content, ["acceptance criteria"]) == ["passes tests"]

    def test_story_format_acceptance_criteria(self):
        content = (
            "### User Story 1\n"
            "- **Acceptance Criteria**:\n"
            "  - Parser handles empty input\n"
            "\n"
            "  - Parser reports line numbers\n"
            "- **Priority**: P1\n"
            "  - not collected\n"
        )
        assert extract_acceptance_criteria_from_story_format(content) == [
            "Parser handles empty input",
            "Parser reports line numbers",
        ]

    def test_normalize_list_never_empty(self):
        assert normalize_list([" a ", "", "  "]) == ["a"]
        assert normalize_list([]) == [SPEC_PLACEHOLDER]


class TestTaskLine:
    TASKS = "# Tasks\n- [ ] T007 Build parser in src/parser/ and src/lexer.py\n- [ ] T008 Write docs\n"

    def test_extract_task_string_strips_markup_and_ids(self):
        assert extract_task_string(self.TASKS, "INT-007", "T007") == "Build parser in src/parser/ and src/lexer.py"

    def test_extract_task_string_missing(self):
        assert extract_task_string(self.TASKS, "INT-009", "T009") is None
        assert extract_task_string(None, "INT-007", "T007") is None

    def test_owned_scope_from_path_tokens(self):
        assert extract_owned_scope_from_task_string("Build parser in src/parser/ and src/lexer.py.") == [
            "src/parser/",
            "src/lexer.py",
        ]

    def test_owned_scope_without_paths_uses_task_string(self):
        assert extract_owned_scope_from_task_string("Write docs") == ["Write docs"]
        assert extract_owned_scope_from_task_string(None) == [SPEC_PLACEHOLDER]

    def test_task_list_mentions_intent(self):
        assert task_list_mentions_intent(self.TASKS, "INT-007")
        assert not task_list_mentions_intent(self.TASKS, "INT-009")
        assert not task_list_mentions_intent(None, "INT-007")


class TestReadSpecDetails:
    def test_all_sources_present(self, layout, write_file):
        write_file("specs/_meta.md", "constraints:\n  - Keep public API stable\n")
        write_file(
            "specs/functional.md",
            "## Acceptance Criteria\n- Parses every task line\n",
        )
        details = read_spec_details(layout, "INT-007", "- [ ] T007 Build parser in src/parser/")

        assert details.name == "Build parser in src/parser/"
        assert details.owned_scope == ["src/parser/"]
        assert details.constraints == ["Keep public API stable"]
        assert details.acceptance_criteria == ["Parses every task line"]

    def test_structured_block_preferred_over_headed_list(self, layout, write_file):
        write_file("specs/_meta.md", "constraints:\n  - from block\n\n## Constraints\n- from heading\n")
        details = read_spec_details(layout, "INT-001", None)
        assert details.constraints == ["from block"]

    def test_declared_scope_overrides_task_line_paths(self, layout, write_file):
        write_file("specs/_meta.md", "## Owned Scope\n- src/parser/**\n\n## Constraints\n- No regex backtracking\n")
        details = read_spec_details(layout, "INT-007", "- [ ] T007 Build parser in src/lexer/")

        assert details.owned_scope == ["src/parser/**"]
        assert details.constraints == ["No regex backtracking"]

    def test_missing_sources_fall_back_to_placeholder(self, layout):
        details = read_spec_details(layout, "INT-042", None)

        assert details.name == "Intent INT-042"
        assert details.owned_scope == [SPEC_PLACEHOLDER]
        assert details.constraints == [SPEC_PLACEHOLDER]
        assert details.acceptance_criteria == [SPEC_PLACEHOLDER]
