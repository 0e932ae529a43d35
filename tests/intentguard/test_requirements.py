"""Tests for requirement parsing, matching and id conventions."""

from intentguard.requirements import (
    find_matching_requirement_id,
    intent_id_for_requirement,
    normalize_intent_id,
    overlap_score,
    parse_requirement_entries,
    requirement_id_for_intent,
    tokenize,
)

TASKS = """# Tasks

## Phase 1: Setup
- [ ] T001 Create project structure
- [x] T002 Configure linting and formatting

## Phase 2: Foundational
- [ ] T003 Build parser for markdown task lists
- [ ] T004 Implement intent ledger persistence
- [ ] T003 duplicate line that must be ignored
"""


class TestTokenize:
    def test_lowercases_and_drops_short_tokens(self):
        assert tokenize("Build a Parser, v2!") == ["build", "parser"]

    def test_non_alphanumerics_split_tokens(self):
        assert tokenize("intent-ledger/persistence") == ["intent", "ledger", "persistence"]

    def test_overlap_counts_distinct_tokens(self):
        assert overlap_score("parser parser parser", "build parser") == 1
        assert overlap_score("", "build parser") == 0


class TestParseRequirementEntries:
    def test_extracts_ids_and_descriptions(self):
        entries = parse_requirement_entries(TASKS)
        assert [entry.id for entry in entries] == ["T001", "T002", "T003", "T004"]
        assert entries[0].description == "Create project structure"
        assert entries[1].description == "Configure linting and formatting"

    def test_first_occurrence_wins(self):
        entries = {entry.id: entry.description for entry in parse_requirement_entries(TASKS)}
        assert entries["T003"] == "Build parser for markdown task lists"

    def test_ids_are_uppercased(self):
        entries = parse_requirement_entries("- [ ] t010 lower case id")
        assert entries[0].id == "T010"

    def test_lines_without_ids_are_skipped(self):
        assert parse_requirement_entries("- [ ] no id here\n- T12 too short") == []


class TestFindMatchingRequirementId:
    def test_explicit_id_in_text_wins(self):
        assert find_matching_requirement_id("please finish t004 now", TASKS) == "T004"

    def test_explicit_id_works_without_task_list(self):
        assert find_matching_requirement_id("Work on T099", None) == "T099"

    def test_best_token_overlap_wins(self):
        assert find_matching_requirement_id("Implement the ledger persistence layer", TASKS) == "T004"

    def test_tie_keeps_first_seen(self):
        tasks = "- [ ] T001 alpha shared\n- [ ] T002 beta shared"
        assert find_matching_requirement_id("shared work", tasks) == "T001"

    def test_no_overlap_is_no_match(self):
        assert find_matching_requirement_id("Refactor unrelated widgets", TASKS) is None

    def test_empty_text_or_task_list_is_no_match(self):
        assert find_matching_requirement_id("   ", TASKS) is None
        assert find_matching_requirement_id("Build parser", None) is None
        assert find_matching_requirement_id("Build parser", "") is None


class TestIdConventions:
    def test_normalize_intent_id_zero_pads(self):
        assert normalize_intent_id("int-7") == "INT-007"
        assert normalize_intent_id(" INT-0042 ") == "INT-0042"
        assert normalize_intent_id("INT-1234") == "INT-1234"

    def test_normalize_leaves_other_ids_uppercased(self):
        assert normalize_intent_id("feature-x") == "FEATURE-X"

    def test_intent_to_requirement(self):
        assert requirement_id_for_intent("INT-007") == "T007"
        assert requirement_id_for_intent("INT-1234") == "T1234"
        assert requirement_id_for_intent("no-digits") is None

    def test_requirement_to_intent(self):
        assert intent_id_for_requirement("T007") == "INT-007"
        assert intent_id_for_requirement("T") is None
