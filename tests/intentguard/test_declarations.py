"""Tests for heuristic declaration scanning.

The scanner is line-based regex matching, not a parser: these tests pin its
deterministic behaviour, including known blind spots.
"""

from intentguard.declarations import (
    detect_contract_change,
    extract_declaration_map,
    identify_primary_ast_nodes,
    summarize_contract,
)

FEATURE_SERVICE = """export class FeatureService {}
export interface FeatureContract {}
export function buildFeature() {}
const API_TIMEOUT = 1000
export const toFeature = async (raw) => raw
"""


class TestExtractDeclarationMap:
    def test_typescript_declarations(self):
        declarations = extract_declaration_map(FEATURE_SERVICE)
        assert list(declarations) == ["FeatureService", "FeatureContract", "buildFeature", "API_TIMEOUT", "toFeature"]
        assert declarations["buildFeature"] == "export function buildFeature() {}"

    def test_methods_without_constructor_or_control_flow(self):
        content = """class Parser {
  constructor(input) {
  }
  private parseLine(line: string): Node {
    if (line) {
    }
    for (const x of xs) {
    }
  }
}
"""
        assert list(extract_declaration_map(content)) == ["Parser", "parseLine"]

    def test_python_declarations(self):
        content = "class Ledger(Base):\n    def __init__(self):\n        pass\n    async def upsert(self, intent):\n        pass\n"
        assert list(extract_declaration_map(content)) == ["Ledger", "upsert"]

    def test_lowercase_constants_are_not_declarations(self):
        assert extract_declaration_map("const timeout = 5\n") == {}


class TestIdentifyPrimaryAstNodes:
    def test_without_previous_content_everything_is_new(self):
        assert identify_primary_ast_nodes("export function a() {}\nexport function b() {}\n") == ["a", "b"]

    def test_empty_previous_content_counts_as_none(self):
        assert identify_primary_ast_nodes("export function a() {}\n", "") == ["a"]

    def test_only_new_or_changed_declarations(self):
        previous = "export function a() {}\nexport function b(x) {}\n"
        current = "export function a() {}\nexport function b(x, y) {}\nexport function c() {}\n"
        assert identify_primary_ast_nodes(current, previous) == ["b", "c"]

    def test_multiline_signature_is_seen_by_first_line_only(self):
        previous = "export function a(\n  x,\n) {}\n"
        current = "export function a(\n  x,\n  y,\n) {}\n"
        assert identify_primary_ast_nodes(current, previous) == []


class TestContractChange:
    def test_summary(self):
        summary = summarize_contract(FEATURE_SERVICE)
        assert summary.declared_names == ["FeatureService", "FeatureContract"]
        assert summary.signatures["buildFeature"] == "()"
        assert summary.signatures["toFeature"] == "(raw)"
        assert len(summary.export_lines) == 4

    def test_body_only_change_is_not_a_contract_change(self):
        previous = "export function total(items) {\n  return items.length\n}\n"
        proposed = "export function total(items) {\n  let n = 0\n  for (const _ of items) n++\n  return n\n}\n"
        assert detect_contract_change(previous, proposed) == []

    def test_whitespace_in_signature_is_ignored(self):
        previous = "def total(items, start=0):\n    pass\n"
        proposed = "def total(items,  start=0):\n    return 1\n"
        assert detect_contract_change(previous, proposed) == []

    def test_new_export_is_a_contract_change(self):
        previous = "export function a() {}\n"
        proposed = "export function a() {}\nexport function b() {}\n"
        findings = detect_contract_change(previous, proposed)
        assert findings == ["new export: export function b() {}"]

    def test_new_type_declaration(self):
        findings = detect_contract_change("", "interface Options {}\n")
        assert findings == ["new declaration: Options"]

    def test_changed_signature_of_existing_function(self):
        findings = detect_contract_change("def load(path):\n", "def load(path, strict):\n")
        assert findings == ["signature changed: load(path) -> load(path,strict)"]

    def test_new_private_helper_is_not_a_contract_change(self):
        assert detect_contract_change("def load(path):\n", "def load(path):\ndef _helper(x):\n") == []

    def test_removed_export_is_not_reported(self):
        assert detect_contract_change("export function a() {}\n", "") == []
