"""Heuristic declaration scanning over source text.

This is line-oriented regex matching, not parsing. It recognizes the common
declaration shapes of TypeScript/JavaScript and Python well enough to:

- name the symbols a write introduced or changed (intent map)
- spot contract changes hidden behind an ``AST_REFACTOR`` claim (governance)

Known limits: multi-line signatures are seen only up to the first line, and
declarations inside strings or comments are matched like real ones. Results
are deterministic for a given input, which is all callers rely on.
"""

import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Pattern, Sequence

_IDENT = r"[A-Za-z_][A-Za-z0-9_]*"

# Order matters: the first matching pattern names the line
DECLARATION_PATTERNS: Sequence[Pattern[str]] = (
    re.compile(rf"^(?:export\s+)?(?:default\s+)?(?:abstract\s+)?class\s+({_IDENT})"),
    re.compile(rf"^(?:export\s+)?interface\s+({_IDENT})"),
    re.compile(rf"^(?:export\s+)?(?:async\s+)?function\s*\*?\s*({_IDENT})\s*\("),
    re.compile(rf"^(?:export\s+)?const\s+({_IDENT})\s*=\s*(?:async\s*)?\([^)]*\)\s*=>"),
    re.compile(rf"^(?:async\s+)?def\s+({_IDENT})\s*\("),
    re.compile(rf"^(?:(?:public|private|protected|static|async|readonly)\s+)*({_IDENT})\s*\([^)]*\)\s*(?::[^{{]*)?\{{"),
    re.compile(r"^(?:export\s+)?const\s+([A-Z][A-Z0-9_]*)\b"),
)

# Names the method pattern picks up from statements, not declarations
EXCLUDED_NAMES = frozenset(
    {"constructor", "__init__", "if", "for", "while", "switch", "catch", "return", "function", "with", "elif"}
)

_EXPORT_LINE = re.compile(r"^export\s+")
_TYPE_DECLARATION = re.compile(
    rf"^(?:export\s+)?(?:default\s+)?(?:declare\s+)?(?:abstract\s+)?(?:class|interface|enum|type)\s+({_IDENT})"
)
_SIGNATURES: Sequence[Pattern[str]] = (
    re.compile(rf"^(?:export\s+)?(?:default\s+)?(?:async\s+)?function\s*\*?\s*({_IDENT})\s*(\([^)]*\))"),
    re.compile(rf"^(?:export\s+)?(?:const|let|var)\s+({_IDENT})\s*=\s*(?:async\s*)?(\([^)]*\))\s*=>"),
    re.compile(rf"^(?:async\s+)?def\s+({_IDENT})\s*(\([^)]*\))"),
    re.compile(rf"^(?:(?:public|private|protected|static|async|readonly)\s+)*({_IDENT})\s*(\([^)]*\))\s*(?::[^{{]*)?\{{"),
)
_WHITESPACE = re.compile(r"\s+")


def extract_declaration_map(content: str) -> Dict[str, str]:
    """
    Map declared symbol name -> the (stripped) line declaring it.

    A later declaration of the same name overwrites an earlier one.
    """
    declarations: Dict[str, str] = {}
    for raw_line in content.splitlines():
        line = raw_line.strip()
        if not line:
            continue
        for pattern in DECLARATION_PATTERNS:
            match = pattern.match(line)
            if not match:
                continue
            name = match.group(1)
            if name in EXCLUDED_NAMES:
                break
            declarations[name] = line
            break
    return declarations


def identify_primary_ast_nodes(new_content: str, previous_content: Optional[str] = None) -> List[str]:
    """
    Symbols introduced or changed by a write, in declaration order.

    Without previous content every declared symbol counts as new.
    """
    current = extract_declaration_map(new_content)
    if not previous_content:
        return list(current)

    previous = extract_declaration_map(previous_content)
    return [name for name, line in current.items() if previous.get(name) != line]


# =============================================================================
# CONTRACT DIFF
# =============================================================================


@dataclass
class ContractSummary:
    """Externally visible surface of a source file, as far as a line scan sees it."""

    export_lines: List[str] = field(default_factory=list)
    declared_names: List[str] = field(default_factory=list)
    signatures: Dict[str, str] = field(default_factory=dict)


def summarize_contract(content: str) -> ContractSummary:
    summary = ContractSummary()
    for raw_line in (content or "").splitlines():
        line = raw_line.strip()
        if not line:
            continue

        if _EXPORT_LINE.match(line):
            normalized = _WHITESPACE.sub(" ", line)
            if normalized not in summary.export_lines:
                summary.export_lines.append(normalized)

        declared = _TYPE_DECLARATION.match(line)
        if declared and declared.group(1) not in summary.declared_names:
            summary.declared_names.append(declared.group(1))

        for pattern in _SIGNATURES:
            signature = pattern.match(line)
            if not signature:
                continue
            name = signature.group(1)
            if name not in EXCLUDED_NAMES:
                summary.signatures[name] = _WHITESPACE.sub("", signature.group(2))
            break
    return summary


def detect_contract_change(previous_content: Optional[str], proposed_content: str) -> List[str]:
    """
    List contract changes between two versions of a file.

    Reported findings:
    - an export line not present before
    - a class/interface/enum/type name not declared before
    - a changed parameter list for a function that existed before

    Returns:
        Human-readable findings; empty when the surface looks unchanged
    """
    before = summarize_contract(previous_content or "")
    after = summarize_contract(proposed_content)
    findings: List[str] = []

    for line in after.export_lines:
        if line not in before.export_lines:
            findings.append(f"new export: {line}")

    for name in after.declared_names:
        if name not in before.declared_names:
            findings.append(f"new declaration: {name}")

    for name, params in after.signatures.items():
        prior = before.signatures.get(name)
        if prior is not None and prior != params:
            findings.append(f"signature changed: {name}{prior} -> {name}{params}")

    return findings
