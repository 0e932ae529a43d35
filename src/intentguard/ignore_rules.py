"""Intent ignore rules (.intentignore, gitignore-style).

Paths listed in the workspace ignore file can never be mutated by an agent,
whatever the active intent's scope says. Supported syntax:
- blank lines and ``#`` comments (``\\#`` for a literal hash)
- ``!pattern`` re-includes a previously ignored path
- ``dir/`` matches directories only (and therefore everything below them)
- patterns containing a ``/`` are anchored at the workspace root
- other patterns match a file or directory name at any depth
- ``*``, ``?``, ``[...]`` and ``**`` wildcards
"""

from __future__ import annotations

import fnmatch
import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Pattern

from .file_layout import read_text_or_none
from .scope import normalize_scope_path

logger = logging.getLogger(__name__)


def _translate_anchored(pattern: str) -> Pattern[str]:
    """Translate an anchored gitignore pattern into a full-match regex."""
    out: List[str] = []
    i = 0
    n = len(pattern)
    while i < n:
        if pattern.startswith("**/", i) and (i == 0 or pattern[i - 1] == "/"):
            out.append("(?:.*/)?")
            i += 3
            continue
        if pattern.startswith("/**", i) and i + 3 == n:
            out.append("/.*")
            i += 3
            continue
        c = pattern[i]
        if c == "*":
            if pattern.startswith("**", i):
                out.append(".*")
                i += 2
                continue
            out.append("[^/]*")
        elif c == "?":
            out.append("[^/]")
        elif c == "[":
            j = pattern.find("]", i + 1)
            if j == -1:
                out.append(re.escape(c))
            else:
                body = pattern[i + 1 : j]
                if body.startswith("!"):
                    body = "^" + body[1:]
                out.append(f"[{body}]")
                i = j
        else:
            out.append(re.escape(c))
        i += 1
    return re.compile("".join(out) + r"\Z")


@dataclass(frozen=True)
class IgnoreRule:
    """One parsed line of the ignore file."""

    pattern: str
    negated: bool = False
    directory_only: bool = False
    anchored: bool = False
    regex: Optional[Pattern[str]] = None

    @classmethod
    def parse(cls, raw_line: str) -> Optional["IgnoreRule"]:
        line = raw_line.rstrip("\n").rstrip("\r")
        # Trailing spaces are ignored unless escaped
        if not line.endswith("\\ "):
            line = line.rstrip(" ")
        if not line or line.startswith("#"):
            return None

        negated = False
        if line.startswith("!"):
            negated = True
            line = line[1:]
        elif line.startswith("\\#") or line.startswith("\\!"):
            line = line[1:]

        directory_only = line.endswith("/")
        line = line.rstrip("/")
        if not line:
            return None

        anchored = "/" in line
        line = line.lstrip("/")
        regex = _translate_anchored(line) if anchored else None
        return cls(
            pattern=line,
            negated=negated,
            directory_only=directory_only,
            anchored=anchored,
            regex=regex,
        )

    def matches(self, rel_path: str, is_dir: bool) -> bool:
        if self.directory_only and not is_dir:
            return False
        if self.anchored and self.regex is not None:
            return bool(self.regex.match(rel_path))
        basename = rel_path.rsplit("/", 1)[-1]
        return fnmatch.fnmatchcase(basename, self.pattern)


class IntentIgnore:
    """Ordered rule set loaded from the workspace ignore file."""

    def __init__(self, rules: Optional[List[IgnoreRule]] = None):
        self.rules: List[IgnoreRule] = list(rules or [])

    @classmethod
    def from_text(cls, content: str) -> "IntentIgnore":
        rules = []
        for raw_line in content.splitlines():
            rule = IgnoreRule.parse(raw_line)
            if rule is not None:
                rules.append(rule)
        return cls(rules)

    @classmethod
    def load(cls, ignore_path: Path) -> "IntentIgnore":
        """Load rules from ``ignore_path``; a missing file yields no rules."""
        content = read_text_or_none(ignore_path)
        if content is None:
            logger.debug(f"[IntentIgnore] No ignore file at {ignore_path}")
            return cls()
        ignore = cls.from_text(content)
        logger.debug(f"[IntentIgnore] Loaded {len(ignore.rules)} rules from {ignore_path}")
        return ignore

    def _evaluate(self, candidate: str, is_dir: bool) -> bool:
        ignored = False
        for rule in self.rules:
            if rule.matches(candidate, is_dir):
                ignored = not rule.negated
        return ignored

    def ignores(self, target_path: str) -> bool:
        """
        Check whether a workspace-relative file path is ignored.

        A path below an ignored directory stays ignored even if a later
        negation names the file itself (a file cannot be re-included inside
        an excluded directory).
        """
        normalized = normalize_scope_path(target_path).strip("/")
        if not normalized or not self.rules:
            return False

        parts = [part for part in normalized.split("/") if part]
        for depth in range(1, len(parts)):
            if self._evaluate("/".join(parts[:depth]), is_dir=True):
                return True
        return self._evaluate("/".join(parts), is_dir=False)

    def __len__(self) -> int:
        return len(self.rules)
