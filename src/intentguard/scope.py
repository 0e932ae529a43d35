"""Path scope matching for intent-owned paths.

A scope pattern is either a glob (``src/**/*.py``), a directory prefix ending in
``/`` (``src/services/``) or a literal path. Literal paths match themselves and
anything below them on a ``/`` boundary, so ``src/core`` owns ``src/core/a.py``
but not ``src/core2/a.py``.
"""

from __future__ import annotations

import re
from functools import lru_cache
from typing import Iterable, Optional, Pattern

GLOB_METACHARACTERS = re.compile(r"[*?\[\]{}()]")

# Characters escaped before glob translation; '*' and '?' are handled after
_REGEX_SPECIALS = re.compile(r"[.+^${}()|\[\]\\]")


def normalize_scope_path(path: object) -> str:
    """
    Normalize a path for scope comparison.

    Backslashes become forward slashes and a single leading ``./`` is stripped.

    Args:
        path: Path string or Path object

    Returns:
        Normalized path string
    """
    s = str(path or "").strip()
    s = s.replace("\\", "/")
    if s.startswith("./"):
        s = s[2:]
    return s


def has_glob_syntax(pattern: str) -> bool:
    return bool(GLOB_METACHARACTERS.search(pattern))


@lru_cache(maxsize=256)
def glob_to_regex(glob_pattern: str) -> Pattern[str]:
    """
    Compile a scope glob into an anchored regular expression.

    ``**`` matches any sequence including ``/``, ``*`` any run without ``/``,
    ``?`` a single non-``/`` character. Every other character is literal.
    """
    escaped = _REGEX_SPECIALS.sub(lambda m: "\\" + m.group(0), glob_pattern)
    escaped = escaped.replace("**", "\x00")
    escaped = escaped.replace("*", "[^/]*")
    escaped = escaped.replace("\x00", ".*")
    escaped = escaped.replace("?", "[^/]")
    return re.compile(f"^{escaped}$")


def path_within_scope(target_path: str, scope_pattern: str) -> bool:
    """
    Check whether a target path is covered by one scope pattern.

    Args:
        target_path: Workspace-relative path of the file being mutated
        scope_pattern: One entry of an intent's owned_scope

    Returns:
        True if the pattern owns the path
    """
    normalized_target = normalize_scope_path(target_path)
    normalized_scope = normalize_scope_path(scope_pattern)

    if not normalized_scope:
        return False

    if has_glob_syntax(normalized_scope):
        return bool(glob_to_regex(normalized_scope).match(normalized_target))

    if normalized_scope.endswith("/"):
        return normalized_target.startswith(normalized_scope)

    if normalized_target == normalized_scope:
        return True

    return normalized_target.startswith(f"{normalized_scope}/")


def find_owning_scope(target_path: str, owned_scope: Iterable[str]) -> Optional[str]:
    """Return the first scope pattern that owns ``target_path``, if any."""
    for scope in owned_scope or []:
        if path_within_scope(target_path, scope):
            return scope
    return None
