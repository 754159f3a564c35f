"""Search match strategies for SEARCH/REPLACE blocks.

Strategies, tried in order: exact, whitespace_normalized, flexible_regex.
Only exact is guaranteed precise; the others exist because models often
re-indent or re-wrap the code they quote.
"""

import re
from typing import Callable, List, Optional, Tuple

from . import config


def _exact_match(file_content: str, search_content: str) -> Optional[Tuple[int, int]]:
    """Exact string match. Returns (start, end) or None."""
    idx = file_content.find(search_content)
    if idx == -1:
        return None
    return (idx, idx + len(search_content))


def _normalize_ws(text: str) -> str:
    return " ".join(text.split())


def _whitespace_normalized_match(file_content: str, search_content: str) -> Optional[Tuple[int, int]]:
    """Compare whitespace-collapsed search text against windows of whole lines.

    The returned span runs from the first non-whitespace char of the first
    window line to the last non-whitespace char of the last one, so indentation
    and trailing whitespace around the match stay in place.
    """
    target = _normalize_ws(search_content)
    if not target:
        return None
    lines = file_content.split("\n")
    offsets: List[int] = []
    pos = 0
    for line in lines:
        offsets.append(pos)
        pos += len(line) + 1
    max_window = max(1, config.NORMALIZED_MATCH_MAX_LINES)
    for i, first in enumerate(lines):
        if not first.strip():
            continue
        parts: List[str] = []
        for j in range(i, min(len(lines), i + max_window)):
            piece = _normalize_ws(lines[j])
            if not piece:
                continue
            parts.append(piece)
            joined = " ".join(parts)
            if joined == target:
                start = offsets[i] + (len(first) - len(first.lstrip()))
                end = offsets[j] + len(lines[j].rstrip())
                return (start, end)
            if len(joined) >= len(target) or not target.startswith(joined):
                break
    return None


def build_flexible_pattern(search_content: str) -> Optional[str]:
    """Regex for search_content with whitespace runs optional and tag edges relaxed."""
    tokens = search_content.split()
    if not tokens:
        return None
    escaped = []
    for tok in tokens:
        e = re.escape(tok).replace(">", r"\s*>").replace("><", r">\s*<")
        escaped.append(e)
    return r"\s*".join(escaped)


def _flexible_regex_match(file_content: str, search_content: str) -> Optional[Tuple[int, int]]:
    pattern = build_flexible_pattern(search_content)
    if pattern is None:
        return None
    try:
        m = re.search(pattern, file_content)
    except re.error:
        return None
    if m is None:
        return None
    return (m.start(), m.end())


_MATCH_STRATEGIES: List[Tuple[str, Callable[[str, str], Optional[Tuple[int, int]]]]] = [
    ("exact", _exact_match),
    ("whitespace_normalized", _whitespace_normalized_match),
    ("flexible_regex", _flexible_regex_match),
]


def find_search_match(
    file_content: str,
    search_content: str,
) -> Optional[Tuple[int, int, str]]:
    """Find a single match. Returns (start, end, strategy_name) or None.

    Empty (or whitespace-only) search_content matches at position 0 as
    "empty_search"; the caller decides what an empty search means.
    """
    if search_content.strip() == "":
        return (0, 0, "empty_search")
    for name, strategy in _MATCH_STRATEGIES:
        result = strategy(file_content, search_content)
        if result is not None:
            return (result[0], result[1], name)
    return None
