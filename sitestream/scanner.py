"""Incremental scanner for the streamed project format.

Every call re-derives all marker spans from offset 0 of the full buffer; there
is no resumable parse position. A span runs from the end of its start marker
to the next file marker of either kind, or to the end of the buffer. Because
the buffer only grows, an open span's content only grows too.
"""

import re
from dataclasses import dataclass, field
from pathlib import PurePosixPath
from typing import List, Optional, Tuple

from . import markers

NEW_FILE = "new_file"
UPDATE_FILE = "update_file"

_PROJECT_NAME_RE = re.compile(
    r"<<<<<<<\s*PROJECT_NAME_START\s*(.*?)\s*>>>>>>>\s*PROJECT_NAME_END",
    re.DOTALL,
)

# Only fully-closed start tags are matched; a half-received tag yields nothing.
_FILE_MARKER_RE = re.compile(
    r"<<<<<<<\s*NEW_FILE_START\s*(?P<new>[^\s>]+)\s*>>>>>>>\s*NEW_FILE_END"
    r"|<<<<<<<\s*UPDATE_FILE_START\s*(?P<upd>[^\s>]+)\s*>>>>>>>\s*UPDATE_FILE_END"
)

# A start tag whose closing half has not arrived yet.
_UNCLOSED_START_RE = re.compile(r"<<<<<<<\s*(?:NEW_FILE_START|UPDATE_FILE_START)")

_FENCE_OPEN_RE = re.compile(r"```([A-Za-z0-9_+.-]*)")

_LANGUAGES = {
    "html": "html",
    "css": "css",
    "js": "javascript",
    "javascript": "javascript",
}

# Default file for each language when a response carries only markdown fences.
FALLBACK_FILES = {
    "html": "index.html",
    "css": "style.css",
    "javascript": "script.js",
}


def language_for_path(path: str) -> str:
    """Editor hint derived from the file extension."""
    ext = PurePosixPath(path or "").suffix.lower().lstrip(".")
    return _LANGUAGES.get(ext, "unknown")


def language_for_tag(tag: str) -> str:
    """Language named by a fence tag or bare extension ('js', 'javascript', ...)."""
    return _LANGUAGES.get((tag or "").strip().lower(), "unknown")


def normalize_path(raw: str) -> str:
    """Marker path -> project-relative posix path (no leading slash, no '..')."""
    s = (raw or "").strip().strip("`'\"").replace("\\", "/")
    parts = [p for p in s.split("/") if p not in ("", ".", "..")]
    return "/".join(parts)


@dataclass
class FileSpan:
    kind: str
    path: str
    marker_start: int
    content_start: int
    closed: bool
    # Raw text between this marker and the next (partial trailing markers withheld while open).
    body: str
    language: str = "unknown"
    # Fence-stripped file content; only meaningful for NEW_FILE spans.
    content: str = ""


@dataclass
class ScanResult:
    project_name: Optional[str]
    spans: List[FileSpan] = field(default_factory=list)
    final: bool = False

    def paths(self) -> List[str]:
        seen: List[str] = []
        for span in self.spans:
            if span.path not in seen:
                seen.append(span.path)
        return seen

    def open_span(self) -> Optional[FileSpan]:
        if self.spans and not self.spans[-1].closed:
            return self.spans[-1]
        return None


def extract_project_name(buffer: str) -> Optional[str]:
    m = _PROJECT_NAME_RE.search(buffer or "")
    if not m:
        return None
    name = " ".join((m.group(1) or "").split())
    return name or None


def find_file_markers(buffer: str) -> List[Tuple[str, str, int, int]]:
    """All closed file start tags in document order as (kind, path, start, end)."""
    found: List[Tuple[str, str, int, int]] = []
    for m in _FILE_MARKER_RE.finditer(buffer or ""):
        if m.group("new") is not None:
            kind, raw_path = NEW_FILE, m.group("new")
        else:
            kind, raw_path = UPDATE_FILE, m.group("upd")
        path = normalize_path(raw_path)
        if not path:
            continue
        found.append((kind, path, m.start(), m.end()))
    return found


def unclosed_marker_offset(text: str) -> int:
    """Offset of the last start tag still waiting for its closing half, else len(text)."""
    last = None
    for last in _UNCLOSED_START_RE.finditer(text):
        pass
    return last.start() if last is not None else len(text)


def pending_marker_offset(text: str) -> int:
    """Offset where a not-yet-complete file start tag begins in text, else len(text).

    Covers both a start tag still waiting for its closing half and a tail
    that is a prefix of a start literal (e.g. "<<<<<<< NEW_FI").
    """
    cut = unclosed_marker_offset(text)
    if cut < len(text):
        return cut
    for literal in markers.FILE_START_MARKERS:
        for k in range(min(len(literal), len(text)), 0, -1):
            if text.endswith(literal[:k]):
                cut = min(cut, len(text) - k)
                break
    return cut


def strip_code_fence(body: str, final: bool = False, fence_anywhere: bool = False) -> str:
    """Return the code inside a ``` fence, tolerating a fence that has not closed yet.

    With fence_anywhere, prose before the opening fence is discarded; otherwise
    only a fence at the start of the body is recognised, which keeps the result
    a growing prefix while the body is still streaming.
    """
    text = (body or "").lstrip()
    if not text:
        return ""
    start = 0
    if not text.startswith("```"):
        if not final and "```".startswith(text):
            # Opening fence still arriving.
            return ""
        idx = text.find("```") if fence_anywhere else -1
        if idx == -1:
            return text.strip()
        start = idx
    m = _FENCE_OPEN_RE.match(text, start)
    inner = text[m.end():]
    if not inner and not final:
        return ""
    close = inner.find("```")
    if close != -1:
        inner = inner[:close]
    elif not final:
        inner = inner.rstrip("`")
    return inner.strip()


def fenced_body(body: str) -> Optional[str]:
    """Content of a fully closed ``` fence anywhere in body, else None."""
    text = body or ""
    m = _FENCE_OPEN_RE.search(text)
    if not m:
        return None
    close = text.find("```", m.end())
    if close == -1:
        return None
    return text[m.end():close].strip()


def scan_buffer(buffer: str, final: bool = False) -> ScanResult:
    """Derive the project name and all file spans from the full buffer.

    final=True is used once the stream has terminated: open fences are taken
    as-is and only a start tag that never received its closing half is cut off.
    """
    buffer = buffer or ""
    result = ScanResult(project_name=extract_project_name(buffer), final=final)
    found = find_file_markers(buffer)
    for i, (kind, path, start, end) in enumerate(found):
        closed = i + 1 < len(found)
        body = buffer[end:found[i + 1][2]] if closed else buffer[end:]
        if not closed:
            cut = unclosed_marker_offset(body) if final else pending_marker_offset(body)
            body = body[:cut]
        span = FileSpan(
            kind=kind,
            path=path,
            marker_start=start,
            content_start=end,
            closed=closed,
            body=body,
            language=language_for_path(path),
        )
        if kind == NEW_FILE:
            done = closed or final
            span.content = strip_code_fence(body, final=done, fence_anywhere=done)
        result.spans.append(span)
    return result


class IncrementalScanner:
    """Scanner bound to one generation; the project name is cached once seen."""

    def __init__(self):
        self._project_name: Optional[str] = None
        self.scans = 0

    @property
    def project_name(self) -> Optional[str]:
        return self._project_name

    def scan(self, buffer: str, final: bool = False) -> ScanResult:
        self.scans += 1
        result = scan_buffer(buffer, final=final)
        if self._project_name is None:
            self._project_name = result.project_name
        else:
            result.project_name = self._project_name
        return result
