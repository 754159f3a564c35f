"""Reconcile scanner output with the live file registry.

The registry is rebuilt from the seeded snapshot on every pass: NEW_FILE spans
overwrite, UPDATE_FILE spans replay their SEARCH/REPLACE blocks through the
patch engine. Nothing is mutated cumulatively, so re-running a pass on the
same buffer gives the same files.
"""

import re
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Set, Tuple

from . import config, markers
from .scanner import (
    NEW_FILE,
    UPDATE_FILE,
    FALLBACK_FILES,
    ScanResult,
    fenced_body,
    language_for_path,
    language_for_tag,
    normalize_path,
)
from .search_replace import (
    EditDiagnostic,
    apply_search_replace_blocks,
    blocks_from_payload,
    parse_search_replace_blocks,
)
from .utils import dbg, preview


_HTML_SIGNATURE_RE = re.compile(r"<!DOCTYPE\s+html|<html", re.IGNORECASE)

_MARKDOWN_FENCE_RE = re.compile(r"```([A-Za-z]+)\n([\s\S]*?)```")


@dataclass
class ProjectFile:
    path: str
    content: str
    language: str = "unknown"

    def __post_init__(self):
        if self.language == "unknown":
            self.language = language_for_path(self.path)

    def to_dict(self) -> Dict[str, str]:
        return {"path": self.path, "content": self.content, "language": self.language}


@dataclass(frozen=True)
class FileFocusRequested:
    """The UI should switch its active view to path."""
    path: str


class FileRegistry:
    """Ordered path -> ProjectFile map plus the set of paths still streaming."""

    def __init__(self, seed: Optional[Iterable[ProjectFile]] = None):
        self.files: Dict[str, ProjectFile] = {}
        self.incomplete: Set[str] = set()
        self.snapshot: Dict[str, str] = {}
        for f in seed or []:
            self.snapshot[f.path] = f.content
        self.reset_to_snapshot()

    def __contains__(self, path: str) -> bool:
        return path in self.files

    def __len__(self) -> int:
        return len(self.files)

    def get(self, path: str) -> Optional[ProjectFile]:
        return self.files.get(path)

    def upsert(self, path: str, content: str) -> ProjectFile:
        existing = self.files.get(path)
        if existing is None:
            existing = ProjectFile(path=path, content=content)
            self.files[path] = existing
        else:
            existing.content = content
        return existing

    def sync(self, contents: Dict[str, str], incomplete: Iterable[str] = ()):
        """Make the registry hold exactly contents (in its order), updating files in place."""
        for path in list(self.files):
            if path not in contents:
                del self.files[path]
        rebuilt: Dict[str, ProjectFile] = {}
        for path, content in contents.items():
            rebuilt[path] = self.upsert(path, content)
        self.files = rebuilt
        self.incomplete = {p for p in incomplete if p in self.files}

    def reset_to_snapshot(self):
        self.sync(dict(self.snapshot))

    def replace_all(self, files: Iterable[ProjectFile]):
        self.sync({f.path: f.content for f in files})

    def render(self, cursor: str = "") -> List[ProjectFile]:
        """Copies of all files; incomplete ones get the cursor glyph appended.

        The glyph only ever lives on these copies, never in stored content.
        """
        out: List[ProjectFile] = []
        for f in self.files.values():
            content = f.content
            if cursor and f.path in self.incomplete:
                content += cursor
            out.append(ProjectFile(path=f.path, content=content, language=f.language))
        return out


def extract_html_fallback(buffer: str, final: bool = False) -> Optional[str]:
    """Bare HTML document in a marker-less buffer, from its signature to a closing fence."""
    m = _HTML_SIGNATURE_RE.search(buffer or "")
    if not m:
        return None
    text = buffer[m.start():]
    close = text.find("```")
    if close != -1:
        text = text[:close]
    elif not final:
        text = text.rstrip("`")
    return text.strip()


def extract_markdown_files(buffer: str) -> List[Tuple[str, str]]:
    """Fenced html/css/js blocks -> index.html / style.css / script.js (first block of each)."""
    found: Dict[str, str] = {}
    for m in _MARKDOWN_FENCE_RE.finditer(buffer or ""):
        path = FALLBACK_FILES.get(language_for_tag(m.group(1)))
        if path is not None and path not in found:
            found[path] = m.group(2).strip()
    return [(path, found[path]) for path in FALLBACK_FILES.values() if path in found]


@dataclass
class PassOutcome:
    contents: Dict[str, str] = field(default_factory=dict)
    produced: List[str] = field(default_factory=list)
    diagnostics: List[EditDiagnostic] = field(default_factory=list)
    updated_lines: Dict[str, List[List[int]]] = field(default_factory=dict)
    applied_count: int = 0
    incomplete: Set[str] = field(default_factory=set)


class FileAssembler:
    """Turns each scan of the buffer into registry state and focus events."""

    def __init__(self, registry: FileRegistry):
        self.registry = registry
        # Seeded files never trigger auto-focus.
        self._announced: Set[str] = set(registry.snapshot)
        self.diagnostics: List[EditDiagnostic] = []
        self.updated_lines: Dict[str, List[List[int]]] = {}
        self.applied_count = 0
        self.produced: List[str] = []

    def _run(self, scan: ScanResult, buffer: str) -> PassOutcome:
        out = PassOutcome(contents=dict(self.registry.snapshot))
        for span in scan.spans:
            if span.kind == NEW_FILE:
                out.contents[span.path] = span.content
                if span.path not in out.produced:
                    out.produced.append(span.path)
            elif span.kind == UPDATE_FILE:
                self._apply_update(span, out)
        if not scan.spans:
            html = extract_html_fallback(buffer, final=scan.final)
            if html is not None:
                path = config.FALLBACK_INDEX
                out.contents[path] = html
                out.produced.append(path)
                if not scan.final:
                    out.incomplete.add(path)
        open_span = scan.open_span()
        if open_span is not None and not scan.final:
            out.incomplete.add(open_span.path)
        return out

    def _apply_update(self, span, out: PassOutcome):
        blocks = parse_search_replace_blocks(span.body, base_offset=span.content_start)
        full = None
        if not blocks and markers.SEARCH_START not in span.body:
            full = fenced_body(span.body)
        if not blocks and full is None:
            return
        if span.path not in out.contents:
            out.diagnostics.append(
                EditDiagnostic(
                    path=span.path,
                    kind="missing_target",
                    message=f"Update for {span.path} skipped: file does not exist in the project.",
                    search_preview=preview(blocks[0].search) if blocks else "",
                    offset=span.marker_start,
                )
            )
            return
        if full is not None:
            out.contents[span.path] = full
            out.applied_count += 1
            out.updated_lines.setdefault(span.path, []).append([1, full.count("\n") + 1])
            return
        patch = apply_search_replace_blocks(span.path, out.contents[span.path], blocks)
        out.contents[span.path] = patch.content
        out.diagnostics.extend(patch.diagnostics)
        out.applied_count += len(patch.applied)
        if patch.applied:
            out.updated_lines.setdefault(span.path, []).extend(patch.updated_lines)

    def _commit(self, out: PassOutcome) -> List[FileFocusRequested]:
        ordered: Dict[str, str] = {}
        for path in self.registry.files:
            if path in out.contents:
                ordered[path] = out.contents[path]
        for path, content in out.contents.items():
            ordered.setdefault(path, content)
        self.registry.sync(ordered, out.incomplete)
        self.diagnostics = out.diagnostics
        self.updated_lines = out.updated_lines
        self.applied_count = out.applied_count
        self.produced = out.produced

        fresh = [p for p in out.produced if p not in self._announced]
        if not fresh:
            return []
        for path in fresh:
            dbg(f"assembler: started {path}")
        self._announced.update(fresh)
        return [FileFocusRequested(fresh[-1])]

    def apply(self, scan: ScanResult, buffer: str) -> List[FileFocusRequested]:
        """One pass over a fresh scan; returns focus events for newly started files."""
        return self._commit(self._run(scan, buffer))

    def finalize(self, scan: ScanResult, buffer: str) -> List[FileFocusRequested]:
        """Terminal pass: markdown fallback, nothing left incomplete."""
        out = self._run(scan, buffer)
        if not scan.spans and not out.produced:
            for path, content in extract_markdown_files(buffer):
                out.contents[path] = content
                out.produced.append(path)
            if out.produced:
                dbg(f"assembler: markdown fallback produced {out.produced}")
        out.incomplete = set()
        return self._commit(out)

    def convert_batch(self, items: Iterable[dict]) -> List[ProjectFile]:
        """Batch `complete` payload -> full project, patched against the seeded snapshot."""
        contents: Dict[str, str] = dict(self.registry.snapshot)
        for item in items:
            if not isinstance(item, dict):
                continue
            path = item.get("path") or item.get("name") or ""
            path = normalize_path(str(path))
            if not path:
                continue
            blocks = blocks_from_payload(item.get("searchReplaceBlocks"))
            if item.get("action") == "update" and blocks:
                if path not in contents:
                    dbg(f"assembler: batch update for missing {path} skipped")
                    continue
                contents[path] = apply_search_replace_blocks(path, contents[path], blocks).content
                continue
            content = item.get("content")
            if isinstance(content, str):
                contents[path] = content
        return [ProjectFile(path=p, content=c) for p, c in contents.items()]
