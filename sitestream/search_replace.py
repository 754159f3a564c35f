"""Parse and apply SEARCH/REPLACE blocks from UPDATE_FILE spans.

Each block is matched with the strategy cascade in edit_match. A block that
matches nothing is dropped with a diagnostic; the rest of the edit proceeds.
Application is pure: callers replay all visible blocks against a pristine
snapshot on every pass, so a block seen on many chunks is applied once.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple

from . import markers
from .edit_match import find_search_match
from .utils import dbg, line_of, preview


class SearchReplaceError(Exception):
    """A SEARCH body could not be located in the target content."""
    pass


@dataclass(frozen=True)
class SearchReplaceBlock:
    search: str
    replace: str
    # Buffer offset of the SEARCH marker; -1 when the block did not come from a buffer.
    offset: int = -1


@dataclass
class EditDiagnostic:
    path: str
    kind: str
    message: str
    search_preview: str = ""
    offset: int = -1

    def key(self) -> Tuple[str, str, int, str]:
        return (self.path, self.kind, self.offset, self.search_preview)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "path": self.path,
            "kind": self.kind,
            "message": self.message,
            "search": self.search_preview,
            "offset": self.offset,
        }


@dataclass
class AppliedEdit:
    path: str
    strategy: str
    start_line: int
    end_line: int
    offset: int = -1


@dataclass
class PatchResult:
    path: str
    content: str
    applied: List[AppliedEdit] = field(default_factory=list)
    diagnostics: List[EditDiagnostic] = field(default_factory=list)

    @property
    def updated_lines(self) -> List[List[int]]:
        return [[a.start_line, a.end_line] for a in self.applied]


def _norm_line_endings(s: str) -> str:
    """Normalize line endings to \\n so file (e.g. \\r\\n) and model string (\\n) match."""
    if not s:
        return s
    return s.replace("\r\n", "\n").replace("\r", "\n")


def _block_text(raw: str) -> str:
    """Text between two block markers, minus the marker-line remainders.

    Markers normally sit on their own lines, so the first and last lines are
    blank and dropped; indentation of the real content lines is kept. A block
    written inline ("<<<<<<< SEARCH foo =======") is stripped instead.
    """
    raw = _norm_line_endings(raw)
    lines = raw.split("\n")
    if len(lines) == 1:
        return raw.strip()
    if not lines[0].strip():
        lines = lines[1:]
    else:
        lines[0] = lines[0].lstrip()
    if lines and not lines[-1].strip():
        lines = lines[:-1]
    elif lines:
        lines[-1] = lines[-1].rstrip()
    return "\n".join(lines)


def parse_search_replace_blocks(text: str, base_offset: int = 0) -> List[SearchReplaceBlock]:
    """Extract every fully-received SEARCH/DIVIDER/REPLACE block, in textual order.

    A block whose REPLACE marker has not arrived yet is not returned.
    """
    if not text or markers.SEARCH_START not in text:
        return []
    blocks: List[SearchReplaceBlock] = []
    pos = 0
    while pos < len(text):
        search_idx = text.find(markers.SEARCH_START, pos)
        if search_idx == -1:
            break
        divider_idx = text.find(markers.DIVIDER, search_idx + len(markers.SEARCH_START))
        if divider_idx == -1:
            break
        replace_idx = text.find(markers.REPLACE_END, divider_idx + len(markers.DIVIDER))
        if replace_idx == -1:
            break
        blocks.append(
            SearchReplaceBlock(
                search=_block_text(text[search_idx + len(markers.SEARCH_START) : divider_idx]),
                replace=_block_text(text[divider_idx + len(markers.DIVIDER) : replace_idx]),
                offset=base_offset + search_idx,
            )
        )
        pos = replace_idx + len(markers.REPLACE_END)
    return blocks


def execute_search_replace(
    file_content: str,
    search: str,
    replace: str,
    edit_index: int = 0,
) -> Tuple[str, str, Tuple[int, int]]:
    """Replace the first match of search in file_content.

    Returns (new_content, strategy, (start_line, end_line)) where the line range
    covers the replacement in new_content. An empty search prepends replace.
    Raises SearchReplaceError when no strategy matches; file_content is never
    partially modified.
    """
    content = _norm_line_endings(file_content)
    search = _norm_line_endings(search)
    replace = _norm_line_endings(replace)
    match = find_search_match(content, search)
    if match is None:
        raise SearchReplaceError(
            f"Edit at index {edit_index}: string not found in file: {preview(search, 80)!r}"
        )
    start, end, strategy = match
    if strategy == "empty_search":
        new_content = f"{replace}\n{content}" if content else replace
        return new_content, strategy, (1, replace.count("\n") + 1)
    new_content = content[:start] + replace + content[end:]
    start_line = line_of(new_content, start)
    return new_content, strategy, (start_line, start_line + replace.count("\n"))


def apply_search_replace_blocks(
    path: str,
    base_content: str,
    blocks: Sequence[SearchReplaceBlock],
) -> PatchResult:
    """Apply blocks in order against base_content. Unmatched blocks are dropped with a diagnostic."""
    result = PatchResult(path=path, content=_norm_line_endings(base_content or ""))
    for i, block in enumerate(blocks):
        try:
            new_content, strategy, (start_line, end_line) = execute_search_replace(
                result.content, block.search, block.replace, edit_index=i
            )
        except SearchReplaceError as err:
            result.diagnostics.append(
                EditDiagnostic(
                    path=path,
                    kind="unmatched_search",
                    message=(
                        f"Could not apply one edit to {path}; "
                        "try being more specific. "
                        f"({err})"
                    ),
                    search_preview=preview(block.search),
                    offset=block.offset,
                )
            )
            continue
        result.content = new_content
        result.applied.append(
            AppliedEdit(
                path=path,
                strategy=strategy,
                start_line=start_line,
                end_line=end_line,
                offset=block.offset,
            )
        )
    if result.applied:
        dbg(
            f"search_replace: {path} applied {len(result.applied)}/{len(blocks)} block(s) "
            f"strategies={[a.strategy for a in result.applied]}"
        )
    return result


def blocks_from_payload(items: Optional[Sequence[Any]]) -> List[SearchReplaceBlock]:
    """SearchReplaceBlocks from a pre-parsed batch payload ([{search, replace}, ...])."""
    blocks: List[SearchReplaceBlock] = []
    for item in items or []:
        if not isinstance(item, dict):
            continue
        search = item.get("search")
        replace = item.get("replace")
        if not isinstance(search, str) or not isinstance(replace, str):
            continue
        blocks.append(SearchReplaceBlock(search=search, replace=replace))
    return blocks
