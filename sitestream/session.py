"""One generation turn: buffer, scanner, assembler and registry, driven chunk by chunk.

Everything runs synchronously inside on_chunk; the registry is consistent after
every call. Observers get rendered copies through callbacks and never write.
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Optional

from . import config
from .assembler import FileAssembler, FileFocusRequested, FileRegistry, ProjectFile
from .prompts import CREATE, EDIT, build_messages
from .scanner import IncrementalScanner
from .search_replace import EditDiagnostic
from .utils import dbg, dbg_dump

IDLE = "idle"
STREAMING = "streaming"
DONE = "done"
ERROR = "error"
CANCELLED = "cancelled"
FAILED = "failed"

TERMINAL_STATES = (DONE, ERROR, CANCELLED, FAILED)


class GenerationError(Exception):
    """Base class for failures of a whole generation turn."""

    def __init__(self, message: str, result: Optional["GenerationResult"] = None):
        super().__init__(message)
        self.result = result


class EmptyEditResult(GenerationError):
    """Edit mode produced no file and applied no edit; the project was left as it was."""
    pass


class TransportError(GenerationError):
    """The stream broke; result holds whatever had arrived."""
    pass


class SessionClosedError(GenerationError):
    pass


@dataclass
class GenerationResult:
    project_name: str
    files: List[ProjectFile] = field(default_factory=list)
    diagnostics: List[EditDiagnostic] = field(default_factory=list)
    updated_lines: Dict[str, List[List[int]]] = field(default_factory=dict)
    status: str = IDLE

    def file(self, path: str) -> Optional[ProjectFile]:
        for f in self.files:
            if f.path == path:
                return f
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "projectName": self.project_name,
            "files": [f.to_dict() for f in self.files],
            "updatedLines": self.updated_lines,
            "diagnostics": [d.to_dict() for d in self.diagnostics],
            "status": self.status,
        }


class GenerationSession:
    def __init__(
        self,
        mode: str = CREATE,
        existing_files: Optional[Iterable[ProjectFile]] = None,
        on_update: Optional[Callable[[List[ProjectFile]], None]] = None,
        on_focus: Optional[Callable[[str], None]] = None,
        on_diagnostic: Optional[Callable[[EditDiagnostic], None]] = None,
        cursor: Optional[str] = None,
        project_name: str = "",
    ):
        self.mode = mode
        self.buffer = ""
        self.status = IDLE
        self.cursor = config.STREAM_CURSOR if cursor is None else cursor
        self.seed_project_name = project_name
        self.registry = FileRegistry(existing_files or [])
        self.scanner = IncrementalScanner()
        self.assembler = FileAssembler(self.registry)
        self.on_update = on_update
        self.on_focus = on_focus
        self.on_diagnostic = on_diagnostic
        self._session_diagnostics: List[EditDiagnostic] = []
        self._reported = set()
        self._batch_project_name: Optional[str] = None

    @property
    def closed(self) -> bool:
        return self.status in TERMINAL_STATES

    @property
    def project_name(self) -> str:
        return (
            self.scanner.project_name
            or self._batch_project_name
            or self.seed_project_name
            or config.DEFAULT_PROJECT_NAME
        )

    def start(self, prompt: str, mode: Optional[str] = None) -> List[Dict[str, str]]:
        """Open the turn and return the chat messages to send to the provider."""
        if self.status != IDLE:
            raise SessionClosedError(f"session already {self.status}")
        if mode is not None:
            self.mode = mode
        self.status = STREAMING
        dbg(f"session: start mode={self.mode} seeded={len(self.registry.snapshot)}")
        return build_messages(
            prompt,
            mode=self.mode,
            existing_files=self.registry.render(),
            project_name=self.seed_project_name,
        )

    def on_chunk(self, text: str) -> bool:
        """Append text and re-derive the project. False if the session is already closed."""
        if self.closed:
            dbg(f"session: chunk ignored after {self.status} (len={len(text or '')})")
            return False
        self.status = STREAMING
        if not text:
            return True
        self.buffer += text
        scan = self.scanner.scan(self.buffer)
        events = self.assembler.apply(scan, self.buffer)
        self._publish(events)
        return True

    def on_terminal(self, kind: str = DONE, payload: Any = None) -> GenerationResult:
        """Finish the turn on `done`, `complete` or `error`.

        A `complete` payload carrying a non-empty file list supersedes the
        incrementally assembled files. Raises EmptyEditResult when an edit turn
        yielded nothing usable.
        """
        if self.closed:
            return self.result()
        dbg(f"session: terminal kind={kind} buffer_len={len(self.buffer)}")
        dbg_dump("session: raw buffer", self.buffer)
        scan = self.scanner.scan(self.buffer, final=True)
        events = self.assembler.finalize(scan, self.buffer)

        superseded = False
        if kind == "complete" and isinstance(payload, dict):
            name = payload.get("projectName")
            if isinstance(name, str) and name.strip():
                self._batch_project_name = name.strip()
            items = payload.get("files")
            if isinstance(items, list) and items:
                self.registry.replace_all(self.assembler.convert_batch(items))
                superseded = True
                dbg(f"session: batch payload superseded registry ({len(items)} file(s))")

        if kind == "error":
            message = str(payload or "stream error")
            self.status = ERROR
            self._add_diagnostic(EditDiagnostic(path="", kind="transport_error", message=message))
            self._publish(events)
            return self.result()

        if self.mode == EDIT and not superseded and not self.assembler.produced and self.assembler.applied_count == 0:
            self.registry.reset_to_snapshot()
            self.status = FAILED
            message = "The model's edit could not be applied to any file; please try again."
            self._add_diagnostic(EditDiagnostic(path="", kind="empty_edit", message=message))
            self._publish(events)
            raise EmptyEditResult(message, self.result())

        self.status = DONE
        self._publish(events)
        return self.result()

    def cancel(self):
        """Stop processing chunks and keep the files exactly as they are now."""
        if self.closed:
            return
        self.registry.incomplete.clear()
        self.status = CANCELLED
        dbg(f"session: cancelled buffer_len={len(self.buffer)} files={len(self.registry)}")
        if self.on_update is not None:
            self.on_update(self.render())

    def feed(self, text: str, kind: str = DONE, payload: Any = None) -> GenerationResult:
        """Batch path: the whole response as one chunk, then the terminal event."""
        self.on_chunk(text)
        return self.on_terminal(kind, payload)

    def render(self) -> List[ProjectFile]:
        return self.registry.render("" if self.closed else self.cursor)

    def result(self) -> GenerationResult:
        return GenerationResult(
            project_name=self.project_name,
            files=self.registry.render(),
            diagnostics=list(self.assembler.diagnostics) + list(self._session_diagnostics),
            updated_lines={k: [list(r) for r in v] for k, v in self.assembler.updated_lines.items()},
            status=self.status,
        )

    def _add_diagnostic(self, diag: EditDiagnostic):
        self._session_diagnostics.append(diag)

    def _publish(self, events: List[FileFocusRequested]):
        for diag in list(self.assembler.diagnostics) + self._session_diagnostics:
            key = diag.key()
            if key in self._reported:
                continue
            self._reported.add(key)
            dbg(f"session: diagnostic {diag.kind} path={diag.path} {diag.message}")
            if self.on_diagnostic is not None:
                self.on_diagnostic(diag)
        if self.on_update is not None:
            self.on_update(self.render())
        if self.on_focus is not None:
            for event in events:
                self.on_focus(event.path)
