"""Stream boundary: decode transport events and drive a GenerationSession."""

import json
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Iterator, List, Optional

from . import config, markers
from .assembler import ProjectFile
from .prompts import CREATE
from .search_replace import EditDiagnostic
from .session import GenerationResult, GenerationSession, TransportError
from .utils import dbg

CHUNK = "chunk"
DONE = "done"
COMPLETE = "complete"
ERROR = "error"
IGNORE = "ignore"


@dataclass
class StreamEvent:
    kind: str
    content: str = ""
    payload: Any = None


def decode_event(data: str) -> StreamEvent:
    """One transport payload -> StreamEvent.

    Accepts raw text, the [DONE] token, ':' keepalive comments and JSON events
    keyed by `type` (or `event`). Text that is not a JSON event is content.
    """
    if data is None:
        return StreamEvent(IGNORE)
    stripped = data.strip()
    if stripped == markers.DONE_TOKEN:
        return StreamEvent(DONE)
    if stripped.startswith(":"):
        return StreamEvent(IGNORE)
    if stripped.startswith("{") and stripped.endswith("}"):
        try:
            obj = json.loads(stripped)
        except json.JSONDecodeError:
            obj = None
        if isinstance(obj, dict) and ("type" in obj or "event" in obj):
            kind = str(obj.get("type") or obj.get("event") or "").lower()
            if kind in ("chunk", "content"):
                content = obj.get("content")
                if content is None:
                    content = obj.get("text")
                return StreamEvent(CHUNK, content=str(content or ""))
            if kind == "error":
                return StreamEvent(ERROR, content=str(obj.get("message") or obj.get("error") or "stream error"), payload=obj)
            if kind == "complete":
                return StreamEvent(COMPLETE, payload=obj)
            if kind == "done":
                return StreamEvent(DONE)
            # token-usage-updated, stats and the like
            return StreamEvent(IGNORE, payload=obj)
    return StreamEvent(CHUNK, content=data)


def iter_sse_data(lines: Iterable[Any]) -> Iterator[str]:
    """Payloads of `data:` lines from an SSE byte/str line iterator."""
    for raw in lines:
        line = raw.decode("utf-8", errors="replace") if isinstance(raw, (bytes, bytearray)) else str(raw)
        line = line.rstrip("\r\n")
        if not line or line.startswith(":"):
            continue
        if not line.startswith("data:"):
            continue
        data = line[5:]
        if data.startswith(" "):
            data = data[1:]
        yield data


def iter_openai_deltas(lines: Iterable[Any]) -> Iterator[str]:
    """Text deltas of an OpenAI-compatible chat completion stream; stops at [DONE]."""
    for data in iter_sse_data(lines):
        if data.strip() == markers.DONE_TOKEN:
            return
        try:
            obj = json.loads(data)
        except json.JSONDecodeError:
            dbg(f"transport: skipped non-JSON stream line {data[:80]!r}")
            continue
        if not isinstance(obj, dict):
            continue
        if obj.get("error"):
            err = obj["error"]
            detail = err.get("message") if isinstance(err, dict) else err
            raise RuntimeError(f"provider stream error: {detail}")
        choices = obj.get("choices")
        if not isinstance(choices, list) or not choices or not isinstance(choices[0], dict):
            continue
        delta = choices[0].get("delta") or {}
        content = delta.get("content") if isinstance(delta, dict) else None
        if isinstance(content, str) and content:
            yield content


class StreamController:
    """Feeds a provider's chunks (or decoded transport events) into a session."""

    def __init__(
        self,
        provider: Any = None,
        on_update: Optional[Callable[[List[ProjectFile]], None]] = None,
        on_focus: Optional[Callable[[str], None]] = None,
        on_diagnostic: Optional[Callable[[EditDiagnostic], None]] = None,
    ):
        self.provider = provider
        self.on_update = on_update
        self.on_focus = on_focus
        self.on_diagnostic = on_diagnostic
        self.session: Optional[GenerationSession] = None
        self._cancelled = False

    def new_session(
        self,
        mode: str = CREATE,
        existing_files: Optional[Iterable[ProjectFile]] = None,
        project_name: str = "",
    ) -> GenerationSession:
        self._cancelled = False
        self.session = GenerationSession(
            mode=mode,
            existing_files=existing_files,
            on_update=self.on_update,
            on_focus=self.on_focus,
            on_diagnostic=self.on_diagnostic,
            project_name=project_name,
        )
        return self.session

    def start(
        self,
        prompt: str,
        mode: str = CREATE,
        existing_files: Optional[Iterable[ProjectFile]] = None,
        project_name: str = "",
    ) -> GenerationResult:
        """Run one generation turn against the provider until it ends or is cancelled."""
        if self.provider is None:
            raise ValueError("StreamController.start needs a provider")
        session = self.new_session(mode, existing_files, project_name)
        messages = session.start(prompt, mode)
        stream = None
        try:
            stream = self.provider.stream(
                messages,
                max_tokens=config.MAX_NEW,
                temperature=config.TEMPERATURE,
                top_p=config.TOP_P,
                timeout_s=config.GEN_TIMEOUT,
            )
            for chunk in stream:
                if self._cancelled:
                    break
                session.on_chunk(chunk)
        except (OSError, RuntimeError) as exc:
            return self._fail(session, exc)
        finally:
            close = getattr(stream, "close", None)
            if close is not None:
                close()
        if self._cancelled:
            return session.result()
        return session.on_terminal(DONE)

    def run_events(self, session: GenerationSession, events: Iterable[str]) -> GenerationResult:
        """Drive session from raw transport payloads. EOF without a terminal event counts as done."""
        self.session = session
        try:
            for data in events:
                if self._cancelled:
                    return session.result()
                event = decode_event(data)
                if event.kind == CHUNK:
                    session.on_chunk(event.content)
                elif event.kind == DONE:
                    return session.on_terminal(DONE)
                elif event.kind == COMPLETE:
                    return session.on_terminal(COMPLETE, event.payload)
                elif event.kind == ERROR:
                    result = session.on_terminal(ERROR, event.content)
                    raise TransportError(event.content, result)
        except (OSError, RuntimeError) as exc:
            return self._fail(session, exc)
        if self._cancelled:
            return session.result()
        return session.on_terminal(DONE)

    def cancel(self):
        self._cancelled = True
        if self.session is not None:
            self.session.cancel()

    def _fail(self, session: GenerationSession, exc: Exception) -> GenerationResult:
        message = str(exc) or exc.__class__.__name__
        dbg(f"transport: stream failed: {message}")
        result = session.on_terminal(ERROR, message)
        raise TransportError(message, result) from exc
