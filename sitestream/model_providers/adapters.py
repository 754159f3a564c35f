"""Streaming providers: OpenAI-compatible HTTP, local GGUF, and recorded replays."""

from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional
from urllib import error as urllib_error
from urllib import request as urllib_request

from .. import config
from ..transport import iter_openai_deltas
from ..utils import dbg


class OpenAICompatProvider:
    """POST /chat/completions with stream=true and yield the content deltas."""

    kind = "openai"
    name = "openai-compatible"

    def __init__(self, base_url: str = "", api_key: str = "", model: str = ""):
        self.base_url = (base_url or config.API_BASE).rstrip("/")
        self.api_key = api_key or config.API_KEY
        self.model = model or config.MODEL_NAME

    def _request(self, messages: List[Dict[str, str]], max_tokens: int, temperature: float, top_p: float):
        payload = {
            "model": self.model,
            "messages": messages,
            "max_tokens": max(1, int(max_tokens)),
            "temperature": float(temperature),
            "top_p": float(top_p),
            "stream": True,
        }
        headers = {"Content-Type": "application/json", "Accept": "text/event-stream"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return urllib_request.Request(
            self.base_url + "/chat/completions",
            data=json.dumps(payload).encode("utf-8"),
            headers=headers,
            method="POST",
        )

    def stream(
        self,
        messages: List[Dict[str, str]],
        max_tokens: int,
        temperature: float,
        top_p: float,
        timeout_s: int,
    ) -> Iterator[str]:
        req = self._request(messages, max_tokens, temperature, top_p)
        dbg(f"provider: POST {self.base_url}/chat/completions model={self.model}")
        try:
            resp = urllib_request.urlopen(req, timeout=max(1, int(timeout_s)))
        except urllib_error.HTTPError as exc:
            detail = exc.read().decode("utf-8", errors="replace") if hasattr(exc, "read") else str(exc)
            raise RuntimeError(f"{self.name} HTTP {getattr(exc, 'code', '?')}: {detail[:300]}")
        except urllib_error.URLError as exc:
            raise RuntimeError(f"{self.name} request failed: {exc.reason}")
        with resp:
            yield from iter_openai_deltas(resp)

    def status(self) -> Dict[str, Any]:
        return {"name": self.name, "kind": self.kind, "base_url": self.base_url, "model": self.model}


class LlamaCppProvider:
    """Local GGUF model through llama-cpp-python's streaming chat completion."""

    kind = "gguf_python"
    name = "llama.cpp-python"

    def __init__(self, model_path: Optional[str] = None, backend: Any = None):
        self.model_path = model_path or config.GGUF_PATH
        self.backend = backend

    def _load(self):
        if self.backend is not None:
            return self.backend
        if not self.model_path:
            raise RuntimeError("SITESTREAM_GGUF is not set")
        try:
            from llama_cpp import Llama  # type: ignore
        except ImportError as exc:
            raise SystemExit("Install with: pip install 'sitestream[local]'") from exc
        print(f"[Loading GGUF model: {Path(self.model_path).name}]", file=sys.stderr)
        self.backend = Llama(
            model_path=self.model_path,
            n_ctx=config.GGUF_CTX,
            n_threads=config.GGUF_THREADS,
            n_gpu_layers=config.GGUF_GPU_LAYERS,
            verbose=False,
        )
        print(f"[Model loaded: ctx={config.GGUF_CTX}, threads={config.GGUF_THREADS}]", file=sys.stderr)
        return self.backend

    def stream(
        self,
        messages: List[Dict[str, str]],
        max_tokens: int,
        temperature: float,
        top_p: float,
        timeout_s: int,
    ) -> Iterator[str]:
        _ = timeout_s
        llm = self._load()
        chunks = llm.create_chat_completion(
            messages=messages,
            max_tokens=max_tokens,
            temperature=temperature,
            top_p=top_p,
            stream=True,
        )
        for chunk in chunks:
            choices = chunk.get("choices") if isinstance(chunk, dict) else None
            if not choices or not isinstance(choices[0], dict):
                continue
            delta = choices[0].get("delta") or {}
            content = delta.get("content")
            if isinstance(content, str) and content:
                yield content

    def status(self) -> Dict[str, Any]:
        return {"name": self.name, "kind": self.kind, "path": self.model_path, "loaded": self.backend is not None}


class ReplayProvider:
    """Replays a recorded model response in fixed-size chunks."""

    kind = "replay"
    name = "replay"

    def __init__(self, text: str, chunk_chars: int = 0):
        self.text = text or ""
        self.chunk_chars = max(1, int(chunk_chars or config.REPLAY_CHUNK_CHARS))

    @classmethod
    def from_file(cls, path: str, chunk_chars: int = 0) -> "ReplayProvider":
        return cls(Path(path).read_text(encoding="utf-8"), chunk_chars=chunk_chars)

    def stream(
        self,
        messages: List[Dict[str, str]],
        max_tokens: int = 0,
        temperature: float = 0.0,
        top_p: float = 1.0,
        timeout_s: int = 0,
    ) -> Iterator[str]:
        _ = messages, max_tokens, temperature, top_p, timeout_s
        for i in range(0, len(self.text), self.chunk_chars):
            yield self.text[i : i + self.chunk_chars]

    def status(self) -> Dict[str, Any]:
        return {"name": self.name, "kind": self.kind, "chars": len(self.text), "chunk_chars": self.chunk_chars}


def resolve_provider(kind: str = "", replay_path: str = "", chunk_chars: int = 0):
    """Provider selected by kind (default SITESTREAM_PROVIDER)."""
    kind = (kind or config.PROVIDER).strip().lower()
    if kind == "replay":
        if not replay_path:
            raise ValueError("replay provider needs a recorded response file")
        return ReplayProvider.from_file(replay_path, chunk_chars=chunk_chars)
    if kind in ("llama_cpp", "gguf"):
        return LlamaCppProvider()
    if kind == "openai":
        return OpenAICompatProvider()
    raise ValueError(f"unknown provider: {kind}")
