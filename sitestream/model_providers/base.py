"""Provider protocol for streaming model runtimes."""

from __future__ import annotations

from typing import Any, Dict, Iterator, List, Protocol


class ModelProvider(Protocol):
    kind: str
    name: str

    def stream(
        self,
        messages: List[Dict[str, str]],
        max_tokens: int,
        temperature: float,
        top_p: float,
        timeout_s: int,
    ) -> Iterator[str]:
        """Yield response text chunks as they arrive. Raises RuntimeError/OSError on failure."""
        ...

    def status(self) -> Dict[str, Any]:
        ...
