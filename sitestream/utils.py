import os
import sys
import time

from . import config


def dbg(message: str):
    if not config.DEBUG:
        return
    ts = time.strftime("%Y-%m-%d %H:%M:%S")
    line = f"[debug] [{ts} pid={os.getpid()}] {message}"
    print(line, file=sys.stderr)
    try:
        with open(config.DEBUG_LOG_PATH, "a") as f:
            f.write(line + "\n")
    except Exception:
        pass


def dbg_dump(label: str, text: str):
    """Dump a large payload (e.g. the raw stream buffer). Truncated unless SITESTREAM_DEBUG_DUMP_VERBOSE is set."""
    if not config.DEBUG:
        return
    try:
        content = text or ""
        with open(config.DEBUG_LOG_PATH, "a") as f:
            if config.DEBUG_DUMP_VERBOSE:
                f.write(f"\n[debug_dump] {label}\n")
                f.write(content + "\n")
            else:
                max_lines = config.DEBUG_DUMP_MAX_LINES
                max_chars = config.DEBUG_DUMP_MAX_CHARS
                lines = [ln for ln in content.splitlines() if ln.strip()]
                preview = "\n".join(lines[:max_lines])
                if len(preview) > max_chars:
                    preview = preview[:max_chars]
                truncated = len(lines) > max_lines or len(content) > max_chars
                f.write(
                    f"\n[debug_dump] {label} (len={len(content)})"
                    f"{' …(truncated)' if truncated else ''}\n"
                )
                f.write(preview + "\n")
    except Exception:
        pass


def preview(text: str, limit: int = 0) -> str:
    """One-line, length-capped rendering of text for log lines and diagnostics."""
    limit = limit or config.DIAGNOSTIC_PREVIEW_CHARS
    s = (text or "").replace("\r\n", "\n").replace("\n", "\\n")
    return (s[:limit] + "...") if len(s) > limit else s


def line_of(text: str, offset: int) -> int:
    """1-based line number of offset in text."""
    return text.count("\n", 0, max(0, offset)) + 1
