import os

# Debug logging
DEBUG = os.getenv("SITESTREAM_DEBUG", "").lower() in ("1", "true", "yes")
DEBUG_LOG_PATH = os.getenv(
    "SITESTREAM_DEBUG_LOG", os.path.expanduser("~/.sitestream-debug.log")
)
# SITESTREAM_DEBUG_DUMP_VERBOSE=1: write the full raw buffer to the debug log (no truncation).
DEBUG_DUMP_VERBOSE = os.getenv("SITESTREAM_DEBUG_DUMP_VERBOSE", "false").lower() in ("1", "true", "yes")
DEBUG_DUMP_MAX_LINES = int(os.getenv("SITESTREAM_DEBUG_DUMP_MAX_LINES", "20"))
DEBUG_DUMP_MAX_CHARS = int(os.getenv("SITESTREAM_DEBUG_DUMP_MAX_CHARS", "2000"))

# Streaming UX
# Glyph appended to files that are still streaming; stripped on every terminal event.
STREAM_CURSOR = os.getenv("SITESTREAM_CURSOR", "█")
DEFAULT_PROJECT_NAME = os.getenv("SITESTREAM_DEFAULT_PROJECT_NAME", "Untitled Project")
# Path used when the model ignores the markers and streams a bare HTML document.
FALLBACK_INDEX = os.getenv("SITESTREAM_FALLBACK_INDEX", "index.html")

# Patch engine
# Max lines the whitespace-normalized strategy will join into one candidate window.
NORMALIZED_MATCH_MAX_LINES = int(os.getenv("SITESTREAM_NORMALIZED_MATCH_MAX_LINES", "200"))
# Chars of a SEARCH body quoted in diagnostics.
DIAGNOSTIC_PREVIEW_CHARS = int(os.getenv("SITESTREAM_DIAGNOSTIC_PREVIEW_CHARS", "200"))

# Model provider
PROVIDER = os.getenv("SITESTREAM_PROVIDER", "openai").strip().lower()
API_BASE = os.getenv("SITESTREAM_API_BASE", "https://api.openai.com/v1").rstrip("/")
API_KEY = os.getenv("SITESTREAM_API_KEY", "")
MODEL_NAME = os.getenv("SITESTREAM_MODEL", "gpt-4o-mini")
# Optional GGUF path for local generation (llama-cpp-python backend)
GGUF_PATH = os.getenv("SITESTREAM_GGUF", "").strip() or None
GGUF_CTX = int(os.getenv("SITESTREAM_CTX_TOK", "16384"))
GGUF_THREADS = int(os.getenv("SITESTREAM_THREADS", str(os.cpu_count() or 4)))
GGUF_GPU_LAYERS = int(os.getenv("SITESTREAM_GPU_LAYERS", "-1"))
MAX_NEW = int(os.getenv("SITESTREAM_MAX_NEW", "16000"))
TEMPERATURE = float(os.getenv("SITESTREAM_TEMP", "0.4"))
TOP_P = float(os.getenv("SITESTREAM_TOP_P", "0.9"))
GEN_TIMEOUT = int(os.getenv("SITESTREAM_GEN_TIMEOUT", "300"))
# Chunk size used when replaying a recorded response.
REPLAY_CHUNK_CHARS = int(os.getenv("SITESTREAM_REPLAY_CHUNK", "96"))
