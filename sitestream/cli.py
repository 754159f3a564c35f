"""Command-line entrypoint: generate, edit or replay a project and write its files."""

import argparse
import json
import sys
from pathlib import Path
from typing import List, Optional

from .assembler import ProjectFile
from .model_providers import ReplayProvider, resolve_provider
from .prompts import CREATE, EDIT
from .scanner import normalize_path
from .search_replace import EditDiagnostic
from .session import GenerationError, GenerationResult, TransportError
from .transport import StreamController

PROJECT_META = ".sitestream.json"
_PROJECT_SUFFIXES = {".html", ".htm", ".css", ".js"}


def load_project(root: Path):
    """ProjectFiles under root (html/css/js only) and the saved project name, if any."""
    files: List[ProjectFile] = []
    for path in sorted(root.rglob("*")):
        if not path.is_file() or path.suffix.lower() not in _PROJECT_SUFFIXES:
            continue
        rel = path.relative_to(root).as_posix()
        files.append(ProjectFile(path=rel, content=path.read_text(encoding="utf-8", errors="replace")))
    name = ""
    meta = root / PROJECT_META
    if meta.is_file():
        try:
            name = str(json.loads(meta.read_text(encoding="utf-8")).get("projectName") or "")
        except (json.JSONDecodeError, AttributeError):
            print(f"[Warning: ignoring unreadable {meta}]", file=sys.stderr)
    # index.html first, the order the model is asked to emit files in
    files.sort(key=lambda f: (f.path != "index.html", f.path))
    return files, name


def write_project(result: GenerationResult, out_dir: Path) -> None:
    out_dir.mkdir(parents=True, exist_ok=True)
    for f in result.files:
        rel = normalize_path(f.path)
        if not rel:
            continue
        target = out_dir / rel
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(f.content, encoding="utf-8")
    (out_dir / PROJECT_META).write_text(
        json.dumps({"projectName": result.project_name}, indent=2) + "\n", encoding="utf-8"
    )
    print(f"[Wrote {len(result.files)} file(s) to {out_dir}]", file=sys.stderr)


def summarize(result: GenerationResult) -> dict:
    return {
        "projectName": result.project_name,
        "status": result.status,
        "files": [
            {"path": f.path, "language": f.language, "bytes": len(f.content.encode("utf-8"))}
            for f in result.files
        ],
        "updatedLines": result.updated_lines,
        "diagnostics": [d.to_dict() for d in result.diagnostics],
    }


def _on_focus(path: str) -> None:
    print(f"[streaming {path}]", file=sys.stderr)


def _on_diagnostic(diag: EditDiagnostic) -> None:
    print(f"[warning: {diag.message}]", file=sys.stderr)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="sitestream", description="Stream a multi-file website from a language model")
    sub = parser.add_subparsers(dest="command", required=True)

    gen = sub.add_parser("generate", help="Create a new project from a prompt")
    gen.add_argument("prompt", help="What to build")
    gen.add_argument("--out", default="site", help="Output directory")
    gen.add_argument("--provider", default="", help="openai | llama_cpp (default SITESTREAM_PROVIDER)")

    edit = sub.add_parser("edit", help="Apply a follow-up request to an existing project")
    edit.add_argument("prompt", help="What to change")
    edit.add_argument("--project", required=True, help="Existing project directory")
    edit.add_argument("--out", default="", help="Output directory (default: the project directory)")
    edit.add_argument("--provider", default="", help="openai | llama_cpp (default SITESTREAM_PROVIDER)")

    replay = sub.add_parser("replay", help="Stream a recorded model response through the parser")
    replay.add_argument("file", help="Recorded response text")
    replay.add_argument("--edit", default="", help="Seed this project directory and replay as an edit")
    replay.add_argument("--chunk", type=int, default=0, help="Chunk size in characters")
    replay.add_argument("--out", default="", help="Write the resulting files here")
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    existing: List[ProjectFile] = []
    project_name = ""
    mode = CREATE
    prompt = ""
    out = getattr(args, "out", "")

    if args.command == "generate":
        provider = resolve_provider(args.provider)
        prompt = args.prompt
    elif args.command == "edit":
        provider = resolve_provider(args.provider)
        existing, project_name = load_project(Path(args.project))
        if not existing:
            print(f"[Error: no project files found in {args.project}]", file=sys.stderr)
            return 2
        mode = EDIT
        prompt = args.prompt
        out = out or args.project
    else:
        provider = ReplayProvider.from_file(args.file, chunk_chars=args.chunk)
        if args.edit:
            existing, project_name = load_project(Path(args.edit))
            mode = EDIT

    print(f"[Provider: {provider.name}, mode={mode}]", file=sys.stderr)
    controller = StreamController(provider, on_focus=_on_focus, on_diagnostic=_on_diagnostic)
    code = 0
    try:
        result = controller.start(prompt, mode=mode, existing_files=existing, project_name=project_name)
    except TransportError as exc:
        print(f"[Error: stream failed: {exc}; keeping partial output]", file=sys.stderr)
        result = exc.result
        code = 1
    except GenerationError as exc:
        print(f"[Error: {exc}]", file=sys.stderr)
        result = exc.result
        out = ""
        code = 1
    if result is None:
        return 1
    if out:
        write_project(result, Path(out))
    print(json.dumps(summarize(result), indent=2))
    return code


if __name__ == "__main__":
    sys.exit(main())
