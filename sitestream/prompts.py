"""System prompts that teach the model the streamed project format."""

from pathlib import Path
from typing import Dict, Iterable, List

from . import markers
from .scanner import language_for_path

CREATE = "create"
EDIT = "edit"

PROJECT_NAME_RULE = (
    "REQUIRED: give the project a short, creative name (about six words, "
    "ending with an emoji) based on the user's request."
)

_NEW_FILE_EXAMPLE = (
    f"{markers.PROJECT_NAME_START} Project Name {markers.PROJECT_NAME_END}\n"
    f"{markers.NEW_FILE_START}index.html{markers.NEW_FILE_END}\n"
    "```html\n"
    "<!DOCTYPE html>\n"
    "<html lang=\"en\">\n"
    "<head>\n"
    "    <meta charset=\"UTF-8\">\n"
    "    <meta name=\"viewport\" content=\"width=device-width, initial-scale=1.0\">\n"
    "    <title>Index</title>\n"
    "    <link rel=\"stylesheet\" href=\"style.css\">\n"
    "</head>\n"
    "<body>\n"
    "    <custom-navbar></custom-navbar>\n"
    "    <h1>Hello World</h1>\n"
    "    <script src=\"components/navbar.js\"></script>\n"
    "    <script src=\"script.js\"></script>\n"
    "</body>\n"
    "</html>\n"
    "```"
)

_UPDATE_EXAMPLE = (
    f"{markers.PROJECT_NAME_START} Project Name {markers.PROJECT_NAME_END}\n"
    f"{markers.UPDATE_FILE_START}index.html{markers.UPDATE_FILE_END}\n"
    f"{markers.SEARCH_START}\n"
    "    <h1>Old Title</h1>\n"
    f"{markers.DIVIDER}\n"
    "    <h1>New Title</h1>\n"
    f"{markers.REPLACE_END}"
)

INITIAL_SYSTEM_PROMPT = (
    "You are an expert UI/UX and front-end developer. "
    "Build the website the user asks for using ONLY HTML, CSS and JavaScript. "
    "Make it responsive and give it a polished, distinctive design.\n"
    "Put shared styles in style.css and shared scripts in script.js; every HTML page links both. "
    "Reusable pieces (navbar, footer, sidebar) go in components/<name>.js as native Web Components "
    "using Shadow DOM, included with a <script> tag before use. "
    "Navigate between pages with <a href>, never with onclick redirects.\n"
    f"{PROJECT_NAME_RULE}\n"
    "Do not explain what you did. Return ONLY the result in this format:\n"
    f"1. {markers.PROJECT_NAME_START}, the project name, then {markers.PROJECT_NAME_END}.\n"
    "2. Files in this order: index.html FIRST, then style.css, then script.js, then components.\n"
    f"3. For each file: {markers.NEW_FILE_START.strip()} <path> {markers.NEW_FILE_END.strip()}, "
    "then the full file inside a fenced code block with its language tag, closed with ```.\n"
    "Example:\n"
    f"{_NEW_FILE_EXAMPLE}\n"
    "CRITICAL: the first file MUST be index.html."
)

FOLLOW_UP_SYSTEM_PROMPT = (
    "You are an expert UI/UX and front-end developer modifying an existing website "
    "(HTML, CSS, JavaScript). Apply the user's requested changes.\n"
    "Output ONLY the changes, as SEARCH/REPLACE blocks inside UPDATE_FILE sections. "
    "Do NOT output whole existing files. A brand-new file uses the NEW_FILE format "
    "with its full content in a fenced code block.\n"
    "Do not explain the changes. Update format rules:\n"
    f"1. {markers.PROJECT_NAME_START}, the EXACT current project name, {markers.PROJECT_NAME_END}. "
    "Do not rename the project unless asked.\n"
    f"2. {markers.UPDATE_FILE_START.strip()} <path> {markers.UPDATE_FILE_END.strip()} for each file you modify.\n"
    f"3. Then one or more blocks: {markers.SEARCH_START}, the exact current lines, "
    f"{markers.DIVIDER}, the new lines, {markers.REPLACE_END}.\n"
    "4. The SEARCH lines must match the current code exactly, including indentation.\n"
    "5. To insert at the very beginning of a file, leave SEARCH empty. To insert elsewhere, "
    "SEARCH the line before the insertion point and repeat it in REPLACE with the new lines.\n"
    "6. To delete code, leave REPLACE empty.\n"
    "Example:\n"
    f"{_UPDATE_EXAMPLE}"
)


def _ext(path: str) -> str:
    return Path(path).suffix.lower().lstrip(".")


def _fence_tag(path: str) -> str:
    lang = language_for_path(path)
    return _ext(path) if lang == "unknown" else lang


def system_prompt_for(mode: str) -> str:
    if mode == EDIT:
        return FOLLOW_UP_SYSTEM_PROMPT
    return INITIAL_SYSTEM_PROMPT


def format_current_files(files: Iterable) -> str:
    """Render the current project so SEARCH blocks can quote it exactly."""
    sections = []
    for f in files:
        path = str(getattr(f, "path", "") or "").strip()
        if not path:
            continue
        content = str(getattr(f, "content", "") or "")
        sections.append(f"{path}\n```{_fence_tag(path)}\n{content}\n```")
    return "\n\n".join(sections)


def build_messages(prompt: str, mode: str = CREATE, existing_files: Iterable = (), project_name: str = "") -> List[Dict[str, str]]:
    """Chat messages for one generation turn."""
    messages = [{"role": "system", "content": system_prompt_for(mode)}]
    if mode == EDIT:
        current = format_current_files(existing_files)
        header = f"Project name: {project_name}\n\n" if project_name else ""
        messages.append(
            {
                "role": "user",
                "content": f"{header}The current project files are:\n\n{current}",
            }
        )
    messages.append({"role": "user", "content": (prompt or "").strip()})
    return messages
