"""
Serialize project files into a bounded context block for the code generator.
"""

from __future__ import annotations

import fnmatch

from collections.abc import Iterable

from core.constants import FILES_CONTEXT_TOKEN_MODEL, IGNORE_PATTERNS, WORK_DIR, get_settings
from models.agent_models import FileMap
from utils.logger import get_logger
from utils.token_utils import count_tokens

logger = get_logger("llm.files-context")

ARTIFACT_OPEN = '<boltArtifact id="code-content" title="Code Content" >'
ARTIFACT_CLOSE = "</boltArtifact>"


def to_relative_path(path: str) -> str:
    return path.replace(WORK_DIR, "", 1) if path.startswith(WORK_DIR) else path


def is_ignored(relative_path: str, patterns: Iterable[str] = IGNORE_PATTERNS) -> bool:
    """Match a project-relative path against gitignore-style patterns.

    A trailing "/" marks a directory matched at any depth; other patterns
    match either the whole path or the file name.
    """
    parts = relative_path.split("/")
    name = parts[-1]
    for pattern in patterns:
        if pattern.endswith("/"):
            directory = pattern.rstrip("/")
            if any(fnmatch.fnmatch(part, directory) for part in parts[:-1]):
                return True
            continue

        bare = pattern.removeprefix("**/")
        if fnmatch.fnmatch(relative_path, bare) or fnmatch.fnmatch(name, bare):
            return True
    return False


def get_file_paths(files: FileMap | None) -> list[str]:
    """Paths of real files in the map that survive the ignore patterns."""
    if not files:
        return []
    return [
        path
        for path, entry in files.items()
        if entry is not None and entry.type == "file" and not is_ignored(to_relative_path(path))
    ]


def _file_block(path: str, content: str) -> str:
    return f'<boltAction type="file" filePath="{path}">{content}</boltAction>'


def create_files_context(
    files: FileMap,
    use_relative_path: bool = False,
    max_tokens: int | None = None,
) -> str:
    """Wrap every kept file in a ``boltAction`` inside one ``boltArtifact``.

    Files are added in map order until ``max_tokens`` (default from
    settings) would be exceeded; the rest are dropped.
    """
    budget = max_tokens if max_tokens is not None else get_settings().files_context_max_tokens
    used = 0
    blocks: list[str] = []
    dropped: list[str] = []

    for path in get_file_paths(files):
        entry = files[path]
        if entry is None or entry.is_binary:
            continue

        display_path = to_relative_path(path) if use_relative_path else path
        block = _file_block(display_path, entry.content)
        tokens = count_tokens(block, FILES_CONTEXT_TOKEN_MODEL)
        if used + tokens > budget:
            dropped.append(display_path)
            continue

        blocks.append(block)
        used += tokens

    if dropped:
        logger.warning(f"Files context over budget, dropped {len(dropped)} files", dropped=dropped, tokens=used)

    logger.debug(f"Files context created: {len(blocks)} files", tokens=used)
    return f"{ARTIFACT_OPEN}\n" + "\n".join(blocks) + f"\n{ARTIFACT_CLOSE}"
