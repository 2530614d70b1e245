"""Build file records from a directory tree for the scan entrypoints."""

import os
from collections.abc import Iterator
from pathlib import Path

from .matcher import EXTENSION_LANGUAGES
from .models import FileRecord

# Package-manager install folders, walked only on request
DEPENDENCY_DIRS = {"node_modules", "bower_components", "jspm_packages"}

SKIP_DIRS = DEPENDENCY_DIRS | {
    ".git", "venv", ".venv", "__pycache__", "dist", "build",
    ".next", ".nuxt", "coverage", ".coverage", "target",
    ".pytest_cache", ".mypy_cache", ".tox", ".eggs", ".terraform",
}

MAX_FILE_SIZE = 1024 * 1024
MAX_FILES = 1000


def is_binary_file(file_path: Path) -> bool:
    try:
        with open(file_path, "rb") as f:
            return b"\x00" in f.read(1024)
    except (IOError, OSError):
        return True


def walk_repo(
    repo_path: str | Path,
    max_file_size: int = MAX_FILE_SIZE,
    max_files: int = MAX_FILES,
    extra_skip: set[str] | None = None,
    include_dependencies: bool = False,
) -> Iterator[FileRecord]:
    """Yield a record for each scannable source file under ``repo_path``.

    ``vendor`` folders are always walked so vendored code can be labelled as
    third party. Installed dependency folders (``node_modules`` and similar)
    are skipped unless ``include_dependencies`` is set, so a default walk
    yields no direct or transitive dependency findings. Paths in the
    records are relative to ``repo_path`` with forward slashes.

    Args:
        repo_path: Root directory.
        max_file_size: Files larger than this many bytes are skipped.
        max_files: Stop after this many records.
        extra_skip: Additional directory names to skip.
        include_dependencies: Also walk installed dependency folders.
    """
    repo_path = Path(repo_path)
    if not repo_path.is_dir():
        return

    skip = SKIP_DIRS - DEPENDENCY_DIRS if include_dependencies else SKIP_DIRS
    skip = skip | (extra_skip or set())
    count = 0

    for root, dirs, filenames in os.walk(repo_path):
        dirs[:] = sorted(d for d in dirs if d not in skip)

        for name in sorted(filenames):
            file_path = Path(root) / name
            language = EXTENSION_LANGUAGES.get(file_path.suffix.lower())
            if language is None:
                continue

            try:
                if file_path.stat().st_size > max_file_size:
                    continue
            except OSError:
                continue

            if is_binary_file(file_path):
                continue

            try:
                content = file_path.read_text(encoding="utf-8", errors="ignore")
            except (IOError, OSError):
                continue

            yield FileRecord(
                path=file_path.relative_to(repo_path).as_posix(),
                content=content,
                language=language,
                line_count=len(content.split("\n")) if content else 0,
            )

            count += 1
            if count >= max_files:
                return
