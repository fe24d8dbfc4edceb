"""File classification for diff prioritization.

Lock files produce large diffs with little value for a prompt, so their
bodies are always demoted to the summary header. Generated files (build
output, minified bundles, snapshots) are only tagged for the reader.
"""

from functools import lru_cache
from typing import Iterable, Optional, Tuple

import pathspec

# Gitignore-style patterns without a slash match the basename at any depth
LOCK_FILE_PATTERNS = [
    "package-lock.json",
    "yarn.lock",
    "pnpm-lock.yaml",
    "pnpm-lock.json",
    "Gemfile.lock",
    "Cargo.lock",
    "poetry.lock",
    "composer.lock",
    "go.sum",
    "Pipfile.lock",
    "bun.lockb",
    "shrinkwrap.yaml",
    "packages.lock.json",
    "flake.lock",
]

GENERATED_PATTERNS = [
    "*.min.js",
    "*.min.css",
    "*.d.ts",
    "*.snap",
    "*.map",
    "*.generated.*",
    "dist/",
    "build/",
    "out/",
    "coverage/",
    "__snapshots__/",
]


@lru_cache(maxsize=32)
def _compile(patterns: Tuple[str, ...]) -> pathspec.PathSpec:
    return pathspec.PathSpec.from_lines("gitwildmatch", patterns)


def _normalize(path: str) -> str:
    return path.replace("\\", "/")


def is_lock_file(path: str, extra_patterns: Optional[Iterable[str]] = None) -> bool:
    """Check whether a path is a dependency lock file.

    Args:
        path: File path from the diff header.
        extra_patterns: Additional gitignore-style lock file patterns.

    Returns:
        True if the path matches a known lock file pattern.
    """
    patterns = tuple(LOCK_FILE_PATTERNS) + tuple(extra_patterns or ())
    return _compile(patterns).match_file(_normalize(path))


def is_generated_file(path: str) -> bool:
    """Check whether a path looks like generated or build output."""
    return _compile(tuple(GENERATED_PATTERNS)).match_file(_normalize(path))
