"""Split a raw unified diff into per-file sections.

Sections start at ``diff --git a/<path> b/<path>`` header lines and run to the
next header. Each section keeps its exact text so it can be re-emitted
verbatim; line statistics come from the unidiff library.

An empty result means no file boundary was recognized. Callers must treat
that as "unparseable", not as "no changes".
"""

import logging
import re
from typing import Iterable, List, Optional, Tuple

from unidiff import PatchSet
from unidiff.errors import UnidiffParseError

from file_classification import is_generated_file, is_lock_file
from models import ParsedFileDiff
from token_estimator import CHARS_PER_TOKEN, estimate_tokens

logger = logging.getLogger(__name__)

FILE_HEADER_RE = re.compile(r"^diff --git a/(.+?) b/(.+)$", re.MULTILINE)


def count_changed_lines(section: str) -> Tuple[int, int]:
    """Count added and removed lines in one file section.

    Args:
        section: Diff text for a single file.

    Returns:
        Tuple of (additions, deletions). Sections unidiff cannot parse
        (truncated hunks, malformed headers) report (0, 0).
    """
    try:
        patch_set = PatchSet(section)
    except UnidiffParseError as e:
        logger.debug(f"Could not parse diff section for line stats: {e}")
        return 0, 0

    additions = sum(patched_file.added for patched_file in patch_set)
    deletions = sum(patched_file.removed for patched_file in patch_set)
    return additions, deletions


def parse_diff_into_files(
    raw_diff: Optional[str],
    chars_per_token: int = CHARS_PER_TOKEN,
    extra_lock_files: Optional[Iterable[str]] = None,
) -> List[ParsedFileDiff]:
    """Parse a unified diff into one ParsedFileDiff per file section.

    Args:
        raw_diff: Raw git diff output.
        chars_per_token: Ratio used for each section's token estimate.
        extra_lock_files: Additional lock file patterns.

    Returns:
        Files in order of first appearance, or an empty list when no
        ``diff --git`` header is found.
    """
    if not raw_diff or not raw_diff.strip():
        return []

    headers = list(FILE_HEADER_RE.finditer(raw_diff))
    if not headers:
        return []

    extra = tuple(extra_lock_files or ())
    files: List[ParsedFileDiff] = []

    for i, match in enumerate(headers):
        end = headers[i + 1].start() if i + 1 < len(headers) else len(raw_diff)
        content = raw_diff[match.start():end]

        source_path = match.group(1)
        target_path = match.group(2).rstrip("\r")
        old_path = source_path if source_path != target_path else None

        additions, deletions = count_changed_lines(content)

        files.append(
            ParsedFileDiff(
                file_path=target_path,
                content=content,
                token_count=estimate_tokens(content, chars_per_token),
                is_lock_file=is_lock_file(target_path, extra),
                additions=additions,
                deletions=deletions,
                is_generated=is_generated_file(target_path),
                old_path=old_path,
            )
        )

    return files
