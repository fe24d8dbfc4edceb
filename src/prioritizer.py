"""Tier 2: smart prioritization of parsed file diffs.

Every file is listed in a change-summary header so the reader sees the full
file list. Full diff bodies follow for as many files as fit the budget:
source files first in diff order, lock files never. Files that got no body
are returned as overflow for Tier 3 summarization.
"""

from typing import List

from models import AssemblyResult, ParsedFileDiff
from token_estimator import CHARS_PER_TOKEN, estimate_tokens


def _file_summary_line(file: ParsedFileDiff) -> str:
    line = f"- {file.file_path} (+{file.additions}/-{file.deletions})"
    if file.is_rename:
        line += f" (renamed from {file.old_path})"
    if file.is_lock_file:
        line += " [LOCK]"
    elif file.is_generated:
        line += " [generated]"
    return line


def build_change_summary_header(files: List[ParsedFileDiff]) -> str:
    """Build a header listing all files with their change stats.

    Args:
        files: Parsed file diffs in diff order.

    Returns:
        Markdown header, one line per file, ending with a newline.
    """
    total_additions = sum(f.additions for f in files)
    total_deletions = sum(f.deletions for f in files)

    lines = [
        f"## Change Summary ({len(files)} files, +{total_additions}/-{total_deletions})",
        "",
    ]
    lines.extend(_file_summary_line(f) for f in files)
    lines.append("")
    return "\n".join(lines)


def prioritize_files(files: List[ParsedFileDiff]) -> List[ParsedFileDiff]:
    """Order files for inclusion: non-lock files first, diff order kept.

    ``sorted`` is stable, so identical input always yields identical order.
    """
    return sorted(files, key=lambda f: f.is_lock_file)


def assemble_prioritized_diff(
    files: List[ParsedFileDiff],
    summary_header: str,
    token_budget: int,
    chars_per_token: int = CHARS_PER_TOKEN,
) -> AssemblyResult:
    """Assemble header plus as many full file diffs as fit the budget.

    Args:
        files: Parsed file diffs.
        summary_header: Pre-built change summary header.
        token_budget: Maximum tokens for the assembled result.
        chars_per_token: Ratio used for the header's token estimate.

    Returns:
        AssemblyResult with the assembled text and overflow files. When the
        budget cannot hold the header, only the header is emitted and every
        file overflows.
    """
    running_tokens = estimate_tokens(summary_header, chars_per_token)
    header_fits = running_tokens <= token_budget

    included: List[str] = []
    overflow: List[ParsedFileDiff] = []

    for file in prioritize_files(files):
        if (
            header_fits
            and not file.is_lock_file
            and running_tokens + file.token_count <= token_budget
        ):
            included.append(file.content)
            running_tokens += file.token_count
        else:
            overflow.append(file)

    return AssemblyResult(
        content=summary_header + "".join(included),
        included_count=len(included),
        summary_only_count=len(overflow),
        overflow_files=overflow,
    )
