"""Group overflow files into token-bounded chunks.

Greedy and order-preserving: files are packed into the current chunk until
the next one would exceed the limit. A file is never split across chunks; a
file larger than the limit gets a chunk of its own.
"""

from typing import List

from models import ParsedFileDiff


def group_into_chunks(
    files: List[ParsedFileDiff],
    chunk_token_limit: int,
) -> List[List[ParsedFileDiff]]:
    """Partition files into chunks whose token sum fits the limit.

    Args:
        files: Files to group, in the order they should be summarized.
        chunk_token_limit: Maximum estimated tokens per chunk.

    Returns:
        List of chunks, each a non-empty list of files. Concatenating the
        chunks reproduces ``files`` exactly.
    """
    chunks: List[List[ParsedFileDiff]] = []
    current: List[ParsedFileDiff] = []
    current_tokens = 0

    for file in files:
        if file.token_count > chunk_token_limit:
            if current:
                chunks.append(current)
                current = []
                current_tokens = 0
            chunks.append([file])
            continue

        if current and current_tokens + file.token_count > chunk_token_limit:
            chunks.append(current)
            current = []
            current_tokens = 0

        current.append(file)
        current_tokens += file.token_count

    if current:
        chunks.append(current)

    return chunks
