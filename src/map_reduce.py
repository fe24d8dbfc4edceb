"""Map/Reduce summarization of overflow files (Tier 3).

Files that did not fit the Tier 2 budget are grouped into chunks and each
chunk is summarized by an injected text-generation callable. Calls run in
waves of bounded width so that peak outbound concurrency stays capped.

Architecture:
    Overflow files
        ↓
    group_into_chunks()
        ↓
    MAP: summarize chunks, one wave of <= max_parallel_calls at a time
        ↓ (failed / empty / timed-out chunk → file-list placeholder)
    REDUCE: join per-chunk texts in chunk order
        ↓
    MapReduceResult
"""

import logging
from concurrent.futures import ThreadPoolExecutor, wait
from typing import Callable, List, Optional

from chunk_grouper import group_into_chunks
from models import MapReduceResult, ParsedFileDiff
from token_estimator import estimate_tokens

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 80_000
DEFAULT_MAX_PARALLEL_CALLS = 3

# Summarize(chunk_text, target_language) -> summary text
ChunkSummarizer = Callable[[str, str], Optional[str]]
ProgressCallback = Callable[[str], None]


def format_failed_chunk(chunk: List[ParsedFileDiff]) -> str:
    """Placeholder text for a chunk whose summarization failed."""
    file_list = ", ".join(f.file_path for f in chunk)
    return f"[Summarization failed for: {file_list}]"


def chunk_text(chunk: List[ParsedFileDiff]) -> str:
    """Concatenate the diff content of every file in a chunk."""
    return "\n".join(f.content for f in chunk)


class MapReduceSummarizer:
    """Summarize overflow files chunk by chunk with bounded parallelism.

    Usage:
        summarizer = MapReduceSummarizer(summarizer=my_summarize)
        result = summarizer.summarize(overflow_files, language="english")
    """

    def __init__(
        self,
        summarizer: ChunkSummarizer,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        max_parallel_calls: int = DEFAULT_MAX_PARALLEL_CALLS,
        progress_callback: Optional[ProgressCallback] = None,
        chunk_timeout: Optional[float] = None,
    ):
        """Initialize the summarizer.

        Args:
            summarizer: Callable producing a summary for (chunk_text, language).
            chunk_size: Maximum estimated tokens per chunk.
            max_parallel_calls: Maximum concurrent calls per wave.
            progress_callback: Optional observer receiving "K/N" per chunk.
            chunk_timeout: Seconds to wait for a wave before treating its
                unfinished calls as failed. None waits for every call.
                A timed-out call keeps running in its worker thread, and
                executor threads are joined at interpreter exit, so the
                summarizer's own per-call timeout remains the hard bound.
        """
        self.summarizer = summarizer
        self.chunk_size = chunk_size
        self.max_parallel_calls = max(1, max_parallel_calls)
        self.progress_callback = progress_callback
        self.chunk_timeout = chunk_timeout

    def _report_progress(self, message: str) -> None:
        if self.progress_callback is None:
            return
        try:
            self.progress_callback(message)
        except Exception as e:
            logger.warning(f"Progress callback raised, ignoring: {e}")

    def _summarize_chunk(
        self,
        chunk: List[ParsedFileDiff],
        language: str,
        chunk_index: int,
    ) -> Optional[str]:
        """Summarize a single chunk (MAP phase). Returns None on failure."""
        content = chunk_text(chunk)
        logger.debug(
            f"Summarizing chunk {chunk_index} "
            f"({estimate_tokens(content)} tokens, {len(chunk)} files)"
        )

        try:
            summary = self.summarizer(content, language)
        except Exception as e:
            logger.error(f"Failed to summarize chunk {chunk_index}: {e}")
            return None

        if not isinstance(summary, str):
            logger.warning(
                f"Summarizer returned {type(summary).__name__} for chunk {chunk_index}, expected str"
            )
            return None

        if not summary.strip():
            logger.warning(f"Empty summary returned for chunk {chunk_index}")
            return None

        return summary.strip()

    def _run_wave(
        self,
        chunks: List[List[ParsedFileDiff]],
        start: int,
        total: int,
        language: str,
    ) -> List[Optional[str]]:
        """Run one wave of concurrent calls and wait until all settle."""
        results: List[Optional[str]] = [None] * len(chunks)
        # One executor per wave: a hung call cannot occupy the next wave's workers
        executor = ThreadPoolExecutor(max_workers=len(chunks))
        try:
            future_to_offset = {}
            for offset, chunk in enumerate(chunks):
                chunk_index = start + offset
                self._report_progress(f"{chunk_index + 1}/{total}")
                future = executor.submit(self._summarize_chunk, chunk, language, chunk_index)
                future_to_offset[future] = offset

            done, not_done = wait(future_to_offset, timeout=self.chunk_timeout)

            for future in not_done:
                future.cancel()
                logger.error(
                    f"Chunk {start + future_to_offset[future]} timed out "
                    f"after {self.chunk_timeout}s"
                )

            for future in done:
                results[future_to_offset[future]] = future.result()
        finally:
            executor.shutdown(wait=False, cancel_futures=True)

        return results

    def summarize(
        self,
        overflow_files: List[ParsedFileDiff],
        language: str,
    ) -> MapReduceResult:
        """Summarize overflow files using the map/reduce pattern.

        Args:
            overflow_files: Files that did not fit the Tier 2 budget.
            language: Target language passed through to the summarizer.

        Returns:
            MapReduceResult with the joined summaries and chunk counters.
        """
        chunks = group_into_chunks(overflow_files, self.chunk_size)
        logger.info(
            f"Map-reduce: processing {len(chunks)} chunks from {len(overflow_files)} files"
        )

        summaries: List[str] = []
        chunks_failed = 0

        for start in range(0, len(chunks), self.max_parallel_calls):
            wave = chunks[start:start + self.max_parallel_calls]
            wave_results = self._run_wave(wave, start, len(chunks), language)

            for chunk, summary in zip(wave, wave_results):
                if summary is None:
                    chunks_failed += 1
                    summaries.append(format_failed_chunk(chunk))
                else:
                    summaries.append(summary)

        if chunks_failed:
            logger.warning(f"Map-reduce: {chunks_failed}/{len(chunks)} chunks failed")

        return MapReduceResult(
            summary="\n\n".join(summaries),
            chunks_processed=len(chunks),
            chunks_failed=chunks_failed,
        )
