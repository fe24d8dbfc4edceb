"""Hybrid large-diff processing orchestrator.

Picks the first tier that fits, in strict order:
- Tier 1 (Normal): the diff fits the budget and is passed through as-is
- Tier 2 (Smart Prioritization): parse by file, list every file in a summary
  header, include full bodies for as many source files as fit
- Tier 3 (Map-Reduce): summarize the overflow files through the injected
  summarizer and append the summaries

A diff without recognizable file headers is truncated by characters and also
reported as Tier 1, since no file-aware processing happened.
"""

import logging
import math
from typing import Optional

from config import TokenBudgetConfig
from diff_parser import parse_diff_into_files
from map_reduce import ChunkSummarizer, MapReduceSummarizer, ProgressCallback
from models import DiffProcessResult, DiffTier
from prioritizer import assemble_prioritized_diff, build_change_summary_header
from token_estimator import estimate_tokens, truncate_to_token_limit

logger = logging.getLogger(__name__)

SUMMARIZED_SECTION_HEADING = "## Summarized Changes (files not included in full diff)"


class DiffProcessor:
    """Fit a raw diff into a token budget across three tiers."""

    def __init__(
        self,
        summarizer: Optional[ChunkSummarizer] = None,
        language: str = "english",
        progress_callback: Optional[ProgressCallback] = None,
        config: Optional[TokenBudgetConfig] = None,
    ):
        """
        Args:
            summarizer: Summarize(chunk_text, language) callable, required for Tier 3.
            language: Target language passed through to the summarizer.
            progress_callback: Optional observer for map-reduce progress.
            config: Budget constants; defaults when omitted.
        """
        self.summarizer = summarizer
        self.language = language
        self.progress_callback = progress_callback
        self.config = config or TokenBudgetConfig()

    def safe_budget(self, token_budget: Optional[int]) -> int:
        """Apply the input ceiling and safety margin to a caller budget."""
        if token_budget is None:
            token_budget = self.config.tier2_threshold
        budget = min(token_budget, self.config.max_input_tokens)
        return math.floor(budget * self.config.safety_margin)

    def process(self, raw_diff: Optional[str], token_budget: Optional[int] = None) -> DiffProcessResult:
        """Process a raw diff through the appropriate tier.

        Args:
            raw_diff: The untruncated diff text.
            token_budget: Maximum tokens for the result. Defaults to the
                configured Tier 2 threshold. Zero or negative budgets force
                the Tier 2/3 paths.

        Returns:
            DiffProcessResult with the processed text and tier metadata.
        """
        raw_diff = raw_diff or ""
        chars_per_token = self.config.chars_per_token
        safe_budget = self.safe_budget(token_budget)
        raw_tokens = estimate_tokens(raw_diff, chars_per_token)

        # Tier 1: fits within budget
        if raw_tokens <= safe_budget:
            logger.info(f"Diff processing: Tier 1 ({raw_tokens} tokens, budget {safe_budget})")
            return DiffProcessResult(processed_diff=raw_diff, tier=DiffTier.NORMAL)

        files = parse_diff_into_files(
            raw_diff,
            chars_per_token=chars_per_token,
            extra_lock_files=self.config.extra_lock_files,
        )

        if not files:
            logger.warning("Could not parse diff into files, falling back to truncation")
            return DiffProcessResult(
                processed_diff=truncate_to_token_limit(raw_diff, safe_budget, chars_per_token),
                tier=DiffTier.NORMAL,
            )

        # Tier 2: smart prioritization
        header = build_change_summary_header(files)
        assembled = assemble_prioritized_diff(files, header, safe_budget, chars_per_token)
        logger.info(
            f"Diff processing: Tier 2 applied ({len(files)} files, "
            f"{assembled.included_count} included, {assembled.summary_only_count} summary-only)"
        )

        if not assembled.overflow_files or self.summarizer is None:
            return DiffProcessResult(
                processed_diff=assembled.content,
                tier=DiffTier.SMART_PRIORITIZED,
                total_files=len(files),
                included_files=assembled.included_count,
                excluded_files=assembled.summary_only_count,
            )

        # Tier 3: map-reduce over the overflow files
        logger.info(
            f"Diff processing: Tier 3 triggered ({len(assembled.overflow_files)} overflow files)"
        )
        map_reduce = MapReduceSummarizer(
            summarizer=self.summarizer,
            chunk_size=self.config.map_reduce_chunk_size,
            max_parallel_calls=self.config.max_parallel_calls,
            progress_callback=self.progress_callback,
            chunk_timeout=self.config.chunk_timeout,
        )
        result = map_reduce.summarize(assembled.overflow_files, self.language)

        combined = f"{assembled.content}\n\n{SUMMARIZED_SECTION_HEADING}\n\n{result.summary}"

        return DiffProcessResult(
            processed_diff=combined,
            tier=DiffTier.MAP_REDUCE,
            total_files=len(files),
            included_files=assembled.included_count,
            excluded_files=assembled.summary_only_count,
            chunks_processed=result.chunks_processed,
            chunks_failed=result.chunks_failed,
        )


def process_diff(
    raw_diff: Optional[str],
    token_budget: Optional[int] = None,
    summarizer: Optional[ChunkSummarizer] = None,
    language: str = "english",
    config: Optional[TokenBudgetConfig] = None,
) -> DiffProcessResult:
    """Process a diff with a one-off DiffProcessor."""
    processor = DiffProcessor(summarizer=summarizer, language=language, config=config)
    return processor.process(raw_diff, token_budget)
