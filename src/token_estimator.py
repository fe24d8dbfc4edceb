"""Token estimation and budget helpers.

Uses a simple heuristic of ~4 characters per token, rounded up, so that
estimates are monotonic in text length and any non-empty text costs at
least one token.
"""

import math
from typing import Optional

from config import TokenBudgetConfig

CHARS_PER_TOKEN = 4

# Output token allocations by content type (CJK output needs the headroom)
OUTPUT_TOKENS = {
    "commit_message": 4000,
    "pr_title": 500,
    "pr_body": 8000,
    "issue": 12000,
}


def estimate_tokens(text: Optional[str], chars_per_token: int = CHARS_PER_TOKEN) -> int:
    """Estimate token count from text.

    Args:
        text: Text to estimate.
        chars_per_token: Characters per token ratio.

    Returns:
        ``ceil(len(text) / chars_per_token)``, 0 for empty or missing text.
    """
    if not text:
        return 0
    return math.ceil(len(text) / max(chars_per_token, 1))


def fits_budget(text: Optional[str], max_tokens: int, chars_per_token: int = CHARS_PER_TOKEN) -> bool:
    """Check if text fits within token budget."""
    return estimate_tokens(text, chars_per_token) <= max_tokens


def truncate_to_token_limit(
    text: Optional[str],
    max_tokens: int,
    chars_per_token: int = CHARS_PER_TOKEN,
) -> str:
    """Truncate text to fit within a token limit.

    Returns the text unchanged when it already fits, otherwise its first
    ``max_tokens * chars_per_token`` characters. A negative limit is treated
    as zero.
    """
    if not text:
        return ""
    if fits_budget(text, max_tokens, chars_per_token):
        return text
    max_chars = max(max_tokens, 0) * max(chars_per_token, 1)
    return text[:max_chars]


def validate_allocation(
    input_tokens: int,
    output_tokens: int,
    config: Optional[TokenBudgetConfig] = None,
) -> bool:
    """Check that input + output + reasoning buffer fits the context window.

    Example:
        validate_allocation(180_000, 8_000)  # 198K <= 400K -> True
    """
    config = config or TokenBudgetConfig()
    total = input_tokens + output_tokens + config.reasoning_buffer
    return total <= config.context_limit


def get_max_input_tokens(output_tokens: int, config: Optional[TokenBudgetConfig] = None) -> int:
    """Get maximum safe input tokens for a given output allocation."""
    config = config or TokenBudgetConfig()
    return min(
        config.max_input_tokens,
        config.context_limit - output_tokens - config.reasoning_buffer,
    )
