"""LiteLLM-backed chunk summarizer.

Implements the ``Summarize(chunk_text, language) -> str`` collaborator used by
the map-reduce stage. Any model string LiteLLM understands works, e.g.
``gpt-4o-mini``, ``anthropic/claude-3-5-haiku-latest`` or a Bedrock model id.
"""

import logging
import re
import threading
import time
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

import litellm

from diff_parser import FILE_HEADER_RE
from prompts import SYSTEM_PROMPT, render_chunk_summary_prompt

logger = logging.getLogger(__name__)

# Status codes matched as whole numbers so "4290 tokens" is not a rate limit
_AUTH_STATUS_RE = re.compile(r"\b(401|403)\b")
_TRANSIENT_STATUS_RE = re.compile(r"\b(429|500|502|503|504)\b")

_AUTH_ERRORS = (litellm.AuthenticationError, litellm.PermissionDeniedError)
_TRANSIENT_ERRORS = (
    litellm.RateLimitError,
    litellm.InternalServerError,
    litellm.ServiceUnavailableError,
    litellm.APIConnectionError,
    litellm.Timeout,
)


@dataclass
class LLMUsage:
    """Token and latency figures for one completion."""
    input_tokens: int = 0
    output_tokens: int = 0
    latency_ms: float = 0.0
    model: str = ""


@dataclass
class AggregateUsage:
    """Per-model totals across all completions of a summarizer."""
    models: Dict[str, LLMUsage] = field(default_factory=dict)
    calls: Dict[str, int] = field(default_factory=dict)

    @property
    def total_calls(self) -> int:
        return sum(self.calls.values())

    def add(self, usage: LLMUsage) -> None:
        totals = self.models.setdefault(usage.model, LLMUsage(model=usage.model))
        totals.input_tokens += usage.input_tokens
        totals.output_tokens += usage.output_tokens
        totals.latency_ms += usage.latency_ms
        self.calls[usage.model] = self.calls.get(usage.model, 0) + 1

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON output."""
        return {
            model: {
                "calls": self.calls[model],
                "input_tokens": totals.input_tokens,
                "output_tokens": totals.output_tokens,
                "latency_ms": round(totals.latency_ms, 0),
            }
            for model, totals in self.models.items()
        }


def is_auth_error(error: Exception) -> bool:
    """Authentication and permission failures are never retried."""
    if isinstance(error, _AUTH_ERRORS):
        return True
    message = str(error).lower()
    return bool(_AUTH_STATUS_RE.search(message)) or "authentication" in message


def is_transient_error(error: Exception) -> bool:
    """Rate limits, server errors and dropped connections are worth a retry."""
    if isinstance(error, _TRANSIENT_ERRORS):
        return True
    message = str(error).lower()
    return bool(_TRANSIENT_STATUS_RE.search(message)) or "rate limit" in message


def call_llm_with_retry(
    model: str,
    prompt: str,
    temperature: float,
    max_tokens: int,
    timeout: int,
    max_retries: int = 3,
    system_prompt: Optional[str] = None,
) -> Tuple[str, LLMUsage]:
    """Call LLM with exponential backoff retry.

    Returns:
        Tuple of (response content, usage statistics)

    Raises:
        RuntimeError: On authentication failure, empty response, or when
            all attempts fail
    """
    messages = []
    if system_prompt:
        messages.append({"role": "system", "content": system_prompt})
    messages.append({"role": "user", "content": prompt})

    for attempt in range(1, max_retries + 1):
        try:
            start_time = time.perf_counter()
            response = litellm.completion(
                model=model,
                messages=messages,
                temperature=temperature,
                max_tokens=max_tokens,
                timeout=timeout,
            )
            latency_ms = (time.perf_counter() - start_time) * 1000

            content = response.choices[0].message.content
            if not content or not content.strip():
                raise RuntimeError("LLM returned empty response")

            return content, LLMUsage(
                input_tokens=response.usage.prompt_tokens,
                output_tokens=response.usage.completion_tokens,
                latency_ms=latency_ms,
                model=model,
            )

        except Exception as e:
            if is_auth_error(e):
                raise RuntimeError(f"Authentication failed: {e}") from e
            if attempt == max_retries or not is_transient_error(e):
                raise RuntimeError(f"LLM call failed after {attempt} attempts: {e}") from e

            wait_time = 2 ** attempt
            logger.warning(f"{model} attempt {attempt} failed ({e}), retrying in {wait_time}s")
            time.sleep(wait_time)

    raise RuntimeError(f"LLM call failed: max_retries must be positive, got {max_retries}")


def extract_file_paths(chunk_text: str) -> List[str]:
    """List the file paths named by ``diff --git`` headers in a chunk."""
    return [m.group(2).rstrip("\r") for m in FILE_HEADER_RE.finditer(chunk_text)]


class LLMChunkSummarizer:
    """Summarize diff chunks through LiteLLM.

    Instances are callable with ``(chunk_text, language)`` and can be passed
    directly as the summarizer of a DiffProcessor. Usage is aggregated per
    instance and is safe to update from the map-reduce worker threads.
    """

    def __init__(
        self,
        model: str,
        temperature: float = 0.2,
        max_tokens: int = 2000,
        timeout: int = 120,
        max_retries: int = 3,
    ):
        """Initialize the summarizer.

        Args:
            model: LiteLLM model string.
            temperature: Sampling temperature.
            max_tokens: Max output tokens per summary.
            timeout: Per-call timeout in seconds.
            max_retries: Attempts per chunk for transient errors.

        Raises:
            ValueError: If model is empty or a limit is not positive.
        """
        if not model or not model.strip():
            raise ValueError("A model is required for chunk summarization")
        if max_tokens < 1 or timeout < 1 or max_retries < 1:
            raise ValueError("max_tokens, timeout and max_retries must be positive")

        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.timeout = timeout
        self.max_retries = max_retries
        self.usage = AggregateUsage()
        self._usage_lock = threading.Lock()

    def __call__(self, chunk_text: str, language: str) -> str:
        """Summarize one chunk of diff text in the given language."""
        prompt = render_chunk_summary_prompt(
            chunk_text,
            language,
            file_paths=extract_file_paths(chunk_text),
        )
        result, usage = call_llm_with_retry(
            model=self.model,
            prompt=prompt,
            temperature=self.temperature,
            max_tokens=self.max_tokens,
            timeout=self.timeout,
            max_retries=self.max_retries,
            system_prompt=SYSTEM_PROMPT,
        )

        with self._usage_lock:
            self.usage.add(usage)

        return result.strip()
