#!/usr/bin/env python3
"""Fit a git diff into an LLM token budget.

Reads a unified diff from INPUT_DIFF_FILE (or stdin), runs it through the
three-tier DiffProcessor and writes the processed diff to INPUT_OUTPUT_FILE
(or stdout) plus tier metadata as GitHub Actions outputs. Tier 3
summarization is enabled when INPUT_MODEL is set.

Stdout carries nothing but the processed diff; status lines and workflow
commands go to stderr, so ``fit-diff < big.diff > small.diff`` is safe.
"""

import json
import logging
import os
import sys
import uuid
from typing import Any, Callable

from config import TokenBudgetConfig
from diff_processor import DiffProcessor
from llm_summarizer import LLMChunkSummarizer
from models import DiffProcessResult, DiffTier

_TYPE_LABELS = {int: "integer", float: "float"}


def env_str(name: str, default: str = "") -> str:
    """Read an action input, falling back when unset."""
    return os.environ.get(name, default)


def env_number(name: str, default: Any, cast: Callable[[str], Any]) -> Any:
    """Read a numeric action input; empty values keep the default.

    Raises:
        ValueError: If the value cannot be converted
    """
    value = os.environ.get(name, "")
    if not value.strip():
        return default
    try:
        return cast(value)
    except ValueError as e:
        label = _TYPE_LABELS.get(cast, cast.__name__)
        raise ValueError(f"Invalid {label} value for {name}: {value}") from e


def status(message: str) -> None:
    """Print a status line to stderr."""
    print(message, file=sys.stderr)


def workflow_command(command: str, message: str = "") -> None:
    """Emit a GitHub Actions workflow command (::group::, ::warning::, ...)."""
    status(f"::{command}::{message}")


def set_output(name: str, value: str) -> None:
    """Set a GitHub Actions output."""
    github_output = os.environ.get("GITHUB_OUTPUT")
    if not github_output:
        # Local runs: show a preview instead
        preview = value[:100] + "..." if len(value) > 100 else value
        status(f"OUTPUT {name}={preview}")
        return

    with open(github_output, "a") as f:
        if "\n" in value:
            # Random delimiter so diff content cannot close the heredoc early
            delimiter = f"ghadelimiter_{uuid.uuid4().hex}"
            f.write(f"{name}<<{delimiter}\n{value}\n{delimiter}\n")
        else:
            f.write(f"{name}={value}\n")


def load_config() -> TokenBudgetConfig:
    """Build the budget config from INPUT_BUDGET_CONFIG YAML plus env overrides.

    Any INPUT_<FIELD> variable that is set wins over the YAML value, even
    when it repeats the default.

    Raises:
        ValueError: If the YAML or any override is invalid
    """
    config = TokenBudgetConfig.from_yaml(env_str("INPUT_BUDGET_CONFIG"))
    merged = config.to_dict()
    merged.update(TokenBudgetConfig.env_overrides())
    return TokenBudgetConfig.from_dict(merged)


def read_diff(path: str) -> str:
    """Read the diff from a file, or from stdin when path is empty or '-'."""
    if not path or path == "-":
        return sys.stdin.read()
    with open(path, "r", encoding="utf-8", errors="replace") as f:
        return f.read()


def write_result(path: str, content: str) -> None:
    """Write processed diff to a file, or to stdout when path is empty."""
    if not path:
        sys.stdout.write(content)
        if content and not content.endswith("\n"):
            sys.stdout.write("\n")
        sys.stdout.flush()
        return
    with open(path, "w", encoding="utf-8") as f:
        f.write(content)


def report(result: DiffProcessResult, raw_diff: str) -> None:
    """Warn about any reduction applied to the diff."""
    if result.tier == DiffTier.SMART_PRIORITIZED:
        workflow_command(
            "warning", f"Diff was prioritized: {result.excluded_files} files summarized by name only"
        )
    elif result.tier == DiffTier.MAP_REDUCE:
        workflow_command(
            "warning", f"Diff was heavily summarized: {result.excluded_files} files summarized"
        )
    elif raw_diff and result.processed_diff != raw_diff:
        workflow_command("warning", "Diff could not be parsed into files and was truncated")

    if result.chunks_failed:
        workflow_command(
            "warning", f"{result.chunks_failed}/{result.chunks_processed} summarization chunks failed"
        )


def main() -> int:
    """Main entry point."""
    debug = env_str("INPUT_DEBUG", "false").lower() in ("true", "1", "yes")
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    try:
        diff_file = env_str("INPUT_DIFF_FILE")
        output_file = env_str("INPUT_OUTPUT_FILE")
        token_budget = env_number("INPUT_TOKEN_BUDGET", None, int)
        language = env_str("INPUT_LANGUAGE", "english")
        model = env_str("INPUT_MODEL").strip()
        temperature = env_number("INPUT_TEMPERATURE", 0.2, float)
        timeout = env_number("INPUT_TIMEOUT", 120, int)

        workflow_command("group", "Loading configuration")
        config = load_config()
        status(f"Budget config: {json.dumps(config.to_dict())}")
        workflow_command("endgroup")

        summarizer = None
        if model:
            summarizer = LLMChunkSummarizer(
                model=model,
                temperature=temperature,
                max_tokens=config.summarization_output_tokens,
                timeout=timeout,
            )
        else:
            status("No model configured, map-reduce summarization disabled")

        raw_diff = read_diff(diff_file)
    except (ValueError, OSError) as e:
        workflow_command("error", str(e))
        return 1

    workflow_command("group", "Processing diff")
    processor = DiffProcessor(
        summarizer=summarizer,
        language=language,
        progress_callback=lambda message: status(f"Summarizing chunk {message}"),
        config=config,
    )
    result = processor.process(raw_diff, token_budget)
    status(f"Tier: {result.tier.name} ({int(result.tier)})")
    status(
        f"Files: {result.total_files} total, {result.included_files} included, "
        f"{result.excluded_files} excluded"
    )
    workflow_command("endgroup")

    report(result, raw_diff)

    if summarizer is not None and summarizer.usage.total_calls:
        status("=== LLM Usage ===")
        for name, stats in summarizer.usage.to_dict().items():
            status(
                f"  {name}: {stats['calls']} calls, "
                f"{stats['input_tokens']:,}+{stats['output_tokens']:,} tokens, {stats['latency_ms']:.0f}ms"
            )

    try:
        write_result(output_file, result.processed_diff)
    except OSError as e:
        workflow_command("error", f"Failed to write output: {e}")
        return 1

    for name, value in result.to_dict().items():
        if name != "tier_name":
            set_output(name, str(value))
    set_output("processed_diff", result.processed_diff)

    return 0


if __name__ == "__main__":
    sys.exit(main())
