"""Tests for map_reduce module."""

import threading
import time

import pytest
import sys
import os
from unittest.mock import Mock

# Add src to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from map_reduce import (
    MapReduceSummarizer,
    chunk_text,
    format_failed_chunk,
)
from models import MapReduceResult, ParsedFileDiff


def make_file(path: str, tokens: int = 80) -> ParsedFileDiff:
    content = f"diff --git a/{path} b/{path}\n"
    content += "x" * (tokens * 4 - len(content))
    return ParsedFileDiff(file_path=path, content=content, token_count=tokens)


def make_files(count: int, tokens: int = 80):
    return [make_file(f"src/file{i}.ts", tokens) for i in range(count)]


def summary_for(text: str, language: str) -> str:
    """Echo the first file path so results can be matched to chunks."""
    first_line = text.split("\n", 1)[0]
    return f"summary of {first_line.split(' b/')[-1]} in {language}"


class TestHelpers:
    """Tests for chunk_text and format_failed_chunk."""

    def test_chunk_text_joins_contents(self):
        files = make_files(2)
        assert chunk_text(files) == files[0].content + "\n" + files[1].content

    def test_failed_chunk_lists_paths(self):
        files = [make_file("a.ts"), make_file("b.ts")]
        assert format_failed_chunk(files) == "[Summarization failed for: a.ts, b.ts]"


class TestMapReduceSummarizerInit:
    """Tests for MapReduceSummarizer initialization."""

    def test_defaults(self):
        summarizer = MapReduceSummarizer(summarizer=Mock())
        assert summarizer.chunk_size == 80_000
        assert summarizer.max_parallel_calls == 3
        assert summarizer.progress_callback is None
        assert summarizer.chunk_timeout is None

    def test_parallelism_at_least_one(self):
        assert MapReduceSummarizer(summarizer=Mock(), max_parallel_calls=0).max_parallel_calls == 1


class TestSummarize:
    """Tests for MapReduceSummarizer.summarize."""

    def test_empty_input(self):
        llm = Mock()
        result = MapReduceSummarizer(summarizer=llm).summarize([], "english")

        assert result == MapReduceResult(summary="", chunks_processed=0, chunks_failed=0)
        llm.assert_not_called()

    def test_single_chunk(self):
        files = make_files(3)
        llm = Mock(return_value="  combined summary  ")

        result = MapReduceSummarizer(summarizer=llm).summarize(files, "japanese")

        assert result.summary == "combined summary"
        assert result.chunks_processed == 1
        assert result.chunks_failed == 0
        llm.assert_called_once_with(chunk_text(files), "japanese")

    def test_summaries_in_chunk_order(self):
        files = make_files(7)

        result = MapReduceSummarizer(summarizer=summary_for, chunk_size=100).summarize(files, "english")

        expected = [f"summary of src/file{i}.ts in english" for i in range(7)]
        assert result.summary.split("\n\n") == expected
        assert result.chunks_processed == 7
        assert result.chunks_failed == 0

    def test_failed_chunk_placeholder_keeps_position(self):
        files = make_files(5)

        def flaky(text, language):
            if "file1.ts" in text:
                raise RuntimeError("API error")
            if "file3.ts" in text:
                return "   "
            return summary_for(text, language)

        result = MapReduceSummarizer(summarizer=flaky, chunk_size=100).summarize(files, "english")

        parts = result.summary.split("\n\n")
        assert parts[0] == "summary of src/file0.ts in english"
        assert parts[1] == "[Summarization failed for: src/file1.ts]"
        assert parts[2] == "summary of src/file2.ts in english"
        assert parts[3] == "[Summarization failed for: src/file3.ts]"
        assert result.chunks_failed == 2
        assert result.chunks_processed == 5

    def test_none_response_counts_as_failure(self):
        result = MapReduceSummarizer(summarizer=Mock(return_value=None)).summarize(make_files(1), "english")
        assert result.chunks_failed == 1
        assert result.summary == "[Summarization failed for: src/file0.ts]"

    def test_non_string_response_counts_as_failure(self):
        files = make_files(3)
        responses = {"file0.ts": 42, "file1.ts": ["a", "list"], "file2.ts": "fine"}

        def odd(text, language):
            return next(v for k, v in responses.items() if k in text)

        result = MapReduceSummarizer(summarizer=odd, chunk_size=100).summarize(files, "english")

        assert result.summary.split("\n\n") == [
            "[Summarization failed for: src/file0.ts]",
            "[Summarization failed for: src/file1.ts]",
            "fine",
        ]
        assert result.chunks_failed == 2

    def test_total_failure(self):
        files = make_files(4)
        llm = Mock(side_effect=RuntimeError("down"))

        result = MapReduceSummarizer(summarizer=llm, chunk_size=100).summarize(files, "english")

        assert result.chunks_failed == result.chunks_processed == 4
        assert result.summary.split("\n\n") == [
            f"[Summarization failed for: src/file{i}.ts]" for i in range(4)
        ]

    def test_multi_file_chunk_fallback(self):
        files = make_files(2, tokens=40)
        llm = Mock(side_effect=TimeoutError("timed out"))

        result = MapReduceSummarizer(summarizer=llm, chunk_size=100).summarize(files, "english")

        assert result.summary == "[Summarization failed for: src/file0.ts, src/file1.ts]"


class TestWaves:
    """Tests for bounded-width wave execution."""

    def test_concurrency_never_exceeds_limit(self):
        lock = threading.Lock()
        active = [0]
        peak = [0]

        def slow(text, language):
            with lock:
                active[0] += 1
                peak[0] = max(peak[0], active[0])
            time.sleep(0.05)
            with lock:
                active[0] -= 1
            return "ok"

        result = MapReduceSummarizer(summarizer=slow, chunk_size=100, max_parallel_calls=3).summarize(
            make_files(8), "english"
        )

        assert result.chunks_processed == 8
        assert 1 <= peak[0] <= 3

    def test_wave_is_a_barrier(self):
        lock = threading.Lock()
        events = []

        def record(text, language):
            name = summary_for(text, language).split()[2]
            with lock:
                events.append(("start", name))
            # Later chunks in the wave finish first
            time.sleep(0.1 if name.endswith("file0.ts") else 0.01)
            with lock:
                events.append(("end", name))
            return "ok"

        MapReduceSummarizer(summarizer=record, chunk_size=100, max_parallel_calls=2).summarize(
            make_files(4), "english"
        )

        first_wave_ends = [events.index(("end", f"src/file{i}.ts")) for i in (0, 1)]
        second_wave_starts = [events.index(("start", f"src/file{i}.ts")) for i in (2, 3)]
        assert max(first_wave_ends) < min(second_wave_starts)

    def test_timed_out_call_uses_fallback(self):
        release = threading.Event()

        def hangs_on_first(text, language):
            if "file0.ts" in text:
                release.wait(5)
            return summary_for(text, language)

        summarizer = MapReduceSummarizer(
            summarizer=hangs_on_first,
            chunk_size=100,
            max_parallel_calls=2,
            chunk_timeout=0.3,
        )
        try:
            result = summarizer.summarize(make_files(3), "english")
        finally:
            release.set()

        parts = result.summary.split("\n\n")
        assert parts[0] == "[Summarization failed for: src/file0.ts]"
        assert parts[1] == "summary of src/file1.ts in english"
        assert parts[2] == "summary of src/file2.ts in english"
        assert result.chunks_failed == 1


class TestProgress:
    """Tests for the progress callback."""

    def test_reports_each_chunk(self):
        messages = []
        summarizer = MapReduceSummarizer(
            summarizer=Mock(return_value="chunk summary"),
            chunk_size=100,
            progress_callback=messages.append,
        )

        summarizer.summarize(make_files(4), "english")

        assert messages == ["1/4", "2/4", "3/4", "4/4"]

    def test_callback_errors_are_ignored(self):
        callback = Mock(side_effect=ValueError("ui gone"))
        summarizer = MapReduceSummarizer(
            summarizer=summary_for,
            chunk_size=100,
            progress_callback=callback,
        )

        result = summarizer.summarize(make_files(2), "english")

        assert callback.call_count == 2
        assert result.chunks_failed == 0
        assert result.summary.split("\n\n") == [
            "summary of src/file0.ts in english",
            "summary of src/file1.ts in english",
        ]
