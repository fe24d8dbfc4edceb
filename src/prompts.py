"""Jinja2 prompt templates for chunk summarization."""

from jinja2 import BaseLoader, Environment

# Create Jinja2 environment with no file loading (templates are inline)
_env = Environment(
    loader=BaseLoader(),
    autoescape=False,  # Not HTML, no escaping needed
    trim_blocks=True,
    lstrip_blocks=True,
)

SYSTEM_PROMPT = (
    "You are a senior software engineer reviewing code changes. "
    "You write short, factual technical summaries of diffs."
)

CHUNK_SUMMARY_TEMPLATE = _env.from_string("""
Summarize the following code changes concisely in {{ language }}. Focus on:
- What was changed (files, functions, components)
- Why it was likely changed (bug fix, feature, refactor)
- Key technical details
{% if file_paths %}

Files in this part of the diff:
{% for path in file_paths %}
- {{ path }}
{% endfor %}
{% endif %}

Changes:
{{ chunk_text }}

Provide a concise technical summary.
""")


def render_chunk_summary_prompt(chunk_text: str, language: str, file_paths=None) -> str:
    """Render the summarization prompt for one chunk.

    Args:
        chunk_text: Concatenated diff content of the chunk
        language: Language the summary should be written in
        file_paths: Optional list of paths included in the chunk

    Returns:
        Rendered prompt string
    """
    return CHUNK_SUMMARY_TEMPLATE.render(
        chunk_text=chunk_text,
        language=language or "english",
        file_paths=file_paths or [],
    ).strip()
