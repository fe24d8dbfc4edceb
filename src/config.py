"""Token budget configuration for diff processing.

All budget constants live in one dataclass that is passed explicitly into the
processor, so concurrent callers never share mutable settings. Values can be
overridden from a dictionary, a YAML document or environment variables.
"""

import os
from dataclasses import dataclass, field, fields
from typing import Any, Dict, List, Optional

import yaml


@dataclass
class TokenBudgetConfig:
    """Budget constants used by every stage of the pipeline."""

    # Ceiling accepted for a single input payload before any tiering
    max_input_tokens: int = 200_000
    chars_per_token: int = 4
    # Context window covers input + generated output + reasoning buffer
    context_limit: int = 400_000
    reasoning_buffer: int = 10_000
    tier2_threshold: int = 200_000
    map_reduce_chunk_size: int = 80_000
    summarization_output_tokens: int = 2_000
    # Multiplier applied to the caller's budget before tier selection
    safety_margin: float = 0.95
    max_parallel_calls: int = 3
    # Seconds to wait per wave. Timed-out calls keep their thread until the
    # collaborator returns, so LLMChunkSummarizer.timeout is the hard bound.
    chunk_timeout: Optional[float] = None
    extra_lock_files: List[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "TokenBudgetConfig":
        """Create a config from a dictionary, keeping defaults for missing keys.

        Raises:
            ValueError: If the dictionary contains unknown keys or invalid values
        """
        if not data:
            return cls()

        errors = validate_budget_config(data)
        if errors:
            raise ValueError("Invalid token budget config: " + "; ".join(errors))

        values = dict(data)
        if isinstance(values.get("extra_lock_files"), str):
            values["extra_lock_files"] = _split_patterns(values["extra_lock_files"])
        return cls(**values)

    @classmethod
    def from_yaml(cls, yaml_str: str) -> "TokenBudgetConfig":
        """Parse a budget config from a YAML (or JSON) string.

        Args:
            yaml_str: YAML mapping of config keys to values

        Returns:
            TokenBudgetConfig with the given overrides

        Raises:
            ValueError: If the YAML is invalid or not a mapping
        """
        if not yaml_str or not yaml_str.strip():
            return cls()

        try:
            data = yaml.safe_load(yaml_str)
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid budget_config YAML: {e}") from e

        if data is None:
            return cls()

        if not isinstance(data, dict):
            raise ValueError("budget_config must be a YAML/JSON object")

        return cls.from_dict(data)

    @classmethod
    def env_overrides(
        cls,
        prefix: str = "INPUT_",
        environ: Optional[Dict[str, str]] = None,
    ) -> Dict[str, Any]:
        """Collect the fields set through environment variables.

        Each field maps to ``<prefix><FIELD_NAME>``, e.g. ``INPUT_SAFETY_MARGIN``.
        Unset or empty variables are left out, so the result holds only
        explicit overrides.

        Raises:
            ValueError: If a variable cannot be converted
        """
        env = os.environ if environ is None else environ
        data: Dict[str, Any] = {}

        for f in fields(cls):
            name = f"{prefix}{f.name.upper()}"
            raw = env.get(name, "")
            if not raw.strip():
                continue
            if f.name == "extra_lock_files":
                data[f.name] = _split_patterns(raw)
            elif f.name in _FLOAT_FIELDS:
                data[f.name] = _to_float(name, raw)
            else:
                data[f.name] = _to_int(name, raw)

        return data

    @classmethod
    def from_env(
        cls,
        prefix: str = "INPUT_",
        environ: Optional[Dict[str, str]] = None,
    ) -> "TokenBudgetConfig":
        """Create a config from environment variables, defaults elsewhere.

        Raises:
            ValueError: If a variable cannot be converted or fails validation
        """
        return cls.from_dict(cls.env_overrides(prefix, environ))

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON/YAML output."""
        return {f.name: getattr(self, f.name) for f in fields(self)}


_FLOAT_FIELDS = {"safety_margin", "chunk_timeout"}

_POSITIVE_INT_FIELDS = (
    "max_input_tokens",
    "chars_per_token",
    "context_limit",
    "tier2_threshold",
    "map_reduce_chunk_size",
    "summarization_output_tokens",
    "max_parallel_calls",
)


def _split_patterns(value: str) -> List[str]:
    return [p.strip() for p in value.split(",") if p.strip()]


def _to_int(name: str, value: str) -> int:
    try:
        return int(value)
    except ValueError as e:
        raise ValueError(f"Invalid integer value for {name}: {value}") from e


def _to_float(name: str, value: str) -> float:
    try:
        return float(value)
    except ValueError as e:
        raise ValueError(f"Invalid float value for {name}: {value}") from e


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def validate_budget_config(config: Dict[str, Any]) -> List[str]:
    """Validate budget config keys and values.

    Args:
        config: Parsed budget config dictionary

    Returns:
        List of validation errors (empty if valid)
    """
    errors = []
    known = {f.name for f in fields(TokenBudgetConfig)}

    for key in config:
        if key not in known:
            errors.append(f"Unknown budget setting '{key}'. Valid: {sorted(known)}")

    for key in _POSITIVE_INT_FIELDS:
        if key in config:
            value = config[key]
            if not _is_int(value) or value < 1:
                errors.append(f"{key} must be a positive integer, got {value!r}")

    if "reasoning_buffer" in config:
        value = config["reasoning_buffer"]
        if not _is_int(value) or value < 0:
            errors.append(f"reasoning_buffer must be a non-negative integer, got {value!r}")

    if "safety_margin" in config:
        value = config["safety_margin"]
        if not _is_number(value) or not 0 < value <= 1:
            errors.append(f"safety_margin must be in (0, 1], got {value!r}")

    if config.get("chunk_timeout") is not None:
        value = config["chunk_timeout"]
        if not _is_number(value) or value <= 0:
            errors.append(f"chunk_timeout must be a positive number of seconds, got {value!r}")

    if "extra_lock_files" in config:
        value = config["extra_lock_files"]
        if isinstance(value, list):
            if not all(isinstance(p, str) for p in value):
                errors.append("extra_lock_files must be a list of strings")
        elif not isinstance(value, str):
            errors.append("extra_lock_files must be a list or comma-separated string")

    # Context window has to leave room beyond the input ceiling
    context_limit = config.get("context_limit", TokenBudgetConfig.context_limit)
    max_input = config.get("max_input_tokens", TokenBudgetConfig.max_input_tokens)
    if _is_int(context_limit) and _is_int(max_input) and context_limit <= max_input:
        errors.append(
            f"context_limit ({context_limit}) must be larger than max_input_tokens ({max_input})"
        )

    return errors
