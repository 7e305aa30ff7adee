"""Configuration dataclasses for the grid-completion engine and its CLI."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class GeneratorConfig:
    """Knobs that apply to one built ``ElementGenerator``."""

    # Refuse to enumerate key spaces larger than this (None = unbounded).
    max_key_space_size: int | None = 1_000_000
    # Re-project every generated element and require it to cover its own key.
    verify_round_trip: bool = False
    # Re-run each reducer on shuffled buckets and compare the results.
    verify_merge_order: bool = False
    merge_order_trials: int = 3
    seed: int = 42


@dataclass(frozen=True)
class CliConfig:
    """Options collected by ``grid_completion.main``."""

    matrix_path: str = "matrix.json"
    # One tuple of attribute names per reducer, applied in order.
    merge_by: tuple[tuple[str, ...], ...] = ()
    output_path: str | None = None
    log_level: str = "INFO"
    log_file: str | None = None
    generator: GeneratorConfig = field(default_factory=GeneratorConfig)
