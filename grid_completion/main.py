"""
main.py - Complete a coverage matrix from the command line.

Usage
-----
    python -m grid_completion.main rates.json \
        --merge-by chargeCode,product \
        --merge-by chargeCode,zone \
        --output missing_rates.json

The run:
    1. Load the attribute domains and existing rows from the matrix file.
    2. Enumerate the key space and project the existing rows onto it.
    3. Generate one row per uncovered key.
    4. Apply each ``--merge-by`` reducer in order.
    5. Print (or write) the missing rows as JSON.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys

from .config import CliConfig, GeneratorConfig
from .errors import GridCompletionError
from .matrix import complete_matrix

logger = logging.getLogger("grid_completion")


def _parse_merge_by(values: list[str]) -> tuple[tuple[str, ...], ...]:
    return tuple(
        tuple(name.strip() for name in value.split(",") if name.strip())
        for value in values
    )


def run(cfg: CliConfig) -> int:
    """Execute one completion run and return the process exit code."""
    try:
        rows = complete_matrix(cfg)
    except GridCompletionError as exc:
        logger.error("%s: %s", type(exc).__name__, exc)
        return 2

    text = json.dumps(rows, indent=2)
    if cfg.output_path:
        with open(cfg.output_path, "w") as f:
            f.write(text + "\n")
        logger.info("Missing rows written -> %s  (%d rows)", cfg.output_path, len(rows))
    else:
        sys.stdout.write(text + "\n")
    return 0


# ── CLI ────────────────────────────────────────────────────────────

def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="grid-completion",
        description="Find and generate the missing combinations of a coverage matrix.",
    )
    parser.add_argument("matrix", help="Path to the matrix JSON file")
    parser.add_argument(
        "--merge-by",
        action="append",
        default=[],
        help="Comma-separated attributes to merge generated rows on (repeatable, applied in order)",
    )
    parser.add_argument("--output", default=None, help="Write JSON here instead of stdout")
    parser.add_argument("--verify-round-trip", action="store_true")
    parser.add_argument("--verify-merge-order", action="store_true")
    parser.add_argument("--max-key-space", type=int, default=1_000_000)
    parser.add_argument("--seed", type=int, default=42)
    parser.add_argument("--log-level", default="INFO", choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    parser.add_argument("--log-file", default=None)
    args = parser.parse_args(argv)

    cfg = CliConfig(
        matrix_path=args.matrix,
        merge_by=_parse_merge_by(args.merge_by),
        output_path=args.output,
        log_level=args.log_level,
        log_file=args.log_file,
        generator=GeneratorConfig(
            max_key_space_size=args.max_key_space,
            verify_round_trip=args.verify_round_trip,
            verify_merge_order=args.verify_merge_order,
            seed=args.seed,
        ),
    )

    # stdout carries the JSON result, so logs go to stderr.
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if cfg.log_file:
        handlers.append(logging.FileHandler(cfg.log_file))
    logging.basicConfig(
        level=getattr(logging, cfg.log_level),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        handlers=handlers,
    )

    return run(cfg)


if __name__ == "__main__":
    sys.exit(main())
