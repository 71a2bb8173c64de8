"""Command-line front end.

The simulator core returns structured results and never prints; this
module is the thin I/O wrapper around it.  It parses the arguments,
reads the job file, runs the simulation, and prints the event log::

    py-sched --scheduler simplerr --input-file jobs.txt --quantum 4

Exit status: 0 on success, 1 when the job file cannot be read or holds
a malformed record, 2 for bad arguments (argparse's own convention,
which also covers an unknown scheduler name).
"""

from __future__ import annotations

import argparse
import sys
from typing import TYPE_CHECKING

from py_sched.config import DEFAULT_QUANTUM, DEFAULT_STARVATION_BOUND, SimulationConfig, parse_quanta
from py_sched.jobs import MalformedRecordError, load_jobs
from py_sched.process.scheduler import DISCIPLINES
from py_sched.simulator import simulate

if TYPE_CHECKING:
    from collections.abc import Sequence

_SUMMARY_WIDTH = 22


def _quanta(text: str) -> tuple[int | None, ...]:
    """Argparse type for a comma-separated quanta table."""
    try:
        return parse_quanta(text)
    except ValueError as e:
        raise argparse.ArgumentTypeError(str(e)) from e


def build_parser() -> argparse.ArgumentParser:
    """Return the argument parser for ``py-sched``."""
    parser = argparse.ArgumentParser(
        prog="py-sched",
        description="Discrete-event CPU scheduling simulator.",
    )
    parser.add_argument(
        "-s",
        "--scheduler",
        required=True,
        choices=list(DISCIPLINES),
        help="Scheduling discipline to simulate",
    )
    parser.add_argument(
        "-i",
        "--input-file",
        required=True,
        help="Job file: one 'id arrival_time burst [priority]' record per line",
    )
    parser.add_argument(
        "-q",
        "--quantum",
        type=int,
        default=DEFAULT_QUANTUM,
        help=f"Round-robin time quantum (default {DEFAULT_QUANTUM})",
    )
    parser.add_argument(
        "--mlrr-quanta",
        type=_quanta,
        default=None,
        help="Per-level quanta for mlrr, level 0 first (e.g. 8,4,2,1)",
    )
    parser.add_argument(
        "--feedback-quanta",
        type=_quanta,
        default=None,
        help="Per-level quanta for simplemlf/mlf, level 0 first (e.g. none,4,2,1)",
    )
    parser.add_argument(
        "--starvation-bound",
        type=int,
        default=DEFAULT_STARVATION_BOUND,
        help=f"Ticks before mlf boosts a waiting process (default {DEFAULT_STARVATION_BOUND})",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Also print debug events")
    parser.add_argument("--stats", action="store_true", help="Print a metrics summary at the end")
    return parser


def build_config(args: argparse.Namespace) -> SimulationConfig:
    """Build a SimulationConfig from parsed arguments.

    Raises:
        ValueError: If a value is out of range.

    """
    overrides: dict[str, object] = {
        "quantum": args.quantum,
        "starvation_bound": args.starvation_bound,
    }
    if args.mlrr_quanta is not None:
        overrides["mlrr_quanta"] = args.mlrr_quanta
    if args.feedback_quanta is not None:
        overrides["feedback_quanta"] = args.feedback_quanta
    return SimulationConfig(**overrides)  # type: ignore[arg-type]


def format_summary(summary: dict[str, float | int]) -> str:
    """Format run metrics as aligned ``name: value`` lines."""
    lines = ["--- summary ---"]
    for key, value in summary.items():
        shown = f"{value:.2f}" if isinstance(value, float) else str(value)
        lines.append(f"{key.replace('_', ' '):<{_SUMMARY_WIDTH}}{shown}")
    return "\n".join(lines)


def main(argv: Sequence[str] | None = None) -> int:
    """Run the simulator and return the process exit status.

    This is the ``py-sched`` console entry point.
    """
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        config = build_config(args)
    except ValueError as e:
        parser.error(str(e))

    try:
        table = load_jobs(args.input_file)
    except OSError as e:
        print(e, file=sys.stderr)  # noqa: T201
        return 1
    except MalformedRecordError as e:
        print(f"Error: {e}", file=sys.stderr)  # noqa: T201
        return 1

    result = simulate(table, args.scheduler, config=config)

    for line in result.logger.render(verbose=args.verbose):
        print(line)  # noqa: T201
    if args.stats:
        print(format_summary(result.summary()))  # noqa: T201
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
