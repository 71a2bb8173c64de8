"""Simulation configuration: quanta tables and the starvation bound.

Every discipline-specific number lives here rather than in the
policies, so the mapping from queue level to time quantum is a table
the caller can replace instead of arithmetic baked into the code.

Levels are numbered from 0 (lowest priority) upwards.  A quantum of
``None`` means "run until the burst completes".
"""

from __future__ import annotations

from dataclasses import dataclass

DEFAULT_QUANTUM = 4
DEFAULT_MLRR_QUANTA: tuple[int | None, ...] = (8, 4, 2, 1)
DEFAULT_FEEDBACK_QUANTA: tuple[int | None, ...] = (None, 4, 2, 1)
DEFAULT_STARVATION_BOUND = 50

_UNBOUNDED_NAMES = frozenset({"none", "inf", "-"})


def _validate_quanta(name: str, quanta: tuple[int | None, ...]) -> None:
    """Raise ValueError unless *quanta* is a non-empty table of positive quanta."""
    if not quanta:
        msg = f"{name} must define at least one level"
        raise ValueError(msg)
    for level, quantum in enumerate(quanta):
        if quantum is not None and quantum <= 0:
            msg = f"{name}[{level}] must be positive, got {quantum}"
            raise ValueError(msg)


@dataclass(frozen=True)
class SimulationConfig:
    """Tunable parameters shared by all disciplines.

    Attributes:
        quantum: Time slice for the single-queue round-robin discipline.
        mlrr_quanta: Per-level quanta for multi-level round-robin.
        feedback_quanta: Per-level quanta for both feedback disciplines.
        starvation_bound: Ticks a queued process may wait under full
            MLFQ before it is boosted back to the top level.

    """

    quantum: int = DEFAULT_QUANTUM
    mlrr_quanta: tuple[int | None, ...] = DEFAULT_MLRR_QUANTA
    feedback_quanta: tuple[int | None, ...] = DEFAULT_FEEDBACK_QUANTA
    starvation_bound: int = DEFAULT_STARVATION_BOUND

    def __post_init__(self) -> None:
        """Validate every field."""
        if self.quantum <= 0:
            msg = f"quantum must be positive, got {self.quantum}"
            raise ValueError(msg)
        _validate_quanta("mlrr_quanta", self.mlrr_quanta)
        _validate_quanta("feedback_quanta", self.feedback_quanta)
        if self.starvation_bound < 1:
            msg = f"starvation_bound must be at least 1, got {self.starvation_bound}"
            raise ValueError(msg)


def parse_quanta(text: str) -> tuple[int | None, ...]:
    """Parse a comma-separated quanta table such as ``"none,4,2,1"``.

    ``none``, ``inf`` or ``-`` stand for an unbounded quantum.

    Raises:
        ValueError: If an entry is neither an integer nor an unbounded marker.

    """
    quanta: list[int | None] = []
    for raw in text.split(","):
        item = raw.strip().lower()
        if item in _UNBOUNDED_NAMES:
            quanta.append(None)
            continue
        try:
            quanta.append(int(item))
        except ValueError:
            msg = f"Invalid quantum {raw.strip()!r} in {text!r}"
            raise ValueError(msg) from None
    result = tuple(quanta)
    _validate_quanta("quanta", result)
    return result
