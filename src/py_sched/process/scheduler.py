"""CPU scheduling disciplines: who gets the CPU next, and for how long.

The simulation driver owns the clock and the job table; a policy owns
only its ready queue(s).  Five policies ship out of the box:

- **FCFSPolicy** (``simple``): one FIFO queue, each process runs its
  whole remaining burst.
- **RoundRobinPolicy** (``simplerr``): one FIFO queue and a fixed time
  quantum; an unfinished process goes to the back of the queue.
- **MultiLevelRoundRobinPolicy** (``mlrr``): one FIFO queue per
  priority level, highest level first, round robin within a level.
  A process never changes level.
- **SimpleMLFQPolicy** (``simplemlf``): feedback queues.  Every new
  process starts on the top level; using up a quantum demotes it one
  level.  Nothing is ever promoted.
- **MLFQPolicy** (``mlf``): the simple feedback queue plus preemption
  (a process is interrupted as soon as anything waits on a higher
  level) and aging (a process that has waited ``starvation_bound``
  ticks is boosted back to the top level).

Levels are numbered from 0 upwards.  The highest level is served first
and has the shortest quantum; level 0 is the bottom.  Quanta come from
a per-level table (see ``py_sched.config``), where ``None`` means the
process may run until its burst completes.

Design: Strategy pattern
    The driver is the *context*; SchedulingPolicy is the *strategy*.
    Adding a discipline means writing a new policy class and
    registering it in ``DISCIPLINES``.
"""

from __future__ import annotations

from collections import deque
from dataclasses import replace
from typing import TYPE_CHECKING, Protocol

from py_sched.config import SimulationConfig

if TYPE_CHECKING:
    from collections.abc import Callable

    from py_sched.clock import VirtualClock
    from py_sched.process.pcb import PCB


class SchedulerNotReadyError(Exception):
    """A multi-level policy was used before its quanta table was configured."""


class SchedulerContractError(Exception):
    """A policy broke the scheduling contract (e.g. nothing to select while pending)."""


class UnknownDisciplineError(Exception):
    """The requested discipline name is not registered."""


class SchedulingPolicy(Protocol):
    """Interface that every scheduling discipline must satisfy."""

    @property
    def configured(self) -> bool:
        """Return True once the policy can accept processes."""
        ...  # pragma: no cover

    @property
    def uses_priority(self) -> bool:
        """Return True if the input priority influences scheduling."""
        ...  # pragma: no cover

    def admit(self, pcb: PCB) -> None:
        """Queue a newly arrived process."""
        ...  # pragma: no cover

    def requeue(self, pcb: PCB, *, preempted: bool = False) -> None:
        """Return a process whose grant ran out, or that was preempted."""
        ...  # pragma: no cover

    def select_next(self) -> tuple[PCB, int | None] | None:
        """Remove and return the next process and its quantum, or None if empty."""
        ...  # pragma: no cover

    def has_pending(self) -> bool:
        """Return True if at least one process is queued."""
        ...  # pragma: no cover

    def check_preempt(self, pcb: PCB, priority: int) -> bool:
        """Return True if the running *pcb* must give up the CPU now."""
        ...  # pragma: no cover


class FCFSPolicy:
    """First Come, First Served: processes run to completion in arrival order.

    Processes that arrive on the same tick keep their order from the
    input file, because the driver admits them in that order.
    """

    def __init__(self) -> None:
        """Create an FCFS policy with an empty queue."""
        self._queue: deque[PCB] = deque()

    @property
    def configured(self) -> bool:
        """Return True (FCFS needs no configuration)."""
        return True

    @property
    def uses_priority(self) -> bool:
        """Return False: FCFS ignores priority."""
        return False

    @property
    def ready_count(self) -> int:
        """Return the number of queued processes."""
        return len(self._queue)

    @property
    def ready_processes(self) -> list[PCB]:
        """Return a snapshot of the queue, head first."""
        return list(self._queue)

    def admit(self, pcb: PCB) -> None:
        """Append *pcb* to the back of the queue."""
        self._queue.append(pcb)

    def requeue(self, pcb: PCB, *, preempted: bool = False) -> None:  # noqa: ARG002
        """Append *pcb* to the back of the queue."""
        self._queue.append(pcb)

    def select_next(self) -> tuple[PCB, int | None] | None:
        """Pop the head of the queue with an unbounded quantum."""
        if not self._queue:
            return None
        return self._queue.popleft(), None

    def has_pending(self) -> bool:
        """Return True if the queue is not empty."""
        return bool(self._queue)

    def check_preempt(self, pcb: PCB, priority: int) -> bool:  # noqa: ARG002
        """Never preempt."""
        return False


class RoundRobinPolicy:
    """Round Robin: each process gets at most ``quantum`` ticks per turn.

    Selection is the same as FCFS, but the driver cuts the burst after
    ``quantum`` ticks and requeues the process at the back, so every
    waiting process is served within one pass over the queue.
    """

    def __init__(self, *, quantum: int) -> None:
        """Create a Round Robin policy with the given time quantum.

        Args:
            quantum: Number of ticks before the process goes to the back.

        Raises:
            ValueError: If the quantum is not positive.

        """
        if quantum <= 0:
            msg = f"Quantum must be positive, got {quantum}"
            raise ValueError(msg)
        self._quantum = quantum
        self._queue: deque[PCB] = deque()

    @property
    def quantum(self) -> int:
        """Return the time quantum (ticks per turn)."""
        return self._quantum

    @property
    def configured(self) -> bool:
        """Return True (the quantum is fixed at construction)."""
        return True

    @property
    def uses_priority(self) -> bool:
        """Return False: round robin ignores priority."""
        return False

    @property
    def ready_count(self) -> int:
        """Return the number of queued processes."""
        return len(self._queue)

    @property
    def ready_processes(self) -> list[PCB]:
        """Return a snapshot of the queue, head first."""
        return list(self._queue)

    def admit(self, pcb: PCB) -> None:
        """Append *pcb* to the back of the queue."""
        self._queue.append(pcb)

    def requeue(self, pcb: PCB, *, preempted: bool = False) -> None:  # noqa: ARG002
        """Append *pcb* to the back of the queue: the round-robin cycle."""
        self._queue.append(pcb)

    def select_next(self) -> tuple[PCB, int | None] | None:
        """Pop the head of the queue with the fixed quantum."""
        if not self._queue:
            return None
        return self._queue.popleft(), self._quantum

    def has_pending(self) -> bool:
        """Return True if the queue is not empty."""
        return bool(self._queue)

    def check_preempt(self, pcb: PCB, priority: int) -> bool:  # noqa: ARG002
        """Never preempt mid-quantum."""
        return False


class LevelQueues:
    """One FIFO queue per level, highest level served first.

    Shared by every multi-level policy.  Each stored PCB is a copy whose
    ``level`` field names the queue it sits on.
    """

    def __init__(self, num_levels: int) -> None:
        """Create *num_levels* empty queues."""
        self._queues: list[deque[PCB]] = [deque() for _ in range(num_levels)]

    @property
    def top_level(self) -> int:
        """Return the highest level number."""
        return len(self._queues) - 1

    def push(self, pcb: PCB, level: int) -> None:
        """Append *pcb* to the back of *level*'s queue."""
        self._queues[level].append(replace(pcb, level=level))

    def push_front(self, pcb: PCB, level: int) -> None:
        """Put *pcb* at the head of *level*'s queue."""
        self._queues[level].appendleft(replace(pcb, level=level))

    def pop_highest(self) -> PCB | None:
        """Remove and return the head of the highest non-empty queue."""
        for queue in reversed(self._queues):
            if queue:
                return queue.popleft()
        return None

    def any_above(self, level: int) -> bool:
        """Return True if a queue above *level* holds a process."""
        return any(self._queues[level + 1 :])

    def take_where(self, predicate: Callable[[PCB], bool], *, below: int) -> list[PCB]:
        """Remove and return queued PCBs under level *below* that satisfy *predicate*.

        Higher levels are scanned first; each queue keeps the relative
        order of the PCBs left behind.
        """
        taken: list[PCB] = []
        for level in range(below - 1, -1, -1):
            queue = self._queues[level]
            kept: deque[PCB] = deque()
            for pcb in queue:
                (taken if predicate(pcb) else kept).append(pcb)
            self._queues[level] = kept
        return taken

    def level_of(self, pcb_id: int) -> int | None:
        """Return the level holding process *pcb_id*, or None if not queued."""
        for level, queue in enumerate(self._queues):
            if any(p.id == pcb_id for p in queue):
                return level
        return None

    def snapshot(self) -> list[list[PCB]]:
        """Return every queue as a list, level 0 first."""
        return [list(q) for q in self._queues]

    def __len__(self) -> int:
        """Return the number of queued processes across all levels."""
        return sum(len(q) for q in self._queues)


class MultiLevelRoundRobinPolicy:
    """Multi-level round robin: fixed levels, round robin within each.

    A process is routed to the level matching its priority (priorities
    beyond the top level are clamped to it) and stays there for its
    whole life.  The highest non-empty level is always served first.

    The policy is unusable until it has a quanta table; pass one to the
    constructor or to ``configure()``.
    """

    def __init__(self, quanta: tuple[int | None, ...] | None = None) -> None:
        """Create the policy, optionally with its per-level quanta.

        Args:
            quanta: Quantum for each level, level 0 first.

        """
        self._quanta: tuple[int | None, ...] | None = None
        self._levels: LevelQueues | None = None
        if quanta is not None:
            self.configure(quanta)

    def configure(self, quanta: tuple[int | None, ...]) -> None:
        """Install the per-level quanta table and create the level queues.

        Raises:
            ValueError: If the table is empty or a quantum is not positive.
            RuntimeError: If processes are already queued.

        """
        if not quanta or any(q is not None and q <= 0 for q in quanta):
            msg = f"Invalid quanta table: {quanta!r}"
            raise ValueError(msg)
        if self._levels is not None and len(self._levels):
            msg = "Cannot reconfigure while processes are queued"
            raise RuntimeError(msg)
        self._quanta = tuple(quanta)
        self._levels = LevelQueues(len(quanta))

    @property
    def configured(self) -> bool:
        """Return True once a quanta table is installed."""
        return self._levels is not None

    @property
    def uses_priority(self) -> bool:
        """Return True: priority picks the level."""
        return True

    @property
    def quanta(self) -> tuple[int | None, ...] | None:
        """Return the per-level quanta table, or None if unconfigured."""
        return self._quanta

    def level_for(self, priority: int) -> int:
        """Return the level a process of *priority* is routed to."""
        levels = self._require_levels()
        return min(priority, levels.top_level)

    def admit(self, pcb: PCB) -> None:
        """Append *pcb* to the queue of its priority level."""
        levels = self._require_levels()
        levels.push(pcb, self.level_for(pcb.priority))

    def requeue(self, pcb: PCB, *, preempted: bool = False) -> None:  # noqa: ARG002
        """Append *pcb* to the back of its own level's queue."""
        self._require_levels().push(pcb, pcb.level)

    def select_next(self) -> tuple[PCB, int | None] | None:
        """Pop the head of the highest non-empty level with that level's quantum."""
        levels = self._require_levels()
        assert self._quanta is not None  # noqa: S101
        pcb = levels.pop_highest()
        if pcb is None:
            return None
        return pcb, self._quanta[pcb.level]

    def has_pending(self) -> bool:
        """Return True if any level holds a process."""
        return len(self._require_levels()) > 0

    def check_preempt(self, pcb: PCB, priority: int) -> bool:  # noqa: ARG002
        """Never preempt mid-quantum."""
        self._require_levels()
        return False

    def snapshot(self) -> list[list[PCB]]:
        """Return every level's queue, level 0 first."""
        return self._require_levels().snapshot()

    def _require_levels(self) -> LevelQueues:
        """Return the level queues, or raise if the policy is unconfigured."""
        if self._levels is None:
            msg = f"{type(self).__name__} has no quanta table configured"
            raise SchedulerNotReadyError(msg)
        return self._levels


class SimpleMLFQPolicy:
    """Feedback queue with demotion only.

    Every new process enters the top level.  A process that uses up its
    quantum without finishing drops one level (never below level 0),
    so CPU-hungry processes sink towards the longer quanta at the
    bottom.  A process never climbs back up.
    """

    def __init__(self, quanta: tuple[int | None, ...] | None = None) -> None:
        """Create the policy, optionally with its per-level quanta.

        Args:
            quanta: Quantum for each level, level 0 (bottom) first.

        """
        self._quanta: tuple[int | None, ...] | None = None
        self._levels: LevelQueues | None = None
        self._demotions = 0
        if quanta is not None:
            self.configure(quanta)

    def configure(self, quanta: tuple[int | None, ...]) -> None:
        """Install the per-level quanta table and create the level queues.

        Raises:
            ValueError: If the table is empty or a quantum is not positive.
            RuntimeError: If processes are already queued.

        """
        if not quanta or any(q is not None and q <= 0 for q in quanta):
            msg = f"Invalid quanta table: {quanta!r}"
            raise ValueError(msg)
        if self._levels is not None and len(self._levels):
            msg = "Cannot reconfigure while processes are queued"
            raise RuntimeError(msg)
        self._quanta = tuple(quanta)
        self._levels = LevelQueues(len(quanta))

    @property
    def configured(self) -> bool:
        """Return True once a quanta table is installed."""
        return self._levels is not None

    @property
    def uses_priority(self) -> bool:
        """Return True: admissions are reported with their priority."""
        return True

    @property
    def quanta(self) -> tuple[int | None, ...] | None:
        """Return the per-level quanta table, or None if unconfigured."""
        return self._quanta

    @property
    def top_level(self) -> int:
        """Return the level new processes enter on."""
        return self._require_levels().top_level

    @property
    def demotions(self) -> int:
        """Return how many times a process has dropped a level."""
        return self._demotions

    def admit(self, pcb: PCB) -> None:
        """Append *pcb* to the top level."""
        levels = self._require_levels()
        levels.push(pcb, levels.top_level)

    def requeue(self, pcb: PCB, *, preempted: bool = False) -> None:  # noqa: ARG002
        """Demote *pcb* one level and append it there."""
        self._push_demoted(pcb)

    def select_next(self) -> tuple[PCB, int | None] | None:
        """Pop the head of the highest non-empty level with that level's quantum."""
        levels = self._require_levels()
        assert self._quanta is not None  # noqa: S101
        pcb = levels.pop_highest()
        if pcb is None:
            return None
        return pcb, self._quanta[pcb.level]

    def has_pending(self) -> bool:
        """Return True if any level holds a process."""
        return len(self._require_levels()) > 0

    def check_preempt(self, pcb: PCB, priority: int) -> bool:  # noqa: ARG002
        """Never preempt mid-quantum."""
        self._require_levels()
        return False

    def snapshot(self) -> list[list[PCB]]:
        """Return every level's queue, level 0 first."""
        return self._require_levels().snapshot()

    def _push_demoted(self, pcb: PCB) -> None:
        """Append *pcb* one level below where it ran (floored at 0)."""
        levels = self._require_levels()
        target = max(pcb.level - 1, 0)
        if target < pcb.level:
            self._demotions += 1
        levels.push(pcb, target)

    def _require_levels(self) -> LevelQueues:
        """Return the level queues, or raise if the policy is unconfigured."""
        if self._levels is None:
            msg = f"{type(self).__name__} has no quanta table configured"
            raise SchedulerNotReadyError(msg)
        return self._levels


class MLFQPolicy(SimpleMLFQPolicy):
    """Full multilevel feedback queue: demotion, preemption and aging.

    On top of the simple feedback queue:

    - **Preemption**: ``check_preempt`` is true as soon as any process
      waits on a level above the running one.  The interrupted process
      is demoted one level, exactly as if it had used up its quantum.
    - **Aging**: before every selection and preemption check, queued
      processes below the top level that have waited at least
      ``starvation_bound`` ticks are boosted straight back to the top
      level, oldest first.

    Starvation bound: a boosted process goes to the head of the top
    queue, so it runs as soon as the CPU is given up.  A runner below
    the top is preempted on the next tick; a top-level runner leaves
    within the top quantum ``q``.  A process boosted on its own
    therefore waits at most ``starvation_bound + q`` ticks.  Processes
    boosted on the same tick run oldest first.
    """

    def __init__(
        self,
        quanta: tuple[int | None, ...] | None = None,
        *,
        clock: VirtualClock,
        starvation_bound: int,
    ) -> None:
        """Create the policy.

        Args:
            quanta: Quantum for each level, level 0 (bottom) first.
            clock: The simulation clock, read to measure waiting time.
            starvation_bound: Ticks of waiting that trigger a boost.

        Raises:
            ValueError: If the starvation bound is below one tick.

        """
        if starvation_bound < 1:
            msg = f"Starvation bound must be at least 1, got {starvation_bound}"
            raise ValueError(msg)
        super().__init__(quanta)
        self._clock = clock
        self._starvation_bound = starvation_bound
        self._boosts = 0

    @property
    def starvation_bound(self) -> int:
        """Return the waiting time that triggers a boost."""
        return self._starvation_bound

    @property
    def boosts(self) -> int:
        """Return how many times a process has been boosted to the top."""
        return self._boosts

    def admit(self, pcb: PCB) -> None:
        """Append *pcb* to the top level, stamping its queue time if unset."""
        if pcb.time_added is None:
            pcb = replace(pcb, time_added=self._clock.now())
        super().admit(pcb)

    def requeue(self, pcb: PCB, *, preempted: bool = False) -> None:  # noqa: ARG002
        """Demote *pcb* one level; preempted and expired processes alike."""
        if pcb.time_added is None:
            pcb = replace(pcb, time_added=self._clock.now())
        self._push_demoted(pcb)

    def select_next(self) -> tuple[PCB, int | None] | None:
        """Boost starving processes, then pop the highest non-empty level."""
        self._age()
        return super().select_next()

    def check_preempt(self, pcb: PCB, priority: int) -> bool:  # noqa: ARG002
        """Return True if a process waits on a level above *priority*."""
        levels = self._require_levels()
        self._age()
        return levels.any_above(priority)

    def _age(self) -> None:
        """Move every process that waited ``starvation_bound`` ticks to the top."""
        levels = self._require_levels()
        now = self._clock.now()
        bound = self._starvation_bound

        def starving(pcb: PCB) -> bool:
            return pcb.time_added is not None and now - pcb.time_added >= bound

        boosted = levels.take_where(starving, below=levels.top_level)
        # Oldest first at the head of the top queue; ties keep the scan order
        oldest_first = sorted(boosted, key=lambda p: p.time_added or 0)
        for pcb in reversed(oldest_first):
            levels.push_front(replace(pcb, time_added=now), levels.top_level)
            self._boosts += 1


DISCIPLINES: dict[str, Callable[[SimulationConfig, VirtualClock], SchedulingPolicy]] = {
    "simple": lambda _config, _clock: FCFSPolicy(),
    "simplerr": lambda config, _clock: RoundRobinPolicy(quantum=config.quantum),
    "mlrr": lambda config, _clock: MultiLevelRoundRobinPolicy(config.mlrr_quanta),
    "simplemlf": lambda config, _clock: SimpleMLFQPolicy(config.feedback_quanta),
    "mlf": lambda config, clock: MLFQPolicy(
        config.feedback_quanta,
        clock=clock,
        starvation_bound=config.starvation_bound,
    ),
}


def create_policy(
    name: str,
    *,
    clock: VirtualClock,
    config: SimulationConfig | None = None,
) -> SchedulingPolicy:
    """Build the discipline registered as *name*.

    Args:
        name: One of the keys of ``DISCIPLINES``.
        clock: The clock of the simulation the policy will serve.
        config: Quanta and bounds; defaults to ``SimulationConfig()``.

    Raises:
        UnknownDisciplineError: If *name* is not registered.

    """
    factory = DISCIPLINES.get(name)
    if factory is None:
        known = ", ".join(DISCIPLINES)
        msg = f"Unknown scheduler {name!r} (expected one of: {known})"
        raise UnknownDisciplineError(msg)
    return factory(config or SimulationConfig(), clock)
