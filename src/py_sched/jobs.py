"""Job table: every process the simulation will replay.

Input records are whitespace-separated integers, one per line::

    id arrival_time burst [priority]

Each record becomes a ``Job``, the single source of truth for how much
CPU time a process still needs.  The ``JobTable`` holds two views over
the same jobs:

    - **by id**: the owning mapping, kept in input order.  A job leaves
      the table the moment its remaining burst reaches zero.
    - **by arrival time**: a secondary index from tick to the ids that
      arrive on it, built once at ingestion and never changed.

Jobs follow the process state machine from ``py_sched.process.pcb``;
each transition method checks the source state before moving, and
records the timing needed for per-job statistics.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from py_sched.process.pcb import PCB, ProcessState

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator
    from pathlib import Path

_FIELD_NAMES = ("id", "arrival_time", "burst", "priority")
_MIN_FIELDS = 3

# Largest value each field may hold; arrival times share the clock's 64-bit range
_U32_MAX = 2**32 - 1
_U64_MAX = 2**64 - 1
_FIELD_MAX = {"id": _U32_MAX, "arrival_time": _U64_MAX, "burst": _U32_MAX, "priority": _U32_MAX}


class MalformedRecordError(Exception):
    """An input record is missing a field or has a non-integer value."""

    def __init__(self, message: str, *, line_number: int, line: str) -> None:
        """Create the error.

        Args:
            message: What is wrong with the record.
            line_number: 1-based line number in the input.
            line: The offending line, without its newline.

        """
        super().__init__(message)
        self.line_number = line_number
        self.line = line


class Job:
    """One simulated process and its remaining work."""

    def __init__(self, *, id: int, arrival_time: int, burst: int, priority: int = 0) -> None:  # noqa: A002
        """Create a job in the NEW state.

        Args:
            id: Unique process id.
            arrival_time: Tick the process arrives on.
            burst: Ticks of CPU time it needs.
            priority: Scheduling priority (ignored by some disciplines).

        Raises:
            ValueError: If any field is negative.

        """
        fields = {"id": id, "arrival_time": arrival_time, "burst": burst, "priority": priority}
        for name, value in fields.items():
            if value < 0:
                msg = f"Job {name} must not be negative, got {value}"
                raise ValueError(msg)
        self._id = id
        self._arrival_time = arrival_time
        self._burst = burst
        self._remaining = burst
        self._priority = priority
        self._state = ProcessState.NEW

        # Timing, in virtual ticks
        self._ready_since: int | None = None
        self._first_run_at: int | None = None
        self._finished_at: int | None = None
        self._wait_time = 0
        self._max_wait = 0
        self._dispatches = 0

    @property
    def id(self) -> int:
        """Return the process id."""
        return self._id

    @property
    def arrival_time(self) -> int:
        """Return the arrival tick."""
        return self._arrival_time

    @property
    def burst(self) -> int:
        """Return the total CPU time the job asked for."""
        return self._burst

    @property
    def remaining_burst(self) -> int:
        """Return the CPU time still required."""
        return self._remaining

    @property
    def priority(self) -> int:
        """Return the input priority."""
        return self._priority

    @property
    def state(self) -> ProcessState:
        """Return the current process state."""
        return self._state

    @property
    def first_run_at(self) -> int | None:
        """Return the tick of the first dispatch, or None if never run."""
        return self._first_run_at

    @property
    def finished_at(self) -> int | None:
        """Return the tick the job finished, or None."""
        return self._finished_at

    @property
    def wait_time(self) -> int:
        """Return the total ticks spent queued."""
        return self._wait_time

    @property
    def max_wait(self) -> int:
        """Return the longest single stretch spent queued."""
        return self._max_wait

    @property
    def dispatches(self) -> int:
        """Return how many times the job was given the CPU."""
        return self._dispatches

    def pcb(self) -> PCB:
        """Return a fresh PCB for this job."""
        return PCB(id=self._id, priority=self._priority)

    def _transition(self, action: str, expected: ProcessState, target: ProcessState) -> None:
        """Enforce a state transition.

        Raises:
            RuntimeError: If the job is not in the expected state.

        """
        if self._state is not expected:
            msg = f"Cannot {action}: job {self._id} is {self._state}, expected {expected}"
            raise RuntimeError(msg)
        self._state = target

    def admit(self, now: int) -> None:
        """Transition NEW → WAITING as the job arrives."""
        self._transition("admit", ProcessState.NEW, ProcessState.WAITING)
        self._ready_since = now

    def dispatch(self, now: int) -> None:
        """Transition WAITING → RUNNING and account for the wait."""
        self._transition("dispatch", ProcessState.WAITING, ProcessState.RUNNING)
        waited = now - (self._ready_since if self._ready_since is not None else now)
        self._wait_time += waited
        self._max_wait = max(self._max_wait, waited)
        self._ready_since = None
        self._dispatches += 1
        if self._first_run_at is None:
            self._first_run_at = now

    def preempt(self, now: int) -> None:
        """Transition RUNNING → WAITING when the job goes back to a queue."""
        self._transition("preempt", ProcessState.RUNNING, ProcessState.WAITING)
        self._ready_since = now

    def run_tick(self) -> int:
        """Consume one tick of CPU time and return what remains.

        Raises:
            RuntimeError: If the job is not running or has nothing left.

        """
        if self._state is not ProcessState.RUNNING:
            msg = f"Cannot run: job {self._id} is {self._state}"
            raise RuntimeError(msg)
        if self._remaining == 0:
            msg = f"Cannot run: job {self._id} has no burst left"
            raise RuntimeError(msg)
        self._remaining -= 1
        return self._remaining

    def finish(self, now: int) -> None:
        """Transition RUNNING → FINISHED once the burst is exhausted.

        Raises:
            RuntimeError: If the job still has work left.

        """
        if self._remaining:
            msg = f"Cannot finish: job {self._id} has {self._remaining} ticks left"
            raise RuntimeError(msg)
        self._transition("finish", ProcessState.RUNNING, ProcessState.FINISHED)
        self._finished_at = now

    def __repr__(self) -> str:
        """Return a debug-friendly representation."""
        return (
            f"Job(id={self._id}, arrival_time={self._arrival_time}, "
            f"remaining_burst={self._remaining}, priority={self._priority}, state={self._state})"
        )


class JobTable:
    """Jobs indexed by id (ownership) and by arrival time."""

    def __init__(self, jobs: Iterable[Job] = ()) -> None:
        """Build both indices in one pass.

        Raises:
            ValueError: If two jobs share an id.

        """
        self._by_id: dict[int, Job] = {}
        self._by_time: dict[int, tuple[int, ...]] = {}
        by_time: dict[int, list[int]] = {}
        for job in jobs:
            if job.id in self._by_id:
                msg = f"Duplicate job id {job.id}"
                raise ValueError(msg)
            self._by_id[job.id] = job
            by_time.setdefault(job.arrival_time, []).append(job.id)
        self._by_time = {t: tuple(ids) for t, ids in by_time.items()}

    def get(self, job_id: int) -> Job | None:
        """Return the job with *job_id*, or None if absent."""
        return self._by_id.get(job_id)

    def arrivals_at(self, time: int) -> tuple[int, ...]:
        """Return the ids arriving at *time*, in input order."""
        return self._by_time.get(time, ())

    def arrival_times(self) -> list[int]:
        """Return every distinct arrival time, ascending."""
        return sorted(self._by_time)

    def remove(self, job_id: int) -> Job:
        """Remove and return a finished job.

        Raises:
            KeyError: If the job is not in the table.
            RuntimeError: If the job has not finished.

        """
        job = self._by_id[job_id]
        if job.state is not ProcessState.FINISHED:
            msg = f"Cannot remove job {job_id}: state is {job.state}, expected finished"
            raise RuntimeError(msg)
        del self._by_id[job_id]
        return job

    @property
    def ids(self) -> list[int]:
        """Return the ids still in the table, in input order."""
        return list(self._by_id)

    def __len__(self) -> int:
        """Return the number of jobs still in the table."""
        return len(self._by_id)

    def __contains__(self, job_id: object) -> bool:
        """Return True if *job_id* is still in the table."""
        return job_id in self._by_id

    def __iter__(self) -> Iterator[Job]:
        """Iterate over the jobs still in the table, in input order."""
        return iter(list(self._by_id.values()))


def _parse_field(name: str, text: str, *, line_number: int, line: str) -> int:
    """Parse one unsigned decimal field or raise MalformedRecordError.

    Only plain ASCII digits are accepted, and the value must fit the
    field's range.
    """
    if not (text.isascii() and text.isdecimal()):
        msg = f"Invalid {name} on line {line_number}: {line}"
        raise MalformedRecordError(msg, line_number=line_number, line=line)
    value = int(text)
    if value > _FIELD_MAX[name]:
        msg = f"{name} out of range on line {line_number}: {line}"
        raise MalformedRecordError(msg, line_number=line_number, line=line)
    return value


def parse_record(line: str, *, line_number: int) -> Job:
    """Parse ``id arrival_time burst [priority]`` into a Job.

    Raises:
        MalformedRecordError: If a field is missing or extra, is not a
            plain unsigned integer, or is out of range.

    """
    parts = line.split()
    if len(parts) < _MIN_FIELDS:
        missing = _FIELD_NAMES[len(parts)]
        msg = f"Missing {missing} on line {line_number}: {line}"
        raise MalformedRecordError(msg, line_number=line_number, line=line)
    if len(parts) > len(_FIELD_NAMES):
        msg = f"Too many fields on line {line_number}: {line}"
        raise MalformedRecordError(msg, line_number=line_number, line=line)
    values = [
        _parse_field(name, text, line_number=line_number, line=line)
        for name, text in zip(_FIELD_NAMES, parts, strict=False)
    ]
    job_id, arrival_time, burst = values[:3]
    priority = values[3] if len(values) > _MIN_FIELDS else 0
    return Job(id=job_id, arrival_time=arrival_time, burst=burst, priority=priority)


def parse_jobs(lines: Iterable[str]) -> JobTable:
    """Build a JobTable from input lines.

    Blank lines and lines starting with ``#`` are skipped.  The first
    bad record aborts ingestion; no partial table is returned.

    Raises:
        MalformedRecordError: On the first malformed or duplicate record.

    """
    jobs: list[Job] = []
    seen: set[int] = set()
    for line_number, raw in enumerate(lines, start=1):
        line = raw.rstrip("\r\n")
        stripped = line.strip()
        if not stripped or stripped.startswith("#"):
            continue
        job = parse_record(line, line_number=line_number)
        if job.id in seen:
            msg = f"Duplicate id {job.id} on line {line_number}: {line}"
            raise MalformedRecordError(msg, line_number=line_number, line=line)
        seen.add(job.id)
        jobs.append(job)
    return JobTable(jobs)


def load_jobs(path: str | Path) -> JobTable:
    """Read and parse the job file at *path*.

    Raises:
        OSError: If the file cannot be opened or read.
        MalformedRecordError: On the first malformed record.

    """
    with open(path, encoding="utf-8") as fh:  # noqa: PTH123
        return parse_jobs(fh)
