"""Simulation driver: the discrete-event loop.

The driver replays a job table against one scheduling policy:

    1. Reset the clock and admit everything arriving at tick 0.
    2. Until the job table is empty, ask the policy for the next process
       and run it one tick at a time for the granted quantum.
    3. After every tick, admit new arrivals, then finish the process,
       requeue it (grant used up), or requeue it as preempted (the
       policy's ``check_preempt`` said so), in that order.
    4. When nothing is queued, the CPU idles one tick at a time until
       the next arrival.

Arrivals on tick ``t`` are therefore always queued before anything runs
on ``t``, and a job arriving mid-burst is queued ahead of the process
whose burst it interrupted.

Each run records an event log plus per-job timing, and aggregates them
into the usual scheduling metrics: waiting, turnaround and response
time, throughput and CPU utilisation.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING

from py_sched.clock import TICK_NS, VirtualClock
from py_sched.logging import Logger, LogLevel
from py_sched.process.scheduler import (
    SchedulerContractError,
    SchedulerNotReadyError,
    create_policy,
)

if TYPE_CHECKING:
    from py_sched.config import SimulationConfig
    from py_sched.jobs import Job, JobTable
    from py_sched.process.pcb import PCB
    from py_sched.process.scheduler import SchedulingPolicy


@dataclass(frozen=True)
class JobStats:
    """Timing of one finished job, in ticks."""

    id: int
    arrival_time: int
    burst: int
    priority: int
    first_run_at: int
    finished_at: int
    wait_time: int
    max_wait: int
    dispatches: int

    @property
    def response_time(self) -> int:
        """Return ticks from arrival to first dispatch."""
        return self.first_run_at - self.arrival_time

    @property
    def turnaround_time(self) -> int:
        """Return ticks from arrival to completion."""
        return self.finished_at - self.arrival_time

    @classmethod
    def from_job(cls, job: Job) -> JobStats:
        """Snapshot a finished job."""
        assert job.first_run_at is not None  # noqa: S101
        assert job.finished_at is not None  # noqa: S101
        return cls(
            id=job.id,
            arrival_time=job.arrival_time,
            burst=job.burst,
            priority=job.priority,
            first_run_at=job.first_run_at,
            finished_at=job.finished_at,
            wait_time=job.wait_time,
            max_wait=job.max_wait,
            dispatches=job.dispatches,
        )

    def as_dict(self) -> dict[str, int]:
        """Return the stats, derived times included, as a plain dict."""
        return {
            "id": self.id,
            "arrival_time": self.arrival_time,
            "burst": self.burst,
            "priority": self.priority,
            "first_run_at": self.first_run_at,
            "finished_at": self.finished_at,
            "wait_time": self.wait_time,
            "max_wait": self.max_wait,
            "response_time": self.response_time,
            "turnaround_time": self.turnaround_time,
            "dispatches": self.dispatches,
        }


@dataclass
class SimulationResult:
    """Everything a finished run produced."""

    logger: Logger
    jobs: list[JobStats] = field(default_factory=list)
    total_ticks: int = 0
    idle_ticks: int = 0
    context_switches: int = 0
    preemptions: int = 0

    @property
    def completion_order(self) -> list[int]:
        """Return job ids in the order they finished."""
        return [s.id for s in self.jobs]

    def stats_for(self, job_id: int) -> JobStats:
        """Return the stats of *job_id*.

        Raises:
            KeyError: If no such job finished.

        """
        for stats in self.jobs:
            if stats.id == job_id:
                return stats
        raise KeyError(job_id)

    def summary(self) -> dict[str, float | int]:
        """Aggregate the per-job timings into run-wide metrics."""
        completed = len(self.jobs)
        if completed:
            avg_wait = sum(s.wait_time for s in self.jobs) / completed
            avg_turnaround = sum(s.turnaround_time for s in self.jobs) / completed
            avg_response = sum(s.response_time for s in self.jobs) / completed
        else:
            avg_wait = avg_turnaround = avg_response = 0.0
        busy = self.total_ticks - self.idle_ticks
        return {
            "completed": completed,
            "total_ticks": self.total_ticks,
            "idle_ticks": self.idle_ticks,
            "context_switches": self.context_switches,
            "preemptions": self.preemptions,
            "avg_wait_time": avg_wait,
            "avg_turnaround_time": avg_turnaround,
            "avg_response_time": avg_response,
            "throughput": completed / self.total_ticks if self.total_ticks else 0.0,
            "cpu_utilization": busy / self.total_ticks if self.total_ticks else 0.0,
        }


class Simulation:
    """One run of a job table against a scheduling policy.

    The policy must read the same clock the simulation advances; pass
    that clock in when the policy needs one (``create_policy`` and
    ``simulate`` take care of it).
    """

    def __init__(
        self,
        table: JobTable,
        policy: SchedulingPolicy,
        *,
        clock: VirtualClock | None = None,
        logger: Logger | None = None,
    ) -> None:
        """Prepare a run.

        Args:
            table: The jobs to replay; emptied by the run.
            policy: The scheduling discipline.
            clock: The virtual clock (a new one if omitted).
            logger: Event log to append to (a new one if omitted).

        """
        self._table = table
        self._policy = policy
        self._clock = clock if clock is not None else VirtualClock()
        self._logger = logger if logger is not None else Logger()
        self._result = SimulationResult(logger=self._logger)
        self._last_arrival = 0

    @property
    def clock(self) -> VirtualClock:
        """Return the simulation clock."""
        return self._clock

    @property
    def logger(self) -> Logger:
        """Return the event log."""
        return self._logger

    def run(self) -> SimulationResult:
        """Replay the whole job table and return the result.

        Raises:
            SchedulerNotReadyError: If the policy is not configured.
            SchedulerContractError: If the policy loses or invents a process.

        """
        if not self._policy.configured:
            msg = f"{type(self._policy).__name__} is not configured"
            raise SchedulerNotReadyError(msg)

        self._clock.reset()
        self._last_arrival = max(self._table.arrival_times(), default=0)
        self._admit_arrivals()

        while len(self._table):
            if self._policy.has_pending():
                self._run_next()
            else:
                self._idle()

        self._result.total_ticks = self._clock.now()
        return self._result

    def _log(self, level: LogLevel, message: str, *, source: str) -> None:
        self._logger.log(level, message, source=source, tick=self._clock.now())

    def _admit_arrivals(self) -> None:
        """Queue every job arriving at the current tick, in input order."""
        now = self._clock.now()
        for job_id in self._table.arrivals_at(now):
            job = self._table.get(job_id)
            if job is None:
                continue
            job.admit(now)
            self._policy.admit(replace(job.pcb(), time_added=now))
            if self._policy.uses_priority:
                message = f"Scheduled Process: {job.id}, Priority: {job.priority}"
            else:
                message = f"Scheduled Process: {job.id}"
            self._log(LogLevel.INFO, message, source="scheduler")

    def _idle(self) -> None:
        """Let one tick pass with an empty CPU, then admit arrivals."""
        if self._clock.now() >= self._last_arrival:
            msg = f"{len(self._table)} jobs remain but no process is queued"
            raise SchedulerContractError(msg)
        self._log(LogLevel.DEBUG, "CPU idle", source="cpu")
        self._clock.advance(TICK_NS)
        self._result.idle_ticks += 1
        self._admit_arrivals()

    def _run_next(self) -> None:
        """Dispatch the policy's next choice and run it tick by tick."""
        selected = self._policy.select_next()
        if selected is None:
            msg = "select_next returned nothing while processes were pending"
            raise SchedulerContractError(msg)
        pcb, quantum = selected
        job = self._table.get(pcb.id)
        if job is None:
            msg = f"Process {pcb.id} was selected but is not in the job table"
            raise SchedulerContractError(msg)

        now = self._clock.now()
        pcb = replace(pcb, time_scheduled=now)
        job.dispatch(now)
        self._result.context_switches += 1
        grant = job.remaining_burst if quantum is None else min(quantum, job.remaining_burst)
        self._log(
            LogLevel.DEBUG,
            f"Dispatched process {pcb.id} at level {pcb.level} for {grant} ticks",
            source="scheduler",
        )

        if job.remaining_burst == 0:
            self._finish(job)
            return

        ran = 0
        while True:
            self._log(LogLevel.INFO, f"Process {pcb.id} executed", source="cpu")
            self._clock.advance(TICK_NS)
            job.run_tick()
            ran += 1
            self._admit_arrivals()

            if job.remaining_burst == 0:
                self._finish(job)
                return
            if ran >= grant:
                self._requeue(job, pcb, preempted=False)
                return
            if self._policy.check_preempt(pcb, pcb.level):
                self._result.preemptions += 1
                self._requeue(job, pcb, preempted=True)
                return

    def _requeue(self, job: Job, pcb: PCB, *, preempted: bool) -> None:
        now = self._clock.now()
        job.preempt(now)
        self._policy.requeue(replace(pcb, time_added=now), preempted=preempted)
        reason = "preempted" if preempted else "quantum expired"
        self._log(
            LogLevel.DEBUG,
            f"Process {pcb.id} requeued ({reason}), {job.remaining_burst} ticks left",
            source="scheduler",
        )

    def _finish(self, job: Job) -> None:
        job.finish(self._clock.now())
        self._table.remove(job.id)
        self._result.jobs.append(JobStats.from_job(job))
        self._log(LogLevel.INFO, f"Process {job.id} Finished", source="cpu")


def simulate(
    table: JobTable,
    discipline: str,
    *,
    config: SimulationConfig | None = None,
    logger: Logger | None = None,
) -> SimulationResult:
    """Run *table* under the discipline registered as *discipline*.

    Raises:
        UnknownDisciplineError: If *discipline* is not registered.

    """
    clock = VirtualClock()
    policy = create_policy(discipline, clock=clock, config=config)
    return Simulation(table, policy, clock=clock, logger=logger).run()
