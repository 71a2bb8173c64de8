"""Tests for the simulation driver.

Scenarios are small enough to trace by hand; the expected logs and
timings in each test follow the tick-by-tick trace in its docstring.
"""

import re

import pytest

from py_sched.clock import VirtualClock
from py_sched.config import SimulationConfig
from py_sched.jobs import parse_jobs
from py_sched.logging import Logger, LogLevel
from py_sched.process.pcb import PCB
from py_sched.process.scheduler import (
    DISCIPLINES,
    FCFSPolicy,
    MultiLevelRoundRobinPolicy,
    SchedulerContractError,
    SchedulerNotReadyError,
)
from py_sched.simulator import Simulation, SimulationResult, simulate

RR_QUANTUM = 4
STARVATION_BOUND = 5
TOP_QUANTUM = 1
_DISPATCH = re.compile(r"Dispatched process (\d+) at level (\d+) for (\d+) ticks")

MIXED_JOBS = [
    "1 0 7 0",
    "2 0 3 3",
    "3 2 12 1",
    "4 2 1 2",
    "5 9 5 0",
    "6 15 4 3",
    "7 40 2 1",
]


def _run(lines: list[str], discipline: str, **overrides: object) -> SimulationResult:
    """Simulate *lines* under *discipline* with config overrides."""
    config = SimulationConfig(**overrides)  # type: ignore[arg-type]
    return simulate(parse_jobs(lines), discipline, config=config)


def _dispatches(result: SimulationResult, pid: int) -> list[tuple[int, int]]:
    """Return (level, grant) for every dispatch of *pid*."""
    found: list[tuple[int, int]] = []
    for entry in result.logger.filter(min_level=LogLevel.DEBUG):
        match = _DISPATCH.fullmatch(entry.message)
        if match and int(match.group(1)) == pid:
            found.append((int(match.group(2)), int(match.group(3))))
    return found


def _run_order(result: SimulationResult) -> list[int]:
    """Return the ids of executed ticks with consecutive repeats collapsed."""
    order: list[int] = []
    for message in result.logger.messages():
        if message.endswith(" executed"):
            pid = int(message.split()[1])
            if not order or order[-1] != pid:
                order.append(pid)
    return order


class TestFCFS:
    """Verify the simple discipline end to end."""

    def test_single_job_log(self) -> None:
        """One job: admitted, five executed ticks, finished."""
        result = _run(["1 0 5 0"], "simple")
        expected = ["Scheduled Process: 1"] + ["Process 1 executed"] * 5 + ["Process 1 Finished"]
        assert result.logger.messages() == expected
        assert result.total_ticks == 5

    def test_same_arrival_keeps_input_order(self) -> None:
        """Ties on arrival time are served in ingestion order."""
        result = _run(["2 0 2", "1 0 1", "3 0 1"], "simple")
        assert result.completion_order == [2, 1, 3]

    def test_no_job_runs_before_arrival(self) -> None:
        """The CPU idles until the next arrival instead of running early."""
        result = _run(["1 0 2", "2 5 1"], "simple")
        assert result.stats_for(2).first_run_at == 5
        assert result.idle_ticks == 3
        assert result.total_ticks == 6

    def test_zero_burst_job_finishes_without_running(self) -> None:
        """A job with nothing to do finishes on dispatch."""
        result = _run(["1 0 0", "2 0 2"], "simple")
        assert result.logger.messages() == [
            "Scheduled Process: 1",
            "Scheduled Process: 2",
            "Process 1 Finished",
            "Process 2 executed",
            "Process 2 executed",
            "Process 2 Finished",
        ]


class TestRoundRobin:
    """Verify single-queue round robin end to end."""

    def test_mid_burst_arrival(self) -> None:
        """Job 2 arrives at tick 2 while job 1 holds the CPU.

        Job 1 runs ticks 0-3, job 2 is queued at tick 2 and runs 4-6,
        then job 1 finishes with 4 + 2 more ticks.
        """
        result = _run(["1 0 10 0", "2 2 3 0"], "simplerr", quantum=RR_QUANTUM)
        expected = (
            ["Scheduled Process: 1"]
            + ["Process 1 executed"] * 2
            + ["Scheduled Process: 2"]
            + ["Process 1 executed"] * 2
            + ["Process 2 executed"] * 3
            + ["Process 2 Finished"]
            + ["Process 1 executed"] * 6
            + ["Process 1 Finished"]
        )
        assert result.logger.messages() == expected
        admitted = [e for e in result.logger.entries if e.message == "Scheduled Process: 2"]
        assert admitted[0].tick == 2

    def test_burst_split_by_quantum(self) -> None:
        """A burst of 10 with quantum 4 runs as 4, 4, 2 around job 2."""
        result = _run(["1 0 10", "2 0 3"], "simplerr", quantum=RR_QUANTUM)
        assert [grant for _, grant in _dispatches(result, 1)] == [4, 4, 2]
        assert _run_order(result) == [1, 2, 1]
        assert result.context_switches == 4

    def test_new_arrival_queued_before_requeue(self) -> None:
        """A job arriving on the tick a quantum expires goes first."""
        result = _run(["1 0 8", "2 4 1"], "simplerr", quantum=RR_QUANTUM)
        assert _run_order(result) == [1, 2, 1]


class TestMultiLevelRoundRobin:
    """Verify fixed-level round robin end to end."""

    def test_levels_never_change(self) -> None:
        """Each process is always dispatched from its priority level.

        Level 2 (quantum 2) alternates jobs 2 and 3 before level 0
        (quantum 8) ever runs job 1.
        """
        result = _run(["1 0 10 0", "2 0 6 2", "3 1 3 2"], "mlrr")
        assert {level for level, _ in _dispatches(result, 1)} == {0}
        assert {level for level, _ in _dispatches(result, 2)} == {2}
        assert {level for level, _ in _dispatches(result, 3)} == {2}
        assert _run_order(result) == [2, 3, 2, 3, 2, 1]
        assert result.completion_order == [3, 2, 1]
        assert [grant for _, grant in _dispatches(result, 1)] == [8, 2]

    def test_admission_logs_priority(self) -> None:
        """Priority-aware disciplines report the priority on admission."""
        result = _run(["1 0 1 2"], "mlrr")
        assert result.logger.messages()[0] == "Scheduled Process: 1, Priority: 2"


class TestFeedback:
    """Verify both feedback disciplines end to end."""

    def test_demoted_to_bottom_after_top_level_demotions(self) -> None:
        """A long job walks down every level, then runs to completion."""
        result = _run(["1 0 20"], "simplemlf")
        assert _dispatches(result, 1) == [(3, 1), (2, 2), (1, 4), (0, 13)]
        assert result.total_ticks == 20

    def test_full_mlfq_preempts_for_new_arrival(self) -> None:
        """Job 2 arriving at tick 5 cuts job 1's level-1 quantum short.

        Job 1 runs tick 0 (level 3), ticks 1-2 (level 2) and ticks 3-4
        (level 1) before job 2 arrives on the top level.  Job 1 is
        demoted to level 0 and finishes after job 2.
        """
        result = _run(["1 0 10", "2 5 2"], "mlf")
        assert result.preemptions == 1
        assert result.stats_for(2).response_time == 0
        assert result.completion_order == [2, 1]
        assert _dispatches(result, 1) == [(3, 1), (2, 2), (1, 4), (0, 5)]
        assert result.total_ticks == 12

    def test_simple_mlfq_does_not_preempt(self) -> None:
        """The same input under simplemlf lets job 1 finish its quantum."""
        result = _run(["1 0 10", "2 5 2"], "simplemlf")
        assert result.preemptions == 0
        assert result.stats_for(2).response_time == 2

    def test_aging_bounds_starvation(self) -> None:
        """A stream of short top-level jobs cannot starve a demoted one."""
        stream = [f"{pid} {pid - 1} 1" for pid in range(2, 32)]
        lines = ["1 0 30", *stream]
        result = _run(lines, "mlf", starvation_bound=STARVATION_BOUND)
        assert result.stats_for(1).max_wait <= STARVATION_BOUND + TOP_QUANTUM

    def test_without_aging_the_demoted_job_waits(self) -> None:
        """With a huge bound the same stream keeps job 1 waiting."""
        stream = [f"{pid} {pid - 1} 1" for pid in range(2, 32)]
        lines = ["1 0 30", *stream]
        result = _run(lines, "mlf", starvation_bound=1000)
        assert result.stats_for(1).max_wait > STARVATION_BOUND * 4


class TestInvariants:
    """Properties that hold under every discipline."""

    @pytest.mark.parametrize("discipline", list(DISCIPLINES))
    def test_every_job_runs_exactly_its_burst(self, discipline: str) -> None:
        """Executed ticks per job equal its burst; the table ends empty."""
        table = parse_jobs(MIXED_JOBS)
        bursts = {job.id: job.burst for job in table}
        result = simulate(table, discipline)
        assert len(table) == 0
        assert sorted(result.completion_order) == sorted(bursts)
        for pid, burst in bursts.items():
            executed = result.logger.messages().count(f"Process {pid} executed")
            assert executed == burst

    @pytest.mark.parametrize("discipline", list(DISCIPLINES))
    def test_nothing_runs_before_arrival(self, discipline: str) -> None:
        """No executed tick precedes the job's arrival."""
        result = _run(MIXED_JOBS, discipline)
        arrivals = {s.id: s.arrival_time for s in result.jobs}
        for entry in result.logger.entries:
            if entry.message.endswith(" executed"):
                pid = int(entry.message.split()[1])
                assert entry.tick >= arrivals[pid]

    @pytest.mark.parametrize("discipline", list(DISCIPLINES))
    def test_cpu_time_accounts_for_every_tick(self, discipline: str) -> None:
        """Busy ticks equal the sum of bursts."""
        result = _run(MIXED_JOBS, discipline)
        busy = result.total_ticks - result.idle_ticks
        assert busy == sum(s.burst for s in result.jobs)


class TestSimulationDriver:
    """Verify driver bookkeeping and error handling."""

    def test_empty_table(self) -> None:
        """Nothing to do finishes immediately."""
        result = _run([], "simple")
        assert result.jobs == []
        assert result.total_ticks == 0

    def test_clock_reset_at_start(self) -> None:
        """A run always starts at tick zero."""
        clock = VirtualClock(start=10)
        result = Simulation(parse_jobs(["1 0 2"]), FCFSPolicy(), clock=clock).run()
        assert result.total_ticks == 2
        assert clock.now() == 2

    def test_shared_logger(self) -> None:
        """Events are appended to a caller-supplied logger."""
        logger = Logger()
        simulate(parse_jobs(["1 0 1"]), "simple", logger=logger)
        assert logger.messages()[-1] == "Process 1 Finished"

    def test_idle_ticks_are_logged_at_debug(self) -> None:
        """Idle ticks appear only in the debug log."""
        result = _run(["1 2 1"], "simple")
        idle = result.logger.filter(min_level=LogLevel.DEBUG, source="cpu")
        assert [e.message for e in idle][:2] == ["CPU idle", "CPU idle"]
        assert "CPU idle" not in result.logger.messages()

    def test_summary(self) -> None:
        """Averages, throughput and utilisation for two FCFS jobs."""
        summary = _run(["1 0 2", "2 0 2"], "simple").summary()
        assert summary["completed"] == 2
        assert summary["avg_wait_time"] == pytest.approx(1.0)
        assert summary["avg_turnaround_time"] == pytest.approx(3.0)
        assert summary["avg_response_time"] == pytest.approx(1.0)
        assert summary["throughput"] == pytest.approx(0.5)
        assert summary["cpu_utilization"] == pytest.approx(1.0)
        assert summary["context_switches"] == 2

    def test_job_stats_dict(self) -> None:
        """as_dict() includes the derived times."""
        stats = _run(["1 3 2"], "simple").stats_for(1)
        data = stats.as_dict()
        assert data["response_time"] == 0
        assert data["turnaround_time"] == 2

    def test_stats_for_unknown_job(self) -> None:
        """Asking for a job that never ran raises KeyError."""
        result = _run(["1 0 1"], "simple")
        with pytest.raises(KeyError):
            result.stats_for(99)

    def test_unconfigured_policy_is_rejected(self) -> None:
        """The driver refuses to start with an unconfigured policy."""
        simulation = Simulation(parse_jobs(["1 0 1"]), MultiLevelRoundRobinPolicy())
        with pytest.raises(SchedulerNotReadyError):
            simulation.run()

    def test_policy_returning_nothing_breaks_contract(self) -> None:
        """Pending work with nothing to select is a contract violation."""

        class _EmptyHanded(FCFSPolicy):
            def select_next(self) -> tuple[PCB, int | None] | None:
                return None

        simulation = Simulation(parse_jobs(["1 0 1"]), _EmptyHanded())
        with pytest.raises(SchedulerContractError, match="select_next"):
            simulation.run()

    def test_policy_losing_processes_breaks_contract(self) -> None:
        """A policy that drops admissions cannot hang the driver."""

        class _Forgetful(FCFSPolicy):
            def admit(self, pcb: PCB) -> None:
                pass

        simulation = Simulation(parse_jobs(["1 0 1", "2 3 1"]), _Forgetful())
        with pytest.raises(SchedulerContractError, match="no process is queued"):
            simulation.run()
