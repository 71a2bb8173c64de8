"""Process subsystem: PCB, process states, and scheduling policies.

Re-exports public symbols so callers can write::

    from py_sched.process import PCB, RoundRobinPolicy
"""

from py_sched.process.pcb import PCB, ProcessState
from py_sched.process.scheduler import (
    DISCIPLINES,
    FCFSPolicy,
    MLFQPolicy,
    MultiLevelRoundRobinPolicy,
    RoundRobinPolicy,
    SchedulerContractError,
    SchedulerNotReadyError,
    SchedulingPolicy,
    SimpleMLFQPolicy,
    UnknownDisciplineError,
    create_policy,
)

__all__ = [
    "DISCIPLINES",
    "PCB",
    "FCFSPolicy",
    "MLFQPolicy",
    "MultiLevelRoundRobinPolicy",
    "ProcessState",
    "RoundRobinPolicy",
    "SchedulerContractError",
    "SchedulerNotReadyError",
    "SchedulingPolicy",
    "SimpleMLFQPolicy",
    "UnknownDisciplineError",
    "create_policy",
]
