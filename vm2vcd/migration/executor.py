# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# vm2vcd/migration/executor.py
"""
Relocation executor.

Phases:

    SUBMITTED -> QUEUED | RUNNING -> SUCCESS | ERROR

One relocation is submitted, then the task is polled at a fixed interval
until it is terminal. There is no client-side timeout, no backoff and no
cancellation: a stuck remote task stalls the batch. An ERROR task is not
rolled back; the VM stays wherever vSphere left it.
"""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, List, Optional, Sequence

from ..core.exceptions import ExecutionFailure, VMwareError
from ..core.logger import Log
from ..core.logging_utils import safe_logger
from .interfaces import ComputeSession
from .models import (
    ClusterRef,
    NetworkAdapterMapping,
    PlacementDecision,
    SourceVm,
    TaskInfo,
    TaskState,
)

DEFAULT_POLL_INTERVAL_S = 5.0


class ExecutorPhase(str, Enum):
    SUBMITTED = "Submitted"
    QUEUED = "Queued"
    RUNNING = "Running"
    SUCCESS = "Success"
    ERROR = "Error"


_PHASE_FOR_STATE = {
    TaskState.QUEUED: ExecutorPhase.QUEUED,
    TaskState.RUNNING: ExecutorPhase.RUNNING,
    TaskState.SUCCESS: ExecutorPhase.SUCCESS,
    TaskState.ERROR: ExecutorPhase.ERROR,
}


@dataclass
class ExecutionResult:
    task: TaskInfo
    polls: int = 0
    phases: List[ExecutorPhase] = field(default_factory=list)


class MigrationExecutor:
    def __init__(
        self,
        source: ComputeSession,
        *,
        destination: Optional[ComputeSession] = None,
        poll_interval_s: float = DEFAULT_POLL_INTERVAL_S,
        thin: bool = True,
        sleep: Callable[[float], None] = time.sleep,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.source = source
        self.destination = destination
        self.poll_interval_s = float(poll_interval_s)
        self.thin = bool(thin)
        self._sleep = sleep
        self.logger = safe_logger(logger)

    def run(
        self,
        vm: SourceVm,
        decision: PlacementDecision,
        cluster: ClusterRef,
        mappings: Sequence[NetworkAdapterMapping],
    ) -> ExecutionResult:
        self._detach_media(vm)

        task = self.source.relocate(
            vm,
            decision,
            cluster,
            mappings,
            thin=self.thin,
            destination=self.destination if self.destination is not self.source else None,
        )
        result = ExecutionResult(task=task, phases=[ExecutorPhase.SUBMITTED])
        Log.step(self.logger, f"Relocation of {vm.name} submitted", task=task.id)

        return self.wait(result)

    def wait(self, result: ExecutionResult) -> ExecutionResult:
        task = result.task
        self._enter(result, task.state)

        while not task.state.terminal:
            self._sleep(self.poll_interval_s)
            result.polls += 1
            fresh = self.source.get_task(task.id)
            if fresh is None:
                # Transient read; keep the last known state and poll again.
                self.logger.warning("Task %s not found on poll %d; retrying", task.id, result.polls)
                continue
            task = fresh
            result.task = task
            self._enter(result, task.state)
            self.logger.info("Task %s: %s %d%%", task.id, task.state.value, task.percent_complete)

        if task.state is TaskState.ERROR:
            raise ExecutionFailure(
                msg=f"relocation task {task.id} failed: {task.error or 'no error detail'}",
                task_id=task.id,
            )

        Log.ok(self.logger, f"Relocation task {task.id} completed", polls=result.polls)
        return result

    def _enter(self, result: ExecutionResult, state: TaskState) -> None:
        phase = _PHASE_FOR_STATE[state]
        if not result.phases or result.phases[-1] is not phase:
            result.phases.append(phase)

    def _detach_media(self, vm: SourceVm) -> None:
        try:
            changed = self.source.detach_removable_media(vm)
        except VMwareError as e:
            Log.warn(self.logger, f"Could not detach removable media from {vm.name}: {e}")
            return
        if changed:
            Log.warn(self.logger, f"Detached removable media from {vm.name}", drives=changed)
