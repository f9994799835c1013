# SPDX-License-Identifier: LGPL-3.0-or-later
"""Tests for relocation submit and poll."""
from __future__ import annotations

from unittest.mock import Mock

import pytest

from fakes.builders import make_vm
from fakes.fake_compute import FakeComputeSession
from vm2vcd.core.exceptions import ExecutionFailure, VMwareError
from vm2vcd.migration.executor import ExecutionResult, ExecutorPhase, MigrationExecutor
from vm2vcd.migration.models import (
    ClusterRef,
    DatastoreRef,
    FolderRef,
    HostRef,
    PlacementDecision,
    TaskInfo,
    TaskState,
)

DECISION = PlacementDecision(
    host=HostRef("esx02", 2000),
    datastore=DatastoreRef("gold-02", 1500.0),
    folder=FolderRef("acme"),
)


def _executor(source, sleeps, **kw):
    return MigrationExecutor(source, sleep=sleeps.append, poll_interval_s=5, **kw)


@pytest.mark.unit
class TestPolling:
    def test_running_then_success_stops_polling(self):
        source = FakeComputeSession()
        source.add_vm(make_vm("app01"))
        source.task_script = [
            TaskInfo("task-1", TaskState.RUNNING, 10),
            TaskInfo("task-1", TaskState.RUNNING, 55),
            TaskInfo("task-1", TaskState.SUCCESS, 100),
            TaskInfo("task-1", TaskState.ERROR),
        ]
        sleeps = []

        result = _executor(source, sleeps).run(make_vm("app01"), DECISION, ClusterRef("linux_cluster"), [])

        assert result.task.state is TaskState.SUCCESS
        assert result.polls == 3
        assert source.task_polls == 3
        assert sleeps == [5.0, 5.0, 5.0]
        assert result.phases == [
            ExecutorPhase.SUBMITTED,
            ExecutorPhase.QUEUED,
            ExecutorPhase.RUNNING,
            ExecutorPhase.SUCCESS,
        ]

    def test_error_state_raises_with_task_id(self):
        source = FakeComputeSession()
        source.task_script = [TaskInfo("task-1", TaskState.ERROR, error="Insufficient disk space")]

        with pytest.raises(ExecutionFailure) as ei:
            _executor(source, []).run(make_vm("app01"), DECISION, ClusterRef("linux_cluster"), [])

        assert ei.value.task_id == "task-1"
        assert "Insufficient disk space" in ei.value.msg

    def test_vanished_task_is_polled_again(self):
        source = FakeComputeSession()
        source.task_script = [None, TaskInfo("task-9", TaskState.SUCCESS, 100)]
        sleeps = []

        result = _executor(source, sleeps).wait(ExecutionResult(task=TaskInfo("task-9", TaskState.RUNNING)))

        assert result.polls == 2
        assert result.task.state is TaskState.SUCCESS

    def test_already_terminal_task_is_not_polled(self):
        source = FakeComputeSession()
        sleeps = []
        result = _executor(source, sleeps).wait(ExecutionResult(task=TaskInfo("t", TaskState.SUCCESS)))
        assert result.polls == 0
        assert sleeps == []


@pytest.mark.unit
class TestSubmit:
    def test_passes_thin_flag_and_destination(self):
        source = FakeComputeSession("src")
        destination = FakeComputeSession("dst")
        source.add_vm(make_vm("app01"))

        _executor(source, [], destination=destination, thin=False).run(
            make_vm("app01"), DECISION, ClusterRef("linux_cluster"), []
        )

        call = source.relocations[0]
        assert call["thin"] is False
        assert call["destination"] is destination
        assert destination.find_vms("app01")

    def test_same_session_is_not_passed_as_destination(self):
        source = FakeComputeSession()
        _executor(source, [], destination=source).run(make_vm("app01"), DECISION, ClusterRef("c"), [])
        assert source.relocations[0]["destination"] is None

    def test_media_detach_failure_does_not_block_relocation(self):
        source = FakeComputeSession()
        source.detach_removable_media = Mock(side_effect=VMwareError(msg="reconfigure denied"))

        _executor(source, []).run(make_vm("app01"), DECISION, ClusterRef("c"), [])

        assert len(source.relocations) == 1
