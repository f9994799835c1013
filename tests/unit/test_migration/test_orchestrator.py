# SPDX-License-Identifier: LGPL-3.0-or-later
"""End-to-end engine tests over in-memory sessions."""
from __future__ import annotations

from unittest.mock import Mock

import pytest

from fakes.builders import make_request, make_vm
from vm2vcd.migration.executor import MigrationExecutor
from vm2vcd.migration.interfaces import OrchestrationContext
from vm2vcd.migration.models import (
    BackupClass,
    MetadataType,
    OutcomeStatus,
    TaskInfo,
    TaskState,
    VAppRef,
    Visibility,
)
from vm2vcd.migration.orchestrator import EngineConfig, MigrationOrchestrator


def _orchestrator(lab, **cfg):
    executor = MigrationExecutor(lab.source, destination=lab.destination, sleep=lambda _s: None)
    return MigrationOrchestrator(lab.ctx, EngineConfig(**cfg), executor=executor)


def _vapp_metadata(lab, vdc_name, vm_name):
    vapp = lab.tenant.vapps[(vdc_name, vm_name)]
    return lab.tenant.get_metadata(vapp)


@pytest.mark.unit
class TestHappyPath:
    def test_migrates_imports_and_tags(self, lab):
        lab.source.add_vm(make_vm("app01", size_gb=120))
        lab.source.tags["app01"] = ["tag1"]

        [outcome] = _orchestrator(lab).run([make_request("app01")])

        assert outcome.status is OutcomeStatus.MIGRATED
        assert outcome.ok
        assert outcome.source_cluster == "legacy-01"
        assert outcome.source_datastore == "ds-legacy-01"
        assert outcome.source_tag_label == "tag1"
        assert outcome.resolved_networks == ("VLAN100",)
        assert outcome.size_gb == 120

        [call] = lab.source.relocations
        assert call["host"] == "linux_cluster-esx02"
        assert call["datastore"] == "gold-02"
        assert call["folder"] == "acme"
        assert call["thin"] is True

        assert lab.tenant.imports == [("100-Acme-Linux", "app01", True)]
        [entry] = _vapp_metadata(lab, "100-Acme-Linux", "app01")
        assert (entry.key, entry.value, entry.value_type, entry.visibility) == (
            BackupClass.BACKUP_1.value,
            "true",
            MetadataType.BOOLEAN,
            Visibility.GENERAL,
        )

    def test_pipe_in_portgroup_name(self, lab):
        lab.source.add_vm(make_vm("db02", networks=("VLAN100", "VLAN|200")))

        [outcome] = _orchestrator(lab).run([make_request("db02", "sql")])

        assert outcome.status is OutcomeStatus.MIGRATED
        assert outcome.resolved_networks == ("VLAN100", "VLAN|200")
        assert lab.source.relocations[0]["networks"] == ["VLAN100", "VLAN_200"]
        assert lab.tenant.imports == [("100-Acme-Sql", "db02", True)]

    def test_configured_metadata_value(self, lab):
        lab.source.add_vm(make_vm("app01"))
        lab.source.tags["app01"] = ["tag3"]

        _orchestrator(
            lab,
            metadata_value="2024-01-01T00:00:00",
            metadata_type=MetadataType.DATETIME,
            metadata_visibility=Visibility.READ_ONLY,
        ).run([make_request("app01")])

        [entry] = _vapp_metadata(lab, "100-Acme-Linux", "app01")
        assert entry.key == "Backup_3"
        assert entry.value_type is MetadataType.DATETIME
        assert entry.visibility is Visibility.READ_ONLY


@pytest.mark.unit
class TestSkipsAndFailures:
    def test_already_migrated_does_nothing(self, lab):
        lab.source.add_vm(make_vm("web01"))
        lab.destination.add_vm(make_vm("web01"))

        [outcome] = _orchestrator(lab).run([make_request("web01")])

        assert outcome.status is OutcomeStatus.SKIPPED
        assert "AlreadyMigrated" in outcome.reason
        assert lab.source.relocations == []
        assert lab.tenant.imports == []

    def test_unknown_os_type_has_no_side_effects(self, lab):
        lab.source.add_vm(make_vm("bsd01"))
        lab.source.tags["bsd01"] = ["tag1"]

        [outcome] = _orchestrator(lab).run([make_request("bsd01", "freebsd")])

        assert outcome.status is OutcomeStatus.SKIPPED
        assert "UnknownOsClass" in outcome.reason
        assert lab.source.relocations == []
        assert lab.source.media_detached == []
        assert lab.source.task_polls == 0
        assert lab.tenant.imports == []
        assert lab.tenant.metadata == {}

    def test_insufficient_capacity_means_no_relocation(self, lab):
        lab.source.add_vm(make_vm("huge01", size_gb=5000))

        [outcome] = _orchestrator(lab).run([make_request("huge01")])

        assert outcome.status is OutcomeStatus.SKIPPED
        assert "InsufficientCapacity" in outcome.reason
        assert outcome.size_gb == 5000
        assert lab.source.relocations == []

    def test_unresolved_network(self, lab):
        lab.source.add_vm(make_vm("app01", networks=("VLAN999",)))

        [outcome] = _orchestrator(lab).run([make_request("app01")])

        assert outcome.status is OutcomeStatus.SKIPPED
        assert outcome.reason.startswith("NetworkResolutionFailure")
        assert lab.source.relocations == []

    def test_failed_relocation_is_failed_and_not_imported(self, lab):
        lab.source.add_vm(make_vm("app01"))
        lab.source.task_script = [TaskInfo("task-1", TaskState.ERROR, error="boom")]

        [outcome] = _orchestrator(lab).run([make_request("app01")])

        assert outcome.status is OutcomeStatus.FAILED
        assert "boom" in outcome.reason
        assert lab.tenant.imports == []

    def test_unexpected_error_does_not_stop_the_batch(self, lab):
        lab.source.add_vm(make_vm("app01"))
        lab.source.add_vm(make_vm("app02"))
        real = lab.tenant.find_org_vdc
        lab.tenant.find_org_vdc = Mock(side_effect=[RuntimeError("socket closed"), real("100-Acme-Linux")])

        outcomes = _orchestrator(lab).run([make_request("app01"), make_request("app02")])

        assert [o.status for o in outcomes] == [OutcomeStatus.FAILED, OutcomeStatus.MIGRATED]
        assert "RuntimeError" in outcomes[0].reason

    def test_one_outcome_per_request_in_order(self, lab):
        lab.source.add_vm(make_vm("app01"))
        requests = [make_request("ghost"), make_request("app01"), make_request("bsd01", "freebsd")]

        outcomes = _orchestrator(lab).run(requests)

        assert [o.vm_name for o in outcomes] == ["ghost", "app01", "bsd01"]
        assert [o.status for o in outcomes] == [
            OutcomeStatus.SKIPPED,
            OutcomeStatus.MIGRATED,
            OutcomeStatus.SKIPPED,
        ]


@pytest.mark.unit
class TestMetadataStep:
    def test_unmapped_tag_skips_metadata(self, lab):
        lab.source.add_vm(make_vm("app01"))
        lab.source.tags["app01"] = ["gold"]

        [outcome] = _orchestrator(lab).run([make_request("app01")])

        assert outcome.status is OutcomeStatus.MIGRATED
        assert "metadata skipped" in outcome.reason
        assert lab.tenant.metadata == {}

    def test_untagged_vm_skips_metadata(self, lab):
        lab.source.add_vm(make_vm("app01"))

        [outcome] = _orchestrator(lab).run([make_request("app01")])

        assert outcome.source_tag_label == ""
        assert lab.tenant.metadata == {}

    def test_duplicate_vapp_is_not_tagged(self, lab):
        lab.source.add_vm(make_vm("app01"))
        lab.source.tags["app01"] = ["tag2"]
        lab.tenant.vapps[("100-Acme-Linux", "app01")] = VAppRef("app01", "https://vcd.test/api/vApp/vapp-old")

        [outcome] = _orchestrator(lab).run([make_request("app01")])

        assert outcome.status is OutcomeStatus.MIGRATED
        assert "already present" in outcome.reason
        assert lab.tenant.imports == []
        assert lab.tenant.metadata == {}

    def test_metadata_failure_keeps_vm_migrated(self, lab):
        lab.source.add_vm(make_vm("app01"))
        lab.source.tags["app01"] = ["tag1"]
        lab.tenant.fail_metadata = True

        [outcome] = _orchestrator(lab).run([make_request("app01")])

        assert outcome.status is OutcomeStatus.MIGRATED
        assert "metadata failed" in outcome.reason


@pytest.mark.unit
class TestRerunsAndDryRun:
    def test_second_run_moves_nothing(self, lab):
        lab.source.add_vm(make_vm("app01"))
        lab.source.tags["app01"] = ["tag1"]
        requests = [make_request("app01")]

        first = _orchestrator(lab).run(requests)
        second = _orchestrator(lab).run(requests)

        assert first[0].status is OutcomeStatus.MIGRATED
        assert second[0].status is OutcomeStatus.SKIPPED
        assert len(lab.source.relocations) == 1
        assert len(lab.tenant.imports) == 1
        assert len(_vapp_metadata(lab, "100-Acme-Linux", "app01")) == 1

    def test_dry_run_plans_without_moving(self, lab):
        lab.source.add_vm(make_vm("app01"))

        [outcome] = _orchestrator(lab, dry_run=True).run([make_request("app01")])

        assert outcome.status is OutcomeStatus.PLANNED
        assert outcome.ok
        assert "linux_cluster-esx02/gold-02" in outcome.reason
        assert lab.source.relocations == []
        assert lab.tenant.imports == []

    def test_non_integer_number_value_keeps_vm_migrated(self, lab):
        lab.source.add_vm(make_vm("app02"))
        lab.source.tags["app02"] = ["tag1"]

        [outcome] = _orchestrator(lab, metadata_type=MetadataType.NUMBER, metadata_value="1.5").run(
            [make_request("app02")]
        )

        assert outcome.status is OutcomeStatus.MIGRATED
        assert "metadata failed" in outcome.reason
        assert lab.tenant.imports == [("100-Acme-Linux", "app02", True)]
        assert lab.tenant.metadata == {}


@pytest.mark.unit
class TestSingleVcenter:
    """Source and destination are the same vCenter session."""

    def _orchestrator(self, lab):
        shared = lab.destination
        ctx = OrchestrationContext(source=shared, destination=shared, tenant=lab.tenant)
        executor = MigrationExecutor(shared, destination=shared, sleep=lambda _s: None)
        return MigrationOrchestrator(ctx, EngineConfig(), executor=executor)

    def test_vm_in_legacy_cluster_is_relocated(self, lab):
        lab.destination.add_vm(make_vm("app01", cluster="legacy-01"))

        [outcome] = self._orchestrator(lab).run([make_request("app01")])

        assert outcome.status is OutcomeStatus.MIGRATED
        [call] = lab.destination.relocations
        assert call["cluster"] == "linux_cluster"
        assert call["destination"] is None
        assert lab.tenant.imports == [("100-Acme-Linux", "app01", True)]

    def test_second_run_sees_vm_in_destination_cluster(self, lab):
        lab.destination.add_vm(make_vm("app01", cluster="legacy-01"))
        requests = [make_request("app01")]

        self._orchestrator(lab).run(requests)
        [second] = self._orchestrator(lab).run(requests)

        assert second.status is OutcomeStatus.SKIPPED
        assert "AlreadyMigrated" in second.reason
        assert len(lab.destination.relocations) == 1
