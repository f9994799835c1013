# SPDX-License-Identifier: LGPL-3.0-or-later
"""Test data builders shared by the engine tests."""
from __future__ import annotations

from fakes.fake_compute import FakeComputeSession
from fakes.fake_tenant import FakeTenantSession
from vm2vcd.migration.interfaces import OrchestrationContext
from vm2vcd.migration.models import (
    DatastoreRef,
    HostRef,
    MigrationRequest,
    NetworkAdapter,
    SourceVm,
)


def make_vm(name, *, networks=("VLAN100",), size_gb=40.0, cluster="legacy-01", datastore="ds-legacy-01", distributed=True):
    adapters = tuple(
        NetworkAdapter(label=f"Network adapter {i}", key=4000 + i, network_name=net, distributed=distributed)
        for i, net in enumerate(networks, 1)
    )
    return SourceVm(
        name=name,
        cluster_name=cluster,
        datastore_names=(datastore,),
        provisioned_gb=size_gb,
        adapters=adapters,
        moref=f"vm-{name}",
    )


def make_request(name, os_type="linux", *, pool="DSC-Gold", tenant="acme", tenant_id="100"):
    return MigrationRequest(
        vm_name=name,
        os_class=os_type,
        datastore_cluster_name=pool,
        tenant_name=tenant,
        tenant_id=tenant_id,
    )


class Lab:
    """Source + destination vCenters and a Cloud Director with one tenant ready to receive VMs."""

    def __init__(self):
        self.source = FakeComputeSession("legacy")
        self.destination = FakeComputeSession("cloud")
        self.tenant = FakeTenantSession()

        for cluster in ("windows_cluster", "linux_cluster", "sql_cluster"):
            self.destination.add_cluster(
                cluster,
                [
                    HostRef(name=f"{cluster}-esx01", cpu_usage_mhz=9000),
                    HostRef(name=f"{cluster}-esx02", cpu_usage_mhz=2000),
                    HostRef(name=f"{cluster}-esx03", cpu_usage_mhz=5000),
                ],
            )
        self.destination.datastores["DSC-Gold"] = [
            DatastoreRef(name="gold-01", free_gb=500.0),
            DatastoreRef(name="gold-02", free_gb=1500.0),
        ]
        self.destination.add_folder("acme")
        self.destination.add_portgroup("VLAN100")
        self.destination.add_portgroup("VLAN_200")
        for os_class in ("Linux", "Windows", "Sql"):
            self.tenant.add_vdc(f"100-Acme-{os_class}")

    @property
    def ctx(self):
        return OrchestrationContext(source=self.source, destination=self.destination, tenant=self.tenant)
