# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# vm2vcd/migration/interfaces.py
"""
Capability interfaces consumed by the migration engine.

The engine only talks to these two sessions. Real implementations live in
vm2vcd.vmware (pyVmomi + vSphere Automation REST) and vm2vcd.vcd (Cloud
Director REST); tests use in-memory fakes.

Adapters raise VMwareError / VcdError for transport or API failures.
"Not found" is expressed through return values (None or empty list), never
through exceptions.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List, Optional, Sequence

from .models import (
    ClusterRef,
    DatastoreRef,
    FolderRef,
    HostRef,
    MetadataEntry,
    NetworkAdapterMapping,
    OrgVdcRef,
    PlacementDecision,
    PortgroupRef,
    SourceVm,
    TaskInfo,
    VAppRef,
    Visibility,
)


class ComputeSession(ABC):
    """One connected vSphere environment (optionally scoped to a datacenter)."""

    @abstractmethod
    def find_vms(self, name: str) -> List[SourceVm]:
        """All VMs with exactly this name."""
        ...

    @abstractmethod
    def find_cluster(self, name: str) -> Optional[ClusterRef]:
        ...

    @abstractmethod
    def list_hosts(self, cluster: ClusterRef) -> List[HostRef]:
        """Cluster members with live CPU usage, in inventory order."""
        ...

    @abstractmethod
    def list_datastores(self, pool_name: str) -> Optional[List[DatastoreRef]]:
        """Members of a datastore cluster; None if the cluster does not exist."""
        ...

    @abstractmethod
    def find_folders(self, name: str) -> List[FolderRef]:
        ...

    @abstractmethod
    def find_portgroup(self, name: str) -> Optional[PortgroupRef]:
        ...

    @abstractmethod
    def detach_removable_media(self, vm: SourceVm) -> int:
        """Disconnect ISO/CD media; returns how many drives were changed."""
        ...

    @abstractmethod
    def relocate(
        self,
        vm: SourceVm,
        decision: PlacementDecision,
        cluster: ClusterRef,
        mappings: Sequence[NetworkAdapterMapping],
        *,
        thin: bool = True,
        destination: Optional["ComputeSession"] = None,
    ) -> TaskInfo:
        """Submit the move and return the task handle without waiting."""
        ...

    @abstractmethod
    def get_task(self, task_id: str) -> Optional[TaskInfo]:
        """Re-read a task by id; None when the server no longer knows it."""
        ...

    @abstractmethod
    def tag_labels(self, vm: SourceVm, category: Optional[str] = None) -> List[str]:
        """Names of tags attached to the VM, optionally limited to one category."""
        ...


class TenantSession(ABC):
    """Connected tenant-management (Cloud Director) API."""

    @abstractmethod
    def find_org_vdc(self, name: str) -> Optional[OrgVdcRef]:
        ...

    @abstractmethod
    def find_vapp(self, vdc: OrgVdcRef, name: str) -> Optional[VAppRef]:
        ...

    @abstractmethod
    def import_vm(self, vdc: OrgVdcRef, vm: SourceVm, name: str, *, move: bool = True) -> VAppRef:
        """Import a vCenter VM as a vApp; move=True adopts it without copying disks."""
        ...

    @abstractmethod
    def add_metadata(self, target: VAppRef, entry: MetadataEntry) -> None:
        ...

    @abstractmethod
    def get_metadata(self, target: VAppRef) -> List[MetadataEntry]:
        ...

    @abstractmethod
    def remove_metadata(self, target: VAppRef, key: str, visibility: Visibility = Visibility.GENERAL) -> None:
        ...


@dataclass
class OrchestrationContext:
    """
    Sessions for one batch, passed explicitly to every component.

    source and destination may be the same object when both environments
    live behind one vCenter; destination is then usually scoped to another
    datacenter.
    """

    source: ComputeSession
    destination: ComputeSession
    tenant: TenantSession
