# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# vm2vcd/migration/models.py
"""
Typed records for the migration engine.

Remote entities (VMs, hosts, datastores, portgroups, tasks, OrgVDCs, vApps)
are represented by small dataclasses populated by the adapter layer. Each
carries an opaque `ref` that only the adapter interprets: a pyVmomi managed
object for vSphere, an API href for Cloud Director. The engine never reads
fields off the raw SDK objects.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


# ---------------------------
# Closed classifications
# ---------------------------


class OsClass(str, Enum):
    WINDOWS = "windows"
    LINUX = "linux"
    SQL = "sql"
    UNMAPPED = "unmapped"

    @classmethod
    def from_label(cls, label: Optional[str]) -> "OsClass":
        s = (label or "").strip().lower()
        for member in cls:
            if member is not cls.UNMAPPED and member.value == s:
                return member
        return cls.UNMAPPED


DEFAULT_CLUSTERS: Dict[OsClass, str] = {
    OsClass.WINDOWS: "windows_cluster",
    OsClass.LINUX: "linux_cluster",
    OsClass.SQL: "sql_cluster",
}


@dataclass(frozen=True)
class ResourcePool:
    cluster_name: str


def resolve_resource_pool(
    os_class: OsClass,
    overrides: Optional[Dict[str, str]] = None,
) -> Optional[ResourcePool]:
    """
    Map an OS class to its destination cluster.

    `overrides` may rename the cluster for a known class; it cannot add classes.
    Returns None for OsClass.UNMAPPED.
    """
    if os_class is OsClass.UNMAPPED:
        return None
    name = (overrides or {}).get(os_class.value) or DEFAULT_CLUSTERS[os_class]
    return ResourcePool(cluster_name=name)


class BackupClass(str, Enum):
    BACKUP_1 = "Backup_1"
    BACKUP_2 = "Backup_2"
    BACKUP_3 = "Backup_3"
    UNMAPPED = "unmapped"


class TaskState(str, Enum):
    QUEUED = "queued"
    RUNNING = "running"
    SUCCESS = "success"
    ERROR = "error"

    @property
    def terminal(self) -> bool:
        return self in (TaskState.SUCCESS, TaskState.ERROR)


class MetadataType(str, Enum):
    STRING = "String"
    NUMBER = "Number"
    DATETIME = "DateTime"
    BOOLEAN = "Boolean"

    @classmethod
    def parse(cls, value: str) -> "MetadataType":
        s = (value or "").strip().lower()
        for member in cls:
            if member.value.lower() == s:
                return member
        raise ValueError(f"unknown metadata type: {value!r}")


class Visibility(str, Enum):
    GENERAL = "General"
    PRIVATE = "Private"
    READ_ONLY = "ReadOnly"

    @classmethod
    def parse(cls, value: str) -> "Visibility":
        s = (value or "").strip().lower().replace("_", "")
        for member in cls:
            if member.value.lower() == s:
                return member
        raise ValueError(f"unknown metadata visibility: {value!r}")


class ImportStatus(str, Enum):
    IMPORTED = "imported"
    DUPLICATE = "duplicate"


class OutcomeStatus(str, Enum):
    MIGRATED = "Migrated"
    PLANNED = "Planned"
    SKIPPED = "Skipped"
    FAILED = "Failed"


# ---------------------------
# Input
# ---------------------------


@dataclass(frozen=True)
class MigrationRequest:
    vm_name: str
    os_class: str
    datastore_cluster_name: str
    tenant_name: str
    tenant_id: str


# ---------------------------
# Remote entities (adapter-populated)
# ---------------------------


@dataclass(frozen=True)
class NetworkAdapter:
    """
    One virtual NIC.

    key is the device key on the VM; network_name is the name of the
    portgroup it is attached to; distributed is False for standard-switch
    networks.
    """

    label: str
    key: int
    network_name: str
    distributed: bool = True
    ref: Any = field(default=None, compare=False, repr=False)


@dataclass(frozen=True)
class SourceVm:
    name: str
    cluster_name: str
    datastore_names: Tuple[str, ...]
    provisioned_gb: float
    adapters: Tuple[NetworkAdapter, ...] = ()
    moref: str = ""
    ref: Any = field(default=None, compare=False, repr=False)

    @property
    def primary_datastore(self) -> str:
        return self.datastore_names[0] if self.datastore_names else ""


@dataclass(frozen=True)
class ClusterRef:
    name: str
    ref: Any = field(default=None, compare=False, repr=False)


@dataclass(frozen=True)
class HostRef:
    name: str
    cpu_usage_mhz: int
    connected: bool = True
    maintenance: bool = False
    ref: Any = field(default=None, compare=False, repr=False)

    @property
    def schedulable(self) -> bool:
        return self.connected and not self.maintenance


@dataclass(frozen=True)
class DatastoreRef:
    name: str
    free_gb: float
    capacity_gb: float = 0.0
    ref: Any = field(default=None, compare=False, repr=False)


@dataclass(frozen=True)
class FolderRef:
    name: str
    ref: Any = field(default=None, compare=False, repr=False)


@dataclass(frozen=True)
class PortgroupRef:
    name: str
    key: str = ""
    switch_uuid: str = ""
    ref: Any = field(default=None, compare=False, repr=False)


@dataclass(frozen=True)
class TaskInfo:
    id: str
    state: TaskState
    percent_complete: int = 0
    start_time: Optional[datetime] = None
    finish_time: Optional[datetime] = None
    error: str = ""


@dataclass(frozen=True)
class OrgVdcRef:
    name: str
    href: str = ""


@dataclass(frozen=True)
class VAppRef:
    name: str
    href: str = ""


# ---------------------------
# Derived per request
# ---------------------------


@dataclass(frozen=True)
class PlacementDecision:
    host: HostRef
    datastore: DatastoreRef
    folder: FolderRef


@dataclass(frozen=True)
class NetworkAdapterMapping:
    adapter: NetworkAdapter
    source_network_name: str
    target_portgroup: PortgroupRef


@dataclass(frozen=True)
class MetadataEntry:
    key: str
    value: str
    value_type: MetadataType = MetadataType.STRING
    visibility: Visibility = Visibility.GENERAL


@dataclass(frozen=True)
class ImportResult:
    status: ImportStatus
    vapp: VAppRef
    org_vdc: OrgVdcRef


@dataclass(frozen=True)
class OutcomeRecord:
    vm_name: str
    source_cluster: str = ""
    source_datastore: str = ""
    source_tag_label: str = ""
    resolved_networks: Tuple[str, ...] = ()
    size_gb: float = 0.0
    status: OutcomeStatus = OutcomeStatus.SKIPPED
    reason: str = ""

    @property
    def ok(self) -> bool:
        return self.status in (OutcomeStatus.MIGRATED, OutcomeStatus.PLANNED)

    def as_row(self) -> Dict[str, str]:
        return {
            "VMName": self.vm_name,
            "SourceCluster": self.source_cluster,
            "SourceDatastore": self.source_datastore,
            "SourceTag": self.source_tag_label,
            "SourceNetworks": ",".join(self.resolved_networks),
            "VM_size_GB": f"{self.size_gb:.2f}",
            "Status": self.status.value,
            "Reason": self.reason,
        }


REPORT_COLUMNS: List[str] = [
    "VMName",
    "SourceCluster",
    "SourceDatastore",
    "SourceTag",
    "SourceNetworks",
    "VM_size_GB",
    "Status",
    "Reason",
]
