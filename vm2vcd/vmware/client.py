# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# vm2vcd/vmware/client.py
"""
pyVmomi-backed compute session.

Inventory lookups go through container views rooted at the configured
datacenter (or the whole inventory when none is set). Every call reads live
state; nothing is cached between calls.
"""
from __future__ import annotations

import hashlib
import logging
import ssl
import time
from typing import Any, Dict, List, Optional, Sequence

from pyVim.connect import Disconnect, SmartConnect
from pyVmomi import vim, vmodl

from ..core.exceptions import VMwareError, wrap_vmware
from ..core.logging_utils import safe_logger
from ..core.utils import U
from ..migration.interfaces import ComputeSession
from ..migration.models import (
    ClusterRef,
    DatastoreRef,
    FolderRef,
    HostRef,
    NetworkAdapter,
    NetworkAdapterMapping,
    PlacementDecision,
    PortgroupRef,
    SourceVm,
    TaskInfo,
    TaskState,
)
from .tagging import VsphereTagReader


class VsphereSession(ComputeSession):
    def __init__(
        self,
        logger: Optional[logging.Logger],
        host: str,
        user: str,
        password: str,
        *,
        port: int = 443,
        insecure: bool = False,
        datacenter: Optional[str] = None,
        tag_reader: Optional[VsphereTagReader] = None,
    ) -> None:
        self.logger = safe_logger(logger)
        self.host = (host or "").strip()
        self.user = (user or "").strip()
        self.password = password or ""
        self.port = int(port)
        self.insecure = bool(insecure)
        self.datacenter = datacenter or None
        self.tag_reader = tag_reader

        self.si: Any = None

    @classmethod
    def from_config(cls, logger: Optional[logging.Logger], section: Dict[str, Any]) -> "VsphereSession":
        host = str(section.get("host") or "")
        if not host:
            raise VMwareError(code=2, msg="vCenter host is not configured")
        password = U.env_or(section.get("password"), section.get("password_env")) or ""
        port = int(section.get("port") or 443)
        insecure = U.boolish(section.get("insecure", False))
        user = str(section.get("user") or "")
        tag_reader = VsphereTagReader(logger, host, user, password, port=port, insecure=insecure)
        return cls(
            logger,
            host,
            user,
            password,
            port=port,
            insecure=insecure,
            datacenter=section.get("datacenter"),
            tag_reader=tag_reader,
        )

    # Connection

    def __enter__(self) -> "VsphereSession":
        self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        self.disconnect()
        return False

    def _ssl_context(self) -> ssl.SSLContext:
        if self.insecure:
            self.logger.warning("TLS certificate verification is DISABLED for %s", self.host)
            ctx = ssl.SSLContext(ssl.PROTOCOL_TLS_CLIENT)
            ctx.check_hostname = False
            ctx.verify_mode = ssl.CERT_NONE
            return ctx
        return ssl.create_default_context()

    def connect(self) -> None:
        try:
            self.si = SmartConnect(
                host=self.host,
                user=self.user,
                pwd=self.password,
                port=self.port,
                sslContext=self._ssl_context(),
            )
        except Exception as e:
            self.si = None
            raise wrap_vmware(f"Failed to connect to vSphere {self.host}", e, host=self.host, user=self.user)
        self.logger.info("Connected to vSphere: %s:%s%s", self.host, self.port, f" (dc={self.datacenter})" if self.datacenter else "")

    def disconnect(self) -> None:
        if self.tag_reader is not None:
            self.tag_reader.logout()
        try:
            if self.si is not None:
                Disconnect(self.si)
        except Exception as e:
            self.logger.error("Error during disconnect from %s: %s", self.host, e)
        finally:
            self.si = None

    def _content(self) -> Any:
        if not self.si:
            raise VMwareError(msg=f"Not connected to {self.host}")
        try:
            return self.si.RetrieveContent()
        except vmodl.MethodFault as e:
            raise wrap_vmware("Failed to retrieve content", e)

    def _root(self, content: Any) -> Any:
        if not self.datacenter:
            return content.rootFolder
        for dc in self._view(content, content.rootFolder, vim.Datacenter):
            if dc.name == self.datacenter:
                return dc
        raise VMwareError(code=2, msg=f"Datacenter {self.datacenter!r} not found on {self.host}")

    @staticmethod
    def _view(content: Any, root: Any, vimtype: Any) -> List[Any]:
        view = content.viewManager.CreateContainerView(root, [vimtype], True)
        try:
            return list(view.view)
        finally:
            view.Destroy()

    def _objects(self, vimtype: Any) -> List[Any]:
        content = self._content()
        return self._view(content, self._root(content), vimtype)

    def _named(self, vimtype: Any, name: str) -> List[Any]:
        return [o for o in self._objects(vimtype) if o.name == name]

    # Inventory

    def find_vms(self, name: str) -> List[SourceVm]:
        return [self._to_source_vm(vm) for vm in self._named(vim.VirtualMachine, name)]

    def _to_source_vm(self, vm: Any) -> SourceVm:
        host = vm.runtime.host
        cluster_name = host.parent.name if host is not None and host.parent is not None else ""
        storage = vm.summary.storage
        provisioned = int(storage.committed or 0) + int(storage.uncommitted or 0)
        return SourceVm(
            name=vm.name,
            cluster_name=cluster_name,
            datastore_names=tuple(ds.name for ds in vm.datastore),
            provisioned_gb=U.bytes_to_gb(provisioned),
            adapters=tuple(self._adapters(vm)),
            moref=vm._moId,
            ref=vm,
        )

    def _adapters(self, vm: Any) -> List[NetworkAdapter]:
        adapters: List[NetworkAdapter] = []
        portgroups: Optional[Dict[str, str]] = None
        for device in vm.config.hardware.device:
            if not isinstance(device, vim.vm.device.VirtualEthernetCard):
                continue
            backing = device.backing
            if isinstance(backing, vim.vm.device.VirtualEthernetCard.DistributedVirtualPortBackingInfo):
                if portgroups is None:
                    portgroups = {pg.key: pg.name for pg in self._objects(vim.dvs.DistributedVirtualPortgroup)}
                network_name = portgroups.get(backing.port.portgroupKey, backing.port.portgroupKey)
                distributed = True
            else:
                network_name = getattr(backing, "deviceName", "") or ""
                distributed = False
            adapters.append(
                NetworkAdapter(
                    label=device.deviceInfo.label,
                    key=device.key,
                    network_name=network_name,
                    distributed=distributed,
                    ref=device,
                )
            )
        return adapters

    def find_cluster(self, name: str) -> Optional[ClusterRef]:
        found = self._named(vim.ClusterComputeResource, name)
        return ClusterRef(name=found[0].name, ref=found[0]) if found else None

    def list_hosts(self, cluster: ClusterRef) -> List[HostRef]:
        hosts: List[HostRef] = []
        for h in cluster.ref.host:
            hosts.append(
                HostRef(
                    name=h.name,
                    cpu_usage_mhz=int(h.summary.quickStats.overallCpuUsage or 0),
                    connected=str(h.runtime.connectionState) == "connected",
                    maintenance=bool(h.runtime.inMaintenanceMode),
                    ref=h,
                )
            )
        return hosts

    def list_datastores(self, pool_name: str) -> Optional[List[DatastoreRef]]:
        pods = self._named(vim.StoragePod, pool_name)
        if not pods:
            return None
        return [
            DatastoreRef(
                name=ds.name,
                free_gb=U.bytes_to_gb(ds.summary.freeSpace),
                capacity_gb=U.bytes_to_gb(ds.summary.capacity),
                ref=ds,
            )
            for ds in pods[0].childEntity
            if isinstance(ds, vim.Datastore)
        ]

    def find_folders(self, name: str) -> List[FolderRef]:
        return [
            FolderRef(name=f.name, ref=f)
            for f in self._named(vim.Folder, name)
            if "VirtualMachine" in (f.childType or [])
        ]

    def find_portgroup(self, name: str) -> Optional[PortgroupRef]:
        found = self._named(vim.dvs.DistributedVirtualPortgroup, name)
        if not found:
            return None
        pg = found[0]
        return PortgroupRef(
            name=pg.name,
            key=pg.key,
            switch_uuid=pg.config.distributedVirtualSwitch.uuid,
            ref=pg,
        )

    # Changes

    def detach_removable_media(self, vm: SourceVm) -> int:
        changes = []
        for device in vm.ref.config.hardware.device:
            if not isinstance(device, vim.vm.device.VirtualCdrom):
                continue
            iso = isinstance(device.backing, vim.vm.device.VirtualCdrom.IsoBackingInfo)
            if not iso and not device.connectable.connected:
                continue
            spec = vim.vm.device.VirtualDeviceSpec()
            spec.operation = vim.vm.device.VirtualDeviceSpec.Operation.edit
            spec.device = device
            spec.device.backing = vim.vm.device.VirtualCdrom.RemotePassthroughBackingInfo(deviceName="", exclusive=False)
            spec.device.connectable = vim.vm.device.VirtualDevice.ConnectInfo(
                connected=False, startConnected=False, allowGuestControl=True
            )
            changes.append(spec)

        if not changes:
            return 0
        try:
            task = vm.ref.ReconfigVM_Task(spec=vim.vm.ConfigSpec(deviceChange=changes))
        except vmodl.MethodFault as e:
            raise wrap_vmware(f"Reconfigure of {vm.name} failed", e, vm=vm.name)
        self._wait(task, f"detach media from {vm.name}")
        return len(changes)

    def relocate(
        self,
        vm: SourceVm,
        decision: PlacementDecision,
        cluster: ClusterRef,
        mappings: Sequence[NetworkAdapterMapping],
        *,
        thin: bool = True,
        destination: Optional[ComputeSession] = None,
    ) -> TaskInfo:
        ds = decision.datastore.ref
        spec = vim.vm.RelocateSpec()
        spec.host = decision.host.ref
        spec.pool = cluster.ref.resourcePool
        spec.datastore = ds
        spec.folder = decision.folder.ref
        spec.disk = self._disk_locators(vm, ds, thin)
        spec.deviceChange = [self._nic_edit(m) for m in mappings]

        if isinstance(destination, VsphereSession) and destination.host != self.host:
            spec.service = destination.service_locator()
            self.logger.info("Cross-vCenter relocation %s -> %s", self.host, destination.host)

        try:
            task = vm.ref.RelocateVM_Task(spec=spec, priority=vim.VirtualMachine.MovePriority.defaultPriority)
        except vmodl.MethodFault as e:
            raise wrap_vmware(f"Relocation of {vm.name} was rejected", e, vm=vm.name, host=decision.host.name)
        return self._task_info(task)

    def _disk_locators(self, vm: SourceVm, datastore: Any, thin: bool) -> List[Any]:
        locators = []
        for device in vm.ref.config.hardware.device:
            if not isinstance(device, vim.vm.device.VirtualDisk):
                continue
            locator = vim.vm.RelocateSpec.DiskLocator(diskId=device.key, datastore=datastore)
            if thin:
                locator.diskBackingInfo = vim.vm.device.VirtualDisk.FlatVer2BackingInfo(
                    diskMode="persistent",
                    thinProvisioned=True,
                    datastore=datastore,
                )
            locators.append(locator)
        return locators

    @staticmethod
    def _nic_edit(mapping: NetworkAdapterMapping) -> Any:
        pg = mapping.target_portgroup
        port = vim.dvs.PortConnection(portgroupKey=pg.key, switchUuid=pg.switch_uuid)

        spec = vim.vm.device.VirtualDeviceSpec()
        spec.operation = vim.vm.device.VirtualDeviceSpec.Operation.edit
        spec.device = mapping.adapter.ref
        spec.device.backing = vim.vm.device.VirtualEthernetCard.DistributedVirtualPortBackingInfo(port=port)
        spec.device.connectable = vim.vm.device.VirtualDevice.ConnectInfo(
            connected=True, startConnected=True, allowGuestControl=True
        )
        return spec

    def service_locator(self) -> Any:
        """Credentials of this vCenter, for a RelocateSpec issued by another one."""
        content = self._content()
        return vim.ServiceLocator(
            instanceUuid=content.about.instanceUuid,
            url=f"https://{self.host}:{self.port}/sdk",
            credential=vim.ServiceLocator.NamePassword(username=self.user, password=self.password),
            sslThumbprint=self._thumbprint(),
        )

    def _thumbprint(self) -> str:
        pem = ssl.get_server_certificate((self.host, self.port))
        digest = hashlib.sha1(ssl.PEM_cert_to_DER_cert(pem)).hexdigest().upper()
        return ":".join(digest[i : i + 2] for i in range(0, len(digest), 2))

    # Tasks

    def get_task(self, task_id: str) -> Optional[TaskInfo]:
        if not self.si:
            raise VMwareError(msg=f"Not connected to {self.host}")
        task = vim.Task(task_id, self.si._stub)
        try:
            return self._task_info(task)
        except vmodl.fault.ManagedObjectNotFound:
            return None

    @staticmethod
    def _task_info(task: Any) -> TaskInfo:
        info = task.info
        error = ""
        if info.error is not None:
            error = getattr(info.error, "msg", "") or str(info.error)
        return TaskInfo(
            id=task._moId,
            state=TaskState(str(info.state)),
            percent_complete=int(info.progress or 0),
            start_time=info.startTime,
            finish_time=info.completeTime,
            error=error,
        )

    def _wait(self, task: Any, what: str) -> None:
        # Short reconfigure tasks only; relocations are polled by the executor.
        while task.info.state not in (vim.TaskInfo.State.success, vim.TaskInfo.State.error):
            time.sleep(1)
        if task.info.state == vim.TaskInfo.State.error:
            raise VMwareError(msg=f"{what} failed: {getattr(task.info.error, 'msg', task.info.error)}")

    # Tags

    def tag_labels(self, vm: SourceVm, category: Optional[str] = None) -> List[str]:
        if self.tag_reader is None:
            return []
        return self.tag_reader.labels_for_vm(vm.moref, category)
