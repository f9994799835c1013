# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# vm2vcd/migration/validator.py
"""
Preflight checks.

Read-only. Checks run in a fixed order and stop at the first failure:

  1. source VM exists exactly once             SourceNotFound
  2. VM not already in the destination         AlreadyMigrated
     (same vCenter on both sides: checked after 3, by cluster)
  3. os_class maps to a known cluster          UnknownOsClass
  4. network adapters usable                   NoNetwork / MultipleNetworks
  5. destination cluster exists                DestinationPoolNotFound
  6. exactly one folder named for the tenant   FolderNotFound / AmbiguousFolder
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional, Tuple

from ..core.exceptions import InvalidReason, ValidationFailure
from ..core.logging_utils import safe_logger
from .interfaces import OrchestrationContext
from .models import (
    ClusterRef,
    FolderRef,
    MigrationRequest,
    NetworkAdapter,
    OsClass,
    ResourcePool,
    SourceVm,
    resolve_resource_pool,
)


class NetworkMode(str, Enum):
    # every adapter is mapped individually
    MULTI = "multi"
    # exactly one distributed portgroup allowed
    SINGLE = "single"


@dataclass(frozen=True)
class Preflight:
    request: MigrationRequest
    vm: SourceVm
    os_class: OsClass
    pool: ResourcePool
    cluster: ClusterRef
    folder: FolderRef
    adapters: Tuple[NetworkAdapter, ...]


def _fail(reason: InvalidReason, msg: str) -> ValidationFailure:
    return ValidationFailure(msg=msg, reason=reason)


class MigrationValidator:
    def __init__(
        self,
        ctx: OrchestrationContext,
        *,
        network_mode: NetworkMode = NetworkMode.MULTI,
        cluster_overrides: Optional[Dict[str, str]] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.ctx = ctx
        self.network_mode = network_mode
        self.cluster_overrides = dict(cluster_overrides or {})
        self.logger = safe_logger(logger)

    def validate(self, request: MigrationRequest) -> Preflight:
        name = request.vm_name

        matches = self.ctx.source.find_vms(name)
        if len(matches) != 1:
            raise _fail(
                InvalidReason.SOURCE_NOT_FOUND,
                f"{name}: {len(matches)} VMs with this name in the source environment (need exactly 1)",
            )
        vm = matches[0]

        same_vcenter = self.ctx.destination is self.ctx.source
        # One vCenter on both sides: the source VM is always visible there, so only its cluster tells.
        if not same_vcenter and self.ctx.destination.find_vms(name):
            raise _fail(InvalidReason.ALREADY_MIGRATED, f"{name} already exists in the destination environment")

        os_class = OsClass.from_label(request.os_class)
        pool = resolve_resource_pool(os_class, self.cluster_overrides)
        if pool is None:
            raise _fail(
                InvalidReason.UNKNOWN_OS_CLASS,
                f"{name}: os_type {request.os_class!r} is not one of windows, linux, sql",
            )
        if same_vcenter and vm.cluster_name == pool.cluster_name:
            raise _fail(
                InvalidReason.ALREADY_MIGRATED,
                f"{name} already runs in destination cluster {pool.cluster_name!r}",
            )

        adapters = self._check_networks(vm)

        cluster = self.ctx.destination.find_cluster(pool.cluster_name)
        if cluster is None:
            raise _fail(
                InvalidReason.DESTINATION_POOL_NOT_FOUND,
                f"{name}: destination cluster {pool.cluster_name!r} not found",
            )

        folders = self.ctx.destination.find_folders(request.tenant_name)
        if not folders:
            raise _fail(InvalidReason.FOLDER_NOT_FOUND, f"{name}: no destination folder named {request.tenant_name!r}")
        if len(folders) > 1:
            raise _fail(
                InvalidReason.AMBIGUOUS_FOLDER,
                f"{name}: {len(folders)} destination folders named {request.tenant_name!r}",
            )

        self.logger.debug("%s: preflight ok (cluster=%s folder=%s)", name, cluster.name, folders[0].name)
        return Preflight(
            request=request,
            vm=vm,
            os_class=os_class,
            pool=pool,
            cluster=cluster,
            folder=folders[0],
            adapters=adapters,
        )

    def _check_networks(self, vm: SourceVm) -> Tuple[NetworkAdapter, ...]:
        if self.network_mode is NetworkMode.SINGLE:
            distributed = tuple(a for a in vm.adapters if a.distributed)
            if not distributed:
                raise _fail(InvalidReason.NO_NETWORK, f"{vm.name}: no distributed portgroup attached")
            names = sorted({a.network_name for a in distributed})
            if len(names) > 1:
                raise _fail(
                    InvalidReason.MULTIPLE_NETWORKS,
                    f"{vm.name}: attached to {', '.join(names)}; expected a single portgroup",
                )
            return distributed

        if not vm.adapters:
            raise _fail(InvalidReason.NO_NETWORK, f"{vm.name}: no network adapters")
        return tuple(vm.adapters)
