# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# vm2vcd/migration/placement.py
"""
Destination placement.

Greedy, per VM, no lookahead across the batch:
  host      least CPU-loaded schedulable member of the cluster
  datastore member of the datastore cluster with the most free space,
            and only that one (no spill-over to the next candidate)
  folder    already resolved by the validator
"""
from __future__ import annotations

import logging
from typing import List, Optional, Sequence

from ..core.exceptions import PlacementFailure, PlacementReason
from ..core.logging_utils import safe_logger
from .interfaces import ComputeSession
from .models import ClusterRef, DatastoreRef, FolderRef, HostRef, PlacementDecision, SourceVm


def pick_host(hosts: Sequence[HostRef]) -> Optional[HostRef]:
    """
    Sort by CPU usage descending and take the last entry.

    sorted() is stable, so equally loaded hosts keep inventory order and the
    last-enumerated of them is chosen.
    """
    candidates = [h for h in hosts if h.schedulable]
    if not candidates:
        return None
    return sorted(candidates, key=lambda h: h.cpu_usage_mhz, reverse=True)[-1]


class PlacementSelector:
    def __init__(self, destination: ComputeSession, logger: Optional[logging.Logger] = None) -> None:
        self.destination = destination
        self.logger = safe_logger(logger)

    def select(
        self,
        cluster: ClusterRef,
        datastore_cluster_name: str,
        vm: SourceVm,
        folder: FolderRef,
    ) -> PlacementDecision:
        host = self._select_host(cluster)
        datastore = self._select_datastore(datastore_cluster_name, vm)
        self.logger.info(
            "Placement for %s: host=%s (cpu %s MHz) datastore=%s (%.2f GB free) folder=%s",
            vm.name,
            host.name,
            host.cpu_usage_mhz,
            datastore.name,
            datastore.free_gb,
            folder.name,
        )
        return PlacementDecision(host=host, datastore=datastore, folder=folder)

    def _select_host(self, cluster: ClusterRef) -> HostRef:
        hosts: List[HostRef] = self.destination.list_hosts(cluster)
        host = pick_host(hosts)
        if host is None:
            raise PlacementFailure(
                msg=f"no schedulable host in cluster {cluster.name!r} ({len(hosts)} members)",
                reason=PlacementReason.INSUFFICIENT_CAPACITY,
            )
        return host

    def _select_datastore(self, pool_name: str, vm: SourceVm) -> DatastoreRef:
        members = self.destination.list_datastores(pool_name)
        if not members:
            raise PlacementFailure(
                msg=f"datastore cluster {pool_name!r} not found or empty",
                reason=PlacementReason.STORAGE_POOL_NOT_FOUND,
            )
        best = sorted(members, key=lambda d: d.free_gb, reverse=True)[0]
        if best.free_gb < vm.provisioned_gb:
            raise PlacementFailure(
                msg=(
                    f"datastore {best.name!r} has {best.free_gb:.2f} GB free, "
                    f"{vm.name} needs {vm.provisioned_gb:.2f} GB"
                ),
                reason=PlacementReason.INSUFFICIENT_CAPACITY,
            )
        return best
