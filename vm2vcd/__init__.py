# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# vm2vcd/__init__.py
"""
vm2vcd - bulk vCenter to Cloud Director VM relocation

Moves VMs listed in a CSV batch from a legacy vSphere estate into tenant
clusters, adopts each one into its tenant's OrgVDC and tags the resulting
vApp with backup metadata.

Usage as a library:

    from vm2vcd import MigrationOrchestrator, OrchestrationContext
    from vm2vcd.vmware.client import VsphereSession
    from vm2vcd.vcd.client import VcdSession

    ctx = OrchestrationContext(source=src, destination=dst, tenant=vcd)
    outcomes = MigrationOrchestrator(ctx).run(requests)
"""

__version__ = "0.1.0"

from .migration.interfaces import OrchestrationContext
from .migration.orchestrator import EngineConfig, MigrationOrchestrator

__all__ = ["__version__", "EngineConfig", "MigrationOrchestrator", "OrchestrationContext"]
