# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# vm2vcd/migration/importer.py
from __future__ import annotations

import logging
from typing import Optional

from ..core.exceptions import ImportFailure
from ..core.logger import Log
from ..core.logging_utils import safe_logger
from ..core.utils import U
from .interfaces import ComputeSession, TenantSession
from .models import ImportResult, ImportStatus, MigrationRequest, OsClass, SourceVm


def org_vdc_name(tenant_id: str, tenant_name: str, os_class: str) -> str:
    """
    Tenant storage division name: {id}-{Name}-{Osclass}.

    >>> org_vdc_name("100", "acme", "sql")
    '100-Acme-Sql'
    """
    return f"{(tenant_id or '').strip()}-{U.capitalize(tenant_name)}-{U.capitalize(os_class)}"


class TenantImporter:
    """
    Adopts a relocated VM into the tenant's OrgVDC as a vApp of the same name.

    At most one import per (VM name, OrgVDC): an existing vApp is reported as
    a duplicate and left alone, so a partially successful batch can be rerun.
    """

    def __init__(
        self,
        tenant: TenantSession,
        destination: ComputeSession,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.tenant = tenant
        self.destination = destination
        self.logger = safe_logger(logger)

    def import_vm(self, request: MigrationRequest, os_class: OsClass) -> ImportResult:
        vdc_name = org_vdc_name(request.tenant_id, request.tenant_name, os_class.value)
        vdc = self.tenant.find_org_vdc(vdc_name)
        if vdc is None:
            raise ImportFailure(msg=f"OrgVDC {vdc_name!r} not found").with_context(vm=request.vm_name)

        existing = self.tenant.find_vapp(vdc, request.vm_name)
        if existing is not None:
            Log.warn(self.logger, f"vApp {request.vm_name} already exists in {vdc.name}; import skipped (duplicate)")
            return ImportResult(status=ImportStatus.DUPLICATE, vapp=existing, org_vdc=vdc)

        vm = self._migrated_vm(request.vm_name)
        vapp = self.tenant.import_vm(vdc, vm, request.vm_name, move=True)
        Log.ok(self.logger, f"Imported {vm.name} into {vdc.name}", vapp=vapp.name)
        return ImportResult(status=ImportStatus.IMPORTED, vapp=vapp, org_vdc=vdc)

    def _migrated_vm(self, name: str) -> SourceVm:
        # The relocated VM has a new handle on the destination side.
        found = self.destination.find_vms(name)
        if len(found) != 1:
            raise ImportFailure(
                msg=f"{name}: expected 1 VM at the destination after relocation, found {len(found)}"
            )
        return found[0]
