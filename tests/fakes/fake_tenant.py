# SPDX-License-Identifier: LGPL-3.0-or-later
"""In-memory TenantSession for engine tests."""
from __future__ import annotations

from typing import Dict, List, Optional, Tuple

from vm2vcd.core.exceptions import VcdError
from vm2vcd.migration.interfaces import TenantSession
from vm2vcd.migration.models import MetadataEntry, OrgVdcRef, SourceVm, VAppRef, Visibility


class FakeTenantSession(TenantSession):
    def __init__(self):
        self.vdcs: Dict[str, OrgVdcRef] = {}
        self.vapps: Dict[Tuple[str, str], VAppRef] = {}
        self.metadata: Dict[str, List[MetadataEntry]] = {}
        self.imports: List[Tuple[str, str, bool]] = []
        self.fail_metadata = False

    def add_vdc(self, name: str) -> OrgVdcRef:
        ref = OrgVdcRef(name=name, href=f"https://vcd.test/api/vdc/{name}")
        self.vdcs[name] = ref
        return ref

    def find_org_vdc(self, name: str) -> Optional[OrgVdcRef]:
        return self.vdcs.get(name)

    def find_vapp(self, vdc: OrgVdcRef, name: str) -> Optional[VAppRef]:
        return self.vapps.get((vdc.name, name))

    def import_vm(self, vdc: OrgVdcRef, vm: SourceVm, name: str, *, move: bool = True) -> VAppRef:
        self.imports.append((vdc.name, name, move))
        ref = VAppRef(name=name, href=f"https://vcd.test/api/vApp/vapp-{name}")
        self.vapps[(vdc.name, name)] = ref
        return ref

    def add_metadata(self, target: VAppRef, entry: MetadataEntry) -> None:
        if self.fail_metadata:
            raise VcdError(msg="metadata endpoint unavailable")
        self.metadata.setdefault(target.href, []).append(entry)

    def get_metadata(self, target: VAppRef) -> List[MetadataEntry]:
        return list(self.metadata.get(target.href, []))

    def remove_metadata(self, target: VAppRef, key: str, visibility: Visibility = Visibility.GENERAL) -> None:
        entries = self.metadata.get(target.href, [])
        self.metadata[target.href] = [e for e in entries if not (e.key == key and e.visibility is visibility)]
