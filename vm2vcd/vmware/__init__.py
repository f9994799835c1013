# SPDX-License-Identifier: LGPL-3.0-or-later
# vm2vcd/vmware/__init__.py
"""
vSphere adapters.

- client: VsphereSession (pyVmomi) for inventory, relocation and tasks
- tagging: VsphereTagReader (vSphere Automation REST) for VM tags
"""

__all__ = []
