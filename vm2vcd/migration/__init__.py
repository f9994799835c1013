# SPDX-License-Identifier: LGPL-3.0-or-later
# vm2vcd/migration/__init__.py
"""
Migration engine.

- validator: ordered, read-only preflight checks
- placement: host and datastore selection
- network_mapper: NIC to destination portgroup resolution
- executor: relocation submit and poll
- importer: OrgVDC adoption as a vApp
- tagging: backup classification and tenant metadata
- orchestrator: per-VM pipeline over a batch
"""

__all__ = []
