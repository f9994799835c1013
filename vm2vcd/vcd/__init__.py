# SPDX-License-Identifier: LGPL-3.0-or-later
# vm2vcd/vcd/__init__.py
"""Cloud Director adapter (REST/XML)."""

__all__ = []
