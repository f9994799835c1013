# SPDX-License-Identifier: LGPL-3.0-or-later
# vm2vcd/core/__init__.py
from .exceptions import Fatal, MigrationSkip, VcdError, Vm2VcdError, VMwareError

__all__ = ["Fatal", "MigrationSkip", "VcdError", "Vm2VcdError", "VMwareError"]
