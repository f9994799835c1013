# SPDX-License-Identifier: LGPL-3.0-or-later
# vm2vcd/config/__init__.py
