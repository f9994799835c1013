# SPDX-License-Identifier: LGPL-3.0-or-later
# vm2vcd/cli/__init__.py
