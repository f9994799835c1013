# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# vm2vcd/migration/network_mapper.py
"""
Source NIC -> destination portgroup resolution.

The two network fabrics are administered separately and only share a naming
convention, so the match is by (sanitized) portgroup name. '|' is legal in
source portgroup names but not in destination ones; it is replaced with '_'.
"""
from __future__ import annotations

import logging
from typing import List, Optional, Sequence

from ..core.exceptions import NetworkResolutionFailure
from ..core.logging_utils import safe_logger
from .interfaces import ComputeSession
from .models import NetworkAdapter, NetworkAdapterMapping

RESERVED_SEPARATOR = "|"
REPLACEMENT = "_"


def sanitize_network_name(name: str) -> str:
    return (name or "").strip().replace(RESERVED_SEPARATOR, REPLACEMENT)


class NetworkMapper:
    def __init__(self, destination: ComputeSession, logger: Optional[logging.Logger] = None) -> None:
        self.destination = destination
        self.logger = safe_logger(logger)

    def map(self, adapters: Sequence[NetworkAdapter]) -> List[NetworkAdapterMapping]:
        mappings: List[NetworkAdapterMapping] = []
        for adapter in adapters:
            target_name = sanitize_network_name(adapter.network_name)
            portgroup = self.destination.find_portgroup(target_name)
            if portgroup is None:
                raise NetworkResolutionFailure(
                    msg=f"{adapter.label}: no destination portgroup named {target_name!r}",
                    adapter=adapter.label,
                ).with_context(source_network=adapter.network_name)
            self.logger.debug("%s: %s -> %s", adapter.label, adapter.network_name, portgroup.name)
            mappings.append(
                NetworkAdapterMapping(
                    adapter=adapter,
                    source_network_name=adapter.network_name,
                    target_portgroup=portgroup,
                )
            )
        return mappings
