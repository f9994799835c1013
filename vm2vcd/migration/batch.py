# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# vm2vcd/migration/batch.py
"""
Input batch loader.

One migration request per CSV row. Required header columns:

    vm_name, os_type, datastore_cluster_name, customer_name, customer_id

Extra columns are ignored. Blank rows and rows whose first cell starts with
'#' are skipped. Row order is preserved; it is the processing order.
"""
from __future__ import annotations

import csv
import logging
from pathlib import Path
from typing import List, Optional, Union

from ..core.exceptions import Fatal
from ..core.logging_utils import safe_logger
from .models import MigrationRequest

REQUIRED_COLUMNS = (
    "vm_name",
    "os_type",
    "datastore_cluster_name",
    "customer_name",
    "customer_id",
)


def load_batch(path: Union[str, Path], logger: Optional[logging.Logger] = None) -> List[MigrationRequest]:
    log = safe_logger(logger)
    p = Path(path).expanduser()
    if not p.is_file():
        raise Fatal(2, f"Batch file not found: {p}")

    with p.open("r", encoding="utf-8-sig", newline="") as f:
        reader = csv.DictReader(f)
        header = [h.strip() for h in (reader.fieldnames or [])]
        missing = [col for col in REQUIRED_COLUMNS if col not in header]
        if missing:
            raise Fatal(2, f"{p}: missing required column(s): {', '.join(missing)}")

        requests: List[MigrationRequest] = []
        for lineno, raw in enumerate(reader, start=2):
            row = {(k or "").strip(): (v or "").strip() for k, v in raw.items() if k is not None}
            if not any(row.values()) or row.get("vm_name", "").startswith("#"):
                continue
            if not row["vm_name"]:
                log.warning("%s:%d: empty vm_name, row ignored", p.name, lineno)
                continue
            requests.append(
                MigrationRequest(
                    vm_name=row["vm_name"],
                    os_class=row["os_type"],
                    datastore_cluster_name=row["datastore_cluster_name"],
                    tenant_name=row["customer_name"],
                    tenant_id=row["customer_id"],
                )
            )

    log.info("Loaded %d migration request(s) from %s", len(requests), p)
    return requests
