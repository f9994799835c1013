# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# vm2vcd/migration/report.py
"""Outcome report: CSV file plus a console summary table."""
from __future__ import annotations

import csv
import logging
from collections import Counter
from pathlib import Path
from typing import Dict, Optional, Sequence, Union

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from ..core.logging_utils import safe_logger
from ..core.utils import U
from .models import REPORT_COLUMNS, OutcomeRecord, OutcomeStatus

_STATUS_STYLE = {
    OutcomeStatus.MIGRATED: "green",
    OutcomeStatus.PLANNED: "cyan",
    OutcomeStatus.SKIPPED: "yellow",
    OutcomeStatus.FAILED: "bold red",
}


def default_report_path(directory: Union[str, Path] = ".") -> Path:
    return Path(directory) / f"vm2vcd-report-{U.now_ts()}.csv"


def write_report(
    outcomes: Sequence[OutcomeRecord],
    path: Union[str, Path],
    logger: Optional[logging.Logger] = None,
) -> Path:
    log = safe_logger(logger)
    p = Path(path).expanduser()
    U.ensure_dir(p.parent)
    with p.open("w", encoding="utf-8", newline="") as f:
        writer = csv.DictWriter(f, fieldnames=REPORT_COLUMNS)
        writer.writeheader()
        for outcome in outcomes:
            writer.writerow(outcome.as_row())
    log.info("Report written: %s (%d row(s))", p, len(outcomes))
    return p


def summarize(outcomes: Sequence[OutcomeRecord]) -> Dict[str, int]:
    counts = Counter(o.status for o in outcomes)
    return {status.value: counts.get(status, 0) for status in OutcomeStatus}


def render_summary(outcomes: Sequence[OutcomeRecord], console: Optional[Console] = None) -> None:
    console = console or Console(stderr=False)

    table = Table(title="vm2vcd migration report", show_lines=False)
    table.add_column("VM", style="bold")
    table.add_column("Source cluster")
    table.add_column("Datastore")
    table.add_column("Tag")
    table.add_column("Networks")
    table.add_column("GB", justify="right")
    table.add_column("Status")
    table.add_column("Reason", overflow="fold")

    for o in outcomes:
        row = o.as_row()
        style = _STATUS_STYLE.get(o.status, "")
        cells = [escape(row[col]) for col in REPORT_COLUMNS]
        # Status column is coloured; everything else is plain text.
        status_idx = REPORT_COLUMNS.index("Status")
        if style:
            cells[status_idx] = f"[{style}]{cells[status_idx]}[/{style}]"
        table.add_row(*cells)

    console.print(table)
    totals = ", ".join(f"{k}={v}" for k, v in summarize(outcomes).items())
    console.print(f"Total: {len(outcomes)} ({totals})")
