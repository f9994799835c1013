# SPDX-License-Identifier: LGPL-3.0-or-later
"""Tests for the outcome report."""
from __future__ import annotations

import csv
import io

import pytest
from rich.console import Console

from vm2vcd.migration.models import REPORT_COLUMNS, OutcomeRecord, OutcomeStatus
from vm2vcd.migration.report import render_summary, summarize, write_report

OUTCOMES = [
    OutcomeRecord(
        vm_name="db02",
        source_cluster="legacy-01",
        source_datastore="ds-legacy-01",
        source_tag_label="tag2",
        resolved_networks=("VLAN100", "VLAN|200"),
        size_gb=80.5,
        status=OutcomeStatus.MIGRATED,
    ),
    OutcomeRecord(vm_name="ghost", status=OutcomeStatus.SKIPPED, reason="ValidationFailure[SourceNotFound]: ghost"),
]


@pytest.mark.unit
class TestWriteReport:
    def test_columns_and_rows(self, tmp_path):
        path = write_report(OUTCOMES, tmp_path / "out" / "report.csv")

        with path.open(encoding="utf-8", newline="") as f:
            reader = csv.DictReader(f)
            rows = list(reader)

        assert reader.fieldnames == REPORT_COLUMNS
        assert rows[0]["VMName"] == "db02"
        assert rows[0]["SourceNetworks"] == "VLAN100,VLAN|200"
        assert rows[0]["VM_size_GB"] == "80.50"
        assert rows[0]["Status"] == "Migrated"
        assert rows[1]["Status"] == "Skipped"
        assert rows[1]["Reason"].startswith("ValidationFailure[SourceNotFound]")

    def test_empty_batch_writes_header_only(self, tmp_path):
        path = write_report([], tmp_path / "empty.csv")
        assert path.read_text(encoding="utf-8").strip() == ",".join(REPORT_COLUMNS)


@pytest.mark.unit
class TestSummary:
    def test_counts_every_status(self):
        assert summarize(OUTCOMES) == {"Migrated": 1, "Planned": 0, "Skipped": 1, "Failed": 0}

    def test_table_lists_each_vm(self):
        buf = io.StringIO()
        render_summary(OUTCOMES, Console(file=buf, width=200, color_system=None))
        text = buf.getvalue()
        assert "db02" in text
        assert "ghost" in text
        assert "Total: 2" in text
