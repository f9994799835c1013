# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# vm2vcd/migration/orchestrator.py
"""
Batch orchestration.

Requests are processed strictly one after another:

    validate -> place + map networks -> relocate (blocking) -> import -> tag

Every failure is caught at the per-VM boundary and turned into an outcome
record; the batch always runs to the end. Nothing is cached between
requests, so each placement sees live capacity figures.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

from ..core.exceptions import ExecutionFailure, MigrationSkip, Vm2VcdError
from ..core.logger import Log
from ..core.logging_utils import log_step, safe_logger
from .executor import DEFAULT_POLL_INTERVAL_S, MigrationExecutor
from .importer import TenantImporter
from .interfaces import OrchestrationContext
from .models import (
    BackupClass,
    ImportResult,
    ImportStatus,
    MetadataType,
    MigrationRequest,
    OutcomeRecord,
    OutcomeStatus,
    SourceVm,
    Visibility,
)
from .network_mapper import NetworkMapper
from .placement import PlacementSelector
from .tagging import MetadataTagger, TagClassifier
from .validator import MigrationValidator, NetworkMode


@dataclass
class EngineConfig:
    """
    Engine knobs (populated from the YAML/JSON config by the CLI).

    clusters
      Per OS class cluster names; only windows/linux/sql are honoured.

    metadata_value / metadata_type / metadata_visibility
      What gets written under the Backup_N key.

    dry_run
      Validate, place and map networks only. Nothing is moved or imported.
    """

    network_mode: NetworkMode = NetworkMode.MULTI
    clusters: Dict[str, str] = field(default_factory=dict)
    poll_interval_s: float = DEFAULT_POLL_INTERVAL_S
    thin_provision: bool = True
    tag_category: Optional[str] = None
    metadata_value: str = "true"
    metadata_type: MetadataType = MetadataType.BOOLEAN
    metadata_visibility: Visibility = Visibility.GENERAL
    dry_run: bool = False


class MigrationOrchestrator:
    def __init__(
        self,
        ctx: OrchestrationContext,
        config: Optional[EngineConfig] = None,
        logger: Optional[logging.Logger] = None,
        *,
        executor: Optional[MigrationExecutor] = None,
    ) -> None:
        self.ctx = ctx
        self.config = config or EngineConfig()
        self.logger = safe_logger(logger)

        self.validator = MigrationValidator(
            ctx,
            network_mode=self.config.network_mode,
            cluster_overrides=self.config.clusters,
            logger=self.logger,
        )
        self.placement = PlacementSelector(ctx.destination, self.logger)
        self.mapper = NetworkMapper(ctx.destination, self.logger)
        self.executor = executor or MigrationExecutor(
            ctx.source,
            destination=ctx.destination,
            poll_interval_s=self.config.poll_interval_s,
            thin=self.config.thin_provision,
            logger=self.logger,
        )
        self.importer = TenantImporter(ctx.tenant, ctx.destination, self.logger)
        self.tagger = MetadataTagger(ctx.tenant, self.logger)

    def run(self, requests: Iterable[MigrationRequest]) -> List[OutcomeRecord]:
        outcomes: List[OutcomeRecord] = []
        batch = list(requests)
        Log.banner(self.logger, f"Migrating {len(batch)} VM(s){' (dry run)' if self.config.dry_run else ''}")
        for idx, request in enumerate(batch, 1):
            log = Log.bind(self.logger, vm=request.vm_name, item=f"{idx}/{len(batch)}")
            outcome = self.process(request, log)
            outcomes.append(outcome)
            if outcome.ok:
                Log.ok(log, f"{request.vm_name}: {outcome.status.value}")
            else:
                Log.fail(log, f"{request.vm_name}: {outcome.status.value} - {outcome.reason}")
        return outcomes

    def process(self, request: MigrationRequest, log: Any = None) -> OutcomeRecord:
        log = log or self.logger
        fields: Dict[str, Any] = {"vm_name": request.vm_name}

        try:
            pre = self.validator.validate(request)
            vm = pre.vm
            fields.update(
                source_cluster=vm.cluster_name,
                source_datastore=vm.primary_datastore,
                size_gb=vm.provisioned_gb,
            )
            label = self._source_label(vm, log)
            fields["source_tag_label"] = label

            decision = self.placement.select(pre.cluster, request.datastore_cluster_name, vm, pre.folder)
            mappings = self.mapper.map(pre.adapters)
            fields["resolved_networks"] = tuple(m.source_network_name for m in mappings)

            if self.config.dry_run:
                return OutcomeRecord(status=OutcomeStatus.PLANNED, reason=f"-> {decision.host.name}/{decision.datastore.name}", **fields)

            with log_step(log, f"Relocating {vm.name} to {decision.host.name}/{decision.datastore.name}"):
                self.executor.run(vm, decision, pre.cluster, mappings)

            imported = self.importer.import_vm(request, pre.os_class)
            note = self._tag(imported, label, log)
            return OutcomeRecord(status=OutcomeStatus.MIGRATED, reason=note, **fields)

        except MigrationSkip as e:
            status = OutcomeStatus.FAILED if isinstance(e, ExecutionFailure) else OutcomeStatus.SKIPPED
            return OutcomeRecord(status=status, reason=e.reason_text(), **fields)
        except Vm2VcdError as e:
            return OutcomeRecord(status=OutcomeStatus.SKIPPED, reason=f"{type(e).__name__}: {e}", **fields)
        except Exception as e:
            log.exception("Unexpected error while processing %s", request.vm_name)
            return OutcomeRecord(status=OutcomeStatus.FAILED, reason=f"{type(e).__name__}: {e}", **fields)

    def _source_label(self, vm: SourceVm, log: Any) -> str:
        # Tags only feed the best-effort metadata step; a lookup failure must not stop the move.
        try:
            labels = self.ctx.source.tag_labels(vm, self.config.tag_category)
        except Vm2VcdError as e:
            Log.warn(log, f"Tag lookup failed for {vm.name}: {e}")
            return ""
        return labels[0] if labels else ""

    def _tag(self, imported: ImportResult, label: str, log: Any) -> str:
        if imported.status is ImportStatus.DUPLICATE:
            return f"vApp already present in {imported.org_vdc.name}"

        backup = TagClassifier.classify(label)
        if backup is BackupClass.UNMAPPED:
            log.info("No backup classification for tag %r; metadata skipped", label)
            return "metadata skipped (unclassified tag)"

        try:
            self.tagger.tag(
                imported.vapp,
                backup.value,
                self.config.metadata_value,
                self.config.metadata_type,
                self.config.metadata_visibility,
            )
        except Vm2VcdError as e:
            Log.warn(log, f"Metadata {backup.value} not set on {imported.vapp.name}: {e}")
            return f"metadata failed: {e}"
        return ""
