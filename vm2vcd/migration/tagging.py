# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# vm2vcd/migration/tagging.py
"""Backup classification from source tags, and metadata on tenant objects."""
from __future__ import annotations

import datetime as _dt
import logging
from typing import Callable, Dict, List, Optional, Union

from ..core.exceptions import MetadataValueError
from ..core.logger import Log
from ..core.logging_utils import safe_logger
from ..core.utils import U
from .interfaces import TenantSession
from .models import BackupClass, MetadataEntry, MetadataType, VAppRef, Visibility

_TAG_TABLE: Dict[str, BackupClass] = {
    "tag1": BackupClass.BACKUP_1,
    "tag2": BackupClass.BACKUP_2,
    "tag3": BackupClass.BACKUP_3,
}

NOW_LITERAL = "Now"


class TagClassifier:
    """Maps a source tag label to a backup metadata key. Pure and total."""

    @staticmethod
    def classify(label: Optional[str]) -> BackupClass:
        return _TAG_TABLE.get((label or "").strip().lower(), BackupClass.UNMAPPED)


class MetadataTagger:
    """
    Attaches one typed key/value entry to a tenant object.

    Entries are not deduplicated: tagging the same key twice leaves two
    entries on the object.
    """

    def __init__(
        self,
        tenant: TenantSession,
        logger: Optional[logging.Logger] = None,
        *,
        clock: Optional[Callable[[], _dt.datetime]] = None,
    ) -> None:
        self.tenant = tenant
        self.logger = safe_logger(logger)
        self._clock = clock or (lambda: _dt.datetime.now(_dt.timezone.utc))

    def build_entry(
        self,
        key: str,
        value: Union[str, int, float, bool],
        value_type: MetadataType = MetadataType.STRING,
        visibility: Visibility = Visibility.GENERAL,
    ) -> MetadataEntry:
        return MetadataEntry(
            key=key,
            value=self._normalize_value(value, value_type),
            value_type=value_type,
            visibility=visibility,
        )

    def tag(
        self,
        target: VAppRef,
        key: str,
        value: Union[str, int, float, bool],
        value_type: MetadataType = MetadataType.STRING,
        visibility: Visibility = Visibility.GENERAL,
    ) -> MetadataEntry:
        entry = self.build_entry(key, value, value_type, visibility)
        self.tenant.add_metadata(target, entry)
        Log.ok(
            self.logger,
            f"Metadata {entry.key}={entry.value} set on {target.name}",
            type=entry.value_type.value,
            visibility=entry.visibility.value,
        )
        return entry

    def read(self, target: VAppRef) -> List[MetadataEntry]:
        return self.tenant.get_metadata(target)

    def remove(self, target: VAppRef, key: str, visibility: Visibility = Visibility.GENERAL) -> None:
        self.tenant.remove_metadata(target, key, visibility)
        self.logger.info("Metadata %s removed from %s", key, target.name)

    @staticmethod
    def check_value(value: Union[str, int, float, bool], value_type: MetadataType) -> Union[str, int]:
        """Reject a value its type cannot carry; Number values come back as int."""
        if value_type is not MetadataType.NUMBER:
            return str(value)
        if isinstance(value, bool):
            raise MetadataValueError(code=2, msg=f"metadata Number value is not an integer: {value!r}")
        try:
            return int(str(value).strip())
        except ValueError:
            raise MetadataValueError(code=2, msg=f"metadata Number value is not an integer: {value!r}")

    def _normalize_value(self, value: Union[str, int, float, bool], value_type: MetadataType) -> str:
        if value_type is MetadataType.DATETIME:
            if isinstance(value, str) and value.strip().lower() == NOW_LITERAL.lower():
                return U.utc_sortable(self._clock())
            return str(value)
        if value_type is MetadataType.BOOLEAN:
            return "true" if U.boolish(value) else "false"
        if value_type is MetadataType.NUMBER:
            return str(self.check_value(value, value_type))
        return str(value)
