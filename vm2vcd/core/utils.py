# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# vm2vcd/core/utils.py
from __future__ import annotations

import datetime as _dt
import json
import os
from pathlib import Path
from typing import Any, Optional

_GIB = 1024**3


class U:
    @staticmethod
    def ensure_dir(p: Path) -> None:
        p.mkdir(parents=True, exist_ok=True)

    @staticmethod
    def now_ts() -> str:
        return _dt.datetime.now().strftime("%Y%m%d-%H%M%S")

    @staticmethod
    def utc_sortable(now: Optional[_dt.datetime] = None) -> str:
        """UTC timestamp as YYYY-MM-DDTHH:MM:SS (sorts lexically)."""
        now = now or _dt.datetime.now(_dt.timezone.utc)
        return now.astimezone(_dt.timezone.utc).strftime("%Y-%m-%dT%H:%M:%S")

    @staticmethod
    def json_dump(obj: Any) -> str:
        return json.dumps(obj, indent=2, sort_keys=True, default=str)

    @staticmethod
    def bytes_to_gb(n: Optional[int]) -> float:
        return round(float(n or 0) / _GIB, 2)

    @staticmethod
    def capitalize(s: str) -> str:
        """First character upper-cased, the rest lower-cased ("aCME" -> "Acme")."""
        s = (s or "").strip()
        return s[:1].upper() + s[1:].lower()

    @staticmethod
    def boolish(v: Any) -> bool:
        if isinstance(v, bool):
            return v
        return str(v or "").strip().lower() in ("1", "true", "yes", "y", "on")

    @staticmethod
    def env_or(value: Optional[str], env_name: Optional[str]) -> Optional[str]:
        """Prefer the named environment variable, else the literal value."""
        if env_name:
            from_env = os.environ.get(env_name)
            if from_env:
                return from_env
        return value
