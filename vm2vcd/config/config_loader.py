# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# vm2vcd/config/config_loader.py
"""
YAML/JSON config files.

Several files may be given; later ones override earlier ones (mappings are
merged recursively, everything else is replaced). A file may pull in others
with a top-level `include:` list, resolved relative to the including file and
loaded before it.
"""
from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import yaml

from ..core.exceptions import Fatal

INCLUDE_KEY = "include"

# Top-level keys that hold nested sections rather than argparse defaults.
SECTION_KEYS = ("source", "destination", "vcd", "clusters")


class Config:
    @staticmethod
    def _read(path: Path) -> Dict[str, Any]:
        try:
            text = path.read_text(encoding="utf-8")
        except OSError as e:
            raise Fatal(2, f"Cannot read config {path}: {e}")
        try:
            if path.suffix.lower() == ".json":
                data = json.loads(text) if text.strip() else {}
            else:
                data = yaml.safe_load(text) or {}
        except (json.JSONDecodeError, yaml.YAMLError) as e:
            raise Fatal(2, f"Invalid config {path}: {e}")
        if not isinstance(data, dict):
            raise Fatal(2, f"Config {path} must contain a mapping at the top level")
        return data

    @staticmethod
    def expand_configs(logger: Optional[logging.Logger], paths: Sequence[str]) -> List[Path]:
        """Resolve include chains into a flat, ordered list of files (each at most once)."""
        out: List[Path] = []
        seen = set()

        def visit(p: Path, chain: List[Path]) -> None:
            p = p.expanduser().resolve()
            if p in chain:
                raise Fatal(2, f"Config include cycle: {' -> '.join(str(x) for x in chain + [p])}")
            if p in seen:
                return
            if not p.is_file():
                raise Fatal(2, f"Config file not found: {p}")
            includes = Config._read(p).get(INCLUDE_KEY) or []
            if isinstance(includes, str):
                includes = [includes]
            for inc in includes:
                visit((p.parent / str(inc)), chain + [p])
            seen.add(p)
            out.append(p)

        for raw in paths:
            visit(Path(raw), [])
        if logger is not None:
            logger.debug("Config files: %s", [str(p) for p in out])
        return out

    @staticmethod
    def merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
        merged = dict(base)
        for k, v in override.items():
            if isinstance(v, dict) and isinstance(merged.get(k), dict):
                merged[k] = Config.merge(merged[k], v)
            else:
                merged[k] = v
        return merged

    @staticmethod
    def load_many(logger: Optional[logging.Logger], paths: Sequence[Path]) -> Dict[str, Any]:
        conf: Dict[str, Any] = {}
        for p in paths:
            data = Config._read(Path(p))
            data.pop(INCLUDE_KEY, None)
            conf = Config.merge(conf, data)
            if logger is not None:
                logger.debug("Loaded config %s (%d key(s))", p, len(data))
        return conf

    @staticmethod
    def apply_as_defaults(
        logger: Optional[logging.Logger],
        parser: argparse.ArgumentParser,
        conf: Dict[str, Any],
    ) -> None:
        """Top-level scalar keys become parser defaults; CLI flags still win."""
        dests = {a.dest for a in parser._actions}
        defaults: Dict[str, Any] = {}
        for k, v in conf.items():
            if k in SECTION_KEYS:
                continue
            dest = k.replace("-", "_")
            if dest in dests:
                defaults[dest] = v
            elif logger is not None:
                logger.debug("Config key %r has no matching option; ignored", k)
        parser.set_defaults(**defaults)
