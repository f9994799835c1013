# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# vm2vcd/__main__.py
from __future__ import annotations

import argparse
import sys
import traceback
from contextlib import ExitStack
from typing import Any, Dict, List, Optional

from .cli.argument_parser import parse_args_with_config
from .core.exceptions import Fatal, Vm2VcdError, format_exception_for_cli
from .migration.batch import load_batch
from .migration.interfaces import OrchestrationContext
from .migration.models import MetadataType, OutcomeRecord, Visibility
from .migration.orchestrator import EngineConfig, MigrationOrchestrator
from .migration.report import default_report_path, render_summary, write_report
from .migration.validator import NetworkMode
from .vcd.client import VcdSession
from .vmware.client import VsphereSession


def _print_stderr(msg: str) -> None:
    print(msg, file=sys.stderr)


def _safe_log(logger, level: str, msg: str) -> None:
    if logger is None:
        _print_stderr(msg)
        return
    fn = getattr(logger, level, None)
    if callable(fn):
        fn(msg)
    else:
        _print_stderr(msg)


def engine_config(args: argparse.Namespace, conf: Dict[str, Any]) -> EngineConfig:
    return EngineConfig(
        network_mode=NetworkMode(str(args.network_mode).lower()),
        clusters={str(k): str(v) for k, v in (conf.get("clusters") or {}).items()},
        poll_interval_s=float(args.poll_interval_s),
        thin_provision=bool(args.thin_provision),
        tag_category=args.tag_category or None,
        metadata_value=str(args.metadata_value),
        metadata_type=MetadataType.parse(str(args.metadata_type)),
        metadata_visibility=Visibility.parse(str(args.metadata_visibility)),
        dry_run=bool(args.dry_run),
    )


def exit_code(outcomes: List[OutcomeRecord]) -> int:
    return 0 if all(o.ok for o in outcomes) else 1


def run(args: argparse.Namespace, conf: Dict[str, Any], logger: Any) -> int:
    requests = load_batch(args.batch, logger)
    config = engine_config(args, conf)

    with ExitStack() as stack:
        source = stack.enter_context(VsphereSession.from_config(logger, conf["source"]))
        dest_conf = conf.get("destination")
        if dest_conf:
            destination = stack.enter_context(VsphereSession.from_config(logger, dest_conf))
        else:
            destination = source
        tenant = stack.enter_context(VcdSession.from_config(logger, conf["vcd"]))

        ctx = OrchestrationContext(source=source, destination=destination, tenant=tenant)
        outcomes = MigrationOrchestrator(ctx, config, logger).run(requests)

    report = write_report(outcomes, args.report or default_report_path(), logger)
    if not args.no_summary:
        render_summary(outcomes)
    logger.info("Report: %s", report)
    return exit_code(outcomes)


def main() -> None:
    logger: Optional[object] = None

    try:
        args, conf, logger = parse_args_with_config()
    except Fatal as e:
        _print_stderr(f"💥 ERROR    {e}")
        raise SystemExit(e.code)
    except KeyboardInterrupt:
        _safe_log(logger, "warning", "Interrupted by user (Ctrl+C).")
        raise SystemExit(130)

    try:
        rc = run(args, conf, logger)
    except Fatal as e:
        _safe_log(logger, "error", format_exception_for_cli(e, verbose=args.verbose))
        rc = e.code
    except Vm2VcdError as e:
        # Session setup failures (login, datacenter lookup) end the run before any VM is touched.
        _safe_log(logger, "error", format_exception_for_cli(e, verbose=args.verbose))
        rc = e.code
    except KeyboardInterrupt:
        _safe_log(logger, "warning", "Interrupted by user (Ctrl+C).")
        rc = 130
    except Exception as e:
        _safe_log(logger, "error", f"💥 UNHANDLED {type(e).__name__}: {e}")
        _safe_log(logger, "debug", traceback.format_exc())
        rc = 1

    raise SystemExit(rc)


if __name__ == "__main__":
    main()
